from typing import List, Dict, Any
from fastapi import Request, HTTPException, status
from app.core.security import verify_token


class Permissions:
    """Permission constants for the bed management API"""

    # Beds and assignments
    BEDS_READ = "beds:read"
    BEDS_ASSIGN = "beds:assign"
    BEDS_UPDATE = "beds:update"

    # Isolation
    ISOLATION_READ = "isolation:read"
    ISOLATION_MANAGE = "isolation:manage"

    # Housekeeping
    HOUSEKEEPING_READ = "housekeeping:read"
    HOUSEKEEPING_ALERT = "housekeeping:alert"

    # Discharge planning
    DISCHARGE_READ = "discharge:read"
    DISCHARGE_UPDATE = "discharge:update"

    # Feature flags
    FEATURES_READ = "features:read"
    FEATURES_MANAGE = "features:manage"

    # Audit trail
    AUDIT_READ = "audit:read"

    # System
    SYSTEM_ADMIN = "system:admin"


def get_current_user(request: Request) -> Dict[str, Any]:
    """Extract and validate user from request"""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.split(" ")[1]
    payload = verify_token(token, "access")

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload["_token"] = token
    return payload


def require_permissions(required_permissions: List[str]):
    """Dependency function to check permissions"""
    def permission_checker(request: Request) -> Dict[str, Any]:
        user_payload = get_current_user(request)
        request.state.user = user_payload

        user_permissions = user_payload.get("permissions", [])

        # System admins pass every check; otherwise any listed permission is enough
        has_access = Permissions.SYSTEM_ADMIN in user_permissions or any(
            perm in user_permissions
            for perm in required_permissions
        )

        if not has_access:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )

        return user_payload

    return permission_checker
