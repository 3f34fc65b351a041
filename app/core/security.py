from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List
import jwt
from app.core.config import settings

# Claims every bed management token must carry
REQUIRED_CLAIMS = ("sub", "tenant_id", "token_type")


def create_access_token(
    subject: str,
    tenant_id: str,
    permissions: List[str],
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None
) -> str:
    """Issue an access token scoped to one tenant"""
    now = datetime.utcnow()
    claims = dict(extra_claims or {})
    claims.update({
        "sub": subject,
        "tenant_id": tenant_id,
        "permissions": list(permissions),
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
        "token_type": "access"
    })
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return None


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Decoded claims of a token of ``token_type``, or None when it is unusable"""
    payload = decode_token(token)
    if not payload:
        return None

    if any(not payload.get(claim) for claim in REQUIRED_CLAIMS):
        return None
    if payload["token_type"] != token_type:
        return None
    if not isinstance(payload.get("permissions", []), list):
        return None

    return payload
