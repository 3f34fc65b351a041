from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import require_permissions
from app.core.tenant import RequestContext
from app.domain.features.models import Feature
from app.domain.features.service import FeatureFlagService
from app.infrastructure.redis import get_cache_service


def get_request_context(request: Request, required_permissions: List[str]) -> RequestContext:
    """Authenticate the caller and bind them to the tenant named in the headers"""
    user_payload = require_permissions(required_permissions)(request)

    tenant_id = getattr(request.state, "tenant_id", None) or request.headers.get("X-Tenant-ID")
    if not tenant_id or user_payload.get("tenant_id") != tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is not valid for this tenant"
        )

    return RequestContext(
        tenant_id=tenant_id,
        token=user_payload["_token"],
        user_id=user_payload.get("sub"),
        app_id=getattr(request.state, "app_id", None),
        permissions=list(user_payload.get("permissions", [])),
    )


def require_context(required_permissions: List[str]):
    """Dependency yielding a RequestContext for callers holding any of ``required_permissions``"""
    def context_dependency(request: Request) -> RequestContext:
        return get_request_context(request, required_permissions)

    return context_dependency


async def ensure_feature_enabled(db: AsyncSession, context: RequestContext, feature: Feature) -> None:
    await FeatureFlagService(db, context, get_cache_service()).require(feature)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
