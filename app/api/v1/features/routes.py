from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_context
from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.domain.features.models import Feature
from app.domain.features.service import FeatureFlagService
from app.api.v1.features.schemas import (
    FeatureToggleRequest, FeatureListResponse, FeatureToggleResponse, FeatureFlagResponse
)
from app.infrastructure.database import get_db
from app.infrastructure.redis import get_cache_service

router = APIRouter(prefix="/features", tags=["Features"])


@router.get("", response_model=FeatureListResponse)
async def list_features(
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.FEATURES_READ, Permissions.FEATURES_MANAGE]))
):
    """Feature flags for the caller's tenant"""
    features = await FeatureFlagService(db, context, get_cache_service()).list_features()
    return {"success": True, "features": features}


@router.put("/{feature_name}", response_model=FeatureToggleResponse)
async def toggle_feature(
    feature_name: str,
    body: FeatureToggleRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.FEATURES_MANAGE]))
):
    """Switch a feature on or off for the caller's tenant"""
    try:
        feature = Feature(feature_name)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown feature: {feature_name}"
        )

    flag = await FeatureFlagService(db, context, get_cache_service()).set_enabled(feature, body.enabled, body.reason)
    return {"success": True, "feature": FeatureFlagResponse.model_validate(flag)}
