"""
Feature Flag Service

Per-tenant toggles for optional bed management capabilities. Lookups are
cached in Redis; when the cache is unavailable every check reads the
database.
"""

from typing import Dict, Optional
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import FeatureDisabledError
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditRepository
from app.domain.features.models import Feature, FeatureFlag
from app.infrastructure.redis import CacheService


class FeatureFlagService:

    def __init__(self, db: AsyncSession, context: RequestContext, cache: Optional[CacheService] = None):
        self.db = db
        self.context = context
        self.cache = cache
        self.audit = AuditRepository(db, context.tenant_id)

    def _cache_key(self, feature: Feature) -> str:
        return f"feature:{self.context.tenant_id}:{feature.value}"

    async def _get_flag(self, feature: Feature) -> Optional[FeatureFlag]:
        result = await self.db.execute(
            select(FeatureFlag).where(
                FeatureFlag.tenant_id == self.context.tenant_id,
                FeatureFlag.feature_name == feature.value
            )
        )
        return result.scalar_one_or_none()

    async def is_enabled(self, feature: Feature) -> bool:
        if self.cache is not None:
            cached = await self.cache.get(self._cache_key(feature))
            if cached is not None:
                return bool(cached)

        flag = await self._get_flag(feature)
        enabled = True if flag is None else flag.enabled

        if self.cache is not None:
            await self.cache.set(self._cache_key(feature), enabled, ttl=settings.FEATURE_CACHE_TTL_SECONDS)
        return enabled

    async def require(self, feature: Feature) -> None:
        """Raise FeatureDisabledError unless the feature is on for this tenant"""
        if not await self.is_enabled(feature):
            logger.info(f"Feature {feature.value} disabled for tenant {self.context.tenant_id}")
            raise FeatureDisabledError(feature.value)

    async def list_features(self) -> Dict[str, bool]:
        return {feature.value: await self.is_enabled(feature) for feature in Feature}

    async def set_enabled(self, feature: Feature, enabled: bool, reason: Optional[str] = None) -> FeatureFlag:
        flag = await self._get_flag(feature)
        if flag is None:
            flag = FeatureFlag(tenant_id=self.context.tenant_id, feature_name=feature.value, enabled=True)
            self.db.add(flag)
            await self.db.flush()

        previous = flag.enabled
        flag.enabled = enabled
        flag.updated_by = self.context.user_id
        flag.reason = reason

        self.audit.record(
            AuditAction.FEATURE_TOGGLED,
            AuditResource.FEATURE_FLAG,
            flag.id,
            self.context.user_id,
            {"feature": feature.value, "previous": previous, "enabled": enabled, "reason": reason}
        )
        await self.db.commit()
        await self.db.refresh(flag)

        if self.cache is not None:
            await self.cache.delete(self._cache_key(feature))

        logger.info(f"Feature {feature.value} set to {enabled} for tenant {self.context.tenant_id}")
        return flag
