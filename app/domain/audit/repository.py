from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.domain.audit.models import AuditLog, AuditAction, AuditResource


@dataclass(frozen=True)
class AuditLogFilter:
    """Recognised filters for audit trail queries"""
    action: Optional[AuditAction] = None
    resource_type: Optional[AuditResource] = None
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditRepository:
    """Append-only access to the audit trail.

    ``record`` only adds the row to the session; it is committed together
    with the change it describes.
    """

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    def record(
        self,
        action: AuditAction,
        resource_type: AuditResource,
        resource_id: Optional[str],
        user_id: Optional[str],
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        entry = AuditLog(
            tenant_id=self.tenant_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            details=details or {}
        )
        self.db.add(entry)
        return entry

    async def list_for_resource(self, resource_type: AuditResource, resource_id: str) -> List[AuditLog]:
        result = await self.db.execute(
            select(AuditLog).where(
                AuditLog.tenant_id == self.tenant_id,
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id
            ).order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())

    async def search(
        self,
        filters: Optional[AuditLogFilter] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[AuditLog], int]:
        """Newest-first page of matching entries and the total match count"""
        filters = filters or AuditLogFilter()
        conditions = [AuditLog.tenant_id == self.tenant_id]
        if filters.action:
            conditions.append(AuditLog.action == filters.action)
        if filters.resource_type:
            conditions.append(AuditLog.resource_type == filters.resource_type)
        if filters.resource_id:
            conditions.append(AuditLog.resource_id == filters.resource_id)
        if filters.user_id:
            conditions.append(AuditLog.user_id == filters.user_id)
        if filters.start_date:
            conditions.append(AuditLog.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(AuditLog.created_at <= filters.end_date)

        total = await self.db.scalar(select(func.count(AuditLog.id)).where(*conditions))
        result = await self.db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
