from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_context, to_naive_utc
from app.core.exceptions import BusinessLogicError
from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditLogFilter, AuditRepository
from app.api.v1.audit.schemas import AuditLogResponse
from app.infrastructure.database import get_db

router = APIRouter(prefix="/admin", tags=["Audit"])


@router.get("/audit-log", response_model=AuditLogResponse)
async def get_audit_log(
    action: Optional[AuditAction] = Query(None),
    resource_type: Optional[AuditResource] = Query(None),
    resource_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.AUDIT_READ]))
):
    """Bed management audit trail for the caller's tenant, newest first"""
    start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise BusinessLogicError(message="start_date must be before end_date", error_code="INVALID_DATE_RANGE")

    filters = AuditLogFilter(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date
    )
    entries, total = await AuditRepository(db, context.tenant_id).search(filters, limit, offset)
    return {"success": True, "entries": entries, "total": total, "limit": limit, "offset": offset}
