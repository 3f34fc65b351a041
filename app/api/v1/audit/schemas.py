from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime

from app.domain.audit.models import AuditAction, AuditResource


class AuditLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: AuditAction
    resource_type: AuditResource
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class AuditLogResponse(BaseModel):
    success: bool = True
    entries: List[AuditLogEntryResponse]
    total: int
    limit: int
    offset: int
