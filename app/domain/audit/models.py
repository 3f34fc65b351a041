from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime
import enum

from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, gen_uuid, enum_column


class AuditAction(str, enum.Enum):
    """Audit action types"""
    BED_STATUS_CHANGED = "BED_STATUS_CHANGED"
    BED_ASSIGNED = "BED_ASSIGNED"
    BED_RELEASED = "BED_RELEASED"
    ISOLATION_FLAGGED = "ISOLATION_FLAGGED"
    ISOLATION_CLEARED = "ISOLATION_CLEARED"
    HOUSEKEEPING_ALERT = "HOUSEKEEPING_ALERT"
    DISCHARGE_BARRIER_UPDATED = "DISCHARGE_BARRIER_UPDATED"
    FEATURE_TOGGLED = "FEATURE_TOGGLED"


class AuditResource(str, enum.Enum):
    """Audit resource types"""
    BED = "BED"
    PATIENT = "PATIENT"
    BED_ASSIGNMENT = "BED_ASSIGNMENT"
    DISCHARGE_BARRIER = "DISCHARGE_BARRIER"
    FEATURE_FLAG = "FEATURE_FLAG"


class AuditLog(TenantMixin, Base):
    """Bed management audit trail"""
    __tablename__ = "bed_management_audit_logs"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    action = Column(enum_column(AuditAction, "audit_action"), nullable=False, index=True)
    resource_type = Column(enum_column(AuditResource, "audit_resource"), nullable=False, index=True)
    resource_id = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
