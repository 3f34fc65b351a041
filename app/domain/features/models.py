from sqlalchemy import Column, String, Boolean, Text, UniqueConstraint
import enum

from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, TimestampMixin, gen_uuid


class Feature(str, enum.Enum):
    """Optional engine capabilities a tenant can switch off"""
    BED_ASSIGNMENT_OPTIMIZATION = "bed_assignment_optimization"
    DISCHARGE_READINESS = "discharge_readiness"


class FeatureFlag(TenantMixin, TimestampMixin, Base):
    """Per-tenant override; no row means the feature is enabled"""
    __tablename__ = "feature_flags"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    feature_name = Column(String(64), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    updated_by = Column(String(36), nullable=True)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "feature_name", name="uq_feature_flags_tenant_feature"),
    )
