from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, gen_uuid, enum_column


class LabOrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LabResultStatus(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    PENDING = "pending"


class LabOrder(TenantMixin, Base):
    __tablename__ = "lab_orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    test_name = Column(String(255), nullable=False)
    ordered_by = Column(String(36), nullable=True)
    status = Column(enum_column(LabOrderStatus, "lab_order_status"), default=LabOrderStatus.PENDING, nullable=False)
    ordered_at = Column(DateTime, default=datetime.utcnow)


class LabResult(TenantMixin, Base):
    __tablename__ = "lab_results"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    order_id = Column(String(36), ForeignKey("lab_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    organism = Column(String(100), nullable=True)  # e.g. MRSA, VRE, INFLUENZA
    result_status = Column(enum_column(LabResultStatus, "lab_result_status"), nullable=False)
    result = Column(Text, nullable=True)
    resulted_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("LabOrder", backref="results")
