"""
Discharge Planning Domain Models

Implements the database models for:
- Admissions and the bedside data readiness is scored from
- Discharge planning tasks and equipment orders
- Discharge barriers (persisted so a resolution survives recomputation)
- The latest readiness prediction per admission
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Integer, Float, Text, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, TimestampMixin, gen_uuid, enum_column


class AdmissionStatus(str, enum.Enum):
    ACTIVE = "active"
    DISCHARGED = "discharged"


class MobilityStatus(str, enum.Enum):
    INDEPENDENT = "independent"
    ASSISTED = "assisted"
    WHEELCHAIR = "wheelchair"
    BEDBOUND = "bedbound"


class DischargeDestination(str, enum.Enum):
    HOME = "home"
    HOME_WITH_SERVICES = "home_with_services"
    SNF = "snf"
    REHAB = "rehab"
    HOSPICE = "hospice"
    OTHER = "other"


class PlanningItemType(str, enum.Enum):
    SNF_PLACEMENT = "snf_placement"
    HOME_HEALTH = "home_health"
    TRANSPORTATION = "transportation"
    MEDICATION_RECONCILIATION = "medication_reconciliation"
    PATIENT_EDUCATION = "patient_education"
    FOLLOW_UP_APPOINTMENT = "follow_up_appointment"


class PlanningItemStatus(str, enum.Enum):
    PENDING = "pending"
    ARRANGED = "arranged"
    COMPLETED = "completed"


class EquipmentOrderStatus(str, enum.Enum):
    ORDERED = "ordered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BarrierCategory(str, enum.Enum):
    MEDICAL = "medical"
    SOCIAL = "social"
    EQUIPMENT = "equipment"
    ADMINISTRATIVE = "administrative"


class BarrierSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionSource(str, enum.Enum):
    MANUAL = "manual"
    AUTO = "auto"


class ConfidenceLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Admission(TenantMixin, TimestampMixin, Base):
    """Inpatient stay"""
    __tablename__ = "admissions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    bed_id = Column(String(36), ForeignKey("beds.id"), nullable=True)
    admission_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    discharge_date = Column(DateTime, nullable=True)
    status = Column(enum_column(AdmissionStatus, "admission_status"), default=AdmissionStatus.ACTIVE, nullable=False, index=True)

    mobility_status = Column(enum_column(MobilityStatus, "mobility_status"), nullable=True)
    pain_level = Column(Integer, nullable=True)  # 0-10
    discharge_destination = Column(enum_column(DischargeDestination, "discharge_destination"), nullable=True)
    monitored_medications = Column(JSON, nullable=True)  # drug names needing levels/titration

    patient = relationship("Patient")
    planning_items = relationship("DischargePlanningItem", back_populates="admission", cascade="all, delete-orphan")
    barriers = relationship("DischargeBarrier", back_populates="admission", cascade="all, delete-orphan")


class VitalSign(TenantMixin, Base):
    __tablename__ = "vital_signs"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    temperature = Column(Float, nullable=True)  # Celsius
    heart_rate = Column(Integer, nullable=True)
    blood_pressure_systolic = Column(Integer, nullable=True)
    blood_pressure_diastolic = Column(Integer, nullable=True)


class DischargePlanningItem(TenantMixin, TimestampMixin, Base):
    """Case management task needed before discharge"""
    __tablename__ = "discharge_planning_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(enum_column(PlanningItemType, "planning_item_type"), nullable=False)
    status = Column(enum_column(PlanningItemStatus, "planning_item_status"), default=PlanningItemStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)

    admission = relationship("Admission", back_populates="planning_items")

    @property
    def is_done(self) -> bool:
        return self.status in (PlanningItemStatus.ARRANGED, PlanningItemStatus.COMPLETED)


class EquipmentOrder(TenantMixin, Base):
    """Durable medical equipment required at home"""
    __tablename__ = "equipment_orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_type = Column(String(100), nullable=False)
    status = Column(enum_column(EquipmentOrderStatus, "equipment_order_status"), default=EquipmentOrderStatus.ORDERED, nullable=False)
    ordered_at = Column(DateTime, default=datetime.utcnow)


class DischargeBarrier(TenantMixin, Base):
    __tablename__ = "discharge_barriers"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id", ondelete="CASCADE"), nullable=False, index=True)
    barrier_key = Column(String(64), nullable=False)
    category = Column(enum_column(BarrierCategory, "barrier_category"), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(enum_column(BarrierSeverity, "barrier_severity"), nullable=False)
    estimated_delay_hours = Column(Integer, nullable=False, default=0)
    identified_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(36), nullable=True)
    resolution_source = Column(enum_column(ResolutionSource, "resolution_source"), nullable=True)

    admission = relationship("Admission", back_populates="barriers")

    __table_args__ = (
        UniqueConstraint("admission_id", "barrier_key", name="uq_discharge_barriers_admission_key"),
    )


class DischargePrediction(TenantMixin, Base):
    """Most recent readiness prediction for an admission"""
    __tablename__ = "discharge_predictions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id", ondelete="CASCADE"), nullable=False, unique=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    medical_readiness_score = Column(Float, nullable=False)
    social_readiness_score = Column(Float, nullable=False)
    overall_readiness_score = Column(Float, nullable=False, index=True)
    confidence_level = Column(enum_column(ConfidenceLevel, "confidence_level"), nullable=False)
    predicted_discharge_date = Column(DateTime, nullable=False)
    recommended_interventions = Column(JSON, nullable=True)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    admission = relationship("Admission")
