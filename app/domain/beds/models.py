"""
Bed Management Domain Models

Implements the database models for:
- Nursing units and their beds
- Bed assignments (at most one active per bed)
- Cleaning turnovers recorded as beds return to service
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Integer, Text, Index, text
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, TimestampMixin, gen_uuid, enum_column
from app.domain.patients.models import IsolationType


class BedStatus(str, enum.Enum):
    """Bed lifecycle status"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class CleaningStatus(str, enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    IN_PROGRESS = "in_progress"


class CleaningPriority(str, enum.Enum):
    STAT = "stat"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class AssignmentStatus(str, enum.Enum):
    ACTIVE = "active"
    DISCHARGED = "discharged"


class CleaningType(str, enum.Enum):
    """Which turnover target applies to a cleaning"""
    STANDARD = "standard"
    ISOLATION = "isolation"
    TERMINAL = "terminal"
    STAT = "stat"


class Unit(TenantMixin, TimestampMixin, Base):
    """Nursing unit (ward) grouping beds"""
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100), nullable=False)
    unit_type = Column(String(50), nullable=True)  # e.g. med_surg, icu, step_down
    specialty = Column(String(100), nullable=True)
    floor = Column(Integer, nullable=True)

    beds = relationship("Bed", back_populates="unit")


class Bed(TenantMixin, TimestampMixin, Base):
    """Physical bed with its capabilities and lifecycle timestamps"""
    __tablename__ = "beds"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    bed_number = Column(String(20), nullable=False)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)

    status = Column(enum_column(BedStatus, "bed_status"), default=BedStatus.AVAILABLE, nullable=False, index=True)
    cleaning_status = Column(enum_column(CleaningStatus, "cleaning_status"), default=CleaningStatus.CLEAN, nullable=False)
    cleaning_priority = Column(enum_column(CleaningPriority, "cleaning_priority"), default=CleaningPriority.NORMAL, nullable=False)
    terminal_clean_required = Column(Boolean, default=False, nullable=False)

    # Capabilities
    isolation_capable = Column(Boolean, default=False, nullable=False)
    isolation_type = Column(enum_column(IsolationType, "bed_isolation_type"), nullable=True)
    has_telemetry = Column(Boolean, default=False, nullable=False)
    has_oxygen = Column(Boolean, default=False, nullable=False)
    is_bariatric = Column(Boolean, default=False, nullable=False)
    distance_to_nurses_station = Column(Integer, nullable=True)  # metres

    current_patient_id = Column(String(36), ForeignKey("patients.id"), nullable=True)

    # Lifecycle timestamps
    occupied_at = Column(DateTime, nullable=True)
    cleaning_started_at = Column(DateTime, nullable=True)
    available_at = Column(DateTime, nullable=True)
    last_cleaned_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    unit = relationship("Unit", back_populates="beds")

    __table_args__ = (
        Index("ix_beds_tenant_unit_number", "tenant_id", "unit_id", "bed_number", unique=True),
    )


class BedAssignment(TenantMixin, Base):
    """Placement of a patient in a bed"""
    __tablename__ = "bed_assignments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    bed_id = Column(String(36), ForeignKey("beds.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    assigned_by = Column(String(36), nullable=True)
    reasoning = Column(Text, nullable=True)
    status = Column(enum_column(AssignmentStatus, "assignment_status"), default=AssignmentStatus.ACTIVE, nullable=False)
    isolation_type = Column(enum_column(IsolationType, "assignment_isolation_type"), nullable=True)
    released_at = Column(DateTime, nullable=True)
    released_by = Column(String(36), nullable=True)

    bed = relationship("Bed")

    __table_args__ = (
        # A second active row for the same bed is a double booking
        Index(
            "uq_bed_assignments_active_bed",
            "bed_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        # Nor may a patient hold two beds at once
        Index(
            "uq_bed_assignments_active_patient",
            "patient_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


class BedTurnover(TenantMixin, Base):
    """One completed cleaning cycle (cleaning -> available)"""
    __tablename__ = "bed_turnovers"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    bed_id = Column(String(36), ForeignKey("beds.id"), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    cleaning_type = Column(enum_column(CleaningType, "cleaning_type"), nullable=False)
    cleaning_started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=False, index=True)
    turnover_minutes = Column(Integer, nullable=False)
    target_minutes = Column(Integer, nullable=False)
    exceeded_target = Column(Boolean, nullable=False)
