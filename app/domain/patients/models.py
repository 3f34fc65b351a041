from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from app.infrastructure.database import Base
from app.infrastructure.mixins import TenantMixin, TimestampMixin, gen_uuid, enum_column
import enum


class IsolationType(str, enum.Enum):
    """Transmission-based precaution categories"""
    CONTACT = "contact"
    DROPLET = "droplet"
    AIRBORNE = "airborne"
    PROTECTIVE = "protective"


class Patient(TenantMixin, TimestampMixin, Base):
    """Inpatient with the clinical flags bed placement depends on"""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    medical_record_number = Column(String(50), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # Free-text history, scanned for isolation keywords
    medical_history = Column(Text)

    # Isolation precautions
    isolation_required = Column(Boolean, default=False, nullable=False)
    isolation_type = Column(enum_column(IsolationType, "isolation_type"), nullable=True)
    isolation_start_date = Column(DateTime, nullable=True)
    isolation_end_date = Column(DateTime, nullable=True)

    current_bed_id = Column(String(36), ForeignKey("beds.id", use_alter=True, name="fk_patients_current_bed"), nullable=True)

    diagnoses = relationship("PatientDiagnosis", back_populates="patient", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    __table_args__ = (
        Index("ix_patients_tenant_mrn", "tenant_id", "medical_record_number", unique=True),
    )


class PatientDiagnosis(TenantMixin, Base):
    """ICD-10 coded diagnosis on the patient's problem list"""
    __tablename__ = "patient_diagnoses"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(16), nullable=False)
    description = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    recorded_at = Column(DateTime, nullable=True)

    patient = relationship("Patient", back_populates="diagnoses")
