from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.domain.patients.models import Patient, PatientDiagnosis


class PatientRepository:
    """Repository for patient data access operations"""

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_by_id(self, patient_id: str) -> Optional[Patient]:
        """Get patient by ID within the current tenant"""
        result = await self.db.execute(
            select(Patient).where(
                Patient.id == patient_id,
                Patient.tenant_id == self.tenant_id
            )
        )
        return result.scalar_one_or_none()

    async def get_active_diagnoses(self, patient_id: str) -> List[PatientDiagnosis]:
        result = await self.db.execute(
            select(PatientDiagnosis).where(
                PatientDiagnosis.tenant_id == self.tenant_id,
                PatientDiagnosis.patient_id == patient_id,
                PatientDiagnosis.is_active.is_(True)
            )
        )
        return list(result.scalars().all())
