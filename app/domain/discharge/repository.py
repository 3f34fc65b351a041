"""
Discharge Planning Repository Layer

Tenant-scoped data access for admissions and the data readiness is scored from.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.domain.discharge.models import (
    Admission, AdmissionStatus, VitalSign, DischargePlanningItem, PlanningItemStatus,
    PlanningItemType, EquipmentOrder, EquipmentOrderStatus, DischargeBarrier, DischargePrediction
)
from app.domain.patients.models import Patient


class AdmissionRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_by_id(self, admission_id: str) -> Optional[Admission]:
        result = await self.db.execute(
            select(Admission).where(
                Admission.id == admission_id,
                Admission.tenant_id == self.tenant_id
            )
        )
        return result.scalar_one_or_none()

    async def get_latest_vitals(self, patient_id: str) -> Optional[VitalSign]:
        result = await self.db.execute(
            select(VitalSign).where(
                VitalSign.tenant_id == self.tenant_id,
                VitalSign.patient_id == patient_id
            ).order_by(VitalSign.recorded_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_completed_planning_counts(self, admission_id: str) -> Tuple[Dict[PlanningItemType, int], int]:
        """Done items per planning type, and the total number of items"""
        result = await self.db.execute(
            select(DischargePlanningItem.item_type, DischargePlanningItem.status).where(
                DischargePlanningItem.tenant_id == self.tenant_id,
                DischargePlanningItem.admission_id == admission_id
            )
        )
        rows = result.all()
        counts: Dict[PlanningItemType, int] = {}
        for item_type, item_status in rows:
            if item_status in (PlanningItemStatus.ARRANGED, PlanningItemStatus.COMPLETED):
                counts[item_type] = counts.get(item_type, 0) + 1
        return counts, len(rows)

    async def count_pending_equipment(self, admission_id: str) -> int:
        result = await self.db.execute(
            select(func.count(EquipmentOrder.id)).where(
                EquipmentOrder.tenant_id == self.tenant_id,
                EquipmentOrder.admission_id == admission_id,
                EquipmentOrder.status == EquipmentOrderStatus.ORDERED
            )
        )
        return result.scalar_one()

    async def list_discharged_between(self, start: datetime, end: datetime) -> List[Admission]:
        result = await self.db.execute(
            select(Admission).where(
                Admission.tenant_id == self.tenant_id,
                Admission.status == AdmissionStatus.DISCHARGED,
                Admission.discharge_date >= start,
                Admission.discharge_date <= end
            )
        )
        return list(result.scalars().all())


class BarrierRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def list_for_admission(self, admission_id: str) -> List[DischargeBarrier]:
        result = await self.db.execute(
            select(DischargeBarrier).where(
                DischargeBarrier.tenant_id == self.tenant_id,
                DischargeBarrier.admission_id == admission_id
            ).order_by(DischargeBarrier.identified_at, DischargeBarrier.barrier_key)
        )
        return list(result.scalars().all())

    async def list_for_admissions(self, admission_ids: List[str]) -> List[DischargeBarrier]:
        if not admission_ids:
            return []
        result = await self.db.execute(
            select(DischargeBarrier).where(
                DischargeBarrier.tenant_id == self.tenant_id,
                DischargeBarrier.admission_id.in_(admission_ids)
            )
        )
        return list(result.scalars().all())

    async def get(self, admission_id: str, barrier_id: str) -> Optional[DischargeBarrier]:
        result = await self.db.execute(
            select(DischargeBarrier).where(
                DischargeBarrier.tenant_id == self.tenant_id,
                DischargeBarrier.admission_id == admission_id,
                DischargeBarrier.id == barrier_id
            )
        )
        return result.scalar_one_or_none()

    async def count_open_by_admission(self, admission_ids: List[str]) -> Dict[str, int]:
        if not admission_ids:
            return {}
        result = await self.db.execute(
            select(DischargeBarrier.admission_id, func.count(DischargeBarrier.id)).where(
                DischargeBarrier.tenant_id == self.tenant_id,
                DischargeBarrier.admission_id.in_(admission_ids),
                DischargeBarrier.resolved.is_(False)
            ).group_by(DischargeBarrier.admission_id)
        )
        return {admission_id: count for admission_id, count in result.all()}

    def add(self, barrier_data: dict) -> DischargeBarrier:
        barrier = DischargeBarrier(tenant_id=self.tenant_id, **barrier_data)
        self.db.add(barrier)
        return barrier


class PredictionRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_for_admission(self, admission_id: str) -> Optional[DischargePrediction]:
        result = await self.db.execute(
            select(DischargePrediction).where(
                DischargePrediction.tenant_id == self.tenant_id,
                DischargePrediction.admission_id == admission_id
            )
        )
        return result.scalar_one_or_none()

    async def get_for_admissions(self, admission_ids: List[str]) -> Dict[str, DischargePrediction]:
        if not admission_ids:
            return {}
        result = await self.db.execute(
            select(DischargePrediction).where(
                DischargePrediction.tenant_id == self.tenant_id,
                DischargePrediction.admission_id.in_(admission_ids)
            )
        )
        return {p.admission_id: p for p in result.scalars().all()}

    async def list_ready(self, min_score: float) -> List[Tuple[DischargePrediction, Admission, Patient]]:
        """Latest predictions at or above ``min_score`` for admissions still in house"""
        result = await self.db.execute(
            select(DischargePrediction, Admission, Patient)
            .join(Admission, Admission.id == DischargePrediction.admission_id)
            .join(Patient, Patient.id == Admission.patient_id)
            .where(
                DischargePrediction.tenant_id == self.tenant_id,
                Admission.tenant_id == self.tenant_id,
                Admission.status == AdmissionStatus.ACTIVE,
                DischargePrediction.overall_readiness_score >= min_score
            )
            .order_by(
                DischargePrediction.overall_readiness_score.desc(),
                DischargePrediction.predicted_discharge_date
            )
        )
        return [tuple(row) for row in result.all()]
