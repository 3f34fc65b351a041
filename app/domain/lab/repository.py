from datetime import datetime
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.domain.lab.models import LabOrder, LabResult, LabOrderStatus, LabResultStatus


class LabRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_positive_results_since(self, patient_id: str, since: datetime) -> List[LabResult]:
        result = await self.db.execute(
            select(LabResult).where(
                LabResult.tenant_id == self.tenant_id,
                LabResult.patient_id == patient_id,
                LabResult.result_status == LabResultStatus.POSITIVE,
                LabResult.resulted_at >= since
            ).order_by(LabResult.resulted_at.desc())
        )
        return list(result.scalars().all())

    async def count_pending_orders(self, patient_id: str) -> int:
        result = await self.db.execute(
            select(func.count(LabOrder.id)).where(
                LabOrder.tenant_id == self.tenant_id,
                LabOrder.patient_id == patient_id,
                LabOrder.status == LabOrderStatus.PENDING
            )
        )
        return result.scalar_one()
