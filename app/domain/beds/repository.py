"""
Bed Management Repository Layer

Provides tenant-scoped data access for units, beds, assignments and turnovers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from app.domain.beds.models import (
    Unit, Bed, BedStatus, BedAssignment, AssignmentStatus, BedTurnover
)
from app.domain.patients.models import IsolationType


@dataclass(frozen=True)
class BedFilter:
    """Recognised filters for bed listings"""
    unit_id: Optional[str] = None
    isolation_type: Optional[IsolationType] = None
    telemetry: Optional[bool] = None
    oxygen: Optional[bool] = None
    bariatric: Optional[bool] = None


class UnitRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_by_id(self, unit_id: str) -> Optional[Unit]:
        result = await self.db.execute(
            select(Unit).where(Unit.id == unit_id, Unit.tenant_id == self.tenant_id)
        )
        return result.scalar_one_or_none()


class BedRepository:
    """Repository for bed data access operations"""

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        return select(Bed).options(selectinload(Bed.unit)).where(Bed.tenant_id == self.tenant_id)

    async def get_by_id(self, bed_id: str) -> Optional[Bed]:
        """Get bed by ID within the current tenant"""
        result = await self.db.execute(self._base_query().where(Bed.id == bed_id))
        return result.scalar_one_or_none()

    async def list_beds(self, unit_id: Optional[str] = None, status: Optional[BedStatus] = None) -> List[Bed]:
        query = self._base_query()
        if unit_id:
            query = query.where(Bed.unit_id == unit_id)
        if status:
            query = query.where(Bed.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_available(self, filters: Optional[BedFilter] = None) -> List[Bed]:
        """Available beds narrowed by ``filters``"""
        filters = filters or BedFilter()
        query = self._base_query().where(Bed.status == BedStatus.AVAILABLE)

        if filters.unit_id:
            query = query.where(Bed.unit_id == filters.unit_id)
        if filters.isolation_type is not None:
            query = query.where(
                Bed.isolation_capable.is_(True),
                Bed.isolation_type == filters.isolation_type
            )
        if filters.telemetry is not None:
            query = query.where(Bed.has_telemetry.is_(filters.telemetry))
        if filters.oxygen is not None:
            query = query.where(Bed.has_oxygen.is_(filters.oxygen))
        if filters.bariatric is not None:
            query = query.where(Bed.is_bariatric.is_(filters.bariatric))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def claim_for_patient(self, bed_id: str, patient_id: str, occupied_at: datetime) -> bool:
        """Atomically move an available bed to occupied.

        Returns False when another request got there first.
        """
        result = await self.db.execute(
            update(Bed)
            .where(
                Bed.id == bed_id,
                Bed.tenant_id == self.tenant_id,
                Bed.status == BedStatus.AVAILABLE
            )
            .values(
                status=BedStatus.OCCUPIED,
                current_patient_id=patient_id,
                occupied_at=occupied_at,
                updated_at=occupied_at
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class AssignmentRepository:
    """Repository for bed assignment data access operations"""

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def get_by_id(self, assignment_id: str) -> Optional[BedAssignment]:
        result = await self.db.execute(
            select(BedAssignment).where(
                BedAssignment.id == assignment_id,
                BedAssignment.tenant_id == self.tenant_id
            )
        )
        return result.scalar_one_or_none()

    async def get_active_for_bed(self, bed_id: str) -> Optional[BedAssignment]:
        result = await self.db.execute(
            select(BedAssignment).where(
                BedAssignment.tenant_id == self.tenant_id,
                BedAssignment.bed_id == bed_id,
                BedAssignment.status == AssignmentStatus.ACTIVE
            )
        )
        return result.scalars().first()

    async def get_active_for_patient(self, patient_id: str) -> Optional[BedAssignment]:
        result = await self.db.execute(
            select(BedAssignment).where(
                BedAssignment.tenant_id == self.tenant_id,
                BedAssignment.patient_id == patient_id,
                BedAssignment.status == AssignmentStatus.ACTIVE
            )
        )
        return result.scalars().first()

    def add(self, assignment_data: dict) -> BedAssignment:
        assignment = BedAssignment(tenant_id=self.tenant_id, **assignment_data)
        self.db.add(assignment)
        return assignment


class TurnoverRepository:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    def add(self, turnover_data: dict) -> BedTurnover:
        turnover = BedTurnover(tenant_id=self.tenant_id, **turnover_data)
        self.db.add(turnover)
        return turnover

    async def list_completed_between(self, start: datetime, end: datetime) -> List[BedTurnover]:
        result = await self.db.execute(
            select(BedTurnover).where(
                BedTurnover.tenant_id == self.tenant_id,
                BedTurnover.completed_at >= start,
                BedTurnover.completed_at <= end
            ).order_by(BedTurnover.completed_at)
        )
        return list(result.scalars().all())

    async def unit_names(self, unit_ids: List[str]) -> dict:
        if not unit_ids:
            return {}
        result = await self.db.execute(
            select(Unit.id, Unit.name).where(Unit.tenant_id == self.tenant_id, Unit.id.in_(unit_ids))
        )
        return {row.id: row.name for row in result.all()}
