"""
Bed Status Tracker

Bed lifecycle, housekeeping queue and turnover reporting.

Lifecycle: available -> occupied -> cleaning -> available, with maintenance
and reserved as side states. Beds only become occupied through an
assignment and only leave occupied through a release.
"""

import statistics
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import TurnoverPolicy, settings
from app.core.exceptions import BusinessLogicError, NotFoundError
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditRepository
from app.domain.beds.isolation import utilization_rate
from app.domain.beds.models import (
    Bed, BedStatus, CleaningPriority, CleaningStatus, CleaningType, BedTurnover
)
from app.domain.beds.repository import BedRepository, TurnoverRepository, UnitRepository
from app.domain.beds.scoring import natural_key
from app.workers.tasks import send_housekeeping_alert


ALLOWED_TRANSITIONS = {
    BedStatus.AVAILABLE: {BedStatus.CLEANING, BedStatus.MAINTENANCE, BedStatus.RESERVED},
    BedStatus.RESERVED: {BedStatus.AVAILABLE},
    BedStatus.CLEANING: {BedStatus.AVAILABLE, BedStatus.MAINTENANCE},
    BedStatus.MAINTENANCE: {BedStatus.AVAILABLE},
    BedStatus.OCCUPIED: set(),
}


def can_transition(current: BedStatus, new: BedStatus) -> bool:
    return current == new or new in ALLOWED_TRANSITIONS.get(current, set())


def cleaning_target(bed: Bed, policy: TurnoverPolicy) -> Tuple[CleaningType, int]:
    """Which cleaning the bed needs and its target duration in minutes"""
    if bed.cleaning_priority == CleaningPriority.STAT:
        return CleaningType.STAT, policy.stat_minutes
    if bed.terminal_clean_required:
        return CleaningType.TERMINAL, policy.terminal_minutes
    if bed.isolation_capable:
        return CleaningType.ISOLATION, policy.isolation_minutes
    return CleaningType.STANDARD, policy.standard_minutes


def base_priority(bed: Bed, policy: TurnoverPolicy) -> int:
    if bed.cleaning_priority == CleaningPriority.STAT:
        return policy.stat_priority
    if bed.cleaning_priority == CleaningPriority.HIGH:
        return policy.high_priority
    if bed.isolation_capable or bed.terminal_clean_required:
        return policy.isolation_priority
    if bed.has_telemetry:
        return policy.telemetry_priority
    return policy.standard_priority


def turnover_status(wait_minutes: float, target_minutes: int) -> str:
    ratio = wait_minutes / target_minutes if target_minutes else 0
    if ratio > 1.5:
        return "critical"
    if ratio > 1:
        return "overdue"
    if ratio > 0.8:
        return "warning"
    return "on_track"


def recommended_action(wait_minutes: float, target_minutes: int) -> str:
    ratio = wait_minutes / target_minutes if target_minutes else 0
    if ratio > 1.5:
        return "Immediate attention required - significantly overdue"
    if ratio > 1:
        return "Expedite cleaning - target time exceeded"
    if ratio > 0.8:
        return "Monitor closely - approaching target time"
    return "Continue normal cleaning process"


def status_since(bed: Bed) -> Optional[datetime]:
    if bed.status == BedStatus.OCCUPIED:
        return bed.occupied_at
    if bed.status == BedStatus.CLEANING:
        return bed.cleaning_started_at
    if bed.status == BedStatus.AVAILABLE:
        return bed.available_at or bed.last_cleaned_at or bed.updated_at
    return bed.updated_at


def minutes_between(start: Optional[datetime], end: datetime) -> Optional[float]:
    if start is None:
        return None
    return round((end - start).total_seconds() / 60, 1)


def summarize_turnovers(turnovers: List[BedTurnover]) -> Dict[str, Any]:
    """Aggregate turnover durations; empty input gives null averages and 0%"""
    total = len(turnovers)
    durations = [t.turnover_minutes for t in turnovers]
    exceeded = sum(1 for t in turnovers if t.turnover_minutes > t.target_minutes)
    return {
        "total_turnovers": total,
        "avg_turnover_time": round(statistics.mean(durations), 1) if durations else None,
        "min_turnover_time": min(durations) if durations else None,
        "max_turnover_time": max(durations) if durations else None,
        "median_turnover_time": statistics.median(durations) if durations else None,
        "exceeded_target_count": exceeded,
        "exceeded_target_percentage": round(exceeded / total * 100, 2) if total else 0.0,
    }


class BedStatusTracker:

    def __init__(self, db: AsyncSession, context: RequestContext, policy: Optional[TurnoverPolicy] = None):
        self.db = db
        self.context = context
        self.policy = policy or settings.TURNOVER
        self.bed_repo = BedRepository(db, context.tenant_id)
        self.unit_repo = UnitRepository(db, context.tenant_id)
        self.turnover_repo = TurnoverRepository(db, context.tenant_id)
        self.audit = AuditRepository(db, context.tenant_id)

    async def _get_bed(self, bed_id: str) -> Bed:
        bed = await self.bed_repo.get_by_id(bed_id)
        if not bed:
            raise NotFoundError(message="Bed not found", details={"bed_id": bed_id})
        return bed

    def _bed_row(self, bed: Bed, now: datetime) -> Dict[str, Any]:
        minutes = minutes_between(status_since(bed), now)
        row = {
            "id": bed.id,
            "bed_number": bed.bed_number,
            "unit_id": bed.unit_id,
            "unit_name": bed.unit.name if bed.unit else None,
            "status": bed.status.value,
            "cleaning_status": bed.cleaning_status.value,
            "cleaning_priority": bed.cleaning_priority.value,
            "isolation_capable": bed.isolation_capable,
            "isolation_type": bed.isolation_type.value if bed.isolation_type else None,
            "current_patient_id": bed.current_patient_id,
            "time_in_current_status": minutes,
            "turnover_status": "N/A",
            "estimated_available_time": None,
        }
        if bed.status == BedStatus.CLEANING and bed.cleaning_started_at:
            _, target = cleaning_target(bed, self.policy)
            row["turnover_status"] = turnover_status(minutes or 0, target)
            row["estimated_available_time"] = bed.cleaning_started_at + timedelta(minutes=target)
        return row

    async def get_bed_status(self, unit_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        if unit_id and not await self.unit_repo.get_by_id(unit_id):
            raise NotFoundError(message="Unit not found", details={"unit_id": unit_id})

        beds = await self.bed_repo.list_beds(unit_id=unit_id)
        beds.sort(key=lambda b: ((b.unit.name if b.unit else ""), natural_key(b.bed_number)))
        rows = [self._bed_row(bed, now) for bed in beds]

        counts = {status.value: 0 for status in BedStatus}
        units: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            counts[row["status"]] += 1
            unit = units.setdefault(row["unit_id"], {
                "unit_id": row["unit_id"],
                "unit_name": row["unit_name"],
                "total": 0,
                **{status.value: 0 for status in BedStatus},
            })
            unit["total"] += 1
            unit[row["status"]] += 1

        beds_by_unit = []
        for unit in units.values():
            unit["utilization_rate"] = utilization_rate(unit["available"], unit["total"])
            beds_by_unit.append(unit)

        total = len(rows)
        summary = {
            "total": total,
            **counts,
            "utilization_rate": utilization_rate(counts["available"], total),
            "cleaning_overdue": sum(1 for r in rows if r["turnover_status"] in ("overdue", "critical")),
        }

        return {"beds": rows, "beds_by_unit": beds_by_unit, "summary": summary, "timestamp": now}

    async def update_bed_status(
        self,
        bed_id: str,
        new_status: BedStatus,
        cleaning_status: Optional[CleaningStatus] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Bed:
        now = now or datetime.utcnow()
        bed = await self._get_bed(bed_id)
        previous = bed.status

        if new_status == BedStatus.OCCUPIED and previous != BedStatus.OCCUPIED:
            raise BusinessLogicError(
                message="Beds become occupied only through a bed assignment",
                details={"bed_id": bed_id, "from": previous.value, "to": new_status.value},
                error_code="INVALID_STATUS_TRANSITION"
            )
        if not can_transition(previous, new_status):
            raise BusinessLogicError(
                message=f"Cannot change bed status from {previous.value} to {new_status.value}",
                details={"bed_id": bed_id, "from": previous.value, "to": new_status.value},
                error_code="INVALID_STATUS_TRANSITION"
            )

        turnover = None
        if new_status != previous:
            if new_status == BedStatus.CLEANING:
                bed.cleaning_started_at = now
                bed.cleaning_status = cleaning_status or CleaningStatus.DIRTY
            elif new_status == BedStatus.AVAILABLE:
                if previous == BedStatus.CLEANING:
                    turnover = self._record_turnover(bed, now)
                    bed.last_cleaned_at = now
                    bed.cleaning_status = CleaningStatus.CLEAN
                    bed.cleaning_priority = CleaningPriority.NORMAL
                    bed.terminal_clean_required = False
                bed.available_at = now
            bed.status = new_status

        if cleaning_status is not None and not (new_status == BedStatus.AVAILABLE and previous == BedStatus.CLEANING):
            bed.cleaning_status = cleaning_status
        if notes is not None:
            bed.notes = notes
        bed.updated_at = now

        self.audit.record(
            AuditAction.BED_STATUS_CHANGED,
            AuditResource.BED,
            bed.id,
            self.context.user_id,
            {
                "from": previous.value,
                "to": new_status.value,
                "cleaning_status": bed.cleaning_status.value,
                "notes": notes,
                "turnover_minutes": turnover.turnover_minutes if turnover else None,
            }
        )
        await self.db.commit()
        logger.info(f"Bed {bed.bed_number} status {previous.value} -> {new_status.value}")
        return bed

    def _record_turnover(self, bed: Bed, now: datetime) -> Optional[BedTurnover]:
        if bed.cleaning_started_at is None:
            return None
        cleaning_type, target = cleaning_target(bed, self.policy)
        minutes = int(round((now - bed.cleaning_started_at).total_seconds() / 60))
        return self.turnover_repo.add({
            "bed_id": bed.id,
            "unit_id": bed.unit_id,
            "cleaning_type": cleaning_type,
            "cleaning_started_at": bed.cleaning_started_at,
            "completed_at": now,
            "turnover_minutes": minutes,
            "target_minutes": target,
            "exceeded_target": minutes > target,
        })

    async def get_cleaning_priority_queue(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        beds = await self.bed_repo.list_beds(status=BedStatus.CLEANING)

        queue = []
        for bed in beds:
            if bed.cleaning_status not in (CleaningStatus.DIRTY, CleaningStatus.IN_PROGRESS):
                continue
            cleaning_type, target = cleaning_target(bed, self.policy)
            wait = minutes_between(bed.cleaning_started_at, now) or 0.0
            queue.append({
                "bed_id": bed.id,
                "bed_number": bed.bed_number,
                "unit_id": bed.unit_id,
                "unit_name": bed.unit.name if bed.unit else None,
                "cleaning_status": bed.cleaning_status.value,
                "cleaning_priority": bed.cleaning_priority.value,
                "cleaning_type": cleaning_type.value,
                "target_minutes": target,
                "wait_minutes": wait,
                "time_remaining": round(target - wait, 1),
                "is_overdue": wait > target,
                "priority_score": round(base_priority(bed, self.policy) + wait / target * 100, 1),
                "recommended_action": recommended_action(wait, target),
            })

        queue.sort(key=lambda item: (-item["priority_score"], natural_key(item["bed_number"])))
        return {
            "beds": queue,
            "count": len(queue),
            "stat_count": sum(1 for item in queue if item["cleaning_priority"] == CleaningPriority.STAT.value),
            "overdue_count": sum(1 for item in queue if item["is_overdue"]),
        }

    async def alert_housekeeping(self, bed_id: str, priority: CleaningPriority, reason: str) -> Dict[str, Any]:
        bed = await self._get_bed(bed_id)
        bed.cleaning_priority = priority

        self.audit.record(
            AuditAction.HOUSEKEEPING_ALERT,
            AuditResource.BED,
            bed.id,
            self.context.user_id,
            {"priority": priority.value, "reason": reason}
        )
        await self.db.commit()

        queued = True
        try:
            send_housekeeping_alert.delay(
                self.context.tenant_id,
                bed.id,
                bed.bed_number,
                bed.unit.name if bed.unit else None,
                priority.value,
                reason
            )
        except Exception as e:
            # The priority change is already committed; the page can be resent
            logger.error(f"Could not queue housekeeping alert for bed {bed.id}: {e}")
            queued = False

        logger.info(f"Housekeeping alerted for bed {bed.bed_number} ({priority.value}): {reason}")
        return {"bed_id": bed.id, "priority": priority.value, "notification_queued": queued}

    async def get_turnover_metrics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        end_date = end_date or datetime.utcnow()
        start_date = start_date or end_date - timedelta(days=self.policy.default_window_days)
        if start_date > end_date:
            raise BusinessLogicError(message="start_date must be before end_date", error_code="INVALID_DATE_RANGE")

        turnovers = await self.turnover_repo.list_completed_between(start_date, end_date)

        grouped: Dict[str, List[BedTurnover]] = {}
        for turnover in turnovers:
            grouped.setdefault(turnover.unit_id, []).append(turnover)
        names = await self.turnover_repo.unit_names(list(grouped))

        by_unit = [
            {"unit_id": unit_id, "unit_name": names.get(unit_id), **summarize_turnovers(items)}
            for unit_id, items in grouped.items()
        ]
        by_unit.sort(key=lambda u: u["unit_name"] or "")

        return {
            "overall": summarize_turnovers(turnovers),
            "by_unit": by_unit,
            "period": {"start_date": start_date, "end_date": end_date},
        }
