import pytest
from datetime import datetime, timedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import TurnoverPolicy
from app.core.exceptions import BusinessLogicError, NotFoundError
from app.domain.beds.models import (
    Bed, BedStatus, BedTurnover, CleaningPriority, CleaningStatus, CleaningType
)
from app.domain.beds.service import BedAssignmentService
from app.domain.beds.status_tracker import (
    BedStatusTracker, can_transition, cleaning_target, summarize_turnovers, turnover_status
)
from app.domain.patients.models import IsolationType
from tests.factories import create_bed, create_patient, create_unit


class FakeAlertTask:
    """Stands in for the Celery task; records what would have been queued."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error

    def delay(self, *args):
        if self.error:
            raise self.error
        self.calls.append(args)


MANUAL_TRANSITIONS = {
    (BedStatus.AVAILABLE, BedStatus.CLEANING),
    (BedStatus.AVAILABLE, BedStatus.MAINTENANCE),
    (BedStatus.AVAILABLE, BedStatus.RESERVED),
    (BedStatus.RESERVED, BedStatus.AVAILABLE),
    (BedStatus.CLEANING, BedStatus.AVAILABLE),
    (BedStatus.CLEANING, BedStatus.MAINTENANCE),
    (BedStatus.MAINTENANCE, BedStatus.AVAILABLE),
}


@pytest.mark.unit
@pytest.mark.housekeeping
@pytest.mark.parametrize("current", list(BedStatus))
@pytest.mark.parametrize("new", list(BedStatus))
def test_transition_table(current, new) -> None:
    expected = current == new or (current, new) in MANUAL_TRANSITIONS

    assert can_transition(current, new) is expected


@pytest.mark.unit
@pytest.mark.housekeeping
class TestTurnoverRules:

    def test_cleaning_targets(self) -> None:
        policy = TurnoverPolicy()

        assert cleaning_target(Bed(cleaning_priority=CleaningPriority.STAT), policy) == (CleaningType.STAT, 30)
        assert cleaning_target(
            Bed(cleaning_priority=CleaningPriority.NORMAL, terminal_clean_required=True), policy
        ) == (CleaningType.TERMINAL, 120)
        assert cleaning_target(
            Bed(cleaning_priority=CleaningPriority.NORMAL, isolation_capable=True), policy
        ) == (CleaningType.ISOLATION, 90)
        assert cleaning_target(Bed(cleaning_priority=CleaningPriority.NORMAL), policy) == (CleaningType.STANDARD, 60)

    def test_turnover_status_bands(self) -> None:
        assert turnover_status(30, 60) == "on_track"
        assert turnover_status(50, 60) == "warning"
        assert turnover_status(70, 60) == "overdue"
        assert turnover_status(100, 60) == "critical"

    def test_summarize_no_turnovers(self) -> None:
        summary = summarize_turnovers([])

        assert summary["total_turnovers"] == 0
        assert summary["avg_turnover_time"] is None
        assert summary["median_turnover_time"] is None
        assert summary["exceeded_target_percentage"] == 0.0


@pytest.mark.integration
@pytest.mark.housekeeping
class TestBedStatusTracker:
    """Bed lifecycle, cleaning queue and turnover reporting."""

    async def test_beds_only_become_occupied_through_assignment(self, db_session: AsyncSession, context) -> None:
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "1")

        with pytest.raises(BusinessLogicError) as exc_info:
            await BedStatusTracker(db_session, context).update_bed_status(bed.id, BedStatus.OCCUPIED)

        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"

    async def test_occupied_bed_cannot_be_freed_by_status_change(self, db_session: AsyncSession, context) -> None:
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "1", status=BedStatus.OCCUPIED)

        with pytest.raises(BusinessLogicError):
            await BedStatusTracker(db_session, context).update_bed_status(bed.id, BedStatus.AVAILABLE)

    @pytest.mark.parametrize("current,new", [
        (BedStatus.RESERVED, BedStatus.MAINTENANCE),
        (BedStatus.MAINTENANCE, BedStatus.CLEANING),
        (BedStatus.RESERVED, BedStatus.CLEANING),
    ])
    async def test_side_states_only_return_to_available(
        self, db_session: AsyncSession, context, current, new
    ) -> None:
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "1", status=current)

        with pytest.raises(BusinessLogicError) as exc_info:
            await BedStatusTracker(db_session, context).update_bed_status(bed.id, new)

        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"
        assert exc_info.value.status_code == 400
        await db_session.refresh(bed)
        assert bed.status == current

    async def test_update_unknown_bed(self, db_session: AsyncSession, context) -> None:
        with pytest.raises(NotFoundError):
            await BedStatusTracker(db_session, context).update_bed_status("missing", BedStatus.CLEANING)

    async def test_cleaning_to_available_records_turnover(self, db_session: AsyncSession, context) -> None:
        started = datetime.utcnow() - timedelta(hours=2)
        unit = await create_unit(db_session)
        bed = await create_bed(
            db_session, unit, "1",
            status=BedStatus.CLEANING,
            cleaning_status=CleaningStatus.IN_PROGRESS,
            cleaning_started_at=started
        )
        tracker = BedStatusTracker(db_session, context)

        updated = await tracker.update_bed_status(
            bed.id, BedStatus.AVAILABLE, notes="Ready", now=started + timedelta(minutes=75)
        )

        assert updated.status == BedStatus.AVAILABLE
        assert updated.cleaning_status == CleaningStatus.CLEAN
        assert updated.last_cleaned_at == started + timedelta(minutes=75)
        assert updated.notes == "Ready"

        result = await db_session.execute(select(BedTurnover).where(BedTurnover.bed_id == bed.id))
        turnover = result.scalar_one()
        assert turnover.turnover_minutes == 75
        assert turnover.target_minutes == 60
        assert turnover.cleaning_type == CleaningType.STANDARD
        assert turnover.exceeded_target is True

    async def test_cleaning_progress_update(self, db_session: AsyncSession, context) -> None:
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "1")
        tracker = BedStatusTracker(db_session, context)

        await tracker.update_bed_status(bed.id, BedStatus.CLEANING)
        updated = await tracker.update_bed_status(bed.id, BedStatus.CLEANING, cleaning_status=CleaningStatus.IN_PROGRESS)

        assert updated.status == BedStatus.CLEANING
        assert updated.cleaning_status == CleaningStatus.IN_PROGRESS
        assert updated.cleaning_started_at is not None

    async def test_isolation_discharge_needs_terminal_clean(self, db_session: AsyncSession, context) -> None:
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "7", isolation_capable=True, isolation_type=IsolationType.CONTACT)
        patient = await create_patient(db_session, isolation_type=IsolationType.CONTACT)
        assignments = BedAssignmentService(db_session, context)
        tracker = BedStatusTracker(db_session, context)

        assignment = await assignments.assign_bed(patient.id, bed.id)
        await assignments.release_bed(assignment.id)
        await db_session.refresh(bed)
        done_at = bed.cleaning_started_at + timedelta(minutes=100)
        await tracker.update_bed_status(bed.id, BedStatus.AVAILABLE, now=done_at)

        result = await db_session.execute(select(BedTurnover).where(BedTurnover.bed_id == bed.id))
        turnover = result.scalar_one()
        assert turnover.cleaning_type == CleaningType.TERMINAL
        assert turnover.target_minutes == 120
        assert turnover.exceeded_target is False
        assert bed.terminal_clean_required is False

    async def test_bed_status_summary(self, db_session: AsyncSession, context) -> None:
        now = datetime.utcnow()
        west = await create_unit(db_session, "4 West")
        icu = await create_unit(db_session, "ICU")
        await create_bed(db_session, west, "1")
        await create_bed(db_session, west, "2", status=BedStatus.OCCUPIED, occupied_at=now - timedelta(hours=5))
        await create_bed(db_session, west, "3", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.DIRTY,
                         cleaning_started_at=now - timedelta(minutes=70))
        await create_bed(db_session, icu, "A", status=BedStatus.MAINTENANCE)

        tracker = BedStatusTracker(db_session, context)
        status_view = await tracker.get_bed_status(now=now)

        summary = status_view["summary"]
        assert summary["total"] == 4
        assert summary["available"] == 1
        assert summary["occupied"] == 1
        assert summary["cleaning"] == 1
        assert summary["maintenance"] == 1
        assert summary["utilization_rate"] == 75.0
        assert summary["cleaning_overdue"] == 1

        cleaning_row = next(b for b in status_view["beds"] if b["bed_number"] == "3")
        assert cleaning_row["turnover_status"] == "overdue"
        assert cleaning_row["time_in_current_status"] == 70.0
        occupied_row = next(b for b in status_view["beds"] if b["bed_number"] == "2")
        assert occupied_row["time_in_current_status"] == 300.0

        units = {u["unit_name"]: u for u in status_view["beds_by_unit"]}
        assert units["4 West"]["total"] == 3
        assert units["4 West"]["utilization_rate"] == 66.67
        assert units["ICU"]["utilization_rate"] == 100.0

        west_view = await tracker.get_bed_status(unit_id=west.id, now=now)
        assert west_view["summary"]["total"] == 3

        with pytest.raises(NotFoundError):
            await tracker.get_bed_status(unit_id="missing")

    async def test_cleaning_priority_queue(self, db_session: AsyncSession, context) -> None:
        now = datetime.utcnow()
        unit = await create_unit(db_session)
        await create_bed(db_session, unit, "1", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.DIRTY,
                         cleaning_started_at=now - timedelta(minutes=30))
        await create_bed(db_session, unit, "2", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.DIRTY,
                         cleaning_started_at=now - timedelta(minutes=30), isolation_capable=True)
        await create_bed(db_session, unit, "3", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.IN_PROGRESS,
                         cleaning_started_at=now - timedelta(minutes=10), cleaning_priority=CleaningPriority.STAT)
        await create_bed(db_session, unit, "4", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.DIRTY,
                         cleaning_started_at=now - timedelta(minutes=90))
        await create_bed(db_session, unit, "5", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.CLEAN,
                         cleaning_started_at=now - timedelta(minutes=90))
        await create_bed(db_session, unit, "6")

        queue = await BedStatusTracker(db_session, context).get_cleaning_priority_queue(now=now)

        assert [item["bed_number"] for item in queue["beds"]] == ["4", "3", "2", "1"]
        assert [item["priority_score"] for item in queue["beds"]] == [200.0, 133.3, 113.3, 100.0]
        assert queue["count"] == 4
        assert queue["stat_count"] == 1
        assert queue["overdue_count"] == 1

        overdue = queue["beds"][0]
        assert overdue["is_overdue"] is True
        assert overdue["time_remaining"] == -30.0
        assert overdue["recommended_action"] == "Expedite cleaning - target time exceeded"

    async def test_alert_housekeeping(self, db_session: AsyncSession, context, monkeypatch) -> None:
        fake_task = FakeAlertTask()
        monkeypatch.setattr("app.domain.beds.status_tracker.send_housekeeping_alert", fake_task)
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "9", status=BedStatus.CLEANING, cleaning_status=CleaningStatus.DIRTY)

        alert = await BedStatusTracker(db_session, context).alert_housekeeping(
            bed.id, CleaningPriority.STAT, "ED boarding patient waiting"
        )

        assert alert == {"bed_id": bed.id, "priority": "stat", "notification_queued": True}
        assert fake_task.calls == [
            (context.tenant_id, bed.id, "9", "4 West", "stat", "ED boarding patient waiting")
        ]
        await db_session.refresh(bed)
        assert bed.cleaning_priority == CleaningPriority.STAT

    async def test_alert_survives_broker_outage(self, db_session: AsyncSession, context, monkeypatch) -> None:
        monkeypatch.setattr(
            "app.domain.beds.status_tracker.send_housekeeping_alert",
            FakeAlertTask(error=ConnectionError("broker unreachable"))
        )
        unit = await create_unit(db_session)
        bed = await create_bed(db_session, unit, "9")

        alert = await BedStatusTracker(db_session, context).alert_housekeeping(
            bed.id, CleaningPriority.HIGH, "Spill"
        )

        assert alert["notification_queued"] is False
        await db_session.refresh(bed)
        assert bed.cleaning_priority == CleaningPriority.HIGH

    async def test_turnover_metrics(self, db_session: AsyncSession, context) -> None:
        now = datetime.utcnow()
        west = await create_unit(db_session, "4 West")
        icu = await create_unit(db_session, "ICU")
        tracker = BedStatusTracker(db_session, context)

        for unit, number, minutes in ((west, "1", 40), (west, "2", 80), (icu, "A", 60)):
            started = now - timedelta(hours=3)
            bed = await create_bed(db_session, unit, number, status=BedStatus.CLEANING,
                                   cleaning_status=CleaningStatus.DIRTY, cleaning_started_at=started)
            await tracker.update_bed_status(bed.id, BedStatus.AVAILABLE, now=started + timedelta(minutes=minutes))

        metrics = await tracker.get_turnover_metrics(now - timedelta(days=1), now)

        overall = metrics["overall"]
        assert overall["total_turnovers"] == 3
        assert overall["avg_turnover_time"] == 60.0
        assert overall["min_turnover_time"] == 40
        assert overall["max_turnover_time"] == 80
        assert overall["median_turnover_time"] == 60
        assert overall["exceeded_target_count"] == 1
        assert overall["exceeded_target_percentage"] == 33.33

        by_unit = {u["unit_name"]: u for u in metrics["by_unit"]}
        assert by_unit["4 West"]["total_turnovers"] == 2
        assert by_unit["ICU"]["exceeded_target_count"] == 0

    async def test_turnover_metrics_empty_period(self, db_session: AsyncSession, context) -> None:
        metrics = await BedStatusTracker(db_session, context).get_turnover_metrics()

        assert metrics["overall"]["total_turnovers"] == 0
        assert metrics["overall"]["avg_turnover_time"] is None
        assert metrics["overall"]["exceeded_target_percentage"] == 0.0
        assert metrics["by_unit"] == []

    async def test_turnover_metrics_rejects_inverted_range(self, db_session: AsyncSession, context) -> None:
        now = datetime.utcnow()

        with pytest.raises(BusinessLogicError) as exc_info:
            await BedStatusTracker(db_session, context).get_turnover_metrics(now, now - timedelta(days=1))

        assert exc_info.value.error_code == "INVALID_DATE_RANGE"
