import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DischargePolicy
from app.core.exceptions import BusinessLogicError, NotFoundError
from app.domain.discharge.models import (
    AdmissionStatus, BarrierCategory, BarrierSeverity, ConfidenceLevel, DischargeBarrier,
    DischargeDestination, DischargePlanningItem, EquipmentOrder, MobilityStatus,
    PlanningItemStatus, PlanningItemType, ResolutionSource, VitalSign
)
from app.domain.discharge.readiness import (
    BarrierState, ReadinessInputs, VitalsSnapshot, confidence_level, data_completeness,
    detect_barriers, intervention_for, predict_discharge_date, score_readiness
)
from app.domain.discharge.service import DischargeReadinessPredictor
from app.domain.lab.models import LabOrder, LabOrderStatus
from tests.factories import create_admission, create_patient


UNDOCUMENTED_BARRIERS = [
    "discharge_destination",
    "follow_up_appointment",
    "medication_reconciliation",
    "patient_education",
    "transportation",
]


@pytest.fixture
def policy() -> DischargePolicy:
    return DischargePolicy()


def fully_documented_inputs() -> ReadinessInputs:
    return ReadinessInputs(
        latest_vitals=VitalsSnapshot(temperature=37.0, heart_rate=80, systolic=120),
        has_recent_vitals=True,
        mobility_status=MobilityStatus.INDEPENDENT,
        pain_level=2,
        discharge_destination=DischargeDestination.HOME,
        completed_items={
            PlanningItemType.TRANSPORTATION: 1,
            PlanningItemType.MEDICATION_RECONCILIATION: 1,
            PlanningItemType.PATIENT_EDUCATION: 2,
            PlanningItemType.FOLLOW_UP_APPOINTMENT: 1,
        },
        has_planning_items=True,
    )


async def document_admission(db: AsyncSession, admission) -> None:
    """Record everything a routine discharge home needs."""
    admission.mobility_status = MobilityStatus.INDEPENDENT
    admission.pain_level = 2
    admission.discharge_destination = DischargeDestination.HOME
    db.add(VitalSign(
        tenant_id=admission.tenant_id, patient_id=admission.patient_id,
        recorded_at=datetime.utcnow() - timedelta(hours=1),
        temperature=37.0, heart_rate=80, blood_pressure_systolic=120, blood_pressure_diastolic=75
    ))
    for item_type, item_status in (
        (PlanningItemType.TRANSPORTATION, PlanningItemStatus.ARRANGED),
        (PlanningItemType.MEDICATION_RECONCILIATION, PlanningItemStatus.COMPLETED),
        (PlanningItemType.PATIENT_EDUCATION, PlanningItemStatus.COMPLETED),
        (PlanningItemType.PATIENT_EDUCATION, PlanningItemStatus.COMPLETED),
        (PlanningItemType.FOLLOW_UP_APPOINTMENT, PlanningItemStatus.ARRANGED),
    ):
        db.add(DischargePlanningItem(
            tenant_id=admission.tenant_id, admission_id=admission.id,
            item_type=item_type, status=item_status
        ))
    await db.commit()


@pytest.mark.unit
@pytest.mark.discharge
class TestReadinessScoring:
    """Pure readiness scoring rules."""

    def test_fully_documented_patient_is_ready(self, policy: DischargePolicy) -> None:
        inputs = fully_documented_inputs()

        assert detect_barriers(inputs) == {}
        scores = score_readiness(inputs, [], policy)
        assert (scores.medical, scores.social, scores.overall) == (100.0, 100.0, 100.0)
        assert data_completeness(inputs) == 1.0

    def test_undocumented_patient_barriers(self) -> None:
        barriers = detect_barriers(ReadinessInputs())

        assert sorted(barriers) == UNDOCUMENTED_BARRIERS

    def test_destination_specific_barriers(self) -> None:
        snf = detect_barriers(ReadinessInputs(discharge_destination=DischargeDestination.SNF))
        home_services = detect_barriers(ReadinessInputs(discharge_destination=DischargeDestination.HOME_WITH_SERVICES))

        assert "snf_placement" in snf
        assert "home_health" in home_services
        assert "discharge_destination" not in snf

    def test_unstable_vitals_are_a_medical_barrier(self) -> None:
        inputs = fully_documented_inputs()
        inputs.latest_vitals = VitalsSnapshot(temperature=39.2, heart_rate=130, systolic=120)

        barriers = detect_barriers(inputs)

        assert list(barriers) == ["unstable_vitals"]
        assert "temperature 39.2C" in barriers["unstable_vitals"]
        assert "heart rate 130" in barriers["unstable_vitals"]

    def test_scores_are_clamped(self, policy: DischargePolicy) -> None:
        inputs = ReadinessInputs(mobility_status=MobilityStatus.BEDBOUND, pain_level=9, monitored_medication_count=5)
        barriers = [
            BarrierState(f"medical-{i}", BarrierCategory.MEDICAL, BarrierSeverity.CRITICAL, 24) for i in range(3)
        ] + [
            BarrierState(f"social-{i}", BarrierCategory.SOCIAL, BarrierSeverity.CRITICAL, 24) for i in range(3)
        ]

        scores = score_readiness(inputs, barriers, policy)

        assert scores.medical == 0.0
        assert scores.social == 0.0
        assert scores.overall == 0.0

    def test_resolving_a_barrier_never_lowers_the_score(self, policy: DischargePolicy) -> None:
        inputs = ReadinessInputs(has_recent_vitals=True)
        open_barriers = [
            BarrierState("pending_labs", BarrierCategory.MEDICAL, BarrierSeverity.MEDIUM, 12),
            BarrierState("equipment", BarrierCategory.EQUIPMENT, BarrierSeverity.MEDIUM, 24),
            BarrierState("transportation", BarrierCategory.SOCIAL, BarrierSeverity.MEDIUM, 6),
        ]
        before = score_readiness(inputs, open_barriers, policy)

        for barrier in open_barriers:
            barrier.resolved = True
            after = score_readiness(inputs, open_barriers, policy)
            assert after.overall >= before.overall
            before = after

        assert before.overall == 100.0

    @pytest.mark.parametrize("category", [BarrierCategory.MEDICAL, BarrierCategory.SOCIAL])
    def test_harsher_severity_never_raises_the_score(self, policy: DischargePolicy, category) -> None:
        inputs = ReadinessInputs(has_recent_vitals=True)
        ladder = [BarrierSeverity.LOW, BarrierSeverity.MEDIUM, BarrierSeverity.HIGH, BarrierSeverity.CRITICAL]

        overall = [
            score_readiness(inputs, [BarrierState("b-1", category, severity, 12)], policy).overall
            for severity in ladder
        ]

        assert overall == sorted(overall, reverse=True)
        assert overall[0] > overall[-1]

    def test_policy_rejects_unordered_severities(self) -> None:
        with pytest.raises(ValidationError, match="low <= medium <= high <= critical"):
            DischargePolicy(severity_low=30, severity_medium=10)

        with pytest.raises(ValidationError):
            DischargePolicy(severity_critical=20)

        equal = DischargePolicy(severity_low=10, severity_medium=10, severity_high=10, severity_critical=10)
        assert equal.severity_critical == 10

    def test_predicted_date_adds_open_delays(self) -> None:
        now = datetime(2024, 3, 1, 8, 0)
        barriers = [
            BarrierState("transportation", BarrierCategory.SOCIAL, BarrierSeverity.MEDIUM, 6),
            BarrierState("equipment", BarrierCategory.EQUIPMENT, BarrierSeverity.MEDIUM, 24, resolved=True),
        ]

        assert predict_discharge_date(now, 95.0, []) == now + timedelta(hours=6)
        assert predict_discharge_date(now, 75.0, barriers) == now + timedelta(hours=30)
        assert predict_discharge_date(now, 10.0, []) == now + timedelta(hours=72)

    def test_confidence_from_completeness(self, policy: DischargePolicy) -> None:
        assert confidence_level(1.0, policy) == ConfidenceLevel.HIGH
        assert confidence_level(0.8, policy) == ConfidenceLevel.HIGH
        assert confidence_level(0.6, policy) == ConfidenceLevel.MEDIUM
        assert confidence_level(0.2, policy) == ConfidenceLevel.LOW

    def test_intervention_for_unknown_barrier(self) -> None:
        intervention = intervention_for("b-1", "insurance_auth", "Insurance authorisation pending", BarrierSeverity.CRITICAL)

        assert intervention["type"] == "administrative"
        assert intervention["priority"] == "urgent"
        assert intervention["description"] == "Resolve: Insurance authorisation pending"


@pytest.mark.integration
@pytest.mark.discharge
class TestDischargeReadinessPredictor:
    """Readiness predictions against stored admissions."""

    async def test_undocumented_admission(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient)
        now = datetime.utcnow()

        prediction = await DischargeReadinessPredictor(db_session, context).predict(patient.id, admission.id, now)

        assert prediction["medical_readiness_score"] == 90.0
        assert prediction["social_readiness_score"] == 20.0
        assert prediction["overall_readiness_score"] == 62.0
        assert prediction["confidence_level"] == "low"
        assert prediction["data_completeness"] == 0.0
        assert prediction["predicted_discharge_date"] == now + timedelta(hours=122)
        assert [b["barrier_key"] for b in prediction["barriers"]] == UNDOCUMENTED_BARRIERS
        assert len(prediction["recommended_interventions"]) == 5
        assert all(0 <= prediction[key] <= 100 for key in (
            "medical_readiness_score", "social_readiness_score", "overall_readiness_score"
        ))

    async def test_documented_admission_is_ready(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient)
        await document_admission(db_session, admission)
        now = datetime.utcnow()

        prediction = await DischargeReadinessPredictor(db_session, context).predict(patient.id, admission.id, now)

        assert prediction["overall_readiness_score"] == 100.0
        assert prediction["confidence_level"] == "high"
        assert prediction["barriers"] == []
        assert prediction["recommended_interventions"] == []
        assert prediction["predicted_discharge_date"] == now + timedelta(hours=6)

    async def test_clinical_findings_lower_medical_readiness(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient, monitored_medications=["warfarin", "vancomycin"])
        await document_admission(db_session, admission)
        db_session.add(VitalSign(
            tenant_id=context.tenant_id, patient_id=patient.id,
            recorded_at=datetime.utcnow() - timedelta(minutes=10), temperature=39.2, heart_rate=95,
            blood_pressure_systolic=125
        ))
        db_session.add(LabOrder(
            tenant_id=context.tenant_id, patient_id=patient.id, test_name="Blood culture",
            status=LabOrderStatus.PENDING
        ))
        db_session.add(EquipmentOrder(tenant_id=context.tenant_id, admission_id=admission.id, equipment_type="Walker"))
        await db_session.commit()

        prediction = await DischargeReadinessPredictor(db_session, context).predict(patient.id, admission.id)

        assert prediction["medical_readiness_score"] == 40.0
        assert prediction["social_readiness_score"] == 85.0
        assert prediction["overall_readiness_score"] == 58.0
        categories = {b["barrier_key"]: b["category"] for b in prediction["barriers"]}
        assert categories == {"unstable_vitals": "medical", "pending_labs": "medical", "equipment": "equipment"}
        assigned = {i["assigned_to"] for i in prediction["recommended_interventions"]}
        assert assigned == {"physician", "nursing_staff", "case_manager"}

    async def test_admission_must_belong_to_patient(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session, mrn="MRN-1")
        other = await create_patient(db_session, mrn="MRN-2")
        admission = await create_admission(db_session, other)

        with pytest.raises(NotFoundError):
            await DischargeReadinessPredictor(db_session, context).predict(patient.id, admission.id)

    async def test_manual_resolution_survives_recompute(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient)
        predictor = DischargeReadinessPredictor(db_session, context)

        first = await predictor.predict(patient.id, admission.id)
        transport = next(b for b in first["barriers"] if b["barrier_key"] == "transportation")

        resolved = await predictor.update_barrier(admission.id, transport["barrier_id"], True)

        assert resolved["barrier"]["resolved"] is True
        assert resolved["barrier"]["resolved_by"] == context.user_id
        assert resolved["prediction"]["overall_readiness_score"] == 68.0
        assert resolved["prediction"]["overall_readiness_score"] >= first["overall_readiness_score"]

        again = await predictor.predict(patient.id, admission.id)
        still = next(b for b in again["barriers"] if b["barrier_key"] == "transportation")
        assert still["resolved"] is True
        assert again["overall_readiness_score"] == 68.0

        reopened = await predictor.update_barrier(admission.id, transport["barrier_id"], False)
        assert reopened["barrier"]["resolved"] is False
        assert reopened["prediction"]["overall_readiness_score"] == 62.0

    async def test_barriers_follow_the_underlying_condition(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient)
        predictor = DischargeReadinessPredictor(db_session, context)
        await predictor.predict(patient.id, admission.id)

        item = DischargePlanningItem(
            tenant_id=context.tenant_id, admission_id=admission.id,
            item_type=PlanningItemType.TRANSPORTATION, status=PlanningItemStatus.ARRANGED
        )
        db_session.add(item)
        await db_session.commit()

        cleared = await predictor.predict(patient.id, admission.id)
        transport = next(b for b in cleared["barriers"] if b["barrier_key"] == "transportation")
        assert transport["resolved"] is True
        stored = await db_session.get(DischargeBarrier, transport["barrier_id"])
        assert stored.resolution_source == ResolutionSource.AUTO

        item.status = PlanningItemStatus.PENDING
        await db_session.commit()

        recurred = await predictor.predict(patient.id, admission.id)
        transport = next(b for b in recurred["barriers"] if b["barrier_key"] == "transportation")
        assert transport["resolved"] is False
        keys = [b["barrier_key"] for b in recurred["barriers"]]
        assert keys.count("transportation") == 1

    async def test_update_unknown_barrier(self, db_session: AsyncSession, context) -> None:
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient)
        predictor = DischargeReadinessPredictor(db_session, context)

        with pytest.raises(NotFoundError):
            await predictor.update_barrier(admission.id, "missing", True)
        with pytest.raises(NotFoundError):
            await predictor.update_barrier("missing", "missing", True)

    async def test_batch_reports_failures_per_item(self, db_session: AsyncSession, context) -> None:
        first = await create_patient(db_session, mrn="MRN-1")
        second = await create_patient(db_session, mrn="MRN-2")
        first_admission = await create_admission(db_session, first)
        second_admission = await create_admission(db_session, second)
        # A failed item rolls the session back, so hold on to plain ids
        first_id, second_id = first.id, second.id
        first_admission_id, second_admission_id = first_admission.id, second_admission.id

        result = await DischargeReadinessPredictor(db_session, context).batch([
            {"patient_id": first_id, "admission_id": first_admission_id},
            {"patient_id": second_id, "admission_id": first_admission_id},
            {"patient_id": second_id, "admission_id": second_admission_id},
            {"patient_id": second_id, "admission_id": None},
        ])

        summary = result["summary"]
        assert summary == {"total": 4, "successful": 2, "failed": 2}
        assert summary["successful"] + summary["failed"] == summary["total"]
        assert [p["admission_id"] for p in result["data"]] == [first_admission_id, second_admission_id]
        assert [e["error_code"] for e in result["errors"]] == ["NOT_FOUND_ERROR", "INVALID_BATCH_ITEM"]

    async def test_discharge_ready_patients(self, db_session: AsyncSession, context) -> None:
        ready = await create_patient(db_session, mrn="MRN-1", first_name="Grace", last_name="Hopper")
        waiting = await create_patient(db_session, mrn="MRN-2")
        ready_admission = await create_admission(db_session, ready)
        waiting_admission = await create_admission(db_session, waiting)
        await document_admission(db_session, ready_admission)
        predictor = DischargeReadinessPredictor(db_session, context)
        await predictor.predict(ready.id, ready_admission.id)
        await predictor.predict(waiting.id, waiting_admission.id)

        default_threshold = await predictor.discharge_ready_patients()
        low_threshold = await predictor.discharge_ready_patients(50)

        assert [p["patient_name"] for p in default_threshold] == ["Grace Hopper"]
        assert default_threshold[0]["open_barriers"] == 0
        assert [p["admission_id"] for p in low_threshold] == [ready_admission.id, waiting_admission.id]
        assert low_threshold[1]["open_barriers"] == 5

        ready_admission.status = AdmissionStatus.DISCHARGED
        await db_session.commit()
        assert [p["admission_id"] for p in await predictor.discharge_ready_patients(50)] == [waiting_admission.id]

    async def test_discharge_metrics(self, db_session: AsyncSession, context) -> None:
        predicted_at = datetime.utcnow() - timedelta(days=10)
        patient = await create_patient(db_session)
        admission = await create_admission(db_session, patient, admission_date=predicted_at - timedelta(hours=24))
        predictor = DischargeReadinessPredictor(db_session, context)

        prediction = await predictor.predict(patient.id, admission.id, predicted_at)
        barrier = await db_session.get(DischargeBarrier, prediction["barriers"][0]["barrier_id"])
        barrier.resolved = True
        admission.status = AdmissionStatus.DISCHARGED
        admission.discharge_date = prediction["predicted_discharge_date"] + timedelta(hours=5)
        await db_session.commit()

        metrics = await predictor.discharge_metrics()

        assert metrics["total_discharges"] == 1
        assert metrics["average_los_hours"] == 151.0
        assert metrics["delayed_discharges"] == 1
        assert metrics["average_delay_hours"] == 5.0
        assert metrics["barriers_by_category"] == {"medical": 0, "social": 5, "equipment": 0, "administrative": 0}
        assert metrics["barrier_resolution_rate"] == 20.0

    async def test_discharge_metrics_empty_and_invalid(self, db_session: AsyncSession, context) -> None:
        predictor = DischargeReadinessPredictor(db_session, context)
        now = datetime.utcnow()

        empty = await predictor.discharge_metrics()
        assert empty["total_discharges"] == 0
        assert empty["average_los_hours"] is None
        assert empty["barrier_resolution_rate"] == 0.0

        with pytest.raises(BusinessLogicError) as exc_info:
            await predictor.discharge_metrics(now, now - timedelta(days=1))
        assert exc_info.value.error_code == "INVALID_DATE_RANGE"
