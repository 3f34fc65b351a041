import pytest

from app.core.config import BedScoringPolicy
from app.domain.beds.models import CleaningStatus
from app.domain.beds.scoring import (
    BedCandidate, BedRequirements, confidence_for, exclusion_reason, max_points,
    natural_key, rank_beds, score_bed
)
from app.domain.patients.models import IsolationType


@pytest.fixture
def policy() -> BedScoringPolicy:
    return BedScoringPolicy()


def candidate(bed_number: str, **kwargs) -> BedCandidate:
    return BedCandidate(
        bed_id=f"bed-{bed_number}",
        bed_number=bed_number,
        unit_id=kwargs.pop("unit_id", "unit-1"),
        unit_name=kwargs.pop("unit_name", "4 West"),
        **kwargs
    )


@pytest.mark.unit
@pytest.mark.beds
class TestBedScoring:
    """Point scoring and ranking of candidate beds."""

    def test_max_points_without_requirements(self, policy: BedScoringPolicy) -> None:
        assert max_points(BedRequirements(), policy) == 50

    def test_ideal_standard_bed_scores_100(self, policy: BedScoringPolicy) -> None:
        recommendation = score_bed(candidate("1"), BedRequirements(), policy)

        assert recommendation.score == 100.0
        assert recommendation.confidence == "medium"
        assert "Bed is clean and ready" in recommendation.reasoning
        assert recommendation.warnings == []

    def test_isolation_room_for_non_isolated_patient_is_penalised(self, policy: BedScoringPolicy) -> None:
        recommendation = score_bed(
            candidate("1", isolation_capable=True, isolation_type=IsolationType.CONTACT),
            BedRequirements(),
            policy
        )

        assert recommendation.score == 90.0
        assert "Isolation room used for a patient without isolation needs" in recommendation.warnings

    def test_cleaning_state_affects_score(self, policy: BedScoringPolicy) -> None:
        in_progress = score_bed(candidate("1", cleaning_status=CleaningStatus.IN_PROGRESS), BedRequirements(), policy)
        dirty = score_bed(candidate("2", cleaning_status=CleaningStatus.DIRTY), BedRequirements(), policy)

        assert in_progress.score == 96.0
        assert dirty.score == 90.0
        assert "Bed requires cleaning before use" in dirty.warnings

    def test_proximity_bands(self, policy: BedScoringPolicy) -> None:
        req = BedRequirements(proximity_to_nurses_station=True)

        near = score_bed(candidate("1", distance_to_nurses_station=15), req, policy)
        moderate = score_bed(candidate("2", distance_to_nurses_station=40), req, policy)
        unknown = score_bed(candidate("3"), req, policy)

        assert near.score == 100.0
        assert moderate.score == 90.9
        assert unknown.score == 85.5
        assert "Distance to nurses' station unknown" in unknown.warnings

    def test_scores_stay_within_bounds(self, policy: BedScoringPolicy) -> None:
        req = BedRequirements(proximity_to_nurses_station=True)
        worst = score_bed(
            candidate(
                "9",
                isolation_capable=True,
                isolation_type=IsolationType.DROPLET,
                has_telemetry=True,
                distance_to_nurses_station=100,
                cleaning_status=CleaningStatus.DIRTY,
            ),
            req,
            policy
        )

        assert 0 <= worst.score <= 100
        assert worst.score == 58.2
        assert worst.confidence == "low"

    def test_confidence_rules(self, policy: BedScoringPolicy) -> None:
        one_hard = BedRequirements(telemetry_required=True)
        two_hard = BedRequirements(telemetry_required=True, oxygen_required=True)

        assert confidence_for(50.0, two_hard, policy) == "high"
        assert confidence_for(85.0, one_hard, policy) == "high"
        assert confidence_for(70.0, one_hard, policy) == "medium"
        assert confidence_for(65.0, BedRequirements(), policy) == "medium"
        assert confidence_for(50.0, BedRequirements(), policy) == "low"

    def test_hard_constraints_exclude(self) -> None:
        contact = BedRequirements(isolation_required=True, isolation_type=IsolationType.CONTACT)

        assert exclusion_reason(candidate("1"), contact) == "Not isolation-capable (needs contact)"
        assert exclusion_reason(
            candidate("2", isolation_capable=True, isolation_type=IsolationType.AIRBORNE), contact
        ).startswith("Isolation type mismatch")
        assert exclusion_reason(
            candidate("3"), BedRequirements(telemetry_required=True)
        ) == "Telemetry required but not available"
        assert exclusion_reason(
            candidate("4"), BedRequirements(required_unit_id="unit-2")
        ) == "Outside the required unit"
        assert exclusion_reason(candidate("5", has_oxygen=True), BedRequirements(oxygen_required=True)) is None

    def test_natural_bed_number_order(self) -> None:
        numbers = ["10", "2", "1B", "1A", "B3"]
        assert sorted(numbers, key=natural_key) == ["1A", "1B", "2", "10", "B3"]

    def test_rank_beds_orders_and_limits(self, policy: BedScoringPolicy) -> None:
        beds = [
            candidate("10"),
            candidate("2"),
            candidate("3", cleaning_status=CleaningStatus.DIRTY),
            candidate("4", has_telemetry=True),
            candidate("5", isolation_capable=True, isolation_type=IsolationType.CONTACT),
        ]

        ranked, excluded = rank_beds(beds, BedRequirements(), policy, limit=3)

        assert [r.bed_number for r in ranked] == ["2", "10", "3"]
        assert excluded == []
        assert ranked[0].score >= ranked[1].score >= ranked[2].score

    def test_contact_patient_only_gets_contact_rooms(self, policy: BedScoringPolicy) -> None:
        req = BedRequirements(isolation_required=True, isolation_type=IsolationType.CONTACT)
        beds = [
            candidate("1"),
            candidate("2", isolation_capable=True, isolation_type=IsolationType.CONTACT),
            candidate("3", isolation_capable=True, isolation_type=IsolationType.DROPLET),
        ]

        ranked, excluded = rank_beds(beds, req, policy)

        assert [r.bed_number for r in ranked] == ["2"]
        assert ranked[0].score == 100.0
        assert ranked[0].confidence == "high"
        assert {e.bed_number for e in excluded} == {"1", "3"}

    def test_required_unit_earns_unit_points(self, policy: BedScoringPolicy) -> None:
        req = BedRequirements(required_unit_id="unit-1")

        ranked, excluded = rank_beds(
            [candidate("1"), candidate("2", unit_id="unit-2", unit_name="ICU")], req, policy
        )

        assert [r.bed_number for r in ranked] == ["1"]
        assert ranked[0].score == 100.0
        assert "In required unit (4 West)" in ranked[0].reasoning
        assert excluded[0].reason == "Outside the required unit"
