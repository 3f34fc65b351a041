"""
Bed Scoring

Pure ranking logic for bed recommendations. Hard constraints (isolation,
required equipment, required unit) exclude a bed outright; everything else
earns points from ``BedScoringPolicy``. Scores are normalised to 0-100
against the best bed the request could possibly get.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.config import BedScoringPolicy
from app.domain.beds.models import Bed, CleaningStatus
from app.domain.patients.models import IsolationType


@dataclass
class BedRequirements:
    """What the patient needs from a bed"""
    isolation_required: bool = False
    isolation_type: Optional[IsolationType] = None
    telemetry_required: bool = False
    oxygen_required: bool = False
    bariatric_required: bool = False
    proximity_to_nurses_station: bool = False
    required_unit_id: Optional[str] = None

    @property
    def hard_constraint_count(self) -> int:
        return sum([
            self.isolation_required,
            self.telemetry_required,
            self.oxygen_required,
            self.bariatric_required,
            self.required_unit_id is not None,
        ])


@dataclass
class BedCandidate:
    bed_id: str
    bed_number: str
    unit_id: str
    unit_name: Optional[str] = None
    isolation_capable: bool = False
    isolation_type: Optional[IsolationType] = None
    has_telemetry: bool = False
    has_oxygen: bool = False
    is_bariatric: bool = False
    distance_to_nurses_station: Optional[int] = None
    cleaning_status: CleaningStatus = CleaningStatus.CLEAN

    @classmethod
    def from_bed(cls, bed: Bed) -> "BedCandidate":
        return cls(
            bed_id=bed.id,
            bed_number=bed.bed_number,
            unit_id=bed.unit_id,
            unit_name=bed.unit.name if bed.unit else None,
            isolation_capable=bool(bed.isolation_capable),
            isolation_type=bed.isolation_type,
            has_telemetry=bool(bed.has_telemetry),
            has_oxygen=bool(bed.has_oxygen),
            is_bariatric=bool(bed.is_bariatric),
            distance_to_nurses_station=bed.distance_to_nurses_station,
            cleaning_status=bed.cleaning_status or CleaningStatus.CLEAN,
        )


@dataclass
class BedRecommendation:
    bed_id: str
    bed_number: str
    unit_id: str
    unit_name: Optional[str]
    score: float
    confidence: str
    reasoning: str
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bed_id": self.bed_id,
            "bed_number": self.bed_number,
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "score": self.score,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "warnings": self.warnings,
        }


@dataclass
class BedExclusion:
    bed_id: str
    bed_number: str
    reason: str


def natural_key(bed_number: str) -> Tuple[Tuple[int, Any], ...]:
    """Sort key so that bed 2 precedes bed 10"""
    parts = re.split(r"(\d+)", bed_number or "")
    return tuple((0, int(part)) if part.isdigit() else (1, part.lower()) for part in parts if part)


def exclusion_reason(bed: BedCandidate, req: BedRequirements) -> Optional[str]:
    if req.isolation_required:
        if req.isolation_type is None:
            return "Isolation required but precaution type is not documented"
        if not bed.isolation_capable:
            return f"Not isolation-capable (needs {req.isolation_type.value})"
        if bed.isolation_type != req.isolation_type:
            provided = bed.isolation_type.value if bed.isolation_type else "unspecified"
            return f"Isolation type mismatch: needs {req.isolation_type.value}, bed provides {provided}"
    if req.telemetry_required and not bed.has_telemetry:
        return "Telemetry required but not available"
    if req.oxygen_required and not bed.has_oxygen:
        return "Oxygen required but not available"
    if req.bariatric_required and not bed.is_bariatric:
        return "Bariatric bed required"
    if req.required_unit_id is not None and bed.unit_id != req.required_unit_id:
        return "Outside the required unit"
    return None


def max_points(req: BedRequirements, policy: BedScoringPolicy) -> int:
    """Best total any bed could earn for this request"""
    return sum([
        policy.isolation_match if req.isolation_required
        else max(policy.isolation_not_needed_standard_bed, policy.isolation_not_needed_isolation_bed),
        policy.telemetry_match if req.telemetry_required
        else max(policy.telemetry_not_needed_standard_bed, policy.telemetry_not_needed_telemetry_bed),
        policy.oxygen_match if req.oxygen_required else policy.oxygen_not_needed,
        policy.unit_match if req.required_unit_id else policy.unit_no_preference,
        policy.proximity_near if req.proximity_to_nurses_station else policy.proximity_not_requested,
        policy.bariatric_match if req.bariatric_required else policy.bariatric_not_needed,
        policy.clean_ready,
    ])


def confidence_for(score: float, req: BedRequirements, policy: BedScoringPolicy) -> str:
    """Rankings shaped by hard constraints are more trustworthy than soft ones"""
    hard = req.hard_constraint_count
    if hard >= 2 or (hard == 1 and score >= policy.high_confidence_score):
        return "high"
    if hard == 1 or score >= policy.medium_confidence_score:
        return "medium"
    return "low"


def score_bed(bed: BedCandidate, req: BedRequirements, policy: BedScoringPolicy) -> BedRecommendation:
    """Score a bed that already passed ``exclusion_reason``"""
    points = 0
    reasons: List[str] = []
    warnings: List[str] = []

    if req.isolation_required:
        points += policy.isolation_match
        reasons.append(f"{req.isolation_type.value.capitalize()} isolation room")
    elif bed.isolation_capable:
        points += policy.isolation_not_needed_isolation_bed
        warnings.append("Isolation room used for a patient without isolation needs")
    else:
        points += policy.isolation_not_needed_standard_bed
        reasons.append("Standard room keeps isolation rooms free")

    if req.telemetry_required:
        points += policy.telemetry_match
        reasons.append("Telemetry monitoring available")
    elif bed.has_telemetry:
        points += policy.telemetry_not_needed_telemetry_bed
    else:
        points += policy.telemetry_not_needed_standard_bed

    if req.oxygen_required:
        points += policy.oxygen_match
        reasons.append("Oxygen supply available")
    else:
        points += policy.oxygen_not_needed

    if req.required_unit_id:
        points += policy.unit_match
        reasons.append(f"In required unit{f' ({bed.unit_name})' if bed.unit_name else ''}")
    else:
        points += policy.unit_no_preference

    if req.proximity_to_nurses_station:
        distance = bed.distance_to_nurses_station
        if distance is None:
            points += policy.proximity_far
            warnings.append("Distance to nurses' station unknown")
        elif distance <= policy.near_distance:
            points += policy.proximity_near
            reasons.append(f"Close to nurses' station ({distance}m)")
        elif distance <= policy.moderate_distance:
            points += policy.proximity_moderate
            reasons.append(f"Moderate distance to nurses' station ({distance}m)")
        else:
            points += policy.proximity_far
            warnings.append(f"Far from nurses' station ({distance}m)")
    else:
        points += policy.proximity_not_requested

    if req.bariatric_required:
        points += policy.bariatric_match
        reasons.append("Bariatric-capable bed")
    else:
        points += policy.bariatric_not_needed

    if bed.cleaning_status == CleaningStatus.CLEAN:
        points += policy.clean_ready
        reasons.append("Bed is clean and ready")
    elif bed.cleaning_status == CleaningStatus.IN_PROGRESS:
        points += policy.clean_in_progress
        warnings.append("Cleaning in progress")
    else:
        warnings.append("Bed requires cleaning before use")

    best = max_points(req, policy)
    score = round(min(100.0, points * 100.0 / best), 1) if best else 0.0

    return BedRecommendation(
        bed_id=bed.bed_id,
        bed_number=bed.bed_number,
        unit_id=bed.unit_id,
        unit_name=bed.unit_name,
        score=score,
        confidence=confidence_for(score, req, policy),
        reasoning="; ".join(reasons),
        reasons=reasons,
        warnings=warnings,
    )


def rank_beds(
    candidates: Iterable[BedCandidate],
    req: BedRequirements,
    policy: BedScoringPolicy,
    limit: Optional[int] = None
) -> Tuple[List[BedRecommendation], List[BedExclusion]]:
    """Rank eligible beds by score, ties going to the lower bed number"""
    ranked: List[BedRecommendation] = []
    excluded: List[BedExclusion] = []

    for bed in candidates:
        reason = exclusion_reason(bed, req)
        if reason:
            excluded.append(BedExclusion(bed.bed_id, bed.bed_number, reason))
            continue
        ranked.append(score_bed(bed, req, policy))

    ranked.sort(key=lambda r: (-r.score, natural_key(r.bed_number)))
    if limit is not None:
        ranked = ranked[:limit]
    return ranked, excluded
