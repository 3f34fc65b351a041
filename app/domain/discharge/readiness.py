"""
Discharge Readiness Scoring

Pure functions turning an admission's documented state into medical and
social readiness scores, a predicted discharge date, barriers and the
interventions that clear them.

Each unresolved barrier costs its sub-score a penalty set by its severity
(medical barriers hit the medical score, every other category the social
score) and delays the predicted date by its estimated hours. Resolving a
barrier therefore never lowers the overall score.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from app.core.config import DischargePolicy
from app.domain.discharge.models import (
    BarrierCategory, BarrierSeverity, ConfidenceLevel, DischargeDestination,
    MobilityStatus, PlanningItemType
)


@dataclass(frozen=True)
class BarrierSpec:
    category: BarrierCategory
    severity: BarrierSeverity
    delay_hours: int
    intervention_type: str
    intervention: str
    priority: str
    assigned_to: str


BARRIER_CATALOG: Dict[str, BarrierSpec] = {
    "unstable_vitals": BarrierSpec(
        BarrierCategory.MEDICAL, BarrierSeverity.HIGH, 24,
        "medical_review", "Physician review of abnormal vital signs", "high", "physician"),
    "pending_labs": BarrierSpec(
        BarrierCategory.MEDICAL, BarrierSeverity.MEDIUM, 12,
        "lab_follow_up", "Expedite pending laboratory results", "medium", "nursing_staff"),
    "discharge_destination": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.CRITICAL, 48,
        "discharge_planning", "Confirm discharge destination with patient and family", "urgent", "case_manager"),
    "snf_placement": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.HIGH, 72,
        "placement", "Secure skilled nursing facility placement", "high", "social_worker"),
    "home_health": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.HIGH, 48,
        "home_health", "Arrange home health services", "high", "case_manager"),
    "transportation": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.MEDIUM, 6,
        "transportation", "Arrange discharge transportation", "medium", "case_manager"),
    "medication_reconciliation": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.MEDIUM, 12,
        "medication_reconciliation", "Complete medication reconciliation", "medium", "pharmacist"),
    "patient_education": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.LOW, 4,
        "education", "Complete patient and caregiver education", "low", "nursing_staff"),
    "follow_up_appointment": BarrierSpec(
        BarrierCategory.SOCIAL, BarrierSeverity.LOW, 4,
        "follow_up", "Schedule follow-up appointment", "low", "case_manager"),
    "equipment": BarrierSpec(
        BarrierCategory.EQUIPMENT, BarrierSeverity.MEDIUM, 24,
        "equipment", "Expedite durable medical equipment delivery", "medium", "case_manager"),
}

MIN_EDUCATION_ITEMS = 2

# (minimum overall score, base hours until discharge)
BASE_HOURS_BY_SCORE = ((90, 6), (80, 12), (70, 24), (60, 48))
DEFAULT_BASE_HOURS = 72


@dataclass
class VitalsSnapshot:
    temperature: Optional[float] = None
    heart_rate: Optional[int] = None
    systolic: Optional[int] = None


@dataclass
class ReadinessInputs:
    """Everything documented about an admission that readiness depends on"""
    latest_vitals: Optional[VitalsSnapshot] = None
    has_recent_vitals: bool = False
    pending_lab_count: int = 0
    monitored_medication_count: int = 0
    mobility_status: Optional[MobilityStatus] = None
    pain_level: Optional[int] = None
    discharge_destination: Optional[DischargeDestination] = None
    completed_items: Dict[PlanningItemType, int] = field(default_factory=dict)
    has_planning_items: bool = False
    pending_equipment_count: int = 0

    def is_done(self, item_type: PlanningItemType) -> bool:
        return self.completed_items.get(item_type, 0) > 0


@dataclass
class BarrierState:
    key: str
    category: BarrierCategory
    severity: BarrierSeverity
    estimated_delay_hours: int
    resolved: bool = False


@dataclass
class ReadinessScores:
    medical: float
    social: float
    overall: float


def unstable_vitals(vitals: Optional[VitalsSnapshot]) -> List[str]:
    if vitals is None:
        return []
    findings = []
    if vitals.temperature is not None and (vitals.temperature > 38.5 or vitals.temperature < 36.0):
        findings.append(f"temperature {vitals.temperature}C")
    if vitals.heart_rate is not None and (vitals.heart_rate > 120 or vitals.heart_rate < 50):
        findings.append(f"heart rate {vitals.heart_rate}")
    if vitals.systolic is not None and (vitals.systolic > 180 or vitals.systolic < 90):
        findings.append(f"systolic BP {vitals.systolic}")
    return findings


def detect_barriers(inputs: ReadinessInputs) -> Dict[str, str]:
    """Barrier keys present right now, with a human readable description"""
    found: Dict[str, str] = {}

    findings = unstable_vitals(inputs.latest_vitals)
    if findings:
        found["unstable_vitals"] = "Unstable vital signs: " + ", ".join(findings)
    if inputs.pending_lab_count > 0:
        found["pending_labs"] = f"{inputs.pending_lab_count} laboratory result(s) pending"

    destination = inputs.discharge_destination
    if destination is None:
        found["discharge_destination"] = "Discharge destination not determined"
    elif destination in (DischargeDestination.SNF, DischargeDestination.REHAB) and not inputs.is_done(PlanningItemType.SNF_PLACEMENT):
        found["snf_placement"] = "Facility placement not arranged"
    elif destination == DischargeDestination.HOME_WITH_SERVICES and not inputs.is_done(PlanningItemType.HOME_HEALTH):
        found["home_health"] = "Home health services not arranged"

    if not inputs.is_done(PlanningItemType.TRANSPORTATION):
        found["transportation"] = "Transportation not arranged"
    if not inputs.is_done(PlanningItemType.MEDICATION_RECONCILIATION):
        found["medication_reconciliation"] = "Medication reconciliation not completed"
    if inputs.completed_items.get(PlanningItemType.PATIENT_EDUCATION, 0) < MIN_EDUCATION_ITEMS:
        found["patient_education"] = "Patient education incomplete"
    if not inputs.is_done(PlanningItemType.FOLLOW_UP_APPOINTMENT):
        found["follow_up_appointment"] = "Follow-up appointment not scheduled"
    if inputs.pending_equipment_count > 0:
        found["equipment"] = f"{inputs.pending_equipment_count} equipment order(s) awaiting delivery"

    return found


def medical_factor_deductions(inputs: ReadinessInputs, policy: DischargePolicy) -> List[Tuple[str, int]]:
    """Medical score deductions that are not tracked as barriers"""
    deductions = []
    if not inputs.has_recent_vitals:
        deductions.append(("no_recent_vitals", policy.no_recent_vitals))
    if inputs.monitored_medication_count > 0:
        deductions.append((
            "monitored_medications",
            min(policy.monitored_medication * inputs.monitored_medication_count, policy.monitored_medication_cap),
        ))
    if inputs.mobility_status == MobilityStatus.BEDBOUND:
        deductions.append(("bedbound", policy.bedbound))
    elif inputs.mobility_status == MobilityStatus.WHEELCHAIR:
        deductions.append(("wheelchair", policy.wheelchair))
    if inputs.pain_level is not None and inputs.pain_level > policy.high_pain_threshold:
        deductions.append(("high_pain", policy.high_pain))
    return deductions


def severity_penalty(severity: BarrierSeverity, policy: DischargePolicy) -> int:
    return {
        BarrierSeverity.LOW: policy.severity_low,
        BarrierSeverity.MEDIUM: policy.severity_medium,
        BarrierSeverity.HIGH: policy.severity_high,
        BarrierSeverity.CRITICAL: policy.severity_critical,
    }[severity]


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def score_readiness(
    inputs: ReadinessInputs,
    barriers: Iterable[BarrierState],
    policy: DischargePolicy
) -> ReadinessScores:
    medical = 100.0 - sum(points for _, points in medical_factor_deductions(inputs, policy))
    social = 100.0

    for barrier in barriers:
        if barrier.resolved:
            continue
        penalty = severity_penalty(barrier.severity, policy)
        if barrier.category == BarrierCategory.MEDICAL:
            medical -= penalty
        else:
            social -= penalty

    medical = _clamp(medical)
    social = _clamp(social)
    overall = _clamp(policy.medical_weight * medical + policy.social_weight * social)
    return ReadinessScores(medical=round(medical, 1), social=round(social, 1), overall=round(overall, 1))


def base_hours(overall: float) -> int:
    for threshold, hours in BASE_HOURS_BY_SCORE:
        if overall >= threshold:
            return hours
    return DEFAULT_BASE_HOURS


def predict_discharge_date(now: datetime, overall: float, barriers: Iterable[BarrierState]) -> datetime:
    delay = sum(b.estimated_delay_hours for b in barriers if not b.resolved)
    return now + timedelta(hours=base_hours(overall) + delay)


def data_completeness(inputs: ReadinessInputs) -> float:
    documented = [
        inputs.has_recent_vitals,
        inputs.mobility_status is not None,
        inputs.pain_level is not None,
        inputs.discharge_destination is not None,
        inputs.has_planning_items,
    ]
    return round(sum(documented) / len(documented), 2)


def confidence_level(completeness: float, policy: DischargePolicy) -> ConfidenceLevel:
    if completeness >= policy.high_confidence_completeness:
        return ConfidenceLevel.HIGH
    if completeness >= policy.medium_confidence_completeness:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def intervention_for(barrier_id: str, key: str, description: str, severity: BarrierSeverity) -> Dict[str, str]:
    spec = BARRIER_CATALOG.get(key)
    if spec is None:
        return {
            "barrier_id": barrier_id,
            "type": "administrative",
            "description": f"Resolve: {description}",
            "priority": "urgent" if severity == BarrierSeverity.CRITICAL else severity.value,
            "assigned_to": "case_manager",
        }
    return {
        "barrier_id": barrier_id,
        "type": spec.intervention_type,
        "description": spec.intervention,
        "priority": spec.priority,
        "assigned_to": spec.assigned_to,
    }
