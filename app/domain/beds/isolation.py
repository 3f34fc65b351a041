"""
Isolation Requirement Evaluation

Derives a patient's transmission-based precautions from the structured
isolation order, active ICD-10 diagnoses, recent positive cultures and
keywords in the medical history. When several sources disagree the most
restrictive precaution wins: airborne > droplet > contact > protective.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessLogicError, NotFoundError
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditRepository
from app.domain.beds.models import Bed, BedStatus
from app.domain.lab.repository import LabRepository
from app.domain.patients.models import IsolationType, Patient
from app.domain.patients.repository import PatientRepository


ISOLATION_PRECEDENCE = {
    IsolationType.AIRBORNE: 4,
    IsolationType.DROPLET: 3,
    IsolationType.CONTACT: 2,
    IsolationType.PROTECTIVE: 1,
}

ICD10_ISOLATION_PREFIXES = {
    IsolationType.AIRBORNE: ("A15", "A16", "B05", "B01", "A48.1"),
    IsolationType.DROPLET: ("J09", "J10", "J11", "J18", "A37", "B06"),
    IsolationType.CONTACT: ("A04", "B95.6", "B96.2", "A41", "L08"),
    IsolationType.PROTECTIVE: ("D70", "C91", "C92", "Z94"),
}

ISOLATION_KEYWORDS = {
    IsolationType.AIRBORNE: ("TB", "TUBERCULOSIS", "MEASLES", "VARICELLA", "CHICKENPOX"),
    IsolationType.DROPLET: ("INFLUENZA", "RSV", "ADENOVIRUS", "PERTUSSIS", "MENINGOCOCCAL"),
    IsolationType.CONTACT: ("MRSA", "VRE", "C.DIFF", "C. DIFF", "C DIFF", "CLOSTRIDIOIDES DIFFICILE", "CRE", "ESBL", "SCABIES"),
    IsolationType.PROTECTIVE: ("NEUTROPENIA", "NEUTROPENIC", "TRANSPLANT"),
}

PPE_REQUIREMENTS = {
    None: ["Standard precautions"],
    IsolationType.CONTACT: ["Gloves", "Gown"],
    IsolationType.DROPLET: ["Gloves", "Gown", "Surgical mask", "Eye protection"],
    IsolationType.AIRBORNE: ["Gloves", "Gown", "N95 respirator", "Eye protection"],
    IsolationType.PROTECTIVE: ["Gloves", "Gown", "Mask"],
}

POSITIVE_CULTURE_WINDOW = timedelta(days=30)


def _compile(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<![A-Z0-9])" + re.escape(keyword) + r"(?![A-Z0-9])", re.IGNORECASE)


_KEYWORD_PATTERNS = {
    isolation_type: [(keyword, _compile(keyword)) for keyword in keywords]
    for isolation_type, keywords in ISOLATION_KEYWORDS.items()
}


def precedence(isolation_type: Optional[IsolationType]) -> int:
    return ISOLATION_PRECEDENCE.get(isolation_type, 0)


def most_restrictive(types: Iterable[Optional[IsolationType]]) -> Optional[IsolationType]:
    candidates = [t for t in types if t is not None]
    if not candidates:
        return None
    return max(candidates, key=precedence)


def match_keywords(text: Optional[str]) -> List[Tuple[IsolationType, str]]:
    """Return (isolation type, keyword) pairs found in free text"""
    if not text:
        return []
    found = []
    for isolation_type, patterns in _KEYWORD_PATTERNS.items():
        for keyword, pattern in patterns:
            if pattern.search(text):
                found.append((isolation_type, keyword))
                break
    return found


def match_icd10(code: str) -> Optional[IsolationType]:
    normalized = code.strip().upper()
    matches = [
        isolation_type
        for isolation_type, prefixes in ICD10_ISOLATION_PREFIXES.items()
        if any(normalized.startswith(prefix) for prefix in prefixes)
    ]
    return most_restrictive(matches)


@dataclass
class IsolationRequirement:
    isolation_required: bool
    isolation_type: Optional[IsolationType]
    reasons: List[str] = field(default_factory=list)
    ppe_requirements: List[str] = field(default_factory=list)
    requires_negative_pressure: bool = False
    requires_positive_pressure: bool = False
    requires_anteroom: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["isolation_type"] = self.isolation_type.value if self.isolation_type else None
        return data


def evaluate_isolation(
    ordered_required: bool = False,
    ordered_type: Optional[IsolationType] = None,
    diagnoses: Iterable[Tuple[str, Optional[str]]] = (),
    positive_organisms: Iterable[str] = (),
    medical_history: Optional[str] = None,
) -> IsolationRequirement:
    """Combine every isolation signal into one requirement.

    An isolation order without a precaution type and without any other
    evidence stays ``isolation_required`` with no type, which no bed can
    satisfy.
    """
    reasons: List[str] = []
    found: List[IsolationType] = []

    if ordered_required:
        if ordered_type is not None:
            found.append(ordered_type)
            reasons.append(f"Clinical order: {ordered_type.value} isolation")
        else:
            reasons.append("Isolation ordered without a precaution type")

    for code, description in diagnoses:
        isolation_type = match_icd10(code)
        if isolation_type is not None:
            found.append(isolation_type)
            label = f"{code} ({description})" if description else code
            reasons.append(f"Diagnosis {label} requires {isolation_type.value} isolation")

    for organism in positive_organisms:
        for isolation_type, keyword in match_keywords(organism):
            found.append(isolation_type)
            reasons.append(f"Positive culture for {keyword} requires {isolation_type.value} isolation")

    for isolation_type, keyword in match_keywords(medical_history):
        found.append(isolation_type)
        reasons.append(f"Medical history mentions {keyword} ({isolation_type.value} isolation)")

    isolation_type = most_restrictive(found)
    required = ordered_required or isolation_type is not None

    return IsolationRequirement(
        isolation_required=required,
        isolation_type=isolation_type,
        reasons=reasons,
        ppe_requirements=list(PPE_REQUIREMENTS[isolation_type]),
        requires_negative_pressure=isolation_type == IsolationType.AIRBORNE,
        requires_positive_pressure=isolation_type == IsolationType.PROTECTIVE,
        requires_anteroom=isolation_type in (IsolationType.AIRBORNE, IsolationType.PROTECTIVE),
    )


def isolation_rejection(requirement: IsolationRequirement, bed: Bed) -> Optional[str]:
    """Reason a bed cannot host the requirement, or None when it can"""
    if not requirement.isolation_required:
        return None
    if requirement.isolation_type is None:
        return "Patient requires isolation but the precaution type is not documented"
    if not bed.isolation_capable:
        return (
            f"Patient requires {requirement.isolation_type.value} isolation "
            f"but bed is not isolation-capable"
        )
    if bed.isolation_type != requirement.isolation_type:
        provided = bed.isolation_type.value if bed.isolation_type else "unspecified"
        return (
            f"Isolation type mismatch: patient needs {requirement.isolation_type.value}, "
            f"bed provides {provided}"
        )
    return None


def utilization_rate(available: int, total: int) -> float:
    """Percentage of beds not available; 0 for an empty group"""
    if total <= 0:
        return 0.0
    return round((1 - available / total) * 100, 2)


class IsolationService:
    """Evaluates, records and clears patient isolation"""

    def __init__(self, db: AsyncSession, context: RequestContext):
        self.db = db
        self.context = context
        self.patient_repo = PatientRepository(db, context.tenant_id)
        self.lab_repo = LabRepository(db, context.tenant_id)
        self.audit = AuditRepository(db, context.tenant_id)

    async def _get_patient(self, patient_id: str) -> Patient:
        patient = await self.patient_repo.get_by_id(patient_id)
        if not patient:
            raise NotFoundError(message="Patient not found", details={"patient_id": patient_id})
        return patient

    async def evaluate_patient(self, patient: Patient, now: Optional[datetime] = None) -> IsolationRequirement:
        """Evaluate a loaded patient.

        Evidence dated before the last isolation clearance is ignored, as is
        the free-text history once isolation has been cleared.
        """
        now = now or datetime.utcnow()
        cleared_at = patient.isolation_end_date

        since = now - POSITIVE_CULTURE_WINDOW
        if cleared_at and cleared_at > since:
            since = cleared_at
        results = await self.lab_repo.get_positive_results_since(patient.id, since)

        diagnoses = [
            (d.code, d.description)
            for d in await self.patient_repo.get_active_diagnoses(patient.id)
            if cleared_at is None or (d.recorded_at is not None and d.recorded_at > cleared_at)
        ]

        return evaluate_isolation(
            ordered_required=bool(patient.isolation_required),
            ordered_type=patient.isolation_type,
            diagnoses=diagnoses,
            positive_organisms=[r.organism for r in results if r.organism],
            medical_history=patient.medical_history if cleared_at is None else None,
        )

    async def evaluate(self, patient_id: str) -> IsolationRequirement:
        patient = await self._get_patient(patient_id)
        return await self.evaluate_patient(patient)

    async def check_isolation(self, patient_id: str) -> IsolationRequirement:
        """Evaluate and record a stricter derived requirement on the patient"""
        patient = await self._get_patient(patient_id)
        requirement = await self.evaluate_patient(patient)

        stricter = (
            requirement.isolation_type is not None
            and (not patient.isolation_required or patient.isolation_type != requirement.isolation_type)
        )
        if stricter:
            previous = patient.isolation_type.value if patient.isolation_type else None
            patient.isolation_required = True
            patient.isolation_type = requirement.isolation_type
            patient.isolation_start_date = patient.isolation_start_date or datetime.utcnow()
            self.audit.record(
                AuditAction.ISOLATION_FLAGGED,
                AuditResource.PATIENT,
                patient.id,
                self.context.user_id,
                {"previous_type": previous, "isolation_type": requirement.isolation_type.value, "reasons": requirement.reasons}
            )
            await self.db.commit()
            logger.info(f"Patient {patient.id} flagged for {requirement.isolation_type.value} isolation")

        return requirement

    async def clear_isolation(self, patient_id: str, reason: Optional[str]) -> Patient:
        if not reason or not reason.strip():
            raise BusinessLogicError(message="Reason is required to clear isolation", error_code="REASON_REQUIRED")

        patient = await self._get_patient(patient_id)
        previous = patient.isolation_type.value if patient.isolation_type else None

        patient.isolation_required = False
        patient.isolation_type = None
        patient.isolation_end_date = datetime.utcnow()

        self.audit.record(
            AuditAction.ISOLATION_CLEARED,
            AuditResource.PATIENT,
            patient.id,
            self.context.user_id,
            {"previous_type": previous, "reason": reason.strip()}
        )
        await self.db.commit()
        logger.info(f"Isolation cleared for patient {patient.id}: {reason.strip()}")
        return patient

    async def get_isolation_room_availability(self, isolation_type: Optional[IsolationType] = None) -> List[Dict[str, Any]]:
        """Per unit and isolation type counts of isolation-capable beds"""
        query = select(Bed).options(selectinload(Bed.unit)).where(
            Bed.tenant_id == self.context.tenant_id,
            Bed.isolation_capable.is_(True)
        )
        if isolation_type is not None:
            query = query.where(Bed.isolation_type == isolation_type)

        result = await self.db.execute(query)
        beds = result.scalars().all()

        groups: Dict[Tuple[str, Optional[IsolationType]], Dict[str, Any]] = {}
        for bed in beds:
            key = (bed.unit_id, bed.isolation_type)
            group = groups.setdefault(key, {
                "unit_id": bed.unit_id,
                "unit_name": bed.unit.name if bed.unit else None,
                "isolation_type": bed.isolation_type.value if bed.isolation_type else None,
                "available_count": 0,
                "occupied_count": 0,
                "total_count": 0,
            })
            group["total_count"] += 1
            if bed.status == BedStatus.AVAILABLE:
                group["available_count"] += 1
            elif bed.status == BedStatus.OCCUPIED:
                group["occupied_count"] += 1

        availability = []
        for group in groups.values():
            group["utilization_rate"] = utilization_rate(group["available_count"], group["total_count"])
            availability.append(group)

        availability.sort(key=lambda g: (g["unit_name"] or "", g["isolation_type"] or ""))
        return availability
