"""
Bed Assignment Service Layer

Business logic for finding, recommending, validating and committing bed
placements, and for releasing a bed when the patient leaves it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BedScoringPolicy, settings
from app.core.exceptions import (
    BusinessLogicError, ConflictError, NotFoundError, handle_database_error
)
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditRepository
from app.domain.beds.isolation import (
    IsolationRequirement, IsolationService, isolation_rejection, most_restrictive
)
from app.domain.beds.models import (
    Bed, BedAssignment, BedStatus, AssignmentStatus, CleaningStatus
)
from app.domain.beds.repository import AssignmentRepository, BedFilter, BedRepository
from app.domain.beds.scoring import (
    BedCandidate, BedExclusion, BedRecommendation, BedRequirements, natural_key, rank_beds
)
from app.domain.discharge.models import Admission, AdmissionStatus
from app.domain.patients.models import Patient
from app.domain.patients.repository import PatientRepository


@dataclass
class AssignmentValidation:
    valid: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "reason": self.reason}


@dataclass
class RecommendationResult:
    recommendations: List[BedRecommendation]
    excluded: List[BedExclusion]
    total_available_beds: int
    isolation: IsolationRequirement
    generated_at: datetime


def bed_conflict(bed_id: str, reason: Optional[str] = None) -> ConflictError:
    details = {"bed_id": bed_id}
    if reason:
        details["reason"] = reason
    return ConflictError(message="Bed is no longer available", details=details, error_code="BED_CONFLICT")


def patient_conflict(patient_id: str, bed_id: str) -> ConflictError:
    return ConflictError(
        message="Patient already holds an active bed assignment",
        details={"patient_id": patient_id, "bed_id": bed_id},
        error_code="PATIENT_ALREADY_ASSIGNED"
    )


def merge_isolation(requested: BedRequirements, evaluated: IsolationRequirement) -> BedRequirements:
    """Never let a request downgrade the patient's documented isolation"""
    required = requested.isolation_required or evaluated.isolation_required
    types = [evaluated.isolation_type]
    if requested.isolation_required:
        types.append(requested.isolation_type)
    return BedRequirements(
        isolation_required=required,
        isolation_type=most_restrictive(types) if required else None,
        telemetry_required=requested.telemetry_required,
        oxygen_required=requested.oxygen_required,
        bariatric_required=requested.bariatric_required,
        proximity_to_nurses_station=requested.proximity_to_nurses_station,
        required_unit_id=requested.required_unit_id,
    )


class BedAssignmentService:
    """Service layer for bed placement"""

    def __init__(self, db: AsyncSession, context: RequestContext, policy: Optional[BedScoringPolicy] = None):
        self.db = db
        self.context = context
        self.policy = policy or settings.BED_SCORING
        self.bed_repo = BedRepository(db, context.tenant_id)
        self.assignment_repo = AssignmentRepository(db, context.tenant_id)
        self.patient_repo = PatientRepository(db, context.tenant_id)
        self.isolation = IsolationService(db, context)
        self.audit = AuditRepository(db, context.tenant_id)

    async def get_available_beds(self, filters: Optional[BedFilter] = None) -> List[Bed]:
        beds = await self.bed_repo.list_available(filters)
        beds.sort(key=lambda b: ((b.unit.name if b.unit else ""), natural_key(b.bed_number)))
        return beds

    async def recommend_beds(self, patient_id: str, requested: BedRequirements) -> RecommendationResult:
        patient = await self.patient_repo.get_by_id(patient_id)
        if not patient:
            raise NotFoundError(message="Patient not found", details={"patient_id": patient_id})

        evaluated = await self.isolation.evaluate_patient(patient)
        requirements = merge_isolation(requested, evaluated)

        beds = await self.bed_repo.list_available()
        candidates = [BedCandidate.from_bed(bed) for bed in beds]
        recommendations, excluded = rank_beds(
            candidates, requirements, self.policy, limit=self.policy.max_recommendations
        )

        logger.info(
            f"Recommended {len(recommendations)} of {len(candidates)} available beds "
            f"for patient {patient_id} ({len(excluded)} excluded)"
        )
        return RecommendationResult(
            recommendations=recommendations,
            excluded=excluded,
            total_available_beds=len(candidates),
            isolation=evaluated,
            generated_at=datetime.utcnow(),
        )

    async def _check(self, patient: Optional[Patient], bed: Optional[Bed]) -> Tuple[Optional[str], Optional[IsolationRequirement]]:
        if patient is None:
            return "Patient not found", None
        if bed is None:
            return "Bed not found", None
        if bed.status != BedStatus.AVAILABLE:
            return f"Bed is not available (status: {bed.status.value})", None
        if await self.assignment_repo.get_active_for_bed(bed.id):
            return "Bed already has an active assignment", None
        if patient.current_bed_id or await self.assignment_repo.get_active_for_patient(patient.id):
            return "Patient is already assigned to a bed", None

        requirement = await self.isolation.evaluate_patient(patient)
        reason = isolation_rejection(requirement, bed)
        return reason, requirement

    async def validate_assignment(self, patient_id: str, bed_id: str) -> AssignmentValidation:
        """Re-check hard constraints for a (patient, bed) pair; fails closed"""
        patient = await self.patient_repo.get_by_id(patient_id)
        bed = await self.bed_repo.get_by_id(bed_id)
        reason, _ = await self._check(patient, bed)
        return AssignmentValidation(valid=reason is None, reason=reason)

    async def assign_bed(self, patient_id: str, bed_id: str, reasoning: Optional[str] = None) -> BedAssignment:
        patient = await self.patient_repo.get_by_id(patient_id)
        bed = await self.bed_repo.get_by_id(bed_id)
        reason, requirement = await self._check(patient, bed)
        if reason and patient is not None and bed is not None and bed.status == BedStatus.OCCUPIED:
            raise bed_conflict(bed_id, reason)
        if reason:
            raise BusinessLogicError(
                message="Invalid bed assignment",
                details={"reason": reason, "patient_id": patient_id, "bed_id": bed_id},
                error_code="INVALID_BED_ASSIGNMENT"
            )

        now = datetime.utcnow()
        try:
            claimed = await self.bed_repo.claim_for_patient(bed_id, patient_id, now)
            if not claimed:
                await self.db.rollback()
                logger.warning(f"Bed {bed_id} was taken before patient {patient_id} could be assigned")
                raise bed_conflict(bed_id)

            assignment = self.assignment_repo.add({
                "patient_id": patient_id,
                "bed_id": bed_id,
                "assigned_at": now,
                "assigned_by": self.context.user_id,
                "reasoning": reasoning,
                "status": AssignmentStatus.ACTIVE,
                "isolation_type": requirement.isolation_type if requirement.isolation_required else None,
            })
            patient.current_bed_id = bed_id

            admission = await self._active_admission(patient_id)
            if admission is not None:
                admission.bed_id = bed_id

            await self.db.flush()
            self.audit.record(
                AuditAction.BED_ASSIGNED,
                AuditResource.BED_ASSIGNMENT,
                assignment.id,
                self.context.user_id,
                {"patient_id": patient_id, "bed_id": bed_id, "reasoning": reasoning}
            )
            await self.db.commit()

        except IntegrityError as e:
            await self.db.rollback()
            if "patient_id" in str(e.orig) or "active_patient" in str(e.orig):
                logger.warning(f"Patient {patient_id} was assigned elsewhere concurrently: {e.orig}")
                raise patient_conflict(patient_id, bed_id)
            logger.warning(f"Concurrent assignment detected for bed {bed_id}: {e}")
            raise bed_conflict(bed_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise handle_database_error(e, "bed assignment")

        await self.db.refresh(bed)
        logger.info(f"Patient {patient_id} assigned to bed {bed.bed_number}")
        return assignment

    async def release_bed(self, assignment_id: str) -> BedAssignment:
        """Close an active assignment and send the bed to housekeeping"""
        assignment = await self.assignment_repo.get_by_id(assignment_id)
        if not assignment:
            raise NotFoundError(message="Assignment not found", details={"assignment_id": assignment_id})
        if assignment.status != AssignmentStatus.ACTIVE:
            raise BusinessLogicError(
                message="Assignment is not active",
                details={"assignment_id": assignment_id, "status": assignment.status.value},
                error_code="ASSIGNMENT_NOT_ACTIVE"
            )

        now = datetime.utcnow()
        bed = await self.bed_repo.get_by_id(assignment.bed_id)
        patient = await self.patient_repo.get_by_id(assignment.patient_id)

        assignment.status = AssignmentStatus.DISCHARGED
        assignment.released_at = now
        assignment.released_by = self.context.user_id

        bed.status = BedStatus.CLEANING
        bed.cleaning_status = CleaningStatus.DIRTY
        bed.cleaning_started_at = now
        bed.current_patient_id = None
        bed.terminal_clean_required = assignment.isolation_type is not None

        if patient is not None and patient.current_bed_id == bed.id:
            patient.current_bed_id = None

        admission = await self._active_admission(assignment.patient_id)
        if admission is not None:
            admission.status = AdmissionStatus.DISCHARGED
            admission.discharge_date = now

        self.audit.record(
            AuditAction.BED_RELEASED,
            AuditResource.BED_ASSIGNMENT,
            assignment.id,
            self.context.user_id,
            {"bed_id": bed.id, "patient_id": assignment.patient_id, "terminal_clean": bed.terminal_clean_required}
        )
        await self.db.commit()
        logger.info(f"Bed {bed.bed_number} released from assignment {assignment.id}")
        return assignment

    async def _active_admission(self, patient_id: str) -> Optional[Admission]:
        result = await self.db.execute(
            select(Admission).where(
                Admission.tenant_id == self.context.tenant_id,
                Admission.patient_id == patient_id,
                Admission.status == AdmissionStatus.ACTIVE
            ).order_by(Admission.admission_date.desc())
        )
        return result.scalars().first()
