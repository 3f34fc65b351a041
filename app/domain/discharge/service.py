"""
Discharge Readiness Service Layer

Gathers what is documented about an admission, keeps its barrier list in
step with the current conditions and stores the latest prediction.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DischargePolicy, settings
from app.core.exceptions import BaseCustomException, BusinessLogicError, NotFoundError
from app.core.tenant import RequestContext
from app.domain.audit.models import AuditAction, AuditResource
from app.domain.audit.repository import AuditRepository
from app.domain.discharge.models import (
    Admission, BarrierCategory, DischargeBarrier, DischargePrediction, ResolutionSource
)
from app.domain.discharge.readiness import (
    BARRIER_CATALOG, BarrierState, ReadinessInputs, VitalsSnapshot, confidence_level,
    data_completeness, detect_barriers, intervention_for, predict_discharge_date, score_readiness
)
from app.domain.discharge.repository import (
    AdmissionRepository, BarrierRepository, PredictionRepository
)
from app.domain.lab.repository import LabRepository


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _barrier_to_dict(barrier: DischargeBarrier) -> Dict[str, Any]:
    return {
        "barrier_id": barrier.id,
        "barrier_key": barrier.barrier_key,
        "category": barrier.category.value,
        "description": barrier.description,
        "severity": barrier.severity.value,
        "estimated_delay_hours": barrier.estimated_delay_hours,
        "identified_at": barrier.identified_at,
        "resolved": barrier.resolved,
        "resolved_at": barrier.resolved_at,
        "resolved_by": barrier.resolved_by,
    }


class DischargeReadinessPredictor:
    """Service layer for discharge readiness"""

    def __init__(self, db: AsyncSession, context: RequestContext, policy: Optional[DischargePolicy] = None):
        self.db = db
        self.context = context
        self.policy = policy or settings.DISCHARGE
        self.admission_repo = AdmissionRepository(db, context.tenant_id)
        self.barrier_repo = BarrierRepository(db, context.tenant_id)
        self.prediction_repo = PredictionRepository(db, context.tenant_id)
        self.lab_repo = LabRepository(db, context.tenant_id)
        self.audit = AuditRepository(db, context.tenant_id)

    async def _get_admission(self, patient_id: str, admission_id: str) -> Admission:
        admission = await self.admission_repo.get_by_id(admission_id)
        if not admission or admission.patient_id != patient_id:
            raise NotFoundError(
                message="Admission not found for patient",
                details={"patient_id": patient_id, "admission_id": admission_id}
            )
        return admission

    async def gather_inputs(self, admission: Admission, now: datetime) -> ReadinessInputs:
        vitals = await self.admission_repo.get_latest_vitals(admission.patient_id)
        completed, total_items = await self.admission_repo.get_completed_planning_counts(admission.id)

        snapshot = None
        recent = False
        if vitals is not None:
            snapshot = VitalsSnapshot(
                temperature=vitals.temperature,
                heart_rate=vitals.heart_rate,
                systolic=vitals.blood_pressure_systolic,
            )
            recent = vitals.recorded_at >= now - timedelta(hours=self.policy.vitals_window_hours)

        return ReadinessInputs(
            latest_vitals=snapshot if recent else None,
            has_recent_vitals=recent,
            pending_lab_count=await self.lab_repo.count_pending_orders(admission.patient_id),
            monitored_medication_count=len(admission.monitored_medications or []),
            mobility_status=admission.mobility_status,
            pain_level=admission.pain_level,
            discharge_destination=admission.discharge_destination,
            completed_items=completed,
            has_planning_items=total_items > 0,
            pending_equipment_count=await self.admission_repo.count_pending_equipment(admission.id),
        )

    async def sync_barriers(self, admission: Admission, inputs: ReadinessInputs, now: datetime) -> List[DischargeBarrier]:
        """Upsert barriers by key against the conditions present right now.

        Manually resolved barriers are left alone; auto-resolved ones reopen
        when their condition comes back.
        """
        present = detect_barriers(inputs)
        existing = {b.barrier_key: b for b in await self.barrier_repo.list_for_admission(admission.id)}

        for key, description in present.items():
            spec = BARRIER_CATALOG[key]
            barrier = existing.get(key)
            if barrier is None:
                existing[key] = self.barrier_repo.add({
                    "admission_id": admission.id,
                    "barrier_key": key,
                    "category": spec.category,
                    "description": description,
                    "severity": spec.severity,
                    "estimated_delay_hours": spec.delay_hours,
                    "identified_at": now,
                    "resolved": False,
                })
                continue
            if barrier.resolved and barrier.resolution_source == ResolutionSource.MANUAL:
                continue
            barrier.description = description
            if barrier.resolved:
                barrier.resolved = False
                barrier.resolved_at = None
                barrier.resolved_by = None
                barrier.resolution_source = None

        for key, barrier in existing.items():
            if key in BARRIER_CATALOG and key not in present and not barrier.resolved:
                barrier.resolved = True
                barrier.resolved_at = now
                barrier.resolution_source = ResolutionSource.AUTO

        await self.db.flush()
        return sorted(existing.values(), key=lambda b: (b.identified_at, b.barrier_key))

    async def predict(self, patient_id: str, admission_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        admission = await self._get_admission(patient_id, admission_id)

        inputs = await self.gather_inputs(admission, now)
        barriers = await self.sync_barriers(admission, inputs, now)
        states = [
            BarrierState(
                key=b.barrier_key,
                category=b.category,
                severity=b.severity,
                estimated_delay_hours=b.estimated_delay_hours,
                resolved=b.resolved,
            )
            for b in barriers
        ]

        scores = score_readiness(inputs, states, self.policy)
        completeness = data_completeness(inputs)
        confidence = confidence_level(completeness, self.policy)
        predicted_date = predict_discharge_date(now, scores.overall, states)
        interventions = [
            intervention_for(b.id, b.barrier_key, b.description, b.severity)
            for b in barriers if not b.resolved
        ]

        prediction = await self.prediction_repo.get_for_admission(admission.id)
        if prediction is None:
            prediction = DischargePrediction(
                tenant_id=self.context.tenant_id,
                admission_id=admission.id,
                patient_id=patient_id,
            )
            self.db.add(prediction)
        prediction.medical_readiness_score = scores.medical
        prediction.social_readiness_score = scores.social
        prediction.overall_readiness_score = scores.overall
        prediction.confidence_level = confidence
        prediction.predicted_discharge_date = predicted_date
        prediction.recommended_interventions = interventions
        prediction.computed_at = now

        await self.db.commit()
        logger.info(
            f"Discharge readiness for admission {admission.id}: overall {scores.overall} "
            f"({confidence.value} confidence, {len(interventions)} open barriers)"
        )

        return {
            "patient_id": patient_id,
            "admission_id": admission.id,
            "medical_readiness_score": scores.medical,
            "social_readiness_score": scores.social,
            "overall_readiness_score": scores.overall,
            "confidence_level": confidence.value,
            "data_completeness": completeness,
            "predicted_discharge_date": predicted_date,
            "barriers": [_barrier_to_dict(b) for b in barriers],
            "recommended_interventions": interventions,
            "computed_at": now,
        }

    async def batch(self, items: List[Dict[str, str]]) -> Dict[str, Any]:
        """Predict for many admissions; one failing item never fails the rest"""
        data = []
        errors = []
        for item in items:
            patient_id = item.get("patient_id")
            admission_id = item.get("admission_id")
            try:
                if not patient_id or not admission_id:
                    raise BusinessLogicError(
                        message="patient_id and admission_id are required",
                        error_code="INVALID_BATCH_ITEM"
                    )
                data.append(await self.predict(patient_id, admission_id))
            except BaseCustomException as e:
                await self.db.rollback()
                logger.warning(f"Batch discharge prediction failed for admission {admission_id}: {e.message}")
                errors.append({
                    "patient_id": patient_id,
                    "admission_id": admission_id,
                    "error": e.message,
                    "error_code": e.error_code,
                })

        return {
            "data": data,
            "errors": errors,
            "summary": {"total": len(items), "successful": len(data), "failed": len(errors)},
        }

    async def update_barrier(self, admission_id: str, barrier_id: str, resolved: bool) -> Dict[str, Any]:
        admission = await self.admission_repo.get_by_id(admission_id)
        if not admission:
            raise NotFoundError(message="Admission not found", details={"admission_id": admission_id})
        barrier = await self.barrier_repo.get(admission_id, barrier_id)
        if not barrier:
            raise NotFoundError(
                message="Discharge barrier not found",
                details={"admission_id": admission_id, "barrier_id": barrier_id}
            )

        now = datetime.utcnow()
        barrier.resolved = resolved
        if resolved:
            barrier.resolved_at = now
            barrier.resolved_by = self.context.user_id
            barrier.resolution_source = ResolutionSource.MANUAL
        else:
            barrier.resolved_at = None
            barrier.resolved_by = None
            barrier.resolution_source = None

        self.audit.record(
            AuditAction.DISCHARGE_BARRIER_UPDATED,
            AuditResource.DISCHARGE_BARRIER,
            barrier.id,
            self.context.user_id,
            {"admission_id": admission_id, "barrier_key": barrier.barrier_key, "resolved": resolved}
        )
        await self.db.flush()
        logger.info(f"Barrier {barrier.barrier_key} on admission {admission_id} marked resolved={resolved}")

        prediction = await self.predict(admission.patient_id, admission_id, now)
        return {"barrier": _barrier_to_dict(barrier), "prediction": prediction}

    async def discharge_ready_patients(self, min_score: Optional[float] = None) -> List[Dict[str, Any]]:
        if min_score is None:
            min_score = self.policy.default_min_score
        rows = await self.prediction_repo.list_ready(min_score)
        open_counts = await self.barrier_repo.count_open_by_admission([a.id for _, a, _ in rows])

        return [
            {
                "patient_id": patient.id,
                "patient_name": patient.full_name,
                "medical_record_number": patient.medical_record_number,
                "admission_id": admission.id,
                "bed_id": admission.bed_id,
                "overall_readiness_score": prediction.overall_readiness_score,
                "confidence_level": prediction.confidence_level.value,
                "predicted_discharge_date": prediction.predicted_discharge_date,
                "open_barriers": open_counts.get(admission.id, 0),
                "computed_at": prediction.computed_at,
            }
            for prediction, admission, patient in rows
        ]

    async def discharge_metrics(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
        end = end or datetime.utcnow()
        start = start or end - timedelta(days=self.policy.default_metrics_window_days)
        if start > end:
            raise BusinessLogicError(
                message="start_date must not be after end_date",
                details={"start_date": start.isoformat(), "end_date": end.isoformat()},
                error_code="INVALID_DATE_RANGE"
            )

        admissions = await self.admission_repo.list_discharged_between(start, end)
        ids = [a.id for a in admissions]
        predictions = await self.prediction_repo.get_for_admissions(ids)
        barriers = await self.barrier_repo.list_for_admissions(ids)

        los_hours = [
            _hours_between(a.admission_date, a.discharge_date)
            for a in admissions if a.admission_date and a.discharge_date
        ]
        delays = []
        for admission in admissions:
            prediction = predictions.get(admission.id)
            if prediction and admission.discharge_date > prediction.predicted_discharge_date:
                delays.append(_hours_between(prediction.predicted_discharge_date, admission.discharge_date))

        by_category = {category.value: 0 for category in BarrierCategory}
        for barrier in barriers:
            by_category[barrier.category.value] += 1
        resolved = sum(1 for b in barriers if b.resolved)

        return {
            "total_discharges": len(admissions),
            "average_los_hours": round(sum(los_hours) / len(los_hours), 2) if los_hours else None,
            "delayed_discharges": len(delays),
            "average_delay_hours": round(sum(delays) / len(delays), 2) if delays else None,
            "barriers_by_category": by_category,
            "barrier_resolution_rate": round(resolved / len(barriers) * 100, 2) if barriers else 0.0,
            "period": {"start_date": start, "end_date": end},
        }
