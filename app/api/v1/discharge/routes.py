from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from app.api.deps import ensure_feature_enabled, require_context, to_naive_utc
from app.core.exceptions import ValidationError
from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.domain.discharge.service import DischargeReadinessPredictor
from app.domain.features.models import Feature
from app.api.v1.discharge.schemas import (
    BarrierUpdateRequest,
    BatchPredictionRequest,
    DischargeReadinessResponse,
    BatchPredictionResponse,
    BarrierUpdateResponse,
    DischargeReadyResponse,
    DischargeMetricsResponse
)
from app.infrastructure.database import get_db

router = APIRouter(tags=["Discharge Planning"])


@router.get("/discharge-readiness/{patient_id}", response_model=DischargeReadinessResponse)
async def get_discharge_readiness(
    patient_id: str,
    admission_id: Optional[str] = Query(None, alias="admissionId"),
    admission_id_snake: Optional[str] = Query(None, alias="admission_id"),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.DISCHARGE_READ]))
):
    """Readiness scores, barriers and interventions for one admission"""
    await ensure_feature_enabled(db, context, Feature.DISCHARGE_READINESS)
    admission_id = admission_id or admission_id_snake
    if not admission_id:
        raise ValidationError(message="admissionId is required", error_code="ADMISSION_ID_REQUIRED")
    prediction = await DischargeReadinessPredictor(db, context).predict(patient_id, admission_id)
    return {"success": True, "data": prediction}


@router.get("/discharge-ready-patients", response_model=DischargeReadyResponse)
async def get_discharge_ready_patients(
    min_score: Optional[float] = Query(None, alias="minScore", ge=0, le=100),
    min_score_snake: Optional[float] = Query(None, alias="min_score", ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.DISCHARGE_READ]))
):
    """In-house patients whose latest readiness score clears ``minScore``"""
    await ensure_feature_enabled(db, context, Feature.DISCHARGE_READINESS)
    patients = await DischargeReadinessPredictor(db, context).discharge_ready_patients(
        min_score if min_score is not None else min_score_snake
    )
    return {"success": True, "data": patients, "count": len(patients)}


@router.post("/discharge-barriers/{admission_id}", response_model=BarrierUpdateResponse)
async def update_discharge_barrier(
    admission_id: str,
    body: BarrierUpdateRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.DISCHARGE_UPDATE]))
):
    """Resolve or reopen a barrier and recompute readiness"""
    await ensure_feature_enabled(db, context, Feature.DISCHARGE_READINESS)
    result = await DischargeReadinessPredictor(db, context).update_barrier(
        admission_id, body.barrier_id, body.resolved
    )
    return {"success": True, "data": result}


@router.get("/discharge-metrics", response_model=DischargeMetricsResponse)
async def get_discharge_metrics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    start_date_snake: Optional[datetime] = Query(None, alias="start_date"),
    end_date_snake: Optional[datetime] = Query(None, alias="end_date"),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.DISCHARGE_READ]))
):
    await ensure_feature_enabled(db, context, Feature.DISCHARGE_READINESS)
    metrics = await DischargeReadinessPredictor(db, context).discharge_metrics(
        to_naive_utc(start_date or start_date_snake), to_naive_utc(end_date or end_date_snake)
    )
    return {"success": True, "data": metrics}


@router.post("/batch-discharge-predictions", response_model=BatchPredictionResponse)
async def batch_discharge_predictions(
    body: BatchPredictionRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.DISCHARGE_READ]))
):
    """Predict readiness for several admissions; failures are reported per item"""
    await ensure_feature_enabled(db, context, Feature.DISCHARGE_READINESS)
    result = await DischargeReadinessPredictor(db, context).batch(
        [item.model_dump() for item in body.admissions]
    )
    return {"success": True, **result}
