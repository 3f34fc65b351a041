from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from app.api.deps import ensure_feature_enabled, require_context, to_naive_utc
from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.domain.beds.isolation import IsolationService
from app.domain.beds.repository import BedFilter
from app.domain.beds.scoring import BedRequirements
from app.domain.beds.service import BedAssignmentService
from app.domain.beds.status_tracker import BedStatusTracker
from app.domain.features.models import Feature
from app.domain.patients.models import IsolationType
from app.api.v1.beds.schemas import (
    PatientRequest,
    CheckIsolationResponse,
    ClearIsolationRequest,
    BedResponse,
    AvailableBedsResponse,
    IsolationRoomsResponse,
    RecommendBedsRequest,
    RecommendBedsResponse,
    AssignmentRequest,
    AssignBedRequest,
    ValidateAssignmentResponse,
    AssignmentResponse,
    AssignBedResponse,
    UpdateBedStatusRequest,
    UpdateBedStatusResponse,
    HousekeepingAlertRequest,
    SuccessResponse
)
from app.infrastructure.database import get_db

router = APIRouter(tags=["Bed Management"])


# Isolation endpoints
@router.post("/check-isolation", response_model=CheckIsolationResponse)
async def check_isolation(
    body: PatientRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.ISOLATION_READ, Permissions.ISOLATION_MANAGE]))
):
    """Evaluate a patient's isolation requirement"""
    requirement = await IsolationService(db, context).check_isolation(body.patient_id)
    return {"success": True, "requirements": requirement.to_dict()}


@router.post("/clear-isolation/{patient_id}", response_model=SuccessResponse)
async def clear_isolation(
    patient_id: str,
    body: ClearIsolationRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.ISOLATION_MANAGE]))
):
    """Clear a patient's isolation precautions"""
    await IsolationService(db, context).clear_isolation(patient_id, body.reason)
    return {"success": True, "message": "Isolation cleared"}


@router.get("/isolation-rooms", response_model=IsolationRoomsResponse)
async def get_isolation_rooms(
    isolation_type: Optional[IsolationType] = Query(None),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.ISOLATION_READ]))
):
    """Isolation room availability per unit"""
    availability = await IsolationService(db, context).get_isolation_room_availability(isolation_type)
    return {
        "success": True,
        "availability": availability,
        "total_units": len({row["unit_id"] for row in availability}),
    }


# Bed placement endpoints
@router.get("/beds/available", response_model=AvailableBedsResponse)
async def get_available_beds(
    unit_id: Optional[str] = Query(None),
    isolation_type: Optional[IsolationType] = Query(None),
    telemetry: Optional[bool] = Query(None),
    oxygen: Optional[bool] = Query(None),
    bariatric: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ]))
):
    """List available beds"""
    filters = BedFilter(
        unit_id=unit_id,
        isolation_type=isolation_type,
        telemetry=telemetry,
        oxygen=oxygen,
        bariatric=bariatric
    )
    beds = await BedAssignmentService(db, context).get_available_beds(filters)
    return {
        "success": True,
        "beds": [BedResponse.model_validate(bed) for bed in beds],
        "count": len(beds),
    }


@router.post("/recommend-beds", response_model=RecommendBedsResponse)
async def recommend_beds(
    body: RecommendBedsRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.BEDS_ASSIGN]))
):
    """Rank available beds for a patient"""
    await ensure_feature_enabled(db, context, Feature.BED_ASSIGNMENT_OPTIMIZATION)

    requested = BedRequirements(
        isolation_required=body.isolation_required,
        isolation_type=body.isolation_type,
        telemetry_required=body.telemetry_required,
        oxygen_required=body.oxygen_required,
        bariatric_required=body.bariatric_required,
        proximity_to_nurses_station=body.proximity_to_nurses_station,
        required_unit_id=body.required_unit_id
    )
    result = await BedAssignmentService(db, context).recommend_beds(body.patient_id, requested)
    return {
        "success": True,
        "recommendations": [r.to_dict() for r in result.recommendations],
        "count": len(result.recommendations),
        "total_available_beds": result.total_available_beds,
        "excluded_count": len(result.excluded),
        "isolation": result.isolation.to_dict(),
        "generated_at": result.generated_at,
    }


@router.post("/validate-assignment", response_model=ValidateAssignmentResponse)
async def validate_assignment(
    body: AssignmentRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.BEDS_ASSIGN]))
):
    """Check whether a patient may be placed in a bed"""
    validation = await BedAssignmentService(db, context).validate_assignment(body.patient_id, body.bed_id)
    return {"success": True, "validation": validation.to_dict()}


@router.post("/assign-bed", response_model=AssignBedResponse)
async def assign_bed(
    body: AssignBedRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_ASSIGN]))
):
    """Place a patient in a bed"""
    assignment = await BedAssignmentService(db, context).assign_bed(body.patient_id, body.bed_id, body.reasoning)
    return {
        "success": True,
        "assignment": AssignmentResponse.model_validate(assignment),
        "message": "Bed assigned successfully",
    }


@router.post("/assignments/{assignment_id}/release", response_model=AssignBedResponse)
async def release_bed(
    assignment_id: str,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_ASSIGN]))
):
    """Release a bed when its patient leaves"""
    assignment = await BedAssignmentService(db, context).release_bed(assignment_id)
    return {
        "success": True,
        "assignment": AssignmentResponse.model_validate(assignment),
        "message": "Bed released for cleaning",
    }


# Bed status endpoints
@router.get("/status/all")
async def get_all_bed_status(
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.HOUSEKEEPING_READ]))
):
    """Status of every bed"""
    status_view = await BedStatusTracker(db, context).get_bed_status()
    return {"success": True, **status_view}


@router.get("/status/{unit_id}")
async def get_unit_bed_status(
    unit_id: str,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.HOUSEKEEPING_READ]))
):
    """Status of the beds in one unit"""
    status_view = await BedStatusTracker(db, context).get_bed_status(unit_id=unit_id)
    return {"success": True, **status_view}


@router.get("/status-summary")
async def get_status_summary(
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_READ, Permissions.HOUSEKEEPING_READ]))
):
    status_view = await BedStatusTracker(db, context).get_bed_status()
    return {
        "success": True,
        "summary": status_view["summary"],
        "beds_by_unit": status_view["beds_by_unit"],
        "timestamp": status_view["timestamp"],
    }


@router.put("/status/{bed_id}", response_model=UpdateBedStatusResponse)
async def update_bed_status(
    bed_id: str,
    body: UpdateBedStatusRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.BEDS_UPDATE]))
):
    """Move a bed through its housekeeping states"""
    bed = await BedStatusTracker(db, context).update_bed_status(
        bed_id, body.status, cleaning_status=body.cleaning_status, notes=body.notes
    )
    return {"success": True, "bed": BedResponse.model_validate(bed)}


# Housekeeping endpoints
@router.get("/cleaning-priority")
async def get_cleaning_priority(
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.HOUSEKEEPING_READ]))
):
    """Beds waiting for housekeeping, most urgent first"""
    queue = await BedStatusTracker(db, context).get_cleaning_priority_queue()
    return {"success": True, **queue}


@router.post("/alert-housekeeping")
async def alert_housekeeping(
    body: HousekeepingAlertRequest,
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.HOUSEKEEPING_ALERT]))
):
    alert = await BedStatusTracker(db, context).alert_housekeeping(body.bed_id, body.priority, body.reason)
    return {"success": True, "message": "Housekeeping alerted", **alert}


@router.get("/turnover-metrics")
async def get_turnover_metrics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(require_context([Permissions.HOUSEKEEPING_READ, Permissions.BEDS_READ]))
):
    """Bed turnover statistics for a date range"""
    metrics = await BedStatusTracker(db, context).get_turnover_metrics(
        to_naive_utc(start_date), to_naive_utc(end_date)
    )
    return {"success": True, "metrics": metrics}
