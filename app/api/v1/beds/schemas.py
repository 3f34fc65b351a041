from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.domain.beds.models import AssignmentStatus, BedStatus, CleaningStatus, CleaningPriority
from app.domain.patients.models import IsolationType


class PatientRequest(BaseModel):
    """Request body naming a single patient"""
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., min_length=1, validation_alias=AliasChoices("patient_id", "patientId"))


class IsolationRequirementResponse(BaseModel):
    isolation_required: bool
    isolation_type: Optional[IsolationType] = None
    reasons: List[str] = []
    ppe_requirements: List[str] = []
    requires_negative_pressure: bool = False
    requires_positive_pressure: bool = False
    requires_anteroom: bool = False


class CheckIsolationResponse(BaseModel):
    success: bool = True
    requirements: IsolationRequirementResponse


class ClearIsolationRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class UnitSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    unit_type: Optional[str] = None
    floor: Optional[int] = None


class BedResponse(BaseModel):
    """Bed as returned by listing and update endpoints"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    bed_number: str
    unit_id: str
    unit: Optional[UnitSummary] = None
    status: BedStatus
    cleaning_status: CleaningStatus
    cleaning_priority: CleaningPriority
    terminal_clean_required: bool
    isolation_capable: bool
    isolation_type: Optional[IsolationType] = None
    has_telemetry: bool
    has_oxygen: bool
    is_bariatric: bool
    distance_to_nurses_station: Optional[int] = None
    current_patient_id: Optional[str] = None
    occupied_at: Optional[datetime] = None
    cleaning_started_at: Optional[datetime] = None
    available_at: Optional[datetime] = None
    last_cleaned_at: Optional[datetime] = None
    notes: Optional[str] = None


class AvailableBedsResponse(BaseModel):
    success: bool = True
    beds: List[BedResponse]
    count: int


class IsolationRoomAvailability(BaseModel):
    unit_id: str
    unit_name: Optional[str] = None
    isolation_type: Optional[IsolationType] = None
    available_count: int
    occupied_count: int
    total_count: int
    utilization_rate: float


class IsolationRoomsResponse(BaseModel):
    success: bool = True
    availability: List[IsolationRoomAvailability]
    total_units: int


class RecommendBedsRequest(BaseModel):
    """Patient needs for a bed recommendation"""
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., min_length=1, validation_alias=AliasChoices("patient_id", "patientId"))
    isolation_required: bool = False
    isolation_type: Optional[IsolationType] = None
    telemetry_required: bool = False
    oxygen_required: bool = False
    bariatric_required: bool = False
    proximity_to_nurses_station: bool = False
    required_unit_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("required_unit_id", "preferred_unit_id")
    )


class BedRecommendationResponse(BaseModel):
    bed_id: str
    bed_number: str
    unit_id: str
    unit_name: Optional[str] = None
    score: float
    confidence: str
    reasoning: str
    warnings: List[str] = []


class RecommendBedsResponse(BaseModel):
    success: bool = True
    recommendations: List[BedRecommendationResponse]
    count: int
    total_available_beds: int
    excluded_count: int
    isolation: IsolationRequirementResponse
    generated_at: datetime


class AssignmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., min_length=1, validation_alias=AliasChoices("patient_id", "patientId"))
    bed_id: str = Field(..., min_length=1, validation_alias=AliasChoices("bed_id", "bedId"))


class AssignBedRequest(AssignmentRequest):
    reasoning: Optional[str] = Field(None, max_length=1000)


class ValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None


class ValidateAssignmentResponse(BaseModel):
    success: bool = True
    validation: ValidationResult


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    bed_id: str
    assigned_at: datetime
    assigned_by: Optional[str] = None
    reasoning: Optional[str] = None
    status: AssignmentStatus
    isolation_type: Optional[IsolationType] = None
    released_at: Optional[datetime] = None


class AssignBedResponse(BaseModel):
    success: bool = True
    assignment: AssignmentResponse
    message: str


class UpdateBedStatusRequest(BaseModel):
    status: BedStatus
    cleaning_status: Optional[CleaningStatus] = None
    notes: Optional[str] = Field(None, max_length=1000)


class UpdateBedStatusResponse(BaseModel):
    success: bool = True
    bed: BedResponse


class HousekeepingAlertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bed_id: str = Field(..., min_length=1, validation_alias=AliasChoices("bed_id", "bedId"))
    priority: CleaningPriority = CleaningPriority.NORMAL
    reason: str = Field(..., min_length=1, max_length=500)


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
