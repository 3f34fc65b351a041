from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime


class BarrierUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    barrier_id: str = Field(..., min_length=1, validation_alias=AliasChoices("barrier_id", "barrierId"))
    resolved: bool


class BatchPredictionItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: Optional[str] = Field(None, validation_alias=AliasChoices("patient_id", "patientId"))
    admission_id: Optional[str] = Field(None, validation_alias=AliasChoices("admission_id", "admissionId"))


class BatchPredictionRequest(BaseModel):
    admissions: List[BatchPredictionItem] = Field(..., max_length=200)


class BarrierResponse(BaseModel):
    barrier_id: str
    barrier_key: str
    category: str
    description: str
    severity: str
    estimated_delay_hours: int
    identified_at: datetime
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class InterventionResponse(BaseModel):
    barrier_id: str
    type: str
    description: str
    priority: str
    assigned_to: str


class DischargePredictionResponse(BaseModel):
    patient_id: str
    admission_id: str
    medical_readiness_score: float
    social_readiness_score: float
    overall_readiness_score: float
    confidence_level: str
    data_completeness: float
    predicted_discharge_date: datetime
    barriers: List[BarrierResponse]
    recommended_interventions: List[InterventionResponse]
    computed_at: datetime


class DischargeReadinessResponse(BaseModel):
    success: bool = True
    data: DischargePredictionResponse


class BatchError(BaseModel):
    patient_id: Optional[str] = None
    admission_id: Optional[str] = None
    error: str
    error_code: Optional[str] = None


class BatchSummary(BaseModel):
    total: int
    successful: int
    failed: int


class BatchPredictionResponse(BaseModel):
    success: bool = True
    data: List[DischargePredictionResponse]
    errors: List[BatchError]
    summary: BatchSummary


class BarrierUpdateData(BaseModel):
    barrier: BarrierResponse
    prediction: DischargePredictionResponse


class BarrierUpdateResponse(BaseModel):
    success: bool = True
    data: BarrierUpdateData


class DischargeReadyPatient(BaseModel):
    patient_id: str
    patient_name: str
    medical_record_number: Optional[str] = None
    admission_id: str
    bed_id: Optional[str] = None
    overall_readiness_score: float
    confidence_level: str
    predicted_discharge_date: datetime
    open_barriers: int
    computed_at: datetime


class DischargeReadyResponse(BaseModel):
    success: bool = True
    data: List[DischargeReadyPatient]
    count: int


class DischargeMetricsResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]
