from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict
from datetime import datetime


class FeatureToggleRequest(BaseModel):
    enabled: bool
    reason: Optional[str] = Field(None, max_length=500)


class FeatureFlagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    feature_name: str
    enabled: bool
    updated_by: Optional[str] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class FeatureListResponse(BaseModel):
    success: bool = True
    features: Dict[str, bool]


class FeatureToggleResponse(BaseModel):
    success: bool = True
    feature: FeatureFlagResponse
