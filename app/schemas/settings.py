from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt
from typing import Annotated, Literal, Optional
from datetime import datetime
from app.core.trial_defaults import MIN_DAYS, MAX_DAYS

Days = Annotated[StrictInt, Field(ge=MIN_DAYS, le=MAX_DAYS)]


class TrialSettingsResponse(BaseModel):
    project_id: str
    product_name: Optional[str] = None
    support_email: Optional[str] = None
    app_url: Optional[str] = None
    trial_length_days: int
    inactivity_days_nudge1: int
    inactivity_days_nudge2: int
    inactivity_days_nudge3: int
    automation_enabled: bool
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TrialSettingsUpdate(BaseModel):
    """Partial update: only the fields present in the request are written."""
    project_id: str = Field(..., min_length=1)
    product_name: Optional[str] = None
    support_email: Optional[str] = None
    app_url: Optional[str] = None
    trial_length_days: Optional[Days] = None
    inactivity_days_nudge1: Optional[Days] = None
    inactivity_days_nudge2: Optional[Days] = None
    inactivity_days_nudge3: Optional[Days] = None
    automation_enabled: Optional[StrictBool] = None


class BillingResponse(BaseModel):
    id: str
    billing_status: str
    billing_plan: Optional[str] = None
    billing_updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BillingUpdate(BaseModel):
    project_id: str = Field(..., min_length=1)
    billing_status: Optional[Literal["active", "inactive", "cancelled"]] = None
    billing_plan: Optional[str] = None
