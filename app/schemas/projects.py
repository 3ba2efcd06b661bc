from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime


class ProjectResponse(BaseModel):
    project_id: str
    name: str
    api_key: str


class BootstrapProjectRequest(BaseModel):
    project_name: str = Field(..., min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class BootstrapProjectResponse(BaseModel):
    project_id: str
    api_key: str
    warning: Optional[str] = None


class OwnerEmailRequest(BaseModel):
    project_id: str = Field(..., min_length=1)
    email: EmailStr


class ApiKeyResponse(BaseModel):
    api_key: str


class LastEventResponse(BaseModel):
    last_event_at: Optional[datetime] = None


class DashboardSummaryResponse(BaseModel):
    trials_last_30: int
    nudged_users: int
    upgrades_from_rescued: int


class CheckoutResponse(BaseModel):
    checkout_url: str
