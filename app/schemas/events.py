from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Any, Dict, Optional, Union
from datetime import datetime
from app.models.event import EventType


class EventIn(BaseModel):
    event_type: EventType
    external_user_id: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    data: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None  # When the event happened; defaults to receipt time

    @field_validator("external_user_id", mode="before")
    @classmethod
    def _stringify_user_id(cls, value: Union[str, int, None]):
        # Tenants frequently send numeric primary keys
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def _email_required_for_signup(self):
        if self.event_type == EventType.USER_SIGNED_UP and not self.email:
            raise ValueError("email is required for user_signed_up events")
        return self


class EventAccepted(BaseModel):
    ok: bool = True
