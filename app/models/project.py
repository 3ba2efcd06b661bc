import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.trial_defaults import BILLING_INACTIVE
from app.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """A tenant: one founder's SaaS product sending events to TrialRescue."""

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    api_key = Column(String, unique=True, index=True, nullable=False)
    owner_user_id = Column(String, index=True, nullable=True)  # Supabase auth user id (sub claim)
    owner_email = Column(String, index=True, nullable=True)  # Matched against Dodo customer email

    # Billing is only changed by the Dodo webhook or the manual billing PATCH
    billing_status = Column(String, nullable=False, default=BILLING_INACTIVE)
    billing_plan = Column(String, nullable=True)
    billing_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    settings = relationship("TrialSettings", back_populates="project", uselist=False, cascade="all, delete-orphan")
