from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class TrialSettings(Base):
    __tablename__ = "trial_settings"

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    product_name = Column(String, nullable=True)
    support_email = Column(String, nullable=True)  # reply-to for nudge emails
    app_url = Column(String, nullable=True)
    trial_length_days = Column(Integer, nullable=False, default=14)

    # Days of inactivity before each nudge
    inactivity_days_nudge1 = Column(Integer, nullable=False, default=2)
    inactivity_days_nudge2 = Column(Integer, nullable=False, default=4)
    inactivity_days_nudge3 = Column(Integer, nullable=False, default=7)

    automation_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="settings")
