"""
Raw lifecycle events as received from a tenant's product, kept for audit.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import Column, String, JSON, ForeignKey, DateTime
from app.db.base import Base


class EventType(str, Enum):
    """Lifecycle events a tenant can report for one of its users."""
    USER_SIGNED_UP = "user_signed_up"  # Starts the trial
    USER_ACTIVITY = "user_activity"  # Any meaningful use of the product
    USER_UPGRADED = "user_upgraded"  # Converted to paid; ends nudging


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("project_users.id", ondelete="SET NULL"), nullable=True, index=True)
    external_user_id = Column(String, nullable=False)
    event_type = Column(String(50), nullable=False, index=True)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return f"<Event(id={self.id}, type={self.event_type}, project_id={self.project_id})>"
