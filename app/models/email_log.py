import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from app.db.base import Base


class EmailLog(Base):
    """
    One row per nudge email sent.

    A row for (user_id, email_type) is what stops the sweep from sending that
    nudge again, so rows are never updated or deleted.
    """

    __tablename__ = "email_logs"
    __table_args__ = (
        UniqueConstraint("user_id", "email_type", name="uq_email_logs_user_type"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("project_users.id", ondelete="CASCADE"), nullable=False, index=True)
    email_type = Column(String, nullable=False)  # nudge1 / nudge2 / nudge3
    provider_message_id = Column(String, nullable=True)  # Resend email id
    sent_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
