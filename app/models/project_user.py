import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.db.base import Base


class ProjectUser(Base):
    """An end-user of a tenant's product, tracked through their trial."""

    __tablename__ = "project_users"
    __table_args__ = (
        UniqueConstraint("project_id", "external_user_id", name="uq_project_users_project_external"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    external_user_id = Column(String, nullable=False)  # The tenant's own user id
    email = Column(String, nullable=True)

    trial_started_at = Column(DateTime(timezone=True), nullable=True)  # Set once, by the first signup event
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    upgraded_at = Column(DateTime(timezone=True), nullable=True)  # Terminal: no more nudges
    unsubscribed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ProjectUser(id={self.id}, project_id={self.project_id}, external_user_id={self.external_user_id})>"
