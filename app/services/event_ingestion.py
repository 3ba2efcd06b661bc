"""
Apply lifecycle events from a tenant's product to the project_users table.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.event import Event, EventType
from app.models.project import Project
from app.models.project_user import ProjectUser
from app.schemas.events import EventIn
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


def _later(current: Optional[datetime], candidate: datetime) -> datetime:
    if current is None or as_utc(candidate) > as_utc(current):
        return candidate
    return current


def apply_event(user: ProjectUser, event: EventIn, occurred_at: datetime) -> None:
    """Update one user's trial timestamps for a single event."""
    if event.email:
        user.email = str(event.email).lower()

    if event.event_type == EventType.USER_SIGNED_UP:
        # Replayed signups must not restart the trial
        if user.trial_started_at is None:
            user.trial_started_at = occurred_at
        user.last_activity_at = _later(user.last_activity_at, occurred_at)
    elif event.event_type == EventType.USER_ACTIVITY:
        user.last_activity_at = _later(user.last_activity_at, occurred_at)
    elif event.event_type == EventType.USER_UPGRADED:
        if user.upgraded_at is None:
            user.upgraded_at = occurred_at


def _find_user(db: Session, project_id: str, external_user_id: str) -> Optional[ProjectUser]:
    return db.query(ProjectUser).filter(
        ProjectUser.project_id == project_id,
        ProjectUser.external_user_id == external_user_id,
    ).first()


def upsert_project_user(db: Session, project: Project, event: EventIn, occurred_at: datetime) -> ProjectUser:
    """
    Insert or update the ProjectUser for (project, external_user_id).

    A unique-key collision means another request inserted the same user
    between our lookup and commit; the event is then re-applied to that row.
    """
    user = _find_user(db, project.id, event.external_user_id)
    if user is None:
        user = ProjectUser(project_id=project.id, external_user_id=event.external_user_id, unsubscribed=False)
        db.add(user)
    apply_event(user, event, occurred_at)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "[Events] Concurrent insert for project %s user %s, retrying as update",
            project.id,
            event.external_user_id,
        )
        user = _find_user(db, project.id, event.external_user_id)
        if user is None:
            raise
        apply_event(user, event, occurred_at)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(user)
    return user


def record_event_row(db: Session, project: Project, user: ProjectUser, event: EventIn, occurred_at: datetime) -> bool:
    """Append the raw event for audit. Best-effort: returns False instead of raising."""
    try:
        db.add(Event(
            project_id=project.id,
            user_id=user.id,
            external_user_id=event.external_user_id,
            event_type=event.event_type.value,
            data=event.data,
            created_at=occurred_at,
        ))
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Events] Failed to insert event row for project %s", project.id)
        return False


def ingest_event(db: Session, project: Project, event: EventIn) -> ProjectUser:
    occurred_at = as_utc(event.timestamp) if event.timestamp else utcnow()
    user = upsert_project_user(db, project, event, occurred_at)
    record_event_row(db, project, user, event, occurred_at)
    return user
