"""
Project provisioning and lookups shared by the dashboard and ingestion routes.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.trial_defaults import DEFAULT_PROJECT_NAME, DEFAULT_TRIAL_SETTINGS
from app.models.project import Project
from app.models.trial_settings import TrialSettings
from app.utils.api_keys import generate_api_key

logger = logging.getLogger(__name__)


def get_project_by_api_key(db: Session, api_key: str) -> Optional[Project]:
    return db.query(Project).filter(Project.api_key == api_key).first()


def get_oldest_project_for_owner(db: Session, owner_user_id: str) -> Optional[Project]:
    return (
        db.query(Project)
        .filter(Project.owner_user_id == owner_user_id)
        .order_by(Project.created_at.asc())
        .first()
    )


def create_project(
    db: Session,
    name: str = DEFAULT_PROJECT_NAME,
    owner_user_id: Optional[str] = None,
    owner_email: Optional[str] = None,
) -> Tuple[Project, bool]:
    """
    Create a project and its default trial settings.

    The project row is committed first. Returns (project, settings_created);
    a failure creating the settings is logged and reported through the flag
    instead of raising, since the project itself is usable.
    """
    project = Project(
        name=name,
        api_key=generate_api_key(),
        owner_user_id=owner_user_id,
        owner_email=owner_email.lower() if owner_email else None,
    )
    try:
        db.add(project)
        db.commit()
        db.refresh(project)
    except SQLAlchemyError:
        db.rollback()
        raise

    try:
        db.add(TrialSettings(project_id=project.id, **DEFAULT_TRIAL_SETTINGS))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Projects] Failed to create trial_settings for project %s", project.id)
        return project, False

    logger.info("[Projects] Created project %s (owner=%s)", project.id, owner_user_id)
    return project, True


def set_owner_email_if_missing(db: Session, project: Project, email: Optional[str]) -> bool:
    """Fill owner_email once; returns True when the row was updated."""
    if not email or project.owner_email:
        return False
    project.owner_email = email.lower()
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return True
