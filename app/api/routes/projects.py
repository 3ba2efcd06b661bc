"""
Internal dashboard endpoints: resolving the signed-in founder's project,
bootstrapping new projects, and small per-project lookups.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.auth import DashboardOwner, get_current_owner
from app.dependencies.projects import load_project, project_id_or_default, require_project_id
from app.models.project_user import ProjectUser
from app.schemas.projects import (
    ApiKeyResponse,
    BootstrapProjectRequest,
    BootstrapProjectResponse,
    LastEventResponse,
    OwnerEmailRequest,
    ProjectResponse,
)
from app.services.projects import create_project, get_oldest_project_for_owner, set_owner_email_if_missing
from app.utils.dates import as_utc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/internal/resolve-project", response_model=ProjectResponse)
def resolve_project(
    owner: DashboardOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """
    Return the founder's project, creating one with default trial settings
    on their first dashboard visit.
    """
    try:
        project = get_oldest_project_for_owner(db, owner.user_id)
        if project is None:
            project, settings_created = create_project(
                db, owner_user_id=owner.user_id, owner_email=owner.email
            )
            if not settings_created:
                logger.error("[Projects] Project %s auto-provisioned without trial_settings", project.id)
        else:
            set_owner_email_if_missing(db, project, owner.email)
    except SQLAlchemyError:
        logger.exception("[Projects] resolve-project failed for owner %s", owner.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error resolving project"
        )

    return {"project_id": project.id, "name": project.name, "api_key": project.api_key}


@router.post("/internal/bootstrap-project", response_model=BootstrapProjectResponse, response_model_exclude_none=True)
def bootstrap_project(
    body: BootstrapProjectRequest,
    owner: DashboardOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        project, settings_created = create_project(
            db,
            name=body.project_name,
            owner_user_id=owner.user_id,
            owner_email=owner.email,
        )
    except SQLAlchemyError:
        logger.exception("[Projects] Error creating project for owner %s", owner.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating project"
        )

    response = {"project_id": project.id, "api_key": project.api_key}
    if not settings_created:
        response["warning"] = "Project created but failed to create trial_settings"
    return response


@router.post("/internal/project/owner-email")
def ensure_owner_email(body: OwnerEmailRequest, db: Session = Depends(get_db)):
    """Set owner_email once so Dodo payments can be matched to the project."""
    project = load_project(db, body.project_id)
    if project.owner_email:
        return {"ok": True, "alreadySet": True}

    try:
        set_owner_email_if_missing(db, project, str(body.email))
    except SQLAlchemyError:
        logger.exception("[Projects] owner-email update failed for project %s", project.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Update failed"
        )
    return {"ok": True, "updated": True}


@router.get("/internal/project/api-key", response_model=ApiKeyResponse)
def get_api_key(
    project_id: str = Depends(project_id_or_default),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    return {"api_key": project.api_key}


@router.get("/internal/project/last-event", response_model=LastEventResponse)
def get_last_event(
    project_id: str = Depends(require_project_id),
    db: Session = Depends(get_db),
):
    """Latest lifecycle timestamp across the project's users; lets the integration page confirm events arrive."""
    try:
        rows = db.query(
            ProjectUser.trial_started_at,
            ProjectUser.last_activity_at,
            ProjectUser.upgraded_at,
        ).filter(ProjectUser.project_id == project_id).all()
    except SQLAlchemyError:
        logger.exception("[Projects] last-event: error loading project_users for %s", project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load events"
        )

    latest: Optional[datetime] = None
    for row in rows:
        for value in row:
            value = as_utc(value)
            if value is not None and (latest is None or value > latest):
                latest = value

    return {"last_event_at": latest}
