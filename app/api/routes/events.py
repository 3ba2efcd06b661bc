"""
Event ingestion for tenants' products.

Register this in your app's signup / activity / upgrade hooks:
    POST /api/events
    x-trialrescue-api-key: tr_...
    {"event_type": "user_signed_up", "external_user_id": "123", "email": "a@b.com"}
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.projects import get_project_from_api_key
from app.models.project import Project
from app.schemas.events import EventAccepted, EventIn
from app.services.event_ingestion import ingest_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events", response_model=EventAccepted)
def receive_event(
    event: EventIn,
    project: Project = Depends(get_project_from_api_key),
    db: Session = Depends(get_db),
):
    """Upsert the end-user's trial state; the raw event row is best-effort."""
    try:
        ingest_event(db, project, event)
    except SQLAlchemyError:
        logger.exception(
            "[Events] Error upserting project_users for project %s user %s",
            project.id,
            event.external_user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upsert user"
        )

    logger.info("[Events] %s for project %s user %s", event.event_type.value, project.id, event.external_user_id)
    return {"ok": True}
