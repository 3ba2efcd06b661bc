import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.projects import require_project_id
from app.models.trial_settings import TrialSettings
from app.schemas.settings import TrialSettingsResponse, TrialSettingsUpdate
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_settings(db: Session, project_id: str) -> TrialSettings:
    try:
        settings = db.query(TrialSettings).filter(TrialSettings.project_id == project_id).first()
    except SQLAlchemyError:
        logger.exception("settings: error loading trial_settings for %s", project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )
    if not settings:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Settings not found")
    return settings


@router.get("/internal/project/settings", response_model=TrialSettingsResponse)
def get_settings(
    project_id: str = Depends(require_project_id),
    db: Session = Depends(get_db),
):
    return _load_settings(db, project_id)


@router.patch("/internal/project/settings", response_model=TrialSettingsResponse)
def update_settings(body: TrialSettingsUpdate, db: Session = Depends(get_db)):
    """Write only the fields present in the request body."""
    settings = _load_settings(db, body.project_id)

    updates = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"project_id"})
    for field, value in updates.items():
        setattr(settings, field, value)
    settings.updated_at = utcnow()

    try:
        db.commit()
        db.refresh(settings)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("settings: PATCH failed for project %s", body.project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update settings"
        )

    logger.info("settings: project %s updated %s", body.project_id, sorted(updates))
    return settings
