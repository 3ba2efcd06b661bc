"""
Dependencies resolving which project a request is about.

Ingestion requests identify the project by API key; dashboard requests
pass a `projectId` query parameter, optionally falling back to
DEFAULT_PROJECT_ID.
"""
import logging
import os
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.project import Project
from app.services.projects import get_project_by_api_key
from app.utils.api_keys import API_KEY_HEADER, extract_api_key

logger = logging.getLogger(__name__)


def get_project_from_api_key(
    x_trialrescue_api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Project:
    api_key = extract_api_key(x_trialrescue_api_key, authorization)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    try:
        project = get_project_by_api_key(db, api_key)
    except SQLAlchemyError:
        logger.exception("[Events] Error resolving project by API key")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

    if not project:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    return project


def require_project_id(projectId: Optional[str] = Query(None)) -> str:
    if not projectId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing projectId")
    return projectId


def project_id_or_default(projectId: Optional[str] = Query(None)) -> str:
    project_id = projectId or os.getenv("DEFAULT_PROJECT_ID")
    if not project_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing projectId")
    return project_id


def load_project(db: Session, project_id: str) -> Project:
    """Fetch a project or raise 404; database errors become 500."""
    try:
        project = db.query(Project).filter(Project.id == project_id).first()
    except SQLAlchemyError:
        logger.exception("Error loading project %s", project_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="DB error")
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project
