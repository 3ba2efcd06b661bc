import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.projects import project_id_or_default
from app.models.email_log import EmailLog
from app.models.project_user import ProjectUser
from app.schemas.projects import DashboardSummaryResponse
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

SUMMARY_WINDOW_DAYS = 30


@router.get("/dashboard/summary", response_model=DashboardSummaryResponse)
def dashboard_summary(
    project_id: str = Depends(project_id_or_default),
    db: Session = Depends(get_db),
):
    """
    Headline numbers for the dashboard:
    - trials_last_30: users whose trial started in the last 30 days
    - nudged_users: distinct users who received any nudge
    - upgrades_from_rescued: recent trials that upgraded after at least one nudge
    """
    since = utcnow() - timedelta(days=SUMMARY_WINDOW_DAYS)

    try:
        users = db.query(ProjectUser.id, ProjectUser.upgraded_at).filter(
            ProjectUser.project_id == project_id,
            ProjectUser.trial_started_at >= since,
        ).all()
        logs = db.query(EmailLog.user_id, EmailLog.sent_at).filter(
            EmailLog.project_id == project_id
        ).all()
    except SQLAlchemyError:
        logger.exception("dashboard summary: DB error for project %s", project_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="DB error")

    first_nudge_at = {}
    for user_id, sent_at in logs:
        sent_at = as_utc(sent_at)
        current = first_nudge_at.get(str(user_id))
        if current is None or sent_at < current:
            first_nudge_at[str(user_id)] = sent_at

    upgrades_from_rescued = 0
    for user_id, upgraded_at in users:
        if upgraded_at is None:
            continue
        nudged_at = first_nudge_at.get(str(user_id))
        if nudged_at is not None and nudged_at <= as_utc(upgraded_at):
            upgrades_from_rescued += 1

    return {
        "trials_last_30": len(users),
        "nudged_users": len(first_nudge_at),
        "upgrades_from_rescued": upgrades_from_rescued,
    }
