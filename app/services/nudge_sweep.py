"""
Inactivity sweep: decide which trial users get a nudge and send it.

One run walks every project that has trial settings. For each eligible
user it sends at most one email, the most urgent nudge whose threshold has
been reached and which that user has not received yet. An email_logs row
is what marks a nudge as sent.

There is no locking: two overlapping runs can both pass the "already sent"
check for the same user, so the scheduler must not start a sweep while
another one is still running.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.trial_defaults import (
    BILLING_ACTIVE,
    FALLBACK_APP_URL,
    FALLBACK_PRODUCT_NAME,
    FALLBACK_SUPPORT_EMAIL,
    NUDGE_KINDS,
    NUDGE_THRESHOLD_FIELDS,
)
from app.models.email_log import EmailLog
from app.models.project import Project
from app.models.project_user import ProjectUser
from app.models.trial_settings import TrialSettings
from app.services.nudge_email import send_nudge_email
from app.utils.dates import utcnow, whole_days_between

logger = logging.getLogger(__name__)

SendEmail = Callable[..., Optional[str]]


class NudgeCandidate(NamedTuple):
    user_id: str
    email: str
    nudge: str
    days_inactive: int


def days_inactive(user: ProjectUser, now: datetime) -> Optional[int]:
    """Whole days since the user's last activity (or trial start); None if neither is known."""
    reference = user.last_activity_at or user.trial_started_at
    if reference is None:
        return None
    return whole_days_between(now, reference)


def thresholds_for(settings: TrialSettings) -> Dict[str, int]:
    return {kind: getattr(settings, field) for kind, field in NUDGE_THRESHOLD_FIELDS.items()}


def pick_nudge(inactive_days: int, thresholds: Dict[str, int], already_sent: Set[str]) -> Optional[str]:
    """
    Most urgent nudge whose threshold is met and which was not sent yet.

    Checked nudge3 -> nudge2 -> nudge1, so a user who has been away long
    enough for nudge3 gets only nudge3, never the whole series at once.
    """
    for kind in NUDGE_KINDS:
        threshold = thresholds.get(kind)
        if threshold is None:
            continue
        if inactive_days >= threshold and kind not in already_sent:
            return kind
    return None


class NudgeSweep:
    def __init__(self, db: Session, now: Optional[datetime] = None, send_email: Optional[SendEmail] = None):
        self.db = db
        self.now = now or utcnow()
        self.send_email = send_email or send_nudge_email

    def run(self) -> dict:
        settings_rows = self.db.query(TrialSettings).all()
        if not settings_rows:
            return {"ok": True, "total_sent": 0, "reason": "no projects with settings"}

        total_sent = 0
        per_project: List[dict] = []
        for settings in settings_rows:
            result = self.sweep_project(settings)
            total_sent += result["sent"]
            per_project.append(result)

        logger.info("[Cron] Sweep finished: %s emails across %s projects", total_sent, len(per_project))
        return {"ok": True, "total_sent": total_sent, "per_project": per_project}

    def sweep_project(self, settings: TrialSettings) -> dict:
        project_id = str(settings.project_id)

        try:
            project = self.db.query(Project).filter(Project.id == project_id).first()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("[Cron] Error loading project billing for project %s", project_id)
            return _skipped(project_id, "billing_lookup_error")

        if not project or project.billing_status != BILLING_ACTIVE:
            return _skipped(project_id, "billing_inactive")

        if not settings.automation_enabled:
            return _skipped(project_id, "automation_disabled")

        try:
            users = self.eligible_users(project_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("[Cron] Error loading project_users for project %s", project_id)
            return _skipped(project_id, "user_load_error")

        if not users:
            return _skipped(project_id, "no_users")

        try:
            sent_by_user = self.sent_nudges(project_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("[Cron] Error loading email_logs for project %s", project_id)
            return _skipped(project_id, "log_load_error")

        candidates = self.candidates(users, thresholds_for(settings), sent_by_user)
        if not candidates:
            return _skipped(project_id, "no_candidates")

        product_name = settings.product_name or FALLBACK_PRODUCT_NAME
        support_email = settings.support_email or FALLBACK_SUPPORT_EMAIL
        app_url = settings.app_url or FALLBACK_APP_URL

        sent = 0
        for candidate in candidates:
            if self.deliver(project_id, candidate, product_name, support_email, app_url):
                sent += 1

        return {"project_id": project_id, "sent": sent}

    def eligible_users(self, project_id: str) -> List[ProjectUser]:
        """Users of the project still in their trial and reachable by email."""
        return self.db.query(ProjectUser).filter(
            ProjectUser.project_id == project_id,
            ProjectUser.upgraded_at.is_(None),
            ProjectUser.unsubscribed == False,  # noqa: E712
        ).all()

    def sent_nudges(self, project_id: str) -> Dict[str, Set[str]]:
        rows = self.db.query(EmailLog.user_id, EmailLog.email_type).filter(
            EmailLog.project_id == project_id
        ).all()
        sent_by_user: Dict[str, Set[str]] = {}
        for user_id, email_type in rows:
            sent_by_user.setdefault(str(user_id), set()).add(email_type)
        return sent_by_user

    def candidates(
        self,
        users: List[ProjectUser],
        thresholds: Dict[str, int],
        sent_by_user: Dict[str, Set[str]],
    ) -> List[NudgeCandidate]:
        result: List[NudgeCandidate] = []
        for user in users:
            # Same exclusions as eligible_users(), for callers passing their own list
            if not user.email or user.unsubscribed or user.upgraded_at:
                continue
            inactive = days_inactive(user, self.now)
            if inactive is None:
                continue
            nudge = pick_nudge(inactive, thresholds, sent_by_user.get(str(user.id), set()))
            if nudge:
                result.append(NudgeCandidate(str(user.id), user.email, nudge, inactive))
        return result

    def already_logged(self, user_id: str, nudge: str) -> bool:
        return self.db.query(EmailLog.id).filter(
            EmailLog.user_id == user_id,
            EmailLog.email_type == nudge,
        ).first() is not None

    def deliver(
        self,
        project_id: str,
        candidate: NudgeCandidate,
        product_name: str,
        support_email: str,
        app_url: str,
    ) -> bool:
        """Send one nudge and log it. Failures are logged and reported as False."""
        try:
            if self.already_logged(candidate.user_id, candidate.nudge):
                logger.info(
                    "[Cron] %s already logged for user %s, skipping",
                    candidate.nudge,
                    candidate.user_id,
                )
                return False
            message_id = self.send_email(
                to_email=candidate.email,
                nudge=candidate.nudge,
                product_name=product_name,
                support_email=support_email,
                app_url=app_url,
            )
        except Exception:
            self.db.rollback()
            logger.exception("[Cron] Error sending %s for project %s user %s", candidate.nudge, project_id, candidate.user_id)
            return False

        try:
            self.db.add(EmailLog(
                project_id=project_id,
                user_id=candidate.user_id,
                email_type=candidate.nudge,
                provider_message_id=message_id,
                sent_at=utcnow(),
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("[Cron] Error logging %s for project %s user %s", candidate.nudge, project_id, candidate.user_id)
            return False

        return True


def _skipped(project_id: str, reason: str) -> dict:
    return {"project_id": project_id, "sent": 0, "reason": reason}


def run_sweep(db: Session, now: Optional[datetime] = None, send_email: Optional[SendEmail] = None) -> dict:
    return NudgeSweep(db, now=now, send_email=send_email).run()
