from app.models.project import Project
from app.models.trial_settings import TrialSettings
from app.models.project_user import ProjectUser
from app.models.email_log import EmailLog
from app.models.event import Event, EventType

__all__ = [
    "Project",
    "TrialSettings",
    "ProjectUser",
    "EmailLog",
    "Event",
    "EventType",
]
