from app.db.session import engine
from app.db.base import Base
from app.models import Project, TrialSettings, ProjectUser, EmailLog, Event  # noqa: F401

print("Creating TrialRescue tables...")
Base.metadata.create_all(bind=engine)
print("✅ projects, trial_settings, project_users, email_logs, events ready")
