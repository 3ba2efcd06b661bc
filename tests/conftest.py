"""Shared fixtures: an in-memory SQLite database behind the app's get_db dependency."""

import os
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set before app modules read them
TEST_JWT_SECRET = "test-supabase-jwt-secret-0123456789abcdef"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ.pop("DEFAULT_PROJECT_ID", None)
os.environ.pop("CRON_SWEEP_SECRET", None)

from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import EmailLog, Project, ProjectUser, TrialSettings  # noqa: E402
from app.services.projects import create_project  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """TestClient without the lifespan, so no Postgres migrations run."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_project(db_session):
    """Factory for a project with default trial settings; keyword args override settings columns."""

    def _make(name="Acme", billing_status="active", owner_user_id=None, owner_email=None, **settings_overrides) -> Project:
        project, _ = create_project(db_session, name=name, owner_user_id=owner_user_id, owner_email=owner_email)
        project.billing_status = billing_status
        settings = db_session.query(TrialSettings).filter(TrialSettings.project_id == project.id).one()
        for field, value in settings_overrides.items():
            setattr(settings, field, value)
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def add_user(db_session):
    """Factory for a trial user who was last active `idle` before NOW."""

    def _add(project, external_user_id="u1", idle=timedelta(days=0), email="user@acme.io", now=NOW, **fields) -> ProjectUser:
        last_seen = now - idle
        values = {
            "trial_started_at": last_seen,
            "last_activity_at": last_seen,
            "unsubscribed": False,
        }
        values.update(fields)
        user = ProjectUser(project_id=project.id, external_user_id=external_user_id, email=email, **values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _add


@pytest.fixture
def log_nudge(db_session):
    def _log(user, nudge, sent_at=NOW) -> EmailLog:
        row = EmailLog(project_id=user.project_id, user_id=user.id, email_type=nudge, sent_at=sent_at)
        db_session.add(row)
        db_session.commit()
        return row

    return _log


def supabase_token(sub="owner-1", email="founder@acme.io", secret=TEST_JWT_SECRET, **claims) -> str:
    payload = {
        "sub": sub,
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    payload.update(claims)
    return pyjwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(**kwargs) -> dict:
        return {"Authorization": f"Bearer {supabase_token(**kwargs)}"}

    return _headers
