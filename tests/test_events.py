"""Event ingestion: API key auth, payload validation and ProjectUser upserts."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.models import Event, ProjectUser
from app.schemas.events import EventIn
from app.services.event_ingestion import record_event_row
from app.utils.api_keys import API_KEY_HEADER, extract_api_key, generate_api_key
from app.utils.dates import as_utc


def _post(client, project, body, header=True):
    headers = {API_KEY_HEADER: project.api_key} if header else {"Authorization": f"Bearer {project.api_key}"}
    return client.post("/api/events", json=body, headers=headers)


def _user(db_session, project, external_user_id="u1") -> ProjectUser:
    db_session.expire_all()
    return db_session.query(ProjectUser).filter(
        ProjectUser.project_id == project.id,
        ProjectUser.external_user_id == external_user_id,
    ).one()


class TestApiKeyAuth:
    def test_missing_key_is_401(self, client, make_project):
        make_project()
        response = client.post("/api/events", json={"event_type": "user_activity", "external_user_id": "u1"})
        assert response.status_code == 401
        assert response.json() == {"error": "Missing API key"}

    def test_unknown_key_is_401(self, client, make_project):
        make_project()
        response = client.post(
            "/api/events",
            json={"event_type": "user_activity", "external_user_id": "u1"},
            headers={API_KEY_HEADER: "tr_doesnotexist"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

    def test_bearer_key_is_accepted(self, client, make_project):
        project = make_project()
        response = _post(client, project, {"event_type": "user_activity", "external_user_id": "u1"}, header=False)
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_header_wins_over_bearer(self, client, make_project):
        project = make_project()
        response = client.post(
            "/api/events",
            json={"event_type": "user_activity", "external_user_id": "u1"},
            headers={API_KEY_HEADER: project.api_key, "Authorization": "Bearer tr_wrong"},
        )
        assert response.status_code == 200

    def test_extract_api_key_ignores_placeholder_tokens(self):
        assert extract_api_key(None, "Bearer null") is None
        assert extract_api_key(None, "Bearer undefined") is None
        assert extract_api_key(None, "Basic abc") is None
        assert extract_api_key("  tr_abc  ", None) == "tr_abc"

    def test_generated_keys_are_prefixed_and_unique(self):
        keys = {generate_api_key() for _ in range(50)}
        assert len(keys) == 50
        assert all(k.startswith("tr_") and len(k) == 27 for k in keys)


class TestValidation:
    def test_missing_external_user_id_is_400(self, client, make_project):
        project = make_project()
        response = _post(client, project, {"event_type": "user_activity"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_event_type_is_400(self, client, make_project):
        project = make_project()
        response = _post(client, project, {"event_type": "user_deleted", "external_user_id": "u1"})
        assert response.status_code == 400

    def test_signup_requires_email(self, client, make_project):
        project = make_project()
        response = _post(client, project, {"event_type": "user_signed_up", "external_user_id": "u1"})
        assert response.status_code == 400

    def test_malformed_timestamp_is_400(self, client, make_project):
        project = make_project()
        response = _post(
            client,
            project,
            {"event_type": "user_activity", "external_user_id": "u1", "timestamp": "yesterday-ish"},
        )
        assert response.status_code == 400

    def test_non_json_body_is_400(self, client, make_project):
        project = make_project()
        response = client.post(
            "/api/events",
            content=b"not json",
            headers={API_KEY_HEADER: project.api_key, "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_numeric_external_user_id_is_stored_as_string(self):
        event = EventIn(event_type="user_activity", external_user_id=42)
        assert event.external_user_id == "42"


class TestUpsert:
    def test_signup_creates_user(self, client, db_session, make_project):
        project = make_project()
        response = _post(client, project, {
            "event_type": "user_signed_up",
            "external_user_id": "u1",
            "email": "Jane@Acme.io",
            "timestamp": "2025-06-01T09:00:00Z",
        })
        assert response.status_code == 200

        user = _user(db_session, project)
        assert user.email == "jane@acme.io"
        assert as_utc(user.trial_started_at) == datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        assert as_utc(user.last_activity_at) == datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        assert user.upgraded_at is None
        assert user.unsubscribed is False

    def test_replayed_signup_keeps_trial_start(self, client, db_session, make_project):
        project = make_project()
        for ts in ("2025-06-01T09:00:00Z", "2025-06-05T09:00:00Z"):
            _post(client, project, {
                "event_type": "user_signed_up",
                "external_user_id": "u1",
                "email": "jane@acme.io",
                "timestamp": ts,
            })

        user = _user(db_session, project)
        assert as_utc(user.trial_started_at) == datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        assert as_utc(user.last_activity_at) == datetime(2025, 6, 5, 9, 0, tzinfo=timezone.utc)
        assert db_session.query(ProjectUser).count() == 1

    def test_activity_refreshes_last_activity_only_forward(self, client, db_session, make_project):
        project = make_project()
        _post(client, project, {"event_type": "user_activity", "external_user_id": "u1", "timestamp": "2025-06-10T00:00:00Z"})
        _post(client, project, {"event_type": "user_activity", "external_user_id": "u1", "timestamp": "2025-06-03T00:00:00Z"})

        user = _user(db_session, project)
        assert as_utc(user.last_activity_at) == datetime(2025, 6, 10, tzinfo=timezone.utc)
        assert user.trial_started_at is None

    def test_upgrade_sets_upgraded_at_once(self, client, db_session, make_project):
        project = make_project()
        _post(client, project, {"event_type": "user_upgraded", "external_user_id": "u1", "timestamp": "2025-06-10T00:00:00Z"})
        _post(client, project, {"event_type": "user_upgraded", "external_user_id": "u1", "timestamp": "2025-06-12T00:00:00Z"})

        user = _user(db_session, project)
        assert as_utc(user.upgraded_at) == datetime(2025, 6, 10, tzinfo=timezone.utc)

    def test_users_are_scoped_per_project(self, client, db_session, make_project):
        first = make_project(name="First")
        second = make_project(name="Second")
        _post(client, first, {"event_type": "user_activity", "external_user_id": "same"})
        _post(client, second, {"event_type": "user_activity", "external_user_id": "same"})

        assert db_session.query(ProjectUser).filter(ProjectUser.external_user_id == "same").count() == 2

    def test_event_row_is_recorded(self, client, db_session, make_project):
        project = make_project()
        _post(client, project, {
            "event_type": "user_activity",
            "external_user_id": "u1",
            "data": {"feature": "export"},
        })

        event = db_session.query(Event).one()
        assert event.project_id == project.id
        assert event.event_type == "user_activity"
        assert event.data == {"feature": "export"}
        assert event.user_id == _user(db_session, project).id

    def test_database_failure_is_500(self, client, make_project):
        project = make_project()
        with patch("app.api.routes.events.ingest_event", side_effect=OperationalError("UPDATE", {}, Exception("down"))):
            response = _post(client, project, {"event_type": "user_activity", "external_user_id": "u1"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to upsert user"}


def test_record_event_row_failure_is_swallowed(make_project):
    project = make_project()
    db = MagicMock()
    db.commit.side_effect = SQLAlchemyError("insert failed")
    user = ProjectUser(id="user-1", project_id=project.id, external_user_id="u1")
    event = EventIn(event_type="user_activity", external_user_id="u1")

    assert record_event_row(db, project, user, event, datetime.now(timezone.utc)) is False
    db.rollback.assert_called_once()
