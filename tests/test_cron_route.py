"""The HTTP sweep trigger: secret gate and email-provider configuration."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from app.api.routes import cron
from app.services import nudge_email
from app.utils.dates import utcnow


@pytest.fixture
def resend_configured(monkeypatch):
    monkeypatch.setattr(nudge_email, "RESEND_API_KEY", "re_test_key")


def test_resend_not_configured_is_500(client, monkeypatch):
    monkeypatch.setattr(nudge_email, "RESEND_API_KEY", "")
    response = client.get("/api/cron/sweep")
    assert response.status_code == 500
    assert response.json() == {"error": "Resend not configured"}


def test_secret_required_when_configured(client, monkeypatch, resend_configured):
    monkeypatch.setattr(cron, "CRON_SWEEP_SECRET", "s3cret")

    assert client.get("/api/cron/sweep").status_code == 401
    assert client.get("/api/cron/sweep", headers={"x-cron-secret": "wrong"}).status_code == 401
    assert client.get("/api/cron/sweep", headers={"x-cron-secret": "s3cret"}).status_code == 200


def test_non_ascii_secret_header_is_401(client, monkeypatch, resend_configured):
    monkeypatch.setattr(cron, "CRON_SWEEP_SECRET", "s3cret")

    response = client.get("/api/cron/sweep", headers={"x-cron-secret": "caf\u00e9".encode("latin-1")})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_sweep_sends_through_resend(client, make_project, add_user, resend_configured):
    project = make_project(product_name="Acme CRM", support_email="help@acme.io", app_url="https://app.acme.io")
    add_user(project, idle=timedelta(days=3), now=utcnow())

    with patch("app.services.nudge_email.resend.Emails.send", return_value={"id": "re_msg_1"}) as send:
        response = client.get("/api/cron/sweep")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "total_sent": 1, "per_project": [{"project_id": project.id, "sent": 1}]}
    params = send.call_args.args[0]
    assert params["from"] == "Acme CRM <mail@trialrescue.qzz.io>"
    assert params["to"] == ["user@acme.io"]
    assert params["reply_to"] == "help@acme.io"
    assert params["subject"] == "Still on your Acme CRM trial?"
    assert "https://app.acme.io" in params["html"]
    assert "{{APP_URL}}" not in params["text"]
