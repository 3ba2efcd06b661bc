"""Inactivity sweep: tier selection, exclusions and send/log bookkeeping."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from app.models import EmailLog
from app.services.nudge_sweep import NudgeSweep, days_inactive, pick_nudge, run_sweep
from app.utils.dates import whole_days_between
from conftest import NOW

THRESHOLDS = {"nudge1": 2, "nudge2": 4, "nudge3": 7}


@pytest.fixture
def send_email():
    return MagicMock(return_value="msg_123")


def _logged(db_session, user):
    return sorted(row.email_type for row in db_session.query(EmailLog).filter(EmailLog.user_id == user.id))


class TestPickNudge:
    @pytest.mark.parametrize(
        "inactive, sent, expected",
        [
            (0, set(), None),
            (1, set(), None),
            (2, set(), "nudge1"),
            (5, set(), "nudge2"),
            (7, set(), "nudge3"),
            (30, set(), "nudge3"),
            (5, {"nudge2"}, "nudge1"),
            (9, {"nudge3"}, "nudge2"),
            (9, {"nudge1", "nudge2", "nudge3"}, None),
        ],
    )
    def test_highest_unsent_tier(self, inactive, sent, expected):
        assert pick_nudge(inactive, THRESHOLDS, sent) == expected

    def test_days_are_floored(self):
        earlier = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        assert whole_days_between(earlier + timedelta(days=3, hours=23, minutes=59), earlier) == 3
        assert whole_days_between(earlier + timedelta(days=4), earlier) == 4

    def test_naive_timestamps_are_treated_as_utc(self):
        earlier = datetime(2025, 6, 1, 12, 0)
        assert whole_days_between(datetime(2025, 6, 3, 12, 0, tzinfo=timezone.utc), earlier) == 2

    def test_days_inactive_falls_back_to_trial_start(self, make_project, add_user):
        project = make_project()
        user = add_user(project, idle=timedelta(days=3), last_activity_at=None)
        assert days_inactive(user, NOW) == 3

        unknown = add_user(project, external_user_id="u2", trial_started_at=None, last_activity_at=None)
        assert days_inactive(unknown, NOW) is None


class TestSweep:
    def test_five_idle_days_sends_nudge2(self, db_session, make_project, add_user, send_email):
        project = make_project(product_name="Acme CRM", support_email="help@acme.io", app_url="https://app.acme.io")
        user = add_user(project, idle=timedelta(days=5))

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result == {"ok": True, "total_sent": 1, "per_project": [{"project_id": project.id, "sent": 1}]}
        send_email.assert_called_once_with(
            to_email="user@acme.io",
            nudge="nudge2",
            product_name="Acme CRM",
            support_email="help@acme.io",
            app_url="https://app.acme.io",
        )
        log = db_session.query(EmailLog).one()
        assert (log.user_id, log.email_type, log.provider_message_id) == (user.id, "nudge2", "msg_123")

    def test_each_nudge_is_sent_at_most_once(self, db_session, make_project, add_user, send_email):
        project = make_project()
        user = add_user(project, idle=timedelta(days=5))

        totals = [run_sweep(db_session, now=NOW, send_email=send_email)["total_sent"] for _ in range(3)]

        # The skipped lower tier is sent on the next run, then nothing more
        assert totals == [1, 1, 0]
        assert _logged(db_session, user) == ["nudge1", "nudge2"]

    def test_activity_does_not_resend_logged_nudges(self, db_session, make_project, add_user, log_nudge, send_email):
        project = make_project()
        user = add_user(project, idle=timedelta(days=8))
        for nudge in ("nudge1", "nudge2", "nudge3"):
            log_nudge(user, nudge)

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["per_project"] == [{"project_id": project.id, "sent": 0, "reason": "no_candidates"}]
        send_email.assert_not_called()

    def test_custom_thresholds_are_used(self, db_session, make_project, add_user, send_email):
        project = make_project(inactivity_days_nudge1=1, inactivity_days_nudge2=10, inactivity_days_nudge3=20)
        add_user(project, idle=timedelta(days=5))

        run_sweep(db_session, now=NOW, send_email=send_email)

        assert send_email.call_args.kwargs["nudge"] == "nudge1"

    def test_upgraded_and_unsubscribed_users_are_skipped(self, db_session, make_project, add_user, send_email):
        project = make_project()
        add_user(project, "upgraded", idle=timedelta(days=9), upgraded_at=NOW - timedelta(days=1))
        add_user(project, "unsubscribed", idle=timedelta(days=9), unsubscribed=True)

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["per_project"] == [{"project_id": project.id, "sent": 0, "reason": "no_users"}]
        send_email.assert_not_called()

    def test_users_without_email_or_timestamps_are_ignored(self, db_session, make_project, add_user, send_email):
        project = make_project()
        add_user(project, "no-email", idle=timedelta(days=9), email=None)
        add_user(project, "no-dates", trial_started_at=None, last_activity_at=None)

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["per_project"][0]["reason"] == "no_candidates"
        send_email.assert_not_called()

    @pytest.mark.parametrize("billing_status", ["inactive", "cancelled"])
    def test_billing_inactive_project_sends_nothing(self, db_session, make_project, add_user, send_email, billing_status):
        project = make_project(billing_status=billing_status)
        add_user(project, idle=timedelta(days=9))

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["total_sent"] == 0
        assert result["per_project"] == [{"project_id": project.id, "sent": 0, "reason": "billing_inactive"}]
        assert db_session.query(EmailLog).count() == 0

    def test_automation_disabled_sends_nothing(self, db_session, make_project, add_user, send_email):
        project = make_project(automation_enabled=False)
        add_user(project, idle=timedelta(days=9))

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["per_project"] == [{"project_id": project.id, "sent": 0, "reason": "automation_disabled"}]
        send_email.assert_not_called()

    def test_send_failure_does_not_abort_batch(self, db_session, make_project, add_user):
        project = make_project()
        failing = add_user(project, "a", idle=timedelta(days=5), email="a@acme.io")
        working = add_user(project, "b", idle=timedelta(days=5), email="b@acme.io")

        def _send(to_email, **kwargs):
            if to_email == "a@acme.io":
                raise RuntimeError("resend is down")
            return "msg_b"

        result = run_sweep(db_session, now=NOW, send_email=_send)

        assert result["total_sent"] == 1
        assert _logged(db_session, failing) == []
        assert _logged(db_session, working) == ["nudge2"]

    def test_one_project_failing_does_not_stop_others(self, db_session, make_project, add_user, send_email):
        paused = make_project(name="Paused", automation_enabled=False)
        live = make_project(name="Live")
        add_user(paused, "p", idle=timedelta(days=9))
        add_user(live, "l", idle=timedelta(days=9))

        result = run_sweep(db_session, now=NOW, send_email=send_email)

        assert result["total_sent"] == 1
        by_project = {row["project_id"]: row for row in result["per_project"]}
        assert by_project[paused.id]["reason"] == "automation_disabled"
        assert by_project[live.id]["sent"] == 1

    def test_no_settings_rows(self, db_session, send_email):
        assert run_sweep(db_session, now=NOW, send_email=send_email) == {
            "ok": True,
            "total_sent": 0,
            "reason": "no projects with settings",
        }

    def test_deliver_rechecks_log_before_sending(self, db_session, make_project, add_user, log_nudge, send_email):
        project = make_project()
        user = add_user(project, idle=timedelta(days=5))
        sweep = NudgeSweep(db_session, now=NOW, send_email=send_email)
        candidates = sweep.candidates([user], THRESHOLDS, {})
        assert [c.nudge for c in candidates] == ["nudge2"]

        # Another run logged it after candidates were computed
        log_nudge(user, "nudge2")

        assert sweep.deliver(project.id, candidates[0], "Acme", "help@acme.io", "https://app.acme.io") is False
        send_email.assert_not_called()
