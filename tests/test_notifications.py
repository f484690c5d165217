"""Tests for post-commit notification and storage cleanup tasks."""

import pytest
import requests

from civictrack.models import AppSettings, Issue, IssueStatus, PushSubscription, UserRole
from civictrack.services import notifications, notify_email, storage
from civictrack.services.notifications import (
    send_assignment_notifications_safe,
    send_status_change_notifications_safe,
)

from conftest import T0


@pytest.fixture
def outbox(monkeypatch):
    sent = {"assignment": [], "status": [], "push": []}
    monkeypatch.setattr(notifications, "send_assignment_notification",
                        lambda to, *args: sent["assignment"].append((to,) + args))
    monkeypatch.setattr(notifications, "send_status_update",
                        lambda to, *args: sent["status"].append((to,) + args))
    monkeypatch.setattr(notifications, "send_push",
                        lambda sub, payload: sent["push"].append((sub["endpoint"], payload)) or True)
    return sent


@pytest.fixture
def assigned_issue(db_session, category, ward, make_user):
    reporter = make_user(UserRole.FIELD_WORKER, ward_id=ward.id)
    engineer = make_user(UserRole.WARD_ENGINEER, ward_id=ward.id)
    issue = Issue(
        ticket_number="VMC-2026-000007",
        category_id=category.id,
        status=IssueStatus.ASSIGNED,
        lat=22.05,
        lng=73.05,
        ward_id=ward.id,
        reporter_id=reporter.id,
        assignee_id=engineer.id,
        created_at=T0,
        assigned_at=T0,
    )
    db_session.add(issue)
    db_session.commit()
    return issue, reporter, engineer


class TestAssignmentNotifications:
    def test_emails_assignee(self, session_factory, assigned_issue, outbox):
        issue, reporter, engineer = assigned_issue
        send_assignment_notifications_safe(issue.id, engineer.id, reporter.id, session_factory=session_factory)

        assert len(outbox["assignment"]) == 1
        to, issue_id, ticket, category_name, _, assigned_by = outbox["assignment"][0]
        assert (to, issue_id, ticket, category_name) == (engineer.email, issue.id, "VMC-2026-000007", "Pothole")
        assert assigned_by == reporter.full_name
        # push is off unless app settings enable it
        assert outbox["push"] == []

    def test_auto_assignment_label_and_push(self, db_session, session_factory, assigned_issue, outbox):
        issue, _, engineer = assigned_issue
        db_session.add(AppSettings(auto_email_on_assignment=False, push_notifications_enabled=True))
        db_session.add(PushSubscription(user_id=engineer.id, endpoint="https://push.example/1",
                                        p256dh="key", auth="auth"))
        db_session.commit()

        send_assignment_notifications_safe(issue.id, engineer.id, None, session_factory=session_factory)

        assert outbox["assignment"] == []
        endpoint, payload = outbox["push"][0]
        assert endpoint == "https://push.example/1"
        assert "Auto-assignment" in payload["body"]

    def test_mail_failure_is_swallowed(self, monkeypatch, session_factory, assigned_issue):
        issue, reporter, engineer = assigned_issue

        def broken(*args, **kwargs):
            raise OSError("smtp down")

        monkeypatch.setattr(notifications, "send_assignment_notification", broken)
        send_assignment_notifications_safe(issue.id, engineer.id, reporter.id, session_factory=session_factory)

    def test_missing_issue_is_ignored(self, session_factory, outbox, engine):
        send_assignment_notifications_safe(404, 1, None, session_factory=session_factory)
        assert outbox["assignment"] == []


class TestStatusNotifications:
    def test_reporter_and_assignee_hear_about_it(self, session_factory, assigned_issue, outbox):
        issue, reporter, engineer = assigned_issue
        send_status_change_notifications_safe(issue.id, "RESOLVED", session_factory=session_factory)

        recipients = sorted(to for to, *_ in outbox["status"])
        assert recipients == sorted([reporter.email, engineer.email])
        assert all(args[-1] == "RESOLVED" for args in outbox["status"])


class TestEmailTemplates:
    def test_status_mail_body(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(notify_email, "_send_email",
                            lambda to, subject, html: captured.update(to=to, subject=subject, html=html))
        notify_email.send_status_update("a@example.com", 3, "VMC-2026-000003", "IN_PROGRESS")

        assert captured["subject"] == "VMC-2026-000003 status update"
        assert "In Progress" in captured["html"]
        assert "issues/3" in captured["html"]

    def test_unconfigured_smtp_drops_mail(self, monkeypatch):
        monkeypatch.setattr(notify_email, "SMTP_HOST", None)
        monkeypatch.setattr(notify_email, "EMAIL_PROVIDER", "smtp")
        notify_email._send_email("a@example.com", "s", "<p>x</p>")


class TestStorageCleanup:
    BUCKET_URL = "https://proj.supabase.co/storage/v1/object/public/issue-photos/issues/1/after.jpg"

    def test_object_path(self):
        assert storage.object_path_from_url(self.BUCKET_URL) == "issues/1/after.jpg"
        assert storage.object_path_from_url("https://elsewhere.example/x.jpg") is None

    def test_unconfigured_storage_is_a_noop(self, monkeypatch):
        monkeypatch.setattr(storage, "SUPABASE_URL", None)
        assert storage.delete_objects_safe([self.BUCKET_URL]) == 0

    def test_failures_do_not_stop_the_batch(self, monkeypatch):
        monkeypatch.setattr(storage, "SUPABASE_URL", "https://proj.supabase.co")
        monkeypatch.setattr(storage, "SUPABASE_SERVICE_ROLE", "service-key")
        calls = []

        class Ok:
            def raise_for_status(self):
                return None

        def fake_delete(url, headers, timeout):
            calls.append(url)
            if len(calls) == 1:
                raise requests.ConnectionError("reset")
            return Ok()

        monkeypatch.setattr(storage.requests, "delete", fake_delete)
        assert storage.delete_objects_safe([self.BUCKET_URL, self.BUCKET_URL]) == 1
        assert calls[1] == "https://proj.supabase.co/storage/v1/object/issue-photos/issues/1/after.jpg"

    def test_unexpected_errors_do_not_stop_the_batch(self, monkeypatch):
        seen = []

        def flaky_delete(url):
            seen.append(url)
            if len(seen) == 1:
                raise RuntimeError("bad storage response")
            return True

        monkeypatch.setattr(storage, "delete_object", flaky_delete)
        assert storage.delete_objects_safe(["https://a.example/1.jpg", "https://a.example/2.jpg"]) == 1
        assert len(seen) == 2
