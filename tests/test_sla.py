"""Tests for SLA deadline and compliance helpers."""

from datetime import datetime, timedelta, timezone

from civictrack.services import sla

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestSlaTarget:
    def test_adds_hours(self):
        assert sla.sla_target(T0, 24) == T0 + timedelta(hours=24)

    def test_multi_day_window_is_exact(self):
        assert sla.sla_target(T0, 72) == datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)


class TestBreach:
    def test_resolved_before_deadline(self):
        assert not sla.is_breached(T0, resolved_at=T0 - timedelta(minutes=1))

    def test_resolved_after_deadline(self):
        assert sla.is_breached(T0, resolved_at=T0 + timedelta(minutes=1))

    def test_open_issue_uses_now(self):
        assert sla.is_breached(T0, now=T0 + timedelta(hours=1))
        assert not sla.is_breached(T0, now=T0 - timedelta(hours=1))

    def test_naive_values_are_treated_as_utc(self):
        naive = T0.replace(tzinfo=None)
        assert sla.is_breached(naive, now=T0 + timedelta(seconds=1))
        assert not sla.is_breached(naive, now=T0)


class TestCompliance:
    def test_no_resolved_issues_is_fully_compliant(self):
        assert sla.compliance(0, 0) == 100.0

    def test_all_within(self):
        assert sla.compliance(5, 5) == 100.0

    def test_all_breached(self):
        assert sla.compliance(4, 0) == 0.0

    def test_rounded_to_two_places(self):
        assert sla.compliance(3, 2) == 66.67


class TestTimeToSla:
    def test_remaining(self):
        out = sla.time_to_sla(T0 + timedelta(hours=5, minutes=30), now=T0)
        assert out == {"is_breached": False, "hours_remaining": 5, "minutes_remaining": 30}

    def test_overdue(self):
        out = sla.time_to_sla(T0, now=T0 + timedelta(hours=2, minutes=15))
        assert out["is_breached"] is True
        assert out["hours_remaining"] == 2
        assert out["minutes_remaining"] == 15
