# File: civictrack/services/sla.py
# Project: civictrack

from datetime import datetime, timedelta, timezone
from typing import Optional


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sla_target(created_at: datetime, sla_hours: int) -> datetime:
    # timedelta arithmetic keeps windows longer than a day exact
    return created_at + timedelta(hours=sla_hours)


def is_breached(deadline: datetime, resolved_at: Optional[datetime] = None,
                now: Optional[datetime] = None) -> bool:
    check = resolved_at or now or datetime.now(timezone.utc)
    return as_utc(check) > as_utc(deadline)


def compliance(total_resolved: int, resolved_within_sla: int) -> float:
    """Percentage of resolved issues closed inside their SLA window.

    No resolved issues means nothing was late, so the set is 100% compliant.
    """
    if total_resolved == 0:
        return 100.0
    return round(resolved_within_sla / total_resolved * 100, 2)


def time_to_sla(deadline: datetime, now: Optional[datetime] = None) -> dict:
    now = as_utc(now or datetime.now(timezone.utc))
    diff = as_utc(deadline) - now
    seconds = abs(diff.total_seconds())
    return {
        "is_breached": diff.total_seconds() < 0,
        "hours_remaining": int(seconds // 3600),
        "minutes_remaining": int((seconds % 3600) // 60),
    }
