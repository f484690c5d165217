# File: civictrack/services/tickets.py
# Project: civictrack

"""Yearly ticket numbers: ``VMC-2026-000001``.

The counter lives in ``system_config`` and is bumped with a single
``UPDATE ... RETURNING`` inside the caller's transaction. The database holds
the row lock until that transaction commits, so two concurrent issue creations
can never read the same value, and a rolled-back creation gives its number
back.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from civictrack.core.config import settings
from civictrack.models.system_config import SystemConfig


def counter_key(year: int) -> str:
    return f"ticket_counter_{year}"


def format_ticket_number(year: int, sequence: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.ticket_prefix}-{year}-{sequence:06d}"


def _seed_counter(db: Session, key: str) -> None:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(SystemConfig).values(key=key, last_value=0)
    elif dialect == "sqlite":
        stmt = sqlite.insert(SystemConfig).values(key=key, last_value=0)
    else:
        raise RuntimeError(f"ticket counter needs an upsert-capable database, got {dialect}")
    db.execute(stmt.on_conflict_do_nothing(index_elements=["key"]))


def next_sequence(db: Session, year: int) -> int:
    key = counter_key(year)
    _seed_counter(db, key)
    return db.execute(
        update(SystemConfig)
        .where(SystemConfig.key == key)
        .values(last_value=SystemConfig.last_value + 1)
        .returning(SystemConfig.last_value)
        .execution_options(synchronize_session=False)
    ).scalar_one()


def next_ticket_number(db: Session, year: Optional[int] = None) -> str:
    year = year or datetime.now(timezone.utc).year
    return format_ticket_number(year, next_sequence(db, year))
