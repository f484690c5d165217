"""Test configuration and fixtures."""

import os

# Set environment variables before importing application code
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("CACHE_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import Generator

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from civictrack.core.cache import RedisCache
from civictrack.db.base import Base
from civictrack.models import (
    Department,
    IssueCategory,
    User,
    UserRole,
    Ward,
    Zone,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def square(lng: float, lat: float, size: float = 0.1) -> dict:
    """GeoJSON polygon for an axis-aligned square with its south-west corner at (lng, lat)."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [lng, lat],
            [lng + size, lat],
            [lng + size, lat + size],
            [lng, lat + size],
            [lng, lat],
        ]],
    }


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client) -> RedisCache:
    return RedisCache(redis_client)


@pytest.fixture
def zone(db_session) -> Zone:
    z = Zone(name="North Zone", code="N")
    db_session.add(z)
    db_session.commit()
    return z


@pytest.fixture
def make_ward(db_session, zone):
    def _make(number: int, lng: float, lat: float, size: float = 0.1, zone_id=None) -> Ward:
        w = Ward(ward_number=number, name=f"Ward {number}", zone_id=zone_id or zone.id)
        w.set_boundary(square(lng, lat, size))
        db_session.add(w)
        db_session.commit()
        return w
    return _make


@pytest.fixture
def ward(make_ward) -> Ward:
    # covers lng 73.0-73.1, lat 22.0-22.1
    return make_ward(1, 73.0, 22.0)


@pytest.fixture
def other_ward(make_ward) -> Ward:
    # east neighbour of ``ward``
    return make_ward(2, 73.2, 22.0)


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: UserRole, ward_id=None, zone_id=None, department=None,
              is_active=True, created_at=None) -> User:
        counter["n"] += 1
        u = User(
            email=f"user{counter['n']}@example.com",
            full_name=f"User {counter['n']}",
            role=role,
            department=department,
            ward_id=ward_id,
            zone_id=zone_id,
            is_active=is_active,
            created_at=created_at or T0 + timedelta(minutes=counter["n"]),
        )
        db_session.add(u)
        db_session.commit()
        return u
    return _make


@pytest.fixture
def make_category(db_session):
    def _make(name: str = "Pothole", sla_hours: int = 24,
              department=Department.ROAD, is_active=True) -> IssueCategory:
        c = IssueCategory(
            name=name,
            slug=name.lower().replace(" ", "-"),
            sla_hours=sla_hours,
            department=department,
            is_active=is_active,
        )
        db_session.add(c)
        db_session.commit()
        return c
    return _make


@pytest.fixture
def category(make_category) -> IssueCategory:
    return make_category()
