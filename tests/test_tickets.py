"""Tests for yearly ticket numbering."""

import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from civictrack.db.base import Base
from civictrack.models import SystemConfig
from civictrack.services.tickets import (
    counter_key,
    format_ticket_number,
    next_sequence,
    next_ticket_number,
)


class TestFormat:
    def test_format(self):
        assert format_ticket_number(2026, 42) == "VMC-2026-000042"
        assert format_ticket_number(2026, 1, prefix="XYZ") == "XYZ-2026-000001"

    def test_counter_key(self):
        assert counter_key(2026) == "ticket_counter_2026"


class TestSequence:
    def test_sequential_without_gaps(self, db_session):
        numbers = [next_ticket_number(db_session, 2026) for _ in range(5)]
        db_session.commit()
        assert numbers == [f"VMC-2026-{n:06d}" for n in range(1, 6)]
        assert db_session.get(SystemConfig, "ticket_counter_2026").last_value == 5

    def test_years_are_independent(self, db_session):
        assert next_sequence(db_session, 2025) == 1
        assert next_sequence(db_session, 2026) == 1
        assert next_sequence(db_session, 2026) == 2

    def test_rollback_gives_the_number_back(self, db_session):
        next_sequence(db_session, 2026)
        db_session.commit()
        next_sequence(db_session, 2026)
        db_session.rollback()
        assert next_sequence(db_session, 2026) == 2

    def test_concurrent_issuance_is_unique(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'tickets.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(bind=engine)
        issued, errors = [], []
        lock = threading.Lock()

        def worker():
            db = Session()
            try:
                number = next_ticket_number(db, 2026)
                db.commit()
                with lock:
                    issued.append(number)
            except Exception as e:
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        engine.dispose()

        assert errors == []
        assert sorted(issued) == [f"VMC-2026-{n:06d}" for n in range(1, 11)]
