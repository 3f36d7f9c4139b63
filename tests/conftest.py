"""
Test configuration: in-memory SQLite, a controllable clock, and helpers
for building services and signed schedule snapshots.

Environment variables are set at import time, before any tutortime
module reads its settings.
"""

import os
from datetime import date, datetime, timezone

os.environ["TUTORTIME_DB_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TUTORTIME_SCHEDULE_SNAPSHOT_SIGNING_SECRET"] = "test-signing-secret"
os.environ["TUTORTIME_DEFAULT_TIMEZONE"] = "America/Chicago"
os.environ["TUTORTIME_DEFAULT_PAY_PERIOD_TYPE"] = "biweekly"
os.environ["TUTORTIME_BIWEEKLY_ANCHOR_DATE"] = "2024-01-01"

import pytest
from fastapi.testclient import TestClient

from tutortime.database import SessionLocal, engine, get_db
from tutortime.dependencies import get_clock
from tutortime.models import Base, ScheduledSlot, WeeklyAttestation
from tutortime.services.attestation import AttestationService
from tutortime.services.attestation_copy import WEEKLY_ATTESTATION_STATEMENT, WEEKLY_ATTESTATION_TEXT_VERSION
from tutortime.services.attestation_gate import AttestationGate
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.schedule_snapshot import ScheduleSnapshotService
from tutortime.services.time_entry import TimeEntryService


SECRET = "test-signing-secret"
ZONE = "America/Chicago"
FRANCHISE_ID = 3
TUTOR_ID = 41
ADMIN_ID = 7

# Monday 2026-01-05, 09:00 in Chicago (CST, UTC-6)
MONDAY_9AM = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock the tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock():
    return FixedClock(MONDAY_9AM)


@pytest.fixture
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def resolver(db, clock):
    return PayPeriodResolver(
        db,
        default_timezone=ZONE,
        default_pay_period_type="biweekly",
        biweekly_anchor_date="2024-01-01",
        clock=clock,
    )


@pytest.fixture
def gate(db, clock):
    return AttestationGate(db, clock=clock)


@pytest.fixture
def service(db, resolver, gate, clock):
    return TimeEntryService(db, resolver, gate, signing_secret=SECRET, clock=clock)


@pytest.fixture
def attestations(db, resolver, clock):
    return AttestationService(db, resolver, clock=clock)


@pytest.fixture
def snapshots(db, clock):
    return ScheduleSnapshotService(db, slot_minutes=60, signing_secret=SECRET, clock=clock)


def add_attestation(db, week_end: date, tutor_id: int = TUTOR_ID, franchise_id: int = FRANCHISE_ID):
    """Insert a signed attestation for the week ending week_end (a Saturday)."""
    row = WeeklyAttestation(
        franchise_id=franchise_id,
        tutor_id=tutor_id,
        week_start=date.fromordinal(week_end.toordinal() - 6),
        week_end=week_end,
        timezone=ZONE,
        typed_name="Test Tutor",
        attestation_text=WEEKLY_ATTESTATION_STATEMENT,
        attestation_text_version=WEEKLY_ATTESTATION_TEXT_VERSION,
        metadata_json={},
    )
    db.add(row)
    db.commit()
    return row


def add_slot(db, schedule_date: date, time_id: int, label: str, tutor_id: int = TUTOR_ID):
    db.add(ScheduledSlot(
        franchise_id=FRANCHISE_ID,
        tutor_id=tutor_id,
        schedule_date=schedule_date,
        time_id=time_id,
        time_label=label,
    ))
    db.commit()


@pytest.fixture
def attested(db):
    """Week ending Saturday 2026-01-03 is attested, so the week of MONDAY_9AM is open."""
    return add_attestation(db, date(2026, 1, 3))


@pytest.fixture
def client(db, clock):
    from tutortime.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def tutor_headers(tutor_id: int = TUTOR_ID, franchise_id: int = FRANCHISE_ID, name: str = "Test Tutor") -> dict:
    return {
        "X-Account-Type": "TUTOR",
        "X-Account-Id": str(tutor_id),
        "X-Franchise-Id": str(franchise_id),
        "X-Display-Name": name,
    }


def admin_headers(admin_id: int = ADMIN_ID, franchise_id: int = FRANCHISE_ID) -> dict:
    return {
        "X-Account-Type": "ADMIN",
        "X-Account-Id": str(admin_id),
        "X-Franchise-Id": str(franchise_id),
    }
