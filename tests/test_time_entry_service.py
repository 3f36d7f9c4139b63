"""
Tests for the day/session state machine in TimeEntryService.

Tests validate:
- Clock-in/out, including the redundant clock-in no-op and same-minute discard
- Finalizing clock-out and submit: auto-approval vs pending
- Manual saves: validation, invalidation of decided days, comparison refresh
- Admin decide/fix rules, including self-approval
- Review queue history and hours summaries
- Audit rows for every transition
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from tutortime.models import TimeEntryAudit, TimeEntryDay, TimeEntrySession
from tutortime.models.time_entry import CLOCKED_IN, CLOCKED_OUT
from tutortime.services.errors import (
    AttestationRequired,
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    SnapshotError,
    ValidationError,
)
from tutortime.services.time_entry import (
    AUTO_APPROVED_ON_CLOCK_OUT,
    AUTO_APPROVED_ON_SUBMIT,
    SESSION_RULE,
    day_worked_minutes,
)

from conftest import ADMIN_ID, FRANCHISE_ID, MONDAY_9AM, TUTOR_ID, add_attestation, add_slot


WORK_DATE = date(2026, 1, 5)


def local(hhmm: str, day: date = WORK_DATE) -> str:
    return f"{day.isoformat()}T{hhmm}:00-06:00"


def session(start: str, end: str, day: date = WORK_DATE) -> dict:
    return {"startAt": local(start, day), "endAt": local(end, day)}


def audit_actions(db, day_id: int) -> list[str]:
    rows = db.query(TimeEntryAudit).filter(TimeEntryAudit.entry_day_id == day_id).order_by(TimeEntryAudit.id).all()
    return [row.action for row in rows]


@pytest.fixture
def nine_to_ten(db):
    """Posted schedule 09:00-10:00 local on WORK_DATE."""
    add_slot(db, WORK_DATE, 1, "9:00 AM - 10:00 AM")


@pytest.fixture
def snapshot(nine_to_ten, snapshots):
    return snapshots.issue(FRANCHISE_ID, TUTOR_ID, WORK_DATE, "America/Chicago").to_json()


class TestClock:
    def test_clock_in_opens_session(self, db, service, attested):
        state = service.clock_in(FRANCHISE_ID, TUTOR_ID)
        db.commit()

        assert state["created"] is True
        assert state["clockState"] == CLOCKED_IN
        assert state["workDate"] == "2026-01-05"
        assert state["startedAt"] == "2026-01-05T15:00:00Z"
        assert state["attestationBlocking"] is False

        day = db.query(TimeEntryDay).one()
        assert day.status == "draft"
        assert day.clock_state == CLOCKED_IN
        assert audit_actions(db, day.id) == ["clock_in"]

    def test_second_clock_in_is_noop(self, db, service, clock, attested):
        first = service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(minutes=5))
        second = service.clock_in(FRANCHISE_ID, TUTOR_ID)
        db.commit()

        assert second["created"] is False
        assert second["openSessionId"] == first["openSessionId"]
        assert db.query(TimeEntrySession).count() == 1
        assert audit_actions(db, first["dayId"]) == ["clock_in"]

    def test_clock_in_truncates_to_minute(self, db, service, clock, attested):
        clock.set(MONDAY_9AM + timedelta(seconds=42))
        state = service.clock_in(FRANCHISE_ID, TUTOR_ID)
        assert state["startedAt"] == "2026-01-05T15:00:00Z"

    def test_clock_in_blocked_by_gate(self, db, service, clock):
        with pytest.raises(AttestationRequired) as excinfo:
            service.clock_in(FRANCHISE_ID, TUTOR_ID)
        assert excinfo.value.missing_week_end == "2026-01-03"
        assert db.query(TimeEntryDay).count() == 0

    def test_clock_out_closes_session(self, db, service, clock, attested):
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(minutes=61, seconds=30))
        state = service.clock_out(FRANCHISE_ID, TUTOR_ID)
        db.commit()

        assert state["clockState"] == CLOCKED_OUT
        assert state["openSessionId"] is None
        row = db.query(TimeEntrySession).one()
        assert row.end_at == datetime(2026, 1, 5, 16, 1)
        day = db.query(TimeEntryDay).one()
        assert day.status == "draft"
        assert day_worked_minutes(day) == 61
        assert audit_actions(db, day.id) == ["clock_in", "clock_out"]

    def test_same_minute_clock_out_discards_session(self, db, service, clock, attested):
        clock.set(MONDAY_9AM + timedelta(seconds=10))
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(seconds=50))
        service.clock_out(FRANCHISE_ID, TUTOR_ID)
        db.commit()

        assert db.query(TimeEntrySession).count() == 0
        last = db.query(TimeEntryAudit).order_by(TimeEntryAudit.id.desc()).first()
        assert last.action == "clock_out"
        assert last.metadata_json["discarded"] is True

    def test_clock_out_without_day_is_harmless(self, db, service, attested):
        state = service.clock_out(FRANCHISE_ID, TUTOR_ID)
        assert state["dayId"] is None
        assert db.query(TimeEntryDay).count() == 0

    def test_finalize_without_day_is_not_found(self, db, service, snapshot, attested):
        with pytest.raises(NotFoundError):
            service.clock_out(FRANCHISE_ID, TUTOR_ID, finalize=True, snapshot_raw=snapshot)

    def test_finalize_requires_snapshot(self, db, service, attested):
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        with pytest.raises(ValidationError, match="required when finalize=true"):
            service.clock_out(FRANCHISE_ID, TUTOR_ID, finalize=True, snapshot_raw=None)

    def test_finalize_exact_match_auto_approves(self, db, service, clock, snapshot, attested):
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(hours=1))
        state = service.clock_out(FRANCHISE_ID, TUTOR_ID, finalize=True, snapshot_raw=snapshot)
        db.commit()

        assert state["dayStatus"] == "approved"
        day = db.query(TimeEntryDay).one()
        assert day.decided_by is None
        assert day.decision_reason == AUTO_APPROVED_ON_CLOCK_OUT
        assert day.comparison["matches"] is True
        assert day.schedule_snapshot == snapshot

        last = db.query(TimeEntryAudit).order_by(TimeEntryAudit.id.desc()).first()
        assert (last.action, last.actor_account_type, last.actor_account_id) == ("auto_approved", "SYSTEM", None)
        assert last.metadata_json["finalize"] is True

    def test_finalize_mismatch_goes_pending(self, db, service, clock, snapshot, attested):
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(minutes=90))
        state = service.clock_out(FRANCHISE_ID, TUTOR_ID, finalize=True, snapshot_raw=snapshot)
        db.commit()

        assert state["dayStatus"] == "pending"
        day = db.query(TimeEntryDay).one()
        assert day.decided_at is None
        assert day.comparison["diffs"]["manualOnly"] == [
            {"startAt": "2026-01-05T16:00:00.000Z", "endAt": "2026-01-05T16:30:00.000Z"},
        ]
        assert audit_actions(db, day.id)[-1] == "submitted"

    def test_clock_in_on_approved_day_invalidates(self, db, service, clock, snapshot, attested):
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        clock.set(MONDAY_9AM + timedelta(hours=1))
        service.clock_out(FRANCHISE_ID, TUTOR_ID, finalize=True, snapshot_raw=snapshot)
        clock.set(MONDAY_9AM + timedelta(hours=3))
        service.clock_in(FRANCHISE_ID, TUTOR_ID)
        db.commit()

        day = db.query(TimeEntryDay).one()
        assert day.status == "pending"
        assert day.decision_reason is None
        assert audit_actions(db, day.id)[-2:] == ["invalidated", "clock_in"]

        clock_in_row = (
            db.query(TimeEntryAudit)
            .filter(TimeEntryAudit.entry_day_id == day.id, TimeEntryAudit.action == "clock_in")
            .order_by(TimeEntryAudit.id.desc())
            .first()
        )
        assert (clock_in_row.previous_status, clock_in_row.new_status) == ("approved", "pending")

    def test_clock_state_reports_gate(self, db, service, clock, attested):
        clock.set(datetime(2026, 1, 12, 15, 0, tzinfo=timezone.utc))
        state = service.clock_state(FRANCHISE_ID, TUTOR_ID)
        assert state["attestationBlocking"] is True
        assert state["missingWeekEnd"] == "2026-01-10"
        assert state["dayId"] is None


class TestSaveDay:
    def test_create_then_save(self, db, service, attested):
        day, created = service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        assert created is True
        _, created_again = service.save_day(
            FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00"), session("13:00", "14:30")]
        )
        db.commit()

        assert created_again is False
        assert day.status == "draft"
        assert day_worked_minutes(day) == 150
        assert [s.sort_order for s in day.sessions] == [0, 1]
        assert audit_actions(db, day.id) == ["created", "saved"]

        saved = db.query(TimeEntryAudit).order_by(TimeEntryAudit.id.desc()).first()
        assert len(saved.metadata_json["previousSessions"]) == 1
        assert len(saved.metadata_json["sessions"]) == 2

    def test_touching_sessions_allowed(self, db, service, attested):
        day, _ = service.save_day(
            FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00"), session("10:00", "11:00")]
        )
        assert len(day.sessions) == 2

    def test_overlap_rejected(self, db, service, attested):
        with pytest.raises(ValidationError, match="Sessions must not overlap"):
            service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00"), session("09:30", "11:00")])
        assert db.query(TimeEntryDay).count() == 0

    @pytest.mark.parametrize("bad", [
        {"startAt": "2026-01-05T09:00:00", "endAt": "2026-01-05T10:00:00"},
        {"startAt": "2026-01-05T09:00:30-06:00", "endAt": "2026-01-05T10:00:00-06:00"},
        {"startAt": "2026-01-05T10:00:00-06:00", "endAt": "2026-01-05T09:00:00-06:00"},
        # 23:30 local on the 4th
        {"startAt": "2026-01-05T05:30:00Z", "endAt": "2026-01-05T07:00:00Z"},
        "09:00-10:00",
    ])
    def test_invalid_session_rejected(self, db, service, attested, bad):
        with pytest.raises(ValidationError) as excinfo:
            service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [bad])
        assert excinfo.value.message == SESSION_RULE

    def test_sessions_must_be_list(self, db, service, attested):
        with pytest.raises(ValidationError, match="sessions must be an array"):
            service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, {"startAt": local("09:00")})

    def test_too_many_sessions(self, db, service, attested):
        many = [session(f"{hour:02d}:00", f"{hour:02d}:30") for hour in range(21)]
        with pytest.raises(ValidationError, match="too large"):
            service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, many)

    def test_closed_week_needs_no_attestation(self, db, service):
        last_week = date(2026, 1, 2)
        day, created = service.save_day(FRANCHISE_ID, TUTOR_ID, last_week, [session("09:00", "10:00", last_week)])
        assert created is True

    def test_save_on_approved_day_invalidates_and_recompares(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        day, _ = service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "11:00")])
        db.commit()

        assert day.status == "pending"
        assert day.decided_at is None
        assert day.comparison["matches"] is False
        assert audit_actions(db, day.id) == ["created", "auto_approved", "invalidated"]


class TestSubmit:
    def test_exact_match_auto_approves(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "09:30"), session("09:30", "10:00")])
        day = service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        db.commit()

        assert day.status == "approved"
        assert day.decision_reason == AUTO_APPROVED_ON_SUBMIT
        assert day.submitted_at == datetime(2026, 1, 5, 15, 0)

    def test_mismatch_goes_pending(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:30")])
        day = service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        assert day.status == "pending"
        assert day.comparison["diffs"]["scheduledOnly"] == []

    def test_missing_day(self, db, service, snapshot, attested):
        with pytest.raises(NotFoundError):
            service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)

    def test_snapshot_for_other_tutor(self, db, service, snapshots, attested):
        other = snapshots.issue(FRANCHISE_ID, TUTOR_ID + 1, WORK_DATE, "America/Chicago").to_json()
        with pytest.raises(AuthorizationError):
            service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, other)

    def test_snapshot_for_other_date(self, db, service, snapshot, attested):
        with pytest.raises(ValidationError, match="workDate must match"):
            service.submit_day(FRANCHISE_ID, TUTOR_ID, date(2026, 1, 6), snapshot)

    def test_tampered_snapshot(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "11:00")])
        snapshot["intervals"][0]["endAt"] = local("11:00")
        with pytest.raises(SnapshotError, match="Invalid schedule snapshot signature"):
            service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        assert db.query(TimeEntryDay).one().status == "draft"

    def test_unsigned_snapshot_rejected(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        del snapshot["signature"]
        with pytest.raises(SnapshotError, match="Missing"):
            service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)


@pytest.fixture
def pending_day(db, service, snapshot, attested):
    service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:30")])
    day = service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
    db.commit()
    assert day.status == "pending"
    return day


class TestAdminDecide:
    def test_approve(self, db, service, pending_day):
        day = service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "Approve")
        db.commit()
        assert day.status == "approved"
        assert day.decided_by == ADMIN_ID
        assert day.decision_reason is None
        last = db.query(TimeEntryAudit).order_by(TimeEntryAudit.id.desc()).first()
        assert (last.action, last.actor_account_type, last.actor_account_id) == ("approved", "ADMIN", ADMIN_ID)

    def test_deny_with_reason(self, db, service, pending_day):
        day = service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "deny", "  overran schedule ")
        assert day.status == "denied"
        assert day.decision_reason == "overran schedule"

    def test_deny_without_reason_touches_nothing(self, db, service, pending_day):
        before = audit_actions(db, pending_day.id)
        with pytest.raises(ValidationError, match="reason is required"):
            service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "deny", "   ")
        db.rollback()
        assert db.get(TimeEntryDay, pending_day.id).status == "pending"
        assert audit_actions(db, pending_day.id) == before

    def test_deny_without_reason_checked_before_lookup(self, db, service):
        with pytest.raises(ValidationError):
            service.admin_decide(9999, FRANCHISE_ID, ADMIN_ID, "deny", None)

    def test_bad_decision(self, db, service, pending_day):
        with pytest.raises(ValidationError, match="decision must be"):
            service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "maybe")

    def test_reason_too_long(self, db, service, pending_day):
        with pytest.raises(ValidationError, match="2000"):
            service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "deny", "x" * 2001)

    def test_self_approval_forbidden(self, db, service, pending_day):
        with pytest.raises(AuthorizationError, match="your own"):
            service.admin_decide(pending_day.id, FRANCHISE_ID, TUTOR_ID, "approve")

    def test_other_franchise_not_found(self, db, service, pending_day):
        with pytest.raises(NotFoundError):
            service.admin_decide(pending_day.id, FRANCHISE_ID + 1, ADMIN_ID, "approve")

    def test_only_pending(self, db, service, pending_day):
        service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "approve")
        with pytest.raises(PreconditionError, match="current status: approved"):
            service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "deny", "changed my mind")


class TestAdminFix:
    def test_fix_approved_day(self, db, service, pending_day):
        service.admin_decide(pending_day.id, FRANCHISE_ID, ADMIN_ID, "approve")
        day = service.admin_fix(pending_day.id, FRANCHISE_ID, ADMIN_ID, [session("09:00", "10:00")], "trimmed to schedule")
        db.commit()

        assert day.status == "pending"
        assert day.decided_by is None
        assert day.clock_state == CLOCKED_OUT
        assert day.comparison["matches"] is True
        assert audit_actions(db, day.id)[-2:] == ["invalidated", "admin_fixed"]

        fixed = db.query(TimeEntryAudit).order_by(TimeEntryAudit.id.desc()).first()
        assert fixed.previous_status == "approved"
        assert fixed.metadata_json["reason"] == "trimmed to schedule"

    def test_fix_pending_day_has_no_invalidation(self, db, service, pending_day):
        service.admin_fix(pending_day.id, FRANCHISE_ID, ADMIN_ID, [session("09:00", "10:00")], "trimmed")
        assert audit_actions(db, pending_day.id)[-1] == "admin_fixed"
        assert "invalidated" not in audit_actions(db, pending_day.id)

    def test_fix_requires_reason(self, db, service, pending_day):
        with pytest.raises(ValidationError, match="min 5"):
            service.admin_fix(pending_day.id, FRANCHISE_ID, ADMIN_ID, [session("09:00", "10:00")], "ok")

    def test_fix_validates_sessions(self, db, service, pending_day):
        with pytest.raises(ValidationError, match="overlap"):
            service.admin_fix(
                pending_day.id, FRANCHISE_ID, ADMIN_ID,
                [session("09:00", "10:00"), session("09:59", "10:30")], "merged duplicate",
            )


class TestListings:
    def test_list_days(self, db, service, attested):
        add_attestation(db, date(2026, 1, 3), tutor_id=TUTOR_ID + 1)
        service.save_day(FRANCHISE_ID, TUTOR_ID, date(2026, 1, 6), [session("09:00", "10:00", date(2026, 1, 6))])
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        service.save_day(FRANCHISE_ID, TUTOR_ID + 1, WORK_DATE, [session("09:00", "10:00")])
        db.commit()

        days = service.list_days(FRANCHISE_ID, TUTOR_ID, date(2026, 1, 1), date(2026, 1, 31))
        assert [d.work_date for d in days] == [date(2026, 1, 5), date(2026, 1, 6)]

    def test_list_days_range_checked(self, db, service):
        with pytest.raises(ValidationError, match="end must be on or after start"):
            service.list_days(FRANCHISE_ID, TUTOR_ID, date(2026, 1, 31), date(2026, 1, 1))

    def test_pending_queue_history(self, db, service, snapshot, clock, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        clock.set(MONDAY_9AM + timedelta(hours=2))
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:15")])

        other_day = date(2026, 1, 6)
        service.save_day(FRANCHISE_ID, TUTOR_ID, other_day, [session("09:00", "10:00", other_day)])
        db.commit()

        queue = service.list_pending(FRANCHISE_ID)
        assert [item["workDate"] for item in queue] == ["2026-01-05"]
        history = queue[0]["history"]
        assert history["wasEverApproved"] is True
        assert history["lastAudit"]["action"] == "invalidated"
        assert history["lastAudit"]["at"] == "2026-01-05T17:00:00Z"

    def test_hours_summary(self, db, service, snapshot, attested):
        service.save_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, [session("09:00", "10:00")])
        service.submit_day(FRANCHISE_ID, TUTOR_ID, WORK_DATE, snapshot)
        other_day = date(2026, 1, 6)
        service.save_day(FRANCHISE_ID, TUTOR_ID, other_day, [session("09:00", "09:20", other_day)])
        db.commit()

        summary = service.hours_summary(
            FRANCHISE_ID, TUTOR_ID,
            datetime(2026, 1, 1, tzinfo=timezone.utc), datetime(2026, 2, 1, tzinfo=timezone.utc),
        )
        assert summary == {"approvedHours": 1.0, "pendingHours": 0.0, "totalHours": 1.33}
