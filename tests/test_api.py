"""
HTTP tests: identity headers, error-to-status mapping and the end-to-end
tutor/admin flows through the FastAPI app.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from tutortime.models import TimeEntryAudit, TimeEntryDay, WeeklyAttestation
from tutortime.models.time_entry import CLOCKED_IN
from tutortime.services.schedule_snapshot import ScheduleInterval, build_snapshot, sign_snapshot
from tutortime.services.time_entry import TimeEntryService

from conftest import (
    ADMIN_ID,
    FRANCHISE_ID,
    MONDAY_9AM,
    SECRET,
    TUTOR_ID,
    ZONE,
    add_slot,
    admin_headers,
    tutor_headers,
)


WORK_DATE = date(2026, 1, 5)
SESSIONS = [{"startAt": "2026-01-05T09:00:00-06:00", "endAt": "2026-01-05T10:00:00-06:00"}]


@pytest.fixture
def schedule(db):
    add_slot(db, WORK_DATE, 1, "9:00 AM - 10:00 AM")


def fetch_snapshot(client) -> dict:
    response = client.get("/schedule/me/snapshot", params={"workDate": "2026-01-05"}, headers=tutor_headers())
    assert response.status_code == 200
    return response.json()["scheduleSnapshot"]


class TestIdentity:
    def test_missing_headers_is_401(self, client):
        response = client.get("/clock/me/state")
        assert response.status_code == 401

    def test_missing_franchise_is_400(self, client):
        headers = tutor_headers()
        del headers["X-Franchise-Id"]
        assert client.get("/clock/me/state", headers=headers).status_code == 400

    def test_admin_cannot_use_tutor_routes(self, client):
        assert client.get("/clock/me/state", headers=admin_headers()).status_code == 403

    def test_tutor_cannot_use_admin_routes(self, client):
        assert client.get("/time-entry/admin/pending", headers=tutor_headers()).status_code == 403


class TestClockFlow:
    def test_gate_blocks_clock_in(self, client):
        response = client.post("/clock/me/in", headers=tutor_headers())
        assert response.status_code == 409
        body = response.json()
        assert body["missingWeekEnd"] == "2026-01-03"
        assert "attestation" in body["error"].lower()

    def test_clock_in_out_finalize(self, client, clock, schedule, attested):
        response = client.post("/clock/me/in", headers=tutor_headers())
        assert response.status_code == 201
        assert response.json()["state"]["clockState"] == 0

        again = client.post("/clock/me/in", headers=tutor_headers())
        assert again.status_code == 200
        assert again.json()["state"]["openSessionId"] == response.json()["state"]["openSessionId"]

        snapshot = fetch_snapshot(client)
        clock.set(MONDAY_9AM + timedelta(hours=1))
        out = client.post(
            "/clock/me/out",
            json={"finalize": True, "scheduleSnapshot": snapshot},
            headers=tutor_headers(),
        )
        assert out.status_code == 200
        assert out.json()["state"]["dayStatus"] == "approved"

        state = client.get("/clock/me/state", headers=tutor_headers()).json()["state"]
        assert state["clockState"] == 1
        assert state["dayStatus"] == "approved"

    def test_clock_out_without_body(self, client, attested):
        client.post("/clock/me/in", headers=tutor_headers())
        response = client.post("/clock/me/out", headers=tutor_headers())
        assert response.status_code == 200

    def test_tampered_snapshot_is_400(self, client, schedule, attested):
        client.post("/clock/me/in", headers=tutor_headers())
        snapshot = fetch_snapshot(client)
        snapshot["slotMinutes"] = 30
        response = client.post(
            "/clock/me/out", json={"finalize": True, "scheduleSnapshot": snapshot}, headers=tutor_headers()
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid schedule snapshot signature"}


class TestDayRoutes:
    def test_save_submit_and_list(self, client, schedule, attested):
        created = client.put("/time-entry/me/day/2026-01-05", json={"sessions": SESSIONS}, headers=tutor_headers())
        assert created.status_code == 201
        assert created.json()["day"]["sessions"][0]["startAt"] == "2026-01-05T15:00:00Z"

        saved = client.put("/time-entry/me/day/2026-01-05", json={"sessions": SESSIONS}, headers=tutor_headers())
        assert saved.status_code == 200

        submitted = client.post(
            "/time-entry/me/day/2026-01-05/submit",
            json={"scheduleSnapshot": fetch_snapshot(client)},
            headers=tutor_headers(),
        )
        assert submitted.status_code == 200
        assert submitted.json()["day"]["status"] == "approved"

        listing = client.get(
            "/time-entry/me", params={"start": "2026-01-01", "end": "2026-01-31"}, headers=tutor_headers()
        )
        days = listing.json()["days"]
        assert [d["workDate"] for d in days] == ["2026-01-05"]
        assert days[0]["workedMinutes"] == 60

    @pytest.mark.parametrize("path", ["/time-entry/me/day/2026-1-5", "/time-entry/me/day/2026-02-30"])
    def test_bad_work_date(self, client, attested, path):
        response = client.put(path, json={"sessions": SESSIONS}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json()["error"] == "workDate must be YYYY-MM-DD"

    def test_overlap_is_400(self, client, attested):
        overlapping = SESSIONS + [{"startAt": "2026-01-05T09:30:00-06:00", "endAt": "2026-01-05T11:00:00-06:00"}]
        response = client.put("/time-entry/me/day/2026-01-05", json={"sessions": overlapping}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json()["error"] == "Sessions must not overlap"

    def test_list_requires_dates(self, client):
        response = client.get("/time-entry/me", params={"start": "2026-01-01"}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json()["error"] == "start and end must be YYYY-MM-DD"

    def test_submit_missing_day_is_404(self, client, schedule, attested):
        response = client.post(
            "/time-entry/me/day/2026-01-05/submit",
            json={"scheduleSnapshot": fetch_snapshot(client)},
            headers=tutor_headers(),
        )
        assert response.status_code == 404

    def test_hours(self, client, schedule, attested):
        client.put("/time-entry/me/day/2026-01-05", json={"sessions": SESSIONS}, headers=tutor_headers())
        response = client.get("/time-entry/me/hours", params={"month": "2026-01"}, headers=tutor_headers())
        assert response.status_code == 200
        body = response.json()
        assert body["month"]["month"] == "2026-01"
        assert body["month"]["totalHours"] == 1.0
        assert body["month"]["approvedHours"] == 0.0
        assert body["payPeriod"]["source"] == "computed"

    @pytest.mark.parametrize("month", ["2026-13", "2026-00", "0000-01", "9999-12", "26-01"])
    def test_hours_bad_month(self, client, month):
        response = client.get("/time-entry/me/hours", params={"month": month}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json() == {"error": "month must be YYYY-MM"}


class TestAdminRoutes:
    @pytest.fixture
    def pending_id(self, client, db, schedule, attested):
        longer = [{"startAt": "2026-01-05T09:00:00-06:00", "endAt": "2026-01-05T10:30:00-06:00"}]
        client.put("/time-entry/me/day/2026-01-05", json={"sessions": longer}, headers=tutor_headers())
        response = client.post(
            "/time-entry/me/day/2026-01-05/submit",
            json={"scheduleSnapshot": fetch_snapshot(client)},
            headers=tutor_headers(),
        )
        assert response.json()["day"]["status"] == "pending"
        return response.json()["day"]["id"]

    def test_pending_queue(self, client, pending_id):
        response = client.get("/time-entry/admin/pending", headers=admin_headers())
        assert response.status_code == 200
        days = response.json()["days"]
        assert [d["id"] for d in days] == [pending_id]
        assert days[0]["history"]["lastAudit"]["action"] == "submitted"
        assert days[0]["history"]["wasEverApproved"] is False

    def test_deny_without_reason_is_400(self, client, db, pending_id):
        response = client.post(
            f"/time-entry/admin/day/{pending_id}/decide", json={"decision": "deny"}, headers=admin_headers()
        )
        assert response.status_code == 400
        db.expire_all()
        assert db.get(TimeEntryDay, pending_id).status == "pending"

    def test_approve_then_conflict(self, client, pending_id):
        approved = client.post(
            f"/time-entry/admin/day/{pending_id}/decide", json={"decision": "approve"}, headers=admin_headers()
        )
        assert approved.status_code == 200
        assert approved.json()["day"]["decidedBy"] == ADMIN_ID

        again = client.post(
            f"/time-entry/admin/day/{pending_id}/decide", json={"decision": "approve"}, headers=admin_headers()
        )
        assert again.status_code == 409

    def test_self_approval_is_403(self, client, pending_id):
        response = client.post(
            f"/time-entry/admin/day/{pending_id}/decide",
            json={"decision": "approve"},
            headers=admin_headers(admin_id=TUTOR_ID),
        )
        assert response.status_code == 403

    def test_other_franchise_is_404(self, client, pending_id):
        response = client.post(
            f"/time-entry/admin/day/{pending_id}/decide",
            json={"decision": "approve"},
            headers=admin_headers(franchise_id=99),
        )
        assert response.status_code == 404

    def test_fix(self, client, pending_id):
        response = client.put(
            f"/time-entry/admin/day/{pending_id}",
            json={"sessions": SESSIONS, "reason": "trimmed to schedule"},
            headers=admin_headers(),
        )
        assert response.status_code == 200
        day = response.json()["day"]
        assert day["status"] == "pending"
        assert day["comparison"]["matches"] is True

    def test_non_positive_id(self, client):
        response = client.put(
            "/time-entry/admin/day/0", json={"sessions": SESSIONS, "reason": "whatever"}, headers=admin_headers()
        )
        assert response.status_code == 400


class TestAttestationRoutes:
    def test_sign_flow(self, client, db, clock):
        clock.set(datetime(2026, 1, 12, 15, 0, tzinfo=timezone.utc))

        reminder = client.get("/attestation/me/reminder", headers=tutor_headers())
        assert reminder.json()["missingWeekEnd"] == "2026-01-10"

        signed = client.post(
            "/attestation/me/sign",
            json={"typedName": "Ada Lovelace"},
            headers={**tutor_headers(), "User-Agent": "pytest-agent"},
        )
        assert signed.status_code == 201
        assert signed.json()["weekEnd"] == "2026-01-10"

        again = client.post("/attestation/me/sign", headers=tutor_headers(name="Ada"))
        assert again.status_code == 200
        assert again.json()["typedName"] == "Ada Lovelace"

        row = db.query(WeeklyAttestation).one()
        assert row.metadata_json["userAgent"] == "pytest-agent"

        status = client.get("/attestation/me/status", headers=tutor_headers()).json()
        assert status["signed"] is True

        assert client.post("/clock/me/in", headers=tutor_headers()).status_code == 201

    def test_blank_typed_name_is_400(self, client):
        response = client.post("/attestation/me/sign", json={"typedName": "   "}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json()["error"] == "typedName is required (max 200 characters)"


class TestPayPeriodRoutes:
    def test_for_date(self, client):
        response = client.get("/pay-period", params={"forDate": "2024-01-20"}, headers=admin_headers())
        assert response.status_code == 200
        period = response.json()["payPeriod"]
        assert (period["startDate"], period["endDate"]) == ("2024-01-15", "2024-01-28")

    def test_current(self, client):
        period = client.get("/pay-period/current", headers=tutor_headers()).json()["payPeriod"]
        assert period["resolvedForDate"] == "2026-01-05"

    def test_bad_date(self, client):
        response = client.get("/pay-period", params={"forDate": "01/20/2024"}, headers=tutor_headers())
        assert response.status_code == 400
        assert response.json() == {"error": "forDate must be YYYY-MM-DD"}


class TestTransactions:
    def test_deadlock_during_clock_in_is_retryable_409(self, client, db, attested, monkeypatch):
        def deadlocked(self, *args, **kwargs):
            raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("1205 deadlock victim"))

        monkeypatch.setattr(TimeEntryService, "get_or_create_day", deadlocked)
        response = client.post("/clock/me/in", headers=tutor_headers())

        assert response.status_code == 409
        assert response.json() == {"error": "The entry was modified concurrently; please retry.", "retryable": True}
        assert db.query(TimeEntryDay).count() == 0

    def test_rejected_finalize_leaves_session_open(self, client, db, clock, attested):
        assert client.post("/clock/me/in", headers=tutor_headers()).status_code == 201

        unsigned = build_snapshot(FRANCHISE_ID, TUTOR_ID, WORK_DATE, ZONE, 60, [], MONDAY_9AM)
        unsigned = unsigned.model_copy(update={"intervals": [ScheduleInterval(start_at="09:00", end_at="10:00")]})
        snapshot = sign_snapshot(unsigned, SECRET).to_json()

        clock.set(MONDAY_9AM + timedelta(hours=1))
        response = client.post(
            "/clock/me/out", json={"finalize": True, "scheduleSnapshot": snapshot}, headers=tutor_headers()
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Intervals must be ISO timestamps")

        db.expire_all()
        day = db.query(TimeEntryDay).one()
        assert day.clock_state == CLOCKED_IN
        assert day.status == "draft"
        assert [session.end_at for session in day.sessions] == [None]
        actions = [row.action for row in db.query(TimeEntryAudit).order_by(TimeEntryAudit.id)]
        assert actions == ["clock_in"]
