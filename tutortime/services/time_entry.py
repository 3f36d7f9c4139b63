# TutorTime - Time Entry Service
# Day/session lifecycle: clock-in/out, manual saves, submission and admin review

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutortime.models.audit_log import (
    ACTION_ADMIN_FIXED,
    ACTION_APPROVED,
    ACTION_AUTO_APPROVED,
    ACTION_CLOCK_IN,
    ACTION_CLOCK_OUT,
    ACTION_CREATED,
    ACTION_DENIED,
    ACTION_INVALIDATED,
    ACTION_SAVED,
    ACTION_SUBMITTED,
    ACTOR_ADMIN,
    ACTOR_SYSTEM,
    ACTOR_TUTOR,
)
from tutortime.models.base import as_utc, to_storage
from tutortime.models.time_entry import (
    CLOCKED_IN,
    CLOCKED_OUT,
    STATUS_APPROVED,
    STATUS_DENIED,
    STATUS_DRAFT,
    STATUS_PENDING,
    TimeEntryDay,
    TimeEntrySession,
)
from tutortime.services.attestation_gate import AttestationGate, GateBlocked
from tutortime.services.audit import AuditQuery, AuditService, audit_entry_payload
from tutortime.services.comparison import ComparisonError, compute_comparison
from tutortime.services.errors import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    SnapshotError,
    ValidationError,
)
from tutortime.services.hours import minutes_to_hours, round_hours2
from tutortime.services.intervals import find_overlap, parse_offset_timestamp, to_epoch_minute, MinuteInterval
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.schedule_snapshot import ScheduleSnapshotV1, load_zone, verify_snapshot


logger = logging.getLogger(__name__)

STORED_SESSIONS_INVALID = "Stored sessions are invalid; re-save your day sessions."
SESSION_RULE = (
    "Each session must include startAt/endAt as ISO timestamps with timezone offset, "
    "aligned to the minute, within workDate in franchise timezone."
)
AUTO_APPROVED_ON_CLOCK_OUT = "auto-approved (exact schedule match)"
AUTO_APPROVED_ON_SUBMIT = "auto-approved (matching scheduled minutes)"

DEFAULT_LIST_LIMIT = 366
DEFAULT_PENDING_LIMIT = 200
MAX_PENDING_LIMIT = 500


def _iso_z(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _truncate_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def closed_sessions(day: TimeEntryDay) -> list[TimeEntrySession]:
    return [session for session in day.sessions if session.end_at is not None]


def session_payloads(sessions: Iterable[TimeEntrySession]) -> list[dict[str, Any]]:
    return [session.to_payload() for session in sessions if session.end_at is not None]


def day_payload(day: TimeEntryDay) -> dict[str, Any]:
    """Wire form of a day with its closed sessions."""
    return {
        "id": day.id,
        "franchiseId": day.franchise_id,
        "tutorId": day.tutor_id,
        "workDate": day.work_date.isoformat(),
        "timezone": day.timezone,
        "status": day.status,
        "clockState": day.clock_state,
        "scheduleSnapshot": day.schedule_snapshot,
        "comparison": day.comparison,
        "submittedAt": _iso_z(day.submitted_at),
        "decidedBy": day.decided_by,
        "decidedAt": _iso_z(day.decided_at),
        "decisionReason": day.decision_reason,
        "sessions": session_payloads(day.sessions),
    }


def day_worked_minutes(day: TimeEntryDay) -> int:
    total = 0
    for session in closed_sessions(day):
        total += int((session.end_at - session.start_at).total_seconds() // 60)
    return total


class TimeEntryService:
    """
    Service owning the TimeEntryDay/TimeEntrySession lifecycle.

    Every mutation locks the day row (SELECT ... FOR UPDATE) so concurrent
    clock actions on the same tutor/day are serialised, computes all
    derived state and audit rows, and flushes. The caller commits once
    inside database.write_transaction(), which rolls back on any exception
    so a rejected request leaves the day untouched.

    Usage:
        service = TimeEntryService(db, resolver, AttestationGate(db), signing_secret=secret)

        with write_transaction(db):
            state = service.clock_in(franchise_id=3, tutor_id=41)
        with write_transaction(db):
            state = service.clock_out(3, 41, finalize=True, snapshot_raw=payload)
    """

    def __init__(
        self,
        db: Session,
        resolver: PayPeriodResolver,
        gate: AttestationGate,
        signing_secret: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        max_sessions_per_day: int = 20,
        max_reason_length: int = 2000,
        min_fix_reason_length: int = 5,
    ):
        self.db = db
        self.resolver = resolver
        self.gate = gate
        self.signing_secret = signing_secret
        self.clock = clock
        self.max_sessions_per_day = max_sessions_per_day
        self.max_reason_length = max_reason_length
        self.min_fix_reason_length = min_fix_reason_length
        self.audit = AuditService(db, clock)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self.clock().astimezone(timezone.utc)

    def _today(self, tz_name: str) -> date:
        return self._now().astimezone(load_zone(tz_name)).date()

    def get_day(
        self,
        franchise_id: int,
        tutor_id: int,
        work_date: date,
        lock: bool = False,
    ) -> Optional[TimeEntryDay]:
        """Fetch a tutor's day, optionally row-locked for the rest of the transaction."""
        query = select(TimeEntryDay).where(
            TimeEntryDay.franchise_id == franchise_id,
            TimeEntryDay.tutor_id == tutor_id,
            TimeEntryDay.work_date == work_date,
        )
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def get_day_by_id(self, day_id: int, franchise_id: int, lock: bool = False) -> Optional[TimeEntryDay]:
        query = select(TimeEntryDay).where(
            TimeEntryDay.id == day_id,
            TimeEntryDay.franchise_id == franchise_id,
        )
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def get_or_create_day(
        self,
        franchise_id: int,
        tutor_id: int,
        work_date: date,
        tz_name: str,
    ) -> tuple[TimeEntryDay, bool]:
        """
        Idempotent create-or-fetch of a draft day, returned row-locked.

        A concurrent creator may win the insert; the unique constraint
        failure is contained in a savepoint and the winner's row is used.
        """
        day = self.get_day(franchise_id, tutor_id, work_date, lock=True)
        if day is not None:
            return day, False

        candidate = TimeEntryDay(
            franchise_id=franchise_id,
            tutor_id=tutor_id,
            work_date=work_date,
            timezone=tz_name,
            status=STATUS_DRAFT,
            clock_state=CLOCKED_OUT,
        )
        try:
            with self.db.begin_nested():
                self.db.add(candidate)
                self.db.flush()
        except IntegrityError:
            day = self.get_day(franchise_id, tutor_id, work_date, lock=True)
            if day is None:
                raise
            return day, False

        return candidate, True

    def get_open_session(self, day: TimeEntryDay, lock: bool = True) -> Optional[TimeEntrySession]:
        query = (
            select(TimeEntrySession)
            .where(
                TimeEntrySession.entry_day_id == day.id,
                TimeEntrySession.end_at.is_(None),
            )
            .order_by(TimeEntrySession.start_at.desc(), TimeEntrySession.id.desc())
            .limit(1)
        )
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def _next_sort_order(self, day: TimeEntryDay) -> int:
        return max((session.sort_order for session in day.sessions), default=-1) + 1

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_sessions(
        self,
        sessions: Any,
        work_date: date,
        tz_name: str,
    ) -> list[tuple[datetime, datetime]]:
        """
        Check a client session list before any row is touched.

        Every session needs minute-aligned offset timestamps, end after
        start, with both ends on work_date in the franchise zone. Sessions
        may touch but not overlap. Returns aware UTC (start, end) pairs in
        input order.
        """
        if not isinstance(sessions, list):
            raise ValidationError("sessions must be an array")
        if len(sessions) > self.max_sessions_per_day:
            raise ValidationError(f"sessions is too large (max {self.max_sessions_per_day})")

        zone = load_zone(tz_name)
        parsed: list[tuple[datetime, datetime]] = []
        for raw in sessions:
            if not isinstance(raw, Mapping):
                raise ValidationError(SESSION_RULE)
            start = parse_offset_timestamp(raw.get("startAt"))
            end = parse_offset_timestamp(raw.get("endAt"))
            if start is None or end is None or end <= start or zone is None:
                raise ValidationError(SESSION_RULE)
            if start.astimezone(zone).date() != work_date or end.astimezone(zone).date() != work_date:
                raise ValidationError(SESSION_RULE)
            parsed.append((start, end))

        overlap = find_overlap(MinuteInterval(to_epoch_minute(s), to_epoch_minute(e)) for s, e in parsed)
        if overlap is not None:
            raise ValidationError("Sessions must not overlap")

        return parsed

    def _normalize_reason(self, reason: Optional[str]) -> str:
        cleaned = (reason or "").strip()
        if len(cleaned) > self.max_reason_length:
            raise ValidationError(f"reason must be {self.max_reason_length} characters or fewer")
        return cleaned

    def _verified_snapshot(
        self,
        snapshot_raw: Any,
        franchise_id: int,
        tutor_id: int,
        work_date: date,
        required_message: str,
        work_date_message: str,
    ) -> ScheduleSnapshotV1:
        snapshot = ScheduleSnapshotV1.parse(snapshot_raw)
        if snapshot is None:
            raise ValidationError(required_message)
        if snapshot.franchise_id != franchise_id or snapshot.tutor_id != tutor_id:
            raise AuthorizationError("scheduleSnapshot does not match your session scope")
        if snapshot.work_date != work_date.isoformat():
            raise ValidationError(work_date_message)
        if self.signing_secret:
            result = verify_snapshot(snapshot, self.signing_secret)
            if not result.ok:
                logger.warning(
                    "Rejected schedule snapshot for tutor %s on %s: %s", tutor_id, work_date, result.error
                )
                raise SnapshotError(result.error)
        return snapshot

    def _compare(self, sessions: list[dict[str, Any]], snapshot: Mapping[str, Any]) -> tuple[bool, dict[str, Any]]:
        result = compute_comparison(sessions, snapshot.get("intervals") or [], computed_at=self._now())
        if isinstance(result, ComparisonError):
            if result.kind == "sessions":
                raise ValidationError(STORED_SESSIONS_INVALID)
            raise ValidationError(result.error)
        return result.matches, result.comparison

    def _require_gate(self, franchise_id: int, tutor_id: int, tz_name: str, work_date: date) -> None:
        self.gate.require(franchise_id, tutor_id, tz_name, work_date)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _invalidate(
        self,
        day: TimeEntryDay,
        actor_type: str,
        actor_id: Optional[int],
        metadata: dict[str, Any],
    ) -> None:
        """approved/denied -> pending, recorded as "invalidated"."""
        previous = day.status
        day.status = STATUS_PENDING
        day.submitted_at = to_storage(self._now())
        day.clear_decision()
        self.audit.record(day, ACTION_INVALIDATED, actor_type, actor_id, previous, day.status, metadata)
        logger.info("Day %s invalidated %s -> %s (%s)", day.id, previous, day.status, metadata.get("reason"))

    def _replace_sessions(self, day: TimeEntryDay, sessions: list[tuple[datetime, datetime]]) -> None:
        day.sessions = [
            TimeEntrySession(
                franchise_id=day.franchise_id,
                tutor_id=day.tutor_id,
                start_at=to_storage(start),
                end_at=to_storage(end),
                sort_order=index,
            )
            for index, (start, end) in enumerate(sessions)
        ]

    def _clock_payload(
        self,
        tz_name: str,
        work_date: date,
        day: Optional[TimeEntryDay],
        open_session: Optional[TimeEntrySession],
        franchise_id: int,
        tutor_id: int,
    ) -> dict[str, Any]:
        gate = self.gate.check(franchise_id, tutor_id, tz_name, work_date)
        return {
            "timezone": tz_name,
            "workDate": work_date.isoformat(),
            "dayId": day.id if day else None,
            "dayStatus": day.status if day else None,
            "clockState": CLOCKED_IN if open_session is not None else CLOCKED_OUT,
            "persistedClockState": day.clock_state if day else None,
            "openSessionId": open_session.id if open_session else None,
            "startedAt": _iso_z(open_session.start_at) if open_session else None,
            "attestationBlocking": isinstance(gate, GateBlocked),
            "missingWeekEnd": gate.week_end.isoformat() if isinstance(gate, GateBlocked) else None,
        }

    def clock_state(self, franchise_id: int, tutor_id: int) -> dict[str, Any]:
        """Current clock state for today in the franchise zone (read-only)."""
        tz_name = self.resolver.get_timezone(franchise_id)
        work_date = self._today(tz_name)
        day = self.get_day(franchise_id, tutor_id, work_date)
        open_session = self.get_open_session(day, lock=False) if day else None
        return self._clock_payload(tz_name, work_date, day, open_session, franchise_id, tutor_id)

    def clock_in(self, franchise_id: int, tutor_id: int) -> dict[str, Any]:
        """
        Open a session for today.

        An approved/denied day is invalidated to pending first. If a
        session is already open this is a no-op (created is False).
        """
        tz_name = self.resolver.get_timezone(franchise_id)
        work_date = self._today(tz_name)
        self._require_gate(franchise_id, tutor_id, tz_name, work_date)

        day, _ = self.get_or_create_day(franchise_id, tutor_id, work_date, tz_name)
        previous_clock_state = day.clock_state
        previous_status = day.status
        day.timezone = tz_name

        if day.is_decided:
            self._invalidate(day, ACTOR_TUTOR, tutor_id, {
                "workDate": work_date,
                "timezone": tz_name,
                "previousClockState": previous_clock_state,
                "reason": "clock_in",
            })

        open_session = self.get_open_session(day)
        if open_session is not None:
            if day.clock_state != CLOCKED_IN:
                day.clock_state = CLOCKED_IN
            self.db.flush()
            logger.info("Clock-in for day %s is a no-op; session %s already open", day.id, open_session.id)
            state = self._clock_payload(tz_name, work_date, day, open_session, franchise_id, tutor_id)
            state["created"] = False
            return state

        session = TimeEntrySession(
            franchise_id=franchise_id,
            tutor_id=tutor_id,
            start_at=to_storage(_truncate_minute(self._now())),
            end_at=None,
            sort_order=self._next_sort_order(day),
        )
        day.sessions.append(session)
        day.clock_state = CLOCKED_IN
        self.db.flush()

        self.audit.record(day, ACTION_CLOCK_IN, ACTOR_TUTOR, tutor_id, previous_status, day.status, {
            "workDate": work_date,
            "timezone": tz_name,
            "sessionId": session.id,
            "startedAt": session.start_at,
            "previousClockState": previous_clock_state,
            "newClockState": CLOCKED_IN,
        })
        logger.info("Tutor %s clocked in: day %s session %s", tutor_id, day.id, session.id)

        state = self._clock_payload(tz_name, work_date, day, session, franchise_id, tutor_id)
        state["created"] = True
        return state

    def clock_out(
        self,
        franchise_id: int,
        tutor_id: int,
        finalize: bool = False,
        snapshot_raw: Any = None,
    ) -> dict[str, Any]:
        """
        Close today's open session, if any.

        With finalize, the closed sessions are compared against a verified
        caller-supplied snapshot: an exact match is auto-approved by
        SYSTEM, anything else goes to pending for manual review.
        """
        tz_name = self.resolver.get_timezone(franchise_id)
        work_date = self._today(tz_name)
        self._require_gate(franchise_id, tutor_id, tz_name, work_date)

        snapshot = None
        if finalize:
            snapshot = self._verified_snapshot(
                snapshot_raw, franchise_id, tutor_id, work_date,
                "scheduleSnapshot (v1) is required when finalize=true",
                "scheduleSnapshot.workDate must match today in franchise timezone",
            )

        day = self.get_day(franchise_id, tutor_id, work_date, lock=True)
        if day is None:
            if finalize:
                raise NotFoundError("No time entry day found to finalize")
            return self._clock_payload(tz_name, work_date, None, None, franchise_id, tutor_id)

        previous_clock_state = day.clock_state
        day.timezone = tz_name
        open_session = self.get_open_session(day)

        if open_session is not None:
            started_at = open_session.start_at
            ended_at = to_storage(_truncate_minute(self._now()))
            discarded = ended_at <= started_at
            if discarded:
                # Clocked out within the same minute: nothing was worked
                day.sessions.remove(open_session)
            else:
                open_session.end_at = ended_at

            if day.is_decided:
                self._invalidate(day, ACTOR_TUTOR, tutor_id, {
                    "workDate": work_date,
                    "timezone": tz_name,
                    "previousClockState": previous_clock_state,
                    "reason": "clock_out",
                })

            day.clock_state = CLOCKED_OUT
            self.db.flush()

            self.audit.record(day, ACTION_CLOCK_OUT, ACTOR_TUTOR, tutor_id, day.status, day.status, {
                "workDate": work_date,
                "timezone": tz_name,
                "sessionId": open_session.id,
                "startedAt": started_at,
                "endedAt": None if discarded else ended_at,
                "discarded": discarded,
                "previousClockState": previous_clock_state,
                "newClockState": CLOCKED_OUT,
            })
            logger.info("Tutor %s clocked out: day %s session %s", tutor_id, day.id, open_session.id)
        elif day.clock_state != CLOCKED_OUT:
            day.clock_state = CLOCKED_OUT

        if snapshot is not None:
            snapshot_json = snapshot.to_json()
            matches, comparison = self._compare(session_payloads(day.sessions), snapshot_json)
            previous = day.status
            now = self._now()

            day.status = STATUS_APPROVED if matches else STATUS_PENDING
            day.schedule_snapshot = snapshot_json
            day.comparison = comparison
            day.submitted_at = to_storage(now)
            day.decided_by = None
            day.decided_at = to_storage(now) if matches else None
            day.decision_reason = AUTO_APPROVED_ON_CLOCK_OUT if matches else None
            day.clock_state = CLOCKED_OUT

            self.audit.record(
                day,
                ACTION_AUTO_APPROVED if matches else ACTION_SUBMITTED,
                ACTOR_SYSTEM if matches else ACTOR_TUTOR,
                None if matches else tutor_id,
                previous,
                day.status,
                {
                    "workDate": work_date,
                    "timezone": tz_name,
                    "scheduleSnapshot": snapshot_json,
                    "comparison": comparison,
                    "finalize": True,
                },
            )
            logger.info("Day %s finalized on clock-out: %s -> %s", day.id, previous, day.status)

        self.db.flush()
        return self._clock_payload(tz_name, work_date, day, None, franchise_id, tutor_id)

    def save_day(
        self,
        franchise_id: int,
        tutor_id: int,
        work_date: date,
        sessions: Any,
    ) -> tuple[TimeEntryDay, bool]:
        """
        Replace a day's sessions with a manually entered list.

        Returns (day, created). Decided days go back to pending; when a
        snapshot is stored on a pending day its comparison is recomputed.
        """
        tz_name = self.resolver.get_timezone(franchise_id)
        if not isinstance(sessions, list):
            raise ValidationError("sessions must be an array")
        if len(sessions) > self.max_sessions_per_day:
            raise ValidationError(f"sessions is too large (max {self.max_sessions_per_day})")

        self._require_gate(franchise_id, tutor_id, tz_name, work_date)
        parsed = self.validate_sessions(sessions, work_date, tz_name)

        day, created = self.get_or_create_day(franchise_id, tutor_id, work_date, tz_name)
        previous_sessions = [] if created else session_payloads(day.sessions)
        previous_status = None if created else day.status
        was_decided = day.is_decided

        day.timezone = tz_name
        if was_decided:
            day.status = STATUS_PENDING
            day.submitted_at = to_storage(self._now())
        day.clear_decision()
        day.clock_state = CLOCKED_OUT
        self._replace_sessions(day, parsed)
        self.db.flush()

        new_sessions = session_payloads(day.sessions)
        if day.status == STATUS_PENDING and day.schedule_snapshot:
            _, day.comparison = self._compare(new_sessions, day.schedule_snapshot)

        if created:
            action = ACTION_CREATED
        elif was_decided:
            action = ACTION_INVALIDATED
        else:
            action = ACTION_SAVED

        self.audit.record(day, action, ACTOR_TUTOR, tutor_id, previous_status, day.status, {
            "workDate": work_date,
            "timezone": tz_name,
            "previousSessions": previous_sessions,
            "sessions": new_sessions,
        })
        self.db.flush()
        logger.info("Day %s %s by tutor %s (%d sessions)", day.id, action, tutor_id, len(new_sessions))
        return day, created

    def submit_day(
        self,
        franchise_id: int,
        tutor_id: int,
        work_date: date,
        snapshot_raw: Any,
    ) -> TimeEntryDay:
        """
        Submit a day against a signed schedule snapshot.

        An exact match is auto-approved by SYSTEM; otherwise the day is
        pending for admin review.
        """
        snapshot = self._verified_snapshot(
            snapshot_raw, franchise_id, tutor_id, work_date,
            "scheduleSnapshot (v1) is required",
            "scheduleSnapshot.workDate must match workDate",
        )
        tz_name = self.resolver.get_timezone(franchise_id)
        self._require_gate(franchise_id, tutor_id, tz_name, work_date)

        day = self.get_day(franchise_id, tutor_id, work_date, lock=True)
        if day is None:
            raise NotFoundError("Not found")

        snapshot_json = snapshot.to_json()
        matches, comparison = self._compare(session_payloads(day.sessions), snapshot_json)
        previous = day.status
        now = self._now()

        day.status = STATUS_APPROVED if matches else STATUS_PENDING
        day.timezone = tz_name
        day.schedule_snapshot = snapshot_json
        day.comparison = comparison
        day.submitted_at = to_storage(now)
        day.decided_by = None
        day.decided_at = to_storage(now) if matches else None
        day.decision_reason = AUTO_APPROVED_ON_SUBMIT if matches else None

        self.audit.record(
            day,
            ACTION_AUTO_APPROVED if matches else ACTION_SUBMITTED,
            ACTOR_SYSTEM if matches else ACTOR_TUTOR,
            None if matches else tutor_id,
            previous,
            day.status,
            {
                "workDate": work_date,
                "timezone": tz_name,
                "scheduleSnapshot": snapshot_json,
                "comparison": comparison,
            },
        )
        self.db.flush()
        logger.info("Day %s submitted: %s -> %s", day.id, previous, day.status)
        return day

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_days(
        self,
        franchise_id: int,
        tutor_id: int,
        start: date,
        end: date,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[TimeEntryDay]:
        """A tutor's days in [start, end], oldest first."""
        if end < start:
            raise ValidationError("end must be on or after start")
        limit = max(1, min(limit, DEFAULT_LIST_LIMIT))
        return list(
            self.db.execute(
                select(TimeEntryDay)
                .where(
                    TimeEntryDay.franchise_id == franchise_id,
                    TimeEntryDay.tutor_id == tutor_id,
                    TimeEntryDay.work_date >= start,
                    TimeEntryDay.work_date <= end,
                )
                .order_by(TimeEntryDay.work_date.asc())
                .limit(limit)
            ).scalars().all()
        )

    def list_pending(self, franchise_id: int, limit: int = DEFAULT_PENDING_LIMIT) -> list[dict[str, Any]]:
        """Admin review queue: pending days, newest submission first, with audit history."""
        limit = max(1, min(limit, MAX_PENDING_LIMIT))
        days = list(
            self.db.execute(
                select(TimeEntryDay)
                .where(
                    TimeEntryDay.franchise_id == franchise_id,
                    TimeEntryDay.status == STATUS_PENDING,
                )
                .order_by(
                    case((TimeEntryDay.submitted_at.is_(None), 1), else_=0),
                    TimeEntryDay.submitted_at.desc(),
                    TimeEntryDay.work_date.desc(),
                    TimeEntryDay.id.desc(),
                )
                .limit(limit)
            ).scalars().all()
        )

        query = AuditQuery(self.db)
        ids = [day.id for day in days]
        ever_approved = query.get_ever_approved_day_ids(ids)
        last_entries = query.get_last_entries(ids)

        results = []
        for day in days:
            payload = day_payload(day)
            last = last_entries.get(day.id)
            payload["history"] = {
                "wasEverApproved": day.id in ever_approved,
                "lastAudit": audit_entry_payload(last) if last else None,
            }
            results.append(payload)
        return results

    def hours_summary(self, franchise_id: int, tutor_id: int, start_at: datetime, end_at: datetime) -> dict[str, Any]:
        """Worked hours from closed sessions starting in [start_at, end_at), split by day status."""
        rows = self.db.execute(
            select(TimeEntrySession, TimeEntryDay.status)
            .join(TimeEntryDay, TimeEntrySession.entry_day_id == TimeEntryDay.id)
            .where(
                TimeEntrySession.franchise_id == franchise_id,
                TimeEntrySession.tutor_id == tutor_id,
                TimeEntrySession.end_at.is_not(None),
                TimeEntrySession.start_at >= to_storage(start_at),
                TimeEntrySession.start_at < to_storage(end_at),
            )
        ).all()

        minutes = {"approved": 0, "pending": 0, "other": 0}
        for session, status in rows:
            worked = int((session.end_at - session.start_at).total_seconds() // 60)
            if status == STATUS_APPROVED:
                minutes["approved"] += worked
            elif status == STATUS_PENDING:
                minutes["pending"] += worked
            else:
                minutes["other"] += worked

        return {
            "approvedHours": round_hours2(minutes_to_hours(minutes["approved"])),
            "pendingHours": round_hours2(minutes_to_hours(minutes["pending"])),
            "totalHours": round_hours2(minutes_to_hours(sum(minutes.values()))),
        }

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    def admin_decide(
        self,
        day_id: int,
        franchise_id: int,
        admin_id: int,
        decision: Optional[str],
        reason: Optional[str] = None,
    ) -> TimeEntryDay:
        """Approve or deny a pending day."""
        normalized = (decision or "").strip().lower()
        if normalized not in ("approve", "deny"):
            raise ValidationError("decision must be 'approve' or 'deny'")
        cleaned_reason = self._normalize_reason(reason)
        if normalized == "deny" and not cleaned_reason:
            raise ValidationError("reason is required when denying a request")

        day = self.get_day_by_id(day_id, franchise_id, lock=True)
        if day is None:
            raise NotFoundError("Not found")
        if day.tutor_id == admin_id:
            raise AuthorizationError("You cannot decide your own time entry")
        if day.status != STATUS_PENDING:
            raise PreconditionError(f"Only pending entries can be decided (current status: {day.status})")

        previous = day.status
        day.status = STATUS_APPROVED if normalized == "approve" else STATUS_DENIED
        day.decided_by = admin_id
        day.decided_at = to_storage(self._now())
        day.decision_reason = cleaned_reason or None

        self.audit.record(
            day,
            ACTION_APPROVED if day.status == STATUS_APPROVED else ACTION_DENIED,
            ACTOR_ADMIN,
            admin_id,
            previous,
            day.status,
            {"reason": cleaned_reason or None},
        )
        self.db.flush()
        logger.info("Admin %s %s day %s", admin_id, day.status, day.id)
        return day

    def admin_fix(
        self,
        day_id: int,
        franchise_id: int,
        admin_id: int,
        sessions: Any,
        reason: Optional[str],
    ) -> TimeEntryDay:
        """
        Rewrite a day's sessions on the tutor's behalf.

        The day always returns to pending with the decision cleared.
        An approved day records "invalidated" before "admin_fixed".
        """
        cleaned_reason = self._normalize_reason(reason)
        if len(cleaned_reason) < self.min_fix_reason_length:
            raise ValidationError(f"reason is required (min {self.min_fix_reason_length} characters)")
        if not isinstance(sessions, list):
            raise ValidationError("sessions must be an array")
        if len(sessions) > self.max_sessions_per_day:
            raise ValidationError(f"sessions is too large (max {self.max_sessions_per_day})")

        day = self.get_day_by_id(day_id, franchise_id, lock=True)
        if day is None:
            raise NotFoundError("Not found")

        parsed = self.validate_sessions(sessions, day.work_date, day.timezone)
        previous_sessions = session_payloads(day.sessions)
        previous = day.status

        if previous == STATUS_APPROVED:
            self.audit.record(day, ACTION_INVALIDATED, ACTOR_ADMIN, admin_id, previous, STATUS_PENDING, {
                "workDate": day.work_date,
                "timezone": day.timezone,
                "reason": cleaned_reason,
                "kind": "admin_fixed",
            })

        day.status = STATUS_PENDING
        day.submitted_at = to_storage(self._now())
        day.clear_decision()
        day.clock_state = CLOCKED_OUT
        self._replace_sessions(day, parsed)
        self.db.flush()

        new_sessions = session_payloads(day.sessions)
        if day.schedule_snapshot:
            _, day.comparison = self._compare(new_sessions, day.schedule_snapshot)

        self.audit.record(day, ACTION_ADMIN_FIXED, ACTOR_ADMIN, admin_id, previous, day.status, {
            "workDate": day.work_date,
            "timezone": day.timezone,
            "reason": cleaned_reason,
            "previousSessions": previous_sessions,
            "sessions": new_sessions,
        })
        self.db.flush()
        logger.info("Admin %s fixed day %s (%s -> %s)", admin_id, day.id, previous, day.status)
        return day
