# TutorTime - Schedule Snapshots
# Derive, sign and verify the posted schedule captured for one tutor workday

import base64
import hashlib
import hmac
import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.orm import Session

from tutortime.models.scheduled_slot import ScheduledSlot


logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

# Accepted time-of-day formats for free-text schedule labels, tried in order
TIME_LABEL_FORMATS = (
    "%I:%M %p",   # 9:00 AM
    "%I:%M%p",    # 9:00AM
    "%I %p",      # 9 AM
    "%I%p",       # 9AM
    "%H:%M",      # 9:00 / 09:00
    "%H:%M:%S",   # 09:00:00
)

_RANGE_DASHES = re.compile("[\u2013\u2014]")
_RANGE_SPLIT = re.compile(r"\s*-\s*")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScheduleEntry(_CamelModel):
    """A raw posted slot: the schedule's time id and its display label."""

    time_id: int
    time_label: str = ""


class ScheduleInterval(_CamelModel):
    """Franchise-local interval with explicit offsets, e.g. 2026-01-02T09:00:00-06:00."""

    start_at: str
    end_at: str


class ScheduleSnapshotV1(_CamelModel):
    """
    Versioned capture of a tutor's scheduled sessions for one workday.

    Stored on the TimeEntryDay at submission so later schedule edits cannot
    change an already-submitted comparison. When a signing secret is
    configured the signature covers every other field.
    """

    version: int = SNAPSHOT_VERSION
    franchise_id: int
    tutor_id: int
    work_date: str
    timezone: str
    slot_minutes: int
    entries: list[ScheduleEntry] = Field(default_factory=list)
    intervals: list[ScheduleInterval] = Field(default_factory=list)
    issued_at: str = ""
    signature: Optional[str] = None

    def to_json(self) -> dict[str, Any]:
        """Wire/storage form (camelCase, signature omitted when absent)."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def unsigned_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"signature"}, exclude_none=True)

    @classmethod
    def parse(cls, value: Any) -> Optional["ScheduleSnapshotV1"]:
        """
        Leniently parse client or stored JSON.

        Returns None when the envelope is unusable (wrong version, missing
        ids, bad workDate/timezone/slotMinutes, entries or intervals not
        lists). Malformed individual entries and intervals are dropped.
        """
        if not isinstance(value, dict) or value.get("version") != SNAPSHOT_VERSION:
            return None

        franchise_id = _as_int(value.get("franchiseId"))
        tutor_id = _as_int(value.get("tutorId"))
        work_date = _parse_date_only(value.get("workDate"))
        tz_name = value.get("timezone").strip() if isinstance(value.get("timezone"), str) else ""
        slot_minutes = value.get("slotMinutes")

        if franchise_id is None or tutor_id is None or work_date is None or not tz_name:
            return None
        if isinstance(slot_minutes, bool) or not isinstance(slot_minutes, int) or slot_minutes <= 0:
            return None

        entries_raw = value.get("entries")
        intervals_raw = value.get("intervals")
        if not isinstance(entries_raw, list) or not isinstance(intervals_raw, list):
            return None

        entries = []
        for entry in entries_raw:
            if not isinstance(entry, dict):
                continue
            time_id = _as_int(entry.get("timeId"))
            if time_id is None:
                continue
            label = entry.get("timeLabel")
            entries.append(ScheduleEntry(time_id=time_id, time_label=label if isinstance(label, str) else ""))

        intervals = []
        for interval in intervals_raw:
            if not isinstance(interval, dict):
                continue
            start_at, end_at = interval.get("startAt"), interval.get("endAt")
            if isinstance(start_at, str) and start_at and isinstance(end_at, str) and end_at:
                intervals.append(ScheduleInterval(start_at=start_at, end_at=end_at))

        issued_at = value.get("issuedAt")
        signature = value.get("signature")

        return cls(
            franchise_id=franchise_id,
            tutor_id=tutor_id,
            work_date=work_date.isoformat(),
            timezone=tz_name,
            slot_minutes=slot_minutes,
            entries=entries,
            intervals=intervals,
            issued_at=issued_at if isinstance(issued_at, str) else "",
            signature=signature if isinstance(signature, str) else None,
        )


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    error: Optional[str] = None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _parse_date_only(value: Any) -> Optional[date]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def load_zone(name: str) -> Optional[ZoneInfo]:
    """ZoneInfo for an IANA name, or None when unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError: names that hit a tzdata directory or exceed the path limit
        return None


# Canonical form and signing

def _canonicalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _canonicalize(value[key]) for key in sorted(value) if value[key] is not None}
    if isinstance(value, list):
        return [_canonicalize(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    """Serialise with recursively sorted keys and no insignificant whitespace."""
    return json.dumps(_canonicalize(value), separators=(",", ":"), ensure_ascii=False)


def _compute_signature(payload: dict[str, Any], secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), canonical_json(payload).encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sign_snapshot(snapshot: ScheduleSnapshotV1, secret: str) -> ScheduleSnapshotV1:
    """Return a copy carrying an HMAC-SHA256 over the canonical unsigned form."""
    signature = _compute_signature(snapshot.unsigned_payload(), secret)
    return snapshot.model_copy(update={"signature": signature})


def verify_snapshot(snapshot: ScheduleSnapshotV1, secret: str) -> VerifyResult:
    """Recompute the signature and compare in constant time."""
    if not snapshot.signature:
        return VerifyResult(False, "Missing schedule snapshot signature")

    expected = _compute_signature(snapshot.unsigned_payload(), secret)
    if hmac.compare_digest(snapshot.signature.encode("utf-8"), expected.encode("utf-8")):
        return VerifyResult(True)
    return VerifyResult(False, "Invalid schedule snapshot signature")


# Derivation from posted schedule labels

def parse_time_of_day(raw: str) -> Optional[time]:
    """Parse one side of a schedule label ("9:00 AM", "14:30", "9am")."""
    cleaned = raw.strip()
    if not cleaned:
        return None

    for fmt in TIME_LABEL_FORMATS:
        try:
            parsed = datetime.strptime(cleaned.upper(), fmt)
        except ValueError:
            continue
        return time(parsed.hour, parsed.minute)

    try:
        parsed_time = time.fromisoformat(cleaned)
    except ValueError:
        return None
    return time(parsed_time.hour, parsed_time.minute)


def derive_intervals(
    work_date: date,
    tz_name: str,
    slot_minutes: int,
    entries: list[ScheduleEntry],
) -> list[ScheduleInterval]:
    """
    Turn raw schedule slots into franchise-local intervals (unmerged).

    A label without a parsable end time lasts slot_minutes. Slots whose
    end is not after their start are discarded. An unknown time zone
    yields no intervals.
    """
    zone = load_zone(tz_name)
    if zone is None:
        return []

    intervals: list[ScheduleInterval] = []
    for entry in entries:
        label = _RANGE_DASHES.sub("-", entry.time_label or "").strip()
        if not label:
            continue

        parts = [part for part in _RANGE_SPLIT.split(label) if part]
        if not parts:
            continue

        start_time = parse_time_of_day(parts[0])
        if start_time is None:
            continue
        start_local = datetime.combine(work_date, start_time, tzinfo=zone)

        end_local = None
        if len(parts) >= 2:
            end_time = parse_time_of_day(parts[1])
            if end_time is not None:
                end_local = datetime.combine(work_date, end_time, tzinfo=zone)

        if end_local is None:
            end_utc = start_local.astimezone(timezone.utc) + timedelta(minutes=slot_minutes)
            end_local = end_utc.astimezone(zone)

        if end_local <= start_local:
            continue

        intervals.append(ScheduleInterval(
            start_at=start_local.isoformat(timespec="seconds"),
            end_at=end_local.isoformat(timespec="seconds"),
        ))

    return intervals


def build_snapshot(
    franchise_id: int,
    tutor_id: int,
    work_date: date,
    tz_name: str,
    slot_minutes: int,
    entries: list[ScheduleEntry],
    issued_at: datetime,
) -> ScheduleSnapshotV1:
    """Assemble an unsigned snapshot with derived intervals."""
    return ScheduleSnapshotV1(
        franchise_id=franchise_id,
        tutor_id=tutor_id,
        work_date=work_date.isoformat(),
        timezone=tz_name,
        slot_minutes=slot_minutes,
        entries=list(entries),
        intervals=derive_intervals(work_date, tz_name, slot_minutes, entries),
        issued_at=issued_at.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
    )


class ScheduleSnapshotService:
    """
    Issues signed snapshots from the posted schedule.

    Usage:
        service = ScheduleSnapshotService(db, slot_minutes=60, signing_secret=secret)
        snapshot = service.issue(franchise_id=3, tutor_id=41, work_date=date(2026, 1, 5),
                                 tz_name="America/Chicago")
    """

    def __init__(
        self,
        db: Session,
        slot_minutes: int,
        signing_secret: Optional[str],
        clock: Callable[[], datetime],
    ):
        self.db = db
        self.slot_minutes = slot_minutes
        self.signing_secret = signing_secret
        self.clock = clock

    def fetch_entries(self, franchise_id: int, tutor_id: int, work_date: date) -> list[ScheduleEntry]:
        rows = self.db.execute(
            select(ScheduledSlot)
            .where(
                ScheduledSlot.franchise_id == franchise_id,
                ScheduledSlot.tutor_id == tutor_id,
                ScheduledSlot.schedule_date == work_date,
            )
            .order_by(ScheduledSlot.time_id)
        ).scalars().all()

        seen: set[int] = set()
        entries = []
        for row in rows:
            if row.time_id in seen:
                continue
            seen.add(row.time_id)
            entries.append(ScheduleEntry(time_id=row.time_id, time_label=row.time_label or ""))
        return entries

    def issue(self, franchise_id: int, tutor_id: int, work_date: date, tz_name: str) -> ScheduleSnapshotV1:
        entries = self.fetch_entries(franchise_id, tutor_id, work_date)
        snapshot = build_snapshot(
            franchise_id, tutor_id, work_date, tz_name, self.slot_minutes, entries, self.clock()
        )
        if self.signing_secret:
            snapshot = sign_snapshot(snapshot, self.signing_secret)
        logger.info(
            "Issued schedule snapshot franchise=%s tutor=%s date=%s intervals=%d signed=%s",
            franchise_id, tutor_id, work_date, len(snapshot.intervals), bool(snapshot.signature),
        )
        return snapshot
