# TutorTime - Time Entry Comparison
# Reported sessions versus scheduled intervals, the basis for auto-approval

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Mapping, Optional, Union

from tutortime.services import intervals as ia
from tutortime.services.intervals import MinuteInterval


COMPARISON_VERSION = 1


@dataclass(frozen=True)
class ComparisonOk:
    matches: bool
    comparison: dict[str, Any]
    ok: Literal[True] = True


@dataclass(frozen=True)
class ComparisonError:
    """kind is "sessions" or "schedule" depending on which side was malformed."""

    kind: Literal["sessions", "schedule"]
    error: str
    ok: Literal[False] = False


ComparisonResult = Union[ComparisonOk, ComparisonError]


def _to_minutes(
    items: Iterable[Mapping[str, Any]],
    kind: Literal["sessions", "schedule"],
) -> Union[list[MinuteInterval], ComparisonError]:
    label = "Sessions" if kind == "sessions" else "Intervals"
    collected = []
    for item in items:
        if not isinstance(item, Mapping):
            return ComparisonError(
                kind, "Session interval is invalid" if kind == "sessions" else "Interval is invalid"
            )
        start = ia.parse_offset_timestamp(item.get("startAt"))
        end = ia.parse_offset_timestamp(item.get("endAt"))
        if start is None or end is None:
            return ComparisonError(
                kind, f"{label} must be ISO timestamps with timezone offset, aligned to the minute"
            )
        interval = ia.interval_from_iso(item.get("startAt"), item.get("endAt"))
        if interval is None:
            return ComparisonError(kind, "Session interval is invalid" if kind == "sessions" else "Interval is invalid")
        collected.append(interval)
    return collected


def _render(intervals: Iterable[MinuteInterval]) -> list[dict[str, str]]:
    return [
        {"startAt": ia.minute_to_iso(interval.start), "endAt": ia.minute_to_iso(interval.end)}
        for interval in intervals
    ]


def compute_comparison(
    sessions: Iterable[Mapping[str, Any]],
    schedule_intervals: Iterable[Mapping[str, Any]],
    computed_at: Optional[datetime] = None,
) -> ComparisonResult:
    """
    Compare manual sessions against scheduled intervals.

    Both sides are given as {"startAt", "endAt"} mappings of offset
    timestamps. The schedule side is validated first. The result is
    persisted whether or not it matches; only an exact match of the
    canonical unions counts as matching.
    """
    scheduled = _to_minutes(schedule_intervals, "schedule")
    if isinstance(scheduled, ComparisonError):
        return scheduled
    manual = _to_minutes(sessions, "sessions")
    if isinstance(manual, ComparisonError):
        return manual

    manual_union = ia.normalize(manual)
    scheduled_union = ia.normalize(scheduled)
    matches = manual_union == scheduled_union

    stamp = (computed_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    comparison = {
        "version": COMPARISON_VERSION,
        "computedAt": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "matches": matches,
        "exactMatch": matches,
        "manual": {
            "union": _render(manual_union),
            "totalMinutes": ia.total_minutes(manual_union),
        },
        "scheduled": {
            "union": _render(scheduled_union),
            "totalMinutes": ia.total_minutes(scheduled_union),
        },
        "diffs": {
            "manualOnly": _render(ia.subtract(manual_union, scheduled_union)),
            "scheduledOnly": _render(ia.subtract(scheduled_union, manual_union)),
        },
    }
    return ComparisonOk(matches=matches, comparison=comparison)
