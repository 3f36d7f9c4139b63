# TutorTime - Interval Algebra
# Half-open [start, end) intervals measured in whole epoch minutes

import re
from datetime import datetime, timezone
from typing import Iterable, NamedTuple, Optional


_OFFSET_SUFFIX = re.compile(r"([zZ]|[+-]\d{2}:\d{2})$")


class MinuteInterval(NamedTuple):
    """A covered span [start, end) in minutes since the Unix epoch."""

    start: int
    end: int

    @property
    def minutes(self) -> int:
        return self.end - self.start


def parse_offset_timestamp(value: object) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp that carries an explicit offset and is
    aligned to the minute.

    Returns an aware UTC datetime, or None when the value is not a
    string, has no offset, does not parse, or has seconds/sub-seconds.
    Values are never rounded.
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or not _OFFSET_SUFFIX.search(trimmed):
        return None

    candidate = trimmed[:-1] + "+00:00" if trimmed[-1] in "zZ" else trimmed
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    if parsed.second != 0 or parsed.microsecond != 0:
        return None
    return parsed.astimezone(timezone.utc)


def to_epoch_minute(moment: datetime) -> int:
    """Whole minutes since the epoch for an aware, minute-aligned datetime."""
    seconds = int(moment.timestamp())
    if seconds % 60 != 0:
        raise ValueError("timestamp is not aligned to the minute")
    return seconds // 60


def minute_to_iso(minute: int) -> str:
    """Render an epoch minute as an ISO UTC timestamp with millisecond precision."""
    moment = datetime.fromtimestamp(minute * 60, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def interval_from_iso(start_at: object, end_at: object) -> Optional[MinuteInterval]:
    """Build a MinuteInterval from two offset timestamps, or None if either is invalid."""
    start = parse_offset_timestamp(start_at)
    end = parse_offset_timestamp(end_at)
    if start is None or end is None:
        return None
    start_minute = to_epoch_minute(start)
    end_minute = to_epoch_minute(end)
    if end_minute <= start_minute:
        return None
    return MinuteInterval(start_minute, end_minute)


def normalize(intervals: Iterable[MinuteInterval]) -> list[MinuteInterval]:
    """
    Canonical union: sort by (start, end) and merge runs where the next
    interval starts at or before the current end. Touching intervals merge.
    """
    merged: list[MinuteInterval] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = MinuteInterval(last.start, max(last.end, interval.end))
        else:
            merged.append(MinuteInterval(interval.start, interval.end))
    return merged


def equals(a: Iterable[MinuteInterval], b: Iterable[MinuteInterval]) -> bool:
    """True iff both inputs cover exactly the same minutes."""
    return normalize(a) == normalize(b)


def total_minutes(intervals: Iterable[MinuteInterval]) -> int:
    return sum(interval.minutes for interval in intervals)


def subtract(base: Iterable[MinuteInterval], cut: Iterable[MinuteInterval]) -> list[MinuteInterval]:
    """Minutes covered by base but not by cut, as a canonical list."""
    base_union = normalize(base)
    cut_union = normalize(cut)
    if not cut_union:
        return base_union

    result: list[MinuteInterval] = []
    j = 0
    for interval in base_union:
        cursor = interval.start

        while j < len(cut_union) and cut_union[j].end <= cursor:
            j += 1

        k = j
        while k < len(cut_union) and cut_union[k].start < interval.end:
            piece = cut_union[k]
            if piece.start > cursor:
                result.append(MinuteInterval(cursor, min(piece.start, interval.end)))
            cursor = max(cursor, piece.end)
            if cursor >= interval.end:
                break
            k += 1

        if cursor < interval.end:
            result.append(MinuteInterval(cursor, interval.end))

    return [interval for interval in result if interval.end > interval.start]


def intersect(a: Iterable[MinuteInterval], b: Iterable[MinuteInterval]) -> list[MinuteInterval]:
    """Minutes covered by both inputs, as a canonical list (two-pointer sweep)."""
    left = normalize(a)
    right = normalize(b)
    result: list[MinuteInterval] = []
    i = j = 0
    while i < len(left) and j < len(right):
        start = max(left[i].start, right[j].start)
        end = min(left[i].end, right[j].end)
        if start < end:
            result.append(MinuteInterval(start, end))
        if left[i].end <= right[j].end:
            i += 1
        else:
            j += 1
    return result


def overlap_minutes(a: Iterable[MinuteInterval], b: Iterable[MinuteInterval]) -> int:
    """Duration of the intersection of two interval sets, O(n + m) after normalising."""
    return total_minutes(intersect(a, b))


def find_overlap(intervals: Iterable[MinuteInterval]) -> Optional[tuple[MinuteInterval, MinuteInterval]]:
    """
    Return the first pair of raw intervals that overlap (touching is fine),
    or None. Used to reject overlapping manual sessions before saving.
    """
    ordered = sorted(intervals)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            return previous, current
    return None
