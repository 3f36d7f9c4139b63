# TutorTime - Hours helpers
# Minute/hour conversions and month ranges for payroll summaries

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from tutortime.services.errors import ValidationError


_MONTH_PARAM = re.compile(r"^\d{4}-\d{2}$")


def minutes_to_hours(minutes: int) -> float:
    return minutes / 60


def round_hours2(hours: float) -> float:
    """Round to two decimals, halves rounding up."""
    return math.floor(hours * 100 + 0.5) / 100


def parse_month_param(value: Optional[str]) -> Optional[str]:
    """
    Validate a YYYY-MM query parameter.

    Returns None for an absent/blank value, the trimmed month otherwise.
    """
    if value is None or value == "":
        return None
    trimmed = value.strip()
    if (
        not _MONTH_PARAM.match(trimmed)
        or not 1 <= int(trimmed[:4]) <= 9998
        or not 1 <= int(trimmed[5:]) <= 12
    ):
        raise ValidationError("month must be YYYY-MM")
    return trimmed


def month_range(zone: ZoneInfo, month: Optional[str], now: Optional[datetime] = None) -> dict:
    """
    Local and UTC bounds for a calendar month (default: the current one).

    end_date is the last day of the month; end_at is the exclusive UTC
    instant at the start of the next month.
    """
    if month:
        start_date = date(int(month[:4]), int(month[5:]), 1)
    else:
        start_date = (now or datetime.now(timezone.utc)).astimezone(zone).date().replace(day=1)

    next_month = (start_date.replace(day=28) + timedelta(days=4)).replace(day=1)
    return {
        "month": start_date.strftime("%Y-%m"),
        "start_date": start_date,
        "end_date": next_month - timedelta(days=1),
        "start_at": datetime.combine(start_date, time(0), tzinfo=zone).astimezone(timezone.utc),
        "end_at": datetime.combine(next_month, time(0), tzinfo=zone).astimezone(timezone.utc),
    }
