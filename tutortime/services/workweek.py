# TutorTime - Workweek helpers
# Sunday-to-Saturday weeks in franchise-local time

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


def sunday_week_start(local_date: date) -> date:
    """Sunday on or before local_date."""
    # date.weekday(): Monday=0 .. Sunday=6
    return local_date - timedelta(days=(local_date.weekday() + 1) % 7)


def local_today(zone: ZoneInfo, now: datetime) -> date:
    return now.astimezone(zone).date()


def last_closed_workweek(zone: ZoneInfo, now: datetime) -> tuple[date, date]:
    """The most recent fully elapsed workweek as of now, in the given zone."""
    current_week_start = sunday_week_start(local_today(zone, now))
    week_end = current_week_start - timedelta(days=1)
    return week_end - timedelta(days=6), week_end
