# TutorTime - Weekly Attestation Gate
# New-week time entry requires the prior closed workweek to be attested

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Literal, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutortime.models.weekly_attestation import WeeklyAttestation
from tutortime.services.errors import AttestationRequired, GateUnavailableError
from tutortime.services.schedule_snapshot import load_zone
from tutortime.services.workweek import sunday_week_start


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateOk:
    ok: Literal[True] = True


@dataclass(frozen=True)
class GateBlocked:
    week_end: date
    ok: Literal[False] = False


GateResult = Union[GateOk, GateBlocked]


class AttestationGate:
    """
    Decides whether a tutor may enter time for a work date.

    Dates before the start of the current local workweek are always
    open. Dates in the current (open) week require a WeeklyAttestation
    for the immediately preceding week.

    A storage failure raises GateUnavailableError: the gate fails closed.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.db = db
        self.clock = clock

    def check(self, franchise_id: int, tutor_id: int, tz_name: str, work_date: date) -> GateResult:
        zone = load_zone(tz_name)
        if zone is None:
            # Unknown zone: the work date cannot be placed in a week
            return GateOk()

        current_week_start = sunday_week_start(self.clock().astimezone(zone).date())
        if work_date < current_week_start:
            return GateOk()

        required_week_end = current_week_start - timedelta(days=1)
        try:
            found = self.db.execute(
                select(WeeklyAttestation.id)
                .where(
                    WeeklyAttestation.franchise_id == franchise_id,
                    WeeklyAttestation.tutor_id == tutor_id,
                    WeeklyAttestation.week_end == required_week_end,
                )
                .limit(1)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Attestation lookup failed for tutor %s: %s", tutor_id, exc.__class__.__name__)
            raise GateUnavailableError("Unable to verify weekly attestation; please try again.") from exc

        if found is not None:
            return GateOk()
        return GateBlocked(week_end=required_week_end)

    def require(self, franchise_id: int, tutor_id: int, tz_name: str, work_date: date) -> None:
        """Raise AttestationRequired when the gate is closed."""
        result = self.check(franchise_id, tutor_id, tz_name, work_date)
        if isinstance(result, GateBlocked):
            logger.info(
                "Attestation gate blocked tutor %s for %s (missing week ending %s)",
                tutor_id, work_date, result.week_end,
            )
            raise AttestationRequired(result.week_end.isoformat())
