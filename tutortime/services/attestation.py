# TutorTime - Weekly Attestation Service
# Status, reminder and signing for the last closed workweek

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutortime.models.base import as_utc, to_storage
from tutortime.models.weekly_attestation import WeeklyAttestation
from tutortime.services.attestation_copy import (
    WEEKLY_ATTESTATION_STATEMENT,
    WEEKLY_ATTESTATION_TEXT_VERSION,
    copy_payload,
)
from tutortime.services.errors import ValidationError
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.workweek import last_closed_workweek


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_typed_name(value: Optional[str], fallback: str, max_length: int = 200) -> str:
    """
    Collapse whitespace in a typed signature.

    When value is None the caller's display name is used instead.
    Raises ValidationError when the result is empty or too long.
    """
    candidate = fallback if value is None else value
    if not isinstance(candidate, str):
        candidate = ""
    cleaned = _WHITESPACE.sub(" ", candidate).strip()
    if not cleaned or len(cleaned) > max_length:
        raise ValidationError(f"typedName is required (max {max_length} characters)")
    return cleaned


class AttestationService:
    """
    Weekly attestation workflow for one tutor.

    Usage:
        service = AttestationService(db, resolver)
        status = service.status(franchise_id=3, tutor_id=41)
        row, created = service.sign(3, 41, typed_name="Ada Lovelace",
                                    display_name="Ada", ip="10.0.0.8", user_agent="...")
    """

    def __init__(
        self,
        db: Session,
        resolver: PayPeriodResolver,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        max_typed_name_length: int = 200,
    ):
        self.db = db
        self.resolver = resolver
        self.clock = clock
        self.max_typed_name_length = max_typed_name_length

    def _week(self, franchise_id: int) -> tuple[str, date, date]:
        settings = self.resolver.get_settings(franchise_id)
        week_start, week_end = last_closed_workweek(settings.zone, self.clock())
        return settings.timezone, week_start, week_end

    def get_attestation(self, franchise_id: int, tutor_id: int, week_end: date) -> Optional[WeeklyAttestation]:
        return self.db.execute(
            select(WeeklyAttestation)
            .where(
                WeeklyAttestation.franchise_id == franchise_id,
                WeeklyAttestation.tutor_id == tutor_id,
                WeeklyAttestation.week_end == week_end,
            )
            .limit(1)
        ).scalar_one_or_none()

    def _payload(
        self,
        row: Optional[WeeklyAttestation],
        tz_name: str,
        week_start: date,
        week_end: date,
    ) -> dict[str, Any]:
        return {
            "timezone": tz_name,
            "weekStart": week_start.isoformat(),
            "weekEnd": week_end.isoformat(),
            "signed": row is not None,
            "signedAt": as_utc(row.signed_at).isoformat().replace("+00:00", "Z") if row else None,
            "typedName": row.typed_name if row else None,
            "attestationText": row.attestation_text if row else WEEKLY_ATTESTATION_STATEMENT,
            "attestationTextVersion": row.attestation_text_version if row else WEEKLY_ATTESTATION_TEXT_VERSION,
            "copy": copy_payload(),
        }

    def status(self, franchise_id: int, tutor_id: int) -> dict[str, Any]:
        """Signing status for the last closed workweek."""
        tz_name, week_start, week_end = self._week(franchise_id)
        row = self.get_attestation(franchise_id, tutor_id, week_end)
        return self._payload(row, tz_name, week_start, week_end)

    def reminder(self, franchise_id: int, tutor_id: int) -> dict[str, Any]:
        tz_name, week_start, week_end = self._week(franchise_id)
        signed = self.get_attestation(franchise_id, tutor_id, week_end) is not None
        return {
            "timezone": tz_name,
            "missingWeekEnd": None if signed else week_end.isoformat(),
            "weekStart": week_start.isoformat(),
            "weekEnd": week_end.isoformat(),
            "blocking": not signed,
        }

    def sign(
        self,
        franchise_id: int,
        tutor_id: int,
        typed_name: Optional[str],
        display_name: str = "",
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        Attest the last closed workweek.

        Idempotent per week: when a row already exists it is returned
        unchanged. Returns (payload, created). The caller commits.
        """
        name = normalize_typed_name(typed_name, display_name, self.max_typed_name_length)
        tz_name, week_start, week_end = self._week(franchise_id)

        existing = self.get_attestation(franchise_id, tutor_id, week_end)
        if existing is not None:
            return self._payload(existing, tz_name, week_start, week_end), False

        now = self.clock()
        settings = self.resolver.get_settings(franchise_id)
        row = WeeklyAttestation(
            franchise_id=franchise_id,
            tutor_id=tutor_id,
            week_start=week_start,
            week_end=week_end,
            timezone=tz_name,
            typed_name=name,
            signed_at=to_storage(now),
            attestation_text=WEEKLY_ATTESTATION_STATEMENT,
            attestation_text_version=WEEKLY_ATTESTATION_TEXT_VERSION,
            metadata_json={
                "ip": ip,
                "userAgent": user_agent,
                "signedAtLocal": now.astimezone(settings.zone).isoformat(timespec="milliseconds"),
            },
        )

        try:
            with self.db.begin_nested():
                self.db.add(row)
                self.db.flush()
        except IntegrityError:
            # Lost the insert race; the concurrent signature stands
            existing = self.get_attestation(franchise_id, tutor_id, week_end)
            return self._payload(existing, tz_name, week_start, week_end), False

        logger.info("Tutor %s attested week ending %s (franchise %s)", tutor_id, week_end, franchise_id)
        return self._payload(row, tz_name, week_start, week_end), True
