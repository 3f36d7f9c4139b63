# TutorTime - Service Errors
# Typed failures raised by the time entry services and mapped to HTTP in main.py

from typing import Any, Optional


class TimeEntryError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 400
    retryable = False

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_payload(self) -> dict[str, Any]:
        payload = {"error": self.message, **self.context}
        if self.retryable:
            payload["retryable"] = True
        return payload


class ValidationError(TimeEntryError):
    """Malformed input: bad timestamps, overlapping sessions, missing reason."""

    status_code = 400


class AuthorizationError(TimeEntryError):
    """Scope mismatch or a forbidden actor (e.g. self-approval)."""

    status_code = 403


class NotFoundError(TimeEntryError):
    """The addressed day does not exist within the caller's scope."""

    status_code = 404


class PreconditionError(TimeEntryError):
    """The record is in the wrong state, or a gate refused the action."""

    status_code = 409


class AttestationRequired(PreconditionError):
    """Prior workweek has not been attested."""

    def __init__(self, missing_week_end: str):
        super().__init__(
            "Weekly attestation is required before entering time for the new workweek.",
            {"missingWeekEnd": missing_week_end},
        )
        self.missing_week_end = missing_week_end


class SnapshotError(PreconditionError):
    """Schedule snapshot failed to parse or verify."""

    status_code = 400


class GateUnavailableError(TimeEntryError):
    """Attestation storage could not be read; entry is refused."""

    status_code = 503


class ConcurrencyConflict(TimeEntryError):
    """The transaction lost a race and was rolled back. Safe to retry."""

    status_code = 409
    retryable = True
