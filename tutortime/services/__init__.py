# TutorTime - Services
# Business logic layer

from .audit import AuditService, AuditQuery
from .attestation import AttestationService
from .attestation_gate import AttestationGate, GateOk, GateBlocked
from .errors import (
    TimeEntryError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    AttestationRequired,
    SnapshotError,
    GateUnavailableError,
    ConcurrencyConflict,
)
from .pay_period import PayPeriod, PayPeriodResolver
from .schedule_snapshot import ScheduleSnapshotService, ScheduleSnapshotV1
from .time_entry import TimeEntryService

__all__ = [
    "AuditService",
    "AuditQuery",
    "AttestationService",
    "AttestationGate",
    "GateOk",
    "GateBlocked",
    "TimeEntryError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "PreconditionError",
    "AttestationRequired",
    "SnapshotError",
    "GateUnavailableError",
    "ConcurrencyConflict",
    "PayPeriod",
    "PayPeriodResolver",
    "ScheduleSnapshotService",
    "ScheduleSnapshotV1",
    "TimeEntryService",
]
