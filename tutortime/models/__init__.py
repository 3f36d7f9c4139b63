# TutorTime - SQLAlchemy Models

from .base import Base, TimestampMixin
from .time_entry import TimeEntryDay, TimeEntrySession
from .audit_log import TimeEntryAudit
from .weekly_attestation import WeeklyAttestation
from .franchise import FranchisePayrollSettings, PayPeriodOverride
from .scheduled_slot import ScheduledSlot

__all__ = [
    "Base",
    "TimestampMixin",
    "TimeEntryDay",
    "TimeEntrySession",
    "TimeEntryAudit",
    "WeeklyAttestation",
    "FranchisePayrollSettings",
    "PayPeriodOverride",
    "ScheduledSlot",
]
