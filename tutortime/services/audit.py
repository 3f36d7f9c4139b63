# TutorTime - Audit Service
# Append-only ledger of time entry day transitions

from datetime import datetime, date
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from tutortime.models.audit_log import (
    TimeEntryAudit,
    create_audit_entry,
    ACTION_APPROVED,
    ACTION_AUTO_APPROVED,
)
from tutortime.models.base import as_utc, to_storage
from tutortime.models.time_entry import TimeEntryDay


class AuditService:
    """
    Service for writing time entry audit records.

    Usage:
        audit = AuditService(db)

        # After the day row exists (flush first so it has an id)
        db.add(day)
        db.flush()
        audit.record(day, "created", "TUTOR", tutor_id,
                     previous_status=None, new_status=day.status,
                     metadata={"workDate": "2026-01-05", "sessions": [...]})

    Entries are added to the caller's session and committed with the
    transition they describe, so an audit row never exists for a change
    that was rolled back.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock

    def _serialize_value(self, value: Any) -> Any:
        """
        Convert a value to a JSON-serializable format.

        Handles dates, decimals, nested dicts and lists.
        """
        if value is None:
            return None
        if isinstance(value, datetime):
            return as_utc(value).isoformat().replace("+00:00", "Z")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, dict):
            return {str(key): self._serialize_value(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(item) for item in value]
        if isinstance(value, (int, float, str, bool)):
            return value
        return str(value)

    def record(
        self,
        day: TimeEntryDay,
        action: str,
        actor_account_type: str,
        actor_account_id: Optional[int],
        previous_status: Optional[str],
        new_status: str,
        metadata: Optional[dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> TimeEntryAudit:
        """
        Append one audit entry for a day transition.

        Args:
            day: The day (must already have an id)
            action: One of the audit actions (created, saved, clock_in, ...)
            actor_account_type: TUTOR, ADMIN or SYSTEM
            actor_account_id: Account id; ignored for SYSTEM
            previous_status: Status before the transition (None on create)
            new_status: Status after the transition
            metadata: Context needed to reconstruct the change
            at: When it happened (defaults to the clock, else now)

        Returns:
            TimeEntryAudit entry (already added to session)
        """
        if at is None and self.clock is not None:
            at = self.clock()
        entry = create_audit_entry(
            entry_day_id=day.id,
            action=action,
            actor_account_type=actor_account_type,
            actor_account_id=actor_account_id,
            previous_status=previous_status,
            new_status=new_status,
            metadata=self._serialize_value(metadata or {}),
            at=to_storage(at) if at is not None else None,
        )

        self.db.add(entry)
        return entry


class AuditQuery:
    """
    Helper class for querying the audit ledger.

    Usage:
        query = AuditQuery(db)

        # Review-queue context for many days at once
        approved = query.get_ever_approved_day_ids([42, 43])
        latest = query.get_last_entries([42, 43])
    """

    APPROVAL_ACTIONS = (ACTION_APPROVED, ACTION_AUTO_APPROVED)

    def __init__(self, db: Session):
        self.db = db

    def get_ever_approved_day_ids(self, day_ids: list[int]) -> set[int]:
        """Days that have been approved (by an admin or automatically) at least once."""
        if not day_ids:
            return set()
        rows = self.db.execute(
            select(TimeEntryAudit.entry_day_id)
            .where(
                TimeEntryAudit.entry_day_id.in_(day_ids),
                TimeEntryAudit.action.in_(self.APPROVAL_ACTIONS),
            )
            .distinct()
        ).scalars().all()
        return set(rows)

    def get_last_entries(self, day_ids: list[int]) -> dict[int, TimeEntryAudit]:
        """Most recent audit entry per day (latest id wins ties on timestamp)."""
        if not day_ids:
            return {}
        latest_ids = (
            select(func.max(TimeEntryAudit.id).label("id"))
            .where(TimeEntryAudit.entry_day_id.in_(day_ids))
            .group_by(TimeEntryAudit.entry_day_id)
            .subquery()
        )
        rows = self.db.execute(
            select(TimeEntryAudit).join(latest_ids, TimeEntryAudit.id == latest_ids.c.id)
        ).scalars().all()
        return {row.entry_day_id: row for row in rows}


def audit_entry_payload(entry: TimeEntryAudit) -> dict[str, Any]:
    """Wire form of an audit entry."""
    return {
        "action": entry.action,
        "actorAccountType": entry.actor_account_type,
        "actorAccountId": entry.actor_account_id,
        "at": as_utc(entry.at).isoformat().replace("+00:00", "Z"),
        "previousStatus": entry.previous_status,
        "newStatus": entry.new_status,
        "metadata": entry.metadata_json or {},
    }
