# TutorTime - Time Entry Audit Log Model

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


# Audit actions
ACTION_CREATED = "created"
ACTION_SAVED = "saved"
ACTION_CLOCK_IN = "clock_in"
ACTION_CLOCK_OUT = "clock_out"
ACTION_SUBMITTED = "submitted"
ACTION_APPROVED = "approved"
ACTION_DENIED = "denied"
ACTION_INVALIDATED = "invalidated"
ACTION_ADMIN_FIXED = "admin_fixed"
ACTION_ADMIN_EDITED = "admin_edited"
ACTION_AUTO_APPROVED = "auto_approved"

AUDIT_ACTIONS = (
    ACTION_CREATED, ACTION_SAVED, ACTION_CLOCK_IN, ACTION_CLOCK_OUT,
    ACTION_SUBMITTED, ACTION_APPROVED, ACTION_DENIED, ACTION_INVALIDATED,
    ACTION_ADMIN_FIXED, ACTION_ADMIN_EDITED, ACTION_AUTO_APPROVED,
)

# Actor account types
ACTOR_TUTOR = "TUTOR"
ACTOR_ADMIN = "ADMIN"
ACTOR_SYSTEM = "SYSTEM"


class TimeEntryAudit(Base):
    """
    Append-only ledger of every TimeEntryDay state transition.

    This is the only historical record of decisions: the day row itself
    only holds the latest decision. metadata carries enough context
    (work date, time zone, previous/new sessions, snapshot, comparison,
    reason) to reconstruct what changed.

    Rows are never updated or deleted by the application.
    """

    __tablename__ = "time_entry_audit"

    __table_args__ = (
        Index("ix_time_entry_audit_entry_day_id", "entry_day_id"),
        Index("ix_time_entry_audit_at", "at"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    entry_day_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("time_entry_days.id", ondelete="CASCADE"),
        nullable=False
    )

    # created, saved, clock_in, clock_out, submitted, approved, denied,
    # invalidated, admin_fixed, admin_edited, auto_approved
    action: Mapped[str] = mapped_column(String(32), nullable=False)

    # TUTOR, ADMIN or SYSTEM
    actor_account_type: Mapped[str] = mapped_column(String(16), nullable=False)

    # NULL for SYSTEM
    actor_account_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    previous_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    new_status: Mapped[str] = mapped_column(String(20), nullable=False)

    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict
    )

    def __repr__(self) -> str:
        return (
            f"<TimeEntryAudit {self.action} day:{self.entry_day_id} "
            f"{self.previous_status}->{self.new_status} by {self.actor_account_type}#{self.actor_account_id}>"
        )


def create_audit_entry(
    entry_day_id: int,
    action: str,
    actor_account_type: str,
    actor_account_id: Optional[int],
    previous_status: Optional[str],
    new_status: str,
    metadata: Optional[dict[str, Any]] = None,
    at: Optional[datetime] = None,
) -> TimeEntryAudit:
    """
    Factory function to create an audit entry.

    Rejects unknown actions and actor types so a typo cannot slip into
    the permanent record.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")
    if actor_account_type not in (ACTOR_TUTOR, ACTOR_ADMIN, ACTOR_SYSTEM):
        raise ValueError(f"Unknown actor account type: {actor_account_type}")

    return TimeEntryAudit(
        entry_day_id=entry_day_id,
        action=action,
        actor_account_type=actor_account_type,
        actor_account_id=None if actor_account_type == ACTOR_SYSTEM else actor_account_id,
        at=at or utcnow(),
        previous_status=previous_status,
        new_status=new_status,
        metadata_json=metadata or {},
    )
