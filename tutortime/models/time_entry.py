# TutorTime - Time Entry Models

from datetime import datetime, date
from typing import Any, Optional

from sqlalchemy import (
    String, Integer, SmallInteger, DateTime, Date, JSON,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, as_utc


# Day status values
STATUS_DRAFT = "draft"
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DENIED = "denied"

DAY_STATUSES = (STATUS_DRAFT, STATUS_PENDING, STATUS_APPROVED, STATUS_DENIED)

# Clock state values (stored as SMALLINT)
CLOCKED_IN = 0
CLOCKED_OUT = 1


class TimeEntryDay(TimestampMixin, Base):
    """
    One tutor's workday record for one franchise-local calendar date.

    Lifecycle:
        draft -> pending -> approved | denied

    Any tutor edit (clock-in/out, manual save) to an approved or denied
    day sends it back to pending. clock_state is orthogonal to status and
    tracks whether an open session exists.

    schedule_snapshot and comparison hold the JSON captured at submission
    so later schedule edits cannot change a submitted day's comparison.
    """

    __tablename__ = "time_entry_days"

    __table_args__ = (
        UniqueConstraint(
            "franchise_id", "tutor_id", "work_date",
            name="uq_time_entry_days_franchise_tutor_work_date",
        ),
        Index("ix_time_entry_days_franchise_tutor_work_date", "franchise_id", "tutor_id", "work_date"),
        Index("ix_time_entry_days_status", "status"),
        Index("ix_time_entry_days_work_date", "work_date"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)

    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Franchise-local calendar date
    work_date: Mapped[date] = mapped_column(Date, nullable=False)

    # IANA zone the day was recorded under
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_DRAFT
    )

    clock_state: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=CLOCKED_OUT
    )

    schedule_snapshot: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    comparison: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Admin account id; NULL for system decisions
    decided_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    decision_reason: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    # Relationships
    sessions: Mapped[list["TimeEntrySession"]] = relationship(
        "TimeEntrySession",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by=lambda: [TimeEntrySession.sort_order, TimeEntrySession.start_at],
    )

    def __repr__(self) -> str:
        return f"<TimeEntryDay {self.id} {self.franchise_id}/{self.tutor_id} {self.work_date} {self.status}>"

    @property
    def is_decided(self) -> bool:
        return self.status in (STATUS_APPROVED, STATUS_DENIED)

    def clear_decision(self) -> None:
        self.decided_by = None
        self.decided_at = None
        self.decision_reason = None


class TimeEntrySession(TimestampMixin, Base):
    """
    A worked span within a day.

    start_at/end_at are minute-aligned UTC. end_at is NULL only for the
    single open session that exists between clock-in and clock-out.
    """

    __tablename__ = "time_entry_sessions"

    __table_args__ = (
        CheckConstraint(
            "end_at IS NULL OR end_at > start_at",
            name="ck_time_entry_sessions_end_after_start",
        ),
        Index("ix_time_entry_sessions_entry_day_id", "entry_day_id"),
        Index("ix_time_entry_sessions_start_at", "start_at"),
        Index("ix_time_entry_sessions_franchise_tutor_start_at", "franchise_id", "tutor_id", "start_at"),
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

    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)

    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)

    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    end_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    day: Mapped["TimeEntryDay"] = relationship("TimeEntryDay", back_populates="sessions")

    def __repr__(self) -> str:
        end = self.end_at.strftime("%H:%M") if self.end_at else "open"
        return f"<TimeEntrySession {self.id} {self.start_at:%Y-%m-%d %H:%M}-{end}>"

    def to_payload(self) -> dict[str, Any]:
        """Wire form of a closed session."""
        return {
            "startAt": as_utc(self.start_at).isoformat().replace("+00:00", "Z"),
            "endAt": as_utc(self.end_at).isoformat().replace("+00:00", "Z") if self.end_at else None,
            "sortOrder": self.sort_order,
        }
