# TutorTime - Weekly Attestation Model

from datetime import datetime, date
from typing import Any

from sqlalchemy import String, Integer, DateTime, Date, Text, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class WeeklyAttestation(Base):
    """
    A tutor's typed-name acknowledgment that a closed workweek's hours
    are accurate.

    One row per (franchise, tutor, week_end). Rows are append-only: signing
    again for the same week returns the existing row unchanged.

    The attestation text and its version are copied onto the row so the
    exact wording the tutor agreed to survives later copy changes.
    """

    __tablename__ = "weekly_attestations"

    __table_args__ = (
        UniqueConstraint(
            "franchise_id", "tutor_id", "week_end",
            name="uq_weekly_attestations_franchise_tutor_week_end",
        ),
        Index("ix_weekly_attestations_franchise_tutor_week_end", "franchise_id", "tutor_id", "week_end"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)

    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Sunday
    week_start: Mapped[date] = mapped_column(Date, nullable=False)

    # Saturday
    week_end: Mapped[date] = mapped_column(Date, nullable=False)

    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    typed_name: Mapped[str] = mapped_column(String(200), nullable=False)

    signed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    attestation_text: Mapped[str] = mapped_column(Text, nullable=False)

    attestation_text_version: Mapped[str] = mapped_column(String(50), nullable=False)

    # ip, user agent, local signing time
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict
    )

    def __repr__(self) -> str:
        return f"<WeeklyAttestation {self.franchise_id}/{self.tutor_id} week_end={self.week_end}>"
