# TutorTime - Posted Schedule Model
# Read-only: the franchise's session schedule is maintained elsewhere

from datetime import date

from sqlalchemy import String, Integer, Date, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ScheduledSlot(Base):
    """
    One posted tutoring slot.

    time_label is the schedule's free-text label for the slot, e.g.
    "9:00 AM - 10:00 AM" or just "3:30 PM".
    """

    __tablename__ = "scheduled_slots"

    __table_args__ = (
        Index("ix_scheduled_slots_franchise_tutor_date", "franchise_id", "tutor_id", "schedule_date"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)

    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)

    schedule_date: Mapped[date] = mapped_column(Date, nullable=False)

    time_id: Mapped[int] = mapped_column(Integer, nullable=False)

    time_label: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<ScheduledSlot {self.tutor_id} {self.schedule_date} {self.time_label}>"
