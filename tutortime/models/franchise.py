# TutorTime - Franchise Payroll Configuration Models
# Read-only inputs to pay period resolution

from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, Integer, Boolean, DateTime, Date, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class FranchisePayrollSettings(Base):
    """
    Per-franchise payroll policy.

    Values are stored loosely (free-text time zone and period type) and
    normalised by the application layer; an unknown value falls back to
    the configured default rather than failing.
    """

    __tablename__ = "franchise_payroll_settings"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    franchise_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    # e.g. "strict_approval"
    policy_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # IANA zone, e.g. "America/Chicago"
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # weekly, biweekly, semimonthly, monthly
    pay_period_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    auto_email_enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    def __repr__(self) -> str:
        return f"<FranchisePayrollSettings {self.franchise_id} {self.pay_period_type} {self.timezone}>"


class PayPeriodOverride(Base):
    """
    Manually posted pay period for a franchise.

    period_start and period_end are inclusive local dates. When several
    overrides contain a date, the most recently created one wins.
    """

    __tablename__ = "franchise_pay_period_overrides"

    __table_args__ = (
        Index("ix_pay_period_overrides_franchise_range", "franchise_id", "period_start", "period_end"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)

    period_start: Mapped[date] = mapped_column(Date, nullable=False)

    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PayPeriodOverride {self.id} {self.franchise_id} {self.period_start}..{self.period_end}>"
