# TutorTime - Pay Period Resolution
# Effective payroll window for a franchise and date

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutortime.models.franchise import FranchisePayrollSettings, PayPeriodOverride
from tutortime.services.schedule_snapshot import load_zone


logger = logging.getLogger(__name__)

PAY_PERIOD_TYPES = ("weekly", "biweekly", "semimonthly", "monthly")

FALLBACK_TIMEZONE = "America/Los_Angeles"
FALLBACK_PAY_PERIOD_TYPE = "biweekly"
FALLBACK_BIWEEKLY_ANCHOR = date(2024, 1, 1)

_TRUE_VALUES = {"true", "1", "yes", "on", "y"}
_FALSE_VALUES = {"false", "0", "no", "off", "n"}


@dataclass(frozen=True)
class PayrollSettings:
    """Franchise payroll settings after defaulting and normalisation."""

    franchise_id: int
    policy_type: str
    timezone: str
    pay_period_type: str
    auto_email_enabled: bool

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class PayPeriod:
    franchise_id: int
    timezone: str
    period_type: str
    start_date: date
    end_date: date
    start_at: datetime
    end_at: datetime
    source: str
    override_id: Optional[int]
    resolved_for_date: date

    def contains(self, moment: datetime) -> bool:
        """True when moment falls in the half-open UTC range [start_at, end_at)."""
        return self.start_at <= moment.astimezone(timezone.utc) < self.end_at

    def to_payload(self) -> dict[str, Any]:
        return {
            "franchiseId": self.franchise_id,
            "timezone": self.timezone,
            "periodType": self.period_type,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "startAt": _utc_iso(self.start_at),
            "endAt": _utc_iso(self.end_at),
            "source": self.source,
            "overrideId": self.override_id,
            "resolvedForDate": self.resolved_for_date.isoformat(),
        }


def _utc_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def parse_boolean(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return fallback


def local_day_bounds(start_date: date, end_date: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Half-open UTC bounds for an inclusive local date range:
    [start of start_date, start of the day after end_date).
    """
    start_at = datetime.combine(start_date, time(0), tzinfo=zone).astimezone(timezone.utc)
    end_at = datetime.combine(end_date + timedelta(days=1), time(0), tzinfo=zone).astimezone(timezone.utc)
    return start_at, end_at


def weekly_window(for_date: date) -> tuple[date, date]:
    """Monday-aligned seven days."""
    start = for_date - timedelta(days=for_date.weekday())
    return start, start + timedelta(days=6)


def biweekly_window(for_date: date, anchor: date) -> tuple[date, date]:
    """Fourteen-day windows counted from anchor, in either direction."""
    periods = (for_date - anchor).days // 14
    start = anchor + timedelta(days=periods * 14)
    return start, start + timedelta(days=13)


def semimonthly_window(for_date: date) -> tuple[date, date]:
    """1st-15th or 16th-last day of the month."""
    if for_date.day <= 15:
        return for_date.replace(day=1), for_date.replace(day=15)
    last_day = calendar.monthrange(for_date.year, for_date.month)[1]
    return for_date.replace(day=16), for_date.replace(day=last_day)


def monthly_window(for_date: date) -> tuple[date, date]:
    last_day = calendar.monthrange(for_date.year, for_date.month)[1]
    return for_date.replace(day=1), for_date.replace(day=last_day)


def compute_window(period_type: str, for_date: date, anchor: date) -> tuple[date, date]:
    if period_type == "weekly":
        return weekly_window(for_date)
    if period_type == "semimonthly":
        return semimonthly_window(for_date)
    if period_type == "monthly":
        return monthly_window(for_date)
    return biweekly_window(for_date, anchor)


class PayPeriodResolver:
    """
    Resolves the pay period that contains a franchise-local date.

    Usage:
        resolver = PayPeriodResolver(db, default_timezone="America/Chicago")
        period = resolver.resolve(franchise_id=3)                         # today
        period = resolver.resolve(franchise_id=3, for_date=date(2024, 1, 20))

    Resolution never fails on bad configuration: an unknown time zone or
    period type falls back to the defaults (logged at WARNING), because
    every other computation depends on having a period.
    """

    def __init__(
        self,
        db: Session,
        default_timezone: str = FALLBACK_TIMEZONE,
        default_pay_period_type: str = FALLBACK_PAY_PERIOD_TYPE,
        default_policy_type: str = "strict_approval",
        biweekly_anchor_date: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.default_timezone = default_timezone if load_zone(default_timezone) else FALLBACK_TIMEZONE
        self.default_pay_period_type = (
            default_pay_period_type if default_pay_period_type in PAY_PERIOD_TYPES else FALLBACK_PAY_PERIOD_TYPE
        )
        self.default_policy_type = default_policy_type
        self.biweekly_anchor = self._parse_anchor(biweekly_anchor_date)
        self.clock = clock

    @staticmethod
    def _parse_anchor(value: Optional[str]) -> date:
        if not value:
            return FALLBACK_BIWEEKLY_ANCHOR
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            logger.warning("Invalid biweekly anchor %r; using %s", value, FALLBACK_BIWEEKLY_ANCHOR)
            return FALLBACK_BIWEEKLY_ANCHOR

    def normalize_timezone(self, value: Optional[str], franchise_id: Optional[int] = None) -> str:
        if not value or not str(value).strip():
            return self.default_timezone
        candidate = str(value).strip()
        if load_zone(candidate) is None:
            logger.warning(
                "Unknown timezone %r for franchise %s; using %s", candidate, franchise_id, self.default_timezone
            )
            return self.default_timezone
        return candidate

    def normalize_pay_period_type(self, value: Optional[str], franchise_id: Optional[int] = None) -> str:
        if isinstance(value, str):
            candidate = value.strip().lower()
            if candidate in PAY_PERIOD_TYPES:
                return candidate
            logger.warning(
                "Unknown pay period type %r for franchise %s; using %s",
                value, franchise_id, self.default_pay_period_type,
            )
        return self.default_pay_period_type

    def get_settings(self, franchise_id: int) -> PayrollSettings:
        """Payroll settings for a franchise, defaulted when no row exists."""
        row = self.db.execute(
            select(FranchisePayrollSettings)
            .where(FranchisePayrollSettings.franchise_id == franchise_id)
            .limit(1)
        ).scalar_one_or_none()

        if row is None:
            return PayrollSettings(
                franchise_id=franchise_id,
                policy_type=self.default_policy_type,
                timezone=self.default_timezone,
                pay_period_type=self.default_pay_period_type,
                auto_email_enabled=False,
            )

        return PayrollSettings(
            franchise_id=franchise_id,
            policy_type=row.policy_type or self.default_policy_type,
            timezone=self.normalize_timezone(row.timezone, franchise_id),
            pay_period_type=self.normalize_pay_period_type(row.pay_period_type, franchise_id),
            auto_email_enabled=parse_boolean(row.auto_email_enabled, False),
        )

    def get_timezone(self, franchise_id: int) -> str:
        return self.get_settings(franchise_id).timezone

    def find_override(self, franchise_id: int, for_date: date) -> Optional[PayPeriodOverride]:
        """Most recently created override whose inclusive range contains for_date."""
        return self.db.execute(
            select(PayPeriodOverride)
            .where(
                PayPeriodOverride.franchise_id == franchise_id,
                PayPeriodOverride.period_start <= for_date,
                PayPeriodOverride.period_end >= for_date,
            )
            .order_by(PayPeriodOverride.created_at.desc(), PayPeriodOverride.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def resolve(self, franchise_id: int, for_date: Optional[date] = None) -> PayPeriod:
        """
        Pay period containing for_date (default: today in the franchise zone).

        A manual override containing the date wins over the computed window.
        """
        settings = self.get_settings(franchise_id)
        zone = settings.zone
        if for_date is None:
            for_date = self.clock().astimezone(zone).date()

        override = self.find_override(franchise_id, for_date)
        if override is not None:
            start_date, end_date = override.period_start, override.period_end
            source, override_id = "override", override.id
        else:
            start_date, end_date = compute_window(settings.pay_period_type, for_date, self.biweekly_anchor)
            source, override_id = "computed", None

        start_at, end_at = local_day_bounds(start_date, end_date, zone)

        return PayPeriod(
            franchise_id=franchise_id,
            timezone=settings.timezone,
            period_type=settings.pay_period_type,
            start_date=start_date,
            end_date=end_date,
            start_at=start_at,
            end_at=end_at,
            source=source,
            override_id=override_id,
            resolved_for_date=for_date,
        )
