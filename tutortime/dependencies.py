# TutorTime - Request Dependencies
# Caller identity from gateway headers, and service construction for routes

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from tutortime.config import Settings, get_settings
from tutortime.database import get_db
from tutortime.services.attestation import AttestationService
from tutortime.services.attestation_gate import AttestationGate
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.schedule_snapshot import ScheduleSnapshotService
from tutortime.services.time_entry import TimeEntryService


# Headers set by the upstream identity gateway
ACCOUNT_TYPE_HEADER = "X-Account-Type"
ACCOUNT_ID_HEADER = "X-Account-Id"
FRANCHISE_ID_HEADER = "X-Franchise-Id"
DISPLAY_NAME_HEADER = "X-Display-Name"

ACCOUNT_TUTOR = "TUTOR"
ACCOUNT_ADMIN = "ADMIN"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as asserted by the gateway."""

    account_type: str
    account_id: int
    franchise_id: int
    display_name: str = ""

    @property
    def is_tutor(self) -> bool:
        return self.account_type == ACCOUNT_TUTOR

    @property
    def is_admin(self) -> bool:
        return self.account_type == ACCOUNT_ADMIN


def _parse_id(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def get_current_actor(request: Request) -> Actor:
    """
    Build the caller from identity headers or raise 401.

    Usage:
        @router.get("/clock/me/state")
        def state(actor: Actor = Depends(get_current_actor)):
            ...
    """
    account_type = (request.headers.get(ACCOUNT_TYPE_HEADER) or "").strip().upper()
    account_id = _parse_id(request.headers.get(ACCOUNT_ID_HEADER))
    franchise_id = _parse_id(request.headers.get(FRANCHISE_ID_HEADER))

    if account_type not in (ACCOUNT_TUTOR, ACCOUNT_ADMIN) or account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    if franchise_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="franchiseId is required",
        )

    return Actor(
        account_type=account_type,
        account_id=account_id,
        franchise_id=franchise_id,
        display_name=(request.headers.get(DISPLAY_NAME_HEADER) or "").strip(),
    )


def require_tutor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Require a tutor account; tutors only ever act on their own records."""
    if not actor.is_tutor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tutor access required",
        )
    return actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Require an admin account, scoped to the franchise in its identity."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


def get_clock() -> Callable[[], datetime]:
    """Source of "now" for the services (overridden in tests)."""
    return lambda: datetime.now(timezone.utc)


def get_pay_period_resolver(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PayPeriodResolver:
    return PayPeriodResolver(
        db,
        default_timezone=settings.default_timezone,
        default_pay_period_type=settings.default_pay_period_type,
        default_policy_type=settings.default_policy_type,
        biweekly_anchor_date=settings.biweekly_anchor_date,
        clock=clock,
    )


def get_attestation_gate(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AttestationGate:
    return AttestationGate(db, clock=clock)


def get_time_entry_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
    gate: AttestationGate = Depends(get_attestation_gate),
) -> TimeEntryService:
    return TimeEntryService(
        db,
        resolver,
        gate,
        signing_secret=settings.schedule_snapshot_signing_secret,
        clock=clock,
        max_sessions_per_day=settings.max_sessions_per_day,
        max_reason_length=settings.max_reason_length,
        min_fix_reason_length=settings.min_fix_reason_length,
    )


def get_attestation_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
) -> AttestationService:
    return AttestationService(db, resolver, clock=clock, max_typed_name_length=settings.max_typed_name_length)


def get_snapshot_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ScheduleSnapshotService:
    return ScheduleSnapshotService(
        db,
        slot_minutes=settings.schedule_slot_minutes,
        signing_secret=settings.schedule_snapshot_signing_secret,
        clock=clock,
    )
