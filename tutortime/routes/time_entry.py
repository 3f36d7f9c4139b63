# TutorTime - Time Entry Routes
# Tutor day editing/submission and the admin review queue

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tutortime.database import get_db, write_transaction
from tutortime.dependencies import (
    Actor,
    require_admin,
    require_tutor,
    get_pay_period_resolver,
    get_time_entry_service,
)
from tutortime.routes.params import parse_date_param
from tutortime.schemas import AdminFixRequest, DecideRequest, SaveDayRequest, SubmitDayRequest
from tutortime.services.errors import ValidationError
from tutortime.services.hours import month_range, parse_month_param
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.time_entry import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_PENDING_LIMIT,
    TimeEntryService,
    day_payload,
    day_worked_minutes,
)


router = APIRouter(prefix="/time-entry", tags=["time-entry"])


# Tutor routes

@router.get("/me")
def list_my_days(
    start: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1),
    actor: Actor = Depends(require_tutor),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """The caller's days between start and end (inclusive)."""
    try:
        start_date = parse_date_param(start, "start")
        end_date = parse_date_param(end, "end")
    except ValidationError:
        raise ValidationError("start and end must be YYYY-MM-DD")

    days = service.list_days(actor.franchise_id, actor.account_id, start_date, end_date, limit)
    return {
        "days": [
            {**day_payload(day), "workedMinutes": day_worked_minutes(day)}
            for day in days
        ]
    }


@router.get("/me/hours")
def my_hours(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    actor: Actor = Depends(require_tutor),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Worked hours for a calendar month and for the current pay period."""
    month = parse_month_param(month)
    settings = resolver.get_settings(actor.franchise_id)
    bounds = month_range(settings.zone, month, now=resolver.clock())
    period = resolver.resolve(actor.franchise_id)

    return {
        "timezone": settings.timezone,
        "month": {
            "month": bounds["month"],
            "startDate": bounds["start_date"].isoformat(),
            "endDate": bounds["end_date"].isoformat(),
            **service.hours_summary(actor.franchise_id, actor.account_id, bounds["start_at"], bounds["end_at"]),
        },
        "payPeriod": {
            **period.to_payload(),
            **service.hours_summary(actor.franchise_id, actor.account_id, period.start_at, period.end_at),
        },
    }


@router.put("/me/day/{work_date}")
def save_my_day(
    work_date: str,
    body: SaveDayRequest,
    actor: Actor = Depends(require_tutor),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Replace the sessions of one day. 201 when the day is new."""
    parsed_date = parse_date_param(work_date, "workDate")
    with write_transaction(db):
        day, created = service.save_day(actor.franchise_id, actor.account_id, parsed_date, body.sessions)
    return JSONResponse(status_code=201 if created else 200, content={"day": day_payload(day)})


@router.post("/me/day/{work_date}/submit")
def submit_my_day(
    work_date: str,
    body: SubmitDayRequest,
    actor: Actor = Depends(require_tutor),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    parsed_date = parse_date_param(work_date, "workDate")
    with write_transaction(db):
        day = service.submit_day(actor.franchise_id, actor.account_id, parsed_date, body.schedule_snapshot)
    return {"day": day_payload(day)}


# Admin routes

@router.get("/admin/pending")
def list_pending(
    limit: int = Query(DEFAULT_PENDING_LIMIT, ge=1),
    actor: Actor = Depends(require_admin),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Pending days for the admin's franchise, newest submission first."""
    return {"days": service.list_pending(actor.franchise_id, limit)}


@router.post("/admin/day/{day_id}/decide")
def decide_day(
    day_id: int,
    body: DecideRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    if day_id <= 0:
        raise ValidationError("id must be a positive integer")
    with write_transaction(db):
        day = service.admin_decide(day_id, actor.franchise_id, actor.account_id, body.decision, body.reason)
    return {"day": day_payload(day)}


@router.put("/admin/day/{day_id}")
def fix_day(
    day_id: int,
    body: AdminFixRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Rewrite a day's sessions; the day returns to pending."""
    if day_id <= 0:
        raise ValidationError("id must be a positive integer")
    with write_transaction(db):
        day = service.admin_fix(day_id, actor.franchise_id, actor.account_id, body.sessions, body.reason)
    return {"day": day_payload(day)}
