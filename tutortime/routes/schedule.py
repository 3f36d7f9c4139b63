# TutorTime - Schedule Snapshot Routes

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tutortime.dependencies import (
    Actor,
    require_tutor,
    get_pay_period_resolver,
    get_snapshot_service,
)
from tutortime.routes.params import parse_date_param
from tutortime.services.pay_period import PayPeriodResolver
from tutortime.services.schedule_snapshot import ScheduleSnapshotService


router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("/me/snapshot")
def my_schedule_snapshot(
    work_date: Optional[str] = Query(None, alias="workDate", description="YYYY-MM-DD"),
    actor: Actor = Depends(require_tutor),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
    service: ScheduleSnapshotService = Depends(get_snapshot_service),
):
    """
    Signed snapshot of the caller's posted schedule for one day.

    The client echoes it back on submit or finalizing clock-out.
    """
    parsed = parse_date_param(work_date, "workDate")
    tz_name = resolver.get_timezone(actor.franchise_id)
    snapshot = service.issue(actor.franchise_id, actor.account_id, parsed, tz_name)
    return {"scheduleSnapshot": snapshot.to_json()}
