# TutorTime - Pay Period Routes

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tutortime.dependencies import Actor, get_current_actor, get_pay_period_resolver
from tutortime.routes.params import parse_date_param
from tutortime.services.pay_period import PayPeriodResolver


router = APIRouter(prefix="/pay-period", tags=["pay-period"])


@router.get("/current")
def current_pay_period(
    actor: Actor = Depends(get_current_actor),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
):
    return {"payPeriod": resolver.resolve(actor.franchise_id).to_payload()}


@router.get("")
def pay_period_for_date(
    for_date: Optional[str] = Query(None, alias="forDate", description="YYYY-MM-DD"),
    actor: Actor = Depends(get_current_actor),
    resolver: PayPeriodResolver = Depends(get_pay_period_resolver),
):
    """Pay period containing forDate (default: today in the franchise zone)."""
    parsed = parse_date_param(for_date, "forDate", required=False)
    return {"payPeriod": resolver.resolve(actor.franchise_id, parsed).to_payload()}
