# TutorTime - Clock Routes
# Clock-in / clock-out for the calling tutor's current workday

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tutortime.database import get_db, write_transaction
from tutortime.dependencies import Actor, require_tutor, get_time_entry_service
from tutortime.schemas import ClockOutRequest
from tutortime.services.time_entry import TimeEntryService


router = APIRouter(prefix="/clock", tags=["clock"])


@router.get("/me/state")
def clock_state(
    actor: Actor = Depends(require_tutor),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Today's clock state in the franchise time zone."""
    return {"state": service.clock_state(actor.franchise_id, actor.account_id)}


@router.post("/me/in")
def clock_in(
    actor: Actor = Depends(require_tutor),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """
    Open a session now.

    201 when a session was opened, 200 when one was already open.
    """
    with write_transaction(db):
        state = service.clock_in(actor.franchise_id, actor.account_id)
    return JSONResponse(status_code=201 if state["created"] else 200, content={"state": state})


@router.post("/me/out")
def clock_out(
    body: Optional[ClockOutRequest] = None,
    actor: Actor = Depends(require_tutor),
    db: Session = Depends(get_db),
    service: TimeEntryService = Depends(get_time_entry_service),
):
    """Close the open session; with finalize, submit the day against a schedule snapshot."""
    body = body or ClockOutRequest()
    with write_transaction(db):
        state = service.clock_out(
            actor.franchise_id,
            actor.account_id,
            finalize=body.finalize,
            snapshot_raw=body.schedule_snapshot,
        )
    return {"state": state}
