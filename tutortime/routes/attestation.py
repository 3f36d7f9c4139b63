# TutorTime - Weekly Attestation Routes

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tutortime.database import get_db, write_transaction
from tutortime.dependencies import Actor, require_tutor, get_attestation_service
from tutortime.schemas import SignAttestationRequest
from tutortime.services.attestation import AttestationService


router = APIRouter(prefix="/attestation", tags=["attestation"])


@router.get("/me/status")
def attestation_status(
    actor: Actor = Depends(require_tutor),
    service: AttestationService = Depends(get_attestation_service),
):
    """Signing status and copy for the last closed workweek."""
    return service.status(actor.franchise_id, actor.account_id)


@router.get("/me/reminder")
def attestation_reminder(
    actor: Actor = Depends(require_tutor),
    service: AttestationService = Depends(get_attestation_service),
):
    return service.reminder(actor.franchise_id, actor.account_id)


@router.post("/me/sign")
def sign_attestation(
    request: Request,
    body: Optional[SignAttestationRequest] = None,
    actor: Actor = Depends(require_tutor),
    db: Session = Depends(get_db),
    service: AttestationService = Depends(get_attestation_service),
):
    """Attest the last closed workweek. 201 when signed now, 200 when already signed."""
    body = body or SignAttestationRequest()
    with write_transaction(db):
        payload, created = service.sign(
            actor.franchise_id,
            actor.account_id,
            typed_name=body.typed_name,
            display_name=actor.display_name,
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    return JSONResponse(status_code=201 if created else 200, content=payload)
