from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ..database import get_db
from ..models.event import Event
from ..services.rsvp_rules import is_rsvp_closed
from .deps import apply_payload, get_rsvp_by_edit_id_or_404, resend_edit_link, with_token
from .schemas import EmailSendResult, RsvpPayload, RsvpWithToken

router = APIRouter(prefix="/api/rsvps", tags=["rsvps"])


# Edit-token routes: whoever holds edit_id may read and change that one RSVP.


def _event_for(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/edit/{edit_id}", response_model=RsvpWithToken)
def get_rsvp_for_edit(edit_id: str, db: Session = Depends(get_db)) -> RsvpWithToken:
    rsvp = get_rsvp_by_edit_id_or_404(db, edit_id)
    return with_token(rsvp, _event_for(db, rsvp.event_id))


@router.put("/edit/{edit_id}", response_model=RsvpWithToken)
def update_rsvp_by_token(edit_id: str, payload: RsvpPayload, db: Session = Depends(get_db)) -> RsvpWithToken:
    rsvp = get_rsvp_by_edit_id_or_404(db, edit_id)
    event = _event_for(db, rsvp.event_id)

    if is_rsvp_closed(event):
        raise HTTPException(status_code=403, detail="Event registration is closed. Changes are not allowed.")

    apply_payload(event, rsvp, payload)
    db.add(rsvp)
    db.commit()
    db.refresh(rsvp)
    db.refresh(event)
    return with_token(rsvp, event)


@router.post("/resend-email/{edit_id}", response_model=EmailSendResult)
def resend_email(edit_id: str, db: Session = Depends(get_db)) -> EmailSendResult:
    rsvp = get_rsvp_by_edit_id_or_404(db, edit_id)
    event = _event_for(db, rsvp.event_id)
    return EmailSendResult(sent=resend_edit_link(event, rsvp))
