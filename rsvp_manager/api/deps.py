from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlmodel import Session, select

from ..models.event import Event, utcnow
from ..models.rsvp import Rsvp
from ..services import mailer
from ..services.rsvp_rules import RsvpRuleError, normalize_rsvp
from .schemas import RsvpPayload, RsvpWithToken

logger = logging.getLogger(__name__)


def get_event_or_404(db: Session, slug: str) -> Event:
    event = db.exec(select(Event).where(Event.slug == slug)).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def get_rsvp_by_edit_id_or_404(db: Session, edit_id: str) -> Rsvp:
    rsvp = db.exec(select(Rsvp).where(Rsvp.edit_id == edit_id)).first()
    if not rsvp:
        raise HTTPException(status_code=404, detail="RSVP not found")
    return rsvp


def list_event_rsvps(db: Session, event_id: Optional[int]) -> List[Rsvp]:
    stmt = select(Rsvp).where(Rsvp.event_id == event_id).order_by(Rsvp.created_at, Rsvp.id)
    return list(db.exec(stmt).all())


def resend_edit_link(event: Event, rsvp: Rsvp) -> bool:
    """
    Shared by the attendee and organizer resend routes.
    400 when there is no address, 502 when SMTP fails.
    """
    if not (rsvp.attendee_email or "").strip():
        raise HTTPException(status_code=400, detail="RSVP has no email address")
    try:
        return mailer.send_rsvp_edit_link(event, rsvp)
    except mailer.EmailDeliveryError:
        logger.exception("Resending edit link failed: event=%s rsvp=%s", event.slug, rsvp.id)
        raise HTTPException(status_code=502, detail="Failed to send email")


def notify_submission(event: Event, rsvp: Rsvp) -> None:
    """
    Best-effort mail after a new RSVP. Failures are logged; the RSVP is already saved.
    """
    if event.email_notifications_enabled and event.email_recipients:
        mailer.send_rsvp_notification(event, rsvp)

    if (rsvp.attendee_email or "").strip():
        try:
            mailer.send_rsvp_edit_link(event, rsvp)
        except mailer.EmailDeliveryError:
            logger.exception("Edit-link email failed: event=%s rsvp=%s", event.slug, rsvp.id)


def apply_payload(event: Event, rsvp: Rsvp, payload: RsvpPayload) -> None:
    try:
        fields = normalize_rsvp(
            event,
            name=payload.name,
            attending=payload.attending,
            bringing_guests=payload.bringing_guests,
            guest_count=payload.guest_count,
            guest_names=payload.guest_names,
            items_bringing=payload.items_bringing,
            other_items=payload.other_items,
        )
    except RsvpRuleError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    rsvp.name = fields.name
    rsvp.attending = fields.attending
    rsvp.bringing_guests = fields.bringing_guests
    rsvp.guest_count = fields.guest_count
    rsvp.guest_names = list(fields.guest_names)
    rsvp.items_bringing = list(fields.items_bringing)
    rsvp.other_items = fields.other_items
    rsvp.attendee_email = str(payload.attendee_email) if payload.attendee_email else None
    rsvp.send_event_conclusion_email = bool(payload.send_event_conclusion_email and payload.attendee_email)
    rsvp.updated_at = utcnow()


def with_token(rsvp: Rsvp, event: Event) -> RsvpWithToken:
    out = RsvpWithToken.model_validate(rsvp)
    out.event_slug = event.slug
    return out
