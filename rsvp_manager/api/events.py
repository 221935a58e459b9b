from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlmodel import Session, select

from ..database import get_db
from ..models.event import Event, utcnow
from ..models.rsvp import Rsvp
from ..services.ics import build_event_ics
from ..services.item_claims import coerce_item_list, resolve_item_claims
from ..services.rsvp_rules import (
    is_rsvp_closed,
    parse_string_list,
    to_local_naive,
    unique_slug,
)
from ..services.uploads import UploadRejected, delete_wallpaper, save_wallpaper
from .deps import (
    apply_payload,
    get_event_or_404,
    list_event_rsvps,
    notify_submission,
    resend_edit_link,
    with_token,
)
from .schemas import (
    EmailSendResult,
    EventRead,
    ItemClaimsRead,
    NeededItemCreate,
    RsvpPayload,
    RsvpRead,
    RsvpWithToken,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])

_emails = TypeAdapter(List[EmailStr])


# -------------------------
# Helpers
# -------------------------

def _parse_datetime(raw: Optional[str], field: str, *, required: bool = False) -> Optional[datetime]:
    s = (raw or "").strip()
    if not s:
        if required:
            raise HTTPException(status_code=422, detail=f"{field} is required")
        return None
    try:
        return to_local_naive(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        raise HTTPException(status_code=422, detail=f"{field} is not a valid ISO datetime")


def _parse_recipients(raw: Optional[str]) -> List[str]:
    values = parse_string_list(raw)
    try:
        return [str(e) for e in _emails.validate_python(values)]
    except ValidationError:
        raise HTTPException(status_code=422, detail="email_recipients contains an invalid address")


def _store_wallpaper(upload: Optional[UploadFile], slug: str) -> Optional[str]:
    if upload is None or not upload.filename:
        return None
    try:
        return save_wallpaper(upload, slug)
    except UploadRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _commit_or_discard(db: Session, stored_wallpaper: Optional[str]) -> None:
    """
    Commit, or roll back and remove the wallpaper file written for this request.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        delete_wallpaper(stored_wallpaper)
        raise


def _strip_claims(db: Session, event: Event, removed: Iterable[str]) -> int:
    """
    Drop removed needed items from every RSVP that had claimed them. Returns RSVPs touched.
    """
    removed = set(removed)
    if not removed:
        return 0

    touched = 0
    for rsvp in list_event_rsvps(db, event.id):
        items = coerce_item_list(rsvp.items_bringing)
        kept = [i for i in items if i not in removed]
        if len(kept) != len(items):
            rsvp.items_bringing = kept
            rsvp.updated_at = utcnow()
            db.add(rsvp)
            touched += 1
    return touched


def _get_event_rsvp_or_404(db: Session, event: Event, rsvp_id: int) -> Rsvp:
    rsvp = db.get(Rsvp, rsvp_id)
    if not rsvp or rsvp.event_id != event.id:
        raise HTTPException(status_code=404, detail="RSVP not found")
    return rsvp


# -------------------------
# Events
# -------------------------

@router.get("", response_model=List[EventRead])
def list_events(db: Session = Depends(get_db)) -> List[EventRead]:
    rows = db.exec(select(Event).order_by(Event.created_at.desc(), Event.id.desc())).all()
    return [EventRead.from_event(e) for e in rows]


@router.post("", response_model=EventRead, status_code=201)
def create_event(
    title: str = Form(..., min_length=1),
    date: str = Form(...),
    description: str = Form(""),
    location: str = Form(""),
    needed_items: Optional[str] = Form(None),
    rsvp_cutoff_date: Optional[str] = Form(None),
    max_guests_per_rsvp: int = Form(0, ge=-1),
    email_notifications_enabled: bool = Form(False),
    email_recipients: Optional[str] = Form(None),
    event_conclusion_email_enabled: bool = Form(False),
    event_conclusion_message: str = Form(""),
    wallpaper: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
) -> EventRead:
    """
    Multipart create. needed_items / email_recipients may be a JSON array or "a, b, c".
    The slug is derived from the title and never changes afterwards.
    """
    title = title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="title is required")

    slug = unique_slug(
        title,
        lambda s: db.exec(select(Event.id).where(Event.slug == s)).first() is not None,
    )

    event = Event(
        title=title,
        description=description or "",
        date=_parse_datetime(date, "date", required=True),
        location=(location or "").strip(),
        slug=slug,
        needed_items=parse_string_list(needed_items),
        rsvp_cutoff_date=_parse_datetime(rsvp_cutoff_date, "rsvp_cutoff_date"),
        max_guests_per_rsvp=max_guests_per_rsvp,
        email_notifications_enabled=email_notifications_enabled,
        email_recipients=_parse_recipients(email_recipients),
        event_conclusion_email_enabled=event_conclusion_email_enabled,
        event_conclusion_message=(event_conclusion_message or "").strip(),
    )
    event.wallpaper = _store_wallpaper(wallpaper, slug)

    db.add(event)
    _commit_or_discard(db, event.wallpaper)
    db.refresh(event)
    logger.info("Created event slug=%s", event.slug)
    return EventRead.from_event(event)


@router.get("/{slug}", response_model=EventRead)
def get_event(slug: str, db: Session = Depends(get_db)) -> EventRead:
    return EventRead.from_event(get_event_or_404(db, slug))


@router.put("/{slug}", response_model=EventRead)
def update_event(
    slug: str,
    title: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    needed_items: Optional[str] = Form(None),
    rsvp_cutoff_date: Optional[str] = Form(None),
    max_guests_per_rsvp: Optional[int] = Form(None, ge=-1),
    email_notifications_enabled: Optional[bool] = Form(None),
    email_recipients: Optional[str] = Form(None),
    event_conclusion_email_enabled: Optional[bool] = Form(None),
    event_conclusion_message: Optional[str] = Form(None),
    clear_rsvp_cutoff: bool = Form(False),
    remove_wallpaper: bool = Form(False),
    wallpaper: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
) -> EventRead:
    """
    Partial multipart update: omitted fields are left unchanged.
    Empty form values count as omitted, so clearing the cutoff takes clear_rsvp_cutoff.
    Removing needed items also un-claims them on every RSVP; send "[]" to clear the list.
    """
    event = get_event_or_404(db, slug)

    if title is not None:
        if not title.strip():
            raise HTTPException(status_code=422, detail="title must not be blank")
        event.title = title.strip()
    if date is not None:
        event.date = _parse_datetime(date, "date", required=True)
    if description is not None:
        event.description = description
    if location is not None:
        event.location = location.strip()
    if clear_rsvp_cutoff:
        event.rsvp_cutoff_date = None
    elif rsvp_cutoff_date is not None:
        event.rsvp_cutoff_date = _parse_datetime(rsvp_cutoff_date, "rsvp_cutoff_date")
    if max_guests_per_rsvp is not None:
        event.max_guests_per_rsvp = max_guests_per_rsvp
    if email_notifications_enabled is not None:
        event.email_notifications_enabled = email_notifications_enabled
    if email_recipients is not None:
        event.email_recipients = _parse_recipients(email_recipients)
    if event_conclusion_email_enabled is not None:
        event.event_conclusion_email_enabled = event_conclusion_email_enabled
    if event_conclusion_message is not None:
        event.event_conclusion_message = event_conclusion_message.strip()

    if needed_items is not None:
        new_items = parse_string_list(needed_items)
        removed = set(coerce_item_list(event.needed_items)) - set(new_items)
        event.needed_items = new_items
        _strip_claims(db, event, removed)

    new_wallpaper = _store_wallpaper(wallpaper, event.slug)
    old_wallpaper = event.wallpaper
    replace_wallpaper = bool(new_wallpaper or remove_wallpaper)
    if replace_wallpaper:
        event.wallpaper = new_wallpaper

    db.add(event)
    _commit_or_discard(db, new_wallpaper)
    if replace_wallpaper:
        delete_wallpaper(old_wallpaper)
    db.refresh(event)
    return EventRead.from_event(event)


@router.delete("/{slug}", status_code=204)
def delete_event(slug: str, db: Session = Depends(get_db)) -> Response:
    event = get_event_or_404(db, slug)
    wallpaper = event.wallpaper

    # explicit so the cascade holds even on engines without FK enforcement
    for rsvp in list_event_rsvps(db, event.id):
        db.delete(rsvp)
    db.delete(event)
    db.commit()

    delete_wallpaper(wallpaper)
    logger.info("Deleted event slug=%s", slug)
    return Response(status_code=204)


@router.get("/{slug}/calendar.ics")
def event_calendar(slug: str, db: Session = Depends(get_db)) -> Response:
    event = get_event_or_404(db, slug)
    return Response(
        content=build_event_ics(event),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{event.slug}.ics"'},
    )


# -------------------------
# Needed items
# -------------------------

@router.get("/{slug}/items", response_model=ItemClaimsRead)
def event_items(
    slug: str,
    exclude_edit_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> ItemClaimsRead:
    """
    Unclaimed / claimed / other items. exclude_edit_id leaves out the caller's own RSVP
    so its claims show as available on the edit form.
    """
    event = get_event_or_404(db, slug)
    rsvps = list_event_rsvps(db, event.id)

    exclude = None
    if exclude_edit_id:
        exclude = next((r.id for r in rsvps if r.edit_id == exclude_edit_id), None)

    claims = resolve_item_claims(event.needed_items, rsvps, exclude=exclude)
    return ItemClaimsRead(needed_items=coerce_item_list(event.needed_items), **claims.as_dict())


@router.post("/{slug}/items", response_model=EventRead, status_code=201)
def add_needed_item(slug: str, payload: NeededItemCreate, db: Session = Depends(get_db)) -> EventRead:
    event = get_event_or_404(db, slug)
    items = coerce_item_list(event.needed_items)
    if payload.item not in items:
        event.needed_items = items + [payload.item]
        db.add(event)
        db.commit()
        db.refresh(event)
    return EventRead.from_event(event)


@router.delete("/{slug}/items/{item}", response_model=EventRead)
def remove_needed_item(slug: str, item: str, db: Session = Depends(get_db)) -> EventRead:
    event = get_event_or_404(db, slug)
    items = coerce_item_list(event.needed_items)
    if item not in items:
        raise HTTPException(status_code=404, detail="Item not found")

    event.needed_items = [i for i in items if i != item]
    touched = _strip_claims(db, event, [item])
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Removed item %r from event=%s (rsvps updated=%d)", item, slug, touched)
    return EventRead.from_event(event)


# -------------------------
# RSVPs (public submit + organizer management)
# -------------------------

@router.get("/{slug}/rsvps", response_model=List[RsvpRead])
def list_rsvps(slug: str, db: Session = Depends(get_db)) -> List[RsvpRead]:
    event = get_event_or_404(db, slug)
    return [RsvpRead.model_validate(r) for r in list_event_rsvps(db, event.id)]


@router.post("/{slug}/rsvp", response_model=RsvpWithToken, status_code=201)
def submit_rsvp(slug: str, payload: RsvpPayload, db: Session = Depends(get_db)) -> RsvpWithToken:
    event = get_event_or_404(db, slug)
    if is_rsvp_closed(event):
        raise HTTPException(status_code=403, detail="Event registration is closed")

    rsvp = Rsvp(event_id=event.id, name=payload.name)
    apply_payload(event, rsvp, payload)

    db.add(rsvp)
    db.commit()
    db.refresh(rsvp)
    db.refresh(event)

    notify_submission(event, rsvp)
    return with_token(rsvp, event)


@router.put("/{slug}/rsvps/{rsvp_id}", response_model=RsvpRead)
def organizer_update_rsvp(
    slug: str,
    rsvp_id: int,
    payload: RsvpPayload,
    db: Session = Depends(get_db),
) -> RsvpRead:
    """
    Organizer edit. The RSVP cutoff does not apply here.
    """
    event = get_event_or_404(db, slug)
    rsvp = _get_event_rsvp_or_404(db, event, rsvp_id)
    apply_payload(event, rsvp, payload)

    db.add(rsvp)
    db.commit()
    db.refresh(rsvp)
    return RsvpRead.model_validate(rsvp)


@router.delete("/{slug}/rsvps/{rsvp_id}", status_code=204)
def delete_rsvp(slug: str, rsvp_id: int, db: Session = Depends(get_db)) -> Response:
    event = get_event_or_404(db, slug)
    rsvp = _get_event_rsvp_or_404(db, event, rsvp_id)
    db.delete(rsvp)
    db.commit()
    return Response(status_code=204)


@router.post("/{slug}/rsvps/{rsvp_id}/resend-email", response_model=EmailSendResult)
def organizer_resend_email(slug: str, rsvp_id: int, db: Session = Depends(get_db)) -> EmailSendResult:
    event = get_event_or_404(db, slug)
    rsvp = _get_event_rsvp_or_404(db, event, rsvp_id)
    return EmailSendResult(sent=resend_edit_link(event, rsvp))
