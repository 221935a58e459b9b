from __future__ import annotations

import json
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional
from zoneinfo import ZoneInfo

from ..config import settings
from ..models.event import GUESTS_NOT_ALLOWED, GUESTS_UNLIMITED, Event
from ..models.rsvp import Attendance, YesNo


class RsvpRuleError(ValueError):
    """
    A submission that breaks one of the event's guest rules.
    The API turns this into a 422 with the message as detail.
    """


# -------------------------
# Time
# -------------------------

def local_now() -> datetime:
    """
    Naive "now" in the event timezone, comparable with stored event dates/cutoffs.
    """
    return datetime.now(ZoneInfo(settings.event_timezone)).replace(tzinfo=None)


def to_local_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Aware datetimes are converted into the event timezone; naive ones are kept as wall-clock time.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(settings.event_timezone)).replace(tzinfo=None)


def is_rsvp_closed(event: Event, now: Optional[datetime] = None) -> bool:
    cutoff = event.rsvp_cutoff_date
    if cutoff is None:
        return False
    now = now or local_now()
    return now > to_local_naive(cutoff)


# -------------------------
# Slugs
# -------------------------

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """
    Lowercase, ascii-ish, hyphen-separated. Empty titles fall back to "event".
    """
    s = _SLUG_STRIP.sub("-", (title or "").strip().lower()).strip("-")
    return s[:80].rstrip("-") or "event"


def unique_slug(title: str, exists: Callable[[str], bool]) -> str:
    """
    slugify(title), suffixed with a short random token while it collides.
    """
    base = slugify(title)
    slug = base
    while exists(slug):
        slug = f"{base}-{secrets.token_hex(3)}"
    return slug


# -------------------------
# Form value parsing
# -------------------------

def parse_string_list(raw: Any) -> List[str]:
    """
    Multipart forms send lists as a JSON array string; older clients send "a, b, c".
    Returns trimmed, non-empty strings in input order.
    """
    if raw is None:
        return []

    values: List[Any]
    if isinstance(raw, (list, tuple)):
        values = list(raw)
    else:
        s = str(raw).strip()
        if not s:
            return []
        try:
            parsed = json.loads(s)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            values = parsed
        elif isinstance(parsed, str):
            values = [parsed]
        else:
            values = s.split(",")

    out: List[str] = []
    for v in values:
        if v is None:
            continue
        t = str(v).strip()
        if t:
            out.append(t)
    return out


_OTHER_ITEMS_SPLIT = re.compile(r"\r?\n|,")


def normalize_other_items(raw: Optional[str]) -> str:
    """
    "napkins\\n cups,, ice " -> "napkins, cups, ice"
    """
    if not raw:
        return ""
    parts = [p.strip() for p in _OTHER_ITEMS_SPLIT.split(raw)]
    return ", ".join(p for p in parts if p)


# -------------------------
# Guest rules
# -------------------------

@dataclass(frozen=True)
class RsvpFields:
    """
    The attendee-controlled part of an RSVP after normalization.
    """
    name: str
    attending: Attendance
    bringing_guests: YesNo
    guest_count: int
    guest_names: List[str]
    items_bringing: List[str]
    other_items: str


def normalize_rsvp(
    event: Event,
    *,
    name: str,
    attending: Attendance,
    bringing_guests: Optional[YesNo],
    guest_count: int,
    guest_names: List[str],
    items_bringing: List[str],
    other_items: Optional[str],
) -> RsvpFields:
    """
    Apply the event's guest rules to a submission.

    - not attending (no / maybe): no guests, no items, no other items
    - not bringing guests: guest_count 0, no names
    - max_guests_per_rsvp 0 forbids guests; n > 0 caps guest_count
    - when bringing guests, every guest needs a non-blank name
    """
    name = (name or "").strip()
    if not name:
        raise RsvpRuleError("Name is required")

    if attending != Attendance.YES:
        return RsvpFields(
            name=name,
            attending=attending,
            bringing_guests=YesNo.NO,
            guest_count=0,
            guest_names=[],
            items_bringing=[],
            other_items="",
        )

    if bringing_guests is None:
        raise RsvpRuleError("Please indicate if you are bringing guests")

    items = [i.strip() for i in items_bringing if i and i.strip()]
    others = normalize_other_items(other_items)

    if bringing_guests == YesNo.NO:
        return RsvpFields(
            name=name,
            attending=attending,
            bringing_guests=YesNo.NO,
            guest_count=0,
            guest_names=[],
            items_bringing=items,
            other_items=others,
        )

    cap = event.max_guests_per_rsvp
    if cap == GUESTS_NOT_ALLOWED:
        raise RsvpRuleError("Guests are not allowed for this event")

    count = int(guest_count or 0)
    if count < 1:
        raise RsvpRuleError("guest_count must be at least 1 when bringing guests")
    if cap != GUESTS_UNLIMITED and cap > 0 and count > cap:
        raise RsvpRuleError(f"Maximum {cap} additional guests allowed")

    names = [str(n).strip() for n in guest_names[:count]]
    if len(names) < count or any(not n for n in names):
        raise RsvpRuleError("Please provide names for all guests")

    return RsvpFields(
        name=name,
        attending=attending,
        bringing_guests=YesNo.YES,
        guest_count=count,
        guest_names=names,
        items_bringing=items,
        other_items=others,
    )
