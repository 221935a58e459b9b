from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from icalendar import Calendar
from icalendar import Event as CalendarEvent

from ..config import settings
from ..models.event import Event

DEFAULT_DURATION = timedelta(hours=2)
PRODID = "-//RSVP Manager//Event Calendar//EN"

_TAGS = re.compile(r"<[^>]*>")
_LINE_BREAKS = re.compile(r"\r\n?")


def _text(value: Optional[str]) -> str:
    # lone CRs become LF so the library escapes them as \n
    return _LINE_BREAKS.sub("\n", value or "")


def _as_utc(dt: datetime) -> datetime:
    """
    Naive datetimes are wall-clock times in the event timezone.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(settings.event_timezone))
    return dt.astimezone(timezone.utc)


def build_event_ics(event: Event, *, now: Optional[datetime] = None) -> str:
    """
    Single-VEVENT calendar for the "Add to Calendar" link.
    Events carry no end time, so DTEND is start + 2h.
    """
    now = now or datetime.now(timezone.utc)
    start = _as_utc(event.date)

    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")

    vevent = CalendarEvent()
    vevent.add("uid", f"{event.slug}-{int(now.timestamp() * 1000)}@rsvp-manager")
    vevent.add("dtstamp", _as_utc(now))
    vevent.add("dtstart", start)
    vevent.add("dtend", start + DEFAULT_DURATION)
    vevent.add("summary", _text(event.title))
    vevent.add("description", _text(_TAGS.sub("", event.description or "")))
    vevent.add("location", _text(event.location))
    vevent.add("status", "CONFIRMED")
    vevent.add("transp", "OPAQUE")

    cal.add_component(vevent)
    return cal.to_ical().decode("utf-8")
