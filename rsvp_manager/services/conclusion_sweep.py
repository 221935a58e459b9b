from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlmodel import Session, select

from ..models.event import Event, utcnow
from ..models.rsvp import Rsvp
from . import mailer
from .rsvp_rules import local_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    events: int
    sent: int
    failed: int
    skipped: int


def events_due(db: Session, today: date) -> List[Event]:
    """
    Events that happened yesterday (event-timezone calendar day), want a conclusion
    mail, have a message, and have not been swept yet.
    """
    start = datetime.combine(today - timedelta(days=1), time.min)
    end = datetime.combine(today, time.min)

    stmt = select(Event).where(
        Event.event_conclusion_email_enabled == True,  # noqa: E712
        Event.conclusion_email_sent_at == None,  # noqa: E711
        Event.date >= start,
        Event.date < end,
    )
    return [e for e in db.exec(stmt).all() if (e.event_conclusion_message or "").strip()]


def run_conclusion_sweep(db: Session, today: Optional[date] = None) -> SweepResult:
    """
    Send the organizer's conclusion message to opted-in attendees of yesterday's events.

    Per-recipient failures are logged and counted; the event is still marked swept so
    a flaky address does not re-mail everyone else tomorrow.
    """
    today = today or local_now().date()
    due = events_due(db, today)

    sent = failed = skipped = 0
    for event in due:
        rsvps = db.exec(select(Rsvp).where(Rsvp.event_id == event.id)).all()
        for rsvp in rsvps:
            if not rsvp.send_event_conclusion_email or not (rsvp.attendee_email or "").strip():
                skipped += 1
                continue
            try:
                if mailer.send_event_conclusion(event, rsvp):
                    sent += 1
                else:
                    skipped += 1
            except mailer.EmailDeliveryError:
                logger.exception("Conclusion email failed: event=%s rsvp=%s", event.slug, rsvp.id)
                failed += 1

        event.conclusion_email_sent_at = utcnow()
        db.add(event)
        db.commit()

    result = SweepResult(events=len(due), sent=sent, failed=failed, skipped=skipped)
    logger.info(
        "Conclusion sweep for %s: events=%d sent=%d failed=%d skipped=%d",
        today.isoformat(), result.events, result.sent, result.failed, result.skipped,
    )
    return result
