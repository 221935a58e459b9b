from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from typing import Any, Dict, List

import jinja2

from ..config import settings
from ..models.event import Event
from ..models.rsvp import Rsvp

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailDeliveryError(RuntimeError):
    """
    SMTP refused or could not be reached. Carries the recipient for log context.
    """

    def __init__(self, to: str, cause: BaseException) -> None:
        super().__init__(f"Email to {to} failed: {cause}")
        self.to = to
        self.cause = cause


def _yes_no(value: Any) -> str:
    s = str(getattr(value, "value", value) or "")
    if s.lower() == "yes":
        return "Yes"
    if s.lower() == "no":
        return "No"
    return s.capitalize()


# Autoescape: every value in these templates is user-supplied.
_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=True,
)
_env.filters["yes_no"] = _yes_no


def render(template_name: str, **context: Any) -> str:
    return _env.get_template(template_name).render(**context)


# -------------------------
# Links
# -------------------------

def edit_url(event: Event, rsvp: Rsvp) -> str:
    return f"{settings.frontend_base_url}/rsvp/events/{event.slug}/edit/{rsvp.edit_id}"


def calendar_url(event: Event) -> str:
    return f"{settings.frontend_base_url}/api/events/{event.slug}/calendar.ics"


def manage_url(event: Event) -> str:
    return f"{settings.frontend_base_url}/admin/events/{event.slug}"


def view_url(event: Event) -> str:
    return f"{settings.frontend_base_url}/view/events/{event.slug}"


# -------------------------
# Transport
# -------------------------

def _build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((settings.email_from_name, settings.sender_address))
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def send_email(to: str, subject: str, html: str) -> bool:
    """
    Deliver one HTML message.

    Returns False (and logs) when mail is disabled or unconfigured.
    Raises EmailDeliveryError when the SMTP exchange itself fails.
    """
    to = (to or "").strip()
    if not to:
        return False

    if not settings.email_enabled:
        logger.info("EMAIL_ENABLED=false; not sending %r to %s", subject, to)
        return False

    if not settings.email_host:
        logger.warning("EMAIL_HOST is not set; not sending %r to %s", subject, to)
        return False

    msg = _build_message(to, subject, html)
    timeout = float(settings.email_timeout_s)

    try:
        if settings.email_secure:
            server = smtplib.SMTP_SSL(settings.email_host, settings.email_port, timeout=timeout)
        else:
            server = smtplib.SMTP(settings.email_host, settings.email_port, timeout=timeout)

        with server:
            if not settings.email_secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if settings.email_user:
                server.login(settings.email_user, settings.email_pass)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(to, exc) from exc

    logger.info("Sent %r to %s", subject, to)
    return True


# -------------------------
# Messages
# -------------------------

def send_rsvp_notification(event: Event, rsvp: Rsvp) -> Dict[str, bool]:
    """
    Organizer notification, one message per configured recipient.
    A failing recipient is logged and does not block the others.
    """
    subject = f"RSVP Confirmation for {event.title}"
    html = render(
        "rsvp_notification.html",
        event=event,
        rsvp=rsvp,
        manage_url=manage_url(event),
        view_url=view_url(event),
    )

    results: Dict[str, bool] = {}
    recipients: List[str] = list(event.email_recipients or [])
    for to in recipients:
        try:
            results[to] = send_email(to, subject, html)
        except EmailDeliveryError:
            logger.exception("RSVP notification failed for event=%s", event.slug)
            results[to] = False
    return results


def send_rsvp_edit_link(event: Event, rsvp: Rsvp) -> bool:
    subject = f"Confirming your RSVP for {event.title}"
    html = render(
        "rsvp_edit_link.html",
        event=event,
        rsvp=rsvp,
        edit_url=edit_url(event, rsvp),
        calendar_url=calendar_url(event),
    )
    return send_email(rsvp.attendee_email or "", subject, html)


def send_event_conclusion(event: Event, rsvp: Rsvp) -> bool:
    subject = f"Thank You for Attending {event.title}!"
    html = render(
        "event_conclusion.html",
        event=event,
        rsvp=rsvp,
        message=event.event_conclusion_message,
    )
    return send_email(rsvp.attendee_email or "", subject, html)
