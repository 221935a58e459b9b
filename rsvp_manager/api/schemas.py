from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field as PydField, field_validator

from ..models.event import Event
from ..models.rsvp import Attendance, YesNo
from ..services.item_claims import coerce_item_list
from ..services.rsvp_rules import parse_string_list
from ..services.uploads import wallpaper_url


# -----------------------------
# Events
# -----------------------------

class EventRead(BaseModel):
    """
    Public event shape. wallpaper is a URL under /uploads, not the stored filename.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str = ""
    date: datetime
    location: str = ""
    slug: str
    needed_items: List[str] = PydField(default_factory=list)
    wallpaper: Optional[str] = None
    rsvp_cutoff_date: Optional[datetime] = None
    max_guests_per_rsvp: int = 0
    email_notifications_enabled: bool = False
    email_recipients: List[str] = PydField(default_factory=list)
    event_conclusion_email_enabled: bool = False
    event_conclusion_message: str = ""
    created_at: datetime

    # Rows written by older clients may hold a JSON string here; type it once at the boundary.
    @field_validator("needed_items", "email_recipients", mode="before")
    @classmethod
    def _as_list(cls, v: Any) -> List[str]:
        return coerce_item_list(v)

    @classmethod
    def from_event(cls, event: Event) -> "EventRead":
        out = cls.model_validate(event)
        out.wallpaper = wallpaper_url(event.wallpaper)
        return out


class NeededItemCreate(BaseModel):
    item: str = PydField(..., min_length=1)

    @field_validator("item")
    @classmethod
    def _strip(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("item must not be blank")
        return s


class ItemClaimsRead(BaseModel):
    needed_items: List[str]
    unclaimed: List[str]
    claimed: List[str]
    other_items: List[str]


# -----------------------------
# RSVPs
# -----------------------------

class RsvpPayload(BaseModel):
    """
    Attendee submission / edit. Guest and item rules are applied server-side afterwards,
    so this only checks shapes.
    """
    name: str = PydField(..., min_length=1)
    attending: Attendance
    bringing_guests: Optional[YesNo] = None
    guest_count: int = PydField(default=0, ge=0)
    guest_names: List[str] = PydField(default_factory=list)
    items_bringing: List[str] = PydField(default_factory=list)
    other_items: Optional[str] = ""
    attendee_email: Optional[EmailStr] = None
    send_event_conclusion_email: bool = False

    # Legacy admin screens post these as JSON.stringify(...) strings
    @field_validator("guest_names", "items_bringing", mode="before")
    @classmethod
    def _as_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_string_list(v)
        return v

    @field_validator("attendee_email", mode="before")
    @classmethod
    def _blank_email(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("bringing_guests", mode="before")
    @classmethod
    def _blank_bringing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RsvpRead(BaseModel):
    """
    RSVP as listed on the event pages. The edit token is deliberately absent.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    name: str
    attending: Attendance
    bringing_guests: YesNo
    guest_count: int = 0
    guest_names: List[str] = PydField(default_factory=list)
    items_bringing: List[str] = PydField(default_factory=list)
    other_items: str = ""
    attendee_email: Optional[str] = None
    send_event_conclusion_email: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("guest_names", "items_bringing", mode="before")
    @classmethod
    def _as_list(cls, v: Any) -> List[str]:
        return coerce_item_list(v)

    @field_validator("other_items", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


class RsvpWithToken(RsvpRead):
    """
    Returned only to the attendee who owns the RSVP (on submit, or when they present the token).
    """
    edit_id: str
    event_slug: Optional[str] = None


class EmailSendResult(BaseModel):
    sent: bool
