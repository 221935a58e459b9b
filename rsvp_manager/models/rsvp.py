from __future__ import annotations

import secrets
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import SQLModel, Field

from .event import utcnow


class Attendance(str, Enum):
    YES = "yes"
    NO = "no"
    MAYBE = "maybe"


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"


def new_edit_id() -> str:
    """
    Unguessable token that lets an attendee revisit their RSVP without an account.
    """
    return secrets.token_urlsafe(24)


class Rsvp(SQLModel, table=True):
    """
    One guest response to an Event.

    items_bringing is expected to be a subset of the event's needed_items but this is
    not enforced, and two RSVPs may claim the same item.
    """
    __tablename__ = "rsvps"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="events.id", index=True, ondelete="CASCADE")

    name: str
    attending: Attendance = Field(default=Attendance.YES, index=True)
    bringing_guests: YesNo = Field(default=YesNo.NO)
    guest_count: int = Field(default=0)
    guest_names: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    items_bringing: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    other_items: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))

    edit_id: str = Field(default_factory=new_edit_id, index=True, unique=True)
    attendee_email: Optional[str] = Field(default=None)
    send_event_conclusion_email: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
