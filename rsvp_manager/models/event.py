from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    # naive UTC; every datetime column is DateTime(timezone=False)
    return datetime.now(timezone.utc).replace(tzinfo=None)


# max_guests_per_rsvp sentinels
GUESTS_UNLIMITED = -1
GUESTS_NOT_ALLOWED = 0


class Event(SQLModel, table=True):
    """
    An organizer's event and its public RSVP settings.

    Notes:
    - date and rsvp_cutoff_date are naive wall-clock times in settings.event_timezone.
    - needed_items / email_recipients are JSON arrays of strings; the API validates
      them into list[str] before they get here.
    - wallpaper is the stored filename under UPLOAD_DIR/wallpapers, not a URL.
    """
    __tablename__ = "events"

    id: Optional[int] = Field(default=None, primary_key=True)

    title: str
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    date: datetime = Field(sa_column=Column(DateTime(timezone=False), nullable=False, index=True))
    location: str = Field(default="")

    slug: str = Field(index=True, unique=True)

    needed_items: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    wallpaper: Optional[str] = Field(default=None)

    rsvp_cutoff_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    max_guests_per_rsvp: int = Field(default=GUESTS_NOT_ALLOWED)

    email_notifications_enabled: bool = Field(default=False)
    email_recipients: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    event_conclusion_email_enabled: bool = Field(default=False)
    event_conclusion_message: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    conclusion_email_sent_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=False), nullable=True, index=True)
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
