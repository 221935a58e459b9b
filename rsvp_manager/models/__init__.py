# rsvp_manager/models/__init__.py
# Central import surface for SQLModel table registration.
# Keeping these imports ensures init_db() sees all models and creates tables.

from .event import Event
from .rsvp import Attendance, Rsvp, YesNo

__all__ = [
    "Event",
    "Rsvp",
    "Attendance",
    "YesNo",
]
