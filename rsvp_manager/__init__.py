"""Event RSVP manager: FastAPI + SQLModel backend with SMTP mail and a daily conclusion sweep."""
