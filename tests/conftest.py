# tests/conftest.py

import os
import tempfile

# Settings are read at import time; point everything at throwaway locations first.
_TMP = tempfile.mkdtemp(prefix="rsvp-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "true"
os.environ["EMAIL_HOST"] = "smtp.test.local"
os.environ["EMAIL_PORT"] = "587"
os.environ["EMAIL_USER"] = "mailer@test.local"
os.environ["EMAIL_PASS"] = "secret"
os.environ["EMAIL_FROM_NAME"] = "RSVP Manager"
os.environ["FRONTEND_BASE_URL"] = "https://rsvp.example.com"
os.environ["EVENT_TIMEZONE"] = "UTC"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from rsvp_manager.database import get_db, register_models
from rsvp_manager.main import app


class FakeSMTP:
    """
    Stands in for smtplib.SMTP / SMTP_SSL. Every instance records into the class-level outbox.
    """

    outbox = []
    fail_for = set()

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.logged_in = None
        self.started_tls = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        return (250, b"ok")

    def has_extn(self, name):
        return name.lower() == "starttls"

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        import smtplib

        if msg["To"] in self.fail_for:
            raise smtplib.SMTPRecipientsRefused({msg["To"]: (550, b"no such user")})
        FakeSMTP.outbox.append(msg)


@pytest.fixture()
def smtp(monkeypatch):
    FakeSMTP.outbox = []
    FakeSMTP.fail_for = set()
    monkeypatch.setattr("smtplib.SMTP", FakeSMTP)
    monkeypatch.setattr("smtplib.SMTP_SSL", FakeSMTP)
    return FakeSMTP


@pytest.fixture()
def engine():
    register_models()
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(engine, smtp):
    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    # no context manager: startup (init_db on the app engine, scheduler) is not needed here
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_event(client):
    def _make(**fields):
        data = {
            "title": "Summer BBQ",
            "date": "2030-07-04T18:00",
            "location": "Backyard",
            "description": "Burgers, games.",
            "needed_items": '["Chips", "Soda", "Plates"]',
            "max_guests_per_rsvp": "2",
        }
        data.update({k: str(v) for k, v in fields.items()})
        res = client.post("/api/events", data=data)
        assert res.status_code == 201, res.text
        return res.json()

    return _make
