# tests/api/test_events_api.py

from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from rsvp_manager.config import settings


def test_create_event_generates_slug_and_lists(client, make_event):
    created = make_event(title="Summer BBQ")

    assert created["slug"] == "summer-bbq"
    assert created["needed_items"] == ["Chips", "Soda", "Plates"]
    assert created["max_guests_per_rsvp"] == 2
    assert created["wallpaper"] is None

    second = make_event(title="Summer BBQ")
    assert second["slug"].startswith("summer-bbq-")

    listed = client.get("/api/events").json()
    assert [e["slug"] for e in listed] == [second["slug"], "summer-bbq"]


def test_create_event_accepts_comma_lists_and_recipients(client, make_event):
    created = make_event(
        needed_items="Ice, Cups",
        email_notifications_enabled="true",
        email_recipients="host@example.com, cohost@example.com",
    )

    assert created["needed_items"] == ["Ice", "Cups"]
    assert created["email_notifications_enabled"] is True
    assert created["email_recipients"] == ["host@example.com", "cohost@example.com"]


def test_create_event_rejects_bad_input(client):
    res = client.post("/api/events", data={"title": "x", "date": "next tuesday"})
    assert res.status_code == 422

    res = client.post("/api/events", data={"title": "x", "date": "2030-01-01T10:00", "email_recipients": "nope"})
    assert res.status_code == 422

    res = client.post("/api/events", data={"date": "2030-01-01T10:00"})
    assert res.status_code == 422


def test_get_unknown_event_is_404(client):
    res = client.get("/api/events/missing")

    assert res.status_code == 404
    assert res.json() == {"detail": "Event not found"}


def test_update_event_partial(client, make_event):
    event = make_event(rsvp_cutoff_date="2030-07-01T00:00")
    slug = event["slug"]

    res = client.put(f"/api/events/{slug}", data={"location": "Park", "max_guests_per_rsvp": "-1"})
    assert res.status_code == 200
    body = res.json()
    assert body["location"] == "Park"
    assert body["max_guests_per_rsvp"] == -1
    assert body["title"] == "Summer BBQ"
    assert body["slug"] == slug
    assert body["rsvp_cutoff_date"].startswith("2030-07-01T00:00")

    res = client.put(f"/api/events/{slug}", data={"clear_rsvp_cutoff": "true"})
    assert res.json()["rsvp_cutoff_date"] is None


def test_wallpaper_upload_replace_and_delete(client, make_event):
    slug = make_event()["slug"]

    res = client.put(
        f"/api/events/{slug}",
        files={"wallpaper": ("bg.png", b"\x89PNG fake", "image/png")},
    )
    assert res.status_code == 200
    url = res.json()["wallpaper"]
    assert url.startswith(f"/uploads/wallpapers/{slug}-") and url.endswith(".png")
    first = settings.wallpaper_dir / Path(url).name
    assert first.exists()

    served = client.get(url)
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake"

    res = client.put(
        f"/api/events/{slug}",
        files={"wallpaper": ("bg2.jpg", b"jpeg bytes", "image/jpeg")},
    )
    second = settings.wallpaper_dir / Path(res.json()["wallpaper"]).name
    assert second.exists()
    assert not first.exists()

    assert client.delete(f"/api/events/{slug}").status_code == 204
    assert not second.exists()


def test_wallpaper_must_be_an_image(client, make_event):
    slug = make_event()["slug"]

    res = client.put(
        f"/api/events/{slug}",
        files={"wallpaper": ("notes.txt", b"hello", "text/plain")},
    )

    assert res.status_code == 400


def test_delete_event_removes_rsvps(client, make_event, engine):
    from sqlmodel import Session, select

    from rsvp_manager.models.rsvp import Rsvp

    slug = make_event()["slug"]
    client.post(f"/api/events/{slug}/rsvp", json={"name": "Ann", "attending": "yes", "bringing_guests": "no"})

    assert client.delete(f"/api/events/{slug}").status_code == 204
    assert client.get(f"/api/events/{slug}").status_code == 404
    with Session(engine) as s:
        assert s.exec(select(Rsvp)).all() == []


def test_items_summary_and_exclude(client, make_event):
    slug = make_event()["slug"]
    ann = client.post(
        f"/api/events/{slug}/rsvp",
        json={"name": "Ann", "attending": "yes", "bringing_guests": "no", "items_bringing": ["Chips"]},
    ).json()
    client.post(
        f"/api/events/{slug}/rsvp",
        json={
            "name": "Ben",
            "attending": "yes",
            "bringing_guests": "no",
            "items_bringing": ["Plates", "Plates"],
            "other_items": "napkins\ncups",
        },
    )

    summary = client.get(f"/api/events/{slug}/items").json()
    assert summary == {
        "needed_items": ["Chips", "Soda", "Plates"],
        "unclaimed": ["Soda"],
        "claimed": ["Chips", "Plates"],
        "other_items": ["napkins, cups"],
    }

    mine_excluded = client.get(f"/api/events/{slug}/items", params={"exclude_edit_id": ann["edit_id"]}).json()
    assert mine_excluded["unclaimed"] == ["Chips", "Soda"]
    assert mine_excluded["claimed"] == ["Plates"]


def test_add_and_remove_needed_item(client, make_event):
    slug = make_event()["slug"]
    client.post(
        f"/api/events/{slug}/rsvp",
        json={"name": "Ann", "attending": "yes", "bringing_guests": "no", "items_bringing": ["Chips", "Soda"]},
    )

    res = client.post(f"/api/events/{slug}/items", json={"item": "  Ice "})
    assert res.status_code == 201
    assert res.json()["needed_items"] == ["Chips", "Soda", "Plates", "Ice"]

    # adding an existing item is a no-op
    res = client.post(f"/api/events/{slug}/items", json={"item": "Ice"})
    assert res.json()["needed_items"] == ["Chips", "Soda", "Plates", "Ice"]

    res = client.delete(f"/api/events/{slug}/items/Chips")
    assert res.status_code == 200
    assert res.json()["needed_items"] == ["Soda", "Plates", "Ice"]

    rsvps = client.get(f"/api/events/{slug}/rsvps").json()
    assert rsvps[0]["items_bringing"] == ["Soda"]

    assert client.delete(f"/api/events/{slug}/items/Chips").status_code == 404


def test_replacing_needed_items_unclaims_removed_ones(client, make_event):
    slug = make_event()["slug"]
    client.post(
        f"/api/events/{slug}/rsvp",
        json={"name": "Ann", "attending": "yes", "bringing_guests": "no", "items_bringing": ["Chips", "Plates"]},
    )

    client.put(f"/api/events/{slug}", data={"needed_items": '["Plates", "Cake"]'})

    rsvps = client.get(f"/api/events/{slug}/rsvps").json()
    assert rsvps[0]["items_bringing"] == ["Plates"]


def test_calendar_download(client, make_event):
    slug = make_event()["slug"]

    res = client.get(f"/api/events/{slug}/calendar.ics")

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/calendar")
    assert f'filename="{slug}.ics"' in res.headers["content-disposition"]
    assert "DTSTART:20300704T180000Z" in res.text


def test_health_and_version(client):
    assert client.get("/health").json()["ok"] is True
    assert client.get("/version").json() == {"version": settings.app_version}


def test_failed_save_leaves_no_stray_wallpaper(client, make_event, monkeypatch):
    slug = make_event()["slug"]
    res = client.put(
        f"/api/events/{slug}",
        files={"wallpaper": ("bg.png", b"\x89PNG fake", "image/png")},
    )
    kept = settings.wallpaper_dir / Path(res.json()["wallpaper"]).name
    before = set(settings.wallpaper_dir.iterdir())

    def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", broken_commit)

    with pytest.raises(OperationalError):
        client.post(
            "/api/events",
            data={"title": "Gala", "date": "2030-08-01T19:00"},
            files={"wallpaper": ("gala.png", b"\x89PNG gala", "image/png")},
        )
    with pytest.raises(OperationalError):
        client.put(
            f"/api/events/{slug}",
            files={"wallpaper": ("bg2.png", b"\x89PNG other", "image/png")},
        )

    assert set(settings.wallpaper_dir.iterdir()) == before
    assert kept.exists()
