from __future__ import annotations

import uuid

from happenings.auth.jwt import create_access_token
from happenings.models import EventHost
from happenings.models.event import InvitationStatus


def _create(client, headers, **fields):
    payload = {"title": "Songwriter Night", "event_date": "2026-01-07", "recurrence_rule": "weekly"}
    payload.update(fields)
    return client.post("/v1/events", json=payload, headers=headers)


def test_health_and_me(client, host):
    assert client.get("/health").json()["status"] == "ok"

    _, headers = host
    res = client.get("/v1/me", headers=headers)
    assert res.status_code == 200
    assert res.json()["role"] == "host"
    assert res.json()["email"] == "host@example.com"

    assert client.get("/v1/me").status_code == 401
    assert client.get("/v1/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_unknown_jwt_subject_gets_a_profile(client):
    user_id = uuid.uuid4()
    token = create_access_token(user_id, email="new@example.com")
    res = client.get("/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["user_id"] == str(user_id)
    assert res.json()["role"] == "member"


def test_create_event_as_host(client, host):
    profile, headers = host
    res = _create(client, headers, slug="songwriter-night")
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["host_id"] == str(profile.id)
    assert body["day_of_week"] == "Wednesday"
    assert body["is_published"] is False
    assert body["status"] == "active"

    dup = _create(client, headers, slug="songwriter-night")
    assert dup.status_code == 409


def test_create_event_normalizes_weekday(client, host):
    _, headers = host
    res = _create(client, headers, event_date=None, day_of_week="thurs", recurrence_rule=None)
    assert res.json()["day_of_week"] == "Thursday"

    slugged = _create(client, headers, title="Jazz Jam!!")
    assert slugged.json()["slug"].startswith("jazz-jam-")


def test_create_event_validation(client, host, member):
    _, headers = host
    assert _create(client, headers, event_date=None).status_code == 422
    assert _create(client, headers, event_date="2026-02-30").status_code == 422
    assert _create(client, headers, start_time="7pm").status_code == 422
    assert _create(client, headers, has_timeslots=True).status_code == 422

    _, member_headers = member
    res = _create(client, member_headers)
    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "HOST_REQUIRED"


def test_drafts_are_hidden_until_published(client, host):
    _, headers = host
    event_id = _create(client, headers).json()["id"]

    assert client.get(f"/v1/events/{event_id}").status_code == 404
    assert client.get(f"/v1/events/{event_id}", headers=headers).status_code == 200

    published = client.post(f"/v1/events/{event_id}/publish", headers=headers)
    assert published.json()["is_published"] is True
    assert client.get(f"/v1/events/{event_id}").status_code == 200


def test_event_page_by_slug_and_date_fallback(client, host, make_event, next_weekday):
    profile, _ = host
    event = make_event(profile, slug="open-mic", event_date="2025-12-03")
    target = next_weekday(2)

    exact = client.get(f"/v1/events/open-mic?date={target}").json()
    assert exact["date_key"] == target
    assert target in exact["available_dates"]

    fallback = client.get("/v1/events/open-mic?date=2099-13-45").json()
    assert fallback["date_key"] == exact["available_dates"][0]
    assert "not a valid date" in fallback["notice"]

    thursday = next_weekday(3)
    missing = client.get(f"/v1/events/{event.id}?date={thursday}").json()
    assert missing["date_key"] != thursday
    assert missing["notice"].startswith(f"No occurrence on {thursday}")


def test_one_time_event_page_keeps_its_date(client, host, make_event):
    profile, _ = host
    event = make_event(profile, day_of_week=None, recurrence_rule=None, event_date="2026-01-10")
    body = client.get(f"/v1/events/{event.id}").json()
    assert body["date_key"] == "2026-01-10"
    assert body["available_dates"] == ["2026-01-10"]
    assert body["recurrence_label"] == "One-time"


def test_event_page_survives_unusable_monthly_rule(client, host):
    _, headers = host
    res = _create(client, headers, event_date="2026-01-05", recurrence_rule="FREQ=MONTHLY;BYDAY=0MO")
    assert res.status_code == 201, res.text

    page = client.get(f"/v1/events/{res.json()['id']}", headers=headers)
    assert page.status_code == 200, page.text
    assert set(page.json()["available_dates"]) <= {"2026-01-05"}


def test_update_and_cancel(client, host, member, make_event):
    profile, headers = host
    event = make_event(profile)
    _, member_headers = member

    denied = client.patch(f"/v1/events/{event.id}", json={"title": "Mine now"}, headers=member_headers)
    assert denied.status_code == 403

    res = client.patch(
        f"/v1/events/{event.id}",
        json={"recurrence_rule": "1st/3rd", "day_of_week": "fri"},
        headers=headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["day_of_week"] == "Friday"

    listing = client.get(f"/v1/events/{event.id}/occurrences?start=2026-01-01&end=2026-01-31").json()
    assert listing["recurrence_label"] == "1st & 3rd Fridays"
    assert [i["date_key"] for i in listing["items"]] == ["2026-01-02", "2026-01-16"]

    bad_window = client.get(f"/v1/events/{event.id}/occurrences?start=jan")
    assert bad_window.status_code == 422

    empty_title = client.patch(f"/v1/events/{event.id}", json={"title": "  "}, headers=headers)
    assert empty_title.status_code == 422

    cancelled = client.post(f"/v1/events/{event.id}/cancel", headers=headers)
    assert cancelled.json()["status"] == "cancelled"
    assert client.get(f"/v1/events/{event.id}").json()["series_cancelled"] is True
    assert client.post(f"/v1/events/{event.id}/publish", headers=headers).status_code == 409


def test_cohost_can_manage(client, db_session, host, make_user, make_event):
    profile, _ = host
    event = make_event(profile)
    cohost, cohost_headers = make_user("cohost@example.com")

    db_session.add(EventHost(event_id=event.id, user_id=cohost.id, invitation_status=InvitationStatus.PENDING))
    db_session.commit()
    res = client.patch(f"/v1/events/{event.id}", json={"host_notes": "Bring cables"}, headers=cohost_headers)
    assert res.status_code == 403

    row = db_session.query(EventHost).filter_by(user_id=cohost.id).one()
    row.invitation_status = InvitationStatus.ACCEPTED
    db_session.commit()
    res = client.patch(f"/v1/events/{event.id}", json={"host_notes": "Bring cables"}, headers=cohost_headers)
    assert res.status_code == 200
    assert res.json()["host_notes"] == "Bring cables"


def test_dev_profile_seeding(client):
    res = client.post("/dev/profiles", json={"email": "seed@example.com", "role": "host"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["role"] == "host"
    assert body["dev_token"] == "dev_seed@example.com"

    me = client.get("/v1/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == "seed@example.com"
    assert me.json()["role"] == "host"
