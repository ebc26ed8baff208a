from __future__ import annotations

import uuid

import pytest

from happenings.models.profile import ProfileRole


@pytest.fixture
def lineup_event(host, make_event, next_weekday):
    profile, _ = host
    event = make_event(profile, has_timeslots=True, total_slots=3, slot_duration_minutes=10)
    return event, next_weekday(2)


def _generate(client, headers, event_id, date_key) -> list[str]:
    res = client.post(
        f"/v1/events/{event_id}/timeslots/generate",
        json={"date_key": date_key},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return [item["slot"]["id"] for item in res.json()["items"]]


def test_now_playing_read_after_write(client, host, lineup_event):
    event, date_key = lineup_event
    _, headers = host
    slot_ids = _generate(client, headers, event.id, date_key)

    empty = client.get(f"/v1/events/{event.id}/lineup?date={date_key}")
    assert empty.status_code == 200
    assert empty.json()["now_playing_timeslot_id"] is None

    res = client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": slot_ids[1]},
        headers=headers,
    )
    assert res.status_code == 200, res.text

    current = client.get(f"/v1/events/{event.id}/lineup?date={date_key}")
    assert current.json()["now_playing_timeslot_id"] == slot_ids[1]
    assert current.json()["updated_by"] == str(host[0].id)
    assert current.headers["Cache-Control"] == "no-store"

    cleared = client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": None},
        headers=headers,
    )
    assert cleared.json()["now_playing_timeslot_id"] is None


def test_now_playing_is_per_date(client, host, lineup_event):
    event, date_key = lineup_event
    _, headers = host
    slot_ids = _generate(client, headers, event.id, date_key)
    client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": slot_ids[0]},
        headers=headers,
    )

    other = client.get(f"/v1/events/{event.id}/lineup?date=2026-01-07")
    assert other.json()["now_playing_timeslot_id"] is None


def test_now_playing_rejects_foreign_or_missing_slot(client, host, lineup_event):
    event, date_key = lineup_event
    _, headers = host
    _generate(client, headers, event.id, date_key)

    missing = client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": str(uuid.uuid4())},
        headers=headers,
    )
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "TIMESLOT_NOT_FOUND"

    next_week = client.post(
        f"/v1/events/{event.id}/timeslots/generate",
        json={"date_key": "2026-01-07"},
        headers=headers,
    )
    other_slot = next_week.json()["items"][0]["slot"]["id"]
    mismatch = client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": other_slot},
        headers=headers,
    )
    assert mismatch.status_code == 422
    assert mismatch.json()["detail"]["code"] == "TIMESLOT_MISMATCH"


def test_invalid_date_key(client, lineup_event):
    event, _ = lineup_event
    res = client.get(f"/v1/events/{event.id}/lineup?date=tomorrow")
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "INVALID_DATE_KEY"


def test_step_walks_claimed_slots(client, host, member, lineup_event):
    event, date_key = lineup_event
    _, headers = host
    slot_ids = _generate(client, headers, event.id, date_key)

    _, member_headers = member
    assert client.post(f"/v1/timeslots/{slot_ids[1]}/claim", headers=member_headers).status_code == 201
    assert (
        client.post(
            f"/v1/timeslots/{slot_ids[2]}/claim", json={"guest_name": "Walk-in Wendy"}, headers=headers
        ).status_code
        == 201
    )

    def step(name: str):
        res = client.post(
            f"/v1/events/{event.id}/lineup/step",
            json={"date_key": date_key, "step": name},
            headers=headers,
        )
        assert res.status_code == 200, res.text
        return res.json()["now_playing_timeslot_id"]

    assert step("start") == slot_ids[1]
    assert step("next") == slot_ids[2]
    assert step("next") == slot_ids[2]
    assert step("previous") == slot_ids[1]
    assert step("stop") is None


def test_control_requires_login(client, lineup_event):
    event, date_key = lineup_event

    res = client.get(f"/v1/events/{event.id}/lineup/control")
    assert res.status_code == 401
    detail = res.json()["detail"]
    assert detail["code"] == "LOGIN_REQUIRED"
    assert detail["login_url"] == f"/login?next=%2Fevents%2F{event.id}%2Flineup"

    with_date = client.get(f"/v1/events/{event.id}/lineup/control?date={date_key}")
    assert with_date.json()["detail"]["login_url"].endswith(f"%3Fdate%3D{date_key}")


def test_control_denies_non_hosts(client, member, make_user, make_event, lineup_event):
    event, _ = lineup_event
    _, member_headers = member

    res = client.get(f"/v1/events/{event.id}/lineup/control", headers=member_headers)
    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "ACCESS_DENIED"

    other_host, other_headers = make_user("other-host@example.com", ProfileRole.HOST)
    make_event(other_host, title="Other Night")
    res = client.get(f"/v1/events/{event.id}/lineup/control", headers=other_headers)
    assert res.status_code == 403

    res = client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": "2026-01-07", "timeslot_id": None},
        headers=other_headers,
    )
    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "NOT_EVENT_MANAGER"


def test_control_snapshot_for_host(client, host, member, lineup_event):
    event, date_key = lineup_event
    _, headers = host
    slot_ids = _generate(client, headers, event.id, date_key)
    _, member_headers = member
    client.post(f"/v1/timeslots/{slot_ids[0]}/claim", headers=member_headers)

    res = client.get(f"/v1/events/{event.id}/lineup/control?date={date_key}", headers=headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["date_key"] == date_key
    assert body["poll_interval_seconds"] == 10.0
    assert [s["slot"]["slot_index"] for s in body["slots"]] == [0, 1, 2]
    assert [s["slot"]["start_offset_minutes"] for s in body["slots"]] == [0, 10, 20]
    claim = body["slots"][0]["claim"]
    assert claim["performer_name"] == "Mo Member"
    assert claim["no_show_count"] == 0
    assert body["now_playing_index"] is None
    assert [s["slot"]["id"] for s in body["up_next"]] == [slot_ids[0]]


def test_control_allows_a_past_date(client, host, lineup_event):
    event, _ = lineup_event
    _, headers = host
    res = client.get(f"/v1/events/{event.id}/lineup/control?date=2026-01-07", headers=headers)
    assert res.status_code == 200
    assert res.json()["date_key"] == "2026-01-07"
    assert res.json()["notice"] is None
