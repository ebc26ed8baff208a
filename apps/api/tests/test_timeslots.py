from __future__ import annotations

import pytest

from happenings.models import Profile


@pytest.fixture
def slotted_event(host, make_event, next_weekday):
    profile, _ = host
    event = make_event(profile, has_timeslots=True, total_slots=4, slot_duration_minutes=15)
    return event, next_weekday(2)


def _generate(client, headers, event_id, date_key, **extra):
    return client.post(
        f"/v1/events/{event_id}/timeslots/generate",
        json={"date_key": date_key, **extra},
        headers=headers,
    )


def test_generate_and_list(client, host, slotted_event):
    event, date_key = slotted_event
    _, headers = host

    res = _generate(client, headers, event.id, date_key)
    assert res.status_code == 201, res.text
    assert [i["slot"]["start_offset_minutes"] for i in res.json()["items"]] == [0, 15, 30, 45]

    again = _generate(client, headers, event.id, date_key)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "TIMESLOTS_EXIST"

    listed = client.get(f"/v1/events/{event.id}/timeslots?date={date_key}")
    assert listed.status_code == 200
    assert len(listed.json()["items"]) == 4


def test_generate_uses_per_date_override(client, host, slotted_event):
    event, date_key = slotted_event
    _, headers = host
    client.post(
        f"/v1/events/{event.id}/overrides",
        json={"date_key": date_key, "override_patch": {"total_slots": 2, "slot_duration_minutes": 20}},
        headers=headers,
    )

    res = _generate(client, headers, event.id, date_key)
    assert [i["slot"]["start_offset_minutes"] for i in res.json()["items"]] == [0, 20]


def test_generate_refuses_cancelled_occurrence_and_disabled_events(client, host, make_event, slotted_event):
    event, date_key = slotted_event
    profile, headers = host
    client.post(
        f"/v1/events/{event.id}/overrides",
        json={"date_key": date_key, "status": "cancelled"},
        headers=headers,
    )
    res = _generate(client, headers, event.id, date_key)
    assert res.status_code == 409
    assert res.json()["detail"]["code"] == "OCCURRENCE_CANCELLED"

    plain = make_event(profile, title="No Slots")
    res = _generate(client, headers, plain.id, date_key)
    assert res.status_code == 409
    assert res.json()["detail"]["code"] == "TIMESLOTS_DISABLED"


def test_generate_refuses_dates_the_series_skips(client, host, member, slotted_event, next_weekday):
    event, _ = slotted_event
    _, headers = host
    tuesday = next_weekday(1)

    res = _generate(client, headers, event.id, tuesday)
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "INVALID_DATE_KEY"

    _, member_headers = member
    rsvp = client.post(f"/v1/events/{event.id}/rsvp?date={tuesday}", headers=member_headers)
    assert rsvp.status_code == 422


def test_no_start_time_leaves_offsets_empty(client, host, make_event, next_weekday):
    profile, headers = host
    event = make_event(profile, has_timeslots=True, total_slots=2, start_time=None)
    res = _generate(client, headers, event.id, next_weekday(2))
    assert [i["slot"]["start_offset_minutes"] for i in res.json()["items"]] == [None, None]


def test_claim_rules(client, host, member, make_user, slotted_event):
    event, date_key = slotted_event
    _, headers = host
    slots = [i["slot"]["id"] for i in _generate(client, headers, event.id, date_key).json()["items"]]
    _, member_headers = member
    _, other_headers = make_user("other@example.com")

    first = client.post(f"/v1/timeslots/{slots[0]}/claim", headers=member_headers)
    assert first.status_code == 201, first.text
    assert first.json()["status"] == "confirmed"

    second = client.post(f"/v1/timeslots/{slots[1]}/claim", headers=member_headers)
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "ALREADY_CLAIMED"

    taken = client.post(f"/v1/timeslots/{slots[0]}/claim", headers=other_headers)
    assert taken.status_code == 409
    assert taken.json()["detail"]["code"] == "TIMESLOT_TAKEN"

    guest = client.post(
        f"/v1/timeslots/{slots[1]}/claim", json={"guest_name": "Guest Gus"}, headers=other_headers
    )
    assert guest.status_code == 403

    listed = client.get(f"/v1/events/{event.id}/timeslots?date={date_key}").json()["items"]
    assert listed[0]["claim"]["performer_name"] == "Mo Member"
    assert listed[0]["claim"]["no_show_count"] is None


def test_member_cancels_own_claim_and_slot_frees_up(client, host, member, make_user, slotted_event):
    event, date_key = slotted_event
    _, headers = host
    slots = [i["slot"]["id"] for i in _generate(client, headers, event.id, date_key).json()["items"]]
    _, member_headers = member
    claim_id = client.post(f"/v1/timeslots/{slots[0]}/claim", headers=member_headers).json()["id"]

    not_allowed = client.patch(f"/v1/claims/{claim_id}", json={"status": "performed"}, headers=member_headers)
    assert not_allowed.status_code == 403

    cancelled = client.patch(f"/v1/claims/{claim_id}", json={"status": "cancelled"}, headers=member_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    _, other_headers = make_user("other@example.com")
    assert client.post(f"/v1/timeslots/{slots[0]}/claim", headers=other_headers).status_code == 201


def test_no_show_adjusts_profile_count(client, db_session, host, member, slotted_event):
    event, date_key = slotted_event
    _, headers = host
    slots = [i["slot"]["id"] for i in _generate(client, headers, event.id, date_key).json()["items"]]
    profile, member_headers = member
    claim_id = client.post(f"/v1/timeslots/{slots[0]}/claim", headers=member_headers).json()["id"]

    res = client.patch(f"/v1/claims/{claim_id}", json={"status": "no_show"}, headers=headers)
    assert res.status_code == 200, res.text
    db_session.expire_all()
    assert db_session.get(Profile, profile.id).no_show_count == 1

    claims = client.get(f"/v1/events/{event.id}/claims?date={date_key}", headers=headers).json()["items"]
    assert claims[0]["no_show_count"] == 1

    client.patch(f"/v1/claims/{claim_id}", json={"status": "confirmed"}, headers=headers)
    db_session.expire_all()
    assert db_session.get(Profile, profile.id).no_show_count == 0

    dropped = client.patch(f"/v1/claims/{claim_id}", json={"status": "cancelled"}, headers=headers)
    assert dropped.status_code == 200
    stuck = client.patch(f"/v1/claims/{claim_id}", json={"status": "confirmed"}, headers=headers)
    assert stuck.status_code == 409
    assert stuck.json()["detail"]["code"] == "INVALID_CLAIM_TRANSITION"


def test_regenerate_blocked_by_active_claims(client, host, member, slotted_event):
    event, date_key = slotted_event
    _, headers = host
    slots = [i["slot"]["id"] for i in _generate(client, headers, event.id, date_key).json()["items"]]
    _, member_headers = member
    claim_id = client.post(f"/v1/timeslots/{slots[0]}/claim", headers=member_headers).json()["id"]

    blocked = _generate(client, headers, event.id, date_key, regenerate=True)
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["code"] == "TIMESLOTS_CLAIMED"

    removed = client.delete(f"/v1/claims/{claim_id}", headers=headers)
    assert removed.json()["status"] == "cancelled"

    redone = _generate(client, headers, event.id, date_key, regenerate=True)
    assert redone.status_code == 201
    assert not {i["slot"]["id"] for i in redone.json()["items"]} & set(slots)


def test_claims_list_is_host_only(client, member, slotted_event):
    event, date_key = slotted_event
    _, member_headers = member
    res = client.get(f"/v1/events/{event.id}/claims?date={date_key}", headers=member_headers)
    assert res.status_code == 403
