from __future__ import annotations


def _setup(client, host, make_event, next_weekday, **fields):
    profile, headers = host
    event = make_event(profile, slug="lantern-open-mic", has_timeslots=True, total_slots=5, **fields)
    date_key = next_weekday(2)
    res = client.post(
        f"/v1/events/{event.id}/timeslots/generate", json={"date_key": date_key}, headers=headers
    )
    slots = [i["slot"]["id"] for i in res.json()["items"]]
    return event, date_key, slots, headers


def test_display_snapshot(client, host, make_user, make_event, next_weekday):
    event, date_key, slots, headers = _setup(client, host, make_event, next_weekday)
    performers = [make_user(f"act{i}@example.com", full_name=f"Act {i}") for i in range(4)]
    for slot_id, (_, h) in zip(slots, performers):
        assert client.post(f"/v1/timeslots/{slot_id}/claim", headers=h).status_code == 201

    client.put(
        f"/v1/events/{event.id}/lineup",
        json={"date_key": date_key, "timeslot_id": slots[0]},
        headers=headers,
    )

    res = client.get(f"/v1/events/lantern-open-mic/display?date={date_key}")
    assert res.status_code == 200, res.text
    assert res.headers["Cache-Control"] == "no-store"
    body = res.json()
    assert body["title"] == "Open Mic"
    assert body["now_playing"]["now_playing_timeslot_id"] == slots[0]
    assert body["now_playing_index"] == 0
    assert [s["claim"]["performer_name"] for s in body["up_next"]] == ["Act 1", "Act 2", "Act 3"]
    assert body["poll_interval_seconds"] == 5.0
    # Public view never carries reliability data
    assert all(s["claim"] is None or s["claim"]["no_show_count"] is None for s in body["slots"])


def test_display_reflects_occurrence_override(client, host, make_event, next_weekday):
    event, date_key, _, headers = _setup(client, host, make_event, next_weekday)
    client.post(
        f"/v1/events/{event.id}/overrides",
        json={"date_key": date_key, "override_patch": {"title": "Holiday Open Mic"}},
        headers=headers,
    )
    body = client.get(f"/v1/events/{event.id}/display?date={date_key}").json()
    assert body["title"] == "Holiday Open Mic"
    assert body["occurrence"]["title"] == "Holiday Open Mic"


def test_display_date_handling(client, host, make_event, next_weekday):
    event, date_key, _, _ = _setup(client, host, make_event, next_weekday)

    fallback = client.get(f"/v1/events/{event.id}/display?date=2026-01-07").json()
    assert fallback["date_key"] != "2026-01-07"
    assert fallback["notice"]

    pinned = client.get(f"/v1/events/{event.id}/display?date=2026-01-07&tv=1").json()
    assert pinned["date_key"] == "2026-01-07"
    assert pinned["slots"] == []
    assert pinned["now_playing"]["now_playing_timeslot_id"] is None


def test_display_hides_drafts(client, host, make_event):
    profile, _ = host
    draft = make_event(profile, is_published=False)
    assert client.get(f"/v1/events/{draft.id}/display").status_code == 404
    assert client.get("/v1/events/no-such-event/display").status_code == 404
