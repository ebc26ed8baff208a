from __future__ import annotations

import itertools

import pytest

from happenings.services.exceptions import ValidationError
from happenings.services.overrides import (
    apply_occurrence_override,
    overridden_field_names,
    rescheduled_date,
    sanitize_override_patch,
)

BASE = {
    "title": "Open Mic",
    "start_time": "19:00",
    "cover_image_url": "https://img.example.com/base.jpg",
    "host_notes": "Sign up at the bar",
    "capacity": 40,
}


def test_no_override_returns_a_copy():
    merged = apply_occurrence_override(BASE, None)
    assert merged == BASE
    assert merged is not BASE


def test_legacy_column_applies_when_set():
    override = {"override_start_time": "20:00", "override_notes": None}
    merged = apply_occurrence_override(BASE, override)
    assert merged["start_time"] == "20:00"
    assert merged["host_notes"] == "Sign up at the bar"


def test_patch_beats_legacy_column():
    override = {
        "override_start_time": "20:00",
        "override_patch": {"start_time": "21:30", "title": "Open Mic: Holiday Edition"},
    }
    merged = apply_occurrence_override(BASE, override)
    assert merged["start_time"] == "21:30"
    assert merged["title"] == "Open Mic: Holiday Edition"
    assert BASE["start_time"] == "19:00"


@pytest.mark.parametrize(
    ("has_patch", "has_legacy", "has_base"), list(itertools.product([True, False], repeat=3))
)
def test_start_time_precedence_across_tiers(has_patch, has_legacy, has_base):
    base = {"title": "Open Mic"}
    if has_base:
        base["start_time"] = "19:00"
    override = {"override_patch": {"start_time": "21:30"} if has_patch else {}}
    if has_legacy:
        override["override_start_time"] = "20:00"

    merged = apply_occurrence_override(base, override)

    if has_patch:
        assert merged["start_time"] == "21:30"
    elif has_legacy:
        assert merged["start_time"] == "20:00"
    elif has_base:
        assert merged["start_time"] == "19:00"
    else:
        assert "start_time" not in merged
    assert merged["title"] == "Open Mic"


def test_patch_null_clears_a_field():
    merged = apply_occurrence_override(BASE, {"override_patch": {"cover_image_url": None}})
    assert merged["cover_image_url"] is None


def test_patch_keys_outside_allowlist_are_ignored():
    merged = apply_occurrence_override(BASE, {"override_patch": {"host_id": "someone-else", "capacity": 10}})
    assert "host_id" not in merged
    assert merged["capacity"] == 10


def test_non_object_patch_is_ignored_when_stored_and_rejected_on_write():
    assert apply_occurrence_override(BASE, {"override_patch": ["title"]}) == BASE
    with pytest.raises(ValidationError):
        sanitize_override_patch(["title"])
    assert sanitize_override_patch({"status": "x"}) is None
    assert sanitize_override_patch({"title": "A", "bogus": 1}) == {"title": "A"}


def test_overridden_field_names_and_reschedule():
    override = {
        "date_key": "2026-01-14",
        "override_cover_image_url": "https://img.example.com/x.jpg",
        "override_patch": {"event_date": "2026-01-15", "title": "Moved"},
    }
    assert overridden_field_names(override) == ["cover_image_url", "event_date", "title"]
    assert rescheduled_date(override) == "2026-01-15"
    assert rescheduled_date({"date_key": "2026-01-14", "override_patch": {"event_date": "2026-01-14"}}) is None


def _event_for_host(make_event, host, **fields):
    profile, _ = host
    return make_event(profile, event_date="2025-12-03", **fields)


def test_cancel_one_date_leaves_neighbors(client, host, make_event):
    event = _event_for_host(make_event, host)
    _, headers = host

    res = client.post(
        f"/v1/events/{event.id}/overrides",
        json={"date_key": "2026-01-14", "status": "cancelled"},
        headers=headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["action"] == "created"
    assert res.json()["override"]["status"] == "cancelled"

    res = client.get(f"/v1/events/{event.id}/occurrences?start=2026-01-05&end=2026-02-04")
    assert res.status_code == 200, res.text
    rows = {r["date_key"]: r["is_cancelled"] for r in res.json()["items"]}
    assert rows == {
        "2026-01-07": False,
        "2026-01-14": True,
        "2026-01-21": False,
        "2026-01-28": False,
        "2026-02-04": False,
    }


def test_upsert_update_revert_and_delete(client, host, make_event):
    event = _event_for_host(make_event, host)
    _, headers = host
    url = f"/v1/events/{event.id}/overrides"

    first = client.post(url, json={"date_key": "2026-01-21", "override_notes": "Bring a friend"}, headers=headers)
    assert first.json()["action"] == "created"

    second = client.post(
        url,
        json={"date_key": "2026-01-21", "override_patch": {"title": "Open Mic XL", "bogus": True}},
        headers=headers,
    )
    body = second.json()
    assert body["action"] == "updated"
    assert body["override"]["override_patch"] == {"title": "Open Mic XL"}
    assert body["override"]["override_notes"] is None

    listed = client.get(url, headers=headers).json()["items"]
    assert [o["date_key"] for o in listed] == ["2026-01-21"]

    reverted = client.post(url, json={"date_key": "2026-01-21", "status": "normal"}, headers=headers)
    assert reverted.json() == {"action": "reverted", "override": None}

    gone = client.delete(f"{url}?date=2026-01-21", headers=headers)
    assert gone.status_code == 404
    assert gone.json()["detail"]["code"] == "OVERRIDE_NOT_FOUND"


def test_delete_override(client, host, make_event):
    event = _event_for_host(make_event, host)
    _, headers = host
    url = f"/v1/events/{event.id}/overrides"

    client.post(url, json={"date_key": "2026-01-28", "status": "cancelled"}, headers=headers)
    assert client.delete(f"{url}?date=2026-01-28", headers=headers).status_code == 204
    assert client.get(url, headers=headers).json()["items"] == []


def test_override_validation(client, host, make_event):
    event = _event_for_host(make_event, host)
    _, headers = host
    url = f"/v1/events/{event.id}/overrides"

    bad_date = client.post(url, json={"date_key": "2026-1-7"}, headers=headers)
    assert bad_date.status_code == 422
    assert bad_date.json()["detail"]["code"] == "INVALID_DATE_KEY"

    bad_status = client.post(url, json={"date_key": "2026-01-07", "status": "postponed"}, headers=headers)
    assert bad_status.status_code == 422
    assert bad_status.json()["detail"]["code"] == "INVALID_OVERRIDE"

    bad_patch = client.post(url, json={"date_key": "2026-01-07", "override_patch": ["title"]}, headers=headers)
    assert bad_patch.status_code == 422
    assert bad_patch.json()["detail"]["code"] == "INVALID_OVERRIDE"

    into_past = client.post(
        url,
        json={"date_key": "2026-01-07", "override_patch": {"event_date": "2000-01-01"}},
        headers=headers,
    )
    assert into_past.status_code == 422
    assert into_past.json()["detail"]["code"] == "INVALID_OVERRIDE"


def test_only_managers_write_overrides(client, host, member, make_event):
    event = _event_for_host(make_event, host)
    _, member_headers = member

    res = client.post(
        f"/v1/events/{event.id}/overrides",
        json={"date_key": "2026-01-14", "status": "cancelled"},
        headers=member_headers,
    )
    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "NOT_EVENT_MANAGER"

    assert client.post(
        f"/v1/events/{event.id}/overrides", json={"date_key": "2026-01-14", "status": "cancelled"}
    ).status_code == 401


def test_event_page_shows_merged_occurrence(client, host, make_event, next_weekday):
    event = _event_for_host(make_event, host)
    _, headers = host
    target = next_weekday(2)

    client.post(
        f"/v1/events/{event.id}/overrides",
        json={
            "date_key": target,
            "override_start_time": "20:00",
            "override_patch": {"title": "Open Mic: Covers Night"},
        },
        headers=headers,
    )

    res = client.get(f"/v1/events/{event.slug or event.id}?date={target}")
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["date_key"] == target
    assert body["occurrence"]["title"] == "Open Mic: Covers Night"
    assert body["occurrence"]["start_time"] == "20:00"
    assert body["overridden_fields"] == ["start_time", "title"]
    assert body["event"]["title"] == "Open Mic"
    assert body["recurrence_label"] == "Every Wednesday"
    assert body["notice"] is None
