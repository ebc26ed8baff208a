from __future__ import annotations

from happenings.models import Profile, VenueManager
from happenings.models.profile import ProfileRole
from happenings.models.venue import VenueManagerRole


def test_event_claim_approval_transfers_hosting(client, db_session, host, member, admin, make_event):
    profile, _ = host
    event = make_event(profile)
    claimant, claimant_headers = member
    _, admin_headers = admin

    res = client.post(
        f"/v1/events/{event.id}/claims",
        json={"message": "I run this night now"},
        headers=claimant_headers,
    )
    assert res.status_code == 201, res.text
    claim = res.json()
    assert claim["status"] == "pending"
    assert claim["event_id"] == str(event.id)

    dup = client.post(f"/v1/events/{event.id}/claims", headers=claimant_headers)
    assert dup.status_code == 409
    assert dup.json()["detail"]["code"] == "OWNERSHIP_CLAIM_PENDING"

    approved = client.post(f"/v1/admin/claims/event/{claim['id']}/approve", headers=admin_headers)
    assert approved.status_code == 200, approved.text
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewed_by"] is not None

    db_session.expire_all()
    assert db_session.get(Profile, claimant.id).role == ProfileRole.HOST

    # The new host can now run the event
    res = client.patch(f"/v1/events/{event.id}", json={"host_notes": "New management"}, headers=claimant_headers)
    assert res.status_code == 200
    assert res.json()["host_id"] == str(claimant.id)

    again = client.post(f"/v1/admin/claims/event/{claim['id']}/reject", headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "OWNERSHIP_CLAIM_REVIEWED"


def test_claim_review_is_admin_only(client, host, member, make_event):
    profile, host_headers = host
    event = make_event(profile)
    _, member_headers = member
    claim_id = client.post(f"/v1/events/{event.id}/claims", headers=member_headers).json()["id"]

    res = client.post(f"/v1/admin/claims/event/{claim_id}/approve", headers=host_headers)
    assert res.status_code == 403

    own = client.post(f"/v1/events/{event.id}/claims", headers=host_headers)
    assert own.status_code == 409


def test_reject_with_reason(client, member, admin, host, make_event):
    profile, _ = host
    event = make_event(profile)
    _, member_headers = member
    _, admin_headers = admin
    claim_id = client.post(f"/v1/events/{event.id}/claims", headers=member_headers).json()["id"]

    res = client.post(
        f"/v1/admin/claims/event/{claim_id}/reject",
        json={"reason": "Could not verify"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"
    assert res.json()["rejection_reason"] == "Could not verify"

    # A fresh claim is allowed once the old one is closed
    assert client.post(f"/v1/events/{event.id}/claims", headers=member_headers).status_code == 201


def test_venue_claim_makes_owner(client, db_session, host, member, admin):
    _, host_headers = host
    claimant, member_headers = member
    _, admin_headers = admin

    venue = client.post("/v1/venues", json={"name": "The Lantern", "city": "Denver"}, headers=host_headers)
    assert venue.status_code == 201, venue.text
    venue_id = venue.json()["id"]
    assert client.get(f"/v1/venues/{venue_id}").json()["name"] == "The Lantern"

    assert client.post("/v1/venues", json={"name": "Nope"}, headers=member_headers).status_code == 403

    claim_id = client.post(f"/v1/venues/{venue_id}/claims", headers=member_headers).json()["id"]
    approved = client.post(f"/v1/admin/claims/venue/{claim_id}/approve", headers=admin_headers)
    assert approved.status_code == 200
    assert approved.json()["venue_id"] == venue_id

    db_session.expire_all()
    row = db_session.query(VenueManager).filter_by(user_id=claimant.id).one()
    assert row.role == VenueManagerRole.OWNER


def test_unknown_claims_and_kinds(client, admin):
    _, admin_headers = admin
    missing = client.post(
        "/v1/admin/claims/event/00000000-0000-0000-0000-000000000000/approve", headers=admin_headers
    )
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "OWNERSHIP_CLAIM_NOT_FOUND"

    bad_kind = client.post(
        "/v1/admin/claims/profile/00000000-0000-0000-0000-000000000000/approve", headers=admin_headers
    )
    assert bad_kind.status_code == 422
