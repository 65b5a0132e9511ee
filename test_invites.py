import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import GUEST, OWNER, STRANGER, auth
from database import SessionLocal
from models.ItineraryCollaborator import ItineraryCollaborator


def _invite(client, itinerary_id, email="guest@example.com", role="editor", headers=OWNER):
    return client.post(f"/itineraries/{itinerary_id}/invites", json={"email": email, "role": role}, headers=headers)


@pytest.fixture
def invite(client, itinerary):
    resp = _invite(client, itinerary["id"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_invite(invite):
    assert invite["status"] == "pending"
    assert invite["inviter_id"] == "owner-1"
    assert invite["from_email"] == "owner@example.com"
    assert invite["role"] == "editor"


def test_email_is_normalized(client, itinerary):
    resp = _invite(client, itinerary["id"], email="Guest@Example.com")
    assert resp.json()["email"] == "guest@example.com"


def test_only_owner_invites(client, itinerary, invite):
    client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)

    assert _invite(client, itinerary["id"], email="x@example.com", headers=GUEST).status_code == 403
    assert _invite(client, itinerary["id"], email="x@example.com", headers=STRANGER).status_code == 404


def test_self_and_duplicate_invites_conflict(client, itinerary, invite):
    assert _invite(client, itinerary["id"], email="owner@example.com").status_code == 409
    assert _invite(client, itinerary["id"]).status_code == 409


def test_pending_invites_for_invitee(client, itinerary, invite):
    resp = client.get("/invitations/pending", headers=GUEST)

    assert resp.status_code == 200
    assert [i["id"] for i in resp.json()["invites"]] == [invite["id"]]
    assert client.get("/invitations/pending", headers=STRANGER).json()["invites"] == []


def test_pending_prompt_is_presented_once(client, itinerary, invite):
    assert client.get("/invitations/pending", headers=GUEST).json()["should_present"] is True
    assert client.get("/invitations/pending", headers=GUEST).json()["should_present"] is False

    # a second invite while the first is pending does not re-open the prompt
    other = client.post("/itineraries/", json={"title": "Italy"}, headers=OWNER).json()
    _invite(client, other["id"])
    assert client.get("/invitations/pending", headers=GUEST).json()["should_present"] is False


def test_pending_prompt_rearms_after_count_drops_to_zero(client, itinerary, invite):
    assert client.get("/invitations/pending", headers=GUEST).json()["should_present"] is True
    client.post(f"/invitations/{invite['id']}/decline", headers=GUEST)

    empty = client.get("/invitations/pending", headers=GUEST).json()
    assert empty == {"invites": [], "should_present": False}

    other = client.post("/itineraries/", json={"title": "Italy"}, headers=OWNER).json()
    _invite(client, other["id"])
    assert client.get("/invitations/pending", headers=GUEST).json()["should_present"] is True


def test_accept_grants_access(client, itinerary, invite):
    resp = client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["invitation"]["status"] == "accepted"
    assert body["warning"] is None

    collaborators = client.get(f"/itineraries/{itinerary['id']}/collaborators", headers=OWNER).json()
    assert [(c["user_id"], c["role"]) for c in collaborators] == [("guest-1", "editor")]
    assert [i["id"] for i in client.get("/itineraries/", headers=GUEST).json()] == [itinerary["id"]]
    assert client.get("/invitations/pending", headers=GUEST).json()["invites"] == []


def test_decline_does_not_grant_access(client, itinerary, invite):
    resp = client.post(f"/invitations/{invite['id']}/decline", headers=GUEST)

    assert resp.json()["invitation"]["status"] == "declined"
    assert client.get(f"/itineraries/{itinerary['id']}", headers=GUEST).status_code == 404


@pytest.mark.parametrize("first, second", [
    ("accept", "accept"),
    ("accept", "decline"),
    ("decline", "accept"),
    ("decline", "decline"),
])
def test_terminal_states_are_final(client, invite, first, second):
    assert client.post(f"/invitations/{invite['id']}/{first}", headers=GUEST).status_code == 200
    assert client.post(f"/invitations/{invite['id']}/{second}", headers=GUEST).status_code == 409


def test_status_patch(client, invite):
    resp = client.patch(f"/invitations/{invite['id']}", json={"status": "accepted"}, headers=GUEST)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Invitation accepted"

    bad = client.patch(f"/invitations/{invite['id']}", json={"status": "pending"}, headers=GUEST)
    assert bad.status_code == 422


def test_only_invitee_can_respond(client, invite):
    assert client.post(f"/invitations/{invite['id']}/accept", headers=STRANGER).status_code == 404
    assert client.post(f"/invitations/{invite['id']}/accept", headers=auth("guest-1", "GUEST@example.com")).status_code == 200


def test_accept_when_already_collaborator_skips_insert(client, itinerary, invite):
    with SessionLocal() as s:
        s.add(ItineraryCollaborator(itinerary_id=itinerary["id"], user_id="guest-1", role="viewer"))
        s.commit()

    resp = client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)

    assert resp.json()["warning"] is None
    collaborators = client.get(f"/itineraries/{itinerary['id']}/collaborators", headers=OWNER).json()
    assert len(collaborators) == 1


def test_collaborator_failure_is_reported_as_warning(client, itinerary, invite):
    def fail(mapper, connection, target):
        raise IntegrityError("INSERT INTO itinerary_collaborators", {}, Exception("simulated failure"))

    event.listen(ItineraryCollaborator, "before_insert", fail)
    try:
        resp = client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)
    finally:
        event.remove(ItineraryCollaborator, "before_insert", fail)

    assert resp.status_code == 200
    body = resp.json()
    assert body["invitation"]["status"] == "accepted"
    assert "simulated failure" in body["warning"]
    assert client.get(f"/itineraries/{itinerary['id']}/collaborators", headers=OWNER).json() == []


def test_failed_collaborator_lookup_is_reported_as_warning(client, itinerary, invite):
    def fail(orm_execute_state):
        if orm_execute_state.is_select and any(m.class_ is ItineraryCollaborator for m in orm_execute_state.all_mappers):
            raise OperationalError("SELECT FROM itinerary_collaborators", {}, Exception("lookup failed"))

    event.listen(SessionLocal, "do_orm_execute", fail)
    try:
        resp = client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)
    finally:
        event.remove(SessionLocal, "do_orm_execute", fail)

    assert resp.status_code == 200
    body = resp.json()
    assert body["invitation"]["status"] == "accepted"
    assert "lookup failed" in body["warning"]
    assert client.get(f"/itineraries/{itinerary['id']}/collaborators", headers=OWNER).json() == []


def test_list_and_withdraw_invites(client, itinerary, invite):
    listed = client.get(f"/itineraries/{itinerary['id']}/invites", headers=OWNER).json()
    assert [i["id"] for i in listed] == [invite["id"]]

    assert client.delete(f"/itineraries/{itinerary['id']}/invites/{invite['id']}", headers=OWNER).status_code == 204
    assert client.get(f"/itineraries/{itinerary['id']}/invites", headers=OWNER).json() == []
    assert client.get("/invitations/pending", headers=GUEST).json()["invites"] == []


def test_answered_invites_cannot_be_withdrawn(client, itinerary, invite):
    client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)
    resp = client.delete(f"/itineraries/{itinerary['id']}/invites/{invite['id']}", headers=OWNER)
    assert resp.status_code == 409


def test_remove_collaborator(client, itinerary, invite):
    client.post(f"/invitations/{invite['id']}/accept", headers=GUEST)
    assert client.get(f"/itineraries/{itinerary['id']}", headers=GUEST).status_code == 200

    assert client.delete(f"/itineraries/{itinerary['id']}/collaborators/guest-1", headers=GUEST).status_code == 403
    assert client.delete(f"/itineraries/{itinerary['id']}/collaborators/guest-1", headers=OWNER).status_code == 204
    assert client.get(f"/itineraries/{itinerary['id']}", headers=GUEST).status_code == 404
