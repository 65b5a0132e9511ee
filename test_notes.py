import pytest

from conftest import GUEST, OWNER
from services.storage_service import path_from_url, storage


def _note(client, itinerary_id, content="Bring a JR pass", **anchors):
    return client.post(f"/itineraries/{itinerary_id}/notes", json={"content": content, **anchors}, headers=OWNER)


def _upload(client, note_id):
    resp = client.post(
        f"/attachments/note/{note_id}",
        files={"file": ("ticket.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=OWNER,
    )
    assert resp.status_code == 201, resp.text
    return path_from_url(resp.json()["url"])


@pytest.fixture
def activity(client, itinerary, tokyo):
    resp = client.post(
        f"/itineraries/{itinerary['id']}/activities",
        json={"title": "Tsukiji breakfast", "stop_id": tokyo["id"], "scheduled_at": "2025-12-02T07:30:00"},
        headers=OWNER,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_and_list_notes(client, itinerary):
    resp = _note(client, itinerary["id"], title="Packing")
    assert resp.status_code == 201, resp.text
    note = resp.json()
    assert note["itinerary_id"] == itinerary["id"]
    assert note["user_id"] == "owner-1"
    assert note["stop_id"] is None

    listed = client.get(f"/itineraries/{itinerary['id']}/notes", headers=OWNER).json()
    assert [n["id"] for n in listed] == [note["id"]]
    assert client.get(f"/itineraries/{itinerary['id']}/notes", headers=GUEST).status_code == 404


def test_empty_content_is_rejected(client, itinerary):
    assert _note(client, itinerary["id"], content="").status_code == 422


def test_note_pinned_to_stop_activity_and_accommodation(client, itinerary, tokyo, activity):
    hotel = client.post(f"/stops/{tokyo['id']}/accommodation", json={"name": "Hotel X"}, headers=OWNER).json()

    on_stop = _note(client, itinerary["id"], stop_id=tokyo["id"]).json()
    on_activity = _note(client, itinerary["id"], activity_id=activity["id"]).json()
    on_hotel = _note(client, itinerary["id"], accommodation_id=hotel["id"]).json()

    assert on_stop["stop_id"] == tokyo["id"]
    assert on_activity["activity_id"] == activity["id"]
    assert on_hotel["accommodation_id"] == hotel["id"]
    assert on_stop["itinerary_id"] == itinerary["id"]
    assert len(client.get(f"/itineraries/{itinerary['id']}/notes", headers=OWNER).json()) == 3


@pytest.mark.parametrize("field", ["stop_id", "activity_id", "accommodation_id"])
def test_anchor_must_exist(client, itinerary, field):
    resp = _note(client, itinerary["id"], **{field: "missing"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == field


def test_anchor_must_belong_to_the_itinerary(client, itinerary, tokyo):
    other = client.post("/itineraries/", json={"title": "Italy"}, headers=OWNER).json()

    resp = _note(client, other["id"], stop_id=tokyo["id"])

    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "stop_id"
    assert client.get(f"/itineraries/{other['id']}/notes", headers=OWNER).json() == []


def test_deleting_activity_removes_its_notes_and_their_files(client, itinerary, activity):
    note = _note(client, itinerary["id"], activity_id=activity["id"]).json()
    path = _upload(client, note["id"])

    assert client.delete(f"/activities/{activity['id']}", headers=OWNER).status_code == 204

    assert not storage.resolve(path).exists()
    assert client.get(f"/itineraries/{itinerary['id']}/notes", headers=OWNER).json() == []


def test_deleting_accommodation_removes_its_notes_and_their_files(client, itinerary, tokyo):
    hotel = client.post(f"/stops/{tokyo['id']}/accommodation", json={"name": "Hotel X"}, headers=OWNER).json()
    note = _note(client, itinerary["id"], accommodation_id=hotel["id"]).json()
    path = _upload(client, note["id"])

    assert client.delete(f"/accommodations/{hotel['id']}", headers=OWNER).status_code == 204

    assert not storage.resolve(path).exists()
    assert client.get(f"/itineraries/{itinerary['id']}/notes", headers=OWNER).json() == []
