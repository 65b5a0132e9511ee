from conftest import OWNER


def _create_stop(client, itinerary_id, title, **extra):
    resp = client.post(f"/itineraries/{itinerary_id}/stops", json={"title": title, **extra}, headers=OWNER)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _create_accommodation(client, itinerary_id, name, **extra):
    resp = client.post(f"/itineraries/{itinerary_id}/accommodations", json={"name": name, **extra}, headers=OWNER)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _stop(client, stop_id):
    return client.get(f"/stops/{stop_id}", headers=OWNER).json()


def _accommodation(client, accommodation_id):
    return client.get(f"/accommodations/{accommodation_id}", headers=OWNER).json()


def assert_links_consistent(client, itinerary_id):
    stops = client.get(f"/itineraries/{itinerary_id}/stops", headers=OWNER).json()
    accommodations = client.get(f"/itineraries/{itinerary_id}/accommodations", headers=OWNER).json()
    for stop in stops:
        for acc in accommodations:
            assert (stop["accommodation_id"] == acc["id"]) == (acc["stop_id"] == stop["id"]), (stop, acc)
    for acc in accommodations:
        owners = [s for s in stops if s["accommodation_id"] == acc["id"]]
        assert len(owners) <= 1


def test_link_standalone_accommodation_by_updating_it(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X")
    assert hotel["stop_id"] is None

    resp = client.patch(f"/accommodations/{hotel['id']}", json={"stop_id": tokyo["id"]}, headers=OWNER)

    assert resp.status_code == 200, resp.text
    assert resp.json()["stop_id"] == tokyo["id"]
    assert _stop(client, tokyo["id"])["accommodation_id"] == hotel["id"]
    assert_links_consistent(client, itinerary["id"])


def test_create_accommodation_for_existing_stop(client, itinerary, tokyo):
    resp = client.post(f"/stops/{tokyo['id']}/accommodation", json={"name": "Ryokan"}, headers=OWNER)

    assert resp.status_code == 201, resp.text
    ryokan = resp.json()
    assert ryokan["stop_id"] == tokyo["id"]
    assert ryokan["itinerary_id"] == itinerary["id"]
    assert _stop(client, tokyo["id"])["accommodation_id"] == ryokan["id"]


def test_standalone_create_with_stop_links_back(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])
    assert _stop(client, tokyo["id"])["accommodation_id"] == hotel["id"]


def test_update_stop_links_accommodation(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X")

    resp = client.patch(f"/stops/{tokyo['id']}", json={"accommodation_id": hotel["id"]}, headers=OWNER)

    assert resp.status_code == 200, resp.text
    assert resp.json()["accommodation_id"] == hotel["id"]
    assert _accommodation(client, hotel["id"])["stop_id"] == tokyo["id"]


def test_unlink_from_either_side(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])

    client.patch(f"/accommodations/{hotel['id']}", json={"stop_id": None}, headers=OWNER)
    assert _stop(client, tokyo["id"])["accommodation_id"] is None

    client.patch(f"/stops/{tokyo['id']}", json={"accommodation_id": hotel["id"]}, headers=OWNER)
    assert _accommodation(client, hotel["id"])["stop_id"] == tokyo["id"]

    client.patch(f"/stops/{tokyo['id']}", json={"accommodation_id": None}, headers=OWNER)
    assert _accommodation(client, hotel["id"])["stop_id"] is None
    assert_links_consistent(client, itinerary["id"])


def test_update_without_link_field_leaves_link_alone(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])

    resp = client.patch(f"/accommodations/{hotel['id']}", json={"address": "1-1 Shinjuku"}, headers=OWNER)

    assert resp.json()["stop_id"] == tokyo["id"]
    assert _stop(client, tokyo["id"])["accommodation_id"] == hotel["id"]


def test_moving_accommodation_releases_previous_stop(client, itinerary, tokyo):
    kyoto = _create_stop(client, itinerary["id"], "Kyoto")
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])

    client.patch(f"/accommodations/{hotel['id']}", json={"stop_id": kyoto["id"]}, headers=OWNER)

    assert _stop(client, tokyo["id"])["accommodation_id"] is None
    assert _stop(client, kyoto["id"])["accommodation_id"] == hotel["id"]
    assert_links_consistent(client, itinerary["id"])


def test_replacing_stop_accommodation_releases_previous_one(client, itinerary, tokyo):
    first = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])
    second = _create_accommodation(client, itinerary["id"], "Hotel Y")

    client.patch(f"/stops/{tokyo['id']}", json={"accommodation_id": second["id"]}, headers=OWNER)

    assert _accommodation(client, first["id"])["stop_id"] is None
    assert _accommodation(client, second["id"])["stop_id"] == tokyo["id"]
    assert_links_consistent(client, itinerary["id"])


def test_linking_to_missing_stop_writes_nothing(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])

    resp = client.patch(f"/accommodations/{hotel['id']}", json={"stop_id": "missing", "name": "Renamed"}, headers=OWNER)

    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "stop_id"
    current = _accommodation(client, hotel["id"])
    assert current["name"] == "Hotel X"
    assert current["stop_id"] == tokyo["id"]


def test_cross_itinerary_link_is_rejected(client, itinerary, tokyo):
    other = client.post("/itineraries/", json={"title": "Italy"}, headers=OWNER).json()
    rome_hotel = _create_accommodation(client, other["id"], "Hotel Roma")

    resp = client.patch(f"/stops/{tokyo['id']}", json={"accommodation_id": rome_hotel["id"]}, headers=OWNER)

    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "accommodation_id"
    assert _stop(client, tokyo["id"])["accommodation_id"] is None


def test_deleting_accommodation_clears_stop(client, itinerary, tokyo):
    hotel = _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])
    assert _stop(client, tokyo["id"])["accommodation_id"] == hotel["id"]

    resp = client.delete(f"/accommodations/{hotel['id']}", headers=OWNER)

    assert resp.status_code == 204
    assert _stop(client, tokyo["id"])["accommodation_id"] is None
    assert client.get(f"/accommodations/{hotel['id']}", headers=OWNER).status_code == 404


def test_list_refetch_is_stable(client, itinerary, tokyo):
    _create_accommodation(client, itinerary["id"], "Hotel X", stop_id=tokyo["id"])

    first = client.get(f"/itineraries/{itinerary['id']}/stops", headers=OWNER)
    second = client.get(f"/itineraries/{itinerary['id']}/stops", headers=OWNER)

    assert first.content == second.content
