"""
HTTP API tests.

Users, trips, matches and the error envelope.
"""

import pytest

from backend.tests.fakes import SCENARIO_DROP_OFF, SCENARIO_PICKUP


def trip_payload(driver_id, seats_offered=0, seats_required=0, **overrides):
    payload = {
        "driver_id": driver_id,
        "pickup": {"lat": SCENARIO_PICKUP.lat, "lng": SCENARIO_PICKUP.lng},
        "drop_off": {"lat": SCENARIO_DROP_OFF.lat, "lng": SCENARIO_DROP_OFF.lng},
        "departure_time": "2030-01-15T08:00:00Z",
        "seats_offered": seats_offered,
        "seats_required": seats_required,
    }
    payload.update(overrides)
    return payload


async def create_user(client, name, phone):
    response = await client.post("/v1/users", json={"full_name": name, "phone_number": phone})
    assert response.status_code == 201
    return response.json()


async def accept_match(client, trip_id):
    [entry] = (await client.get(f"/v1/matches/existing/{trip_id}")).json()
    response = await client.put(f"/v1/matches/{entry['match_id']}/status", json={"status": "accepted"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_user_crud(client):
    user = await create_user(client, "Asha Driver", "+919800000001")

    fetched = await client.get(f"/v1/users/{user['id']}")
    assert fetched.json()["full_name"] == "Asha Driver"

    updated = await client.put(f"/v1/users/{user['id']}", json={"full_name": "Asha K"})
    assert updated.json()["full_name"] == "Asha K"

    listed = await client.get("/v1/users")
    assert [u["id"] for u in listed.json()] == [user["id"]]

    deleted = await client.delete(f"/v1/users/{user['id']}")
    assert deleted.status_code == 204
    assert (await client.get(f"/v1/users/{user['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_duplicate_phone_number_rejected(client):
    await create_user(client, "Asha Driver", "+919800000001")

    response = await client.post("/v1/users", json={"full_name": "Other", "phone_number": "+919800000001"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_INPUT_001"


@pytest.mark.asyncio
async def test_user_with_trips_cannot_be_deleted(client):
    user = await create_user(client, "Asha Driver", "+919800000001")
    await client.post("/v1/trips", json=trip_payload(user["id"], seats_offered=3))

    response = await client.delete(f"/v1/users/{user['id']}")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_and_get_trip(client):
    user = await create_user(client, "Asha Driver", "+919800000001")

    response = await client.post("/v1/trips", json=trip_payload(user["id"], seats_offered=3))
    assert response.status_code == 201
    trip = response.json()
    assert trip["status"] == "pending"
    assert trip["has_route"] is False
    # Aware timestamps are stored as naive UTC
    assert trip["departure_time"] == "2030-01-15T08:00:00"

    fetched = await client.get(f"/v1/trips/{trip['id']}")
    assert fetched.json()["pickup"] == {"lat": SCENARIO_PICKUP.lat, "lng": SCENARIO_PICKUP.lng}

    listed = await client.get(f"/v1/trips/driver/{user['id']}")
    assert [t["id"] for t in listed.json()] == [trip["id"]]


@pytest.mark.asyncio
async def test_trip_for_unknown_driver_is_not_found(client):
    response = await client.post("/v1/trips", json=trip_payload("nobody", seats_offered=3))

    assert response.status_code == 404
    body = response.json()
    assert body["error_code"] == "ERR_NOT_FOUND_001"
    assert body["details"]["resource"] == "User"


@pytest.mark.asyncio
async def test_out_of_range_coordinates_rejected(client):
    user = await create_user(client, "Asha Driver", "+919800000001")

    response = await client.post(
        "/v1/trips",
        json=trip_payload(user["id"], seats_offered=3, pickup={"lat": 95.0, "lng": 0.0}),
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_match_flow(client, routing_provider):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    rider = await create_user(client, "Ravi Rider", "+919800000002")
    driver_trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()
    rider_trip = (await client.post("/v1/trips", json=trip_payload(rider["id"], seats_required=1))).json()

    found = await client.get(f"/v1/matches/{driver_trip['id']}")
    assert found.status_code == 200
    [result] = found.json()
    assert result["matching_trip_id"] == rider_trip["id"]
    assert result["match_percentage"] == pytest.approx(100.0, abs=0.1)
    assert result["trip"]["driver_name"] == "Ravi Rider"

    existing = await client.get(f"/v1/matches/existing/{rider_trip['id']}")
    [entry] = existing.json()
    assert entry["matching_trip_id"] == driver_trip["id"]
    assert entry["status"] == "proposed"

    accepted = await client.put(f"/v1/matches/{entry['match_id']}/status", json={"status": "accepted"})
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert (await client.get(f"/v1/trips/{driver_trip['id']}")).json()["status"] == "matched"


@pytest.mark.asyncio
async def test_match_status_must_be_accepted_or_rejected(client):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    rider = await create_user(client, "Ravi Rider", "+919800000002")
    driver_trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()
    await client.post("/v1/trips", json=trip_payload(rider["id"], seats_required=1))
    [result] = (await client.get(f"/v1/matches/{driver_trip['id']}")).json()
    [entry] = (await client.get(f"/v1/matches/existing/{driver_trip['id']}")).json()

    response = await client.put(f"/v1/matches/{entry['match_id']}/status", json={"status": "proposed"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_INPUT_001"


@pytest.mark.asyncio
async def test_route_failure_is_bad_gateway(client, routing_provider):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    driver_trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()
    routing_provider.fail_routes = True

    response = await client.get(f"/v1/matches/{driver_trip['id']}")

    assert response.status_code == 502
    assert response.json()["error_code"] == "ERR_ROUTE_001"


@pytest.mark.asyncio
async def test_unknown_trip_matches_not_found(client):
    response = await client.get("/v1/matches/missing-trip")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_trip_cancels_match_and_notifies(client):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    rider = await create_user(client, "Ravi Rider", "+919800000002")
    driver_trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()
    rider_trip = (await client.post("/v1/trips", json=trip_payload(rider["id"], seats_required=1))).json()
    await client.get(f"/v1/matches/{driver_trip['id']}")
    await accept_match(client, driver_trip["id"])

    response = await client.delete(f"/v1/trips/{driver_trip['id']}")

    assert response.status_code == 200
    assert response.json() == {"trip_id": driver_trip["id"], "invalidated_matches": 1}
    assert (await client.get(f"/v1/trips/{driver_trip['id']}")).status_code == 404
    assert (await client.get(f"/v1/matches/existing/{rider_trip['id']}")).json() == []

    notifications = (await client.get(f"/v1/users/{rider['id']}/notifications")).json()
    assert len(notifications) == 1
    assert notifications[0]["type"] == "MATCH_CANCELLED"

    read = await client.patch(f"/v1/users/{rider['id']}/notifications/{notifications[0]['id']}/read")
    assert read.status_code == 200
    unread = await client.get(f"/v1/users/{rider['id']}/notifications", params={"unread_only": "true"})
    assert unread.json() == []


@pytest.mark.asyncio
async def test_edit_trip_schedules_rematch(client, rematch_scheduler):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    rider = await create_user(client, "Ravi Rider", "+919800000002")
    driver_trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()
    rider_trip = (await client.post("/v1/trips", json=trip_payload(rider["id"], seats_required=1))).json()
    await client.get(f"/v1/matches/{driver_trip['id']}")
    await accept_match(client, driver_trip["id"])

    response = await client.put(
        f"/v1/trips/{driver_trip['id']}",
        json={"departure_time": "2030-01-15T08:10:00"},
    )

    assert response.status_code == 200
    assert response.json()["has_route"] is False
    await rematch_scheduler.drain()
    outcome = rematch_scheduler.outcomes.get_nowait()
    assert outcome.trip_id == driver_trip["id"]
    assert outcome.match_count == 1

    notifications = (await client.get(f"/v1/users/{rider['id']}/notifications")).json()
    assert [n["type"] for n in notifications] == ["MATCH_CHANGED"]
    assert (await client.get(f"/v1/trips/{rider_trip['id']}")).json()["status"] == "pending"


@pytest.mark.asyncio
async def test_update_trip_status(client):
    driver = await create_user(client, "Asha Driver", "+919800000001")
    trip = (await client.post("/v1/trips", json=trip_payload(driver["id"], seats_offered=3))).json()

    response = await client.put(f"/v1/trips/{trip['id']}/status", json={"status": "matched"})

    assert response.status_code == 200
    assert response.json()["status"] == "matched"
