"""
Integration tests for the trip endpoints.

Covers derived netProfit, permission enforcement and the truck status
coupling driven by trip changes.
"""

import pytest
from sqlalchemy import select

from backend.app.models.audit_log import AuditLog

REG = "MH12AB1234"


def trip_payload(**overrides):
    payload = {
        "source": "Pune",
        "destination": "Mumbai",
        "goods": "Steel coils",
        "vehicleId": REG,
        "distance": 150,
        "startDate": "2024-06-01",
        "expenses": {"diesel": 5000, "driver": 2000, "tolls": 500},
        "customerPayment": 20000,
    }
    payload.update(overrides)
    return payload


def truck_payload(**overrides):
    payload = {
        "registrationNumber": REG,
        "model": "Tata 1109",
        "modelYear": 2019,
        "purchaseDate": "2024-01-10",
        "purchasePrice": 800000,
    }
    payload.update(overrides)
    return payload


async def create_truck(client, headers, **overrides):
    response = await client.post("/v1/trucks", json=truck_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def get_truck(client, headers, truck_id):
    response = await client.get(f"/v1/trucks/{truck_id}", headers=headers)
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_trip_computes_net_profit(client, admin_headers):
    response = await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["netProfit"] == 12500
    assert data["status"] == "pending"
    assert data["vehicleId"] == REG
    assert data["expenses"] == {"diesel": 5000, "driver": 2000, "tolls": 500, "tyre": 0, "misc": 0}


@pytest.mark.asyncio
async def test_client_supplied_net_profit_is_discarded(client, admin_headers):
    response = await client.post(
        "/v1/trips", json=trip_payload(netProfit=999999), headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["netProfit"] == 12500

    trip_id = response.json()["id"]
    response = await client.put(
        f"/v1/trips/{trip_id}", json={"netProfit": 1, "goods": "Cement"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["netProfit"] == 12500
    assert response.json()["goods"] == "Cement"


@pytest.mark.asyncio
async def test_vehicle_id_is_uppercased(client, admin_headers):
    response = await client.post(
        "/v1/trips", json=trip_payload(vehicleId=" mh12ab1234 "), headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["vehicleId"] == REG


@pytest.mark.asyncio
async def test_non_numeric_expense_counts_as_zero(client, admin_headers):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(expenses={"diesel": "abc", "misc": "250"}),
        headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["netProfit"] == 19750


@pytest.mark.asyncio
async def test_partial_expense_update_merges_and_recomputes(client, admin_headers):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    response = await client.put(
        f"/v1/trips/{created['id']}",
        json={"expenses": {"tolls": 1500}},
        headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["expenses"]["diesel"] == 5000
    assert data["expenses"]["tolls"] == 1500
    assert data["netProfit"] == 11500


@pytest.mark.asyncio
async def test_payment_update_recomputes_net_profit(client, admin_headers):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    response = await client.put(
        f"/v1/trips/{created['id']}", json={"customerPayment": 30000}, headers=admin_headers
    )

    assert response.json()["netProfit"] == 22500


@pytest.mark.asyncio
async def test_unchanged_trip_keeps_same_net_profit(client, admin_headers):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    first = await client.put(f"/v1/trips/{created['id']}", json={}, headers=admin_headers)
    second = await client.put(f"/v1/trips/{created['id']}", json={}, headers=admin_headers)

    assert first.json()["netProfit"] == second.json()["netProfit"] == created["netProfit"]


@pytest.mark.asyncio
async def test_null_for_required_field_is_rejected(client, admin_headers):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    response = await client.put(
        f"/v1/trips/{created['id']}", json={"source": None}, headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_get_list_and_missing_trip(client, admin_headers):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    response = await client.get("/v1/trips", headers=admin_headers)
    assert response.status_code == 200
    assert [trip["id"] for trip in response.json()] == [created["id"]]

    response = await client.get(f"/v1/trips/{created['id']}", headers=admin_headers)
    assert response.json()["source"] == "Pune"

    response = await client.get("/v1/trips/9999", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_trip_create_is_audited(client, admin_headers, db_session):
    created = (await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)).json()

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.action == "TRIP_CREATED")
    )
    log = result.scalar_one()
    assert log.entity_type == "trip"
    assert log.entity_id == created["id"]
    assert log.actor_username == "admin"


# Permissions

@pytest.mark.asyncio
async def test_staff_can_view_but_not_create(client, admin_headers, staff_headers):
    await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)

    response = await client.get("/v1/trips", headers=staff_headers)
    assert response.status_code == 200

    response = await client.post("/v1/trips", json=trip_payload(), headers=staff_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_staff_with_create_override_can_create(client, create_user, login):
    await create_user(
        "dispatcher",
        password="dispatch123",
        permissions={"transportation": {"createTrips": True}}
    )
    headers = await login("dispatcher", "dispatch123")

    response = await client.post("/v1/trips", json=trip_payload(), headers=headers)
    assert response.status_code == 201

    response = await client.delete(f"/v1/trips/{response.json()['id']}", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_permission_checked_before_entity_lookup(client, staff_headers):
    response = await client.delete("/v1/trips/9999", headers=staff_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_requires_authentication(client):
    response = await client.get("/v1/trips")
    assert response.status_code in (401, 403)


# Ad-hoc calculator

@pytest.mark.asyncio
async def test_calculate_profit(client, staff_headers):
    response = await client.post(
        "/v1/trips/calculate-profit",
        json={"expenses": {"diesel": 3000, "driver": 1000}, "customerPayment": 8000},
        headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json() == {"totalExpenses": 4000, "netProfit": 4000, "profitMargin": 50}


@pytest.mark.asyncio
async def test_calculate_profit_accepts_zero(client, staff_headers):
    response = await client.post(
        "/v1/trips/calculate-profit",
        json={"expenses": {}, "customerPayment": 0},
        headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["netProfit"] == 0


@pytest.mark.asyncio
async def test_calculate_profit_missing_input(client, staff_headers):
    response = await client.post(
        "/v1/trips/calculate-profit",
        json={"customerPayment": 5000},
        headers=staff_headers
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert body["details"]["missing"] == ["expenses"]


# Truck status coupling

@pytest.mark.asyncio
async def test_in_transit_trip_moves_truck_in_transit(client, admin_headers):
    truck = await create_truck(client, admin_headers)

    response = await client.post(
        "/v1/trips", json=trip_payload(status="in-transit"), headers=admin_headers
    )
    assert response.status_code == 201

    truck = await get_truck(client, admin_headers, truck["id"])
    assert truck["status"] == "in-transit"
    assert truck["lastTripDate"] == "2024-06-01"


@pytest.mark.asyncio
async def test_completing_trip_frees_truck(client, admin_headers):
    truck = await create_truck(client, admin_headers)
    trip = (await client.post(
        "/v1/trips", json=trip_payload(status="in-transit"), headers=admin_headers
    )).json()

    response = await client.put(
        f"/v1/trips/{trip['id']}", json={"status": "completed"}, headers=admin_headers
    )
    assert response.status_code == 200

    assert (await get_truck(client, admin_headers, truck["id"]))["status"] == "available"


@pytest.mark.asyncio
async def test_deleting_in_transit_trip_frees_truck(client, admin_headers):
    truck = await create_truck(client, admin_headers)
    trip = (await client.post(
        "/v1/trips", json=trip_payload(status="in-transit"), headers=admin_headers
    )).json()
    assert (await get_truck(client, admin_headers, truck["id"]))["status"] == "in-transit"

    response = await client.delete(f"/v1/trips/{trip['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    assert (await get_truck(client, admin_headers, truck["id"]))["status"] == "available"
    response = await client.get(f"/v1/trips/{trip['id']}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reassigning_in_transit_trip_frees_previous_truck(client, admin_headers):
    first = await create_truck(client, admin_headers)
    second = await create_truck(client, admin_headers, registrationNumber="GJ05CD6789")
    trip = (await client.post(
        "/v1/trips", json=trip_payload(status="in-transit"), headers=admin_headers
    )).json()

    response = await client.put(
        f"/v1/trips/{trip['id']}", json={"vehicleId": "GJ05CD6789"}, headers=admin_headers
    )
    assert response.status_code == 200

    assert (await get_truck(client, admin_headers, first["id"]))["status"] == "available"
    assert (await get_truck(client, admin_headers, second["id"]))["status"] == "in-transit"


@pytest.mark.asyncio
async def test_pending_trip_leaves_truck_alone(client, admin_headers):
    truck = await create_truck(client, admin_headers)

    await client.post("/v1/trips", json=trip_payload(), headers=admin_headers)

    truck = await get_truck(client, admin_headers, truck["id"])
    assert truck["status"] == "available"
    assert truck["lastTripDate"] is None


@pytest.mark.asyncio
async def test_trip_for_unknown_truck_is_accepted(client, admin_headers):
    response = await client.post(
        "/v1/trips", json=trip_payload(vehicleId="KA01ZZ0001", status="in-transit"), headers=admin_headers
    )
    assert response.status_code == 201
