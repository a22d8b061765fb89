"""
Integration tests for user management.

Covers default permission generation, override merging, role changes,
self-service guards and token revocation on deactivate/delete.
"""

import pytest
from sqlalchemy import select

from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import UserRole


def user_payload(**overrides):
    payload = {
        "username": "ravi",
        "email": "ravi@test.com",
        "fullName": "Ravi Kumar",
        "phone": "9000000001",
        "department": "Dispatch",
        "password": "ravi1234",
    }
    payload.update(overrides)
    return payload


async def create_via_api(client, headers, **overrides):
    response = await client.post("/v1/users", json=user_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_staff_gets_default_permissions(client, admin_headers):
    data = await create_via_api(client, admin_headers)

    assert data["role"] == "staff"
    assert data["isActive"] is True
    assert data["fullName"] == "Ravi Kumar"
    assert data["permissions"]["transportation"] == {
        "viewTrips": True, "editTrips": False, "createTrips": False, "deleteTrips": False
    }
    assert data["permissions"]["reports"]["viewReports"] is True
    assert not any(data["permissions"]["userManagement"].values())
    assert "hashedPassword" not in data


@pytest.mark.asyncio
async def test_create_with_overrides_merges_leaf_flags(client, admin_headers):
    data = await create_via_api(
        client, admin_headers,
        permissions={"inventory": {"addTrucks": True}, "bogus": {"x": True}}
    )

    assert data["permissions"]["inventory"] == {
        "viewInventory": True, "editTrucks": False, "addTrucks": True, "deleteTrucks": False
    }
    assert "bogus" not in data["permissions"]


@pytest.mark.asyncio
async def test_create_admin_gets_everything(client, admin_headers):
    data = await create_via_api(client, admin_headers, role="admin")
    assert all(all(flags.values()) for flags in data["permissions"].values())


@pytest.mark.asyncio
async def test_duplicate_username_or_email_conflicts(client, admin_headers):
    await create_via_api(client, admin_headers)

    response = await client.post("/v1/users", json=user_payload(email="other@test.com"), headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["details"]["field"] == "username"

    response = await client.post("/v1/users", json=user_payload(username="other"), headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["details"]["field"] == "email"


@pytest.mark.asyncio
async def test_short_password_rejected(client, admin_headers):
    response = await client.post("/v1/users", json=user_payload(password="123"), headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_role_change_resets_to_new_defaults_then_merges(client, admin_headers):
    user = await create_via_api(client, admin_headers, permissions={"inventory": {"addTrucks": True}})

    response = await client.put(
        f"/v1/users/{user['id']}",
        json={"role": "admin", "permissions": {"reports": {"exportReports": False}}},
        headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "admin"
    assert data["permissions"]["userManagement"]["deleteUsers"] is True
    assert data["permissions"]["reports"]["exportReports"] is False

    response = await client.put(f"/v1/users/{user['id']}", json={"role": "staff"}, headers=admin_headers)
    data = response.json()
    # back to staff defaults; the earlier addTrucks override is gone
    assert data["permissions"]["inventory"]["addTrucks"] is False
    assert data["permissions"]["userManagement"]["deleteUsers"] is False


@pytest.mark.asyncio
async def test_permissions_only_update_merges_into_current(client, admin_headers):
    user = await create_via_api(client, admin_headers, permissions={"inventory": {"addTrucks": True}})

    response = await client.put(
        f"/v1/users/{user['id']}",
        json={"permissions": {"transportation": {"editTrips": True}}},
        headers=admin_headers
    )

    data = response.json()
    assert data["permissions"]["inventory"]["addTrucks"] is True
    assert data["permissions"]["transportation"]["editTrips"] is True
    assert data["permissions"]["transportation"]["deleteTrips"] is False


@pytest.mark.asyncio
async def test_permission_change_applies_on_next_request(client, admin_headers, staff_user, staff_headers):
    trip = {
        "source": "A", "destination": "B", "goods": "C",
        "vehicleId": "MH12AB1234", "customerPayment": 100
    }
    assert (await client.post("/v1/trips", json=trip, headers=staff_headers)).status_code == 403

    await client.put(
        f"/v1/users/{staff_user.id}",
        json={"permissions": {"transportation": {"createTrips": True}}},
        headers=admin_headers
    )

    assert (await client.post("/v1/trips", json=trip, headers=staff_headers)).status_code == 201


@pytest.mark.asyncio
async def test_admin_cannot_demote_self(client, admin_user, admin_headers):
    response = await client.put(
        f"/v1/users/{admin_user.id}", json={"role": "staff"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_001"

    response = await client.get(f"/v1/users/{admin_user.id}", headers=admin_headers)
    assert response.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_admin_can_edit_own_profile(client, admin_user, admin_headers):
    response = await client.put(
        f"/v1/users/{admin_user.id}",
        json={"role": "admin", "department": "Head Office"},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["department"] == "Head Office"


@pytest.mark.asyncio
async def test_cannot_delete_self(client, admin_user, admin_headers):
    response = await client.delete(f"/v1/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cannot_toggle_own_status(client, admin_user, admin_headers):
    response = await client.put(f"/v1/users/{admin_user.id}/toggle-status", headers=admin_headers)
    assert response.status_code == 400

    response = await client.put(
        f"/v1/users/{admin_user.id}", json={"isActive": False}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_deactivation_revokes_tokens_immediately(client, admin_headers, staff_user, staff_headers, login):
    assert (await client.get("/v1/auth/me", headers=staff_headers)).status_code == 200

    response = await client.put(f"/v1/users/{staff_user.id}/toggle-status", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["isActive"] is False

    response = await client.get("/v1/auth/me", headers=staff_headers)
    assert response.status_code == 401

    response = await client.post("/v1/auth/login", json={"username": "staff", "password": "staff123"})
    assert response.status_code == 403

    response = await client.put(f"/v1/users/{staff_user.id}/toggle-status", headers=admin_headers)
    assert response.json()["isActive"] is True
    headers = await login("staff", "staff123")
    assert (await client.get("/v1/auth/me", headers=headers)).status_code == 200


@pytest.mark.asyncio
async def test_delete_user_revokes_tokens(client, admin_headers, staff_user, staff_headers):
    response = await client.delete(f"/v1/users/{staff_user.id}", headers=admin_headers)
    assert response.status_code == 200

    assert (await client.get("/v1/auth/me", headers=staff_headers)).status_code == 401
    assert (await client.get(f"/v1/users/{staff_user.id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_reset_password(client, admin_headers, staff_user, login):
    response = await client.put(
        f"/v1/users/{staff_user.id}/reset-password",
        json={"newPassword": "fresh-pass"},
        headers=admin_headers
    )
    assert response.status_code == 200

    response = await client.post("/v1/auth/login", json={"username": "staff", "password": "staff123"})
    assert response.status_code == 401
    await login("staff", "fresh-pass")


@pytest.mark.asyncio
async def test_staff_cannot_manage_users(client, staff_headers, admin_user):
    assert (await client.get("/v1/users", headers=staff_headers)).status_code == 403
    assert (await client.post("/v1/users", json=user_payload(), headers=staff_headers)).status_code == 403
    assert (await client.delete(f"/v1/users/{admin_user.id}", headers=staff_headers)).status_code == 403


@pytest.mark.asyncio
async def test_staff_with_view_users_override(client, create_user, login, admin_user):
    await create_user("auditor", password="auditor1", permissions={"userManagement": {"viewUsers": True}})
    headers = await login("auditor", "auditor1")

    assert (await client.get("/v1/users", headers=headers)).status_code == 200
    assert (await client.put(
        f"/v1/users/{admin_user.id}", json={"department": "X"}, headers=headers
    )).status_code == 403


@pytest.mark.asyncio
async def test_user_mutations_are_audited(client, admin_headers, db_session):
    user = await create_via_api(client, admin_headers)
    await client.put(f"/v1/users/{user['id']}", json={"role": "admin"}, headers=admin_headers)
    await client.put(f"/v1/users/{user['id']}/toggle-status", headers=admin_headers)

    result = await db_session.execute(
        select(AuditLog.action).where(AuditLog.target_user_id == user["id"]).order_by(AuditLog.id)
    )
    assert result.scalars().all() == ["USER_CREATED", "ROLE_CHANGED", "USER_DEACTIVATED"]

    response = await client.get(f"/v1/users/{user['id']}/audit-trail", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 3
    assert response.json()["logs"][0]["action"] == "USER_DEACTIVATED"


@pytest.mark.asyncio
async def test_list_users(client, admin_user, staff_user, admin_headers):
    response = await client.get("/v1/users", headers=admin_headers)
    assert response.status_code == 200
    assert {user["username"] for user in response.json()} == {"admin", "staff"}
    assert {user["role"] for user in response.json()} == {UserRole.ADMIN.value, UserRole.STAFF.value}


@pytest.mark.asyncio
async def test_staff_editor_cannot_promote_self(client, create_user, login, admin_user):
    clerk = await create_user("clerk", password="clerk123", permissions={"userManagement": {"editUsers": True}})
    headers = await login("clerk", "clerk123")

    response = await client.put(f"/v1/users/{clerk.id}", json={"role": "admin"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"

    response = await client.put(
        f"/v1/users/{clerk.id}",
        json={"permissions": {"inventory": {"deleteTrucks": True}}},
        headers=headers
    )
    assert response.status_code == 403

    assert (await client.delete("/v1/trucks/999", headers=headers)).status_code == 403
    me = (await client.get("/v1/auth/me", headers=headers)).json()
    assert me["role"] == "staff"
    assert me["permissions"]["inventory"]["deleteTrucks"] is False


@pytest.mark.asyncio
async def test_staff_editor_manages_staff_profiles_only(client, create_user, login, admin_user, staff_user):
    await create_user(
        "clerk",
        password="clerk123",
        permissions={"userManagement": {"editUsers": True, "createUsers": True}}
    )
    headers = await login("clerk", "clerk123")

    response = await client.put(f"/v1/users/{staff_user.id}", json={"department": "Yard"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["department"] == "Yard"

    assert (await client.put(
        f"/v1/users/{admin_user.id}", json={"department": "Yard"}, headers=headers
    )).status_code == 403
    assert (await client.put(
        f"/v1/users/{admin_user.id}/reset-password", json={"newPassword": "taken1"}, headers=headers
    )).status_code == 403
    assert (await client.put(f"/v1/users/{admin_user.id}/toggle-status", headers=headers)).status_code == 403

    response = await client.post("/v1/users", json=user_payload(role="admin"), headers=headers)
    assert response.status_code == 403
    response = await client.post("/v1/users", json=user_payload(), headers=headers)
    assert response.status_code == 201
    assert response.json()["role"] == "staff"


@pytest.mark.asyncio
async def test_username_cannot_look_like_an_email(client, admin_headers, staff_user):
    response = await client.post(
        "/v1/users", json=user_payload(username="staff@test.com", email="x@test.com"), headers=admin_headers
    )
    assert response.status_code == 422

    response = await client.put(
        f"/v1/users/{staff_user.id}", json={"username": "staff@test.com"}, headers=admin_headers
    )
    assert response.status_code == 422

    response = await client.post("/v1/auth/login", json={"username": "staff@test.com", "password": "staff123"})
    assert response.status_code == 200
    assert response.json()["username"] == "staff"
