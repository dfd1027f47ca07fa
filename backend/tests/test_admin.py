"""
Integration tests for the admin endpoints.
"""

from datetime import timedelta

import pytest

from backend.app.models.enums import UserRole
from backend.app.utils.time import utcnow


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    "/v1/admin/users",
    "/v1/admin/stats/overview",
    "/v1/admin/audit-logs",
])
async def test_admin_routes_reject_non_admins(client, donor, auth_headers, path):
    response = await client.get(path, headers=auth_headers(donor))
    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


@pytest.mark.asyncio
async def test_list_users_paginated_and_filtered(client, admin, donor, volunteer, charity, auth_headers):
    response = await client.get("/v1/admin/users", params={"limit": 2}, headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["users"]) == 2
    assert data["pagination"]["total_items"] == 4
    assert data["pagination"]["total_pages"] == 2

    response = await client.get("/v1/admin/users", params={"role": "charity"}, headers=auth_headers(admin))
    users = response.json()["data"]["users"]
    assert [u["username"] for u in users] == ["charity1"]


@pytest.mark.asyncio
async def test_block_revokes_tokens_and_unblock_restores(client, admin, volunteer, auth_headers, mock_redis):
    volunteer_headers = auth_headers(volunteer)
    assert (await client.get("/v1/auth/me", headers=volunteer_headers)).status_code == 200

    response = await client.post(
        f"/v1/admin/users/{volunteer.id}/block",
        json={"reason": "No-show on three pickups"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["action"] == "USER_BLOCKED"
    assert data["user_id"] == volunteer.id
    assert f"user:tokens:{volunteer.id}:revoked" in mock_redis.store

    response = await client.get("/v1/auth/me", headers=volunteer_headers)
    assert response.status_code == 401

    response = await client.post(
        f"/v1/admin/users/{volunteer.id}/block", headers=auth_headers(admin)
    )
    assert response.status_code == 400

    response = await client.post(
        f"/v1/admin/users/{volunteer.id}/unblock", headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert f"user:tokens:{volunteer.id}:revoked" not in mock_redis.store

    response = await client.get("/v1/auth/me", headers=auth_headers(volunteer))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cannot_block_admin(client, admin, make_user, auth_headers):
    other_admin = await make_user("admin2", UserRole.ADMIN)

    response = await client.post(f"/v1/admin/users/{other_admin.id}/block", headers=auth_headers(admin))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_block_unknown_user(client, admin, auth_headers):
    response = await client.post("/v1/admin/users/9999/block", headers=auth_headers(admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_expire_sweep_endpoint_is_idempotent(client, admin, donor, make_donation, auth_headers):
    now = utcnow()
    await make_donation(donor, pickup_date=now - timedelta(days=2), expiry_date=now - timedelta(hours=1))
    await make_donation(donor)

    response = await client.post("/v1/admin/donations/expire-sweep", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["data"]["expired_count"] == 1

    response = await client.post("/v1/admin/donations/expire-sweep", headers=auth_headers(admin))
    assert response.json()["data"]["expired_count"] == 0

    response = await client.get(
        "/v1/admin/audit-logs", params={"action": "DONATIONS_EXPIRED"}, headers=auth_headers(admin)
    )
    logs = response.json()["data"]["logs"]
    assert len(logs) == 1
    assert logs[0]["meta_data"] == {"count": 1, "trigger": "admin"}


@pytest.mark.asyncio
async def test_overview_stats(client, admin, donor, volunteer, make_donation, auth_headers):
    now = utcnow()
    await make_donation(donor, views=4)
    await make_donation(donor, views=1, pickup_date=now - timedelta(days=2), expiry_date=now - timedelta(hours=1))

    response = await client.get("/v1/admin/stats/overview", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["users_by_role"] == {"admin": 1, "donor": 1, "volunteer": 1}
    assert data["active_users"] == 3
    assert data["donations_by_status"] == {"available": 1, "expired": 1}
    assert data["total_donations"] == 2
    assert data["total_views"] == 5


@pytest.mark.asyncio
async def test_audit_logs_filter_by_donation(client, admin, donor, volunteer, make_donation, auth_headers):
    donation = await make_donation(donor)
    await client.post(f"/v1/donations/{donation.id}/reserve", headers=auth_headers(volunteer))

    response = await client.get(
        "/v1/admin/audit-logs", params={"donation_id": donation.id}, headers=auth_headers(admin)
    )

    data = response.json()["data"]
    assert data["total"] == 1
    assert data["logs"][0]["action"] == "DONATION_RESERVED"
    assert data["logs"][0]["actor_id"] == volunteer.id
