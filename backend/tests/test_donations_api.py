"""
Integration tests for the donation endpoints.

Covers the envelope shape, role gates, pagination and the lifecycle
transitions over HTTP.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import DonationStatus, FoodCategory, UserRole
from backend.app.utils.time import utcnow


def _donation_payload(**overrides):
    now = utcnow()
    payload = {
        "title": "Fresh vegetables",
        "description": "Carrots and leeks from the market",
        "category": "vegetables",
        "quantity": {"amount": 12.5, "unit": "kg"},
        "pickup_date": (now + timedelta(hours=3)).isoformat(),
        "expiry_date": (now + timedelta(days=4)).isoformat(),
        "pickup_time": {"start": "09:00", "end": "17:30"},
        "location": {
            "coordinates": [-122.4194, 37.7749],
            "address": {"street": "1 Market St", "city": "San Francisco", "state": "CA", "zip_code": "94105"},
        },
        "dietary": {"is_vegan": True, "is_vegetarian": True},
        "storage": {"temperature": "refrigerated"},
        "tags": [" organic ", "local", ""],
    }
    payload.update(overrides)
    return payload


async def _create(client, headers, **overrides):
    response = await client.post("/v1/donations", json=_donation_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["donation"]


# ---------------------------------------------------------------- create


@pytest.mark.asyncio
async def test_donor_creates_donation(client, donor, auth_headers, db_session):
    response = await client.post("/v1/donations", json=_donation_payload(), headers=auth_headers(donor))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Donation created successfully"

    donation = body["data"]["donation"]
    assert donation["donor_id"] == donor.id
    assert donation["status"] == "available"
    assert donation["reserved_by"] is None
    assert donation["quantity"] == {"amount": 12.5, "unit": "kg"}
    assert donation["location"]["coordinates"] == [-122.4194, 37.7749]
    assert donation["location"]["address"]["country"] == "United States"
    assert donation["pickup_address"] == "1 Market St, San Francisco, CA 94105"
    assert donation["dietary"]["is_vegan"] is True
    assert donation["dietary"]["is_halal"] is False
    assert donation["storage"]["temperature"] == "refrigerated"
    assert donation["tags"] == ["organic", "local"]
    assert donation["is_urgent"] is False
    assert donation["days_until_expiry"] == 4

    result = await db_session.execute(select(AuditLog).where(AuditLog.action == "DONATION_CREATED"))
    log = result.scalar_one()
    assert log.donation_id == donation["id"]
    assert log.actor_id == donor.id


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [UserRole.VOLUNTEER, UserRole.CHARITY, UserRole.ADMIN])
async def test_only_donors_create(client, make_user, auth_headers, role):
    user = await make_user(f"user_{role.value}", role)

    response = await client.post("/v1/donations", json=_donation_payload(), headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"] == "ERR_FORBIDDEN"


@pytest.mark.asyncio
async def test_create_requires_auth(client):
    response = await client.post("/v1/donations", json=_donation_payload())
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_create_rejects_expiry_before_pickup(client, donor, auth_headers):
    now = utcnow()
    response = await client.post(
        "/v1/donations",
        json=_donation_payload(
            pickup_date=(now + timedelta(days=9)).isoformat(),
            expiry_date=(now + timedelta(days=4)).isoformat(),
        ),
        headers=auth_headers(donor),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ERR_VALIDATION"
    assert body["message"] == "Expiry date must be after pickup date"
    assert body["details"] == {"field": "expiry_date"}


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"category": "pizza"},
    {"quantity": {"amount": 0, "unit": "kg"}},
    {"pickup_time": {"start": "25:00", "end": "17:00"}},
    {"location": {"coordinates": [-200, 37.7]}},
    {"title": "ab"},
])
async def test_create_schema_validation_is_400(client, donor, auth_headers, overrides):
    response = await client.post(
        "/v1/donations", json=_donation_payload(**overrides), headers=auth_headers(donor)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_timezone_aware_dates_are_normalized(client, donor, auth_headers):
    now = utcnow()
    pickup = (now + timedelta(hours=5)).strftime("%Y-%m-%dT%H:%M:%S") + "+02:00"
    expiry = (now + timedelta(days=2)).strftime("%Y-%m-%dT%H:%M:%S") + "Z"

    donation = await _create(client, auth_headers(donor), pickup_date=pickup, expiry_date=expiry)

    assert donation["pickup_date"] == (now + timedelta(hours=3)).strftime("%Y-%m-%dT%H:%M:%S")


# ----------------------------------------------------------------- reads


@pytest.mark.asyncio
async def test_list_pagination(client, donor, make_donation):
    for index in range(5):
        await make_donation(donor, title=f"Donation {index}")

    response = await client.get("/v1/donations", params={"limit": 2, "page": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["donations"]) == 2
    assert data["pagination"] == {
        "current_page": 2,
        "total_pages": 3,
        "total_items": 5,
        "items_per_page": 2,
        "has_next_page": True,
        "has_prev_page": True,
    }


@pytest.mark.asyncio
async def test_list_hides_expired_by_default(client, donor, make_donation):
    now = utcnow()
    fresh = await make_donation(donor, title="Fresh")
    stale = await make_donation(
        donor, title="Stale", pickup_date=now - timedelta(days=2), expiry_date=now - timedelta(hours=2)
    )

    response = await client.get("/v1/donations")
    assert [d["id"] for d in response.json()["data"]["donations"]] == [fresh.id]

    response = await client.get("/v1/donations", params={"status": "expired"})
    donations = response.json()["data"]["donations"]
    assert [d["id"] for d in donations] == [stale.id]
    assert donations[0]["status"] == "expired"
    assert donations[0]["expiry_status"] == "expired"


@pytest.mark.asyncio
async def test_list_by_category_and_urgency(client, donor, make_donation):
    now = utcnow()
    urgent = await make_donation(donor, expiry_date=now + timedelta(hours=10))
    await make_donation(donor, expiry_date=now + timedelta(days=5))
    await make_donation(donor, category=FoodCategory.DAIRY, expiry_date=now + timedelta(hours=10))

    response = await client.get("/v1/donations", params={"category": "baked", "urgent": "true"})

    donations = response.json()["data"]["donations"]
    assert [d["id"] for d in donations] == [urgent.id]
    assert donations[0]["is_urgent"] is True


@pytest.mark.asyncio
async def test_list_by_dietary_flags(client, donor, make_donation):
    vegan = await make_donation(donor, title="Lentils", is_vegan=True, is_vegetarian=True, is_halal=True)
    vegetarian = await make_donation(donor, title="Cheese", is_vegetarian=True)
    await make_donation(donor, title="Ham")

    response = await client.get("/v1/donations", params={"vegan": "true"})
    assert [d["id"] for d in response.json()["data"]["donations"]] == [vegan.id]
    assert response.json()["data"]["donations"][0]["dietary"]["is_vegan"] is True

    response = await client.get("/v1/donations", params={"vegetarian": "true", "sort": "created_at"})
    assert {d["id"] for d in response.json()["data"]["donations"]} == {vegan.id, vegetarian.id}

    response = await client.get("/v1/donations", params={"vegetarian": "true", "halal": "true", "kosher": "false"})
    assert [d["id"] for d in response.json()["data"]["donations"]] == [vegan.id]

    response = await client.get("/v1/donations", params={"kosher": "true"})
    assert response.json()["data"]["donations"] == []


@pytest.mark.asyncio
async def test_list_near_point_sorted_by_distance(client, donor, make_donation):
    far = await make_donation(donor, title="Oakland", latitude=37.8044, longitude=-122.2712)
    near = await make_donation(donor, title="Mission", latitude=37.7599, longitude=-122.4148)
    await make_donation(donor, title="San Jose", latitude=37.3382, longitude=-121.8863)

    response = await client.get(
        "/v1/donations", params={"lat": 37.7749, "lng": -122.4194, "radius": 10}
    )

    data = response.json()["data"]
    assert [d["id"] for d in data["donations"]] == [near.id, far.id]
    assert data["donations"][0]["distance_miles"] < data["donations"][1]["distance_miles"] <= 10
    assert data["pagination"]["total_items"] == 2


@pytest.mark.asyncio
async def test_list_rejects_radius_out_of_range(client):
    response = await client.get("/v1/donations", params={"lat": 37.7, "lng": -122.4, "radius": 500})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_increments_views(client, donor, make_donation):
    donation = await make_donation(donor)

    await client.get(f"/v1/donations/{donation.id}")
    response = await client.get(f"/v1/donations/{donation.id}")

    assert response.status_code == 200
    assert response.json()["data"]["donation"]["views"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("donation_id", ["999", "abc", "0"])
async def test_unknown_or_malformed_id_is_404(client, donation_id):
    response = await client.get(f"/v1/donations/{donation_id}")

    assert response.status_code == 404
    assert response.json()["error"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_expiring_soon(client, donor, make_donation):
    now = utcnow()
    soon = await make_donation(donor, expiry_date=now + timedelta(days=1))
    await make_donation(donor, expiry_date=now + timedelta(days=6))

    response = await client.get("/v1/donations/expiring-soon")
    data = response.json()["data"]
    assert data["days_until_expiry"] == 3
    assert [d["id"] for d in data["donations"]] == [soon.id]

    response = await client.get("/v1/donations/expiring-soon/7")
    assert len(response.json()["data"]["donations"]) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, 31, "soon"])
async def test_expiring_soon_days_out_of_range(client, days):
    response = await client.get(f"/v1/donations/expiring-soon/{days}")
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_VALIDATION"
    if isinstance(days, int):
        assert response.json()["details"] == {"field": "days"}
        assert response.json()["message"] == "Days must be between 1 and 30"


# ---------------------------------------------------------------- writes


@pytest.mark.asyncio
async def test_update_partial_fields(client, donor, auth_headers):
    donation = await _create(client, auth_headers(donor))

    response = await client.put(
        f"/v1/donations/{donation['id']}",
        json={"title": "Leeks only", "dietary": {"is_gluten_free": True}},
        headers=auth_headers(donor),
    )

    assert response.status_code == 200
    updated = response.json()["data"]["donation"]
    assert updated["title"] == "Leeks only"
    assert updated["dietary"]["is_gluten_free"] is True
    assert updated["dietary"]["is_vegan"] is True
    assert updated["description"] == donation["description"]


@pytest.mark.asyncio
async def test_update_by_other_donor_forbidden(client, donor, make_user, auth_headers):
    other = await make_user("donor2", UserRole.DONOR)
    donation = await _create(client, auth_headers(donor))

    response = await client.put(
        f"/v1/donations/{donation['id']}", json={"title": "Hijacked"}, headers=auth_headers(other)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_delete_flow(client, donor, volunteer, auth_headers):
    kept = await _create(client, auth_headers(donor))
    dropped = await _create(client, auth_headers(donor))
    await client.post(f"/v1/donations/{kept['id']}/reserve", headers=auth_headers(volunteer))

    response = await client.delete(f"/v1/donations/{kept['id']}", headers=auth_headers(donor))
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_DONATION_LOCKED"

    response = await client.delete(f"/v1/donations/{dropped['id']}", headers=auth_headers(donor))
    assert response.status_code == 200
    assert response.json()["data"] == {"id": dropped["id"]}

    response = await client.get(f"/v1/donations/{dropped['id']}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reserve_cancel_pickup_over_http(client, donor, volunteer, charity, auth_headers, db_session):
    donation = await _create(client, auth_headers(donor))
    url = f"/v1/donations/{donation['id']}"

    response = await client.post(
        f"{url}/reserve", json={"pickup_notes": "After 5pm"}, headers=auth_headers(volunteer)
    )
    assert response.status_code == 200
    reserved = response.json()["data"]["donation"]
    assert reserved["status"] == "reserved"
    assert reserved["reserved_by"]["kind"] == "volunteer"
    assert reserved["reserved_by"]["user_id"] == volunteer.id
    assert reserved["reserved_by"]["notes"] == "After 5pm"

    response = await client.post(f"{url}/reserve", headers=auth_headers(charity))
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_DONATION_NOT_AVAILABLE"

    response = await client.post(f"{url}/cancel-reservation", headers=auth_headers(charity))
    assert response.status_code == 403

    response = await client.post(f"{url}/cancel-reservation", headers=auth_headers(volunteer))
    assert response.status_code == 200
    assert response.json()["data"]["donation"]["status"] == "available"
    assert response.json()["data"]["donation"]["reserved_by"] is None

    await client.post(f"{url}/reserve", headers=auth_headers(charity))
    response = await client.post(f"{url}/pickup", headers=auth_headers(charity))
    assert response.status_code == 200
    picked = response.json()["data"]["donation"]
    assert picked["status"] == "picked-up"
    assert picked["picked_up_by_id"] == charity.id
    assert picked["picked_up_by_kind"] == "charity"

    result = await db_session.execute(
        select(AuditLog.action).where(AuditLog.donation_id == donation["id"]).order_by(AuditLog.id)
    )
    assert list(result.scalars().all()) == [
        "DONATION_CREATED",
        "DONATION_RESERVED",
        "RESERVATION_CANCELLED",
        "DONATION_RESERVED",
        "DONATION_PICKED_UP",
    ]


@pytest.mark.asyncio
async def test_donor_cannot_reserve(client, donor, auth_headers):
    donation = await _create(client, auth_headers(donor))

    response = await client.post(f"/v1/donations/{donation['id']}/reserve", headers=auth_headers(donor))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reserve_expired_donation(client, donor, volunteer, make_donation, auth_headers):
    now = utcnow()
    donation = await make_donation(
        donor, pickup_date=now - timedelta(days=2), expiry_date=now - timedelta(minutes=5)
    )

    response = await client.post(f"/v1/donations/{donation.id}/reserve", headers=auth_headers(volunteer))

    assert response.status_code == 400
    assert response.json()["error"] == "ERR_DONATION_EXPIRED"


@pytest.mark.asyncio
async def test_stale_role_claim_uses_stored_role(client, volunteer, db_session, auth_headers, make_donation, donor):
    """A volunteer whose token still says volunteer after becoming a donor cannot reserve."""
    donation = await make_donation(donor)
    headers = auth_headers(volunteer)
    volunteer.role = UserRole.DONOR
    await db_session.commit()

    response = await client.post(f"/v1/donations/{donation.id}/reserve", headers=headers)

    assert response.status_code == 403
    refreshed = await client.get(f"/v1/donations/{donation.id}")
    assert refreshed.json()["data"]["donation"]["status"] == DonationStatus.AVAILABLE.value


@pytest.mark.asyncio
async def test_collector_repeating_pickup_or_cancel_gets_invalid_state(client, donor, volunteer, charity, auth_headers):
    donation = await _create(client, auth_headers(donor))
    url = f"/v1/donations/{donation['id']}"

    await client.post(f"{url}/reserve", headers=auth_headers(volunteer))
    response = await client.post(f"{url}/pickup", headers=auth_headers(volunteer))
    assert response.status_code == 200

    response = await client.post(f"{url}/pickup", headers=auth_headers(volunteer))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ERR_DONATION_INVALID_STATE"
    assert body["message"] == "This donation is not reserved"
    assert body["details"]["status"] == "picked-up"

    response = await client.post(f"{url}/cancel-reservation", headers=auth_headers(volunteer))
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_DONATION_INVALID_STATE"

    response = await client.post(f"{url}/pickup", headers=auth_headers(charity))
    assert response.status_code == 403
