"""
Integration tests for volunteer profiles: registration, updates, ratings,
availability search and statistics.
"""

import pytest
from sqlalchemy import select

from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import (
    ExperienceLevel,
    UserRole,
    VolunteerRole,
    VolunteerStatus,
    Weekday,
)
from backend.app.models.volunteer import VolunteerProfile
from backend.app.services.volunteers import is_available


def _profile_payload(**overrides):
    payload = {
        "role": "food-collection",
        "availability": {
            "days": ["monday", "saturday"],
            "time_slots": [{"start": "9:00", "end": "13:00"}],
        },
        "skills": ["driving", "lifting"],
        "experience": "intermediate",
        "vehicle": {"has_vehicle": True, "type": "van"},
        "emergency_contact": {"name": "Pat Doe", "phone": "+14155550100"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_profile(db_session):
    """Insert a volunteer profile directly, already active unless overridden."""
    async def _make_profile(user, **overrides):
        values = dict(
            user_id=user.id,
            volunteer_role=VolunteerRole.FOOD_COLLECTION,
            status=VolunteerStatus.ACTIVE,
            experience=ExperienceLevel.BEGINNER,
            skills=[],
            availability_days=["monday"],
            time_slots=[{"start": "09:00", "end": "17:00"}],
            is_flexible=False,
        )
        values.update(overrides)
        profile = VolunteerProfile(**values)
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return profile

    return _make_profile


@pytest.mark.asyncio
async def test_register_volunteer_profile(client, volunteer, auth_headers, db_session):
    response = await client.post("/v1/volunteers", json=_profile_payload(), headers=auth_headers(volunteer))

    assert response.status_code == 201
    profile = response.json()["data"]["volunteer"]
    assert profile["user_id"] == volunteer.id
    assert profile["user"]["name"] == "Volunteer1 Tester"
    assert profile["status"] == "pending-approval"
    assert profile["availability"]["days"] == ["monday", "saturday"]
    assert profile["availability"]["time_slots"] == [{"start": "09:00", "end": "13:00"}]
    assert profile["skills"] == ["driving", "lifting"]
    assert profile["vehicle"] == {"has_vehicle": True, "type": "van", "insured": False}
    assert profile["preferences"] == {"max_distance_miles": 25, "max_duration_hours": 4}
    assert profile["rating"] == {"average": 0, "count": 0}

    result = await db_session.execute(select(AuditLog.action).where(AuditLog.actor_id == volunteer.id))
    assert result.scalars().all() == ["VOLUNTEER_REGISTERED"]

    response = await client.post("/v1/volunteers", json=_profile_payload(), headers=auth_headers(volunteer))
    assert response.status_code == 400
    assert response.json()["message"] == "You are already registered as a volunteer"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"role": "juggling"},
    {"availability": {"days": []}},
    {"availability": {"days": ["caturday"]}},
    {"availability": {"days": ["monday"], "time_slots": [{"start": "25:00", "end": "26:00"}]}},
    {"skills": ["telepathy"]},
    {"preferences": {"max_distance_miles": 500}},
])
async def test_register_validation(client, volunteer, auth_headers, overrides):
    response = await client.post(
        "/v1/volunteers", json=_profile_payload(**overrides), headers=auth_headers(volunteer)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_register_requires_auth(client):
    response = await client.post("/v1/volunteers", json=_profile_payload())
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_update_profile_owner_and_admin(client, volunteer, charity, admin, make_profile, auth_headers):
    profile = await make_profile(volunteer, status=VolunteerStatus.PENDING_APPROVAL)
    url = f"/v1/volunteers/{profile.id}"

    response = await client.put(
        url,
        json={"experience": "advanced", "availability": {"days": ["friday"], "is_flexible": True}},
        headers=auth_headers(volunteer),
    )
    assert response.status_code == 200
    updated = response.json()["data"]["volunteer"]
    assert updated["experience"] == "advanced"
    assert updated["availability"] == {"days": ["friday"], "time_slots": [], "is_flexible": True}

    response = await client.put(url, json={"status": "active"}, headers=auth_headers(volunteer))
    assert response.status_code == 403
    assert response.json()["message"] == "Only admins can change a volunteer's status"

    response = await client.put(url, json={"notes": "hi"}, headers=auth_headers(charity))
    assert response.status_code == 403

    response = await client.put(url, json={"status": "active"}, headers=auth_headers(admin))
    assert response.json()["data"]["volunteer"]["status"] == "active"


@pytest.mark.asyncio
async def test_rating_replaces_earlier_rating(client, volunteer, donor, charity, make_profile, auth_headers):
    profile = await make_profile(volunteer)
    url = f"/v1/volunteers/{profile.id}/rate"

    response = await client.post(url, json={"rating": 5, "comment": "Great"}, headers=auth_headers(donor))
    assert response.status_code == 200
    assert response.json()["data"]["rating"] == {"average": 5.0, "count": 1}

    response = await client.post(url, json={"rating": 2}, headers=auth_headers(charity))
    assert response.json()["data"]["rating"] == {"average": 3.5, "count": 2}

    response = await client.post(url, json={"rating": 4}, headers=auth_headers(donor))
    assert response.json()["data"]["rating"] == {"average": 3.0, "count": 2}

    response = await client.get(f"/v1/volunteers/{profile.id}")
    reviews = response.json()["data"]["volunteer"]["reviews"]
    assert sorted((r["reviewer_id"], r["rating"]) for r in reviews) == [(donor.id, 4), (charity.id, 2)]


@pytest.mark.asyncio
async def test_rating_rules(client, volunteer, donor, make_profile, auth_headers):
    profile = await make_profile(volunteer)

    response = await client.post(
        f"/v1/volunteers/{profile.id}/rate", json={"rating": 5}, headers=auth_headers(volunteer)
    )
    assert response.status_code == 400
    assert response.json()["message"] == "You cannot rate your own volunteer profile"

    response = await client.post(
        f"/v1/volunteers/{profile.id}/rate", json={"rating": 6}, headers=auth_headers(donor)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ERR_VALIDATION"

    response = await client.post("/v1/volunteers/9999/rate", json={"rating": 3}, headers=auth_headers(donor))
    assert response.status_code == 404
    assert response.json()["error"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_list_active_by_rating(client, make_user, make_profile):
    top = await make_profile(await make_user("ava", UserRole.VOLUNTEER), rating_average=4.8, rating_count=3)
    mid = await make_profile(
        await make_user("ben", UserRole.VOLUNTEER), rating_average=3.1, rating_count=2,
        skills=["cooking"], volunteer_role=VolunteerRole.SORTING,
    )
    await make_profile(await make_user("cal", UserRole.VOLUNTEER), status=VolunteerStatus.SUSPENDED)

    response = await client.get("/v1/volunteers")
    data = response.json()["data"]
    assert [v["id"] for v in data["volunteers"]] == [top.id, mid.id]
    assert data["pagination"]["total_items"] == 2

    response = await client.get("/v1/volunteers", params={"skill": "cooking"})
    assert [v["id"] for v in response.json()["data"]["volunteers"]] == [mid.id]

    response = await client.get("/v1/volunteers", params={"role": "sorting", "limit": 1, "page": 1})
    assert [v["id"] for v in response.json()["data"]["volunteers"]] == [mid.id]

    response = await client.get("/v1/volunteers", params={"status": "suspended"})
    assert len(response.json()["data"]["volunteers"]) == 1


@pytest.mark.asyncio
async def test_available_by_role_day_and_window(client, make_user, make_profile):
    morning = await make_profile(
        await make_user("early", UserRole.VOLUNTEER),
        availability_days=["monday", "tuesday"], time_slots=[{"start": "08:00", "end": "12:00"}],
    )
    flexible = await make_profile(
        await make_user("any", UserRole.VOLUNTEER), availability_days=["monday"], is_flexible=True, time_slots=[],
    )
    await make_profile(
        await make_user("driver", UserRole.VOLUNTEER), volunteer_role=VolunteerRole.DRIVING,
        availability_days=["monday"],
    )
    await make_profile(
        await make_user("pending", UserRole.VOLUNTEER), availability_days=["monday"],
        status=VolunteerStatus.PENDING_APPROVAL,
    )

    response = await client.get("/v1/volunteers/available/food-collection/monday")
    assert {v["id"] for v in response.json()["data"]["volunteers"]} == {morning.id, flexible.id}

    response = await client.get(
        "/v1/volunteers/available/food-collection/monday", params={"start_time": "9:30", "end_time": "11:00"}
    )
    data = response.json()["data"]
    assert {v["id"] for v in data["volunteers"]} == {morning.id, flexible.id}
    assert data["filters"]["start_time"] == "09:30"

    response = await client.get(
        "/v1/volunteers/available/food-collection/monday", params={"start_time": "11:00", "end_time": "14:00"}
    )
    assert [v["id"] for v in response.json()["data"]["volunteers"]] == [flexible.id]

    response = await client.get("/v1/volunteers/available/food-collection/tuesday")
    assert [v["id"] for v in response.json()["data"]["volunteers"]] == [morning.id]


@pytest.mark.asyncio
@pytest.mark.parametrize("path,params", [
    ("/v1/volunteers/available/juggling/monday", {}),
    ("/v1/volunteers/available/driving/someday", {}),
    ("/v1/volunteers/available/driving/monday", {"start_time": "noon", "end_time": "14:00"}),
    ("/v1/volunteers/available/driving/monday", {"start_time": "14:00", "end_time": "10:00"}),
])
async def test_available_rejects_bad_input(client, path, params):
    response = await client.get(path, params=params)
    assert response.status_code == 400


def test_is_available_needs_a_single_covering_slot():
    profile = VolunteerProfile(
        availability_days=["monday"],
        time_slots=[{"start": "08:00", "end": "10:00"}, {"start": "10:00", "end": "12:00"}],
        is_flexible=False,
    )
    assert is_available(profile, Weekday.MONDAY, "08:30", "09:30")
    assert not is_available(profile, Weekday.MONDAY, "09:00", "11:00")
    assert not is_available(profile, Weekday.SUNDAY)
    assert is_available(profile, Weekday.MONDAY)


@pytest.mark.asyncio
async def test_volunteer_stats(client, admin, donor, make_user, make_profile, auth_headers):
    await make_profile(await make_user("ava", UserRole.VOLUNTEER), rating_average=5.0, rating_count=1, has_vehicle=True)
    await make_profile(await make_user("ben", UserRole.VOLUNTEER), rating_average=3.0, rating_count=2)
    await make_profile(
        await make_user("cal", UserRole.VOLUNTEER), status=VolunteerStatus.PENDING_APPROVAL,
        volunteer_role=VolunteerRole.DRIVING,
    )

    response = await client.get("/v1/volunteers/stats/overview", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 3
    assert data["by_status"] == {"active": 2, "pending-approval": 1}
    assert data["by_role"] == {"food-collection": 2, "driving": 1}
    assert data["by_experience"] == {"beginner": 3}
    assert data["with_vehicle"] == 1
    assert data["average_rating"] == 4.0

    response = await client.get("/v1/volunteers/stats/overview", headers=auth_headers(donor))
    assert response.status_code == 403
