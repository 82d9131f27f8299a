import asyncio
from datetime import datetime, timezone

import pytest

from conftest import auth, insert_user, register
from home_services_api.app.core.errors import InvalidArgumentError
from home_services_api.app.schemas.user import SkillAssignment
from home_services_api.app.services.user_service import UserService, normalize_skill_assignments


def _create_skill(client, admin_token, name, category="plumbing"):
    response = client.post(
        "/api/skills", json={"name": name, "category": category}, headers=auth(admin_token)
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_register_defaults_to_customer_and_returns_token(client):
    response = client.post(
        "/api/users/register",
        json={"name": "Asha", "mobile_number": "9876543210", "password": "secret123"},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["user"]["role"] == "customer"
    assert "password" not in payload["user"]
    assert payload["token_type"] == "bearer"


def test_duplicate_mobile_number_conflicts(client):
    body = {"name": "Asha", "mobile_number": "9876543210", "password": "secret123"}
    assert client.post("/api/users/register", json=body).status_code == 201
    again = client.post("/api/users/register", json={**body, "name": "Someone Else"})
    assert again.status_code == 409
    assert "mobile number" in again.json()["detail"]


def test_only_first_admin_can_self_register(client):
    register(client, "admin")
    response = client.post(
        "/api/users/register",
        json={"name": "Mallory", "mobile_number": "5550001111", "password": "secret123", "role": "admin"},
    )
    assert response.status_code == 403


def test_login_by_mobile_or_email(client):
    _, user = register(client, "customer", email="asha@example.com", password="hunter22")
    by_mobile = client.post("/api/users/login", json={"identifier": user["mobile_number"], "password": "hunter22"})
    by_email = client.post("/api/users/login", json={"identifier": "asha@example.com", "password": "hunter22"})
    assert by_mobile.status_code == 200
    assert by_email.status_code == 200
    assert by_email.json()["user"]["id"] == user["id"]


def test_login_rejects_bad_password(client):
    _, user = register(client, "customer")
    response = client.post("/api/users/login", json={"identifier": user["mobile_number"], "password": "wrong-pass"})
    assert response.status_code == 401


def test_deactivated_user_token_is_rejected(client, admin, customer):
    token, user = customer
    assert client.get("/api/bookings/my", headers=auth(token)).status_code == 200
    client.put(f"/api/users/{user['id']}", json={"is_active": False}, headers=auth(admin[0]))
    assert client.get("/api/bookings/my", headers=auth(token)).status_code == 401


def test_skill_list_auto_promotes_first_entry(client, admin, provider):
    first = _create_skill(client, admin[0], "Plumbing")
    second = _create_skill(client, admin[0], "Electrical", "electrical")
    response = client.put(
        "/api/users/skills",
        json={"skills": [{"skill_id": first, "is_primary": False}, {"skill_id": second, "is_primary": False}]},
        headers=auth(provider[0]),
    )
    assert response.status_code == 200, response.text
    skills = response.json()["skills"]
    assert [s["skill_id"] for s in skills] == [first, second]
    assert [s["is_primary"] for s in skills] == [True, False]
    assert skills[0]["name"] == "plumbing"


def test_skill_list_rejects_two_primaries(client, admin, provider):
    first = _create_skill(client, admin[0], "Plumbing")
    second = _create_skill(client, admin[0], "Electrical", "electrical")
    response = client.put(
        "/api/users/skills",
        json={"skills": [{"skill_id": first, "is_primary": True}, {"skill_id": second, "is_primary": True}]},
        headers=auth(provider[0]),
    )
    assert response.status_code == 400


def test_skill_list_keeps_flagged_primary_and_clamps_numbers():
    normalized = normalize_skill_assignments(
        [
            SkillAssignment(skill_id=1, experience=-3, hourly_rate=-10),
            SkillAssignment(skill_id=2, experience=4, hourly_rate=250, is_primary=True),
        ]
    )
    assert normalized[0]["experience"] == 0
    assert normalized[0]["hourly_rate"] == 0
    assert [s["is_primary"] for s in normalized] == [False, True]


def test_skill_list_must_not_be_empty():
    with pytest.raises(InvalidArgumentError):
        normalize_skill_assignments([])


def test_unknown_skill_is_rejected(client, provider):
    response = client.put(
        "/api/users/skills", json={"skills": [{"skill_id": 999}]}, headers=auth(provider[0])
    )
    assert response.status_code == 400


def test_customers_cannot_set_skills(client, customer):
    response = client.put("/api/users/skills", json={"skills": [{"skill_id": 1}]}, headers=auth(customer[0]))
    assert response.status_code == 403


def test_provider_directory_lists_verified_providers_by_rating(client, admin, provider):
    other_token, other = register(client, "service_provider", name="Ravi")
    for user in (provider[1], other):
        client.put(f"/api/users/{user['id']}", json={"is_verified": True}, headers=auth(admin[0]))
    unverified_token, unverified = register(client, "service_provider", name="Hidden")

    response = client.get("/api/users/providers")
    assert response.status_code == 200
    payload = response.json()
    ids = [p["id"] for p in payload["providers"]]
    assert set(ids) == {provider[1]["id"], other["id"]}
    assert unverified["id"] not in ids
    assert payload["total_providers"] == 2


def test_admin_user_management(client, admin, customer):
    token = admin[0]
    listing = client.get("/api/users", params={"role": "customer"}, headers=auth(token))
    assert listing.status_code == 200
    assert listing.json()["total"] == 1

    updated = client.put(
        f"/api/users/{customer[1]['id']}",
        json={"bio": "Loves clean floors", "address": {"city": "Pune"}},
        headers=auth(token),
    )
    assert updated.status_code == 200
    assert updated.json()["address"]["city"] == "Pune"

    assert client.delete(f"/api/users/{admin[1]['id']}", headers=auth(token)).status_code == 400
    assert client.delete(f"/api/users/{customer[1]['id']}", headers=auth(token)).status_code == 200
    assert client.get(f"/api/users/{customer[1]['id']}", headers=auth(token)).status_code == 404


def test_user_admin_routes_require_admin(client, customer):
    assert client.get("/api/users", headers=auth(customer[0])).status_code == 403
    assert client.get("/api/users").status_code == 401


def test_user_stats_counts_registrations_per_month():
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)
    insert_user(created_at=datetime(2026, 3, 5, tzinfo=timezone.utc))
    insert_user(created_at=datetime(2026, 3, 20, tzinfo=timezone.utc))
    insert_user(created_at=datetime(2025, 12, 1, tzinfo=timezone.utc))
    insert_user(created_at=datetime(2024, 3, 1, tzinfo=timezone.utc))

    stats = asyncio.run(UserService.user_stats(now=now))
    assert stats.labels[0] == "Jan"
    assert stats.data[2] == 2
    assert stats.data[11] == 1
    assert sum(stats.data) == 3
