import asyncio

from conftest import auth
from home_services_api.app.services.skill_service import DEFAULT_SKILLS, SkillService


def test_create_skill_normalizes_name(client, admin):
    response = client.post(
        "/api/skills",
        json={"name": "  Pest Control ", "description": "Termites", "category": "other"},
        headers=auth(admin[0]),
    )
    assert response.status_code == 201
    assert response.json()["name"] == "pest control"


def test_duplicate_skill_name_is_case_insensitive(client, admin):
    client.post("/api/skills", json={"name": "Plumbing", "category": "plumbing"}, headers=auth(admin[0]))
    again = client.post("/api/skills", json={"name": "PLUMBING", "category": "plumbing"}, headers=auth(admin[0]))
    assert again.status_code == 400


def test_unknown_category_is_rejected(client, admin):
    response = client.post("/api/skills", json={"name": "Gardening", "category": "garden"}, headers=auth(admin[0]))
    assert response.status_code == 422


def test_skill_writes_require_admin(client, customer):
    response = client.post("/api/skills", json={"name": "Plumbing", "category": "plumbing"}, headers=auth(customer[0]))
    assert response.status_code == 403


def test_list_skills_hides_deactivated(client, admin):
    created = client.post(
        "/api/skills", json={"name": "Carpentry", "category": "home_repair"}, headers=auth(admin[0])
    ).json()
    client.post("/api/skills", json={"name": "Electrical", "category": "electrical"}, headers=auth(admin[0]))
    client.put(f"/api/skills/{created['id']}", json={"is_active": False}, headers=auth(admin[0]))

    names = [skill["name"] for skill in client.get("/api/skills").json()]
    assert names == ["electrical"]


def test_rename_cannot_collide(client, admin):
    first = client.post("/api/skills", json={"name": "Painting", "category": "home_repair"}, headers=auth(admin[0])).json()
    client.post("/api/skills", json={"name": "Plumbing", "category": "plumbing"}, headers=auth(admin[0]))
    response = client.put(f"/api/skills/{first['id']}", json={"name": "plumbing"}, headers=auth(admin[0]))
    assert response.status_code == 400


def test_delete_skill_in_use_fails_and_unused_succeeds(client, admin, provider):
    used = client.post("/api/skills", json={"name": "Plumbing", "category": "plumbing"}, headers=auth(admin[0])).json()
    unused = client.post("/api/skills", json={"name": "Electrical", "category": "electrical"}, headers=auth(admin[0])).json()
    client.put("/api/users/skills", json={"skills": [{"skill_id": used["id"]}]}, headers=auth(provider[0]))

    blocked = client.delete(f"/api/skills/{used['id']}", headers=auth(admin[0]))
    assert blocked.status_code == 400
    assert client.delete(f"/api/skills/{unused['id']}", headers=auth(admin[0])).status_code == 200
    assert client.delete(f"/api/skills/{unused['id']}", headers=auth(admin[0])).status_code == 404


def test_seed_default_skills_is_idempotent():
    assert asyncio.run(SkillService.seed_default_skills()) == len(DEFAULT_SKILLS)
    assert asyncio.run(SkillService.seed_default_skills()) == 0
    skills = asyncio.run(SkillService.list_skills(category="home_repair"))
    assert {skill.name for skill in skills} == {"ac repair", "carpentry", "painting", "appliance repair"}
