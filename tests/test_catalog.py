from conftest import auth


def test_services_are_publicly_readable(client, service):
    listing = client.get("/api/services")
    assert listing.status_code == 200
    assert [s["title"] for s in listing.json()] == ["AC Repair"]
    assert client.get(f"/api/services/{service['id']}").json()["price"] == 499


def test_service_writes_require_admin(client, customer):
    response = client.post("/api/services", json={"title": "Plumber", "price": 699}, headers=auth(customer[0]))
    assert response.status_code == 403


def test_negative_price_is_rejected(client, admin):
    response = client.post("/api/services", json={"title": "Plumber", "price": -1}, headers=auth(admin[0]))
    assert response.status_code == 422


def test_owner_must_be_a_provider(client, admin, customer, provider):
    bad = client.post(
        "/api/services",
        json={"title": "Plumber", "price": 699, "provider_id": customer[1]["id"]},
        headers=auth(admin[0]),
    )
    assert bad.status_code == 400
    good = client.post(
        "/api/services",
        json={"title": "Plumber", "price": 699, "provider_id": provider[1]["id"]},
        headers=auth(admin[0]),
    )
    assert good.status_code == 201


def test_deactivated_service_is_hidden_and_not_bookable(client, admin, customer, service):
    client.put(f"/api/services/{service['id']}", json={"is_active": False}, headers=auth(admin[0]))
    assert client.get("/api/services").json() == []
    response = client.post(
        "/api/bookings",
        json={"service_id": service["id"], "date": "2026-11-02T10:00:00Z", "address": "Pune"},
        headers=auth(customer[0]),
    )
    assert response.status_code == 400


def test_booked_service_cannot_be_deleted(client, admin, service, booking):
    assert client.delete(f"/api/services/{service['id']}", headers=auth(admin[0])).status_code == 400


def test_unbooked_service_can_be_deleted(client, admin, service):
    assert client.delete(f"/api/services/{service['id']}", headers=auth(admin[0])).status_code == 200
    assert client.get(f"/api/services/{service['id']}").status_code == 404


def test_seed_command_inserts_samples_once(tmp_path, monkeypatch, capsys):
    from home_services_api import seed
    from home_services_api.app.core.config import settings

    monkeypatch.setattr(settings, "database_url", settings.database_url)
    target = tmp_path / "seeded.db"
    assert seed.main(["--db", str(target)]) == 0
    assert "added 8 skills and 3 services" in capsys.readouterr().out
    assert seed.main(["--db", str(target)]) == 0
    assert "added 0 skills and 0 services" in capsys.readouterr().out
