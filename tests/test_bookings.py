import asyncio

import pytest

from conftest import auth, register
from home_services_api.app.core.errors import ConflictError
from home_services_api.app.schemas.booking import StatusUpdate
from home_services_api.app.services.booking_service import ALLOWED_TRANSITIONS, BookingService, can_transition


def _assign(client, admin_token, booking_id, provider_id, **extra):
    return client.put(
        f"/api/bookings/{booking_id}/assign-provider",
        json={"provider_id": provider_id, **extra},
        headers=auth(admin_token),
    )


def _status(client, token, booking_id, status, path="/status", **extra):
    return client.put(
        f"/api/bookings/{booking_id}{path}",
        json={"status": status, **extra},
        headers=auth(token),
    )


def test_new_booking_is_pending_and_unassigned(client, customer, booking):
    mine = client.get("/api/bookings/my", headers=auth(customer[0]))
    assert mine.status_code == 200
    [record] = mine.json()
    assert record["id"] == booking["id"]
    assert record["status"] == "pending"
    assert record["assigned_provider"] is None
    assert record["total_amount"] == 998
    assert record["version"] == 1
    assert [entry["status"] for entry in record["status_history"]] == ["pending"]
    assert record["status_history"][0]["changed_by"] == customer[1]["id"]


def test_booking_for_missing_service_is_not_found(client, customer):
    response = client.post(
        "/api/bookings",
        json={"service_id": 404, "date": "2026-11-02T10:00:00Z", "address": "Pune"},
        headers=auth(customer[0]),
    )
    assert response.status_code == 404


def test_only_customers_create_bookings(client, provider, service):
    response = client.post(
        "/api/bookings",
        json={"service_id": service["id"], "date": "2026-11-02T10:00:00Z", "address": "Pune"},
        headers=auth(provider[0]),
    )
    assert response.status_code == 403


def test_full_lifecycle_appends_history(client, admin, provider, booking):
    lengths = [len(booking["status_history"])]

    assigned = _assign(client, admin[0], booking["id"], provider[1]["id"], notes="Closest provider")
    assert assigned.status_code == 200
    assert assigned.json()["assigned_provider"]["id"] == provider[1]["id"]
    lengths.append(len(assigned.json()["status_history"]))

    started = _status(client, provider[0], booking["id"], "in_progress")
    assert started.status_code == 200
    assert started.json()["started_at"] is not None
    lengths.append(len(started.json()["status_history"]))

    done = _status(
        client,
        provider[0],
        booking["id"],
        "completed",
        notes="Replaced the capacitor",
        images=["https://img.example.com/after.jpg"],
    )
    assert done.status_code == 200
    body = done.json()
    lengths.append(len(body["status_history"]))

    assert lengths == [1, 2, 3, 4]
    assert [entry["status"] for entry in body["status_history"]] == ["pending", "assigned", "in_progress", "completed"]
    assert body["status_history"][1]["notes"] == "Closest provider"
    assert body["work_completed"]["completed"] is True
    assert body["work_completed"]["notes"] == "Replaced the capacitor"
    assert body["work_completed"]["images"] == ["https://img.example.com/after.jpg"]
    assert body["work_completed"]["completed_by"] == provider[1]["id"]
    assert body["completed_at"] is not None
    assert body["version"] == 4


def test_assigning_a_non_provider_is_invalid(client, admin, customer, booking):
    response = _assign(client, admin[0], booking["id"], customer[1]["id"])
    assert response.status_code == 400
    missing = _assign(client, admin[0], booking["id"], 99999)
    assert missing.status_code == 400


def test_assigning_to_missing_booking_is_not_found(client, admin, provider):
    assert _assign(client, admin[0], 99999, provider[1]["id"]).status_code == 404


def test_status_update_on_missing_booking_is_not_found(client, admin, provider):
    assert _status(client, admin[0], 99999, "cancelled", path="").status_code == 404
    assert _status(client, admin[0], 99999, "cancelled").status_code == 404
    assert _status(client, provider[0], 99999, "in_progress").status_code == 404


def test_reassignment_keeps_appending_history(client, admin, provider, booking):
    _, other = register(client, "service_provider", name="Ravi")
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    again = _assign(client, admin[0], booking["id"], other["id"])
    assert again.status_code == 200
    assert again.json()["assigned_provider"]["id"] == other["id"]
    assert len(again.json()["status_history"]) == 3


def test_cannot_assign_after_work_started(client, admin, provider, booking):
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    _status(client, provider[0], booking["id"], "in_progress")
    assert _assign(client, admin[0], booking["id"], provider[1]["id"]).status_code == 409


@pytest.mark.parametrize("target", ["in_progress", "completed", "assigned", "pending"])
def test_illegal_transitions_from_pending(client, admin, booking, target):
    response = _status(client, admin[0], booking["id"], target, path="")
    assert response.status_code == 409


def test_terminal_states_are_final(client, admin, booking):
    assert _status(client, admin[0], booking["id"], "cancelled", path="").status_code == 200
    assert _status(client, admin[0], booking["id"], "pending", path="").status_code == 409
    assert _status(client, admin[0], booking["id"], "cancelled", path="").status_code == 409


def test_transition_table():
    assert can_transition("assigned", "in_progress")
    assert can_transition("in_progress", "cancelled")
    assert not can_transition("pending", "assigned")
    assert not can_transition("completed", "cancelled")
    assert all(not ALLOWED_TRANSITIONS[state] for state in ("completed", "cancelled"))


def test_cancellation_stamps_timestamp(client, admin, booking):
    response = _status(client, admin[0], booking["id"], "cancelled", path="", notes="Customer called")
    assert response.status_code == 200
    assert response.json()["cancelled_at"] is not None
    assert response.json()["status_history"][-1]["notes"] == "Customer called"


def test_only_assigned_provider_may_update(client, admin, provider, booking):
    other_token, _ = register(client, "service_provider", name="Ravi")
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    assert _status(client, other_token, booking["id"], "in_progress").status_code == 403


def test_customer_cannot_change_status(client, customer, booking):
    assert _status(client, customer[0], booking["id"], "cancelled").status_code == 403


def test_stale_expected_version_conflicts(client, admin, provider, booking):
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    stale = _status(client, provider[0], booking["id"], "in_progress", expected_version=1)
    assert stale.status_code == 409
    fresh = _status(client, provider[0], booking["id"], "in_progress", expected_version=2)
    assert fresh.status_code == 200


def test_lost_race_raises_conflict(client, admin, booking, monkeypatch):
    """A writer that read version N fails once someone else wrote N+1."""
    from home_services_api.app.services import booking_service

    original_load = booking_service._load_booking
    calls = {"n": 0}

    def load_then_interfere(cursor, booking_id):
        loaded = original_load(cursor, booking_id)
        calls["n"] += 1
        if calls["n"] == 1:
            cursor.connection.execute("UPDATE bookings SET version = version + 1 WHERE id = ?", (booking_id,))
        return loaded

    monkeypatch.setattr(booking_service, "_load_booking", load_then_interfere)
    actor = {"user_id": admin[1]["id"], "role": "admin"}
    with pytest.raises(ConflictError):
        asyncio.run(BookingService.update_status(booking["id"], StatusUpdate(status="cancelled"), actor))


def test_provider_sees_assigned_bookings(client, admin, provider, customer, booking):
    assert client.get("/api/bookings/provider", headers=auth(provider[0])).json() == []
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    mine = client.get("/api/bookings/provider", headers=auth(provider[0])).json()
    assert [b["id"] for b in mine] == [booking["id"]]
    assert client.get("/api/bookings/provider", headers=auth(customer[0])).status_code == 403


def test_unassigned_queue(client, admin, provider, booking):
    queue = client.get("/api/bookings/unassigned", headers=auth(admin[0])).json()
    assert [b["id"] for b in queue] == [booking["id"]]
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    assert client.get("/api/bookings/unassigned", headers=auth(admin[0])).json() == []


def test_booking_visibility(client, admin, customer, provider, booking):
    stranger_token, _ = register(client, "customer", name="Stranger")
    assert client.get(f"/api/bookings/{booking['id']}", headers=auth(customer[0])).status_code == 200
    assert client.get(f"/api/bookings/{booking['id']}", headers=auth(admin[0])).status_code == 200
    assert client.get(f"/api/bookings/{booking['id']}", headers=auth(stranger_token)).status_code == 403
    assert client.get(f"/api/bookings/{booking['id']}", headers=auth(provider[0])).status_code == 403


def test_soft_delete_hides_booking(client, admin, customer, booking):
    response = client.delete(f"/api/bookings/{booking['id']}", headers=auth(admin[0]))
    assert response.status_code == 200
    assert client.get("/api/bookings/my", headers=auth(customer[0])).json() == []
    assert client.get("/api/bookings", headers=auth(admin[0])).json() == []
    assert client.get(f"/api/bookings/{booking['id']}", headers=auth(admin[0])).status_code == 404
    assert client.delete(f"/api/bookings/{booking['id']}", headers=auth(admin[0])).status_code == 404


def test_rating_updates_provider_average(client, admin, customer, provider, booking):
    _assign(client, admin[0], booking["id"], provider[1]["id"])
    assert client.put(
        f"/api/bookings/{booking['id']}/rating", json={"rating": 4}, headers=auth(customer[0])
    ).status_code == 400
    _status(client, provider[0], booking["id"], "in_progress")
    _status(client, provider[0], booking["id"], "completed")

    rated = client.put(f"/api/bookings/{booking['id']}/rating", json={"rating": 4}, headers=auth(customer[0]))
    assert rated.status_code == 200
    assert rated.json()["rating"] == 4
    again = client.put(f"/api/bookings/{booking['id']}/rating", json={"rating": 5}, headers=auth(customer[0]))
    assert again.status_code == 409

    profile = client.get(f"/api/users/{provider[1]['id']}", headers=auth(admin[0])).json()
    assert profile["rating_average"] == 4
    assert profile["rating_count"] == 1


def test_rating_out_of_range_is_rejected(client, customer, booking):
    response = client.put(f"/api/bookings/{booking['id']}/rating", json={"rating": 6}, headers=auth(customer[0]))
    assert response.status_code == 422


def test_admin_booking_list_filters_and_paginates(client, admin, customer, service, provider):
    for _ in range(12):
        client.post(
            "/api/bookings",
            json={"service_id": service["id"], "date": "2026-11-02T10:00:00Z", "address": "Pune"},
            headers=auth(customer[0]),
        )
    first_page = client.get("/api/admin/bookings", headers=auth(admin[0])).json()
    assert first_page["total"] == 12
    assert first_page["pages"] == 2
    assert len(first_page["bookings"]) == 10
    second_page = client.get("/api/admin/bookings", params={"pageNumber": 2}, headers=auth(admin[0])).json()
    assert len(second_page["bookings"]) == 2

    target = first_page["bookings"][0]["id"]
    _assign(client, admin[0], target, provider[1]["id"])
    assigned = client.get(
        "/api/admin/bookings", params={"status": "assigned", "provider": provider[1]["id"]}, headers=auth(admin[0])
    ).json()
    assert [b["id"] for b in assigned["bookings"]] == [target]

    none = client.get("/api/admin/bookings", params={"endDate": "2000-01-01"}, headers=auth(admin[0])).json()
    assert none["total"] == 0
