from datetime import datetime, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient

from home_services_api.app.core.config import settings
from home_services_api.app.core.db import get_connection, init_db, to_storage
from home_services_api.app.main import app
from home_services_api.app.services.email_service import EmailService
from home_services_api.app.services.notification_service import DashboardChannel, NotificationService

_mobiles = count(9000000001)


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Fresh sqlite file per test."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "test.db"))
    init_db()
    yield


@pytest.fixture(autouse=True)
def channel(monkeypatch):
    fresh = DashboardChannel()
    monkeypatch.setattr(NotificationService, "channel", fresh)
    return fresh


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Record deliveries instead of talking to an SMTP server."""
    sent = []

    def fake_deliver(to, subject, html_content):
        sent.append({"to": to, "subject": subject, "html": html_content})
        return True

    monkeypatch.setattr(EmailService, "deliver", staticmethod(fake_deliver))
    return sent


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, role="customer", name=None, email=None, password="secret123"):
    mobile = str(next(_mobiles))
    response = client.post(
        "/api/users/register",
        json={
            "name": name or f"{role} {mobile}",
            "mobile_number": mobile,
            "email": email if email is not None else f"{mobile}@example.com",
            "password": password,
            "role": role,
        },
    )
    assert response.status_code == 201, response.text
    payload = response.json()
    return payload["access_token"], payload["user"]


@pytest.fixture
def admin(client):
    return register(client, "admin", name="Admin User")


@pytest.fixture
def customer(client):
    return register(client, "customer", name="Sample Customer")


@pytest.fixture
def provider(client):
    return register(client, "service_provider", name="Suresh Kumar")


@pytest.fixture
def service(client, admin):
    response = client.post(
        "/api/services",
        json={"title": "AC Repair", "description": "Cooling fixes", "price": 499, "category": "Appliance Repair"},
        headers=auth(admin[0]),
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def booking(client, customer, service):
    response = client.post(
        "/api/bookings",
        json={
            "service_id": service["id"],
            "date": "2026-11-02T10:00:00Z",
            "address": "12 MG Road, Pune",
            "notes": "Ring the bell",
            "quantity": 2,
        },
        headers=auth(customer[0]),
    )
    assert response.status_code == 201, response.text
    return response.json()


def insert_user(name="Direct User", role="customer", created_at=None):
    now = to_storage(created_at or datetime.now(timezone.utc))
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO users (name, mobile_number, password, role, is_active, created_at, updated_at) "
            "VALUES (?, ?, 'x$y', ?, 1, ?, ?)",
            (name, str(next(_mobiles)), role, now, now),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def insert_service(title="Plumber", price=100):
    now = to_storage(datetime.now(timezone.utc))
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO services (title, price, is_active, created_at, updated_at) VALUES (?, ?, 1, ?, ?)",
            (title, price, now, now),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def insert_booking(
    customer_id,
    service_id,
    status="pending",
    amount=100,
    created_at=None,
    completed_at=None,
    provider_id=None,
    rating=None,
):
    created = to_storage(created_at or datetime.now(timezone.utc))
    completed = to_storage(completed_at) if completed_at else None
    conn = get_connection()
    try:
        cursor = conn.execute(
            """
            INSERT INTO bookings (service_id, customer_id, assigned_provider_id, date, address, quantity,
                                  total_amount, status, rating, completed_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, 'Somewhere', 1, ?, ?, ?, ?, ?, ?)
            """,
            (service_id, customer_id, provider_id, created, amount, status, rating, completed, created, created),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()
