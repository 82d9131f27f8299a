"""
Business logic for the service catalogue.

Services are read publicly and written by administrators.  A service
that has ever been booked cannot be deleted, because its bookings
(including soft-deleted ones kept for history) still reference it;
deactivate it with ``is_active`` instead.
"""

import logging
import sqlite3
from typing import List, Optional

from home_services_api.app.core.db import get_connection, utcnow_iso
from home_services_api.app.core.errors import InvalidArgumentError, NotFoundError
from home_services_api.app.core.security import ROLE_PROVIDER
from home_services_api.app.schemas.service import ServiceCreate, ServiceRead, ServiceUpdate

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    {
        "title": "AC Repair",
        "description": "Expert AC repair services for all brands. We fix cooling issues, gas leaks, and more.",
        "price": 499,
        "category": "Appliance Repair",
    },
    {
        "title": "Plumber",
        "description": "Professional plumbing services for leaky faucets, clogged drains, and pipe installations.",
        "price": 699,
        "category": "Home Maintenance",
    },
    {
        "title": "Electrician",
        "description": "Certified electricians for all your wiring, fixture installation, and electrical repair needs.",
        "price": 599,
        "category": "Home Maintenance",
    },
]


def _row_to_service(row: sqlite3.Row) -> ServiceRead:
    return ServiceRead(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        price=row["price"],
        category=row["category"],
        image=row["image"],
        provider_id=row["provider_id"],
        is_active=bool(row["is_active"]),
    )


def _check_provider(cursor: sqlite3.Cursor, provider_id: Optional[int]) -> None:
    if provider_id is None:
        return
    row = cursor.execute("SELECT role FROM users WHERE id = ?", (provider_id,)).fetchone()
    if not row or row["role"] != ROLE_PROVIDER:
        raise InvalidArgumentError("Service provider not found")


class CatalogService:
    """CRUD for bookable services."""

    @classmethod
    async def list_services(cls, category: Optional[str] = None, include_inactive: bool = False) -> List[ServiceRead]:
        query = "SELECT * FROM services"
        clauses = []
        params: list = []
        if not include_inactive:
            clauses.append("is_active = 1")
        if category:
            clauses.append("category = ?")
            params.append(category)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY title, id"
        conn = get_connection()
        try:
            return [_row_to_service(row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_service(cls, service_id: int) -> ServiceRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Service not found")
        return _row_to_service(row)

    @classmethod
    async def create_service(cls, data: ServiceCreate) -> ServiceRead:
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _check_provider(cursor, data.provider_id)
            cursor.execute(
                "INSERT INTO services (title, description, price, category, image, provider_id, "
                "is_active, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)",
                (data.title, data.description, data.price, data.category, data.image, data.provider_id, now, now),
            )
            service_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Service %s created: %s", service_id, data.title)
        return _row_to_service(row)

    @classmethod
    async def update_service(cls, service_id: int, data: ServiceUpdate) -> ServiceRead:
        updates = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        if "is_active" in updates:
            updates["is_active"] = 1 if updates["is_active"] else 0
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM services WHERE id = ?", (service_id,)).fetchone():
                raise NotFoundError("Service not found")
            _check_provider(cursor, updates.get("provider_id"))
            if updates:
                updates["updated_at"] = utcnow_iso()
                assignments = ", ".join(f"{column} = ?" for column in updates)
                cursor.execute(
                    f"UPDATE services SET {assignments} WHERE id = ?", (*updates.values(), service_id)
                )
                conn.commit()
            row = cursor.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return _row_to_service(row)

    @classmethod
    async def delete_service(cls, service_id: int) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM services WHERE id = ?", (service_id,)).fetchone():
                raise NotFoundError("Service not found")
            booked = cursor.execute(
                "SELECT COUNT(*) FROM bookings WHERE service_id = ?", (service_id,)
            ).fetchone()[0]
            if booked:
                raise InvalidArgumentError("Service has bookings; deactivate it instead")
            cursor.execute("DELETE FROM services WHERE id = ?", (service_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Service %s deleted", service_id)

    @classmethod
    async def seed_default_services(cls) -> int:
        """Insert the sample catalogue entries whose titles are missing."""
        now = utcnow_iso()
        added = 0
        conn = get_connection()
        try:
            cursor = conn.cursor()
            for service in DEFAULT_SERVICES:
                if cursor.execute("SELECT id FROM services WHERE title = ?", (service["title"],)).fetchone():
                    continue
                cursor.execute(
                    "INSERT INTO services (title, description, price, category, is_active, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, 1, ?, ?)",
                    (service["title"], service["description"], service["price"], service["category"], now, now),
                )
                added += 1
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Seeded %d default services", added)
        return added
