"""
Business logic for the booking lifecycle.

A booking is created ``pending`` by a customer, assigned to a provider
by an admin and then progressed by the provider (or an admin) through
``in_progress`` to ``completed``.  Any non-terminal booking may be
``cancelled``.  Legal edges are listed in ``ALLOWED_TRANSITIONS``;
``pending → assigned`` only happens through ``assign_provider``.

Every write is a conditional update on the booking's ``version`` column
and runs in the same transaction as the history insert, so a concurrent
writer that read an older version gets ``ConflictError`` instead of
silently overwriting the other change.  Deletion is a soft delete: the
row keeps its history but disappears from every query and report.

Notifications are dispatched after the transaction has been committed;
a failing notification never affects the result of the mutation.
"""

import json
import logging
import math
import sqlite3
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence

from home_services_api.app.core.db import get_connection, to_storage, utcnow_iso
from home_services_api.app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
)
from home_services_api.app.core.security import ROLE_ADMIN, ROLE_PROVIDER
from home_services_api.app.schemas.booking import (
    BookingCreate,
    BookingPage,
    BookingRead,
    ProviderAssignment,
    StatusHistoryEntry,
    StatusUpdate,
    WorkCompleted,
)
from home_services_api.app.schemas.service import ServiceSummary
from home_services_api.app.schemas.user import UserSummary
from home_services_api.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    "pending": frozenset({"cancelled"}),
    "assigned": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

ASSIGNABLE_STATUSES = frozenset({"pending", "assigned"})

_BOOKING_SELECT = """
    SELECT b.*,
           s.title AS service_title, s.price AS service_price, s.category AS service_category,
           c.name AS customer_name, c.email AS customer_email, c.mobile_number AS customer_mobile,
           p.name AS provider_name, p.email AS provider_email, p.mobile_number AS provider_mobile
    FROM bookings b
    LEFT JOIN services s ON s.id = b.service_id
    LEFT JOIN users c ON c.id = b.customer_id
    LEFT JOIN users p ON p.id = b.assigned_provider_id
    WHERE b.deleted_at IS NULL
"""


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def _row_to_booking(row: sqlite3.Row, history: List[StatusHistoryEntry]) -> BookingRead:
    service = None
    if row["service_title"] is not None:
        service = ServiceSummary(
            id=row["service_id"],
            title=row["service_title"],
            price=row["service_price"],
            category=row["service_category"],
        )
    customer = None
    if row["customer_name"] is not None:
        customer = UserSummary(
            id=row["customer_id"],
            name=row["customer_name"],
            email=row["customer_email"],
            mobile_number=row["customer_mobile"],
        )
    provider = None
    if row["assigned_provider_id"] is not None and row["provider_name"] is not None:
        provider = UserSummary(
            id=row["assigned_provider_id"],
            name=row["provider_name"],
            email=row["provider_email"],
            mobile_number=row["provider_mobile"],
        )
    return BookingRead(
        id=row["id"],
        service=service,
        customer=customer,
        assigned_provider=provider,
        date=row["date"],
        address=row["address"],
        notes=row["notes"],
        quantity=row["quantity"],
        total_amount=row["total_amount"],
        status=row["status"],
        rating=row["rating"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        cancelled_at=row["cancelled_at"],
        work_completed=WorkCompleted(
            completed=bool(row["work_completed"]),
            completed_at=row["work_completed_at"],
            notes=row["work_notes"],
            images=json.loads(row["work_images"]) if row["work_images"] else [],
            completed_by=row["work_completed_by"],
        ),
        status_history=history,
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def fetch_bookings(
    cursor: sqlite3.Cursor,
    where: str = "",
    params: Sequence[Any] = (),
    order_by: str = "b.created_at DESC, b.id DESC",
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[BookingRead]:
    """Load non-deleted bookings with their references and history.

    ``where`` is an extra SQL fragment (starting with ``AND``) over the
    ``b`` (booking), ``s`` (service), ``c`` (customer) and ``p``
    (provider) aliases.
    """
    query = f"{_BOOKING_SELECT} {where} ORDER BY {order_by}"
    params = list(params)
    if limit is not None:
        query += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    rows = cursor.execute(query, params).fetchall()
    if not rows:
        return []

    ids = [row["id"] for row in rows]
    placeholders = ",".join("?" for _ in ids)
    history: Dict[int, List[StatusHistoryEntry]] = {booking_id: [] for booking_id in ids}
    for entry in cursor.execute(
        f"SELECT * FROM booking_status_history WHERE booking_id IN ({placeholders}) ORDER BY id",
        ids,
    ).fetchall():
        history[entry["booking_id"]].append(
            StatusHistoryEntry(
                status=entry["status"],
                changed_at=entry["changed_at"],
                changed_by=entry["changed_by"],
                notes=entry["notes"],
            )
        )
    return [_row_to_booking(row, history[row["id"]]) for row in rows]


def _load_booking(cursor: sqlite3.Cursor, booking_id: int) -> BookingRead:
    bookings = fetch_bookings(cursor, "AND b.id = ?", (booking_id,))
    if not bookings:
        raise NotFoundError("Booking not found")
    return bookings[0]


def _append_history(
    cursor: sqlite3.Cursor,
    booking_id: int,
    status: str,
    actor_id: int,
    changed_at: str,
    notes: Optional[str] = None,
) -> None:
    cursor.execute(
        "INSERT INTO booking_status_history (booking_id, status, changed_at, changed_by, notes) "
        "VALUES (?, ?, ?, ?, ?)",
        (booking_id, status, changed_at, actor_id, notes),
    )


def _conditional_update(
    cursor: sqlite3.Cursor,
    booking_id: int,
    version: int,
    fields: Dict[str, Any],
) -> None:
    """Write ``fields`` only if the booking is still at ``version``.

    Raises ``ConflictError`` when another writer got there first.
    """
    assignments = ", ".join(f"{column} = ?" for column in fields)
    cursor.execute(
        f"UPDATE bookings SET {assignments}, version = version + 1 "
        "WHERE id = ? AND version = ? AND deleted_at IS NULL",
        (*fields.values(), booking_id, version),
    )
    if cursor.rowcount == 0:
        raise ConflictError("Booking was modified by another request; reload and try again")


def _check_expected_version(booking: BookingRead, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != booking.version:
        raise ConflictError(
            f"Booking version is {booking.version}, expected {expected_version}"
        )


class BookingService:
    """Service owning booking creation, assignment and status transitions."""

    @classmethod
    async def create_booking(cls, customer_id: int, data: BookingCreate) -> BookingRead:
        """Create a ``pending`` booking for ``customer_id``.

        The amount is fixed now as the service's unit price times the
        quantity.  Raises ``NotFoundError`` if the service does not exist
        and ``InvalidArgumentError`` if it is no longer offered.
        """
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            service = cursor.execute(
                "SELECT id, price, is_active FROM services WHERE id = ?",
                (data.service_id,),
            ).fetchone()
            if not service:
                raise NotFoundError("Service not found")
            if not service["is_active"]:
                raise InvalidArgumentError("Service is not available for booking")
            total_amount = service["price"] * data.quantity
            cursor.execute(
                """
                INSERT INTO bookings (service_id, customer_id, date, address, notes, quantity,
                                      total_amount, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (
                    data.service_id,
                    customer_id,
                    to_storage(data.date),
                    data.address,
                    data.notes,
                    data.quantity,
                    total_amount,
                    now,
                    now,
                ),
            )
            booking_id = cursor.lastrowid
            _append_history(cursor, booking_id, "pending", customer_id, now)
            conn.commit()
            booking = _load_booking(cursor, booking_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Booking %s created by customer %s for service %s", booking_id, customer_id, data.service_id)
        await NotificationService.booking_created(booking)
        return booking

    @classmethod
    async def assign_provider(cls, booking_id: int, data: ProviderAssignment, actor_id: int) -> BookingRead:
        """Assign (or re-assign) a provider and move the booking to ``assigned``.

        Raises
        ------
        InvalidArgumentError
            If ``data.provider_id`` is not an active service provider.
        NotFoundError
            If the booking does not exist.
        InvalidTransitionError
            If the booking has already started or ended.
        ConflictError
            On a version mismatch.
        """
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            provider = cursor.execute(
                "SELECT id, role, is_active FROM users WHERE id = ?",
                (data.provider_id,),
            ).fetchone()
            if not provider or provider["role"] != ROLE_PROVIDER or not provider["is_active"]:
                raise InvalidArgumentError("Service provider not found")
            booking = _load_booking(cursor, booking_id)
            _check_expected_version(booking, data.expected_version)
            if booking.status not in ASSIGNABLE_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot assign a provider to a booking that is {booking.status}"
                )
            _conditional_update(
                cursor,
                booking_id,
                booking.version,
                {"assigned_provider_id": data.provider_id, "status": "assigned", "updated_at": now},
            )
            _append_history(cursor, booking_id, "assigned", actor_id, now, data.notes)
            conn.commit()
            booking = _load_booking(cursor, booking_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Booking %s assigned to provider %s by %s", booking_id, data.provider_id, actor_id)
        await NotificationService.provider_assigned(booking)
        return booking

    @classmethod
    async def update_status(cls, booking_id: int, data: StatusUpdate, actor: Dict[str, Any]) -> BookingRead:
        """Move a booking along the lifecycle.

        Admins may update any booking; providers only those assigned to
        them.  Entering ``in_progress``, ``completed`` or ``cancelled``
        stamps ``started_at``, ``completed_at`` or ``cancelled_at``.  On
        completion the notes and images become the work-completion
        record.
        """
        actor_id = actor["user_id"]
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            booking = _load_booking(cursor, booking_id)
            if actor.get("role") != ROLE_ADMIN:
                provider_id = booking.assigned_provider.id if booking.assigned_provider else None
                if actor.get("role") != ROLE_PROVIDER or provider_id != actor_id:
                    raise ForbiddenError("Only the assigned provider can update this booking")
            _check_expected_version(booking, data.expected_version)
            if not can_transition(booking.status, data.status):
                raise InvalidTransitionError(
                    f"Cannot change booking status from {booking.status} to {data.status}"
                )

            fields: Dict[str, Any] = {"status": data.status, "updated_at": now}
            if data.status == "in_progress":
                fields["started_at"] = now
            elif data.status == "completed":
                fields.update(
                    completed_at=now,
                    work_completed=1,
                    work_completed_at=now,
                    work_notes=data.notes,
                    work_images=json.dumps(data.images or []),
                    work_completed_by=actor_id,
                )
            elif data.status == "cancelled":
                fields["cancelled_at"] = now
            _conditional_update(cursor, booking_id, booking.version, fields)
            _append_history(cursor, booking_id, data.status, actor_id, now, data.notes)
            conn.commit()
            booking = _load_booking(cursor, booking_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Booking %s moved to %s by %s", booking_id, data.status, actor_id)
        await NotificationService.booking_status_updated(booking)
        return booking

    @classmethod
    async def delete_booking(cls, booking_id: int, actor_id: int) -> None:
        """Soft-delete a booking.  Raises ``NotFoundError`` if it is missing or already deleted."""
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE bookings SET deleted_at = ?, updated_at = ?, version = version + 1 "
                "WHERE id = ? AND deleted_at IS NULL",
                (now, now, booking_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Booking not found")
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Booking %s deleted by %s", booking_id, actor_id)
        await NotificationService.booking_deleted(booking_id)

    @classmethod
    async def rate_booking(cls, booking_id: int, customer_id: int, rating: int) -> BookingRead:
        """Record the customer's 1–5 rating and fold it into the provider's average."""
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            booking = _load_booking(cursor, booking_id)
            if not booking.customer or booking.customer.id != customer_id:
                raise ForbiddenError("You can only rate your own bookings")
            if booking.status != "completed":
                raise InvalidArgumentError("Only completed bookings can be rated")
            if booking.rating is not None:
                raise ConflictError("Booking has already been rated")
            _conditional_update(cursor, booking_id, booking.version, {"rating": rating, "updated_at": now})
            if booking.assigned_provider:
                cursor.execute(
                    """
                    UPDATE users
                    SET rating_average = (rating_average * rating_count + ?) / (rating_count + 1),
                        rating_count = rating_count + 1,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (rating, now, booking.assigned_provider.id),
                )
            conn.commit()
            booking = _load_booking(cursor, booking_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Booking %s rated %s by customer %s", booking_id, rating, customer_id)
        return booking

    @classmethod
    async def get_booking(cls, booking_id: int, actor: Dict[str, Any]) -> BookingRead:
        """Return one booking to its customer, its provider or an admin."""
        conn = get_connection()
        try:
            booking = _load_booking(conn.cursor(), booking_id)
        finally:
            conn.close()
        if actor.get("role") == ROLE_ADMIN:
            return booking
        allowed = {booking.customer.id if booking.customer else None}
        if booking.assigned_provider:
            allowed.add(booking.assigned_provider.id)
        if actor["user_id"] not in allowed:
            raise ForbiddenError("You do not have access to this booking")
        return booking

    @classmethod
    async def get_my_bookings(cls, customer_id: int) -> List[BookingRead]:
        conn = get_connection()
        try:
            return fetch_bookings(conn.cursor(), "AND b.customer_id = ?", (customer_id,))
        finally:
            conn.close()

    @classmethod
    async def get_provider_bookings(cls, actor: Dict[str, Any]) -> List[BookingRead]:
        """Bookings assigned to the calling provider, newest first."""
        if actor.get("role") != ROLE_PROVIDER:
            raise ForbiddenError("Access denied. Not a service provider.")
        conn = get_connection()
        try:
            return fetch_bookings(conn.cursor(), "AND b.assigned_provider_id = ?", (actor["user_id"],))
        finally:
            conn.close()

    @classmethod
    async def get_unassigned_bookings(cls) -> List[BookingRead]:
        conn = get_connection()
        try:
            return fetch_bookings(
                conn.cursor(), "AND b.status = 'pending' AND b.assigned_provider_id IS NULL"
            )
        finally:
            conn.close()

    @classmethod
    async def get_all_bookings(cls) -> List[BookingRead]:
        conn = get_connection()
        try:
            return fetch_bookings(conn.cursor())
        finally:
            conn.close()

    @classmethod
    async def list_bookings(
        cls,
        status: Optional[str] = None,
        customer_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        service_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
    ) -> BookingPage:
        """Filtered admin listing, ``PAGE_SIZE`` bookings per page, newest first.

        ``start_date`` and ``end_date`` bound the creation day inclusively.
        """
        if page < 1:
            raise InvalidArgumentError("Page must be 1 or greater")
        clauses: List[str] = []
        params: List[Any] = []
        if status:
            clauses.append("b.status = ?")
            params.append(status)
        if customer_id is not None:
            clauses.append("b.customer_id = ?")
            params.append(customer_id)
        if provider_id is not None:
            clauses.append("b.assigned_provider_id = ?")
            params.append(provider_id)
        if service_id is not None:
            clauses.append("b.service_id = ?")
            params.append(service_id)
        if start_date is not None:
            clauses.append("b.created_at >= ?")
            params.append(to_storage(datetime.combine(start_date, time.min, tzinfo=timezone.utc)))
        if end_date is not None:
            clauses.append("b.created_at <= ?")
            params.append(to_storage(datetime.combine(end_date, time.max, tzinfo=timezone.utc)))
        where = "".join(f" AND {clause}" for clause in clauses)

        conn = get_connection()
        try:
            cursor = conn.cursor()
            total = cursor.execute(
                f"SELECT COUNT(*) FROM bookings b WHERE b.deleted_at IS NULL{where}", params
            ).fetchone()[0]
            bookings = fetch_bookings(
                cursor, where, params, limit=PAGE_SIZE, offset=PAGE_SIZE * (page - 1)
            )
        finally:
            conn.close()
        return BookingPage(bookings=bookings, page=page, pages=math.ceil(total / PAGE_SIZE), total=total)
