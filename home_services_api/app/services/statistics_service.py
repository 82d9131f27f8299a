"""
Service layer for the admin dashboard and analytics.

All figures are computed on demand from the current database contents;
nothing is cached.  Soft-deleted bookings are ignored everywhere.
Time bucketing is done in Python on the stored UTC timestamps, which
keeps the SQL portable and lets callers pass ``now`` explicitly.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from home_services_api.app.core.db import get_connection, parse_timestamp
from home_services_api.app.services.booking_service import fetch_bookings

logger = logging.getLogger(__name__)

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

RECENT_BOOKINGS_LIMIT = 5

REVENUE_BUCKET_FORMATS = {
    "daily": "%Y-%m-%d",
    "weekly": "%Y-%U",
    "monthly": "%Y-%m",
}


def one_year_before(now: datetime) -> datetime:
    """Same instant one calendar year earlier (29 February maps to the 28th)."""
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        return now.replace(year=now.year - 1, day=28)


def resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def monthly_buckets(items: Iterable[Tuple[datetime, float]]) -> List[float]:
    """Sum values into twelve buckets indexed by calendar month (January = 0)."""
    buckets = [0.0] * 12
    for moment, value in items:
        buckets[moment.month - 1] += value
    return buckets


class StatisticsService:
    """Aggregated read-only metrics for administrators."""

    @classmethod
    async def dashboard_stats(cls, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Return the admin dashboard snapshot.

        The result holds

        * ``users``: ``{role: {"total", "active"}}``;
        * ``bookings``: ``total`` and ``by_status`` with ``count`` and
          summed ``amount`` per status;
        * ``revenue``: ``total`` over all completed bookings and
          ``monthly``, twelve buckets indexed by creation month over the
          trailing year (completed bookings only);
        * ``recent_bookings``: the five newest bookings.
        """
        now = resolve_now(now)
        since = one_year_before(now)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            users: Dict[str, Dict[str, int]] = {}
            for row in cursor.execute(
                "SELECT role, COUNT(*) AS total, COALESCE(SUM(is_active), 0) AS active "
                "FROM users GROUP BY role"
            ).fetchall():
                users[row["role"]] = {"total": row["total"], "active": row["active"]}

            by_status: Dict[str, Dict[str, float]] = {}
            total_bookings = 0
            total_revenue = 0.0
            for row in cursor.execute(
                "SELECT status, COUNT(*) AS count, COALESCE(SUM(total_amount), 0) AS amount "
                "FROM bookings WHERE deleted_at IS NULL GROUP BY status"
            ).fetchall():
                by_status[row["status"]] = {"count": row["count"], "amount": row["amount"]}
                total_bookings += row["count"]
                if row["status"] == "completed":
                    total_revenue += row["amount"]

            completed = cursor.execute(
                "SELECT created_at, total_amount FROM bookings "
                "WHERE deleted_at IS NULL AND status = 'completed'"
            ).fetchall()
            recent = fetch_bookings(cursor, limit=RECENT_BOOKINGS_LIMIT)
        finally:
            conn.close()

        in_window = []
        for row in completed:
            created = parse_timestamp(row["created_at"])
            if since <= created <= now:
                in_window.append((created, row["total_amount"]))
        logger.debug("Dashboard stats: %d bookings, %d completed in trailing year", total_bookings, len(in_window))

        return {
            "users": users,
            "bookings": {"total": total_bookings, "by_status": by_status},
            "revenue": {"total": total_revenue, "monthly": monthly_buckets(in_window)},
            "recent_bookings": [booking.model_dump(mode="json") for booking in recent],
        }

    @classmethod
    async def service_stats(cls) -> List[Dict[str, Any]]:
        """Per service: booking count, summed amount and average rating, busiest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT s.id, s.title, s.category, s.price, s.is_active,
                       COUNT(b.id) AS booking_count,
                       COALESCE(SUM(b.total_amount), 0) AS total_revenue,
                       AVG(b.rating) AS avg_rating
                FROM services s
                LEFT JOIN bookings b ON b.service_id = s.id AND b.deleted_at IS NULL
                GROUP BY s.id
                ORDER BY booking_count DESC, s.id
                """
            ).fetchall()
        finally:
            conn.close()
        return [
            {
                "id": row["id"],
                "title": row["title"],
                "category": row["category"],
                "price": row["price"],
                "is_active": bool(row["is_active"]),
                "booking_count": row["booking_count"],
                "total_revenue": row["total_revenue"],
                "avg_rating": round(row["avg_rating"], 1) if row["avg_rating"] is not None else 0,
            }
            for row in rows
        ]

    @classmethod
    async def revenue_analytics(cls, period: str = "monthly", now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Completed-booking revenue over the trailing twelve months.

        Parameters
        ----------
        period:
            ``daily`` (``YYYY-MM-DD``), ``weekly`` (``YYYY-WW``, weeks
            starting on Sunday) or ``monthly`` (``YYYY-MM``).  Anything
            else is treated as ``monthly``.
        now:
            End of the window; defaults to the current time.

        Returns
        -------
        list of dict
            ``date``, ``total_revenue``, ``booking_count`` and
            ``average_order_value`` per bucket, sorted by ``date``.
        """
        bucket_format = REVENUE_BUCKET_FORMATS.get(period, REVENUE_BUCKET_FORMATS["monthly"])
        now = resolve_now(now)
        since = one_year_before(now)
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT created_at, total_amount FROM bookings "
                "WHERE deleted_at IS NULL AND status = 'completed'"
            ).fetchall()
        finally:
            conn.close()

        buckets: Dict[str, List[float]] = defaultdict(list)
        for row in rows:
            created = parse_timestamp(row["created_at"])
            if since <= created <= now:
                buckets[created.strftime(bucket_format)].append(row["total_amount"])

        return [
            {
                "date": key,
                "total_revenue": sum(amounts),
                "booking_count": len(amounts),
                "average_order_value": sum(amounts) / len(amounts),
            }
            for key, amounts in sorted(buckets.items())
        ]
