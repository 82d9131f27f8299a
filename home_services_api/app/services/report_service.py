"""
Periodic admin reports.

A report period is the current calendar ``week`` (Monday to Sunday),
``month`` or ``year`` in UTC; unknown values fall back to ``week``.
Provider and service reports are all-time unless a period is given.
"""

import logging
from calendar import monthrange
from collections import Counter, defaultdict
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from home_services_api.app.core.db import get_connection, parse_timestamp
from home_services_api.app.core.security import ROLE_PROVIDER
from home_services_api.app.services.statistics_service import resolve_now

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "year")


def period_range(period: Optional[str], now: datetime) -> Tuple[datetime, datetime]:
    """Inclusive ``(start, end)`` of the calendar period containing ``now``."""
    tz = now.tzinfo
    if period == "year":
        start = datetime(now.year, 1, 1, tzinfo=tz)
        end = datetime.combine(datetime(now.year, 12, 31).date(), time.max, tzinfo=tz)
    elif period == "month":
        last_day = monthrange(now.year, now.month)[1]
        start = datetime(now.year, now.month, 1, tzinfo=tz)
        end = datetime.combine(datetime(now.year, now.month, last_day).date(), time.max, tzinfo=tz)
    else:
        monday = now.date() - timedelta(days=now.weekday())
        start = datetime.combine(monday, time.min, tzinfo=tz)
        end = datetime.combine(monday + timedelta(days=6), time.max, tzinfo=tz)
    return start, end


def trend_bucket(period: Optional[str], moment: datetime) -> int:
    """Month (1-12) for ``year``, day of month for ``month``, else day of week (1 = Sunday)."""
    if period == "year":
        return moment.month
    if period == "month":
        return moment.day
    return (moment.weekday() + 1) % 7 + 1


def _in_range(value: Optional[str], window: Optional[Tuple[datetime, datetime]]) -> bool:
    if window is None:
        return True
    if not value:
        return False
    moment = parse_timestamp(value)
    return window[0] <= moment <= window[1]


def _live_bookings() -> List[Dict[str, Any]]:
    conn = get_connection()
    try:
        rows = conn.execute(
            """
            SELECT b.id, b.status, b.total_amount, b.rating, b.created_at, b.completed_at,
                   b.assigned_provider_id, s.title AS service_title
            FROM bookings b
            LEFT JOIN services s ON s.id = b.service_id
            WHERE b.deleted_at IS NULL
            """
        ).fetchall()
    finally:
        conn.close()
    return [dict(row) for row in rows]


class ReportService:
    """Booking, provider and service reports for a period."""

    @classmethod
    async def booking_stats(cls, period: str = "week", now: Optional[datetime] = None) -> Dict[str, Any]:
        """Bookings created in the period by status, plus revenue completed in it."""
        window = period_range(period, resolve_now(now))
        bookings = _live_bookings()
        created = [b for b in bookings if _in_range(b["created_at"], window)]
        by_status = Counter(b["status"] for b in created)
        revenue = sum(
            b["total_amount"]
            for b in bookings
            if b["status"] == "completed" and _in_range(b["completed_at"], window)
        )
        return {
            "period": period if period in PERIODS else "week",
            "start": window[0].isoformat(),
            "end": window[1].isoformat(),
            "total_bookings": len(created),
            "bookings_by_status": [
                {"status": status, "count": count} for status, count in sorted(by_status.items())
            ],
            "total_revenue": revenue,
        }

    @classmethod
    async def provider_metrics(cls, period: Optional[str] = None, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Per provider: assigned and completed bookings, completion rate (%) and average rating."""
        window = period_range(period, resolve_now(now)) if period else None
        conn = get_connection()
        try:
            providers = conn.execute(
                "SELECT id, name, email FROM users WHERE role = ? ORDER BY name",
                (ROLE_PROVIDER,),
            ).fetchall()
        finally:
            conn.close()

        assigned: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for booking in _live_bookings():
            if booking["assigned_provider_id"] is not None and _in_range(booking["created_at"], window):
                assigned[booking["assigned_provider_id"]].append(booking)

        metrics = []
        for provider in providers:
            bookings = assigned.get(provider["id"], [])
            completed = sum(1 for b in bookings if b["status"] == "completed")
            ratings = [b["rating"] for b in bookings if b["rating"] is not None]
            metrics.append(
                {
                    "id": provider["id"],
                    "name": provider["name"],
                    "email": provider["email"],
                    "completed_bookings": completed,
                    "total_bookings": len(bookings),
                    "completion_rate": (completed / len(bookings)) * 100 if bookings else 0,
                    "avg_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
                }
            )
        return metrics

    @classmethod
    async def service_distribution(cls, period: Optional[str] = None, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Booking count and amount per service title, most booked first."""
        window = period_range(period, resolve_now(now)) if period else None
        counts: Counter = Counter()
        revenue: Dict[str, float] = defaultdict(float)
        for booking in _live_bookings():
            if booking["service_title"] is None or not _in_range(booking["created_at"], window):
                continue
            counts[booking["service_title"]] += 1
            revenue[booking["service_title"]] += booking["total_amount"]
        return [
            {"service": title, "count": count, "revenue": revenue[title]}
            for title, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    @classmethod
    async def booking_trends(cls, period: str = "week", now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Bookings created in the period, counted per bucket (see ``trend_bucket``)."""
        window = period_range(period, resolve_now(now))
        counts: Counter = Counter()
        for booking in _live_bookings():
            if _in_range(booking["created_at"], window):
                counts[trend_bucket(period, parse_timestamp(booking["created_at"]))] += 1
        logger.debug("Booking trends for %s: %d buckets", period, len(counts))
        return [{"bucket": bucket, "count": count} for bucket, count in sorted(counts.items())]
