"""
Notification dispatcher for booking lifecycle events.

Two channels are fed after a booking mutation has been committed:

1. the live ``admin-dashboard`` channel, a registry of connected
   websocket subscribers keyed by connection id, receiving JSON events
   (``bookingCreated``, ``bookingStatusUpdated``, ``providerAssigned``,
   ``bookingDeleted``);
2. email, rendered from a named template and delivered on a small
   thread pool.

Both are fire-and-forget relative to the mutation: failures are logged
and never reach the caller.
"""

import asyncio
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Optional, Protocol

from home_services_api.app.core.config import settings
from home_services_api.app.core.errors import ConflictError
from home_services_api.app.schemas.booking import BookingRead
from home_services_api.app.services.email_service import EmailService

logger = logging.getLogger(__name__)

DASHBOARD_TOPIC = "admin-dashboard"

BOOKING_CREATED = "bookingCreated"
BOOKING_STATUS_UPDATED = "bookingStatusUpdated"
PROVIDER_ASSIGNED = "providerAssigned"
BOOKING_DELETED = "bookingDeleted"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class DashboardChannel:
    """Registry of live subscribers to one topic.

    Subscribers are added on connect and removed on disconnect.  A
    subscriber whose send fails, or does not finish within
    ``send_timeout`` seconds, is dropped during the broadcast.
    Delivery order between subscribers is unspecified.
    """

    def __init__(
        self,
        topic: str = DASHBOARD_TOPIC,
        max_subscribers: Optional[int] = None,
        send_timeout: Optional[float] = None,
    ):
        self.topic = topic
        self._max_subscribers = max_subscribers
        self._send_timeout = send_timeout
        self._subscribers: Dict[str, Subscriber] = {}

    @property
    def max_subscribers(self) -> int:
        if self._max_subscribers is not None:
            return self._max_subscribers
        return settings.dashboard_max_subscribers

    @property
    def send_timeout(self) -> float:
        if self._send_timeout is not None:
            return self._send_timeout
        return settings.dashboard_send_timeout

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def connect(self, subscriber: Subscriber) -> str:
        """Register ``subscriber`` and return its connection id."""
        if len(self._subscribers) >= self.max_subscribers:
            raise ConflictError(f"Channel '{self.topic}' is full")
        connection_id = uuid.uuid4().hex
        self._subscribers[connection_id] = subscriber
        logger.info("Subscriber %s joined %s (%d connected)", connection_id, self.topic, len(self._subscribers))
        return connection_id

    def disconnect(self, connection_id: str) -> bool:
        removed = self._subscribers.pop(connection_id, None) is not None
        if removed:
            logger.info("Subscriber %s left %s", connection_id, self.topic)
        return removed

    async def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        """Send ``{"event", "data"}`` to every subscriber; return how many got it."""
        message = {"event": event, "topic": self.topic, "data": data}
        # Snapshot: subscribers may disconnect while we await sends.
        targets = list(self._subscribers.items())
        if not targets:
            return 0
        timeout = self.send_timeout
        results = await asyncio.gather(
            *(asyncio.wait_for(subscriber.send_json(message), timeout) for _, subscriber in targets),
            return_exceptions=True,
        )
        delivered = 0
        for (connection_id, _), result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    "Dropping subscriber %s: send of %s took longer than %ss", connection_id, event, timeout
                )
                self._subscribers.pop(connection_id, None)
            elif isinstance(result, BaseException):
                logger.error(
                    "Dropping subscriber %s after failed send of %s", connection_id, event, exc_info=result
                )
                self._subscribers.pop(connection_id, None)
            else:
                delivered += 1
        return delivered


class NotificationService:
    """Dispatches lifecycle notifications to the dashboard channel and email."""

    channel = DashboardChannel()

    _executor: Optional[ThreadPoolExecutor] = None
    _executor_lock = threading.Lock()
    _pending: set[Future] = set()

    # ------------------------------------------------------------------
    # Live dashboard channel
    # ------------------------------------------------------------------

    _broadcasts: set[asyncio.Task] = set()
    _last_broadcast: Optional[asyncio.Task] = None

    @classmethod
    async def publish(cls, event: str, data: Dict[str, Any]) -> asyncio.Task:
        """Schedule a broadcast and return without waiting for delivery.

        Each broadcast waits for the previous one on the same loop, so
        subscribers see events in publish order.
        """
        previous = cls._last_broadcast
        if previous is not None and (previous.done() or previous.get_loop() is not asyncio.get_running_loop()):
            previous = None
        task = asyncio.create_task(cls._broadcast_after(previous, event, data))
        cls._last_broadcast = task
        cls._broadcasts.add(task)
        task.add_done_callback(cls._broadcasts.discard)
        return task

    @classmethod
    async def _broadcast_after(cls, previous: Optional[asyncio.Task], event: str, data: Dict[str, Any]) -> int:
        if previous is not None:
            await asyncio.wait({previous})
        try:
            return await cls.channel.broadcast(event, data)
        except Exception:
            logger.exception("Failed to publish %s to %s", event, cls.channel.topic)
            return 0

    @classmethod
    async def drain_broadcasts(cls) -> None:
        """Wait for the broadcasts scheduled on the running loop."""
        loop = asyncio.get_running_loop()
        pending = [task for task in cls._broadcasts if task.get_loop() is loop]
        if pending:
            await asyncio.wait(pending)

    @classmethod
    async def booking_created(cls, booking: BookingRead) -> None:
        await cls.publish(
            BOOKING_CREATED,
            {"booking": booking.model_dump(mode="json"), "message": "New booking created"},
        )

    @classmethod
    async def booking_status_updated(cls, booking: BookingRead) -> None:
        await cls.publish(
            BOOKING_STATUS_UPDATED,
            {
                "booking_id": booking.id,
                "status": booking.status,
                "updated_at": booking.updated_at.isoformat(),
            },
        )
        if booking.customer and booking.customer.email:
            cls.dispatch_email(booking.customer.email, "statusUpdate", cls._status_update_context(booking))

    @classmethod
    async def provider_assigned(cls, booking: BookingRead) -> None:
        provider = booking.assigned_provider
        await cls.publish(
            PROVIDER_ASSIGNED,
            {
                "booking_id": booking.id,
                "provider": provider.model_dump(mode="json") if provider else None,
                "status": booking.status,
                "updated_at": booking.updated_at.isoformat(),
            },
        )
        if settings.notify_provider_on_assignment and provider and provider.email:
            cls.dispatch_email(provider.email, "newBooking", cls._new_booking_context(booking))

    @classmethod
    async def booking_deleted(cls, booking_id: int) -> None:
        await cls.publish(BOOKING_DELETED, {"booking_id": booking_id, "message": "Booking deleted"})

    # ------------------------------------------------------------------
    # Email channel
    # ------------------------------------------------------------------

    @classmethod
    def _get_executor(cls) -> ThreadPoolExecutor:
        with cls._executor_lock:
            if cls._executor is None:
                cls._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="email")
            return cls._executor

    @classmethod
    def dispatch_email(cls, to: str, template: str, context: Dict[str, Any]) -> Optional[Future]:
        """Queue an email for background delivery and return immediately."""
        try:
            future = cls._get_executor().submit(EmailService.send_email, to, template, context)
        except RuntimeError:
            logger.exception("Email executor unavailable; dropping '%s' email to %s", template, to)
            return None
        cls._pending.add(future)
        future.add_done_callback(cls._pending.discard)
        return future

    @classmethod
    def wait_for_pending_emails(cls, timeout: Optional[float] = None) -> None:
        """Block until queued emails are processed (used on shutdown and in tests)."""
        pending = list(cls._pending)
        if pending:
            wait(pending, timeout=timeout)

    @classmethod
    def shutdown(cls) -> None:
        with cls._executor_lock:
            if cls._executor is not None:
                cls._executor.shutdown(wait=True)
                cls._executor = None

    @staticmethod
    def _status_update_context(booking: BookingRead) -> Dict[str, Any]:
        return {
            "user_name": booking.customer.name if booking.customer else "Customer",
            "service_name": booking.service.title if booking.service else "your service",
            "status": booking.status,
            "booking_id": booking.id,
            "date": booking.date.strftime("%d %b %Y"),
            "provider_name": (
                booking.assigned_provider.name if booking.assigned_provider else "your service provider"
            ),
            "support_email": settings.support_email,
            "work_notes": booking.work_completed.notes,
            "images": list(booking.work_completed.images),
        }

    @staticmethod
    def _new_booking_context(booking: BookingRead) -> Dict[str, Any]:
        return {
            "provider_name": booking.assigned_provider.name if booking.assigned_provider else "Provider",
            "service_name": booking.service.title if booking.service else "a service",
            "customer_name": booking.customer.name if booking.customer else "a customer",
            "booking_id": booking.id,
            "date": booking.date.strftime("%d %b %Y"),
            "admin_email": settings.admin_email,
            "notes": booking.notes,
        }
