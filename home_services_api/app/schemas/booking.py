"""
Pydantic models for bookings and their lifecycle.

A booking moves through ``pending → assigned → in_progress → completed``
or ends in ``cancelled``.  Every transition appends a
``StatusHistoryEntry``; the list is returned oldest first and is never
shortened.  ``version`` increases with every write and can be echoed
back as ``expected_version`` to make an update conditional.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .service import ServiceSummary
from .user import UserSummary

BookingStatus = Literal["pending", "assigned", "in_progress", "completed", "cancelled"]


class BookingCreate(BaseModel):
    service_id: int
    date: datetime = Field(..., examples=["2026-11-02T10:00:00Z"])
    address: str = Field(..., min_length=1, examples=["12 MG Road, Pune"])
    notes: Optional[str] = None
    quantity: int = Field(1, ge=1)


class StatusUpdate(BaseModel):
    """Status change requested by an admin or the assigned provider.

    ``notes`` are recorded on the history entry; on completion ``notes``
    and ``images`` (URLs) also form the work-completion record.
    """

    status: BookingStatus
    notes: Optional[str] = None
    images: Optional[list[str]] = None
    expected_version: Optional[int] = None


class ProviderAssignment(BaseModel):
    provider_id: int
    notes: Optional[str] = None
    expected_version: Optional[int] = None


class BookingRating(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class StatusHistoryEntry(BaseModel):
    status: BookingStatus
    changed_at: datetime
    changed_by: int
    notes: Optional[str] = None


class WorkCompleted(BaseModel):
    completed: bool = False
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    images: list[str] = []
    completed_by: Optional[int] = None


class BookingRead(BaseModel):
    id: int
    service: Optional[ServiceSummary] = None
    customer: Optional[UserSummary] = None
    assigned_provider: Optional[UserSummary] = None
    date: datetime
    address: str
    notes: Optional[str] = None
    quantity: int
    total_amount: float
    status: BookingStatus
    rating: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    work_completed: WorkCompleted = WorkCompleted()
    status_history: list[StatusHistoryEntry] = []
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True,
    }


class BookingPage(BaseModel):
    bookings: list[BookingRead]
    page: int
    pages: int
    total: int
