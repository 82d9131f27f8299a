"""
Booking endpoints.

Customers create and read their own bookings, admins assign providers
and manage every booking, providers progress the bookings assigned to
them.  Static paths (``/my``, ``/unassigned``, ``/provider``) are
declared before ``/{booking_id}`` so they are matched first.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status

from home_services_api.app.core.errors import ServiceError, raise_http_error
from home_services_api.app.core.security import (
    ROLE_ADMIN,
    ROLE_CUSTOMER,
    ROLE_PROVIDER,
    get_current_user,
    require_roles,
)
from home_services_api.app.schemas.booking import (
    BookingCreate,
    BookingRating,
    BookingRead,
    ProviderAssignment,
    StatusUpdate,
)
from home_services_api.app.services.booking_service import BookingService

router = APIRouter()


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking: BookingCreate,
    current_user: dict = Depends(require_roles(ROLE_CUSTOMER)),
) -> BookingRead:
    """Place a booking; it starts out ``pending`` and unassigned."""
    try:
        return await BookingService.create_booking(current_user["user_id"], booking)
    except ServiceError as e:
        raise_http_error(e)


@router.get("", response_model=List[BookingRead])
async def list_all_bookings(current_user: dict = Depends(require_roles(ROLE_ADMIN))) -> List[BookingRead]:
    return await BookingService.get_all_bookings()


@router.get("/my", response_model=List[BookingRead])
async def my_bookings(current_user: dict = Depends(require_roles(ROLE_CUSTOMER))) -> List[BookingRead]:
    return await BookingService.get_my_bookings(current_user["user_id"])


@router.get("/unassigned", response_model=List[BookingRead])
async def unassigned_bookings(current_user: dict = Depends(require_roles(ROLE_ADMIN))) -> List[BookingRead]:
    """Pending bookings still waiting for a provider, newest first."""
    return await BookingService.get_unassigned_bookings()


@router.get("/provider", response_model=List[BookingRead])
async def provider_bookings(current_user: dict = Depends(get_current_user)) -> List[BookingRead]:
    """Bookings assigned to the caller.  Non-providers get 403."""
    try:
        return await BookingService.get_provider_bookings(current_user)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(get_current_user),
) -> BookingRead:
    try:
        return await BookingService.get_booking(booking_id, current_user)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{booking_id}", response_model=BookingRead)
async def admin_update_status(
    update: StatusUpdate,
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> BookingRead:
    """Admin status change; illegal transitions return 409."""
    try:
        return await BookingService.update_status(booking_id, update, current_user)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{booking_id}/status", response_model=BookingRead)
async def provider_update_status(
    update: StatusUpdate,
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(require_roles(ROLE_PROVIDER, ROLE_ADMIN)),
) -> BookingRead:
    """Status change by the assigned provider, with optional work notes and images."""
    try:
        return await BookingService.update_status(booking_id, update, current_user)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{booking_id}/assign-provider", response_model=BookingRead)
async def assign_provider(
    assignment: ProviderAssignment,
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> BookingRead:
    try:
        return await BookingService.assign_provider(booking_id, assignment, current_user["user_id"])
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{booking_id}/rating", response_model=BookingRead)
async def rate_booking(
    payload: BookingRating,
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(require_roles(ROLE_CUSTOMER)),
) -> BookingRead:
    try:
        return await BookingService.rate_booking(booking_id, current_user["user_id"], payload.rating)
    except ServiceError as e:
        raise_http_error(e)


@router.delete("/{booking_id}")
async def delete_booking(
    booking_id: int = Path(..., description="ID of the booking"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    try:
        await BookingService.delete_booking(booking_id, current_user["user_id"])
    except ServiceError as e:
        raise_http_error(e)
    return {"message": "Booking removed", "booking_id": booking_id}
