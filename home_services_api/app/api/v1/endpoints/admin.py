"""
Admin dashboard endpoints: statistics, analytics and the filtered
booking list.  Every route requires the ``admin`` role.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from home_services_api.app.core.errors import ServiceError, raise_http_error
from home_services_api.app.core.security import ROLE_ADMIN, require_roles
from home_services_api.app.schemas.booking import BookingPage, BookingStatus
from home_services_api.app.services.booking_service import BookingService
from home_services_api.app.services.statistics_service import StatisticsService

router = APIRouter(dependencies=[Depends(require_roles(ROLE_ADMIN))])


@router.get("/stats")
async def dashboard_stats() -> Dict[str, Any]:
    """User counts per role, booking counts and amounts per status,
    revenue (total and per month over the last year) and recent bookings."""
    return await StatisticsService.dashboard_stats()


@router.get("/bookings", response_model=BookingPage)
async def list_bookings(
    status: Optional[BookingStatus] = None,
    customer: Optional[int] = None,
    provider: Optional[int] = None,
    service: Optional[int] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1, alias="pageNumber"),
) -> BookingPage:
    try:
        return await BookingService.list_bookings(
            status=status,
            customer_id=customer,
            provider_id=provider,
            service_id=service,
            start_date=start_date,
            end_date=end_date,
            page=page,
        )
    except ServiceError as e:
        raise_http_error(e)


@router.get("/analytics/revenue")
async def revenue_analytics(period: str = "monthly") -> List[Dict[str, Any]]:
    """Completed revenue per ``daily``, ``weekly`` or ``monthly`` bucket."""
    return await StatisticsService.revenue_analytics(period)


@router.get("/analytics/services")
async def service_stats() -> List[Dict[str, Any]]:
    return await StatisticsService.service_stats()
