"""
Report endpoints for the admin reports tab.

``period`` is ``week`` (default), ``month`` or ``year``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from home_services_api.app.core.security import ROLE_ADMIN, require_roles
from home_services_api.app.services.report_service import ReportService

router = APIRouter(dependencies=[Depends(require_roles(ROLE_ADMIN))])


@router.get("/stats")
async def booking_stats(period: str = "week") -> Dict[str, Any]:
    return await ReportService.booking_stats(period)


@router.get("/providers")
async def provider_metrics(period: Optional[str] = None) -> List[Dict[str, Any]]:
    return await ReportService.provider_metrics(period)


@router.get("/services/distribution")
async def service_distribution(period: Optional[str] = None) -> List[Dict[str, Any]]:
    return await ReportService.service_distribution(period)


@router.get("/trends")
async def booking_trends(period: str = "week") -> List[Dict[str, Any]]:
    return await ReportService.booking_trends(period)
