"""
Top-level router for version 1 of the API.

Aggregates the domain routers under their prefixes.  ``main`` mounts
this router under ``/api``; the websocket router in ``realtime`` is
mounted separately at the application root.
"""

from fastapi import APIRouter

from .endpoints import admin, bookings, reports, services, skills, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(skills.router, prefix="/skills", tags=["skills"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
