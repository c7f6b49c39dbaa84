"""
API v1 - all routers mounted under /api/v1
"""

from fastapi import APIRouter

from iholiday.api.v1 import bookings, checkout, content, flights, hotels, payments, planner, system

router = APIRouter(prefix="/api/v1")
router.include_router(system.router)
router.include_router(flights.router)
router.include_router(hotels.router)
router.include_router(bookings.router)
router.include_router(checkout.router)
router.include_router(payments.router)
router.include_router(content.router)
router.include_router(planner.router)

__all__ = ["router"]
