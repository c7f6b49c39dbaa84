"""
Trip planner endpoint
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from iholiday.core.responses import success
from iholiday.models.planner import TripPlanRequest
from iholiday.services.planner import TripPlannerService, get_planner_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/trip-planner", tags=["Trip Planner"])


@router.post("/itinerary", summary="Generate a day-by-day itinerary")
async def generate_itinerary(
    request: TripPlanRequest,
    planner: TripPlannerService = Depends(get_planner_service),
) -> Dict[str, Any]:
    """
    Generate an itinerary with Gemini

    **Request Body:**
    - `prompt` or `destination` (at least one)
    - `days`: 1-14
    - `startDate`, `budget`, `currency`, `interests`: optional

    **Returns:** the itinerary plus the traveler profile. `source` is
    `fallback` (with a `note`) when the AI planner is unavailable.
    """
    result = planner.generate_itinerary(request)
    logger.info("Itinerary served from %s", result["source"])
    return success(result)
