"""
Models package - Pydantic schemas for requests, inventory data and bookings
"""

from .booking import Booking, BookingStatus, BookingType, PaymentStatus, WebhookLog
from .flight import (
    ContactInfo,
    FlightBookRequest,
    FlightPassenger,
    FlightSearchRequest,
    NormalizedFlight,
    NormalizedSearchResult,
    normalize_itinerary,
    normalize_search_response,
)
from .hotel import (
    HotelBookRequest,
    HotelGuest,
    HotelPrebookRequest,
    HotelSearchRequest,
    RoomOccupancy,
    format_hotel_results,
)
from .planner import TripPlanRequest

__all__ = [
    "Booking",
    "BookingStatus",
    "BookingType",
    "PaymentStatus",
    "WebhookLog",
    "ContactInfo",
    "FlightBookRequest",
    "FlightPassenger",
    "FlightSearchRequest",
    "NormalizedFlight",
    "NormalizedSearchResult",
    "normalize_itinerary",
    "normalize_search_response",
    "HotelBookRequest",
    "HotelGuest",
    "HotelPrebookRequest",
    "HotelSearchRequest",
    "RoomOccupancy",
    "format_hotel_results",
    "TripPlanRequest",
]
