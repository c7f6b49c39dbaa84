"""
Hotel endpoints - reference lists, search, prebook, booking, vouchers and cancellation
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError
from iholiday.core.responses import paginate, success
from iholiday.models.booking import BookingType
from iholiday.models.hotel import HotelBookRequest, HotelPrebookRequest, HotelSearchRequest, format_hotel_results
from iholiday.models.request import BookingLookupRequest, CreateOrderRequest, HotelCancelRequest, HotelVoucherRequest
from iholiday.services.booking_session import HotelBookingSession
from iholiday.services.hotels import TboHotelClient, get_hotel_client
from iholiday.services.razorpay import RazorpayClient, get_razorpay_client
from iholiday.services.store import BookingStore, get_store
from iholiday.services.tbo import InventoryAPIError, unwrap
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service

from iholiday.api.v1.checkout import load_session, save_session
from iholiday.api.v1.payments import create_payment_order

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/hotels", tags=["Hotels"])


@router.get("/countries", summary="Countries with hotel inventory")
async def countries(hotels: TboHotelClient = Depends(get_hotel_client)) -> Dict[str, Any]:
    items = hotels.country_list()
    return success(items, {"count": len(items)})


@router.get("/cities", summary="Cities of a country")
async def cities(
    country: str = Query(..., description="ISO 3166-1 alpha-2 country code"),
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    if len(country.strip()) != 2:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="country must be a 2-letter code",
        )
    items = hotels.city_list(country.strip())
    return success(items, {"country": country.strip().upper(), "count": len(items)})


@router.get("/hotel-codes", summary="Hotel codes of a city")
async def hotel_codes(
    city: str = Query(..., min_length=1, description="Inventory city code"),
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    codes = hotels.hotel_codes(city)
    return success(codes, {"city": city, "count": len(codes)})


@router.post("/search", summary="Search hotels")
async def search_hotels(
    request: HotelSearchRequest,
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    """
    Search hotels in a city and page through the formatted results

    Results are filtered by maxPrice (lead rate) when given.
    """
    try:
        response = unwrap(hotels.search(request))
    except InventoryAPIError as e:
        logger.error("Hotel search failed: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Hotel inventory unavailable: {str(e)}",
        )

    results = format_hotel_results(response)
    if request.max_price:
        results = [
            r for r in results
            if r["leadRate"] is None or r["leadRate"]["total_fare"] <= request.max_price
        ]
    return paginate(results, request.page, request.page_size, {
        "traceId": response.get("TraceId"),
        "nights": request.nights,
    })


@router.post("/prebook", summary="Verify price and policies of a room rate")
async def prebook(
    request: HotelPrebookRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    session = None
    if request.session_id:
        session = load_session(store, request.session_id, HotelBookingSession)
    result = workflow.prebook_hotel(request, session)
    if session is not None:
        save_session(store, settings, session)
    return success(result)


@router.post("/book", summary="Book a verified room")
async def book_hotel(
    request: HotelBookRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    session = None
    if request.session_id:
        session = load_session(store, request.session_id, HotelBookingSession)
        if session.booking_id:
            raise BookingFlowError(f"Session already has booking {session.booking_id}")
        session.set_guests(request.guests)
        session.set_contact(request.contact)

    booking = workflow.create_hotel_booking(request, session)
    if session is not None:
        if booking.is_vouchered:
            session.set_confirmation(booking.id, booking.confirmation_no)
        save_session(store, settings, session)
    return success(booking.to_public())


@router.post("/voucher", summary="Generate the hotel voucher")
async def voucher(
    request: HotelVoucherRequest,
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    booking = store.get_booking(request.booking_id)
    result = workflow.issue_hotel_voucher(booking)
    return success({"booking": booking.to_public(), "voucher": result})


@router.get("/booking/{booking_id}", summary="Get a hotel booking")
async def get_hotel_booking(
    booking_id: str,
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    booking = store.get_booking(booking_id)
    if booking.type != BookingType.HOTEL:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Hotel booking {booking_id} not found")
    return success(booking.to_public())


@router.post("/booking-detail", summary="Inventory booking details")
async def booking_detail(
    request: BookingLookupRequest,
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    if not request.booking_id and not request.confirmation_no:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="bookingId or confirmationNo is required",
        )
    return success(unwrap(hotels.booking_detail(request.booking_id, request.confirmation_no)))


@router.post("/cancel", summary="Request a hotel cancellation")
async def cancel(
    request: HotelCancelRequest,
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    booking = store.get_booking(request.booking_id)
    return success(workflow.cancel_hotel_booking(booking, request.remarks))


@router.get("/cancel-status/{change_request_id}", summary="Poll a hotel cancellation")
async def cancel_status(
    change_request_id: str,
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    return success(workflow.hotel_cancel_status(change_request_id))


@router.post("/payment/create-order", summary="Create a Razorpay order for a hotel booking")
async def create_hotel_order(
    request: CreateOrderRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    razorpay: RazorpayClient = Depends(get_razorpay_client),
) -> Dict[str, Any]:
    return success(create_payment_order(request, settings, store, razorpay))
