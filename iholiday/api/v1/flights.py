"""
Flight endpoints - search, pricing, booking and after-sales against the air inventory
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from iholiday.core.errors import BookingFlowError
from iholiday.core.responses import success
from iholiday.models.flight import (
    FlightBookRequest,
    FlightSearchRequest,
    format_tbo_date,
    no_results_payload,
    normalize_itinerary,
    normalize_search_response,
)
from iholiday.models.request import (
    BookingLookupRequest,
    CalendarFareRequest,
    CancellationChargesRequest,
    ChangeRequestRequest,
    ChangeRequestStatusRequest,
    PriceRBDRequest,
    ReleasePNRRequest,
    ResultRequest,
    TicketRequest,
)
from iholiday.services.air import TboAirClient, get_air_client
from iholiday.services.booking_session import FlightBookingSession
from iholiday.services.store import BookingStore, get_store
from iholiday.services.tbo import InventoryAPIError, unwrap
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service

from iholiday.api.v1.checkout import load_session, save_session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/flights", tags=["Flights"])


@router.post("/search", summary="Search flights")
async def search_flights(
    request: FlightSearchRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    """
    Search one-way, round-trip or multi-city flights

    An empty result is not an error: it answers 200 with success=false,
    suggestions and the echoed criteria.
    """
    try:
        raw = air.search(request)
    except InventoryAPIError as e:
        logger.error("Flight search failed: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Flight inventory unavailable: {str(e)}",
        )

    results = normalize_search_response(raw, request.trip_type)
    if results.is_empty:
        logger.info("No flights for %s", request.build_segments())
        return no_results_payload(request, results.trace_id)

    return success(
        {
            "traceId": results.trace_id,
            "tripType": results.trip_type,
            "outbound": [f.model_dump(by_alias=True) for f in results.outbound],
            "inbound": [f.model_dump(by_alias=True) for f in results.inbound],
        },
        {"outboundCount": len(results.outbound), "inboundCount": len(results.inbound)},
    )


@router.post("/fare-quote", summary="Re-price a selected flight")
@router.post("/reprice", include_in_schema=False)
async def fare_quote(
    request: ResultRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.fare_quote(request.trace_id, request.result_index))
    result = response.get("Results") or {}
    return success({
        "isPriceChanged": bool(response.get("IsPriceChanged")),
        "flight": normalize_itinerary(result, request.trace_id).model_dump(by_alias=True) if result else None,
        "raw": result,
    })


@router.post("/fare-rule", summary="Fare rules for a selected flight")
@router.post("/fare-rules", include_in_schema=False)
async def fare_rule(
    request: ResultRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.fare_rule(request.trace_id, request.result_index))
    return success(response.get("FareRules") or [])


@router.post("/ssr", summary="Baggage, meal and seat options")
async def ssr(
    request: ResultRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.ssr(request.trace_id, request.result_index))
    return success({
        "baggage": response.get("Baggage") or [],
        "meals": response.get("MealDynamic") or response.get("Meal") or [],
        "seats": response.get("SeatDynamic") or [],
    })


@router.post("/calendar-fare", summary="Lowest fare per day")
async def calendar_fare(
    request: CalendarFareRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.calendar_fare(
        request.origin, request.destination, format_tbo_date(request.departure_date),
        request.cabin_class, request.trip_type,
    ))
    return success(response.get("SearchResults") or [])


@router.post("/calendar-fare/update", summary="Refresh the calendar fare of one day")
async def update_calendar_fare(
    request: CalendarFareRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.update_calendar_fare_of_day(
        request.origin, request.destination, format_tbo_date(request.departure_date),
        request.cabin_class, request.trip_type,
    ))
    return success(response.get("SearchResults") or [])


@router.post("/price-rbd", summary="Price a specific booking class")
async def price_rbd(
    request: PriceRBDRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    response = unwrap(air.price_rbd(
        request.trace_id, request.air_search_result, request.adults, request.children, request.infants,
    ))
    return success(response)


@router.post("/book", summary="Hold a PNR")
async def book_flight(
    request: FlightBookRequest,
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    """Create an on_hold booking; links the checkout session when sessionId is given"""
    session = None
    if request.session_id:
        session = load_session(store, request.session_id, FlightBookingSession)
        if session.booking_id:
            raise BookingFlowError(f"Session already has booking {session.booking_id}")
        session.set_passengers(request.passengers)
        session.set_contact(request.contact_info)

    booking = workflow.create_flight_booking(request, session)
    if session is not None:
        save_session(store, workflow.settings, session)
    return success(booking.to_public())


@router.post("/ticket", summary="Issue tickets")
async def ticket(
    request: TicketRequest,
    store: BookingStore = Depends(get_store),
    air: TboAirClient = Depends(get_air_client),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    """Ticket a stored booking (idempotent) or a raw inventory booking id / PNR"""
    if request.booking_id:
        booking = store.get_booking(request.booking_id)
        result = workflow.issue_flight_ticket(booking)
        return success({"booking": booking.to_public(), "ticket": result})

    if not request.inventory_booking_id and not request.pnr:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="bookingId, inventoryBookingId or pnr is required",
        )
    return success(unwrap(air.ticket(request.inventory_booking_id, request.pnr, request.trace_id)))


@router.post("/booking-details", summary="Inventory booking details")
async def booking_details(
    request: BookingLookupRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    if not request.booking_id and not request.pnr:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="bookingId or pnr is required",
        )
    return success(unwrap(air.booking_details(request.booking_id, request.pnr)))


@router.post("/change-request", summary="Cancel or change a ticket")
async def change_request(
    request: ChangeRequestRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    logger.info("Change request type %s for booking %s", request.request_type, request.booking_id)
    return success(unwrap(air.send_change_request(request.booking_id, request.request_type, request.remarks)))


@router.post("/change-request-status", summary="Change request status")
async def change_request_status(
    request: ChangeRequestStatusRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    return success(unwrap(air.change_request_status(request.change_request_id)))


@router.post("/release-pnr", summary="Release a held PNR")
async def release_pnr(
    request: ReleasePNRRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    logger.info("Releasing PNR for booking %s", request.booking_id)
    return success(unwrap(air.release_pnr(request.booking_id, request.source)))


@router.post("/cancellation-charges", summary="Cancellation charges for a booking")
async def cancellation_charges(
    request: CancellationChargesRequest,
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    return success(unwrap(air.cancellation_charges(request.booking_id, request.request_type)))
