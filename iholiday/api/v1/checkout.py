"""
Checkout endpoints - server-side booking wizard sessions

Each action mutates the session, refreshes its TTL and returns the full
session state (step, available steps, selections and derived price).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError
from iholiday.core.responses import success
from iholiday.models.flight import ContactInfo, FlightBookRequest, FlightSearchRequest, normalize_search_response
from iholiday.models.hotel import HotelBookRequest, HotelPrebookRequest, HotelSearchRequest, format_hotel_results
from iholiday.models.request import (
    AddonAction,
    GuestsAction,
    HotelBookAction,
    InsuranceAction,
    PassengersAction,
    PromoAction,
    SeatAction,
    SelectFlightAction,
    SelectRoomAction,
    SsrAction,
    StepAction,
)
from iholiday.services.air import TboAirClient, get_air_client
from iholiday.services.booking_session import BookingWizard, FlightBookingSession, HotelBookingSession
from iholiday.services.hotels import TboHotelClient, get_hotel_client
from iholiday.services.store import BookingStore, get_store
from iholiday.services.tbo import unwrap
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkout", tags=["Checkout"])


def load_session(store: BookingStore, session_id: str, kind: Optional[type] = None) -> BookingWizard:
    """Fetch a live wizard session, optionally of a given class"""
    session = store.get_session(session_id)
    if kind is not None and not isinstance(session, kind):
        raise BookingFlowError(f"Session {session_id} is not a {kind.kind} checkout")
    return session


def save_session(store: BookingStore, settings: Settings, session: BookingWizard) -> None:
    store.save_session(session.id, session, settings.session_ttl_minutes * 60)


def _respond(store: BookingStore, settings: Settings, session: BookingWizard,
             extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    save_session(store, settings, session)
    return success(session.to_dict(), extra)


def _move(session: BookingWizard, action: StepAction) -> None:
    if action.action == "next":
        session.next_step()
    elif action.action == "previous":
        session.previous_step()
    else:
        if not action.step:
            raise BookingFlowError("step is required for go_to")
        session.go_to(action.step)


@router.post("/flight", summary="Start a flight checkout session")
async def create_flight_session(
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = FlightBookingSession(
        currency=settings.default_currency,
        insurance_price=settings.insurance_price,
        promo_codes=settings.promo_codes,
    )
    logger.info("Flight checkout session %s started", session.id)
    return _respond(store, settings, session)


@router.post("/hotel", summary="Start a hotel checkout session")
async def create_hotel_session(
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = HotelBookingSession(currency=settings.default_currency)
    logger.info("Hotel checkout session %s started", session.id)
    return _respond(store, settings, session)


@router.get("/{session_id}", summary="Get checkout session state")
async def get_session(
    session_id: str,
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    return success(load_session(store, session_id).to_dict())


# Flight actions

@router.post("/flight/{session_id}/search", summary="Search flights into the session")
async def flight_search(
    session_id: str,
    request: FlightSearchRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    air: TboAirClient = Depends(get_air_client),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    session.set_search(request)
    results = normalize_search_response(air.search(request), request.trip_type)
    session.apply_results(results)
    logger.info("Session %s: %d outbound / %d return results", session.id,
                len(results.outbound), len(results.inbound))
    return _respond(store, settings, session, {
        "outbound": [f.model_dump(by_alias=True) for f in results.outbound],
        "inbound": [f.model_dump(by_alias=True) for f in results.inbound],
    })


@router.post("/flight/{session_id}/select", summary="Select outbound or return flight")
async def flight_select(
    session_id: str,
    action: SelectFlightAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    if action.direction == "return":
        session.select_return(action.result_index)
    else:
        session.select_outbound(action.result_index)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/passengers", summary="Set passengers")
async def flight_passengers(
    session_id: str,
    action: PassengersAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    session.set_passengers(action.passengers)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/contact", summary="Set contact details")
async def flight_contact(
    session_id: str,
    contact: ContactInfo,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    session.set_contact(contact)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/addons", summary="Add or remove an add-on")
async def flight_addons(
    session_id: str,
    action: AddonAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    if action.action == "add":
        if not action.addon:
            raise BookingFlowError("addon is required")
        session.add_addon(action.addon)
    else:
        if action.index is None:
            raise BookingFlowError("index is required")
        session.remove_addon(action.index)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/insurance", summary="Toggle travel insurance")
async def flight_insurance(
    session_id: str,
    action: InsuranceAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    session.set_insurance(action.enabled)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/seats", summary="Select or release a seat")
async def flight_seats(
    session_id: str,
    action: SeatAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    if action.action == "add":
        session.add_seat(action.flight_key, action.seat)
    else:
        session.remove_seat(action.flight_key, action.seat)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/ssr", summary="Update baggage/meal selections")
async def flight_ssr(
    session_id: str,
    action: SsrAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    if action.clear:
        session.clear_ssr()
    else:
        if not action.passenger_id or not action.ssr_id:
            raise BookingFlowError("passengerId and ssrId are required")
        session.update_ssr(action.passenger_id, action.ssr_id, action.value)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/promo", summary="Apply or remove a promo code")
async def flight_promo(
    session_id: str,
    action: PromoAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    if action.code:
        session.apply_promo(action.code)
    else:
        session.remove_promo()
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/step", summary="Move between wizard steps")
async def flight_step(
    session_id: str,
    action: StepAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, FlightBookingSession)
    _move(session, action)
    return _respond(store, settings, session)


@router.post("/flight/{session_id}/book", summary="Hold the PNR for the session")
async def flight_book(
    session_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    """
    Book the selected flights

    Passengers and contact may be sent with the request; otherwise the ones
    already stored on the session are used.
    """
    session = load_session(store, session_id, FlightBookingSession)
    if session.booking_id:
        raise BookingFlowError(f"Session already has booking {session.booking_id}")
    payload = payload or {}
    if payload.get("passengers"):
        session.set_passengers(payload["passengers"])
    if payload.get("contactInfo") or payload.get("contact_info"):
        session.set_contact(payload.get("contactInfo") or payload.get("contact_info"))

    reason = session.unmet_requirement("payment")
    if reason:
        raise BookingFlowError(f"Cannot book: {reason}")

    request = FlightBookRequest(
        result_index=session.selected_outbound.result_index,
        trace_id=session.trace_id,
        passengers=session.passengers,
        contact_info=session.contact,
        session_id=session.id,
    )
    booking = workflow.create_flight_booking(request, session)
    return _respond(store, settings, session, {"booking": booking.to_public()})


# Hotel actions

@router.post("/hotel/{session_id}/search", summary="Search hotels into the session")
async def hotel_search(
    session_id: str,
    request: HotelSearchRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    session.set_search(request)
    response = unwrap(hotels.search(request))
    results = format_hotel_results(response)
    session.apply_results(response.get("TraceId"), results)
    return _respond(store, settings, session, {"hotels": results})


@router.post("/hotel/{session_id}/select", summary="Select a hotel room rate")
async def hotel_select(
    session_id: str,
    action: SelectRoomAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    session.select_room(action.hotel_code, action.booking_code)
    return _respond(store, settings, session)


@router.post("/hotel/{session_id}/guests", summary="Set guests")
async def hotel_guests(
    session_id: str,
    action: GuestsAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    session.set_guests(action.guests)
    return _respond(store, settings, session)


@router.post("/hotel/{session_id}/contact", summary="Set contact details")
async def hotel_contact(
    session_id: str,
    contact: ContactInfo,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    session.set_contact(contact)
    return _respond(store, settings, session)


@router.post("/hotel/{session_id}/prebook", summary="Verify price and policies")
async def hotel_prebook(
    session_id: str,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    if session.selected_room is None:
        raise BookingFlowError("Select a room before verifying the price")
    request = HotelPrebookRequest(
        booking_code=session.selected_room["booking_code"],
        trace_id=session.trace_id,
        session_id=session.id,
    )
    workflow.prebook_hotel(request, session)
    return _respond(store, settings, session)


@router.post("/hotel/{session_id}/step", summary="Move between wizard steps")
async def hotel_step(
    session_id: str,
    action: StepAction,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    _move(session, action)
    return _respond(store, settings, session)


@router.post("/hotel/{session_id}/book", summary="Book the verified room")
async def hotel_book(
    session_id: str,
    action: Optional[HotelBookAction] = None,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    session = load_session(store, session_id, HotelBookingSession)
    if session.booking_id:
        raise BookingFlowError(f"Session already has booking {session.booking_id}")
    reason = session.unmet_requirement("payment")
    if reason:
        raise BookingFlowError(f"Cannot book: {reason}")

    request = HotelBookRequest(
        prebook_id=session.prebook["id"],
        guests=session.guests,
        contact=session.contact,
        is_voucher_booking=bool(action and action.is_voucher_booking),
        session_id=session.id,
    )
    booking = workflow.create_hotel_booking(request, session)
    if booking.is_vouchered:
        session.set_confirmation(booking.id, booking.confirmation_no)
    return _respond(store, settings, session, {"booking": booking.to_public()})
