"""
Booking Workflow - Turns wizard selections into inventory bookings and
fulfils them (ticket / voucher) once payment is captured
"""

import logging
from typing import Any, Dict, Optional

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError, ExpiredError, NotFoundError
from iholiday.models.booking import Booking, BookingStatus, BookingType, PaymentStatus
from iholiday.models.flight import FlightBookRequest, normalize_itinerary, to_tbo_passenger
from iholiday.models.hotel import (
    HotelBookRequest,
    HotelPrebookRequest,
    assign_lead_guest,
    to_tbo_guest,
    validate_guests_for_rooms,
)
from iholiday.services.air import TboAirClient, get_air_client
from iholiday.services.booking_session import FlightBookingSession, HotelBookingSession
from iholiday.services.hotels import TboHotelClient, get_hotel_client
from iholiday.services.pricing import apply_markup, to_minor_units
from iholiday.services.store import BookingStore, get_store
from iholiday.services.tbo import InventoryAPIError, unwrap

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = {"processed", "approved", "cancelled", "completed", "4"}


def _ticket_number(ticket_response: Dict[str, Any]) -> Optional[str]:
    passengers = (ticket_response.get("FlightItinerary") or {}).get("Passenger") or []
    for passenger in passengers:
        number = (passenger.get("Ticket") or {}).get("TicketNumber")
        if number:
            return str(number)
    return None


class BookingWorkflowService:
    """
    Orchestrates bookings across the store and inventory clients

    Flight: book (hold PNR) -> payment -> ticket
    Hotel:  prebook -> book -> payment -> voucher
    """

    def __init__(
        self,
        settings: Settings,
        store: BookingStore,
        air: TboAirClient,
        hotels: TboHotelClient,
    ):
        self.settings = settings
        self.store = store
        self.air = air
        self.hotels = hotels

    # Flights

    def create_flight_booking(
        self,
        request: FlightBookRequest,
        session: Optional[FlightBookingSession] = None,
    ) -> Booking:
        """
        Hold a PNR for the selected itinerary and create an on_hold booking

        The total comes from the wizard price when a matching session is
        given, otherwise from a fresh fare quote.
        """
        if session is not None:
            if session.selected_outbound is None or session.selected_outbound.result_index != request.result_index:
                raise BookingFlowError("Booking does not match the selected flight")
            if session.search is not None:
                for passenger in request.passengers:
                    try:
                        passenger.check_age(session.search.first_travel_date)
                    except ValueError as e:
                        raise BookingFlowError(str(e))

        quoted, response = self._hold(request.trace_id, request.result_index, request)
        pnr = response.get("PNR")
        booking_ref = response.get("BookingId")

        flight_meta: Dict[str, Any] = {
            "traceId": request.trace_id,
            "resultIndex": request.result_index,
            "tripType": session.trip_type if session else "O",
            "booking": response,
        }
        # Domestic round trips come back as two separately bookable results
        inbound = session.selected_return if session is not None else None
        if inbound is not None and inbound.result_index != request.result_index:
            try:
                _, return_response = self._hold(request.trace_id, inbound.result_index, request)
            except (InventoryAPIError, BookingFlowError):
                self._release_hold(booking_ref, pnr)
                raise
            flight_meta["returnBooking"] = {
                "resultIndex": inbound.result_index,
                "pnr": return_response.get("PNR"),
                "bookingId": return_response.get("BookingId"),
                "booking": return_response,
            }

        if session is not None:
            price = session.price()
            total, currency = price.total, price.currency
            flights = [f.model_dump(by_alias=True) for f in session.selected_flights()]
        else:
            normalized = normalize_itinerary(self._with_markup(quoted), request.trace_id) if quoted else None
            total = normalized.fare.offered_fare if normalized else 0
            currency = normalized.fare.currency if normalized else self.settings.default_currency
            flights = [normalized.model_dump(by_alias=True)] if normalized else []

        booking = Booking(
            type=BookingType.FLIGHT,
            status=BookingStatus.ON_HOLD,
            pnr=pnr,
            booking_id_ext=str(booking_ref) if booking_ref is not None else None,
            total_price=total,
            currency=currency,
            contact_email=request.contact_info.email,
            contact_phone=request.contact_info.phone,
            travelers=[p.model_dump(mode="json", by_alias=True) for p in request.passengers],
            itinerary={
                "flights": flights,
                "cabinClass": session.search.cabin_class if session and session.search else None,
            },
            session_id=session.id if session else request.session_id,
            meta={"flight": flight_meta},
        )
        self.store.save_booking(booking)
        logger.info("Flight booking %s created (PNR %s)", booking.id, pnr)

        if session is not None:
            session.mark_booked(booking.id)
        return booking

    def _hold(self, trace_id: str, result_index: str, request: FlightBookRequest):
        """Fare quote then book one result; returns (quoted result, booking response)"""
        quote = unwrap(self.air.fare_quote(trace_id, result_index))
        quoted = quote.get("Results") or {}
        if quote.get("IsPriceChanged"):
            logger.warning("Fare changed for %s before booking", result_index)
        fare = quoted.get("Fare")

        passengers = [
            to_tbo_passenger(p, request.contact_info, fare=fare, is_lead=(index == 0))
            for index, p in enumerate(request.passengers)
        ]
        response = unwrap(self.air.book(trace_id, result_index, passengers))
        if not response.get("PNR") and not response.get("BookingId"):
            raise InventoryAPIError("Booking response did not include a PNR or booking id", payload=response)
        return quoted, response

    def _release_hold(self, booking_ref: Any, pnr: Optional[str]) -> None:
        """Give back an outbound hold when the rest of the booking failed"""
        if booking_ref is None:
            logger.error("Cannot release PNR %s: no inventory booking id", pnr)
            return
        try:
            unwrap(self.air.release_pnr(str(booking_ref)))
        except InventoryAPIError as e:
            logger.error("Releasing PNR %s (booking %s) failed: %s", pnr, booking_ref, str(e))
            return
        logger.info("Released PNR %s (booking %s)", pnr, booking_ref)

    def _with_markup(self, result: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of a quoted result with the flight markup on its fares, as search shows them"""
        pct = self.settings.flight_markup_pct
        fare = result.get("Fare")
        if pct <= 0 or not fare:
            return result
        priced = dict(fare)
        for key in ("OfferedFare", "PublishedFare"):
            if priced.get(key) is not None:
                priced[key] = apply_markup(float(priced[key]), pct)
        return {**result, "Fare": priced}

    def issue_flight_ticket(self, booking: Booking) -> Dict[str, Any]:
        """
        Ticket a held PNR and, for split round trips, the return PNR

        Legs already ticketed are kept, so a retry after a failure only
        tickets what is still missing.
        """
        if booking.type != BookingType.FLIGHT:
            raise BookingFlowError("Only flight bookings can be ticketed")
        flight_meta = booking.meta_section("flight")
        return_booking = flight_meta.get("returnBooking")
        if flight_meta.get("ticket") and (not return_booking or return_booking.get("ticket")):
            logger.info("Booking %s already ticketed", booking.id)
            return flight_meta["ticket"]

        if not flight_meta.get("ticket"):
            if not booking.booking_id_ext and not booking.pnr:
                raise BookingFlowError("Booking has no inventory booking id or PNR")
            response = unwrap(self.air.ticket(booking.booking_id_ext, booking.pnr, flight_meta.get("traceId")))
            flight_meta["ticket"] = response
            flight_meta["ticketNumber"] = _ticket_number(response)
            booking.pnr = response.get("PNR") or booking.pnr
            self.store.save_booking(booking)

        if return_booking and not return_booking.get("ticket"):
            return_ticket = unwrap(self.air.ticket(
                return_booking.get("bookingId"), return_booking.get("pnr"), flight_meta.get("traceId"),
            ))
            return_booking["ticket"] = return_ticket
            return_booking["ticketNumber"] = _ticket_number(return_ticket)

        booking.status = BookingStatus.CONFIRMED
        self.store.save_booking(booking)
        logger.info("Booking %s ticketed (PNR %s)", booking.id, booking.pnr)
        return flight_meta["ticket"]

    # Hotels

    def prebook_hotel(
        self,
        request: HotelPrebookRequest,
        session: Optional[HotelBookingSession] = None,
    ) -> Dict[str, Any]:
        """Verify the rate and keep it for prebook_ttl_minutes"""
        booking_code = request.booking_code
        if session is not None:
            if session.selected_room is None:
                raise BookingFlowError("Select a room before verifying the price")
            booking_code = session.selected_room.get("booking_code") or booking_code

        response = unwrap(self.hotels.prebook(booking_code))
        hotel = session.selected_hotel if session else None
        prebook = self.store.create_prebook({
            "bookingCode": booking_code,
            "traceId": request.trace_id or (session.trace_id if session else None),
            "hotelCode": request.hotel_code or (hotel or {}).get("hotelCode"),
            "hotelName": request.hotel_name or (hotel or {}).get("hotelName"),
            "roomTypeName": (session.selected_room or {}).get("room_type_name") if session else None,
            "verifiedTotal": float(response.get("TotalFare") or 0),
            "taxes": float(response.get("Taxes") or 0),
            "netAmount": float(response.get("NetAmount") or response.get("TotalFare") or 0),
            "currency": response.get("Currency") or self.settings.default_currency,
            "policies": {
                "cancellation": response.get("CancellationPolicy"),
                "isPriceChanged": bool(response.get("IsPriceChanged")),
                "isPolicyChanged": bool(response.get("IsPolicyChanged")),
            },
            "constraints": {
                "isPanRequired": bool(response.get("IsPanRequired")),
                "isPassportRequired": bool(response.get("IsPassportRequired")),
            },
            "sessionId": session.id if session else request.session_id,
        }, self.settings.prebook_ttl_minutes)

        if session is not None:
            session.set_prebook(prebook)
        logger.info("Hotel prebook %s verified total %s", prebook["id"], prebook["verifiedTotal"])
        return prebook

    def create_hotel_booking(
        self,
        request: HotelBookRequest,
        session: Optional[HotelBookingSession] = None,
    ) -> Booking:
        """
        Book a verified prebook

        Raises:
            ExpiredError: If the prebook expired or was already used
        """
        prebook = self.store.get_prebook(request.prebook_id)

        try:
            if session is not None and session.search is not None:
                guests = validate_guests_for_rooms(list(request.guests), session.search.rooms)
            else:
                guests = assign_lead_guest(list(request.guests))
        except ValueError as e:
            raise BookingFlowError(str(e))

        constraints = prebook.get("constraints") or {}
        if constraints.get("isPanRequired") and not any(g.pan for g in guests if g.is_lead_passenger):
            raise BookingFlowError("PAN is required for the lead guest")
        if constraints.get("isPassportRequired") and not all(g.passport_no for g in guests):
            raise BookingFlowError("Passport numbers are required for all guests")

        nationality = session.search.nationality if session and session.search else "IN"
        response = unwrap(self.hotels.book(
            booking_code=prebook["bookingCode"],
            net_amount=prebook["netAmount"],
            passengers=[to_tbo_guest(g, request.contact) for g in guests],
            nationality=nationality,
            is_voucher_booking=request.is_voucher_booking,
        ))

        vouchered = request.is_voucher_booking
        itinerary: Dict[str, Any] = {
            "hotelCode": prebook.get("hotelCode"),
            "hotelName": prebook.get("hotelName"),
            "roomTypeName": prebook.get("roomTypeName"),
            "cancellationPolicy": (prebook.get("policies") or {}).get("cancellation"),
        }
        if session is not None and session.search is not None:
            itinerary.update({
                "cityName": session.search.city_name,
                "address": (session.selected_hotel or {}).get("address"),
                "checkIn": session.search.check_in.isoformat(),
                "checkOut": session.search.check_out.isoformat(),
                "nights": session.search.nights,
                "rooms": len(session.search.rooms),
            })

        booking = Booking(
            type=BookingType.HOTEL,
            status=BookingStatus.CONFIRMED if vouchered else BookingStatus.ON_HOLD,
            booking_id_ext=str(response.get("BookingId")) if response.get("BookingId") else None,
            confirmation_no=response.get("ConfirmationNo"),
            total_price=prebook["verifiedTotal"],
            currency=prebook.get("currency") or self.settings.default_currency,
            contact_email=request.contact.email,
            contact_phone=request.contact.phone,
            travelers=[g.model_dump(by_alias=True) for g in guests],
            itinerary=itinerary,
            is_vouchered=vouchered,
            session_id=session.id if session else request.session_id,
            meta={"hotel": {
                "prebookId": prebook["id"],
                "booking": response,
                "billing": request.billing.model_dump(by_alias=True) if request.billing else None,
            }},
        )
        self.store.save_booking(booking)
        self.store.update_prebook(prebook["id"], status="completed", bookingId=booking.id)
        logger.info("Hotel booking %s created (confirmation %s)", booking.id, booking.confirmation_no)

        if session is not None:
            session.mark_booked(booking.id)
        return booking

    def issue_hotel_voucher(self, booking: Booking) -> Dict[str, Any]:
        """Generate the hotel voucher; returns the stored one when already issued"""
        if booking.type != BookingType.HOTEL:
            raise BookingFlowError("Only hotel bookings can be vouchered")
        hotel_meta = booking.meta_section("hotel")
        if hotel_meta.get("voucher"):
            logger.info("Booking %s already vouchered", booking.id)
            return hotel_meta["voucher"]
        if not booking.booking_id_ext and not booking.confirmation_no:
            raise BookingFlowError("Booking has no inventory booking id or confirmation number")

        response = unwrap(self.hotels.generate_voucher(booking.booking_id_ext or booking.confirmation_no))
        hotel_meta["voucher"] = response
        booking.is_vouchered = True
        booking.status = BookingStatus.CONFIRMED
        self.store.save_booking(booking)
        logger.info("Booking %s vouchered", booking.id)
        return response

    def cancel_hotel_booking(self, booking: Booking, remarks: Optional[str] = None) -> Dict[str, Any]:
        if booking.type != BookingType.HOTEL:
            raise BookingFlowError("Only hotel bookings can be cancelled here")
        if booking.status == BookingStatus.CANCELLED:
            raise BookingFlowError("Booking is already cancelled")
        if not booking.booking_id_ext:
            raise BookingFlowError("Booking has no inventory booking id")

        response = unwrap(self.hotels.send_cancel(booking.booking_id_ext, remarks or "Cancelled by customer"))
        cancellation = {
            "changeRequestId": str(response.get("ChangeRequestId")),
            "status": "pending",
            "requestedAt": self.store.utcnow().isoformat(),
        }
        booking.meta_section("hotel")["cancellation"] = cancellation
        self.store.save_booking(booking)
        logger.info("Cancellation %s requested for booking %s", cancellation["changeRequestId"], booking.id)
        return cancellation

    def hotel_cancel_status(self, change_request_id: str) -> Dict[str, Any]:
        response = unwrap(self.hotels.cancel_status(change_request_id))
        status = str(response.get("ChangeRequestStatus", "")).lower()

        booking = next(
            (b for b in self.store.list_bookings(BookingType.HOTEL)
             if (b.meta.get("hotel") or {}).get("cancellation", {}).get("changeRequestId") == str(change_request_id)),
            None,
        )
        result = {
            "changeRequestId": change_request_id,
            "status": status or "unknown",
            "refundedAmount": response.get("RefundedAmount"),
            "cancellationCharge": response.get("CancellationCharge"),
            "bookingId": booking.id if booking else None,
        }
        if booking is not None:
            cancellation = booking.meta["hotel"]["cancellation"]
            cancellation.update({k: v for k, v in result.items() if k != "bookingId"})
            if status in CANCELLED_STATUSES:
                booking.status = BookingStatus.CANCELLED
            self.store.save_booking(booking)
        return result

    # Payment hand-off

    def fulfil(self, booking: Booking) -> Optional[Dict[str, Any]]:
        """
        Ticket or voucher a paid booking

        Inventory failures leave the booking paid (manual follow-up) and are
        recorded in meta["fulfilmentError"].
        """
        try:
            if booking.type == BookingType.FLIGHT:
                result = self.issue_flight_ticket(booking)
            else:
                result = self.issue_hotel_voucher(booking)
        except (InventoryAPIError, BookingFlowError) as e:
            logger.error("Fulfilment failed for booking %s: %s", booking.id, str(e))
            booking.meta["fulfilmentError"] = str(e)
            self.store.save_booking(booking)
            return None
        booking.meta.pop("fulfilmentError", None)
        self.confirm_session(booking)
        return result

    def confirm_session(self, booking: Booking) -> None:
        if not booking.session_id:
            return
        try:
            session = self.store.get_session(booking.session_id)
        except (NotFoundError, ExpiredError):
            logger.info("Session %s for booking %s is gone, nothing to confirm", booking.session_id, booking.id)
            return
        if session.is_complete:
            return
        if isinstance(session, FlightBookingSession):
            ticket_number = booking.meta.get("flight", {}).get("ticketNumber")
            session.set_confirmation(booking.pnr, booking.id, ticket_number)
        elif isinstance(session, HotelBookingSession):
            session.set_confirmation(booking.id, booking.confirmation_no)

    def record_payment(
        self,
        booking: Booking,
        payment_id: str,
        order_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        amount_minor: Optional[int] = None,
    ) -> Booking:
        """
        Mark a booking paid and fulfil it; a repeat for the same payment is a no-op

        Args:
            amount_minor: Captured amount in paise/cents; must equal the booking total

        Raises:
            BookingFlowError: For a cancelled booking or a captured amount that
                              does not cover the booking total
        """
        if booking.payment_status == PaymentStatus.PAID and booking.razorpay_payment_id == payment_id:
            return booking
        if booking.status == BookingStatus.CANCELLED:
            raise BookingFlowError("Cannot take payment for a cancelled booking")
        expected = to_minor_units(booking.total_price)
        if amount_minor is not None and int(amount_minor) != expected:
            logger.warning("Payment %s for booking %s captured %s, expected %s",
                           payment_id, booking.id, amount_minor, expected)
            raise BookingFlowError(
                f"Paid amount {amount_minor} does not match booking total {expected} for booking {booking.id}"
            )

        booking.payment_status = PaymentStatus.PAID
        booking.status = BookingStatus.PAID
        booking.razorpay_payment_id = payment_id
        if order_id:
            booking.razorpay_order_id = order_id
        booking.meta["payment"] = details or {"payment_id": payment_id, "order_id": order_id}
        self.store.save_booking(booking)
        logger.info("Booking %s paid (payment %s)", booking.id, payment_id)

        self.fulfil(booking)
        return booking

    def record_payment_failed(
        self,
        booking: Booking,
        error_code: Optional[str],
        description: Optional[str],
        payment_id: Optional[str] = None,
    ) -> Booking:
        """Mark the booking failed; on a paid booking the attempt is only logged in meta"""
        attempt = {"payment_id": payment_id, "code": error_code, "description": description}
        if booking.payment_status == PaymentStatus.PAID:
            booking.meta.setdefault("failed_attempts", []).append(attempt)
            self.store.save_booking(booking)
            logger.info("Ignoring failed attempt %s on paid booking %s", payment_id, booking.id)
            return booking

        booking.payment_status = PaymentStatus.FAILED
        booking.status = BookingStatus.FAILED
        booking.meta["payment_error"] = {"code": error_code, "description": description}
        self.store.save_booking(booking)
        logger.warning("Payment failed for booking %s: %s", booking.id, description)
        return booking

    def record_refund(self, booking: Booking, refund: Dict[str, Any]) -> Booking:
        booking.payment_status = PaymentStatus.REFUNDED
        booking.status = BookingStatus.CANCELLED
        booking.meta["refund"] = refund
        self.store.save_booking(booking)
        logger.info("Booking %s refunded", booking.id)
        return booking


_service_instance: Optional[BookingWorkflowService] = None


def get_workflow_service() -> BookingWorkflowService:
    """Get singleton workflow service"""
    global _service_instance
    if _service_instance is None:
        _service_instance = BookingWorkflowService(
            get_settings(), get_store(), get_air_client(), get_hotel_client()
        )
    return _service_instance


def reset_workflow_service() -> None:
    global _service_instance
    _service_instance = None
