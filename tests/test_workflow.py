"""
Booking workflow against the mock inventory: hold, ticket, prebook, book, cancel, pay
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from iholiday.core.errors import BookingFlowError, ExpiredError
from iholiday.models.booking import BookingStatus, BookingType, PaymentStatus
from iholiday.models.flight import ContactInfo, FlightBookRequest, FlightPassenger
from iholiday.models.hotel import HotelBookRequest, HotelGuest, HotelPrebookRequest
from iholiday.services.air import get_air_client
from iholiday.services.hotels import get_hotel_client
from iholiday.services.store import get_store
from iholiday.services.tbo import InventoryAPIError
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service


@pytest.fixture
def workflow():
    return get_workflow_service()


@pytest.fixture
def flight_request(adult, contact):
    return FlightBookRequest(
        result_index="OB11",
        trace_id="TRACE-1",
        passengers=[FlightPassenger(**adult)],
        contact_info=ContactInfo(**contact),
    )


@pytest.fixture
def hotel_booking_request(hotel_guests, contact):
    def build(prebook_id, **extra):
        return HotelBookRequest(
            prebook_id=prebook_id,
            guests=[HotelGuest(**g) for g in hotel_guests],
            contact=ContactInfo(**contact),
            **extra,
        )
    return build


def _prebook(workflow):
    return workflow.prebook_hotel(HotelPrebookRequest(
        booking_code="BC001", hotel_code="HOTEL001", hotel_name="Mock Hotel Dubai",
    ))


def test_flight_booking_is_held_with_quoted_total(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)

    assert booking.type == BookingType.FLIGHT
    assert booking.status == BookingStatus.ON_HOLD
    assert booking.payment_status == PaymentStatus.UNPAID
    assert booking.pnr
    assert booking.booking_id_ext
    assert booking.total_price == Decimal("4650.00")
    assert booking.contact_email == "arjun.mehta@example.com"
    assert get_store().get_booking(booking.id) is booking


def test_ticketing_confirms_once(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)

    first = workflow.issue_flight_ticket(booking)
    second = workflow.issue_flight_ticket(booking)

    assert first is second
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.meta["flight"]["ticketNumber"].startswith("098")


def test_hotel_booking_cannot_be_ticketed(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    booking = workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))
    with pytest.raises(BookingFlowError):
        workflow.issue_flight_ticket(booking)


def test_prebook_keeps_verified_rate(workflow, settings):
    prebook = _prebook(workflow)

    assert prebook["status"] == "verified"
    assert prebook["verifiedTotal"] == 4500.0
    assert prebook["netAmount"] == 4000.0
    assert prebook["hotelName"] == "Mock Hotel Dubai"
    assert prebook["policies"]["cancellation"].startswith("Free cancellation")


def test_hotel_booking_from_prebook(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    booking = workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))

    assert booking.type == BookingType.HOTEL
    assert booking.status == BookingStatus.ON_HOLD
    assert booking.total_price == Decimal("4500.00")
    assert booking.booking_id_ext.startswith("BK")
    assert booking.confirmation_no.startswith("CNF")
    assert booking.travelers[0]["isLeadPassenger"] is True
    assert booking.itinerary["hotelCode"] == "HOTEL001"


def test_prebook_can_only_be_used_once(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))

    with pytest.raises(ExpiredError):
        workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))


def test_expired_prebook_is_rejected(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    get_store().update_prebook(prebook["id"], status="expired")

    with pytest.raises(ExpiredError):
        workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))


def test_pan_required_for_lead_guest(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    get_store().update_prebook(prebook["id"], constraints={"isPanRequired": True})

    with pytest.raises(BookingFlowError, match="PAN"):
        workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))


def test_voucher_booking_is_confirmed_immediately(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    booking = workflow.create_hotel_booking(hotel_booking_request(prebook["id"], is_voucher_booking=True))

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.is_vouchered is True
    assert booking.is_payable


def test_cancel_and_status_marks_booking_cancelled(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    booking = workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))

    cancellation = workflow.cancel_hotel_booking(booking, "Plans changed")
    assert cancellation["status"] == "pending"

    result = workflow.hotel_cancel_status(cancellation["changeRequestId"])
    assert result["status"] == "processed"
    assert result["bookingId"] == booking.id
    assert booking.status == BookingStatus.CANCELLED

    with pytest.raises(BookingFlowError, match="already cancelled"):
        workflow.cancel_hotel_booking(booking)


def test_record_payment_tickets_flight(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)

    workflow.record_payment(booking, "pay_123", "order_123")

    assert booking.payment_status == PaymentStatus.PAID
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.razorpay_order_id == "order_123"
    assert "ticket" in booking.meta["flight"]
    assert "fulfilmentError" not in booking.meta


def test_record_payment_vouchers_hotel(workflow, hotel_booking_request):
    prebook = _prebook(workflow)
    booking = workflow.create_hotel_booking(hotel_booking_request(prebook["id"]))

    workflow.record_payment(booking, "pay_456")

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.is_vouchered is True
    assert booking.meta["hotel"]["voucher"]["VoucherStatus"] == "Generated"


def test_repeat_payment_is_noop(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)
    workflow.record_payment(booking, "pay_123")
    ticket = booking.meta["flight"]["ticket"]

    workflow.record_payment(booking, "pay_123")
    assert booking.meta["flight"]["ticket"] is ticket


def test_cancelled_booking_cannot_be_paid(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)
    booking.status = BookingStatus.CANCELLED

    with pytest.raises(BookingFlowError):
        workflow.record_payment(booking, "pay_789")


def test_fulfilment_error_is_recorded(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)
    booking.booking_id_ext = None
    booking.pnr = None

    workflow.record_payment(booking, "pay_000")

    assert booking.status == BookingStatus.PAID
    assert "PNR" in booking.meta["fulfilmentError"]


def test_failed_and_refunded_payments(workflow, flight_request):
    failed = workflow.create_flight_booking(flight_request)
    workflow.record_payment_failed(failed, "BAD_REQUEST_ERROR", "Card declined")
    assert failed.status == BookingStatus.FAILED
    assert not failed.is_payable

    refunded = workflow.create_flight_booking(flight_request)
    workflow.record_payment(refunded, "pay_1")
    workflow.record_refund(refunded, {"payment_id": "pay_1", "amount_refunded": 465000})
    assert refunded.payment_status == PaymentStatus.REFUNDED
    assert refunded.status == BookingStatus.CANCELLED


def test_direct_booking_total_includes_flight_markup(settings, flight_request):
    workflow = BookingWorkflowService(
        settings.model_copy(update={"flight_markup_pct": 10.0}),
        get_store(), get_air_client(), get_hotel_client(),
    )

    booking = workflow.create_flight_booking(flight_request)

    assert booking.total_price == Decimal("5115.00")
    assert booking.itinerary["flights"][0]["fare"]["offeredFare"] == 5115.0


def test_payment_must_cover_booking_total(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)

    with pytest.raises(BookingFlowError):
        workflow.record_payment(booking, "pay_LOW", amount_minor=100)
    assert booking.payment_status == PaymentStatus.UNPAID
    assert booking.status == BookingStatus.ON_HOLD

    workflow.record_payment(booking, "pay_FULL", amount_minor=465000)
    assert booking.payment_status == PaymentStatus.PAID


def test_late_failure_does_not_undo_payment(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)
    workflow.record_payment(booking, "pay_OK")

    workflow.record_payment_failed(booking, "BAD_REQUEST_ERROR", "Card declined", "pay_EARLIER")

    assert booking.payment_status == PaymentStatus.PAID
    assert booking.status == BookingStatus.CONFIRMED
    assert "payment_error" not in booking.meta
    assert booking.meta["failed_attempts"] == [
        {"payment_id": "pay_EARLIER", "code": "BAD_REQUEST_ERROR", "description": "Card declined"},
    ]


def test_ticket_retry_issues_missing_return_leg(workflow, flight_request):
    booking = workflow.create_flight_booking(flight_request)
    booking.meta["flight"]["returnBooking"] = {"resultIndex": "IB21", "pnr": "RTN123", "bookingId": "2000001"}
    original = workflow.air.ticket
    calls = []

    def ticket(booking_id=None, pnr=None, trace_id=None):
        calls.append(pnr)
        if len(calls) == 2:
            raise InventoryAPIError("Ticketing timed out", status_code=504)
        return original(booking_id, pnr, trace_id)

    with patch.object(workflow.air, "ticket", side_effect=ticket):
        workflow.record_payment(booking, "pay_RT1")
        assert booking.status == BookingStatus.PAID
        assert "Ticketing timed out" in booking.meta["fulfilmentError"]

        workflow.fulfil(booking)

    assert calls == [booking.pnr, "RTN123", "RTN123"]
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.meta["flight"]["returnBooking"]["ticketNumber"].startswith("098")
    assert "fulfilmentError" not in booking.meta
