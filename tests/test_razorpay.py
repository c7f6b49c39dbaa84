"""
Razorpay orders, checkout signatures and webhook processing
"""

import hashlib
import hmac
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from iholiday.models.booking import BookingStatus, PaymentStatus
from iholiday.models.flight import ContactInfo, FlightBookRequest, FlightPassenger
from iholiday.services.razorpay import (
    PaymentGatewayError,
    RazorpayClient,
    WebhookError,
    get_razorpay_client,
    get_webhook_handler,
    verify_webhook_signature,
)
from iholiday.services.store import get_store
from iholiday.services.workflow import get_workflow_service

from tests.conftest import KEY_SECRET, WEBHOOK_SECRET


def _sign(message: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def _event(event, booking_id, payment_id="pay_ABC123", **entity):
    body = {
        "event": event,
        "payload": {"payment": {"entity": {
            "id": payment_id,
            "order_id": "order_XYZ",
            "amount": 465000,
            "currency": "INR",
            "method": "upi",
            "notes": {"booking_id": booking_id} if booking_id else {},
            **entity,
        }}},
    }
    raw = json.dumps(body).encode()
    return raw, _sign(raw, WEBHOOK_SECRET)


@pytest.fixture
def booking(adult, contact):
    return get_workflow_service().create_flight_booking(FlightBookRequest(
        result_index="OB11",
        trace_id="TRACE-1",
        passengers=[FlightPassenger(**adult)],
        contact_info=ContactInfo(**contact),
    ))


def test_mock_order_without_key_id():
    order = get_razorpay_client().create_order(4650, "inr", "IH123")

    assert order["order_id"].startswith("order_MOCK")
    assert order["amount"] == 465000
    assert order["currency"] == "INR"


def test_order_amount_must_be_positive():
    with pytest.raises(PaymentGatewayError) as exc_info:
        get_razorpay_client().create_order(0.5, "INR", "IH123")
    assert exc_info.value.status_code == 400


def test_unconfigured_live_gateway_is_unavailable(settings):
    client = RazorpayClient(settings.model_copy(update={"use_mock": False}))
    with pytest.raises(PaymentGatewayError) as exc_info:
        client.create_order(100, "INR", "IH123")
    assert exc_info.value.status_code == 503


def test_live_order_posts_minor_units(settings):
    client = RazorpayClient(settings.model_copy(update={"razorpay_key_id": "rzp_test_key"}))
    response = MagicMock()
    response.json.return_value = {"id": "order_LIVE1", "amount": 123450, "currency": "INR"}

    with patch("iholiday.services.razorpay.requests.post", return_value=response) as post:
        order = client.create_order(1234.5, "INR", "IH123", {"booking_id": "IH123"})

    assert order == {"order_id": "order_LIVE1", "amount": 123450, "currency": "INR", "key_id": "rzp_test_key"}
    assert post.call_args.kwargs["json"]["amount"] == 123450
    assert post.call_args.kwargs["auth"] == ("rzp_test_key", KEY_SECRET)


def test_live_order_http_error(settings):
    client = RazorpayClient(settings.model_copy(update={"razorpay_key_id": "rzp_test_key"}))
    response = MagicMock()
    response.status_code = 401
    response.text = "unauthorized"
    response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)

    with patch("iholiday.services.razorpay.requests.post", return_value=response):
        with pytest.raises(PaymentGatewayError, match="401"):
            client.create_order(100, "INR", "IH123")


def test_checkout_signature():
    client = get_razorpay_client()
    signature = _sign(b"order_1|pay_1", KEY_SECRET)

    assert client.verify_payment_signature("order_1", "pay_1", signature)
    assert not client.verify_payment_signature("order_1", "pay_2", signature)
    assert not client.verify_payment_signature("order_1", "pay_1", "")


def test_webhook_signature_helper():
    raw = b'{"event": "payment.captured"}'
    assert verify_webhook_signature(raw, _sign(raw, "s3cret"), "s3cret")
    assert not verify_webhook_signature(raw, _sign(raw, "other"), "s3cret")
    assert not verify_webhook_signature(raw, None, "s3cret")


def test_webhook_without_signature_is_rejected():
    with pytest.raises(WebhookError) as exc_info:
        get_webhook_handler().handle(b"{}", None)
    assert exc_info.value.status_code == 400


def test_webhook_with_bad_signature_is_unauthorized(booking):
    raw, _ = _event("payment.captured", booking.id)
    with pytest.raises(WebhookError) as exc_info:
        get_webhook_handler().handle(raw, "deadbeef")
    assert exc_info.value.status_code == 401


def test_captured_webhook_pays_and_tickets(booking):
    raw, signature = _event("payment.captured", booking.id)

    result = get_webhook_handler().handle(raw, signature)

    assert result["duplicate"] is False
    assert result["message"] == "Payment captured"
    assert booking.payment_status == PaymentStatus.PAID
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.meta["payment"]["method"] == "upi"
    assert get_store().get_webhook_log("pay_ABC123", "payment.captured").status == "processed"


def test_duplicate_webhook_is_acknowledged(booking):
    raw, signature = _event("payment.captured", booking.id)
    handler = get_webhook_handler()
    handler.handle(raw, signature)

    result = handler.handle(raw, signature)
    assert result["duplicate"] is True
    assert result["bookingId"] == booking.id


def test_failed_webhook_marks_booking_failed(booking):
    raw, signature = _event("payment.failed", booking.id,
                            error_code="BAD_REQUEST_ERROR", error_description="Payment declined")
    get_webhook_handler().handle(raw, signature)

    assert booking.status == BookingStatus.FAILED
    assert booking.meta["payment_error"]["description"] == "Payment declined"

def test_captured_webhook_for_wrong_amount_fails_processing(booking):
    raw, signature = _event("payment.captured", booking.id, amount=100)

    with pytest.raises(WebhookError) as exc_info:
        get_webhook_handler().handle(raw, signature)

    assert exc_info.value.status_code == 500
    assert booking.payment_status == PaymentStatus.UNPAID
    assert get_store().get_webhook_log("pay_ABC123", "payment.captured").status == "failed"


def test_late_failed_webhook_keeps_paid_booking(booking):
    handler = get_webhook_handler()
    handler.handle(*_event("payment.captured", booking.id, payment_id="pay_OK"))

    raw, signature = _event("payment.failed", booking.id, payment_id="pay_EARLIER",
                            error_code="BAD_REQUEST_ERROR", error_description="Payment declined")
    handler.handle(raw, signature)

    assert booking.payment_status == PaymentStatus.PAID
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.meta["failed_attempts"][0]["payment_id"] == "pay_EARLIER"


def test_refunded_webhook_cancels_booking(booking):
    raw, signature = _event("payment.refunded", booking.id, amount_refunded=465000, refund_status="full")
    get_webhook_handler().handle(raw, signature)

    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.status == BookingStatus.CANCELLED


def test_unknown_booking_fails_processing():
    raw, signature = _event("payment.captured", "IHNOTEXIST")
    with pytest.raises(WebhookError) as exc_info:
        get_webhook_handler().handle(raw, signature)

    assert exc_info.value.status_code == 500
    log = get_store().get_webhook_log("pay_ABC123", "payment.captured")
    assert log.status == "failed"


def test_unhandled_event_is_logged():
    raw, signature = _event("order.paid", None)
    result = get_webhook_handler().handle(raw, signature)
    assert result["message"] == "Event not handled"


def test_webhook_missing_payment_entity():
    raw = json.dumps({"event": "payment.captured", "payload": {}}).encode()
    with pytest.raises(WebhookError) as exc_info:
        get_webhook_handler().handle(raw, _sign(raw, WEBHOOK_SECRET))
    assert exc_info.value.status_code == 400
