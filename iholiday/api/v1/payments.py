"""
Payment endpoints - Razorpay order creation, checkout verification and webhooks
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError
from iholiday.core.responses import success
from iholiday.models.request import CreateOrderRequest, VerifyPaymentRequest
from iholiday.services.pricing import to_minor_units
from iholiday.services.razorpay import (
    RazorpayClient,
    RazorpayWebhookHandler,
    get_razorpay_client,
    get_webhook_handler,
)
from iholiday.services.store import BookingStore, get_store
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Payments"])


def create_payment_order(
    request: CreateOrderRequest,
    settings: Settings,
    store: BookingStore,
    razorpay: RazorpayClient,
) -> Dict[str, Any]:
    """
    Create an order for a stored booking or a free amount

    With a bookingId the order is always for the booking total and the
    booking id travels in the order notes so webhooks can find it. Free
    amount orders never carry a booking id.
    """
    booking = None
    notes = dict(request.notes)
    notes.pop("booking_id", None)
    if request.booking_id:
        booking = store.get_booking(request.booking_id)
        if not booking.is_payable:
            raise BookingFlowError(f"Booking {booking.id} is not awaiting payment")
        if request.amount is not None and to_minor_units(request.amount) != to_minor_units(booking.total_price):
            logger.warning("Order amount %s rejected for booking %s (total %s)",
                           request.amount, booking.id, booking.total_price)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"amount must equal the booking total {booking.total_price}",
            )
        notes["booking_id"] = booking.id
        notes.setdefault("booking_type", booking.type.value)

    amount = float(booking.total_price) if booking else request.amount
    if amount is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="amount is required when no bookingId is given",
        )
    currency = (booking.currency if booking else None) or request.currency or settings.default_currency
    receipt = request.receipt or (booking.id if booking else f"rcpt_{store.utcnow():%Y%m%d%H%M%S}")

    order = razorpay.create_order(amount, currency, receipt, notes)
    if booking is not None:
        booking.razorpay_order_id = order["order_id"]
        booking.meta["order"] = {"id": order["order_id"], "amount": order["amount"], "currency": order["currency"]}
        store.save_booking(booking)
        logger.info("Order %s attached to booking %s", order["order_id"], booking.id)
    return order


@router.post("/payments/create-order", summary="Create a Razorpay order")
async def create_order(
    request: CreateOrderRequest,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
    razorpay: RazorpayClient = Depends(get_razorpay_client),
) -> Dict[str, Any]:
    return success(create_payment_order(request, settings, store, razorpay))


@router.post("/payments/verify", summary="Verify checkout signature and mark the booking paid")
async def verify_payment(
    request: VerifyPaymentRequest,
    store: BookingStore = Depends(get_store),
    razorpay: RazorpayClient = Depends(get_razorpay_client),
    workflow: BookingWorkflowService = Depends(get_workflow_service),
) -> Dict[str, Any]:
    """
    The checkout handler posts razorpay_order_id, razorpay_payment_id and
    razorpay_signature; on a valid signature the booking is marked paid and
    fulfilled (ticket or voucher), which also confirms the checkout session.
    """
    booking = store.get_booking(request.booking_id)
    order = booking.meta.get("order") or {}
    if not booking.razorpay_order_id or not order:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No payment order exists for this booking")
    if booking.razorpay_order_id != request.razorpay_order_id:
        logger.warning("Order mismatch for booking %s: %s", booking.id, request.razorpay_order_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order does not belong to this booking")

    if not razorpay.verify_payment_signature(
        request.razorpay_order_id, request.razorpay_payment_id, request.razorpay_signature,
    ):
        logger.warning("Invalid payment signature for booking %s", booking.id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payment signature")

    workflow.record_payment(
        booking,
        payment_id=request.razorpay_payment_id,
        order_id=request.razorpay_order_id,
        amount_minor=order.get("amount"),
        details={
            "payment_id": request.razorpay_payment_id,
            "order_id": request.razorpay_order_id,
            "amount": order.get("amount"),
            "source": "checkout",
        },
    )
    return success({
        "verified": True,
        "booking": booking.to_public(),
        "fulfilmentError": booking.meta.get("fulfilmentError"),
    })


@router.post("/webhooks/razorpay", summary="Razorpay webhook receiver")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    handler: RazorpayWebhookHandler = Depends(get_webhook_handler),
) -> Dict[str, Any]:
    """Signature is checked against the raw body, so the body is read unparsed"""
    raw_body = await request.body()
    return handler.handle(raw_body, x_razorpay_signature)
