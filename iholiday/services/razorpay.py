"""
Razorpay Payments - Order creation, signature verification and webhook handling
"""

import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional
import uuid

import requests

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError, NotFoundError
from iholiday.models.booking import WebhookLog
from iholiday.services.pricing import to_minor_units
from iholiday.services.store import BookingStore, get_store
from iholiday.services.workflow import BookingWorkflowService, get_workflow_service

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Custom exception for Razorpay API errors"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class WebhookError(Exception):
    """Webhook rejected before processing; status_code is returned to the gateway"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def compute_signature(message: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """HMAC-SHA256 of the raw request body, compared in constant time"""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(raw_body, secret), signature)


class RazorpayClient:
    """
    Client for the Razorpay Orders API

    Features:
    - Order creation (amount in major units, sent in paise)
    - Checkout signature verification (order_id|payment_id)
    - Mock orders when keys are missing and USE_MOCK is on
    """

    TIMEOUT = 30

    def __init__(self, settings: Settings):
        self.settings = settings
        self.key_id = settings.razorpay_key_id
        self.key_secret = settings.razorpay_key_secret

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def create_order(
        self,
        amount: float,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create a Razorpay order

        Args:
            amount: Amount in major units (e.g. rupees)
            currency: 3-letter currency code
            receipt: Merchant receipt reference
            notes: Key/value notes echoed back in webhooks

        Returns:
            {order_id, amount, currency, key_id}

        Raises:
            PaymentGatewayError: If the gateway rejects the order
        """
        if amount < 1:
            raise PaymentGatewayError("Amount must be at least 1", status_code=400)
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency.upper(),
            "receipt": receipt,
            "notes": notes or {},
        }

        if not self.configured:
            if self.settings.use_mock:
                order_id = f"order_MOCK{uuid.uuid4().hex[:10]}"
                logger.info("Razorpay order %s (mock) for %s %s", order_id, amount, currency)
                return {"order_id": order_id, "amount": payload["amount"],
                        "currency": payload["currency"], "key_id": self.key_id}
            raise PaymentGatewayError("Razorpay is not configured", status_code=503)

        try:
            response = requests.post(
                f"{self.settings.razorpay_base_url}/v1/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.TIMEOUT,
            )
            response.raise_for_status()
            order = response.json()

        except requests.exceptions.HTTPError as e:
            logger.error("Razorpay HTTP error: %s - %s", e.response.status_code, e.response.text[:500])
            raise PaymentGatewayError(f"Order creation failed: {e.response.status_code}")

        except requests.exceptions.RequestException as e:
            logger.error("Razorpay request error: %s", str(e))
            raise PaymentGatewayError(f"Order creation failed: {str(e)}")

        logger.info("Razorpay order %s created for receipt %s", order.get("id"), receipt)
        return {
            "order_id": order.get("id"),
            "amount": order.get("amount", payload["amount"]),
            "currency": order.get("currency", payload["currency"]),
            "key_id": self.key_id,
        }

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Checkout callback signature: HMAC-SHA256(order_id|payment_id, key_secret)"""
        if not self.key_secret:
            return False
        expected = compute_signature(f"{order_id}|{payment_id}".encode("utf-8"), self.key_secret)
        return hmac.compare_digest(expected, signature or "")


class RazorpayWebhookHandler:
    """
    Processes Razorpay webhook deliveries

    Idempotent per (payment id, event): a delivery already processed
    returns duplicate=True without touching the booking again.
    """

    def __init__(self, settings: Settings, store: BookingStore, workflow: BookingWorkflowService):
        self.settings = settings
        self.store = store
        self.workflow = workflow

    def handle(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify and dispatch one webhook

        Raises:
            WebhookError: For signature, payload or processing failures
        """
        secret = self.settings.razorpay_webhook_secret
        if not signature or not secret:
            logger.warning("Razorpay webhook rejected: missing signature or secret")
            raise WebhookError("Missing signature or webhook secret", 400)
        if not verify_webhook_signature(raw_body, signature, secret):
            logger.warning("Razorpay webhook rejected: invalid signature")
            raise WebhookError("Invalid signature", 401)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise WebhookError("Invalid JSON payload", 400)
        if not isinstance(payload, dict):
            raise WebhookError("Invalid JSON payload", 400)

        event = payload.get("event")
        entity = (((payload.get("payload") or {}).get("payment") or {}).get("entity")) or {}
        payment_id = entity.get("id")
        if not event or not entity or not payment_id:
            raise WebhookError("Missing event, payment entity or payment id", 400)

        existing = self.store.get_webhook_log(payment_id, event)
        if existing is not None and existing.status == "processed":
            logger.info("Razorpay webhook %s for %s already processed", event, payment_id)
            return {"success": True, "duplicate": True, "event": event, "bookingId": existing.booking_id}

        booking_id = (entity.get("notes") or {}).get("booking_id")
        log = self.store.save_webhook_log(WebhookLog(
            event=event, payment_id=payment_id, booking_id=booking_id, payload=payload,
        ))

        try:
            message = self._dispatch(event, entity, booking_id)
        except (NotFoundError, BookingFlowError, ValueError) as e:
            log.status = "failed"
            log.error = str(e)
            self.store.save_webhook_log(log)
            logger.error("Razorpay webhook %s for %s failed: %s", event, payment_id, str(e))
            raise WebhookError(f"Webhook processing failed: {str(e)}", 500)

        log.status = "processed"
        self.store.save_webhook_log(log)
        logger.info("Razorpay webhook %s for %s: %s", event, payment_id, message)
        return {"success": True, "duplicate": False, "event": event, "bookingId": booking_id, "message": message}

    def _dispatch(self, event: str, entity: Dict[str, Any], booking_id: Optional[str]) -> str:
        if event not in ("payment.captured", "payment.failed", "payment.refunded"):
            return "Event not handled"
        if not booking_id:
            raise ValueError("booking_id missing from payment notes")
        booking = self.store.get_booking(booking_id)

        if event == "payment.captured":
            if entity.get("amount") is None:
                raise ValueError("amount missing from captured payment")
            self.workflow.record_payment(
                booking,
                payment_id=entity["id"],
                order_id=entity.get("order_id"),
                amount_minor=entity["amount"],
                details={
                    "payment_id": entity["id"],
                    "order_id": entity.get("order_id"),
                    "amount": entity.get("amount"),
                    "currency": entity.get("currency"),
                    "method": entity.get("method"),
                    "captured_at": entity.get("created_at"),
                },
            )
            return "Payment captured"

        if event == "payment.failed":
            self.workflow.record_payment_failed(
                booking, entity.get("error_code"), entity.get("error_description"), entity["id"],
            )
            return "Payment failed"

        self.workflow.record_refund(booking, {
            "payment_id": entity["id"],
            "amount_refunded": entity.get("amount_refunded"),
            "refund_status": entity.get("refund_status"),
        })
        return "Payment refunded"


_client_instance: Optional[RazorpayClient] = None
_handler_instance: Optional[RazorpayWebhookHandler] = None


def get_razorpay_client() -> RazorpayClient:
    global _client_instance
    if _client_instance is None:
        _client_instance = RazorpayClient(get_settings())
    return _client_instance


def get_webhook_handler() -> RazorpayWebhookHandler:
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = RazorpayWebhookHandler(get_settings(), get_store(), get_workflow_service())
    return _handler_instance


def reset_payment_services() -> None:
    global _client_instance, _handler_instance
    _client_instance = None
    _handler_instance = None
