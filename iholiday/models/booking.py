"""
Booking records - what the store keeps for every flight or hotel booking
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, Field, field_validator


class BookingType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"


class BookingStatus(str, Enum):
    PENDING = "pending"
    ON_HOLD = "on_hold"
    PAID = "paid"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Booking(BaseModel):
    """
    A flight or hotel booking

    meta holds the raw inventory responses keyed by type, e.g.
    meta["flight"]["booking"], meta["flight"]["ticket"],
    meta["hotel"]["voucher"], plus meta["payment"] / meta["refund"].
    """
    id: str = Field(default_factory=lambda: f"IH{uuid.uuid4().hex[:10].upper()}")
    type: BookingType
    status: BookingStatus = BookingStatus.ON_HOLD
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    pnr: Optional[str] = None
    booking_id_ext: Optional[str] = None
    confirmation_no: Optional[str] = None
    total_price: Decimal = Decimal("0.00")
    currency: str = "INR"
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    travelers: List[Dict[str, Any]] = Field(default_factory=list)
    itinerary: Dict[str, Any] = Field(default_factory=dict)
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    is_vouchered: bool = False
    session_id: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("total_price", mode="before")
    @classmethod
    def quantize_price(cls, v):
        return to_money(v)

    def touch(self) -> None:
        self.updated_at = _now()

    def meta_section(self, key: str) -> Dict[str, Any]:
        return self.meta.setdefault(key, {})

    @property
    def is_payable(self) -> bool:
        return self.payment_status == PaymentStatus.UNPAID and self.status not in (
            BookingStatus.CANCELLED, BookingStatus.FAILED
        )

    @property
    def is_voucher_ready(self) -> bool:
        return self.status in (BookingStatus.PAID, BookingStatus.CONFIRMED)

    @property
    def lead_name(self) -> str:
        if not self.travelers:
            return ""
        lead = next((t for t in self.travelers if t.get("isLeadPassenger")), self.travelers[0])
        return " ".join(
            part for part in (lead.get("title"), lead.get("firstName"), lead.get("lastName")) if part
        )

    def to_public(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["total_price"] = float(self.total_price)
        return data


class WebhookLog(BaseModel):
    """Razorpay webhook processing record, unique on (payment_id, event)"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    provider: str = "razorpay"
    event: str
    payment_id: str
    booking_id: Optional[str] = None
    status: str = "processing"
    payload: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
