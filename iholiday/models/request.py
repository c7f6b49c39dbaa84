"""
Request models - Pydantic schemas for the smaller API operations
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from iholiday.models.flight import CamelModel, FlightPassenger, normalize_email
from iholiday.models.hotel import HotelGuest


class ResultRequest(CamelModel):
    """Trace id + result index, used by fare quote, fare rule and SSR"""
    trace_id: str = Field(..., min_length=1)
    result_index: str = Field(..., min_length=1)

    class Config:
        json_schema_extra = {"example": {"traceId": "a1b2c3", "resultIndex": "OB1"}}


class CalendarFareRequest(CamelModel):
    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure_date: date
    cabin_class: Literal["E", "PE", "B", "F"] = "E"
    trip_type: Literal["O", "R"] = "O"

    @field_validator("origin", "destination")
    @classmethod
    def upper(cls, v):
        return v.upper()


class PriceRBDRequest(CamelModel):
    trace_id: str
    air_search_result: List[Dict[str, Any]] = Field(..., min_length=1)
    adults: int = Field(default=1, ge=1, le=9)
    children: int = Field(default=0, ge=0, le=8)
    infants: int = Field(default=0, ge=0, le=8)


class TicketRequest(CamelModel):
    """Ticket either a stored booking or a raw inventory booking id / PNR"""
    booking_id: Optional[str] = None
    inventory_booking_id: Optional[str] = None
    pnr: Optional[str] = None
    trace_id: Optional[str] = None


class BookingLookupRequest(CamelModel):
    booking_id: Optional[str] = None
    pnr: Optional[str] = None
    confirmation_no: Optional[str] = None


class ChangeRequestRequest(CamelModel):
    booking_id: str
    request_type: Literal["1", "2", "3", "4"] = Field(default="1", description="1=full, 2=partial cancel, 3=reissue, 4=misc")
    remarks: Optional[str] = Field(None, max_length=500)


class ChangeRequestStatusRequest(CamelModel):
    change_request_id: str


class ReleasePNRRequest(CamelModel):
    booking_id: str
    source: Optional[str] = None


class CancellationChargesRequest(CamelModel):
    booking_id: str
    request_type: str = "1"


class HotelVoucherRequest(CamelModel):
    booking_id: str


class HotelCancelRequest(CamelModel):
    booking_id: str
    remarks: Optional[str] = Field(None, max_length=500)


class CreateOrderRequest(CamelModel):
    amount: Optional[float] = Field(None, ge=1)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    booking_id: Optional[str] = None
    receipt: Optional[str] = Field(None, max_length=40)
    notes: Dict[str, Any] = Field(default_factory=dict)


class VerifyPaymentRequest(CamelModel):
    booking_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class VoucherGenerateRequest(CamelModel):
    booking_id: str


class LeadRequest(CamelModel):
    """Enquiry form; utm_* fields keep their snake_case names"""
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., max_length=150)
    phone: Optional[str] = Field(None, max_length=30)
    message: Optional[str] = Field(None, max_length=2000)
    source: str = Field(default="blog", max_length=50)
    post_slug: Optional[str] = None
    destination_slug: Optional[str] = None
    utm_source: Optional[str] = Field(None, alias="utm_source")
    utm_medium: Optional[str] = Field(None, alias="utm_medium")
    utm_campaign: Optional[str] = Field(None, alias="utm_campaign")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


# Wizard actions

class StepAction(CamelModel):
    action: Literal["next", "previous", "go_to"] = "next"
    step: Optional[str] = None


class SelectFlightAction(CamelModel):
    result_index: str
    direction: Literal["outbound", "return"] = "outbound"


class PassengersAction(CamelModel):
    passengers: List[FlightPassenger] = Field(..., min_length=1)


class AddonAction(CamelModel):
    action: Literal["add", "remove"] = "add"
    addon: Optional[Dict[str, Any]] = None
    index: Optional[int] = None


class InsuranceAction(CamelModel):
    enabled: bool


class SeatAction(CamelModel):
    action: Literal["add", "remove"] = "add"
    flight_key: str
    seat: str = Field(..., min_length=1, max_length=4)


class SsrAction(CamelModel):
    passenger_id: Optional[str] = None
    ssr_id: Optional[str] = None
    value: Optional[str] = None
    clear: bool = False


class PromoAction(CamelModel):
    code: Optional[str] = None


class SelectRoomAction(CamelModel):
    hotel_code: str
    booking_code: Optional[str] = None


class GuestsAction(CamelModel):
    guests: List[HotelGuest] = Field(..., min_length=1)


class HotelBookAction(CamelModel):
    is_voucher_booking: bool = False
