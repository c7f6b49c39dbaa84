"""
Hotel models - Room occupancy, search, guests and result formatting
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from iholiday.models.flight import CamelModel, ContactInfo

DEFAULT_CHILD_AGE = 5
MAX_ROOMS = 9


class RoomOccupancy(CamelModel):
    """Adults/children for one room; childAges is kept in step with children"""
    adults: int = Field(default=2, ge=1, le=6)
    children: int = Field(default=0, ge=0, le=4)
    child_ages: List[int] = Field(default_factory=list)

    @field_validator("child_ages")
    @classmethod
    def validate_ages(cls, v):
        for age in v:
            if not 0 <= age <= 17:
                raise ValueError("child ages must be between 0 and 17")
        return v

    @model_validator(mode="after")
    def align_child_ages(self):
        ages = list(self.child_ages[:self.children])
        while len(ages) < self.children:
            ages.append(DEFAULT_CHILD_AGE)
        self.child_ages = ages
        return self

    def to_pax_room(self) -> Dict[str, Any]:
        return {
            "Adults": self.adults,
            "Children": self.children,
            "ChildrenAges": self.child_ages or None,
        }


class HotelSearchRequest(CamelModel):
    """Hotel search form"""
    city_id: str = Field(..., min_length=1, description="Inventory city code")
    city_name: Optional[str] = None
    check_in: date
    check_out: date
    currency: str = Field(default="INR", min_length=3, max_length=3)
    nationality: str = Field(default="IN", min_length=2, max_length=2)
    rooms: List[RoomOccupancy] = Field(default_factory=lambda: [RoomOccupancy()], min_length=1, max_length=MAX_ROOMS)
    min_rating: Optional[int] = Field(None, ge=0, le=5)
    max_price: Optional[float] = Field(None, gt=0)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=100)

    @field_validator("check_in")
    @classmethod
    def validate_check_in(cls, v):
        if v < date.today():
            raise ValueError("check-in cannot be in the past")
        return v

    @field_validator("currency", "nationality")
    @classmethod
    def upper(cls, v):
        return v.upper()

    @model_validator(mode="after")
    def validate_stay(self):
        if self.check_out <= self.check_in:
            raise ValueError("check-out must be after check-in")
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def total_adults(self) -> int:
        return sum(room.adults for room in self.rooms)

    @property
    def total_children(self) -> int:
        return sum(room.children for room in self.rooms)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "cityId": "130443",
                "cityName": "Dubai",
                "checkIn": "2026-12-01",
                "checkOut": "2026-12-03",
                "currency": "INR",
                "nationality": "IN",
                "rooms": [{"adults": 2, "children": 1, "childAges": [7]}]
            }
        }


class HotelGuest(CamelModel):
    title: Literal["Mr", "Mrs", "Ms", "Dr", "Mstr", "Miss"]
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    age: Optional[int] = Field(None, ge=0, le=120)
    pax_type: Literal[1, 2] = Field(default=1, description="1=adult, 2=child")
    is_lead_passenger: bool = False
    room_index: int = Field(default=0, ge=0)
    pan: Optional[str] = Field(None, max_length=10)
    passport_no: Optional[str] = Field(None, max_length=20)


def assign_lead_guest(guests: List[HotelGuest]) -> List[HotelGuest]:
    """
    Make sure exactly one guest is lead passenger

    If nobody is flagged the first adult becomes lead; more than one flag is
    rejected.
    """
    leads = [guest for guest in guests if guest.is_lead_passenger]
    if len(leads) > 1:
        raise ValueError("only one guest can be the lead passenger")
    if not leads:
        for guest in guests:
            if guest.pax_type == 1:
                guest.is_lead_passenger = True
                break
        else:
            raise ValueError("at least one adult guest is required")
    return guests


def validate_guests_for_rooms(guests: List[HotelGuest], rooms: List[RoomOccupancy]) -> List[HotelGuest]:
    """Guests per room must match the searched occupancy"""
    if not guests:
        raise ValueError("guest details are required")
    for index, room in enumerate(rooms):
        in_room = [guest for guest in guests if guest.room_index == index]
        adults = sum(1 for guest in in_room if guest.pax_type == 1)
        children = sum(1 for guest in in_room if guest.pax_type == 2)
        if adults != room.adults or children != room.children:
            raise ValueError(
                f"room {index + 1} expects {room.adults} adult(s) and {room.children} child(ren), "
                f"got {adults} and {children}"
            )
    stray = [guest for guest in guests if guest.room_index >= len(rooms)]
    if stray:
        raise ValueError("guest assigned to a room that was not searched")
    return assign_lead_guest(guests)


class HotelPrebookRequest(CamelModel):
    booking_code: str = Field(..., min_length=1)
    trace_id: Optional[str] = None
    hotel_code: Optional[str] = None
    hotel_name: Optional[str] = None
    session_id: Optional[str] = None


class BillingInfo(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country_code: Optional[str] = Field(None, max_length=2)
    gst_number: Optional[str] = None


class HotelBookRequest(CamelModel):
    prebook_id: str
    guests: List[HotelGuest] = Field(..., min_length=1)
    contact: ContactInfo
    billing: Optional[BillingInfo] = None
    is_voucher_booking: bool = False
    session_id: Optional[str] = None


def to_tbo_guest(guest: HotelGuest, contact: ContactInfo) -> Dict[str, Any]:
    payload = {
        "Title": guest.title,
        "FirstName": guest.first_name,
        "LastName": guest.last_name,
        "PaxType": guest.pax_type,
        "LeadPassenger": guest.is_lead_passenger,
        "Age": guest.age if guest.age is not None else (30 if guest.pax_type == 1 else DEFAULT_CHILD_AGE),
    }
    if guest.is_lead_passenger:
        payload["Email"] = contact.email
        payload["Phoneno"] = contact.phone
    if guest.pan:
        payload["PAN"] = guest.pan
    if guest.passport_no:
        payload["PassportNo"] = guest.passport_no
    return payload


class RoomRate(BaseModel):
    room_index: int
    room_type_code: Optional[str] = None
    room_type_name: Optional[str] = None
    rate_plan_code: Optional[str] = None
    meal_type: Optional[str] = None
    total_fare: float = 0.0
    currency: str = "INR"
    booking_code: Optional[str] = None


def room_rates(hotel: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Every bookable rate of every room, in inventory order"""
    rates_out = []
    for index, room in enumerate(hotel.get("HotelRooms") or hotel.get("Rooms") or []):
        rates = room.get("RoomRate") or room.get("Rates") or []
        if isinstance(rates, dict):
            rates = [rates]
        for rate in rates:
            rates_out.append(RoomRate(
                room_index=index,
                room_type_code=room.get("RoomTypeCode"),
                room_type_name=room.get("RoomTypeName") or room.get("Name"),
                rate_plan_code=rate.get("RatePlanCode") or room.get("RatePlanCode"),
                meal_type=room.get("MealType"),
                total_fare=float(rate.get("OfferedFare") or rate.get("TotalFare") or 0),
                currency=rate.get("Currency") or "INR",
                booking_code=rate.get("BookingCode"),
            ).model_dump())
    return rates_out


def format_hotel_result(index: int, hotel: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Shape one inventory hotel for the results page; hotels without a code are dropped"""
    code = hotel.get("HotelCode")
    if not code:
        return None
    rooms = room_rates(hotel)
    return {
        "resultIndex": hotel.get("ResultIndex", index),
        "hotelCode": str(code),
        "hotelName": hotel.get("HotelName"),
        "starRating": hotel.get("StarRating"),
        "guestRating": hotel.get("TripAdvisorRating") or hotel.get("GuestRating"),
        "address": hotel.get("HotelAddress") or hotel.get("Address"),
        "thumbnailUrl": hotel.get("HotelPicture") or hotel.get("ThumbnailUrl"),
        "leadRate": rooms[0] if rooms else None,
        "rooms": rooms,
    }


def format_hotel_results(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    hotels = response.get("HotelSearchResult") or response.get("HotelResults") or []
    if isinstance(hotels, dict):
        hotels = hotels.get("HotelResults") or [hotels]
    formatted = []
    for index, hotel in enumerate(hotels):
        item = format_hotel_result(index, hotel)
        if item is not None:
            formatted.append(item)
    return formatted
