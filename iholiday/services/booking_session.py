"""
Booking Wizard - Multi-step checkout state for flights and hotels

Flight: search -> results -> select -> review -> checkout -> payment -> confirmation
Hotel:  search -> results -> room -> guests -> payment -> confirmation

Every step has entry requirements; moving forward (or jumping) into a step
whose requirements are unmet raises BookingFlowError. Prices are derived on
every read from the current selections, never stored.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Union
import uuid

from pydantic import BaseModel, Field

from iholiday.core.errors import BookingFlowError
from iholiday.models.flight import (
    ContactInfo,
    FlightPassenger,
    FlightSearchRequest,
    MAX_MULTI_CITY_LEGS,
    MIN_MULTI_CITY_LEGS,
    NormalizedFlight,
    NormalizedSearchResult,
    SegmentInput,
)
from iholiday.models.hotel import HotelGuest, HotelSearchRequest, validate_guests_for_rooms
from iholiday.services.pricing import PriceBreakdown, compute_breakdown, resolve_promo

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Addon(BaseModel):
    type: Literal["baggage", "meal", "seat", "insurance", "other"]
    name: str = Field(..., min_length=1, max_length=120)
    price: float = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1, le=20)
    passenger_id: Optional[str] = None
    code: Optional[str] = None

    @property
    def amount(self) -> float:
        return round(self.price * self.quantity, 2)


class BookingWizard:
    """Shared step navigation; subclasses define STEPS and _requirement()"""

    STEPS: List[str] = []
    kind = "wizard"

    def __init__(self, session_id: Optional[str] = None, currency: str = "INR"):
        self.id = session_id or uuid.uuid4().hex
        self.currency = currency
        self.step = self.STEPS[0]
        self.booking_id: Optional[str] = None
        self.confirmation: Optional[Dict[str, Any]] = None

    @property
    def is_complete(self) -> bool:
        return self.step == self.STEPS[-1]

    def _requirement(self, step: str) -> Optional[str]:
        """Reason why step cannot be entered (None when it can)"""
        raise NotImplementedError

    def unmet_requirement(self, step: str) -> Optional[str]:
        """Check every step up to and including target"""
        for candidate in self.STEPS[:self.STEPS.index(step) + 1]:
            reason = self._requirement(candidate)
            if reason:
                return reason
        return None

    def _enter(self, step: str) -> str:
        if step not in self.STEPS:
            raise BookingFlowError(f"Unknown step '{step}'")
        if self.is_complete and step != self.step:
            raise BookingFlowError("Booking is already confirmed")
        reason = self.unmet_requirement(step)
        if reason:
            raise BookingFlowError(f"Cannot go to {step}: {reason}")
        if step != self.step:
            logger.debug("%s session %s: %s -> %s", self.kind, self.id, self.step, step)
        self.step = step
        return step

    def next_step(self) -> str:
        if self.is_complete:
            raise BookingFlowError("Booking is already confirmed")
        return self._enter(self.STEPS[self.STEPS.index(self.step) + 1])

    def previous_step(self) -> str:
        if self.is_complete:
            raise BookingFlowError("Cannot go back from confirmation")
        index = self.STEPS.index(self.step)
        if index == 0:
            return self.step
        self.step = self.STEPS[index - 1]
        return self.step

    def go_to(self, step: str) -> str:
        return self._enter(step)

    def _ensure_editable(self) -> None:
        if self.is_complete:
            raise BookingFlowError("Booking is already confirmed")

    def available_steps(self) -> Dict[str, bool]:
        return {step: self.unmet_requirement(step) is None for step in self.STEPS}


class FlightBookingSession(BookingWizard):
    """
    Flight checkout wizard

    Holds search criteria, results, selections, passengers, seats, add-ons,
    SSR choices and promo state for one traveler's booking attempt.
    """

    STEPS = ["search", "results", "select", "review", "checkout", "payment", "confirmation"]
    kind = "flight"

    def __init__(
        self,
        session_id: Optional[str] = None,
        currency: str = "INR",
        insurance_price: float = 200.0,
        promo_codes: Optional[Dict[str, float]] = None,
    ):
        super().__init__(session_id, currency)
        self.insurance_price = insurance_price
        self.promo_codes = promo_codes or {}
        self.reset()

    def reset(self) -> None:
        self.step = self.STEPS[0]
        self.trip_type = "O"
        self.search: Optional[FlightSearchRequest] = None
        self.legs: List[SegmentInput] = []
        self.trace_id: Optional[str] = None
        self.outbound_results: List[NormalizedFlight] = []
        self.return_results: List[NormalizedFlight] = []
        self.selected_outbound: Optional[NormalizedFlight] = None
        self.selected_return: Optional[NormalizedFlight] = None
        self.passengers: List[FlightPassenger] = []
        self.contact: Optional[ContactInfo] = None
        self.seats: Dict[str, List[str]] = {}
        self.addons: List[Addon] = []
        self.insurance = False
        self.ssr: Dict[str, Dict[str, str]] = {}
        self.promo_code: Optional[str] = None
        self.promo_discount = 0.0
        self.booking_id = None
        self.confirmation = None

    # Search

    def set_trip_type(self, trip_type: str) -> None:
        self._ensure_editable()
        if trip_type not in ("O", "R", "M"):
            raise BookingFlowError(f"Unknown trip type '{trip_type}'")
        self.trip_type = trip_type
        if self.search is not None:
            update: Dict[str, Any] = {"trip_type": trip_type}
            if trip_type != "R":
                update["return_date"] = None
            self.search = self.search.model_copy(update=update)
        if trip_type != "R":
            self.selected_return = None
            self.return_results = []
        if trip_type != "M":
            self.legs = []

    def add_leg(self, leg: Union[SegmentInput, Dict[str, Any]]) -> List[SegmentInput]:
        self._ensure_editable()
        if self.trip_type != "M":
            raise BookingFlowError("Legs can only be added to multi-city trips")
        if len(self.legs) >= MAX_MULTI_CITY_LEGS:
            raise BookingFlowError(f"A multi-city trip can have at most {MAX_MULTI_CITY_LEGS} legs")
        self.legs.append(leg if isinstance(leg, SegmentInput) else SegmentInput.model_validate(leg))
        return self.legs

    def remove_leg(self, index: int) -> List[SegmentInput]:
        self._ensure_editable()
        if len(self.legs) <= MIN_MULTI_CITY_LEGS:
            raise BookingFlowError(f"A multi-city trip needs at least {MIN_MULTI_CITY_LEGS} legs")
        if not 0 <= index < len(self.legs):
            raise BookingFlowError(f"No leg at position {index}")
        self.legs.pop(index)
        return self.legs

    def set_search(self, criteria: Union[FlightSearchRequest, Dict[str, Any]]) -> FlightSearchRequest:
        """Store validated criteria and drop everything that depended on the old search"""
        self._ensure_editable()
        search = criteria if isinstance(criteria, FlightSearchRequest) else FlightSearchRequest.model_validate(criteria)
        self.search = search
        self.trip_type = search.trip_type
        self.legs = list(search.segments or []) if search.trip_type == "M" else []
        self.trace_id = None
        self.outbound_results = []
        self.return_results = []
        self.selected_outbound = None
        self.selected_return = None
        self.passengers = []
        self.seats = {}
        self.ssr = {}
        self.step = "search"
        return search

    def apply_results(self, results: NormalizedSearchResult) -> None:
        self._ensure_editable()
        if self.search is None:
            raise BookingFlowError("Search criteria are required before results")
        self.trace_id = results.trace_id
        self.outbound_results = list(results.outbound)
        self.return_results = list(results.inbound) if self.trip_type == "R" else []
        self.selected_outbound = None
        self.selected_return = None
        self.seats = {}
        self.step = "results"

    # Selection

    @staticmethod
    def _find(results: List[NormalizedFlight], key: str) -> Optional[NormalizedFlight]:
        return next((f for f in results if key in (f.result_index, f.id)), None)

    def select_outbound(self, key: str) -> NormalizedFlight:
        self._ensure_editable()
        flight = self._find(self.outbound_results, key)
        if flight is None:
            raise BookingFlowError(f"Flight {key} is not in the current results")
        if self.selected_outbound is not None:
            self.seats.pop(self.selected_outbound.flight_key(), None)
        self.selected_outbound = flight
        if self.trip_type == "R" and self.selected_return is None:
            self.step = "results"
        else:
            self.step = "review"
        return flight

    def select_return(self, key: str) -> NormalizedFlight:
        self._ensure_editable()
        if self.trip_type != "R":
            raise BookingFlowError("Return flights can only be selected on round trips")
        if self.selected_outbound is None:
            raise BookingFlowError("Select an outbound flight first")
        flight = self._find(self.return_results, key)
        if flight is None:
            raise BookingFlowError(f"Return flight {key} is not in the current results")
        if self.selected_return is not None:
            self.seats.pop(self.selected_return.flight_key(), None)
        self.selected_return = flight
        self.step = "review"
        return flight

    def selected_flights(self) -> List[NormalizedFlight]:
        return [f for f in (self.selected_outbound, self.selected_return) if f is not None]

    # Passengers

    def expected_counts(self) -> Dict[str, int]:
        if self.search is None:
            return {"ADT": 0, "CHD": 0, "INF": 0}
        return {"ADT": self.search.adults, "CHD": self.search.children, "INF": self.search.infants}

    def _counts(self, passengers: List[FlightPassenger]) -> Dict[str, int]:
        counts = {"ADT": 0, "CHD": 0, "INF": 0}
        for passenger in passengers:
            counts[passenger.type] += 1
        return counts

    def _validate_passenger(self, passenger: Union[FlightPassenger, Dict[str, Any]]) -> FlightPassenger:
        if self.search is None:
            raise BookingFlowError("Search criteria are required before passengers")
        if not isinstance(passenger, FlightPassenger):
            passenger = FlightPassenger.model_validate(passenger)
        try:
            passenger.check_age(self.search.first_travel_date)
        except ValueError as e:
            raise BookingFlowError(str(e))
        return passenger

    def _assign_ids(self) -> None:
        used = {p.id for p in self.passengers if p.id}
        counter = 1
        for passenger in self.passengers:
            if passenger.id:
                continue
            while f"passenger_{counter}" in used:
                counter += 1
            passenger.id = f"passenger_{counter}"
            used.add(passenger.id)

    def _prune_ssr(self) -> None:
        ids = {p.id for p in self.passengers}
        self.ssr = {pid: values for pid, values in self.ssr.items() if pid in ids}

    def set_passengers(self, passengers: List[Union[FlightPassenger, Dict[str, Any]]]) -> List[FlightPassenger]:
        """Replace all passengers; counts per type must match the search exactly"""
        self._ensure_editable()
        validated = [self._validate_passenger(p) for p in passengers]
        expected = self.expected_counts()
        actual = self._counts(validated)
        if actual != expected:
            raise BookingFlowError(
                f"Expected {expected['ADT']} adult(s), {expected['CHD']} child(ren) and "
                f"{expected['INF']} infant(s); got {actual['ADT']}, {actual['CHD']} and {actual['INF']}"
            )
        self.passengers = validated
        self._assign_ids()
        self._prune_ssr()
        return self.passengers

    def add_passenger(self, passenger: Union[FlightPassenger, Dict[str, Any]]) -> FlightPassenger:
        self._ensure_editable()
        validated = self._validate_passenger(passenger)
        if self._counts(self.passengers)[validated.type] >= self.expected_counts()[validated.type]:
            raise BookingFlowError(f"All {validated.type} passengers have already been added")
        self.passengers.append(validated)
        self._assign_ids()
        return validated

    def update_passenger(self, passenger_id: str, data: Dict[str, Any]) -> FlightPassenger:
        self._ensure_editable()
        index = next((i for i, p in enumerate(self.passengers) if p.id == passenger_id), None)
        if index is None:
            raise BookingFlowError(f"Unknown passenger {passenger_id}")
        merged = {**self.passengers[index].model_dump(), **data, "id": passenger_id}
        updated = self._validate_passenger(merged)
        if updated.type != self.passengers[index].type:
            raise BookingFlowError("Passenger type cannot be changed; remove and add instead")
        self.passengers[index] = updated
        return updated

    def remove_passenger(self, passenger_id: str) -> None:
        self._ensure_editable()
        before = len(self.passengers)
        self.passengers = [p for p in self.passengers if p.id != passenger_id]
        if len(self.passengers) == before:
            raise BookingFlowError(f"Unknown passenger {passenger_id}")
        self._prune_ssr()

    @property
    def passengers_complete(self) -> bool:
        return self.search is not None and self._counts(self.passengers) == self.expected_counts()

    def set_contact(self, contact: Union[ContactInfo, Dict[str, Any]]) -> ContactInfo:
        self._ensure_editable()
        self.contact = contact if isinstance(contact, ContactInfo) else ContactInfo.model_validate(contact)
        return self.contact

    # Seats, add-ons, insurance, SSR, promo

    def seat_capacity(self) -> int:
        counts = self.expected_counts()
        return counts["ADT"] + counts["CHD"]

    def add_seat(self, flight_key: str, seat: str) -> List[str]:
        self._ensure_editable()
        keys = {f.flight_key() for f in self.selected_flights()}
        if flight_key not in keys:
            raise BookingFlowError(f"Flight {flight_key} is not part of this booking")
        seat = seat.strip().upper()
        chosen = self.seats.setdefault(flight_key, [])
        if seat in chosen:
            raise BookingFlowError(f"Seat {seat} is already selected")
        if len(chosen) >= self.seat_capacity():
            raise BookingFlowError("Every passenger already has a seat on this flight")
        chosen.append(seat)
        return chosen

    def remove_seat(self, flight_key: str, seat: str) -> List[str]:
        self._ensure_editable()
        chosen = self.seats.get(flight_key, [])
        seat = seat.strip().upper()
        if seat not in chosen:
            raise BookingFlowError(f"Seat {seat} is not selected")
        chosen.remove(seat)
        if not chosen:
            del self.seats[flight_key]
        return chosen

    def add_addon(self, addon: Union[Addon, Dict[str, Any]]) -> List[Addon]:
        self._ensure_editable()
        self.addons.append(addon if isinstance(addon, Addon) else Addon.model_validate(addon))
        return self.addons

    def remove_addon(self, index: int) -> List[Addon]:
        self._ensure_editable()
        if not 0 <= index < len(self.addons):
            raise BookingFlowError(f"No add-on at position {index}")
        self.addons.pop(index)
        return self.addons

    def set_insurance(self, enabled: bool) -> None:
        self._ensure_editable()
        self.insurance = bool(enabled)

    def update_ssr(self, passenger_id: str, ssr_id: str, value: Optional[str]) -> Dict[str, Dict[str, str]]:
        """Empty value removes the selection; passengers without selections are dropped"""
        self._ensure_editable()
        if passenger_id not in {p.id for p in self.passengers}:
            raise BookingFlowError(f"Unknown passenger {passenger_id}")
        selections = self.ssr.setdefault(passenger_id, {})
        if value:
            selections[ssr_id] = value
        else:
            selections.pop(ssr_id, None)
        if not selections:
            del self.ssr[passenger_id]
        return self.ssr

    def clear_ssr(self) -> None:
        self._ensure_editable()
        self.ssr = {}

    def apply_promo(self, code: str) -> float:
        self._ensure_editable()
        self.promo_discount = resolve_promo(code, self.promo_codes)
        self.promo_code = code.strip().upper()
        return self.promo_discount

    def remove_promo(self) -> None:
        self._ensure_editable()
        self.promo_code = None
        self.promo_discount = 0.0

    # Pricing

    def addons_total(self) -> float:
        return round(sum(addon.amount for addon in self.addons), 2)

    def price(self) -> PriceBreakdown:
        fares = [
            {"base_fare": f.fare.base_fare, "taxes": f.fare.taxes, "offered_fare": f.fare.offered_fare}
            for f in self.selected_flights()
        ]
        currency = self.selected_outbound.fare.currency if self.selected_outbound else self.currency
        return compute_breakdown(
            fares,
            addons_total=self.addons_total(),
            insurance=self.insurance_price if self.insurance else 0.0,
            discount=self.promo_discount,
            currency=currency,
        )

    # Steps

    def _requirement(self, step: str) -> Optional[str]:
        if step == "results" and self.search is None:
            return "search criteria are missing"
        if step == "select" and not self.outbound_results:
            return "there are no flight results"
        if step in ("review", "checkout"):
            if self.selected_outbound is None:
                return "no outbound flight selected"
            if self.trip_type == "R" and self.selected_return is None:
                return "no return flight selected"
        if step == "payment":
            if not self.passengers_complete:
                return "passenger details are incomplete"
            if self.contact is None:
                return "contact details are missing"
        if step == "confirmation" and self.confirmation is None:
            return "booking is not confirmed"
        return None

    def mark_booked(self, booking_id: str) -> None:
        self.booking_id = booking_id
        self._enter("payment")

    def set_confirmation(self, pnr: Optional[str], booking_id: str, ticket_number: Optional[str] = None) -> Dict[str, Any]:
        reason = self.unmet_requirement("payment")
        if reason:
            raise BookingFlowError(f"Cannot confirm: {reason}")
        self.booking_id = booking_id
        self.confirmation = {
            "pnr": pnr,
            "bookingId": booking_id,
            "ticketNumber": ticket_number,
            "timestamp": _utcnow().isoformat(),
        }
        self.step = "confirmation"
        logger.info("Flight session %s confirmed booking %s", self.id, booking_id)
        return self.confirmation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "step": self.step,
            "steps": self.available_steps(),
            "tripType": self.trip_type,
            "search": self.search.model_dump(mode="json", by_alias=True) if self.search else None,
            "legs": [leg.model_dump(mode="json", by_alias=True) for leg in self.legs],
            "traceId": self.trace_id,
            "outboundResults": len(self.outbound_results),
            "returnResults": len(self.return_results),
            "selectedOutbound": self.selected_outbound.model_dump(by_alias=True) if self.selected_outbound else None,
            "selectedReturn": self.selected_return.model_dump(by_alias=True) if self.selected_return else None,
            "passengers": [p.model_dump(mode="json", by_alias=True) for p in self.passengers],
            "contact": self.contact.model_dump(by_alias=True) if self.contact else None,
            "seats": self.seats,
            "addons": [a.model_dump(by_alias=True) for a in self.addons],
            "insurance": self.insurance,
            "ssr": self.ssr,
            "promoCode": self.promo_code,
            "price": self.price().model_dump(),
            "bookingId": self.booking_id,
            "confirmation": self.confirmation,
        }


class HotelBookingSession(BookingWizard):
    """Hotel checkout wizard: one hotel, one rate, guests per searched room"""

    STEPS = ["search", "results", "room", "guests", "payment", "confirmation"]
    kind = "hotel"

    def __init__(
        self,
        session_id: Optional[str] = None,
        currency: str = "INR",
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(session_id, currency)
        self.clock = clock
        self.search: Optional[HotelSearchRequest] = None
        self.trace_id: Optional[str] = None
        self.results: List[Dict[str, Any]] = []
        self.selected_hotel: Optional[Dict[str, Any]] = None
        self.selected_room: Optional[Dict[str, Any]] = None
        self.guests: List[HotelGuest] = []
        self.contact: Optional[ContactInfo] = None
        self.prebook: Optional[Dict[str, Any]] = None

    def set_search(self, criteria: Union[HotelSearchRequest, Dict[str, Any]]) -> HotelSearchRequest:
        self._ensure_editable()
        search = criteria if isinstance(criteria, HotelSearchRequest) else HotelSearchRequest.model_validate(criteria)
        self.search = search
        self.currency = search.currency
        self.trace_id = None
        self.results = []
        self.selected_hotel = None
        self.selected_room = None
        self.guests = []
        self.prebook = None
        self.step = "search"
        return search

    def apply_results(self, trace_id: Optional[str], results: List[Dict[str, Any]]) -> None:
        self._ensure_editable()
        if self.search is None:
            raise BookingFlowError("Search criteria are required before results")
        self.trace_id = trace_id
        self.results = list(results)
        self.selected_hotel = None
        self.selected_room = None
        self.prebook = None
        self.step = "results"

    def select_room(self, hotel_code: str, booking_code: Optional[str] = None) -> Dict[str, Any]:
        """Pick a hotel from the results; the lead rate unless a booking code is given"""
        self._ensure_editable()
        hotel = next((h for h in self.results if h.get("hotelCode") == hotel_code), None)
        if hotel is None:
            raise BookingFlowError(f"Hotel {hotel_code} is not in the current results")
        rates = hotel.get("rooms") or ([hotel["leadRate"]] if hotel.get("leadRate") else [])
        if not rates:
            raise BookingFlowError(f"Hotel {hotel_code} has no bookable rate")
        if booking_code:
            rate = next((r for r in rates if r.get("booking_code") == booking_code), None)
            if rate is None:
                raise BookingFlowError(f"Rate {booking_code} is not available for hotel {hotel_code}")
        else:
            rate = rates[0]
        self.selected_hotel = hotel
        self.selected_room = dict(rate)
        self.prebook = None
        self.step = "room"
        return self.selected_room

    def set_guests(self, guests: List[Union[HotelGuest, Dict[str, Any]]]) -> List[HotelGuest]:
        self._ensure_editable()
        if self.search is None:
            raise BookingFlowError("Search criteria are required before guests")
        validated = [g if isinstance(g, HotelGuest) else HotelGuest.model_validate(g) for g in guests]
        try:
            self.guests = validate_guests_for_rooms(validated, self.search.rooms)
        except ValueError as e:
            raise BookingFlowError(str(e))
        return self.guests

    def set_contact(self, contact: Union[ContactInfo, Dict[str, Any]]) -> ContactInfo:
        self._ensure_editable()
        self.contact = contact if isinstance(contact, ContactInfo) else ContactInfo.model_validate(contact)
        return self.contact

    def set_prebook(self, prebook: Dict[str, Any]) -> None:
        self._ensure_editable()
        if self.selected_room is None:
            raise BookingFlowError("Select a room before verifying the price")
        self.prebook = prebook

    @property
    def prebook_live(self) -> bool:
        if not self.prebook:
            return False
        if self.prebook.get("status") == "completed":
            # consumed by this session's booking
            return self.booking_id is not None
        if self.prebook.get("status") != "verified":
            return False
        return self.clock() < datetime.fromisoformat(self.prebook["expiresAt"])

    @property
    def guests_complete(self) -> bool:
        if self.search is None or not self.guests:
            return False
        try:
            validate_guests_for_rooms(list(self.guests), self.search.rooms)
        except ValueError:
            return False
        return True

    def _requirement(self, step: str) -> Optional[str]:
        if step == "results" and self.search is None:
            return "search criteria are missing"
        if step in ("room", "guests") and self.selected_room is None:
            return "no room selected"
        if step == "payment":
            if not self.guests_complete:
                return "guest details do not match the rooms"
            if self.contact is None:
                return "contact details are missing"
            if not self.prebook_live:
                return "price verification is missing or expired"
        if step == "confirmation" and self.confirmation is None:
            return "booking is not confirmed"
        return None

    def price(self) -> PriceBreakdown:
        if self.prebook:
            total = float(self.prebook.get("verifiedTotal") or 0)
            taxes = float(self.prebook.get("taxes") or 0)
            currency = self.prebook.get("currency") or self.currency
        elif self.selected_room:
            total = float(self.selected_room.get("total_fare") or 0)
            taxes = 0.0
            currency = self.selected_room.get("currency") or self.currency
        else:
            return PriceBreakdown(currency=self.currency)
        return compute_breakdown(
            [{"base_fare": total - taxes, "taxes": taxes, "offered_fare": total}],
            currency=currency,
        )

    def mark_booked(self, booking_id: str) -> None:
        self.booking_id = booking_id
        self._enter("payment")

    def set_confirmation(self, booking_id: str, confirmation_no: Optional[str]) -> Dict[str, Any]:
        self.booking_id = booking_id
        self.confirmation = {
            "bookingId": booking_id,
            "confirmationNo": confirmation_no,
            "timestamp": _utcnow().isoformat(),
        }
        self.step = "confirmation"
        logger.info("Hotel session %s confirmed booking %s", self.id, booking_id)
        return self.confirmation

    def to_dict(self) -> Dict[str, Any]:
        price = self.price()
        return {
            "id": self.id,
            "type": self.kind,
            "step": self.step,
            "steps": self.available_steps(),
            "search": self.search.model_dump(mode="json", by_alias=True) if self.search else None,
            "nights": self.search.nights if self.search else None,
            "traceId": self.trace_id,
            "results": len(self.results),
            "selectedHotel": self.selected_hotel,
            "selectedRoom": self.selected_room,
            "guests": [g.model_dump(by_alias=True) for g in self.guests],
            "contact": self.contact.model_dump(by_alias=True) if self.contact else None,
            "prebook": self.prebook,
            "price": price.model_dump(),
            "bookingId": self.booking_id,
            "confirmation": self.confirmation,
        }
