"""
Flight models - Search/book request validation and inventory response normalization
"""

from datetime import date
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


TBO_DATE_FORMAT = "%Y-%m-%dT00:00:00"
MAX_PASSENGERS = 9
MIN_MULTI_CITY_LEGS = 2
MAX_MULTI_CITY_LEGS = 5

PAX_TYPE_CODES = {"ADT": 1, "CHD": 2, "INF": 3}
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def normalize_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("invalid email address")
    return value.lower()


def _airport_code(value: str) -> str:
    code = (value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("airport code must be 3 letters")
    return code


def format_tbo_date(value: date) -> str:
    return value.strftime(TBO_DATE_FORMAT)


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys for the web client"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SegmentInput(CamelModel):
    """One leg of a search: origin, destination, date"""
    origin: str = Field(..., description="3-letter IATA origin")
    destination: str = Field(..., description="3-letter IATA destination")
    departure_date: date = Field(..., description="Departure date (YYYY-MM-DD)")

    @field_validator("origin", "destination")
    @classmethod
    def validate_code(cls, v):
        return _airport_code(v)

    @field_validator("departure_date")
    @classmethod
    def validate_not_past(cls, v):
        if v < date.today():
            raise ValueError("departure date cannot be in the past")
        return v


class FlightSearchRequest(CamelModel):
    """
    Flight search form

    Accepts either a list of segments (multi-city) or the classic
    origin/destination/departDate (+ returnDate) fields.
    """
    segments: Optional[List[SegmentInput]] = Field(None, description="Explicit legs")
    origin: Optional[str] = Field(None, description="3-letter IATA origin")
    destination: Optional[str] = Field(None, description="3-letter IATA destination")
    depart_date: Optional[date] = Field(None, description="Departure date")
    return_date: Optional[date] = Field(None, description="Return date for round trips")
    trip_type: Literal["O", "R", "M"] = Field(default="O", description="O=one way, R=round trip, M=multi-city")
    adults: int = Field(default=1, ge=1, le=9)
    children: int = Field(default=0, ge=0, le=8)
    infants: int = Field(default=0, ge=0, le=8)
    cabin_class: Literal["E", "PE", "B", "F"] = Field(default="E", description="E, PE, B or F")
    preferred_airlines: Optional[List[str]] = Field(None, description="IATA airline codes")
    direct: bool = Field(default=False)
    one_stop: bool = Field(default=False)

    @field_validator("origin", "destination")
    @classmethod
    def validate_code(cls, v):
        return _airport_code(v) if v is not None else v

    @field_validator("depart_date")
    @classmethod
    def validate_not_past(cls, v):
        if v is not None and v < date.today():
            raise ValueError("departure date cannot be in the past")
        return v

    @field_validator("preferred_airlines")
    @classmethod
    def validate_airlines(cls, v):
        if v is None:
            return v
        codes = [code.strip().upper() for code in v if code and code.strip()]
        for code in codes:
            if len(code) > 3:
                raise ValueError(f"invalid airline code: {code}")
        return codes

    @model_validator(mode="after")
    def validate_search(self):
        if self.infants > self.adults:
            raise ValueError("each infant must travel with an adult")
        if self.adults + self.children > MAX_PASSENGERS:
            raise ValueError(f"adults and children together cannot exceed {MAX_PASSENGERS}")

        if not self.segments:
            if not self.origin:
                raise ValueError("Provide either segments array or origin/destination/departDate fields.")
            if not self.destination or not self.depart_date:
                raise ValueError("destination and departDate are required with origin")
            if self.origin == self.destination:
                raise ValueError("origin and destination must differ")
            if self.return_date is not None and self.return_date <= self.depart_date:
                raise ValueError("returnDate must be after departDate")
            if self.trip_type == "R" and self.return_date is None:
                raise ValueError("returnDate is required for round trips")
            if self.trip_type == "M":
                raise ValueError("multi-city searches require segments")
        else:
            count = len(self.segments)
            if self.trip_type == "M" and not MIN_MULTI_CITY_LEGS <= count <= MAX_MULTI_CITY_LEGS:
                raise ValueError(
                    f"multi-city searches need {MIN_MULTI_CITY_LEGS}-{MAX_MULTI_CITY_LEGS} segments"
                )
            if self.trip_type == "R" and count != 2:
                raise ValueError("round trips need exactly 2 segments")
            if self.trip_type == "O" and count != 1:
                raise ValueError("one way searches need exactly 1 segment")
            for earlier, later in zip(self.segments, self.segments[1:]):
                if later.departure_date < earlier.departure_date:
                    raise ValueError("segments must be in chronological order")
        return self

    @property
    def total_passengers(self) -> int:
        return self.adults + self.children + self.infants

    @property
    def first_travel_date(self) -> date:
        if self.segments:
            return self.segments[0].departure_date
        return self.depart_date

    def build_segments(self) -> List[Dict[str, str]]:
        """Legs in inventory format; a round trip adds the reverse leg"""
        if self.segments:
            return [
                {
                    "origin": seg.origin,
                    "destination": seg.destination,
                    "departureDate": format_tbo_date(seg.departure_date),
                }
                for seg in self.segments
            ]

        segments = [{
            "origin": self.origin,
            "destination": self.destination,
            "departureDate": format_tbo_date(self.depart_date),
        }]
        if self.trip_type == "R" and self.return_date:
            segments.append({
                "origin": self.destination,
                "destination": self.origin,
                "departureDate": format_tbo_date(self.return_date),
            })
        return segments

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "origin": "DEL",
                "destination": "BOM",
                "departDate": "2026-12-15",
                "returnDate": "2026-12-20",
                "tripType": "R",
                "adults": 2,
                "children": 1,
                "infants": 0,
                "cabinClass": "E"
            }
        }


class FlightPassenger(CamelModel):
    """Traveler details collected at the passenger step"""
    id: Optional[str] = Field(None, description="Client-side passenger id")
    title: Literal["Mr", "Ms", "Mrs", "Dr", "Mstr", "Miss"]
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    type: Literal["ADT", "CHD", "INF"] = Field(default="ADT")
    date_of_birth: date
    gender: Literal["M", "F"]
    passport_no: Optional[str] = Field(None, max_length=20)
    passport_expiry: Optional[date] = None
    nationality: Optional[str] = Field(default="IN", max_length=2)

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v):
        if v >= date.today():
            raise ValueError("date of birth must be in the past")
        return v

    @field_validator("passport_expiry")
    @classmethod
    def validate_passport_expiry(cls, v):
        if v is not None and v <= date.today():
            raise ValueError("passport has expired")
        return v

    def age_on(self, on: date) -> int:
        dob = self.date_of_birth
        return on.year - dob.year - ((on.month, on.day) < (dob.month, dob.day))

    def check_age(self, travel_date: date) -> None:
        """
        Raise ValueError when the age on the travel date does not fit the type
        (ADT >= 12, CHD 2-11, INF < 2)
        """
        age = self.age_on(travel_date)
        name = f"{self.first_name} {self.last_name}"
        if self.type == "ADT" and age < 12:
            raise ValueError(f"{name} is {age} on the travel date and cannot travel as an adult")
        if self.type == "CHD" and not 2 <= age <= 11:
            raise ValueError(f"{name} must be 2-11 years old to travel as a child")
        if self.type == "INF" and age >= 2:
            raise ValueError(f"{name} must be under 2 years old to travel as an infant")


class ContactInfo(CamelModel):
    email: str = Field(..., max_length=150)
    phone: str = Field(..., min_length=5, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = None
    country_code: str = Field(default="IN", max_length=2)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class FlightBookRequest(CamelModel):
    """Book a selected itinerary (creates a held PNR)"""
    result_index: str
    trace_id: str
    passengers: List[FlightPassenger] = Field(..., min_length=1, max_length=MAX_PASSENGERS + 8)
    contact_info: ContactInfo
    session_id: Optional[str] = Field(None, description="Booking wizard session to link")

    @model_validator(mode="after")
    def validate_passenger_mix(self):
        adults = sum(1 for p in self.passengers if p.type == "ADT")
        infants = sum(1 for p in self.passengers if p.type == "INF")
        if adults < 1:
            raise ValueError("at least one adult passenger is required")
        if infants > adults:
            raise ValueError("each infant must travel with an adult")
        return self


def to_tbo_passenger(
    passenger: FlightPassenger,
    contact: ContactInfo,
    fare: Optional[Dict[str, Any]] = None,
    is_lead: bool = False,
) -> Dict[str, Any]:
    """Map a validated passenger to the inventory Book payload entry"""
    payload = {
        "Title": passenger.title,
        "FirstName": passenger.first_name,
        "LastName": passenger.last_name,
        "PaxType": PAX_TYPE_CODES[passenger.type],
        "DateOfBirth": format_tbo_date(passenger.date_of_birth),
        "Gender": 1 if passenger.gender == "M" else 2,
        "AddressLine1": contact.address or "",
        "City": contact.city or "",
        "CountryCode": contact.country_code,
        "Nationality": passenger.nationality or contact.country_code,
        "ContactNo": contact.phone,
        "Email": contact.email,
        "IsLeadPax": is_lead,
    }
    if passenger.passport_no:
        payload["PassportNo"] = passenger.passport_no
    if passenger.passport_expiry:
        payload["PassportExpiry"] = format_tbo_date(passenger.passport_expiry)
    if fare:
        payload["Fare"] = fare
    return payload


# ---------------------------------------------------------------------------
# Normalization of inventory search results
# ---------------------------------------------------------------------------

class NormalizedFare(CamelModel):
    base_fare: float = 0.0
    taxes: float = 0.0
    total_fare: float = 0.0
    offered_fare: float = 0.0
    currency: str = "INR"
    is_refundable: bool = False


class NormalizedSegment(CamelModel):
    origin: str
    origin_name: Optional[str] = None
    origin_city: Optional[str] = None
    origin_country: Optional[str] = None
    destination: str
    destination_name: Optional[str] = None
    destination_city: Optional[str] = None
    destination_country: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    duration: int = 0
    airline_code: Optional[str] = None
    airline_name: Optional[str] = None
    flight_number: Optional[str] = None
    aircraft: Optional[str] = None
    baggage: Optional[str] = None
    cabin_baggage: Optional[str] = None


class NormalizedFlight(CamelModel):
    id: str
    result_index: str
    trace_id: Optional[str] = None
    fare: NormalizedFare
    segments: List[NormalizedSegment] = Field(default_factory=list)
    is_lcc: bool = False
    is_refundable: bool = False
    airline_remark: Optional[str] = None

    @property
    def stops(self) -> int:
        return max(0, len(self.segments) - 1)

    def flight_key(self) -> str:
        """Key used for seat maps: first segment airline + flight number"""
        if not self.segments:
            return self.result_index
        first = self.segments[0]
        return f"{first.airline_code}{first.flight_number}"


def _float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def flatten_results(results: Any) -> List[Dict[str, Any]]:
    """Accept a single itinerary, a flat list or nested lists of itineraries"""
    if isinstance(results, dict):
        return [results]
    flat: List[Dict[str, Any]] = []
    for item in results or []:
        if isinstance(item, list):
            flat.extend(flatten_results(item))
        elif isinstance(item, dict) and "ResultIndex" in item:
            flat.append(item)
    return flat


def normalize_segment(raw: Dict[str, Any]) -> NormalizedSegment:
    origin = raw.get("Origin", {}) or {}
    destination = raw.get("Destination", {}) or {}
    origin_airport = origin.get("Airport", {}) or {}
    destination_airport = destination.get("Airport", {}) or {}
    airline = raw.get("Airline", {}) or {}

    return NormalizedSegment(
        origin=origin_airport.get("AirportCode", ""),
        origin_name=origin_airport.get("AirportName"),
        origin_city=origin_airport.get("CityName"),
        origin_country=origin_airport.get("CountryName"),
        destination=destination_airport.get("AirportCode", ""),
        destination_name=destination_airport.get("AirportName"),
        destination_city=destination_airport.get("CityName"),
        destination_country=destination_airport.get("CountryName"),
        departure_time=origin.get("DepTime"),
        arrival_time=destination.get("ArrTime"),
        duration=int(_float(raw.get("Duration"))),
        airline_code=airline.get("AirlineCode"),
        airline_name=airline.get("AirlineName"),
        flight_number=str(airline.get("FlightNumber")) if airline.get("FlightNumber") is not None else None,
        aircraft=raw.get("Craft"),
        baggage=raw.get("Baggage"),
        cabin_baggage=raw.get("CabinBaggage"),
    )


def normalize_itinerary(raw: Dict[str, Any], trace_id: Optional[str] = None) -> NormalizedFlight:
    """Map one inventory itinerary to the NormalizedFlight the web client renders"""
    fare_raw = raw.get("Fare", {}) or {}
    base = _float(fare_raw.get("BaseFare"))
    tax = _float(fare_raw.get("Tax"))
    offered = _float(fare_raw.get("OfferedFare")) or base + tax
    refundable = bool(raw.get("IsRefundable", False))

    segments: List[NormalizedSegment] = []
    for group in raw.get("Segments", []) or []:
        if isinstance(group, list):
            segments.extend(normalize_segment(seg) for seg in group)
        elif isinstance(group, dict):
            segments.append(normalize_segment(group))

    result_index = str(raw.get("ResultIndex", ""))
    return NormalizedFlight(
        id=f"{trace_id}_{result_index}",
        result_index=result_index,
        trace_id=trace_id,
        fare=NormalizedFare(
            base_fare=base,
            taxes=tax,
            total_fare=round(base + tax, 2),
            offered_fare=round(offered, 2),
            currency=fare_raw.get("Currency") or "INR",
            is_refundable=refundable,
        ),
        segments=segments,
        is_lcc=bool(raw.get("IsLCC", False)),
        is_refundable=refundable,
        airline_remark=raw.get("AirlineRemark"),
    )


class NormalizedSearchResult(CamelModel):
    trace_id: Optional[str] = None
    trip_type: str = "O"
    outbound: List[NormalizedFlight] = Field(default_factory=list)
    inbound: List[NormalizedFlight] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.outbound


def normalize_search_response(raw: Dict[str, Any], trip_type: str = "O") -> NormalizedSearchResult:
    """
    Split an inventory search response into outbound and return lists

    Round trips come back as [[outbound...], [return...]]; everything else is
    flattened into the outbound list.
    """
    response = raw.get("Response", raw) or {}
    trace_id = response.get("TraceId")
    results = response.get("Results") or []

    outbound_raw: List[Dict[str, Any]]
    inbound_raw: List[Dict[str, Any]] = []
    if (
        trip_type == "R"
        and isinstance(results, list)
        and len(results) == 2
        and all(isinstance(group, list) for group in results)
    ):
        outbound_raw = flatten_results(results[0])
        inbound_raw = flatten_results(results[1])
    else:
        outbound_raw = flatten_results(results)

    return NormalizedSearchResult(
        trace_id=trace_id,
        trip_type=trip_type,
        outbound=[normalize_itinerary(item, trace_id) for item in outbound_raw],
        inbound=[normalize_itinerary(item, trace_id) for item in inbound_raw],
    )


def no_results_payload(search: FlightSearchRequest, trace_id: Optional[str]) -> Dict[str, Any]:
    return {
        "success": False,
        "message": "No flights available for your selected route and dates",
        "suggestions": [
            "Try different travel dates",
            "Check nearby airports",
            "Consider flights with stops",
            "Try a different cabin class",
        ],
        "searchCriteria": {
            "segments": search.build_segments(),
            "tripType": search.trip_type,
            "passengers": {
                "adults": search.adults,
                "children": search.children,
                "infants": search.infants,
            },
            "cabinClass": search.cabin_class,
        },
        "traceId": trace_id,
    }
