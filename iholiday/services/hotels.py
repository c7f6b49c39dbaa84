"""
TBO Hotel Client - Static data, search, prebook, book, voucher and cancellation
"""

import logging
from typing import Any, Dict, List, Optional
import uuid

from iholiday.core.config import get_settings
from iholiday.models.hotel import HotelSearchRequest
from iholiday.services.pricing import apply_markup
from iholiday.services.store import get_store
from iholiday.services.tbo import TboClient, unwrap

logger = logging.getLogger(__name__)

DAY = 24 * 3600
COUNTRY_CACHE_TTL = 7 * DAY
CITY_CACHE_TTL = 7 * DAY
HOTEL_CODES_CACHE_TTL = 3 * DAY
MAX_HOTEL_CODES_PER_SEARCH = 100

MOCK_COUNTRIES = [
    {"Code": "IN", "Name": "India"},
    {"Code": "AE", "Name": "United Arab Emirates"},
    {"Code": "TH", "Name": "Thailand"},
    {"Code": "SG", "Name": "Singapore"},
    {"Code": "GB", "Name": "United Kingdom"},
]

MOCK_CITIES = {
    "IN": [{"Code": "130443", "Name": "New Delhi"}, {"Code": "144306", "Name": "Mumbai"},
           {"Code": "126632", "Name": "Goa"}],
    "AE": [{"Code": "115936", "Name": "Dubai"}, {"Code": "100765", "Name": "Abu Dhabi"}],
    "TH": [{"Code": "100589", "Name": "Bangkok"}, {"Code": "119581", "Name": "Phuket"}],
    "SG": [{"Code": "138673", "Name": "Singapore"}],
    "GB": [{"Code": "126388", "Name": "London"}, {"Code": "134108", "Name": "Manchester"}],
}

MOCK_HOTELS = [
    ("HOTEL001", "Mock Hotel Dubai", 5, 4.5, 5000, 4500),
    ("HOTEL002", "Marina Bay Residency", 4, 4.2, 3800, 3400),
    ("HOTEL003", "Palm Garden Inn", 3, 3.9, 2600, 2300),
]


class TboHotelClient(TboClient):
    """
    Client for TBO Hotel API

    Features:
    - Country / city / hotel code lists cached in the store
    - Search with markup applied to room rates
    - PreBook price verification, Book, GenerateVoucher
    - Cancellation through change requests
    """

    USE_BASIC_AUTH = True

    def _hotel(self, method: str) -> str:
        return f"{self.settings.tbo_hotel_base_url}/{method}"

    def _static(self, method: str) -> str:
        return f"{self.settings.tbo_static_base_url}/{method}"

    def country_list(self) -> List[Dict[str, Any]]:
        def load() -> List[Dict[str, Any]]:
            data = self._call("country_list", self._static("CountryList"), {}, authenticated=False)
            return data.get("CountryList") or []

        return self.store.remember("tbo:countries", COUNTRY_CACHE_TTL, load)

    def city_list(self, country_code: str) -> List[Dict[str, Any]]:
        country_code = country_code.upper()

        def load() -> List[Dict[str, Any]]:
            data = self._call("city_list", self._static("CityList"), {"CountryCode": country_code},
                              authenticated=False)
            return data.get("CityList") or []

        return self.store.remember(f"tbo:cities:{country_code}", CITY_CACHE_TTL, load)

    def hotel_codes(self, city_code: str) -> List[str]:
        def load() -> List[str]:
            data = self._call("hotel_codes", self._static("TBOHotelCodeList"),
                              {"CityCode": city_code, "IsDetailedResponse": False}, authenticated=False)
            hotels = data.get("Hotels") or []
            return [str(h.get("HotelCode")) for h in hotels if h.get("HotelCode")]

        return self.store.remember(f"tbo:hotel-codes:{city_code}", HOTEL_CODES_CACHE_TTL, load)

    def search(self, request: HotelSearchRequest, hotel_codes: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Search hotels in a city

        Args:
            request: Validated search request
            hotel_codes: Optional explicit hotel codes (defaults to the city's list)

        Returns:
            Raw inventory response with markup applied
        """
        codes = hotel_codes or self.hotel_codes(request.city_id)
        payload = {
            "CheckIn": request.check_in.isoformat(),
            "CheckOut": request.check_out.isoformat(),
            "HotelCodes": ",".join(codes[:MAX_HOTEL_CODES_PER_SEARCH]),
            "GuestNationality": request.nationality,
            "NoOfRooms": len(request.rooms),
            "PaxRooms": [room.to_pax_room() for room in request.rooms],
            "ResponseTime": 23.0,
            "IsDetailedResponse": True,
            "Filters": {
                "Refundable": False,
                "NoOfRooms": 0,
                "MealType": 0,
                "StarRating": request.min_rating or 0,
            },
        }
        logger.info("Hotel search city=%s %s..%s rooms=%d", request.city_id,
                    payload["CheckIn"], payload["CheckOut"], len(request.rooms))
        data = self._call("search", self._hotel("Search"), payload)
        return self._apply_markup(data)

    def _markup(self, rate: Dict[str, Any]) -> None:
        pct = self.settings.hotel_markup_pct
        for key in ("TotalFare", "OfferedFare"):
            if rate.get(key) is not None:
                rate[key] = apply_markup(float(rate[key]), pct)

    def _apply_markup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if self.settings.hotel_markup_pct <= 0:
            return data
        response = unwrap(data)
        for hotel in response.get("HotelSearchResult") or response.get("HotelResults") or []:
            for room in hotel.get("HotelRooms") or hotel.get("Rooms") or []:
                rates = room.get("RoomRate") or room.get("Rates") or []
                for rate in ([rates] if isinstance(rates, dict) else rates):
                    self._markup(rate)
        return data

    def prebook(self, booking_code: str) -> Dict[str, Any]:
        """Verify price and policies for a room rate before booking"""
        data = self._call("prebook", self._hotel("PreBook"), {"BookingCode": booking_code})
        if self.settings.hotel_markup_pct > 0:
            self._markup(unwrap(data))
        return data

    def book(self, booking_code: str, net_amount: float, passengers: List[Dict[str, Any]],
             nationality: str = "IN", is_voucher_booking: bool = False,
             client_reference: Optional[str] = None) -> Dict[str, Any]:
        payload = {
            "BookingCode": booking_code,
            "GuestNationality": nationality,
            "IsVoucherBooking": is_voucher_booking,
            "NetAmount": net_amount,
            "ClientReferenceId": client_reference or uuid.uuid4().hex[:16],
            "HotelRoomsDetails": [{"HotelPassenger": passengers}],
            "HotelPassenger": passengers,
        }
        logger.info("Hotel book %s net=%s guests=%d", booking_code, net_amount, len(passengers))
        return self._call("book", self._hotel("Book"), payload)

    def generate_voucher(self, booking_id: str) -> Dict[str, Any]:
        return self._call("generate_voucher", self._hotel("GenerateVoucher"), {"BookingId": booking_id})

    def booking_detail(self, booking_id: Optional[str] = None,
                       confirmation_no: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if booking_id:
            payload["BookingId"] = booking_id
        if confirmation_no:
            payload["ConfirmationNo"] = confirmation_no
        return self._call("booking_detail", self._hotel("GetBookingDetail"), payload)

    def send_cancel(self, booking_id: str, remarks: str = "Cancelled by customer") -> Dict[str, Any]:
        payload = {"BookingId": booking_id, "RequestType": 4, "Remarks": remarks}
        return self._call("send_cancel", self._hotel("SendChangeRequest"), payload)

    def cancel_status(self, change_request_id: str) -> Dict[str, Any]:
        payload = {"ChangeRequestId": change_request_id}
        return self._call("cancel_status", self._hotel("GetChangeRequestStatus"), payload)

    # Mock responses

    def _mock_response(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        ok = {"Status": {"Code": 200, "Description": "Successful"}}

        if kind == "country_list":
            return {**ok, "CountryList": MOCK_COUNTRIES}
        if kind == "city_list":
            return {**ok, "CityList": MOCK_CITIES.get(payload["CountryCode"], [])}
        if kind == "hotel_codes":
            return {**ok, "Hotels": [{"HotelCode": code, "HotelName": name}
                                     for code, name, *_ in MOCK_HOTELS]}

        if kind == "search":
            trace_id = f"MOCK-{uuid.uuid4().hex[:12]}"
            nights_note = f"{payload['CheckIn']} to {payload['CheckOut']}"
            hotels = [
                {
                    "ResultIndex": index,
                    "HotelCode": code,
                    "HotelName": name,
                    "StarRating": stars,
                    "TripAdvisorRating": rating,
                    "HotelAddress": f"{index + 1} Sheikh Zayed Road",
                    "HotelPicture": f"https://images.ideaholiday.com/mock/{code.lower()}.jpg",
                    "HotelRooms": [
                        {
                            "RoomTypeCode": "DELUXE",
                            "RoomTypeName": "Deluxe Room",
                            "MealType": "BB",
                            "RoomRate": [{
                                "RatePlanCode": f"RP{index + 1}",
                                "TotalFare": total,
                                "OfferedFare": offered,
                                "Currency": "INR",
                                "BookingCode": f"BC{code[-3:]}{index}{uuid.uuid4().hex[:6].upper()}",
                                "Inclusion": nights_note,
                            }],
                        },
                        {
                            "RoomTypeCode": "SUITE",
                            "RoomTypeName": "Executive Suite",
                            "MealType": "HB",
                            "RoomRate": [{
                                "RatePlanCode": f"RS{index + 1}",
                                "TotalFare": total + 2000,
                                "OfferedFare": offered + 1800,
                                "Currency": "INR",
                                "BookingCode": f"BS{code[-3:]}{index}{uuid.uuid4().hex[:6].upper()}",
                                "Inclusion": nights_note,
                            }],
                        },
                    ],
                }
                for index, (code, name, stars, rating, total, offered) in enumerate(MOCK_HOTELS)
            ]
            return {**ok, "Response": {"TraceId": trace_id, "HotelSearchResult": hotels}}

        if kind == "prebook":
            return {**ok, "Response": {
                "BookingCode": payload.get("BookingCode", "BC123456"),
                "IsPriceChanged": False,
                "IsPolicyChanged": False,
                "TotalFare": 4500,
                "Taxes": 500,
                "NetAmount": 4000,
                "Currency": "INR",
                "CancellationPolicy": "Free cancellation until 24 hours before check-in",
                "IsPanRequired": False,
                "IsPassportRequired": False,
            }}

        if kind == "book":
            return {**ok, "Response": {
                "BookingStatus": "Confirmed" if payload.get("IsVoucherBooking") else "Booked",
                "BookingId": f"BK{uuid.uuid4().int % 100000:05d}",
                "ConfirmationNo": f"CNF{uuid.uuid4().int % 100000:05d}",
                "TotalFare": payload.get("NetAmount", 4500),
                "Currency": "INR",
            }}

        if kind == "generate_voucher":
            return {**ok, "Response": {
                "BookingId": payload.get("BookingId"),
                "VoucherStatus": "Generated",
                "VoucherUrl": "https://mock-voucher-url.com/voucher.pdf",
            }}

        if kind == "booking_detail":
            return {**ok, "Response": {
                "BookingId": payload.get("BookingId"),
                "ConfirmationNo": payload.get("ConfirmationNo"),
                "BookingStatus": "Confirmed",
                "HotelName": "Mock Hotel Dubai",
            }}

        if kind == "send_cancel":
            return {**ok, "Response": {
                "ChangeRequestId": f"CR{uuid.uuid4().int % 100000:05d}",
                "ChangeRequestStatus": "Pending",
            }}

        if kind == "cancel_status":
            return {**ok, "Response": {
                "ChangeRequestId": payload.get("ChangeRequestId"),
                "ChangeRequestStatus": "Processed",
                "RefundedAmount": 4000,
                "CancellationCharge": 500,
            }}

        return super()._mock_response(kind, payload)


_client_instance: Optional[TboHotelClient] = None


def get_hotel_client() -> TboHotelClient:
    """
    Get singleton hotel client instance

    Returns:
        TboHotelClient configured from Settings
    """
    global _client_instance
    if _client_instance is None:
        _client_instance = TboHotelClient(get_settings(), get_store())
    return _client_instance


def reset_hotel_client() -> None:
    global _client_instance
    _client_instance = None
