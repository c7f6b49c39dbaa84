"""
TBO Air Client - Flight search, fare quote, booking and ticketing
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional
import uuid

from iholiday.core.config import get_settings
from iholiday.models.flight import FlightSearchRequest
from iholiday.services.pricing import apply_markup
from iholiday.services.store import get_store
from iholiday.services.tbo import TboClient

logger = logging.getLogger(__name__)

# Search uses the air API cabin codes, calendar fare uses its own scale
CABIN_CLASS_CODES = {"E": 2, "PE": 3, "B": 4, "F": 6}
CALENDAR_CABIN_CODES = {"E": 1, "PE": 2, "B": 3, "F": 4}
JOURNEY_TYPES = {"O": 1, "R": 2, "M": 3}

MOCK_AIRLINES = [
    ("6E", "IndiGo", "320", True),
    ("AI", "Air India", "32N", False),
    ("UK", "Vistara", "321", False),
]


class TboAirClient(TboClient):
    """
    Client for TBO Air API

    Features:
    - One way, round trip and multi-city search
    - Fare quote / fare rule / SSR lookups for a selected result
    - Book (hold PNR), ticket and post-booking change requests
    - Markup applied to search fares
    """

    def _air(self, method: str) -> str:
        return f"{self.settings.tbo_air_base_url}/{method}"

    def _booking(self, method: str) -> str:
        return f"{self.settings.tbo_booking_base_url}/{method}"

    def search(self, request: FlightSearchRequest) -> Dict[str, Any]:
        """
        Search flights for the given form

        Args:
            request: Validated search request

        Returns:
            Raw inventory response with markup applied
        """
        cabin = CABIN_CLASS_CODES[request.cabin_class]
        segments = [
            {
                "Origin": seg["origin"],
                "Destination": seg["destination"],
                "FlightCabinClass": cabin,
                "PreferredDepartureTime": seg["departureDate"],
                "PreferredArrivalTime": seg["departureDate"],
            }
            for seg in request.build_segments()
        ]
        payload = {
            "AdultCount": request.adults,
            "ChildCount": request.children,
            "InfantCount": request.infants,
            "DirectFlight": request.direct,
            "OneStopFlight": request.one_stop,
            "JourneyType": JOURNEY_TYPES[request.trip_type],
            "PreferredAirlines": request.preferred_airlines or None,
            "Segments": segments,
            "Sources": None,
        }

        logger.info(
            "Flight search %s %s pax=%s/%s/%s",
            request.trip_type,
            " / ".join(f"{s['Origin']}-{s['Destination']}" for s in segments),
            request.adults, request.children, request.infants,
        )
        data = self._call("search", self._air("Search"), payload)
        return self._apply_markup(data)

    def _apply_markup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pct = self.settings.flight_markup_pct
        if pct <= 0:
            return data
        results = (data.get("Response") or {}).get("Results") or []

        def visit(node: Any) -> None:
            if isinstance(node, list):
                for item in node:
                    visit(item)
            elif isinstance(node, dict):
                fare = node.get("Fare") or {}
                for key in ("OfferedFare", "PublishedFare"):
                    if fare.get(key) is not None:
                        fare[key] = apply_markup(float(fare[key]), pct)

        visit(results)
        return data

    def _result_call(self, kind: str, method: str, trace_id: str, result_index: str) -> Dict[str, Any]:
        payload = {"TraceId": trace_id, "ResultIndex": result_index}
        return self._call(kind, self._air(method), payload)

    def fare_quote(self, trace_id: str, result_index: str) -> Dict[str, Any]:
        """Re-price a selected result; reports IsPriceChanged"""
        return self._result_call("fare_quote", "FareQuote", trace_id, result_index)

    def fare_rule(self, trace_id: str, result_index: str) -> Dict[str, Any]:
        return self._result_call("fare_rule", "FareRule", trace_id, result_index)

    def ssr(self, trace_id: str, result_index: str) -> Dict[str, Any]:
        """Baggage, meal and seat options for a selected result"""
        return self._result_call("ssr", "SSR", trace_id, result_index)

    def _calendar_payload(self, origin: str, destination: str, departure: str,
                          cabin_class: str, journey_type: str) -> Dict[str, Any]:
        return {
            "JourneyType": 2 if journey_type == "R" else 1,
            "PreferredAirlines": None,
            "Segments": [{
                "Origin": origin.upper(),
                "Destination": destination.upper(),
                "FlightCabinClass": CALENDAR_CABIN_CODES.get(cabin_class, 1),
                "PreferredDepartureTime": departure,
            }],
            "Sources": None,
        }

    def calendar_fare(self, origin: str, destination: str, departure: str,
                      cabin_class: str = "E", journey_type: str = "O") -> Dict[str, Any]:
        """Cheapest fare per day around the departure month"""
        payload = self._calendar_payload(origin, destination, departure, cabin_class, journey_type)
        return self._call("calendar_fare", self._air("GetCalendarFare"), payload)

    def update_calendar_fare_of_day(self, origin: str, destination: str, departure: str,
                                    cabin_class: str = "E", journey_type: str = "O") -> Dict[str, Any]:
        payload = self._calendar_payload(origin, destination, departure, cabin_class, journey_type)
        return self._call("update_calendar_fare", self._air("UpdateCalendarFareOfDay"), payload)

    def price_rbd(self, trace_id: str, air_search_result: List[Dict[str, Any]],
                  adults: int = 1, children: int = 0, infants: int = 0) -> Dict[str, Any]:
        payload = {
            "TraceId": trace_id,
            "AdultCount": adults,
            "ChildCount": children,
            "InfantCount": infants,
            "AirSearchResult": air_search_result,
        }
        return self._call("price_rbd", self._air("PriceRBD"), payload)

    def book(self, trace_id: str, result_index: str, passengers: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Hold a PNR for the selected result

        Args:
            trace_id: Search trace id
            result_index: Selected result
            passengers: Passengers already mapped to the inventory format

        Returns:
            Raw inventory booking response (Response.Response has PNR and BookingId)
        """
        payload = {"TraceId": trace_id, "ResultIndex": result_index, "Passengers": passengers}
        logger.info("Flight book %s (%d passengers)", result_index, len(passengers))
        return self._call("book", self._booking("Book"), payload)

    def ticket(self, booking_id: Optional[str] = None, pnr: Optional[str] = None,
               trace_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {"TraceId": trace_id, "PNR": pnr, "BookingId": booking_id}
        logger.info("Flight ticket booking=%s pnr=%s", booking_id, pnr)
        return self._call("ticket", self._booking("Ticket"), payload)

    def booking_details(self, booking_id: Optional[str] = None, pnr: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if booking_id:
            payload["BookingId"] = booking_id
        if pnr:
            payload["PNR"] = pnr
        return self._call("booking_details", self._booking("GetBookingDetails"), payload)

    def send_change_request(self, booking_id: str, change_type: str, remarks: Optional[str] = None) -> Dict[str, Any]:
        payload = {
            "BookingId": booking_id,
            "RequestType": change_type,
            "CancellationType": 0,
            "Remarks": remarks or "",
        }
        return self._call("send_change_request", self._booking("SendChangeRequest"), payload)

    def change_request_status(self, change_request_id: str) -> Dict[str, Any]:
        payload = {"ChangeRequestId": change_request_id}
        return self._call("change_request_status", self._booking("GetChangeRequestStatus"), payload)

    def release_pnr(self, booking_id: str, source: Optional[str] = None) -> Dict[str, Any]:
        payload = {"BookingId": booking_id, "Source": source}
        return self._call("release_pnr", self._booking("ReleasePNRRequest"), payload)

    def cancellation_charges(self, booking_id: str, request_type: str = "1") -> Dict[str, Any]:
        payload = {"BookingId": booking_id, "RequestType": request_type}
        return self._call("cancellation_charges", self._air("GetCancellationCharges"), payload)

    # Mock responses

    def _mock_response(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        ok = {"ResponseStatus": 1, "Error": {"ErrorCode": 0, "ErrorMessage": ""}}
        trace_id = payload.get("TraceId") or f"MOCK-{uuid.uuid4().hex[:12]}"

        if kind == "search":
            segments = payload["Segments"]
            groups = [
                [self._mock_itinerary(seg, leg, option) for option in range(len(MOCK_AIRLINES))]
                for leg, seg in enumerate(segments)
            ]
            if payload.get("JourneyType") != JOURNEY_TYPES["R"]:
                # one way and multi-city come back as a single group
                groups = [[item for group in groups for item in group]]
            return {"Response": {**ok, "TraceId": trace_id, "Results": groups}}

        if kind in ("fare_quote", "price_rbd"):
            result = self._mock_itinerary(
                {"Origin": "DEL", "Destination": "BOM", "PreferredDepartureTime": datetime.now().strftime("%Y-%m-%dT00:00:00")},
                0, 0,
            )
            result["ResultIndex"] = payload.get("ResultIndex", result["ResultIndex"])
            return {"Response": {**ok, "TraceId": trace_id, "IsPriceChanged": False, "Results": result}}

        if kind == "fare_rule":
            return {"Response": {**ok, "TraceId": trace_id, "FareRules": [{
                "Airline": "6E",
                "Origin": "DEL",
                "Destination": "BOM",
                "FareBasisCode": "R0IP",
                "FareRuleDetail": "Cancellation fee INR 3500 per passenger up to 2 hours before departure.",
            }]}}

        if kind == "ssr":
            return {"Response": {**ok, "TraceId": trace_id,
                "Baggage": [[
                    {"Code": "XBPA", "Weight": 5, "Price": 1800, "Currency": "INR", "Description": "Prepaid 5 kg"},
                    {"Code": "XBPB", "Weight": 10, "Price": 3600, "Currency": "INR", "Description": "Prepaid 10 kg"},
                ]],
                "MealDynamic": [[
                    {"Code": "VGML", "Description": "Veg meal", "Price": 350, "Currency": "INR"},
                    {"Code": "NVML", "Description": "Non-veg meal", "Price": 400, "Currency": "INR"},
                ]],
                "SeatDynamic": [{"SegmentSeat": [{"RowSeats": [{"Seats": [
                    {"Code": f"{row}{col}", "RowNo": str(row), "SeatNo": col, "Price": 250 if row < 5 else 0}
                    for col in "ABCDEF"
                ]} for row in range(1, 11)]}]}],
            }}

        if kind in ("calendar_fare", "update_calendar_fare"):
            seg = payload["Segments"][0]
            start = datetime.strptime(seg["PreferredDepartureTime"][:10], "%Y-%m-%d")
            days = [
                {
                    "AirlineCode": MOCK_AIRLINES[day % 3][0],
                    "AirlineName": MOCK_AIRLINES[day % 3][1],
                    "BaseFare": 3500 + (day % 7) * 250,
                    "Tax": 650,
                    "Fare": 4150 + (day % 7) * 250,
                    "DepartureDate": (start + timedelta(days=day)).strftime("%Y-%m-%dT00:00:00"),
                    "IsLowestFareOfMonth": day % 7 == 0,
                }
                for day in range(30)
            ]
            return {"Response": {**ok, "TraceId": trace_id, "Origin": seg["Origin"],
                                 "Destination": seg["Destination"], "SearchResults": days}}

        if kind == "book":
            booking_id = 1000000 + uuid.uuid4().int % 900000
            pnr = uuid.uuid4().hex[:6].upper()
            return {"Response": {**ok, "TraceId": trace_id, "Response": {
                "PNR": pnr,
                "BookingId": booking_id,
                "SSRDenied": False,
                "IsPriceChanged": False,
                "Status": 1,
                "FlightItinerary": {"BookingId": booking_id, "PNR": pnr,
                                    "Passenger": payload.get("Passengers", [])},
            }}}

        if kind == "ticket":
            pnr = payload.get("PNR") or uuid.uuid4().hex[:6].upper()
            return {"Response": {**ok, "TraceId": trace_id, "Response": {
                "PNR": pnr,
                "BookingId": payload.get("BookingId"),
                "TicketStatus": 1,
                "FlightItinerary": {"PNR": pnr, "Passenger": [
                    {"Ticket": {"TicketNumber": f"098{uuid.uuid4().int % 10 ** 10:010d}"}}
                ]},
            }}}

        if kind == "booking_details":
            return {"Response": {**ok, "FlightItinerary": {
                "BookingId": payload.get("BookingId"),
                "PNR": payload.get("PNR") or "MOCKPN",
                "Status": 5,
            }}}

        if kind == "send_change_request":
            return {"Response": {**ok, "TicketCRInfo": [{
                "ChangeRequestId": 500000 + uuid.uuid4().int % 100000,
                "Status": 1,
            }]}}

        if kind == "change_request_status":
            return {"Response": {**ok, "ChangeRequestId": payload.get("ChangeRequestId"),
                                 "ChangeRequestStatus": 4, "RefundedAmount": 2500, "CancellationCharge": 3500}}

        if kind == "release_pnr":
            return {"Response": {**ok}}

        if kind == "cancellation_charges":
            return {"Response": {**ok, "RefundAmount": 2500, "CancellationCharge": 3500, "Currency": "INR"}}

        return super()._mock_response(kind, payload)

    @staticmethod
    def _mock_itinerary(segment: Dict[str, Any], leg: int, option: int) -> Dict[str, Any]:
        code, name, craft, is_lcc = MOCK_AIRLINES[option]
        departure = datetime.strptime(segment["PreferredDepartureTime"][:10], "%Y-%m-%d") + timedelta(
            hours=6 + option * 4
        )
        duration = 125 + option * 15
        base = 4000 + option * 750 + leg * 200
        tax = 650 + option * 50
        return {
            "ResultIndex": f"OB{leg + 1}{option + 1}" if leg == 0 else f"IB{leg + 1}{option + 1}",
            "IsLCC": is_lcc,
            "IsRefundable": not is_lcc,
            "AirlineRemark": None,
            "Fare": {
                "Currency": "INR",
                "BaseFare": base,
                "Tax": tax,
                "OfferedFare": base + tax,
                "PublishedFare": base + tax + 150,
            },
            "Segments": [[{
                "Origin": {
                    "Airport": {"AirportCode": segment["Origin"], "AirportName": segment["Origin"],
                                "CityName": segment["Origin"], "CountryName": "India"},
                    "DepTime": departure.strftime("%Y-%m-%dT%H:%M:%S"),
                },
                "Destination": {
                    "Airport": {"AirportCode": segment["Destination"], "AirportName": segment["Destination"],
                                "CityName": segment["Destination"], "CountryName": "India"},
                    "ArrTime": (departure + timedelta(minutes=duration)).strftime("%Y-%m-%dT%H:%M:%S"),
                },
                "Duration": duration,
                "Airline": {"AirlineCode": code, "AirlineName": name, "FlightNumber": str(100 + option * 111 + leg)},
                "Craft": craft,
                "Baggage": "15 KG",
                "CabinBaggage": "7 KG",
            }]],
        }


_client_instance: Optional[TboAirClient] = None


def get_air_client() -> TboAirClient:
    """
    Get singleton air client instance

    Returns:
        TboAirClient configured from Settings
    """
    global _client_instance
    if _client_instance is None:
        _client_instance = TboAirClient(get_settings(), get_store())
    return _client_instance


def reset_air_client() -> None:
    global _client_instance
    _client_instance = None
