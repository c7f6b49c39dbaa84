"""
Flight request validation and search response normalization
"""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from iholiday.models.flight import (
    ContactInfo,
    FlightBookRequest,
    FlightPassenger,
    FlightSearchRequest,
    flatten_results,
    no_results_payload,
    normalize_itinerary,
    normalize_search_response,
)


def _raw_itinerary(index, base=4000, tax=650, offered=None):
    return {
        "ResultIndex": index,
        "IsLCC": True,
        "IsRefundable": False,
        "Fare": {"Currency": "INR", "BaseFare": base, "Tax": tax, "OfferedFare": offered},
        "Segments": [[{
            "Origin": {"Airport": {"AirportCode": "DEL", "CityName": "Delhi"}, "DepTime": "2026-12-01T06:00:00"},
            "Destination": {"Airport": {"AirportCode": "BOM", "CityName": "Mumbai"}, "ArrTime": "2026-12-01T08:05:00"},
            "Duration": 125,
            "Airline": {"AirlineCode": "6E", "AirlineName": "IndiGo", "FlightNumber": 2134},
        }]],
    }


def test_search_requires_segments_or_origin():
    with pytest.raises(ValidationError, match="Provide either segments"):
        FlightSearchRequest(trip_type="O")


def test_search_normalizes_codes_and_builds_round_trip(travel_date):
    search = FlightSearchRequest(
        origin="del", destination="bom", depart_date=travel_date,
        return_date=travel_date + timedelta(days=5), trip_type="R",
    )
    segments = search.build_segments()
    assert [(s["origin"], s["destination"]) for s in segments] == [("DEL", "BOM"), ("BOM", "DEL")]
    assert segments[0]["departureDate"].endswith("T00:00:00")


def test_search_rejects_past_dates_and_infant_overflow(travel_date):
    with pytest.raises(ValidationError):
        FlightSearchRequest(origin="DEL", destination="BOM", depart_date=date.today() - timedelta(days=1))
    with pytest.raises(ValidationError, match="infant"):
        FlightSearchRequest(origin="DEL", destination="BOM", depart_date=travel_date, adults=1, infants=2)


def test_round_trip_needs_return_after_departure(travel_date):
    with pytest.raises(ValidationError, match="returnDate is required"):
        FlightSearchRequest(origin="DEL", destination="BOM", depart_date=travel_date, trip_type="R")
    with pytest.raises(ValidationError, match="after departDate"):
        FlightSearchRequest(
            origin="DEL", destination="BOM", depart_date=travel_date,
            return_date=travel_date, trip_type="R",
        )


def test_multi_city_segment_rules(travel_date):
    legs = [
        {"origin": "DEL", "destination": "BOM", "departureDate": travel_date.isoformat()},
        {"origin": "BOM", "destination": "GOI", "departureDate": (travel_date + timedelta(days=2)).isoformat()},
    ]
    search = FlightSearchRequest.model_validate({"segments": legs, "tripType": "M"})
    assert len(search.build_segments()) == 2

    with pytest.raises(ValidationError, match="segments"):
        FlightSearchRequest.model_validate({"segments": legs[:1], "tripType": "M"})
    with pytest.raises(ValidationError, match="chronological"):
        FlightSearchRequest.model_validate({"segments": list(reversed(legs)), "tripType": "M"})


def test_passenger_age_against_travel_date():
    travel = date(2027, 1, 10)
    child = FlightPassenger(
        title="Mstr", first_name="Kabir", last_name="Mehta", type="CHD",
        date_of_birth=date(2016, 6, 1), gender="M",
    )
    child.check_age(travel)

    as_adult = child.model_copy(update={"type": "ADT"})
    with pytest.raises(ValueError, match="cannot travel as an adult"):
        as_adult.check_age(travel)

    infant = FlightPassenger(
        title="Miss", first_name="Anaya", last_name="Mehta", type="INF",
        date_of_birth=date(2024, 6, 1), gender="F",
    )
    with pytest.raises(ValueError, match="under 2"):
        infant.check_age(travel)


def test_contact_email_is_normalized():
    contact = ContactInfo(email="  Traveler@Example.COM ", phone="9876543210")
    assert contact.email == "traveler@example.com"
    with pytest.raises(ValidationError):
        ContactInfo(email="not-an-email", phone="9876543210")


def test_book_request_needs_an_adult(adult, contact):
    child = {**adult, "type": "CHD", "title": "Mstr", "dateOfBirth": "2017-01-01"}
    with pytest.raises(ValidationError, match="at least one adult"):
        FlightBookRequest.model_validate({
            "resultIndex": "OB11", "traceId": "T1", "passengers": [child], "contactInfo": contact,
        })


def test_normalize_itinerary_fares_and_segments():
    flight = normalize_itinerary(_raw_itinerary("OB1"), "TRACE")
    assert flight.id == "TRACE_OB1"
    assert flight.fare.total_fare == 4650
    # OfferedFare missing falls back to base + tax
    assert flight.fare.offered_fare == 4650
    assert flight.segments[0].flight_number == "2134"
    assert flight.flight_key() == "6E2134"
    assert flight.stops == 0


def test_flatten_results_accepts_nested_lists():
    nested = [[_raw_itinerary("OB1"), [_raw_itinerary("OB2")]], {"noise": True}]
    assert [r["ResultIndex"] for r in flatten_results(nested)] == ["OB1", "OB2"]
    assert len(flatten_results(_raw_itinerary("OB9"))) == 1


def test_round_trip_response_splits_groups():
    raw = {"Response": {"TraceId": "T1", "Results": [[_raw_itinerary("OB1")], [_raw_itinerary("IB1")]]}}
    result = normalize_search_response(raw, "R")
    assert [f.result_index for f in result.outbound] == ["OB1"]
    assert [f.result_index for f in result.inbound] == ["IB1"]

    one_way = normalize_search_response(raw, "O")
    assert len(one_way.outbound) == 2
    assert one_way.inbound == []


def test_no_results_payload_echoes_criteria(travel_date):
    search = FlightSearchRequest(origin="DEL", destination="BOM", depart_date=travel_date, adults=2)
    payload = no_results_payload(search, "T1")
    assert payload["success"] is False
    assert payload["suggestions"]
    assert payload["searchCriteria"]["passengers"]["adults"] == 2
    assert payload["traceId"] == "T1"
