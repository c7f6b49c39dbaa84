"""
Flight and hotel checkout wizards: step guards, selections and pricing
"""

from datetime import datetime, timedelta, timezone

import pytest

from iholiday.core.errors import BookingFlowError
from iholiday.models.flight import FlightSearchRequest, normalize_search_response
from iholiday.models.hotel import HotelSearchRequest, format_hotel_results
from iholiday.services.air import get_air_client
from iholiday.services.booking_session import FlightBookingSession, HotelBookingSession
from iholiday.services.hotels import get_hotel_client
from iholiday.services.tbo import unwrap


@pytest.fixture
def flight_session(flight_search):
    session = FlightBookingSession(insurance_price=200.0, promo_codes={"WELCOME100": 100.0})
    search = session.set_search(flight_search)
    session.apply_results(normalize_search_response(get_air_client().search(search), search.trip_type))
    return session


@pytest.fixture
def round_trip_session(flight_search, travel_date):
    session = FlightBookingSession()
    criteria = {**flight_search, "tripType": "R", "returnDate": (travel_date + timedelta(days=4)).isoformat()}
    search = session.set_search(criteria)
    session.apply_results(normalize_search_response(get_air_client().search(search), "R"))
    return session


def test_new_session_starts_at_search():
    session = FlightBookingSession()
    assert session.step == "search"
    with pytest.raises(BookingFlowError, match="search criteria are missing"):
        session.next_step()


def test_results_then_selection_moves_to_review(flight_session):
    assert flight_session.step == "results"
    assert [f.result_index for f in flight_session.outbound_results] == ["OB11", "OB12", "OB13"]
    with pytest.raises(BookingFlowError, match="no outbound flight selected"):
        flight_session.go_to("review")

    flight_session.select_outbound("OB11")
    assert flight_session.step == "review"
    assert flight_session.price().total == 4650


def test_round_trip_requires_return(round_trip_session):
    round_trip_session.select_outbound("OB11")
    assert round_trip_session.step == "results"
    with pytest.raises(BookingFlowError, match="no return flight selected"):
        round_trip_session.go_to("review")

    round_trip_session.select_return("IB21")
    assert round_trip_session.step == "review"
    # 4650 outbound + 4850 return
    assert round_trip_session.price().total == 9500


def test_passenger_counts_must_match_search(flight_session, adult):
    with pytest.raises(BookingFlowError, match="Expected 1 adult"):
        flight_session.set_passengers([adult, {**adult, "firstName": "Second"}])

    passengers = flight_session.set_passengers([adult])
    assert passengers[0].id == "passenger_1"
    assert flight_session.passengers_complete


def test_payment_step_needs_passengers_and_contact(flight_session, adult, contact):
    flight_session.select_outbound("OB12")
    flight_session.next_step()
    assert flight_session.step == "checkout"
    with pytest.raises(BookingFlowError, match="passenger details are incomplete"):
        flight_session.next_step()

    flight_session.set_passengers([adult])
    with pytest.raises(BookingFlowError, match="contact details are missing"):
        flight_session.next_step()
    flight_session.set_contact(contact)
    assert flight_session.next_step() == "payment"
    assert flight_session.available_steps()["payment"] is True
    assert flight_session.available_steps()["confirmation"] is False


def test_extras_promo_and_insurance_in_price(flight_session, adult):
    flight_session.select_outbound("OB11")
    flight_session.set_passengers([adult])
    flight_session.add_addon({"type": "baggage", "name": "Prepaid 5 kg", "price": 1800})
    flight_session.set_insurance(True)
    flight_session.apply_promo("welcome100")

    price = flight_session.price()
    assert price.fees == 2000
    assert price.discount == 100
    assert price.total == 4650 + 2000 - 100
    assert flight_session.promo_code == "WELCOME100"

    flight_session.remove_addon(0)
    flight_session.remove_promo()
    assert flight_session.price().total == 4850
    with pytest.raises(BookingFlowError):
        flight_session.apply_promo("BOGUS")


def test_seats_are_limited_per_flight(flight_session, adult):
    flight = flight_session.select_outbound("OB11")
    key = flight.flight_key()
    flight_session.add_seat(key, "12a")
    assert flight_session.seats[key] == ["12A"]
    with pytest.raises(BookingFlowError, match="already has a seat"):
        flight_session.add_seat(key, "12B")
    with pytest.raises(BookingFlowError, match="not part of this booking"):
        flight_session.add_seat("XX999", "1A")

    flight_session.remove_seat(key, "12A")
    assert key not in flight_session.seats


def test_ssr_selections_are_dropped_with_empty_values(flight_session, adult):
    flight_session.set_passengers([adult])
    flight_session.update_ssr("passenger_1", "meal", "VGML")
    assert flight_session.ssr == {"passenger_1": {"meal": "VGML"}}
    flight_session.update_ssr("passenger_1", "meal", None)
    assert flight_session.ssr == {}
    with pytest.raises(BookingFlowError, match="Unknown passenger"):
        flight_session.update_ssr("passenger_9", "meal", "VGML")


def test_new_search_clears_selection(flight_session, flight_search, adult):
    flight_session.select_outbound("OB11")
    flight_session.set_passengers([adult])
    flight_session.set_search({**flight_search, "adults": 2})
    assert flight_session.selected_outbound is None
    assert flight_session.passengers == []
    assert flight_session.step == "search"


def test_multi_city_leg_limits(travel_date):
    session = FlightBookingSession()
    with pytest.raises(BookingFlowError, match="multi-city"):
        session.add_leg({"origin": "DEL", "destination": "BOM", "departureDate": travel_date.isoformat()})
    session.set_trip_type("M")
    for offset, (origin, destination) in enumerate([("DEL", "BOM"), ("BOM", "GOI")]):
        session.add_leg({"origin": origin, "destination": destination,
                         "departureDate": (travel_date + timedelta(days=offset)).isoformat()})
    with pytest.raises(BookingFlowError, match="at least 2 legs"):
        session.remove_leg(0)


def test_confirmed_session_is_locked(flight_session, adult, contact):
    flight_session.select_outbound("OB11")
    flight_session.set_passengers([adult])
    flight_session.set_contact(contact)
    flight_session.set_confirmation("ABC123", "IH1", "0981234567890")
    assert flight_session.is_complete
    with pytest.raises(BookingFlowError, match="already confirmed"):
        flight_session.set_insurance(True)
    with pytest.raises(BookingFlowError):
        flight_session.previous_step()


# Hotel wizard

class Clock:
    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def hotel_session(hotel_search):
    clock = Clock()
    session = HotelBookingSession(clock=clock)
    search = session.set_search(HotelSearchRequest.model_validate(hotel_search))
    response = unwrap(get_hotel_client().search(search))
    session.apply_results(response.get("TraceId"), format_hotel_results(response))
    return session


def _prebook(session, minutes=30):
    session.set_prebook({
        "id": "PB1",
        "status": "verified",
        "verifiedTotal": 4500,
        "taxes": 500,
        "currency": "INR",
        "expiresAt": (session.clock() + timedelta(minutes=minutes)).isoformat(),
    })


def test_hotel_room_selection_and_price(hotel_session):
    assert hotel_session.step == "results"
    hotel = hotel_session.results[0]
    room = hotel_session.select_room(hotel["hotelCode"])
    assert hotel_session.step == "room"
    assert hotel_session.price().total == room["total_fare"]

    with pytest.raises(BookingFlowError, match="not in the current results"):
        hotel_session.select_room("NOPE")
    with pytest.raises(BookingFlowError, match="not available"):
        hotel_session.select_room(hotel["hotelCode"], "OTHER-CODE")


def test_hotel_payment_requires_guests_contact_and_live_prebook(hotel_session, hotel_guests, contact):
    hotel_session.select_room(hotel_session.results[0]["hotelCode"])
    hotel_session.next_step()
    assert hotel_session.step == "guests"
    with pytest.raises(BookingFlowError, match="guest details"):
        hotel_session.next_step()

    with pytest.raises(BookingFlowError, match="room 1 expects"):
        hotel_session.set_guests(hotel_guests[:1])
    hotel_session.set_guests(hotel_guests)
    assert hotel_session.guests[0].is_lead_passenger
    hotel_session.set_contact(contact)
    with pytest.raises(BookingFlowError, match="price verification"):
        hotel_session.next_step()

    _prebook(hotel_session)
    assert hotel_session.price().total == 4500
    assert hotel_session.next_step() == "payment"


def test_expired_prebook_blocks_payment(hotel_session, hotel_guests, contact):
    hotel_session.select_room(hotel_session.results[0]["hotelCode"])
    hotel_session.set_guests(hotel_guests)
    hotel_session.set_contact(contact)
    _prebook(hotel_session, minutes=30)
    hotel_session.clock.now += timedelta(minutes=31)
    assert hotel_session.prebook_live is False
    with pytest.raises(BookingFlowError, match="expired"):
        hotel_session.go_to("payment")


def test_trip_type_change_updates_stored_criteria(flight_session, round_trip_session):
    flight_session.set_trip_type("R")
    assert flight_session.search.trip_type == "R"
    flight_session.set_trip_type("M")
    assert flight_session.search.trip_type == "M"
    assert flight_session.trip_type == "M"

    round_trip_session.set_trip_type("O")
    assert round_trip_session.search.trip_type == "O"
    assert round_trip_session.search.return_date is None
    assert round_trip_session.return_results == []


def test_hotel_any_room_can_be_selected(hotel_session):
    hotel = next(h for h in hotel_session.results if h["hotelCode"] == "HOTEL001")
    assert [r["room_type_code"] for r in hotel["rooms"]] == ["DELUXE", "SUITE"]
    assert hotel["leadRate"] == hotel["rooms"][0]

    suite = hotel["rooms"][1]
    room = hotel_session.select_room("HOTEL001", suite["booking_code"])

    assert room["room_type_name"] == "Executive Suite"
    assert room["total_fare"] == 6300.0
    assert hotel_session.price().total == 6300.0
