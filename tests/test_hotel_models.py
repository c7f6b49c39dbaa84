"""
Hotel occupancy, guest assignment and result formatting
"""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from iholiday.models.hotel import (
    HotelGuest,
    HotelSearchRequest,
    RoomOccupancy,
    assign_lead_guest,
    format_hotel_results,
    validate_guests_for_rooms,
)


def _guest(first, pax_type=1, room=0, lead=False):
    return HotelGuest(title="Mr", first_name=first, last_name="Rao", pax_type=pax_type,
                      room_index=room, is_lead_passenger=lead)


def test_child_ages_follow_children_count():
    room = RoomOccupancy(adults=2, children=2, child_ages=[9])
    assert room.child_ages == [9, 5]
    assert RoomOccupancy(adults=1, children=0, child_ages=[4, 6]).child_ages == []
    with pytest.raises(ValidationError):
        RoomOccupancy(children=1, child_ages=[18])


def test_search_stay_rules(travel_date):
    search = HotelSearchRequest(city_id="1", check_in=travel_date, check_out=travel_date + timedelta(days=3))
    assert search.nights == 3
    assert search.total_adults == 2
    with pytest.raises(ValidationError, match="check-out must be after check-in"):
        HotelSearchRequest(city_id="1", check_in=travel_date, check_out=travel_date)
    with pytest.raises(ValidationError, match="past"):
        HotelSearchRequest(city_id="1", check_in=date.today() - timedelta(days=1), check_out=travel_date)


def test_first_adult_becomes_lead():
    guests = assign_lead_guest([_guest("Kid", pax_type=2), _guest("Ravi"), _guest("Meera")])
    assert [g.first_name for g in guests if g.is_lead_passenger] == ["Ravi"]

    with pytest.raises(ValueError, match="only one guest"):
        assign_lead_guest([_guest("A", lead=True), _guest("B", lead=True)])


def test_guests_must_match_each_room():
    rooms = [RoomOccupancy(adults=1), RoomOccupancy(adults=1, children=1)]
    guests = [_guest("A"), _guest("B", room=1), _guest("C", pax_type=2, room=1)]
    assert len(validate_guests_for_rooms(guests, rooms)) == 3

    with pytest.raises(ValueError, match="room 2 expects"):
        validate_guests_for_rooms(guests[:2], rooms)
    with pytest.raises(ValueError, match="not searched"):
        validate_guests_for_rooms(guests + [_guest("D", room=2)], rooms)


def test_format_hotel_results_drops_hotels_without_code():
    response = {"HotelSearchResult": [
        {"HotelCode": "1001", "HotelName": "Palm Stay", "StarRating": 4,
         "HotelRooms": [{"RoomTypeName": "Deluxe", "RoomRate": {"TotalFare": 9000, "OfferedFare": 8500,
                                                                 "BookingCode": "BC1"}}]},
        {"HotelName": "No Code Inn"},
    ]}
    results = format_hotel_results(response)
    assert len(results) == 1
    assert results[0]["hotelCode"] == "1001"
    assert results[0]["leadRate"]["total_fare"] == 8500
    assert results[0]["leadRate"]["booking_code"] == "BC1"


def test_format_hotel_results_lists_every_rate():
    response = {"HotelSearchResult": [
        {"HotelCode": "2002", "HotelName": "Creek View", "HotelRooms": [
            {"RoomTypeCode": "STD", "RoomRate": [
                {"OfferedFare": 4000, "BookingCode": "R1"},
                {"OfferedFare": 4600, "BookingCode": "R2"},
            ]},
            {"RoomTypeCode": "FAM", "Rates": {"TotalFare": 7000, "BookingCode": "R3"}},
        ]},
    ]}
    hotel = format_hotel_results(response)[0]

    assert [r["booking_code"] for r in hotel["rooms"]] == ["R1", "R2", "R3"]
    assert [r["room_index"] for r in hotel["rooms"]] == [0, 0, 1]
    assert hotel["leadRate"]["booking_code"] == "R1"
