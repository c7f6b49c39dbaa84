"""
TBO transport: token caching, error mapping and markup (requests patched)
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from iholiday.models.flight import FlightSearchRequest
from iholiday.services.air import TboAirClient
from iholiday.services.hotels import TboHotelClient
from iholiday.services.store import BookingStore
from iholiday.services.tbo import InventoryAPIError, unwrap


def _response(data, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    response.text = str(data)
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    return response


AUTH_OK = {"TokenId": "TOKEN-1234567890", "Error": {"ErrorCode": 0}}
SEARCH_OK = {"Response": {
    "ResponseStatus": 1,
    "Error": {"ErrorCode": 0},
    "TraceId": "TRACE-1",
    "Results": [[{"ResultIndex": "OB1", "Fare": {"Currency": "INR", "BaseFare": 1000, "Tax": 100,
                                                  "OfferedFare": 1100, "PublishedFare": 1200}}]],
}}


@pytest.fixture
def live_settings(settings):
    return settings.model_copy(update={
        "use_mock": False,
        "tbo_client_id": "ApiIntegrationNew",
        "tbo_username": "agency",
        "tbo_password": "secret",
    })


@pytest.fixture
def search(travel_date):
    return FlightSearchRequest(origin="DEL", destination="BOM", depart_date=travel_date)


def test_token_is_cached_between_calls(live_settings, search):
    client = TboAirClient(live_settings, BookingStore())
    with patch("iholiday.services.tbo.requests.post") as post:
        post.side_effect = [_response(AUTH_OK), _response(SEARCH_OK), _response(SEARCH_OK)]
        client.search(search)
        client.search(search)

    assert post.call_count == 3
    assert post.call_args_list[0].args[0].endswith("/Authenticate")
    body = post.call_args_list[2].kwargs["json"]
    assert body["TokenId"] == "TOKEN-1234567890"
    assert body["EndUserIp"] == live_settings.tbo_end_user_ip
    assert body["Segments"][0]["Origin"] == "DEL"


def test_error_inside_200_body_raises(live_settings, search):
    client = TboAirClient(live_settings, BookingStore())
    failed = {"Response": {"Error": {"ErrorCode": 25, "ErrorMessage": "No result found"}}}
    with patch("iholiday.services.tbo.requests.post") as post:
        post.side_effect = [_response(AUTH_OK), _response(failed)]
        with pytest.raises(InventoryAPIError, match="No result found") as exc_info:
            client.search(search)
    assert exc_info.value.status_code == 400


def test_http_error_keeps_status(live_settings):
    client = TboAirClient(live_settings, BookingStore())
    with patch("iholiday.services.tbo.requests.post") as post:
        post.side_effect = [_response(AUTH_OK), _response({"message": "boom"}, status_code=500)]
        with pytest.raises(InventoryAPIError) as exc_info:
            client.fare_quote("TRACE-1", "OB1")
    assert exc_info.value.status_code == 500


def test_timeout_is_mapped(live_settings):
    client = TboAirClient(live_settings, BookingStore())
    with patch("iholiday.services.tbo.requests.post", side_effect=requests.exceptions.Timeout("slow")):
        assert client.health_check() is False
        with pytest.raises(InventoryAPIError, match="slow"):
            client.fare_rule("TRACE-1", "OB1")


def test_missing_credentials_is_unavailable(settings, search):
    client = TboAirClient(settings.model_copy(update={"use_mock": False}), BookingStore())
    with pytest.raises(InventoryAPIError) as exc_info:
        client.search(search)
    assert exc_info.value.status_code == 503


def test_flight_markup_applied_to_search(live_settings, search):
    client = TboAirClient(live_settings.model_copy(update={"flight_markup_pct": 10.0}), BookingStore())
    with patch("iholiday.services.tbo.requests.post") as post:
        post.side_effect = [_response(AUTH_OK), _response(SEARCH_OK)]
        data = client.search(search)
    fare = data["Response"]["Results"][0][0]["Fare"]
    assert fare["OfferedFare"] == 1210.0
    assert fare["PublishedFare"] == 1320.0


def test_hotel_static_data_is_cached_and_uses_basic_auth(live_settings):
    client = TboHotelClient(live_settings, BookingStore())
    countries = {"Status": {"Code": 200}, "CountryList": [{"Code": "IN", "Name": "India"}]}
    with patch("iholiday.services.tbo.requests.post", return_value=_response(countries)) as post:
        assert client.country_list() == [{"Code": "IN", "Name": "India"}]
        assert client.country_list() == [{"Code": "IN", "Name": "India"}]

    assert post.call_count == 1
    assert post.call_args.kwargs["auth"] == ("agency", "secret")
    assert "TokenId" not in post.call_args.kwargs["json"]


def test_hotel_status_error_raises(live_settings):
    client = TboHotelClient(live_settings, BookingStore())
    failed = {"Status": {"Code": 500, "Description": "Invalid city"}}
    with patch("iholiday.services.tbo.requests.post", return_value=_response(failed)):
        with pytest.raises(InventoryAPIError, match="Invalid city"):
            client.city_list("XX")


def test_unwrap_returns_innermost_response():
    assert unwrap({"Response": {"TraceId": "T", "Response": {"PNR": "ABC123"}}}) == {"PNR": "ABC123"}
    assert unwrap({"PNR": "X"}) == {"PNR": "X"}
