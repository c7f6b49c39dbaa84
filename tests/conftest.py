"""
Shared fixtures: mock inventory, fresh settings and singletons per test
"""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from iholiday.core.config import reload_settings
from iholiday.services.air import reset_air_client
from iholiday.services.cms import reset_content_services
from iholiday.services.hotels import reset_hotel_client
from iholiday.services.planner import reset_planner_service
from iholiday.services.razorpay import reset_payment_services
from iholiday.services.store import reset_store
from iholiday.services.workflow import reset_workflow_service

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"

UNSET_ENV = (
    "TBO_CLIENT_ID",
    "TBO_USERNAME",
    "TBO_PASSWORD",
    "RAZORPAY_KEY_ID",
    "SANITY_PROJECT_ID",
    "SANITY_TOKEN",
    "GOOGLE_GEMINI_API_KEY",
    "FLIGHT_MARKUP_PCT",
    "HOTEL_MARKUP_PCT",
    "TRUSTED_PROXIES",
)


def reset_singletons():
    reset_store()
    reset_air_client()
    reset_hotel_client()
    reset_workflow_service()
    reset_payment_services()
    reset_content_services()
    reset_planner_service()


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    """Mock inventory, mock Razorpay orders (no key id) with a known key secret"""
    for name in UNSET_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("USE_MOCK", "true")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", KEY_SECRET)
    monkeypatch.setenv("RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    current = reload_settings()
    reset_singletons()
    yield current
    reset_singletons()


@pytest.fixture
def client():
    from iholiday.main import app

    return TestClient(app)


@pytest.fixture
def travel_date():
    return date.today() + timedelta(days=30)


@pytest.fixture
def flight_search(travel_date):
    return {
        "origin": "DEL",
        "destination": "BOM",
        "departDate": travel_date.isoformat(),
        "tripType": "O",
        "adults": 1,
    }


@pytest.fixture
def adult():
    return {
        "title": "Mr",
        "firstName": "Arjun",
        "lastName": "Mehta",
        "type": "ADT",
        "dateOfBirth": "1990-05-14",
        "gender": "M",
    }


@pytest.fixture
def contact():
    return {"email": "Arjun.Mehta@Example.com", "phone": "9876543210"}


@pytest.fixture
def hotel_search(travel_date):
    return {
        "cityId": "130443",
        "cityName": "Dubai",
        "checkIn": travel_date.isoformat(),
        "checkOut": (travel_date + timedelta(days=2)).isoformat(),
        "rooms": [{"adults": 2}],
    }


@pytest.fixture
def hotel_guests():
    return [
        {"title": "Mr", "firstName": "Arjun", "lastName": "Mehta"},
        {"title": "Mrs", "firstName": "Priya", "lastName": "Mehta"},
    ]
