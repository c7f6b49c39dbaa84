"""
CMS queries, enquiry leads, reference data and autocomplete
"""

from unittest.mock import MagicMock, patch

import pytest

from iholiday.core.config import reload_settings
from iholiday.core.errors import NotFoundError
from iholiday.services.cms import CMSAPIError, SanityClient, reset_content_services
from iholiday.services.hotels import get_hotel_client
from iholiday.services.reference import autocomplete
from iholiday.services.store import BookingStore


def _sanity_response(result):
    response = MagicMock()
    response.json.return_value = {"result": result}
    return response


@pytest.fixture
def sanity(settings):
    return SanityClient(settings.model_copy(update={"sanity_project_id": "abc123"}), BookingStore())


@pytest.fixture
def configured_cms(monkeypatch):
    monkeypatch.setenv("SANITY_PROJECT_ID", "abc123")
    reload_settings()
    reset_content_services()


def _lead(**extra):
    return {"name": "Asha Rao", "email": "Asha@Example.com", "source": "blog", **extra}


# Sanity

def test_query_encodes_params_and_caches(sanity):
    with patch("iholiday.services.cms.requests.get", return_value=_sanity_response([{"slug": "goa"}])) as get:
        assert sanity.packages(destination="goa") == [{"slug": "goa"}]
        assert sanity.packages(destination="goa") == [{"slug": "goa"}]

    assert get.call_count == 1
    assert get.call_args.args[0] == "https://abc123.api.sanity.io/v2023-10-01/data/query/production"
    params = get.call_args.kwargs["params"]
    assert params["$destinationSlug"] == '"goa"'
    assert params["$featured"] == "null"


def test_token_is_sent_as_bearer(settings):
    client = SanityClient(
        settings.model_copy(update={"sanity_project_id": "abc123", "sanity_token": "sk-read"}), BookingStore(),
    )
    with patch("iholiday.services.cms.requests.get", return_value=_sanity_response([])) as get:
        client.deals()
    assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-read"


def test_missing_document_is_not_found(sanity):
    with patch("iholiday.services.cms.requests.get", return_value=_sanity_response(None)):
        with pytest.raises(NotFoundError, match="kerala"):
            sanity.destination("kerala")


def test_unconfigured_cms_is_unavailable(settings):
    with pytest.raises(CMSAPIError) as exc_info:
        SanityClient(settings, BookingStore()).destinations()
    assert exc_info.value.status_code == 503


def test_posts_pagination_meta(client, configured_cms):
    results = [[{"slug": "p1"}, {"slug": "p2"}], 5]
    with patch("iholiday.services.cms.requests.get",
               side_effect=[_sanity_response(r) for r in results]):
        response = client.get("/api/v1/cms/posts", params={"page": 2, "pageSize": 2})

    assert response.status_code == 200
    body = response.json()
    assert [p["slug"] for p in body["data"]] == ["p1", "p2"]
    assert body["meta"]["total"] == 5
    assert body["meta"]["lastPage"] == 3
    assert body["meta"]["hasMorePages"] is True


def test_cms_routes_without_config(client):
    response = client.get("/api/v1/cms/destinations")
    assert response.status_code == 503
    assert response.json()["status"] == "error"


def test_unknown_slug_route_is_404(client, configured_cms):
    with patch("iholiday.services.cms.requests.get", return_value=_sanity_response(None)):
        response = client.get("/api/v1/cms/packages/nowhere")
    assert response.status_code == 404


# Leads

def test_lead_is_stored(client):
    response = client.post("/api/v1/leads", json=_lead(utm_source="newsletter"))

    assert response.status_code == 200
    assert response.json() == {"ok": True, "lead_id": 1}


def test_lead_rate_limit_ignores_client_forwarded_header(client):
    for hop in range(5):
        headers = {"X-Forwarded-For": f"203.0.113.{hop}"}
        assert client.post("/api/v1/leads", json=_lead(), headers=headers).status_code == 200

    blocked = client.post("/api/v1/leads", json=_lead(), headers={"X-Forwarded-For": "203.0.113.99"})
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) > 0


@pytest.fixture
def behind_proxy(monkeypatch):
    monkeypatch.setenv("TRUSTED_PROXIES", '["testclient", "10.0.0.1"]')
    reload_settings()
    reset_content_services()


def test_lead_rate_limit_per_forwarded_ip_behind_trusted_proxy(client, behind_proxy):
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    for _ in range(5):
        assert client.post("/api/v1/leads", json=_lead(), headers=headers).status_code == 200

    assert client.post("/api/v1/leads", json=_lead(), headers=headers).status_code == 429

    other = client.post("/api/v1/leads", json=_lead(), headers={"X-Forwarded-For": "198.51.100.2"})
    assert other.status_code == 200


def test_lead_requires_valid_email(client):
    response = client.post("/api/v1/leads", json=_lead(email="not-an-email"))
    assert response.status_code == 422


# Reference data

def test_reference_routes(client):
    currencies = client.get("/api/v1/currencies").json()["data"]
    assert "INR" in [c["code"] for c in currencies]

    badges = client.get("/api/v1/trust-badges").json()["data"]
    assert badges["secure_payments"]["label"] == "Secure Payments"

    locales = client.get("/api/v1/locales").json()["data"]
    assert locales[0]["code"] == "en-IN"


def test_autocomplete_needs_two_characters():
    result = autocomplete("d", get_hotel_client())
    assert result["cities"] == []
    assert "at least 2" in result["message"]


def test_autocomplete_matches_cities_and_airports():
    result = autocomplete("Du", get_hotel_client())

    assert result["cities"] == [
        {"name": "Dubai", "code": "115936", "country": "AE", "countryName": "United Arab Emirates"},
    ]
    assert [a["code"] for a in result["airports"]] == ["DXB"]
    assert result["countries"] == []


def test_autocomplete_matches_countries(client):
    body = client.get("/api/v1/autocomplete", params={"q": "ind"}).json()["data"]
    assert body["countries"] == [{"name": "India", "code": "IN"}]
    assert [a["code"] for a in body["airports"]] == ["DEL"]
