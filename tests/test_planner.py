"""
Trip planner: traveler profile, JSON repair, prompt configs and the fallback itinerary
"""

from datetime import date
import json
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from iholiday.models.planner import TripPlanRequest
from iholiday.prompts.manager import PromptManager, get_prompt_manager
from iholiday.services.planner import (
    TripPlannerService,
    destination_guide,
    determine_theme_tags,
    determine_traveler_type,
    extract_response_text,
    repair_and_parse_json,
)


def test_traveler_type_rules():
    assert determine_traveler_type(["Honeymoon", "beach"]) == "couple"
    assert determine_traveler_type(["travelling with kids"]) == "family"
    assert determine_traveler_type(["solo woman"]) == "solo_woman"
    assert determine_traveler_type(["backpacking"]) == "gen_z"
    assert determine_traveler_type(["friends trip"]) == "friends"
    assert determine_traveler_type([]) == "solo"


def test_theme_tags():
    assert determine_theme_tags(["Beach", "street food", "yoga"]) == ["beach", "food", "wellness"]
    assert determine_theme_tags(["anything"]) == ["culture", "sightseeing"]


def test_destination_guide():
    assert "November" in destination_guide("Dubai Marina")["best_months"]
    assert destination_guide("Reykjavik")["best_months"] == ["Year-round"]
    assert destination_guide(None)["best_months"] == ["Year-round"]


def test_request_needs_prompt_or_destination():
    with pytest.raises(ValidationError):
        TripPlanRequest(prompt="   ")

    request = TripPlanRequest(prompt="Five days of beaches", interests=[" Beach ", ""], currency="usd")
    assert request.interests == ["beach"]
    assert request.currency == "USD"


# JSON repair

def test_repair_strips_fences_and_citations():
    raw = 'Here you go:\n```json\n{"title": "Goa [1, 2]", "days": [{"day": "one"}]}\n```'
    assert repair_and_parse_json(raw) == {"title": "Goa ", "days": [{"day": "one"}]}


def test_repair_drops_trailing_commas():
    raw = '{"title": "Bali", "packingList": ["hat", "sunscreen",],}'
    assert repair_and_parse_json(raw)["packingList"] == ["hat", "sunscreen"]


@pytest.mark.parametrize("raw", ["", "no json here", "{broken: }"])
def test_repair_rejects_unrecoverable_text(raw):
    with pytest.raises(ValueError):
        repair_and_parse_json(raw)


def test_extract_text_from_candidate_parts():
    part = MagicMock(text='{"a": ')
    tail = MagicMock(text='"b"}')
    response = MagicMock(text=None, candidates=[MagicMock(content=MagicMock(parts=[part, tail]))])
    assert extract_response_text(response) == '{"a": "b"}'


# Prompt configs

def test_bundled_itinerary_prompt_formats():
    manager = get_prompt_manager()
    assert "trip_itinerary" in manager.list_available_prompts()

    ok, missing = manager.validate_variables("trip_itinerary", {"days": 3})
    assert not ok
    assert "destination" in missing

    with pytest.raises(ValueError, match="destination"):
        manager.format_prompt("trip_itinerary", {"days": 3})


def test_prompt_manager_renders_none_as_na(tmp_path):
    (tmp_path / "greeting.json").write_text(json.dumps({
        "model_name": "gemini-test",
        "prompt_template": "Hello {name}, budget {budget}",
        "parameters": {"temperature": 0.1},
    }))
    manager = PromptManager(tmp_path)

    result = manager.format_prompt("greeting", {"name": "Asha", "budget": None})
    assert result["prompt"] == "Hello Asha, budget N/A"
    assert result["model_name"] == "gemini-test"
    assert result["parameters"] == {"temperature": 0.1}


def test_prompt_manager_rejects_bad_configs(tmp_path):
    (tmp_path / "broken.json").write_text(json.dumps({"prompt_template": "x"}))
    manager = PromptManager(tmp_path)

    with pytest.raises(ValueError, match="model_name"):
        manager.load_config("broken")
    with pytest.raises(FileNotFoundError):
        manager.load_config("absent")


# Itinerary generation

def test_fallback_without_api_key(settings):
    service = TripPlannerService(settings)
    result = service.generate_itinerary(TripPlanRequest(
        destination="Goa", days=3, start_date=date(2026, 12, 10), interests=["beach"],
    ))

    assert result["source"] == "fallback"
    days = result["itinerary"]["days"]
    assert [d["date"] for d in days] == ["2026-12-10", "2026-12-11", "2026-12-12"]
    assert days[0]["title"] == "Arrival in Goa"
    assert days[-1]["title"] == "Last day in Goa"
    assert days[0]["theme"] == "beach"
    assert result["profile"]["travelerType"] == "solo"


def test_single_day_fallback_has_no_dates(settings):
    result = TripPlannerService(settings).generate_itinerary(TripPlanRequest(destination="Paris", days=1))
    days = result["itinerary"]["days"]
    assert len(days) == 1
    assert "date" not in days[0]
    assert result["profile"]["bestMonths"][0] == "April"


def _service_with_model(settings, text):
    with patch("iholiday.services.planner.genai.Client") as client_cls:
        service = TripPlannerService(settings.model_copy(update={"google_gemini_api_key": "test-key"}))
    client_cls.return_value.models.generate_content.return_value = MagicMock(text=text)
    return service, client_cls.return_value


def test_ai_itinerary(settings):
    plan = {"title": "Bali", "days": [{"day": 1, "title": "Ubud"}]}
    service, client = _service_with_model(settings, "```json\n" + json.dumps(plan) + "\n```")

    result = service.generate_itinerary(TripPlanRequest(destination="Bali", days=1, interests=["honeymoon"]))

    assert result["source"] == "ai"
    assert result["itinerary"] == plan
    assert result["model"] == "gemini-2.5-flash"
    kwargs = client.models.generate_content.call_args.kwargs
    assert "Plan a 1-day trip to Bali." in kwargs["contents"]
    assert "Traveler type: couple" in kwargs["contents"]


def test_ai_failure_falls_back(settings):
    service, client = _service_with_model(settings, "")
    client.models.generate_content.side_effect = RuntimeError("quota exceeded")

    result = service.generate_itinerary(TripPlanRequest(destination="Tokyo", days=2))
    assert result["source"] == "fallback"
    assert "temporarily unavailable" in result["note"]


def test_ai_plan_without_days_falls_back(settings):
    service, _ = _service_with_model(settings, '{"title": "Nothing"}')
    result = service.generate_itinerary(TripPlanRequest(destination="Tokyo", days=2))
    assert result["source"] == "fallback"
    assert "incomplete" in result["note"]


def test_planner_route(client):
    response = client.post("/api/v1/trip-planner/itinerary", json={"destination": "Dubai", "days": 2})
    assert response.status_code == 200
    assert response.json()["data"]["source"] == "fallback"

    assert client.post("/api/v1/trip-planner/itinerary", json={"days": 2}).status_code == 422
