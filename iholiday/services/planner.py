"""
Trip Planner - Gemini powered itinerary generation
Falls back to a deterministic day-by-day plan when AI is unavailable
"""

from datetime import date, timedelta
import json
import logging
import re
from typing import Any, Dict, List, Optional

from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions

from iholiday.core.config import Settings, get_settings
from iholiday.models.planner import TripPlanRequest
from iholiday.prompts.manager import PromptManager, get_prompt_manager

logger = logging.getLogger(__name__)

PROMPT_CONFIG = "trip_itinerary"

# First matching rule wins
TRAVELER_TYPE_RULES = [
    ("family", ("family", "kids")),
    ("couple", ("couple", "romantic", "honeymoon")),
    ("solo_woman", ("solo woman", "solo female", "woman solo")),
    ("solo", ("solo",)),
    ("gen_z", ("gen z", "youth", "backpack")),
    ("friends", ("friend",)),
]

THEME_RULES = [
    ("adventure", ("adventure", "trek", "hiking")),
    ("beach", ("beach", "ocean")),
    ("culture", ("culture", "temple", "museum")),
    ("food", ("food", "cuisine")),
    ("wellness", ("wellness", "yoga", "spa")),
    ("shopping", ("shopping",)),
    ("nature", ("nature", "wildlife")),
    ("nightlife", ("nightlife", "party")),
    ("photography", ("photo",)),
    ("spiritual", ("spiritual", "meditation")),
]

DEFAULT_THEMES = ["culture", "sightseeing"]

DESTINATION_GUIDE = {
    ("thailand", "bangkok"): {
        "best_months": ["November", "December", "January", "February"],
        "weather": "Hot and humid year-round (28-35°C). Rainy season May-October, best weather November-February.",
    },
    ("tokyo", "japan"): {
        "best_months": ["March", "April", "October", "November"],
        "weather": "Four distinct seasons. Cherry blossoms in March-April, hot summers, mild autumn.",
    },
    ("bali", "indonesia"): {
        "best_months": ["April", "May", "June", "September"],
        "weather": "Tropical. Dry season April-September, afternoon showers October-March.",
    },
    ("dubai", "uae"): {
        "best_months": ["November", "December", "January", "February", "March"],
        "weather": "Very hot summers (40-50°C). November-March is pleasant (20-30°C).",
    },
    ("maldives",): {
        "best_months": ["November", "December", "January", "February", "March", "April"],
        "weather": "Warm year-round (25-31°C). Dry season November-April, monsoon May-October.",
    },
    ("paris", "france"): {
        "best_months": ["April", "May", "June", "September", "October"],
        "weather": "Mild. Spring and autumn are ideal, rain possible year-round.",
    },
    ("london", "uk"): {
        "best_months": ["May", "June", "July", "August", "September"],
        "weather": "Mild but rainy, pack layers. Winters are cold and dark.",
    },
    ("new york",): {
        "best_months": ["April", "May", "September", "October"],
        "weather": "Hot humid summers and cold snowy winters. Spring and autumn are best.",
    },
    ("singapore",): {
        "best_months": ["February", "March", "April"],
        "weather": "Hot and humid year-round (26-33°C) with brief showers.",
    },
}

DEFAULT_GUIDE = {
    "best_months": ["Year-round"],
    "weather": "Check the local forecast two weeks before departure and pack for the season.",
}

FALLBACK_SLOTS = [
    ("morning", "Explore {place}", "Start with the best-known sights of {place} before the crowds arrive."),
    ("afternoon", "Local flavours", "Lunch at a local favourite, then wander the nearby markets and streets."),
    ("evening", "Evening out", "Catch the sunset and try regional dishes for dinner."),
]

THEME_ACTIVITIES = {
    "adventure": "Book a guided trek or outdoor activity.",
    "beach": "Spend a few hours on the beach.",
    "culture": "Visit a museum, temple or heritage site.",
    "food": "Join a food walk or cooking class.",
    "wellness": "Unwind with a spa session or yoga class.",
    "shopping": "Browse local markets and boutiques.",
    "nature": "Head to a park, reserve or viewpoint.",
    "nightlife": "Check out a popular night spot.",
    "photography": "Catch golden hour at a scenic viewpoint.",
    "spiritual": "Visit a place of worship or join a meditation session.",
    "sightseeing": "Take a city tour of the main landmarks.",
}


def _matches_any(interests: List[str], needles) -> bool:
    return any(needle in interest for interest in interests for needle in needles)


def determine_traveler_type(interests: List[str]) -> str:
    """family, couple, solo_woman, solo, gen_z or friends (default solo)"""
    lowered = [i.lower() for i in interests]
    for traveler_type, needles in TRAVELER_TYPE_RULES:
        if _matches_any(lowered, needles):
            return traveler_type
    return "solo"


def determine_theme_tags(interests: List[str]) -> List[str]:
    lowered = [i.lower() for i in interests]
    themes = [theme for theme, needles in THEME_RULES if _matches_any(lowered, needles)]
    return themes or list(DEFAULT_THEMES)


def destination_guide(destination: Optional[str]) -> Dict[str, Any]:
    """Best months and weather notes for well-known destinations"""
    place = (destination or "").lower()
    for keys, guide in DESTINATION_GUIDE.items():
        if any(key in place for key in keys):
            return guide
    return DEFAULT_GUIDE


def extract_response_text(response: Any) -> str:
    """Extract text from a Gemini response, joining candidate parts if .text is empty"""
    response_text = getattr(response, "text", None)
    if response_text:
        return response_text

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""

    parts = getattr(getattr(candidates[0], "content", None), "parts", None) or []
    return "".join(part.text for part in parts if getattr(part, "text", None))


def repair_and_parse_json(raw_text: str) -> Dict[str, Any]:
    """
    Parse the model output as one JSON object

    Strips code fences, citation markers like [1, 2] and trailing commas.

    Raises:
        ValueError: If no JSON object can be recovered
    """
    if not raw_text:
        raise ValueError("Empty model response")

    text = raw_text.replace("\ufeff", "").strip()
    text = re.sub(r"\[\d+(?:,\s*\d+)*\]", "", text)

    fence = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL | re.IGNORECASE)
    if fence:
        text = fence.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in model response")
    text = text[start:end + 1]

    for candidate in (text, re.sub(r",\s*([\]}])", r"\1", text)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        raise ValueError("Model response is not a JSON object")

    raise ValueError("Unable to parse JSON from model response")


class TripPlannerService:
    """
    Itinerary generation with Google Gemini

    Features:
    - Prompt-as-Config through PromptManager
    - JSON repair of the model output
    - Traveler profile enrichment (type, themes, best months, weather)
    - Deterministic fallback when the API key is missing or generation fails
    """

    def __init__(self, settings: Settings, prompt_manager: Optional[PromptManager] = None):
        self.settings = settings
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.client = None
        if settings.google_gemini_api_key:
            self.client = genai.Client(
                api_key=settings.google_gemini_api_key,
                http_options=HttpOptions(api_version="v1"),
            )
            logger.info("Initialized Google AI client for the trip planner")
        else:
            logger.warning("GOOGLE_GEMINI_API_KEY not configured - planner uses fallback itineraries")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _profile(self, request: TripPlanRequest) -> Dict[str, Any]:
        destination = (request.destination or "").strip() or "your destination"
        guide = destination_guide(request.destination or request.prompt)
        return {
            "destination": destination,
            "days": request.days,
            "startDate": request.start_date.isoformat() if request.start_date else None,
            "budget": request.budget,
            "currency": request.currency,
            "interests": request.interests,
            "travelerType": determine_traveler_type(request.interests + [request.prompt or ""]),
            "themeTags": determine_theme_tags(request.interests),
            "bestMonths": guide["best_months"],
            "weather": guide["weather"],
        }

    def generate_itinerary(self, request: TripPlanRequest) -> Dict[str, Any]:
        """
        Generate an itinerary for the request

        Returns:
            {success, source ("ai" | "fallback"), profile, itinerary, model?, note?}
        """
        profile = self._profile(request)
        if not self.enabled:
            return self._fallback(profile, "AI planner is not configured; showing a suggested outline.")

        prompt_data = self.prompt_manager.format_prompt(PROMPT_CONFIG, {
            "destination": profile["destination"],
            "days": profile["days"],
            "traveler_type": profile["travelerType"],
            "interests": ", ".join(profile["interests"]) or "general sightseeing",
            "theme_tags": ", ".join(profile["themeTags"]),
            "start_date": profile["startDate"] or "flexible",
            "budget": profile["budget"] or "flexible",
            "currency": profile["currency"],
            "weather": profile["weather"],
            "best_months": ", ".join(profile["bestMonths"]),
            "user_prompt": (request.prompt or "").strip() or "None",
        })
        model_name = self.settings.planner_model_name or prompt_data["model_name"]
        params = prompt_data["parameters"]

        logger.info("Generating itinerary: destination=%s, days=%s", profile["destination"], profile["days"])

        try:
            gen_config = GenerateContentConfig(
                system_instruction=prompt_data["system_instruction"] or None,
                temperature=params.get("temperature", 0.7),
                top_p=params.get("top_p", 0.9),
                max_output_tokens=params.get("max_output_tokens", 8192),
            )
            response = self.client.models.generate_content(
                model=model_name,
                contents=prompt_data["prompt"],
                config=gen_config,
            )
            itinerary = repair_and_parse_json(extract_response_text(response))
        except Exception as e:
            logger.error("Error generating itinerary: %s", str(e))
            return self._fallback(profile, "AI planner is temporarily unavailable; showing a suggested outline.")

        if not isinstance(itinerary.get("days"), list) or not itinerary["days"]:
            logger.warning("Model itinerary has no days, using fallback")
            return self._fallback(profile, "AI planner returned an incomplete plan; showing a suggested outline.")

        logger.info("Successfully generated itinerary with %d days", len(itinerary["days"]))
        return {
            "success": True,
            "source": "ai",
            "model": model_name,
            "profile": profile,
            "itinerary": itinerary,
        }

    def _fallback(self, profile: Dict[str, Any], note: str) -> Dict[str, Any]:
        place = profile["destination"]
        themes = profile["themeTags"]
        start = profile["startDate"]
        days = []
        for number in range(1, profile["days"] + 1):
            activities = [
                {"time": slot, "title": title.format(place=place), "description": text.format(place=place)}
                for slot, title, text in FALLBACK_SLOTS
            ]
            theme = themes[(number - 1) % len(themes)]
            activities[1]["description"] += " " + THEME_ACTIVITIES.get(theme, THEME_ACTIVITIES["sightseeing"])
            day = {"day": number, "title": f"Day {number} in {place}", "theme": theme, "activities": activities}
            if start:
                day["date"] = (date.fromisoformat(start) + timedelta(days=number - 1)).isoformat()
            days.append(day)

        days[0]["title"] = f"Arrival in {place}"
        if len(days) > 1:
            days[-1]["title"] = f"Last day in {place}"

        return {
            "success": True,
            "source": "fallback",
            "profile": profile,
            "note": note,
            "itinerary": {
                "title": f"{profile['days']} days in {place}",
                "summary": f"A {', '.join(themes)} trip for a {profile['travelerType'].replace('_', ' ')} traveler.",
                "days": days,
            },
        }


_service_instance: Optional[TripPlannerService] = None


def get_planner_service() -> TripPlannerService:
    global _service_instance
    if _service_instance is None:
        _service_instance = TripPlannerService(get_settings())
    return _service_instance


def reset_planner_service() -> None:
    global _service_instance
    _service_instance = None
