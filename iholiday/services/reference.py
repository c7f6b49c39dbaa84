"""
Static reference data - trust badges, locales, airports and autocomplete
"""

import logging
from typing import Any, Dict, List

from iholiday.services.hotels import TboHotelClient
from iholiday.services.tbo import InventoryAPIError

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

# City lists are only walked for these countries plus any matched by name
POPULAR_COUNTRIES = {"IN", "AE", "TH", "SG", "GB"}

TRUST_BADGES = {
    "secure_payments": {
        "label": "Secure Payments",
        "icon": "shield-check",
        "description": "PCI-DSS compliant checkout powered by Razorpay",
    },
    "verified_partners": {
        "label": "Verified Partners",
        "icon": "badge-check",
        "description": "Airlines and hotels sourced from accredited suppliers",
    },
    "customer_support": {
        "label": "24x7 Support",
        "icon": "headset",
        "description": "Travel experts available round the clock",
    },
    "best_price": {
        "label": "Best Price",
        "icon": "tag",
        "description": "Transparent fares with no hidden charges",
    },
}

LOCALES = [
    {"code": "en-IN", "name": "English (India)", "currency": "INR"},
    {"code": "en-US", "name": "English (US)", "currency": "USD"},
    {"code": "en-GB", "name": "English (UK)", "currency": "GBP"},
    {"code": "hi-IN", "name": "हिन्दी", "currency": "INR"},
    {"code": "ar-AE", "name": "العربية", "currency": "AED"},
]

AIRPORTS = [
    {"code": "DEL", "name": "Indira Gandhi International", "city": "New Delhi", "country": "IN"},
    {"code": "BOM", "name": "Chhatrapati Shivaji Maharaj International", "city": "Mumbai", "country": "IN"},
    {"code": "BLR", "name": "Kempegowda International", "city": "Bengaluru", "country": "IN"},
    {"code": "MAA", "name": "Chennai International", "city": "Chennai", "country": "IN"},
    {"code": "CCU", "name": "Netaji Subhas Chandra Bose International", "city": "Kolkata", "country": "IN"},
    {"code": "HYD", "name": "Rajiv Gandhi International", "city": "Hyderabad", "country": "IN"},
    {"code": "GOI", "name": "Dabolim", "city": "Goa", "country": "IN"},
    {"code": "COK", "name": "Cochin International", "city": "Kochi", "country": "IN"},
    {"code": "DXB", "name": "Dubai International", "city": "Dubai", "country": "AE"},
    {"code": "AUH", "name": "Zayed International", "city": "Abu Dhabi", "country": "AE"},
    {"code": "BKK", "name": "Suvarnabhumi", "city": "Bangkok", "country": "TH"},
    {"code": "HKT", "name": "Phuket International", "city": "Phuket", "country": "TH"},
    {"code": "SIN", "name": "Changi", "city": "Singapore", "country": "SG"},
    {"code": "LHR", "name": "Heathrow", "city": "London", "country": "GB"},
    {"code": "MAN", "name": "Manchester", "city": "Manchester", "country": "GB"},
]


def _matches(query: str, *values: Any) -> bool:
    return any(isinstance(v, str) and v.lower().startswith(query) for v in values)


def autocomplete(query: str, hotels: TboHotelClient) -> Dict[str, Any]:
    """
    Prefix search over countries, hotel cities and airports

    Countries and cities come from the (cached) inventory lists; an
    inventory failure degrades to airports only.
    """
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return {
            "query": query,
            "countries": [],
            "cities": [],
            "airports": [],
            "message": f"Query must be at least {MIN_QUERY_LENGTH} characters long",
        }

    needle = query.lower()
    countries: List[Dict[str, Any]] = []
    cities: List[Dict[str, Any]] = []
    try:
        country_list = hotels.country_list()
        countries = [
            {"name": c.get("Name"), "code": c.get("Code")}
            for c in country_list if _matches(needle, c.get("Name"), c.get("Code"))
        ][:5]
        matched_codes = {c["code"] for c in countries}
        searchable = [c for c in country_list if c.get("Code") in POPULAR_COUNTRIES or c.get("Code") in matched_codes]
        for country in searchable:
            for city in hotels.city_list(country["Code"]):
                if _matches(needle, city.get("Name")):
                    cities.append({
                        "name": city.get("Name"),
                        "code": city.get("Code"),
                        "country": country.get("Code"),
                        "countryName": country.get("Name"),
                    })
            if len(cities) >= 10:
                break
    except InventoryAPIError as e:
        logger.warning("Autocomplete inventory lookup failed: %s", str(e))

    airports = [a for a in AIRPORTS if _matches(needle, a["code"], a["city"], a["name"])][:10]
    return {"query": query, "countries": countries, "cities": cities[:10], "airports": airports}
