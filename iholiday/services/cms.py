"""
Content services - Sanity CMS queries and lead capture
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import NotFoundError
from iholiday.services.store import BookingStore, get_store

logger = logging.getLogger(__name__)

FALLBACK_LEADS_TO = "leads@ideaholiday.in"

DESTINATIONS_QUERY = """*[_type == "destination"] | order(isPopular desc, title asc){
  _id, title, "slug": slug.current, country, region, isPopular, "image": heroImage.asset->url,
  "packageCount": count(*[_type == "package" && references(^._id)])
}"""

DESTINATION_BY_SLUG_QUERY = """*[_type == "destination" && slug.current == $slug][0]{
  _id, title, "slug": slug.current, country, region, description, bestTimeToVisit,
  "image": heroImage.asset->url,
  "packages": *[_type == "package" && references(^._id)]{
    _id, title, "slug": slug.current, duration, price, rating
  }
}"""

PACKAGES_QUERY = """*[_type == "package" && available == true
  && (!defined($destinationSlug) || destination->slug.current == $destinationSlug)
  && (!defined($theme) || $theme in theme)
  && (!defined($featured) || featured == $featured)] | order(featured desc, rating desc){
  _id, title, "slug": slug.current, duration, price, rating, theme, featured,
  "destination": destination->{title, "slug": slug.current}, "image": images[0].asset->url
}"""

PACKAGE_BY_SLUG_QUERY = """*[_type == "package" && slug.current == $slug][0]{
  _id, title, "slug": slug.current, duration, price, rating, theme, inclusions, exclusions,
  itinerary, "destination": destination->{title, "slug": slug.current},
  "images": images[].asset->url
}"""

DEALS_QUERY = """*[_type == "deal" && active == true && validTill > now()] | order(featured desc, validTill asc){
  _id, title, "slug": slug.current, discount, originalPrice, dealPrice, validTill, featured,
  "image": image.asset->url
}"""

POSTS_QUERY = """*[_type == "post"] | order(publishedAt desc)[$start...$end]{
  _id, title, "slug": slug.current, excerpt, publishedAt, "image": mainImage.asset->url,
  "author": author->name
}"""

POSTS_COUNT_QUERY = """count(*[_type == "post"])"""

POST_BY_SLUG_QUERY = """*[_type == "post" && slug.current == $slug][0]{
  _id, title, "slug": slug.current, excerpt, body, publishedAt, "image": mainImage.asset->url,
  "author": author->name, "destinations": destinations[]->{title, "slug": slug.current}
}"""


class CMSAPIError(Exception):
    """Custom exception for Sanity API errors"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class SanityClient:
    """
    Read-only client for the Sanity query API

    Responses are cached in the store for cms_cache_ttl seconds.
    """

    TIMEOUT = 15

    def __init__(self, settings: Settings, store: BookingStore):
        self.settings = settings
        self.store = store

    @property
    def configured(self) -> bool:
        return bool(self.settings.sanity_project_id)

    @property
    def query_url(self) -> str:
        s = self.settings
        return f"https://{s.sanity_project_id}.api.sanity.io/v{s.sanity_api_version}/data/query/{s.sanity_dataset}"

    def query(self, groq: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run a GROQ query

        Args:
            groq: Query text
            params: Query parameters (JSON encoded as $name)

        Returns:
            The query result (list, dict, number or None)

        Raises:
            CMSAPIError: If the CMS is not configured or the request fails
        """
        if not self.configured:
            raise CMSAPIError("CMS is not configured", status_code=503)

        query_params = {"query": groq}
        for key, value in (params or {}).items():
            query_params[f"${key}"] = json.dumps(value)

        cache_key = "cms:" + json.dumps(query_params, sort_keys=True)
        cached = self.store.cache_get(cache_key)
        if cached is not None:
            return cached["result"]

        headers = {"Accept": "application/json"}
        if self.settings.sanity_token:
            headers["Authorization"] = f"Bearer {self.settings.sanity_token}"

        try:
            response = requests.get(self.query_url, params=query_params, headers=headers, timeout=self.TIMEOUT)
            response.raise_for_status()
            result = response.json().get("result")

        except requests.exceptions.HTTPError as e:
            logger.error("Sanity HTTP error: %s - %s", e.response.status_code, e.response.text[:300])
            raise CMSAPIError(f"CMS request failed: {e.response.status_code}")

        except requests.exceptions.RequestException as e:
            logger.error("Sanity request error: %s", str(e))
            raise CMSAPIError(f"CMS request failed: {str(e)}")

        if self.settings.cms_cache_ttl > 0:
            self.store.cache_set(cache_key, {"result": result}, self.settings.cms_cache_ttl)
        return result

    def _one(self, groq: str, slug: str, label: str) -> Dict[str, Any]:
        result = self.query(groq, {"slug": slug})
        if not result:
            raise NotFoundError(f"{label} '{slug}' not found")
        return result

    def destinations(self) -> List[Dict[str, Any]]:
        return self.query(DESTINATIONS_QUERY) or []

    def destination(self, slug: str) -> Dict[str, Any]:
        return self._one(DESTINATION_BY_SLUG_QUERY, slug, "Destination")

    def packages(self, destination: Optional[str] = None, theme: Optional[str] = None,
                 featured: Optional[bool] = None) -> List[Dict[str, Any]]:
        params = {"destinationSlug": destination, "theme": theme, "featured": featured}
        return self.query(PACKAGES_QUERY, params) or []

    def package(self, slug: str) -> Dict[str, Any]:
        return self._one(PACKAGE_BY_SLUG_QUERY, slug, "Package")

    def deals(self) -> List[Dict[str, Any]]:
        return self.query(DEALS_QUERY) or []

    def posts(self, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
        start = (page - 1) * page_size
        items = self.query(POSTS_QUERY, {"start": start, "end": start + page_size}) or []
        total = self.query(POSTS_COUNT_QUERY) or 0
        return {"items": items, "total": total}

    def post(self, slug: str) -> Dict[str, Any]:
        return self._one(POST_BY_SLUG_QUERY, slug, "Post")


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int):
        super().__init__(f"Too many enquiries. Please try again in {retry_after} seconds.")
        self.retry_after = retry_after


class LeadService:
    """Stores enquiries with a per-IP rate limit"""

    def __init__(self, settings: Settings, store: BookingStore):
        self.settings = settings
        self.store = store

    @property
    def recipient(self) -> str:
        return self.settings.leads_to or FALLBACK_LEADS_TO

    def submit(self, lead: Dict[str, Any], client_ip: str) -> Dict[str, Any]:
        """
        Rate limit and store a lead

        Raises:
            RateLimitExceeded: After lead_rate_limit enquiries in lead_rate_window seconds
        """
        allowed, retry_after = self.store.hit(
            f"leads:{client_ip}", self.settings.lead_rate_limit, self.settings.lead_rate_window,
        )
        if not allowed:
            logger.warning("Lead rate limit hit for %s", client_ip)
            raise RateLimitExceeded(retry_after)

        saved = self.store.add_lead({**lead, "ip": client_ip})
        logger.info("Lead %s from %s (%s) queued for %s", saved["id"], lead.get("source"), client_ip, self.recipient)
        return saved


_sanity_instance: Optional[SanityClient] = None
_lead_instance: Optional[LeadService] = None


def get_sanity_client() -> SanityClient:
    global _sanity_instance
    if _sanity_instance is None:
        _sanity_instance = SanityClient(get_settings(), get_store())
    return _sanity_instance


def get_lead_service() -> LeadService:
    global _lead_instance
    if _lead_instance is None:
        _lead_instance = LeadService(get_settings(), get_store())
    return _lead_instance


def reset_content_services() -> None:
    global _sanity_instance, _lead_instance
    _sanity_instance = None
    _lead_instance = None
