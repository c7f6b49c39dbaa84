"""
Content endpoints - CMS pages, enquiry leads and static reference data
"""

import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from iholiday.core.config import Settings, get_settings
from iholiday.core.responses import MAX_PAGE_SIZE, success
from iholiday.models.request import LeadRequest
from iholiday.services.cms import LeadService, SanityClient, get_lead_service, get_sanity_client
from iholiday.services.hotels import TboHotelClient, get_hotel_client
from iholiday.services.pricing import CURRENCIES
from iholiday.services.reference import LOCALES, TRUST_BADGES, autocomplete

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Content"])


def client_ip(request: Request, trusted_proxies: List[str]) -> str:
    """
    Address the rate limit is keyed on

    X-Forwarded-For is only read when the socket peer is a trusted proxy;
    the nearest hop that is not itself a trusted proxy wins.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer
    hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted_proxies:
            return hop
    return peer


# CMS

@router.get("/cms/destinations", summary="Destinations")
async def destinations(cms: SanityClient = Depends(get_sanity_client)) -> Dict[str, Any]:
    items = cms.destinations()
    return success(items, {"count": len(items)})


@router.get("/cms/destinations/{slug}", summary="Destination by slug")
async def destination(slug: str, cms: SanityClient = Depends(get_sanity_client)) -> Dict[str, Any]:
    return success(cms.destination(slug))


@router.get("/cms/packages", summary="Holiday packages")
async def packages(
    destination: Optional[str] = Query(None, description="Destination slug"),
    theme: Optional[str] = None,
    featured: Optional[bool] = None,
    cms: SanityClient = Depends(get_sanity_client),
) -> Dict[str, Any]:
    items = cms.packages(destination, theme, featured)
    return success(items, {"count": len(items)})


@router.get("/cms/packages/{slug}", summary="Package by slug")
async def package(slug: str, cms: SanityClient = Depends(get_sanity_client)) -> Dict[str, Any]:
    return success(cms.package(slug))


@router.get("/cms/deals", summary="Active deals")
async def deals(cms: SanityClient = Depends(get_sanity_client)) -> Dict[str, Any]:
    items = cms.deals()
    return success(items, {"count": len(items)})


@router.get("/cms/posts", summary="Blog posts")
async def posts(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    cms: SanityClient = Depends(get_sanity_client),
) -> Dict[str, Any]:
    result = cms.posts(page, page_size)
    total = int(result["total"] or 0)
    last_page = max(1, math.ceil(total / page_size))
    return success(result["items"], {
        "total": total,
        "page": page,
        "pageSize": page_size,
        "lastPage": last_page,
        "hasMorePages": page < last_page,
    })


@router.get("/cms/posts/{slug}", summary="Blog post by slug")
async def post(slug: str, cms: SanityClient = Depends(get_sanity_client)) -> Dict[str, Any]:
    return success(cms.post(slug))


# Leads

@router.post("/leads", summary="Submit an enquiry")
async def submit_lead(
    lead: LeadRequest,
    request: Request,
    leads: LeadService = Depends(get_lead_service),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    saved = leads.submit(lead.model_dump(), client_ip(request, settings.trusted_proxies))
    return {"ok": True, "lead_id": saved["id"]}


# Reference data

@router.get("/currencies", summary="Supported currencies")
async def currencies() -> Dict[str, Any]:
    return success(list(CURRENCIES.values()))


@router.get("/trust-badges", summary="Trust badges")
async def trust_badges() -> Dict[str, Any]:
    return success(TRUST_BADGES)


@router.get("/locales", summary="Supported locales")
async def locales() -> Dict[str, Any]:
    return success(LOCALES)


@router.get("/autocomplete", summary="Countries, cities and airports by prefix")
async def autocomplete_search(
    q: str = Query("", max_length=100),
    hotels: TboHotelClient = Depends(get_hotel_client),
) -> Dict[str, Any]:
    return success(autocomplete(q, hotels))
