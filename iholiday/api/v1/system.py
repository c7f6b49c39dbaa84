"""
System endpoints - health, version and (development only) config
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from iholiday.core.config import Settings, get_settings
from iholiday.core.responses import API_VERSION, success
from iholiday.services.air import TboAirClient, get_air_client
from iholiday.services.cms import SanityClient, get_sanity_client
from iholiday.services.razorpay import RazorpayClient, get_razorpay_client

logger = logging.getLogger(__name__)
router = APIRouter(tags=["System"])

SECRET_FIELDS = {
    "tbo_password",
    "razorpay_key_secret",
    "razorpay_webhook_secret",
    "sanity_token",
    "google_gemini_api_key",
}


@router.get("/health", summary="Service health")
async def health(
    settings: Settings = Depends(get_settings),
    air: TboAirClient = Depends(get_air_client),
    payments: RazorpayClient = Depends(get_razorpay_client),
    cms: SanityClient = Depends(get_sanity_client),
) -> Dict[str, Any]:
    """Reports each upstream as healthy/mock/unconfigured; overall status is degraded if inventory is down"""
    if settings.use_mock:
        inventory = "mock"
    elif not settings.inventory_configured():
        inventory = "unconfigured"
    else:
        inventory = "healthy" if air.health_check() else "unhealthy"

    services = {
        "inventory": inventory,
        "payments": "configured" if payments.configured else ("mock" if settings.use_mock else "unconfigured"),
        "cms": "configured" if cms.configured else "unconfigured",
        "planner": "configured" if settings.google_gemini_api_key else "fallback",
    }
    overall = "degraded" if inventory in ("unhealthy", "unconfigured") else "healthy"
    if overall != "healthy":
        logger.warning("Health check degraded: %s", services)

    return {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
        "environment": settings.environment,
        "services": services,
    }


@router.get("/version", summary="API and application version")
async def version(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return success({
        "name": settings.app_name,
        "version": settings.app_version,
        "apiVersion": API_VERSION,
        "environment": settings.environment,
    })


@router.get("/debug/config", summary="Effective configuration (development only)")
async def debug_config(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    if not settings.is_development():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    config = settings.model_dump()
    for field in SECRET_FIELDS:
        if config.get(field):
            config[field] = "***"
    return success(config)
