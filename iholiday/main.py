"""
iHoliday Booking API - FastAPI entrypoint
Flights and hotels through TBO, Razorpay checkout, vouchers, CMS content and AI trip planning
"""

import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Dict, Any
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

# .env must be loaded before Settings is first built
from dotenv import load_dotenv
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env")

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError, ExpiredError, NotFoundError
from iholiday.api.v1 import router as v1_router
from iholiday.services.cms import CMSAPIError, RateLimitExceeded
from iholiday.services.razorpay import PaymentGatewayError, WebhookError
from iholiday.services.tbo import InventoryAPIError

settings = get_settings()
logging.config.dictConfig(settings.get_log_config())
logger = logging.getLogger(__name__)


def _inventory_mode(config: Settings) -> str:
    if config.use_mock:
        return "mock"
    return "live" if config.inventory_configured() else "unconfigured"


def _integrations(config: Settings) -> Dict[str, str]:
    return {
        "tbo_inventory": _inventory_mode(config),
        "razorpay": "enabled" if config.razorpay_key_id else "disabled",
        "sanity_cms": "enabled" if config.sanity_project_id else "disabled",
        "trip_planner": config.planner_model_name if config.google_gemini_api_key else "fallback",
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "%s v%s starting (%s)", settings.app_name, settings.app_version, settings.environment,
        extra={"integrations": _integrations(settings)},
    )
    for name, mode in _integrations(settings).items():
        logger.info("  %-14s %s", name, mode)

    # Only the inventory login is checked at boot, other clients connect lazily
    if _inventory_mode(settings) == "live":
        from iholiday.services.air import get_air_client

        try:
            healthy = get_air_client().health_check()
        except InventoryAPIError as e:
            logger.error("TBO login failed at startup: %s", str(e))
        else:
            if healthy:
                logger.info("TBO inventory reachable")
            else:
                logger.warning("TBO inventory did not answer the login check")

    yield

    logger.info("%s stopped", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Travel booking backend for iHoliday: search, price, hold and pay for
    flights and hotels, then download a PDF voucher.

    - **Flights** and **Hotels**: TBO inventory search, pricing, booking and after-sales
    - **Checkout**: server-side booking wizards with step guards and live totals
    - **Payments**: Razorpay orders, checkout signature verification and webhooks
    - **Content**: Sanity CMS pages, reference data and enquiry leads
    - **Trip Planner**: Gemini itineraries with an offline fallback
    """,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, detail: Any = None, headers: Dict[str, str] = None) -> JSONResponse:
    content = {"status": "error", "message": message}
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected payload on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "message": "Invalid request data",
            "errors": jsonable_encoder(exc.errors()),
        }
    )


@app.exception_handler(ValidationError)
async def wizard_validation_handler(request: Request, exc: ValidationError):
    """Raised when a wizard action builds a model from the session payload"""
    logger.warning("Invalid wizard data on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "message": "Invalid request data",
            "errors": exc.errors(include_url=False, include_context=False),
        }
    )


@app.exception_handler(BookingFlowError)
@app.exception_handler(NotFoundError)
@app.exception_handler(ExpiredError)
async def booking_exception_handler(request: Request, exc: Exception):
    """Booking rule violations, unknown ids and expired sessions"""
    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, str(exc))
    return _error(exc.status_code, str(exc))


@app.exception_handler(InventoryAPIError)
async def inventory_exception_handler(request: Request, exc: InventoryAPIError):
    logger.error("Inventory error on %s: %s", request.url.path, str(exc))
    code = status.HTTP_503_SERVICE_UNAVAILABLE if exc.status_code == 503 else status.HTTP_502_BAD_GATEWAY
    return _error(code, "Inventory service error", str(exc))


@app.exception_handler(PaymentGatewayError)
async def payment_exception_handler(request: Request, exc: PaymentGatewayError):
    logger.error("Payment gateway error on %s: %s", request.url.path, str(exc))
    return _error(exc.status_code, "Payment gateway error", str(exc))


@app.exception_handler(CMSAPIError)
async def cms_exception_handler(request: Request, exc: CMSAPIError):
    logger.error("CMS error on %s: %s", request.url.path, str(exc))
    return _error(exc.status_code, "Content service error", str(exc))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return _error(
        status.HTTP_429_TOO_MANY_REQUESTS,
        str(exc),
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(WebhookError)
async def webhook_exception_handler(request: Request, exc: WebhookError):
    logger.warning("Webhook rejected: %s", str(exc))
    return _error(exc.status_code, str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, str(exc), exc_info=True)
    detail = str(exc) if get_settings().debug else "An unexpected error occurred"
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", detail)


app.include_router(v1_router)


@app.get("/", tags=["Root"])
async def root() -> Dict[str, Any]:
    """Service banner with the main entry points"""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "flows": {
            "flights": ["POST /api/v1/flights/search", "POST /api/v1/checkout/flight"],
            "hotels": ["POST /api/v1/hotels/search", "POST /api/v1/checkout/hotel"],
            "payment": "POST /api/v1/payments/create-order",
            "voucher": "GET /api/v1/vouchers/{bookingId}/download",
            "planner": "POST /api/v1/trip-planner/itinerary",
        },
    }


@app.get("/info", tags=["Root"])
async def info() -> Dict[str, Any]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "currency": settings.default_currency,
        "limits": {
            "session_ttl_minutes": settings.session_ttl_minutes,
            "prebook_ttl_minutes": settings.prebook_ttl_minutes,
            "inventory_timeout_seconds": settings.tbo_timeout,
        },
        "integrations": _integrations(settings),
        "routes": sorted({route.path for route in app.routes if getattr(route, "methods", None)}),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "iholiday.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development(),
        log_level=settings.log_level.lower()
    )
