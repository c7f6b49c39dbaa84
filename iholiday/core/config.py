"""
Settings - environment driven configuration for the booking API
Values come from the process environment or a local .env file
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Dict, Optional

ENVIRONMENTS = ("development", "staging", "production")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    iHoliday runtime settings

    Inventory, payment and CMS credentials are optional so the API can run
    in mock mode on a developer machine.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Service
    app_name: str = Field(default="iHoliday Booking API", description="Service name shown in docs and logs")
    app_version: str = Field(default="1.0.0", description="Version reported in response meta")
    environment: str = Field(default="development", description="One of development, staging or production")
    debug: bool = Field(default=False, description="Expose error details and the debug config route")

    # TBO inventory API
    tbo_client_id: Optional[str] = Field(default=None, description="TBO client id (e.g. ApiIntegrationNew)")
    tbo_username: Optional[str] = Field(default=None, description="TBO API username")
    tbo_password: Optional[str] = Field(default=None, description="TBO API password")
    tbo_end_user_ip: str = Field(default="127.0.0.1", description="End user IP sent with every TBO call")
    tbo_shared_base_url: str = Field(
        default="https://api.travelboutiqueonline.com/SharedAPI/SharedData.svc/rest",
        description="TBO shared data (authentication) base URL"
    )
    tbo_air_base_url: str = Field(
        default="https://tboapi.travelboutiqueonline.com/AirAPI_V10/AirService.svc/rest",
        description="TBO air search base URL"
    )
    tbo_booking_base_url: str = Field(
        default="https://booking.travelboutiqueonline.com/AirAPI_V10/AirService.svc/rest",
        description="TBO air booking base URL"
    )
    tbo_hotel_base_url: str = Field(
        default="https://api.tektravels.com/BookingEngineService_Hotel/hotelservice.svc/rest",
        description="TBO hotel booking engine base URL"
    )
    tbo_static_base_url: str = Field(
        default="https://api.tektravels.com/SharedServices/SharedData.svc/rest",
        description="TBO static data (countries, cities, hotel codes) base URL"
    )
    tbo_timeout: int = Field(default=40, ge=5, le=120, description="TBO request timeout in seconds")
    use_mock: bool = Field(default=False, description="Serve deterministic mock inventory responses")
    flight_markup_pct: float = Field(default=0.0, ge=0.0, le=100.0, description="Markup added to flight fares (%)")
    hotel_markup_pct: float = Field(default=0.0, ge=0.0, le=100.0, description="Markup added to hotel rates (%)")

    # Razorpay
    razorpay_key_id: Optional[str] = Field(default=None, description="Razorpay key id")
    razorpay_key_secret: Optional[str] = Field(default=None, description="Razorpay key secret")
    razorpay_webhook_secret: Optional[str] = Field(default=None, description="Razorpay webhook secret")
    razorpay_base_url: str = Field(default="https://api.razorpay.com", description="Razorpay API base URL")

    # Sanity CMS
    sanity_project_id: Optional[str] = Field(default=None, description="Sanity project id")
    sanity_dataset: str = Field(default="production", description="Sanity dataset")
    sanity_api_version: str = Field(default="2023-10-01", description="Sanity API version date")
    sanity_token: Optional[str] = Field(default=None, description="Sanity read token")
    cms_cache_ttl: int = Field(default=300, ge=0, description="CMS response cache TTL in seconds")

    # Checkout
    default_currency: str = Field(default="INR", description="Default booking currency")
    insurance_price: float = Field(default=200.0, ge=0.0, description="Flat travel insurance price per booking")
    promo_codes: Dict[str, float] = Field(
        default={"WELCOME100": 100.0},
        description="Promo code to flat discount mapping"
    )
    session_ttl_minutes: int = Field(default=120, ge=1, description="Booking wizard session lifetime")
    prebook_ttl_minutes: int = Field(default=30, ge=1, description="Hotel prebook validity")

    # Leads
    leads_to: Optional[str] = Field(default=None, description="Recipient for lead notifications")
    lead_rate_limit: int = Field(default=5, ge=1, description="Max enquiries per client IP per window")
    lead_rate_window: int = Field(default=600, ge=1, description="Lead rate limit window in seconds")
    trusted_proxies: list[str] = Field(
        default=[],
        description="Proxy addresses whose X-Forwarded-For header is honoured for client IPs"
    )

    # Google Gemini Settings (trip planner)
    google_gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API Key for the trip planner")
    planner_model_name: str = Field(default="gemini-2.5-flash", description="Gemini model used by the trip planner")

    # Support contact printed on vouchers
    support_phone: str = Field(default="+91 1234 567 890", description="Support phone number")
    support_email: str = Field(default="support@ideaholiday.com", description="Support e-mail address")

    # Logging and CORS
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Plain text log format used outside production"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "https://ideaholiday.com"],
        description="Frontends allowed to call the API"
    )

    @field_validator("environment")
    @classmethod
    def check_environment(cls, v):
        v = v.lower()
        if v not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v):
        if len(v) != 3:
            raise ValueError("default_currency must be a 3-letter ISO code")
        return v.upper()

    @field_validator("promo_codes")
    @classmethod
    def normalize_promo_codes(cls, v):
        return {code.upper(): float(amount) for code, amount in v.items()}

    def is_production(self) -> bool:
        return self.environment == "production"

    def is_development(self) -> bool:
        return self.environment == "development"

    def inventory_configured(self) -> bool:
        """True when live TBO credentials are present"""
        return bool(self.tbo_client_id and self.tbo_username and self.tbo_password)

    def get_log_config(self) -> dict:
        """
        dictConfig for the whole process

        Production logs are JSON lines (python-json-logger) so the hosting
        platform can index booking ids and status codes.
        """
        formatter = "json" if self.is_production() else "plain"
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"format": self.log_format},
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    "rename_fields": {"levelname": "level", "name": "logger"},
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "urllib3": {"level": "WARNING"},
            },
            "root": {"level": self.log_level, "handlers": ["stdout"]},
        }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Process-wide Settings, built on first use

    Raises:
        ValueError: If the environment or .env holds an invalid value
    """
    global _settings
    if _settings is not None:
        return _settings

    try:
        _settings = Settings()
    except Exception as e:
        raise ValueError(f"Invalid iHoliday configuration (check .env): {e}") from e
    return _settings


def reload_settings() -> Settings:
    """Drop the cached Settings and read the environment again"""
    global _settings
    _settings = None
    return get_settings()
