"""
Services package - Business logic and external API integrations
"""

from .air import TboAirClient, get_air_client
from .cms import CMSAPIError, LeadService, RateLimitExceeded, SanityClient, get_lead_service, get_sanity_client
from .hotels import TboHotelClient, get_hotel_client
from .planner import TripPlannerService, get_planner_service
from .razorpay import PaymentGatewayError, RazorpayClient, WebhookError, get_razorpay_client, get_webhook_handler
from .store import BookingStore, get_store
from .tbo import InventoryAPIError
from .workflow import BookingWorkflowService, get_workflow_service

__all__ = [
    "TboAirClient",
    "get_air_client",
    "CMSAPIError",
    "LeadService",
    "RateLimitExceeded",
    "SanityClient",
    "get_lead_service",
    "get_sanity_client",
    "TboHotelClient",
    "get_hotel_client",
    "TripPlannerService",
    "get_planner_service",
    "PaymentGatewayError",
    "RazorpayClient",
    "WebhookError",
    "get_razorpay_client",
    "get_webhook_handler",
    "BookingStore",
    "get_store",
    "InventoryAPIError",
    "BookingWorkflowService",
    "get_workflow_service"
]
