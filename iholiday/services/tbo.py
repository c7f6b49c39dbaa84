"""
TBO Inventory Client - Shared authentication and transport for air and hotel APIs
Wraps the TBO REST services with token caching, error mapping and a mock mode
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from iholiday.core.config import Settings
from iholiday.services.store import BookingStore

logger = logging.getLogger(__name__)


class InventoryAPIError(Exception):
    """Custom exception for TBO inventory API errors"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class TboClient:
    """
    Base client for TBO REST services

    Features:
    - TokenId authentication cached for 23 hours
    - JSON POST transport with timeout and error mapping
    - Deterministic mock responses when USE_MOCK is on
    """

    TOKEN_TTL = 23 * 3600
    TOKEN_EXPIRY_BUFFER = 300  # Renew 5 min before expiry
    CONNECT_TIMEOUT = 15
    USE_BASIC_AUTH = False

    def __init__(self, settings: Settings, store: BookingStore):
        """
        Initialize TBO client

        Args:
            settings: Application settings with TBO credentials and URLs
            store: Store used for reference data caching
        """
        self.settings = settings
        self.store = store
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @property
    def use_mock(self) -> bool:
        return self.settings.use_mock

    @property
    def _timeout(self) -> Tuple[int, int]:
        return (self.CONNECT_TIMEOUT, self.settings.tbo_timeout)

    @property
    def _basic_auth(self) -> Optional[Tuple[str, str]]:
        if self.USE_BASIC_AUTH and self.settings.tbo_username:
            return (self.settings.tbo_username, self.settings.tbo_password or "")
        return None

    def _get_token(self, force_refresh: bool = False) -> str:
        """
        Get TokenId (cached with auto-refresh)

        Args:
            force_refresh: Force authentication even if the cached token is valid

        Returns:
            TokenId string

        Raises:
            InventoryAPIError: If authentication fails
        """
        if self.use_mock:
            return "MOCK-TOKEN"

        if (not force_refresh and
                self._token and
                self._token_expires_at and
                datetime.now() < self._token_expires_at):
            return self._token

        if not self.settings.inventory_configured():
            raise InventoryAPIError("TBO credentials are not configured", status_code=503)

        payload = {
            "ClientId": self.settings.tbo_client_id,
            "UserName": self.settings.tbo_username,
            "Password": self.settings.tbo_password,
            "EndUserIp": self.settings.tbo_end_user_ip,
        }
        url = f"{self.settings.tbo_shared_base_url}/Authenticate"
        data = self._send(url, payload)

        token = data.get("TokenId")
        if not token:
            message = (data.get("Error") or {}).get("ErrorMessage") or "No TokenId in response"
            logger.error("TBO authentication failed: %s", message)
            raise InventoryAPIError(f"Authentication failed: {message}", payload=data)

        self._token = token
        self._token_expires_at = datetime.now() + timedelta(
            seconds=self.TOKEN_TTL - self.TOKEN_EXPIRY_BUFFER
        )
        logger.info("Obtained new TBO token %s...", token[:10])
        return token

    def _send(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST JSON and decode the response

        Raises:
            InventoryAPIError: On HTTP, transport or decoding errors
        """
        try:
            response = requests.post(
                url,
                json=payload,
                auth=self._basic_auth,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.HTTPError as e:
            logger.error("TBO HTTP error: %s - %s", e.response.status_code, e.response.text[:500])
            raise InventoryAPIError(
                f"Inventory request failed: {e.response.status_code}",
                status_code=e.response.status_code,
            )

        except requests.exceptions.RequestException as e:
            logger.error("TBO request error: %s", str(e))
            raise InventoryAPIError(f"Inventory request failed: {str(e)}")

        except ValueError as e:
            logger.error("TBO returned invalid JSON from %s: %s", url, str(e))
            raise InventoryAPIError("Inventory returned an invalid response")

    @staticmethod
    def _raise_for_error(data: Dict[str, Any]) -> None:
        """
        TBO reports failures inside a 200 body: Error.ErrorCode != 0 for air
        and shared data, Status.Code != 200 for the hotel engine
        """
        status = data.get("Status")
        if isinstance(status, dict) and status.get("Code") not in (200, "200", None):
            message = status.get("Description") or "Unknown inventory error"
            logger.error("TBO status %s: %s", status.get("Code"), message)
            raise InventoryAPIError(message, status_code=400, payload=data)

        containers = [data]
        if isinstance(data.get("Response"), dict):
            containers.append(data["Response"])
        for container in containers:
            err = container.get("Error") or {}
            code = err.get("ErrorCode", 0)
            if code not in (0, "0", None):
                message = err.get("ErrorMessage") or "Unknown inventory error"
                logger.error("TBO error %s: %s", code, message)
                raise InventoryAPIError(message, status_code=400, payload=data)

    def _call(self, kind: str, url: str, payload: Dict[str, Any], authenticated: bool = True) -> Dict[str, Any]:
        """
        Make an inventory call (or serve its mock)

        Args:
            kind: Operation name, used for logging and mock dispatch
            url: Full endpoint URL
            payload: Request body without credentials
            authenticated: Add EndUserIp and TokenId

        Returns:
            Decoded response body
        """
        if self.use_mock:
            logger.info("TBO %s (mock)", kind)
            return self._mock_response(kind, payload)

        body = dict(payload)
        if authenticated:
            body.setdefault("EndUserIp", self.settings.tbo_end_user_ip)
            body["TokenId"] = self._get_token()

        logger.info("TBO %s -> %s", kind, url)
        data = self._send(url, body)
        self._raise_for_error(data)
        return data

    def _mock_response(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise InventoryAPIError(f"No mock available for {kind}")

    def health_check(self) -> bool:
        """
        Check if the inventory is reachable and credentials are valid

        Returns:
            True if healthy (always in mock mode), False otherwise
        """
        if self.use_mock:
            return True
        try:
            self._get_token(force_refresh=True)
            return True
        except InventoryAPIError:
            return False


def unwrap(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the innermost Response object (TBO nests Response.Response for bookings)"""
    current = data
    while isinstance(current.get("Response"), dict):
        current = current["Response"]
    return current
