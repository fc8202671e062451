"""Low-level HTTP client for Keycloak Admin API.

Handles service account authentication, token management, and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError

REQUEST_TIMEOUT = 5

# Refresh the token this long before Keycloak says it expires
TOKEN_REFRESH_MARGIN = timedelta(seconds=10)

logger = logging.getLogger(__name__)


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Features:
    - Lazy service account authentication (first request fetches the token)
    - Automatic token refresh when expired
    - Centralized error handling with Keycloak's own error messages

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.configure_service_account("demo", "automation-cli", "secret")
        response = client.get("/admin/realms/demo/users")
    """

    def __init__(self, base_url: str):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (without /realms/... suffix)
        """
        self.base_url = base_url.rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def configure_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> None:
        """Store service account credentials; the token is fetched on first use.

        Args:
            auth_realm: Realm where service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret
        """
        self._auth_params = {
            "auth_realm": auth_realm,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._token = None
        self._token_expires_at = None

    def _refresh_token(self) -> None:
        token, expires_in = self._get_service_account_token(
            self._auth_params["auth_realm"],
            self._auth_params["client_id"],
            self._auth_params["client_secret"],
        )
        self._token = token
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
        logger.debug("[keycloak] Service account token refreshed (expires_in=%ss)", expires_in)

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._auth_params:
            raise KeycloakAPIError(401, "Not authenticated - call configure_service_account first", "")

        if not self._token or not self._token_expires_at:
            self._refresh_token()
            return

        if datetime.now() >= self._token_expires_at - TOKEN_REFRESH_MARGIN:
            self._refresh_token()

    def ensure_token(self) -> str:
        """Return a valid service account token, fetching one if needed."""
        self._ensure_authenticated()
        return self._token

    def _headers(self, extra: Optional[Dict] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.get(f"{self.base_url}{path}", params=params, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def post(self, path: str, json: Optional[Any] = None, data: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.post(f"{self.base_url}{path}", json=json, data=data, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        """Execute PUT request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.put(f"{self.base_url}{path}", json=json, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def delete(self, path: str, **kwargs) -> requests.Response:
        """Execute DELETE request with automatic authentication.

        Keyword arguments (e.g. ``json`` for role-mapping removal) are passed
        through to requests.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.delete(f"{self.base_url}{path}", headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def _get_service_account_token(self, auth_realm: str, client_id: str, client_secret: str) -> tuple[str, int]:
        """Fetch a service account token using client credentials flow."""
        url = f"{self.base_url}/realms/{auth_realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        resp = requests.post(url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, extract_error_message(resp), url)
        payload = resp.json()
        try:
            expires_in = int(payload.get("expires_in", 60))
        except (TypeError, ValueError):
            expires_in = 60
        return payload["access_token"], expires_in

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            KeycloakAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            message = extract_error_message(resp)
            logger.warning("[keycloak] %s -> %s: %s", resp.url, resp.status_code, message)
            raise KeycloakAPIError(resp.status_code, message, resp.url)


def extract_error_message(resp: requests.Response) -> str:
    """Return the human readable error Keycloak put in the response body.

    Keycloak uses ``errorMessage`` on Admin API errors and
    ``error_description``/``error`` on OIDC endpoints. Falls back to the raw
    body text.
    """
    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("errorMessage", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value

    return (resp.text or "").strip() or f"HTTP {resp.status_code}"


def user_id_from_location(resp: requests.Response) -> Optional[str]:
    """Extract the new resource id from a 201 Created ``Location`` header."""
    location = resp.headers.get("Location", "")
    if not location:
        return None
    return location.rstrip("/").rsplit("/", 1)[-1] or None
