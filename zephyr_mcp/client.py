"""
HTTP request executor for the Zephyr Scale REST API.

ZephyrClient is the single place where HTTP requests are built, authenticated,
sent and classified. Every resource service holds a reference to one client
and calls execute(); nothing else in the package talks to the network.
"""

import json
import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import requests

from .errors import TransportError, error_for_status

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE")


def _query_value(value: Any) -> str:
    # JSON-style booleans: the API expects "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ZephyrClient:
    """
    Authenticated executor for Zephyr Scale API calls.

    Args:
        api_key: Bearer token sent on every request
        base_url: API root, e.g. https://api.zephyrscale.smartbear.com/v2
        timeout: Per-request timeout in seconds (None waits indefinitely)
        session: Optional requests.Session to send requests through
    """

    def __init__(self, api_key: str, base_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self._api_key = api_key
        # Exactly one trailing separator so joined paths never double up
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def api_key_hint(self) -> str:
        # SECURITY: Never log the full API key, only a hint for debugging
        return f"{self._api_key[:8]}..." if len(self._api_key) > 8 else "***"

    def build_url(self, path: str, query_params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Join the base URL and a resource path, then append query parameters.

        None-valued parameters are skipped; every other value is converted to
        its string form.
        """
        url = self.base_url + path.lstrip("/")

        if query_params:
            pairs = [(key, _query_value(value)) for key, value in query_params.items() if value is not None]
            if pairs:
                url = f"{url}?{urlencode(pairs)}"

        return url

    def execute(self, method: str, path: str, body: Any = None,
                query_params: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Make an authenticated HTTP request to the Zephyr Scale API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: Resource path, e.g. 'testcases/PROJ-T1' (leading slash optional)
            body: Optional payload, sent as a JSON entity
            query_params: Optional mapping of query parameters

        Returns:
            Parsed JSON body for JSON responses, None for empty or non-JSON
            responses (e.g. 204 No Content).

        Raises:
            AuthError: HTTP 401 or 403
            NotFoundError: HTTP 404 (details include the requested URL)
            ApiError: Any other non-2xx status
            TransportError: The request failed before a usable response was
                            obtained (network error, timeout, malformed JSON)
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        url = self.build_url(path, query_params)

        headers = {
            'Authorization': f'Bearer {self._api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

        logger.info(f"API Request: {method} {path}")
        logger.debug(f"API Key hint: {self.api_key_hint}")
        if query_params:
            logger.debug(f"Request params: {dict(query_params)}")

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                data=json.dumps(body) if body is not None else None,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Transport Error: {method} {path} - {type(e).__name__}: {e}")
            raise TransportError(
                "Failed to complete request to Zephyr API",
                {"originalError": str(e), "method": method, "path": path},
            ) from e

        logger.info(f"API Response: {method} {path} - Status {response.status_code}")

        if not response.ok:
            # Try to parse error response body, fall back to raw text
            try:
                error_body = response.json()
            except ValueError:
                error_body = response.text

            error = error_for_status(response.status_code, error_body, url)
            logger.error(f"HTTP Error: {method} {path} - {error.message}")
            logger.debug(f"API Error Details: {error_body}")
            raise error

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON response: {method} {path} - {e}")
            raise TransportError(
                "Received malformed JSON from Zephyr API",
                {"originalError": str(e), "method": method, "path": path},
            ) from e
