"""
Structured errors for the Zephyr Scale MCP server.

Every failure that reaches an MCP client is one of the ZephyrError subclasses
below. Each carries a stable machine-readable kind, a JSON-RPC style numeric
code, a human-readable message and an opaque details dict.

Taxonomy:
    VALIDATION_ERROR  - malformed tool arguments (never reaches the network)
    METHOD_NOT_FOUND  - unknown tool name
    AUTH_ERROR        - HTTP 401 / 403
    NOT_FOUND         - HTTP 404
    API_ERROR         - any other non-2xx response
    TRANSPORT_ERROR   - no usable response was obtained
    INTERNAL_ERROR    - unexpected exception at the dispatch boundary
"""

from typing import Any, Dict, Optional


class ZephyrError(Exception):
    """Base class for all classified errors."""

    kind = "INTERNAL_ERROR"
    code = -32603

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Error payload in the same shape every tool failure uses."""
        return {
            "status": "failed",
            "error_type": self.kind,
            "code": self.code,
            "error": self.message,
            "details": self.details,
        }

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class ToolValidationError(ZephyrError):
    kind = "VALIDATION_ERROR"
    code = -32602


class MethodNotFoundError(ZephyrError):
    kind = "METHOD_NOT_FOUND"
    code = -32601


class AuthError(ZephyrError):
    kind = "AUTH_ERROR"
    code = -32001


class NotFoundError(ZephyrError):
    kind = "NOT_FOUND"
    code = -32004


class ApiError(ZephyrError):
    kind = "API_ERROR"
    code = -38129


class TransportError(ZephyrError):
    kind = "TRANSPORT_ERROR"
    code = -32002


class InternalError(ZephyrError):
    kind = "INTERNAL_ERROR"
    code = -32603


class ConfigError(Exception):
    """Missing or invalid startup configuration. Fatal, never a tool result."""

    def __init__(self, message: str, code: int = -32603):
        super().__init__(message)
        self.code = code


def error_for_status(status_code: int, error_body: Any, url: str) -> ZephyrError:
    """
    Classify a non-2xx HTTP response.

    Args:
        status_code: HTTP status code of the response
        error_body: Parsed JSON error body, or raw text if it was not JSON
        url: Fully resolved request URL (reported for 404 only)

    Returns:
        ZephyrError: AuthError, NotFoundError or ApiError
    """
    message = f"Zephyr API Error: HTTP {status_code}"
    details = {"status": status_code, "error": error_body}

    if status_code in (401, 403):
        return AuthError(message, details)
    if status_code == 404:
        details["requestedUrl"] = url
        return NotFoundError(message, details)
    return ApiError(message, details)
