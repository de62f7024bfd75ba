"""Custom exceptions for the proxy."""

from typing import Any


class ProxyError(Exception):
    """Base class for proxy exceptions with HTTP status code.

    Every request-terminating failure inherits from this class and renders
    itself as the JSON error body returned to the caller.
    """
    status_code: int = 500

    def __init__(self, message: str = "Proxy error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        """Convert to the JSON error body."""
        return {"error": self.message}


class MethodNotAllowedError(ProxyError):
    """Raised for any method other than GET (and the OPTIONS preflight).

    Maps to HTTP 405 Method Not Allowed.
    """
    status_code = 405

    def __init__(self, method: str):
        self.method = method
        super().__init__("Method not allowed")


class MissingParameterError(ProxyError):
    """Raised when the endpoint query parameter is absent or not a single string.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, example: str = "/api/ebird?endpoint=/data/obs/US-MA/recent"):
        self.example = example
        super().__init__("Missing endpoint parameter")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "example": self.example}


class InvalidEncodingError(ProxyError):
    """Raised when the endpoint cannot be percent-decoded.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__("Invalid endpoint encoding")


class PathNotAllowedError(ProxyError):
    """Raised when the decoded endpoint matches no allowlisted prefix.

    Maps to HTTP 403 Forbidden. The allowlist is returned so callers can
    correct the request.
    """
    status_code = 403

    def __init__(self, endpoint: str, allowed: list[str]):
        self.endpoint = endpoint
        self.allowed = list(allowed)
        super().__init__("Endpoint not allowed")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "allowed": self.allowed}


class RateLimitedError(ProxyError):
    """Raised when a client exceeds its request budget for the current window.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Rate limit exceeded")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "retryAfter": self.retry_after}


class ConfigurationError(ProxyError):
    """Raised when the eBird credential is not configured.

    This is a deployment fault that needs operator action, not a client error.
    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500

    def __init__(self, hint: str = "EBIRD_API_KEY environment variable is not set"):
        self.hint = hint
        super().__init__("Server configuration error")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "hint": self.hint}


class UpstreamUnavailableError(ProxyError):
    """Raised when no HTTP status was obtained from eBird (network error, timeout).

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500

    def __init__(self, reason: str = "Unknown error"):
        self.reason = reason
        super().__init__("Failed to fetch from eBird")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "message": self.reason}


class UpstreamMalformedError(ProxyError):
    """Raised when eBird answered 2xx with a body that is not valid JSON.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500

    def __init__(self, reason: str = "Invalid JSON in upstream response"):
        self.reason = reason
        super().__init__("Failed to fetch from eBird")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "message": self.reason}


class UpstreamError(ProxyError):
    """Raised when eBird answers with a non-success status.

    The upstream status is forwarded unchanged so callers can tell upstream
    throttling apart from a bad request.
    """

    def __init__(self, status: int, body: str):
        self.status_code = status
        self.body = body
        super().__init__(f"eBird API error: {status}")

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "details": self.body}
