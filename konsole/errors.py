"""Error types for the console and the proxy service."""

from typing import Any, Optional


class KonsoleError(Exception):
    """Base class for user-facing console errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PreconditionError(KonsoleError):
    """Raised when a required selection or field is missing, before any I/O."""


class UpstreamError(KonsoleError):
    """Raised when the proxy or backend answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def from_response(cls, status_code: int, body: Any, template: str) -> "UpstreamError":
        """Prefer the upstream ``error`` then ``message`` field over the template.

        Args:
            status_code: Upstream HTTP status
            body: Decoded JSON body, or None if it could not be parsed
            template: Fallback message with a ``{status}`` placeholder
        """
        message = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message")
        return cls(str(message) if message else template.format(status=status_code), status_code, body)


class TransportError(KonsoleError):
    """Raised on network failure or an unparseable response body."""


class ProxyError(Exception):
    """Base class for errors the proxy service turns into JSON responses."""

    status_code = 500
    error = "Proxy error"

    def __init__(self, details: Optional[str] = None, error: Optional[str] = None) -> None:
        self.details = details
        if error is not None:
            self.error = error
        super().__init__(f"{self.error}: {details}" if details else self.error)

    def to_payload(self) -> dict:
        payload = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class MissingAPIKeyError(ProxyError):
    """Raised when a forwarding request arrives without ``X-API-KEY``."""

    status_code = 401
    error = "Missing X-API-KEY header"


class BackendUnavailableError(ProxyError):
    """Raised when the backend cannot be reached or returns a malformed body."""

    status_code = 500
    error = "Failed to forward request to backend"


class FixtureNotFoundError(ProxyError):
    """Raised in mock mode when a canned payload is missing or malformed."""

    status_code = 404
    error = "Mock data not found"
