"""Error types for the Places MCP OAuth proxy.

Each HTTP-facing error carries the status code and OAuth error code it is
reported with. The FastAPI app turns any ProxyError into
{"error": ..., "error_description": ...}.
"""

from typing import Optional


class ProxyError(Exception):
    """Base class for errors reported to the immediate caller."""

    status_code = 500
    error = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.message}


class CallerInputError(ProxyError):
    """Malformed or missing caller parameters. Never retried."""

    status_code = 400
    error = "invalid_request"


class UnsupportedResponseTypeError(CallerInputError):
    error = "unsupported_response_type"


class UnsupportedGrantTypeError(CallerInputError):
    error = "unsupported_grant_type"


class StateIntegrityError(ProxyError):
    """The opaque state failed verification. The request must not redirect."""

    status_code = 400
    error = "invalid_state"


class UpstreamError(ProxyError):
    """Google returned a non-success status or an unusable body."""

    status_code = 502
    error = "upstream_error"

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class UpstreamUnavailableError(UpstreamError):
    """Google could not be reached at all (connect error, timeout)."""

    error = "upstream_unavailable"


class ConfigurationError(Exception):
    """Required static configuration is missing or invalid. Fatal at startup."""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.message = message
        self.missing = missing or []
