"""OAuth middleware for the MCP endpoint.

Requires a Bearer token on every MCP request. The token is Google's own
access token; it is not introspected here; Google validates it when the
tools call the Places API with it.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def unauthorized_response(server_url: str, error_description: str) -> JSONResponse:
    """Return 401 with WWW-Authenticate header pointing to resource metadata (RFC 9728)."""
    return JSONResponse(
        {"error": "unauthorized", "error_description": error_description},
        status_code=401,
        headers={
            "WWW-Authenticate": f'Bearer resource_metadata="{server_url}/.well-known/oauth-protected-resource"'
        },
    )


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Reject Streamable HTTP / SSE MCP requests without a Bearer token."""

    def __init__(self, app, server_url: str):
        super().__init__(app)
        self.server_url = server_url

    async def dispatch(self, request: Request, call_next):
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
            logger.info("[AUTH] Request rejected: no Bearer token")
            return unauthorized_response(self.server_url, "Missing or invalid Authorization header")

        return await call_next(request)
