"""Google Places MCP server with a stateless OAuth proxy.

The app serves:
- MCP tools (text_search, photo_get) via tools.py
- MCP protocol endpoint via Streamable HTTP or SSE (/mcp)
- OAuth authorization-server facade over Google (oauth/)

MCP clients run the OAuth dance against this server; every credential
step is forwarded to Google, and the resulting Google access token is
what the tools use against the Places API.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastmcp import FastMCP
from starlette.middleware import Middleware

from config import Config
from errors import ProxyError
from oauth.endpoints import router as oauth_router
from oauth.middleware import BearerTokenMiddleware
from tools import TOOL_NAMES, create_mcp_server

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """Report a ProxyError as an OAuth-style JSON error."""
    logger.info(f"[ERROR] {request.method} {request.url.path} -> {exc.status_code} {exc.error}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers={"Cache-Control": "no-store"})


def create_app(config: Config, mcp: Optional[FastMCP] = None) -> FastAPI:
    """Build the FastAPI app for an HTTP transport.

    Args:
        config: Validated, read-only configuration
        mcp: MCP server to mount (defaults to one with the Places tools)
    """
    mcp = mcp or create_mcp_server(config)

    # Create the MCP app first; FastAPI needs its lifespan
    mcp_http_app = mcp.http_app(
        path="/",  # Route at root of mounted app
        transport=config.transport,
        stateless_http=True,
        middleware=[Middleware(BearerTokenMiddleware, server_url=config.server_url)],
    )

    app = FastAPI(
        title="Google Places MCP Server",
        description="MCP server for Google Places with an OAuth proxy to Google",
        version=VERSION,
        lifespan=mcp_http_app.lifespan,  # Required for FastMCP task group initialization
    )
    app.state.config = config

    app.add_exception_handler(ProxyError, proxy_error_handler)

    # Browser-based MCP clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["WWW-Authenticate", "Mcp-Session-Id"],
    )

    app.mount("/mcp", mcp_http_app)
    app.include_router(oauth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "google-places-mcp", "transport": config.transport}

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        server_url = config.server_url
        return {
            "name": "Google Places MCP Server",
            "version": VERSION,
            "transport": config.transport,
            "endpoints": {
                "mcp": f"{server_url}/mcp",
            },
            "tools": TOOL_NAMES,
            "oauth": {
                "protected_resource": f"{server_url}/.well-known/oauth-protected-resource",
                "authorization_server": f"{server_url}/.well-known/oauth-authorization-server",
            },
        }

    logger.info(f"[STARTUP] App created - server_url: {config.server_url}, transport: {config.transport}")
    return app


if __name__ == "__main__":
    import sys

    from cli import main
    sys.exit(main())
