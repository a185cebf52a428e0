"""CLI entry point for google-places-mcp.

Loads configuration from the environment (and .env), then serves the MCP
tools over stdio or over HTTP (Streamable HTTP or SSE) behind the OAuth
proxy.
"""
import argparse
import logging
import sys

import uvicorn

from config import TRANSPORTS, load_config, load_env
from errors import ConfigurationError
from logging_config import flush_logs, setup_logging

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="google-places-mcp",
        description="Google Places MCP server with a stateless OAuth proxy",
    )
    parser.add_argument("--transport", choices=TRANSPORTS, help="MCP transport (env: MCP_TRANSPORT)")
    parser.add_argument("--host", help="Bind address for HTTP transports (env: MCP_HOST)")
    parser.add_argument("--port", type=int, help="Port for HTTP transports (env: MCP_PORT)")
    parser.add_argument("--env-file", help="Load environment from this file instead of ./.env")
    parser.add_argument("--log-level", help="Log level (env: LOG_LEVEL)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def create_supabase_client(config):
    """Supabase client for log shipping, or None when not configured."""
    if not (config.supabase_url and config.supabase_key):
        return None
    from supabase import create_client
    try:
        return create_client(config.supabase_url, config.supabase_key)
    except Exception as e:
        print(f"[WARNING] Could not create Supabase client: {e}", file=sys.stderr)
        return None


def main(argv=None) -> int:
    """Parse arguments, validate config and run the server."""
    args = build_parser().parse_args(argv)

    load_env(args.env_file)
    config = load_config(
        transport=args.transport,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )

    try:
        config.validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    setup_logging(
        service_name="google-places-mcp",
        level=config.log_level,
        supabase_client=create_supabase_client(config),
    )

    logger.info(f"[STARTUP] google-places-mcp {VERSION} starting with transport: {config.transport}")

    try:
        if config.transport == "stdio":
            from tools import create_mcp_server
            create_mcp_server(config).run(transport="stdio")
        else:
            from main import create_app
            logger.info(f"[STARTUP] Public URL: {config.server_url}")
            logger.info(f"[STARTUP] MCP endpoint: {config.server_url}/mcp")
            uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)
    finally:
        flush_logs()

    return 0


if __name__ == "__main__":
    sys.exit(main())
