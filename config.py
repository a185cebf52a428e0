"""Config management for google-places-mcp.

All settings come from the environment (optionally seeded from a .env file)
and are read once at startup. The resulting Config is read-only and is
handed to every handler; nothing mutates it after load.
"""
import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from errors import ConfigurationError


DEFAULT_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
DEFAULT_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_PLACES_API_BASE_URL = "https://places.googleapis.com/v1"

TRANSPORTS = ("streamable-http", "sse", "stdio")
HTTP_TRANSPORTS = ("streamable-http", "sse")

# Environment variable -> config key
ENV_KEYS = {
    "GOOGLE_CLIENT_ID": "client_id",
    "GOOGLE_CLIENT_SECRET": "client_secret",
    "SERVER_URL": "server_url",
    "OAUTH_STATE_SECRET": "state_secret",
    "OAUTH_SCOPE": "scope",
    "OAUTH_ALLOWED_REDIRECT_URIS": "allowed_redirect_uris",
    "GOOGLE_AUTHORIZE_URL": "authorize_url",
    "GOOGLE_TOKEN_URL": "token_url",
    "PLACES_API_BASE_URL": "places_api_base_url",
    "UPSTREAM_TIMEOUT": "upstream_timeout",
    "MCP_TRANSPORT": "transport",
    "MCP_HOST": "host",
    "MCP_PORT": "port",
    "GOOGLE_ACCESS_TOKEN": "access_token",
    "LOG_LEVEL": "log_level",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_KEY": "supabase_key",
}


def load_env(env_file: Optional[str] = None) -> None:
    """Load environment: explicit file, else .env in the working directory."""
    if env_file:
        load_dotenv(env_file, override=True)
        return
    _env_file = Path(".env")
    if _env_file.exists():
        load_dotenv(_env_file)


def parse_env_list(raw: Optional[str]) -> list[str]:
    """Split a comma and/or whitespace separated value."""
    if not raw:
        return []
    return [item.strip() for item in raw.replace(",", " ").split() if item.strip()]


class Config:
    """Read-only configuration container."""

    def __init__(self, data: Mapping = None):
        self._data = MappingProxyType(dict(data or {}))

    def __repr__(self) -> str:
        return f"Config(transport={self.transport!r}, server_url={self.server_url!r})"

    @property
    def data(self) -> Mapping:
        return self._data

    @property
    def client_id(self) -> str:
        return self._data.get("client_id") or ""

    @property
    def client_secret(self) -> str:
        return self._data.get("client_secret") or ""

    @property
    def server_url(self) -> str:
        return (self._data.get("server_url") or "").rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.server_url}/callback"

    @property
    def state_secret(self) -> str:
        return self._data.get("state_secret") or self.client_secret

    @property
    def scope(self) -> str:
        return self._data.get("scope") or DEFAULT_SCOPE

    @property
    def allowed_redirect_uris(self) -> list[str]:
        value = self._data.get("allowed_redirect_uris")
        if isinstance(value, str):
            return parse_env_list(value)
        return list(value or [])

    @property
    def authorize_url(self) -> str:
        return self._data.get("authorize_url") or DEFAULT_AUTHORIZE_URL

    @property
    def token_url(self) -> str:
        return self._data.get("token_url") or DEFAULT_TOKEN_URL

    @property
    def places_api_base_url(self) -> str:
        return (self._data.get("places_api_base_url") or DEFAULT_PLACES_API_BASE_URL).rstrip("/")

    @property
    def upstream_timeout(self) -> float:
        return float(self._data.get("upstream_timeout") or 10)

    @property
    def transport(self) -> str:
        return self._data.get("transport") or "streamable-http"

    @property
    def host(self) -> str:
        return self._data.get("host") or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self._data.get("port") or 8766)

    @property
    def access_token(self) -> Optional[str]:
        return self._data.get("access_token") or None

    @property
    def log_level(self) -> str:
        return (self._data.get("log_level") or "INFO").upper()

    @property
    def supabase_url(self) -> Optional[str]:
        return self._data.get("supabase_url") or None

    @property
    def supabase_key(self) -> Optional[str]:
        return self._data.get("supabase_key") or None

    @property
    def is_http(self) -> bool:
        return self.transport in HTTP_TRANSPORTS

    def missing(self) -> list[str]:
        """Environment variables the selected transport needs but lacks."""
        if self.is_http:
            required = {
                "GOOGLE_CLIENT_ID": self.client_id,
                "GOOGLE_CLIENT_SECRET": self.client_secret,
                "SERVER_URL": self.server_url,
            }
        else:
            required = {"GOOGLE_ACCESS_TOKEN": self.access_token}
        return [name for name, value in required.items() if not value]

    def validate(self) -> "Config":
        """Raise ConfigurationError unless this config can serve requests."""
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(
                f"Unknown MCP_TRANSPORT {self.transport!r}; expected one of {', '.join(TRANSPORTS)}"
            )

        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}", missing=missing
            )

        try:
            port = self.port
        except ValueError:
            raise ConfigurationError(f"MCP_PORT must be an integer, got {self._data.get('port')!r}")
        if not 0 < port < 65536:
            raise ConfigurationError(f"MCP_PORT out of range: {port}")

        try:
            self.upstream_timeout
        except ValueError:
            raise ConfigurationError(
                f"UPSTREAM_TIMEOUT must be a number, got {self._data.get('upstream_timeout')!r}"
            )

        if self.is_http:
            parsed = urlparse(self.server_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"SERVER_URL must be an absolute http(s) URL, got {self.server_url!r}")

        return self


def load_config(environ: Mapping = None, **overrides) -> Config:
    """Build a Config from environment variables plus explicit overrides.

    Overrides with a value of None are ignored, so CLI flags that were not
    given fall through to the environment.
    """
    environ = os.environ if environ is None else environ
    data = {key: environ[name] for name, key in ENV_KEYS.items() if environ.get(name)}
    data.update({key: value for key, value in overrides.items() if value is not None})
    return Config(data)
