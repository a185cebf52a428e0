"""Shared fixtures for google-places-mcp tests."""

import pytest
from fastapi.testclient import TestClient

from config import Config
from main import create_app

SERVER_URL = "https://places-mcp.example.com"
CLIENT_ID = "proxy-client-id.apps.googleusercontent.com"
CLIENT_SECRET = "proxy-client-secret-0123456789abcdef"
STATE_SECRET = "state-secret-0123456789abcdef0123456789abcdef"
AUTHORIZE_URL = "https://accounts.example.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.example.com/token"
PLACES_URL = "https://places.example.com/v1"


def make_config(**overrides) -> Config:
    data = {
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "server_url": SERVER_URL,
        "state_secret": STATE_SECRET,
        "authorize_url": AUTHORIZE_URL,
        "token_url": TOKEN_URL,
        "places_api_base_url": PLACES_URL,
        "transport": "streamable-http",
    }
    data.update(overrides)
    return Config(data)


@pytest.fixture
def config():
    """Config for an HTTP deployment pointing at fake upstreams."""
    return make_config()


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)
