"""Tests for the signed OAuth state codec."""

import time

import jwt
import pytest

from errors import StateIntegrityError
from oauth.state import STATE_ALGORITHM, StatePayload, decode_state, encode_state

SECRET = "state-secret-0123456789abcdef0123456789abcdef"
ISSUER = "https://places-mcp.example.com"


def _mutations(token: str):
    """Every single-character substitution of token."""
    for index, char in enumerate(token):
        replacement = "A" if char != "A" else "B"
        yield index, token[:index] + replacement + token[index + 1:]


@pytest.mark.parametrize("payload", [
    StatePayload(redirect_uri="https://client.example/cb", state="abc123"),
    StatePayload(redirect_uri="https://client.example/cb?tenant=7", state=""),
    StatePayload(redirect_uri="cursor://anysphere.cursor-mcp/oauth/callback", state="x y/z+=&"),
    StatePayload(
        redirect_uri="http://localhost:33418/callback",
        state="s",
        code_challenge="E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM",
        code_challenge_method="S256",
    ),
])
def test_round_trip(payload):
    """Decoding an issued state returns exactly what was encoded."""
    token = encode_state(payload, SECRET, ISSUER)
    assert decode_state(token, SECRET, ISSUER) == payload


def test_state_is_opaque_and_unique():
    """Two identical requests still get different state values."""
    payload = StatePayload(redirect_uri="https://client.example/cb", state="abc123")
    first = encode_state(payload, SECRET, ISSUER)
    second = encode_state(payload, SECRET, ISSUER)
    assert first != second
    assert "abc123" not in first
    assert "client.example" not in first


def test_any_single_character_change_is_rejected():
    """Tampering with any one character of the state is detected."""
    token = encode_state(StatePayload(redirect_uri="https://client.example/cb", state="abc123"), SECRET, ISSUER)
    for index, mutated in _mutations(token):
        with pytest.raises(StateIntegrityError):
            decode_state(mutated, SECRET, ISSUER)


def test_rejects_other_secret():
    token = encode_state(StatePayload(redirect_uri="https://client.example/cb"), "another-secret-0123456789abcdef0123", ISSUER)
    with pytest.raises(StateIntegrityError, match="failed verification"):
        decode_state(token, SECRET, ISSUER)


def test_rejects_other_issuer():
    token = encode_state(StatePayload(redirect_uri="https://client.example/cb"), SECRET, "https://other.example.com")
    with pytest.raises(StateIntegrityError):
        decode_state(token, SECRET, ISSUER)


def test_rejects_expired_state():
    token = encode_state(StatePayload(redirect_uri="https://client.example/cb"), SECRET, ISSUER, expires_in=-10)
    with pytest.raises(StateIntegrityError, match="expired"):
        decode_state(token, SECRET, ISSUER)


def test_rejects_wrong_token_type():
    """A token signed with the same key but not issued as a state is refused."""
    now = int(time.time())
    token = jwt.encode(
        {"redirect_uri": "https://evil.example/cb", "iss": ISSUER, "iat": now, "exp": now + 60, "type": "access"},
        SECRET,
        algorithm=STATE_ALGORITHM,
    )
    with pytest.raises(StateIntegrityError):
        decode_state(token, SECRET, ISSUER)


def test_rejects_unsigned_token():
    now = int(time.time())
    token = jwt.encode(
        {"redirect_uri": "https://evil.example/cb", "iss": ISSUER, "iat": now, "exp": now + 60, "type": "oauth_state"},
        None,
        algorithm="none",
    )
    with pytest.raises(StateIntegrityError):
        decode_state(token, SECRET, ISSUER)


@pytest.mark.parametrize("token", ["", "abc123", "a.b", "a.b.c.d", "!!!.???.***", "eyJ.eyJ.sig"])
def test_rejects_garbage(token):
    with pytest.raises(StateIntegrityError):
        decode_state(token, SECRET, ISSUER)
