"""Signed OAuth state for the authorize -> callback round trip.

The proxy keeps no session table. Everything the callback needs (the
caller's redirect URI, the caller's own state and the PKCE challenge) rides
inside the `state` parameter Google echoes back, as an HS256 JWT signed
with the configured state secret. Tampering, expiry or a foreign issuer
make decoding fail with StateIntegrityError.
"""

import binascii
import logging
import secrets
import time
from dataclasses import dataclass

import jwt
from jwt.utils import base64url_decode, base64url_encode

from errors import StateIntegrityError

logger = logging.getLogger(__name__)

STATE_ALGORITHM = "HS256"
STATE_EXPIRE_SECONDS = 10 * 60  # 10 minutes
STATE_TOKEN_TYPE = "oauth_state"


@dataclass(frozen=True)
class StatePayload:
    """Caller context carried through the upstream redirect."""

    redirect_uri: str
    state: str = ""
    code_challenge: str = ""
    code_challenge_method: str = ""


def _is_canonical(token: str) -> bool:
    """True if every segment is strict, unpadded base64url.

    Base64 decoders ignore the spare low bits of a final character and skip
    characters outside the alphabet, so two different strings can carry the
    same signed bytes. Only the exact encoding we issued is accepted.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        return all(base64url_encode(base64url_decode(segment)).decode("ascii") == segment for segment in segments)
    except (binascii.Error, ValueError):
        return False


def encode_state(
    payload: StatePayload,
    secret: str,
    issuer: str,
    expires_in: int = STATE_EXPIRE_SECONDS,
) -> str:
    """Sign a StatePayload into an opaque state string.

    Args:
        payload: The caller context to carry
        secret: HMAC key (never sent anywhere)
        issuer: This proxy's public base URL
        expires_in: Lifetime in seconds (default 10 minutes)

    Returns:
        A compact JWT usable as an OAuth `state` value
    """
    now = int(time.time())

    claims = {
        "redirect_uri": payload.redirect_uri,
        "client_state": payload.state,
        "code_challenge": payload.code_challenge,
        "code_challenge_method": payload.code_challenge_method,
        "nonce": secrets.token_urlsafe(8),  # distinct states for identical requests
        "iss": issuer,
        "iat": now,
        "exp": now + expires_in,
        "type": STATE_TOKEN_TYPE,
    }

    return jwt.encode(claims, secret, algorithm=STATE_ALGORITHM)


def decode_state(token: str, secret: str, issuer: str) -> StatePayload:
    """Verify and unpack an opaque state string.

    Raises:
        StateIntegrityError: if the value is malformed, re-encoded, expired,
            signed with another key, issued by another proxy, or not a state
    """
    if not token or not _is_canonical(token):
        logger.warning("[STATE] Rejected state: malformed encoding")
        raise StateIntegrityError("State parameter is malformed")

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[STATE_ALGORITHM],
            options={"require": ["exp", "iat", "iss"]},
            issuer=issuer,
        )
    except jwt.ExpiredSignatureError:
        logger.warning("[STATE] Rejected state: expired")
        raise StateIntegrityError("State parameter has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"[STATE] Rejected state: {e}")
        raise StateIntegrityError("State parameter failed verification")

    if claims.get("type") != STATE_TOKEN_TYPE:
        logger.warning("[STATE] Rejected state: wrong token type")
        raise StateIntegrityError("State parameter failed verification")

    redirect_uri = claims.get("redirect_uri")
    if not isinstance(redirect_uri, str) or not redirect_uri:
        raise StateIntegrityError("State parameter carries no redirect URI")

    return StatePayload(
        redirect_uri=redirect_uri,
        state=claims.get("client_state") or "",
        code_challenge=claims.get("code_challenge") or "",
        code_challenge_method=claims.get("code_challenge_method") or "",
    )
