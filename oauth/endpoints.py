"""OAuth 2.1 proxy endpoints for MCP client authentication.

To MCP clients this server looks like a complete authorization server.
Every credential-bearing step is forwarded to Google:
- Discovery metadata (/.well-known/*)
- Client registration (/register) - hands back the shared Google client id
- Authorization (/authorize) - rewrites the request and redirects to Google
- Callback (/callback) - relays Google's code back to the caller
- Token endpoint (/token) - injects our client credentials, relays Google's answer

Nothing is stored between requests: the caller's redirect URI and state
travel inside the signed `state` parameter (see oauth.state).
"""

import logging
import time
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from config import Config
from errors import (
    CallerInputError,
    StateIntegrityError,
    UnsupportedGrantTypeError,
    UnsupportedResponseTypeError,
    UpstreamUnavailableError,
)
from oauth.state import StatePayload, decode_state, encode_state

logger = logging.getLogger(__name__)

# Router for OAuth endpoints
router = APIRouter(tags=["oauth"])

GRANT_TYPES = ("authorization_code", "refresh_token")
CODE_CHALLENGE_METHODS = ("S256", "plain")

# Fields the caller may send but that never reach Google
CLIENT_IDENTITY_FIELDS = ("client_id", "client_secret")

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def get_config(request: Request) -> Config:
    """Resolve the app's read-only config."""
    return request.app.state.config


def with_query(url: str, params: dict) -> str:
    """Append params to url, keeping any query it already has."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def validate_redirect_uri(redirect_uri: str, allowed: list[str]) -> str:
    """Check a caller redirect URI is present and well-formed.

    Web clients must use an absolute http(s) URI; native clients may use a
    custom scheme. Fragments are never allowed (RFC 6749 3.1.2).
    """
    if not redirect_uri:
        raise CallerInputError("Missing required parameter: redirect_uri")

    parts = urlsplit(redirect_uri)
    if not parts.scheme:
        raise CallerInputError("redirect_uri must be an absolute URI")
    if parts.scheme in ("http", "https") and not parts.netloc:
        raise CallerInputError("redirect_uri must include a host")
    if parts.scheme not in ("http", "https") and not (parts.netloc or parts.path):
        raise CallerInputError("redirect_uri is malformed")
    if parts.fragment or redirect_uri.endswith("#"):
        raise CallerInputError("redirect_uri must not contain a fragment")

    if allowed and not any(redirect_uri.startswith(prefix) for prefix in allowed):
        logger.warning(f"[AUTHORIZE] Rejected redirect_uri not in allowlist: {redirect_uri}")
        raise CallerInputError("redirect_uri is not allowed for this server")

    return redirect_uri


def upstream_scope(requested: str, required: str) -> str:
    """Caller's scopes with the required scopes always included."""
    scopes = requested.split()
    for scope in required.split():
        if scope not in scopes:
            scopes.append(scope)
    return " ".join(scopes)


# ============== OAuth 2.1 Discovery Endpoints ==============

@router.get("/.well-known/oauth-protected-resource")
async def oauth_protected_resource(config: Config = Depends(get_config)):
    """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
    return {
        "resource": f"{config.server_url}/mcp",
        "authorization_servers": [config.server_url],
        "scopes_supported": config.scope.split(),
        "bearer_methods_supported": ["header"],
    }


@router.get("/.well-known/oauth-authorization-server")
async def oauth_authorization_server(config: Config = Depends(get_config)):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    server_url = config.server_url
    return {
        "issuer": server_url,
        "authorization_endpoint": f"{server_url}/authorize",
        "token_endpoint": f"{server_url}/token",
        "registration_endpoint": f"{server_url}/register",
        "scopes_supported": config.scope.split(),
        "response_types_supported": ["code"],
        "response_modes_supported": ["query"],
        "grant_types_supported": list(GRANT_TYPES),
        "token_endpoint_auth_methods_supported": ["none"],
        "code_challenge_methods_supported": list(CODE_CHALLENGE_METHODS),
    }


# ============== Client Registration ==============

@router.post("/register")
async def register_client(request: Request, config: Config = Depends(get_config)):
    """OAuth 2.0 Dynamic Client Registration (RFC 7591).

    Google cannot mint clients on demand, so every caller receives the same
    pre-provisioned client id. The secret stays on this server; callers
    authenticate to /token with method "none".
    """
    try:
        data = await request.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    logger.info(f"[REGISTER] Client registered: {data.get('client_name', 'MCP Client')}")

    return JSONResponse({
        "client_id": config.client_id,
        "client_id_issued_at": int(time.time()),
        "client_name": data.get("client_name", "MCP Client"),
        "redirect_uris": data.get("redirect_uris", []),
        "grant_types": list(GRANT_TYPES),
        "response_types": ["code"],
        "token_endpoint_auth_method": "none",
        "scope": config.scope,
    }, status_code=201)


# ============== Authorization Flow ==============

@router.get("/authorize")
async def authorize(
    response_type: str = "code",
    client_id: str = "",
    redirect_uri: str = "",
    scope: str = "",
    state: str = "",
    code_challenge: str = "",
    code_challenge_method: str = "",
    config: Config = Depends(get_config),
):
    """OAuth 2.0 Authorization Endpoint - redirects to Google.

    The caller's client_id is ignored; Google only knows ours.
    """
    if response_type != "code":
        raise UnsupportedResponseTypeError(f"Unsupported response_type: {response_type}")

    validate_redirect_uri(redirect_uri, config.allowed_redirect_uris)

    if code_challenge:
        code_challenge_method = code_challenge_method or "S256"
        if code_challenge_method not in CODE_CHALLENGE_METHODS:
            raise CallerInputError(f"Unsupported code_challenge_method: {code_challenge_method}")
    elif code_challenge_method:
        raise CallerInputError("code_challenge_method given without code_challenge")

    opaque_state = encode_state(
        StatePayload(
            redirect_uri=redirect_uri,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        ),
        secret=config.state_secret,
        issuer=config.server_url,
    )

    params = {
        "client_id": config.client_id,
        "redirect_uri": config.callback_url,
        "response_type": "code",
        "scope": upstream_scope(scope, config.scope),
        "state": opaque_state,
        "access_type": "offline",  # Google only issues refresh tokens offline
        "prompt": "consent",
    }
    if code_challenge:
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = code_challenge_method

    logger.info(f"[AUTHORIZE] Redirecting to upstream for client redirect: {redirect_uri}")
    return RedirectResponse(url=with_query(config.authorize_url, params), status_code=302)


@router.get("/callback")
async def callback(
    code: str = "",
    state: str = "",
    error: str = "",
    error_description: str = "",
    config: Config = Depends(get_config),
):
    """Google redirect target - relays the code to the caller's redirect URI."""
    if not state:
        raise StateIntegrityError("Missing required parameter: state")

    # Raises before any redirect if the state was forged or expired
    payload = decode_state(state, secret=config.state_secret, issuer=config.server_url)

    if error:
        logger.info(f"[CALLBACK] Upstream returned error '{error}', relaying to {payload.redirect_uri}")
        params = {"error": error, "error_description": error_description, "state": payload.state}
        return RedirectResponse(url=with_query(payload.redirect_uri, params), status_code=302)

    if not code:
        raise CallerInputError("Missing required parameter: code")

    logger.info(f"[CALLBACK] Relaying authorization code to {payload.redirect_uri}")
    params = {"code": code, "state": payload.state}
    return RedirectResponse(url=with_query(payload.redirect_uri, params), status_code=302)


# ============== Token Endpoint ==============

async def read_token_request(request: Request) -> dict:
    """Token request fields from a form-encoded or JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise CallerInputError("Request body is not valid JSON")
        if not isinstance(data, dict):
            raise CallerInputError("Request body must be a JSON object")
        fields = {}
        for key, value in data.items():
            if value is None:
                continue
            # bool is an int subclass but has no form-encoded spelling
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise CallerInputError(f"Parameter {key} must be a string")
            fields[key] = str(value)
        return fields

    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def build_upstream_token_request(fields: dict, config: Config) -> dict:
    """Caller's token request with our client identity injected."""
    grant_type = fields.get("grant_type")
    if not grant_type:
        raise CallerInputError("Missing required parameter: grant_type")
    if grant_type not in GRANT_TYPES:
        raise UnsupportedGrantTypeError(f"Unsupported grant_type: {grant_type}")

    if grant_type == "authorization_code" and not fields.get("code"):
        raise CallerInputError("Missing required parameter: code")
    if grant_type == "refresh_token" and not fields.get("refresh_token"):
        raise CallerInputError("Missing required parameter: refresh_token")

    body = {key: value for key, value in fields.items() if key not in CLIENT_IDENTITY_FIELDS}
    body["client_id"] = config.client_id
    body["client_secret"] = config.client_secret
    if grant_type == "authorization_code":
        # Must match the redirect_uri Google saw at /authorize
        body["redirect_uri"] = config.callback_url
    return body


@router.post("/token")
async def token(request: Request, config: Config = Depends(get_config)):
    """OAuth 2.0 Token Endpoint - forwards to Google and relays the answer.

    Google's status code and body are returned unchanged, errors included.
    Token values are never logged or kept.
    """
    fields = await read_token_request(request)
    body = build_upstream_token_request(fields, config)

    logger.info(f"[TOKEN] Forwarding {body['grant_type']} grant to upstream")

    try:
        async with httpx.AsyncClient(timeout=config.upstream_timeout) as client:
            upstream = await client.post(
                config.token_url,
                data=body,
                headers={"Accept": "application/json"},
            )
    except httpx.HTTPError as e:
        logger.warning(f"[TOKEN] Upstream token endpoint unreachable: {type(e).__name__}")
        raise UpstreamUnavailableError("Upstream authorization server is unavailable")

    logger.info(f"[TOKEN] Upstream responded with status {upstream.status_code}")

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "application/json"),
        headers=NO_STORE_HEADERS,
    )
