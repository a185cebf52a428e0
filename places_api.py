"""Google Places API (New) client.

Thin async wrappers over the two REST calls the tools need. Every call
authenticates with the caller's own Google access token.
"""

import json
import logging
from typing import Any, Optional

import httpx

from errors import UpstreamError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_PHOTO_MAX_HEIGHT_PX = 400

# Comprehensive field mask for text search results
TEXT_SEARCH_FIELD_MASK = ",".join([
    "places.name",
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.shortFormattedAddress",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.types",
    "places.primaryType",
    "places.primaryTypeDisplayName",
    "places.regularOpeningHours",
    "places.currentOpeningHours",
    "places.nationalPhoneNumber",
    "places.internationalPhoneNumber",
    "places.websiteUri",
    "places.googleMapsUri",
    "places.photos",
    "places.reviews",
    "places.editorialSummary",
    "places.priceRange",
    "nextPageToken",
    "searchUri",
])


def _headers(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise UpstreamError(
        f"Places API error: {response.status_code} {response.reason_phrase} - {response.text}",
        status=response.status_code,
        body=response.text,
    )


def _parse_json(response: httpx.Response) -> Any:
    _raise_for_status(response)

    if not response.text.strip():
        return {"success": True, "message": "Operation completed successfully"}

    try:
        return response.json()
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Failed to parse JSON response: {e}", status=response.status_code, body=response.text)


class PlacesClient:
    """Places API client bound to a base URL and timeout."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"[PLACES] Request to Places API failed: {type(e).__name__}")
            raise UpstreamUnavailableError(f"Places API is unavailable: {type(e).__name__}")

    async def search_text(self, access_token: str, body: dict, field_mask: str = TEXT_SEARCH_FIELD_MASK) -> Any:
        """POST /places:searchText with the given request body."""
        headers = _headers(access_token)
        headers["X-Goog-FieldMask"] = field_mask
        response = await self._request(
            "POST",
            f"{self.base_url}/places:searchText",
            headers=headers,
            json=body,
        )
        return _parse_json(response)

    async def get_photo_uri(
        self,
        photo_name: str,
        access_token: str,
        max_height_px: Optional[int] = None,
        max_width_px: Optional[int] = None,
    ) -> str:
        """Resolve a photo resource name to a short-lived image URL."""
        params = {}
        if max_height_px:
            params["maxHeightPx"] = max_height_px
        if max_width_px:
            params["maxWidthPx"] = max_width_px
        # Need at least one dimension
        if not params:
            params["maxHeightPx"] = DEFAULT_PHOTO_MAX_HEIGHT_PX
        params["skipHttpRedirect"] = "true"

        response = await self._request(
            "GET",
            f"{self.base_url}/{photo_name}/media",
            headers=_headers(access_token),
            params=params,
        )
        data = _parse_json(response)

        photo_uri = data.get("photoUri") if isinstance(data, dict) else None
        if not photo_uri:
            raise UpstreamError("Places API response did not include a photoUri", status=response.status_code)
        return photo_uri
