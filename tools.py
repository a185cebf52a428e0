"""MCP tools for google-places-mcp.

Two read-only tools over the Google Places API (New):
- text_search: free-text place search
- photo_get: resolve a place photo to an image URL

Each call uses the Bearer token of the current HTTP request, or the
configured GOOGLE_ACCESS_TOKEN when running over stdio. Argument and
result field names are the Places API's own camelCase names.
"""

import logging
from typing import Annotated, Any, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_request
from mcp.types import ToolAnnotations
from pydantic import BaseModel, ConfigDict, Field, model_serializer

from config import Config
from places_api import PlacesClient

logger = logging.getLogger(__name__)

TOOL_NAMES = ["text_search", "photo_get"]

PriceLevel = Literal[
    "PRICE_LEVEL_FREE",
    "PRICE_LEVEL_INEXPENSIVE",
    "PRICE_LEVEL_MODERATE",
    "PRICE_LEVEL_EXPENSIVE",
    "PRICE_LEVEL_VERY_EXPENSIVE",
]


class LatLng(BaseModel):
    latitude: float
    longitude: float


class Circle(BaseModel):
    center: LatLng
    radius: float = Field(description="Radius in meters")


class Rectangle(BaseModel):
    low: LatLng
    high: LatLng


class LocationBias(BaseModel):
    """Prefer results near this location (circle or rectangle)."""

    circle: Optional[Circle] = None
    rectangle: Optional[Rectangle] = None


class LocationRestriction(BaseModel):
    """Only return results within this area."""

    rectangle: Rectangle


class PlacesModel(BaseModel):
    """Places API response object, serialized without the fields Google left out."""

    @model_serializer(mode="wrap")
    def _drop_none(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}


class LocalizedText(PlacesModel):
    text: str
    languageCode: Optional[str] = None


class TimePoint(PlacesModel):
    day: int
    hour: int
    minute: int


class Period(PlacesModel):
    open: Optional[TimePoint] = None
    close: Optional[TimePoint] = None


class OpeningHours(PlacesModel):
    openNow: Optional[bool] = None
    periods: Optional[list[Period]] = None
    weekdayDescriptions: Optional[list[str]] = None


class CurrentOpeningHours(PlacesModel):
    openNow: Optional[bool] = None
    weekdayDescriptions: Optional[list[str]] = None


class AuthorAttribution(PlacesModel):
    displayName: Optional[str] = None
    uri: Optional[str] = None
    photoUri: Optional[str] = None


class Photo(PlacesModel):
    name: str
    widthPx: Optional[int] = None
    heightPx: Optional[int] = None
    authorAttributions: Optional[list[AuthorAttribution]] = None


class ReviewAuthor(PlacesModel):
    displayName: Optional[str] = None


class Review(PlacesModel):
    name: Optional[str] = None
    rating: Optional[float] = None
    text: Optional[LocalizedText] = None
    authorAttribution: Optional[ReviewAuthor] = None
    publishTime: Optional[str] = None


class Money(PlacesModel):
    currencyCode: str
    units: str


class PriceRange(PlacesModel):
    startPrice: Optional[Money] = None
    endPrice: Optional[Money] = None


class Place(PlacesModel):
    """A place from a text search. Fields not modelled here pass through."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(default=None, description="Resource name (places/PLACE_ID)")
    id: Optional[str] = Field(default=None, description="Place ID")
    displayName: Optional[LocalizedText] = None
    formattedAddress: Optional[str] = None
    shortFormattedAddress: Optional[str] = None
    location: Optional[LatLng] = None
    rating: Optional[float] = None
    userRatingCount: Optional[int] = None
    priceLevel: Optional[str] = None
    types: Optional[list[str]] = None
    primaryType: Optional[str] = None
    primaryTypeDisplayName: Optional[LocalizedText] = None
    regularOpeningHours: Optional[OpeningHours] = None
    currentOpeningHours: Optional[CurrentOpeningHours] = None
    nationalPhoneNumber: Optional[str] = None
    internationalPhoneNumber: Optional[str] = None
    websiteUri: Optional[str] = None
    googleMapsUri: Optional[str] = None
    photos: Optional[list[Photo]] = None
    reviews: Optional[list[Review]] = None
    editorialSummary: Optional[LocalizedText] = None
    priceRange: Optional[PriceRange] = None


class TextSearchResult(PlacesModel):
    places: Optional[list[Place]] = None
    nextPageToken: Optional[str] = None
    searchUri: Optional[str] = None


class PhotoResult(BaseModel):
    photoUri: str = Field(description="URL to the photo image")


def resolve_access_token(config: Config) -> str:
    """Bearer token of the current HTTP request, else the stdio token."""
    try:
        request = get_http_request()
    except RuntimeError:
        request = None

    if request is not None:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer ") and auth_header[7:].strip():
            return auth_header[7:].strip()

    if config.access_token:
        return config.access_token

    raise ToolError("No Google access token available; authenticate with the server first")


def build_text_search_body(
    text_query: str,
    language_code: Optional[str] = None,
    region_code: Optional[str] = None,
    rank_preference: Optional[str] = None,
    included_type: Optional[str] = None,
    open_now: Optional[bool] = None,
    min_rating: Optional[float] = None,
    price_levels: Optional[list[str]] = None,
    page_size: Optional[int] = None,
    page_token: Optional[str] = None,
    location_bias: Optional[LocationBias] = None,
    location_restriction: Optional[LocationRestriction] = None,
) -> dict:
    """searchText request body with only the options that were given."""
    body: dict[str, Any] = {"textQuery": text_query}

    if language_code:
        body["languageCode"] = language_code
    if region_code:
        body["regionCode"] = region_code
    if rank_preference:
        body["rankPreference"] = rank_preference
    if included_type:
        body["includedType"] = included_type
    if open_now is not None:
        body["openNow"] = open_now
    if min_rating is not None:
        body["minRating"] = min_rating
    if price_levels:
        body["priceLevels"] = list(price_levels)
    if page_size:
        body["pageSize"] = page_size
    if page_token:
        body["pageToken"] = page_token
    if location_bias:
        body["locationBias"] = location_bias.model_dump(exclude_none=True)
    if location_restriction:
        body["locationRestriction"] = location_restriction.model_dump(exclude_none=True)

    return body


def register_tools(mcp: FastMCP, config: Config) -> FastMCP:
    """Register the Places tools on an MCP server instance."""
    places = PlacesClient(config.places_api_base_url, timeout=config.upstream_timeout)

    @mcp.tool(
        name="text_search",
        title="Search Places",
        description=(
            "Search for places using a text query. Returns place details including name, "
            "address, rating, opening hours, photos, and more."
        ),
        annotations=ToolAnnotations(readOnlyHint=True),
    )
    async def text_search(
        textQuery: Annotated[str, Field(description='The text query to search for places (e.g., "pizza in New York")')],
        languageCode: Annotated[Optional[str], Field(description='Language code for results (e.g., "en", "fr")')] = None,
        regionCode: Annotated[Optional[str], Field(description='Region code for result localization (e.g., "US", "GB")')] = None,
        rankPreference: Annotated[Optional[Literal["RELEVANCE", "DISTANCE"]], Field(description="How to rank results")] = None,
        includedType: Annotated[Optional[str], Field(description="Restrict to a specific place type")] = None,
        openNow: Annotated[Optional[bool], Field(description="Only return places that are currently open")] = None,
        minRating: Annotated[Optional[float], Field(ge=0, le=5, description="Minimum average user rating (0.0 to 5.0)")] = None,
        priceLevels: Annotated[Optional[list[PriceLevel]], Field(description="Filter by price levels")] = None,
        pageSize: Annotated[Optional[int], Field(ge=1, le=20, description="Number of results per page (max 20)")] = None,
        pageToken: Annotated[Optional[str], Field(description="Token from previous response for pagination")] = None,
        locationBias: Annotated[Optional[LocationBias], Field(description="Prefer results near this location")] = None,
        locationRestriction: Annotated[Optional[LocationRestriction], Field(description="Only return results within this area")] = None,
    ) -> TextSearchResult:
        logger.info(f"[TOOL] text_search invoked, query length: {len(textQuery)}")
        body = build_text_search_body(
            textQuery,
            language_code=languageCode,
            region_code=regionCode,
            rank_preference=rankPreference,
            included_type=includedType,
            open_now=openNow,
            min_rating=minRating,
            price_levels=priceLevels,
            page_size=pageSize,
            page_token=pageToken,
            location_bias=locationBias,
            location_restriction=locationRestriction,
        )
        data = await places.search_text(resolve_access_token(config), body)
        return TextSearchResult.model_validate(data)

    @mcp.tool(
        name="photo_get",
        title="Get Place Photo",
        description=(
            "Get a photo URL for a place. Use the photo name from a text search response. "
            "At least one of maxHeightPx or maxWidthPx should be specified."
        ),
        annotations=ToolAnnotations(readOnlyHint=True),
    )
    async def photo_get(
        photoName: Annotated[str, Field(
            pattern=r"^places/[^/]+/photos/[^/]+$",
            description="The photo resource name from a text search response (places/PLACE_ID/photos/PHOTO_RESOURCE)",
        )],
        maxHeightPx: Annotated[Optional[int], Field(ge=1, le=4800, description="Maximum height in pixels (1-4800)")] = None,
        maxWidthPx: Annotated[Optional[int], Field(ge=1, le=4800, description="Maximum width in pixels (1-4800)")] = None,
    ) -> PhotoResult:
        logger.info("[TOOL] photo_get invoked")
        photo_uri = await places.get_photo_uri(
            photoName,
            resolve_access_token(config),
            max_height_px=maxHeightPx,
            max_width_px=maxWidthPx,
        )
        return PhotoResult(photoUri=photo_uri)

    return mcp


def create_mcp_server(config: Config) -> FastMCP:
    """Create the FastMCP server instance with all tools registered."""
    return register_tools(FastMCP("google-places-mcp"), config)
