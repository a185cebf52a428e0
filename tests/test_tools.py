"""Tests for the Places MCP tools."""

import json

import httpx
import pytest
import respx
from fastmcp import Client
from fastmcp.exceptions import ToolError

from conftest import PLACES_URL, make_config
from places_api import TEXT_SEARCH_FIELD_MASK
from tools import LatLng, LocationBias, Circle, build_text_search_body, create_mcp_server

ACCESS_TOKEN = "ya29.stdio-token"


def _result_json(result) -> dict:
    return json.loads(result.content[0].text)


@pytest.fixture
def mcp():
    return create_mcp_server(make_config(transport="stdio", access_token=ACCESS_TOKEN))


def test_build_text_search_body_only_sends_given_options():
    assert build_text_search_body("pizza in New York") == {"textQuery": "pizza in New York"}


def test_build_text_search_body_uses_wire_names():
    body = build_text_search_body(
        "coffee",
        language_code="en",
        region_code="US",
        rank_preference="DISTANCE",
        open_now=False,
        min_rating=0,
        price_levels=["PRICE_LEVEL_MODERATE"],
        page_size=5,
        location_bias=LocationBias(circle=Circle(center=LatLng(latitude=40.7, longitude=-74.0), radius=500)),
    )
    assert body == {
        "textQuery": "coffee",
        "languageCode": "en",
        "regionCode": "US",
        "rankPreference": "DISTANCE",
        "openNow": False,
        "minRating": 0,
        "priceLevels": ["PRICE_LEVEL_MODERATE"],
        "pageSize": 5,
        "locationBias": {"circle": {"center": {"latitude": 40.7, "longitude": -74.0}, "radius": 500}},
    }


@pytest.mark.asyncio
async def test_tools_are_listed_read_only(mcp):
    async with Client(mcp) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    assert set(tools) == {"text_search", "photo_get"}
    assert tools["text_search"].annotations.readOnlyHint is True
    assert tools["photo_get"].annotations.readOnlyHint is True


@respx.mock
@pytest.mark.asyncio
async def test_text_search_calls_places_api(mcp):
    route = respx.post(f"{PLACES_URL}/places:searchText").mock(return_value=httpx.Response(200, json={
        "places": [{"id": "abc", "displayName": {"text": "Joe's Pizza"}}],
        "nextPageToken": "next",
    }))

    async with Client(mcp) as client:
        result = await client.call_tool("text_search", {"textQuery": "pizza", "pageSize": 1})

    assert _result_json(result)["places"][0]["id"] == "abc"

    request = route.calls.last.request
    assert request.headers["authorization"] == f"Bearer {ACCESS_TOKEN}"
    assert request.headers["x-goog-fieldmask"] == TEXT_SEARCH_FIELD_MASK
    assert json.loads(request.content) == {"textQuery": "pizza", "pageSize": 1}


@respx.mock
@pytest.mark.asyncio
async def test_text_search_reports_places_error(mcp):
    respx.post(f"{PLACES_URL}/places:searchText").mock(return_value=httpx.Response(
        403, text='{"error": {"status": "PERMISSION_DENIED"}}',
    ))

    async with Client(mcp) as client:
        with pytest.raises(ToolError, match="Places API error: 403"):
            await client.call_tool("text_search", {"textQuery": "pizza"})


@respx.mock
@pytest.mark.asyncio
async def test_photo_get_defaults_height(mcp):
    route = respx.get(f"{PLACES_URL}/places/abc/photos/xyz/media").mock(return_value=httpx.Response(
        200, json={"name": "places/abc/photos/xyz/media", "photoUri": "https://lh3.example.com/photo.jpg"},
    ))

    async with Client(mcp) as client:
        result = await client.call_tool("photo_get", {"photoName": "places/abc/photos/xyz"})

    assert _result_json(result) == {"photoUri": "https://lh3.example.com/photo.jpg"}
    params = route.calls.last.request.url.params
    assert params["maxHeightPx"] == "400"
    assert params["skipHttpRedirect"] == "true"
    assert "maxWidthPx" not in params


@respx.mock
@pytest.mark.asyncio
async def test_photo_get_passes_dimensions(mcp):
    route = respx.get(f"{PLACES_URL}/places/abc/photos/xyz/media").mock(return_value=httpx.Response(
        200, json={"photoUri": "https://lh3.example.com/photo.jpg"},
    ))

    async with Client(mcp) as client:
        await client.call_tool("photo_get", {"photoName": "places/abc/photos/xyz", "maxWidthPx": 800})

    params = route.calls.last.request.url.params
    assert params["maxWidthPx"] == "800"
    assert "maxHeightPx" not in params


@pytest.mark.asyncio
async def test_tool_without_token_fails():
    mcp = create_mcp_server(make_config(transport="stdio"))
    async with Client(mcp) as client:
        with pytest.raises(ToolError, match="No Google access token"):
            await client.call_tool("text_search", {"textQuery": "pizza"})


@pytest.mark.asyncio
async def test_tool_arguments_use_places_names(mcp):
    async with Client(mcp) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    search_args = tools["text_search"].inputSchema["properties"]
    assert {"textQuery", "languageCode", "regionCode", "rankPreference", "includedType", "openNow",
            "minRating", "priceLevels", "pageSize", "pageToken", "locationBias",
            "locationRestriction"} == set(search_args)
    assert tools["text_search"].inputSchema["required"] == ["textQuery"]
    assert set(tools["photo_get"].inputSchema["properties"]) == {"photoName", "maxHeightPx", "maxWidthPx"}


@pytest.mark.asyncio
async def test_tools_publish_output_schema(mcp):
    async with Client(mcp) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    assert set(tools["text_search"].outputSchema["properties"]) == {"places", "nextPageToken", "searchUri"}
    assert set(tools["photo_get"].outputSchema["properties"]) == {"photoUri"}
    assert tools["photo_get"].outputSchema["required"] == ["photoUri"]


@respx.mock
@pytest.mark.asyncio
async def test_text_search_result_keeps_unmodelled_fields(mcp):
    respx.post(f"{PLACES_URL}/places:searchText").mock(return_value=httpx.Response(200, json={
        "places": [{
            "id": "abc",
            "displayName": {"text": "Joe's Pizza", "languageCode": "en"},
            "rating": 4.5,
            "userRatingCount": 1200,
            "regularOpeningHours": {"openNow": True, "periods": [
                {"open": {"day": 1, "hour": 11, "minute": 0}, "close": {"day": 1, "hour": 23, "minute": 0}},
            ]},
            "priceRange": {"startPrice": {"currencyCode": "USD", "units": "10"}},
            "servesBeer": True,
        }],
        "searchUri": "https://maps.example.com/search",
    }))

    async with Client(mcp) as client:
        result = await client.call_tool("text_search", {"textQuery": "pizza"})

    assert result.structured_content == {
        "places": [{
            "id": "abc",
            "displayName": {"text": "Joe's Pizza", "languageCode": "en"},
            "rating": 4.5,
            "userRatingCount": 1200,
            "regularOpeningHours": {"openNow": True, "periods": [
                {"open": {"day": 1, "hour": 11, "minute": 0}, "close": {"day": 1, "hour": 23, "minute": 0}},
            ]},
            "priceRange": {"startPrice": {"currencyCode": "USD", "units": "10"}},
            "servesBeer": True,
        }],
        "searchUri": "https://maps.example.com/search",
    }


@respx.mock
@pytest.mark.asyncio
async def test_text_search_rejects_malformed_places_response(mcp):
    respx.post(f"{PLACES_URL}/places:searchText").mock(return_value=httpx.Response(200, json={
        "places": [{"id": "abc", "photos": [{"widthPx": 100}]}],
    }))

    async with Client(mcp) as client:
        with pytest.raises(ToolError):
            await client.call_tool("text_search", {"textQuery": "pizza"})


@pytest.mark.asyncio
async def test_snake_case_arguments_are_rejected(mcp):
    async with Client(mcp) as client:
        with pytest.raises(ToolError):
            await client.call_tool("text_search", {"text_query": "pizza"})
