"""
Tests for the upstream API clients.
"""

import httpx
import pytest

from countries_api.clients import COUNTRIES_SOURCE, RATES_SOURCE, fetch_countries, fetch_rates
from countries_api.errors import UpstreamError

from conftest import COUNTRIES_URL, RATES_URL, SAMPLE_RATES, make_upstream_transport


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_countries_parses_records():
    async with httpx.AsyncClient(transport=make_upstream_transport()) as client:
        countries = await fetch_countries(client, COUNTRIES_URL)

    assert [c.name for c in countries][:2] == ["Nigeria", "Ghana"]
    nigeria = countries[0]
    assert nigeria.capital == "Abuja"
    assert nigeria.flag == "https://flagcdn.com/ng.svg"
    assert nigeria.currencies[0].code == "NGN"
    antarctica = next(c for c in countries if c.name == "Antarctica")
    assert antarctica.capital is None
    assert antarctica.currencies is None


@pytest.mark.asyncio
async def test_fetch_rates_returns_rate_table():
    async with httpx.AsyncClient(transport=make_upstream_transport()) as client:
        rates = await fetch_rates(client, RATES_URL)

    assert rates == SAMPLE_RATES


@pytest.mark.asyncio
async def test_http_error_status_is_upstream_error():
    async with httpx.AsyncClient(transport=make_upstream_transport(countries_status=502)) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await fetch_countries(client, COUNTRIES_URL)

    assert exc_info.value.source == COUNTRIES_SOURCE
    assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)
    assert str(exc_info.value).startswith("Could not fetch data from countries:")


@pytest.mark.asyncio
async def test_transport_error_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await fetch_rates(client, RATES_URL)

    assert exc_info.value.source == RATES_SOURCE
    assert isinstance(exc_info.value.cause, httpx.ConnectError)


@pytest.mark.asyncio
async def test_invalid_json_is_upstream_error():
    def handler(request):
        return httpx.Response(200, content=b"<html>maintenance</html>")

    async with client_for(handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await fetch_countries(client, COUNTRIES_URL)

    assert exc_info.value.source == COUNTRIES_SOURCE


@pytest.mark.asyncio
async def test_unexpected_countries_shape_is_upstream_error():
    async with httpx.AsyncClient(transport=make_upstream_transport(countries={"message": "gone"})) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await fetch_countries(client, COUNTRIES_URL)

    assert exc_info.value.source == COUNTRIES_SOURCE


@pytest.mark.asyncio
async def test_rates_body_without_rates_is_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"result": "error", "error-type": "unsupported-code"})

    async with client_for(handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await fetch_rates(client, RATES_URL)

    assert exc_info.value.source == RATES_SOURCE
    assert exc_info.value.body()["error"] == "External data source unavailable"
