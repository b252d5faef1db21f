"""
Pytest configuration and fixtures for the countries service tests.
"""

import json
from typing import AsyncGenerator, Callable, Dict, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from countries_api.config import Settings
from countries_api.database import create_engine_and_sessionmaker, init_db
from countries_api.main import create_app
from countries_api.routes import get_http_client
from countries_api.schemas import RawCountry

COUNTRIES_URL = "https://countries.test/v2/all"
RATES_URL = "https://rates.test/v6/latest/USD"

SAMPLE_COUNTRIES = [
    {
        "name": "Nigeria",
        "capital": "Abuja",
        "region": "Africa",
        "population": 206139589,
        "flag": "https://flagcdn.com/ng.svg",
        "currencies": [{"code": "NGN", "name": "Nigerian naira", "symbol": "₦"}],
    },
    {
        "name": "Ghana",
        "capital": "Accra",
        "region": "Africa",
        "population": 31072940,
        "flag": "https://flagcdn.com/gh.svg",
        "currencies": [{"code": "GHS", "name": "Ghanaian cedi", "symbol": "₵"}],
    },
    {
        "name": "Testland",
        "capital": "Testville",
        "region": "Europe",
        "population": 1000000,
        "flag": None,
        "currencies": [{"code": "XTL"}, {"code": "EUR"}],
    },
    {
        "name": "Antarctica",
        "region": "Polar",
        "population": 1000,
        "flag": "https://flagcdn.com/aq.svg",
        "currencies": None,
    },
    {
        "name": "Unratedia",
        "capital": "Nowhere",
        "region": "Europe",
        "population": 50000,
        "currencies": [{"code": "ZZZ"}],
    },
]

SAMPLE_RATES = {"NGN": 1600.23, "GHS": 15.3, "XTL": 2.0, "EUR": 0.92, "USD": 1.0}


@pytest.fixture
def sample_countries_payload():
    return [dict(country) for country in SAMPLE_COUNTRIES]


@pytest.fixture
def sample_countries():
    return [RawCountry.model_validate(country) for country in SAMPLE_COUNTRIES]


@pytest.fixture
def sample_rates():
    return dict(SAMPLE_RATES)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite database and image path."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'countries.db'}",
        COUNTRIES_API_URL=COUNTRIES_URL,
        EXCHANGE_RATE_API_URL=RATES_URL,
        SUMMARY_IMAGE_PATH=str(tmp_path / "cache" / "summary.png"),
        FONT_PATH=None,
    )


@pytest.fixture
async def test_engine(settings):
    """Create test database engine with tables and the status row."""
    engine, _ = create_engine_and_sessionmaker(settings)
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with AsyncSession(test_engine, expire_on_commit=False) as session:
        yield session


def make_upstream_transport(
    countries: Optional[object] = None,
    rates: Optional[Dict[str, float]] = None,
    countries_status: int = 200,
    rates_status: int = 200,
) -> httpx.MockTransport:
    """Mock transport answering the countries and rates URLs."""
    countries = SAMPLE_COUNTRIES if countries is None else countries
    rates = SAMPLE_RATES if rates is None else rates

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == COUNTRIES_URL:
            return httpx.Response(countries_status, content=json.dumps(countries))
        if url == RATES_URL:
            return httpx.Response(rates_status, json={"result": "success", "base_code": "USD", "rates": rates})
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def upstream_factory() -> Callable[..., httpx.MockTransport]:
    return make_upstream_transport


@pytest.fixture
def make_client(settings):
    """
    Build a TestClient whose upstream HTTP client uses the given transport.
    """
    clients = []

    def _make(transport: Optional[httpx.MockTransport] = None, app_settings: Optional[Settings] = None):
        app = create_app(app_settings or settings)
        upstream = httpx.AsyncClient(transport=transport or make_upstream_transport())
        app.dependency_overrides[get_http_client] = lambda: upstream
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
