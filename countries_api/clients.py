import httpx
from typing import Dict, List
from pydantic import TypeAdapter

from countries_api.errors import UpstreamError
from countries_api.logger import get_logger
from countries_api.schemas import ExchangeRateResponse, RawCountry

logger = get_logger(__name__)

COUNTRIES_SOURCE = "countries"
RATES_SOURCE = "rates"

_countries_adapter = TypeAdapter(List[RawCountry])


async def _get_json(client: httpx.AsyncClient, url: str, source: str):
    try:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError(source, e) from e


async def fetch_countries(client: httpx.AsyncClient, url: str) -> List[RawCountry]:
    """
    Fetch country data from restcountries API.

    Args:
        client: Shared HTTP client
        url: Countries endpoint

    Returns:
        List of parsed country records

    Raises:
        UpstreamError: If the call fails or the body cannot be parsed
    """
    payload = await _get_json(client, url, COUNTRIES_SOURCE)
    try:
        countries = _countries_adapter.validate_python(payload)
    except ValueError as e:
        raise UpstreamError(COUNTRIES_SOURCE, e) from e

    logger.debug("Fetched %d countries from %s", len(countries), url)
    return countries


async def fetch_rates(client: httpx.AsyncClient, url: str) -> Dict[str, float]:
    """
    Fetch exchange rates against USD.

    Returns:
        Dictionary mapping currency codes to rates (e.g., {"NGN": 1600.23, "USD": 1.0})

    Raises:
        UpstreamError: If the call fails or the body cannot be parsed
    """
    payload = await _get_json(client, url, RATES_SOURCE)
    try:
        rates = ExchangeRateResponse.model_validate(payload).rates
    except ValueError as e:
        raise UpstreamError(RATES_SOURCE, e) from e

    logger.debug("Fetched %d exchange rates from %s", len(rates), url)
    return rates
