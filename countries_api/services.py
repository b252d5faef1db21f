import asyncio
import functools
import random
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx
from sqlalchemy import delete, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from countries_api.clients import fetch_countries, fetch_rates
from countries_api.config import Settings
from countries_api.database import STATUS_ROW_ID
from countries_api.errors import NotFoundError, StorageError
from countries_api.image import generate_summary_image
from countries_api.logger import get_logger
from countries_api.models import AppStatus, Country
from countries_api.schemas import RawCountry

logger = get_logger(__name__)

GDP_MULTIPLIER_RANGE = (1000.0, 2000.0)
TOP_COUNTRIES_LIMIT = 5

# Columns overwritten when a country name already exists
UPSERT_COLUMNS = (
    "capital",
    "region",
    "population",
    "currency_code",
    "exchange_rate",
    "estimated_gdp",
    "flag_url",
    "last_refreshed_at",
)


class SortKey(str, Enum):
    GDP_DESC = "gdp_desc"
    GDP_ASC = "gdp_asc"
    POP_DESC = "pop_desc"
    POP_ASC = "pop_asc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SortKey"]:
        """Return the matching key, or None for missing and unrecognized values."""
        try:
            return cls(value)
        except ValueError:
            return None


SORT_ORDERS = {
    SortKey.GDP_DESC: Country.estimated_gdp.desc(),
    SortKey.GDP_ASC: Country.estimated_gdp.asc(),
    SortKey.POP_DESC: Country.population.desc(),
    SortKey.POP_ASC: Country.population.asc(),
    SortKey.NAME_ASC: Country.name.asc(),
    SortKey.NAME_DESC: Country.name.desc(),
}


# ============================================================================
# ENRICHMENT
# ============================================================================


def extract_currency_code(country: RawCountry) -> Optional[str]:
    """First currency code of the country, or None when it lists no currency."""
    if not country.currencies:
        return None
    return country.currencies[0].code or None


def enrich_country(
    country: RawCountry,
    rates: Mapping[str, float],
    refreshed_at: datetime,
    rng: random.Random = random,
) -> Dict[str, Any]:
    """
    Build the row values for one upstream country.

    estimated_gdp = population × random(1000–2000) ÷ exchange_rate when a rate
    exists; 0 when the country has no currency; absent when its currency has
    no rate.

    Args:
        country: Country data from the countries API
        rates: Exchange rates keyed by currency code
        refreshed_at: Batch timestamp
        rng: Source of the GDP multiplier

    Returns:
        Column values for the countries table
    """
    currency_code = extract_currency_code(country)

    exchange_rate = None
    estimated_gdp = None
    if currency_code is None:
        estimated_gdp = 0.0
    elif currency_code in rates:
        exchange_rate = rates[currency_code]
        # A zero rate has no meaningful GDP conversion
        if exchange_rate:
            multiplier = rng.uniform(*GDP_MULTIPLIER_RANGE)
            estimated_gdp = country.population * multiplier / exchange_rate

    return {
        "name": country.name,
        "capital": country.capital,
        "region": country.region,
        "population": country.population,
        "currency_code": currency_code,
        "exchange_rate": exchange_rate,
        "estimated_gdp": estimated_gdp,
        "flag_url": country.flag,
        "last_refreshed_at": refreshed_at,
    }


def batch_timestamp() -> datetime:
    """Current UTC time truncated to tenths of a second."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 100_000 * 100_000)


def build_upsert(dialect_name: str, values: Dict[str, Any]):
    """
    Single INSERT-or-overwrite statement keyed by country name.

    Raises:
        StorageError: If the database dialect has no upsert support here
    """
    table = Country.__table__
    if dialect_name in ("sqlite", "postgresql"):
        insert = sqlite.insert if dialect_name == "sqlite" else postgresql.insert
        stmt = insert(table).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[table.c.name],
            set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS},
        )
    if dialect_name in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(**values)
        return stmt.on_duplicate_key_update(
            **{column: stmt.inserted[column] for column in UPSERT_COLUMNS}
        )
    raise StorageError(f"Upsert is not supported for dialect '{dialect_name}'")


def _wrap_storage_errors(operation: str):
    """Turn SQLAlchemy failures of a query method into StorageError."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                raise StorageError(f"Database error while trying to {operation}: {e}") from e

        return wrapper

    return decorator


class CountryService:

    def __init__(self, settings: Settings, rng: random.Random = random):
        self.settings = settings
        self.rng = rng

    # ============================================================================
    # REFRESH PIPELINE
    # ============================================================================

    async def fetch_upstream(
        self, client: httpx.AsyncClient
    ) -> Tuple[List[RawCountry], Dict[str, float]]:
        """
        Fetch countries and exchange rates concurrently.

        Raises:
            UpstreamError: If either source fails; nothing is written
        """
        countries, rates = await asyncio.gather(
            fetch_countries(client, self.settings.COUNTRIES_API_URL),
            fetch_rates(client, self.settings.EXCHANGE_RATE_API_URL),
        )
        logger.info("Fetched %d countries and %d exchange rates", len(countries), len(rates))
        return countries, rates

    async def refresh(
        self,
        session: AsyncSession,
        countries: Sequence[RawCountry],
        rates: Mapping[str, float],
    ) -> Tuple[AppStatus, List[Country]]:
        """
        Upsert all countries, update the status row and read the top 5 by GDP,
        all in one transaction.

        Args:
            session: Database session
            countries: Countries from the countries API, in input order
            rates: Exchange rates keyed by currency code

        Returns:
            Tuple of (new status, top countries by estimated GDP)

        Raises:
            StorageError: If any database step fails; the batch is rolled back
        """
        refreshed_at = batch_timestamp()
        try:
            # Upserts bypass the identity map; drop instances they would leave stale
            session.expunge_all()
            conn = await session.connection()
            dialect_name = conn.dialect.name

            processed = 0
            for raw_country in countries:
                values = enrich_country(raw_country, rates, refreshed_at, self.rng)
                await self._upsert_country(session, dialect_name, values)
                processed += 1

            status = await self._update_status(session, processed, refreshed_at)
            top_countries = await self.get_top_countries_by_gdp(session, TOP_COUNTRIES_LIMIT)

            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(f"Refresh transaction failed: {e}") from e
        except Exception:
            await session.rollback()
            raise

        logger.info("Database refresh complete. %d countries processed", processed)
        return status, top_countries

    async def _upsert_country(self, session: AsyncSession, dialect_name: str, values: Dict[str, Any]) -> None:
        await session.execute(build_upsert(dialect_name, values))

    async def _update_status(self, session: AsyncSession, total: int, refreshed_at: datetime) -> AppStatus:
        """
        Update or create the status row with this batch's count and timestamp.
        """
        result = await session.execute(
            update(AppStatus)
            .where(AppStatus.id == STATUS_ROW_ID)
            .values(total_countries=total, last_refreshed_at=refreshed_at)
        )
        status = AppStatus(id=STATUS_ROW_ID, total_countries=total, last_refreshed_at=refreshed_at)
        if result.rowcount == 0:
            logger.warning("Status row missing, recreating it")
            session.add(status)
            await session.flush()
        return status

    async def get_top_countries_by_gdp(self, session: AsyncSession, limit: int = TOP_COUNTRIES_LIMIT) -> List[Country]:
        """
        Get top N countries by estimated GDP, skipping rows without one.
        """
        stmt = (
            select(Country)
            .where(Country.estimated_gdp.is_not(None))
            .order_by(Country.estimated_gdp.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def refresh_all_countries(
        self, session: AsyncSession, client: httpx.AsyncClient
    ) -> Tuple[AppStatus, List[Country], Path]:
        """
        Fetch both sources, refresh the database and regenerate the summary image.

        Returns:
            Tuple of (status, top countries, image path)

        Raises:
            UpstreamError: If an external source fails
            StorageError: If the database refresh fails
            RenderError: If the image fails; the refresh stays committed
        """
        logger.info("Starting data refresh")
        countries, rates = await self.fetch_upstream(client)
        status, top_countries = await self.refresh(session, countries, rates)

        image_path = generate_summary_image(
            status,
            top_countries,
            output_path=self.settings.SUMMARY_IMAGE_PATH,
            font_path=self.settings.FONT_PATH,
        )
        return status, top_countries, image_path

    # ============================================================================
    # QUERY FUNCTIONS
    # ============================================================================

    @_wrap_storage_errors("list countries")
    async def list_countries(
        self,
        session: AsyncSession,
        region: Optional[str] = None,
        currency: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[Country]:
        """
        Get countries with optional filters and sorting.

        Filters are exact and combined with AND. An unrecognized sort value is
        ignored and the storage order is kept.

        Args:
            session: Database session
            region: Filter by region
            currency: Filter by currency_code
            sort: One of gdp_desc, gdp_asc, pop_desc, pop_asc, name_asc, name_desc

        Returns:
            List of Country objects
        """
        stmt = select(Country)

        if region is not None:
            stmt = stmt.where(Country.region == region)

        if currency is not None:
            stmt = stmt.where(Country.currency_code == currency)

        sort_key = SortKey.parse(sort)
        if sort_key is not None:
            stmt = stmt.order_by(SORT_ORDERS[sort_key])

        result = await session.execute(stmt)
        return list(result.scalars().all())

    @_wrap_storage_errors("get country")
    async def get_country_by_name(self, session: AsyncSession, name: str) -> Country:
        """
        Get a single country by its exact name.

        Raises:
            NotFoundError: If no country has that name
        """
        stmt = select(Country).where(Country.name == name)
        result = await session.execute(stmt)
        country = result.scalar_one_or_none()
        if country is None:
            raise NotFoundError(f"Country '{name}' not found")
        return country

    @_wrap_storage_errors("delete country")
    async def delete_country_by_name(self, session: AsyncSession, name: str) -> None:
        """
        Delete a country by its exact name.

        Raises:
            NotFoundError: If no row was deleted
        """
        result = await session.execute(delete(Country).where(Country.name == name))
        if result.rowcount == 0:
            await session.rollback()
            raise NotFoundError(f"Country '{name}' not found")
        await session.commit()

    @_wrap_storage_errors("read status")
    async def get_status(self, session: AsyncSession) -> AppStatus:
        """
        Get the status singleton.

        Raises:
            NotFoundError: If the singleton row is missing
        """
        result = await session.execute(select(AppStatus).where(AppStatus.id == STATUS_ROW_ID))
        status = result.scalar_one_or_none()
        if status is None:
            raise NotFoundError("Application status not found")
        return status

