from datetime import datetime
from typing import Optional

from sqlalchemy import TIMESTAMP
from sqlmodel import Column, Field, SQLModel


class Country(SQLModel, table=True):
    __tablename__ = "countries"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, nullable=False, index=True)
    capital: Optional[str] = Field(default=None)
    region: Optional[str] = Field(default=None, index=True)
    population: int = Field(nullable=False)
    currency_code: Optional[str] = Field(default=None, index=True)
    exchange_rate: Optional[float] = Field(default=None)
    estimated_gdp: Optional[float] = Field(default=None)
    flag_url: Optional[str] = Field(default=None)
    last_refreshed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True), nullable=False)
    )


class AppStatus(SQLModel, table=True):
    """Singleton row (id=1) describing the most recent refresh."""

    __tablename__ = "app_status"
    id: int = Field(primary_key=True, default=1)
    total_countries: int = Field(default=0, nullable=False)
    last_refreshed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True), nullable=True)
    )
