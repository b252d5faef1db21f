"""
Pydantic schemas for upstream payloads and API responses.
Separates API layer from database models.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# ============================================================================
# UPSTREAM PAYLOADS
# ============================================================================


class RawCurrency(BaseModel):
    """One currency descriptor from restcountries; only the code is used."""

    code: Optional[str] = None


class RawCountry(BaseModel):
    """
    Country record as returned by restcountries v2.
    Unknown keys are ignored.
    """

    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: int = Field(ge=0)
    flag: Optional[str] = None
    currencies: Optional[List[RawCurrency]] = None


class ExchangeRateResponse(BaseModel):
    """Body of the open.er-api.com latest-rates endpoint."""

    rates: Dict[str, float]


# ============================================================================
# API RESPONSES
# ============================================================================


class CountryResponse(BaseModel):
    """
    Response schema for country data.
    Used in GET /countries and GET /countries/:name
    """

    id: int
    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: int
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None
    flag_url: Optional[str] = None
    last_refreshed_at: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "Nigeria",
                "capital": "Abuja",
                "region": "Africa",
                "population": 206139589,
                "currency_code": "NGN",
                "exchange_rate": 1600.23,
                "estimated_gdp": 25767448125.2,
                "flag_url": "https://flagcdn.com/ng.svg",
                "last_refreshed_at": "2025-10-22T18:00:00.1Z",
            }
        }


class RefreshResponse(BaseModel):
    """
    Response after refreshing country data.
    Used in POST /countries/refresh
    """

    status: str
    countries_processed: int
    last_refreshed_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "countries_processed": 250,
                "last_refreshed_at": "2025-10-22T18:00:00.1Z",
            }
        }


class StatusResponse(BaseModel):
    """
    System status response.
    Used in GET /status
    """

    total_countries: int
    last_refreshed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "total_countries": 250,
                "last_refreshed_at": "2025-10-22T18:00:00.1Z",
            }
        }


class ErrorResponse(BaseModel):
    """
    Standard error response.
    Used in 404, 500, 503 responses
    """

    error: str
    details: Optional[str] = None

    class Config:
        json_schema_extra = {"example": {"error": "Country 'Nope' not found"}}


class ValidationErrorResponse(BaseModel):
    """
    Validation error response.
    Used in 400 Bad Request
    """

    error: str = "Validation failed"
    details: Dict[str, str]

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Validation failed",
                "details": {"currency_code": "is required"},
            }
        }
