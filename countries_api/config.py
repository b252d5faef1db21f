from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Country Currency & GDP Service"
    DEBUG: bool = False
    VERSION: str = "1.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8080, ge=1, le=65535)
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False

    # Upstream sources
    COUNTRIES_API_URL: str = (
        "https://restcountries.com/v2/all?fields=name,capital,region,population,flag,currencies"
    )
    EXCHANGE_RATE_API_URL: str = "https://open.er-api.com/v6/latest/USD"
    HTTP_TIMEOUT: float = 10.0

    # Summary image
    SUMMARY_IMAGE_PATH: str = "cache/summary.png"
    FONT_PATH: Optional[str] = "DejaVuSans.ttf"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Build settings from the environment once per process.

    Raises pydantic.ValidationError when DATABASE_URL is missing or PORT
    is not a valid port number, which aborts start-up.
    """
    return Settings()
