from pathlib import Path
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from countries_api.database import get_session
from countries_api.errors import InternalError, NotFoundError
from countries_api.schemas import (
    CountryResponse,
    ErrorResponse,
    RefreshResponse,
    StatusResponse,
    ValidationErrorResponse,
)
from countries_api.services import CountryService

router = APIRouter()


def get_service(request: Request) -> CountryService:
    return request.app.state.country_service


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


# ============================================================================
# POST /countries/refresh - Refresh all countries from external APIs
# ============================================================================


@router.post(
    "/countries/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    responses={
        503: {"model": ErrorResponse, "description": "External API unavailable"},
        500: {"model": ErrorResponse, "description": "Database or image generation failure"},
    },
)
async def refresh_countries(
    session: AsyncSession = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_http_client),
    service: CountryService = Depends(get_service),
):
    country_status, _, _ = await service.refresh_all_countries(session, client)
    return RefreshResponse(
        status="success",
        countries_processed=country_status.total_countries,
        last_refreshed_at=country_status.last_refreshed_at,
    )


# ============================================================================
# GET /countries - Get all countries with optional filters and sorting
# ============================================================================


@router.get(
    "/countries",
    response_model=List[CountryResponse],
    responses={
        400: {"model": ValidationErrorResponse, "description": "Invalid query parameters"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def get_countries(
    region: Optional[str] = None,
    currency: Optional[str] = None,
    sort: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    service: CountryService = Depends(get_service),
):
    # Unknown sort values are ignored, not rejected
    countries = await service.list_countries(session, region, currency, sort)
    return [CountryResponse.model_validate(c) for c in countries]


# ============================================================================
# GET /countries/image - Serve summary image
# ============================================================================


@router.get(
    "/countries/image",
    response_class=FileResponse,
    responses={
        200: {"content": {"image/png": {}}, "description": "Summary image with top countries"},
        404: {"model": ErrorResponse, "description": "Image not found"},
    },
)
async def get_summary_image(service: CountryService = Depends(get_service)):
    image_path = Path(service.settings.SUMMARY_IMAGE_PATH)

    if not image_path.is_file():
        raise NotFoundError("Summary image not found. Please run /countries/refresh first.")

    return FileResponse(path=image_path, media_type="image/png", filename="summary.png")


# ============================================================================
# GET /countries/:name - Get a single country by name
# ============================================================================


@router.get(
    "/countries/{name}",
    response_model=CountryResponse,
    status_code=status.HTTP_200_OK,
    responses={
        404: {"model": ErrorResponse, "description": "Country not found"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def get_country_by_name(
    name: str,
    session: AsyncSession = Depends(get_session),
    service: CountryService = Depends(get_service),
):
    country = await service.get_country_by_name(session, name)
    return CountryResponse.model_validate(country)


# ============================================================================
# DELETE /countries/:name - Delete a country by name
# ============================================================================


@router.delete(
    "/countries/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        404: {"model": ErrorResponse, "description": "Country not found"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def delete_country(
    name: str,
    session: AsyncSession = Depends(get_session),
    service: CountryService = Depends(get_service),
):
    await service.delete_country_by_name(session, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# GET /status - Get system status
# ============================================================================


@router.get(
    "/status",
    response_model=StatusResponse,
    status_code=status.HTTP_200_OK,
    responses={500: {"model": ErrorResponse, "description": "Internal server error"}},
)
async def get_status(
    session: AsyncSession = Depends(get_session),
    service: CountryService = Depends(get_service),
):
    try:
        app_status = await service.get_status(session)
    except NotFoundError as e:
        # The singleton is seeded at start-up, so a missing row is a server fault
        raise InternalError(str(e)) from e

    return StatusResponse.model_validate(app_status)
