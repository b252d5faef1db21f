"""
Application error kinds and their HTTP rendering.

Every AppError knows its status code and the body shown to the client.
Storage, render and internal failures are logged in full but answered with
a generic message.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from countries_api.logger import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "Internal server error"

    def body(self) -> Dict[str, Any]:
        return {"error": self.public_message}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationFailedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Validation failed"

    def __init__(self, details: Dict[str, str]):
        super().__init__(f"Validation failed: {details}")
        self.details = details

    def body(self) -> Dict[str, Any]:
        return {"error": self.public_message, "details": self.details}


class UpstreamError(AppError):
    """An external data source was unreachable or returned an unusable body."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    public_message = "External data source unavailable"

    def __init__(self, source: str, cause: Exception):
        super().__init__(f"Could not fetch data from {source}: {cause}")
        self.source = source
        self.cause = cause

    def body(self) -> Dict[str, Any]:
        return {"error": self.public_message, "details": str(self)}


class StorageError(AppError):
    """Any relational-store failure."""

    public_message = "Internal server error"


class RenderError(AppError):
    """Summary image generation failed."""

    public_message = "Image generation failed"


class InternalError(AppError):
    public_message = "Internal server error"


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body())


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    elif exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc,
            exc_info=exc,
        )
    return _error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("query", "path", "body"))
        details[field or "request"] = error.get("msg", "is invalid")
    return _error_response(ValidationFailedError(details))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(InternalError(str(exc)))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
