from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI

from countries_api.config import Settings, get_settings
from countries_api.database import create_engine_and_sessionmaker, init_db
from countries_api.errors import register_exception_handlers
from countries_api.logger import get_logger, setup_logging
from countries_api.routes import router
from countries_api.services import CountryService

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; shared resources live on app.state for the app's lifetime."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def life_span(app: FastAPI):
        logger.info("Server is starting ...")
        engine, session_maker = create_engine_and_sessionmaker(settings)
        await init_db(engine)
        logger.info("Database connection pool established")

        app.state.settings = settings
        app.state.engine = engine
        app.state.session_maker = session_maker
        app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
        app.state.country_service = CountryService(settings)
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            await engine.dispose()
            logger.info("Server has been stopped ...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=life_span,
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: serve the app on the configured host and port."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting server at http://%s:%d", settings.HOST, settings.PORT)
    uvicorn.run(
        "countries_api.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
