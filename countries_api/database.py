from typing import AsyncIterator, Tuple

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from countries_api.config import Settings
from countries_api.logger import get_logger
from countries_api.models import AppStatus

logger = get_logger(__name__)

STATUS_ROW_ID = 1


def create_engine_and_sessionmaker(
    settings: Settings,
) -> Tuple[AsyncEngine, async_sessionmaker]:
    """Create the async engine and its session factory"""
    engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, pool_pre_ping=True)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_maker


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database - create all tables and seed the status row"""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        result = await session.execute(select(AppStatus).where(AppStatus.id == STATUS_ROW_ID))
        if result.scalar_one_or_none() is None:
            session.add(AppStatus(id=STATUS_ROW_ID, total_countries=0, last_refreshed_at=None))
            await session.commit()
            logger.info("Seeded app_status singleton row")


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting async database sessions"""
    async with request.app.state.session_maker() as session:
        yield session
