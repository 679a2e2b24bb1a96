"""Database connection and session management."""

import logging

from andaya.config import settings
from andaya.models import Base
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)

engine = None
async_session_maker = None


async def init_db(database_url: str = None):
    """Initialize database engine and create tables."""
    global engine, async_session_maker

    url = database_url or settings.DATABASE_URL
    engine = create_async_engine(
        url,
        echo=settings.DEBUG,
        future=True,
        pool_pre_ping=True,
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Create tables if they don't exist (migrations own production schemas)
    if settings.CREATE_TABLES_ON_STARTUP:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("Database engine initialized")


async def close_db():
    """Close database engine."""
    global engine
    if engine:
        await engine.dispose()
        engine = None


async def get_db() -> AsyncSession:
    """Get database session."""
    if async_session_maker is None:
        raise RuntimeError("Database not initialized - call init_db() first")
    async with async_session_maker() as session:
        yield session
