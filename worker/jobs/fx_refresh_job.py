"""Exchange rate refresh job."""

import logging

from andaya.tools.fx_tools import refresh_rates
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from worker.config import settings

logger = logging.getLogger(__name__)


async def refresh_exchange_rates():
    """
    Pull the latest quotes from the FX provider and store new rates.

    Providers refreshed within the configured window are skipped by
    ``refresh_rates`` so overlapping runs do not insert duplicates.
    """
    logger.info("Running exchange rate refresh job...")

    engine = create_async_engine(settings.DATABASE_URL)
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with async_session_maker() as db:
            result = await refresh_rates(db)
            logger.info(f"Exchange rate refresh completed: {result['inserted']} rates inserted")
            return result

    except Exception as e:
        logger.error(f"Error in exchange rate refresh job: {e}", exc_info=True)
        return None

    finally:
        await engine.dispose()
