"""
Background worker with scheduled jobs.
Keeps the exchange rate table fresh for the pricing widgets.
"""

import asyncio
import logging
from datetime import datetime

from andaya.services.redis_client import close_redis, init_redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from worker.config import settings
from worker.jobs.fx_refresh_job import refresh_exchange_rates

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main():
    """Initialize and run the worker scheduler."""
    logger.info("Starting AndaYa worker...")

    try:
        await init_redis()
    except Exception as e:
        logger.warning(f"Worker running without Redis, FX cache will not be invalidated: {e}")

    scheduler = AsyncIOScheduler()

    # Run once at startup unless disabled, then on the interval
    job_options = {}
    if settings.FX_REFRESH_ON_START:
        job_options["next_run_time"] = datetime.now()

    # Schedule exchange rate refresh job
    scheduler.add_job(
        refresh_exchange_rates,
        trigger=IntervalTrigger(minutes=settings.FX_REFRESH_MINUTES),
        id="fx_refresh",
        name="Refresh exchange rates",
        replace_existing=True,
        **job_options,
    )

    # Start scheduler
    scheduler.start()
    logger.info(f"Scheduler started. Jobs: {[job.id for job in scheduler.get_jobs()]}")

    # Keep the worker running
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down worker...")
        scheduler.shutdown()
        await close_redis()


if __name__ == "__main__":
    asyncio.run(main())
