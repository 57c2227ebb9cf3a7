"""
Cron entry point for the booking schedule job.

Run once a day shortly after midnight in the business timezone:

    python -m scripts.run_booking_schedule
"""

import asyncio
import logging

from rental_backend.app.core.clock import SystemClock
from rental_backend.app.core.observability import configure_logging
from rental_backend.app.db.session import AsyncSessionLocal, engine
from rental_backend.app.services.booking_schedule import run_booking_schedule

logger = logging.getLogger("rental.schedule")


async def main():
    async with AsyncSessionLocal() as db:
        result = await run_booking_schedule(db, SystemClock())

    logger.info(
        "Started %s, finish enabled %s, skipped %s",
        result.started, result.finish_enabled, result.skipped
    )
    await engine.dispose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
