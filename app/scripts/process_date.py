"""Enqueue reminders for one calendar date outside the HTTP surface.
Run manually (or from a Railway cron) with:
    python -m app.scripts.process_date            # tomorrow
    python -m app.scripts.process_date 2026-10-20
"""

from __future__ import annotations

import argparse
import asyncio
import logging

import db
from app.services import scheduler
from app.types.messaging import BatchResult
from config import settings

logger = logging.getLogger(__name__)


async def main(day: str | None = None) -> BatchResult:
    try:
        if day:
            return await scheduler.process_date(scheduler.parse_day(day))
        return await scheduler.process_next_day()
    finally:
        await db.dispose_engine()


if __name__ == "__main__":  # pragma: no cover
    parser = argparse.ArgumentParser(description="Enqueue appointment reminders for a date")
    parser.add_argument("date", nargs="?", help="YYYY-MM-DD or DD-MM-YYYY (default: tomorrow)")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("[CRON] process_date: job started")
    try:
        result = asyncio.run(main(args.date))
        logger.info(
            "[CRON] process_date: %s total=%d processed=%d skipped=%d",
            result.date, result.total, result.processed, result.skipped,
        )
        for error in result.errors:
            logger.error("[CRON] process_date: %s", error)
    except Exception:
        logger.exception("[CRON] process_date: job failed")
        raise SystemExit(1)
