"""Next-day reminder discovery.

Celery beat calls ``process_next_day`` every hour; the admin API and the
``process_date`` script call ``process_date`` for arbitrary days.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from app.services.reminder_queue import add_appointment_to_queue, enqueue_reminder_job
from app.types.messaging import BatchResult, ReminderJob
from config import settings
from db import appointments

logger = logging.getLogger(__name__)


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.DEFAULT_TIMEZONE)).date()


def parse_day(value: str) -> date:
    """Accept ``YYYY-MM-DD`` or ``DD-MM-YYYY``."""
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD or DD-MM-YYYY")


async def process_date(
    day: date,
    *,
    enqueue: Callable[[ReminderJob], str] = enqueue_reminder_job,
) -> BatchResult:
    items = await appointments.find_scheduled_appointments_for_date(day)
    result = BatchResult(date=day.isoformat(), total=len(items))
    logger.info("Found %d appointments for %s", len(items), result.date)

    for appointment in items:
        try:
            outcome = await add_appointment_to_queue(appointment, enqueue=enqueue)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing appointment %s", appointment.id)
            result.skipped += 1
            result.errors.append(f"Error processing appointment {appointment.id}: {exc}")
            continue
        if outcome == "queued":
            result.processed += 1
        else:
            result.skipped += 1

    logger.info(
        "Processed %d appointments for %s (%d skipped)",
        result.processed, result.date, result.skipped,
    )
    return result


async def process_next_day(**kwargs) -> BatchResult:
    tomorrow = local_today() + timedelta(days=1)
    logger.info("Processing appointments for next day: %s", tomorrow.isoformat())
    return await process_date(tomorrow, **kwargs)
