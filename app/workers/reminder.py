"""Reminder tasks: hourly next-day discovery and the per-appointment send."""

from __future__ import annotations

import asyncio

from celery.signals import task_failure, task_postrun, task_prerun, task_success
from celery.utils.log import get_task_logger

from app.celery_app import celery_app
from app.services.reminder_queue import handle_send_reminder, record_job_event
from app.services.scheduler import process_next_day
from app.types.messaging import ReminderJob
from config import settings

logger = get_task_logger(__name__)


def retry_countdown(retries: int) -> float:
    """2s, 4s, 8s, ... for retry number 0, 1, 2, ..."""
    return settings.REMINDER_BACKOFF_SECONDS * 2 ** retries


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(
    name="app.workers.reminder.send_reminder",
    bind=True,
    max_retries=settings.REMINDER_MAX_ATTEMPTS - 1,
)
def send_reminder(self, job: dict):  # noqa: D401
    """Send one appointment reminder; transient failures retry with back-off."""
    reminder = ReminderJob.model_validate(job)
    try:
        result = asyncio.run(handle_send_reminder(reminder))
    except Exception as exc:  # noqa: BLE001
        attempt = self.request.retries + 1
        logger.warning(
            "Reminder for appointment %s failed on attempt %d/%d: %s",
            reminder.appointment_id, attempt, self.max_retries + 1, exc,
        )
        raise self.retry(exc=exc, countdown=retry_countdown(self.request.retries))

    if not result.success:
        logger.error("Reminder for appointment %s not sent: %s", reminder.appointment_id, result.error)
    return result.model_dump(mode="json")


@celery_app.task(name="app.workers.reminder.dispatch_next_day", bind=True)
def dispatch_next_day(self):  # noqa: D401
    """Enqueue reminders for every appointment scheduled tomorrow."""
    try:
        result = asyncio.run(process_next_day())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Next-day discovery failed")
        raise self.retry(exc=exc, countdown=60)
    return result.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Queue statistics
# ---------------------------------------------------------------------------

def _is_send_reminder(task) -> bool:
    return getattr(task, "name", None) == send_reminder.name


@task_prerun.connect
def _on_prerun(sender=None, **_kwargs):
    if _is_send_reminder(sender):
        record_job_event("active", 1)


@task_postrun.connect
def _on_postrun(sender=None, **_kwargs):
    if _is_send_reminder(sender):
        record_job_event("active", -1)


@task_success.connect
def _on_success(sender=None, **_kwargs):
    if _is_send_reminder(sender):
        record_job_event("completed")


@task_failure.connect
def _on_failure(sender=None, **_kwargs):
    if _is_send_reminder(sender):
        record_job_event("failed")
