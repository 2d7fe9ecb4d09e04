"""Reminder queue: enqueue contract, job processing and queue statistics.

Flow:
1. ``add_appointment_to_queue`` validates an appointment, checks the ledger
   for a reminder already sent on that calendar day and submits a
   ``send_reminder`` Celery job.
2. The worker runs ``handle_send_reminder``: re-validate, make sure the
   session is up, re-check the ledger, log the reminder *before* sending,
   then send with a hard timeout.

Permanent failures come back as a ``SendResult`` with ``success=False``;
transient ones raise so Celery retries them with exponential back-off.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Literal

import redis

from app.errors import (
    DuplicateMessageError,
    EmptyMessageError,
    InvalidPhoneError,
    PageNotReadyError,
    PermanentSendError,
    SendTimeoutError,
    SessionUnavailableError,
)
from app.services.messages import build_reminder_message, local_datetime, short_time
from app.services.session_manager import SessionManager, session_manager
from app.types.messaging import (
    AppointmentView,
    MessageHistoryRecord,
    QueueStats,
    ReminderJob,
    SendResult,
)
from app.utils.blocking import run_blocking
from app.utils.phone import MIN_PHONE_DIGITS, digits_only, format_phone_number, to_chat_id
from app.utils.redis_conn import get_redis
from config import settings
from db import ledger

logger = logging.getLogger(__name__)

REMINDER_QUEUE = "reminder"
SEND_REMINDER_TASK = "app.workers.reminder.send_reminder"

EnqueueOutcome = Literal["queued", "invalid", "already_sent"]


# ──────────────────────────────────────────────────────────────────────
# Enqueue
# ──────────────────────────────────────────────────────────────────────

def reminder_date_key(scheduled: datetime) -> str:
    """Calendar day (configured timezone) used to deduplicate reminders."""
    return local_datetime(scheduled).date().isoformat()


def build_reminder_job(appointment: AppointmentView) -> ReminderJob:
    scheduled = appointment.schedule_date_time
    return ReminderJob(
        appointment_id=appointment.id,
        patient_name=appointment.patient.name,
        phone=format_phone_number(appointment.patient.primary_phone),
        message=build_reminder_message(appointment),
        scheduled_date_time=scheduled,
        scheduled_time=short_time(local_datetime(scheduled)),
        date=reminder_date_key(scheduled),
    )


def _missing_field(appointment: AppointmentView) -> str | None:
    patient = appointment.patient
    if patient is None or not patient.name or not patient.primary_phone:
        return "patient information"
    if appointment.schedule_date_time is None:
        return "schedule date time"
    if appointment.professional is None or not appointment.professional.full_name:
        return "professional information"
    return None


def enqueue_reminder_job(job: ReminderJob) -> str:
    from app.celery_app import celery_app

    result = celery_app.send_task(
        SEND_REMINDER_TASK,
        kwargs={"job": job.model_dump(mode="json")},
        queue=REMINDER_QUEUE,
    )
    return result.id


async def add_appointment_to_queue(
    appointment: AppointmentView,
    *,
    enqueue: Callable[[ReminderJob], str] = enqueue_reminder_job,
) -> EnqueueOutcome:
    missing = _missing_field(appointment)
    if missing:
        logger.warning("Skipping appointment %s: Missing %s", appointment.id, missing)
        return "invalid"

    job = build_reminder_job(appointment)
    if await ledger.has_sent_reminder_for_date(job.appointment_id, job.phone, job.date):
        logger.warning(
            "Reminder already sent for appointment %s and phone %s on date %s",
            job.appointment_id, job.phone, job.date,
        )
        return "already_sent"

    task_id = enqueue(job)
    logger.info(
        "Added appointment reminder to queue for %s (appointment %s, task %s)",
        job.patient_name, job.appointment_id, task_id,
    )
    return "queued"


# ──────────────────────────────────────────────────────────────────────
# Process
# ──────────────────────────────────────────────────────────────────────

async def _ensure_connected(session: SessionManager) -> None:
    if session.is_connected():
        return
    logger.warning("WhatsApp is not connected. Attempting to connect...")
    result = await asyncio.to_thread(session.connect)
    if not result.success:
        raise SessionUnavailableError(f"Failed to connect WhatsApp: {result.error}")
    await asyncio.sleep(settings.SESSION_SETTLE_SECONDS)


def _result(job: ReminderJob, **fields) -> SendResult:
    return SendResult(appointment_id=job.appointment_id, phone=job.phone, **fields)


async def handle_send_reminder(job: ReminderJob, session: SessionManager | None = None) -> SendResult:
    session = session or session_manager
    logger.info(
        "Processing reminder for %s (%s) - Appointment: %s",
        job.patient_name, job.phone, job.appointment_id,
    )
    phone = digits_only(job.phone)
    try:
        if len(phone) < MIN_PHONE_DIGITS:
            raise InvalidPhoneError(job.phone)
        if not job.message or not job.message.strip():
            raise EmptyMessageError()

        await _ensure_connected(session)
        client = session.get_client()
        if client is None:
            raise SessionUnavailableError("WhatsApp client not available")
        if not await asyncio.to_thread(client.is_page_open):
            raise PageNotReadyError()

        if await ledger.has_sent_reminder_for_date(job.appointment_id, phone, job.date):
            logger.warning(
                "Reminder already sent for appointment %s and phone %s on date %s",
                job.appointment_id, phone, job.date,
            )
            return _result(job, success=True, message_sent=False, skipped_reason="already_sent")

        # Logged before sending: a crash mid-send must not cause a second reminder.
        try:
            await ledger.log_message(
                MessageHistoryRecord(
                    appointment_id=job.appointment_id,
                    patient_phone=phone,
                    type="reminder",
                    direction="sent",
                    content=job.message,
                    date=job.date,
                )
            )
        except DuplicateMessageError:
            logger.warning("Reminder for appointment %s was logged concurrently; not sending", job.appointment_id)
            return _result(job, success=True, message_sent=False, skipped_reason="already_sent")

        timeout = settings.SEND_TIMEOUT_SECONDS
        try:
            await run_blocking(session.send, to_chat_id(phone), job.message, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SendTimeoutError(timeout) from exc

        logger.info("Successfully sent reminder to %s (%s)", job.patient_name, job.phone)
        return _result(job, success=True, message_sent=True)

    except PermanentSendError as exc:
        logger.warning("Not retrying reminder for appointment %s: %s", job.appointment_id, exc)
        return _result(job, success=False, message_sent=False, error=str(exc))


# ──────────────────────────────────────────────────────────────────────
# Stats (maintained by Celery signals in app.workers.reminder)
# ──────────────────────────────────────────────────────────────────────

STATS_KEY = "reminders:stats"


def record_job_event(field: str, amount: int = 1, client: redis.Redis | None = None) -> None:
    r = client or get_redis()
    try:
        r.hincrby(STATS_KEY, field, amount)
    except redis.RedisError:
        logger.warning("Could not update queue stat %s", field, exc_info=True)


def get_queue_stats(client: redis.Redis | None = None) -> QueueStats:
    r = client or get_redis()
    counters = r.hgetall(STATS_KEY) or {}
    return QueueStats(
        waiting=int(r.llen(REMINDER_QUEUE) or 0),
        active=max(int(counters.get("active", 0)), 0),
        completed=int(counters.get("completed", 0)),
        failed=int(counters.get("failed", 0)),
    )
