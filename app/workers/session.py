"""WhatsApp session lifecycle tasks and worker bootstrap.

The session handle lives in the worker process; the web process asks for
connect/disconnect/test sends through these tasks and reads the status
published to Redis.
"""

from __future__ import annotations

from celery.signals import worker_ready, worker_shutdown
from celery.utils.log import get_task_logger

from app.celery_app import celery_app
from app.errors import ReminderError
from app.services.reply_router import ReplyRouter
from app.services.session_manager import SessionManager, session_manager
from app.services.session_status import publish_qr, publish_status
from app.utils.phone import format_phone_number, to_chat_id
from config import settings

logger = get_task_logger(__name__)


@celery_app.task(name="app.workers.session.connect")
def connect() -> dict:
    result = session_manager.connect()
    if not result.success:
        logger.error("Connect request failed: %s", result.error)
    return result.model_dump()


@celery_app.task(name="app.workers.session.disconnect")
def disconnect() -> dict:
    session_manager.disconnect()
    return {"success": True}


@celery_app.task(name="app.workers.session.reconnect")
def reconnect() -> dict:
    session_manager.disconnect()
    result = session_manager.connect()
    if not result.success:
        logger.warning("Reconnect failed (%s); scheduling another attempt", result.error)
        session_manager.auto_reconnect(settings.RECONNECT_FAILURE_DELAY_SECONDS)
    return result.model_dump()


@celery_app.task(name="app.workers.session.send_test_message")
def send_test_message(phone: str, message: str) -> dict:
    formatted = format_phone_number(phone)
    try:
        session_manager.send(to_chat_id(formatted), message)
    except ReminderError as exc:
        logger.warning("Test message to %s failed: %s", formatted, exc)
        return {"success": False, "phone": formatted, "error": str(exc)}
    logger.info("Test message sent to %s", formatted)
    return {"success": True, "phone": formatted, "error": None}


# ---------------------------------------------------------------------------
# Worker lifecycle
# ---------------------------------------------------------------------------

def bootstrap(manager: SessionManager = session_manager) -> None:
    manager.on_message(ReplyRouter(manager))
    manager.on_status(publish_status)
    manager.on_qr(publish_qr)
    manager.auto_reconnect(0)


@worker_ready.connect
def _start_session(**_kwargs):
    logger.info("Worker ready; starting WhatsApp session")
    bootstrap()


@worker_shutdown.connect
def _stop_session(**_kwargs):
    logger.info("Worker shutting down; closing WhatsApp session")
    session_manager.disconnect()
