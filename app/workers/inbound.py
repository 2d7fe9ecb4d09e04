"""Applies gateway webhook events to the worker-owned WhatsApp session."""

from __future__ import annotations

from celery.utils.log import get_task_logger

from app.celery_app import celery_app
from app.services.session_manager import session_manager

logger = get_task_logger(__name__)


@celery_app.task(name="app.workers.inbound.handle_event")
def handle_event(event: str, payload: dict | None = None) -> bool:  # noqa: D401
    """Replay one lifecycle/message event onto the session manager."""
    logger.info("Gateway event %s", event)
    return session_manager.dispatch_event(event, payload or {})
