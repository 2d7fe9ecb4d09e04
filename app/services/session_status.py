"""Cross-process view of the WhatsApp session.

The worker owns the session; it publishes status transitions and QR
payloads here so the web process can report them without touching the
handle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import redis

from app.services.session_manager import SessionStatus
from app.utils.redis_conn import get_redis

logger = logging.getLogger(__name__)

STATUS_KEY = "whatsapp:session:status"
STATUS_AT_KEY = "whatsapp:session:status_at"
QR_KEY = "whatsapp:session:qr"
QR_TTL_SECONDS = 60


def publish_status(status: SessionStatus, client: redis.Redis | None = None) -> None:
    r = client or get_redis()
    try:
        r.set(STATUS_KEY, status.value)
        r.set(STATUS_AT_KEY, datetime.now(tz=timezone.utc).isoformat())
        if status is SessionStatus.CONNECTED:
            r.delete(QR_KEY)
    except redis.RedisError:
        logger.warning("Could not publish WhatsApp session status %s", status.value, exc_info=True)


def publish_qr(qr: str, client: redis.Redis | None = None) -> None:
    r = client or get_redis()
    try:
        r.set(QR_KEY, qr, ex=QR_TTL_SECONDS)
    except redis.RedisError:
        logger.warning("Could not publish WhatsApp QR code", exc_info=True)


def read_status(client: redis.Redis | None = None) -> dict:
    r = client or get_redis()
    value = r.get(STATUS_KEY)
    try:
        status = SessionStatus(value) if value else SessionStatus.DISCONNECTED
    except ValueError:
        status = SessionStatus.DISCONNECTED
    return {
        "status": status.value,
        "is_connected": status is SessionStatus.CONNECTED,
        "updated_at": r.get(STATUS_AT_KEY),
        "has_qr": bool(r.exists(QR_KEY)),
    }


def read_qr(client: redis.Redis | None = None) -> str | None:
    r = client or get_redis()
    return r.get(QR_KEY)
