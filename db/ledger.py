"""Message ledger: durable history of every sent/received WhatsApp message.

Doubles as the idempotency guard for reminders, confirmations,
cancellations, institutional replies and reinforcement prompts. Checks are
check-then-write; the partial unique index on sent reminders is the only
hard guarantee.
"""

from __future__ import annotations

import logging

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError

from app.errors import DuplicateMessageError
from app.types.messaging import MessageHistoryRecord
from db.db import session_scope
from db.models import MessageHistory

logger = logging.getLogger(__name__)

_REPLY_TYPES = ("confirmation", "cancellation")


async def log_message(record: MessageHistoryRecord) -> MessageHistoryRecord:
    row = MessageHistory(**record.model_dump(exclude_none=True))
    async with session_scope() as s:
        s.add(row)
        try:
            await s.commit()
        except IntegrityError as exc:
            await s.rollback()
            raise DuplicateMessageError(
                f"{record.type}/{record.direction} already logged for "
                f"appointment {record.appointment_id} phone {record.patient_phone} date {record.date}"
            ) from exc
    logger.info(
        "Logged message: %s (%s) for phone %s", record.type, record.direction, record.patient_phone,
    )
    return MessageHistoryRecord.model_validate(row)


async def _exists(*criteria) -> bool:
    async with session_scope() as s:
        res = await s.execute(select(exists().where(*criteria)))
        return bool(res.scalar())


def _pair(appointment_id: str, patient_phone: str) -> tuple:
    return (
        MessageHistory.appointment_id == appointment_id,
        MessageHistory.patient_phone == patient_phone,
    )


async def has_sent_reminder_for_date(appointment_id: str, patient_phone: str, date: str) -> bool:
    return await _exists(
        *_pair(appointment_id, patient_phone),
        MessageHistory.type == "reminder",
        MessageHistory.direction == "sent",
        MessageHistory.date == date,
    )


async def _has_reply(appointment_id: str, patient_phone: str, direction: str) -> bool:
    return await _exists(
        *_pair(appointment_id, patient_phone),
        MessageHistory.type.in_(_REPLY_TYPES),
        MessageHistory.direction == direction,
    )


async def has_sent_confirmation_or_cancellation(appointment_id: str, patient_phone: str) -> bool:
    return await _has_reply(appointment_id, patient_phone, "sent")


async def has_received_sim_nao(appointment_id: str, patient_phone: str) -> bool:
    return await _has_reply(appointment_id, patient_phone, "received")


async def has_sent_reinforcement(appointment_id: str, patient_phone: str) -> bool:
    return await _exists(
        *_pair(appointment_id, patient_phone),
        MessageHistory.type == "reinforcement",
        MessageHistory.direction == "sent",
    )


async def log_info_if_not_exists(patient_phone: str, content: str) -> bool:
    """Log an institutional message once per (phone, content).

    Returns ``True`` when a new record was written.
    """
    already = await _exists(
        MessageHistory.patient_phone == patient_phone,
        MessageHistory.type == "info",
        MessageHistory.content == content,
        MessageHistory.direction == "sent",
    )
    if already:
        return False
    await log_message(
        MessageHistoryRecord(patient_phone=patient_phone, type="info", direction="sent", content=content)
    )
    return True


async def get_reminder_sent(appointment_id: str, patient_phone: str) -> MessageHistoryRecord | None:
    async with session_scope() as s:
        stmt = (
            select(MessageHistory)
            .where(
                *_pair(appointment_id, patient_phone),
                MessageHistory.type == "reminder",
                MessageHistory.direction == "sent",
            )
            .order_by(MessageHistory.created_at.desc())
            .limit(1)
        )
        row = (await s.execute(stmt)).scalar_one_or_none()
        return MessageHistoryRecord.model_validate(row) if row else None


async def find_latest_reminder_for_phone(patient_phone: str) -> MessageHistoryRecord | None:
    async with session_scope() as s:
        stmt = (
            select(MessageHistory)
            .where(
                MessageHistory.patient_phone == patient_phone,
                MessageHistory.type == "reminder",
                MessageHistory.direction == "sent",
                MessageHistory.appointment_id.is_not(None),
            )
            .order_by(MessageHistory.created_at.desc())
            .limit(1)
        )
        row = (await s.execute(stmt)).scalar_one_or_none()
        return MessageHistoryRecord.model_validate(row) if row else None


async def count_messages(**filters) -> int:
    async with session_scope() as s:
        stmt = select(func.count()).select_from(MessageHistory).filter_by(**filters)
        return int((await s.execute(stmt)).scalar_one())
