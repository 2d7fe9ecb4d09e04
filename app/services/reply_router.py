"""Routes patient replies that arrive through the WhatsApp session.

Every inbound message is written to the ledger first. Then:

* no appointment, no reminder sent, or the appointment already happened:
  institutional notice
* a SIM/NÃO for this appointment was already received: nothing to do
* SIM / NÃO: confirmation or cancellation reply (once) and status update
* anything else: one reinforcement prompt per appointment/phone

Sends never raise out of the router; a reply that cannot be delivered is
logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Literal

from app.services.classifier import classify, to_response_type
from app.services.messages import (
    CONFIRMATION_MESSAGE,
    INSTITUTIONAL_MESSAGE,
    REINFORCE_MESSAGE,
    cancellation_message,
)
from app.services.session_manager import SessionManager, session_manager
from app.types.messaging import Classification, InboundMessage, MessageHistoryRecord
from app.utils.blocking import run_blocking
from app.utils.phone import phone_from_chat_id
from config import settings
from db import appointments, ledger

logger = logging.getLogger(__name__)

RouteOutcome = Literal[
    "institutional",
    "already_handled",
    "already_responded",
    "confirmed",
    "cancelled",
    "reinforced",
    "reinforcement_suppressed",
    "error",
]


class ReplyRouter:
    def __init__(self, session: SessionManager | None = None):
        self._session = session or session_manager

    # Registered as the session manager's on_message callback (worker thread).
    def __call__(self, message: InboundMessage) -> None:
        asyncio.run(self.handle_message(message))

    async def handle_message(self, message: InboundMessage) -> RouteOutcome:
        try:
            return await self._route(message)
        except Exception:  # noqa: BLE001
            logger.exception("Error processing inbound message from %s", message.sender)
            return "error"

    async def _route(self, message: InboundMessage) -> RouteOutcome:
        phone = phone_from_chat_id(message.sender)
        await ledger.log_message(
            MessageHistoryRecord(
                appointment_id=message.appointment_id,
                patient_phone=phone,
                type="other",
                direction="received",
                content=message.body,
            )
        )

        appointment_id = await self.resolve_appointment_id(message, phone)
        if not appointment_id:
            logger.info("No appointment found for %s; sending institutional message", phone)
            await self._send_institutional(message.sender, phone)
            return "institutional"

        reminder = await ledger.get_reminder_sent(appointment_id, phone)
        scheduled = None
        if reminder is not None:
            appointment = await appointments.find_by_id(appointment_id)
            scheduled = appointment.schedule_date_time if appointment else None

        if reminder is None or (scheduled is not None and datetime.now(tz=timezone.utc) > scheduled):
            logger.info(
                "Appointment %s has no active reminder for %s; sending institutional message",
                appointment_id, phone,
            )
            await self._send_institutional(message.sender, phone)
            return "institutional"

        if await ledger.has_received_sim_nao(appointment_id, phone):
            logger.info("Reply for appointment %s from %s already handled", appointment_id, phone)
            return "already_handled"

        classification = classify(message.body)
        logger.info("Classified reply from %s as %s", phone, classification)
        if classification == "unknown":
            return await self._reinforce(message.sender, appointment_id, phone)
        return await self._answer(message, appointment_id, phone, classification)

    async def resolve_appointment_id(self, message: InboundMessage, phone: str) -> str | None:
        if message.appointment_id:
            return message.appointment_id
        reminder = await ledger.find_latest_reminder_for_phone(phone)
        if reminder is not None:
            return reminder.appointment_id
        appointment = await appointments.find_latest_scheduled_by_phone(phone)
        return appointment.id if appointment else None

    # ── Branches ─────────────────────────────────────────────────────

    async def _answer(
        self,
        message: InboundMessage,
        appointment_id: str,
        phone: str,
        classification: Classification,
    ) -> RouteOutcome:
        if await ledger.has_sent_confirmation_or_cancellation(appointment_id, phone):
            logger.info("Confirmation/cancellation already sent for appointment %s", appointment_id)
            return "already_responded"

        confirmed = classification == "confirmed"
        reply_type = "confirmation" if confirmed else "cancellation"
        text = CONFIRMATION_MESSAGE if confirmed else cancellation_message()
        response_type = to_response_type(classification)

        if await self._safe_send(message.sender, text):
            await ledger.log_message(
                MessageHistoryRecord(
                    appointment_id=appointment_id,
                    patient_phone=phone,
                    type=reply_type,
                    direction="sent",
                    content=text,
                    response_type=response_type,
                    already_responded=True,
                )
            )

        # Status failures are logged; the ledger writes below still run.
        try:
            await appointments.update_status(appointment_id, classification)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to mark appointment %s as %s", appointment_id, classification)

        await ledger.log_message(
            MessageHistoryRecord(
                appointment_id=appointment_id,
                patient_phone=phone,
                type=reply_type,
                direction="received",
                content=message.body,
                response_type=response_type,
                already_responded=True,
            )
        )
        return classification

    async def _reinforce(self, chat_id: str, appointment_id: str, phone: str) -> RouteOutcome:
        if await ledger.has_sent_reinforcement(appointment_id, phone):
            logger.info("Reinforcement already sent for appointment %s to %s", appointment_id, phone)
            return "reinforcement_suppressed"

        if await self._safe_send(chat_id, REINFORCE_MESSAGE):
            await ledger.log_message(
                MessageHistoryRecord(
                    appointment_id=appointment_id,
                    patient_phone=phone,
                    type="reinforcement",
                    direction="sent",
                    content=REINFORCE_MESSAGE,
                )
            )
        return "reinforced"

    async def _send_institutional(self, chat_id: str, phone: str) -> None:
        if await self._safe_send(chat_id, INSTITUTIONAL_MESSAGE):
            await ledger.log_info_if_not_exists(phone, INSTITUTIONAL_MESSAGE)

    async def _safe_send(self, chat_id: str, text: str) -> bool:
        try:
            await run_blocking(self._session.send, chat_id, text, timeout=settings.SEND_TIMEOUT_SECONDS)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to send reply to %s", chat_id)
            return False
        return True
