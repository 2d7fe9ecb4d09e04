import pytest

from app.errors import DuplicateMessageError
from app.types.messaging import MessageHistoryRecord
from db import ledger

PHONE = "5585999990000"


def _reminder(appointment_id="a1", date="2026-10-20", content="lembrete"):
    return MessageHistoryRecord(
        appointment_id=appointment_id,
        patient_phone=PHONE,
        type="reminder",
        direction="sent",
        content=content,
        date=date,
    )


@pytest.mark.asyncio
async def test_reminder_is_keyed_by_appointment_phone_and_date(database):
    assert not await ledger.has_sent_reminder_for_date("a1", PHONE, "2026-10-20")
    await ledger.log_message(_reminder())
    assert await ledger.has_sent_reminder_for_date("a1", PHONE, "2026-10-20")
    assert not await ledger.has_sent_reminder_for_date("a1", PHONE, "2026-10-21")
    assert not await ledger.has_sent_reminder_for_date("a2", PHONE, "2026-10-20")


@pytest.mark.asyncio
async def test_second_reminder_for_same_key_is_rejected(database):
    await ledger.log_message(_reminder())
    with pytest.raises(DuplicateMessageError):
        await ledger.log_message(_reminder(content="de novo"))
    assert await ledger.count_messages(type="reminder", direction="sent") == 1


@pytest.mark.asyncio
async def test_other_message_types_are_not_unique(database):
    for _ in range(2):
        await ledger.log_message(
            MessageHistoryRecord(patient_phone=PHONE, type="other", direction="received", content="oi")
        )
    assert await ledger.count_messages(type="other") == 2


@pytest.mark.asyncio
async def test_reply_checks_split_by_direction(database):
    await ledger.log_message(
        MessageHistoryRecord(
            appointment_id="a1",
            patient_phone=PHONE,
            type="confirmation",
            direction="received",
            content="sim",
            response_type="sim",
            already_responded=True,
        )
    )
    assert await ledger.has_received_sim_nao("a1", PHONE)
    assert not await ledger.has_sent_confirmation_or_cancellation("a1", PHONE)


@pytest.mark.asyncio
async def test_reinforcement_flag_is_durable(database):
    assert not await ledger.has_sent_reinforcement("a1", PHONE)
    await ledger.log_message(
        MessageHistoryRecord(
            appointment_id="a1", patient_phone=PHONE, type="reinforcement", direction="sent", content="?"
        )
    )
    assert await ledger.has_sent_reinforcement("a1", PHONE)
    assert not await ledger.has_sent_reinforcement("a2", PHONE)


@pytest.mark.asyncio
async def test_info_message_logged_once_per_phone_and_content(database):
    assert await ledger.log_info_if_not_exists(PHONE, "institucional")
    assert not await ledger.log_info_if_not_exists(PHONE, "institucional")
    assert await ledger.log_info_if_not_exists("5585988880000", "institucional")
    assert await ledger.count_messages(type="info") == 2


@pytest.mark.asyncio
async def test_latest_reminder_for_phone(database):
    assert await ledger.find_latest_reminder_for_phone(PHONE) is None
    await ledger.log_message(_reminder(appointment_id="old", date="2026-10-01"))
    await ledger.log_message(_reminder(appointment_id="new", date="2026-10-20"))
    latest = await ledger.find_latest_reminder_for_phone(PHONE)
    assert latest.appointment_id == "new"
    sent = await ledger.get_reminder_sent("old", PHONE)
    assert sent.date == "2026-10-01"
