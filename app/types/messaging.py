"""Pydantic models shared by the scheduler, the queue workers, the reply
router and the HTTP layer.

They stay free of FastAPI and database imports so workers and tests can use
them without pulling in either.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MessageType = Literal["reminder", "confirmation", "cancellation", "info", "reinforcement", "other"]
Direction = Literal["sent", "received"]
ResponseType = Literal["sim", "nao", "other"]
Classification = Literal["confirmed", "cancelled", "unknown"]
AppointmentStatus = Literal["scheduled", "confirmed", "completed", "cancelled"]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ──────────────────────────────
# Appointment (read model)
# ──────────────────────────────


class Patient(BaseModel):
    name: str
    primary_phone: str
    secondary_phone: Optional[str] = None


class Professional(BaseModel):
    full_name: str
    specialty: Optional[str] = None
    address: Optional[str] = None


class AppointmentView(BaseModel):
    """Appointment joined with its schedule slot and professional."""

    id: str
    schedule_id: Optional[str] = None
    schedule_date_time: Optional[datetime] = None
    status: AppointmentStatus = "scheduled"
    patient: Optional[Patient] = None
    professional: Optional[Professional] = None


# ──────────────────────────────
# Queue contract
# ──────────────────────────────


class ReminderJob(BaseModel):
    """Payload of a single send-reminder job.

    ``date`` is the calendar-day key used for reminder deduplication; it is
    computed once at enqueue time so the worker checks the exact same key.
    """

    appointment_id: str
    patient_name: str
    phone: str
    message: str
    scheduled_date_time: datetime
    scheduled_time: str
    date: str


class SendResult(BaseModel):
    success: bool
    appointment_id: str
    phone: str
    message_sent: bool
    error: Optional[str] = None
    skipped_reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class QueueStats(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0


class BatchResult(BaseModel):
    """Outcome of a discovery run over one calendar date."""

    date: str
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)


# ──────────────────────────────
# Ledger
# ──────────────────────────────


class MessageHistoryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment_id: Optional[str] = None
    patient_phone: str
    type: MessageType
    direction: Direction
    content: str
    response_type: Optional[ResponseType] = None
    already_responded: bool = False
    date: Optional[str] = None
    created_at: Optional[datetime] = None


# ──────────────────────────────
# Inbound
# ──────────────────────────────


class InboundMessage(BaseModel):
    """A message received from a patient through the chat session."""

    sender: str  # chat id, e.g. "5585999990000@c.us"
    body: str
    timestamp: datetime = Field(default_factory=_utcnow)
    appointment_id: Optional[str] = None

    @field_validator("body")
    def _normalise_body(cls, v: str):  # noqa: N805
        return (v or "").strip().lower()
