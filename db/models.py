from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.db import Base


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ──────────────────────────────────────────────────────────────────────
# Appointment store (owned by the CRUD side, read here)
# ──────────────────────────────────────────────────────────────────────

class Professional(Base):
    __tablename__ = "professionals"

    id:           Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    full_name:    Mapped[str]
    specialty:    Mapped[str | None]
    registration: Mapped[str | None]
    address:      Mapped[str | None] = mapped_column(Text)
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Schedule(Base):
    __tablename__ = "schedules"

    id:              Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    professional_id: Mapped[str] = mapped_column(ForeignKey("professionals.id"))
    date_time:       Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    status:          Mapped[str] = mapped_column(default="open")  # open | closed
    created_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    professional: Mapped[Professional] = relationship()


class Appointment(Base):
    __tablename__ = "appointments"

    id:                      Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    schedule_id:             Mapped[str] = mapped_column(ForeignKey("schedules.id"))
    status:                  Mapped[str] = mapped_column(default="scheduled")
    patient_name:            Mapped[str]
    patient_primary_phone:   Mapped[str] = mapped_column(index=True)
    patient_secondary_phone: Mapped[str | None]
    created_at:              Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at:              Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    schedule: Mapped[Schedule] = relationship()

    __table_args__ = (
        Index("ix_appointments_status", "status"),
    )


# ──────────────────────────────────────────────────────────────────────
# Message ledger
# ──────────────────────────────────────────────────────────────────────

_REMINDER_SENT = text("type = 'reminder' AND direction = 'sent'")


class MessageHistory(Base):
    __tablename__ = "message_history"

    id:                Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    appointment_id:    Mapped[str | None] = mapped_column(String(36))
    patient_phone:     Mapped[str] = mapped_column(String(32))
    type:              Mapped[str] = mapped_column(String(16))
    direction:         Mapped[str] = mapped_column(String(8))
    content:           Mapped[str] = mapped_column(Text)
    response_type:     Mapped[str | None] = mapped_column(String(8))
    already_responded: Mapped[bool] = mapped_column(default=False)
    date:              Mapped[str | None] = mapped_column(String(10))  # yyyy-mm-dd
    created_at:        Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_message_history_lookup", "appointment_id", "patient_phone", "type", "direction"),
        Index("ix_message_history_phone", "patient_phone", "created_at"),
        Index(
            "uq_message_history_reminder_sent",
            "appointment_id", "patient_phone", "date",
            unique=True,
            postgresql_where=_REMINDER_SENT,
            sqlite_where=_REMINDER_SENT,
        ),
    )
