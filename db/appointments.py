"""Read/update helpers over the appointment tables.

Appointment CRUD lives elsewhere; the reminder pipeline only needs to list
tomorrow's appointments, look one up, and flip its status when the patient
answers.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import contains_eager

from app.types.messaging import AppointmentView, Patient, Professional as ProfessionalView
from app.utils.phone import format_phone_number
from config import settings
from db.db import session_scope
from db.models import Appointment, Schedule

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """SQLite hands datetimes back naive; everything is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_bounds(day: date, tz_name: str | None = None) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day in the given timezone."""
    tz = ZoneInfo(tz_name or settings.DEFAULT_TIMEZONE)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _joined():
    return (
        select(Appointment)
        .join(Appointment.schedule)
        .join(Schedule.professional)
        .options(contains_eager(Appointment.schedule).contains_eager(Schedule.professional))
    )


def _to_view(row: Appointment) -> AppointmentView:
    schedule = row.schedule
    professional = schedule.professional if schedule is not None else None
    return AppointmentView(
        id=row.id,
        schedule_id=row.schedule_id,
        schedule_date_time=as_utc(schedule.date_time) if schedule is not None else None,
        status=row.status,
        patient=Patient(
            name=row.patient_name,
            primary_phone=row.patient_primary_phone,
            secondary_phone=row.patient_secondary_phone,
        ),
        professional=ProfessionalView(
            full_name=professional.full_name,
            specialty=professional.specialty,
            address=professional.address,
        ) if professional is not None else None,
    )


async def find_scheduled_appointments_for_date(day: date) -> list[AppointmentView]:
    start, end = day_bounds(day)
    async with session_scope() as s:
        stmt = (
            _joined()
            .where(
                Appointment.status == "scheduled",
                Schedule.date_time >= start,
                Schedule.date_time < end,
            )
            .order_by(Schedule.date_time)
        )
        res = await s.execute(stmt)
        return [_to_view(r) for r in res.scalars()]


async def find_by_id(appointment_id: str) -> AppointmentView | None:
    async with session_scope() as s:
        res = await s.execute(_joined().where(Appointment.id == appointment_id))
        row = res.scalar_one_or_none()
        return _to_view(row) if row else None


async def find_latest_scheduled_by_phone(phone: str) -> AppointmentView | None:
    """Most recently booked, still-upcoming scheduled appointment for *phone*.

    Stored phones keep whatever formatting the patient typed, so matching
    happens on normalised digits.
    """
    wanted = format_phone_number(phone)
    now = datetime.now(tz=timezone.utc)
    async with session_scope() as s:
        stmt = (
            _joined()
            .where(Appointment.status == "scheduled", Schedule.date_time >= now)
            .order_by(Appointment.created_at.desc())
        )
        res = await s.execute(stmt)
        for row in res.scalars():
            if format_phone_number(row.patient_primary_phone) == wanted:
                return _to_view(row)
    return None


async def update_status(appointment_id: str, status: str) -> bool:
    """Set the appointment status. Cancelling reopens the schedule slot."""
    async with session_scope() as s:
        res = await s.execute(
            select(Appointment)
            .join(Appointment.schedule)
            .options(contains_eager(Appointment.schedule))
            .where(Appointment.id == appointment_id)
        )
        row = res.scalar_one_or_none()
        if row is None:
            logger.warning("Appointment %s not found for status update", appointment_id)
            return False
        row.status = status
        if status == "cancelled":
            row.schedule.status = "open"
        await s.commit()
    logger.info("Updated appointment %s status to: %s", appointment_id, status)
    return True


async def response_stats() -> dict[str, int]:
    async with session_scope() as s:
        res = await s.execute(
            select(Appointment.status, func.count()).group_by(Appointment.status)
        )
        counts = dict(res.all())
    return {
        "total": sum(counts.values()),
        "confirmed": counts.get("confirmed", 0),
        "cancelled": counts.get("cancelled", 0),
        "unknown": counts.get("scheduled", 0),
    }
