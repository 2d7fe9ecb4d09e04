"""Outbound message templates (pt-BR).

Patients only ever see these texts: the reminder, the institutional
notice, the reinforcement prompt and the confirmation/cancellation replies.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

from app.types.messaging import AppointmentView
from config import settings

INSTITUTIONAL_MESSAGE = """🤖 Olá! Aqui é a Click Saúde Agendamentos.

Este número é utilizado exclusivamente para envio de lembretes de consultas e confirmação de presença.

📌 No momento, ainda não somos um chatbot completo, mas estamos trabalhando para oferecer mais funcionalidades em breve, como:

Reagendamento automático

Suporte direto

Dúvidas frequentes

Enquanto isso, se precisar de ajuda, entre em contato diretamente com a clínica.
Agradecemos a compreensão! 💙"""

REINFORCE_MESSAGE = """😅 Opa, não entendi sua resposta!

Por favor, confirme sua presença na consulta respondendo com uma das opções abaixo:

✅ SIM – Estarei presente
❌ NÃO – Desejo remarcar ou cancelar

Assim conseguimos organizar melhor os atendimentos. Obrigado! 💙"""

CONFIRMATION_MESSAGE = "✅ Sua presença foi confirmada! Nos vemos na consulta."


def cancellation_message() -> str:
    return f"❌ Consulta cancelada. Se quiser reagendar, acesse: {settings.RESCHEDULE_URL}"


_WEEKDAYS = (
    "segunda-feira", "terça-feira", "quarta-feira", "quinta-feira",
    "sexta-feira", "sábado", "domingo",
)
_MONTHS = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def local_datetime(value: datetime, tz_name: str | None = None) -> datetime:
    return value.astimezone(ZoneInfo(tz_name or settings.DEFAULT_TIMEZONE))


def weekday_name(value: datetime) -> str:
    return _WEEKDAYS[value.weekday()]


def long_date(value: datetime) -> str:
    """``20 de outubro de 2026``"""
    return f"{value.day:02d} de {_MONTHS[value.month - 1]} de {value.year}"


def short_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def build_reminder_message(appointment: AppointmentView) -> str:
    when = local_datetime(appointment.schedule_date_time)
    professional = appointment.professional
    address = (professional.address or "").strip()

    lines = [
        f"👋 Olá, {appointment.patient.name}!",
        "",
        f"⏰ Este é um lembrete da sua consulta com Dr(a). *{professional.full_name}*",
    ]
    if professional.specialty:
        lines.append(f"🩺 {professional.specialty}")
    lines += [
        "",
        f"📆 amanhã, *{weekday_name(when)}*, *{long_date(when)}*",
        f"🕗 *{short_time(when)}*",
    ]
    if address:
        lines.append(f"📍 https://maps.google.com/?q={quote_plus(address)}")
    lines += [
        "",
        "Caso precise de mais informações, estamos à disposição.",
    ]
    return "\n".join(lines)
