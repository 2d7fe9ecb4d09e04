import os
import time
from datetime import date, datetime, time as dtime, timezone
from zoneinfo import ZoneInfo

os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
import pytest_asyncio

import db
from app.services.session_manager import ConnectResult
from config import settings
from db import models

TZ = "America/Sao_Paulo"


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_TIMEZONE", TZ)
    monkeypatch.setattr(settings, "SESSION_SETTLE_SECONDS", 0)
    monkeypatch.setattr(settings, "SEND_TIMEOUT_SECONDS", 30)
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", None)
    monkeypatch.setattr(settings, "WHATSAPP_WEBHOOK_SECRET", None)
    monkeypatch.setattr(settings, "RESCHEDULE_URL", "https://seulink.com/agendar")


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.dispose_engine()
    await db.create_all()
    yield
    await db.dispose_engine()


def local_at(day: date, hour: int, minute: int = 0) -> datetime:
    """A local wall-clock time, stored the way the database keeps it (UTC)."""
    return datetime.combine(day, dtime(hour, minute), tzinfo=ZoneInfo(TZ)).astimezone(timezone.utc)


@pytest.fixture
def make_appointment(database):
    async def _make(
        *,
        when: datetime,
        phone: str = "85999990000",
        name: str = "Maria Silva",
        status: str = "scheduled",
        professional: str = "Ana Souza",
        specialty: str | None = "Cardiologia",
        address: str | None = "Rua das Flores, 100 - Fortaleza",
    ) -> str:
        async with db.session_scope() as s:
            prof = models.Professional(full_name=professional, specialty=specialty, address=address)
            schedule = models.Schedule(professional=prof, date_time=when, status="closed")
            appointment = models.Appointment(
                schedule=schedule,
                patient_name=name,
                patient_primary_phone=phone,
                status=status,
            )
            s.add(appointment)
            await s.commit()
            return appointment.id

    return _make


# ──────────────────────────────────────────────────────────────────────
# Session fakes
# ──────────────────────────────────────────────────────────────────────

class FakePageClient:
    def __init__(self, page_open: bool = True):
        self.page_open = page_open

    def is_page_open(self) -> bool:
        return self.page_open


class FakeSession:
    """Stands in for SessionManager in reminder and router tests."""

    def __init__(
        self,
        *,
        connected: bool = True,
        page_open: bool = True,
        connect_result: ConnectResult | None = None,
        send_error: Exception | None = None,
        send_delay: float = 0,
    ):
        self.connected = connected
        self.client = FakePageClient(page_open)
        self.connect_result = connect_result or ConnectResult(success=True)
        self.send_error = send_error
        self.send_delay = send_delay
        self.connect_calls = 0
        self.sent: list[tuple[str, str]] = []

    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> ConnectResult:
        self.connect_calls += 1
        if self.connect_result.success:
            self.connected = True
        return self.connect_result

    def get_client(self):
        return self.client if self.connected else None

    def send(self, chat_id: str, text: str) -> dict:
        if self.send_delay:
            time.sleep(self.send_delay)
        if self.send_error:
            raise self.send_error
        self.sent.append((chat_id, text))
        return {"id": f"true_{chat_id}_{len(self.sent)}"}


@pytest.fixture
def fake_session():
    return FakeSession()
