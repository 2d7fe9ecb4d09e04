"""Exception hierarchy shared by the reminder pipeline.

Permanent errors are reported back as a structured failure and never
retried by the queue; transient errors bubble up so Celery retries them.
"""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder pipeline failures."""


# ── Send errors ──────────────────────────────────────────────────────

class PermanentSendError(ReminderError):
    """Retrying cannot fix this one."""


class InvalidPhoneError(PermanentSendError):
    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Invalid phone number format: {phone}")


class EmptyMessageError(PermanentSendError):
    def __init__(self):
        super().__init__("Message cannot be empty")


class PageNotReadyError(PermanentSendError):
    def __init__(self):
        super().__init__("WhatsApp page is not ready or closed")


class TransientSendError(ReminderError):
    """Worth another attempt once the queue backs off."""


class SendTimeoutError(TransientSendError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Send message timeout after {timeout:.0f}s")


class SessionUnavailableError(TransientSendError):
    """The chat session could not be (re)established for this attempt."""


# ── Transport ────────────────────────────────────────────────────────

class ChatGatewayError(ReminderError):
    """Raised when the WhatsApp gateway rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ── Ledger ───────────────────────────────────────────────────────────

class DuplicateMessageError(ReminderError):
    """A reminder for the same appointment/phone/date is already recorded."""
