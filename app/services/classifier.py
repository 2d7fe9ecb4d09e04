"""Keyword classifier for patient replies to a reminder."""

from __future__ import annotations

from app.types.messaging import Classification, ResponseType

CONFIRM_KEYWORDS: tuple[str, ...] = (
    "sim", "s", "yes", "y", "confirmo", "confirmar", "ok", "confirmado", "✅",
)
CANCEL_KEYWORDS: tuple[str, ...] = (
    "não", "nao", "n", "no", "cancelar", "cancelado", "❌",
)


def classify(body: str) -> Classification:
    """Map a free-text reply to confirmed / cancelled / unknown.

    Case-insensitive substring match. The confirm set is checked first, so
    a body matching both sets counts as confirmed.
    """
    lowered = (body or "").lower()
    if any(keyword in lowered for keyword in CONFIRM_KEYWORDS):
        return "confirmed"
    if any(keyword in lowered for keyword in CANCEL_KEYWORDS):
        return "cancelled"
    return "unknown"


def to_response_type(classification: Classification) -> ResponseType:
    return {"confirmed": "sim", "cancelled": "nao"}.get(classification, "other")
