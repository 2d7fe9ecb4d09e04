"""HTTP client for the WhatsApp gateway sidecar.

The gateway (WAHA-compatible REST API) keeps the browser session and its
persisted credentials; this side only starts/stops the named session,
probes its status and sends text. Lifecycle events (qr, ready,
disconnected, auth_failure, error, message) come back through the webhook
in ``main.py`` and are replayed onto the live ``ChatClient`` handle.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from app.errors import ChatGatewayError
from config import settings

logger = logging.getLogger(__name__)

# Gateway session states in which the underlying browser page is alive.
PAGE_OPEN_STATES = frozenset({"STARTING", "SCAN_QR_CODE", "WORKING"})
READY_STATE = "WORKING"

SESSION_EVENTS = frozenset({"qr", "ready", "disconnected", "auth_failure", "error", "message"})
# `session.status` webhook values that map onto a lifecycle event. STOPPED is
# left out: it is what our own destroy() produces during a reconnect.
_STATUS_EVENTS = {"SCAN_QR_CODE": "qr", "WORKING": "ready", "FAILED": "auth_failure"}

_idempotent = retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_random_exponential(multiplier=0.5, max=5),
    reraise=True,
)


class ChatGateway:
    """Thin wrapper around the gateway REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self._base_url = (base_url or settings.WHATSAPP_GATEWAY_URL).rstrip("/")
        self._timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self._headers = {"Content-Type": "application/json"}
        key = api_key or settings.WHATSAPP_GATEWAY_API_KEY
        if key:
            self._headers["X-Api-Key"] = key
        self._session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        response = self._session.request(
            method,
            f"{self._base_url}{path}",
            json=json_body,
            params=params,
            headers=self._headers,
            timeout=self._timeout,
        )
        if response.status_code >= 400:
            raise ChatGatewayError(
                f"Gateway error {response.status_code} on {method} {path}: {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    @_idempotent
    def get_session(self, name: str) -> dict[str, Any]:
        return self._request("GET", f"/api/sessions/{name}")

    @_idempotent
    def start_session(self, name: str) -> dict[str, Any]:
        try:
            return self._request("POST", "/api/sessions/start", json_body={"name": name})
        except ChatGatewayError as exc:
            # 422: session already started on the gateway side
            if exc.status_code != 422:
                raise
            logger.info("Gateway session %s already started; reusing it", name)
            return self.get_session(name)

    @_idempotent
    def get_qr(self, name: str) -> str:
        data = self._request("GET", f"/api/{name}/auth/qr", params={"format": "raw"})
        return data.get("value", "")

    @_idempotent
    def stop_session(self, name: str) -> dict[str, Any]:
        return self._request("POST", "/api/sessions/stop", json_body={"name": name})

    def send_text(self, session: str, chat_id: str, text: str) -> dict[str, Any]:
        # Not retried here: a retried send could deliver twice.
        return self._request(
            "POST",
            "/api/sendText",
            json_body={"session": session, "chatId": chat_id, "text": text},
        )

    def close(self) -> None:
        self._session.close()


class ChatClient:
    """One handle per connect attempt, bound to the persisted gateway session."""

    def __init__(self, gateway: ChatGateway, session_name: str | None = None):
        self._gateway = gateway
        self.session_name = session_name or settings.WHATSAPP_SESSION_NAME
        self.status: str | None = None
        self._listeners: dict[str, list[Callable[..., None]]] = defaultdict(list)

    # ── Events ───────────────────────────────────────────────────────

    def on(self, event: str, listener: Callable[..., None]) -> None:
        self._listeners[event].append(listener)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def emit(self, event: str, *args: Any) -> bool:
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    # ── Lifecycle ────────────────────────────────────────────────────

    def initialize(self) -> str | None:
        data = self._gateway.start_session(self.session_name)
        self.status = data.get("status")
        return self.status

    def destroy(self) -> None:
        self._gateway.stop_session(self.session_name)
        self.status = "STOPPED"

    def is_page_open(self) -> bool:
        try:
            data = self._gateway.get_session(self.session_name)
        except (ChatGatewayError, requests.RequestException):
            logger.warning("Gateway status probe failed for %s", self.session_name, exc_info=True)
            return False
        self.status = data.get("status")
        return self.status in PAGE_OPEN_STATES

    def send_message(self, chat_id: str, text: str) -> dict[str, Any]:
        return self._gateway.send_text(self.session_name, chat_id, text)

    def fetch_qr(self) -> str:
        return self._gateway.get_qr(self.session_name)


def translate_gateway_event(event: str, payload: dict[str, Any]) -> str | None:
    """Map a gateway webhook event onto a session lifecycle event (or ``None``)."""
    if event in SESSION_EVENTS:
        return event
    if event == "session.status":
        return _STATUS_EVENTS.get(str(payload.get("status", "")).upper())
    return None
