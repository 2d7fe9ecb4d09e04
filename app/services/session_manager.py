"""Owner of the single WhatsApp session handle.

State machine::

    DISCONNECTED -> CONNECTING -> WAITING_QR -> CONNECTED
         ^                                         |
         +---- disconnected / error (5s / 10s) ----+
    AUTH_FAILED (per attempt) -> reconnect in 10s

Only this class holds the ``ChatClient``. Everyone else goes through
``get_client()`` / ``send()`` and must treat ``None`` as "currently
disconnected". Reconnection is retried forever with a fixed delay.

The manager is synchronous and thread-safe; it lives in the Celery worker
process (thread pool) and is fed gateway events by ``dispatch_event``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel

from app.errors import PageNotReadyError, SessionUnavailableError
from app.services.chat_transport import READY_STATE, ChatClient, ChatGateway
from app.types.messaging import InboundMessage
from config import settings

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    WAITING_QR = "WAITING_QR"
    CONNECTED = "CONNECTED"
    AUTH_FAILED = "AUTH_FAILED"


class ConnectResult(BaseModel):
    success: bool
    error: Optional[str] = None


QrCallback = Callable[[str], None]
StatusCallback = Callable[[SessionStatus], None]
ClientReadyCallback = Callable[[ChatClient], None]
MessageCallback = Callable[[InboundMessage], None]


class SessionManager:
    def __init__(
        self,
        client_factory: Callable[[], ChatClient] | None = None,
        *,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._client_factory = client_factory or self._default_client_factory
        self._timer_factory = timer_factory
        self._gateway: ChatGateway | None = None

        self._lock = threading.RLock()
        self._client: ChatClient | None = None
        self._status = SessionStatus.DISCONNECTED
        self._is_connecting = False
        self._reconnect_timer: threading.Timer | None = None

        self._on_qr: QrCallback | None = None
        self._on_status: StatusCallback | None = None
        self._on_client_ready: ClientReadyCallback | None = None
        self._on_message: MessageCallback | None = None

    def _default_client_factory(self) -> ChatClient:
        if self._gateway is None:
            self._gateway = ChatGateway()
        return ChatClient(self._gateway, settings.WHATSAPP_SESSION_NAME)

    # ── Callback registration ────────────────────────────────────────

    def on_message(self, callback: MessageCallback) -> None:
        """Register the single inbound-message consumer (replaces any previous one)."""
        self._on_message = callback

    def on_status(self, callback: StatusCallback) -> None:
        self._on_status = callback

    def on_qr(self, callback: QrCallback) -> None:
        self._on_qr = callback

    def on_client_ready(self, callback: ClientReadyCallback) -> None:
        self._on_client_ready = callback

    # ── Connect / disconnect ─────────────────────────────────────────

    def connect(
        self,
        on_qr: QrCallback | None = None,
        on_status: StatusCallback | None = None,
        on_client_ready: ClientReadyCallback | None = None,
        on_message: MessageCallback | None = None,
    ) -> ConnectResult:
        with self._lock:
            if self._is_connecting:
                return ConnectResult(success=False, error="Connection already in progress")
            if self._client is not None and self._status is SessionStatus.CONNECTED:
                return ConnectResult(success=True)

            self._is_connecting = True
            # Callbacks passed explicitly win; omitted ones keep their registration.
            self._on_qr = on_qr or self._on_qr
            self._on_status = on_status or self._on_status
            self._on_client_ready = on_client_ready or self._on_client_ready
            self._on_message = on_message or self._on_message
            self._set_status(SessionStatus.CONNECTING)

        try:
            self._safe_disconnect()

            client = self._client_factory()
            with self._lock:
                self._client = client
            self._register_event_listeners(client)

            gateway_status = client.initialize()
            with self._lock:
                # A ready event may already have landed while initialize() ran.
                if self._client is client and self._status is SessionStatus.CONNECTING:
                    self._set_status(SessionStatus.WAITING_QR)
            logger.info("WhatsApp client initialized and waiting for QR")

            if gateway_status == READY_STATE:
                # Restored credentials: the gateway will not emit ready again.
                client.emit("ready", {})
            return ConnectResult(success=True)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to initialize WhatsApp client")
            with self._lock:
                self._client = None
                self._set_status(SessionStatus.DISCONNECTED)
            return ConnectResult(success=False, error=str(exc) or type(exc).__name__)
        finally:
            with self._lock:
                self._is_connecting = False

    def disconnect(self) -> None:
        self._cancel_reconnect()
        self._safe_disconnect()
        with self._lock:
            self._set_status(SessionStatus.DISCONNECTED)

    def _safe_disconnect(self) -> None:
        with self._lock:
            client = self._client
        if client is None:
            return
        try:
            if client.is_page_open():
                client.destroy()
                logger.info("WhatsApp client destroyed successfully")
        except Exception:  # noqa: BLE001
            logger.warning("Error destroying WhatsApp client (normal during reconnection)", exc_info=True)
        finally:
            client.remove_all_listeners()
            self._cleanup(client)

    def _cleanup(self, client: ChatClient | None = None) -> None:
        with self._lock:
            if client is None or self._client is client:
                self._client = None

    # ── Auto-reconnect ───────────────────────────────────────────────

    def auto_reconnect(self, delay: float = 0) -> None:
        """Arm a reconnect attempt after *delay* seconds, replacing any pending one."""
        with self._lock:
            self._cancel_reconnect()
            timer = self._timer_factory(delay, self._reconnect_attempt)
            timer.daemon = True
            self._reconnect_timer = timer
        timer.start()

    def _cancel_reconnect(self) -> None:
        with self._lock:
            if self._reconnect_timer is not None:
                self._reconnect_timer.cancel()
                self._reconnect_timer = None

    def _reconnect_attempt(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if self._is_connecting or self._status is SessionStatus.CONNECTED:
                return

        logger.info("Attempting to (re)connect WhatsApp session...")
        result = self.connect()
        if result.success:
            logger.info("WhatsApp session connected or restored successfully.")
            return
        delay = settings.RECONNECT_FAILURE_DELAY_SECONDS
        logger.warning("Reconnect failed: %s. Retrying in %.0fs...", result.error or "Unknown error", delay)
        self.auto_reconnect(delay)

    # ── Event handling ───────────────────────────────────────────────

    def _register_event_listeners(self, client: ChatClient) -> None:
        client.remove_all_listeners()

        def bound(handler: Callable[[ChatClient, Any], None]) -> Callable[..., None]:
            def listener(payload: Any = None) -> None:
                if self._client is not client:
                    logger.debug("Ignoring event for a stale WhatsApp client")
                    return
                handler(client, payload)
            return listener

        client.on("qr", bound(self._handle_qr))
        client.on("ready", bound(self._handle_ready))
        client.on("disconnected", bound(self._handle_disconnected))
        client.on("auth_failure", bound(self._handle_auth_failure))
        client.on("error", bound(self._handle_error))
        client.on("message", bound(lambda _client, payload: self.handle_incoming_message(payload)))

    def _handle_qr(self, client: ChatClient, payload: Any) -> None:
        qr = payload.get("qr", "") if isinstance(payload, dict) else str(payload or "")
        if not qr:
            # session.status webhooks only announce SCAN_QR_CODE
            try:
                qr = client.fetch_qr()
            except Exception:  # noqa: BLE001
                logger.warning("Could not fetch QR code from gateway", exc_info=True)
        logger.info("QR code generated for authentication")
        with self._lock:
            self._set_status(SessionStatus.WAITING_QR)
        if self._on_qr and qr:
            self._on_qr(qr)

    def _handle_ready(self, client: ChatClient, payload: Any) -> None:
        with self._lock:
            self._set_status(SessionStatus.CONNECTED)
        logger.info("WhatsApp client connected - ready for message sending")
        if self._on_client_ready:
            self._on_client_ready(client)

    def _handle_disconnected(self, client: ChatClient, payload: Any) -> None:
        reason = payload.get("reason") if isinstance(payload, dict) else payload
        logger.warning("WhatsApp client disconnected: %s", reason)
        with self._lock:
            self._set_status(SessionStatus.DISCONNECTED)
            self._cleanup(client)
        self.auto_reconnect(settings.RECONNECT_DELAY_SECONDS)

    def _handle_auth_failure(self, client: ChatClient, payload: Any) -> None:
        logger.error("WhatsApp authentication failed")
        with self._lock:
            self._set_status(SessionStatus.AUTH_FAILED)
            self._cleanup(client)
        self.auto_reconnect(settings.RECONNECT_FAILURE_DELAY_SECONDS)

    def _handle_error(self, client: ChatClient, payload: Any) -> None:
        logger.error("WhatsApp client error: %s", payload)
        with self._lock:
            self._set_status(SessionStatus.DISCONNECTED)
            self._cleanup(client)
        self.auto_reconnect(settings.RECONNECT_FAILURE_DELAY_SECONDS)

    def dispatch_event(self, event: str, payload: dict[str, Any] | None = None) -> bool:
        """Replay a gateway event onto the live client.

        Messages are still delivered when no handle is held, so the inbound
        audit trail does not depend on the session being up.
        """
        payload = payload or {}
        with self._lock:
            client = self._client
        if client is None:
            if event == "message":
                self.handle_incoming_message(payload)
                return True
            logger.warning("Dropping %s event: no active WhatsApp client", event)
            return False
        return client.emit(event, payload)

    def handle_incoming_message(self, payload: dict[str, Any]) -> None:
        try:
            if payload.get("fromMe"):
                return
            message = InboundMessage(
                sender=payload["from"],
                body=payload.get("body") or "",
                timestamp=payload.get("timestamp") or datetime.now(tz=timezone.utc),
                appointment_id=payload.get("appointmentId"),
            )
            logger.info("Received message from %s: %s", message.sender, message.body)
            if self._on_message:
                self._on_message(message)
            else:
                logger.warning("No message handler registered; dropping message from %s", message.sender)
        except Exception:  # noqa: BLE001
            logger.exception("Error handling incoming message")

    # ── Accessors ────────────────────────────────────────────────────

    def _set_status(self, status: SessionStatus) -> None:
        self._status = status
        if self._on_status:
            try:
                self._on_status(status)
            except Exception:  # noqa: BLE001
                logger.exception("Status callback failed")

    def get_status(self) -> SessionStatus:
        return self._status

    def is_connected(self) -> bool:
        with self._lock:
            return self._status is SessionStatus.CONNECTED and self._client is not None

    def get_client(self) -> ChatClient | None:
        with self._lock:
            return self._client if self.is_connected() else None

    def send(self, chat_id: str, text: str) -> dict[str, Any]:
        client = self.get_client()
        if client is None:
            raise SessionUnavailableError("WhatsApp client not available")
        if not client.is_page_open():
            raise PageNotReadyError()
        return client.send_message(chat_id, text)


# ── Module-level singleton ──────────────────────────────────────────
session_manager = SessionManager()
