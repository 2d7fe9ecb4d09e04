from unittest.mock import Mock

from app.errors import PageNotReadyError
from app.services.reply_router import ReplyRouter
from app.services.session_manager import ConnectResult, SessionManager
from app.services.session_status import publish_qr, publish_status
from app.workers import inbound, session as session_worker


def test_bootstrap_wires_router_and_publishers():
    manager = Mock(spec=SessionManager)

    session_worker.bootstrap(manager)

    router = manager.on_message.call_args.args[0]
    assert isinstance(router, ReplyRouter)
    manager.on_status.assert_called_once_with(publish_status)
    manager.on_qr.assert_called_once_with(publish_qr)
    manager.auto_reconnect.assert_called_once_with(0)


def test_reconnect_failure_schedules_retry(monkeypatch):
    manager = Mock(spec=SessionManager)
    manager.connect.return_value = ConnectResult(success=False, error="gateway down")
    monkeypatch.setattr(session_worker, "session_manager", manager)

    result = session_worker.reconnect.apply().result

    assert result == {"success": False, "error": "gateway down"}
    manager.disconnect.assert_called_once_with()
    manager.auto_reconnect.assert_called_once_with(10)


def test_send_test_message_reports_page_errors(monkeypatch):
    manager = Mock(spec=SessionManager)
    manager.send.side_effect = PageNotReadyError()
    monkeypatch.setattr(session_worker, "session_manager", manager)

    result = session_worker.send_test_message.apply(args=["(85) 99999-0000", "teste"]).result

    assert result == {
        "success": False,
        "phone": "5585999990000",
        "error": "WhatsApp page is not ready or closed",
    }
    manager.send.assert_called_once_with("5585999990000@c.us", "teste")


def test_inbound_event_is_replayed_on_session(monkeypatch):
    manager = Mock(spec=SessionManager)
    manager.dispatch_event.return_value = True
    monkeypatch.setattr(inbound, "session_manager", manager)

    result = inbound.handle_event.apply(args=["message", {"from": "5585999990000@c.us", "body": "sim"}])

    assert result.result is True
    manager.dispatch_event.assert_called_once_with("message", {"from": "5585999990000@c.us", "body": "sim"})
