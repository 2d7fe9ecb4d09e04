import json

import pytest
import requests

from app.errors import ChatGatewayError
from app.services.chat_transport import ChatClient, ChatGateway, translate_gateway_event


def _response(status_code, body=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    if body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = (text or "").encode()
    return response


class FakeHttp:
    """Records requests and answers them with a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.handler(method, url, kwargs)

    def close(self):
        pass


def _gateway(handler, **kwargs):
    http = FakeHttp(handler)
    return ChatGateway("http://gateway.test", session=http, **kwargs), http


def test_start_session_reuses_already_started_session():
    def handler(method, url, kwargs):
        if url.endswith("/api/sessions/start"):
            return _response(422, {"error": "already started"})
        return _response(200, {"name": "main-session", "status": "WORKING"})

    gateway, http = _gateway(handler)

    assert gateway.start_session("main-session")["status"] == "WORKING"
    assert [(m, u) for m, u, _ in http.calls] == [
        ("POST", "http://gateway.test/api/sessions/start"),
        ("GET", "http://gateway.test/api/sessions/main-session"),
    ]


def test_send_text_posts_chat_id_and_text():
    gateway, http = _gateway(lambda m, u, k: _response(201, {"id": "true_5585999990000@c.us_ABC"}), api_key="k3y")

    gateway.send_text("main-session", "5585999990000@c.us", "Olá")

    _, url, kwargs = http.calls[0]
    assert url == "http://gateway.test/api/sendText"
    assert kwargs["json"] == {"session": "main-session", "chatId": "5585999990000@c.us", "text": "Olá"}
    assert kwargs["headers"]["X-Api-Key"] == "k3y"
    assert kwargs["timeout"] == 15


def test_gateway_errors_carry_status_code():
    gateway, _ = _gateway(lambda m, u, k: _response(500, text="browser crashed"))
    with pytest.raises(ChatGatewayError) as exc_info:
        gateway.send_text("main-session", "5585999990000@c.us", "Olá")
    assert exc_info.value.status_code == 500


def test_send_text_is_not_retried_on_connection_errors():
    def handler(method, url, kwargs):
        raise requests.ConnectionError("refused")

    gateway, http = _gateway(handler)
    with pytest.raises(requests.ConnectionError):
        gateway.send_text("main-session", "5585999990000@c.us", "Olá")
    assert len(http.calls) == 1


def test_qr_is_requested_raw():
    gateway, http = _gateway(lambda m, u, k: _response(200, {"mimetype": "text/plain", "value": "2@abc"}))
    assert gateway.get_qr("main-session") == "2@abc"
    assert http.calls[0][2]["params"] == {"format": "raw"}


def test_page_open_follows_gateway_status():
    status = {"value": "SCAN_QR_CODE"}
    gateway, _ = _gateway(lambda m, u, k: _response(200, {"status": status["value"]}))
    client = ChatClient(gateway, "main-session")

    assert client.is_page_open()
    status["value"] = "STOPPED"
    assert not client.is_page_open()


def test_page_probe_failure_reads_as_closed():
    gateway, _ = _gateway(lambda m, u, k: _response(404, text="not found"))
    assert not ChatClient(gateway, "main-session").is_page_open()


def test_client_listener_table():
    gateway, _ = _gateway(lambda m, u, k: _response(200, {}))
    client = ChatClient(gateway, "main-session")
    seen = []
    client.on("qr", seen.append)

    assert client.emit("qr", {"qr": "abc"})
    assert not client.emit("ready", {})
    client.remove_all_listeners()
    assert not client.emit("qr", {"qr": "def"})
    assert seen == [{"qr": "abc"}]


@pytest.mark.parametrize(
    "event, payload, expected",
    [
        ("message", {"from": "5585999990000@c.us"}, "message"),
        ("disconnected", {}, "disconnected"),
        ("session.status", {"status": "WORKING"}, "ready"),
        ("session.status", {"status": "SCAN_QR_CODE"}, "qr"),
        ("session.status", {"status": "FAILED"}, "auth_failure"),
        ("session.status", {"status": "STOPPED"}, None),
        ("message.ack", {}, None),
    ],
)
def test_translate_gateway_event(event, payload, expected):
    assert translate_gateway_event(event, payload) == expected
