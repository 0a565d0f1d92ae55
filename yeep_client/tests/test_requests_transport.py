import asyncio
import json
import threading

import pytest
import requests

from yeep_client.config import ClientSettings
from yeep_client.errors import RequestCancelledError, RequestTimeoutError, TransportError
from yeep_client.network.cancellation import CancelHandle
from yeep_client.network.transport.requests_transport import RequestsTransport


def _response(status: int, content: bytes, content_type: str = "application/json") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.headers["Content-Type"] = content_type
    response.encoding = "utf-8"
    return response


class _FakeSession(requests.Session):
    def __init__(self, reply) -> None:
        super().__init__()
        self.reply = reply
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if isinstance(self.reply, BaseException):
            raise self.reply
        if callable(self.reply):
            return self.reply()
        return self.reply


def _transport(reply, base_url: str = "http://demo.yeep.com/svc") -> tuple[RequestsTransport, _FakeSession]:
    session = _FakeSession(reply)
    settings = ClientSettings(base_url=base_url, request_timeout_seconds=5)
    return RequestsTransport(settings, session=session), session


@pytest.mark.asyncio
async def test_post_sends_json_body_to_joined_url():
    transport, session = _transport(_response(200, b'{"ok": true, "widget": {"id": "w-1"}}'))

    response = await transport.send(
        "post",
        "/api/widget.info",
        headers={"Accept": "application/json"},
        body={"id": "w-1"},
    )

    assert response.status_code == 200
    assert response.data == {"ok": True, "widget": {"id": "w-1"}}
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "http://demo.yeep.com/svc/api/widget.info")
    assert kwargs["json"] == {"id": "w-1"}
    assert kwargs["timeout"] == 5.0
    assert kwargs["headers"] == {"Accept": "application/json"}


@pytest.mark.asyncio
async def test_get_sends_no_body():
    transport, session = _transport(_response(200, json.dumps({"paths": {}}).encode()))

    await transport.send("get", "/api/docs", headers={}, body={"ignored": True})

    _, _, kwargs = session.requests[0]
    assert kwargs["json"] is None


@pytest.mark.asyncio
async def test_error_status_with_service_envelope_is_returned():
    body = {"ok": False, "error": {"code": 10001, "message": "Invalid credentials"}}
    transport, _ = _transport(_response(400, json.dumps(body).encode()))

    response = await transport.send("post", "/api/session.issueToken", headers={})

    assert response.status_code == 400
    assert response.data == body


@pytest.mark.asyncio
async def test_error_status_without_envelope_raises():
    transport, _ = _transport(_response(502, b'{"message": "bad gateway"}'))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("post", "/api/widget.info", headers={})
    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_non_json_error_body_raises_with_status():
    transport, _ = _transport(_response(500, b"<html>oops</html>", "text/html"))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("post", "/api/widget.info", headers={})
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_empty_success_body_decodes_to_none():
    transport, _ = _transport(_response(204, b""))

    response = await transport.send("post", "/api/session.destroyCookie", headers={})

    assert response.data is None


@pytest.mark.asyncio
async def test_timeout_is_reported():
    transport, _ = _transport(requests.Timeout("slow"))

    with pytest.raises(RequestTimeoutError):
        await transport.send("post", "/api/widget.info", headers={})


@pytest.mark.asyncio
async def test_connection_failure_is_reported():
    transport, _ = _transport(requests.ConnectionError("refused"))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("post", "/api/widget.info", headers={})
    assert not isinstance(excinfo.value, RequestTimeoutError)


@pytest.mark.asyncio
async def test_cancel_handle_aborts_blocking_request():
    release = threading.Event()

    def _blocking():
        release.wait(2.0)
        return _response(200, b'{"ok": true}')

    transport, _ = _transport(_blocking)
    handle = CancelHandle("K")
    try:
        pending = asyncio.create_task(transport.send("post", "/api/widget.info", headers={}, cancel=handle))
        await asyncio.sleep(0.02)
        handle.cancel()

        with pytest.raises(RequestCancelledError):
            await pending
    finally:
        release.set()


@pytest.mark.asyncio
async def test_already_cancelled_handle_skips_request():
    transport, session = _transport(_response(200, b'{"ok": true}'))
    handle = CancelHandle("K")
    handle.cancel()

    with pytest.raises(RequestCancelledError):
        await transport.send("post", "/api/widget.info", headers={}, cancel=handle)
    assert session.requests == []


@pytest.mark.asyncio
async def test_close_closes_session():
    transport, session = _transport(_response(200, b"{}"))
    closed = []
    session.close = lambda: closed.append(True)

    await transport.close()

    assert closed == [True]
