"""Tests for the Resend email client."""

import json

import httpx
import pytest

from appointly.services.email_sender import EmailSendError, ResendEmailClient


def _client(handler, **kwargs) -> ResendEmailClient:
    return ResendEmailClient(
        api_key=kwargs.pop("api_key", "re_test"),
        from_email=kwargs.pop("from_email", "Appointly <noreply@example.com>"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_delay=0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_send_email_returns_message_id():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_123"})

    client = _client(handler)
    message_id = await client.send_email(to="a@example.com", subject="Hi", html="<p>Hi</p>", text="Hi")

    assert message_id == "msg_123"
    assert captured["auth"] == "Bearer re_test"
    assert captured["body"]["to"] == ["a@example.com"]
    assert captured["body"]["text"] == "Hi"


@pytest.mark.asyncio
async def test_retries_on_server_error():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"id": "msg_2"})

    assert await _client(handler).send_email(to="a@example.com", subject="s", html="h") == "msg_2"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_client_error_raises_with_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "Invalid `to` field"})

    with pytest.raises(EmailSendError, match="422"):
        await _client(handler).send_email(to="bad", subject="s", html="h")


@pytest.mark.asyncio
async def test_missing_message_id_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    with pytest.raises(EmailSendError):
        await _client(handler).send_email(to="a@example.com", subject="s", html="h")


@pytest.mark.asyncio
async def test_unconfigured_client_raises_without_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(handler, api_key="")

    assert client.is_configured() is False
    with pytest.raises(EmailSendError, match="RESEND_API_KEY"):
        await client.send_email(to="a@example.com", subject="s", html="h")


@pytest.mark.asyncio
async def test_connection_error_raises_email_send_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(EmailSendError, match="request failed"):
        await _client(handler, max_attempts=2).send_email(to="a@example.com", subject="s", html="h")
