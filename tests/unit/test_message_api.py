"""Tests for the HTTP message endpoint client."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tolki.api import ApiMessageStatus, MessageApiError, MessageEndpointClient
from tolki.settings import EndpointSettings

pytestmark = pytest.mark.unit


def _client(handler) -> MessageEndpointClient:
    settings = EndpointSettings(api_base="https://chat.test/embed", brain_base="https://brain.test/embed")
    return MessageEndpointClient(settings, transport=httpx.MockTransport(handler))


def test_send_message_posts_text_and_returns_batch(chat_id, bot_id):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[{"type": "markdown", "content": "hi"}])

    data = asyncio.run(_client(handler).send_message(chat_id, bot_id, "hello"))

    assert data == [{"type": "markdown", "content": "hi"}]
    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == f"https://chat.test/embed/{bot_id}/chat/{chat_id}/message"
    assert json.loads(request.content) == {"message": "hello"}
    assert request.headers["content-type"] == "application/json"


def test_adk_bots_use_brain_endpoint(chat_id, bot_id):
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json=[])

    asyncio.run(_client(handler).send_message(chat_id, bot_id, "hello", is_adk=True))

    assert urls == [f"https://brain.test/embed/{bot_id}/chat/{chat_id}/message"]


@pytest.mark.parametrize(
    ("chat", "text"),
    [("not-a-uuid", "hello"), (None, "hello"), ("valid", "   ")],
)
def test_invalid_requests_are_refused_before_sending(chat_id, bot_id, chat, text):
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("request should not be sent")

    target_chat = chat_id if chat == "valid" else chat
    with pytest.raises(MessageApiError) as excinfo:
        asyncio.run(_client(handler).send_message(target_chat, bot_id, text))

    assert excinfo.value.status is ApiMessageStatus.BAD_MESSAGE


def test_non_200_response_is_not_ok(chat_id, bot_id):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"detail": "upstream"})

    with pytest.raises(MessageApiError) as excinfo:
        asyncio.run(_client(handler).send_message(chat_id, bot_id, "hello"))

    error = excinfo.value
    assert error.status is ApiMessageStatus.NOT_OK
    assert error.http_status == 502
    assert error.data == {"detail": "upstream"}


def test_transport_failure_is_error(chat_id, bot_id):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MessageApiError) as excinfo:
        asyncio.run(_client(handler).send_message(chat_id, bot_id, "hello"))

    assert excinfo.value.status is ApiMessageStatus.ERROR


def test_undecodable_body_is_error(chat_id, bot_id):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(MessageApiError) as excinfo:
        asyncio.run(_client(handler).send_message(chat_id, bot_id, "hello"))

    assert excinfo.value.status is ApiMessageStatus.ERROR
    assert excinfo.value.http_status == 200


def test_fetch_settings_uses_language_url(bot_id):
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json={"name": "Shop bot"})

    data = asyncio.run(_client(handler).fetch_settings(bot_id, "it"))

    assert data == {"name": "Shop bot"}
    assert urls == [f"https://chat.test/embed/{bot_id}/settings/it"]
