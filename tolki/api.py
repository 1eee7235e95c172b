"""HTTP client for the remote chat message and bot settings endpoints."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any

import httpx

from .settings import EndpointSettings
from .telemetry import log_debug_payload
from .util.ids import is_valid_uuid

logger = logging.getLogger(__name__)


class ApiMessageStatus(str, Enum):
    OK = "ok"
    NOT_OK = "notOk"
    ERROR = "error"
    BAD_MESSAGE = "badMessage"


class MessageApiError(Exception):
    """Raised when a message or settings request does not yield usable data.

    ``status`` classifies the failure: ``badMessage`` for requests refused
    before sending, ``notOk`` for non-2xx responses and ``error`` for
    transport failures or undecodable bodies.
    """

    def __init__(
        self,
        status: ApiMessageStatus,
        message: str = "",
        *,
        data: Any = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message or status.value)
        self.status = status
        self.data = data
        self.http_status = http_status


class MessageEndpointClient:
    """Issue exactly one request per call; retries are left to the caller."""

    def __init__(
        self,
        settings: EndpointSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or EndpointSettings()
        self._transport = transport

    # ------------------------------------------------------------------
    def message_url(self, bot_id: str, chat_id: str, *, is_adk: bool = False) -> str:
        base = self.settings.brain_base_url if is_adk else self.settings.base_url
        return f"{base}{bot_id}/chat/{chat_id}/message"

    # ------------------------------------------------------------------
    def settings_url(self, bot_id: str, lang: str) -> str:
        return f"{self.settings.base_url}{bot_id}/settings/{lang}"

    # ------------------------------------------------------------------
    async def _request_async(
        self,
        method: str,
        url: str,
        *,
        json_body: Any | None = None,
    ) -> httpx.Response:
        """Execute *method* request asynchronously and return the response."""
        headers = {"Content-Type": "application/json"} if json_body is not None else {}
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            transport=self._transport,
        ) as client:
            return await client.request(method, url, json=json_body, headers=headers)

    # ------------------------------------------------------------------
    async def send_message(
        self,
        chat_id: str,
        bot_id: str,
        text: str,
        *,
        is_adk: bool = False,
    ) -> Any:
        """POST *text* to the conversation and return the decoded body.

        Raises :class:`MessageApiError` for every failure.
        """
        if not (is_valid_uuid(chat_id) and is_valid_uuid(bot_id) and (text or "").strip()):
            logger.info("Refusing to send message for chat %s", chat_id)
            raise MessageApiError(ApiMessageStatus.BAD_MESSAGE)

        url = self.message_url(bot_id, chat_id, is_adk=is_adk)
        body = {"message": text}
        start = time.monotonic()
        log_debug_payload(
            "MESSAGE_REQUEST",
            {"direction": "outbound", "http": {"url": url, "body": body}},
        )
        try:
            response = await self._request_async("POST", url, json_body=body)
        except httpx.HTTPError as exc:
            raise MessageApiError(ApiMessageStatus.ERROR, str(exc)) from exc

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MessageApiError(
                ApiMessageStatus.ERROR,
                f"undecodable response body: {exc}",
                http_status=response.status_code,
            ) from exc

        log_debug_payload(
            "MESSAGE_RESPONSE",
            {
                "direction": "inbound",
                "status": response.status_code,
                "duration_ms": int((time.monotonic() - start) * 1000),
                "body": data,
            },
        )
        if response.status_code != 200:
            raise MessageApiError(
                ApiMessageStatus.NOT_OK,
                f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                data=data,
                http_status=response.status_code,
            )
        return data

    # ------------------------------------------------------------------
    async def fetch_settings(self, bot_id: str, lang: str) -> Mapping[str, Any]:
        """Return the bot settings document for *lang*.

        Non-200 answers raise :class:`MessageApiError` carrying the HTTP
        status so callers can tell a missing bot from an inactive one.
        """
        url = self.settings_url(bot_id, lang)
        try:
            response = await self._request_async("GET", url)
        except httpx.HTTPError as exc:
            raise MessageApiError(ApiMessageStatus.ERROR, str(exc)) from exc
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None
        if response.status_code != 200:
            raise MessageApiError(
                ApiMessageStatus.NOT_OK,
                f"HTTP {response.status_code}",
                data=data,
                http_status=response.status_code,
            )
        if not isinstance(data, Mapping):
            raise MessageApiError(
                ApiMessageStatus.ERROR,
                "settings response is not an object",
                data=data,
                http_status=response.status_code,
            )
        return data


__all__ = ["ApiMessageStatus", "MessageApiError", "MessageEndpointClient"]
