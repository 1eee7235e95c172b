"""Resolve a bot identity into its status and display settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .api import MessageApiError, MessageEndpointClient
from .util.ids import is_valid_uuid

logger = logging.getLogger(__name__)


class BotStatus(str, Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    NOT_INSTALLED = "notInstalled"
    INVALID = "invalid"
    NOT_FOUND = "notFound"
    INACTIVE = "inactive"


class BotProps(BaseModel):
    """Bot settings document returned by the settings endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = ""
    team: str = ""
    avatar: str | None = None
    icon: str | None = None
    unbranded: bool | None = None
    is_adk: bool = Field(False, alias="isAdk")
    suggestions: list[str] = Field(default_factory=list)
    welcome_message: str | None = Field(None, alias="welcomeMessage")
    default_open: bool | None = Field(None, alias="defaultOpen")
    styles: dict[str, Any] = Field(default_factory=dict)
    version: str = ""


@dataclass(frozen=True, slots=True)
class BotInitResult:
    status: BotStatus
    props: BotProps | None = None
    uuid: str | None = None

    @property
    def ready(self) -> bool:
        return self.status is BotStatus.OK


async def init_bot(
    client: MessageEndpointClient, bot_uuid: str | None, lang: str
) -> BotInitResult:
    """Fetch the settings for *bot_uuid* and classify the outcome.

    Never raises for remote failures; the returned status tells the caller
    whether the session can become ready.
    """
    if not bot_uuid:
        return BotInitResult(BotStatus.NOT_INSTALLED)
    if not is_valid_uuid(bot_uuid):
        logger.warning("Invalid bot id: %s", bot_uuid)
        return BotInitResult(BotStatus.INVALID)

    try:
        data = await client.fetch_settings(bot_uuid, lang)
    except MessageApiError as exc:
        if exc.http_status == 404:
            status = BotStatus.NOT_FOUND
        elif exc.http_status == 403:
            status = BotStatus.INACTIVE
        else:
            status = BotStatus.UNKNOWN
        logger.warning("Bot %s unavailable (%s): %s", bot_uuid, status.value, exc)
        return BotInitResult(status, uuid=bot_uuid)

    try:
        props = BotProps.model_validate(data)
    except ValidationError as exc:
        logger.warning("Bot %s returned invalid settings: %s", bot_uuid, exc)
        return BotInitResult(BotStatus.UNKNOWN, uuid=bot_uuid)
    return BotInitResult(BotStatus.OK, props=props, uuid=bot_uuid)


__all__ = ["BotInitResult", "BotProps", "BotStatus", "init_bot"]
