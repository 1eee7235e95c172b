"""Typed session engine settings with Pydantic validation."""

from __future__ import annotations

import json
from pathlib import Path

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_API_BASE_URL = "https://api.tolki.ai/chat/v1/embed/"
DEFAULT_BRAIN_BASE_URL = "https://brain.tolki.ai/v1/embed/"
DEFAULT_SUPPORTED_LOCALES = ("en", "it", "es", "fr", "de", "pt")
SOURCE_LOCALE = "en"
DEFAULT_PRIVACY_URL = "https://tolki.ai/privacy"
MAX_SCROLL_RETRIES = 3


def _normalise_base_url(value: str | None, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    return text if text.endswith("/") else f"{text}/"


class EndpointSettings(BaseModel):
    """Settings for reaching the remote message endpoint."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    base_url: str = Field(DEFAULT_API_BASE_URL, alias="api_base")
    brain_base_url: str = Field(DEFAULT_BRAIN_BASE_URL, alias="brain_base")
    timeout_seconds: float = Field(30.0, gt=0.0)

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalise_api_base(cls, value: str | None) -> str:
        return _normalise_base_url(value, DEFAULT_API_BASE_URL)

    @field_validator("brain_base_url", mode="before")
    @classmethod
    def _normalise_brain_base(cls, value: str | None) -> str:
        return _normalise_base_url(value, DEFAULT_BRAIN_BASE_URL)


class ChatSettings(BaseModel):
    """Conversation level defaults."""

    model_config = ConfigDict(validate_assignment=True)

    source_locale: str = SOURCE_LOCALE
    supported_locales: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_LOCALES)
    )
    privacy_policy_url: str = DEFAULT_PRIVACY_URL

    @field_validator("source_locale", mode="before")
    @classmethod
    def _normalise_source_locale(cls, value: str | None) -> str:
        if value is None:
            return SOURCE_LOCALE
        text = str(value).strip().lower()
        return text or SOURCE_LOCALE

    @field_validator("supported_locales", mode="before")
    @classmethod
    def _normalise_locales(cls, value: list[str] | str | None) -> list[str]:
        if value is None:
            return list(DEFAULT_SUPPORTED_LOCALES)
        if isinstance(value, str):
            value = value.split(",")
        locales: list[str] = []
        for raw in value:
            code = str(raw).strip().lower()
            if code and code not in locales:
                locales.append(code)
        return locales or list(DEFAULT_SUPPORTED_LOCALES)


class ScrollSettings(BaseModel):
    """Timing and threshold knobs for viewport reconciliation."""

    model_config = ConfigDict(validate_assignment=True)

    settle_delay_ms: int = Field(150, ge=0)
    height_threshold_px: float = Field(4.0, ge=0.0)
    max_retries: int = Field(MAX_SCROLL_RETRIES, ge=0, le=MAX_SCROLL_RETRIES)
    last_message_offset_px: float = 80.0
    show_button_threshold_px: float = 200.0
    at_bottom_threshold_px: float = 50.0


class StorageSettings(BaseModel):
    """Location of the persisted per-bot settings blob."""

    model_config = ConfigDict(validate_assignment=True)

    path: str | None = None
    storage_key: str = "tolki-settings"

    @field_validator("path", mode="before")
    @classmethod
    def _normalise_path(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class AppSettings(BaseModel):
    """Aggregate settings for a chat session."""

    model_config = ConfigDict(validate_assignment=True)

    endpoint: EndpointSettings = Field(default_factory=EndpointSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    scroll: ScrollSettings = Field(default_factory=ScrollSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    def to_dict(self) -> dict:
        """Return settings as a plain dictionary."""
        return self.model_dump()


def load_app_settings(path: str | Path) -> AppSettings:
    """Load :class:`AppSettings` from *path* with validation.

    ``.toml`` files are parsed with :mod:`tomllib`, everything else as JSON.
    Validation errors are re-raised as :class:`ValueError`.
    """
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh) if p.suffix.lower() == ".toml" else json.load(fh)
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


__all__ = [
    "AppSettings",
    "ChatSettings",
    "EndpointSettings",
    "ScrollSettings",
    "StorageSettings",
    "load_app_settings",
]
