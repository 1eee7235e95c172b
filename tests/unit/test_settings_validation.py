"""Tests for settings validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from tolki.settings import (
    DEFAULT_API_BASE_URL,
    AppSettings,
    ChatSettings,
    EndpointSettings,
    ScrollSettings,
    load_app_settings,
)

pytestmark = pytest.mark.unit


def test_invalid_settings_raises(tmp_path):
    file = tmp_path / "settings.json"
    file.write_text(json.dumps({"endpoint": {"timeout_seconds": "soon"}}))
    with pytest.raises(ValueError):
        load_app_settings(file)


def test_toml_settings_are_loaded(tmp_path):
    file = tmp_path / "settings.toml"
    file.write_text(
        "\n".join(
            [
                "[endpoint]",
                'api_base = "https://chat.example/embed"',
                "[chat]",
                'supported_locales = "EN, it ,it, de"',
                "[storage]",
                'path = "  "',
            ]
        ),
        encoding="utf-8",
    )

    settings = load_app_settings(file)

    assert settings.endpoint.base_url == "https://chat.example/embed/"
    assert settings.chat.supported_locales == ["en", "it", "de"]
    assert settings.storage.path is None


def test_blank_values_fall_back_to_defaults():
    endpoint = EndpointSettings(api_base="  ")
    chat = ChatSettings(source_locale="", supported_locales=[])

    assert endpoint.base_url == DEFAULT_API_BASE_URL
    assert chat.source_locale == "en"
    assert chat.supported_locales == ["en", "it", "es", "fr", "de", "pt"]


def test_scroll_retry_cap_is_bounded():
    assert ScrollSettings().max_retries == 3
    with pytest.raises(ValidationError):
        ScrollSettings(max_retries=4)


def test_to_dict_round_trips():
    settings = AppSettings()

    assert AppSettings.model_validate(settings.to_dict()) == settings
