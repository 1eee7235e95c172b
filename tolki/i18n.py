"""Runtime gettext catalogues with asynchronous locale switching."""

from __future__ import annotations

import asyncio
import logging
import os
from gettext import GNUTranslations, NullTranslations, translation as _find_translation
from io import BytesIO
from pathlib import Path
from typing import Final

import polib

from .telemetry import log_event

logger = logging.getLogger(__name__)

DOMAIN = "tolki"
LOCALE_DIR = Path(__file__).resolve().parent / "locale"

__all__ = [
    "DOMAIN",
    "LOCALE_DIR",
    "LocaleCatalog",
    "LocaleNotFoundError",
    "_",
    "gettext",
    "language_from_environment",
]

_TRANSLATION: NullTranslations = NullTranslations()


class LocaleNotFoundError(LookupError):
    """Raised when no language table exists for a requested locale."""

    def __init__(self, locale: str) -> None:
        super().__init__(f"Locale {locale} not found")
        self.locale = locale


def gettext(message: str) -> str:
    """Translate *message* using the active catalogue."""
    return _TRANSLATION.gettext(message)


_: Final = gettext


def _set_translation(translation: NullTranslations) -> None:
    global _TRANSLATION
    _TRANSLATION = translation


def language_from_environment(default: str = "en") -> str:
    """Return the primary language code advertised by the environment."""
    for name in ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(name)
        if not value:
            continue
        token = value.split(":")[0].strip()
        code = token.split(".")[0].split("_")[0].split("-")[0].lower()
        if code and code not in {"c", "posix"}:
            return code
    return default


def _normalise_locale(locale: str) -> str:
    return locale.strip().replace("_", "-").split("-")[0].lower()


class LocaleCatalog:
    """Own the active display language and its translation table.

    Only the *pointer* to the active language lives here; items already in
    the conversation log are never retranslated by switching.
    """

    def __init__(
        self,
        domain: str = DOMAIN,
        localedir: str | os.PathLike[str] = LOCALE_DIR,
        *,
        source_locale: str = "en",
    ) -> None:
        self._domain = domain
        self._localedir = Path(localedir)
        self._source_locale = _normalise_locale(source_locale)
        self._active = self._source_locale
        self._translation: NullTranslations = NullTranslations()

    # ------------------------------------------------------------------
    @property
    def source_locale(self) -> str:
        return self._source_locale

    # ------------------------------------------------------------------
    def get_locale(self) -> str:
        """Return the currently active locale code."""
        return self._active

    # ------------------------------------------------------------------
    def available_locales(self) -> list[str]:
        """Return the source locale plus every locale with a table on disk."""
        found = [self._source_locale]
        if self._localedir.is_dir():
            for child in sorted(self._localedir.iterdir()):
                messages = child / "LC_MESSAGES"
                if any(
                    (messages / f"{self._domain}{suffix}").exists()
                    for suffix in (".mo", ".po")
                ) and child.name not in found:
                    found.append(child.name)
        return found

    # ------------------------------------------------------------------
    def gettext(self, message: str) -> str:
        return self._translation.gettext(message)

    # ------------------------------------------------------------------
    async def set_locale(self, locale: str) -> None:
        """Load the table for *locale* and make it active.

        Raises :class:`LocaleNotFoundError` when no table exists.
        """
        code = _normalise_locale(locale)
        if code == self._active:
            return
        if code == self._source_locale:
            translation: NullTranslations | None = NullTranslations()
        else:
            translation = await asyncio.to_thread(self._load_translation, code)
        if translation is None:
            raise LocaleNotFoundError(code)
        previous = self._active
        self._translation = translation
        self._active = code
        _set_translation(translation)
        log_event("LOCALE_SWITCH", {"from": previous, "to": code})

    # ------------------------------------------------------------------
    async def activate(self, locale: str) -> str:
        """Switch to *locale*, falling back to the source locale on failure."""
        try:
            await self.set_locale(locale)
        except LocaleNotFoundError as exc:
            logger.warning("Failed to set locale %s: %s", locale, exc)
            await self.set_locale(self._source_locale)
        return self._active

    # ------------------------------------------------------------------
    def _load_translation(self, code: str) -> NullTranslations | None:
        try:
            return _find_translation(
                self._domain,
                localedir=str(self._localedir),
                languages=[code],
            )
        except OSError:
            pass
        po_path = self._localedir / code / "LC_MESSAGES" / f"{self._domain}.po"
        if not po_path.exists():
            return None
        try:
            catalog = polib.pofile(str(po_path))
        except (OSError, ValueError):
            logger.exception("Failed to parse language table %s", po_path)
            return None
        return GNUTranslations(BytesIO(catalog.to_binary()))
