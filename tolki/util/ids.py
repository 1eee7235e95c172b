"""Chat and bot identifier helpers."""

from __future__ import annotations

import re
import uuid

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def new_chat_id() -> str:
    """Return a fresh random session identifier."""
    return str(uuid.uuid4())


def is_valid_uuid(value: object) -> bool:
    """Return ``True`` when *value* is an RFC 4122 UUID string."""
    return isinstance(value, str) and bool(_UUID_RE.match(value))


__all__ = ["is_valid_uuid", "new_chat_id"]
