"""JSON serialisation helpers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel


def make_json_safe(
    value: Any,
    *,
    sort_sets: bool = True,
    default: Callable[[Any], str] | None = None,
) -> Any:
    """Return a structure compatible with :func:`json.dumps`.

    Pydantic models are dumped by alias so logged payloads match the wire
    format. Anything else that is not a JSON primitive is passed through
    *default* (``repr`` unless overridden).
    """

    if default is None:
        default = repr

    def _convert(item: Any) -> Any:
        if isinstance(item, BaseModel):
            return _convert(item.model_dump(mode="json", by_alias=True, exclude_none=True))
        if isinstance(item, Mapping):
            return {str(key): _convert(val) for key, val in item.items()}
        if isinstance(item, (list, tuple)):
            return [_convert(val) for val in item]
        if isinstance(item, (set, frozenset)):
            converted = [_convert(val) for val in item]
            if sort_sets:
                converted.sort(key=repr)
            return converted
        if isinstance(item, (str, int, float, bool)) or item is None:
            return item
        try:
            return default(item)
        except Exception:
            return f"<unserialisable {type(item).__name__}>"

    return _convert(value)


__all__ = ["make_json_safe"]
