"""Message embeds.

Declared embeds nest their sub-objects (footer, image, author, ...) as
single-element lists; the API wants plain objects and no empty values.
"""

from __future__ import annotations

from typing import Any, Optional

from .base import as_list, as_object

NESTED_OBJECTS = ("footer", "image", "thumbnail", "video", "provider", "author")
READ_ONLY_KEYS = frozenset({"type", "proxy_url", "proxy_icon_url"})


def _is_empty(value: Any) -> bool:
    if isinstance(value, bool):
        return not value
    return value is None or value == 0 or value in ("", [], {})


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        pruned = {key: _prune(item) for key, item in value.items()}
        return {key: item for key, item in pruned.items() if not _is_empty(item)}
    if isinstance(value, list):
        return [_prune(item) for item in value]
    return value


def build_embed(declared: Any) -> Optional[dict[str, Any]]:
    blocks = as_list(declared)
    if not blocks:
        return None
    embed = dict(as_object(blocks[0]))
    for key in NESTED_OBJECTS:
        nested = as_list(embed.get(key))
        embed[key] = as_object(nested[0]) if nested else None
    embed["fields"] = [as_object(field) for field in as_list(embed.get("fields"))]
    return _prune(embed)


def flatten_embed(remote: Any) -> list[dict[str, Any]]:
    embed = as_object(remote)
    if not embed:
        return []
    flat: dict[str, Any] = {
        key: value
        for key, value in embed.items()
        if key not in NESTED_OBJECTS and key not in READ_ONLY_KEYS
    }
    for key in NESTED_OBJECTS:
        nested = embed.get(key)
        flat[key] = [dict(nested)] if isinstance(nested, dict) else []
    flat["fields"] = [as_object(field) for field in as_list(embed.get("fields"))]
    return [flat]
