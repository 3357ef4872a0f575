from __future__ import annotations

import json
from typing import Any, Optional

from ..errors import InvalidInputError


class _NumberLiteral(str):
    """A non-integer JSON number kept as the exact text it was written as."""


def _render(value: Any) -> str:
    if isinstance(value, _NumberLiteral):
        return str(value)
    if isinstance(value, dict):
        members = (
            f"{json.dumps(key, ensure_ascii=False)}:{_render(item)}"
            for key, item in sorted(value.items())
        )
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_render(item) for item in value) + "]"
    return json.dumps(value, ensure_ascii=False)


def dumps_canonical(value: Any) -> str:
    """Serialize with sorted keys and no insignificant whitespace."""
    return _render(value)


def canonicalize_json(raw: str) -> str:
    """Return the canonical form of a JSON document.

    Empty (or whitespace-only) input canonicalizes to the empty string.
    Numbers keep their literal text: integers are unbounded and decimals
    are never rounded through a float, so ``0.10`` and ``1e2`` survive as
    written.
    """
    if not raw or not raw.strip():
        return ""
    try:
        value = json.loads(raw, parse_float=_NumberLiteral)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"invalid JSON: {exc}") from exc
    return dumps_canonical(value)


def json_equivalent(old: Any, new: Any) -> bool:
    """Diff suppressor for JSON string fields: equal after canonicalization."""
    old_text = old if isinstance(old, str) else ""
    new_text = new if isinstance(new, str) else ""
    try:
        return canonicalize_json(old_text) == canonicalize_json(new_text)
    except InvalidInputError:
        return False


def parse_json_document(raw: str, *, field_name: str = "payload_json") -> Optional[Any]:
    """Decode a caller-supplied JSON string; blank means "no body"."""
    if not raw or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"invalid {field_name}: {exc}") from exc


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(value)


def query_from_json(raw: str) -> Optional[list[tuple[str, str]]]:
    """Turn a JSON object into ordered query pairs.

    Lists become repeated keys; nested objects are sent as compact JSON.
    """
    if not raw or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"invalid query_json: {exc}") from exc
    if not isinstance(value, dict):
        raise InvalidInputError("query_json must be a JSON object")
    pairs: list[tuple[str, str]] = []
    for key, item in value.items():
        if isinstance(item, list):
            pairs.extend((key, _query_value(element)) for element in item)
        else:
            pairs.append((key, _query_value(item)))
    return pairs
