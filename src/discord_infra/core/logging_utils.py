from __future__ import annotations

import json
import logging
from typing import Any, Optional

SENSITIVE_FIELDS = frozenset(
    {
        "authorization",
        "bot_token",
        "secret",
        "token",
        "webhook_token",
    }
)
REDACTED = "<redacted>"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit one structured log line: a JSON object keyed by ``event``.

    Field names listed in ``SENSITIVE_FIELDS`` are redacted. Logging must never
    break the caller, so rendering failures fall back to ``repr``.
    """
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if key.lower() in SENSITIVE_FIELDS:
            payload[key] = REDACTED
            continue
        payload[key] = _jsonable(value)
    if exc is not None:
        payload["exc_type"] = type(exc).__name__
        payload["exc"] = str(exc)
    try:
        message = json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        message = repr(payload)
    logger.log(level, message)
