from typing import Any, Optional


def coerce_int(
    value: Any, default: Optional[int] = None, *, reject_bool: bool = True
) -> Optional[int]:
    if value is None:
        return default
    if isinstance(value, bool):
        return default if reject_bool else int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return default
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def coerce_str(value: Any, default: str = "") -> str:
    """Snowflakes and most text fields arrive as strings; nulls map to ``default``."""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no", ""}:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = coerce_str(item).strip()
        if token:
            parsed.append(token)
    return parsed
