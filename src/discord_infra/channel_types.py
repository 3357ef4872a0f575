from __future__ import annotations

from typing import Optional

from .errors import InvalidInputError

CHANNEL_TYPE_CODES: dict[str, int] = {
    "text": 0,
    "voice": 2,
    "category": 4,
    "news": 5,
    "store": 6,
    "announcement_thread": 10,
    "public_thread": 11,
    "private_thread": 12,
    "stage": 13,
    "forum": 15,
    "media": 16,
}
CHANNEL_TYPE_NAMES: dict[int, str] = {
    code: name for name, code in CHANNEL_TYPE_CODES.items()
}

# Threads are created through the thread endpoints, not the guild channel list.
THREAD_CHANNEL_TYPES = frozenset(
    {"announcement_thread", "public_thread", "private_thread"}
)


def channel_type_code(name: str) -> int:
    code = lookup_channel_type_code(name)
    if code is None:
        raise InvalidInputError(f"invalid channel type: {name}")
    return code


def lookup_channel_type_code(name: str) -> Optional[int]:
    return CHANNEL_TYPE_CODES.get((name or "").strip().lower())


def channel_type_name(code: int) -> str:
    """Name for a type code; unknown codes fall back to their decimal text."""
    return CHANNEL_TYPE_NAMES.get(code, str(code))
