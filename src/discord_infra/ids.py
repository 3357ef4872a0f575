from __future__ import annotations

import zlib

from .errors import InvalidInputError

SEPARATOR = ":"


def pack_two_ids(first: str, second: str) -> str:
    return f"{first}{SEPARATOR}{second}"


def parse_two_ids(value: str) -> tuple[str, str]:
    """Split ``"a:b"``; exactly one separator and two non-empty parts."""
    parts = (value or "").split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidInputError(
            f"unexpected format of ID ({value!r}), expected attribute1:attribute2"
        )
    return parts[0], parts[1]


def hashcode(value: str) -> int:
    """Stable non-negative CRC-32 of ``value``, used for synthesized ids."""
    return zlib.crc32(value.encode("utf-8")) & 0xFFFFFFFF


def hash_id(value: str) -> str:
    return str(hashcode(value))
