"""64-bit permission bitset helpers.

Discord permission sets exceed the signed native range, so every resource that
stores permissions keeps two fields: a native int (zero when the value does not
fit) and a canonical unsigned decimal string.
"""

from __future__ import annotations

import re
import sys

from .errors import InvalidInputError

MAX_UINT64 = (1 << 64) - 1
MAX_NATIVE_INT = sys.maxsize

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


def parse_uint64(text: str) -> int:
    """Parse a decimal or ``0x``-prefixed hex string into an unsigned 64-bit value."""
    raw = (text or "").strip()
    if not raw:
        raise InvalidInputError("empty permission value")
    if _DECIMAL_RE.match(raw):
        value = int(raw, 10)
    elif _HEX_RE.match(raw):
        value = int(raw[2:], 16)
    else:
        raise InvalidInputError(f"invalid permission value {text!r}")
    if value > MAX_UINT64:
        raise InvalidInputError(f"permission value {text!r} exceeds 64 bits")
    return value


def format_uint64(value: int) -> str:
    if value < 0 or value > MAX_UINT64:
        raise InvalidInputError(f"value {value} is not an unsigned 64-bit integer")
    return str(value)


def normalize_uint64_string(text: str) -> str:
    """Canonical decimal form; blank stays blank."""
    if not text or not text.strip():
        return ""
    return format_uint64(parse_uint64(text))


def fits_native_int(value: int) -> bool:
    return 0 <= value <= MAX_NATIVE_INT


def native_int_or_zero(value: int) -> int:
    return value if fits_native_int(value) else 0


def int_to_uint64_string(value: int) -> str:
    """Non-positive native values are treated as no bits set."""
    if value <= 0:
        return "0"
    return str(value)


def permission_fields(raw: str) -> tuple[int, str]:
    """Both representations of a remote permission string.

    Returns ``(native, canonical)``; an unparseable remote value yields ``(0, raw)``.
    """
    text = (raw or "").strip()
    try:
        value = parse_uint64(text)
    except InvalidInputError:
        return 0, text
    return native_int_or_zero(value), str(value)


def desired_permission_value(native: int, bits64: str) -> int:
    """The value to send: the string field wins when set, else the native int."""
    if bits64 and bits64.strip():
        return parse_uint64(bits64)
    if native is None or native <= 0:
        return 0
    return native
