"""Read-only data sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from .bits64 import MAX_UINT64, fits_native_int, parse_uint64
from .core.coercion import coerce_int, coerce_str
from .core.json_utils import dumps_canonical, query_from_json
from .errors import InvalidInputError
from .ids import hash_id
from .resources.base import CrudFn, Diagnostics, ResourceData, warning
from .resources.media import file_data_uri

if TYPE_CHECKING:
    from .context import ProviderContext

PERMISSION_FLAGS: dict[str, int] = {
    "create_instant_invite": 1 << 0,
    "kick_members": 1 << 1,
    "ban_members": 1 << 2,
    "administrator": 1 << 3,
    "manage_channels": 1 << 4,
    "manage_guild": 1 << 5,
    "add_reactions": 1 << 6,
    "view_audit_log": 1 << 7,
    "priority_speaker": 1 << 8,
    "stream": 1 << 9,
    "view_channel": 1 << 10,
    "send_messages": 1 << 11,
    "send_tts_messages": 1 << 12,
    "manage_messages": 1 << 13,
    "embed_links": 1 << 14,
    "attach_files": 1 << 15,
    "read_message_history": 1 << 16,
    "mention_everyone": 1 << 17,
    "use_external_emojis": 1 << 18,
    "view_guild_insights": 1 << 19,
    "connect": 1 << 20,
    "speak": 1 << 21,
    "mute_members": 1 << 22,
    "deafen_members": 1 << 23,
    "move_members": 1 << 24,
    "use_vad": 1 << 25,
    "change_nickname": 1 << 26,
    "manage_nicknames": 1 << 27,
    "manage_roles": 1 << 28,
    "manage_webhooks": 1 << 29,
    "manage_expressions": 1 << 30,
    "manage_guild_expressions": 1 << 30,
    "manage_emojis": 1 << 30,
    "use_application_commands": 1 << 31,
    "request_to_speak": 1 << 32,
    "manage_events": 1 << 33,
    "manage_threads": 1 << 34,
    "create_public_threads": 1 << 35,
    "create_private_threads": 1 << 36,
    "use_external_stickers": 1 << 37,
    "send_messages_in_threads": 1 << 38,
    "use_embedded_activities": 1 << 39,
    "start_embedded_activities": 1 << 39,
    "moderate_members": 1 << 40,
    "view_creator_monetization_analytics": 1 << 41,
    "use_soundboard": 1 << 42,
    "create_expressions": 1 << 43,
    "create_events": 1 << 44,
    "use_external_sounds": 1 << 45,
    "send_voice_messages": 1 << 46,
    "use_clyde_ai": 1 << 47,
    "set_voice_channel_status": 1 << 48,
    "send_polls": 1 << 49,
    "use_external_apps": 1 << 50,
    "pin_messages": 1 << 51,
    "bypass_slowmode": 1 << 52,
}

PERMISSION_VALUES = ("allow", "unset", "deny")


@dataclass(frozen=True)
class DataSource:
    name: str
    read: CrudFn

    def data(self, config: Optional[Mapping[str, Any]] = None) -> ResourceData:
        return ResourceData(config)


async def read_api_request(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    """GET an arbitrary path and expose the canonical JSON response."""
    path = coerce_str(d.get("path"))
    query = query_from_json(coerce_str(d.get("query_json")))
    response = await ctx.rest.do_json("GET", path, query=query)
    canonical = dumps_canonical(response)
    d.set_id(hash_id(f"{path}|{canonical}"))
    d.set("response_json", canonical)
    return []


def _extends(d: ResourceData, prefix: str) -> int:
    bits = (coerce_int(d.get(f"{prefix}_extends"), 0) or 0) & MAX_UINT64
    text = coerce_str(d.get(f"{prefix}_extends_bits64")).strip()
    if text:
        try:
            bits |= parse_uint64(text)
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"{prefix}_extends_bits64 must be a 64-bit integer string: {exc}"
            ) from exc
    return bits


def compose_permissions(d: ResourceData) -> tuple[int, int]:
    allow = 0
    deny = 0
    for flag, bit in PERMISSION_FLAGS.items():
        value = coerce_str(d.get(flag), "unset") or "unset"
        if value not in PERMISSION_VALUES:
            raise InvalidInputError(
                f"{value} is not an allowed value. Pick one of: allow, unset, deny"
            )
        if value == "allow":
            allow |= bit
        elif value == "deny":
            deny |= bit
    return allow | _extends(d, "allow"), deny | _extends(d, "deny")


def _set_native(d: ResourceData, key: str, value: int) -> Optional[str]:
    if fits_native_int(value):
        d.set(key, value)
        return None
    d.set(key, 0)
    return f"{key} overflowed int; use {key}64 instead"


async def read_permission(_ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    allow, deny = compose_permissions(d)
    d.set_id(hash_id(f"{allow}:{deny}"))
    d.set("allow_bits64", str(allow))
    d.set("deny_bits64", str(deny))
    diagnostics: Diagnostics = []
    for key, value in (("allow_bits", allow), ("deny_bits", deny)):
        overflow = _set_native(d, key, value)
        if overflow:
            diagnostics.append(warning(overflow, f"{key}={value}"))
    return diagnostics


_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_RGB_COLOR_RE = re.compile(
    r"^rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)$", re.IGNORECASE
)


def parse_hex_color(text: str) -> int:
    """``#RRGGBB``, ``RRGGBB`` or the ``#RGB`` shorthand as Discord's integer color."""
    match = _HEX_COLOR_RE.match(text.strip())
    if match is None:
        raise InvalidInputError(f"failed to parse hex color: {text!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return int(digits, 16)


def parse_rgb_color(text: str) -> int:
    match = _RGB_COLOR_RE.match(text.strip())
    if match is None:
        raise InvalidInputError(f"failed to parse rgb color: {text!r}")
    red, green, blue = (int(part) for part in match.groups())
    if max(red, green, blue) > 255:
        raise InvalidInputError(f"rgb components must be 0-255: {text!r}")
    return (red << 16) | (green << 8) | blue


async def read_color(_ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    hex_text = coerce_str(d.get("hex"))
    rgb_text = coerce_str(d.get("rgb"))
    if bool(hex_text) == bool(rgb_text):
        raise InvalidInputError("Exactly one of hex or rgb must be set.")
    value = parse_hex_color(hex_text) if hex_text else parse_rgb_color(rgb_text)
    d.set("dec", value)
    d.set_id(str(value))
    return []


async def read_local_image(_ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    """Inline a file from disk as a base64 data URI for icon and avatar fields."""
    uri = file_data_uri(coerce_str(d.get("file")))
    d.set("data_uri", uri)
    d.set_id(hash_id(uri))
    return []


API_REQUEST = DataSource(name="discord_api_request", read=read_api_request)
PERMISSION = DataSource(name="discord_permission", read=read_permission)
COLOR = DataSource(name="discord_color", read=read_color)
LOCAL_IMAGE = DataSource(name="discord_local_image", read=read_local_image)
