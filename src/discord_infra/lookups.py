"""Read-only lookups of objects that already exist in a Discord server."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from .bits64 import permission_fields
from .channel_types import CHANNEL_TYPE_NAMES
from .core.coercion import coerce_bool, coerce_int, coerce_str, coerce_str_list
from .core.logging_utils import log_event
from .data_sources import DataSource
from .errors import DiscordHTTPError, InvalidInputError, ResourceNotFoundError
from .resources.base import Diagnostics, ResourceData, as_list, as_object

if TYPE_CHECKING:
    from .context import ProviderContext

logger = logging.getLogger(__name__)


def _optional_str(value: Any) -> Optional[str]:
    text = coerce_str(value)
    return text or None


async def read_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    """Find the single channel with this exact name, optionally of one type."""
    server_id = coerce_str(d.get("server_id"))
    name = coerce_str(d.get("name"))
    want_type = coerce_str(d.get("type"))
    channels = await ctx.rest.do_json("GET", f"/guilds/{server_id}/channels")
    matches = []
    for channel in map(as_object, as_list(channels)):
        if coerce_str(channel.get("name")) != name:
            continue
        if want_type:
            code = coerce_int(channel.get("type"))
            if CHANNEL_TYPE_NAMES.get(code) != want_type:
                continue
        matches.append(channel)
    if not matches:
        raise ResourceNotFoundError(
            f"no channel named {name!r} found in server {server_id}"
        )
    if len(matches) > 1:
        raise ResourceNotFoundError(
            f"multiple channels named {name!r} found in server {server_id};"
            " specify a more precise filter"
        )
    channel = matches[0]
    d.set_id(coerce_str(channel.get("id")))
    d.set("parent_id", coerce_str(channel.get("parent_id")))
    return []


def _find_role(
    roles: list[dict[str, Any]], key: str, wanted: str
) -> Optional[dict[str, Any]]:
    for role in roles:
        if coerce_str(role.get(key)) == wanted:
            return role
    return None


async def read_role(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    """Look a role up by ``role_id`` or ``name``; a name wins when both are set."""
    server_id = coerce_str(d.get("server_id"))
    roles = [
        as_object(role)
        for role in as_list(
            await ctx.rest.do_json("GET", f"/guilds/{server_id}/roles")
        )
    ]
    role = None
    role_id = coerce_str(d.get("role_id"))
    if role_id:
        role = _find_role(roles, "id", role_id)
        if role is None:
            raise ResourceNotFoundError("role_id was not found in the server")
    name = coerce_str(d.get("name"))
    if name:
        role = _find_role(roles, "name", name)
        if role is None:
            raise ResourceNotFoundError("name was not found in the server")
    if role is None:
        raise InvalidInputError("either role_id or name must be set")

    native, canonical = permission_fields(coerce_str(role.get("permissions")))
    d.set_id(coerce_str(role.get("id")))
    d.set("role_id", d.id)
    d.set("name", coerce_str(role.get("name")))
    d.set("position", coerce_int(role.get("position"), 0))
    d.set("color", coerce_int(role.get("color"), 0))
    d.set("permissions", native)
    d.set("permissions_bits64", canonical)
    d.set("hoist", coerce_bool(role.get("hoist")))
    d.set("mentionable", coerce_bool(role.get("mentionable")))
    d.set("managed", coerce_bool(role.get("managed")))
    return []


_MEMBER_FIELDS = (
    "joined_at",
    "premium_since",
    "username",
    "discriminator",
    "avatar",
    "nick",
    "roles",
)


async def read_member(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    """Fetch one member by user id; a 404 reports ``in_server = False``.

    Lookup by username would need a full member listing, so it is refused.
    """
    if coerce_str(d.get("username")):
        raise InvalidInputError(
            "discord_member data source lookup by username/discriminator is not"
            " supported; use user_id"
        )
    server_id = coerce_str(d.get("server_id"))
    user_id = coerce_str(d.get("user_id"))
    if not user_id:
        raise InvalidInputError(
            "either user_id or username must be set (user_id required for bot tokens)"
        )
    try:
        member = as_object(
            await ctx.rest.do_json("GET", f"/guilds/{server_id}/members/{user_id}")
        )
    except DiscordHTTPError as exc:
        if exc.status != 404:
            raise
        log_event(
            logger,
            logging.INFO,
            "discord.lookup.member_absent",
            server_id=server_id,
            user_id=user_id,
        )
        d.set_id(user_id)
        d.set("in_server", False)
        for key in _MEMBER_FIELDS:
            d.set(key, None)
        return []

    user = as_object(member.get("user"))
    d.set_id(coerce_str(user.get("id")) or user_id)
    d.set("in_server", True)
    d.set("joined_at", coerce_str(member.get("joined_at")))
    d.set("premium_since", _optional_str(member.get("premium_since")))
    d.set("username", coerce_str(user.get("username")))
    d.set("discriminator", coerce_str(user.get("discriminator")))
    d.set("avatar", coerce_str(user.get("avatar")))
    d.set("nick", coerce_str(member.get("nick")))
    d.set("roles", sorted(coerce_str_list(member.get("roles"))))
    return []


async def read_server(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    if coerce_str(d.get("name")):
        raise InvalidInputError(
            "discord_server data source does not support lookup by name for bot"
            " tokens; set server_id"
        )
    server_id = coerce_str(d.get("server_id"))
    if not server_id:
        raise InvalidInputError("either server_id or name must be set")
    guild = as_object(await ctx.rest.do_json("GET", f"/guilds/{server_id}"))
    d.set_id(coerce_str(guild.get("id")))
    d.set("server_id", d.id)
    d.set("name", coerce_str(guild.get("name")))
    d.set("region", coerce_str(guild.get("region")))
    for key in (
        "default_message_notifications",
        "verification_level",
        "explicit_content_filter",
        "afk_timeout",
    ):
        d.set(key, coerce_int(guild.get(key), 0))
    d.set("icon_hash", coerce_str(guild.get("icon")))
    d.set("splash_hash", coerce_str(guild.get("splash")))
    d.set("afk_channel_id", _optional_str(guild.get("afk_channel_id")))
    d.set("owner_id", _optional_str(guild.get("owner_id")))
    return []


async def read_system_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    guild = as_object(await ctx.rest.do_json("GET", f"/guilds/{server_id}"))
    d.set_id(coerce_str(guild.get("id")))
    d.set("system_channel_id", coerce_str(guild.get("system_channel_id")))
    return []


async def read_emojis(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    emojis = await ctx.rest.do_json("GET", f"/guilds/{server_id}/emojis")
    d.set_id(server_id)
    d.set(
        "emoji",
        [
            {
                "id": coerce_str(emoji.get("id")),
                "name": coerce_str(emoji.get("name")),
                "managed": coerce_bool(emoji.get("managed")),
                "animated": coerce_bool(emoji.get("animated")),
            }
            for emoji in map(as_object, as_list(emojis))
        ],
    )
    return []


async def read_stickers(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    stickers = await ctx.rest.do_json("GET", f"/guilds/{server_id}/stickers")
    d.set_id(server_id)
    d.set(
        "sticker",
        [
            {
                "id": coerce_str(sticker.get("id")),
                "name": coerce_str(sticker.get("name")),
                "description": coerce_str(sticker.get("description")),
                "tags": coerce_str(sticker.get("tags")),
                "format_type": coerce_int(sticker.get("format_type"), 0),
            }
            for sticker in map(as_object, as_list(stickers))
        ],
    )
    return []


def _sound(raw: Any) -> dict[str, Any]:
    sound = as_object(raw)
    volume = sound.get("volume")
    return {
        "sound_id": coerce_str(sound.get("sound_id")),
        "name": coerce_str(sound.get("name")),
        "volume": float(volume) if isinstance(volume, (int, float)) else 0.0,
        "emoji_id": coerce_str(sound.get("emoji_id")),
        "emoji_name": coerce_str(sound.get("emoji_name")),
        "available": coerce_bool(sound.get("available")),
    }


async def read_soundboard_sounds(
    ctx: "ProviderContext", d: ResourceData
) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    out = await ctx.rest.do_json("GET", f"/guilds/{server_id}/soundboard-sounds")
    # The guild endpoint wraps the list; older responses are a bare array.
    items = out.get("items") if isinstance(out, dict) else out
    d.set_id(server_id)
    d.set("sound", [_sound(sound) for sound in as_list(items)])
    return []


async def read_soundboard_default_sounds(
    ctx: "ProviderContext", d: ResourceData
) -> Diagnostics:
    out = await ctx.rest.do_json("GET", "/soundboard-default-sounds")
    sounds = [_sound(sound) for sound in as_list(out)]
    d.set_id(str(len(sounds)))
    d.set("sound", sounds)
    return []


def _thread_members_query(d: ResourceData) -> list[tuple[str, str]]:
    query: list[tuple[str, str]] = []
    limit = coerce_int(d.get("limit"))
    if limit is not None and limit > 0:
        query.append(("limit", str(limit)))
    after = coerce_str(d.get("after"))
    if after:
        query.append(("after", after))
    with_member = d.get("with_member")
    if with_member is not None:
        query.append(("with_member", "true" if coerce_bool(with_member) else "false"))
    return query


async def read_thread_members(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    thread_id = coerce_str(d.get("thread_id"))
    members = await ctx.rest.do_json(
        "GET",
        f"/channels/{thread_id}/thread-members",
        query=_thread_members_query(d) or None,
    )
    d.set_id(thread_id)
    d.set(
        "member",
        [
            {
                "user_id": coerce_str(member.get("user_id"))
                or coerce_str(member.get("id")),
                "join_timestamp": coerce_str(member.get("join_timestamp")),
                "flags": coerce_int(member.get("flags"), 0),
            }
            for member in map(as_object, as_list(members))
        ],
    )
    return []


CHANNEL = DataSource(name="discord_channel", read=read_channel)
ROLE = DataSource(name="discord_role", read=read_role)
MEMBER = DataSource(name="discord_member", read=read_member)
SERVER = DataSource(name="discord_server", read=read_server)
SYSTEM_CHANNEL = DataSource(name="discord_system_channel", read=read_system_channel)
EMOJIS = DataSource(name="discord_emojis", read=read_emojis)
STICKERS = DataSource(name="discord_stickers", read=read_stickers)
SOUNDBOARD_SOUNDS = DataSource(
    name="discord_soundboard_sounds", read=read_soundboard_sounds
)
SOUNDBOARD_DEFAULT_SOUNDS = DataSource(
    name="discord_soundboard_default_sounds", read=read_soundboard_default_sounds
)
THREAD_MEMBERS = DataSource(name="discord_thread_members", read=read_thread_members)
