"""Guild-level resources: the server itself and its system channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from ..core.coercion import coerce_bool, coerce_int, coerce_str
from ..core.logging_utils import log_event
from ..errors import DiscordHTTPError, InvalidInputError
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    delete_ignoring_404,
    noop_delete,
    read_or_gone,
    reason_of,
)
from .media import remote_data_uri

if TYPE_CHECKING:
    from ..context import ProviderContext

logger = logging.getLogger(__name__)

DEFAULT_AFK_TIMEOUT = 300

_LEVEL_RANGES = {
    "verification_level": (0, 3),
    "explicit_content_filter": (0, 2),
    "default_message_notifications": (0, 1),
}

_DIFF_FIELDS = (
    "name",
    "region",
    "verification_level",
    "default_message_notifications",
    "explicit_content_filter",
    "afk_channel_id",
    "afk_timeout",
    "owner_id",
)


def validate_server(d: ResourceData) -> None:
    for key, (low, high) in _LEVEL_RANGES.items():
        value = coerce_int(d.get(key), 0) or 0
        if not low <= value <= high:
            raise InvalidInputError(
                f"{key} must be between {low} and {high} inclusive, got: {value}"
            )
    if (coerce_int(d.get("afk_timeout"), 0) or 0) < 0:
        raise InvalidInputError("afk_timeout must not be negative")


async def _image(d: ResourceData, prefix: str) -> str:
    """Inline data URI wins over a URL that has to be downloaded."""
    inline = coerce_str(d.get(f"{prefix}_data_uri"))
    if inline:
        return inline
    url = coerce_str(d.get(f"{prefix}_url"))
    return await remote_data_uri(url) if url else ""


async def _remove_default_channels(ctx: "ProviderContext", guild_id: str) -> None:
    try:
        channels = await ctx.rest.do_json("GET", f"/guilds/{guild_id}/channels")
    except DiscordHTTPError as exc:
        log_event(
            logger,
            logging.WARNING,
            "discord.server.default_channels_skipped",
            server_id=guild_id,
            exc=exc,
        )
        return
    for channel in map(as_object, as_list(channels)):
        channel_id = coerce_str(channel.get("id"))
        try:
            await ctx.rest.do_json(
                "DELETE", f"/channels/{channel_id}", expect_json=False
            )
        except DiscordHTTPError as exc:
            log_event(
                logger,
                logging.WARNING,
                "discord.server.default_channel_delete_failed",
                server_id=guild_id,
                channel_id=channel_id,
                exc=exc,
            )


async def _create_server(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    validate_server(d)
    body: dict[str, Any] = {"name": coerce_str(d.get("name"))}
    optional: dict[str, Any] = {
        "region": coerce_str(d.get("region")),
        "icon": await _image(d, "icon"),
        "verification_level": coerce_int(d.get("verification_level"), 0),
        "default_message_notifications": coerce_int(
            d.get("default_message_notifications"), 0
        ),
        "explicit_content_filter": coerce_int(d.get("explicit_content_filter"), 0),
    }
    body.update({key: value for key, value in optional.items() if value})
    guild = as_object(await ctx.rest.do_json("POST", "/guilds", body=body))
    guild_id = coerce_str(guild.get("id"))
    await _remove_default_channels(ctx, guild_id)

    patch: dict[str, Any] = {}
    afk_channel_id = coerce_str(d.get("afk_channel_id"))
    if afk_channel_id:
        patch["afk_channel_id"] = afk_channel_id
    afk_timeout = coerce_int(d.get("afk_timeout"), DEFAULT_AFK_TIMEOUT)
    if afk_timeout:
        patch["afk_timeout"] = afk_timeout
    owner_id = coerce_str(d.get("owner_id"))
    if owner_id:
        patch["owner_id"] = owner_id
    splash = await _image(d, "splash")
    if splash:
        patch["splash"] = splash
    if patch:
        await ctx.rest.do_json(
            "PATCH", f"/guilds/{guild_id}", body=patch, reason=reason_of(d)
        )
    d.set_id(guild_id)
    log_event(logger, logging.INFO, "discord.server.created", server_id=guild_id)
    return await _read_server(ctx, d)


async def _read_server(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    guild = await read_or_gone(ctx, d, f"/guilds/{d.id}")
    if d.is_gone:
        return []
    guild = as_object(guild)
    d.set("server_id", coerce_str(guild.get("id")) or d.id)
    d.set("name", coerce_str(guild.get("name")))
    d.set("region", coerce_str(guild.get("region")))
    d.set("icon_hash", coerce_str(guild.get("icon")))
    d.set("splash_hash", coerce_str(guild.get("splash")))
    for key in _LEVEL_RANGES:
        d.set(key, coerce_int(guild.get(key), 0))
    d.set("afk_timeout", coerce_int(guild.get("afk_timeout"), 0))
    afk_channel_id = coerce_str(guild.get("afk_channel_id"))
    if afk_channel_id:
        d.set("afk_channel_id", afk_channel_id)
    # Ownership is only tracked when declared, so a plan never transfers it.
    owner_id = coerce_str(guild.get("owner_id"))
    if coerce_str(d.get("owner_id")) and owner_id:
        d.set("owner_id", owner_id)
    return []


async def _update_server(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    validate_server(d)
    body = changed_server_fields(d)
    for prefix in ("icon", "splash"):
        if d.has_changes(f"{prefix}_url", f"{prefix}_data_uri"):
            body[prefix] = await _image(d, prefix) or None
    if body:
        await ctx.rest.do_json(
            "PATCH", f"/guilds/{d.id}", body=body, reason=reason_of(d)
        )
    return await _read_server(ctx, d)


def changed_server_fields(d: ResourceData) -> dict[str, Any]:
    body: dict[str, Any] = {}
    for key in _DIFF_FIELDS:
        if d.has_change(key):
            body[key] = d.get(key)
    if "afk_channel_id" in body and not body["afk_channel_id"]:
        body["afk_channel_id"] = None
    return body


_keep_server = noop_delete(
    "discord_server",
    "discord_server does not delete the guild on destroy",
)


async def _delete_server(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    if not coerce_bool(d.get("delete_on_destroy")):
        return await _keep_server(ctx, d)
    await delete_ignoring_404(ctx, "DELETE", f"/guilds/{d.id}", reason=reason_of(d))
    log_event(logger, logging.WARNING, "discord.server.deleted", server_id=d.id)
    return []


SERVER = Resource(
    name="discord_server",
    create=_create_server,
    read=_read_server,
    update=_update_server,
    delete=_delete_server,
)


def _guild_path(d: ResourceData) -> str:
    return f"/guilds/{coerce_str(d.get('server_id')) or d.id}"


async def _set_system_channel(
    ctx: "ProviderContext", d: ResourceData, channel_id: Optional[str]
) -> None:
    await ctx.rest.do_json(
        "PATCH",
        _guild_path(d),
        body={"system_channel_id": channel_id},
        reason=reason_of(d),
    )


async def _write_system_channel(
    ctx: "ProviderContext", d: ResourceData
) -> Diagnostics:
    await _set_system_channel(ctx, d, coerce_str(d.get("system_channel_id")) or None)
    d.set_id(coerce_str(d.get("server_id")))
    return await _read_system_channel(ctx, d)


async def _read_system_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    guild = await read_or_gone(ctx, d, _guild_path(d))
    if d.is_gone:
        return []
    d.set("server_id", d.id)
    d.set("system_channel_id", coerce_str(as_object(guild).get("system_channel_id")))
    return []


async def _clear_system_channel(
    ctx: "ProviderContext", d: ResourceData
) -> Diagnostics:
    await _set_system_channel(ctx, d, None)
    return []


def _import_server(d: ResourceData) -> None:
    d.set("server_id", d.id)


SYSTEM_CHANNEL = Resource(
    name="discord_system_channel",
    create=_write_system_channel,
    read=_read_system_channel,
    update=_write_system_channel,
    delete=_clear_system_channel,
    importer=_import_server,
)
