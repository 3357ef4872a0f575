"""Custom emoji, stickers, and soundboard sounds."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.coercion import coerce_bool, coerce_int, coerce_str, coerce_str_list
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_object,
    changed_fields,
    delete_ignoring_404,
    import_child_id,
    read_or_gone,
    reason_of,
)
from .media import file_data_uri, read_local_file

if TYPE_CHECKING:
    from ..context import ProviderContext

DEFAULT_SOUND_VOLUME = 1.0


def _guild_object_path(d: ResourceData, collection: str, object_id: str = "") -> str:
    path = f"/guilds/{coerce_str(d.get('server_id'))}/{collection}"
    return f"{path}/{object_id}" if object_id else path


def _delete_from(collection: str):
    async def _delete(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        await delete_ignoring_404(
            ctx,
            "DELETE",
            _guild_object_path(d, collection, d.id),
            reason=reason_of(d),
        )
        return []

    return _delete


async def _create_emoji(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = {
        "name": coerce_str(d.get("name")),
        "image": coerce_str(d.get("image_data_uri")),
        "roles": coerce_str_list(d.get("roles")),
    }
    emoji = as_object(
        await ctx.rest.do_json(
            "POST", _guild_object_path(d, "emojis"), body=body, reason=reason_of(d)
        )
    )
    d.set_id(coerce_str(emoji.get("id")))
    return await _read_emoji(ctx, d)


async def _read_emoji(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    emoji = await read_or_gone(ctx, d, _guild_object_path(d, "emojis", d.id))
    if d.is_gone:
        return []
    emoji = as_object(emoji)
    d.set("name", coerce_str(emoji.get("name")))
    d.set("roles", coerce_str_list(emoji.get("roles")))
    d.set("managed", coerce_bool(emoji.get("managed")))
    d.set("animated", coerce_bool(emoji.get("animated")))
    return []


async def _update_emoji(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = {
        "name": coerce_str(d.get("name")),
        "roles": coerce_str_list(d.get("roles")),
    }
    await ctx.rest.do_json(
        "PATCH",
        _guild_object_path(d, "emojis", d.id),
        body=body,
        reason=reason_of(d),
    )
    return await _read_emoji(ctx, d)


EMOJI = Resource(
    name="discord_emoji",
    create=_create_emoji,
    read=_read_emoji,
    update=_update_emoji,
    delete=_delete_from("emojis"),
    importer=import_child_id("server_id"),
)


async def _create_sticker(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    file_name, content = read_local_file(coerce_str(d.get("file_path")))
    fields = {
        "name": coerce_str(d.get("name")),
        "description": coerce_str(d.get("description")),
        "tags": coerce_str(d.get("tags")),
    }
    sticker = as_object(
        await ctx.rest.do_multipart(
            "POST",
            _guild_object_path(d, "stickers"),
            fields=fields,
            file_field="file",
            file_name=file_name,
            file_bytes=content,
            reason=reason_of(d),
        )
    )
    d.set_id(coerce_str(sticker.get("id")))
    return await _read_sticker(ctx, d)


async def _read_sticker(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    sticker = await read_or_gone(ctx, d, _guild_object_path(d, "stickers", d.id))
    if d.is_gone:
        return []
    sticker = as_object(sticker)
    for key in ("name", "description", "tags"):
        d.set(key, coerce_str(sticker.get(key)))
    d.set("format_type", coerce_int(sticker.get("format_type"), 0))
    return []


async def _update_sticker(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = changed_fields(d, ("name", "description", "tags"))
    if body:
        await ctx.rest.do_json(
            "PATCH",
            _guild_object_path(d, "stickers", d.id),
            body=body,
            reason=reason_of(d),
        )
    return await _read_sticker(ctx, d)


STICKER = Resource(
    name="discord_sticker",
    create=_create_sticker,
    read=_read_sticker,
    update=_update_sticker,
    delete=_delete_from("stickers"),
    importer=import_child_id("server_id"),
)


def _volume(d: ResourceData) -> float:
    value = d.get("volume")
    try:
        return float(value) if value is not None else DEFAULT_SOUND_VOLUME
    except (TypeError, ValueError):
        return DEFAULT_SOUND_VOLUME


async def _create_sound(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body: dict[str, Any] = {
        "name": coerce_str(d.get("name")),
        "sound": file_data_uri(coerce_str(d.get("sound_file_path"))),
        "volume": _volume(d),
    }
    for key in ("emoji_id", "emoji_name"):
        value = coerce_str(d.get(key))
        if value:
            body[key] = value
    sound = as_object(
        await ctx.rest.do_json(
            "POST",
            _guild_object_path(d, "soundboard-sounds"),
            body=body,
            reason=reason_of(d),
        )
    )
    d.set_id(coerce_str(sound.get("sound_id")))
    return await _read_sound(ctx, d)


async def _read_sound(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    sound = await read_or_gone(
        ctx, d, _guild_object_path(d, "soundboard-sounds", d.id)
    )
    if d.is_gone:
        return []
    sound = as_object(sound)
    d.set("name", coerce_str(sound.get("name")))
    d.set("volume", float(sound.get("volume") or 0.0))
    d.set("emoji_id", coerce_str(sound.get("emoji_id")))
    d.set("emoji_name", coerce_str(sound.get("emoji_name")))
    d.set("available", coerce_bool(sound.get("available")))
    return []


async def _update_sound(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = changed_fields(
        d,
        ("name", "volume", "emoji_id", "emoji_name"),
        blank_as_null=("emoji_id", "emoji_name"),
    )
    if "volume" in body:
        body["volume"] = _volume(d)
    if body:
        await ctx.rest.do_json(
            "PATCH",
            _guild_object_path(d, "soundboard-sounds", d.id),
            body=body,
            reason=reason_of(d),
        )
    return await _read_sound(ctx, d)


SOUNDBOARD_SOUND = Resource(
    name="discord_soundboard_sound",
    create=_create_sound,
    read=_read_sound,
    update=_update_sound,
    delete=_delete_from("soundboard-sounds"),
    importer=import_child_id("server_id"),
)
