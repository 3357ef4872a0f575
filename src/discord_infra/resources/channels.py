"""Guild channels.

``discord_channel`` covers every non-thread channel kind through the REST API.
The older per-kind resources (``discord_text_channel`` and friends) keep their
original field names and category permission syncing: when
``sync_perms_with_category`` is true the channel is PATCHed with
``lock_permissions``. Setting it back to false sends nothing; the overwrites
stay as they are until changed some other way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..channel_types import (
    THREAD_CHANNEL_TYPES,
    channel_type_code,
    channel_type_name,
    lookup_channel_type_code,
)
from ..core.coercion import coerce_bool, coerce_int, coerce_str
from ..errors import InvalidInputError
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    changed_fields,
    delete_ignoring_404,
    read_or_gone,
    reason_of,
)
from .channel_permissions import Overwrite

if TYPE_CHECKING:
    from ..context import ProviderContext

SCALAR_FIELDS = (
    "topic",
    "nsfw",
    "rate_limit_per_user",
    "bitrate",
    "user_limit",
    "rtc_region",
    "video_quality_mode",
    "default_auto_archive_duration",
    "default_thread_rate_limit_per_user",
    "default_sort_order",
    "default_forum_layout",
)
INT_FIELDS = frozenset(
    {
        "position",
        "rate_limit_per_user",
        "bitrate",
        "user_limit",
        "video_quality_mode",
        "default_auto_archive_duration",
        "default_thread_rate_limit_per_user",
        "default_sort_order",
        "default_forum_layout",
    }
)


def expand_forum_tags(items: Any) -> list[dict[str, Any]]:
    tags = []
    for raw in as_list(items):
        item = as_object(raw)
        tag: dict[str, Any] = {
            "name": coerce_str(item.get("name")),
            "moderated": coerce_bool(item.get("moderated")),
        }
        if item.get("id"):
            tag["id"] = coerce_str(item.get("id"))
        if item.get("emoji_id"):
            tag["emoji_id"] = coerce_str(item.get("emoji_id"))
        if item.get("emoji_name"):
            tag["emoji_name"] = coerce_str(item.get("emoji_name"))
        tags.append(tag)
    return tags


def flatten_forum_tags(items: Any) -> list[dict[str, Any]]:
    return [
        {
            "id": coerce_str(item.get("id")),
            "name": coerce_str(item.get("name")),
            "moderated": coerce_bool(item.get("moderated")),
            "emoji_id": coerce_str(item.get("emoji_id")),
            "emoji_name": coerce_str(item.get("emoji_name")),
        }
        for item in map(as_object, as_list(items))
    ]


def _reaction_emoji(d: ResourceData) -> Optional[dict[str, str]]:
    items = as_list(d.get("default_reaction_emoji"))
    if not items:
        return None
    first = as_object(items[0])
    return {
        "emoji_id": coerce_str(first.get("emoji_id")),
        "emoji_name": coerce_str(first.get("emoji_name")),
    }


def _create_body(d: ResourceData) -> dict[str, Any]:
    kind = coerce_str(d.get("type"))
    if kind in THREAD_CHANNEL_TYPES:
        raise InvalidInputError(
            f"channel type {kind} must be created with discord_thread"
        )
    body: dict[str, Any] = {
        "type": channel_type_code(kind),
        "name": coerce_str(d.get("name")),
    }
    for key in ("position", *SCALAR_FIELDS):
        value, ok = d.get_ok(key)
        if ok:
            body[key] = value
    parent_id = coerce_str(d.get("parent_id"))
    if parent_id:
        body["parent_id"] = parent_id
    tags, ok = d.get_ok("available_tag")
    if ok:
        body["available_tags"] = expand_forum_tags(tags)
    emoji = _reaction_emoji(d)
    if emoji is not None:
        body["default_reaction_emoji"] = emoji
    return body


async def _create_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    out = as_object(
        await ctx.rest.do_json(
            "POST",
            f"/guilds/{coerce_str(d.get('server_id'))}/channels",
            body=_create_body(d),
            reason=reason_of(d),
        )
    )
    d.set_id(coerce_str(out.get("id")))
    return await _read_channel(ctx, d)


async def _read_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    out = await read_or_gone(ctx, d, f"/channels/{d.id}")
    if d.is_gone:
        return []
    channel = as_object(out)
    d.set("type", channel_type_name(coerce_int(channel.get("type"), 0) or 0))
    d.set("server_id", coerce_str(channel.get("guild_id")))
    d.set("name", coerce_str(channel.get("name")))
    d.set("position", coerce_int(channel.get("position"), 0))
    d.set("parent_id", coerce_str(channel.get("parent_id")) or None)
    for key in SCALAR_FIELDS:
        value = channel.get(key)
        if key in INT_FIELDS:
            value = coerce_int(value, 0)
        elif key == "nsfw":
            value = coerce_bool(value)
        else:
            value = coerce_str(value)
        d.set(key, value)
    d.set("available_tag", flatten_forum_tags(channel.get("available_tags")))
    emoji = channel.get("default_reaction_emoji")
    if isinstance(emoji, dict):
        d.set(
            "default_reaction_emoji",
            [
                {
                    "emoji_id": coerce_str(emoji.get("emoji_id")),
                    "emoji_name": coerce_str(emoji.get("emoji_name")),
                }
            ],
        )
    else:
        d.set("default_reaction_emoji", None)
    return []


async def _update_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = changed_fields(
        d,
        ("name", "position", "parent_id", *SCALAR_FIELDS),
        blank_as_null=("parent_id",),
    )
    if d.has_change("available_tag"):
        body["available_tags"] = expand_forum_tags(d.get("available_tag"))
    if d.has_change("default_reaction_emoji"):
        body["default_reaction_emoji"] = _reaction_emoji(d)
    if body:
        await ctx.rest.do_json(
            "PATCH", f"/channels/{d.id}", body=body, reason=reason_of(d)
        )
    return await _read_channel(ctx, d)


async def _delete_channel(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(ctx, "DELETE", f"/channels/{d.id}", reason=reason_of(d))
    return []


CHANNEL = Resource(
    name="discord_channel",
    create=_create_channel,
    read=_read_channel,
    update=_update_channel,
    delete=_delete_channel,
)


def validate_legacy_channel(d: ResourceData, kind: str) -> None:
    declared = coerce_str(d.get("type")) or kind
    if declared != kind:
        raise InvalidInputError(f"type must be {kind}, {declared} passed")
    if kind == "category":
        if d.get_ok("category")[1]:
            raise InvalidInputError("category cannot be a child of another category")
        if d.get_ok("nsfw")[1]:
            raise InvalidInputError("nsfw is not allowed on categories")
    if kind == "voice":
        if d.get_ok("topic")[1]:
            raise InvalidInputError("topic is not allowed on voice channels")
        if d.get_ok("nsfw")[1]:
            raise InvalidInputError("nsfw is not allowed on voice channels")
    if kind == "text":
        if d.get_ok("bitrate")[1]:
            raise InvalidInputError("bitrate is not allowed on text channels")
        if (coerce_int(d.get("user_limit"), 0) or 0) > 0:
            raise InvalidInputError("user_limit is not allowed on text channels")
        name = coerce_str(d.get("name"))
        if name.lower() != name:
            raise InvalidInputError("name must be lowercase")


def overwrites_equal(a: list[Overwrite], b: list[Overwrite]) -> bool:
    if len(a) != len(b):
        return False
    return {o.key: (o.allow, o.deny) for o in a} == {
        o.key: (o.allow, o.deny) for o in b
    }


def _overwrites_of(channel: dict[str, Any]) -> list[Overwrite]:
    return [
        Overwrite.from_remote(as_object(raw))
        for raw in as_list(channel.get("permission_overwrites"))
    ]


def _sync_perms(d: ResourceData) -> bool:
    return coerce_bool(d.get("sync_perms_with_category"), default=True)


def legacy_channel_resource(kind: str) -> Resource:
    kind_code = channel_type_code(kind)

    async def create(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        validate_legacy_channel(d, kind)
        server_id = coerce_str(d.get("server_id"))
        body: dict[str, Any] = {
            "name": coerce_str(d.get("name")),
            "type": kind_code,
        }
        position = coerce_int(d.get("position"), 1)
        if position:
            body["position"] = position
        if kind == "text":
            if coerce_str(d.get("topic")):
                body["topic"] = coerce_str(d.get("topic"))
            if coerce_bool(d.get("nsfw")):
                body["nsfw"] = True
        elif kind == "voice":
            if coerce_int(d.get("bitrate"), 0):
                body["bitrate"] = coerce_int(d.get("bitrate"), 0)
            if coerce_int(d.get("user_limit"), 0):
                body["user_limit"] = coerce_int(d.get("user_limit"), 0)
        if kind != "category" and coerce_str(d.get("category")):
            body["parent_id"] = coerce_str(d.get("category"))

        out = as_object(
            await ctx.rest.do_json(
                "POST",
                f"/guilds/{server_id}/channels",
                body=body,
                reason=reason_of(d),
            )
        )
        channel_id = coerce_str(out.get("id"))
        d.set_id(channel_id)
        d.set("server_id", server_id)
        category = coerce_str(d.get("category"))
        if kind != "category" and category and _sync_perms(d):
            parent_id = coerce_str(out.get("parent_id")) or category
            await ctx.rest.do_json(
                "PATCH",
                f"/channels/{channel_id}",
                body={"parent_id": parent_id, "lock_permissions": True},
                reason=reason_of(d),
                expect_json=False,
            )
        return await read(ctx, d)

    async def read(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        out = await read_or_gone(ctx, d, f"/channels/{d.id}")
        if d.is_gone:
            return []
        channel = as_object(out)
        code = coerce_int(channel.get("type"), 0) or 0
        remote_kind = channel_type_name(code)
        if lookup_channel_type_code(remote_kind) is None:
            raise InvalidInputError(f"invalid channel type: {code}")
        d.set("type", remote_kind)
        d.set("name", coerce_str(channel.get("name")))
        d.set("position", coerce_int(channel.get("position"), 0))
        if remote_kind == "text":
            d.set("topic", coerce_str(channel.get("topic")))
            d.set("nsfw", coerce_bool(channel.get("nsfw")))
        elif remote_kind == "voice":
            d.set("bitrate", coerce_int(channel.get("bitrate"), 0))
            d.set("user_limit", coerce_int(channel.get("user_limit"), 0))
        parent_id = coerce_str(channel.get("parent_id"))
        if remote_kind != "category":
            if parent_id:
                parent = as_object(
                    await ctx.rest.do_json("GET", f"/channels/{parent_id}")
                )
                d.set(
                    "sync_perms_with_category",
                    overwrites_equal(
                        _overwrites_of(channel), _overwrites_of(parent)
                    ),
                )
            else:
                d.set("sync_perms_with_category", False)
        d.set("category", parent_id or None)
        return []

    async def update(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        validate_legacy_channel(d, kind)
        keys = ["name", "position"]
        if kind == "text":
            keys += ["topic", "nsfw"]
        elif kind == "voice":
            keys += ["bitrate", "user_limit"]
        body = changed_fields(d, keys)
        if kind != "category":
            category = coerce_str(d.get("category"))
            if d.has_change("category"):
                body["parent_id"] = category or None
            if d.has_changes("sync_perms_with_category", "category"):
                if _sync_perms(d) and category:
                    body["lock_permissions"] = True
        if body:
            await ctx.rest.do_json(
                "PATCH",
                f"/channels/{d.id}",
                body=body,
                reason=reason_of(d),
                expect_json=False,
            )
        return await read(ctx, d)

    return Resource(
        name=f"discord_{kind}_channel",
        create=create,
        read=read,
        update=update,
        delete=_delete_channel,
    )


TEXT_CHANNEL = legacy_channel_resource("text")
VOICE_CHANNEL = legacy_channel_resource("voice")
CATEGORY_CHANNEL = legacy_channel_resource("category")
