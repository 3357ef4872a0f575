"""Messages, threads, and thread membership."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from ..channel_types import THREAD_CHANNEL_TYPES, channel_type_code, channel_type_name
from ..core.coercion import coerce_bool, coerce_int, coerce_str, coerce_str_list
from ..core.logging_utils import log_event
from ..errors import DiscordHTTPError, InvalidInputError
from ..ids import pack_two_ids, parse_two_ids
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_object,
    changed_fields,
    delete_ignoring_404,
    import_child_id,
    import_composite_id,
    read_or_gone,
    reason_of,
)
from .embeds import build_embed, flatten_embed

if TYPE_CHECKING:
    from ..context import ProviderContext

logger = logging.getLogger(__name__)

DEFAULT_THREAD_TYPE = "public_thread"


def _message_path(d: ResourceData) -> str:
    return f"/channels/{coerce_str(d.get('channel_id'))}/messages/{d.id}"


def _pin_path(d: ResourceData) -> str:
    return f"/channels/{coerce_str(d.get('channel_id'))}/pins/{d.id}"


def _set_message_fields(d: ResourceData, message: dict[str, Any]) -> None:
    embeds = message.get("embeds") or []
    d.set("type", coerce_int(message.get("type"), 0))
    d.set("tts", coerce_bool(message.get("tts")))
    d.set("timestamp", coerce_str(message.get("timestamp")))
    d.set("author", coerce_str(as_object(message.get("author")).get("id")))
    d.set("content", coerce_str(message.get("content")))
    d.set("pinned", coerce_bool(message.get("pinned")))
    d.set("embed", flatten_embed(embeds[0]) if embeds else [])
    d.set("edited_timestamp", coerce_str(message.get("edited_timestamp")))


async def _lookup_server_id(ctx: "ProviderContext", d: ResourceData) -> None:
    """Best effort: a missing guild id does not fail the create."""
    channel_id = coerce_str(d.get("channel_id"))
    try:
        channel = as_object(await ctx.rest.do_json("GET", f"/channels/{channel_id}"))
    except DiscordHTTPError as exc:
        log_event(
            logger,
            logging.DEBUG,
            "discord.message.server_lookup_failed",
            channel_id=channel_id,
            exc=exc,
        )
        return
    server_id = coerce_str(channel.get("guild_id"))
    if server_id:
        d.set("server_id", server_id)


async def _create_message(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id"))
    await _lookup_server_id(ctx, d)
    body: dict[str, Any] = {
        "content": coerce_str(d.get("content")),
        "tts": coerce_bool(d.get("tts")),
    }
    embed = build_embed(d.get("embed"))
    if embed:
        body["embeds"] = [embed]
    message = as_object(
        await ctx.rest.do_json("POST", f"/channels/{channel_id}/messages", body=body)
    )
    d.set_id(coerce_str(message.get("id")))
    if coerce_bool(d.get("pinned")):
        await ctx.rest.do_json(
            "PUT", _pin_path(d), reason=reason_of(d), expect_json=False
        )
    return await _read_message(ctx, d)


async def _read_message(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    message = await read_or_gone(ctx, d, _message_path(d))
    if d.is_gone:
        return []
    _set_message_fields(d, as_object(message))
    return []


async def _update_message(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    edit: dict[str, Any] = {}
    if d.has_change("content"):
        edit["content"] = coerce_str(d.get("content"))
    if d.has_change("embed"):
        embed = build_embed(d.get("embed"))
        # An empty list clears the embeds.
        edit["embeds"] = [embed] if embed else []
    if edit:
        await ctx.rest.do_json("PATCH", _message_path(d), body=edit)
    if d.has_change("pinned"):
        method = "PUT" if coerce_bool(d.get("pinned")) else "DELETE"
        await ctx.rest.do_json(
            method, _pin_path(d), reason=reason_of(d), expect_json=False
        )
    return await _read_message(ctx, d)


async def _delete_message(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(ctx, "DELETE", _message_path(d), reason=reason_of(d))
    return []


MESSAGE = Resource(
    name="discord_message",
    create=_create_message,
    read=_read_message,
    update=_update_message,
    delete=_delete_message,
    importer=import_child_id("channel_id"),
)


def thread_type_code(name: str) -> int:
    name = name or DEFAULT_THREAD_TYPE
    if name not in THREAD_CHANNEL_TYPES:
        raise InvalidInputError(f"unsupported thread type: {name}")
    return channel_type_code(name)


def _starter_message(d: ResourceData) -> Optional[dict[str, Any]]:
    """Forum and media threads open with a message."""
    message: dict[str, Any] = {}
    content = coerce_str(d.get("content"))
    if content:
        message["content"] = content
    embed = build_embed(d.get("embed"))
    if embed:
        message["embeds"] = [embed]
    return message or None


def thread_create_body(d: ResourceData) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": coerce_str(d.get("name")),
        "type": thread_type_code(coerce_str(d.get("type"))),
    }
    for key in ("auto_archive_duration", "rate_limit_per_user"):
        value = coerce_int(d.get(key), 0)
        if value:
            body[key] = value
    if coerce_bool(d.get("invitable")):
        body["invitable"] = True
    tags = coerce_str_list(d.get("applied_tags"))
    if tags:
        body["applied_tags"] = tags
    message = _starter_message(d)
    if message:
        body["message"] = message
    return body


async def _create_thread(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    parent_id = coerce_str(d.get("channel_id"))
    message_id = coerce_str(d.get("message_id"))
    if message_id:
        path = f"/channels/{parent_id}/messages/{message_id}/threads"
    else:
        path = f"/channels/{parent_id}/threads"
    thread = as_object(
        await ctx.rest.do_json(
            "POST", path, body=thread_create_body(d), reason=reason_of(d)
        )
    )
    d.set_id(coerce_str(thread.get("id")))
    return await _read_thread(ctx, d)


async def _read_thread(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    thread = await read_or_gone(ctx, d, f"/channels/{d.id}")
    if d.is_gone:
        return []
    thread = as_object(thread)
    kind = channel_type_name(coerce_int(thread.get("type"), 0) or 0)
    if kind in THREAD_CHANNEL_TYPES:
        d.set("type", kind)
    d.set("server_id", coerce_str(thread.get("guild_id")))
    d.set("channel_id", coerce_str(thread.get("parent_id")))
    d.set("name", coerce_str(thread.get("name")))
    d.set("rate_limit_per_user", coerce_int(thread.get("rate_limit_per_user"), 0))
    metadata = thread.get("thread_metadata")
    if isinstance(metadata, dict):
        d.set("archived", coerce_bool(metadata.get("archived")))
        d.set("locked", coerce_bool(metadata.get("locked")))
        d.set("invitable", coerce_bool(metadata.get("invitable")))
        d.set(
            "auto_archive_duration",
            coerce_int(metadata.get("auto_archive_duration"), 0),
        )
    d.set("applied_tags", coerce_str_list(thread.get("applied_tags")))
    return []


async def _update_thread(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body = changed_fields(
        d,
        (
            "name",
            "rate_limit_per_user",
            "archived",
            "locked",
            "auto_archive_duration",
            "invitable",
            "applied_tags",
        ),
    )
    if "applied_tags" in body:
        body["applied_tags"] = coerce_str_list(body["applied_tags"])
    if body:
        await ctx.rest.do_json(
            "PATCH",
            f"/channels/{d.id}",
            body=body,
            reason=reason_of(d),
            expect_json=False,
        )
    return await _read_thread(ctx, d)


async def _delete_thread(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(ctx, "DELETE", f"/channels/{d.id}", reason=reason_of(d))
    return []


THREAD = Resource(
    name="discord_thread",
    create=_create_thread,
    read=_read_thread,
    update=_update_thread,
    delete=_delete_thread,
)


def _thread_member_path(thread_id: str, user_id: str) -> str:
    return f"/channels/{thread_id}/thread-members/{user_id}"


async def _add_thread_member(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    thread_id = coerce_str(d.get("thread_id"))
    user_id = coerce_str(d.get("user_id"))
    await ctx.rest.do_json(
        "PUT",
        _thread_member_path(thread_id, user_id),
        reason=reason_of(d),
        expect_json=False,
    )
    d.set_id(pack_two_ids(thread_id, user_id))
    return await _read_thread_member(ctx, d)


async def _read_thread_member(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    thread_id, user_id = parse_two_ids(d.id)
    member = await read_or_gone(ctx, d, _thread_member_path(thread_id, user_id))
    if d.is_gone:
        return []
    member = as_object(member)
    d.set("thread_id", thread_id)
    d.set("user_id", user_id)
    d.set("join_timestamp", coerce_str(member.get("join_timestamp")))
    d.set("flags", coerce_int(member.get("flags"), 0))
    return []


async def _remove_thread_member(
    ctx: "ProviderContext", d: ResourceData
) -> Diagnostics:
    thread_id, user_id = parse_two_ids(d.id)
    await delete_ignoring_404(
        ctx,
        "DELETE",
        _thread_member_path(thread_id, user_id),
        reason=reason_of(d),
    )
    return []


THREAD_MEMBER = Resource(
    name="discord_thread_member",
    create=_add_thread_member,
    read=_read_thread_member,
    delete=_remove_thread_member,
    importer=import_composite_id("thread_id", "user_id"),
)
