from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.coercion import coerce_bool, coerce_int, coerce_str
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_object,
    delete_ignoring_404,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

DEFAULT_INVITE_MAX_AGE = 86400


async def _create_webhook(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body: dict[str, Any] = {"name": coerce_str(d.get("name"))}
    avatar = coerce_str(d.get("avatar_data_uri"))
    if avatar:
        body["avatar"] = avatar
    webhook = as_object(
        await ctx.rest.do_json(
            "POST",
            f"/channels/{coerce_str(d.get('channel_id'))}/webhooks",
            body=body,
            reason=reason_of(d),
        )
    )
    d.set_id(coerce_str(webhook.get("id")))
    return await _read_webhook(ctx, d)


async def _read_webhook(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    webhook = await read_or_gone(ctx, d, f"/webhooks/{d.id}")
    if d.is_gone:
        return []
    webhook = as_object(webhook)
    for key in ("channel_id", "guild_id", "name", "token", "url"):
        d.set(key, coerce_str(webhook.get(key)))
    return []


async def _update_webhook(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body: dict[str, Any] = {"name": coerce_str(d.get("name"))}
    if d.has_change("channel_id"):
        body["channel_id"] = coerce_str(d.get("channel_id"))
    if d.has_change("avatar_data_uri"):
        body["avatar"] = coerce_str(d.get("avatar_data_uri")) or None
    await ctx.rest.do_json(
        "PATCH", f"/webhooks/{d.id}", body=body, reason=reason_of(d)
    )
    return await _read_webhook(ctx, d)


async def _delete_webhook(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(ctx, "DELETE", f"/webhooks/{d.id}", reason=reason_of(d))
    return []


WEBHOOK = Resource(
    name="discord_webhook",
    create=_create_webhook,
    read=_read_webhook,
    update=_update_webhook,
    delete=_delete_webhook,
    sensitive=frozenset({"token", "url"}),
)


async def _create_invite(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body: dict[str, Any] = {
        "max_age": coerce_int(d.get("max_age"), DEFAULT_INVITE_MAX_AGE),
        "max_uses": coerce_int(d.get("max_uses"), 0),
        "temporary": coerce_bool(d.get("temporary")),
        "unique": coerce_bool(d.get("unique")),
    }
    invite = as_object(
        await ctx.rest.do_json(
            "POST",
            f"/channels/{coerce_str(d.get('channel_id'))}/invites",
            body={key: value for key, value in body.items() if value},
            reason=reason_of(d),
        )
    )
    code = coerce_str(invite.get("code"))
    d.set_id(code)
    d.set("code", code)
    return await _read_invite(ctx, d)


async def _read_invite(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    invite = await read_or_gone(ctx, d, f"/invites/{d.id}")
    if d.is_gone:
        return []
    d.set("code", coerce_str(as_object(invite).get("code")) or d.id)
    return []


async def _delete_invite(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(ctx, "DELETE", f"/invites/{d.id}", reason=reason_of(d))
    return []


INVITE = Resource(
    name="discord_invite",
    create=_create_invite,
    read=_read_invite,
    delete=_delete_invite,
)
