from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.coercion import coerce_bool, coerce_int, coerce_str
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_object,
    delete_ignoring_404,
    import_child_id,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

# GUILD_ONLY is the only privacy level the API accepts today.
DEFAULT_PRIVACY_LEVEL = 2


def _event_path(d: ResourceData, event_id: str = "") -> str:
    path = f"/guilds/{coerce_str(d.get('server_id'))}/scheduled-events"
    return f"{path}/{event_id}" if event_id else path


def scheduled_event_body(d: ResourceData, *, include_status: bool) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": coerce_str(d.get("name")),
        "scheduled_start_time": coerce_str(d.get("scheduled_start_time")),
        "privacy_level": coerce_int(d.get("privacy_level"), DEFAULT_PRIVACY_LEVEL),
        "entity_type": coerce_int(d.get("entity_type"), 0),
    }
    for key in ("description", "scheduled_end_time", "channel_id"):
        value = coerce_str(d.get(key))
        if value:
            body[key] = value
    location = coerce_str(d.get("location"))
    if location:
        body["entity_metadata"] = {"location": location}
    image = coerce_str(d.get("image_data_uri"))
    if image:
        body["image"] = image
    if include_status:
        status = coerce_int(d.get("status"), 0)
        if status:
            body["status"] = status
    return body


async def _create_event(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    event = as_object(
        await ctx.rest.do_json(
            "POST",
            _event_path(d),
            body=scheduled_event_body(d, include_status=False),
            reason=reason_of(d),
        )
    )
    d.set_id(coerce_str(event.get("id")))
    return await _read_event(ctx, d)


async def _read_event(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    event = await read_or_gone(ctx, d, _event_path(d, d.id))
    if d.is_gone:
        return []
    event = as_object(event)
    for key in (
        "name",
        "description",
        "scheduled_start_time",
        "scheduled_end_time",
        "channel_id",
    ):
        d.set(key, coerce_str(event.get(key)))
    for key in ("privacy_level", "entity_type", "status"):
        d.set(key, coerce_int(event.get(key), 0))
    metadata = as_object(event.get("entity_metadata"))
    d.set("location", coerce_str(metadata.get("location")))
    d.set("image_hash", coerce_str(event.get("image")))
    return []


async def _update_event(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await ctx.rest.do_json(
        "PATCH",
        _event_path(d, d.id),
        body=scheduled_event_body(d, include_status=True),
        reason=reason_of(d),
    )
    return await _read_event(ctx, d)


async def _delete_event(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(
        ctx, "DELETE", _event_path(d, d.id), reason=reason_of(d)
    )
    return []


SCHEDULED_EVENT = Resource(
    name="discord_scheduled_event",
    create=_create_event,
    read=_read_event,
    update=_update_event,
    delete=_delete_event,
    importer=import_child_id("server_id"),
)


async def _create_stage(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id"))
    body: dict[str, Any] = {
        "channel_id": channel_id,
        "topic": coerce_str(d.get("topic")),
        "privacy_level": coerce_int(d.get("privacy_level"), DEFAULT_PRIVACY_LEVEL),
    }
    if coerce_bool(d.get("send_start_notification")):
        body["send_start_notification"] = True
    event_id = coerce_str(d.get("scheduled_event_id"))
    if event_id:
        body["guild_scheduled_event_id"] = event_id
    await ctx.rest.do_json(
        "POST", "/stage-instances", body=body, reason=reason_of(d)
    )
    # A channel hosts at most one stage instance, so the channel id is the key.
    d.set_id(channel_id)
    return await _read_stage(ctx, d)


async def _read_stage(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    stage = await read_or_gone(ctx, d, f"/stage-instances/{d.id}")
    if d.is_gone:
        return []
    stage = as_object(stage)
    d.set("channel_id", coerce_str(stage.get("channel_id")) or d.id)
    d.set("topic", coerce_str(stage.get("topic")))
    d.set("privacy_level", coerce_int(stage.get("privacy_level"), 0))
    d.set("scheduled_event_id", coerce_str(stage.get("guild_scheduled_event_id")))
    d.set("server_id", coerce_str(stage.get("guild_id")))
    return []


async def _update_stage(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    body: dict[str, Any] = {}
    if d.has_change("topic"):
        body["topic"] = coerce_str(d.get("topic"))
    if d.has_change("privacy_level"):
        body["privacy_level"] = coerce_int(
            d.get("privacy_level"), DEFAULT_PRIVACY_LEVEL
        )
    if body:
        await ctx.rest.do_json(
            "PATCH",
            f"/stage-instances/{d.id}",
            body=body,
            reason=reason_of(d),
            expect_json=False,
        )
    return await _read_stage(ctx, d)


async def _delete_stage(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(
        ctx, "DELETE", f"/stage-instances/{d.id}", reason=reason_of(d)
    )
    return []


STAGE_INSTANCE = Resource(
    name="discord_stage_instance",
    create=_create_stage,
    read=_read_stage,
    update=_update_stage,
    delete=_delete_stage,
)
