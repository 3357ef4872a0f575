"""Registry of every resource and data source the provider serves."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from . import data_sources, lookups
from .context import ProviderContext, build_context
from .errors import DiscordError
from .resources import (
    api_resource,
    channel_permissions,
    channels,
    events,
    expressions,
    guild,
    members,
    messages,
    ordering,
    passthrough,
    roles,
    webhooks,
)
from .resources.base import Diagnostics, Resource, ResourceData


def _by_name(*resources: Resource) -> dict[str, Resource]:
    return {resource.name: resource for resource in resources}


RESOURCES: dict[str, Resource] = {
    **_by_name(
        api_resource.RESOURCE,
        channel_permissions.CHANNEL_PERMISSIONS,
        channel_permissions.CHANNEL_PERMISSION,
        ordering.CHANNEL_ORDER,
        ordering.ROLE_ORDER,
        roles.ROLE,
        roles.ROLE_EVERYONE,
        members.MEMBER_ROLES,
        members.MEMBER_NICKNAME,
        members.MEMBER_TIMEOUT,
        members.BAN,
        channels.CHANNEL,
        channels.TEXT_CHANNEL,
        channels.VOICE_CHANNEL,
        channels.CATEGORY_CHANNEL,
        guild.SERVER,
        guild.SYSTEM_CHANNEL,
        webhooks.WEBHOOK,
        webhooks.INVITE,
        expressions.EMOJI,
        expressions.STICKER,
        expressions.SOUNDBOARD_SOUND,
        events.SCHEDULED_EVENT,
        events.STAGE_INSTANCE,
        messages.MESSAGE,
        messages.THREAD,
        messages.THREAD_MEMBER,
    ),
    **passthrough.RESOURCES,
}

DATA_SOURCES: dict[str, data_sources.DataSource] = {
    source.name: source
    for source in (
        data_sources.API_REQUEST,
        data_sources.PERMISSION,
        data_sources.COLOR,
        data_sources.LOCAL_IMAGE,
        lookups.CHANNEL,
        lookups.ROLE,
        lookups.MEMBER,
        lookups.SERVER,
        lookups.SYSTEM_CHANNEL,
        lookups.EMOJIS,
        lookups.STICKERS,
        lookups.SOUNDBOARD_SOUNDS,
        lookups.SOUNDBOARD_DEFAULT_SOUNDS,
        lookups.THREAD_MEMBERS,
    )
}


def get_resource(name: str) -> Resource:
    try:
        return RESOURCES[name]
    except KeyError:
        raise DiscordError(f"unknown resource type: {name}") from None


def get_data_source(name: str) -> data_sources.DataSource:
    try:
        return DATA_SOURCES[name]
    except KeyError:
        raise DiscordError(f"unknown data source: {name}") from None


async def apply(
    ctx: ProviderContext,
    name: str,
    config: Mapping[str, Any],
    *,
    prior: Optional[Mapping[str, Any]] = None,
) -> tuple[ResourceData, Diagnostics]:
    """Create or update one resource instance, as a host would after planning.

    Resources without an update callback are replaced: the prior object is
    deleted and a new one created.
    """
    resource = get_resource(name)
    prior_state = dict(prior or {})
    prior_id = str(prior_state.pop("id", "") or "")
    if not prior_id:
        d = resource.data(config)
        return d, await resource.create(ctx, d)
    d = resource.data(config, prior=prior_state, id=prior_id)
    if resource.update is not None:
        return d, await resource.update(ctx, d)
    diagnostics = await resource.delete(ctx, d)
    replacement = resource.data(config)
    diagnostics += await resource.create(ctx, replacement)
    return replacement, diagnostics


async def refresh(
    ctx: ProviderContext, name: str, state: Mapping[str, Any]
) -> tuple[ResourceData, Diagnostics]:
    resource = get_resource(name)
    values = dict(state)
    resource_id = str(values.pop("id", "") or "")
    d = resource.data(prior=values, id=resource_id)
    return d, await resource.read(ctx, d)


async def destroy(
    ctx: ProviderContext, name: str, state: Mapping[str, Any]
) -> Diagnostics:
    resource = get_resource(name)
    values = dict(state)
    resource_id = str(values.pop("id", "") or "")
    d = resource.data(prior=values, id=resource_id)
    return await resource.delete(ctx, d)


__all__ = [
    "DATA_SOURCES",
    "RESOURCES",
    "apply",
    "build_context",
    "destroy",
    "get_data_source",
    "get_resource",
    "refresh",
]
