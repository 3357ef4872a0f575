"""Bulk channel and role ordering.

Both resources forward the declared order in one PATCH and read positions back
in declared order so diffs stay stable. Destroying them changes nothing
remotely.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from ..core.coercion import coerce_int, coerce_str
from ..errors import ResourceNotFoundError
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    noop_delete,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext


def expand_channel_positions(
    items: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    body: list[dict[str, Any]] = []
    for item in items:
        entry: dict[str, Any] = {
            "id": coerce_str(item.get("channel_id")),
            "position": coerce_int(item.get("position"), 0),
        }
        parent_id = coerce_str(item.get("parent_id"))
        if parent_id:
            entry["parent_id"] = parent_id
        if item.get("lock_permissions") is not None:
            entry["lock_permissions"] = bool(item.get("lock_permissions"))
        body.append(entry)
    return body


def expand_role_positions(items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "id": coerce_str(item.get("role_id")),
            "position": coerce_int(item.get("position"), 0),
        }
        for item in items
    ]


def _server_id(d: ResourceData) -> str:
    return d.id or coerce_str(d.get("server_id"))


def _index_by_id(items: Any) -> dict[str, dict[str, Any]]:
    index: dict[str, dict[str, Any]] = {}
    for raw in as_list(items):
        item = as_object(raw)
        index[coerce_str(item.get("id"))] = item
    return index


async def _apply_channel_order(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    body = expand_channel_positions(map(as_object, as_list(d.get("channel"))))
    await ctx.rest.do_json(
        "PATCH",
        f"/guilds/{server_id}/channels",
        body=body,
        reason=reason_of(d),
        expect_json=False,
    )
    d.set_id(server_id)
    return await _read_channel_order(ctx, d)


async def _read_channel_order(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = _server_id(d)
    channels = await read_or_gone(ctx, d, f"/guilds/{server_id}/channels")
    if d.is_gone:
        return []
    index = _index_by_id(channels)
    refreshed = []
    for item in map(as_object, as_list(d.get("channel"))):
        channel_id = coerce_str(item.get("channel_id"))
        remote = index.get(channel_id)
        if remote is None:
            raise ResourceNotFoundError(
                f"channel_id {channel_id} not found in server {server_id}"
            )
        refreshed.append(
            {
                "channel_id": channel_id,
                "position": coerce_int(remote.get("position"), 0),
                "parent_id": coerce_str(remote.get("parent_id")),
                "lock_permissions": item.get("lock_permissions"),
            }
        )
    d.set_id(server_id)
    d.set("server_id", server_id)
    d.set("channel", refreshed)
    return []


async def _apply_role_order(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    body = expand_role_positions(map(as_object, as_list(d.get("role"))))
    await ctx.rest.do_json(
        "PATCH",
        f"/guilds/{server_id}/roles",
        body=body,
        reason=reason_of(d),
        expect_json=False,
    )
    d.set_id(server_id)
    return await _read_role_order(ctx, d)


async def _read_role_order(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = _server_id(d)
    roles = await read_or_gone(ctx, d, f"/guilds/{server_id}/roles")
    if d.is_gone:
        return []
    index = _index_by_id(roles)
    refreshed = []
    for item in map(as_object, as_list(d.get("role"))):
        role_id = coerce_str(item.get("role_id"))
        remote = index.get(role_id)
        if remote is None:
            raise ResourceNotFoundError(
                f"role_id {role_id} not found in server {server_id}"
            )
        refreshed.append(
            {"role_id": role_id, "position": coerce_int(remote.get("position"), 0)}
        )
    d.set_id(server_id)
    d.set("server_id", server_id)
    d.set("role", refreshed)
    return []


def _import_server_id(d: ResourceData) -> None:
    d.set("server_id", d.id)


CHANNEL_ORDER = Resource(
    name="discord_channel_order",
    create=_apply_channel_order,
    read=_read_channel_order,
    update=_apply_channel_order,
    delete=noop_delete(
        "discord_channel_order",
        "channel order is left as is; only local state is removed",
    ),
    importer=_import_server_id,
)

ROLE_ORDER = Resource(
    name="discord_role_order",
    create=_apply_role_order,
    read=_read_role_order,
    update=_apply_role_order,
    delete=noop_delete(
        "discord_role_order",
        "role order is left as is; only local state is removed",
    ),
    importer=_import_server_id,
)
