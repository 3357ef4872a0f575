from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from ..bits64 import desired_permission_value, permission_fields
from ..core.coercion import coerce_bool, coerce_int, coerce_str
from ..core.logging_utils import log_event
from ..errors import (
    DiscordHTTPError,
    InvalidInputError,
    PositionOutOfBoundsError,
    ResourceNotFoundError,
    is_discord_http_status,
)
from ..rest import DiscordRestClient
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    delete_ignoring_404,
    import_child_id,
    noop_delete,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

logger = logging.getLogger(__name__)


async def list_roles(rest: DiscordRestClient, server_id: str) -> list[dict[str, Any]]:
    roles = await rest.do_json("GET", f"/guilds/{server_id}/roles")
    return [as_object(role) for role in as_list(roles)]


async def swap_role_position(
    rest: DiscordRestClient,
    server_id: str,
    role_id: str,
    new_position: int,
    *,
    reason: Optional[str] = None,
) -> bool:
    """Move a role by swapping it with the role holding ``new_position``.

    Returns False when the role already sits there. Raises
    :class:`PositionOutOfBoundsError` when no role holds that position.
    """
    roles = await list_roles(rest, server_id)
    current: Optional[dict[str, Any]] = None
    occupant: Optional[dict[str, Any]] = None
    for role in roles:
        if coerce_str(role.get("id")) == role_id:
            current = role
        if coerce_int(role.get("position")) == new_position:
            occupant = role
    if current is None:
        raise ResourceNotFoundError(f"role {role_id} not found in server {server_id}")
    if occupant is None:
        raise PositionOutOfBoundsError(new_position)
    occupant_id = coerce_str(occupant.get("id"))
    if occupant_id == role_id:
        return False
    body = [
        {"id": occupant_id, "position": coerce_int(current.get("position"), 0)},
        {"id": role_id, "position": new_position},
    ]
    await rest.do_json(
        "PATCH", f"/guilds/{server_id}/roles", body=body, reason=reason
    )
    log_event(
        logger,
        logging.INFO,
        "discord.role.position_swapped",
        server_id=server_id,
        role_id=role_id,
        displaced_role_id=occupant_id,
        position=new_position,
    )
    return True


async def fetch_role(
    rest: DiscordRestClient, server_id: str, role_id: str
) -> dict[str, Any]:
    """Roles have no single-object GET; a missing role surfaces as a 404."""
    path = f"/guilds/{server_id}/roles"
    for role in await list_roles(rest, server_id):
        if coerce_str(role.get("id")) == role_id:
            return role
    raise DiscordHTTPError(
        method="GET", path=path, status=404, message="role not found"
    )


def _permissions(d: ResourceData) -> str:
    try:
        value = desired_permission_value(
            coerce_int(d.get("permissions"), 0) or 0,
            coerce_str(d.get("permissions_bits64")),
        )
    except InvalidInputError as exc:
        raise InvalidInputError(f"invalid permissions_bits64: {exc}") from exc
    return str(value)


def _role_body(d: ResourceData) -> dict[str, Any]:
    return {
        "name": coerce_str(d.get("name")),
        "permissions": _permissions(d),
        "color": coerce_int(d.get("color"), 0),
        "hoist": coerce_bool(d.get("hoist")),
        "mentionable": coerce_bool(d.get("mentionable")),
    }


def _set_permissions(d: ResourceData, raw: Any) -> None:
    native, canonical = permission_fields(coerce_str(raw))
    d.set("permissions", native)
    d.set("permissions_bits64", canonical)


async def _read_role(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    roles = await read_or_gone(ctx, d, f"/guilds/{server_id}/roles")
    if d.is_gone:
        return []
    for role in map(as_object, as_list(roles)):
        if coerce_str(role.get("id")) != d.id:
            continue
        d.set("name", coerce_str(role.get("name")))
        d.set("position", coerce_int(role.get("position"), 0))
        d.set("color", coerce_int(role.get("color"), 0))
        d.set("hoist", coerce_bool(role.get("hoist")))
        d.set("mentionable", coerce_bool(role.get("mentionable")))
        d.set("managed", coerce_bool(role.get("managed")))
        _set_permissions(d, role.get("permissions"))
        return []
    log_event(
        logger, logging.INFO, "discord.resource.gone", resource_id=d.id, path="role"
    )
    d.set_id("")
    return []


async def _create_role(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    role = as_object(
        await ctx.rest.do_json(
            "POST",
            f"/guilds/{server_id}/roles",
            body=_role_body(d),
            reason=reason_of(d),
        )
    )
    role_id = coerce_str(role.get("id"))
    d.set_id(role_id)
    position, has_position = d.get_ok("position")
    if has_position:
        await swap_role_position(
            ctx.rest, server_id, role_id, int(position), reason=reason_of(d)
        )
    return await _read_role(ctx, d)


async def _update_role(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    if d.has_change("position"):
        _, new_position = d.get_change("position")
        await swap_role_position(
            ctx.rest,
            server_id,
            d.id,
            coerce_int(new_position, 0) or 0,
            reason=reason_of(d),
        )
    await ctx.rest.do_json(
        "PATCH",
        f"/guilds/{server_id}/roles/{d.id}",
        body=_role_body(d),
        reason=reason_of(d),
    )
    return await _read_role(ctx, d)


async def _delete_role(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(
        ctx,
        "DELETE",
        f"/guilds/{coerce_str(d.get('server_id'))}/roles/{d.id}",
        reason=reason_of(d),
    )
    return []


ROLE = Resource(
    name="discord_role",
    create=_create_role,
    read=_read_role,
    update=_update_role,
    delete=_delete_role,
    importer=import_child_id("server_id"),
)


async def _read_everyone(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id")) or d.id
    try:
        role = await fetch_role(ctx.rest, server_id, server_id)
    except DiscordHTTPError as exc:
        if not is_discord_http_status(exc, 404):
            raise
        d.set_id("")
        return []
    d.set_id(server_id)
    d.set("server_id", server_id)
    _set_permissions(d, role.get("permissions"))
    return []


async def _write_everyone(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    server_id = coerce_str(d.get("server_id"))
    await ctx.rest.do_json(
        "PATCH",
        f"/guilds/{server_id}/roles/{server_id}",
        body={"permissions": _permissions(d)},
        reason=reason_of(d),
    )
    d.set_id(server_id)
    return await _read_everyone(ctx, d)


def _import_everyone(d: ResourceData) -> None:
    d.set("server_id", d.id)


ROLE_EVERYONE = Resource(
    name="discord_role_everyone",
    create=_write_everyone,
    read=_read_everyone,
    update=_write_everyone,
    delete=noop_delete(
        "discord_role_everyone",
        "the @everyone role cannot be deleted; its permissions are left as is",
    ),
    importer=_import_everyone,
)
