"""Guild member resources: role membership, nickname, timeout, and bans.

``discord_member_roles`` only manages the roles it declares, with one caveat:
a role dropped from the declaration (rather than flipped to
``has_role = false``) is removed from the member, even if the member gained it
some other way since.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from ..core.coercion import coerce_bool, coerce_int, coerce_str, coerce_str_list
from ..ids import hash_id, pack_two_ids, parse_two_ids
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    delete_ignoring_404,
    import_composite_id,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext


@dataclass(frozen=True)
class RoleMembership:
    role_id: str
    has_role: bool = True

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RoleMembership":
        return cls(
            role_id=coerce_str(raw.get("role_id")),
            has_role=coerce_bool(raw.get("has_role"), default=True),
        )


def parse_memberships(items: Any) -> list[RoleMembership]:
    return [RoleMembership.from_raw(as_object(item)) for item in as_list(items)]


def compute_member_roles(
    current: Iterable[str],
    desired: Iterable[RoleMembership],
    previous: Iterable[RoleMembership] = (),
) -> list[str]:
    """The member's full role list after applying the declared memberships.

    Roles the member holds that are not mentioned anywhere are kept, in their
    original order; added roles are appended.
    """
    roles = list(current)
    wanted = list(desired)
    for membership in wanted:
        held = membership.role_id in roles
        if membership.has_role and not held:
            roles.append(membership.role_id)
        elif not membership.has_role and held:
            roles = [role for role in roles if role != membership.role_id]
    declared = {membership.role_id for membership in wanted}
    for membership in previous:
        if membership.has_role and membership.role_id not in declared:
            roles = [role for role in roles if role != membership.role_id]
    return roles


def _member_key(d: ResourceData) -> str:
    return pack_two_ids(coerce_str(d.get("server_id")), coerce_str(d.get("user_id")))


def _member_path(d: ResourceData) -> str:
    server_id, user_id = d.get("server_id"), d.get("user_id")
    return f"/guilds/{coerce_str(server_id)}/members/{coerce_str(user_id)}"


async def _fetch_member_roles(ctx: "ProviderContext", d: ResourceData) -> list[str]:
    member = as_object(await ctx.rest.do_json("GET", _member_path(d)))
    return coerce_str_list(member.get("roles"))


async def _create_member_roles(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await _fetch_member_roles(ctx, d)
    d.set_id(hash_id(_member_key(d)))
    await _update_member_roles(ctx, d)
    return []


async def _read_member_roles(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    member = await read_or_gone(ctx, d, _member_path(d))
    if d.is_gone:
        return []
    held = set(coerce_str_list(as_object(member).get("roles")))
    d.set(
        "role",
        [
            {"role_id": membership.role_id, "has_role": membership.role_id in held}
            for membership in parse_memberships(d.get("role"))
        ],
    )
    return []


async def _update_member_roles(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    current = await _fetch_member_roles(ctx, d)
    previous, desired = d.get_change("role")
    roles = compute_member_roles(
        current, parse_memberships(desired), parse_memberships(previous)
    )
    await ctx.rest.do_json(
        "PATCH",
        _member_path(d),
        body={"roles": roles},
        reason=reason_of(d),
        expect_json=False,
    )
    return await _read_member_roles(ctx, d)


async def _delete_member_roles(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    current = await _fetch_member_roles(ctx, d)
    granted = {
        membership.role_id
        for membership in parse_memberships(d.get("role"))
        if membership.has_role
    }
    roles = [role for role in current if role not in granted]
    await ctx.rest.do_json(
        "PATCH",
        _member_path(d),
        body={"roles": roles},
        reason=reason_of(d),
        expect_json=False,
    )
    return []


def _import_member_roles(d: ResourceData) -> None:
    server_id, user_id = parse_two_ids(d.id)
    d.set("server_id", server_id)
    d.set("user_id", user_id)
    d.set_id(hash_id(d.id))


MEMBER_ROLES = Resource(
    name="discord_member_roles",
    create=_create_member_roles,
    read=_read_member_roles,
    update=_update_member_roles,
    delete=_delete_member_roles,
    importer=_import_member_roles,
)


def _bind_composite(d: ResourceData) -> None:
    if d.id:
        server_id, user_id = parse_two_ids(d.id)
        d.set("server_id", server_id)
        d.set("user_id", user_id)


async def _write_member_field(
    ctx: "ProviderContext", d: ResourceData, field_name: str, value: Any
) -> None:
    await ctx.rest.do_json(
        "PATCH",
        _member_path(d),
        body={field_name: value},
        reason=reason_of(d),
        expect_json=False,
    )


async def _clear_member_field(
    ctx: "ProviderContext", d: ResourceData, field_name: str
) -> None:
    _bind_composite(d)
    await delete_ignoring_404(
        ctx, "PATCH", _member_path(d), body={field_name: None}, reason=reason_of(d)
    )


async def _set_nickname(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    nick = coerce_str(d.get("nick"))
    await _write_member_field(ctx, d, "nick", nick or None)
    d.set_id(_member_key(d))
    return await _read_nickname(ctx, d)


async def _read_nickname(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    _bind_composite(d)
    member = await read_or_gone(ctx, d, _member_path(d))
    if d.is_gone:
        return []
    d.set("nick", coerce_str(as_object(member).get("nick")))
    return []


async def _clear_nickname(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await _clear_member_field(ctx, d, "nick")
    return []


MEMBER_NICKNAME = Resource(
    name="discord_member_nickname",
    create=_set_nickname,
    read=_read_nickname,
    update=_set_nickname,
    delete=_clear_nickname,
    importer=import_composite_id("server_id", "user_id"),
)


async def _set_timeout(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    until = coerce_str(d.get("until"))
    await _write_member_field(ctx, d, "communication_disabled_until", until or None)
    d.set_id(_member_key(d))
    return await _read_timeout(ctx, d)


async def _read_timeout(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    _bind_composite(d)
    member = await read_or_gone(ctx, d, _member_path(d))
    if d.is_gone:
        return []
    d.set("until", coerce_str(as_object(member).get("communication_disabled_until")))
    return []


async def _clear_timeout(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await _clear_member_field(ctx, d, "communication_disabled_until")
    return []


MEMBER_TIMEOUT = Resource(
    name="discord_member_timeout",
    create=_set_timeout,
    read=_read_timeout,
    update=_set_timeout,
    delete=_clear_timeout,
    importer=import_composite_id("server_id", "user_id"),
)


def _ban_path(d: ResourceData) -> str:
    server_id, user_id = d.get("server_id"), d.get("user_id")
    return f"/guilds/{coerce_str(server_id)}/bans/{coerce_str(user_id)}"


async def _create_ban(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    query = None
    seconds = coerce_int(d.get("delete_message_seconds"), 0) or 0
    if seconds > 0:
        query = {"delete_message_seconds": str(seconds)}
    await ctx.rest.do_json(
        "PUT", _ban_path(d), query=query, reason=reason_of(d), expect_json=False
    )
    d.set_id(_member_key(d))
    return await _read_ban(ctx, d)


async def _read_ban(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    _bind_composite(d)
    await read_or_gone(ctx, d, _ban_path(d))
    return []


async def _delete_ban(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    _bind_composite(d)
    await delete_ignoring_404(ctx, "DELETE", _ban_path(d), reason=reason_of(d))
    return []


BAN = Resource(
    name="discord_ban",
    create=_create_ban,
    read=_read_ban,
    delete=_delete_ban,
    importer=import_composite_id("server_id", "user_id"),
)
