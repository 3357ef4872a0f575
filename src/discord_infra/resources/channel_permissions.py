"""Channel permission overwrites.

``discord_channel_permissions`` owns every overwrite on a channel: remote
overwrites that are not declared are deleted, then each declared overwrite is
PUT (the remote treats PUT as an upsert). ``discord_channel_permission``
manages a single overwrite and leaves the others alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from ..bits64 import (
    int_to_uint64_string,
    native_int_or_zero,
    normalize_uint64_string,
)
from ..core.coercion import coerce_int, coerce_str
from ..core.logging_utils import log_event
from ..errors import InvalidInputError
from ..ids import hash_id
from ..rest import DiscordRestClient
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_list,
    as_object,
    delete_ignoring_404,
    read_or_gone,
    reason_of,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

logger = logging.getLogger(__name__)

OVERWRITE_TYPE_CODES = {"role": 0, "user": 1}
OVERWRITE_TYPE_NAMES = {code: name for name, code in OVERWRITE_TYPE_CODES.items()}


def overwrite_type_code(name: str) -> int:
    try:
        return OVERWRITE_TYPE_CODES[name]
    except KeyError:
        raise InvalidInputError(
            f"invalid overwrite type {name!r} (expected role or user)"
        ) from None


def overwrite_type_name(code: int) -> str:
    return OVERWRITE_TYPE_NAMES.get(code, str(code))


@dataclass(frozen=True)
class Overwrite:
    type: str
    target_id: str
    allow: str = "0"
    deny: str = "0"

    @property
    def key(self) -> tuple[str, str]:
        return self.type, self.target_id

    def body(self) -> dict[str, Any]:
        return {
            "type": overwrite_type_code(self.type),
            "allow": self.allow,
            "deny": self.deny,
        }

    @classmethod
    def from_declared(cls, raw: Mapping[str, Any]) -> "Overwrite":
        """Build from a declared block; ``*_bits64`` wins over the native ints."""
        kind = coerce_str(raw.get("type"))
        target_id = coerce_str(raw.get("overwrite_id"))
        overwrite_type_code(kind)
        try:
            allow = normalize_uint64_string(coerce_str(raw.get("allow_bits64")))
            deny = normalize_uint64_string(coerce_str(raw.get("deny_bits64")))
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"invalid permission bits for overwrite {target_id}: {exc}"
            ) from exc
        if not allow:
            allow = int_to_uint64_string(coerce_int(raw.get("allow"), 0) or 0)
        if not deny:
            deny = int_to_uint64_string(coerce_int(raw.get("deny"), 0) or 0)
        return cls(type=kind, target_id=target_id, allow=allow, deny=deny)

    @classmethod
    def from_remote(cls, raw: Mapping[str, Any]) -> "Overwrite":
        try:
            allow = normalize_uint64_string(coerce_str(raw.get("allow")))
            deny = normalize_uint64_string(coerce_str(raw.get("deny")))
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"failed to parse overwrite bits for {raw.get('id')}: {exc}"
            ) from exc
        return cls(
            type=overwrite_type_name(coerce_int(raw.get("type"), 0) or 0),
            target_id=coerce_str(raw.get("id")),
            allow=allow or "0",
            deny=deny or "0",
        )

    def flatten(self) -> dict[str, Any]:
        allow = int(self.allow)
        deny = int(self.deny)
        return {
            "type": self.type,
            "overwrite_id": self.target_id,
            "allow": native_int_or_zero(allow),
            "allow_bits64": self.allow,
            "deny": native_int_or_zero(deny),
            "deny_bits64": self.deny,
        }


def desired_overwrites(
    items: Iterable[Mapping[str, Any]],
) -> dict[tuple[str, str], Overwrite]:
    desired: dict[tuple[str, str], Overwrite] = {}
    for raw in items:
        overwrite = Overwrite.from_declared(raw)
        desired[overwrite.key] = overwrite
    return desired


def _overwrite_path(channel_id: str, target_id: str) -> str:
    return f"/channels/{channel_id}/permissions/{target_id}"


async def fetch_overwrites(rest: DiscordRestClient, channel_id: str) -> list[Overwrite]:
    channel = as_object(await rest.do_json("GET", f"/channels/{channel_id}"))
    return [
        Overwrite.from_remote(as_object(raw))
        for raw in as_list(channel.get("permission_overwrites"))
    ]


async def reconcile_overwrites(
    rest: DiscordRestClient,
    channel_id: str,
    desired: Iterable[Overwrite],
    *,
    current: Optional[Iterable[Overwrite]] = None,
    reason: Optional[str] = None,
) -> None:
    """Make the channel's overwrite set equal ``desired``.

    Deletions run before upserts. The first failing call is raised and earlier
    calls are not rolled back.
    """
    wanted = {overwrite.key: overwrite for overwrite in desired}
    if current is None:
        current = await fetch_overwrites(rest, channel_id)
    removed = 0
    for overwrite in current:
        if overwrite.key in wanted:
            continue
        await rest.do_json(
            "DELETE",
            _overwrite_path(channel_id, overwrite.target_id),
            reason=reason,
            expect_json=False,
        )
        removed += 1
    for overwrite in wanted.values():
        await rest.do_json(
            "PUT",
            _overwrite_path(channel_id, overwrite.target_id),
            body=overwrite.body(),
            reason=reason,
            expect_json=False,
        )
    log_event(
        logger,
        logging.INFO,
        "discord.channel_permissions.reconciled",
        channel_id=channel_id,
        removed=removed,
        upserted=len(wanted),
    )


async def _upsert_all(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id"))
    desired = desired_overwrites(as_list(d.get("overwrite")))
    await reconcile_overwrites(
        ctx.rest, channel_id, desired.values(), reason=reason_of(d)
    )
    d.set_id(channel_id)
    return await _read_all(ctx, d)


async def _read_all(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id")) or d.id
    channel = await read_or_gone(ctx, d, f"/channels/{channel_id}")
    if d.is_gone:
        return []
    overwrites = [
        Overwrite.from_remote(as_object(raw))
        for raw in as_list(as_object(channel).get("permission_overwrites"))
    ]
    d.set_id(channel_id)
    d.set("channel_id", channel_id)
    d.set("overwrite", [overwrite.flatten() for overwrite in overwrites])
    return []


async def _delete_all(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id")) or d.id
    for raw in as_list(d.get("overwrite")):
        target_id = coerce_str(as_object(raw).get("overwrite_id"))
        await delete_ignoring_404(
            ctx, "DELETE", _overwrite_path(channel_id, target_id), reason=reason_of(d)
        )
    return []


def _import_channel_id(d: ResourceData) -> None:
    d.set("channel_id", d.id)


CHANNEL_PERMISSIONS = Resource(
    name="discord_channel_permissions",
    create=_upsert_all,
    read=_read_all,
    update=_upsert_all,
    delete=_delete_all,
    importer=_import_channel_id,
)


def single_overwrite_id(channel_id: str, target_id: str, kind: str) -> str:
    return hash_id(f"{channel_id}:{target_id}:{kind}")


async def _put_one(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id"))
    overwrite = Overwrite.from_declared(
        {
            "type": d.get("type"),
            "overwrite_id": d.get("overwrite_id"),
            "allow": d.get("allow"),
            "allow_bits64": d.get("allow_bits64"),
            "deny": d.get("deny"),
            "deny_bits64": d.get("deny_bits64"),
        }
    )
    await ctx.rest.do_json(
        "PUT",
        _overwrite_path(channel_id, overwrite.target_id),
        body=overwrite.body(),
        reason=reason_of(d),
        expect_json=False,
    )
    d.set_id(single_overwrite_id(channel_id, overwrite.target_id, overwrite.type))
    return await _read_one(ctx, d)


async def _read_one(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    channel_id = coerce_str(d.get("channel_id"))
    channel = await read_or_gone(ctx, d, f"/channels/{channel_id}")
    if d.is_gone:
        return []
    target_id = coerce_str(d.get("overwrite_id"))
    kind = coerce_str(d.get("type"))
    for raw in as_list(as_object(channel).get("permission_overwrites")):
        overwrite = Overwrite.from_remote(as_object(raw))
        if overwrite.key != (kind, target_id):
            continue
        for key, value in overwrite.flatten().items():
            d.set(key, value)
        return []
    d.set_id("")
    return []


async def _delete_one(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    await delete_ignoring_404(
        ctx,
        "DELETE",
        _overwrite_path(
            coerce_str(d.get("channel_id")), coerce_str(d.get("overwrite_id"))
        ),
        reason=reason_of(d),
    )
    return []


CHANNEL_PERMISSION = Resource(
    name="discord_channel_permission",
    create=_put_one,
    read=_read_one,
    update=_put_one,
    delete=_delete_one,
)
