"""Parametric template for resources that write caller JSON and read it back.

A resource is described by a :class:`PassthroughTemplate` (where it lives, how
it is written, how its id is derived) and turned into a :class:`Resource` by
:func:`build_passthrough_resource`. The remote body is stored canonicalized in
``state_json`` so drift shows up as a plain string diff.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from ..core.coercion import coerce_str
from ..core.json_utils import dumps_canonical, parse_json_document
from ..errors import DiscordError
from .base import (
    Diagnostics,
    ImporterFn,
    Resource,
    ResourceData,
    as_object,
    delete_ignoring_404,
    import_child_id,
    noop_delete,
    read_or_gone,
    reason_of,
    suppress_equivalent_json,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

PathFn = Callable[[ResourceData], str]
BodyFn = Callable[[ResourceData], Any]
IdFn = Callable[[ResourceData, Any], str]
StateFn = Callable[[ResourceData, Any], None]


def server_id(d: ResourceData) -> str:
    """Singleton-per-guild resources use the guild id as their own id."""
    return d.id or coerce_str(d.get("server_id"))


def id_from_server(d: ResourceData, _response: Any) -> str:
    return coerce_str(d.get("server_id"))


def id_from_response(d: ResourceData, response: Any) -> str:
    rid = coerce_str(as_object(response).get("id"))
    if not rid:
        raise DiscordError("discord api did not return an id")
    return rid


def payload_body(d: ResourceData) -> Any:
    return parse_json_document(coerce_str(d.get("payload_json")))


def store_state_json(d: ResourceData, response: Any) -> None:
    d.set("state_json", dumps_canonical(response) if response is not None else "")


@dataclass(frozen=True)
class PassthroughTemplate:
    name: str
    object_path: PathFn
    write_method: str = "PATCH"
    create_path: Optional[PathFn] = None
    create_method: Optional[str] = None
    id_extractor: IdFn = id_from_server
    body: BodyFn = payload_body
    apply_state: StateFn = store_state_json
    delete_method: Optional[str] = None
    delete_body: Optional[Mapping[str, Any]] = None
    delete_warning: str = ""
    importer: Optional[ImporterFn] = None


def build_passthrough_resource(template: PassthroughTemplate) -> Resource:
    async def read(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        out = await read_or_gone(ctx, d, template.object_path(d))
        if d.is_gone:
            return []
        template.apply_state(d, out)
        return []

    async def create(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        path_fn = template.create_path or template.object_path
        method = template.create_method or template.write_method
        out = await ctx.rest.do_json(
            method, path_fn(d), body=template.body(d), reason=reason_of(d)
        )
        d.set_id(template.id_extractor(d, out))
        return await read(ctx, d)

    async def update(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        await ctx.rest.do_json(
            template.write_method,
            template.object_path(d),
            body=template.body(d),
            reason=reason_of(d),
        )
        return await read(ctx, d)

    if template.delete_method is None:
        delete = noop_delete(
            template.name,
            template.delete_warning
            or f"{template.name} is left in place; only local state is removed",
        )
    else:
        delete_method = template.delete_method

        async def delete(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
            body = (
                dict(template.delete_body)
                if template.delete_body is not None
                else None
            )
            await delete_ignoring_404(
                ctx,
                delete_method,
                template.object_path(d),
                body=body,
                reason=reason_of(d),
            )
            return []

    return Resource(
        name=template.name,
        create=create,
        read=read,
        update=update,
        delete=delete,
        diff_suppress={"payload_json": suppress_equivalent_json},
        importer=template.importer or _import_server_id,
    )


def _import_server_id(d: ResourceData) -> None:
    d.set("server_id", d.id)


def _automod_rule_path(d: ResourceData) -> str:
    return f"/guilds/{d.get('server_id')}/auto-moderation/rules/{d.id}"


def _automod_rules_path(d: ResourceData) -> str:
    return f"/guilds/{d.get('server_id')}/auto-moderation/rules"


AUTOMOD_RULE = PassthroughTemplate(
    name="discord_automod_rule",
    object_path=_automod_rule_path,
    create_path=_automod_rules_path,
    create_method="POST",
    id_extractor=id_from_response,
    delete_method="DELETE",
    importer=import_child_id("server_id"),
)

ONBOARDING = PassthroughTemplate(
    name="discord_onboarding",
    object_path=lambda d: f"/guilds/{server_id(d)}/onboarding",
    write_method="PUT",
    delete_warning="onboarding is left as configured; remove it in the Discord client",
)

GUILD_SETTINGS = PassthroughTemplate(
    name="discord_guild_settings",
    object_path=lambda d: f"/guilds/{server_id(d)}",
    delete_warning="guild settings are left as configured on destroy",
)

MEMBER_VERIFICATION = PassthroughTemplate(
    name="discord_member_verification",
    object_path=lambda d: f"/guilds/{server_id(d)}/member-verification",
    write_method="PUT",
    delete_method="PUT",
    delete_body={"enabled": False},
)


def _welcome_screen_body(d: ResourceData) -> dict[str, Any]:
    channels = []
    for raw in d.get("channel", []) or []:
        item = as_object(raw)
        channel: dict[str, Any] = {
            "channel_id": coerce_str(item.get("channel_id")),
            "description": coerce_str(item.get("description")),
        }
        if item.get("emoji_id"):
            channel["emoji_id"] = coerce_str(item.get("emoji_id"))
        if item.get("emoji_name"):
            channel["emoji_name"] = coerce_str(item.get("emoji_name"))
        channels.append(channel)
    return {
        "enabled": bool(d.get("enabled", False)),
        "description": coerce_str(d.get("description")),
        "welcome_channels": channels,
    }


def _welcome_screen_state(d: ResourceData, response: Any) -> None:
    out = as_object(response)
    d.set("server_id", server_id(d))
    d.set("enabled", bool(out.get("enabled")))
    d.set("description", coerce_str(out.get("description")))
    d.set(
        "channel",
        [
            {
                "channel_id": coerce_str(item.get("channel_id")),
                "description": coerce_str(item.get("description")),
                "emoji_id": coerce_str(item.get("emoji_id")),
                "emoji_name": coerce_str(item.get("emoji_name")),
            }
            for item in map(as_object, out.get("welcome_channels") or [])
        ],
    )


WELCOME_SCREEN = PassthroughTemplate(
    name="discord_welcome_screen",
    object_path=lambda d: f"/guilds/{server_id(d)}/welcome-screen",
    body=_welcome_screen_body,
    apply_state=_welcome_screen_state,
    delete_warning="welcome screen is left as configured on destroy",
)


RESOURCES: dict[str, Resource] = {
    "discord_automod_rule": build_passthrough_resource(AUTOMOD_RULE),
    "discord_onboarding": build_passthrough_resource(ONBOARDING),
    "discord_guild_settings": build_passthrough_resource(GUILD_SETTINGS),
    "discord_member_verification": build_passthrough_resource(MEMBER_VERIFICATION),
    "discord_welcome_screen": build_passthrough_resource(WELCOME_SCREEN),
}
