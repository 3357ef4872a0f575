"""Escape hatch: manage any REST object through caller-supplied paths and bodies.

Paths may contain ``{id}``, replaced by the resource id. A method of ``SKIP``
skips that lifecycle call; a skipped create requires ``id_override``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..constants import SKIP_METHOD
from ..core.coercion import coerce_str
from ..core.json_utils import dumps_canonical, parse_json_document, query_from_json
from ..errors import InvalidInputError
from ..ids import hash_id
from .base import (
    Diagnostics,
    Resource,
    ResourceData,
    as_object,
    delete_ignoring_404,
    read_or_gone,
    reason_of,
    suppress_equivalent_json,
)

if TYPE_CHECKING:
    from ..context import ProviderContext

DEFAULTS = {
    "id_field": "id",
    "create_method": "POST",
    "update_method": "PATCH",
    "delete_method": "DELETE",
}


def substitute_id(path: str, resource_id: str) -> str:
    return path.replace("{id}", resource_id)


def _method(d: ResourceData, key: str) -> str:
    return coerce_str(d.get(key) or DEFAULTS[key]).strip().upper()


def _path(d: ResourceData, key: str) -> str:
    template = coerce_str(d.get(key)).strip() or coerce_str(d.get("read_path"))
    return substitute_id(template, d.id)


def synthesize_id(path: str, response: Any) -> str:
    """Stable id for objects the API returns without an identifier."""
    return hash_id(f"{path}|{dumps_canonical(response)}")


async def create(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    method = _method(d, "create_method")
    id_override = coerce_str(d.get("id_override")).strip()
    if method == SKIP_METHOD:
        if not id_override:
            raise InvalidInputError(
                "id_override is required when create_method is SKIP"
            )
        d.set_id(id_override)
        return await read(ctx, d)

    path = coerce_str(d.get("create_path")).strip() or coerce_str(d.get("read_path"))
    if "{id}" in path:
        path = substitute_id(path, id_override)
    body = parse_json_document(
        coerce_str(d.get("create_body_json")), field_name="create_body_json"
    )
    out = await ctx.rest.do_json(method, path, body=body, reason=reason_of(d))

    if id_override:
        d.set_id(id_override)
        return await read(ctx, d)
    id_field = coerce_str(d.get("id_field")) or DEFAULTS["id_field"]
    found = as_object(out).get(id_field)
    if isinstance(found, str) and found:
        d.set_id(found)
    else:
        d.set_id(synthesize_id(path, out))
    return await read(ctx, d)


async def read(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    path = substitute_id(coerce_str(d.get("read_path")), d.id)
    query = query_from_json(coerce_str(d.get("read_query_json")))
    out = await read_or_gone(ctx, d, path, query=query)
    if d.is_gone:
        return []
    d.set("response_json", dumps_canonical(out))
    return []


async def update(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    method = _method(d, "update_method")
    if method == SKIP_METHOD:
        return await read(ctx, d)
    body = parse_json_document(
        coerce_str(d.get("update_body_json")), field_name="update_body_json"
    )
    if body is None:
        return await read(ctx, d)
    await ctx.rest.do_json(
        method,
        _path(d, "update_path"),
        body=body,
        reason=reason_of(d),
        expect_json=False,
    )
    return await read(ctx, d)


async def delete(ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
    method = _method(d, "delete_method")
    if method == SKIP_METHOD:
        return []
    body = parse_json_document(
        coerce_str(d.get("delete_body_json")), field_name="delete_body_json"
    )
    await delete_ignoring_404(
        ctx, method, _path(d, "delete_path"), body=body, reason=reason_of(d)
    )
    return []


RESOURCE = Resource(
    name="discord_api_resource",
    create=create,
    read=read,
    update=update,
    delete=delete,
    diff_suppress={
        "create_body_json": suppress_equivalent_json,
        "update_body_json": suppress_equivalent_json,
        "delete_body_json": suppress_equivalent_json,
        "read_query_json": suppress_equivalent_json,
    },
)
