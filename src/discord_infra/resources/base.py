from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Iterable,
    Mapping,
    Optional,
)

from ..core.json_utils import json_equivalent
from ..core.logging_utils import log_event
from ..errors import DiscordHTTPError, is_discord_http_status
from ..ids import parse_two_ids

if TYPE_CHECKING:
    from ..context import ProviderContext

logger = logging.getLogger(__name__)

SuppressFn = Callable[[Any, Any], bool]

WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    severity: str
    summary: str
    detail: str = ""


Diagnostics = list[Diagnostic]


def warning(summary: str, detail: str = "") -> Diagnostic:
    return Diagnostic(severity=WARNING, summary=summary, detail=detail)


def always_suppress(_old: Any, _new: Any) -> bool:
    return True


def suppress_equivalent_json(old: Any, new: Any) -> bool:
    return json_equivalent(old, new)


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, (bool, int, float)):
        return not value
    return False


class ResourceData:
    """Per-operation view of one resource instance.

    ``prior`` is the last persisted state and ``config`` the planned values.
    Reads see planned values overlaid on prior state, and ``set`` writes into
    that overlay so the final :meth:`state` is what the host persists. Unset
    and zero values compare equal, so ``None`` to ``""`` is not a change.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        prior: Optional[Mapping[str, Any]] = None,
        id: str = "",
        diff_suppress: Optional[Mapping[str, SuppressFn]] = None,
        sensitive: Iterable[str] = (),
    ) -> None:
        self._prior: dict[str, Any] = dict(prior or {})
        self._values: dict[str, Any] = dict(self._prior)
        self._values.update(config or {})
        self._id = id or ""
        self._diff_suppress = dict(diff_suppress or {})
        self.sensitive = frozenset(sensitive)

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: Optional[str]) -> None:
        """An empty id marks the remote object as gone."""
        self._id = value or ""

    @property
    def is_gone(self) -> bool:
        return not self._id

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        return default if value is None else value

    def get_ok(self, key: str) -> tuple[Any, bool]:
        value = self._values.get(key)
        return value, not _is_zero(value)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get_change(self, key: str) -> tuple[Any, Any]:
        return self._prior.get(key), self._values.get(key)

    def has_change(self, key: str) -> bool:
        old, new = self.get_change(key)
        if old == new or (_is_zero(old) and _is_zero(new)):
            return False
        suppress = self._diff_suppress.get(key)
        if suppress is not None and suppress(old, new):
            return False
        return True

    def has_changes(self, *keys: str) -> bool:
        return any(self.has_change(key) for key in keys)

    def state(self) -> dict[str, Any]:
        snapshot = dict(self._values)
        snapshot["id"] = self._id
        return snapshot

    def __repr__(self) -> str:
        shown = {
            key: ("<sensitive>" if key in self.sensitive else value)
            for key, value in self._values.items()
        }
        return f"ResourceData(id={self._id!r}, values={shown!r})"


CrudFn = Callable[["ProviderContext", ResourceData], Awaitable[Diagnostics]]
ImporterFn = Callable[[ResourceData], None]


@dataclass(frozen=True)
class Resource:
    """A host-visible resource: CRUD callbacks plus diff and import hooks.

    ``update`` is ``None`` for resources whose every field forces replacement.
    """

    name: str
    create: CrudFn
    read: CrudFn
    delete: CrudFn
    update: Optional[CrudFn] = None
    diff_suppress: Mapping[str, SuppressFn] = field(default_factory=dict)
    sensitive: frozenset[str] = frozenset()
    importer: Optional[ImporterFn] = None

    def data(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        prior: Optional[Mapping[str, Any]] = None,
        id: str = "",
    ) -> ResourceData:
        suppressors: dict[str, SuppressFn] = {"reason": always_suppress}
        suppressors.update(self.diff_suppress)
        return ResourceData(
            config,
            prior=prior,
            id=id,
            diff_suppress=suppressors,
            sensitive=self.sensitive,
        )

    async def import_state(
        self, ctx: "ProviderContext", import_id: str
    ) -> ResourceData:
        d = self.data(id=import_id)
        if self.importer is not None:
            self.importer(d)
        await self.read(ctx, d)
        return d


def reason_of(d: ResourceData) -> Optional[str]:
    reason = d.get("reason")
    return reason if isinstance(reason, str) and reason else None


def changed_fields(
    d: ResourceData,
    keys: Iterable[str],
    *,
    rename: Optional[Mapping[str, str]] = None,
    blank_as_null: Iterable[str] = (),
) -> dict[str, Any]:
    """PATCH body of the keys whose value changed.

    ``rename`` maps state keys to API keys; keys in ``blank_as_null`` send
    ``null`` when cleared so the remote unsets them.
    """
    renames = rename or {}
    nullable = set(blank_as_null)
    body: dict[str, Any] = {}
    for key in keys:
        if not d.has_change(key):
            continue
        value = d.get(key)
        if key in nullable and _is_zero(value):
            value = None
        body[renames.get(key, key)] = value
    return body


async def read_or_gone(
    ctx: "ProviderContext",
    d: ResourceData,
    path: str,
    *,
    query: Any = None,
) -> Optional[Any]:
    """GET ``path``; a 404 clears the id and returns ``None``."""
    try:
        return await ctx.rest.do_json("GET", path, query=query)
    except DiscordHTTPError as exc:
        if not is_discord_http_status(exc, 404):
            raise
        log_event(
            logger,
            logging.INFO,
            "discord.resource.gone",
            resource_id=d.id,
            path=exc.path,
        )
        d.set_id("")
        return None


async def delete_ignoring_404(
    ctx: "ProviderContext",
    method: str,
    path: str,
    *,
    body: Any = None,
    query: Any = None,
    reason: Optional[str] = None,
) -> None:
    try:
        await ctx.rest.do_json(
            method, path, query=query, body=body, reason=reason, expect_json=False
        )
    except DiscordHTTPError as exc:
        if not is_discord_http_status(exc, 404):
            raise


def noop_delete(resource_name: str, summary: str) -> CrudFn:
    async def _delete(_ctx: "ProviderContext", d: ResourceData) -> Diagnostics:
        log_event(
            logger,
            logging.WARNING,
            "discord.resource.delete_noop",
            resource=resource_name,
            resource_id=d.id,
        )
        d.set_id("")
        return [warning(summary)]

    return _delete


def import_child_id(parent_key: str, child_key: Optional[str] = None) -> ImporterFn:
    """Import ``parent:child`` ids: the child becomes the resource id."""

    def _import(d: ResourceData) -> None:
        parent, child = parse_two_ids(d.id)
        d.set(parent_key, parent)
        if child_key:
            d.set(child_key, child)
        d.set_id(child)

    return _import


def import_composite_id(first_key: str, second_key: str) -> ImporterFn:
    """Import ``first:second`` ids that stay composite in state."""

    def _import(d: ResourceData) -> None:
        first, second = parse_two_ids(d.id)
        d.set(first_key, first)
        d.set(second_key, second)

    return _import


def as_object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []
