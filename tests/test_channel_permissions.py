from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from fakes import FakeDiscord

from discord_infra.bits64 import MAX_UINT64
from discord_infra.errors import DiscordHTTPError, InvalidInputError
from discord_infra.resources.channel_permissions import (
    CHANNEL_PERMISSION,
    CHANNEL_PERMISSIONS,
    Overwrite,
    reconcile_overwrites,
    single_overwrite_id,
)


class ChannelState:
    """One channel whose overwrites change as PUT/DELETE calls arrive."""

    def __init__(self, fake: FakeDiscord, channel_id: str, overwrites: list[dict]):
        self.overwrites = {item["id"]: dict(item) for item in overwrites}
        self.channel_id = channel_id
        fake.route("GET", f"/channels/{channel_id}", self._get)
        for target in ("R1", "U2", "R3"):
            path = f"/channels/{channel_id}/permissions/{target}"
            fake.route("PUT", path, self._put(target))
            fake.route("DELETE", path, self._delete(target))

    def _get(self, _request: httpx.Request) -> dict[str, Any]:
        return {
            "id": self.channel_id,
            "permission_overwrites": list(self.overwrites.values()),
        }

    def _put(self, target: str):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            self.overwrites[target] = {"id": target, **body}
            return httpx.Response(204)

        return handler

    def _delete(self, target: str):
        def handler(_request: httpx.Request) -> httpx.Response:
            if self.overwrites.pop(target, None) is None:
                return httpx.Response(404, json={"message": "Unknown Overwrite"})
            return httpx.Response(204)

        return handler


PRE_STATE = [
    {"id": "R1", "type": 0, "allow": "1", "deny": "2"},
    {"id": "U2", "type": 1, "allow": "4", "deny": "8"},
]


@pytest.mark.anyio
async def test_reconcile_deletes_extras_then_upserts_every_desired_entry() -> None:
    fake = FakeDiscord()
    state = ChannelState(fake, "C", PRE_STATE)
    desired = [
        Overwrite(type="role", target_id="R1", allow="16", deny="32"),
        Overwrite(type="role", target_id="R3", allow="64", deny="0"),
    ]

    async with fake.context() as ctx:
        await reconcile_overwrites(ctx.rest, "C", desired, reason="sync")

    writes = [(c.method, c.path, c.body) for c in fake.calls if c.method != "GET"]
    assert writes == [
        ("DELETE", "/channels/C/permissions/U2", None),
        ("PUT", "/channels/C/permissions/R1", {"type": 0, "allow": "16", "deny": "32"}),
        ("PUT", "/channels/C/permissions/R3", {"type": 0, "allow": "64", "deny": "0"}),
    ]
    assert {key: (o["allow"], o["deny"]) for key, o in state.overwrites.items()} == {
        "R1": ("16", "32"),
        "R3": ("64", "0"),
    }


@pytest.mark.anyio
async def test_unchanged_entries_are_still_put() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", PRE_STATE[:1])
    desired = [Overwrite(type="role", target_id="R1", allow="1", deny="2")]

    async with fake.context() as ctx:
        await reconcile_overwrites(ctx.rest, "C", desired)

    assert fake.summary() == [
        ("GET", "/channels/C"),
        ("PUT", "/channels/C/permissions/R1"),
    ]


@pytest.mark.anyio
async def test_first_failure_stops_reconciliation() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", PRE_STATE)
    fake.route(
        "DELETE",
        "/channels/C/permissions/U2",
        httpx.Response(403, json={"message": "Missing Permissions", "code": 50013}),
    )

    async with fake.context() as ctx:
        with pytest.raises(DiscordHTTPError) as excinfo:
            await reconcile_overwrites(
                ctx.rest, "C", [Overwrite(type="role", target_id="R3")]
            )

    assert "50013" in str(excinfo.value)
    assert not fake.calls_to("PUT")


@pytest.mark.anyio
async def test_channel_permissions_resource_exposes_dual_fields() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", PRE_STATE)
    d = CHANNEL_PERMISSIONS.data(
        {
            "channel_id": "C",
            "overwrite": [
                {"type": "role", "overwrite_id": "R1", "allow_bits64": str(MAX_UINT64)},
                {"type": "role", "overwrite_id": "R3", "allow": 64, "deny": 0},
            ],
        }
    )

    async with fake.context() as ctx:
        assert await CHANNEL_PERMISSIONS.create(ctx, d) == []

    assert d.id == "C"
    by_id = {item["overwrite_id"]: item for item in d.get("overwrite")}
    assert by_id["R1"]["allow"] == 0
    assert by_id["R1"]["allow_bits64"] == str(MAX_UINT64)
    assert by_id["R3"]["allow"] == 64
    assert by_id["R3"]["allow_bits64"] == "64"
    assert "U2" not in by_id


@pytest.mark.anyio
async def test_channel_permissions_delete_tolerates_missing_overwrites() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", PRE_STATE[:1])
    d = CHANNEL_PERMISSIONS.data(
        prior={
            "channel_id": "C",
            "overwrite": [
                {"type": "role", "overwrite_id": "R1"},
                {"type": "role", "overwrite_id": "R3"},
            ],
        },
        id="C",
    )

    async with fake.context() as ctx:
        await CHANNEL_PERMISSIONS.delete(ctx, d)

    assert fake.summary() == [
        ("DELETE", "/channels/C/permissions/R1"),
        ("DELETE", "/channels/C/permissions/R3"),
    ]


@pytest.mark.anyio
async def test_single_overwrite_put_and_read() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", [])
    d = CHANNEL_PERMISSION.data(
        {"channel_id": "C", "type": "user", "overwrite_id": "U2", "deny": 2048}
    )

    async with fake.context() as ctx:
        await CHANNEL_PERMISSION.create(ctx, d)

    assert d.id == single_overwrite_id("C", "U2", "user")
    assert fake.calls_to("PUT")[0].body == {"type": 1, "allow": "0", "deny": "2048"}
    assert d.get("deny_bits64") == "2048"


@pytest.mark.anyio
async def test_single_overwrite_missing_remotely_is_gone() -> None:
    fake = FakeDiscord()
    ChannelState(fake, "C", PRE_STATE)
    d = CHANNEL_PERMISSION.data(
        prior={"channel_id": "C", "type": "role", "overwrite_id": "R9"}, id="123"
    )

    async with fake.context() as ctx:
        await CHANNEL_PERMISSION.read(ctx, d)

    assert d.is_gone


def test_overwrite_declaration_validation() -> None:
    with pytest.raises(InvalidInputError):
        Overwrite.from_declared({"type": "member", "overwrite_id": "1"})
    with pytest.raises(InvalidInputError, match="overwrite 1"):
        Overwrite.from_declared(
            {"type": "role", "overwrite_id": "1", "deny_bits64": "0xZZ"}
        )
    assert Overwrite.from_declared(
        {"type": "role", "overwrite_id": "1", "allow": -1, "deny_bits64": "0x10"}
    ) == Overwrite(type="role", target_id="1", allow="0", deny="16")
