from __future__ import annotations

import httpx
import pytest
from fakes import FakeDiscord

from discord_infra.errors import InvalidInputError
from discord_infra.resources.guild import SERVER, SYSTEM_CHANNEL, validate_server

GUILD = {
    "id": "G",
    "name": "infra",
    "afk_timeout": 300,
    "verification_level": 1,
    "owner_id": "U1",
}


def _server_fake() -> FakeDiscord:
    fake = FakeDiscord()
    fake.route("POST", "/guilds", {"id": "G"})
    fake.route("GET", "/guilds/G/channels", [{"id": "C1"}, {"id": "C2"}])
    fake.route("DELETE", "/channels/C1", None)
    fake.route(
        "DELETE",
        "/channels/C2",
        httpx.Response(403, json={"message": "Missing Access", "code": 50001}),
    )
    fake.route("PATCH", "/guilds/G", GUILD)
    fake.route("GET", "/guilds/G", GUILD)
    return fake


@pytest.mark.anyio
async def test_create_removes_default_channels_and_applies_afk_settings() -> None:
    fake = _server_fake()
    d = SERVER.data(
        {"name": "infra", "verification_level": 1, "icon_data_uri": "data:x"}
    )

    async with fake.context() as ctx:
        await SERVER.create(ctx, d)

    assert fake.summary() == [
        ("POST", "/guilds"),
        ("GET", "/guilds/G/channels"),
        ("DELETE", "/channels/C1"),
        ("DELETE", "/channels/C2"),
        ("PATCH", "/guilds/G"),
        ("GET", "/guilds/G"),
    ]
    assert fake.calls_to("POST")[0].body == {
        "name": "infra",
        "icon": "data:x",
        "verification_level": 1,
    }
    assert fake.calls_to("PATCH")[0].body == {"afk_timeout": 300}
    assert d.id == "G"
    assert d.get("owner_id") is None


@pytest.mark.parametrize(
    ("config", "message"),
    [
        ({"verification_level": 4}, "verification_level must be between 0 and 3"),
        ({"explicit_content_filter": 3}, "explicit_content_filter"),
        ({"default_message_notifications": 2}, "default_message_notifications"),
        ({"afk_timeout": -1}, "afk_timeout"),
    ],
)
def test_validate_server_ranges(config, message) -> None:
    with pytest.raises(InvalidInputError, match=message):
        validate_server(SERVER.data({"name": "x", **config}))


@pytest.mark.anyio
async def test_update_sends_only_changed_fields() -> None:
    fake = _server_fake()
    d = SERVER.data(
        {"name": "renamed", "afk_timeout": 300, "afk_channel_id": ""},
        prior={"name": "infra", "afk_timeout": 300, "afk_channel_id": "V1"},
        id="G",
    )

    async with fake.context() as ctx:
        await SERVER.update(ctx, d)

    assert fake.calls_to("PATCH")[0].body == {
        "name": "renamed",
        "afk_channel_id": None,
    }


@pytest.mark.anyio
async def test_destroy_keeps_guild_unless_opted_in() -> None:
    fake = _server_fake()
    fake.route("DELETE", "/guilds/G", None)
    kept = SERVER.data(prior={"name": "infra"}, id="G")
    deleted = SERVER.data(prior={"name": "infra", "delete_on_destroy": True}, id="G")

    async with fake.context() as ctx:
        diagnostics = await SERVER.delete(ctx, kept)
        assert await SERVER.delete(ctx, deleted) == []

    assert diagnostics[0].summary == "discord_server does not delete the guild on destroy"
    assert fake.summary() == [("DELETE", "/guilds/G")]


@pytest.mark.anyio
async def test_system_channel_set_read_and_clear() -> None:
    fake = FakeDiscord()
    fake.route("PATCH", "/guilds/G", {"id": "G"})
    fake.route("GET", "/guilds/G", {"id": "G", "system_channel_id": "C1"})
    d = SYSTEM_CHANNEL.data({"server_id": "G", "system_channel_id": "C1"})

    async with fake.context() as ctx:
        await SYSTEM_CHANNEL.create(ctx, d)
        await SYSTEM_CHANNEL.delete(ctx, d)

    assert d.id == "G"
    assert [call.body for call in fake.calls_to("PATCH")] == [
        {"system_channel_id": "C1"},
        {"system_channel_id": None},
    ]
