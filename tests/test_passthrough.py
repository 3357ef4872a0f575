from __future__ import annotations

import pytest
from fakes import FakeDiscord

from discord_infra.errors import DiscordError
from discord_infra.resources.passthrough import RESOURCES

AUTOMOD = RESOURCES["discord_automod_rule"]
ONBOARDING = RESOURCES["discord_onboarding"]
VERIFICATION = RESOURCES["discord_member_verification"]
WELCOME = RESOURCES["discord_welcome_screen"]


@pytest.mark.anyio
async def test_automod_rule_posts_payload_and_stores_canonical_state() -> None:
    fake = FakeDiscord()
    fake.route("POST", "/guilds/G/auto-moderation/rules", {"id": "A1"})
    fake.route(
        "GET",
        "/guilds/G/auto-moderation/rules/A1",
        {"name": "spam", "id": "A1", "enabled": True},
    )
    d = AUTOMOD.data(
        {"server_id": "G", "payload_json": '{"name": "spam", "enabled": true}'}
    )

    async with fake.context() as ctx:
        await AUTOMOD.create(ctx, d)

    assert d.id == "A1"
    assert fake.calls_to("POST")[0].body == {"name": "spam", "enabled": True}
    assert d.get("state_json") == '{"enabled":true,"id":"A1","name":"spam"}'


@pytest.mark.anyio
async def test_automod_rule_without_returned_id_fails() -> None:
    fake = FakeDiscord()
    fake.route("POST", "/guilds/G/auto-moderation/rules", {"name": "spam"})
    d = AUTOMOD.data({"server_id": "G", "payload_json": "{}"})

    async with fake.context() as ctx:
        with pytest.raises(DiscordError, match="did not return an id"):
            await AUTOMOD.create(ctx, d)


def test_automod_import_splits_server_and_rule() -> None:
    d = AUTOMOD.data(id="G:A1")
    AUTOMOD.importer(d)
    assert (d.get("server_id"), d.id) == ("G", "A1")


def test_payload_json_formatting_is_not_a_change() -> None:
    d = ONBOARDING.data(
        {"payload_json": '{"b": 1, "a": [1, 2]}'},
        prior={"payload_json": '{"a":[1,2],"b":1}'},
        id="G",
    )
    assert not d.has_change("payload_json")


@pytest.mark.anyio
async def test_onboarding_puts_and_leaves_remote_on_destroy() -> None:
    fake = FakeDiscord()
    fake.route("PUT", "/guilds/G/onboarding", {"guild_id": "G"})
    fake.route("GET", "/guilds/G/onboarding", {"guild_id": "G", "enabled": False})
    d = ONBOARDING.data({"server_id": "G", "payload_json": '{"enabled": false}'})

    async with fake.context() as ctx:
        await ONBOARDING.create(ctx, d)
        diagnostics = await ONBOARDING.delete(ctx, d)

    assert d.is_gone
    assert diagnostics[0].severity == "warning"
    assert "onboarding is left as configured" in diagnostics[0].summary
    assert fake.summary() == [
        ("PUT", "/guilds/G/onboarding"),
        ("GET", "/guilds/G/onboarding"),
    ]


@pytest.mark.anyio
async def test_member_verification_delete_disables_it() -> None:
    fake = FakeDiscord()
    fake.route("PUT", "/guilds/G/member-verification", None)
    d = VERIFICATION.data(prior={"server_id": "G"}, id="G")

    async with fake.context() as ctx:
        assert await VERIFICATION.delete(ctx, d) == []

    assert fake.calls_to("PUT")[0].body == {"enabled": False}


@pytest.mark.anyio
async def test_welcome_screen_builds_typed_body_and_flattens_response() -> None:
    fake = FakeDiscord()
    response = {
        "enabled": True,
        "description": "hi",
        "welcome_channels": [
            {"channel_id": "C1", "description": "rules", "emoji_name": "📜"}
        ],
    }
    fake.route("PATCH", "/guilds/G/welcome-screen", response)
    fake.route("GET", "/guilds/G/welcome-screen", response)
    d = WELCOME.data(
        {
            "server_id": "G",
            "enabled": True,
            "description": "hi",
            "channel": [
                {"channel_id": "C1", "description": "rules", "emoji_name": "📜"}
            ],
        }
    )

    async with fake.context() as ctx:
        await WELCOME.create(ctx, d)

    assert fake.calls_to("PATCH")[0].body == {
        "enabled": True,
        "description": "hi",
        "welcome_channels": [
            {"channel_id": "C1", "description": "rules", "emoji_name": "📜"}
        ],
    }
    assert d.id == "G"
    assert d.get("channel") == [
        {
            "channel_id": "C1",
            "description": "rules",
            "emoji_id": "",
            "emoji_name": "📜",
        }
    ]
