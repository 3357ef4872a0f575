from __future__ import annotations

import pytest
from fakes import FakeDiscord

from discord_infra.resources.events import (
    SCHEDULED_EVENT,
    STAGE_INSTANCE,
    scheduled_event_body,
)

START = "2026-11-01T18:00:00+00:00"
END = "2026-11-01T20:00:00+00:00"


def test_external_event_body_carries_location_metadata() -> None:
    d = SCHEDULED_EVENT.data(
        {
            "server_id": "G",
            "name": "meetup",
            "scheduled_start_time": START,
            "scheduled_end_time": END,
            "entity_type": 3,
            "location": "Berlin",
            "status": 2,
        }
    )

    assert scheduled_event_body(d, include_status=False) == {
        "name": "meetup",
        "scheduled_start_time": START,
        "scheduled_end_time": END,
        "privacy_level": 2,
        "entity_type": 3,
        "entity_metadata": {"location": "Berlin"},
    }
    assert scheduled_event_body(d, include_status=True)["status"] == 2


@pytest.mark.anyio
async def test_scheduled_event_create_and_read() -> None:
    fake = FakeDiscord()
    fake.route("POST", "/guilds/G/scheduled-events", {"id": "EV"})
    fake.route(
        "GET",
        "/guilds/G/scheduled-events/EV",
        {
            "id": "EV",
            "name": "stage talk",
            "scheduled_start_time": START,
            "privacy_level": 2,
            "entity_type": 1,
            "channel_id": "ST",
            "status": 1,
            "image": "abc",
            "entity_metadata": None,
        },
    )
    d = SCHEDULED_EVENT.data(
        {
            "server_id": "G",
            "name": "stage talk",
            "scheduled_start_time": START,
            "entity_type": 1,
            "channel_id": "ST",
        }
    )

    async with fake.context() as ctx:
        await SCHEDULED_EVENT.create(ctx, d)

    assert d.id == "EV"
    assert "status" not in fake.calls_to("POST")[0].body
    assert (d.get("status"), d.get("image_hash"), d.get("location")) == (1, "abc", "")


@pytest.mark.anyio
async def test_stage_instance_is_keyed_by_channel() -> None:
    fake = FakeDiscord()
    fake.route("POST", "/stage-instances", {"id": "SI", "channel_id": "ST"})
    fake.route(
        "GET",
        "/stage-instances/ST",
        {
            "id": "SI",
            "guild_id": "G",
            "channel_id": "ST",
            "topic": "AMA",
            "privacy_level": 2,
            "guild_scheduled_event_id": "EV",
        },
    )
    d = STAGE_INSTANCE.data(
        {
            "channel_id": "ST",
            "topic": "AMA",
            "send_start_notification": True,
            "scheduled_event_id": "EV",
        }
    )

    async with fake.context() as ctx:
        await STAGE_INSTANCE.create(ctx, d)

    assert fake.calls_to("POST")[0].body == {
        "channel_id": "ST",
        "topic": "AMA",
        "privacy_level": 2,
        "send_start_notification": True,
        "guild_scheduled_event_id": "EV",
    }
    assert (d.id, d.get("server_id")) == ("ST", "G")


@pytest.mark.anyio
async def test_stage_instance_update_patches_topic_only() -> None:
    fake = FakeDiscord()
    fake.route("PATCH", "/stage-instances/ST", None)
    fake.route("GET", "/stage-instances/ST", {"channel_id": "ST", "topic": "new"})
    d = STAGE_INSTANCE.data(
        {"channel_id": "ST", "topic": "new", "privacy_level": 2},
        prior={"channel_id": "ST", "topic": "old", "privacy_level": 2},
        id="ST",
    )

    async with fake.context() as ctx:
        await STAGE_INSTANCE.update(ctx, d)

    assert fake.calls_to("PATCH")[0].body == {"topic": "new"}
