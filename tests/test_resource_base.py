from __future__ import annotations

import httpx
import pytest
from fakes import FakeDiscord, not_found

from discord_infra.errors import DiscordHTTPError, InvalidInputError
from discord_infra.resources.base import (
    Resource,
    ResourceData,
    changed_fields,
    delete_ignoring_404,
    import_child_id,
    import_composite_id,
    noop_delete,
    read_or_gone,
    reason_of,
)


def test_config_overlays_prior_state() -> None:
    d = ResourceData({"name": "new"}, prior={"name": "old", "topic": "t"}, id="1")
    assert d.get("name") == "new"
    assert d.get("topic") == "t"
    assert d.get_change("name") == ("old", "new")
    assert d.has_change("name")
    assert not d.has_change("topic")


def test_zero_and_unset_compare_equal() -> None:
    d = ResourceData({"topic": "", "nsfw": False, "tags": []}, prior={}, id="1")
    assert not d.has_changes("topic", "nsfw", "tags")
    assert d.get_ok("topic") == ("", False)
    assert d.get("missing", 7) == 7


def test_set_writes_overlay_and_state_includes_id() -> None:
    d = ResourceData({"name": "a"})
    d.set("name", "b")
    d.set_id("99")
    assert d.state() == {"name": "b", "id": "99"}
    d.set_id(None)
    assert d.is_gone


def test_resource_data_always_suppresses_reason_diffs() -> None:
    async def noop(_ctx, _d):
        return []

    resource = Resource(name="x", create=noop, read=noop, delete=noop)
    d = resource.data({"reason": "second"}, prior={"reason": "first"}, id="1")
    assert not d.has_change("reason")
    assert reason_of(d) == "second"


def test_repr_masks_sensitive_fields() -> None:
    d = ResourceData({"token": "hunter2", "name": "hook"}, sensitive={"token"})
    assert "hunter2" not in repr(d)
    assert "hook" in repr(d)


def test_changed_fields_renames_and_nulls_blanks() -> None:
    d = ResourceData(
        {"name": "b", "parent_id": "", "topic": "same"},
        prior={"name": "a", "parent_id": "5", "topic": "same"},
        id="1",
    )
    body = changed_fields(
        d,
        ("name", "parent_id", "topic"),
        rename={"name": "title"},
        blank_as_null=("parent_id",),
    )
    assert body == {"title": "b", "parent_id": None}


@pytest.mark.anyio
async def test_read_on_404_clears_id_without_raising() -> None:
    fake = FakeDiscord()
    fake.route("GET", "/channels/7", not_found())
    d = ResourceData(id="7")

    async with fake.context() as ctx:
        out = await read_or_gone(ctx, d, "/channels/7")

    assert out is None
    assert d.is_gone


@pytest.mark.anyio
async def test_read_other_errors_propagate() -> None:
    fake = FakeDiscord()
    fake.route(
        "GET",
        "/channels/7",
        httpx.Response(403, json={"message": "Missing Access", "code": 50001}),
    )
    d = ResourceData(id="7")

    async with fake.context() as ctx:
        with pytest.raises(DiscordHTTPError) as excinfo:
            await read_or_gone(ctx, d, "/channels/7")

    assert excinfo.value.code == 50001
    assert d.id == "7"


@pytest.mark.anyio
async def test_delete_ignores_404() -> None:
    fake = FakeDiscord()
    async with fake.context() as ctx:
        await delete_ignoring_404(ctx, "DELETE", "/webhooks/1", reason="cleanup")
    assert fake.summary() == [("DELETE", "/webhooks/1")]
    assert fake.calls[0].headers["X-Audit-Log-Reason"] == "cleanup"


@pytest.mark.anyio
async def test_noop_delete_warns_and_clears_id() -> None:
    delete = noop_delete("discord_thing", "thing is left in place")
    d = ResourceData(id="1")
    diagnostics = await delete(None, d)  # type: ignore[arg-type]
    assert [diag.summary for diag in diagnostics] == ["thing is left in place"]
    assert diagnostics[0].severity == "warning"
    assert d.is_gone


def test_importers() -> None:
    child = ResourceData(id="10:20")
    import_child_id("server_id", "role_id")(child)
    assert child.id == "20"
    assert child.get("server_id") == "10"
    assert child.get("role_id") == "20"

    composite = ResourceData(id="10:20")
    import_composite_id("server_id", "user_id")(composite)
    assert composite.id == "10:20"
    assert (composite.get("server_id"), composite.get("user_id")) == ("10", "20")

    with pytest.raises(InvalidInputError):
        import_child_id("server_id")(ResourceData(id="no-colon"))
