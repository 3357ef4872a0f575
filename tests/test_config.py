from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from discord_infra.config import DiscordProviderConfig
from discord_infra.constants import DISCORD_API_BASE_URL, MAX_RATE_LIMIT_ATTEMPTS
from discord_infra.context import build_context
from discord_infra.errors import DiscordConfigError, DiscordHTTPError


def test_defaults_apply() -> None:
    config = DiscordProviderConfig.from_raw({"token": " t0k "})
    assert config.token == "t0k"
    assert config.base_url == DISCORD_API_BASE_URL
    assert config.max_rate_limit_attempts == MAX_RATE_LIMIT_ATTEMPTS
    assert config.client_id is None


def test_repr_hides_secrets() -> None:
    config = DiscordProviderConfig.from_raw({"token": "sekrit", "secret": "shh"})
    assert "sekrit" not in repr(config)
    assert "shh" not in repr(config)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({}, "discord.token"),
        ({"token": "t", "base_url": "ftp://x"}, "base_url"),
        ({"token": "t", "timeout_seconds": 0}, "timeout_seconds"),
        ({"token": "t", "max_rate_limit_attempts": True}, "max_rate_limit_attempts"),
    ],
)
def test_invalid_values(raw: dict, message: str) -> None:
    with pytest.raises(DiscordConfigError, match=message):
        DiscordProviderConfig.from_raw(raw)


def test_load_reads_discord_section_and_overrides(tmp_path: Path) -> None:
    path = tmp_path / "provider.yml"
    path.write_text(
        "discord:\n"
        "  token: from-file\n"
        "  client_id: '42'\n"
        "  timeout_seconds: 5\n"
        "  max_rate_limit_attempts: 3\n",
        encoding="utf-8",
    )

    config = DiscordProviderConfig.load(path, overrides={"token": "from-env"})

    assert config.token == "from-env"
    assert config.client_id == "42"
    assert config.timeout_seconds == 5.0
    assert config.max_rate_limit_attempts == 3


def test_load_accepts_flat_mapping_and_ignores_none_overrides(tmp_path: Path) -> None:
    path = tmp_path / "provider.yml"
    path.write_text("token: flat\n", encoding="utf-8")
    assert DiscordProviderConfig.load(path, overrides={"token": None}).token == "flat"


def test_load_errors(tmp_path: Path) -> None:
    with pytest.raises(DiscordConfigError, match="cannot read"):
        DiscordProviderConfig.load(tmp_path / "missing.yml")
    bad = tmp_path / "bad.yml"
    bad.write_text("discord: [unclosed\n", encoding="utf-8")
    with pytest.raises(DiscordConfigError, match="invalid YAML"):
        DiscordProviderConfig.load(bad)
    listy = tmp_path / "list.yml"
    listy.write_text("- token\n", encoding="utf-8")
    with pytest.raises(DiscordConfigError, match="must be a mapping"):
        DiscordProviderConfig.load(listy)


@pytest.mark.anyio
async def test_attempt_budget_counts_the_first_request(no_sleep: list[float]) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(429, json={"retry_after": 0.5})

    config = DiscordProviderConfig.from_raw(
        {
            "token": "t",
            "base_url": "https://discord.test/api/v10",
            "max_rate_limit_attempts": 2,
        }
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with build_context(config, http_client=client) as ctx:
        with pytest.raises(DiscordHTTPError) as info:
            await ctx.rest.do_json("GET", "/x")

    assert info.value.status == 429
    assert len(requests) == 2
    assert no_sleep == [0.5, 0.5]
