from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from .config import DiscordProviderConfig
from .rest import DiscordRestClient


@dataclass
class ProviderContext:
    """Handed to every resource callback."""

    rest: DiscordRestClient
    config: DiscordProviderConfig

    async def aclose(self) -> None:
        await self.rest.close()

    async def __aenter__(self) -> "ProviderContext":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()


def build_context(
    config: DiscordProviderConfig,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ProviderContext:
    rest = DiscordRestClient(
        bot_token=config.token,
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
        max_attempts=config.max_rate_limit_attempts,
        http_client=http_client,
    )
    return ProviderContext(rest=rest, config=config)
