from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .constants import (
    DEFAULT_TIMEOUT_SECONDS,
    DISCORD_API_BASE_URL,
    MAX_RATE_LIMIT_ATTEMPTS,
)
from .errors import DiscordConfigError

CONFIG_SECTION = "discord"


@dataclass(frozen=True)
class DiscordProviderConfig:
    token: str = field(repr=False)
    client_id: Optional[str] = None
    secret: Optional[str] = field(default=None, repr=False)
    base_url: str = DISCORD_API_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_rate_limit_attempts: int = MAX_RATE_LIMIT_ATTEMPTS

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "DiscordProviderConfig":
        cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        token = _parse_optional_str(cfg.get("token"))
        if not token:
            raise DiscordConfigError("discord.token must be non-empty")

        base_url = _parse_optional_str(cfg.get("base_url")) or DISCORD_API_BASE_URL
        if not base_url.startswith(("http://", "https://")):
            raise DiscordConfigError("discord.base_url must be an http(s) URL")

        return cls(
            token=token,
            client_id=_parse_optional_str(cfg.get("client_id")),
            secret=_parse_optional_str(cfg.get("secret")),
            base_url=base_url,
            timeout_seconds=_parse_positive_float_or_default(
                cfg.get("timeout_seconds"),
                default=DEFAULT_TIMEOUT_SECONDS,
                key="discord.timeout_seconds",
            ),
            max_rate_limit_attempts=_parse_positive_int_or_default(
                cfg.get("max_rate_limit_attempts"),
                default=MAX_RATE_LIMIT_ATTEMPTS,
                key="discord.max_rate_limit_attempts",
            ),
        )

    @classmethod
    def load(
        cls, path: Path, *, overrides: Optional[Mapping[str, Any]] = None
    ) -> "DiscordProviderConfig":
        """Read a YAML mapping, optionally nested under a top-level ``discord`` key."""
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DiscordConfigError(f"cannot read config {path}: {exc}") from exc
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DiscordConfigError(f"invalid YAML in {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise DiscordConfigError(f"config {path} must be a mapping")
        section = loaded.get(CONFIG_SECTION, loaded)
        if not isinstance(section, dict):
            raise DiscordConfigError(f"{CONFIG_SECTION} section must be a mapping")
        merged = dict(section)
        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value
        return cls.from_raw(merged)


def _parse_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_positive_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise DiscordConfigError(f"{key} must be an integer")
    if value <= 0:
        raise DiscordConfigError(f"{key} must be > 0")
    return value


def _parse_positive_float_or_default(value: Any, *, default: float, key: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DiscordConfigError(f"{key} must be a number")
    if value <= 0:
        raise DiscordConfigError(f"{key} must be > 0")
    return float(value)
