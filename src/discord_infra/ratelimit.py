from __future__ import annotations

import asyncio
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from .constants import (
    DEFAULT_RETRY_AFTER_SECONDS,
    RATE_LIMIT_GLOBAL_HEADER,
    RATE_LIMIT_RESET_AFTER_HEADER,
)

SleepFn = Callable[[float], Awaitable[Any]]
ClockFn = Callable[[], float]


@dataclass(frozen=True)
class RateLimitSignal:
    message: str
    retry_after: float
    is_global: bool

    @classmethod
    def from_response(
        cls, body: bytes, headers: Mapping[str, str]
    ) -> "RateLimitSignal":
        """Build the signal from a 429 response.

        The JSON body wins; a missing or non-positive ``retry_after`` falls back
        to ``Retry-After``, then ``X-RateLimit-Reset-After``, then one second.
        """
        message = ""
        retry_after = 0.0
        is_global = False
        payload = _decode_object(body)
        if payload is not None:
            raw_message = payload.get("message")
            message = raw_message if isinstance(raw_message, str) else ""
            retry_after = _positive_float(payload.get("retry_after"))
            is_global = payload.get("global") is True
        if retry_after <= 0:
            retry_after = _positive_float(headers.get("Retry-After"))
        if retry_after <= 0:
            retry_after = _positive_float(headers.get(RATE_LIMIT_RESET_AFTER_HEADER))
        if retry_after <= 0:
            retry_after = DEFAULT_RETRY_AFTER_SECONDS
        if not is_global:
            header = headers.get(RATE_LIMIT_GLOBAL_HEADER) or ""
            is_global = header.strip().lower() == "true"
        return cls(message=message, retry_after=retry_after, is_global=is_global)


def _decode_object(body: bytes) -> Optional[dict[str, Any]]:
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _positive_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if parsed != parsed or parsed <= 0:
        return 0.0
    return parsed


class GlobalRateLimiter:
    """Shared gate that holds every request back after a global 429.

    Waiters re-check the deadline after each sleep, so a cooldown extended
    while they slept is honoured. ``padding_seconds`` is added to every
    cooldown to absorb clock skew with the remote.
    """

    def __init__(
        self,
        *,
        clock: ClockFn = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
        padding_seconds: float = 0.0,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._padding_seconds = max(padding_seconds, 0.0)
        self._lock = threading.Lock()
        self._blocked_until = 0.0

    @property
    def blocked_until(self) -> float:
        with self._lock:
            return self._blocked_until

    def remaining(self) -> float:
        with self._lock:
            return max(self._blocked_until - self._clock(), 0.0)

    async def wait(self) -> None:
        while True:
            delay = self.remaining()
            if delay <= 0:
                return
            await self._sleep(delay)

    def set_cooldown(self, seconds: float) -> float:
        """Extend the gate to ``now + seconds``; never shortens it."""
        with self._lock:
            candidate = self._clock() + max(seconds, 0.0) + self._padding_seconds
            if candidate > self._blocked_until:
                self._blocked_until = candidate
            return self._blocked_until
