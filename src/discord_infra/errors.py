from __future__ import annotations

from typing import Optional


class DiscordError(Exception):
    """Base error for the Discord provider."""


class DiscordConfigError(DiscordError):
    """Provider configuration is missing or invalid."""


class InvalidInputError(DiscordError, ValueError):
    """Caller-supplied input was rejected before any request was made."""


class ResourceNotFoundError(DiscordError):
    """A declared remote object is missing in a way that is not plain drift."""


class PositionOutOfBoundsError(InvalidInputError):
    """No role currently occupies the requested position."""

    def __init__(self, position: int) -> None:
        super().__init__(f"new role position is out of bounds: {position}")
        self.position = position


class DiscordHTTPError(DiscordError):
    """A non-2xx response (or exhausted 429 retries) from the Discord API.

    ``message`` and ``code`` come from the JSON error body when it has a
    non-empty ``message``; otherwise ``raw`` keeps the body text.
    """

    def __init__(
        self,
        *,
        method: str,
        path: str,
        status: int,
        code: int = 0,
        message: str = "",
        raw: str = "",
    ) -> None:
        self.method = method
        self.path = path
        self.status = status
        self.code = code
        self.message = message
        self.raw = raw
        super().__init__(self._render())

    def _render(self) -> str:
        prefix = f"discord api error {self.method} {self.path}: http {self.status}"
        if self.message:
            if self.code:
                return f"{prefix} (code {self.code}) {self.message}"
            return f"{prefix} {self.message}"
        if self.raw:
            return f"{prefix} {self.raw}"
        return prefix


def is_discord_http_status(err: Optional[BaseException], status: int) -> bool:
    """True iff ``err`` itself is a :class:`DiscordHTTPError` with this status.

    Wrapping errors never match, even when raised ``from`` an HTTP error.
    """
    return isinstance(err, DiscordHTTPError) and err.status == status
