from __future__ import annotations

import asyncio
import json
import logging
import secrets
from typing import Any, Mapping, Optional, Sequence, Union
from urllib.parse import quote_plus

import httpx

from .constants import (
    AUDIT_LOG_REASON_HEADER,
    DEFAULT_TIMEOUT_SECONDS,
    DISCORD_API_BASE_URL,
    HTTP_METHODS,
    MAX_RATE_LIMIT_ATTEMPTS,
    PACKAGE_VERSION,
)
from .core.coercion import coerce_int
from .core.logging_utils import log_event
from .errors import DiscordHTTPError, InvalidInputError
from .ratelimit import GlobalRateLimiter, RateLimitSignal

logger = logging.getLogger(__name__)

QueryParams = Union[Mapping[str, Any], Sequence[tuple[str, str]], httpx.QueryParams]


def default_user_agent() -> str:
    return f"discord-infra/{PACKAGE_VERSION} (python-httpx/{httpx.__version__})"


def encode_audit_reason(reason: str) -> str:
    return quote_plus(reason)


class DiscordRestClient:
    """Minimal Discord REST transport shared by every resource.

    Only 429 responses are retried; every other non-2xx response becomes a
    :class:`DiscordHTTPError`. One :class:`GlobalRateLimiter` is held per client
    so a global 429 seen by one caller holds back all concurrent callers.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        base_url: str = DISCORD_API_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: Optional[str] = None,
        max_attempts: int = MAX_RATE_LIMIT_ATTEMPTS,
        rate_limiter: Optional[GlobalRateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._authorization_header = f"Bot {bot_token}"
        self._base_url = httpx.URL(base_url)
        self._max_attempts = max(max_attempts, 1)
        self.user_agent = user_agent or default_user_agent()
        self.rate_limiter = rate_limiter or GlobalRateLimiter()

    @property
    def base_url(self) -> str:
        return str(self._base_url)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _url(self, path: str) -> tuple[httpx.URL, str]:
        normalized = path if path.startswith("/") else f"/{path}"
        base_path = self._base_url.path.rstrip("/")
        return self._base_url.copy_with(path=base_path + normalized), normalized

    def _headers(self, reason: Optional[str]) -> dict[str, str]:
        headers = {
            "Authorization": self._authorization_header,
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }
        if reason:
            headers[AUDIT_LOG_REASON_HEADER] = encode_audit_reason(reason)
        return headers

    async def do_json(
        self,
        method: str,
        path: str,
        *,
        query: Optional[QueryParams] = None,
        body: Any = None,
        reason: Optional[str] = None,
        expect_json: bool = True,
    ) -> Any:
        """Send a JSON request; returns the decoded body or ``None`` when empty."""
        headers = self._headers(reason)
        content: Optional[bytes] = None
        if body is not None:
            content = json.dumps(body, separators=(",", ":")).encode("utf-8")
            headers["Content-Type"] = "application/json"
        return await self._request(
            method,
            path,
            query=query,
            headers=headers,
            request_kwargs={"content": content},
            expect_json=expect_json,
        )

    async def do_multipart(
        self,
        method: str,
        path: str,
        *,
        query: Optional[QueryParams] = None,
        fields: Optional[Mapping[str, str]] = None,
        file_field: str = "",
        file_name: str = "",
        file_bytes: bytes = b"",
        reason: Optional[str] = None,
        expect_json: bool = True,
    ) -> Any:
        """Send ``multipart/form-data``: fields in order, then at most one file part."""
        headers = self._headers(reason)
        parts: list[tuple[str, Any]] = [
            (name, (None, value)) for name, value in (fields or {}).items()
        ]
        if file_field:
            parts.append(
                (file_field, (file_name, file_bytes, "application/octet-stream"))
            )
        if parts:
            request_kwargs: dict[str, Any] = {"files": parts}
        else:
            # httpx sends no body for an empty file list; emit a closed form.
            boundary = secrets.token_hex(16)
            headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"
            request_kwargs = {"content": f"--{boundary}--\r\n".encode("ascii")}
        return await self._request(
            method,
            path,
            query=query,
            headers=headers,
            request_kwargs=request_kwargs,
            expect_json=expect_json,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[QueryParams],
        headers: dict[str, str],
        request_kwargs: dict[str, Any],
        expect_json: bool,
    ) -> Any:
        verb = (method or "").strip().upper()
        if verb not in HTTP_METHODS:
            raise InvalidInputError(f"invalid HTTP method verb: {method!r}")
        url, normalized_path = self._url(path)

        for attempt in range(1, self._max_attempts + 1):
            await self.rate_limiter.wait()
            response = await self._client.request(
                verb, url, params=query, headers=headers, **request_kwargs
            )
            raw = response.content

            if response.status_code == 429:
                signal = RateLimitSignal.from_response(raw, response.headers)
                if signal.is_global:
                    self.rate_limiter.set_cooldown(signal.retry_after)
                    log_event(
                        logger,
                        logging.WARNING,
                        "discord.rest.global_cooldown",
                        method=verb,
                        path=normalized_path,
                        retry_after=signal.retry_after,
                    )
                log_event(
                    logger,
                    logging.INFO,
                    "discord.rest.rate_limited",
                    method=verb,
                    path=normalized_path,
                    retry_after=signal.retry_after,
                    is_global=signal.is_global,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                )
                await asyncio.sleep(signal.retry_after)
                continue

            if not 200 <= response.status_code < 300:
                raise _http_error(verb, normalized_path, response.status_code, raw)

            if response.status_code == 204 or not raw:
                return None
            if not expect_json:
                return None
            return json.loads(raw)

        log_event(
            logger,
            logging.WARNING,
            "discord.rest.rate_limit_exhausted",
            method=verb,
            path=normalized_path,
            attempts=self._max_attempts,
        )
        raise DiscordHTTPError(
            method=verb,
            path=normalized_path,
            status=429,
            message="exceeded rate limit retry attempts",
        )


def _http_error(method: str, path: str, status: int, raw: bytes) -> DiscordHTTPError:
    text = raw.decode("utf-8", errors="replace")
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return DiscordHTTPError(
                method=method,
                path=path,
                status=status,
                code=coerce_int(payload.get("code"), 0) or 0,
                message=message,
            )
    return DiscordHTTPError(method=method, path=path, status=status, raw=text)
