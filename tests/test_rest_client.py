from __future__ import annotations

import asyncio
import json
import time
from email.parser import BytesParser
from email.policy import default as default_policy
from typing import Any

import httpx
import pytest

from discord_infra.errors import (
    DiscordHTTPError,
    InvalidInputError,
    is_discord_http_status,
)
from discord_infra.rest import DiscordRestClient, default_user_agent

BASE_URL = "https://discord.test/api/v10"


def _client(handler, **kwargs: Any) -> DiscordRestClient:
    return DiscordRestClient(
        bot_token="abc123",
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.anyio
async def test_patch_with_reason_sends_audit_header_and_decodes_body() -> None:
    observed: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        observed["method"] = request.method
        observed["path"] = request.url.path
        observed["reason"] = request.headers.get("X-Audit-Log-Reason")
        observed["authorization"] = request.headers.get("Authorization")
        observed["content_type"] = request.headers.get("Content-Type")
        observed["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    async with _client(handler) as client:
        out = await client.do_json("PATCH", "/x", body={"a": 1}, reason="because")

    assert out == {"ok": True}
    assert observed == {
        "method": "PATCH",
        "path": "/api/v10/x",
        "reason": "because",
        "authorization": "Bot abc123",
        "content_type": "application/json",
        "body": {"a": 1},
    }


@pytest.mark.anyio
async def test_audit_reason_is_percent_encoded() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["X-Audit-Log-Reason"])
        return httpx.Response(204)

    async with _client(handler) as client:
        out = await client.do_json("DELETE", "/channels/1", reason="hello world / 123")

    assert out is None
    assert seen == ["hello+world+%2F+123"]


@pytest.mark.anyio
async def test_user_agent_never_contains_token() -> None:
    agents: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        agents.append(request.headers["User-Agent"])
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        await client.do_json("GET", "users/@me")

    assert agents == [default_user_agent()]
    assert "abc123" not in agents[0]


@pytest.mark.anyio
async def test_rate_limit_then_success_retries_after_waiting() -> None:
    call_times: list[float] = []

    def handler(_request: httpx.Request) -> httpx.Response:
        call_times.append(time.monotonic())
        if len(call_times) == 1:
            return httpx.Response(429, json={"retry_after": 0.01})
        return httpx.Response(200, json={"calls": 2})

    async with _client(handler) as client:
        out = await client.do_json("GET", "/x")

    assert out == {"calls": 2}
    assert len(call_times) == 2
    assert call_times[1] - call_times[0] >= 0.009


@pytest.mark.anyio
async def test_retry_after_falls_back_to_headers(no_sleep: list[float]) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(429, headers={"Retry-After": "0.25"}, json={})
        if attempts["count"] == 2:
            return httpx.Response(
                429, headers={"X-RateLimit-Reset-After": "0.5"}, content=b"not json"
            )
        if attempts["count"] == 3:
            return httpx.Response(429)
        return httpx.Response(200, json={"id": "msg-1"})

    async with _client(handler) as client:
        out = await client.do_json("POST", "/channels/1/messages", body={})

    assert out == {"id": "msg-1"}
    assert no_sleep == [0.25, 0.5, 1.0]


@pytest.mark.anyio
async def test_global_rate_limit_holds_back_concurrent_callers() -> None:
    departures: dict[str, list[float]] = {"/api/v10/a": [], "/api/v10/b": []}
    first_attempt_seen = asyncio.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        departures[request.url.path].append(time.monotonic())
        if request.url.path == "/api/v10/a" and len(departures["/api/v10/a"]) == 1:
            first_attempt_seen.set()
            return httpx.Response(429, json={"retry_after": 0.05, "global": True})
        return httpx.Response(200, json={"path": request.url.path})

    async with _client(handler) as client:
        first = asyncio.create_task(client.do_json("GET", "/a"))
        await first_attempt_seen.wait()
        while client.rate_limiter.remaining() <= 0:
            await asyncio.sleep(0)
        deadline = client.rate_limiter.blocked_until
        second = await client.do_json("GET", "/b")
        assert await first == {"path": "/api/v10/a"}

    assert second == {"path": "/api/v10/b"}
    assert departures["/api/v10/b"][0] >= deadline


@pytest.mark.anyio
async def test_exhausted_retries_raise_typed_429(no_sleep: list[float]) -> None:
    calls = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(429, json={"retry_after": 0.01})

    async with _client(handler, max_attempts=3) as client:
        with pytest.raises(DiscordHTTPError) as excinfo:
            await client.do_json("GET", "/x")

    assert calls["count"] == 3
    assert no_sleep == [0.01, 0.01, 0.01]
    assert excinfo.value.status == 429
    assert excinfo.value.message == "exceeded rate limit retry attempts"


@pytest.mark.anyio
async def test_default_attempt_budget_is_ten(no_sleep: list[float]) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"retry_after": 0.01})

    async with _client(handler) as client:
        with pytest.raises(DiscordHTTPError):
            await client.do_json("GET", "/x")

    assert len(no_sleep) == 10


@pytest.mark.anyio
async def test_error_body_maps_to_typed_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Unknown Channel", "code": 10003})

    async with _client(handler) as client:
        with pytest.raises(DiscordHTTPError) as excinfo:
            await client.do_json("GET", "/channels/9")

    err = excinfo.value
    assert (err.method, err.path, err.status, err.code) == (
        "GET",
        "/channels/9",
        404,
        10003,
    )
    assert err.message == "Unknown Channel"
    assert is_discord_http_status(err, 404)
    assert not is_discord_http_status(err, 403)
    assert "GET /channels/9" in str(err)
    assert "10003" in str(err)


@pytest.mark.anyio
async def test_error_without_message_keeps_raw_body() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, content=b"<html>bad gateway</html>")

    async with _client(handler) as client:
        with pytest.raises(DiscordHTTPError) as excinfo:
            await client.do_json("GET", "/x")

    assert excinfo.value.status == 502
    assert excinfo.value.raw == "<html>bad gateway</html>"
    assert "bad gateway" in str(excinfo.value)


@pytest.mark.anyio
async def test_invalid_method_is_rejected_before_sending() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        with pytest.raises(InvalidInputError):
            await client.do_json("FETCH", "/x")

    assert calls == []


@pytest.mark.anyio
async def test_expect_json_false_discards_body_and_query_is_sent() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["query"] = dict(request.url.params)
        return httpx.Response(200, json={"ignored": True})

    async with _client(handler) as client:
        out = await client.do_json(
            "PUT",
            "/guilds/1/bans/2",
            query={"delete_message_seconds": "60"},
            expect_json=False,
        )

    assert out is None
    assert seen["query"] == {"delete_message_seconds": "60"}


def _parse_multipart(request: httpx.Request) -> dict[str, tuple[str, bytes]]:
    raw = (
        f"Content-Type: {request.headers['Content-Type']}\r\n\r\n".encode("ascii")
        + request.content
    )
    message = BytesParser(policy=default_policy).parsebytes(raw)
    parts: dict[str, tuple[str, bytes]] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        filename = part.get_filename() or ""
        parts[name] = (filename, part.get_payload(decode=True))
    return parts


@pytest.mark.anyio
async def test_multipart_sends_fields_and_file() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["reason"] = request.headers.get("X-Audit-Log-Reason")
        seen["parts"] = _parse_multipart(request)
        return httpx.Response(200, json={"id": "sticker-1"})

    async with _client(handler) as client:
        out = await client.do_multipart(
            "POST",
            "/guilds/1/stickers",
            fields={"payload_json": '{"name":"x"}'},
            file_field="file",
            file_name="wave.png",
            file_bytes=b"abc123",
            reason="upload",
        )

    assert out == {"id": "sticker-1"}
    assert seen["reason"] == "upload"
    assert seen["parts"]["payload_json"] == ("", b'{"name":"x"}')
    assert seen["parts"]["file"] == ("wave.png", b"abc123")


@pytest.mark.anyio
async def test_multipart_without_parts_is_a_closed_form() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["Content-Type"]
        seen["body"] = request.content
        return httpx.Response(204)

    async with _client(handler) as client:
        out = await client.do_multipart("POST", "/x")

    assert out is None
    content_type = seen["content_type"]
    assert content_type.startswith("multipart/form-data; boundary=")
    boundary = content_type.split("boundary=", 1)[1]
    assert seen["body"] == f"--{boundary}--\r\n".encode("ascii")


@pytest.mark.anyio
async def test_cancellation_propagates_while_waiting_on_gate() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        client.rate_limiter.set_cooldown(30.0)
        task = asyncio.create_task(client.do_json("GET", "/x"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.anyio
async def test_cancellation_propagates_during_rate_limit_sleep() -> None:
    calls: list[float] = []
    limited = asyncio.Event()

    def handler(_request: httpx.Request) -> httpx.Response:
        calls.append(time.monotonic())
        limited.set()
        return httpx.Response(429, json={"retry_after": 30, "global": False})

    async with _client(handler) as client:
        task = asyncio.create_task(client.do_json("GET", "/x"))
        await asyncio.wait_for(limited.wait(), timeout=5)
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert client.rate_limiter.remaining() == 0

    assert len(calls) == 1
