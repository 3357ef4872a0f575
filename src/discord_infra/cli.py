"""Command line entrypoint for ad-hoc calls against the Discord API."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from .config import DiscordProviderConfig
from .constants import PACKAGE_VERSION
from .context import build_context
from .core.json_utils import parse_json_document, query_from_json
from .data_sources import PERMISSION_FLAGS
from .errors import DiscordError
from .provider import DATA_SOURCES, RESOURCES, get_data_source

app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"discord-infra {PACKAGE_VERSION}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests."),
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING, format="%(message)s"
    )


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _load_config(
    token: Optional[str], config_path: Optional[Path]
) -> DiscordProviderConfig:
    overrides = {"token": token}
    try:
        if config_path is not None:
            return DiscordProviderConfig.load(config_path, overrides=overrides)
        return DiscordProviderConfig.from_raw(overrides)
    except DiscordError as exc:
        raise_exit(str(exc), cause=exc)


TOKEN_OPTION = typer.Option(
    None, "--token", envvar="DISCORD_TOKEN", help="Bot token.", show_default=False
)
CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="YAML config with a discord section."
)


@app.command()
def request(
    method: str = typer.Argument(..., help="HTTP method, e.g. GET."),
    path: str = typer.Argument(..., help="API path, e.g. /users/@me."),
    body: Optional[str] = typer.Option(None, "--body", help="JSON request body."),
    query_json: Optional[str] = typer.Option(
        None, "--query-json", help="JSON object of query parameters."
    ),
    reason: Optional[str] = typer.Option(None, "--reason", help="Audit log reason."),
    token: Optional[str] = TOKEN_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Send one request and print the JSON response."""
    config = _load_config(token, config_path)
    try:
        payload = parse_json_document(body or "", field_name="--body")
        query = query_from_json(query_json or "")
    except DiscordError as exc:
        raise_exit(str(exc), cause=exc)

    async def _run() -> Any:
        async with build_context(config) as ctx:
            return await ctx.rest.do_json(
                method, path, query=query, body=payload, reason=reason
            )

    try:
        result = asyncio.run(_run())
    except DiscordError as exc:
        raise_exit(str(exc), cause=exc)
    if result is not None:
        typer.echo(json.dumps(result, indent=2, sort_keys=True))


@app.command("check-token")
def check_token(
    token: Optional[str] = TOKEN_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Verify the bot token by fetching the bot user."""
    config = _load_config(token, config_path)

    async def _run() -> Any:
        async with build_context(config) as ctx:
            return await ctx.rest.do_json("GET", "/users/@me")

    try:
        user = asyncio.run(_run())
    except DiscordError as exc:
        raise_exit(str(exc), cause=exc)
    user = user if isinstance(user, dict) else {}
    typer.echo(f"authenticated as {user.get('username', '?')} ({user.get('id', '?')})")


@app.command()
def permissions(
    allow: list[str] = typer.Option([], "--allow", help="Permission flag to allow."),
    deny: list[str] = typer.Option([], "--deny", help="Permission flag to deny."),
) -> None:
    """Compose allow and deny bitsets from permission flag names."""
    source = get_data_source("discord_permission")
    config = {flag: "allow" for flag in allow}
    config.update({flag: "deny" for flag in deny})
    unknown = sorted(set(config) - set(PERMISSION_FLAGS))
    if unknown:
        raise_exit(f"unknown permission flags: {', '.join(unknown)}")
    d = source.data(config)
    try:
        diagnostics = asyncio.run(source.read(None, d))  # type: ignore[arg-type]
    except DiscordError as exc:
        raise_exit(str(exc), cause=exc)
    for diagnostic in diagnostics:
        typer.echo(diagnostic.summary, err=True)
    typer.echo(f"allow={d.get('allow_bits64')} deny={d.get('deny_bits64')}")


@app.command("list")
def list_types() -> None:
    """List the resource types and data sources this provider serves."""
    for name in sorted(RESOURCES):
        typer.echo(f"resource     {name}")
    for name in sorted(DATA_SOURCES):
        typer.echo(f"data source  {name}")


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
