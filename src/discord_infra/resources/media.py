from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Optional

import httpx

from ..errors import InvalidInputError

DEFAULT_MIME_TYPE = "application/octet-stream"
DOWNLOAD_TIMEOUT_SECONDS = 30.0


def data_uri(content: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"


def read_local_file(path: str) -> tuple[str, bytes]:
    """Return ``(file name, bytes)`` for an upload read from disk."""
    source = Path(path).expanduser()
    try:
        return source.name, source.read_bytes()
    except OSError as exc:
        raise InvalidInputError(f"cannot read {path}: {exc}") from exc


def file_data_uri(path: str) -> str:
    _, content = read_local_file(path)
    mime_type, _ = mimetypes.guess_type(path)
    return data_uri(content, mime_type or DEFAULT_MIME_TYPE)


async def remote_data_uri(
    url: str, *, client: Optional[httpx.AsyncClient] = None
) -> str:
    """Download an image and inline it; Discord only accepts data URIs for icons.

    A fresh client is used by default so the bot token never leaves the API host.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT_SECONDS) as owned:
            return await remote_data_uri(url, client=owned)
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    mime_type = response.headers.get("Content-Type", "").split(";")[0].strip()
    if not mime_type:
        mime_type = mimetypes.guess_type(url)[0] or DEFAULT_MIME_TYPE
    return data_uri(response.content, mime_type)
