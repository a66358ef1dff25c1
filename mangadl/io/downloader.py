"""Single-file streaming downloader.

Responsibilities:
- Stream one remote resource into a `.part` file next to its destination.
- Publish the destination only after the body was fully written.
- Map HTTP and transport failures into `DownloadError` kinds.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Mapping, Protocol

import aiofiles
import aiohttp

from ..errors import DownloadError

_CHUNK_SIZE = 64 * 1024


class FileFetcher(Protocol):
    """Callable shape of `download_file`, used to inject fakes in tests."""

    async def __call__(
        self,
        session: aiohttp.ClientSession,
        url: str,
        destination: Path,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float = 30.0,
    ) -> int: ...


def partial_path(destination: Path) -> Path:
    """Return the temporary path a download streams into."""

    return destination.with_name(f"{destination.name}.part")


async def download_file(
    session: aiohttp.ClientSession,
    url: str,
    destination: Path,
    *,
    headers: Mapping[str, str] | None = None,
    timeout_seconds: float = 30.0,
) -> int:
    """Download `url` to `destination` and return the number of bytes written.

    Raises:
        DownloadError: On non-2xx status, transport error, timeout or empty body.
            The `.part` file never survives a failure.
    """

    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_path = partial_path(destination)
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    written = 0

    try:
        async with session.get(url, headers=headers, timeout=timeout) as response:
            if not 200 <= response.status < 300:
                raise DownloadError(
                    f"HTTP {response.status} {response.reason or ''}".strip(),
                    url=url,
                    failure_kind="http_error",
                    status_code=response.status,
                )
            async with aiofiles.open(temp_path, "wb") as handle:
                async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                    await handle.write(chunk)
                    written += len(chunk)
        if written == 0:
            raise DownloadError("Response has no body.", url=url, failure_kind="empty_body")
        temp_path.replace(destination)
    except asyncio.TimeoutError as exc:
        raise DownloadError("Request timeout", url=url, failure_kind="timeout") from exc
    except aiohttp.ClientError as exc:
        raise DownloadError(
            f"Transport error: {exc}", url=url, failure_kind="transport"
        ) from exc
    finally:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)

    return written
