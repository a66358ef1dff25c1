"""Shared test doubles and builders for download pipeline tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Mapping

from PIL import Image

from mangadl.config import DownloaderConfig
from mangadl.errors import DownloadError
from mangadl.models.datatypes import Chapter, PageSet


def fast_config(**overrides: object) -> DownloaderConfig:
    """Return a config with small waves and no backoff sleep."""

    values: dict[str, object] = {
        "retry_delay_ms": 0,
        "max_retries": 3,
        "pages_per_batch": 2,
        "chapters_per_batch": 2,
        "volumes_per_batch": 1,
    }
    values.update(overrides)
    return DownloaderConfig(**values)


def png_bytes(size: tuple[int, int] = (30, 40), color: str = "red", mode: str = "RGB") -> bytes:
    """Encode a solid-color PNG image."""

    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def write_image(path: Path, size: tuple[int, int] = (30, 40), color: str = "red") -> Path:
    """Write a solid-color image to `path`, creating parent folders."""

    path.parent.mkdir(parents=True, exist_ok=True)
    image_format = "JPEG" if path.suffix.lower() in {".jpg", ".jpeg"} else "PNG"
    Image.new("RGB", size, color).save(path, format=image_format)
    return path


def make_chapter(
    chapter_id: str,
    chapter: str | None = "1",
    *,
    volume: str | None = "1",
    group_id: str | None = "group-1",
    external_url: str | None = None,
    language: str = "en",
) -> Chapter:
    """Build a chapter record with test-friendly defaults."""

    return Chapter(
        id=chapter_id,
        chapter=chapter,
        volume=volume,
        language=language,
        external_url=external_url,
        group_id=group_id,
    )


class FakeContentSource:
    """In-memory page locations and group names with call recording."""

    def __init__(
        self,
        pages: Mapping[str, list[str]],
        groups: Mapping[str, str] | None = None,
    ) -> None:
        self.pages = dict(pages)
        self.groups = dict(groups or {})
        self.page_calls: list[str] = []
        self.group_calls: list[str] = []

    async def get_page_locations(self, chapter_id: str) -> PageSet:
        self.page_calls.append(chapter_id)
        return PageSet(
            base_url="https://uploads.test",
            hash=f"hash-{chapter_id}",
            files=tuple(self.pages.get(chapter_id, [])),
        )

    async def get_group_name(self, group_id: str) -> str:
        self.group_calls.append(group_id)
        return self.groups[group_id]


class FakeFetcher:
    """Page fetcher writing a PNG per URL, failing selected file names.

    `failures` maps a page file name to how many times it fails before it
    succeeds; a negative count fails forever.
    """

    def __init__(
        self,
        failures: Mapping[str, int] | None = None,
        image_size: tuple[int, int] = (30, 40),
    ) -> None:
        self.failures = dict(failures or {})
        self.image_size = image_size
        self.calls: list[str] = []
        self.headers: list[Mapping[str, str] | None] = []

    async def __call__(
        self,
        session: object,
        url: str,
        destination: Path,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float = 30.0,
    ) -> int:
        _ = session
        _ = timeout_seconds
        self.calls.append(url)
        self.headers.append(headers)
        file_name = url.rsplit("/", maxsplit=1)[-1]
        remaining = self.failures.get(file_name, 0)
        if remaining != 0:
            self.failures[file_name] = remaining - 1 if remaining > 0 else remaining
            raise DownloadError("HTTP 503 Service Unavailable", url=url, failure_kind="http_error")
        payload = png_bytes(self.image_size)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(payload)
        return len(payload)
