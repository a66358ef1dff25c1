"""MangaDex REST client used for manga metadata and page lookups.

Responsibilities:
- Fetch manga details, chapter feeds and page locations over `aiohttp`.
- Convert raw feed entries into `Chapter` records.
- Raise actionable `MangaDexApiError` exceptions with a failure kind.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Mapping

import aiohttp

from ..config import DownloaderConfig
from ..models.datatypes import Chapter, PageSet

_UNKNOWN_AUTHOR = "Unknown author"
_UNTITLED = "Untitled"
_TITLE_LANGUAGE_PREFERENCE = ("ja", "en", "pt")


class MangaDexApiError(RuntimeError):
    """Raised when a MangaDex request fails or returns a malformed payload."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
    ) -> None:
        """Initialize API error metadata for retry and CLI diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code


def manga_title(attributes: Mapping[str, Any] | None) -> str:
    """Pick a display title, preferring Japanese, English, then Portuguese."""

    titles = (attributes or {}).get("title") or {}
    for language in _TITLE_LANGUAGE_PREFERENCE:
        if titles.get(language):
            return str(titles[language])
    for value in titles.values():
        if value:
            return str(value)
    return _UNTITLED


def manga_authors(manga: Mapping[str, Any]) -> str:
    """Join author names from a manga payload fetched with `includes[]=author`."""

    names = [
        relation["attributes"]["name"]
        for relation in manga.get("relationships") or []
        if relation.get("type") == "author"
        and (relation.get("attributes") or {}).get("name")
    ]
    return ", ".join(names) if names else _UNKNOWN_AUTHOR


def chapter_from_payload(payload: Mapping[str, Any]) -> Chapter:
    """Build a `Chapter` from one chapter-feed entry."""

    attributes = payload.get("attributes") or {}
    group_id = next(
        (
            relation.get("id")
            for relation in payload.get("relationships") or []
            if relation.get("type") == "scanlation_group"
        ),
        None,
    )
    return Chapter(
        id=str(payload["id"]),
        chapter=attributes.get("chapter") or None,
        volume=attributes.get("volume") or None,
        language=attributes.get("translatedLanguage") or "",
        external_url=attributes.get("externalUrl") or None,
        group_id=group_id or None,
    )


class MangaDexClient:
    """Minimal async MangaDex client sharing the run's `aiohttp` session."""

    def __init__(self, session: aiohttp.ClientSession, config: DownloaderConfig) -> None:
        self._session = session
        self._base_url = config.api_base_url.rstrip("/")
        self._headers = config.headers
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout_seconds)
        self._page_limit = config.default_page_limit

    async def get_manga(self, manga_id: str) -> dict[str, Any]:
        """Return the manga payload including author relationships."""

        payload = await self._get_json(f"/manga/{manga_id}", [("includes[]", "author")])
        return self._require_mapping(payload.get("data"), "data")

    async def list_languages(self, manga_id: str) -> list[str]:
        """Return translated language codes present in the manga feed, sorted."""

        languages: set[str] = set()
        async for entry in self._walk_feed(manga_id, []):
            code = (entry.get("attributes") or {}).get("translatedLanguage")
            if code:
                languages.add(code)
        return sorted(languages)

    async def list_chapters(self, manga_id: str, language: str | None = None) -> list[Chapter]:
        """Return every feed chapter, optionally filtered to one language."""

        params: list[tuple[str, str]] = [
            ("order[chapter]", "asc"),
            ("includes[]", "scanlation_group"),
        ]
        if language:
            params.append(("translatedLanguage[]", language))
        return [chapter_from_payload(entry) async for entry in self._walk_feed(manga_id, params)]

    async def get_page_locations(self, chapter_id: str) -> PageSet:
        """Resolve the at-home server, content hash and page files of a chapter."""

        payload = await self._get_json(f"/at-home/server/{chapter_id}")
        chapter = self._require_mapping(payload.get("chapter"), "chapter")
        base_url = payload.get("baseUrl")
        if not isinstance(base_url, str) or not base_url:
            raise MangaDexApiError(
                "MangaDex at-home response missing `baseUrl`.",
                failure_kind="invalid_payload",
            )
        files = chapter.get("data")
        if not isinstance(files, list):
            raise MangaDexApiError(
                "MangaDex at-home response missing `chapter.data` list.",
                failure_kind="invalid_payload",
            )
        return PageSet(
            base_url=base_url,
            hash=str(chapter.get("hash") or ""),
            files=tuple(str(name) for name in files),
        )

    async def get_group_name(self, group_id: str) -> str:
        """Return the display name of a scanlation group."""

        payload = await self._get_json(f"/group/{group_id}")
        data = self._require_mapping(payload.get("data"), "data")
        name = (data.get("attributes") or {}).get("name")
        if not isinstance(name, str) or not name.strip():
            raise MangaDexApiError(
                f"MangaDex group `{group_id}` has no name.",
                failure_kind="invalid_payload",
            )
        return name.strip()

    async def _walk_feed(
        self, manga_id: str, params: list[tuple[str, str]]
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield feed entries across all pages of the manga feed."""

        offset = 0
        total = 1
        while offset < total:
            page_params = [
                ("limit", str(self._page_limit)),
                ("offset", str(offset)),
                *params,
            ]
            payload = await self._get_json(f"/manga/{manga_id}/feed", page_params)
            entries = payload.get("data")
            if not isinstance(entries, list):
                raise MangaDexApiError(
                    "MangaDex feed response missing `data` list.",
                    failure_kind="invalid_payload",
                )
            for entry in entries:
                yield entry
            if not entries:
                break
            offset += len(entries)
            total = int(payload.get("total") or 0)

    async def _get_json(
        self,
        path: str,
        params: list[tuple[str, str]] | None = None,
    ) -> dict[str, Any]:
        """Execute one GET request and map failures consistently."""

        url = f"{self._base_url}{path}"
        try:
            async with self._session.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
            ) as response:
                if response.status >= 400:
                    raise MangaDexApiError(
                        f"MangaDex request failed (HTTP {response.status}): {path}",
                        failure_kind="not_found" if response.status == 404 else "http_error",
                        status_code=response.status,
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise MangaDexApiError(
                f"MangaDex request timed out: {path}", failure_kind="timeout"
            ) from exc
        except aiohttp.ClientError as exc:
            raise MangaDexApiError(
                f"MangaDex request transport error: {exc}", failure_kind="transport"
            ) from exc
        except ValueError as exc:
            raise MangaDexApiError(
                f"MangaDex returned invalid JSON: {path}", failure_kind="invalid_payload"
            ) from exc

        return self._require_mapping(payload, "response")

    @staticmethod
    def _require_mapping(value: object, field_name: str) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise MangaDexApiError(
                f"MangaDex response `{field_name}` is not an object.",
                failure_kind="invalid_payload",
            )
        return value
