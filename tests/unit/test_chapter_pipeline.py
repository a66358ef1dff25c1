"""Unit tests for the per-chapter page download pipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path

from mangadl.api.mangadex import MangaDexApiError
from mangadl.errors import ContentError, PartialChapterError
from mangadl.models.datatypes import PageSet
from mangadl.pipeline.chapter import ChapterDownloader
from tests.support import FakeContentSource, FakeFetcher, fast_config, make_chapter


def _downloader(
    source: FakeContentSource, fetcher: FakeFetcher, **config_overrides: object
) -> ChapterDownloader:
    return ChapterDownloader(
        session=None,  # type: ignore[arg-type]
        page_source=source,
        config=fast_config(**config_overrides),
        fetcher=fetcher,
    )


def test_external_chapter_succeeds_without_requests(tmp_path: Path) -> None:
    """Chapters hosted elsewhere are skipped as successful no-ops."""

    source = FakeContentSource({"c1": ["p1.png"]})
    fetcher = FakeFetcher()
    chapter = make_chapter("c1", external_url="https://elsewhere.test/c1")

    outcome = asyncio.run(_downloader(source, fetcher).download(chapter, tmp_path))

    assert outcome.succeeded is True
    assert source.page_calls == []
    assert fetcher.calls == []


def test_download_collapses_duplicate_page_ids(tmp_path: Path) -> None:
    """Duplicate page ids in the page list are fetched once."""

    source = FakeContentSource({"c1": ["p1.png", "p1.png", "p2.png"]})
    fetcher = FakeFetcher()

    outcome = asyncio.run(_downloader(source, fetcher).download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is True
    assert fetcher.calls == [
        "https://uploads.test/data/hash-c1/p1.png",
        "https://uploads.test/data/hash-c1/p2.png",
    ]
    assert sorted(path.name for path in tmp_path.iterdir()) == ["p1.png", "p2.png"]
    assert fetcher.headers[0] == {"Referer": "https://mangadex.org"}


def test_second_run_over_complete_folder_fetches_nothing(tmp_path: Path) -> None:
    """Re-running a finished chapter should reuse every non-empty page on disk."""

    source = FakeContentSource({"c1": ["p1.png", "p2.png", "p3.png"]})
    fetcher = FakeFetcher()
    downloader = _downloader(source, fetcher)

    asyncio.run(downloader.download(make_chapter("c1"), tmp_path))
    first_run_calls = len(fetcher.calls)
    outcome = asyncio.run(downloader.download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is True
    assert first_run_calls == 3
    assert len(fetcher.calls) == 3
    assert downloader.tracker.pages_skipped == 3
    assert downloader.tracker.pages_downloaded == 3


def test_empty_page_files_are_fetched_again(tmp_path: Path) -> None:
    """A zero-byte page left on disk does not count as downloaded."""

    (tmp_path / "p1.png").write_bytes(b"")
    source = FakeContentSource({"c1": ["p1.png"]})
    fetcher = FakeFetcher()

    asyncio.run(_downloader(source, fetcher).download(make_chapter("c1"), tmp_path))

    assert len(fetcher.calls) == 1
    assert (tmp_path / "p1.png").stat().st_size > 0


def test_retry_only_fetches_missing_pages(tmp_path: Path) -> None:
    """A partial failure should be retried without refetching completed pages."""

    source = FakeContentSource({"c1": ["p1.png", "p2.png", "p3.png"]})
    fetcher = FakeFetcher(failures={"p2.png": 1})
    downloader = _downloader(source, fetcher)

    outcome = asyncio.run(downloader.download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is True
    assert outcome.attempts == 2
    fetched_names = [url.rsplit("/", maxsplit=1)[-1] for url in fetcher.calls]
    assert fetched_names.count("p1.png") == 1
    assert fetched_names.count("p3.png") == 1
    assert fetched_names.count("p2.png") == 2
    assert downloader.tracker.retries == 1
    assert downloader.tracker.chapters_completed == 1


def test_persistent_page_failure_exhausts_retries(tmp_path: Path) -> None:
    """A page failing on every attempt should fail the chapter with the failed count."""

    source = FakeContentSource({"c1": ["p1.png", "p2.png"]})
    fetcher = FakeFetcher(failures={"p2.png": -1})
    downloader = _downloader(source, fetcher, max_retries=3)

    outcome = asyncio.run(downloader.download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is False
    assert outcome.attempts == 3
    assert isinstance(outcome.error, PartialChapterError)
    assert outcome.error.failed_count == 1
    assert outcome.error.total_count == 2
    assert (tmp_path / "p1.png").exists()
    assert downloader.tracker.chapters_failed == 1


def test_empty_page_list_is_a_permanent_content_error(tmp_path: Path) -> None:
    """A chapter without pages is not retried."""

    source = FakeContentSource({"c1": []})
    fetcher = FakeFetcher()

    outcome = asyncio.run(_downloader(source, fetcher).download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is False
    assert outcome.attempts == 1
    assert isinstance(outcome.error, ContentError)
    assert source.page_calls == ["c1"]


def test_page_lookup_failures_are_retried(tmp_path: Path) -> None:
    """A failing page-location request should be retried like page failures."""

    class _FlakySource(FakeContentSource):
        async def get_page_locations(self, chapter_id: str) -> PageSet:
            if not self.page_calls:
                self.page_calls.append(chapter_id)
                raise MangaDexApiError("HTTP 503", failure_kind="http_error")
            return await super().get_page_locations(chapter_id)

    source = _FlakySource({"c1": ["p1.png"]})
    fetcher = FakeFetcher()

    outcome = asyncio.run(_downloader(source, fetcher).download(make_chapter("c1"), tmp_path))

    assert outcome.succeeded is True
    assert outcome.attempts == 2
    assert len(fetcher.calls) == 1


def test_page_names_cannot_escape_destination(tmp_path: Path) -> None:
    """Page ids with path segments should be written inside the destination folder."""

    destination = tmp_path / "chapter"
    destination.mkdir()
    source = FakeContentSource({"c1": ["../outside.png"]})
    fetcher = FakeFetcher()

    asyncio.run(_downloader(source, fetcher).download(make_chapter("c1"), destination))

    assert (destination / "outside.png").exists()
    assert not (tmp_path / "outside.png").exists()
