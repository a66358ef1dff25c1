"""Per-chapter page download pipeline.

Responsibilities:
- Resolve a chapter's page list and fetch every page in bounded waves.
- Skip pages already present on disk so retries only fetch what is missing.
- Wrap one full chapter pass with the retry policy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import aiohttp

from ..config import DownloaderConfig
from ..errors import ContentError, PartialChapterError
from ..io.downloader import FileFetcher, download_file
from ..io.workspace import is_non_empty_file
from ..models.datatypes import Chapter, PageSet
from ..telemetry.logger import RunLogger
from ..telemetry.transfer_tracker import TransferTracker
from .batching import run_in_batches
from .retry import RetryOutcome, RetryPolicy


class PageSource(Protocol):
    """Remote collaborator resolving where a chapter's pages live."""

    async def get_page_locations(self, chapter_id: str) -> PageSet: ...


class ChapterDownloader:
    """Download all pages of one chapter into a destination folder."""

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession,
        page_source: PageSource,
        config: DownloaderConfig,
        fetcher: FileFetcher = download_file,
        retry_policy: RetryPolicy | None = None,
        run_logger: RunLogger | None = None,
        tracker: TransferTracker | None = None,
    ) -> None:
        self._session = session
        self._page_source = page_source
        self._config = config
        self._fetcher = fetcher
        self._run_logger = run_logger
        self._tracker = tracker if tracker is not None else TransferTracker()
        if retry_policy is None:
            retry_policy = RetryPolicy(
                max_attempts=config.max_retries,
                base_delay_ms=config.retry_delay_ms,
                run_logger=run_logger,
                on_retry=self._tracker.add_retry,
            )
        self._retry_policy = retry_policy

    @property
    def tracker(self) -> TransferTracker:
        return self._tracker

    async def download(self, chapter: Chapter, destination: Path) -> RetryOutcome:
        """Download a chapter with retries; never raises for download failures."""

        outcome = await self._retry_policy.run(
            lambda: self.download_once(chapter, destination),
            label=f"chapter-{chapter.number_label}",
        )
        self._tracker.add_chapter(succeeded=outcome.succeeded)
        return outcome

    async def download_once(self, chapter: Chapter, destination: Path) -> bool:
        """Run one full pass over the chapter's pages.

        Raises:
            ContentError: The chapter resolved to an empty page list.
            PartialChapterError: Some pages failed; the rest stay on disk.
        """

        if chapter.is_external:
            self._log("INFO", "skipped_external", chapter=chapter.number_label)
            return True

        page_set = await self._page_source.get_page_locations(chapter.id)
        files = page_set.unique_files()
        if not files:
            raise ContentError(f"Chapter {chapter.number_label} has no pages.")

        failures: list[tuple[str, BaseException]] = []
        headers = {"Referer": self._config.referer}

        async def fetch_page(file_name: str) -> None:
            page_path = destination / Path(file_name).name
            if is_non_empty_file(page_path):
                self._tracker.add_skipped_page()
                return
            try:
                size = await self._fetcher(
                    self._session,
                    page_set.page_url(file_name),
                    page_path,
                    headers=headers,
                    timeout_seconds=self._config.request_timeout_seconds,
                )
            except Exception as exc:
                failures.append((file_name, exc))
                if self._run_logger is not None:
                    self._run_logger.log_event(
                        "WARNING",
                        "page",
                        "failure",
                        chapter=chapter.number_label,
                        page=file_name,
                        error_type=type(exc).__name__,
                    )
                return
            self._tracker.add_page(size)

        await run_in_batches(files, self._config.pages_per_batch, fetch_page)

        if failures:
            raise PartialChapterError(len(failures), len(files))

        self._log("INFO", "complete", chapter=chapter.number_label, pages=len(files))
        return True

    def _log(self, level: str, event: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_event(level, "chapter", event, **context)
