"""Transfer accounting for download runs.

Responsibilities:
- Count pages fetched or skipped and chapters finished or abandoned.
- Provide summary output for CLI reporting.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TransferTracker:
    """Collect and summarize run-level transfer counters."""

    pages_downloaded: int = 0
    pages_skipped: int = 0
    bytes_downloaded: int = 0
    chapters_completed: int = 0
    chapters_failed: int = 0
    retries: int = 0

    def add_page(self, size_bytes: int) -> None:
        """Record one page fetched from the network."""

        self.pages_downloaded += 1
        self.bytes_downloaded += max(0, size_bytes)

    def add_skipped_page(self) -> None:
        """Record one page already present on disk."""

        self.pages_skipped += 1

    def add_chapter(self, *, succeeded: bool) -> None:
        if succeeded:
            self.chapters_completed += 1
        else:
            self.chapters_failed += 1

    def add_retry(self) -> None:
        self.retries += 1

    def summary(self) -> dict[str, int]:
        """Return a summary dictionary for reporting."""

        return {
            "pages_downloaded": self.pages_downloaded,
            "pages_skipped": self.pages_skipped,
            "bytes_downloaded": self.bytes_downloaded,
            "chapters_completed": self.chapters_completed,
            "chapters_failed": self.chapters_failed,
            "retries": self.retries,
        }
