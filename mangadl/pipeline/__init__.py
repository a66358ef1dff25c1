"""Download pipeline: batching, retries, chapter downloads and orchestration."""

from .batching import run_in_batches
from .chapter import ChapterDownloader, PageSource
from .orchestrator import ContentSource, DownloadManager, chapter_folder_name
from .retry import RetryOutcome, RetryPolicy, next_delay_ms

__all__ = [
    "ChapterDownloader",
    "ContentSource",
    "DownloadManager",
    "PageSource",
    "RetryOutcome",
    "RetryPolicy",
    "chapter_folder_name",
    "next_delay_ms",
    "run_in_batches",
]
