"""Top-level package for mangadl.

This package downloads MangaDex chapters and volumes and packs them into
folders, zip archives or PDFs. The main orchestration entry point is
`DownloadManager`.
"""

from .pipeline import DownloadManager

__all__ = ["DownloadManager", "__version__"]

__version__ = "0.1.0"
