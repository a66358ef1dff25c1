"""Shared typed data models for mangadl.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    ArtifactFormat,
    Chapter,
    DownloadJob,
    GroupKey,
    JobResult,
    PageSet,
    VolumeKey,
)

__all__ = [
    "ArtifactFormat",
    "Chapter",
    "DownloadJob",
    "GroupKey",
    "JobResult",
    "PageSet",
    "VolumeKey",
]
