"""Naming and grouping helpers for mangadl artifacts."""

from .filenames import chapter_file_name, natural_sort_key, sanitize, volume_file_name
from .grouping import (
    GroupNameCache,
    VolumeGroupIndex,
    chapter_sort_key,
    group_chapters,
    sorted_volume_keys,
)

__all__ = [
    "GroupNameCache",
    "VolumeGroupIndex",
    "chapter_file_name",
    "chapter_sort_key",
    "group_chapters",
    "natural_sort_key",
    "sanitize",
    "sorted_volume_keys",
    "volume_file_name",
]
