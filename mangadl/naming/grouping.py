"""Chapter grouping and publishing-group name resolution.

Responsibilities:
- Partition a flat chapter list into a read-only volume -> group index.
- Order chapters and volume labels the way listings present them.
- Cache publishing-group display names for the lifetime of one run.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
import math
from types import MappingProxyType

from ..models.datatypes import (
    NO_GROUP_LABEL,
    UNKNOWN_GROUP_LABEL,
    Chapter,
    GroupKey,
    VolumeKey,
)
from ..telemetry.logger import RunLogger
from .filenames import natural_sort_key

VolumeGroupIndex = Mapping[VolumeKey, Mapping[GroupKey, tuple[Chapter, ...]]]
GroupLookup = Callable[[str], Awaitable[str]]


def group_chapters(chapters: Iterable[Chapter]) -> VolumeGroupIndex:
    """Bucket chapters by volume then publishing group, preserving input order."""

    buckets: dict[VolumeKey, dict[GroupKey, list[Chapter]]] = {}
    for chapter in chapters:
        by_group = buckets.setdefault(chapter.volume_key, {})
        by_group.setdefault(chapter.group_key, []).append(chapter)

    return MappingProxyType(
        {
            volume: MappingProxyType(
                {group: tuple(members) for group, members in by_group.items()}
            )
            for volume, by_group in buckets.items()
        }
    )


def sorted_volume_keys(index: VolumeGroupIndex) -> list[VolumeKey]:
    """Return volume keys in natural label order with the "no volume" bucket last."""

    labelled = sorted(
        (key for key in index if not key.is_none),
        key=lambda key: natural_sort_key(key.label),
    )
    if any(key.is_none for key in index):
        labelled.append(VolumeKey(None))
    return labelled


def chapter_sort_key(chapter: Chapter) -> float:
    """Sort chapters by numeric chapter value; non-numeric labels sort last."""

    try:
        value = float(chapter.chapter) if chapter.chapter is not None else math.inf
    except ValueError:
        return math.inf
    return value if math.isfinite(value) else math.inf


class GroupNameCache:
    """Run-scoped mapping from publishing-group id to display name.

    Concurrent misses for one id may call the lookup more than once; the
    resolved value is the same, so the last write wins harmlessly.
    """

    def __init__(self, run_logger: RunLogger | None = None) -> None:
        self._names: dict[str, str] = {}
        self._run_logger = run_logger

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._names

    def __len__(self) -> int:
        return len(self._names)

    async def resolve(self, chapter: Chapter, lookup: GroupLookup) -> str:
        """Return the display name of the chapter's group, consulting `lookup` on miss."""

        group_id = chapter.group_id
        if not group_id:
            return NO_GROUP_LABEL
        cached = self._names.get(group_id)
        if cached is not None:
            return cached

        try:
            name = await lookup(group_id) or UNKNOWN_GROUP_LABEL
        except Exception as exc:
            if self._run_logger is not None:
                self._run_logger.log_event(
                    "WARNING",
                    "group",
                    "lookup_failed",
                    group=group_id,
                    error_type=type(exc).__name__,
                )
            name = UNKNOWN_GROUP_LABEL
        self._names[group_id] = name
        return name
