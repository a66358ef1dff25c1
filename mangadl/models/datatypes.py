"""Core datatypes shared across mangadl modules.

Responsibilities:
- Represent immutable chapter, page and job records exchanged between stages.
- Provide explicit tagged keys for volume/group grouping.
- Provide the `JobResult` value returned by every download job.

Key types:
- `Chapter`, `PageSet`, `VolumeKey`, `GroupKey`, `ArtifactFormat`,
  `DownloadJob`, and `JobResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

NO_VOLUME_LABEL = "No Volume"
NO_GROUP_LABEL = "No Group"
UNKNOWN_GROUP_LABEL = "Unknown Group"
UNKNOWN_CHAPTER_LABEL = "unknown"


class ArtifactFormat(str, Enum):
    """Deliverable kinds produced for a download job."""

    LOOSE = "loose"
    ZIP = "zip"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        """Return the file extension, empty for loose folders."""

        if self is ArtifactFormat.LOOSE:
            return ""
        return self.value


@dataclass(frozen=True, slots=True)
class VolumeKey:
    """Volume label, or the "no volume" bucket when `value` is `None`."""

    value: str | None = None

    @property
    def is_none(self) -> bool:
        return self.value is None

    @property
    def label(self) -> str:
        return NO_VOLUME_LABEL if self.value is None else self.value


@dataclass(frozen=True, slots=True)
class GroupKey:
    """Publishing-group identifier, or the "no group" bucket when `value` is `None`."""

    value: str | None = None

    @property
    def is_none(self) -> bool:
        return self.value is None


@dataclass(frozen=True, slots=True)
class Chapter:
    """One downloadable chapter as listed by the remote feed.

    Attributes:
        id: Remote chapter identifier.
        chapter: Chapter number label, `None` when the feed has none.
        volume: Volume label, `None` when the chapter has no volume.
        language: Translated language code.
        external_url: Redirect target for chapters hosted elsewhere.
        group_id: Publishing-group identifier, `None` when uncredited.
    """

    id: str
    chapter: str | None
    volume: str | None
    language: str
    external_url: str | None = None
    group_id: str | None = None

    @property
    def number_label(self) -> str:
        return self.chapter or UNKNOWN_CHAPTER_LABEL

    @property
    def volume_key(self) -> VolumeKey:
        return VolumeKey(self.volume or None)

    @property
    def group_key(self) -> GroupKey:
        return GroupKey(self.group_id or None)

    @property
    def is_external(self) -> bool:
        return bool(self.external_url)


@dataclass(frozen=True, slots=True)
class PageSet:
    """Resolved page locations for one chapter."""

    base_url: str
    hash: str
    files: tuple[str, ...]

    def page_url(self, file_name: str) -> str:
        """Return the absolute URL of one page file."""

        return f"{self.base_url.rstrip('/')}/data/{self.hash}/{file_name}"

    def unique_files(self) -> list[str]:
        """Return page file ids with duplicates collapsed, keeping first occurrence order."""

        return list(dict.fromkeys(self.files))


@dataclass(frozen=True, slots=True)
class DownloadJob:
    """One (volume, group) download request built for volume mode."""

    manga_name: str
    volume: VolumeKey
    group_name: str
    chapters: tuple[Chapter, ...]
    language: str
    output_dir: Path
    artifact_format: ArtifactFormat
    pdf_per_chapter: bool = False


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of one chapter or volume job.

    Successful jobs carry their artifact paths (a folder for loose output).
    Failed jobs carry an `error_kind` (`download` or `packaging`) and detail.
    """

    label: str
    artifact_paths: tuple[Path, ...] = field(default_factory=tuple)
    error_kind: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, label: str, *paths: Path, detail: str | None = None) -> JobResult:
        return cls(label=label, artifact_paths=tuple(paths), detail=detail)

    @classmethod
    def failure(cls, label: str, error_kind: str, detail: str) -> JobResult:
        return cls(label=label, error_kind=error_kind, detail=detail)
