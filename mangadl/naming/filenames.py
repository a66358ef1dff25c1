"""Deterministic naming helpers for chapter and volume artifacts.

Responsibilities:
- Replace filesystem-hostile characters in free-form names.
- Build chapter/volume artifact names with stable padding and suffixes.
- Provide the natural ordering used for page files and volume labels.
"""

from __future__ import annotations

import re

from ..models.datatypes import NO_VOLUME_LABEL

_FORBIDDEN_PATH_CHARACTERS = re.compile(r'[/:*?"<>|\\\[\]]')
_DIGIT_RUNS = re.compile(r"(\d+)")


def sanitize(name: object) -> str:
    """Replace path-forbidden characters with `-`; `None` becomes an empty string."""

    if name is None:
        return ""
    return _FORBIDDEN_PATH_CHARACTERS.sub("-", str(name))


def _pad(label: object, width: int = 2) -> str:
    return str(label).rjust(width, "0")


def _with_format(base: str, artifact_format: str) -> str:
    if not artifact_format:
        return base
    return f"{base}.{artifact_format}"


def chapter_file_name(
    *,
    manga_name: str,
    chapter_number: str,
    volume: str | None,
    language: str,
    group: str | None,
    artifact_format: str = "",
) -> str:
    """Build the artifact name for one chapter.

    An empty `artifact_format` returns the bare name used for loose folders.
    """

    volume_label = NO_VOLUME_LABEL if volume is None else volume
    base = (
        f"{manga_name} - Vol {volume_label} - Cap {_pad(chapter_number)} "
        f"[{language}][{sanitize(group)}]"
    )
    return _with_format(base, artifact_format)


def volume_file_name(
    *,
    manga_name: str,
    volume: str,
    language: str,
    group: str | None,
    artifact_format: str = "",
) -> str:
    """Build the artifact name for one (volume, group) job."""

    base = f"{manga_name} - Vol {_pad(volume)} [{language}][{sanitize(group)}]"
    return _with_format(base, artifact_format)


def natural_sort_key(text: str) -> list[object]:
    """Return a case-insensitive key ordering digit runs numerically (`p2` < `p10`)."""

    return [
        int(token) if token.isdigit() else token
        for token in _DIGIT_RUNS.split(text.casefold())
    ]
