"""Chapter and volume selection parsing for the CLI.

Responsibilities:
- Parse 1-based chapter position expressions (`1`, `1,3`, `2-5`, mixed).
- Parse volume selections (`1,2,none`) against the volumes a manga has.
- Produce deterministic normalized selection labels.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .models.datatypes import VolumeKey

NO_VOLUME_TOKEN = "none"


def parse_chapter_selection(selection: str | None, available_count: int) -> list[int]:
    """Parse a chapter selection expression into sorted unique 1-based positions.

    Args:
        selection: User selection string. `None` or blank selects every chapter.
        available_count: Number of chapters in the sorted chapter list.

    Returns:
        Sorted selected positions.

    Raises:
        ValueError: If the selection syntax or bounds are invalid.
    """

    if available_count < 1:
        raise ValueError("No chapters are available for selection.")

    if selection is None or not selection.strip():
        return list(range(1, available_count + 1))

    tokens = [part.strip() for part in selection.split(",")]
    if any(not token for token in tokens):
        raise ValueError(
            "Malformed chapter selection: empty item in list. "
            "Use syntax like `1`, `1,3`, `2-4`, or `1,3-5`."
        )

    selected: set[int] = set()
    for token in tokens:
        for position in _expand_token(token, available_count):
            if position in selected:
                raise ValueError(
                    f"Overlapping chapter selection contains duplicate position `{position}`."
                )
            selected.add(position)
    return sorted(selected)


def format_chapter_selection(positions: Iterable[int]) -> str:
    """Format selected positions into normalized compact range syntax."""

    ordered = sorted(set(int(position) for position in positions))
    if not ordered:
        return ""

    parts: list[str] = []
    start = ordered[0]
    end = ordered[0]
    for position in ordered[1:]:
        if position == end + 1:
            end = position
            continue
        parts.append(str(start) if start == end else f"{start}-{end}")
        start = position
        end = position
    parts.append(str(start) if start == end else f"{start}-{end}")
    return ",".join(parts)


def parse_volume_selection(
    selection: str | None, available: Sequence[VolumeKey]
) -> list[VolumeKey]:
    """Resolve a comma-separated volume list to keys present in `available`.

    The token `none` selects chapters without a volume. A blank selection
    returns `available` unchanged.
    """

    if not available:
        raise ValueError("No volumes are available for selection.")
    if selection is None or not selection.strip():
        return list(available)

    by_token = {
        (NO_VOLUME_TOKEN if key.is_none else str(key.value).casefold()): key
        for key in available
    }
    selected: list[VolumeKey] = []
    for raw in selection.split(","):
        token = raw.strip().casefold()
        if not token:
            raise ValueError(
                "Malformed volume selection: empty item in list. "
                "Use syntax like `1`, `1,2`, or `3,none`."
            )
        key = by_token.get(token)
        if key is None:
            labels = ", ".join(by_token)
            raise ValueError(f"Volume `{raw.strip()}` is not available. Available: {labels}.")
        if key not in selected:
            selected.append(key)
    return selected


def _expand_token(token: str, available_count: int) -> list[int]:
    """Expand one token (`N` or `N-M`) to concrete positions."""

    if "-" not in token:
        position = _parse_positive_position(token)
        _validate_position(position, available_count)
        return [position]

    if token.count("-") != 1:
        raise ValueError(
            f"Malformed chapter range `{token}`. Use closed range syntax like `2-4`."
        )
    start_text, end_text = token.split("-", maxsplit=1)
    if not start_text or not end_text:
        raise ValueError(
            f"Malformed chapter range `{token}`. Use closed range syntax like `2-4`."
        )

    start = _parse_positive_position(start_text)
    end = _parse_positive_position(end_text)
    if start > end:
        raise ValueError(
            f"Malformed chapter range `{token}`: range start must be less than or equal to end."
        )
    _validate_position(end, available_count)
    return list(range(start, end + 1))


def _parse_positive_position(token: str) -> int:
    try:
        value = int(token.strip(), 10)
    except ValueError as exc:
        raise ValueError(
            f"Invalid chapter position `{token}`. Positions must be integers."
        ) from exc
    if value < 1:
        raise ValueError(
            f"Invalid chapter position `{token}`. Positions must be positive and 1-based."
        )
    return value


def _validate_position(position: int, available_count: int) -> None:
    if position > available_count:
        raise ValueError(
            f"Chapter position `{position}` is out of available bounds `1-{available_count}`."
        )
