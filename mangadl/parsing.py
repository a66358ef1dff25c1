"""Shared parsing helpers for config and CLI value normalization."""

from __future__ import annotations


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_int_in_range(
    value: object,
    field_name: str,
    *,
    minimum: int = 1,
    maximum: int | None = None,
) -> int:
    """Parse an integer token and validate it against inclusive bounds.

    Args:
        value: Integer or numeric text to parse.
        field_name: Field name for an actionable validation error message.
        minimum: Smallest accepted value.
        maximum: Largest accepted value, unbounded when `None`.

    Raises:
        ValueError: If the value is not an integer or falls outside the bounds.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be an integer.")
    if isinstance(value, int):
        parsed = value
    else:
        normalized = normalize_optional_string(value)
        if normalized is None:
            raise ValueError(f"`{field_name}` must be an integer.")
        try:
            parsed = int(normalized, 10)
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be an integer.") from exc

    if parsed < minimum or (maximum is not None and parsed > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ValueError(f"`{field_name}` must be {bounds}.")
    return parsed


def parse_positive_float(value: object, field_name: str) -> float:
    """Parse a strictly positive float from a number or numeric text."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive number.")
    try:
        parsed = float(value) if isinstance(value, int | float) else float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a positive number.") from exc
    if parsed <= 0.0:
        raise ValueError(f"`{field_name}` must be a positive number.")
    return parsed
