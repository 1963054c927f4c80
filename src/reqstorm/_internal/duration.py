"""Nanosecond duration helpers."""

from __future__ import annotations

_NANOS_PER_SECOND = 1_000_000_000


def duration_to_seconds(nanoseconds: int) -> float:
    """Convert an integer nanosecond duration to fractional seconds.

    Whole seconds and the nanosecond remainder are converted separately so
    that long durations keep nanosecond resolution as far as a float allows.

    Args:
        nanoseconds: Non-negative duration in nanoseconds.

    Returns:
        The duration in seconds.
    """
    seconds, remainder = divmod(nanoseconds, _NANOS_PER_SECOND)
    return float(seconds) + remainder / _NANOS_PER_SECOND
