"""Shared type aliases for reqstorm."""

from __future__ import annotations

from collections.abc import Callable

# HTTP status code -> number of responses observed.
StatusHistogram = dict[int, int]

# Invoked with the number of completed requests to add to progress.
ProgressCallback = Callable[[int], None]
