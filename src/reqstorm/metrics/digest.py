"""Latency digest backed by an HDR histogram.

The aggregator treats this as an opaque summary: feed it samples in
seconds, then ask for the mean and quantiles. Internally samples are
stored as integer microseconds, the resolution the HDR histogram's
integer-only API is configured for.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from reqstorm._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger("metrics.digest")

_MICROS_PER_SECOND = 1_000_000

# Range: 1 microsecond to 1 hour (in microseconds)
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 3_600 * _MICROS_PER_SECOND
_SIGNIFICANT_DIGITS = 3


class LatencyDigest:
    """Approximate latency distribution answering mean and quantile queries.

    All public methods accept and return **seconds**. Queries do not
    modify the digest, so asking for the same quantile twice returns the
    same value.

    Attributes:
        lowest_us: Lowest trackable value in microseconds.
        highest_us: Highest trackable value in microseconds.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        """Initialize an empty digest.

        Args:
            lowest_us: Lowest trackable value in microseconds.
            highest_us: Highest trackable value in microseconds.
            significant_digits: Number of significant value digits to keep.
        """
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    @property
    def count(self) -> int:
        """Return the number of ingested samples."""
        return int(self._histogram.total_count)

    def ingest(self, samples: Iterable[float]) -> LatencyDigest:
        """Add a batch of latency samples.

        Samples outside the trackable range are clamped to it. Insertion
        order does not matter.

        Args:
            samples: Latencies in seconds.

        Returns:
            This digest, for chaining.
        """
        values = np.fromiter(samples, dtype=np.float64)
        if values.size == 0:
            return self

        micros = np.rint(values * _MICROS_PER_SECOND).astype(np.int64)
        clipped = np.clip(micros, self.lowest_us, self.highest_us)
        clamped = int(np.count_nonzero(clipped != micros))
        if clamped:
            logger.debug("Clamped %d samples to the trackable latency range", clamped)

        for value_us in clipped.tolist():
            self._histogram.record_value(value_us)
        return self

    def quantile(self, q: float) -> float:
        """Return the latency at quantile ``q``.

        Args:
            q: Quantile between 0.0 and 1.0.

        Returns:
            Latency in seconds, or 0.0 if the digest is empty.

        Raises:
            ValueError: If ``q`` is outside [0, 1].
        """
        if not 0.0 <= q <= 1.0:
            msg = f"Quantile must be within [0, 1], got: {q}"
            raise ValueError(msg)
        if self.count == 0:
            return 0.0
        value_us = self._histogram.get_value_at_percentile(q * 100.0)
        return float(value_us) / _MICROS_PER_SECOND

    def mean(self) -> float:
        """Return the mean latency in seconds, or 0.0 if empty."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_mean_value()) / _MICROS_PER_SECOND

    def min(self) -> float:
        """Return the smallest latency in seconds, or 0.0 if empty."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_min_value()) / _MICROS_PER_SECOND

    def max(self) -> float:
        """Return the largest latency in seconds, or 0.0 if empty."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_max_value()) / _MICROS_PER_SECOND
