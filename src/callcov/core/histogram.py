"""
Depth histograms with online mean/variance.

Each histogram keeps 256 integer bins (depth 0..255, deeper positions saturate
into bin 255) and Welford running moments over the *unclamped* depth, so the
mean and standard deviation stay exact for very deep regions while the
histogram stays bounded. Percentile-style metrics are derived from the bins
after the fact.

Genome-wide statistics are produced by merging per-contig histograms in a
fixed order (Chan et al. pairwise update). Sequential and parallel walks merge
in the same order and therefore produce identical numbers.
"""

from __future__ import annotations

import math
from typing import Iterator, Optional

import numpy as np

from callcov.constants import HISTOGRAM_BINS, MAX_HISTOGRAM_DEPTH


class DepthHistogram:
    """Saturating depth histogram plus Welford mean/M2."""

    __slots__ = ("bins", "count", "mean", "m2")

    def __init__(self) -> None:
        self.bins = np.zeros(HISTOGRAM_BINS, dtype=np.int64)
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0

    def observe(self, depth: int) -> None:
        """Record the depth of one position."""
        if depth < 0:
            raise ValueError(f"Depth must be >= 0, got {depth}")
        self.bins[depth if depth < MAX_HISTOGRAM_DEPTH else MAX_HISTOGRAM_DEPTH] += 1

        # Welford's online algorithm
        self.count += 1
        delta = depth - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (depth - self.mean)

    def merge(self, other: "DepthHistogram") -> None:
        """Fold ``other`` into this histogram."""
        if other.count == 0:
            return
        if self.count == 0:
            self.bins += other.bins
            self.count = other.count
            self.mean = other.mean
            self.m2 = other.m2
            return

        total = self.count + other.count
        delta = other.mean - self.mean
        self.bins += other.bins
        self.mean += delta * other.count / total
        self.m2 += other.m2 + delta * delta * self.count * other.count / total
        self.count = total

    def copy(self) -> "DepthHistogram":
        clone = DepthHistogram()
        clone.bins = self.bins.copy()
        clone.count = self.count
        clone.mean = self.mean
        clone.m2 = self.m2
        return clone

    @property
    def total(self) -> int:
        """Sum of all bins (equals ``count``)."""
        return int(self.bins.sum())

    @property
    def variance(self) -> float:
        """Sample variance, M2 / (n - 1)."""
        if self.count < 2:
            return 0.0
        return self.m2 / (self.count - 1)

    @property
    def stddev(self) -> float:
        return math.sqrt(max(self.variance, 0.0))

    def median(self) -> float:
        """Lowest depth whose cumulative count reaches half of the positions."""
        if self.count == 0:
            return 0.0
        half = (self.count + 1) // 2
        cumulative = np.cumsum(self.bins)
        return float(np.searchsorted(cumulative, half, side="left"))

    def count_at_least(self, depth: int) -> int:
        if depth <= 0:
            return int(self.bins.sum())
        if depth > MAX_HISTOGRAM_DEPTH:
            depth = MAX_HISTOGRAM_DEPTH
        return int(self.bins[depth:].sum())

    def fraction_at_least(self, depth: int) -> float:
        """Fraction of positions with depth >= ``depth`` (0..1)."""
        if self.count == 0:
            return 0.0
        return self.count_at_least(depth) / self.count

    def to_tuple(self) -> tuple[int, ...]:
        return tuple(int(v) for v in self.bins)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DepthHistogram):
            return NotImplemented
        return (
            self.count == other.count
            and self.mean == other.mean
            and self.m2 == other.m2
            and bool(np.array_equal(self.bins, other.bins))
        )

    def __repr__(self) -> str:
        return f"DepthHistogram(count={self.count}, mean={self.mean:.3f}, sd={self.stddev:.3f})"


class CoverageHistogramAccumulator:
    """Per-contig histograms and the genome-wide histogram built from them.

    ``observe`` updates the open histogram of a contig and the global
    histogram together; ``flush`` closes the contig. Histograms computed
    elsewhere (for example in a worker process) enter through ``absorb``,
    which merges them into the global histogram. The global bins always
    equal the sum of the contig bins.
    """

    def __init__(self) -> None:
        self.global_histogram = DepthHistogram()
        self._contigs: dict[str, DepthHistogram] = {}
        self._flushed: set[str] = set()

    def observe(self, contig: str, depth: int) -> None:
        if contig in self._flushed:
            raise ValueError(f"Contig {contig} was already flushed")
        hist = self._contigs.get(contig)
        if hist is None:
            hist = self._contigs[contig] = DepthHistogram()
        hist.observe(depth)
        self.global_histogram.observe(depth)

    def flush(self, contig: str) -> DepthHistogram:
        """Close ``contig``; later observations for it are rejected."""
        if contig in self._flushed:
            raise ValueError(f"Contig {contig} was already flushed")
        hist = self._contigs.setdefault(contig, DepthHistogram())
        self._flushed.add(contig)
        return hist

    def absorb(self, contig: str, histogram: DepthHistogram) -> None:
        """Register a finished contig histogram, merge it into the global one and close it."""
        if contig in self._contigs:
            raise ValueError(f"Contig {contig} already has a histogram")
        self._contigs[contig] = histogram
        self.global_histogram.merge(histogram)
        self._flushed.add(contig)

    def contig_histogram(self, contig: str) -> Optional[DepthHistogram]:
        return self._contigs.get(contig)

    def flushed_contigs(self) -> Iterator[str]:
        return (name for name in self._contigs if name in self._flushed)

    def is_conserved(self) -> bool:
        """True if the global bins equal the sum of the contig bins."""
        summed = np.zeros(HISTOGRAM_BINS, dtype=np.int64)
        for hist in self._contigs.values():
            summed += hist.bins
        return bool(np.array_equal(summed, self.global_histogram.bins))
