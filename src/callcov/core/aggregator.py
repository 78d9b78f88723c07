"""
Per-contig accumulators, immutable result types and the result aggregator.

The aggregator receives flushed contig accumulators in the order contigs are
declared in the alignment header and folds them into genome-wide counters and
the global histogram. It is the one place where the partition and
conservation invariants are checked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from callcov.config import CallableParams
from callcov.constants import CONTIG_DEPTH_THRESHOLDS, STANDARD_DEPTH_THRESHOLDS
from callcov.core.histogram import CoverageHistogramAccumulator, DepthHistogram
from callcov.core.states import CallableState
from callcov.exceptions import InvariantError


class AnalysisStatus(str, Enum):
    """Terminal outcome of a traversal."""

    COMPLETE = "complete"
    CANCELLED = "cancelled"
    # Reloaded from state tables alone; genome-wide depth statistics are missing
    PARTIAL = "partial"


class ContigAccumulator:
    """Histogram and state counters for one contig, owned by the traversal."""

    def __init__(self, contig: str, length: int) -> None:
        self.contig = contig
        self.length = length
        self.histogram = DepthHistogram()
        self.state_counts: Dict[CallableState, int] = {
            state: 0 for state in CallableState.counted_states()
        }
        self.last_position = 0
        self.complete = False

    def record(self, position: int, state: CallableState, depth: int) -> None:
        self.state_counts[state] += 1
        self.histogram.observe(depth)
        self.last_position = position

    @property
    def positions(self) -> int:
        return self.histogram.count

    def is_partitioned(self) -> bool:
        """True if the state counters sum to the positions visited."""
        return sum(self.state_counts.values()) == self.histogram.count == self.histogram.total

    def summary(self) -> "ContigSummary":
        return ContigSummary.from_counts(self.contig, self.state_counts)

    def coverage_metrics(self) -> "ContigCoverageMetrics":
        hist = self.histogram
        return ContigCoverageMetrics(
            contig=self.contig,
            length=self.length,
            positions=hist.count,
            mean_coverage=hist.mean,
            median_coverage=hist.median(),
            sd_coverage=hist.stddev,
            fraction_at_depth=tuple(
                (depth, hist.fraction_at_least(depth)) for depth in CONTIG_DEPTH_THRESHOLDS
            ),
            coverage_histogram=hist.to_tuple(),
        )


@dataclass(frozen=True)
class ContigSummary:
    """Callable-state base counts for one contig."""

    contig_name: str
    ref_n: int = 0
    callable: int = 0
    no_coverage: int = 0
    low_coverage: int = 0
    excessive_coverage: int = 0
    poor_mapping_quality: int = 0

    _FIELDS = {
        CallableState.REF_N: "ref_n",
        CallableState.CALLABLE: "callable",
        CallableState.NO_COVERAGE: "no_coverage",
        CallableState.LOW_COVERAGE: "low_coverage",
        CallableState.EXCESSIVE_COVERAGE: "excessive_coverage",
        CallableState.POOR_MAPPING_QUALITY: "poor_mapping_quality",
    }

    @classmethod
    def from_counts(cls, contig: str, counts: Dict[CallableState, int]) -> "ContigSummary":
        return cls(contig, **{cls._FIELDS[state]: int(n) for state, n in counts.items()})

    def count(self, state: CallableState) -> int:
        return getattr(self, self._FIELDS[state])

    @property
    def total(self) -> int:
        return sum(self.count(state) for state in CallableState.counted_states())

    def as_counts(self) -> Dict[CallableState, int]:
        return {state: self.count(state) for state in CallableState.counted_states()}


@dataclass(frozen=True)
class ContigCoverageMetrics:
    """Per-contig coverage statistics for visualization."""

    contig: str
    length: int
    positions: int
    mean_coverage: float
    median_coverage: float
    sd_coverage: float
    # ((depth, fraction of positions >= depth), ...)
    fraction_at_depth: Tuple[Tuple[int, float], ...]
    coverage_histogram: Tuple[int, ...]

    def fraction_at(self, depth: int) -> float:
        for threshold, fraction in self.fraction_at_depth:
            if threshold == depth:
                return fraction
        if self.positions == 0:
            return 0.0
        return sum(self.coverage_histogram[depth:]) / self.positions


@dataclass(frozen=True)
class CoverageCallableResult:
    """Combined coverage and callable-loci result. Never mutated after construction."""

    status: AnalysisStatus
    params: CallableParams
    genome_territory: int
    mean_coverage: float
    median_coverage: float
    sd_coverage: float
    coverage_histogram: Tuple[int, ...]
    fraction_at_depth: Tuple[Tuple[int, float], ...]
    callable_bases: int
    contig_summaries: Tuple[ContigSummary, ...]
    contig_coverage: Tuple[ContigCoverageMetrics, ...]
    interval_files: Tuple[Tuple[str, Path], ...] = ()
    read_metrics: Optional[Any] = None
    # Last locus processed, for diagnostics of cancelled runs
    last_contig: Optional[str] = None
    last_position: int = 0

    @property
    def complete(self) -> bool:
        return self.status is AnalysisStatus.COMPLETE

    def fraction_at_least(self, depth: int) -> float:
        """Fraction of visited positions with depth >= ``depth``."""
        for threshold, fraction in self.fraction_at_depth:
            if threshold == depth:
                return fraction
        if self.genome_territory == 0:
            return 0.0
        return sum(self.coverage_histogram[depth:]) / self.genome_territory

    def pct_at_depth(self) -> Dict[int, float]:
        """Standard thresholds as percentages (0-100)."""
        return {depth: fraction * 100.0 for depth, fraction in self.fraction_at_depth}

    def state_totals(self) -> Dict[CallableState, int]:
        totals = {state: 0 for state in CallableState.counted_states()}
        for summary in self.contig_summaries:
            for state, n in summary.as_counts().items():
                totals[state] += n
        return totals

    def summary_for(self, contig: str) -> Optional[ContigSummary]:
        return next((s for s in self.contig_summaries if s.contig_name == contig), None)

    def coverage_for(self, contig: str) -> Optional[ContigCoverageMetrics]:
        return next((c for c in self.contig_coverage if c.contig == contig), None)

    def interval_file_for(self, contig: str) -> Optional[Path]:
        return dict(self.interval_files).get(contig)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            "status": self.status.value,
            "complete": self.complete,
            "params": {
                "min_depth": self.params.min_depth,
                "min_mapping_quality": self.params.min_mapping_quality,
                "min_base_quality": self.params.min_base_quality,
                "max_low_mapq": self.params.max_low_mapq,
                "max_fraction_low_mapq": self.params.max_fraction_low_mapq,
                "max_depth": self.params.max_depth,
            },
            "genome_territory": self.genome_territory,
            "mean_coverage": self.mean_coverage,
            "median_coverage": self.median_coverage,
            "sd_coverage": self.sd_coverage,
            "pct_at_depth": {f"{d}x": pct for d, pct in self.pct_at_depth().items()},
            "callable_bases": self.callable_bases,
            "state_totals": {s.label: n for s, n in self.state_totals().items()},
            "coverage_histogram": list(self.coverage_histogram),
            "contigs": [self._contig_dict(summary) for summary in self.contig_summaries],
            "read_metrics": self.read_metrics.to_dict() if self.read_metrics else None,
            "last_contig": self.last_contig,
            "last_position": self.last_position,
        }

    def _contig_dict(self, summary: ContigSummary) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "contig": summary.contig_name,
            "states": {s.label: n for s, n in summary.as_counts().items()},
        }
        cov = self.coverage_for(summary.contig_name)
        if cov is not None:
            entry.update(
                length=cov.length,
                positions=cov.positions,
                mean_coverage=cov.mean_coverage,
                median_coverage=cov.median_coverage,
                sd_coverage=cov.sd_coverage,
                fraction_at_depth={f"{d}x": f for d, f in cov.fraction_at_depth},
            )
        path = self.interval_file_for(summary.contig_name)
        entry["interval_file"] = str(path) if path is not None else None
        return entry


@dataclass
class _Totals:
    counts: Dict[CallableState, int] = field(
        default_factory=lambda: {s: 0 for s in CallableState.counted_states()}
    )
    positions: int = 0


class ResultAggregator:
    """Merge flushed contig accumulators, in header order, into one result."""

    def __init__(self, contigs: Sequence[Tuple[str, int]], params: CallableParams) -> None:
        """
        Args:
            contigs: ``(name, length)`` pairs in alignment-header order
            params: Thresholds used for the walk (recorded on the result)
        """
        names = [name for name, _ in contigs]
        if len(set(names)) != len(names):
            raise ValueError("Duplicate contig names in header order")
        self.params = params
        self._order = names
        self._lengths = dict(contigs)
        self._index = {name: i for i, name in enumerate(names)}
        self._next = 0
        self._accumulators: Dict[str, ContigAccumulator] = {}
        self.coverage = CoverageHistogramAccumulator()
        self._totals = _Totals()
        self.last_contig: Optional[str] = None
        self.last_position = 0

    @property
    def contig_order(self) -> Tuple[str, ...]:
        return tuple(self._order)

    def flush(self, accumulator: ContigAccumulator) -> None:
        """Merge one contig. Contigs skipped in header order are zero-filled."""
        index = self._index.get(accumulator.contig)
        if index is None:
            raise InvariantError(f"Contig {accumulator.contig} is not in the header order")
        if index < self._next:
            raise InvariantError(
                f"Contig {accumulator.contig} flushed out of header order or twice"
            )
        if not accumulator.is_partitioned():
            raise InvariantError(
                f"State counts for {accumulator.contig} do not sum to positions visited"
            )

        for skipped in self._order[self._next:index]:
            self._merge(ContigAccumulator(skipped, self._lengths[skipped]))
        self._merge(accumulator)
        self._next = index + 1

        if accumulator.positions:
            self.last_contig = accumulator.contig
            self.last_position = accumulator.last_position

    def _merge(self, accumulator: ContigAccumulator) -> None:
        self._accumulators[accumulator.contig] = accumulator
        self.coverage.absorb(accumulator.contig, accumulator.histogram)
        for state, n in accumulator.state_counts.items():
            self._totals.counts[state] += n
        self._totals.positions += accumulator.positions

    def check_invariants(self) -> None:
        """Raise InvariantError if partition or conservation does not hold."""
        global_hist = self.coverage.global_histogram
        if sum(self._totals.counts.values()) != self._totals.positions:
            raise InvariantError("Genome-wide state counts do not sum to positions visited")
        if global_hist.count != self._totals.positions or global_hist.total != global_hist.count:
            raise InvariantError("Global histogram does not match positions visited")
        if not self.coverage.is_conserved():
            raise InvariantError("Global histogram differs from the sum of contig histograms")

    def build(
        self,
        status: AnalysisStatus = AnalysisStatus.COMPLETE,
        interval_files: Iterable[Tuple[str, Path]] = (),
        read_metrics: Optional[Any] = None,
    ) -> CoverageCallableResult:
        """Zero-fill contigs never flushed, check invariants and freeze the result."""
        for name in self._order[self._next:]:
            self._merge(ContigAccumulator(name, self._lengths[name]))
        self._next = len(self._order)

        self.check_invariants()

        accumulators = [self._accumulators[name] for name in self._order]
        summaries = tuple(acc.summary() for acc in accumulators)
        global_hist = self.coverage.global_histogram

        return CoverageCallableResult(
            status=status,
            params=self.params,
            genome_territory=global_hist.count,
            mean_coverage=global_hist.mean,
            median_coverage=global_hist.median(),
            sd_coverage=global_hist.stddev,
            coverage_histogram=global_hist.to_tuple(),
            fraction_at_depth=tuple(
                (depth, global_hist.fraction_at_least(depth))
                for depth in STANDARD_DEPTH_THRESHOLDS
            ),
            callable_bases=sum(s.callable for s in summaries),
            contig_summaries=summaries,
            contig_coverage=tuple(acc.coverage_metrics() for acc in accumulators),
            interval_files=tuple(interval_files),
            read_metrics=read_metrics,
            last_contig=self.last_contig,
            last_position=self.last_position,
        )
