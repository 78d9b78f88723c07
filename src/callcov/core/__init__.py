"""Core streaming engine: classification, accumulation, coalescing and aggregation."""

from callcov.core.states import CallableState
from callcov.core.classifier import Pileup, classify
from callcov.core.histogram import DepthHistogram, CoverageHistogramAccumulator
from callcov.core.intervals import Interval, IntervalCoalescer, expand_intervals
from callcov.core.aggregator import (
    AnalysisStatus,
    ContigAccumulator,
    ContigCoverageMetrics,
    ContigSummary,
    CoverageCallableResult,
    ResultAggregator,
)

__all__ = [
    "CallableState",
    "Pileup",
    "classify",
    "DepthHistogram",
    "CoverageHistogramAccumulator",
    "Interval",
    "IntervalCoalescer",
    "expand_intervals",
    "AnalysisStatus",
    "ContigAccumulator",
    "ContigCoverageMetrics",
    "ContigSummary",
    "CoverageCallableResult",
    "ResultAggregator",
]
