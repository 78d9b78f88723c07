"""Hierarchical callable-state classification of a single locus.

The rules mirror GATK CallableLoci and are evaluated in order; the first rule
that matches decides the state:

1. REF_N                 reference base is N/n
2. NO_COVERAGE           raw depth is 0
3. POOR_MAPPING_QUALITY  low-MAPQ fraction of the *raw* depth exceeds the limit
4. LOW_COVERAGE          QC-passing depth below ``min_depth``
5. EXCESSIVE_COVERAGE    QC-passing depth above ``max_depth`` (if set)
6. CALLABLE
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple, Union

from callcov.config import CallableParams
from callcov.core.states import CallableState

# (mapping_quality, base_quality) of one read at one position
PileupRead = Tuple[int, int]

_N_BASES = frozenset(("N", "n", ord("N"), ord("n")))


@dataclass(frozen=True)
class Pileup:
    """Reads overlapping one reference position (1-based)."""

    contig: str
    position: int
    reads: Sequence[PileupRead] = field(default_factory=tuple)

    @property
    def depth(self) -> int:
        return len(self.reads)


def classify(
    ref_base: Union[str, int],
    pileup: Pileup,
    params: CallableParams,
) -> CallableState:
    """Return the callable state of one locus. Pure function."""
    if ref_base in _N_BASES:
        return CallableState.REF_N

    raw_depth = len(pileup.reads)
    if raw_depth == 0:
        return CallableState.NO_COVERAGE

    qc_pass_count = 0
    low_mapq_count = 0
    min_mapq = params.min_mapping_quality
    min_baseq = params.min_base_quality
    max_low_mapq = params.max_low_mapq
    for mapq, baseq in pileup.reads:
        if mapq >= min_mapq and baseq >= min_baseq:
            qc_pass_count += 1
        if mapq <= max_low_mapq:
            low_mapq_count += 1

    # Fraction is taken over raw depth, not QC-passing depth
    if low_mapq_count / raw_depth > params.max_fraction_low_mapq:
        return CallableState.POOR_MAPPING_QUALITY

    if qc_pass_count < params.min_depth:
        return CallableState.LOW_COVERAGE

    if params.max_depth is not None and qc_pass_count > params.max_depth:
        return CallableState.EXCESSIVE_COVERAGE

    return CallableState.CALLABLE
