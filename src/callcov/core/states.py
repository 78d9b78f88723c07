"""Callable loci states (GATK CallableLoci vocabulary)."""

from __future__ import annotations

from enum import Enum


class CallableState(str, Enum):
    """Per-position callability. Values are the labels written to output files."""

    REF_N = "REF_N"
    CALLABLE = "CALLABLE"
    NO_COVERAGE = "NO_COVERAGE"
    LOW_COVERAGE = "LOW_COVERAGE"
    EXCESSIVE_COVERAGE = "EXCESSIVE_COVERAGE"
    POOR_MAPPING_QUALITY = "POOR_MAPPING_QUALITY"
    # Query-only: no interval data covers the position
    UNKNOWN = "UNKNOWN"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_callable(self) -> bool:
        return self is CallableState.CALLABLE

    @property
    def can_infer_reference(self) -> bool:
        """True if the base at this position is known (callable, or an N in the reference)."""
        return self in (CallableState.CALLABLE, CallableState.REF_N)

    @classmethod
    def parse(cls, text: str) -> "CallableState":
        """Parse a state label, case-insensitively; unrecognised labels map to UNKNOWN."""
        try:
            return cls(text.strip().upper())
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def counted_states(cls) -> tuple["CallableState", ...]:
        """The six states a visited position can take, in summary-table order."""
        return (
            cls.REF_N,
            cls.CALLABLE,
            cls.NO_COVERAGE,
            cls.LOW_COVERAGE,
            cls.EXCESSIVE_COVERAGE,
            cls.POOR_MAPPING_QUALITY,
        )
