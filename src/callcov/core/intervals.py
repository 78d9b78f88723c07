"""Coalescing of the per-position state stream into labelled intervals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

from callcov.core.states import CallableState

# (contig, 1-based position, state)
StateRecord = Tuple[str, int, CallableState]


@dataclass(frozen=True)
class Interval:
    """A run of consecutive positions sharing one state, 1-based inclusive."""

    contig: str
    start: int
    end: int
    state: CallableState

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def contains(self, position: int) -> bool:
        return self.start <= position <= self.end

    def to_row(self) -> str:
        return f"{self.contig}\t{self.start}\t{self.end}\t{self.state.label}"


class IntervalCoalescer:
    """Turn an ordered ``(contig, position, state)`` stream into intervals.

    ``update`` returns the interval it closed, if any. An interval is closed
    when the contig changes, the state changes, or a position is skipped.
    Call ``flush`` after the last position of a contig (or of the stream).
    """

    def __init__(self) -> None:
        self._contig: Optional[str] = None
        self._start = 0
        self._end = 0
        self._state: Optional[CallableState] = None

    def update(self, contig: str, position: int, state: CallableState) -> Optional[Interval]:
        if self._contig is None:
            self._open(contig, position, state)
            return None

        if contig == self._contig:
            if position <= self._end:
                raise ValueError(
                    f"Positions must increase within a contig: {contig}:{position} "
                    f"after {contig}:{self._end}"
                )
            if state is self._state and position == self._end + 1:
                self._end = position
                return None

        closed = self.flush()
        self._open(contig, position, state)
        return closed

    def flush(self) -> Optional[Interval]:
        """Close and return the open interval, if there is one."""
        if self._contig is None or self._state is None:
            return None
        closed = Interval(self._contig, self._start, self._end, self._state)
        self._contig = None
        self._state = None
        return closed

    def _open(self, contig: str, position: int, state: CallableState) -> None:
        self._contig = contig
        self._start = position
        self._end = position
        self._state = state


def coalesce(records: Iterable[StateRecord]) -> Iterator[Interval]:
    """Coalesce a whole state stream."""
    coalescer = IntervalCoalescer()
    for contig, position, state in records:
        closed = coalescer.update(contig, position, state)
        if closed is not None:
            yield closed
    last = coalescer.flush()
    if last is not None:
        yield last


def expand_intervals(intervals: Iterable[Interval]) -> Iterator[StateRecord]:
    """Re-expand intervals position by position (inverse of ``coalesce``)."""
    for interval in intervals:
        for position in range(interval.start, interval.end + 1):
            yield interval.contig, position, interval.state
