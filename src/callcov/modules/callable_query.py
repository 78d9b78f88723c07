"""Position lookups against per-contig callable interval files."""

from __future__ import annotations

from bisect import bisect_right
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from callcov.constants import INTERVAL_FILE_SUFFIX
from callcov.core.intervals import Interval
from callcov.core.states import CallableState
from callcov.io.interval_files import interval_file_path, read_interval_file
from callcov.utils.logging import LogTemplates, get_logger


class CallableLociQuery:
    """Answer "what state is contig:pos in?" from ``<contig>.callable.tsv`` files.

    Interval files are loaded lazily, one contig at a time, and kept until
    ``clear_cache`` is called. Positions are 1-based.
    """

    def __init__(self, interval_dir: Union[str, Path]) -> None:
        self.interval_dir = Path(interval_dir)
        self.logger = get_logger(self.__class__.__name__)
        self._intervals: Dict[str, List[Interval]] = {}
        self._starts: Dict[str, List[int]] = {}

    def _load(self, contig: str) -> Optional[List[Interval]]:
        if contig in self._intervals:
            return self._intervals[contig]
        path = interval_file_path(self.interval_dir, contig)
        if not path.exists():
            return None
        intervals = read_interval_file(path, contig)
        self.logger.debug(LogTemplates.FILE_LOADED.format(count=len(intervals), path=path))
        self._intervals[contig] = intervals
        self._starts[contig] = [interval.start for interval in intervals]
        return intervals

    def query_position(self, contig: str, position: int) -> CallableState:
        """State at ``contig:position``; UNKNOWN if no interval covers it."""
        intervals = self._load(contig)
        if not intervals:
            return CallableState.UNKNOWN
        index = bisect_right(self._starts[contig], position) - 1
        if index >= 0 and intervals[index].contains(position):
            return intervals[index].state
        return CallableState.UNKNOWN

    def query_positions(
        self, positions: Iterable[Tuple[str, int]]
    ) -> Dict[Tuple[str, int], CallableState]:
        return {(contig, pos): self.query_position(contig, pos) for contig, pos in positions}

    def is_callable(self, contig: str, position: int) -> bool:
        return self.query_position(contig, position).is_callable

    def can_infer_reference(self, contig: str, position: int) -> bool:
        return self.query_position(contig, position).can_infer_reference

    def callable_bases_for_contig(self, contig: str) -> int:
        intervals = self._load(contig) or []
        return sum(i.length for i in intervals if i.state is CallableState.CALLABLE)

    def total_callable_bases(self) -> int:
        return sum(self.callable_bases_for_contig(contig) for contig in self.available_contigs())

    def available_contigs(self) -> List[str]:
        """Contigs with an interval file, sorted by name."""
        if not self.interval_dir.is_dir():
            return []
        return sorted(
            path.name[: -len(INTERVAL_FILE_SUFFIX)]
            for path in self.interval_dir.glob(f"*{INTERVAL_FILE_SUFFIX}")
        )

    def has_data_for_contig(self, contig: str) -> bool:
        return interval_file_path(self.interval_dir, contig).exists()

    def clear_cache(self) -> None:
        self._intervals.clear()
        self._starts.clear()
