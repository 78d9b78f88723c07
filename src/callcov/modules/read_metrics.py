"""
Read-level metrics: alignment rates, pairing, read length and insert size.

This is an independent pass over raw alignment records (not pileups). Only
counters, a read-length accumulator and a bucketed insert-size histogram are
kept, so memory does not grow with the number of reads.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np

from callcov.constants import (
    CANCEL_CHECK_INTERVAL,
    DEFAULT_INSERT_BUCKET_SIZE,
    MAPQ_UNAVAILABLE,
    MAX_INSERT_SIZE,
    READ_PROGRESS_INTERVAL,
)
from callcov.exceptions import DecodeError
from callcov.utils.cancellation import CancellationToken
from callcov.utils.logging import get_logger
from callcov.utils.progress import NOOP, ProgressCallback

logger = get_logger("read_metrics")

ORIENTATIONS = ("FR", "RF", "TANDEM")


@dataclass(frozen=True)
class ReadRecord:
    """The flag and position fields of one alignment record used by the collector."""

    contig: Optional[str] = None
    position: int = 0
    length: int = 0
    mapping_quality: int = 0
    template_length: int = 0
    is_secondary: bool = False
    is_supplementary: bool = False
    is_qcfail: bool = False
    is_unmapped: bool = False
    is_paired: bool = False
    mate_is_unmapped: bool = False
    is_proper_pair: bool = False
    is_duplicate: bool = False
    is_read1: bool = False
    is_reverse: bool = False
    mate_is_reverse: bool = False
    reference_id: int = -1
    next_reference_id: int = -1
    next_position: int = 0

    @classmethod
    def from_alignment(cls, segment) -> "ReadRecord":
        """Build from a ``pysam.AlignedSegment``. Positions are 1-based."""
        return cls(
            contig=segment.reference_name,
            position=segment.reference_start + 1,
            length=segment.query_length,
            mapping_quality=segment.mapping_quality,
            template_length=segment.template_length,
            is_secondary=segment.is_secondary,
            is_supplementary=segment.is_supplementary,
            is_qcfail=segment.is_qcfail,
            is_unmapped=segment.is_unmapped,
            is_paired=segment.is_paired,
            mate_is_unmapped=segment.mate_is_unmapped,
            is_proper_pair=segment.is_proper_pair,
            is_duplicate=segment.is_duplicate,
            is_read1=segment.is_read1,
            is_reverse=segment.is_reverse,
            mate_is_reverse=segment.mate_is_reverse,
            reference_id=segment.reference_id,
            next_reference_id=segment.next_reference_id,
            next_position=segment.next_reference_start + 1,
        )

    @property
    def is_primary(self) -> bool:
        return not (self.is_secondary or self.is_supplementary)

    def pair_orientation(self) -> str:
        """FR, RF or TANDEM for a paired read whose mate is mapped."""
        if self.is_reverse == self.mate_is_reverse:
            return "TANDEM"
        if self.position < self.next_position:
            # Read is upstream of its mate
            return "FR" if not self.is_reverse else "RF"
        return "FR" if self.is_reverse else "RF"


@dataclass(frozen=True)
class ReadMetrics:
    """Read-level statistics. Fractions are in [0, 1]."""

    total_records: int
    primary_reads: int
    pf_reads: int
    pf_reads_aligned: int
    paired_reads: int
    reads_aligned_in_pairs: int
    proper_pairs: int
    duplicates: int
    chimeras: int

    pct_pf_reads_aligned: float
    pct_reads_aligned_in_pairs: float
    pct_proper_pairs: float
    pct_chimeras: float

    mean_read_length: float
    sd_read_length: float
    min_read_length: int
    max_read_length: int

    mean_mapping_quality: float

    insert_size_count: int
    mean_insert_size: float
    median_insert_size: float
    sd_insert_size: float
    insert_bucket_size: int
    # ((bucket_start, count), ...) for non-empty buckets only
    insert_size_histogram: Tuple[Tuple[int, int], ...]

    pair_orientation: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["insert_size_histogram"] = {str(k): v for k, v in self.insert_size_histogram}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReadMetrics":
        """Inverse of ``to_dict``."""
        values = dict(data)
        values["insert_size_histogram"] = tuple(
            sorted((int(k), int(v)) for k, v in data.get("insert_size_histogram", {}).items())
        )
        return cls(**values)


def _fraction(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else 0.0


class ReadLevelCollector:
    """Accumulate read-level counters one record at a time."""

    def __init__(
        self,
        bucket_size: int = DEFAULT_INSERT_BUCKET_SIZE,
        max_insert_size: int = MAX_INSERT_SIZE,
    ) -> None:
        if bucket_size < 1:
            raise ValueError(f"Insert-size bucket width must be >= 1, got {bucket_size}")
        self.bucket_size = bucket_size
        self.max_insert_size = max_insert_size
        self.insert_histogram = np.zeros(
            math.ceil(max_insert_size / bucket_size), dtype=np.int64
        )

        self.total_records = 0
        self.primary_reads = 0
        self.pf_reads = 0
        self.pf_reads_aligned = 0
        self.paired_reads = 0
        self.reads_aligned_in_pairs = 0
        self.proper_pairs = 0
        self.duplicates = 0
        self.chimeras = 0
        self.orientation_counts = {name: 0 for name in ORIENTATIONS}

        # Welford over read length
        self._length_n = 0
        self._length_mean = 0.0
        self._length_m2 = 0.0
        self.min_read_length: Optional[int] = None
        self.max_read_length = 0

        self._mapq_sum = 0
        self._mapq_n = 0

    def observe(self, read: ReadRecord) -> None:
        self.total_records += 1
        if not read.is_primary:
            return
        self.primary_reads += 1
        if read.is_qcfail:
            return
        self.pf_reads += 1
        self._observe_length(read.length)

        if read.is_duplicate:
            self.duplicates += 1
        if read.is_unmapped:
            return
        self.pf_reads_aligned += 1
        if read.mapping_quality != MAPQ_UNAVAILABLE:
            self._mapq_sum += read.mapping_quality
            self._mapq_n += 1

        if not read.is_paired:
            return
        self.paired_reads += 1
        if not read.mate_is_unmapped:
            self.reads_aligned_in_pairs += 1
            if read.reference_id != read.next_reference_id:
                self.chimeras += 1
        if read.is_proper_pair:
            self.proper_pairs += 1
            if read.is_read1 and not read.is_duplicate:
                self._observe_insert(read)

    def _observe_length(self, length: int) -> None:
        self._length_n += 1
        delta = length - self._length_mean
        self._length_mean += delta / self._length_n
        self._length_m2 += delta * (length - self._length_mean)
        if self.min_read_length is None or length < self.min_read_length:
            self.min_read_length = length
        if length > self.max_read_length:
            self.max_read_length = length

    def _observe_insert(self, read: ReadRecord) -> None:
        size = abs(read.template_length)
        if not 0 < size < self.max_insert_size:
            return
        self.insert_histogram[size // self.bucket_size] += 1
        self.orientation_counts[read.pair_orientation()] += 1

    def _insert_statistics(self) -> Tuple[int, float, float, float]:
        """Count, mean, median and stddev from bucket midpoints."""
        counts = self.insert_histogram
        n = int(counts.sum())
        if n == 0:
            return 0, 0.0, 0.0, 0.0
        midpoints = np.arange(len(counts)) * self.bucket_size + (self.bucket_size - 1) / 2.0
        mean = float((counts * midpoints).sum() / n)
        if n > 1:
            sd = float(math.sqrt((counts * (midpoints - mean) ** 2).sum() / (n - 1)))
        else:
            sd = 0.0
        median_bucket = int(np.searchsorted(np.cumsum(counts), (n + 1) // 2))
        return n, mean, float(midpoints[median_bucket]), sd

    def _dominant_orientation(self) -> Optional[str]:
        fr, rf, tandem = (self.orientation_counts[name] for name in ORIENTATIONS)
        if fr + rf + tandem == 0:
            return None
        if fr >= rf and fr >= tandem:
            return "FR"
        if rf >= tandem:
            return "RF"
        return "TANDEM"

    def finalize(self) -> ReadMetrics:
        insert_n, insert_mean, insert_median, insert_sd = self._insert_statistics()
        nonzero = np.flatnonzero(self.insert_histogram)
        return ReadMetrics(
            total_records=self.total_records,
            primary_reads=self.primary_reads,
            pf_reads=self.pf_reads,
            pf_reads_aligned=self.pf_reads_aligned,
            paired_reads=self.paired_reads,
            reads_aligned_in_pairs=self.reads_aligned_in_pairs,
            proper_pairs=self.proper_pairs,
            duplicates=self.duplicates,
            chimeras=self.chimeras,
            pct_pf_reads_aligned=_fraction(self.pf_reads_aligned, self.pf_reads),
            pct_reads_aligned_in_pairs=_fraction(self.reads_aligned_in_pairs, self.pf_reads_aligned),
            pct_proper_pairs=_fraction(self.proper_pairs, self.pf_reads_aligned),
            pct_chimeras=_fraction(self.chimeras, self.reads_aligned_in_pairs),
            mean_read_length=self._length_mean,
            sd_read_length=(
                math.sqrt(self._length_m2 / (self._length_n - 1)) if self._length_n > 1 else 0.0
            ),
            min_read_length=self.min_read_length or 0,
            max_read_length=self.max_read_length,
            mean_mapping_quality=_fraction(self._mapq_sum, self._mapq_n),
            insert_size_count=insert_n,
            mean_insert_size=insert_mean,
            median_insert_size=insert_median,
            sd_insert_size=insert_sd,
            insert_bucket_size=self.bucket_size,
            insert_size_histogram=tuple(
                (int(i) * self.bucket_size, int(self.insert_histogram[i])) for i in nonzero
            ),
            pair_orientation=self._dominant_orientation(),
        )


def collect_read_metrics(
    reads: Iterable[Any],
    progress: ProgressCallback = NOOP,
    cancel: Optional[CancellationToken] = None,
    progress_interval: int = READ_PROGRESS_INTERVAL,
    bucket_size: int = DEFAULT_INSERT_BUCKET_SIZE,
    cancel_check_interval: int = CANCEL_CHECK_INTERVAL,
) -> ReadMetrics:
    """Run the read-level pass over ``reads`` (pysam segments or ReadRecords).

    ``cancel`` is polled every ``cancel_check_interval`` records. If it is set
    mid-pass the metrics collected so far are returned; callers check the
    token to tell a partial pass from a complete one.
    """
    collector = ReadLevelCollector(bucket_size=bucket_size)
    last: Optional[ReadRecord] = None
    iterator = iter(reads)

    while True:
        try:
            segment = next(iterator)
        except StopIteration:
            break
        except (OSError, ValueError) as e:
            raise DecodeError(
                f"Malformed alignment record ({e})",
                contig=last.contig if last else None,
                position=last.position if last else 0,
                pass_name="reads",
            ) from e

        read = segment if isinstance(segment, ReadRecord) else ReadRecord.from_alignment(segment)
        collector.observe(read)
        last = read

        n = collector.total_records
        if n % progress_interval == 0:
            progress(f"Processed {n / 1_000_000:.0f}M reads", n, n + progress_interval)
        if n % cancel_check_interval == 0 and cancel is not None and cancel.is_cancelled:
            logger.info(f"Read-level pass cancelled after {n:,} records")
            break

    metrics = collector.finalize()
    logger.debug(
        f"Read-level pass: {metrics.total_records:,} records, "
        f"{metrics.pct_pf_reads_aligned:.2%} aligned"
    )
    return metrics
