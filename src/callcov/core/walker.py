"""
Pileup traversal driving classification, accumulation and interval output.

Every position of every selected contig is visited once, in header order. For
each position the reference base and the pileup are classified, the
contig accumulator records state and depth, and the interval coalescer
extends or closes the current interval. Finished contigs are flushed into a
ResultAggregator in header order, so the sequential and the process-pool
walks produce identical results.
"""

from __future__ import annotations

import re
import signal
from multiprocessing import Event, Pool
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence, Tuple, Union

from callcov.config import CallableParams
from callcov.constants import (
    CANCEL_CHECK_INTERVAL,
    MAIN_ASSEMBLY_PATTERN,
    PROGRESS_INTERVAL,
)
from callcov.core.aggregator import (
    AnalysisStatus,
    ContigAccumulator,
    CoverageCallableResult,
    ResultAggregator,
)
from callcov.core.classifier import Pileup, classify
from callcov.core.intervals import IntervalCoalescer
from callcov.exceptions import ConfigurationError, DecodeError
from callcov.io.interval_files import IntervalFileWriter
from callcov.utils.cancellation import CancellationToken
from callcov.utils.logging import LogTemplates, get_logger
from callcov.utils.progress import NOOP, ProgressCallback, iter_progress

if TYPE_CHECKING:
    from callcov.io.alignment import PileupSource

logger = get_logger("walker")

ContigList = List[Tuple[str, int]]


def select_contigs(
    header_contigs: Sequence[Tuple[str, int]],
    contigs: Optional[Sequence[str]] = None,
    main_assembly_only: bool = False,
) -> ContigList:
    """Contigs to walk, in header order.

    Raises:
        ConfigurationError: if ``contigs`` names a contig the header lacks
    """
    selected = list(header_contigs)
    if contigs is not None:
        known = {name for name, _ in header_contigs}
        unknown = [name for name in contigs if name not in known]
        if unknown:
            raise ConfigurationError(
                "Contig(s) not in alignment header: " + ", ".join(unknown)
            )
        wanted = set(contigs)
        selected = [(name, length) for name, length in selected if name in wanted]
    if main_assembly_only:
        pattern = re.compile(MAIN_ASSEMBLY_PATTERN)
        selected = [(name, length) for name, length in selected if pattern.match(name)]
    return selected


class WalkTracker:
    """Position counter that fires progress callbacks and polls cancellation."""

    def __init__(
        self,
        total: int,
        progress: ProgressCallback = NOOP,
        cancel: Optional[CancellationToken] = None,
        progress_interval: int = PROGRESS_INTERVAL,
        cancel_check_interval: int = CANCEL_CHECK_INTERVAL,
    ) -> None:
        self.total = total
        self.processed = 0
        self.progress = progress
        self.cancel = cancel
        self.progress_interval = progress_interval
        self.cancel_check_interval = cancel_check_interval

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_cancelled

    def tick(self, contig: str, position: int) -> bool:
        """Count one position. Returns True if the walk should stop."""
        self.processed += 1
        if self.processed % self.progress_interval == 0:
            self.progress(f"{contig}:{position:,}", self.processed, self.total)
        if self.processed % self.cancel_check_interval == 0:
            return self.cancelled
        return False

    def advance(self, contig: str, positions: int) -> None:
        """Count a whole contig at once (process-pool walk)."""
        self.processed += positions
        self.progress(f"Finished {contig}", self.processed, self.total)


def walk_contig(
    source: "PileupSource",
    reference,
    contig: str,
    length: int,
    params: CallableParams,
    writer: Optional[IntervalFileWriter] = None,
    tracker: Optional[WalkTracker] = None,
) -> ContigAccumulator:
    """Classify every position of one contig.

    ``source`` provides ``pileups(contig, length)`` and ``reference`` provides
    ``bases(contig)``. On cancellation the accumulator is returned with
    ``complete`` False; the positions visited so far are fully accounted for.

    Raises:
        DecodeError: if reading the pileup stream fails
    """
    accumulator = ContigAccumulator(contig, length)
    coalescer = IntervalCoalescer()
    bases = reference.bases(contig)
    if len(bases) < length:
        raise ConfigurationError(
            f"Reference {contig} is shorter ({len(bases):,} bp) than the alignment header "
            f"({length:,} bp)"
        )

    pileups: Iterator[Pileup] = iter(source.pileups(contig, length))
    stopped = False
    while True:
        try:
            pileup = next(pileups)
        except StopIteration:
            break
        except (OSError, ValueError) as e:
            raise DecodeError(
                f"Failed to read pileup on {contig} ({e})",
                contig=contig if accumulator.positions else None,
                position=accumulator.last_position,
            ) from e

        position = pileup.position
        state = classify(bases[position - 1], pileup, params)
        accumulator.record(position, state, pileup.depth)
        closed = coalescer.update(contig, position, state)
        if closed is not None and writer is not None:
            writer.write(closed)

        if tracker is not None and tracker.tick(contig, position):
            stopped = True
            break

    last = coalescer.flush()
    if last is not None and writer is not None:
        writer.write(last)
    accumulator.complete = not stopped
    return accumulator


def _located(error: DecodeError, aggregator: ResultAggregator) -> Optional[DecodeError]:
    """A copy of ``error`` naming the last flushed locus, or None if it already names one."""
    if error.contig is not None or aggregator.last_contig is None:
        return None
    return DecodeError(
        error.detail,
        contig=aggregator.last_contig,
        position=aggregator.last_position,
        pass_name=error.pass_name,
    )


# Process-pool worker state, set once per worker by _init_walk_worker
_source = None
_reference = None
_params: Optional[CallableParams] = None
_interval_dir: Optional[Path] = None
_cancel: Optional[CancellationToken] = None
_cancel_check_interval = CANCEL_CHECK_INTERVAL


def _init_walk_worker(
    alignment: str,
    reference: str,
    params: CallableParams,
    interval_dir: Optional[str],
    cancel_event,
    cancel_check_interval: int,
) -> None:
    """Open private pysam handles in each worker process.

    ``cancel_event`` is set by the parent when the run is cancelled; workers
    poll it every ``cancel_check_interval`` positions.
    """
    global _source, _reference, _params, _interval_dir, _cancel, _cancel_check_interval
    # The parent handles SIGINT and forwards it through cancel_event
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    from callcov.io.alignment import AlignmentSource
    from callcov.io.reference import ReferenceAccessor

    _source = AlignmentSource(alignment, reference)
    _reference = ReferenceAccessor(reference)
    _params = params
    _interval_dir = Path(interval_dir) if interval_dir else None
    _cancel = CancellationToken(cancel_event)
    _cancel_check_interval = cancel_check_interval


def _walk_contig_worker(task: Tuple[str, int]) -> Tuple[ContigAccumulator, Optional[Path]]:
    contig, length = task
    tracker = WalkTracker(
        total=length, cancel=_cancel, cancel_check_interval=_cancel_check_interval
    )
    if _interval_dir is None:
        return walk_contig(_source, _reference, contig, length, _params, None, tracker), None
    with IntervalFileWriter(_interval_dir, contig) as writer:
        accumulator = walk_contig(_source, _reference, contig, length, _params, writer, tracker)
    return accumulator, writer.path


class CoverageCallableWalker:
    """Run the pileup pass over a list of contigs and aggregate the result."""

    def __init__(
        self,
        params: CallableParams,
        interval_dir: Optional[Union[str, Path]] = None,
        progress: ProgressCallback = NOOP,
        cancel: Optional[CancellationToken] = None,
        progress_interval: int = PROGRESS_INTERVAL,
        cancel_check_interval: int = CANCEL_CHECK_INTERVAL,
        show_progress_bar: bool = False,
    ) -> None:
        """
        Args:
            params: Classification thresholds
            interval_dir: Directory for ``<contig>.callable.tsv`` files (None: no files)
            progress: Callback receiving ``(message, positions_done, positions_total)``
            cancel: Token polled every ``cancel_check_interval`` positions and between contigs
            show_progress_bar: Show a tqdm bar over contigs in the process-pool walk
        """
        self.params = params
        self.interval_dir = Path(interval_dir) if interval_dir is not None else None
        self.progress = progress
        self.cancel = cancel
        self.progress_interval = progress_interval
        self.cancel_check_interval = cancel_check_interval
        self.show_progress_bar = show_progress_bar

    def _tracker(self, contigs: ContigList) -> WalkTracker:
        return WalkTracker(
            total=sum(length for _, length in contigs),
            progress=self.progress,
            cancel=self.cancel,
            progress_interval=self.progress_interval,
            cancel_check_interval=self.cancel_check_interval,
        )

    def walk(
        self, source: "PileupSource", reference, contigs: ContigList, read_metrics=None
    ) -> CoverageCallableResult:
        """Sequential walk using the caller's source and reference handles."""
        aggregator = ResultAggregator(contigs, self.params)
        tracker = self._tracker(contigs)
        interval_files: List[Tuple[str, Path]] = []
        status = AnalysisStatus.COMPLETE
        logger.info(LogTemplates.PASS_START.format(pass_name="pileup", contigs=len(contigs)))

        for contig, length in contigs:
            if tracker.cancelled:
                status = AnalysisStatus.CANCELLED
                break
            logger.debug(LogTemplates.CONTIG_START.format(contig=contig, length=length))

            try:
                if self.interval_dir is not None:
                    with IntervalFileWriter(self.interval_dir, contig) as writer:
                        accumulator = walk_contig(
                            source, reference, contig, length, self.params, writer, tracker
                        )
                    interval_files.append((contig, writer.path))
                else:
                    accumulator = walk_contig(
                        source, reference, contig, length, self.params, None, tracker
                    )
            except DecodeError as e:
                located = _located(e, aggregator)
                if located is None:
                    raise
                raise located from e

            aggregator.flush(accumulator)
            self._log_contig(accumulator)
            if not accumulator.complete:
                status = AnalysisStatus.CANCELLED
                break

        return self._finish(aggregator, status, interval_files, read_metrics)

    def walk_parallel(
        self,
        alignment: Union[str, Path],
        reference: Union[str, Path],
        contigs: ContigList,
        threads: int,
        read_metrics=None,
    ) -> CoverageCallableResult:
        """Walk contigs in a process pool, one contig per task.

        Workers open their own pysam handles. Results are consumed in header
        order. Cancelling the token sets an event shared with the workers,
        which stop within ``cancel_check_interval`` positions; the first
        incomplete contig ends the walk and the pool is terminated.
        """
        aggregator = ResultAggregator(contigs, self.params)
        tracker = self._tracker(contigs)
        interval_files: List[Tuple[str, Path]] = []
        status = AnalysisStatus.COMPLETE
        logger.info(
            LogTemplates.PASS_START.format(pass_name="pileup", contigs=len(contigs))
            + f" with {threads} workers"
        )

        if tracker.cancelled:
            return self._finish(aggregator, AnalysisStatus.CANCELLED, interval_files, read_metrics)

        cancel_event = Event()
        forward_cancel = cancel_event.set
        pool = Pool(
            processes=min(threads, max(len(contigs), 1)),
            initializer=_init_walk_worker,
            initargs=(
                str(alignment),
                str(reference),
                self.params,
                str(self.interval_dir) if self.interval_dir is not None else None,
                cancel_event,
                self.cancel_check_interval,
            ),
        )
        if self.cancel is not None:
            self.cancel.add_callback(forward_cancel)
        try:
            results = pool.imap(_walk_contig_worker, contigs)
            for accumulator, path in iter_progress(
                results, total=len(contigs), desc="contigs", enabled=self.show_progress_bar
            ):
                aggregator.flush(accumulator)
                if path is not None:
                    interval_files.append((accumulator.contig, path))
                tracker.advance(accumulator.contig, accumulator.positions)
                self._log_contig(accumulator)
                if not accumulator.complete or tracker.cancelled:
                    status = AnalysisStatus.CANCELLED
                    break
            if status is AnalysisStatus.CANCELLED:
                pool.terminate()
            else:
                pool.close()
        except DecodeError as e:
            pool.terminate()
            located = _located(e, aggregator)
            if located is None:
                raise
            raise located from e
        except BaseException:
            pool.terminate()
            raise
        finally:
            pool.join()
            if self.cancel is not None:
                self.cancel.remove_callback(forward_cancel)

        return self._finish(aggregator, status, interval_files, read_metrics)

    def _log_contig(self, accumulator: ContigAccumulator) -> None:
        logger.debug(
            LogTemplates.CONTIG_DONE.format(
                contig=accumulator.contig,
                positions=accumulator.positions,
                callable=accumulator.summary().callable,
            )
        )

    def _finish(
        self,
        aggregator: ResultAggregator,
        status: AnalysisStatus,
        interval_files: List[Tuple[str, Path]],
        read_metrics,
    ) -> CoverageCallableResult:
        if status is AnalysisStatus.CANCELLED:
            logger.warning(
                LogTemplates.PASS_CANCELLED.format(
                    pass_name="pileup",
                    contig=aggregator.last_contig or "-",
                    position=aggregator.last_position,
                )
            )
        result = aggregator.build(status, interval_files, read_metrics)
        logger.info(
            LogTemplates.COVERAGE_STATS.format(
                mean=result.mean_coverage,
                territory=result.genome_territory,
                callable=result.callable_bases,
            )
        )
        return result
