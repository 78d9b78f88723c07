"""Progress callbacks and tqdm integration.

A progress callback receives ``(message, processed, total)``. Callbacks are
observational: the analysis never depends on what they do.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")

ProgressCallback = Callable[[str, float, float], None]


def NOOP(message: str, processed: float, total: float) -> None:
    """Progress callback that ignores every update."""


def scoped(callback: ProgressCallback, start: float, end: float) -> ProgressCallback:
    """Map a sub-task's progress onto the ``[start, end]`` fraction of its parent."""

    def report(message: str, processed: float, total: float) -> None:
        fraction = processed / total if total > 0 else 0.0
        callback(message, start + fraction * (end - start), 1.0)

    return report


def prefixed(callback: ProgressCallback, prefix: str) -> ProgressCallback:
    def report(message: str, processed: float, total: float) -> None:
        callback(f"{prefix}: {message}", processed, total)

    return report


def throttled(
    callback: ProgressCallback,
    min_interval: float = 0.1,
    clock: Callable[[], float] = time.monotonic,
) -> ProgressCallback:
    """Forward at most one update per ``min_interval`` seconds.

    The final update (``processed >= total``) is always forwarded.
    """
    last_update: Optional[float] = None

    def report(message: str, processed: float, total: float) -> None:
        nonlocal last_update
        now = clock()
        if last_update is None or now - last_update >= min_interval or processed >= total:
            last_update = now
            callback(message, processed, total)

    return report


def combine(*callbacks: ProgressCallback) -> ProgressCallback:
    def report(message: str, processed: float, total: float) -> None:
        for callback in callbacks:
            callback(message, processed, total)

    return report


def logging_reporter(logger: logging.Logger, level: int = logging.INFO) -> ProgressCallback:
    """Log each update as ``<pct>% - <message>``."""

    def report(message: str, processed: float, total: float) -> None:
        pct = int(processed / total * 100) if total > 0 else 0
        logger.log(level, f"Progress: {pct}% - {message}")

    return report


def iter_progress(
    iterable: Iterable[T],
    total: Optional[int] = None,
    desc: Optional[str] = None,
    enabled: bool = True,
) -> Iterator[T]:
    """Wrap iterable with tqdm if enabled, else return as-is."""
    if not enabled:
        return iter(iterable)
    from tqdm import tqdm

    formatted_desc = f"· {desc:<12} " if desc else ""
    return iter(
        tqdm(
            iterable,
            total=total,
            desc=formatted_desc,
            bar_format="{desc}: {percentage:3.0f}%|{bar:30}| {n_fmt}/{total_fmt}",
            ncols=80,
            leave=False,
        )
    )
