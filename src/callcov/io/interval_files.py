"""Per-contig callable interval files.

One tab-separated file per contig, ``<contig>.callable.tsv``, with columns
``contig start end state`` (1-based, inclusive, sorted by start). Files carry
no header; readers skip blank lines and lines starting with ``#``.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, List, Optional, Union

import pandas as pd

from callcov.constants import INTERVAL_FILE_SUFFIX
from callcov.core.intervals import Interval
from callcov.core.states import CallableState
from callcov.exceptions import InputFileError

INTERVAL_COLUMNS = ["contig", "start", "end", "state"]


def interval_file_path(output_dir: Union[str, Path], contig: str) -> Path:
    return Path(output_dir) / f"{contig}{INTERVAL_FILE_SUFFIX}"


class IntervalFileWriter:
    """Write the intervals of one contig. Always creates the file."""

    def __init__(self, output_dir: Union[str, Path], contig: str) -> None:
        self.contig = contig
        self.path = interval_file_path(output_dir, contig)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[IO[str]] = open(self.path, "w", encoding="utf-8", newline="\n")
        self.intervals_written = 0

    def write(self, interval: Interval) -> None:
        if interval.contig != self.contig:
            raise ValueError(
                f"Interval on {interval.contig} written to the file for {self.contig}"
            )
        if self._handle is None:
            raise ValueError(f"Interval file already closed: {self.path}")
        self._handle.write(interval.to_row() + "\n")
        self.intervals_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "IntervalFileWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def read_interval_file(path: Union[str, Path], contig: Optional[str] = None) -> List[Interval]:
    """Load intervals from ``path``, optionally keeping only one contig, sorted by start."""
    path = Path(path)
    if not path.exists():
        raise InputFileError("Interval file not found", path)
    if path.stat().st_size == 0:
        return []

    df = pd.read_csv(
        path,
        sep="\t",
        header=None,
        names=INTERVAL_COLUMNS,
        comment="#",
        skip_blank_lines=True,
        dtype={"contig": str, "start": "int64", "end": "int64", "state": str},
    )
    if contig is not None:
        df = df[df["contig"] == contig]
    df = df.sort_values("start", kind="mergesort")

    return [
        Interval(row.contig, int(row.start), int(row.end), CallableState.parse(row.state))
        for row in df.itertuples(index=False)
    ]
