"""
Indexed alignment access: header contigs, per-position pileups and raw reads.

``AlignmentSource.pileups`` visits every position of a contig, including
positions no read covers (emitted as empty pileups), so downstream consumers
see a gap-free, strictly increasing position stream.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Tuple, Union

import pysam

from callcov.constants import PILEUP_MAX_DEPTH
from callcov.core.classifier import Pileup
from callcov.exceptions import ConfigurationError, InputFileError
from callcov.utils.logging import get_logger

# Reads excluded from pileups. QC-fail reads still count toward raw depth.
PILEUP_FLAG_FILTER = pysam.FUNMAP | pysam.FSECONDARY | pysam.FDUP


class PileupSource(Protocol):
    """Anything that yields ordered pileups for header contigs."""

    def contigs(self) -> List[Tuple[str, int]]:
        ...

    def pileups(self, contig: str, length: int) -> Iterator[Pileup]:
        ...


def _open_mode(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".cram":
        return "rc"
    if suffix == ".bam":
        return "rb"
    return "r"


class AlignmentSource:
    """Read-only view of an indexed BAM/CRAM file."""

    def __init__(
        self,
        alignment: Union[str, Path],
        reference: Optional[Union[str, Path]] = None,
        require_index: bool = True,
    ) -> None:
        self.path = Path(alignment)
        self.logger = get_logger(self.__class__.__name__)
        if not self.path.exists():
            raise InputFileError("Alignment file not found", self.path)

        kwargs = {}
        if reference is not None:
            kwargs["reference_filename"] = str(reference)
        try:
            self._bam = pysam.AlignmentFile(str(self.path), _open_mode(self.path), **kwargs)
        except (OSError, ValueError) as e:
            raise InputFileError(f"Cannot open alignment file ({e})", self.path) from e

        if require_index and not self._bam.has_index():
            self._bam.close()
            raise InputFileError("Alignment index (.bai/.csi/.crai) not found for", self.path)

    def contigs(self) -> List[Tuple[str, int]]:
        """``(name, length)`` pairs in header-declared order."""
        return list(zip(self._bam.references, self._bam.lengths))

    def pileups(self, contig: str, length: int) -> Iterator[Pileup]:
        """Yield one Pileup per position 1..length of ``contig``.

        Deletions and reference skips at a position do not count as reads
        there. Unmapped, secondary and duplicate reads are excluded; QC-fail
        and supplementary reads are kept. No MAPQ or base-quality filtering
        is applied.
        """
        if contig not in self._bam.references:
            raise ConfigurationError(f"Contig {contig} not found in {self.path}")

        next_position = 1
        columns = self._bam.pileup(
            contig,
            0,
            length,
            truncate=True,
            stepper="all",
            flag_filter=PILEUP_FLAG_FILTER,
            ignore_overlaps=False,
            ignore_orphans=False,
            min_base_quality=0,
            min_mapping_quality=0,
            max_depth=PILEUP_MAX_DEPTH,
        )
        for column in columns:
            position = column.reference_pos + 1
            while next_position < position:
                yield Pileup(contig, next_position, ())
                next_position += 1

            reads = []
            for pileup_read in column.pileups:
                if pileup_read.is_del or pileup_read.is_refskip:
                    continue
                alignment = pileup_read.alignment
                qualities = alignment.query_qualities
                base_quality = (
                    qualities[pileup_read.query_position] if qualities is not None else 0
                )
                reads.append((alignment.mapping_quality, base_quality))
            yield Pileup(contig, position, tuple(reads))
            next_position = position + 1

        while next_position <= length:
            yield Pileup(contig, next_position, ())
            next_position += 1

    def reads(self) -> Iterator[pysam.AlignedSegment]:
        """All records in file order, unmapped included."""
        return self._bam.fetch(until_eof=True)

    def close(self) -> None:
        self._bam.close()

    def __enter__(self) -> "AlignmentSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
