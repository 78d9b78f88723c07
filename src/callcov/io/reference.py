"""Reference sequence access, one contig cached at a time."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import pysam

from callcov.exceptions import ConfigurationError, InputFileError
from callcov.utils.logging import get_logger


def reference_index_path(reference: Union[str, Path]) -> Path:
    return Path(f"{reference}.fai")


class ReferenceAccessor:
    """Return bases of an indexed FASTA by contig and 1-based position.

    Only the most recently requested contig is held in memory.
    """

    def __init__(self, reference: Union[str, Path]) -> None:
        self.path = Path(reference)
        self.logger = get_logger(self.__class__.__name__)
        if not self.path.exists():
            raise ConfigurationError(f"Reference file not found: {self.path}")
        if not reference_index_path(self.path).exists():
            raise InputFileError("Reference index (.fai) not found", reference_index_path(self.path))
        try:
            self._fasta = pysam.FastaFile(str(self.path))
        except (OSError, ValueError) as e:
            raise InputFileError(f"Cannot open reference ({e})", self.path) from e

        self._lengths = dict(zip(self._fasta.references, self._fasta.lengths))
        self._cached_contig: Optional[str] = None
        self._cached_bases: str = ""

    @property
    def contigs(self) -> tuple[str, ...]:
        return tuple(self._lengths)

    def has_contig(self, contig: str) -> bool:
        return contig in self._lengths

    def length(self, contig: str) -> int:
        try:
            return self._lengths[contig]
        except KeyError:
            raise ConfigurationError(f"Contig {contig} not found in reference {self.path}")

    def bases(self, contig: str) -> str:
        """Return (and cache) the full sequence of ``contig``."""
        if contig != self._cached_contig:
            if contig not in self._lengths:
                raise ConfigurationError(f"Contig {contig} not found in reference {self.path}")
            # Release the previous contig before staging the next one
            self._cached_bases = ""
            self._cached_contig = None
            self.logger.debug(f"Loading reference contig {contig} ({self._lengths[contig]:,} bp)")
            self._cached_bases = self._fasta.fetch(contig)
            self._cached_contig = contig
        return self._cached_bases

    def base(self, contig: str, position: int) -> str:
        """Reference base at a 1-based position."""
        bases = self.bases(contig)
        if not 1 <= position <= len(bases):
            raise IndexError(f"Position {contig}:{position} outside contig (1..{len(bases)})")
        return bases[position - 1]

    def close(self) -> None:
        self._cached_bases = ""
        self._cached_contig = None
        self._fasta.close()

    def __enter__(self) -> "ReferenceAccessor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
