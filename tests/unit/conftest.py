"""Shared fakes for engine unit tests: in-memory pileup source and reference."""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from callcov.core.classifier import Pileup


class FakeReference:
    """Reference backed by a dict of contig -> bases."""

    def __init__(self, sequences: Dict[str, str]):
        self.sequences = sequences
        self.requested: List[str] = []

    def bases(self, contig: str) -> str:
        self.requested.append(contig)
        return self.sequences[contig]


class FakePileupSource:
    """Pileup source generating reads per position from a function.

    ``reads_at(contig, position)`` returns the ``(mapq, baseq)`` pairs for a
    position. If ``fail_at`` is ``(contig, position)`` an OSError is raised
    instead of yielding that position.
    """

    def __init__(
        self,
        header: Sequence[Tuple[str, int]],
        reads_at: Callable[[str, int], Sequence[Tuple[int, int]]],
        fail_at: Optional[Tuple[str, int]] = None,
    ):
        self.header = list(header)
        self.reads_at = reads_at
        self.fail_at = fail_at
        self.walked: List[str] = []

    def contigs(self):
        return list(self.header)

    def pileups(self, contig: str, length: int):
        self.walked.append(contig)
        for position in range(1, length + 1):
            if self.fail_at == (contig, position):
                raise OSError("truncated BGZF block")
            yield Pileup(contig, position, tuple(self.reads_at(contig, position)))


def uniform_reads(depth: int, mapq: int = 60, baseq: int = 30):
    """reads_at function giving every position the same pileup."""
    reads = ((mapq, baseq),) * depth
    return lambda contig, position: reads


@pytest.fixture
def fake_reference():
    return FakeReference


@pytest.fixture
def fake_source():
    return FakePileupSource


@pytest.fixture
def uniform():
    return uniform_reads
