"""Pytest configuration for integration tests: small real BAM/FASTA files built with pysam.

Layout of the synthetic sample (1-based, inclusive):

chr1 (200 bp)
    1-50     10 reads, MAPQ 60           CALLABLE
    51-100   3 reads, MAPQ 60            LOW_COVERAGE
    101-150  4 reads MAPQ 60 + 2 MAPQ 0  POOR_MAPPING_QUALITY
    151-180  no reads                    NO_COVERAGE
    181-190  reference N                 REF_N
    191-200  no reads                    NO_COVERAGE
chr2 (120 bp)
    5 proper pairs, read1 at 1-50 and read2 at 61-110 (insert 110)
chr3 (50 bp)
    no reads
"""

from dataclasses import dataclass
from pathlib import Path

import pysam
import pytest

READ_LENGTH = 50
CONTIGS = [("chr1", 200), ("chr2", 120), ("chr3", 50)]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (builds real BAM/FASTA files)"
    )


@dataclass
class SampleFiles:
    alignment: Path
    reference: Path
    directory: Path


def _sequence(contig, length):
    if contig == "chr1":
        return ("ACGT" * 50)[:180] + "N" * 10 + "ACGTACGTAC"
    return ("GATTACA" * 20)[:length]


def write_reference(path, contigs=CONTIGS, index=True):
    with open(path, "w") as f:
        for contig, length in contigs:
            seq = _sequence(contig, length)
            f.write(f">{contig}\n")
            for i in range(0, len(seq), 60):
                f.write(seq[i : i + 60] + "\n")
    if index:
        pysam.faidx(str(path))
    return path


def _segment(header, name, ref_id, start, mapq, flag=0, mate_start=-1, tlen=0):
    seg = pysam.AlignedSegment(header)
    seg.query_name = name
    seg.query_sequence = "A" * READ_LENGTH
    seg.flag = flag
    seg.reference_id = ref_id
    seg.reference_start = start
    seg.mapping_quality = mapq
    seg.cigartuples = [(0, READ_LENGTH)]
    if mate_start >= 0:
        seg.next_reference_id = ref_id
        seg.next_reference_start = mate_start
    else:
        seg.next_reference_id = -1
        seg.next_reference_start = -1
    seg.template_length = tlen
    seg.query_qualities = pysam.qualitystring_to_array("?" * READ_LENGTH)
    return seg


def write_alignment(path, index=True):
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in CONTIGS],
    }
    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        segments = []
        for i in range(10):
            segments.append(_segment(out.header, f"deep{i}", 0, 0, 60))
        for i in range(3):
            segments.append(_segment(out.header, f"shallow{i}", 0, 50, 60))
        for i in range(4):
            segments.append(_segment(out.header, f"good{i}", 0, 100, 60))
        for i in range(2):
            segments.append(_segment(out.header, f"mapq0_{i}", 0, 100, 0))
        for i in range(5):
            # read1 forward, read2 reverse: FR orientation
            segments.append(_segment(out.header, f"pair{i}", 1, 0, 60, 99, 60, 110))
            segments.append(_segment(out.header, f"pair{i}", 1, 60, 60, 147, 0, -110))
        segments.sort(key=lambda s: (s.reference_id, s.reference_start))
        for seg in segments:
            out.write(seg)
    if index:
        pysam.index(str(path))
    return path


@pytest.fixture(scope="session")
def sample_files(tmp_path_factory):
    directory = tmp_path_factory.mktemp("sample")
    return SampleFiles(
        alignment=write_alignment(directory / "sample.bam"),
        reference=write_reference(directory / "ref.fa"),
        directory=directory,
    )


@pytest.fixture
def unindexed_alignment(tmp_path):
    return write_alignment(tmp_path / "noindex.bam", index=False)


@pytest.fixture
def reference_factory(tmp_path):
    def make(contigs=CONTIGS, index=True, name="custom.fa"):
        return write_reference(tmp_path / name, contigs, index)

    return make


@pytest.fixture
def flagged_alignment(tmp_path):
    """chr1:1-50 covered by 4 MAPQ-60 reads plus one MAPQ-0 read each flagged
    QC-fail, duplicate and secondary."""
    path = tmp_path / "flagged.bam"
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in CONTIGS],
    }
    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        for i in range(4):
            out.write(_segment(out.header, f"good{i}", 0, 0, 60))
        out.write(_segment(out.header, "qcfail", 0, 0, 0, flag=0x200))
        out.write(_segment(out.header, "dup", 0, 0, 0, flag=0x400))
        out.write(_segment(out.header, "secondary", 0, 0, 0, flag=0x100))
    pysam.index(str(path))
    return path
