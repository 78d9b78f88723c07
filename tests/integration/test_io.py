"""Tests for pysam-backed alignment and reference access."""

import pytest

from callcov.config import CallableParams
from callcov.core.classifier import classify
from callcov.core.states import CallableState
from callcov.exceptions import ConfigurationError, InputFileError
from callcov.io.alignment import AlignmentSource
from callcov.io.reference import ReferenceAccessor

pytestmark = pytest.mark.integration


class TestAlignmentSource:
    """Test cases for AlignmentSource."""

    def test_header_contigs_in_order(self, sample_files):
        with AlignmentSource(sample_files.alignment, sample_files.reference) as source:
            assert source.contigs() == [("chr1", 200), ("chr2", 120), ("chr3", 50)]

    def test_pileups_fill_gaps(self, sample_files):
        with AlignmentSource(sample_files.alignment) as source:
            pileups = list(source.pileups("chr2", 120))
        assert [p.position for p in pileups] == list(range(1, 121))
        assert pileups[0].depth == 5
        assert pileups[54].depth == 0
        assert pileups[60].depth == 5
        assert pileups[119].depth == 0
        assert set(pileups[0].reads) == {(60, 30)}

    def test_pileups_without_reads(self, sample_files):
        with AlignmentSource(sample_files.alignment) as source:
            pileups = list(source.pileups("chr3", 50))
        assert len(pileups) == 50
        assert all(p.depth == 0 for p in pileups)

    def test_mapping_qualities_reported_unfiltered(self, sample_files):
        with AlignmentSource(sample_files.alignment) as source:
            pileup = list(source.pileups("chr1", 200))[120]
        assert pileup.position == 121
        assert sorted(mapq for mapq, _ in pileup.reads) == [0, 0, 60, 60, 60, 60]

    def test_unknown_contig(self, sample_files):
        with AlignmentSource(sample_files.alignment) as source:
            with pytest.raises(ConfigurationError):
                list(source.pileups("chr9", 10))

    def test_qc_fail_reads_count_toward_raw_depth(self, flagged_alignment):
        with AlignmentSource(flagged_alignment) as source:
            pileup = list(source.pileups("chr1", 200))[0]
        assert pileup.depth == 5
        assert sorted(mapq for mapq, _ in pileup.reads) == [0, 60, 60, 60, 60]
        assert classify("A", pileup, CallableParams()) is CallableState.POOR_MAPPING_QUALITY

    def test_reads(self, sample_files):
        with AlignmentSource(sample_files.alignment) as source:
            assert sum(1 for _ in source.reads()) == 29

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFileError):
            AlignmentSource(tmp_path / "absent.bam")

    def test_missing_index(self, unindexed_alignment):
        with pytest.raises(InputFileError, match="index"):
            AlignmentSource(unindexed_alignment)


class TestReferenceAccessor:
    """Test cases for ReferenceAccessor."""

    def test_bases_and_lengths(self, sample_files):
        with ReferenceAccessor(sample_files.reference) as reference:
            assert reference.contigs == ("chr1", "chr2", "chr3")
            assert reference.length("chr1") == 200
            assert reference.has_contig("chr2")
            assert not reference.has_contig("chrM")
            assert reference.base("chr1", 1) == "A"
            assert reference.base("chr1", 185) == "N"
            assert len(reference.bases("chr2")) == 120

    def test_out_of_range_position(self, sample_files):
        with ReferenceAccessor(sample_files.reference) as reference:
            with pytest.raises(IndexError):
                reference.base("chr3", 51)

    def test_unknown_contig(self, sample_files):
        with ReferenceAccessor(sample_files.reference) as reference:
            with pytest.raises(ConfigurationError):
                reference.bases("chrM")
            with pytest.raises(ConfigurationError):
                reference.length("chrM")

    def test_missing_index(self, reference_factory):
        path = reference_factory(index=False, name="noindex.fa")
        with pytest.raises(InputFileError, match=r"\.fai"):
            ReferenceAccessor(path)

    def test_missing_reference(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ReferenceAccessor(tmp_path / "absent.fa")
