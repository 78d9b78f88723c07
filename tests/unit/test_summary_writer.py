"""Tests for summary tables, TSV/JSON outputs and the cache loader."""

import json

import pandas as pd
import pytest

from callcov.config import CallableParams
from callcov.core.aggregator import (
    AnalysisStatus,
    ContigAccumulator,
    ContigSummary,
    ResultAggregator,
)
from callcov.core.states import CallableState
from callcov.exceptions import InputFileError
from callcov.modules.summary_writer import (
    exists_in_cache,
    load_from_cache,
    read_summary_table,
    standard_contig_key,
    write_outputs,
    write_summary_table,
)


def build_result():
    """chr1: 3 callable at 20x + 1 low at 2x; chr2: 2 REF_N at 0x."""
    aggregator = ResultAggregator([("chr1", 4), ("chr2", 2)], CallableParams())
    acc = ContigAccumulator("chr1", 4)
    for position in range(1, 4):
        acc.record(position, CallableState.CALLABLE, 20)
    acc.record(4, CallableState.LOW_COVERAGE, 2)
    aggregator.flush(acc)
    acc = ContigAccumulator("chr2", 2)
    acc.record(1, CallableState.REF_N, 0)
    acc.record(2, CallableState.REF_N, 0)
    aggregator.flush(acc)
    return aggregator.build()


class TestSummaryTable:
    """Test cases for the per-contig table files."""

    def test_table_format(self, tmp_path):
        summary = ContigSummary("chr1", ref_n=5, callable=100, low_coverage=7)
        path = write_summary_table(tmp_path, summary)
        assert path.name == "chr1.table.txt"
        assert path.read_text().splitlines() == [
            "state nBases",
            "REF_N 5",
            "CALLABLE 100",
            "NO_COVERAGE 0",
            "LOW_COVERAGE 7",
            "EXCESSIVE_COVERAGE 0",
            "POOR_MAPPING_QUALITY 0",
        ]

    def test_read_back(self, tmp_path):
        summary = ContigSummary("chrX", callable=3, poor_mapping_quality=2)
        assert read_summary_table(write_summary_table(tmp_path, summary)) == summary

    def test_read_missing_states_and_junk(self, tmp_path):
        path = tmp_path / "chr5.table.txt"
        path.write_text("state nBases\nCALLABLE 12\nnot a row at all\nSOMETHING 4\n\n")
        summary = read_summary_table(path)
        assert summary.contig_name == "chr5"
        assert summary.callable == 12
        assert summary.total == 12

    def test_bad_count(self, tmp_path):
        path = tmp_path / "chr5.table.txt"
        path.write_text("state nBases\nCALLABLE many\n")
        with pytest.raises(InputFileError):
            read_summary_table(path)


class TestWriteOutputs:
    """Test cases for write_outputs."""

    def test_all_files_written(self, tmp_path):
        outputs = write_outputs(build_result(), tmp_path, "NA12878")
        assert set(outputs) == {
            "table:chr1",
            "table:chr2",
            "summary_json",
            "contig_coverage",
            "coverage_histogram",
        }
        for path in outputs.values():
            assert path.exists()
        assert outputs["summary_json"].name == "NA12878.coverage_summary.json"

    def test_tables_optional(self, tmp_path):
        outputs = write_outputs(build_result(), tmp_path, "s", write_tables=False)
        assert not any(key.startswith("table:") for key in outputs)
        assert not list(tmp_path.glob("*.table.txt"))

    def test_json_content(self, tmp_path):
        outputs = write_outputs(build_result(), tmp_path, "s")
        data = json.loads(outputs["summary_json"].read_text())
        assert data["genome_territory"] == 6
        assert data["callable_bases"] == 3
        assert data["state_totals"]["REF_N"] == 2
        assert [c["contig"] for c in data["contigs"]] == ["chr1", "chr2"]

    def test_contig_coverage_tsv(self, tmp_path):
        outputs = write_outputs(build_result(), tmp_path, "s")
        df = pd.read_csv(outputs["contig_coverage"], sep="\t")
        assert list(df.columns) == [
            "contig",
            "length",
            "positions",
            "mean_coverage",
            "median_coverage",
            "sd_coverage",
            "frac_1x",
            "frac_10x",
            "frac_20x",
            "frac_30x",
            "REF_N",
            "CALLABLE",
            "NO_COVERAGE",
            "LOW_COVERAGE",
            "EXCESSIVE_COVERAGE",
            "POOR_MAPPING_QUALITY",
        ]
        chr1 = df.iloc[0]
        assert chr1["mean_coverage"] == pytest.approx(62 / 4)
        assert chr1["frac_20x"] == pytest.approx(0.75)
        assert chr1["CALLABLE"] == 3
        assert df.iloc[1]["REF_N"] == 2

    def test_histogram_tsv(self, tmp_path):
        outputs = write_outputs(build_result(), tmp_path, "s")
        df = pd.read_csv(outputs["coverage_histogram"], sep="\t")
        assert list(df.columns) == ["depth", "all", "chr1", "chr2"]
        assert len(df) == 256
        assert df["all"].sum() == 6
        assert df.loc[20, "chr1"] == 3
        assert df.loc[0, "chr2"] == 2


class TestCache:
    """Test cases for load_from_cache."""

    def test_empty_directory(self, tmp_path):
        assert not exists_in_cache(tmp_path)
        assert load_from_cache(tmp_path) is None
        assert load_from_cache(tmp_path / "missing") is None

    def test_round_trip_counts(self, tmp_path):
        write_outputs(build_result(), tmp_path, "s")
        cached = load_from_cache(tmp_path)
        assert cached.complete
        assert cached.genome_territory == 6
        assert cached.callable_bases == 3
        assert [s.contig_name for s in cached.contig_summaries] == ["chr1", "chr2"]
        assert cached.coverage_for("chr1").mean_coverage == pytest.approx(15.5)
        assert cached.to_dict()["contigs"][1]["contig"] == "chr2"

    def test_round_trip_restores_depth_statistics(self, tmp_path):
        result = build_result()
        write_outputs(result, tmp_path, "s")
        cached = load_from_cache(tmp_path)

        assert cached.status is AnalysisStatus.COMPLETE
        assert sum(cached.coverage_histogram) == cached.genome_territory == 6
        assert cached.coverage_histogram == result.coverage_histogram
        assert cached.mean_coverage == pytest.approx(62 / 6)
        assert cached.median_coverage == result.median_coverage == 2.0
        assert cached.sd_coverage == pytest.approx(result.sd_coverage)
        assert cached.fraction_at_least(1) == pytest.approx(result.fraction_at_least(1))
        assert cached.params == result.params
        assert cached.coverage_for("chr1").coverage_histogram == (
            result.coverage_for("chr1").coverage_histogram
        )

    def test_tables_only_is_partial(self, tmp_path):
        write_summary_table(tmp_path, ContigSummary("chr1", callable=4))
        cached = load_from_cache(tmp_path)
        assert cached.status is AnalysisStatus.PARTIAL
        assert not cached.complete
        assert cached.genome_territory == 4
        assert cached.mean_coverage == 0.0

    def test_json_disagreeing_with_tables_is_partial(self, tmp_path):
        write_outputs(build_result(), tmp_path, "s")
        write_summary_table(tmp_path, ContigSummary("chr2", ref_n=2, callable=5))
        cached = load_from_cache(tmp_path)
        assert cached.status is AnalysisStatus.PARTIAL
        assert cached.genome_territory == 11

    def test_malformed_json(self, tmp_path):
        write_outputs(build_result(), tmp_path, "s")
        (tmp_path / "s.coverage_summary.json").write_text("{not json")
        with pytest.raises(InputFileError, match="summary JSON"):
            load_from_cache(tmp_path)

    def test_standard_ordering(self, tmp_path):
        for name in ("chrUn_x", "chrX", "chr10", "chrM", "chr2", "chrY", "chr1"):
            write_summary_table(tmp_path, ContigSummary(name, callable=1))
        cached = load_from_cache(tmp_path)
        assert [s.contig_name for s in cached.contig_summaries] == [
            "chr1",
            "chr2",
            "chr10",
            "chrX",
            "chrY",
            "chrM",
            "chrUn_x",
        ]
        assert cached.contig_coverage == ()

    def test_interval_files_picked_up(self, tmp_path):
        write_summary_table(tmp_path, ContigSummary("chr1", callable=1))
        (tmp_path / "chr1.callable.tsv").write_text("chr1\t1\t1\tCALLABLE\n")
        cached = load_from_cache(tmp_path)
        assert cached.interval_file_for("chr1") == tmp_path / "chr1.callable.tsv"


class TestStandardContigKey:
    def test_ranks(self):
        assert standard_contig_key("chr1") < standard_contig_key("2")
        assert standard_contig_key("22") < standard_contig_key("X")
        assert standard_contig_key("MT") < standard_contig_key("GL000220.1")
