"""Tests for the click command-line interface."""

import signal
from pathlib import Path
from unittest.mock import patch

import click
import pytest
import yaml
from click.testing import CliRunner

from callcov import __version__
from callcov.cli.commands.query import parse_locus
from callcov.cli.exit_codes import EXIT_ERROR, EXIT_SIGTERM, EXIT_SUCCESS, EXIT_USAGE
from callcov.cli.main import _handle_signal, cli, main
from callcov.cli.pipeline import RunOptions, build_config, shutdown
from callcov.core.aggregator import ContigSummary
from callcov.modules.summary_writer import write_summary_table


@pytest.fixture
def runner():
    return CliRunner()


class TestTopLevel:
    """Test cases for the cli group."""

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "query", "summary", "init-config", "validate"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["-V"])
        assert result.exit_code == 0
        assert result.output.strip() == f"callcov {__version__}"

    def test_run_help_shows_thresholds(self, runner):
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        for option in ("--min-depth", "--max-fraction-low-mapq", "--contig", "--threads"):
            assert option in result.output


class TestInitConfig:
    def test_stdout(self, runner):
        result = runner.invoke(cli, ["init-config", "--stdout"])
        assert result.exit_code == 0
        assert "min_depth: 4" in result.output

    def test_writes_file(self, runner, tmp_path):
        target = tmp_path / "my.yaml"
        result = runner.invoke(cli, ["init-config", "--output-file", str(target)])
        assert result.exit_code == 0
        data = yaml.safe_load(target.read_text())
        assert data["params"]["min_mapping_quality"] == 10


class TestQuery:
    """Test cases for the query command."""

    @pytest.fixture
    def interval_dir(self, tmp_path):
        (tmp_path / "chr1.callable.tsv").write_text(
            "chr1\t1\t100\tCALLABLE\nchr1\t101\t200\tLOW_COVERAGE\n"
        )
        return tmp_path

    def test_query_positions(self, runner, interval_dir):
        result = runner.invoke(
            cli, ["query", str(interval_dir), "chr1:50", "chr1:150", "chr2:1"]
        )
        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "chr1\t50\tCALLABLE",
            "chr1\t150\tLOW_COVERAGE",
            "chr2\t1\tUNKNOWN",
        ]

    def test_bad_locus_is_usage_error(self, runner, interval_dir):
        result = runner.invoke(cli, ["query", str(interval_dir), "chr1"])
        assert result.exit_code == EXIT_USAGE

    def test_loci_required(self, runner, interval_dir):
        result = runner.invoke(cli, ["query", str(interval_dir)])
        assert result.exit_code == EXIT_USAGE


class TestParseLocus:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("chr1:100", ("chr1", 100)),
            ("chr1:1,000,000", ("chr1", 1_000_000)),
            ("HLA-A*01:01:01:01:5", ("HLA-A*01:01:01:01", 5)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_locus(text) == expected

    @pytest.mark.parametrize("text", ["chr1", ":5", "chr1:abc", "chr1:0"])
    def test_invalid(self, text):
        with pytest.raises(click.BadParameter):
            parse_locus(text)


class TestSummary:
    def test_prints_table(self, runner, tmp_path):
        write_summary_table(tmp_path, ContigSummary("chr2", callable=30, no_coverage=10))
        write_summary_table(tmp_path, ContigSummary("chr1", callable=50, low_coverage=50))
        result = runner.invoke(cli, ["summary", str(tmp_path)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].startswith("contig\tREF_N\tCALLABLE")
        assert lines[1].startswith("chr1\t0\t50")
        assert lines[1].endswith("50.00")
        assert lines[2].startswith("chr2")
        assert lines[3] == "total\t0\t80\t10\t50\t0\t0\t57.14"

    def test_no_tables(self, runner, tmp_path):
        result = runner.invoke(cli, ["summary", str(tmp_path)])
        assert result.exit_code == EXIT_ERROR
        assert "no .table.txt files" in result.output


class TestValidate:
    def test_all_good(self, runner):
        with patch("callcov.utils.validators.validate_installation", return_value=[]):
            result = runner.invoke(cli, ["validate"])
        assert result.exit_code == 0
        assert "All checks passed" in result.output

    def test_issues(self, runner):
        issues = ["Missing Python module: pysam"]
        with patch("callcov.utils.validators.validate_installation", return_value=issues):
            result = runner.invoke(cli, ["validate", "--full"])
        assert result.exit_code == EXIT_ERROR
        assert "Missing Python module: pysam" in result.output


class TestRunCommand:
    """Test cases for `run` argument handling (no real alignment needed)."""

    def test_missing_inputs(self, runner):
        result = runner.invoke(cli, ["run"])
        assert result.exit_code == EXIT_USAGE
        assert "--alignment and --reference are required" in result.output

    def test_nonexistent_alignment(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "-b", str(tmp_path / "missing.bam")])
        assert result.exit_code == EXIT_USAGE

    def test_invalid_threshold(self, runner):
        result = runner.invoke(cli, ["run", "--max-fraction-low-mapq", "2"])
        assert result.exit_code == EXIT_USAGE

    def test_unreadable_alignment_fails(self, runner, tmp_path):
        bam = tmp_path / "broken.bam"
        ref = tmp_path / "ref.fa"
        bam.write_bytes(b"not a bam file")
        ref.write_text(">chr1\nACGT\n")
        result = runner.invoke(
            cli, ["run", "-b", str(bam), "-r", str(ref), "-o", str(tmp_path / "out")]
        )
        assert result.exit_code == EXIT_ERROR
        assert "Error:" in result.output


class TestBuildConfig:
    """CLI values override the config file, which overrides defaults."""

    def test_priority(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "prefix": "from_config",
                    "threads": 2,
                    "params": {"min_depth": 8, "min_base_quality": 15},
                    "output": {"write_intervals": True},
                }
            )
        )
        cfg = build_config(
            RunOptions(
                config_path=config_path,
                prefix="from_cli",
                min_depth=12,
                contigs=("chr1",),
                no_intervals=True,
            )
        )
        assert cfg.prefix == "from_cli"
        assert cfg.threads == 2
        assert cfg.params.min_depth == 12
        assert cfg.params.min_base_quality == 15
        assert cfg.params.min_mapping_quality == 10
        assert cfg.contigs == ["chr1"]
        assert cfg.output.write_intervals is False

    def test_defaults_without_config(self):
        cfg = build_config(RunOptions())
        assert cfg.prefix == "sample"
        assert cfg.output_dir == Path("callcov_output")
        assert cfg.params.max_depth is None


class TestSignalsAndMain:
    """Test cases for signal handling and main()."""

    def test_first_signal_requests_cancellation(self):
        _handle_signal(signal.SIGTERM, None)
        assert shutdown.token.is_cancelled
        assert shutdown.signum == signal.SIGTERM

    def test_second_signal_aborts(self):
        _handle_signal(signal.SIGINT, None)
        with pytest.raises(KeyboardInterrupt):
            _handle_signal(signal.SIGINT, None)
        assert shutdown.signum == signal.SIGINT

    @pytest.fixture
    def no_signal_install(self, monkeypatch):
        monkeypatch.setattr("callcov.cli.main.signal.signal", lambda *args: None)

    def test_main_version(self, no_signal_install, capsys):
        assert main(["-V"]) == EXIT_SUCCESS
        assert __version__ in capsys.readouterr().out

    def test_main_propagates_exit_code(self, no_signal_install, tmp_path):
        assert main(["summary", str(tmp_path)]) == EXIT_ERROR

    def test_main_keyboard_interrupt(self, no_signal_install):
        shutdown.request(signal.SIGTERM, "test")
        with patch("callcov.cli.main.cli", side_effect=KeyboardInterrupt):
            assert main([]) == EXIT_SIGTERM
