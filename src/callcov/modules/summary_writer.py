"""
Summary outputs of a coverage/callable analysis and the cache loader.

Files written into the output directory:

- ``<contig>.table.txt``: GATK CallableLoci summary format
- ``<prefix>.coverage_summary.json``: the full result
- ``<prefix>.contig_coverage.tsv``: per-contig statistics and state counts
- ``<prefix>.coverage_histogram.tsv``: genome-wide and per-contig depth histograms
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from callcov.config import CallableParams
from callcov.constants import (
    CONTIG_DEPTH_THRESHOLDS,
    HISTOGRAM_BINS,
    INTERVAL_FILE_SUFFIX,
    SUMMARY_TABLE_HEADER,
    SUMMARY_TABLE_SUFFIX,
)
from callcov.core.aggregator import (
    AnalysisStatus,
    ContigCoverageMetrics,
    ContigSummary,
    CoverageCallableResult,
)
from callcov.core.states import CallableState
from callcov.exceptions import InputFileError
from callcov.modules.read_metrics import ReadMetrics
from callcov.utils.logging import LogTemplates, get_logger

logger = get_logger("summary_writer")

CONTIG_COVERAGE_SUFFIX = ".contig_coverage.tsv"
HISTOGRAM_SUFFIX = ".coverage_histogram.tsv"
SUMMARY_JSON_SUFFIX = ".coverage_summary.json"


def _fraction_column(depth: int) -> str:
    return f"frac_{depth}x"


def summary_table_path(output_dir: Union[str, Path], contig: str) -> Path:
    return Path(output_dir) / f"{contig}{SUMMARY_TABLE_SUFFIX}"


def write_summary_table(output_dir: Union[str, Path], summary: ContigSummary) -> Path:
    """Write one ``<contig>.table.txt`` file."""
    path = summary_table_path(output_dir, summary.contig_name)
    lines = [SUMMARY_TABLE_HEADER]
    lines.extend(f"{state.label} {summary.count(state)}" for state in CallableState.counted_states())
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_summary_tables(output_dir: Union[str, Path], result: CoverageCallableResult) -> List[Path]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return [write_summary_table(output_dir, summary) for summary in result.contig_summaries]


def write_json(result: CoverageCallableResult, path: Union[str, Path]) -> Path:
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
        f.write("\n")
    return path


def contig_coverage_frame(result: CoverageCallableResult) -> pd.DataFrame:
    """One row per contig: coverage statistics followed by state counts."""
    rows = []
    for summary in result.contig_summaries:
        row: Dict[str, object] = {"contig": summary.contig_name}
        cov = result.coverage_for(summary.contig_name)
        if cov is not None:
            row.update(
                length=cov.length,
                positions=cov.positions,
                mean_coverage=cov.mean_coverage,
                median_coverage=cov.median_coverage,
                sd_coverage=cov.sd_coverage,
            )
            for depth in CONTIG_DEPTH_THRESHOLDS:
                row[_fraction_column(depth)] = cov.fraction_at(depth)
        for state in CallableState.counted_states():
            row[state.label] = summary.count(state)
        rows.append(row)
    return pd.DataFrame(rows)


def histogram_frame(result: CoverageCallableResult) -> pd.DataFrame:
    """Depth histogram with one ``all`` column plus one column per contig."""
    data: Dict[str, object] = {
        "depth": range(HISTOGRAM_BINS),
        "all": list(result.coverage_histogram),
    }
    for cov in result.contig_coverage:
        data[cov.contig] = list(cov.coverage_histogram)
    return pd.DataFrame(data)


def write_outputs(
    result: CoverageCallableResult,
    output_dir: Union[str, Path],
    prefix: str,
    write_tables: bool = True,
) -> Dict[str, Path]:
    """Write every summary file and return them by key."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    outputs: Dict[str, Path] = {}

    if write_tables:
        for path in write_summary_tables(output_dir, result):
            outputs[f"table:{path.name[: -len(SUMMARY_TABLE_SUFFIX)]}"] = path

    outputs["summary_json"] = write_json(result, output_dir / f"{prefix}{SUMMARY_JSON_SUFFIX}")

    coverage_tsv = output_dir / f"{prefix}{CONTIG_COVERAGE_SUFFIX}"
    contig_coverage_frame(result).to_csv(coverage_tsv, sep="\t", index=False, float_format="%.6f")
    outputs["contig_coverage"] = coverage_tsv

    histogram_tsv = output_dir / f"{prefix}{HISTOGRAM_SUFFIX}"
    histogram_frame(result).to_csv(histogram_tsv, sep="\t", index=False)
    outputs["coverage_histogram"] = histogram_tsv

    for key in ("summary_json", "contig_coverage", "coverage_histogram"):
        path = outputs[key]
        logger.debug(LogTemplates.FILE_CREATED.format(path=path, size=path.stat().st_size))
    return outputs


def read_summary_table(path: Union[str, Path]) -> ContigSummary:
    """Parse a ``<contig>.table.txt`` file; missing states count as 0."""
    path = Path(path)
    contig = path.name[: -len(SUMMARY_TABLE_SUFFIX)]
    counts = {state: 0 for state in CallableState.counted_states()}
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith(SUMMARY_TABLE_HEADER):
                continue
            fields = line.split()
            if len(fields) != 2:
                continue
            state = CallableState.parse(fields[0])
            if state in counts:
                try:
                    counts[state] = int(fields[1])
                except ValueError as e:
                    raise InputFileError(f"Bad base count {fields[1]!r}", path) from e
    return ContigSummary.from_counts(contig, counts)


def standard_contig_key(name: str) -> tuple:
    """Sort key placing 1..22, X, Y, M/MT first, then everything else by name."""
    bare = re.sub(r"^chr", "", name)
    if bare == "X":
        rank = 23
    elif bare == "Y":
        rank = 24
    elif bare in ("M", "MT"):
        rank = 25
    elif bare.isdigit():
        rank = int(bare)
    else:
        rank = 100
    return (rank, name)


def _load_histograms(directory: Path) -> Dict[str, Tuple[int, ...]]:
    """Depth histograms by column (``all`` plus one per contig)."""
    candidates = sorted(directory.glob(f"*{HISTOGRAM_SUFFIX}"))
    if not candidates:
        return {}
    df = pd.read_csv(candidates[0], sep="\t")
    if "depth" not in df.columns or len(df) != HISTOGRAM_BINS:
        logger.warning(f"Ignoring malformed histogram file {candidates[0]}")
        return {}
    return {str(column): tuple(int(n) for n in df[column]) for column in df.columns[1:]}


def _load_contig_coverage(
    directory: Path, histograms: Dict[str, Tuple[int, ...]]
) -> List[ContigCoverageMetrics]:
    candidates = sorted(directory.glob(f"*{CONTIG_COVERAGE_SUFFIX}"))
    if not candidates:
        return []
    df = pd.read_csv(candidates[0], sep="\t", dtype={"contig": str})
    if "mean_coverage" not in df.columns:
        return []
    metrics = []
    for row in df.to_dict("records"):
        contig = str(row["contig"])
        metrics.append(
            ContigCoverageMetrics(
                contig=contig,
                length=int(row["length"]),
                positions=int(row["positions"]),
                mean_coverage=float(row["mean_coverage"]),
                median_coverage=float(row["median_coverage"]),
                sd_coverage=float(row["sd_coverage"]),
                fraction_at_depth=tuple(
                    (depth, float(row[_fraction_column(depth)]))
                    for depth in CONTIG_DEPTH_THRESHOLDS
                    if _fraction_column(depth) in row
                ),
                coverage_histogram=histograms.get(contig, ()),
            )
        )
    return metrics


def _load_summary_json(directory: Path) -> Optional[Dict[str, Any]]:
    candidates = sorted(directory.glob(f"*{SUMMARY_JSON_SUFFIX}"))
    if not candidates:
        return None
    with open(candidates[0], "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise InputFileError(f"Malformed summary JSON ({e})", candidates[0]) from e


def _depth_key(label: str) -> int:
    return int(label.rstrip("x"))


def exists_in_cache(directory: Union[str, Path]) -> bool:
    directory = Path(directory)
    return directory.is_dir() and any(directory.glob(f"*{SUMMARY_TABLE_SUFFIX}"))


def load_from_cache(directory: Union[str, Path]) -> Optional[CoverageCallableResult]:
    """Rebuild a result from the files of a previous run in ``directory``.

    State counts come from the ``.table.txt`` files. Genome-wide statistics,
    parameters and read metrics come from the summary JSON and the histogram
    TSV. Without a summary JSON that agrees with the tables, the result is
    marked ``PARTIAL`` and its depth statistics are zero. Returns None if the
    directory holds no table files.
    """
    directory = Path(directory)
    if not exists_in_cache(directory):
        return None

    summaries = [read_summary_table(p) for p in directory.glob(f"*{SUMMARY_TABLE_SUFFIX}")]
    summaries.sort(key=lambda s: standard_contig_key(s.contig_name))
    logger.info(LogTemplates.FILE_LOADED.format(count=len(summaries), path=directory))

    histograms = _load_histograms(directory)
    coverage = {c.contig: c for c in _load_contig_coverage(directory, histograms)}
    interval_files = []
    for summary in summaries:
        path = directory / f"{summary.contig_name}{INTERVAL_FILE_SUFFIX}"
        if path.exists():
            interval_files.append((summary.contig_name, path))

    territory = sum(s.total for s in summaries)
    cached = dict(
        genome_territory=territory,
        callable_bases=sum(s.callable for s in summaries),
        contig_summaries=tuple(summaries),
        contig_coverage=tuple(coverage[s.contig_name] for s in summaries if s.contig_name in coverage),
        interval_files=tuple(interval_files),
    )

    data = _load_summary_json(directory)
    histogram = tuple(data.get("coverage_histogram", ())) if data else ()
    if data is None or data.get("genome_territory") != territory or sum(histogram) != territory:
        if data is not None:
            logger.warning(
                f"Summary JSON in {directory} does not match the state tables; "
                "depth statistics not restored"
            )
        return CoverageCallableResult(
            status=AnalysisStatus.PARTIAL,
            params=CallableParams(),
            mean_coverage=0.0,
            median_coverage=0.0,
            sd_coverage=0.0,
            coverage_histogram=(0,) * HISTOGRAM_BINS,
            fraction_at_depth=(),
            **cached,
        )

    read_metrics = data.get("read_metrics")
    return CoverageCallableResult(
        status=AnalysisStatus(data["status"]),
        params=CallableParams(**data["params"]),
        mean_coverage=float(data["mean_coverage"]),
        median_coverage=float(data["median_coverage"]),
        sd_coverage=float(data["sd_coverage"]),
        coverage_histogram=histogram,
        fraction_at_depth=tuple(
            (_depth_key(label), pct / 100.0) for label, pct in data["pct_at_depth"].items()
        ),
        read_metrics=ReadMetrics.from_dict(read_metrics) if read_metrics else None,
        last_contig=data.get("last_contig"),
        last_position=int(data.get("last_position") or 0),
        **cached,
    )
