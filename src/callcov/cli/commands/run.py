"""`run` subcommand implementation."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from callcov.utils.logging import get_logger

from ..common_options import (
    alignment_option,
    config_option,
    contig_selection_options,
    log_file_option,
    output_option,
    prefix_option,
    reference_option,
    threads_option,
    threshold_options,
    verbose_option,
)
from ..pipeline import RunOptions, execute_run


@click.command()
@alignment_option
@reference_option
@output_option
@prefix_option
@config_option
@threads_option
@threshold_options
@contig_selection_options
@click.option("--no-intervals", is_flag=True, help="Do not write per-contig interval files")
@click.option("--skip-read-metrics", is_flag=True, help="Skip the read-level metrics pass")
@verbose_option
@log_file_option
def run(
    alignment: Optional[Path],
    reference: Optional[Path],
    output: Optional[Path],
    prefix: Optional[str],
    config: Optional[Path],
    threads: Optional[int],
    min_depth: Optional[int],
    max_depth: Optional[int],
    min_mapping_quality: Optional[int],
    min_base_quality: Optional[int],
    max_low_mapq: Optional[int],
    max_fraction_low_mapq: Optional[float],
    contigs: Tuple[str, ...],
    main_assembly_only: bool,
    no_intervals: bool,
    skip_read_metrics: bool,
    verbose: int,
    log_file: Optional[Path],
) -> None:
    """Compute coverage statistics and callable loci for an alignment."""
    opts = RunOptions(
        alignment=alignment,
        reference=reference,
        output=output,
        prefix=prefix,
        config_path=config,
        threads=threads,
        min_depth=min_depth,
        max_depth=max_depth,
        min_mapping_quality=min_mapping_quality,
        min_base_quality=min_base_quality,
        max_low_mapq=max_low_mapq,
        max_fraction_low_mapq=max_fraction_low_mapq,
        contigs=contigs,
        main_assembly_only=main_assembly_only,
        no_intervals=no_intervals,
        skip_read_metrics=skip_read_metrics,
        verbose=verbose,
        log_file=log_file,
    )
    sys.exit(execute_run(opts, get_logger("cli")))
