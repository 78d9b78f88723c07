"""Shared run helpers for the CLI: option resolution, shutdown state, execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import click

from callcov.cli.exit_codes import EXIT_ERROR, EXIT_SUCCESS, EXIT_USAGE, exit_code_for_signal
from callcov.config import Config, load_config
from callcov.exceptions import CallCovError
from callcov.utils.cancellation import CancellationToken
from callcov.utils.logging import setup_logging
from callcov.utils.progress import NOOP, logging_reporter, throttled

# Seconds between progress log lines
PROGRESS_LOG_INTERVAL = 5.0


class ShutdownState:
    """Cancellation token shared by the signal handlers and the running analysis."""

    def __init__(self) -> None:
        self.token = CancellationToken()
        self.signum: Optional[int] = None

    def request(self, signum: int, reason: str) -> None:
        if self.signum is None:
            self.signum = signum
        self.token.cancel(reason)

    def reset(self) -> None:
        self.token = CancellationToken()
        self.signum = None


shutdown = ShutdownState()


@dataclass
class RunOptions:
    """Container for `run` options. None means "use config or default"."""

    alignment: Optional[Path] = None
    reference: Optional[Path] = None
    output: Optional[Path] = None
    prefix: Optional[str] = None
    config_path: Optional[Path] = None
    threads: Optional[int] = None
    min_depth: Optional[int] = None
    max_depth: Optional[int] = None
    min_mapping_quality: Optional[int] = None
    min_base_quality: Optional[int] = None
    max_low_mapq: Optional[int] = None
    max_fraction_low_mapq: Optional[float] = None
    contigs: Tuple[str, ...] = field(default_factory=tuple)
    main_assembly_only: bool = False
    no_intervals: bool = False
    skip_read_metrics: bool = False
    verbose: int = 0
    log_file: Optional[Path] = None


def _log_level(verbose: int, config_level: str) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    level = logging.getLevelName(str(config_level).upper())
    return level if isinstance(level, int) else logging.WARNING


def build_config(opts: RunOptions) -> Config:
    """Resolve options with priority CLI > config file > default."""
    cfg = load_config(opts.config_path) if opts.config_path else Config()

    if opts.alignment is not None:
        cfg.alignment = opts.alignment
    if opts.reference is not None:
        cfg.reference = opts.reference
    if opts.output is not None:
        cfg.output_dir = opts.output
    if opts.prefix is not None:
        cfg.prefix = opts.prefix
    if opts.threads is not None:
        cfg.threads = opts.threads
    if opts.contigs:
        cfg.contigs = list(opts.contigs)

    # Flags only ever switch behaviour on; the config file keeps its value otherwise
    if opts.main_assembly_only:
        cfg.main_assembly_only = True
    if opts.no_intervals:
        cfg.output.write_intervals = False
    if opts.skip_read_metrics:
        cfg.skip_read_metrics = True

    cfg.params = cfg.params.replace(
        min_depth=opts.min_depth,
        max_depth=opts.max_depth,
        min_mapping_quality=opts.min_mapping_quality,
        min_base_quality=opts.min_base_quality,
        max_low_mapq=opts.max_low_mapq,
        max_fraction_low_mapq=opts.max_fraction_low_mapq,
    )
    if opts.log_file is not None:
        cfg.runtime.log_file = opts.log_file
    return cfg


def execute_run(opts: RunOptions, logger: logging.Logger) -> int:
    """Run the analysis and return the process exit code."""
    from callcov.modules.coverage_callable import CoverageCallableModule

    try:
        cfg = build_config(opts)
    except CallCovError as exc:
        click.echo(f"Error: {exc}", err=True)
        return EXIT_ERROR

    setup_logging(level=_log_level(opts.verbose, cfg.runtime.log_level), log_file=cfg.runtime.log_file)

    if not cfg.alignment or not cfg.reference:
        click.echo("Error: Both --alignment and --reference are required", err=True)
        click.echo("These can be provided via CLI arguments or in a config file (-c)", err=True)
        return EXIT_USAGE

    progress = NOOP
    if cfg.runtime.enable_progress:
        progress = throttled(logging_reporter(logger), min_interval=PROGRESS_LOG_INTERVAL)

    module = CoverageCallableModule(cfg, cancel=shutdown.token, progress=progress)
    result = module.run()

    if result.cancelled:
        click.echo(f"Cancelled: {result.error_message}", err=True)
        return exit_code_for_signal(shutdown.signum)
    if not result.success:
        click.echo(f"Error: {result.error_message}", err=True)
        return EXIT_ERROR

    coverage = result.result
    click.echo(f"Genome territory:  {coverage.genome_territory:,} bp")
    click.echo(f"Mean coverage:     {coverage.mean_coverage:.2f}x (sd {coverage.sd_coverage:.2f})")
    click.echo(f"Median coverage:   {coverage.median_coverage:.0f}x")
    click.echo(f"Callable bases:    {coverage.callable_bases:,}")
    click.echo(f"Results written to: {cfg.output_dir}")
    return EXIT_SUCCESS
