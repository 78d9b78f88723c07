"""Shared Click options for callcov CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, TypeVar

import click

F = TypeVar("F", bound=Callable[..., None])


def alignment_option(func: F) -> F:
    """Input alignment (BAM/CRAM) option."""
    return click.option(
        "-b",
        "--alignment",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        required=False,
        help="Indexed, coordinate-sorted BAM or CRAM file",
    )(func)


def reference_option(func: F) -> F:
    """Reference genome option."""
    return click.option(
        "-r",
        "--reference",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        required=False,
        help="Reference genome FASTA (with .fai index)",
    )(func)


def output_option(func: F) -> F:
    """Output directory option."""
    return click.option(
        "-o",
        "--output",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Output directory [default: callcov_output]",
    )(func)


def prefix_option(func: F) -> F:
    """Output prefix option."""
    return click.option(
        "-p",
        "--prefix",
        default=None,
        help="Output file prefix [default: sample]",
    )(func)


def config_option(func: F) -> F:
    """Configuration file option."""
    return click.option(
        "-c",
        "--config",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Configuration file (YAML)",
    )(func)


def threads_option(func: F) -> F:
    """Worker processes option."""
    return click.option(
        "-t",
        "--threads",
        type=click.IntRange(min=1),
        default=None,
        help="Worker processes for the pileup pass [default: 1]",
    )(func)


def verbose_option(func: F) -> F:
    return click.option(
        "-v",
        "--verbose",
        count=True,
        help="Increase log verbosity (-v for INFO, -vv for DEBUG)",
    )(func)


def log_file_option(func: F) -> F:
    return click.option(
        "--log-file",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Write a detailed (DEBUG) log to this file",
    )(func)


def threshold_options(func: F) -> F:
    """Callable-state thresholds; unset options keep config/default values."""
    options = [
        click.option("--min-depth", type=click.IntRange(min=0), default=None,
                     help="Minimum QC-passing depth for CALLABLE [default: 4]"),
        click.option("--max-depth", type=click.IntRange(min=0), default=None,
                     help="QC-passing depth above which a locus is EXCESSIVE_COVERAGE [default: unbounded]"),
        click.option("--min-mapping-quality", type=click.IntRange(min=0), default=None,
                     help="Minimum MAPQ for a read to pass QC [default: 10]"),
        click.option("--min-base-quality", type=click.IntRange(min=0), default=None,
                     help="Minimum base quality for a read to pass QC [default: 20]"),
        click.option("--max-low-mapq", type=click.IntRange(min=0), default=None,
                     help="Reads with MAPQ <= this count as low MAPQ [default: 1]"),
        click.option("--max-fraction-low-mapq", type=click.FloatRange(0.0, 1.0), default=None,
                     help="Maximum low-MAPQ fraction of raw depth [default: 0.1]"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def contig_selection_options(func: F) -> F:
    func = click.option(
        "--main-assembly-only",
        is_flag=True,
        default=False,
        help="Walk only chr1-22, X, Y and M/MT (with or without 'chr')",
    )(func)
    func = click.option(
        "--contig",
        "contigs",
        multiple=True,
        help="Walk only this contig (repeatable) [default: all header contigs]",
    )(func)
    return func
