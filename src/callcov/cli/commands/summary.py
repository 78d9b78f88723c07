"""`summary` subcommand: per-contig state counts from cached table files."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from callcov.cli.exit_codes import EXIT_ERROR
from callcov.core.states import CallableState
from callcov.modules.summary_writer import load_from_cache


@click.command()
@click.argument(
    "output_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
def summary(output_dir: Path) -> None:
    """Summarize a previous run from the .table.txt files in OUTPUT_DIR."""
    result = load_from_cache(output_dir)
    if result is None:
        click.echo(f"Error: no .table.txt files found in {output_dir}", err=True)
        sys.exit(EXIT_ERROR)

    states = CallableState.counted_states()
    click.echo("\t".join(["contig", *(s.label for s in states), "pct_callable"]))
    for contig in result.contig_summaries:
        pct = 100.0 * contig.callable / contig.total if contig.total else 0.0
        counts = [str(contig.count(s)) for s in states]
        click.echo("\t".join([contig.contig_name, *counts, f"{pct:.2f}"]))

    totals = result.state_totals()
    pct = 100.0 * result.callable_bases / result.genome_territory if result.genome_territory else 0.0
    click.echo("\t".join(["total", *(str(totals[s]) for s in states), f"{pct:.2f}"]))
