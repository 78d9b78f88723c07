"""`query` subcommand: callable state at given positions."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import click

from callcov.modules.callable_query import CallableLociQuery


def parse_locus(text: str) -> Tuple[str, int]:
    """Parse ``contig:position`` (1-based; thousands separators allowed)."""
    contig, sep, position = text.rpartition(":")
    if not sep or not contig:
        raise click.BadParameter(f"expected CONTIG:POS, got {text!r}", param_hint="LOCI")
    try:
        value = int(position.replace(",", ""))
    except ValueError:
        raise click.BadParameter(f"invalid position in {text!r}", param_hint="LOCI")
    if value < 1:
        raise click.BadParameter(f"positions are 1-based, got {text!r}", param_hint="LOCI")
    return contig, value


@click.command()
@click.argument(
    "interval_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.argument("loci", nargs=-1, required=True)
def query(interval_dir: Path, loci: List[str]) -> None:
    """Print the callable state of each CONTIG:POS in LOCI."""
    positions = [parse_locus(locus) for locus in loci]
    service = CallableLociQuery(interval_dir)
    for contig, position in positions:
        state = service.query_position(contig, position)
        click.echo(f"{contig}\t{position}\t{state.label}")
