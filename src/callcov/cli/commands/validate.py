"""Installation validation command."""

from __future__ import annotations

import sys

import click

from callcov import __version__
from callcov.cli.exit_codes import EXIT_ERROR


@click.command()
@click.option("--full", is_flag=True, help="Also check pysam's file-format support")
def validate(full: bool) -> None:
    """Validate the callcov installation and dependencies."""
    from callcov.utils.validators import validate_installation

    click.echo("Validating callcov installation...")
    issues = validate_installation(full_check=full)

    if not issues:
        click.echo("✓ All checks passed!")
        click.echo(f"  callcov version: {__version__}")
    else:
        click.echo("✗ Issues found:")
        for issue in issues:
            click.echo(f"  - {issue}")
        sys.exit(EXIT_ERROR)
