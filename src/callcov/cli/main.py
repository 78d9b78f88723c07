"""Click application entrypoint for callcov."""

from __future__ import annotations

import signal
import sys
from types import FrameType
from typing import Optional

import click

from callcov import __version__
from callcov.cli.exit_codes import EXIT_ERROR, EXIT_SUCCESS, exit_code_for_signal
from callcov.cli.pipeline import shutdown

from .commands.config import init_config
from .commands.query import query
from .commands.run import run
from .commands.summary import summary
from .commands.validate import validate


def _handle_signal(signum: int, frame: Optional[FrameType]) -> None:
    """Request cooperative cancellation; a second signal aborts immediately."""
    sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
    if shutdown.token.is_cancelled:
        click.echo(f"\n{sig_name} received again, aborting", err=True)
        raise KeyboardInterrupt(f"{sig_name} received")
    click.echo(f"\n{sig_name} received, stopping at the next checkpoint...", err=True)
    shutdown.request(signum, f"{sig_name} received")


def _print_version(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if value and not ctx.resilient_parsing:
        click.echo(f"callcov {__version__}")
        ctx.exit()


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
# Version option (use -V to avoid conflict with -v/--verbose)
@click.option(
    "-V",
    "--version",
    is_flag=True,
    is_eager=True,
    expose_value=False,
    callback=_print_version,
    help="Show the version and exit.",
)
def cli() -> None:
    """callcov: coverage statistics and callable loci from BAM/CRAM files."""


cli.add_command(run)
cli.add_command(query)
cli.add_command(summary)
cli.add_command(init_config)
cli.add_command(validate)


def main(argv: list[str] | None = None) -> int:
    """Main entry point with signal handling."""
    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        cli(argv)
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        return exit_code_for_signal(shutdown.signum)
    except SystemExit as exc:
        # Preserve explicit exit codes from commands
        if exc.code is None:
            return EXIT_SUCCESS
        return exc.code if isinstance(exc.code, int) else EXIT_ERROR
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
