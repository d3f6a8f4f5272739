"""Typer application and CLI entry point for specreg.

This module wires the top-level Typer application, registers the built-in
commands, and sets up output and logging from the global flags.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled :class:`~specreg.exceptions.SpecregError`
instances exit with the error's ``exit_code``.

See Also:
    :mod:`specreg.config`: Document and connection resolution.
    :mod:`specreg.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from specreg import __version__
from specreg.commands.config import config_app
from specreg.commands.inspect import (
    explain_kind,
    find_operation,
    list_operations,
    list_schemas,
    sample_schema,
    show_operation,
    show_schema,
    validate_data,
)
from specreg.commands.invoke import call_operation
from specreg.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="specreg",
    help="Explore and call the operations of an OpenAPI / Swagger document.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("operations")(list_operations)
app.command("show")(show_operation)
app.command("find")(find_operation)
app.command("kind")(explain_kind)
app.command("schemas")(list_schemas)
app.command("schema")(show_schema)
app.command("sample")(sample_schema)
app.command("validate")(validate_data)
app.command("call")(call_operation)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"specreg {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every command.

    Installs the global :class:`~specreg.output.OutputManager` and routes
    library logging to stderr through Rich.
    """
    from specreg.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(verbose=verbose, quiet=quiet, no_color=no_color)


def configure_logging(verbose: bool = False, quiet: bool = False, no_color: bool = False) -> None:
    """Send ``specreg`` log records to stderr.

    Warnings are shown by default, debug records with ``--verbose`` and
    only errors with ``--quiet``.
    """
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=verbose,
    )
    logger = logging.getLogger("specreg")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``specreg`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from specreg.exceptions import SpecregError
        from specreg.output import error

        if isinstance(exc, SpecregError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logging.getLogger(__name__).debug("Unexpected error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
