"""Typer application and CLI entry point for specroute.

This module builds the top-level Typer application, registers the built-in
sub-commands (``compile`` and the ``inspect`` group), and configures output
and logging from the global flags in :func:`main_callback`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Known errors exit with their mapped exit code; unhandled
exceptions are written to a crash log under the data directory.

See Also:
    :mod:`specroute.config`: Compile-option resolution.
    :mod:`specroute.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from specroute import __version__
from specroute.commands.compile import compile_command
from specroute.commands.inspect import inspect_app
from specroute.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="specroute",
    help="Compile OpenAPI 3.0/3.1 documents into validator declarations and route descriptors.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("compile")(compile_command)
app.add_typer(inspect_app, name="inspect", help="Inspect what a document compiles to.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"specroute {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool = False, quiet: bool = False, no_color: bool = False) -> None:
    """Send ``specroute`` log records to stderr through Rich.

    Warnings (such as unknown schema formats) are shown by default,
    ``--verbose`` adds debug records and ``--quiet`` keeps only errors.
    Calling it again replaces the previously installed handler.
    """
    logger = logging.getLogger("specroute")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    if verbose:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.ERROR)
    else:
        logger.setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~specroute.output.OutputManager` and the log
    handler from the CLI flags.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level log output.
    """
    from specroute.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    setup_logging(verbose=verbose, quiet=quiet, no_color=no_color)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from specroute.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        encoding="utf-8",
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``specroute`` console script.

    Unhandled :class:`~specroute.exceptions.SpecrouteError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

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
        from specroute.exceptions import SpecrouteError
        from specroute.output import error

        if isinstance(exc, SpecrouteError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
