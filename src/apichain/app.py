"""Typer application and CLI entry point for apichain.

This module wires together the top-level Typer application and registers
the built-in commands (``mock``, ``request``). The :func:`main` function is
the console-script entry point declared in ``pyproject.toml``. It installs
signal handlers and invokes the Typer app; unhandled exceptions are
written to a crash log under the data directory.

See Also:
    :mod:`apichain.config`: Global configuration and mock flag resolution.
    :mod:`apichain.output`: Output formatting initialised in :func:`main_callback`.
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

from apichain import __version__
from apichain.commands.mock import mock_app
from apichain.commands.request import request_command
from apichain.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="apichain",
    help="Send API calls through a plugin chain, with switchable mock mode.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(mock_app, name="mock", help="Mock mode management.")
app.command("request")(request_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"apichain {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, no_color: bool) -> None:
    """Route the ``apichain`` loggers to stderr through Rich.

    Only warnings are shown unless *verbose* is set. Calling this again
    replaces the handler installed by a previous call.
    """
    root = logging.getLogger("apichain")
    for handler in list(root.handlers):
        if getattr(handler, "_apichain_cli", False):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=False,
    )
    handler._apichain_cli = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


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
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and request logging."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~apichain.output.OutputManager` and the
    ``apichain`` logger from CLI flags. Without ``--json`` or ``--plain`` the
    format stored under ``output.format`` in the global config is used.
    """
    from apichain.config import load_global_config
    from apichain.exceptions import ApichainError
    from apichain.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_global_config().output.format)
        except ApichainError as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(code=exc.exit_code) from None

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _configure_logging(verbose, no_color or output.format != OutputFormat.RICH)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from apichain.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``apichain`` console script.

    :class:`~apichain.exceptions.ApichainError` instances that escape a
    command cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

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
        from apichain.exceptions import ApichainError
        from apichain.output import error

        if isinstance(exc, ApichainError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
