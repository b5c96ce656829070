"""Typer application and CLI entry point for loginflow.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``init``, ``login``, ``token``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~loginflow.exceptions.LoginFlowError` exits with its own code;
anything else is written to a crash log under the data directory.

See Also:
    :mod:`loginflow.config`: Profile and global configuration resolution.
    :mod:`loginflow.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from loginflow import __version__
from loginflow.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from loginflow.output import OutputFormat


app = typer.Typer(
    name="loginflow",
    help="Log in through a browser-redirect OAuth flow and keep the token.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _format_from_config() -> OutputFormat:
    """The ``output.format`` setting, used when no format flag is given."""
    from loginflow.config import configured_format

    try:
        return OutputFormat(configured_format())
    except ValueError:
        return OutputFormat.AUTO


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"loginflow {__version__}")
        raise typer.Exit()


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
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the auth service URL."
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
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~loginflow.output.OutputManager` built from
    the output flags, or from the ``output.format`` setting when neither
    ``--json`` nor ``--plain`` is given, and stores the shared options
    (``profile``, ``base_url``, ``force``) in ``ctx.obj`` for sub-commands.
    """
    from loginflow.output import OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _format_from_config()

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["base_url"] = base_url
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


from loginflow.commands.config import config_app  # noqa: E402
from loginflow.commands.init import init_command  # noqa: E402
from loginflow.commands.login import login_command  # noqa: E402
from loginflow.commands.token import token_app  # noqa: E402

app.command("init")(init_command)
app.command("login")(login_command)
app.add_typer(token_app, name="token", help="Inspect or remove the stored token.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C outside a login exits cleanly.

    ``loginflow login`` replaces it for the duration of the flow so that
    Ctrl-C cancels the login instead.
    """

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return its path."""
    from loginflow.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``loginflow`` console script.

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
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from loginflow.exceptions import LoginFlowError
        from loginflow.output import error

        if isinstance(exc, LoginFlowError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
