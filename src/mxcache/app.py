"""Typer application and CLI entry point for mxcache.

The CLI is a thin inspection tool over the library: it resolves settings
(see :func:`~mxcache.config.resolve_settings`), builds a
:class:`~mxcache.client.Client`, and reads or writes room state, account
data and membership through the caches.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional

import typer

from mxcache import __version__
from mxcache.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="mxcache",
    help="Inspect Matrix rooms and account data through the mxcache caches.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"mxcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    homeserver: Optional[str] = typer.Option(
        None, "--homeserver", "-H", help="Homeserver base URL."
    ),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User MXID."),
    access_token: Optional[str] = typer.Option(
        None, "--token", help="Access token (prefer MXCACHE_ACCESS_TOKEN)."
    ),
    cache_level: Optional[str] = typer.Option(
        None, "--cache-level", help="Cache level: none, some, all."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~mxcache.output.OutputManager` and stores
    the settings overrides in ``ctx.obj`` for sub-commands.
    """
    from mxcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        logging.basicConfig(stream=sys.stderr, format="%(name)s: %(message)s")
        logging.getLogger("mxcache").setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "homeserver": homeserver,
        "user_id": user_id,
        "access_token": access_token,
        "cache_level": cache_level,
    }


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _register_commands() -> None:
    from mxcache.commands.account_data import account_data_app
    from mxcache.commands.config import config_app
    from mxcache.commands.rooms import members_command, state_app

    app.add_typer(state_app, name="state", help="Room state events.")
    app.add_typer(account_data_app, name="account-data", help="Global and room account data.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.command("members")(members_command)


_register_commands()


def main() -> None:
    """CLI entry point invoked by the ``mxcache`` console script.

    :class:`~mxcache.exceptions.MxcacheError` escaping a command exits with
    its ``exit_code``; anything else exits with a generic failure.

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
        from mxcache.exceptions import MxcacheError
        from mxcache.output import error

        if isinstance(exc, MxcacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
