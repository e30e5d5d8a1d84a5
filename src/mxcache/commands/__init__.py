"""Sub-command groups for the ``mxcache`` CLI, plus shared helpers.

Every command that talks to a homeserver opens its
:class:`~mxcache.client.Client` through :func:`open_client` and wraps its
work in :func:`handle_errors`, which prints an
:class:`~mxcache.exceptions.MxcacheError` and exits with its code.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator

import typer

from mxcache.client import Client
from mxcache.config import resolve_settings
from mxcache.exceptions import InvalidUsageError, MxcacheError
from mxcache.output import error


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn an :class:`MxcacheError` into an error message and exit code."""
    try:
        yield
    except MxcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@contextmanager
def open_client(ctx: typer.Context) -> Iterator[Client]:
    """Resolve settings from ``ctx.obj`` overrides and yield a connected client.

    A ``transport`` entry in ``ctx.obj`` is passed to httpx (used by tests).

    Raises:
        InvalidUsageError: If no homeserver is configured anywhere.
    """
    obj = ctx.obj or {}
    settings = resolve_settings(**obj.get("overrides", {}))
    if not settings.homeserver:
        raise InvalidUsageError(
            "No homeserver configured; pass --homeserver or set MXCACHE_HOMESERVER"
        )
    client = Client.from_settings(settings, transport=obj.get("transport"))
    try:
        yield client
    finally:
        client.close()


def parse_json(text: str) -> Any:
    """Parse a JSON command-line argument.

    Raises:
        InvalidUsageError: If *text* is not valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"Invalid JSON content: {exc}") from exc
