"""Account data commands -- ``mxcache account-data get|set|delete``."""

from __future__ import annotations

from typing import Optional

import typer

from mxcache.client import Client
from mxcache.commands import handle_errors, open_client, parse_json
from mxcache.output import format_response, success
from mxcache.remote import AccountDataCache

account_data_app = typer.Typer(no_args_is_help=True)

_ROOM_OPTION = typer.Option(None, "--room", "-r", help="Room ID for room account data.")


def _cache(client: Client, room_id: Optional[str]) -> AccountDataCache:
    if room_id is None:
        return client.account_data
    return client.ensure_room(room_id).account_data


@account_data_app.command("get")
def account_data_get(
    ctx: typer.Context,
    event_type: str = typer.Argument(help="Account data type, e.g. 'm.direct'."),
    room_id: Optional[str] = _ROOM_OPTION,
) -> None:
    """Print account data content (``{}`` if unset)."""
    with handle_errors(), open_client(ctx) as client:
        content = _cache(client, room_id).get(event_type)
    format_response(content)


@account_data_app.command("set")
def account_data_set(
    ctx: typer.Context,
    event_type: str = typer.Argument(help="Account data type."),
    content: str = typer.Argument(help="Content as JSON."),
    room_id: Optional[str] = _ROOM_OPTION,
) -> None:
    """Replace account data content."""
    with handle_errors():
        body = parse_json(content)
        with open_client(ctx) as client:
            _cache(client, room_id).set(event_type, body)
    success(f"Set {event_type}")


@account_data_app.command("delete")
def account_data_delete(
    ctx: typer.Context,
    event_type: str = typer.Argument(help="Account data type."),
    room_id: Optional[str] = _ROOM_OPTION,
) -> None:
    """Blank account data content."""
    with handle_errors(), open_client(ctx) as client:
        _cache(client, room_id).delete(event_type)
    success(f"Deleted {event_type}")
