"""Room commands -- ``mxcache state get|set`` and ``mxcache members``."""

from __future__ import annotations

from typing import Optional

import typer

from mxcache.commands import handle_errors, open_client, parse_json
from mxcache.output import format_response, print_table, success

state_app = typer.Typer(no_args_is_help=True)


@state_app.command("get")
def state_get(
    ctx: typer.Context,
    room_id: str = typer.Argument(help="Room ID, e.g. '!abc:example.org'."),
    event_type: str = typer.Argument(help="State event type, e.g. 'm.room.topic'."),
    state_key: Optional[str] = typer.Option(None, "--state-key", "-k", help="State key."),
) -> None:
    """Print the content of a room state event (``{}`` if unset).

    Example::

        mxcache state get '!abc:example.org' m.room.name
    """
    with handle_errors(), open_client(ctx) as client:
        content = client.ensure_room(room_id).state.get(event_type, state_key)
    format_response(content)


@state_app.command("set")
def state_set(
    ctx: typer.Context,
    room_id: str = typer.Argument(help="Room ID."),
    event_type: str = typer.Argument(help="State event type."),
    content: str = typer.Argument(help="Event content as JSON."),
    state_key: Optional[str] = typer.Option(None, "--state-key", "-k", help="State key."),
) -> None:
    """Send a room state event.

    Example::

        mxcache state set '!abc:example.org' m.room.topic '{"topic": "Hello"}'
    """
    with handle_errors():
        body = parse_json(content)
        with open_client(ctx) as client:
            client.ensure_room(room_id).state.set(event_type, body, state_key)
    success(f"Set {event_type} in {room_id}")


def members_command(
    ctx: typer.Context,
    room_id: str = typer.Argument(help="Room ID."),
) -> None:
    """List the joined members of a room."""
    with handle_errors(), open_client(ctx) as client:
        members = client.ensure_room(room_id).joined_members()
    rows = [
        [user_id, str(profile.get("display_name") or "")]
        for user_id, profile in sorted(members.items())
    ]
    print_table(["user_id", "display_name"], rows, title=f"Members of {room_id}")
