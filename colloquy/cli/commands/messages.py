"""Messages command: list every message of the latest world."""

from datetime import datetime
from pathlib import Path

import typer

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, resolve_db_path
from ...storage import open_world_db
from ...world import list_messages


@app.command("messages")
def messages_command(
    db: Path | None = typer.Option(
        None, "--db", help="World database (defaults to config defaults.db_path)"
    ),
):
    """List all messages of the latest world, oldest first."""
    out = Output(console=console, json_mode=get_json_mode())

    with open_world_db(resolve_db_path(db)) as world_db:
        world = world_db.get_latest_world()
        if world is None:
            out.error("No worlds exist yet", exit_code=ExitCode.NOT_FOUND)
            raise typer.Exit(out.finish())
        messages = list_messages(world_db, world["world_id"])

    if not messages:
        out.warning("No messages yet", suggestion="Run 'colloquy run' first.")

    out.table(
        f"Messages ({world['name']})",
        ["Time", "From", "To", "Content"],
        [
            [
                datetime.fromtimestamp(m.ts).strftime("%H:%M:%S"),
                m.from_name,
                ", ".join(m.to_names),
                m.content,
            ]
            for m in messages
        ],
        data_key="messages",
    )
    raise typer.Exit(out.finish())
