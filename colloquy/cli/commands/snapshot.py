"""Snapshot command: show what a player currently perceives."""

from pathlib import Path

import typer

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, resolve_db_path
from ...config import get_config
from ...storage import open_world_db
from ...world import get_agent_snapshot


@app.command("snapshot")
def snapshot_command(
    player_id: str | None = typer.Argument(
        None, help="Player id (defaults to the first player of the latest world)"
    ),
    db: Path | None = typer.Option(
        None, "--db", help="World database (defaults to config defaults.db_path)"
    ),
    radius: float | None = typer.Option(
        None, "--radius", min=0.0, help="Override the nearby radius"
    ),
):
    """Print a player's snapshot without recording a thinking marker."""
    out = Output(console=console, json_mode=get_json_mode())
    nearby_radius = radius if radius is not None else get_config().simulation.nearby_radius

    with open_world_db(resolve_db_path(db)) as world_db:
        if player_id is None:
            world = world_db.get_latest_world()
            players = world_db.list_players(world["world_id"]) if world else []
            if not players:
                out.error("No players exist yet", exit_code=ExitCode.NOT_FOUND)
                raise typer.Exit(out.finish())
            player_id = players[0].id
        try:
            snapshot = get_agent_snapshot(world_db, player_id, nearby_radius)
        except ValueError as e:
            out.error(str(e), exit_code=ExitCode.NOT_FOUND)
            raise typer.Exit(out.finish())

    if out.json_mode:
        out.set_data("snapshot", snapshot.model_dump(mode="json"))
        raise typer.Exit(out.finish())

    player = snapshot.player
    out.text(f"[bold]{player.name}[/bold] [dim]({player.id})[/dim] at ({player.x:g}, {player.y:g})")
    out.table(
        "Nearby players",
        ["Id", "Name", "New", "Thinking"],
        [
            [n.player.id, n.player.name, "yes" if n.new else "no", "yes" if n.thinking else "no"]
            for n in snapshot.nearby_players
        ],
    )
    for conversation in snapshot.nearby_conversations:
        out.text(f"\n[bold cyan]Conversation {conversation.conversation_id}[/bold cyan]")
        for m in conversation.messages:
            console.print(
                f"  {m.from_name} to {', '.join(m.to_names)}: {m.content}",
                markup=False,
                highlight=False,
            )
    raise typer.Exit(out.finish())
