"""World administration commands."""

from pathlib import Path

import typer

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, resolve_db_path
from ...storage import open_world_db

world_app = typer.Typer(help="Create worlds and manage their players")
app.add_typer(world_app, name="world")


_DB_OPTION = typer.Option(
    None, "--db", help="World database (defaults to config defaults.db_path)"
)


@world_app.command("create")
def world_create(
    name: str = typer.Argument(..., help="World name"),
    db: Path | None = _DB_OPTION,
):
    """Create a new world. It becomes the latest world."""
    out = Output(console=console, json_mode=get_json_mode())
    with open_world_db(resolve_db_path(db)) as world_db:
        world_id = world_db.create_world(name)
    out.success(f"Created world {name} ({world_id})", world_id=world_id, name=name)
    raise typer.Exit(out.finish())


@world_app.command("add-player")
def world_add_player(
    name: str = typer.Argument(..., help="Player name"),
    identity: str = typer.Option("", "--identity", help="Free-text persona"),
    x: float = typer.Option(0.0, "--x", help="X position"),
    y: float = typer.Option(0.0, "--y", help="Y position"),
    db: Path | None = _DB_OPTION,
):
    """Add a player to the latest world."""
    out = Output(console=console, json_mode=get_json_mode())
    with open_world_db(resolve_db_path(db)) as world_db:
        world = world_db.get_latest_world()
        if world is None:
            out.error(
                "No worlds exist yet",
                suggestion="Create one with 'colloquy world create NAME'.",
                exit_code=ExitCode.NOT_FOUND,
            )
            raise typer.Exit(out.finish())
        if not name.strip():
            out.error("Player name cannot be empty")
            raise typer.Exit(out.finish())
        player = world_db.add_player(world["world_id"], name, identity=identity, x=x, y=y)
    out.success(
        f"Added {player.name} ({player.id}) at ({player.x:g}, {player.y:g})",
        player=player.model_dump(mode="json"),
    )
    raise typer.Exit(out.finish())


@world_app.command("players")
def world_players(db: Path | None = _DB_OPTION):
    """List the players of the latest world in turn order."""
    out = Output(console=console, json_mode=get_json_mode())
    with open_world_db(resolve_db_path(db)) as world_db:
        world = world_db.get_latest_world()
        if world is None:
            out.error("No worlds exist yet", exit_code=ExitCode.NOT_FOUND)
            raise typer.Exit(out.finish())
        players = world_db.list_players(world["world_id"])
    out.table(
        f"Players ({world['name']})",
        ["Id", "Name", "X", "Y", "Identity"],
        [[p.id, p.name, f"{p.x:g}", f"{p.y:g}", p.identity] for p in players],
        data_key="players",
    )
    raise typer.Exit(out.finish())


@world_app.command("reset")
def world_reset(db: Path | None = _DB_OPTION):
    """Clear the latest world's journal and conversations. Players and memories stay."""
    out = Output(console=console, json_mode=get_json_mode())
    with open_world_db(resolve_db_path(db)) as world_db:
        world = world_db.get_latest_world()
        if world is None:
            out.error("No worlds exist yet", exit_code=ExitCode.NOT_FOUND)
            raise typer.Exit(out.finish())
        world_db.reset_world_activity(world["world_id"])
    out.success(f"Reset world {world['name']}", world_id=world["world_id"])
    raise typer.Exit(out.finish())
