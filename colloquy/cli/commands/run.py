"""Run command: drive one conversation on the latest world."""

import logging
import time
from pathlib import Path

import typer
from rich.logging import RichHandler

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, format_elapsed, resolve_db_path
from ...core.models import CycleOutcome, CycleReport


def setup_logging(verbose: bool = False, debug: bool = False):
    """Configure logging for conversation runs."""
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )

    for name in ["colloquy.simulation", "colloquy.world", "colloquy.core.llm"]:
        logging.getLogger(name).setLevel(level)


_OUTCOME_STYLE = {
    CycleOutcome.OPENED: "green",
    CycleOutcome.REPLIED: "cyan",
    CycleOutcome.WITHDREW: "yellow",
}


@app.command("run")
def run_command(
    db: Path | None = typer.Option(
        None, "--db", help="World database (defaults to config defaults.db_path)"
    ),
    reset: bool = typer.Option(
        True,
        "--reset/--no-reset",
        help="Clear the world's journal and conversations before running",
    ),
    strong: str = typer.Option(
        "",
        "--strong",
        help="Model for opening lines and replies (provider/model format)",
    ),
    fast: str = typer.Option(
        "",
        "--fast",
        help="Model for withdrawal decisions and memories (provider/model format)",
    ),
    radius: float | None = typer.Option(
        None, "--radius", min=0.0, help="Override the nearby radius"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed logs"),
    debug: bool = typer.Option(
        False, "--debug", help="Show debug-level logs (very verbose)"
    ),
):
    """
    Run one conversation between the players of the latest world.

    Players take turns in creation order. The first player opens a
    conversation with everyone nearby; the others reply until someone
    withdraws. Every player then records a memory of the conversation.

    Example:
        colloquy run
        colloquy run --no-reset --strong anthropic/claude-sonnet-4.5
    """
    from ...simulation import WorldNotFoundError, run_conversation

    setup_logging(verbose=verbose, debug=debug)
    json_mode = get_json_mode()
    out = Output(console=console, json_mode=json_mode)
    start_time = time.time()
    cycles: list[dict] = []

    def on_cycle(report: CycleReport) -> None:
        cycles.append(report.model_dump(mode="json"))
        if json_mode:
            return
        style = _OUTCOME_STYLE[report.outcome]
        console.print(
            f"[dim]pass {report.pass_index}[/dim] "
            f"[{style}]{report.player_name} {report.outcome.value}[/{style}]"
        )
        if report.content:
            console.print(f"    {report.content}", markup=False, highlight=False)

    try:
        result = run_conversation(
            resolve_db_path(db),
            reset=reset,
            nearby_radius=radius,
            strong=strong,
            fast=fast,
            on_cycle=on_cycle,
        )
    except WorldNotFoundError as e:
        out.error(
            str(e),
            suggestion="Create a world with 'colloquy world create NAME' first.",
            exit_code=ExitCode.NOT_FOUND,
        )
        raise typer.Exit(out.finish())
    except ValueError as e:
        out.error(f"Run aborted: {e}", exit_code=ExitCode.VALIDATION_ERROR)
        raise typer.Exit(out.finish())
    except KeyboardInterrupt:
        out.error("Run cancelled", exit_code=ExitCode.USER_CANCELLED)
        raise typer.Exit(out.finish())

    elapsed = time.time() - start_time
    out.set_data("cycles", cycles)
    if result.ok:
        out.success(
            f"Conversation {result.conversation_id} finished: "
            f"{result.passes} passes, {result.cycles} cycles "
            f"({format_elapsed(elapsed)})",
            run_id=result.run_id,
            conversation_id=result.conversation_id,
            passes=result.passes,
            cycle_count=result.cycles,
            remembered=result.remembered,
        )
    else:
        out.set_data("run_id", result.run_id)
        out.set_data("failure", result.failure.model_dump(mode="json"))
        out.error(
            f"Run failed ({result.failure.kind.value}): {result.failure.detail}",
            exit_code=ExitCode.RUN_ERROR,
        )
    raise typer.Exit(out.finish())
