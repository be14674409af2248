"""Conversation run entry points.

``run_conversation`` is the main entry point: it opens the world store,
optionally resets world activity, runs the turn scheduler over every
player of the latest world and records the outcome as a run record.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from ..config import get_config
from ..core.models import CycleReport, RunResult, RunStatus
from ..core.providers import close_simulation_provider
from ..storage import open_world_db
from ..world.gateway import WorldGateway
from .conversation import ConversationDecider
from .memory import MemoryStore
from .scheduler import TurnScheduler

logger = logging.getLogger(__name__)


class WorldNotFoundError(ValueError):
    """The world store holds no world to run a conversation in."""


async def run_conversation_async(
    db_path: str | Path | None = None,
    *,
    reset: bool = True,
    nearby_radius: float | None = None,
    strong: str = "",
    fast: str = "",
    on_cycle: Callable[[CycleReport], None] | None = None,
) -> RunResult:
    """Run one conversation on the latest world.

    Args:
        db_path: World database path (default: config defaults.db_path)
        reset: Clear the world's journal and conversations first
        nearby_radius: Override simulation.nearby_radius
        strong: Model for opening lines and replies (provider/model format)
        fast: Model for withdrawal decisions and memories (provider/model format)
        on_cycle: Optional callback invoked after every completed cycle

    Returns:
        RunResult with the run id, conversation id and any failure

    Raises:
        WorldNotFoundError: If the store holds no world yet
    """
    config = get_config()
    path = Path(db_path) if db_path is not None else config.db_path_resolved
    radius = nearby_radius if nearby_radius is not None else config.simulation.nearby_radius
    strong_model = strong or config.resolve_sim_strong()
    fast_model = fast or config.resolve_sim_fast()

    with open_world_db(path) as db:
        world = db.get_latest_world()
        if world is None:
            raise WorldNotFoundError("No worlds exist yet")
        world_id = world["world_id"]

        if reset:
            logger.info(f"[RUN] Resetting activity for world {world_id}")
            db.reset_world_activity(world_id)

        player_ids = [p.id for p in db.list_players(world_id)]
        run_id = db.create_run(world_id)
        logger.info(
            f"[RUN] Run {run_id}: {len(player_ids)} players, "
            f"strong={strong_model}, fast={fast_model}, radius={radius}"
        )

        memory = MemoryStore(db, model=fast_model)
        decider = ConversationDecider(
            memory,
            strong_model=strong_model,
            fast_model=fast_model,
            max_messages=config.simulation.max_conversation_messages,
            recall_limit=config.simulation.memory_recall_limit,
        )
        scheduler = TurnScheduler(
            WorldGateway(db, nearby_radius=radius),
            decider,
            memory,
            on_cycle=on_cycle,
        )

        try:
            result = await scheduler.run(player_ids)
        except BaseException as e:
            db.update_run(
                run_id, RunStatus.FAILED, failure_detail=f"run raised {type(e).__name__}"
            )
            raise
        finally:
            await close_simulation_provider()

        result.run_id = run_id
        if result.ok:
            db.update_run(
                run_id,
                RunStatus.COMPLETED,
                conversation_id=result.conversation_id,
                passes=result.passes,
            )
        else:
            db.update_run(
                run_id,
                RunStatus.FAILED,
                conversation_id=result.conversation_id,
                failure_kind=result.failure.kind,
                failure_detail=result.failure.detail,
                passes=result.passes,
            )
        return result


def run_conversation(
    db_path: str | Path | None = None,
    *,
    reset: bool = True,
    nearby_radius: float | None = None,
    strong: str = "",
    fast: str = "",
    on_cycle: Callable[[CycleReport], None] | None = None,
) -> RunResult:
    """Synchronous wrapper around ``run_conversation_async``."""
    return asyncio.run(
        run_conversation_async(
            db_path,
            reset=reset,
            nearby_radius=nearby_radius,
            strong=strong,
            fast=fast,
            on_cycle=on_cycle,
        )
    )
