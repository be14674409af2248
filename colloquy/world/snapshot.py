"""Agent perception snapshots.

A snapshot is one player's view of its surroundings: the other players
within the nearby radius (flagged ``new`` and ``thinking``) and the
conversations the player is a member of, each with its transcript.
"""

import logging
import math

from ..core.models import (
    AgentSnapshot,
    CapturedSnapshot,
    NearbyPlayer,
    Player,
    ThinkingData,
    VisibleConversation,
)
from ..storage import WorldDB

logger = logging.getLogger(__name__)


def _distance(a: Player, b: Player) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def get_agent_snapshot(db: WorldDB, player_id: str, nearby_radius: float) -> AgentSnapshot:
    """Compute a read-only snapshot for ``player_id``.

    Raises:
        ValueError: If the player does not exist.
    """
    player = db.get_player(player_id)
    if player is None:
        raise ValueError(f"Unknown player: {player_id!r}")

    nearby: list[NearbyPlayer] = []
    for other in db.list_players(player.world_id):
        if other.id == player.id or _distance(player, other) > nearby_radius:
            continue
        nearby.append(
            NearbyPlayer(
                player=other,
                new=not db.have_talked(player.id, other.id),
                thinking=db.get_open_thinking(other.id) is not None,
            )
        )

    conversations = [
        VisibleConversation(
            conversation_id=cid,
            messages=db.conversation_messages(cid),
        )
        for cid in db.conversations_for_member(player.id)
    ]

    return AgentSnapshot(
        player=player,
        nearby_players=nearby,
        nearby_conversations=conversations,
    )


def capture_snapshot(db: WorldDB, player_id: str, nearby_radius: float) -> CapturedSnapshot:
    """Record a ``thinking`` marker, then compute and attach the snapshot.

    The marker is committed before the snapshot is computed so an
    interrupted cycle leaves an open ``thinking`` entry behind.
    """
    player = db.get_player(player_id)
    if player is None:
        raise ValueError(f"Unknown player: {player_id!r}")

    entry = db.insert_journal_entry(player.id, player.world_id, ThinkingData())
    snapshot = get_agent_snapshot(db, player.id, nearby_radius)
    db.update_journal_data(entry.id, ThinkingData(snapshot=snapshot))

    logger.debug(
        f"[SNAPSHOT] {player.name}: {len(snapshot.nearby_players)} nearby, "
        f"{len(snapshot.nearby_conversations)} conversations (think_id={entry.id})"
    )
    return CapturedSnapshot(snapshot=snapshot, think_id=entry.id)
