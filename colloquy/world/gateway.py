"""Async world gateway.

Binds a ``WorldDB`` to the three world operations a conversation run
needs: snapshot capture, action submission and transcript lookup. The
store is synchronous, so each call runs in a worker thread; calls are
awaited one at a time and never overlap.
"""

import asyncio

from ..core.models import Action, CapturedSnapshot, ChatMessage, JournalEntry
from ..storage import WorldDB
from .actions import handle_agent_action
from .snapshot import capture_snapshot


class WorldGateway:
    """Async adapter over a world store."""

    def __init__(self, db: WorldDB, nearby_radius: float = 5.0):
        self.db = db
        self.nearby_radius = nearby_radius

    async def capture_snapshot(self, player_id: str) -> CapturedSnapshot:
        return await asyncio.to_thread(
            capture_snapshot, self.db, player_id, self.nearby_radius
        )

    async def submit_action(self, player_id: str, action: Action) -> JournalEntry | None:
        return await asyncio.to_thread(handle_agent_action, self.db, player_id, action)

    async def conversation_messages(self, conversation_id: str) -> list[ChatMessage]:
        return await asyncio.to_thread(self.db.conversation_messages, conversation_id)


def list_messages(db: WorldDB, world_id: str) -> list[ChatMessage]:
    """Every message of a world, sorted by timestamp."""
    return sorted(db.world_messages(world_id), key=lambda m: m.ts)
