"""Long-term memory of past conversations.

After a conversation run, every participant gets one memory: a first-person
summary of the conversation plus an importance score. Memories are recalled
later to give players context about the people they meet again.
"""

import asyncio
import logging
from typing import Any

from ..core.llm import simple_call_async
from ..core.models import ChatMessage, Memory, Player
from ..storage import WorldDB
from .text_utils import render_message

logger = logging.getLogger(__name__)

EMPTY_CONVERSATION_DESCRIPTION = "I was in a conversation where nobody said anything."

# Per-call timeout for conversation summaries, in seconds
SUMMARY_TIMEOUT = 60.0


def _build_summary_prompt(player: Player, messages: list[ChatMessage]) -> str:
    parts = [f"You are {player.name}."]
    if player.identity:
        parts.extend(["", player.identity])
    parts.extend(
        [
            "",
            "## Conversation",
            "",
            "".join(render_message(m) for m in messages).rstrip(),
            "",
            "## Task",
            "",
            "Summarize this conversation from your own perspective, in first person, "
            "in one or two sentences. Mention who you talked with.",
            "Rate how important it is to remember on a scale of 0 (mundane) "
            "to 9 (life-changing).",
        ]
    )
    return "\n".join(parts)


def _parse_importance(value: Any) -> int:
    """Clamp a model-reported importance to 0-9; missing or non-numeric is 0."""
    try:
        importance = int(value)
    except (TypeError, ValueError):
        return 0
    return min(9, max(0, importance))


def _build_summary_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": "First-person summary of the conversation",
            },
            "importance": {
                "type": "integer",
                "minimum": 0,
                "maximum": 9,
                "description": "0 = mundane, 9 = life-changing",
            },
        },
        "required": ["summary", "importance"],
        "additionalProperties": False,
    }


class MemoryStore:
    """Records and recalls player memories backed by the world store.

    Args:
        db: World store holding players, transcripts and memories
        model: "provider/model" string for summaries (default: models.fast)
    """

    def __init__(self, db: WorldDB, model: str | None = None):
        self.db = db
        self.model = model

    async def remember_conversation(
        self, player_id: str, conversation_id: str, ts: float
    ) -> Memory:
        """Summarize ``conversation_id`` for ``player_id`` and store the memory."""
        player = await asyncio.to_thread(self.db.get_player, player_id)
        if player is None:
            raise ValueError(f"Unknown player: {player_id!r}")
        messages = await asyncio.to_thread(self.db.conversation_messages, conversation_id)

        if not messages:
            description, importance = EMPTY_CONVERSATION_DESCRIPTION, 0
        else:
            response, _ = await asyncio.wait_for(
                simple_call_async(
                    prompt=_build_summary_prompt(player, messages),
                    response_schema=_build_summary_schema(),
                    schema_name="conversation_memory",
                    model=self.model,
                ),
                timeout=SUMMARY_TIMEOUT,
            )
            description = (response.get("summary") or "").strip()
            if not description:
                others = sorted({m.from_name for m in messages} - {player.name})
                description = f"I talked with {', '.join(others) or 'someone'}."
            importance = _parse_importance(response.get("importance"))

        memory = await asyncio.to_thread(
            self.db.insert_memory,
            player.id,
            description,
            importance,
            conversation_id,
            ts,
        )
        logger.info(
            f"[MEMORY] {player.name} remembered {conversation_id} (importance={importance})"
        )
        return memory

    async def recall(
        self, player_id: str, about_names: list[str] | None = None, limit: int = 3
    ) -> list[Memory]:
        """Most recent memories, preferring those that mention any of ``about_names``."""
        if limit <= 0:
            return []
        memories = await asyncio.to_thread(self.db.list_memories, player_id)
        names = [n.lower() for n in (about_names or []) if n]
        if names:
            mentioning = [
                m for m in memories if any(n in m.description.lower() for n in names)
            ]
            rest = [m for m in memories if m not in mentioning]
            memories = mentioning + rest
        return memories[:limit]
