"""LLM-backed conversation decisions.

This module provides ConversationDecider, the three decision functions a
conversation run calls on each player's turn:
- begin_conversation: opening line for newly met players
- continue_conversation: next reply given the transcript so far
- should_withdraw: whether the player wants to leave the conversation

Prompts include the player's identity and recalled memories about the
people they are talking to.
"""

import asyncio
import logging
from typing import Any

from ..core.llm import simple_call_async
from ..core.models import HistoryMessage, Memory, NearbyPlayer, Player
from .memory import MemoryStore
from .text_utils import compute_trigram_jaccard, strip_speaker

logger = logging.getLogger(__name__)

# Near-repeat threshold for the two latest messages
REPETITION_THRESHOLD = 0.7

# Per-call timeout for LLM decisions, in seconds
DECISION_TIMEOUT = 60.0


# =============================================================================
# Prompts and schemas
# =============================================================================


def _persona_lines(player: Player, memories: list[Memory]) -> list[str]:
    parts = [f"You are {player.name}."]
    if player.identity:
        parts.extend(["", player.identity])
    if memories:
        parts.extend(["", "## Things you remember", ""])
        parts.extend(f"- {m.description}" for m in memories)
    return parts


def _build_opening_prompt(
    player: Player, participant_names: list[str], memories: list[Memory]
) -> str:
    who = ", ".join(participant_names) or "someone nearby"
    parts = _persona_lines(player, memories)
    parts.extend(
        [
            "",
            "## Your turn",
            "",
            f"You just started a conversation with {who}. "
            f"Say something to open the conversation, as {player.name} would (1-2 sentences).",
        ]
    )
    return "\n".join(parts)


def _build_reply_prompt(
    player: Player,
    history: list[HistoryMessage],
    nearby_names: list[str],
    memories: list[Memory],
) -> str:
    parts = _persona_lines(player, memories)
    if nearby_names:
        parts.extend(["", f"You are talking with {', '.join(nearby_names)}."])
    parts.extend(["", "## Conversation so far", ""])
    parts.append("".join(m.content for m in history).rstrip())
    parts.extend(
        [
            "",
            "## Your turn",
            "",
            f"Respond naturally as {player.name} would (1-3 sentences). "
            "Don't repeat what has already been said.",
        ]
    )
    return "\n".join(parts)


def _build_withdraw_prompt(player: Player, history: list[HistoryMessage]) -> str:
    parts = [f"You are {player.name}."]
    if player.identity:
        parts.extend(["", player.identity])
    parts.extend(["", "## Conversation so far", ""])
    parts.append("".join(m.content for m in history).rstrip())
    parts.extend(
        [
            "",
            "## Decision",
            "",
            "Has this conversation run its course? Decide whether you want to "
            "politely leave it now.",
        ]
    )
    return "\n".join(parts)


def _build_utterance_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "response": {
                "type": "string",
                "description": "What you say in the conversation",
            },
        },
        "required": ["response"],
        "additionalProperties": False,
    }


def _build_withdraw_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "leave": {
                "type": "boolean",
                "description": "True to leave the conversation now",
            },
            "reason": {
                "type": "string",
                "description": "Short private reason for the decision",
            },
        },
        "required": ["leave", "reason"],
        "additionalProperties": False,
    }


# =============================================================================
# Decider
# =============================================================================


class ConversationDecider:
    """Decision functions for a conversation run.

    Args:
        memory: Memory store used to recall context about other players
        strong_model: "provider/model" for opening lines and replies
        fast_model: "provider/model" for withdrawal decisions
        max_messages: Transcript length at which a player always withdraws
        recall_limit: Memories included per prompt
    """

    def __init__(
        self,
        memory: MemoryStore | None = None,
        *,
        strong_model: str | None = None,
        fast_model: str | None = None,
        max_messages: int = 12,
        recall_limit: int = 3,
    ):
        self.memory = memory
        self.strong_model = strong_model
        self.fast_model = fast_model
        self.max_messages = max_messages
        self.recall_limit = recall_limit

    async def _recall(self, player: Player, names: list[str]) -> list[Memory]:
        if self.memory is None:
            return []
        return await self.memory.recall(player.id, names, self.recall_limit)

    async def _utterance(self, prompt: str, schema_name: str) -> str:
        response, _ = await asyncio.wait_for(
            simple_call_async(
                prompt=prompt,
                response_schema=_build_utterance_schema(),
                schema_name=schema_name,
                model=self.strong_model,
            ),
            timeout=DECISION_TIMEOUT,
        )
        return (response.get("response") or "").strip() or "..."

    async def begin_conversation(self, participant_names: list[str], player: Player) -> str:
        memories = await self._recall(player, participant_names)
        prompt = _build_opening_prompt(player, participant_names, memories)
        content = await self._utterance(prompt, "conversation_opening")
        logger.info(f"[CONV] {player.name} opens: {content}")
        return content

    async def continue_conversation(
        self,
        history: list[HistoryMessage],
        player: Player,
        nearby: list[NearbyPlayer],
    ) -> str:
        names = [n.player.name for n in nearby]
        memories = await self._recall(player, names)
        prompt = _build_reply_prompt(player, history, names, memories)
        content = await self._utterance(prompt, "conversation_reply")
        logger.info(f"[CONV] {player.name} replies: {content}")
        return content

    async def should_withdraw(self, history: list[HistoryMessage], player: Player) -> bool:
        if len(history) >= self.max_messages:
            logger.info(
                f"[CONV] {player.name} withdraws: {len(history)} messages reached the cap"
            )
            return True

        if len(history) >= 2:
            last = strip_speaker(history[-1].content)
            previous = strip_speaker(history[-2].content)
            similarity = compute_trigram_jaccard(last, previous)
            if similarity > REPETITION_THRESHOLD:
                logger.info(
                    f"[CONV] {player.name} withdraws: conversation is repeating "
                    f"(similarity={similarity:.2f})"
                )
                return True

        response, _ = await asyncio.wait_for(
            simple_call_async(
                prompt=_build_withdraw_prompt(player, history),
                response_schema=_build_withdraw_schema(),
                schema_name="conversation_withdraw",
                model=self.fast_model,
            ),
            timeout=DECISION_TIMEOUT,
        )
        leave = bool(response.get("leave", False))
        if leave:
            logger.info(f"[CONV] {player.name} withdraws: {response.get('reason', '')}")
        return leave
