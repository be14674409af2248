"""Conversation runs: decisions, memory, the turn scheduler and entry points."""

from .conversation import ConversationDecider
from .memory import MemoryStore
from .runner import WorldNotFoundError, run_conversation, run_conversation_async
from .scheduler import SchedulerInvariantError, TurnScheduler

__all__ = [
    "ConversationDecider",
    "MemoryStore",
    "SchedulerInvariantError",
    "TurnScheduler",
    "WorldNotFoundError",
    "run_conversation",
    "run_conversation_async",
]
