"""All Pydantic models for Colloquy, organized by domain.

- world.py: players, snapshots, transcripts, memories
- actions.py: actions submitted to the world and the journal they produce
- run.py: scheduler state, failure taxonomy, run results and records
"""

from .world import (
    Player,
    NearbyPlayer,
    ChatMessage,
    VisibleConversation,
    AgentSnapshot,
    CapturedSnapshot,
    HistoryMessage,
    Memory,
)
from .actions import (
    StartConversationAction,
    TalkingAction,
    DoneAction,
    Action,
    ThinkingData,
    StartConversationData,
    TalkingData,
    DoneData,
    JournalData,
    JournalEntry,
)
from .run import (
    ConversationPhase,
    RunFailureKind,
    RunFailure,
    CycleOutcome,
    CycleReport,
    RunResult,
    RunStatus,
    ConversationRun,
)

__all__ = [
    # World
    "Player",
    "NearbyPlayer",
    "ChatMessage",
    "VisibleConversation",
    "AgentSnapshot",
    "CapturedSnapshot",
    "HistoryMessage",
    "Memory",
    # Actions / journal
    "StartConversationAction",
    "TalkingAction",
    "DoneAction",
    "Action",
    "ThinkingData",
    "StartConversationData",
    "TalkingData",
    "DoneData",
    "JournalData",
    "JournalEntry",
    # Runs
    "ConversationPhase",
    "RunFailureKind",
    "RunFailure",
    "CycleOutcome",
    "CycleReport",
    "RunResult",
    "RunStatus",
    "ConversationRun",
]
