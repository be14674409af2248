"""Conversation run models.

This module contains:
- ConversationPhase: the scheduler's two-state machine
- RunFailureKind / RunFailure: the closed failure taxonomy
- CycleOutcome / CycleReport: per-cycle progress events
- RunResult: what a scheduler run returns
- RunStatus / ConversationRun: persisted run records
"""

from enum import Enum

from pydantic import BaseModel, Field


class ConversationPhase(str, Enum):
    """Where a run is in the conversation lifecycle."""

    AWAITING_OPEN = "awaiting_open"
    IN_CONVERSATION = "in_conversation"


class RunFailureKind(str, Enum):
    """Every way a conversation run can fail."""

    UNEXPECTED_THINKING = "unexpected_thinking"
    CONVERSATIONS_BEFORE_START = "conversations_before_start"
    CONVERSATION_COUNT = "conversation_count"
    CONVERSATION_DRIFT = "conversation_drift"
    START_REJECTED = "start_rejected"
    OPENING_REJECTED = "opening_rejected"
    REPLY_REJECTED = "reply_rejected"
    COMPLETION_REJECTED = "completion_rejected"
    NO_CONVERSATION = "no_conversation"


class RunFailure(BaseModel):
    """The first invariant violation or rejected submission of a run."""

    kind: RunFailureKind
    detail: str
    player_id: str | None = None


class CycleOutcome(str, Enum):
    OPENED = "opened"
    REPLIED = "replied"
    WITHDREW = "withdrew"


class CycleReport(BaseModel):
    """Progress event emitted after each completed decision-cycle."""

    pass_index: int
    player_id: str
    player_name: str
    outcome: CycleOutcome
    content: str | None = None
    conversation_id: str | None = None


class RunResult(BaseModel):
    """Outcome of one scheduler run."""

    run_id: str | None = Field(default=None, description="Persisted run record, if any")
    conversation_id: str | None = None
    passes: int = 0
    cycles: int = 0
    remembered: list[str] = Field(
        default_factory=list, description="Player ids whose memory was recorded"
    )
    failure: RunFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversationRun(BaseModel):
    """Persisted record of a conversation run."""

    run_id: str
    world_id: str
    status: RunStatus
    conversation_id: str | None = None
    failure_kind: RunFailureKind | None = None
    failure_detail: str | None = None
    passes: int = 0
    started_at: str
    completed_at: str | None = None
