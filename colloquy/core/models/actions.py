"""Action and journal models for Colloquy.

Actions are what the scheduler submits to the action applier; journal
entries are the durable records the applier writes back. Both are tagged
on ``type`` so they round-trip through the journal table's JSON column.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from .world import AgentSnapshot


# =============================================================================
# Actions
# =============================================================================


class StartConversationAction(BaseModel):
    """Open a new conversation with the given audience."""

    type: Literal["start_conversation"] = "start_conversation"
    audience: list[str] = Field(description="Player ids invited to the conversation")


class TalkingAction(BaseModel):
    """Say something in an existing conversation."""

    type: Literal["talking"] = "talking"
    audience: list[str] = Field(description="Player ids the message is addressed to")
    content: str
    conversation_id: str


class DoneAction(BaseModel):
    """Close the decision-cycle identified by ``think_id``."""

    type: Literal["done"] = "done"
    think_id: str


Action = Annotated[
    StartConversationAction | TalkingAction | DoneAction,
    Field(discriminator="type"),
]


# =============================================================================
# Journal
# =============================================================================


class ThinkingData(BaseModel):
    """Marker recorded before a snapshot is computed."""

    type: Literal["thinking"] = "thinking"
    snapshot: AgentSnapshot | None = None


class StartConversationData(BaseModel):
    type: Literal["start_conversation"] = "start_conversation"
    audience: list[str]
    conversation_id: str


class TalkingData(BaseModel):
    type: Literal["talking"] = "talking"
    audience: list[str]
    content: str
    conversation_id: str


class DoneData(BaseModel):
    type: Literal["done"] = "done"
    think_id: str


JournalData = Annotated[
    ThinkingData | StartConversationData | TalkingData | DoneData,
    Field(discriminator="type"),
]


class JournalEntry(BaseModel):
    """A durable record of something a player did."""

    id: str
    player_id: str
    world_id: str
    ts: float
    data: JournalData
