"""World models for Colloquy.

This module contains:
- Player: a simulated participant with a static position
- NearbyPlayer: another player as seen by an observer
- ChatMessage / VisibleConversation: conversation transcripts
- AgentSnapshot / CapturedSnapshot: an agent's point-in-time perception
- HistoryMessage: a transcript line in chat-completion form
- Memory: a long-term memory about a past conversation
"""

from typing import Literal

from pydantic import BaseModel, Field


class Player(BaseModel):
    """A simulated participant capable of holding conversations."""

    id: str = Field(description="Stable player identifier")
    world_id: str = Field(description="World the player lives in")
    name: str = Field(description="Display name used in transcripts")
    identity: str = Field(
        default="", description="Free-text persona used to prompt the player"
    )
    x: float = Field(default=0.0, description="Static x position")
    y: float = Field(default=0.0, description="Static y position")


class NearbyPlayer(BaseModel):
    """Another player within the observer's nearby radius."""

    player: Player
    new: bool = Field(
        description="True if the observer and this player have never exchanged a message"
    )
    thinking: bool = Field(
        description="True if this player has an open decision-cycle"
    )


class ChatMessage(BaseModel):
    """A single utterance in a conversation."""

    from_name: str
    to_names: list[str] = Field(default_factory=list)
    content: str
    ts: float


class VisibleConversation(BaseModel):
    """A conversation visible to the observer, with its ordered transcript."""

    conversation_id: str
    messages: list[ChatMessage] = Field(default_factory=list)


class AgentSnapshot(BaseModel):
    """Point-in-time view of one agent's surroundings."""

    player: Player
    nearby_players: list[NearbyPlayer] = Field(default_factory=list)
    nearby_conversations: list[VisibleConversation] = Field(default_factory=list)


class CapturedSnapshot(BaseModel):
    """A snapshot together with the think id of the cycle that captured it."""

    snapshot: AgentSnapshot
    think_id: str


class HistoryMessage(BaseModel):
    """A transcript line as handed to the decision functions."""

    role: Literal["user", "assistant", "system"] = "user"
    content: str


class Memory(BaseModel):
    """A player's memory of a past conversation."""

    id: str
    player_id: str
    description: str
    importance: int = Field(ge=0, le=9, description="0=mundane, 9=life-changing")
    conversation_id: str | None = None
    ts: float
