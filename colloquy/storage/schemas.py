"""Pydantic schemas for world DB payloads."""

from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict


class PlayerDBRecord(BaseModel):
    """Validated representation of a player row in the world DB."""

    model_config = ConfigDict(str_strip_whitespace=True)

    player_id: str
    world_id: str
    name: str = Field(min_length=1)
    identity: str = ""
    x: float = 0.0
    y: float = 0.0


class MemoryPayload(BaseModel):
    """Validated memory payload persisted in memories."""

    description: str = Field(min_length=1)
    importance: int = Field(ge=0, le=9)
    conversation_id: str | None = None
