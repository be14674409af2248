"""Storage layer for the world database."""

from .world_db import WorldDB, open_world_db
from .schemas import PlayerDBRecord, MemoryPayload

__all__ = [
    "WorldDB",
    "open_world_db",
    "PlayerDBRecord",
    "MemoryPayload",
]
