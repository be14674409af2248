"""CLI commands for Colloquy."""

from . import (
    run,
    messages,
    snapshot,
    world,
    config_cmd,
)

__all__ = [
    "run",
    "messages",
    "snapshot",
    "world",
    "config_cmd",
]
