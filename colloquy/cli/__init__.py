"""CLI for Colloquy."""

from .app import app

__all__ = ["app"]
