"""Colloquy: turn-based conversation orchestration for simulated agents.

Drives a multi-agent conversation to completion without free-roaming
movement. Each decision-cycle captures one agent's snapshot, asks the
conversation collaborators what to say (or whether to leave), applies the
resulting action against the shared world store, and checks conversation
membership and busy-state invariants along the way.

Usage:
    from colloquy.simulation import run_conversation

    result = run_conversation("./storage/colloquy.db")
    if not result.ok:
        print(result.failure.kind, result.failure.detail)
"""

__version__ = "0.1.0"
