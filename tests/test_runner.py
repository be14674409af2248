"""End-to-end conversation runs against a real world store.

The LLM is replaced by a scripted fake keyed on schema name, so the whole
path from the runner through the scheduler, gateway and action applier
into SQLite is exercised without network access.
"""

import asyncio
from unittest.mock import patch

import pytest

from colloquy.core.models import CycleOutcome, RunFailureKind, RunStatus
from colloquy.core.providers.base import TokenUsage
from colloquy.simulation import WorldNotFoundError, run_conversation
from colloquy.storage import open_world_db


REPLIES = [
    "Ahoy! I spent forty years on cargo ships before settling here.",
    "I play the violin down by the fountain most evenings.",
    "Your bread smells wonderful from across the square.",
    "Maybe I could play a tune outside your bakery sometime.",
]


class ScriptedLLM:
    """Answers structured calls by schema name."""

    def __init__(self, leave_on_call: int = 3, importance=4):
        self.leave_on_call = leave_on_call
        self.importance = importance
        self.calls: list[tuple[str, str | None]] = []
        self._replies = iter(REPLIES)
        self._withdraw_calls = 0

    async def __call__(
        self, prompt, response_schema, schema_name="response", model=None, max_tokens=None
    ):
        self.calls.append((schema_name, model))
        if schema_name == "conversation_opening":
            return {"response": "Good morning! Fresh rolls are just out of the oven."}, TokenUsage()
        if schema_name == "conversation_reply":
            return {"response": next(self._replies)}, TokenUsage()
        if schema_name == "conversation_withdraw":
            self._withdraw_calls += 1
            leave = self._withdraw_calls >= self.leave_on_call
            return {"leave": leave, "reason": "time to go" if leave else "still chatting"}, TokenUsage()
        if schema_name == "conversation_memory":
            return {
                "summary": "I chatted with my neighbours in the square.",
                "importance": self.importance,
            }, TokenUsage()
        raise AssertionError(f"unexpected schema {schema_name}")

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


def _run(db_path, llm, **kwargs):
    with patch("colloquy.simulation.conversation.simple_call_async", new=llm), patch(
        "colloquy.simulation.memory.simple_call_async", new=llm
    ):
        return run_conversation(db_path, **kwargs)


class TestConversationRun:
    def test_three_players_talk_then_remember(self, trio, world_db, db_path):
        world_id, a, b, c = trio
        llm = ScriptedLLM(leave_on_call=3)
        reports = []

        result = _run(db_path, llm, on_cycle=reports.append)

        assert result.ok
        assert result.passes == 2
        assert result.cycles == 4
        assert result.remembered == [a.id, b.id, c.id]

        assert [(r.player_name, r.outcome) for r in reports] == [
            ("Alice", CycleOutcome.OPENED),
            ("Bob", CycleOutcome.REPLIED),
            ("Cleo", CycleOutcome.REPLIED),
            ("Alice", CycleOutcome.WITHDREW),
        ]

        with open_world_db(db_path) as db:
            messages = db.conversation_messages(result.conversation_id)
            assert [m.from_name for m in messages] == ["Alice", "Bob", "Cleo"]
            assert messages[0].to_names == ["Bob", "Cleo"]
            assert messages[1].to_names == ["Alice", "Cleo"]

            for player in (a, b, c):
                assert db.get_open_thinking(player.id) is None
                memories = db.list_memories(player.id)
                assert len(memories) == 1
                assert memories[0].conversation_id == result.conversation_id
                assert memories[0].importance == 4

            run = db.get_run(result.run_id)
            assert run.status == RunStatus.COMPLETED
            assert run.conversation_id == result.conversation_id
            assert run.passes == 2

    def test_models_routed_by_role(self, trio, db_path):
        llm = ScriptedLLM(leave_on_call=1)
        _run(db_path, llm, strong="openai/strong-model", fast="openai/fast-model")

        models = dict(llm.calls)
        assert models["conversation_opening"] == "openai/strong-model"
        assert models["conversation_withdraw"] == "openai/fast-model"
        assert models["conversation_memory"] == "openai/fast-model"

    def test_reset_allows_repeated_runs(self, trio, db_path):
        world_id, a, _, _ = trio
        first = _run(db_path, ScriptedLLM(leave_on_call=1))
        second = _run(db_path, ScriptedLLM(leave_on_call=1))

        assert first.ok and second.ok
        assert first.conversation_id != second.conversation_id
        with open_world_db(db_path) as db:
            assert len(db.list_memories(a.id)) == 2
            assert [r.status for r in db.list_runs(world_id)] == [
                RunStatus.COMPLETED,
                RunStatus.COMPLETED,
            ]

    def test_without_reset_old_conversation_fails_the_run(self, trio, db_path):
        world_id, _, _, _ = trio
        _run(db_path, ScriptedLLM(leave_on_call=1))

        result = _run(db_path, ScriptedLLM(leave_on_call=1), reset=False)

        assert not result.ok
        assert result.failure.kind == RunFailureKind.CONVERSATIONS_BEFORE_START
        assert result.remembered == []
        with open_world_db(db_path) as db:
            run = db.get_run(result.run_id)
            assert run.status == RunStatus.FAILED
            assert run.failure_kind == RunFailureKind.CONVERSATIONS_BEFORE_START

    def test_isolated_player_cannot_start(self, world_db, db_path):
        world_id = world_db.create_world("island")
        world_db.add_player(world_id, "Alice", x=0, y=0)
        world_db.add_player(world_id, "Bob", x=100, y=100)

        result = _run(db_path, ScriptedLLM())

        assert result.failure.kind == RunFailureKind.START_REJECTED

    def test_no_world(self, db_path):
        with pytest.raises(WorldNotFoundError, match="No worlds exist yet"):
            _run(db_path, ScriptedLLM())

    def test_llm_error_marks_run_failed(self, trio, db_path):
        world_id, _, _, _ = trio

        async def broken(*args, **kwargs):
            raise RuntimeError("provider down")

        with pytest.raises(RuntimeError, match="provider down"):
            _run(db_path, broken)

        with open_world_db(db_path) as db:
            (run,) = db.list_runs(world_id)
            assert run.status == RunStatus.FAILED

    @pytest.mark.parametrize("interrupt", [KeyboardInterrupt, asyncio.CancelledError])
    def test_interrupted_run_marked_failed(self, trio, db_path, interrupt):
        world_id, _, _, _ = trio

        async def interrupted(*args, **kwargs):
            raise interrupt()

        with pytest.raises(interrupt):
            _run(db_path, interrupted)

        with open_world_db(db_path) as db:
            (run,) = db.list_runs(world_id)
            assert run.status == RunStatus.FAILED
            assert run.failure_detail == f"run raised {interrupt.__name__}"

    def test_missing_importance_still_remembers_everyone(self, trio, db_path):
        _, a, b, c = trio

        result = _run(db_path, ScriptedLLM(leave_on_call=1, importance=None))

        assert result.ok
        with open_world_db(db_path) as db:
            for player in (a, b, c):
                (memory,) = db.list_memories(player.id)
                assert memory.importance == 0
