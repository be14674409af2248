"""Tests for conversation memories."""

import asyncio
from unittest.mock import patch

import pytest

from colloquy.core.models import StartConversationAction, TalkingAction
from colloquy.core.providers.base import TokenUsage
from colloquy.simulation.memory import EMPTY_CONVERSATION_DESCRIPTION, MemoryStore
from colloquy.world import handle_agent_action


def _summary_llm(summary, importance):
    calls = []

    async def fake(prompt, response_schema, schema_name="response", model=None, max_tokens=None):
        calls.append({"prompt": prompt, "schema_name": schema_name, "model": model})
        return {"summary": summary, "importance": importance}, TokenUsage()

    return fake, calls


def _conversation(db, a, b, lines=()):
    entry = handle_agent_action(db, a.id, StartConversationAction(audience=[b.id]))
    cid = entry.data.conversation_id
    for speaker, listener, content in lines:
        handle_agent_action(
            db,
            speaker.id,
            TalkingAction(audience=[listener.id], content=content, conversation_id=cid),
        )
    return cid


class TestRememberConversation:
    def test_empty_conversation_skips_llm(self, trio, world_db):
        _, a, b, _ = trio
        cid = _conversation(world_db, a, b)
        fake, calls = _summary_llm("unused", 5)

        with patch("colloquy.simulation.memory.simple_call_async", new=fake):
            memory = asyncio.run(MemoryStore(world_db).remember_conversation(a.id, cid, 42.0))

        assert calls == []
        assert memory.description == EMPTY_CONVERSATION_DESCRIPTION
        assert memory.importance == 0
        assert memory.ts == 42.0

    def test_summary_is_stored(self, trio, world_db):
        _, a, b, _ = trio
        cid = _conversation(world_db, a, b, [(a, b, "Want some bread?"), (b, a, "Gladly!")])
        fake, calls = _summary_llm("I gave Bob some bread.", 3)

        with patch("colloquy.simulation.memory.simple_call_async", new=fake):
            asyncio.run(MemoryStore(world_db, model="openai/fast").remember_conversation(a.id, cid, 1.0))

        assert calls[0]["schema_name"] == "conversation_memory"
        assert calls[0]["model"] == "openai/fast"
        assert "Alice to Bob: Want some bread?" in calls[0]["prompt"]
        (stored,) = world_db.list_memories(a.id)
        assert stored.description == "I gave Bob some bread."
        assert stored.conversation_id == cid

    def test_importance_clamped_and_blank_summary_filled(self, trio, world_db):
        _, a, b, _ = trio
        cid = _conversation(world_db, a, b, [(b, a, "Hello!")])
        fake, _ = _summary_llm("  ", 42)

        with patch("colloquy.simulation.memory.simple_call_async", new=fake):
            memory = asyncio.run(MemoryStore(world_db).remember_conversation(a.id, cid, 1.0))

        assert memory.importance == 9
        assert memory.description == "I talked with Bob."


    @pytest.mark.parametrize("importance", [None, "very", [3]])
    def test_unusable_importance_defaults_to_zero(self, trio, world_db, importance):
        _, a, b, _ = trio
        cid = _conversation(world_db, a, b, [(b, a, "Nice hat!")])
        fake, _ = _summary_llm("Bob liked my hat.", importance)

        with patch("colloquy.simulation.memory.simple_call_async", new=fake):
            memory = asyncio.run(MemoryStore(world_db).remember_conversation(a.id, cid, 1.0))

        assert memory.importance == 0
        assert memory.description == "Bob liked my hat."

    def test_summary_call_times_out(self, trio, world_db, monkeypatch):
        _, a, b, _ = trio
        cid = _conversation(world_db, a, b, [(a, b, "Hello?")])

        async def hung(*args, **kwargs):
            await asyncio.sleep(5)

        monkeypatch.setattr("colloquy.simulation.memory.SUMMARY_TIMEOUT", 0.01)
        with patch("colloquy.simulation.memory.simple_call_async", new=hung):
            with pytest.raises(asyncio.TimeoutError):
                asyncio.run(MemoryStore(world_db).remember_conversation(a.id, cid, 1.0))

        assert world_db.list_memories(a.id) == []


class TestRecall:
    def test_prefers_memories_about_names(self, trio, world_db):
        _, a, _, _ = trio
        world_db.insert_memory(a.id, "I bought flour.", 1, ts=1.0)
        world_db.insert_memory(a.id, "Bob told me a sea story.", 5, ts=2.0)
        world_db.insert_memory(a.id, "It rained all day.", 1, ts=3.0)
        store = MemoryStore(world_db)

        recalled = asyncio.run(store.recall(a.id, ["bob"], limit=2))
        assert [m.description for m in recalled] == ["Bob told me a sea story.", "It rained all day."]

        recalled = asyncio.run(store.recall(a.id, limit=2))
        assert [m.description for m in recalled] == ["It rained all day.", "Bob told me a sea story."]

    def test_zero_limit(self, trio, world_db):
        _, a, _, _ = trio
        world_db.insert_memory(a.id, "Something.", 1)
        assert asyncio.run(MemoryStore(world_db).recall(a.id, limit=0)) == []
