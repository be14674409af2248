"""Tests for the SQLite world store."""

import pytest

from colloquy.core.models import (
    DoneData,
    RunFailureKind,
    RunStatus,
    StartConversationData,
    TalkingData,
    ThinkingData,
)
from colloquy.storage import open_world_db


class TestWorldsAndPlayers:
    def test_latest_world_is_most_recent(self, world_db):
        assert world_db.get_latest_world() is None
        world_db.create_world("first")
        second = world_db.create_world("second")
        assert world_db.get_latest_world()["world_id"] == second

    def test_players_listed_in_creation_order(self, trio, world_db):
        world_id, a, b, c = trio
        assert [p.name for p in world_db.list_players(world_id)] == ["Alice", "Bob", "Cleo"]
        assert world_db.get_player(b.id) == b
        assert world_db.get_player("missing") is None

    def test_blank_player_name_rejected(self, world_db):
        world_id = world_db.create_world("town")
        with pytest.raises(ValueError):
            world_db.add_player(world_id, "   ")

    def test_data_survives_reopen(self, db_path):
        with open_world_db(db_path) as db:
            world_id = db.create_world("town")
            db.add_player(world_id, "Alice")
        with open_world_db(db_path) as db:
            assert [p.name for p in db.list_players(world_id)] == ["Alice"]


class TestJournal:
    def test_open_thinking_until_done(self, trio, world_db):
        world_id, a, _, _ = trio
        entry = world_db.insert_journal_entry(a.id, world_id, ThinkingData())
        assert world_db.get_open_thinking(a.id).id == entry.id
        assert not world_db.is_thinking_closed(entry.id)

        world_db.insert_journal_entry(a.id, world_id, DoneData(think_id=entry.id))
        assert world_db.get_open_thinking(a.id) is None
        assert world_db.is_thinking_closed(entry.id)

    def test_entry_round_trips_data(self, trio, world_db):
        world_id, a, b, _ = trio
        entry = world_db.insert_journal_entry(
            a.id,
            world_id,
            TalkingData(audience=[b.id], content="hi", conversation_id="c1"),
        )
        loaded = world_db.get_journal_entry(entry.id)
        assert loaded.data.type == "talking"
        assert loaded.data.content == "hi"
        assert loaded.data.audience == [b.id]

    def test_have_talked_is_symmetric(self, trio, world_db):
        world_id, a, b, c = trio
        assert not world_db.have_talked(a.id, b.id)
        world_db.insert_journal_entry(
            a.id,
            world_id,
            TalkingData(audience=[b.id], content="hi", conversation_id="c1"),
        )
        assert world_db.have_talked(a.id, b.id)
        assert world_db.have_talked(b.id, a.id)
        assert not world_db.have_talked(a.id, c.id)

    def test_start_entries_do_not_count_as_talking(self, trio, world_db):
        world_id, a, b, _ = trio
        world_db.insert_journal_entry(
            a.id, world_id, StartConversationData(audience=[b.id], conversation_id="c1")
        )
        assert not world_db.have_talked(a.id, b.id)


class TestConversations:
    def test_members_include_creator(self, trio, world_db):
        world_id, a, b, _ = trio
        cid = world_db.create_conversation(world_id, a.id, [b.id])
        assert world_db.get_conversation_members(cid) == [a.id, b.id]
        assert world_db.conversations_for_member(b.id) == [cid]
        assert world_db.is_member(cid, a.id)

    def test_messages_resolve_names_in_order(self, trio, world_db):
        world_id, a, b, c = trio
        cid = world_db.create_conversation(world_id, a.id, [b.id, c.id])
        world_db.insert_journal_entry(
            a.id, world_id, TalkingData(audience=[b.id, c.id], content="one", conversation_id=cid), ts=10.0
        )
        world_db.insert_journal_entry(
            b.id, world_id, TalkingData(audience=[a.id], content="two", conversation_id=cid), ts=11.0
        )

        messages = world_db.conversation_messages(cid)
        assert [(m.from_name, m.to_names, m.content) for m in messages] == [
            ("Alice", ["Bob", "Cleo"], "one"),
            ("Bob", ["Alice"], "two"),
        ]
        assert world_db.world_messages(world_id) == messages

    def test_reset_keeps_players_and_memories(self, trio, world_db):
        world_id, a, b, _ = trio
        cid = world_db.create_conversation(world_id, a.id, [b.id])
        world_db.insert_journal_entry(a.id, world_id, ThinkingData())
        world_db.insert_memory(a.id, "I met Bob.", 3, cid)

        world_db.reset_world_activity(world_id)

        assert world_db.list_journal(world_id) == []
        assert world_db.conversations_for_member(a.id) == []
        assert world_db.get_conversation(cid) is None
        assert len(world_db.list_players(world_id)) == 3
        assert [m.description for m in world_db.list_memories(a.id)] == ["I met Bob."]


class TestTransactions:
    def test_rollback_on_error(self, trio, world_db):
        world_id, a, b, _ = trio
        with pytest.raises(RuntimeError):
            with world_db.transaction():
                world_db.create_conversation(world_id, a.id, [b.id])
                raise RuntimeError("boom")
        assert world_db.conversations_for_member(a.id) == []

    def test_commit_on_success(self, trio, world_db, db_path):
        world_id, a, b, _ = trio
        with world_db.transaction():
            cid = world_db.create_conversation(world_id, a.id, [b.id])
        with open_world_db(db_path) as other:
            assert other.get_conversation(cid) is not None

    def test_nesting_not_allowed(self, world_db):
        with world_db.transaction():
            with pytest.raises(RuntimeError):
                with world_db.transaction():
                    pass


class TestMemoriesAndRuns:
    def test_memories_most_recent_first(self, trio, world_db):
        _, a, _, _ = trio
        world_db.insert_memory(a.id, "old", 1, ts=1.0)
        world_db.insert_memory(a.id, "new", 2, ts=2.0)
        assert [m.description for m in world_db.list_memories(a.id)] == ["new", "old"]
        assert [m.description for m in world_db.list_memories(a.id, limit=1)] == ["new"]

    def test_importance_out_of_range_rejected(self, trio, world_db):
        _, a, _, _ = trio
        with pytest.raises(ValueError):
            world_db.insert_memory(a.id, "too much", 12)

    def test_run_record_lifecycle(self, trio, world_db):
        world_id, _, _, _ = trio
        run_id = world_db.create_run(world_id)
        run = world_db.get_run(run_id)
        assert run.status == RunStatus.RUNNING
        assert run.completed_at is None

        world_db.update_run(
            run_id,
            RunStatus.FAILED,
            conversation_id="c1",
            failure_kind=RunFailureKind.CONVERSATION_DRIFT,
            failure_detail="drifted",
            passes=2,
        )
        run = world_db.get_run(run_id)
        assert run.status == RunStatus.FAILED
        assert run.failure_kind == RunFailureKind.CONVERSATION_DRIFT
        assert run.passes == 2
        assert run.completed_at is not None
        assert [r.run_id for r in world_db.list_runs(world_id)] == [run_id]
