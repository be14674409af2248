"""World database storage for Colloquy.

This module provides the schema and helper operations for the world store:
players, the action journal, conversations and their members, memories
and conversation run records.
"""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from pydantic import TypeAdapter

from ..core.models import (
    ChatMessage,
    ConversationRun,
    JournalData,
    JournalEntry,
    Memory,
    Player,
    RunFailureKind,
    RunStatus,
)
from .schemas import MemoryPayload, PlayerDBRecord


_JOURNAL_DATA: TypeAdapter = TypeAdapter(JournalData)


def _now_iso() -> str:
    return datetime.now().isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class WorldDB:
    """SQLite-backed world store."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._in_transaction = False
        self._set_pragmas()
        self.init_schema()

    def _set_pragmas(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute("PRAGMA temp_store = MEMORY")
        self.conn.commit()

    def init_schema(self) -> None:
        """Create world schema and indexes."""
        cursor = self.conn.cursor()
        cursor.executescript(
            """
            CREATE TABLE IF NOT EXISTS worlds (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                world_id TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS players (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                player_id TEXT NOT NULL UNIQUE,
                world_id TEXT NOT NULL,
                name TEXT NOT NULL,
                identity TEXT NOT NULL DEFAULT '',
                x REAL NOT NULL DEFAULT 0,
                y REAL NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS journal (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                entry_id TEXT NOT NULL UNIQUE,
                player_id TEXT NOT NULL,
                world_id TEXT NOT NULL,
                entry_type TEXT NOT NULL,
                data_json TEXT NOT NULL,
                think_id TEXT,
                conversation_id TEXT,
                ts REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS conversations (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL UNIQUE,
                world_id TEXT NOT NULL,
                creator_id TEXT NOT NULL,
                created_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS conversation_members (
                conversation_id TEXT NOT NULL,
                player_id TEXT NOT NULL,
                PRIMARY KEY (conversation_id, player_id)
            );

            CREATE TABLE IF NOT EXISTS memories (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                memory_id TEXT NOT NULL UNIQUE,
                player_id TEXT NOT NULL,
                description TEXT NOT NULL,
                importance INTEGER NOT NULL,
                conversation_id TEXT,
                ts REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS conversation_runs (
                run_id TEXT PRIMARY KEY,
                world_id TEXT NOT NULL,
                status TEXT NOT NULL,
                conversation_id TEXT,
                failure_kind TEXT,
                failure_detail TEXT,
                passes INTEGER NOT NULL DEFAULT 0,
                started_at TEXT NOT NULL,
                completed_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_players_world ON players(world_id);
            CREATE INDEX IF NOT EXISTS idx_journal_player_type ON journal(player_id, entry_type);
            CREATE INDEX IF NOT EXISTS idx_journal_think ON journal(think_id);
            CREATE INDEX IF NOT EXISTS idx_journal_conversation ON journal(conversation_id);
            CREATE INDEX IF NOT EXISTS idx_journal_world_type ON journal(world_id, entry_type);
            CREATE INDEX IF NOT EXISTS idx_conv_members_player ON conversation_members(player_id);
            CREATE INDEX IF NOT EXISTS idx_memories_player ON memories(player_id, ts);
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "WorldDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # ── Transactions ──

    @contextmanager
    def transaction(self) -> Iterator["WorldDB"]:
        """Group writes into one atomic unit: commit on success, rollback on error.

        Writes issued inside the block defer their per-call commit until the
        block exits. Nesting is not supported.
        """
        if self._in_transaction:
            raise RuntimeError("WorldDB transactions cannot be nested")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()
        finally:
            self._in_transaction = False

    def _commit(self) -> None:
        if not self._in_transaction:
            self.conn.commit()

    # ── Worlds ──

    def create_world(self, name: str, world_id: str | None = None) -> str:
        wid = world_id or _new_id("w")
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT INTO worlds (world_id, name, created_at) VALUES (?, ?, ?)",
            (wid, name, _now_iso()),
        )
        self._commit()
        return wid

    def get_latest_world(self) -> dict[str, Any] | None:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT world_id, name, created_at FROM worlds ORDER BY seq DESC LIMIT 1"
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def reset_world_activity(self, world_id: str) -> None:
        """Delete the journal and conversations of a world.

        Players and memories survive so repeated runs build on past memories.
        """
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM journal WHERE world_id = ?", (world_id,))
        cursor.execute(
            """
            DELETE FROM conversation_members
            WHERE conversation_id IN (
                SELECT conversation_id FROM conversations WHERE world_id = ?
            )
            """,
            (world_id,),
        )
        cursor.execute("DELETE FROM conversations WHERE world_id = ?", (world_id,))
        self._commit()

    # ── Players ──

    def add_player(
        self,
        world_id: str,
        name: str,
        identity: str = "",
        x: float = 0.0,
        y: float = 0.0,
        player_id: str | None = None,
    ) -> Player:
        rec = PlayerDBRecord(
            player_id=player_id or _new_id("p"),
            world_id=world_id,
            name=name,
            identity=identity,
            x=x,
            y=y,
        )
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO players (player_id, world_id, name, identity, x, y, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rec.player_id,
                rec.world_id,
                rec.name,
                rec.identity,
                rec.x,
                rec.y,
                _now_iso(),
            ),
        )
        self._commit()
        return _player_from_row(
            {
                "player_id": rec.player_id,
                "world_id": rec.world_id,
                "name": rec.name,
                "identity": rec.identity,
                "x": rec.x,
                "y": rec.y,
            }
        )

    def get_player(self, player_id: str) -> Player | None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT player_id, world_id, name, identity, x, y
            FROM players WHERE player_id = ?
            """,
            (player_id,),
        )
        row = cursor.fetchone()
        return _player_from_row(row) if row else None

    def list_players(self, world_id: str) -> list[Player]:
        """All players of a world in creation order."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT player_id, world_id, name, identity, x, y
            FROM players
            WHERE world_id = ?
            ORDER BY seq
            """,
            (world_id,),
        )
        return [_player_from_row(row) for row in cursor.fetchall()]

    # ── Journal ──

    def insert_journal_entry(
        self,
        player_id: str,
        world_id: str,
        data: JournalData,
        ts: float | None = None,
    ) -> JournalEntry:
        entry = JournalEntry(
            id=_new_id("j"),
            player_id=player_id,
            world_id=world_id,
            ts=ts if ts is not None else time.time(),
            data=data,
        )
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO journal
            (entry_id, player_id, world_id, entry_type, data_json, think_id, conversation_id, ts)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.player_id,
                entry.world_id,
                data.type,
                data.model_dump_json(),
                getattr(data, "think_id", None),
                getattr(data, "conversation_id", None),
                entry.ts,
            ),
        )
        self._commit()
        return entry

    def update_journal_data(self, entry_id: str, data: JournalData) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE journal SET data_json = ? WHERE entry_id = ?",
            (data.model_dump_json(), entry_id),
        )
        self._commit()

    def get_journal_entry(self, entry_id: str) -> JournalEntry | None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT entry_id, player_id, world_id, data_json, ts
            FROM journal WHERE entry_id = ?
            """,
            (entry_id,),
        )
        row = cursor.fetchone()
        return _journal_from_row(row) if row else None

    def list_journal(self, world_id: str, entry_type: str | None = None) -> list[JournalEntry]:
        cursor = self.conn.cursor()
        sql = """
            SELECT entry_id, player_id, world_id, data_json, ts
            FROM journal
            WHERE world_id = ?
        """
        params: tuple[Any, ...] = (world_id,)
        if entry_type is not None:
            sql += " AND entry_type = ?"
            params = (world_id, entry_type)
        cursor.execute(sql + " ORDER BY seq", params)
        return [_journal_from_row(row) for row in cursor.fetchall()]

    def get_open_thinking(self, player_id: str) -> JournalEntry | None:
        """Latest ``thinking`` entry of a player with no matching ``done``."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT t.entry_id, t.player_id, t.world_id, t.data_json, t.ts
            FROM journal t
            WHERE t.player_id = ?
              AND t.entry_type = 'thinking'
              AND NOT EXISTS (
                  SELECT 1 FROM journal d
                  WHERE d.entry_type = 'done' AND d.think_id = t.entry_id
              )
            ORDER BY t.seq DESC
            LIMIT 1
            """,
            (player_id,),
        )
        row = cursor.fetchone()
        return _journal_from_row(row) if row else None

    def is_thinking_closed(self, think_id: str) -> bool:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT 1 FROM journal WHERE entry_type = 'done' AND think_id = ? LIMIT 1",
            (think_id,),
        )
        return cursor.fetchone() is not None

    def have_talked(self, player_a: str, player_b: str) -> bool:
        """True if either player ever addressed a ``talking`` entry to the other."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT 1
            FROM journal j, json_each(j.data_json, '$.audience') a
            WHERE j.entry_type = 'talking'
              AND ((j.player_id = ? AND a.value = ?) OR (j.player_id = ? AND a.value = ?))
            LIMIT 1
            """,
            (player_a, player_b, player_b, player_a),
        )
        return cursor.fetchone() is not None

    # ── Conversations ──

    def create_conversation(
        self,
        world_id: str,
        creator_id: str,
        member_ids: list[str],
        conversation_id: str | None = None,
    ) -> str:
        cid = conversation_id or _new_id("c")
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO conversations (conversation_id, world_id, creator_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (cid, world_id, creator_id, time.time()),
        )
        members = list(dict.fromkeys([creator_id, *member_ids]))
        cursor.executemany(
            "INSERT INTO conversation_members (conversation_id, player_id) VALUES (?, ?)",
            [(cid, pid) for pid in members],
        )
        self._commit()
        return cid

    def get_conversation(self, conversation_id: str) -> dict[str, Any] | None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT conversation_id, world_id, creator_id, created_at
            FROM conversations WHERE conversation_id = ?
            """,
            (conversation_id,),
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_conversation_members(self, conversation_id: str) -> list[str]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT m.player_id
            FROM conversation_members m
            JOIN players p ON p.player_id = m.player_id
            WHERE m.conversation_id = ?
            ORDER BY p.seq
            """,
            (conversation_id,),
        )
        return [row["player_id"] for row in cursor.fetchall()]

    def is_member(self, conversation_id: str, player_id: str) -> bool:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT 1 FROM conversation_members
            WHERE conversation_id = ? AND player_id = ?
            """,
            (conversation_id, player_id),
        )
        return cursor.fetchone() is not None

    def conversations_for_member(self, player_id: str) -> list[str]:
        """Conversation ids the player is a member of, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT c.conversation_id
            FROM conversations c
            JOIN conversation_members m ON m.conversation_id = c.conversation_id
            WHERE m.player_id = ?
            ORDER BY c.seq
            """,
            (player_id,),
        )
        return [row["conversation_id"] for row in cursor.fetchall()]

    def conversation_messages(self, conversation_id: str) -> list[ChatMessage]:
        """``talking`` entries of a conversation as chat messages, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT j.data_json, j.ts, p.name AS from_name
            FROM journal j
            JOIN players p ON p.player_id = j.player_id
            WHERE j.entry_type = 'talking' AND j.conversation_id = ?
            ORDER BY j.ts, j.seq
            """,
            (conversation_id,),
        )
        return [self._chat_message_from_row(row) for row in cursor.fetchall()]

    def world_messages(self, world_id: str) -> list[ChatMessage]:
        """Every ``talking`` entry of a world as chat messages, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT j.data_json, j.ts, p.name AS from_name
            FROM journal j
            JOIN players p ON p.player_id = j.player_id
            WHERE j.entry_type = 'talking' AND j.world_id = ?
            ORDER BY j.ts, j.seq
            """,
            (world_id,),
        )
        return [self._chat_message_from_row(row) for row in cursor.fetchall()]

    def _chat_message_from_row(self, row: sqlite3.Row) -> ChatMessage:
        data = json.loads(row["data_json"])
        return ChatMessage(
            from_name=row["from_name"],
            to_names=self._player_names(data.get("audience", [])),
            content=data.get("content", ""),
            ts=float(row["ts"]),
        )

    def _player_names(self, player_ids: list[str]) -> list[str]:
        if not player_ids:
            return []
        cursor = self.conn.cursor()
        placeholders = ",".join("?" for _ in player_ids)
        cursor.execute(
            f"SELECT player_id, name FROM players WHERE player_id IN ({placeholders})",
            tuple(player_ids),
        )
        names = {row["player_id"]: row["name"] for row in cursor.fetchall()}
        return [names[pid] for pid in player_ids if pid in names]

    # ── Memories ──

    def insert_memory(
        self,
        player_id: str,
        description: str,
        importance: int,
        conversation_id: str | None = None,
        ts: float | None = None,
    ) -> Memory:
        payload = MemoryPayload(
            description=description,
            importance=importance,
            conversation_id=conversation_id,
        )
        memory = Memory(
            id=_new_id("m"),
            player_id=player_id,
            description=payload.description,
            importance=payload.importance,
            conversation_id=payload.conversation_id,
            ts=ts if ts is not None else time.time(),
        )
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO memories
            (memory_id, player_id, description, importance, conversation_id, ts)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                memory.id,
                memory.player_id,
                memory.description,
                memory.importance,
                memory.conversation_id,
                memory.ts,
            ),
        )
        self._commit()
        return memory

    def list_memories(self, player_id: str, limit: int | None = None) -> list[Memory]:
        """Memories of a player, most recent first."""
        cursor = self.conn.cursor()
        sql = """
            SELECT memory_id, player_id, description, importance, conversation_id, ts
            FROM memories
            WHERE player_id = ?
            ORDER BY ts DESC, seq DESC
        """
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        cursor.execute(sql, (player_id,))
        return [
            Memory(
                id=row["memory_id"],
                player_id=row["player_id"],
                description=row["description"],
                importance=int(row["importance"]),
                conversation_id=row["conversation_id"],
                ts=float(row["ts"]),
            )
            for row in cursor.fetchall()
        ]

    # ── Run records ──

    def create_run(self, world_id: str, run_id: str | None = None) -> str:
        rid = run_id or str(uuid.uuid4())
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO conversation_runs (run_id, world_id, status, started_at)
            VALUES (?, ?, ?, ?)
            """,
            (rid, world_id, RunStatus.RUNNING.value, _now_iso()),
        )
        self._commit()
        return rid

    def update_run(
        self,
        run_id: str,
        status: RunStatus,
        conversation_id: str | None = None,
        failure_kind: RunFailureKind | None = None,
        failure_detail: str | None = None,
        passes: int = 0,
    ) -> None:
        cursor = self.conn.cursor()
        completed_at = _now_iso() if status != RunStatus.RUNNING else None
        cursor.execute(
            """
            UPDATE conversation_runs
            SET status = ?, conversation_id = ?, failure_kind = ?, failure_detail = ?,
                passes = ?, completed_at = COALESCE(?, completed_at)
            WHERE run_id = ?
            """,
            (
                status.value,
                conversation_id,
                failure_kind.value if failure_kind else None,
                failure_detail,
                passes,
                completed_at,
                run_id,
            ),
        )
        self._commit()

    def get_run(self, run_id: str) -> ConversationRun | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM conversation_runs WHERE run_id = ?", (run_id,))
        row = cursor.fetchone()
        return ConversationRun(**dict(row)) if row else None

    def list_runs(self, world_id: str) -> list[ConversationRun]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM conversation_runs WHERE world_id = ? ORDER BY started_at",
            (world_id,),
        )
        return [ConversationRun(**dict(row)) for row in cursor.fetchall()]


def _player_from_row(row: sqlite3.Row | dict[str, Any]) -> Player:
    return Player(
        id=row["player_id"],
        world_id=row["world_id"],
        name=row["name"],
        identity=row["identity"] or "",
        x=float(row["x"]),
        y=float(row["y"]),
    )


def _journal_from_row(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        id=row["entry_id"],
        player_id=row["player_id"],
        world_id=row["world_id"],
        ts=float(row["ts"]),
        data=_JOURNAL_DATA.validate_json(row["data_json"]),
    )


def open_world_db(path: Path | str) -> WorldDB:
    """Open the world database and ensure schema exists."""
    return WorldDB(path)
