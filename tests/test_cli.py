"""Tests for the colloquy CLI."""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from colloquy.cli import app
from colloquy.config import get_config
from colloquy.core.providers.base import TokenUsage

runner = CliRunner()


def _invoke(*args):
    return runner.invoke(app, list(args))


def _json(*args):
    result = _invoke("--json", *args)
    return result, json.loads(result.stdout)


def _seed(db_path):
    _invoke("world", "create", "town", "--db", str(db_path))
    _invoke("world", "add-player", "Alice", "--identity", "A baker.", "--db", str(db_path))
    _invoke("world", "add-player", "Bob", "--x", "1", "--db", str(db_path))


class TestVersionAndConfig:
    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "colloquy 0.1.0" in result.stdout

    def test_config_show(self):
        result = _invoke("config", "show")
        assert result.exit_code == 0
        assert "Colloquy Configuration" in result.stdout
        assert "nearby_radius" in result.stdout

    def test_config_show_lists_keys_for_providers_in_use(self):
        result = _invoke("config", "show")
        assert "OPENAI_API_KEY" in result.stdout
        assert "DEEPSEEK_API_KEY" not in result.stdout

        _invoke("config", "set", "simulation.fast", "deepseek/deepseek-chat")
        result = _invoke("config", "show")
        assert "DEEPSEEK_API_KEY" in result.stdout

    def test_config_set_custom_provider(self):
        result = _invoke("config", "set", "providers.local.base_url", "http://localhost:8000/v1")
        assert result.exit_code == 0
        assert get_config().providers["local"].base_url == "http://localhost:8000/v1"

    def test_config_set_and_reload(self):
        result = _invoke("config", "set", "simulation.nearby_radius", "12")
        assert result.exit_code == 0
        assert get_config().simulation.nearby_radius == 12.0

    def test_config_set_unknown_key(self):
        result = _invoke("config", "set", "simulation.speed", "1")
        assert result.exit_code == 1
        assert "Unknown key" in result.stdout

    def test_config_set_bad_number(self):
        result = _invoke("config", "set", "simulation.max_conversation_messages", "lots")
        assert result.exit_code == 1
        assert "Invalid numeric value" in result.stdout


class TestWorldCommands:
    def test_players_listed_in_turn_order(self, db_path):
        _seed(db_path)
        result, data = _json("world", "players", "--db", str(db_path))
        assert result.exit_code == 0
        assert [p["Name"] for p in data["players"]] == ["Alice", "Bob"]

    def test_add_player_without_world(self, db_path):
        result = _invoke("world", "add-player", "Alice", "--db", str(db_path))
        assert result.exit_code == 3

    def test_snapshot_of_first_player(self, db_path):
        _seed(db_path)
        result, data = _json("snapshot", "--db", str(db_path))
        assert result.exit_code == 0
        snapshot = data["snapshot"]
        assert snapshot["player"]["name"] == "Alice"
        assert [n["player"]["name"] for n in snapshot["nearby_players"]] == ["Bob"]
        assert snapshot["nearby_players"][0]["new"] is True

    def test_snapshot_unknown_player(self, db_path):
        _seed(db_path)
        result = _invoke("snapshot", "p_missing", "--db", str(db_path))
        assert result.exit_code == 3

    def test_messages_empty(self, db_path):
        _seed(db_path)
        result, data = _json("messages", "--db", str(db_path))
        assert result.exit_code == 0
        assert data["messages"] == []
        assert data["warnings"]


class TestRunCommand:
    def test_run_without_world(self, db_path):
        result = _invoke("run", "--db", str(db_path))
        assert result.exit_code == 3

    def test_run_then_messages(self, db_path):
        _seed(db_path)

        async def fake(prompt, response_schema, schema_name="response", model=None, max_tokens=None):
            if schema_name == "conversation_withdraw":
                return {"leave": True, "reason": "done"}, TokenUsage()
            if schema_name == "conversation_memory":
                return {"summary": "I said hello.", "importance": 1}, TokenUsage()
            return {"response": "Hello neighbour!"}, TokenUsage()

        with patch("colloquy.simulation.conversation.simple_call_async", new=fake), patch(
            "colloquy.simulation.memory.simple_call_async", new=fake
        ):
            result, data = _json("run", "--db", str(db_path))

        assert result.exit_code == 0
        assert data["status"] == "success"
        assert data["passes"] == 1
        assert [c["outcome"] for c in data["cycles"]] == ["opened", "withdrew"]

        result, data = _json("messages", "--db", str(db_path))
        assert [m["Content"] for m in data["messages"]] == ["Hello neighbour!"]

    def test_bad_model_string_is_not_reported_as_missing_world(self, db_path):
        _seed(db_path)

        result, data = _json("run", "--strong", "nomodel", "--db", str(db_path))

        assert result.exit_code == 1
        (error,) = data["errors"]
        assert "Invalid model string" in error["message"]
        assert "suggestion" not in error
