"""Shared fixtures for colloquy tests."""

import pytest

from colloquy import config as config_module
from colloquy.cli.commands import config_cmd
from colloquy.config import ColloquyConfig, configure, reset_config
from colloquy.core.providers import reset_provider_cache
from colloquy.core.providers import logging as provider_logging
from colloquy.storage import open_world_db


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at tmp_path and start from defaults."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_dir / "config.json")
    monkeypatch.setattr(config_cmd, "CONFIG_FILE", config_dir / "config.json")
    for var in (
        "MODELS_FAST",
        "MODELS_STRONG",
        "SIMULATION_FAST",
        "SIMULATION_STRONG",
        "SIMULATION_NEARBY_RADIUS",
        "SIMULATION_MAX_CONVERSATION_MESSAGES",
        "DB_PATH",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(provider_logging, "get_logs_dir", lambda: tmp_path)
    configure(ColloquyConfig())
    reset_provider_cache()
    yield
    reset_config()
    reset_provider_cache()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "world.db"


@pytest.fixture
def world_db(db_path):
    with open_world_db(db_path) as db:
        yield db


@pytest.fixture
def trio(world_db):
    """A world with three players standing close together."""
    world_id = world_db.create_world("town")
    a = world_db.add_player(world_id, "Alice", identity="A curious baker.", x=0, y=0)
    b = world_db.add_player(world_id, "Bob", identity="A retired sailor.", x=1, y=0)
    c = world_db.add_player(world_id, "Cleo", identity="A street musician.", x=2, y=0)
    return world_id, a, b, c
