"""Configuration management for Colloquy.

Two-tier model config:
- models: fast/strong model strings used outside a conversation run
  (memory summaries, ad-hoc tooling)
- simulation: fast/strong model strings and tuning for conversation runs

Model strings use "provider/model" format (e.g., "openai/gpt-5-mini").

Config resolution order (highest priority first):
1. Programmatic (ColloquyConfig constructed in code)
2. Environment variables (MODELS_FAST, SIMULATION_STRONG, etc.)
3. Config file (~/.config/colloquy/config.json, managed by `colloquy config`)
4. Hardcoded defaults

API keys are ALWAYS from env vars — never stored in config file.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv


logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "colloquy"
CONFIG_FILE = CONFIG_DIR / "config.json"


# =============================================================================
# Model string parsing
# =============================================================================


def parse_model_string(model_string: str) -> tuple[str, str]:
    """Parse a "provider/model" string into (provider, model) tuple.

    Examples:
        "openai/gpt-5-mini" → ("openai", "gpt-5-mini")
        "anthropic/claude-sonnet-4.5" → ("anthropic", "claude-sonnet-4.5")
        "openrouter/anthropic/claude-sonnet-4.5" → ("openrouter", "anthropic/claude-sonnet-4.5")

    Raises:
        ValueError: If the string doesn't contain a '/' separator.
    """
    if "/" not in model_string:
        raise ValueError(
            f"Invalid model string: {model_string!r}. "
            f"Expected format: 'provider/model' (e.g., 'openai/gpt-5-mini')"
        )
    provider, _, model = model_string.partition("/")
    if not provider or not model:
        raise ValueError(
            f"Invalid model string: {model_string!r}. "
            f"Both provider and model must be non-empty."
        )
    return provider, model


# =============================================================================
# Config dataclasses
# =============================================================================


@dataclass
class ModelsConfig:
    """General model configuration.

    - fast: memory summaries and other cheap structured calls
    - strong: fallback for conversation turns when simulation.strong is unset
    """

    fast: str = "openai/gpt-5-mini"
    strong: str = "openai/gpt-5"


@dataclass
class SimulationConfig:
    """Conversation run model + tuning configuration.

    - strong: opening lines and replies
    - fast: withdrawal decisions
    """

    fast: str = ""  # empty = same as models.fast
    strong: str = ""  # empty = same as models.strong
    nearby_radius: float = 5.0
    max_conversation_messages: int = 12
    memory_recall_limit: int = 3


@dataclass
class CustomProviderConfig:
    """Configuration for a custom OpenAI-compatible provider endpoint."""

    base_url: str = ""
    api_key_env: str = ""


@dataclass
class DefaultsConfig:
    """Storage defaults."""

    db_path: str = "./storage/colloquy.db"


# =============================================================================
# Main config class
# =============================================================================


@dataclass
class ColloquyConfig:
    """Top-level colloquy configuration.

    Construct programmatically for package use, or load from config file for CLI use.

    Examples:
        # Package use — no files needed
        config = ColloquyConfig(
            models=ModelsConfig(fast="openai/gpt-5-mini", strong="anthropic/claude-sonnet-4.5"),
        )

        # CLI use — loads from ~/.config/colloquy/config.json
        config = ColloquyConfig.load()

        # Widen who counts as nearby
        config = ColloquyConfig.load()
        config.simulation.nearby_radius = 20.0
    """

    models: ModelsConfig = field(default_factory=ModelsConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    providers: dict[str, CustomProviderConfig] = field(default_factory=dict)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls) -> "ColloquyConfig":
        """Load config from file + env vars.

        Priority: env var values > config.json values > defaults.
        """
        config = cls()

        # Layer 1: Load from config file if it exists
        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    data = json.load(f)
                _apply_dict(config, data)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to load config from %s: %s", CONFIG_FILE, exc)

        # Layer 2: Env var overrides
        if val := os.environ.get("MODELS_FAST"):
            config.models.fast = val
        if val := os.environ.get("MODELS_STRONG"):
            config.models.strong = val
        if val := os.environ.get("SIMULATION_FAST"):
            config.simulation.fast = val
        if val := os.environ.get("SIMULATION_STRONG"):
            config.simulation.strong = val
        if val := os.environ.get("SIMULATION_NEARBY_RADIUS"):
            try:
                config.simulation.nearby_radius = float(val)
            except ValueError:
                logger.warning("Invalid SIMULATION_NEARBY_RADIUS=%r, ignoring", val)
        if val := os.environ.get("SIMULATION_MAX_CONVERSATION_MESSAGES"):
            try:
                config.simulation.max_conversation_messages = int(val)
            except ValueError:
                logger.warning(
                    "Invalid SIMULATION_MAX_CONVERSATION_MESSAGES=%r, ignoring", val
                )
        if val := os.environ.get("DB_PATH"):
            config.defaults.db_path = val

        return config

    def save(self) -> None:
        """Save config to ~/.config/colloquy/config.json."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {
            "models": asdict(self.models),
            "simulation": asdict(self.simulation),
        }
        if self.providers:
            data["providers"] = {
                name: asdict(cfg) for name, cfg in self.providers.items()
            }
        if self.defaults != DefaultsConfig():
            data["defaults"] = asdict(self.defaults)
        with open(CONFIG_FILE, "w") as f:
            json.dump(data, f, indent=2)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for display."""
        result = {
            "models": asdict(self.models),
            "simulation": asdict(self.simulation),
            "defaults": asdict(self.defaults),
        }
        if self.providers:
            result["providers"] = {
                name: asdict(cfg) for name, cfg in self.providers.items()
            }
        return result

    # ── Convenience resolution methods ──

    def resolve_sim_strong(self) -> str:
        """Resolve the strong model string for conversation turns."""
        return self.simulation.strong or self.models.strong

    def resolve_sim_fast(self) -> str:
        """Resolve the fast model string for withdrawal decisions."""
        return self.simulation.fast or self.models.fast

    @property
    def db_path_resolved(self) -> Path:
        """Resolve database path."""
        path = Path(self.defaults.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


# =============================================================================
# Config dict application
# =============================================================================

_FLOAT_FIELDS = {"nearby_radius"}
_INT_FIELDS = {"max_conversation_messages", "memory_recall_limit"}


def _coerce(key: str, value: Any) -> Any:
    if key in _FLOAT_FIELDS:
        return float(value)
    if key in _INT_FIELDS:
        return int(value)
    return value


def _apply_dict(config: ColloquyConfig, data: dict) -> None:
    """Apply a dict of values onto a ColloquyConfig."""
    if "models" in data and isinstance(data["models"], dict):
        for k, v in data["models"].items():
            if hasattr(config.models, k):
                setattr(config.models, k, v)
    if "simulation" in data and isinstance(data["simulation"], dict):
        for k, v in data["simulation"].items():
            if hasattr(config.simulation, k):
                setattr(config.simulation, k, _coerce(k, v))
    if "providers" in data and isinstance(data["providers"], dict):
        for name, provider_data in data["providers"].items():
            if isinstance(provider_data, dict):
                config.providers[name] = CustomProviderConfig(
                    base_url=provider_data.get("base_url", ""),
                    api_key_env=provider_data.get("api_key_env", ""),
                )
    if "defaults" in data and isinstance(data["defaults"], dict):
        for k, v in data["defaults"].items():
            if hasattr(config.defaults, k):
                setattr(config.defaults, k, v)


# =============================================================================
# API key resolution
# =============================================================================

_dotenv_loaded = False


def _ensure_dotenv() -> None:
    """Load .env file into os.environ if not already loaded."""
    global _dotenv_loaded
    if not _dotenv_loaded:
        _dotenv_loaded = True
        dotenv_path = find_dotenv(usecwd=True)
        if dotenv_path:
            load_dotenv(dotenv_path=dotenv_path, override=False)


def get_api_key_for_provider(
    provider_name: str,
    custom_providers: dict[str, CustomProviderConfig] | None = None,
) -> str:
    """Get API key for a provider.

    Resolution order:
    1. Custom provider api_key_env override
    2. Convention: {PROVIDER_UPPER}_API_KEY

    Returns empty string if not found.
    """
    _ensure_dotenv()

    if custom_providers and provider_name in custom_providers:
        custom = custom_providers[provider_name]
        if custom.api_key_env:
            return os.environ.get(custom.api_key_env, "")

    return os.environ.get(f"{provider_name.upper()}_API_KEY", "")


# =============================================================================
# Global config singleton
# =============================================================================

_config: ColloquyConfig | None = None


def get_config() -> ColloquyConfig:
    """Get the global ColloquyConfig instance.

    First call loads from file + env vars. Subsequent calls return cached instance.
    Use configure() to replace the global config programmatically.
    """
    global _config
    if _config is None:
        _config = ColloquyConfig.load()
    return _config


def configure(config: ColloquyConfig) -> None:
    """Set the global ColloquyConfig programmatically.

    Use this when colloquy is used as a package:
        from colloquy.config import configure, ColloquyConfig, ModelsConfig
        configure(ColloquyConfig(models=ModelsConfig(fast="openai/gpt-5-mini")))
    """
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None
