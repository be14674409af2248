"""LLM Provider registry and factory.

Provides:
- _BUILTIN_REGISTRY: Registry of known provider names → factory info
- get_provider(): Create a provider instance from a provider name
- get_simulation_provider(): Cached provider for a "provider/model" string

Providers are cached so their async clients can be reused across the
turns of a conversation run and closed cleanly before the event loop
shuts down.
"""

import importlib

from .base import LLMProvider, TokenUsage
from ...config import (
    get_config,
    get_api_key_for_provider,
    parse_model_string,
    CustomProviderConfig,
)


# =============================================================================
# Provider Registry
# =============================================================================

# Each entry: (module, class_name, default_kwargs)
# Lazy-imported to avoid loading all SDKs at startup.
_BUILTIN_REGISTRY: dict[str, dict] = {
    "openai": {
        "module": ".openai",
        "class": "OpenAIProvider",
    },
    "anthropic": {
        "module": ".anthropic",
        "class": "AnthropicProvider",
    },
    "openrouter": {
        "module": ".openai_compat",
        "class": "OpenAICompatProvider",
        "kwargs": {
            "base_url": "https://openrouter.ai/api/v1",
            "provider_label": "openrouter",
            "default_fast": "openai/gpt-5-mini",
        },
    },
    "deepseek": {
        "module": ".openai_compat",
        "class": "OpenAICompatProvider",
        "kwargs": {
            "base_url": "https://api.deepseek.com/v1",
            "provider_label": "deepseek",
            "default_fast": "deepseek-chat",
        },
    },
    "together": {
        "module": ".openai_compat",
        "class": "OpenAICompatProvider",
        "kwargs": {
            "base_url": "https://api.together.xyz/v1",
            "provider_label": "together",
            "default_fast": "meta-llama/Meta-Llama-3.1-8B-Instruct-Turbo",
        },
    },
    "groq": {
        "module": ".openai_compat",
        "class": "OpenAICompatProvider",
        "kwargs": {
            "base_url": "https://api.groq.com/openai/v1",
            "provider_label": "groq",
            "default_fast": "llama-3.3-70b-versatile",
        },
    },
}


def get_provider(
    provider_name: str,
    custom_providers: dict[str, CustomProviderConfig] | None = None,
) -> LLMProvider:
    """Create a provider instance by name.

    Checks custom providers first, then built-in registry.

    Args:
        provider_name: Provider name (e.g., "openai", "anthropic", "openrouter")
        custom_providers: Optional custom provider configs from ColloquyConfig

    Returns:
        LLMProvider instance

    Raises:
        ValueError: If provider is unknown
    """
    api_key = get_api_key_for_provider(provider_name, custom_providers)

    # Check custom providers first
    if custom_providers and provider_name in custom_providers:
        from .openai_compat import OpenAICompatProvider

        custom = custom_providers[provider_name]
        return OpenAICompatProvider(
            api_key=api_key,
            base_url=custom.base_url,
            provider_label=provider_name,
        )

    if provider_name not in _BUILTIN_REGISTRY:
        available = sorted(
            set(list(_BUILTIN_REGISTRY.keys()) + list((custom_providers or {}).keys()))
        )
        raise ValueError(
            f"Unknown LLM provider: {provider_name!r}. "
            f"Available: {', '.join(available)}"
        )

    entry = _BUILTIN_REGISTRY[provider_name]
    module = importlib.import_module(entry["module"], package=__package__)
    cls = getattr(module, entry["class"])

    kwargs = dict(entry.get("kwargs", {}))
    kwargs["api_key"] = api_key

    return cls(**kwargs)


# =============================================================================
# Cached provider access
# =============================================================================

# Cached providers — reused across calls for connection reuse
_cached_providers: dict[str, LLMProvider] = {}


def _get_or_create_provider(provider_name: str, cache_key: str = "") -> LLMProvider:
    """Get or create a cached provider instance."""
    key = cache_key or provider_name
    if key not in _cached_providers:
        config = get_config()
        _cached_providers[key] = get_provider(provider_name, config.providers)
    return _cached_providers[key]


def get_simulation_provider(model_string: str | None = None) -> LLMProvider:
    """Get the cached provider for a conversation-run model string.

    Defaults to the provider of the resolved simulation strong model.
    """
    if model_string is None:
        model_string = get_config().resolve_sim_strong()
    provider, _ = parse_model_string(model_string)
    return _get_or_create_provider(provider, f"simulation:{provider}")


async def close_simulation_provider() -> None:
    """Close cached providers' async clients.

    Call this before the event loop shuts down to cleanly release
    HTTP connections and avoid 'Event loop is closed' errors.
    """
    for provider in list(_cached_providers.values()):
        await provider.close_async()
    _cached_providers.clear()


def reset_provider_cache() -> None:
    """Reset the provider cache (for testing)."""
    _cached_providers.clear()


__all__ = [
    "LLMProvider",
    "TokenUsage",
    "get_provider",
    "get_simulation_provider",
    "close_simulation_provider",
    "reset_provider_cache",
    "parse_model_string",
]
