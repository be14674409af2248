"""LLM client facade for Colloquy.

A single entry point, ``simple_call_async``, routes a structured-output
request to the right backend:
- conversation turns use simulation.strong (opening lines, replies)
- withdrawal decisions and memory summaries pass the fast model explicitly

Model strings use "provider/model" format. The provider is extracted to route
to the correct backend; the model name is passed through.

Configure via `colloquy config` CLI or programmatically via colloquy.config.configure().
"""

from .providers import get_simulation_provider
from .providers.base import TokenUsage
from ..config import get_config, parse_model_string


__all__ = [
    "simple_call_async",
    "TokenUsage",
]


async def simple_call_async(
    prompt: str,
    response_schema: dict,
    schema_name: str = "response",
    model: str | None = None,
    max_tokens: int | None = None,
) -> tuple[dict, TokenUsage]:
    """Structured-output LLM call, no reasoning, no web search.

    Model is passed explicitly by the caller (provider/model format) and
    defaults to the simulation strong model.
    Returns (structured_data, token_usage) tuple.
    """
    config = get_config()
    model_string = model or config.resolve_sim_strong()
    _, model_name = parse_model_string(model_string)
    provider = get_simulation_provider(model_string)
    return await provider.simple_call_async(
        prompt=prompt,
        response_schema=response_schema,
        schema_name=schema_name,
        model=model_name,
        max_tokens=max_tokens,
    )
