"""Abstract base class for LLM providers."""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_MAX_API_RETRIES = 3


@dataclass
class TokenUsage:
    """Token usage from a single LLM API call."""

    input_tokens: int = 0
    output_tokens: int = 0


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    All providers implement ``simple_call_async`` with the same signature
    so they can be swapped behind the ``provider/model`` config strings.

    Args:
        api_key: API key or access token for the provider.
    """

    provider_name: str = "unknown"

    # Exception types worth retrying (override in subclasses)
    transient_errors: tuple[type[Exception], ...] = ()

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._cached_async_client = None

    async def close_async(self) -> None:
        """Close the cached async client to release connections cleanly.

        Must be called before the event loop shuts down to avoid
        'Event loop is closed' errors from orphaned httpx connections.
        """
        if self._cached_async_client is not None:
            await self._cached_async_client.close()
            self._cached_async_client = None

    async def _with_retry_async(self, fn, max_retries: int = _MAX_API_RETRIES):
        """Retry an async API call on transient errors with exponential backoff."""
        for attempt in range(max_retries + 1):
            try:
                return await fn()
            except self.transient_errors as e:
                if attempt == max_retries:
                    raise
                wait = (2**attempt) + random.random()
                logger.warning(
                    f"[{self.provider_name}] Transient error "
                    f"(attempt {attempt + 1}/{max_retries + 1}): "
                    f"{type(e).__name__}: {e}. Retrying in {wait:.1f}s"
                )
                await asyncio.sleep(wait)

    @property
    @abstractmethod
    def default_fast_model(self) -> str:
        """Default model when the caller passes none."""
        ...

    @abstractmethod
    async def simple_call_async(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str = "response",
        model: str | None = None,
        max_tokens: int | None = None,
        log: bool = True,
    ) -> tuple[dict, TokenUsage]:
        """Structured-output call, no reasoning, no web search."""
        ...
