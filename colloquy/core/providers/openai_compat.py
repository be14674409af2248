"""OpenAI-compatible LLM Provider for third-party endpoints.

Supports any provider that implements the OpenAI Chat Completions API:
OpenRouter, DeepSeek, Together, Groq, self-hosted gateways, etc.
Uses ``json_schema`` response format for structured output.
"""

import json
import logging

import openai
from openai import AsyncOpenAI

from .base import LLMProvider, TokenUsage
from .logging import log_request_response

logger = logging.getLogger(__name__)


class OpenAICompatProvider(LLMProvider):
    """OpenAI-compatible provider for third-party endpoints."""

    transient_errors = (
        openai.APIConnectionError,
        openai.InternalServerError,
        openai.RateLimitError,
    )

    def __init__(
        self,
        api_key: str = "",
        *,
        base_url: str = "",
        provider_label: str = "openai_compat",
        default_fast: str = "gpt-5-mini",
    ) -> None:
        if not api_key:
            raise ValueError(
                f"API key not found for {provider_label}. "
                f"Set it as an environment variable."
            )
        super().__init__(api_key)
        self._base_url = base_url
        self.provider_name = provider_label
        self._default_fast = default_fast

    @property
    def default_fast_model(self) -> str:
        return self._default_fast

    def _get_async_client(self) -> AsyncOpenAI:
        if self._cached_async_client is None:
            kwargs: dict = {"api_key": self._api_key}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._cached_async_client = AsyncOpenAI(**kwargs)
        return self._cached_async_client

    async def simple_call_async(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str = "response",
        model: str | None = None,
        max_tokens: int | None = None,
        log: bool = True,
    ) -> tuple[dict, TokenUsage]:
        model = model or self.default_fast_model
        client = self._get_async_client()

        params: dict = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "strict": True,
                    "schema": response_schema,
                },
            },
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        response = await self._with_retry_async(
            lambda: client.chat.completions.create(**params)
        )

        raw_text = None
        if response.choices:
            raw_text = response.choices[0].message.content
        structured_data = json.loads(raw_text) if raw_text else None

        usage = TokenUsage()
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                input_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
            )

        if log:
            log_request_response(
                function_name="simple_call_async",
                request=params,
                response=response,
                provider=self.provider_name,
            )

        return structured_data or {}, usage
