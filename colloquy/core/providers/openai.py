"""OpenAI LLM Provider implementation."""

import json
import logging

import openai
from openai import AsyncOpenAI

from .base import LLMProvider, TokenUsage
from .logging import log_request_response


logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider supporting both Responses API and Chat Completions API.

    The api_format parameter controls which API is used:
    - "responses" (default): Uses the Responses API (client.responses.create)
    - "chat_completions": Uses the Chat Completions API (client.chat.completions.create)
    """

    provider_name = "openai"
    transient_errors = (
        openai.APIConnectionError,
        openai.InternalServerError,
        openai.RateLimitError,
    )

    def __init__(self, api_key: str = "", *, api_format: str = "responses") -> None:
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY not found. Set it as an environment variable.\n"
                "  export OPENAI_API_KEY=sk-..."
            )
        super().__init__(api_key)
        self._api_format = api_format

    @property
    def default_fast_model(self) -> str:
        return "gpt-5-mini"

    @staticmethod
    def _extract_output_text(response) -> str | None:
        """Extract the output text content from a Responses API response.

        Traverses response.output looking for a message with output_text content.
        """
        for item in response.output:
            if getattr(item, "type", None) != "message":
                continue
            for content_item in item.content:
                if getattr(content_item, "type", None) == "output_text":
                    return getattr(content_item, "text", None)
        return None

    @staticmethod
    def _extract_chat_completions_text(response) -> str | None:
        """Extract text content from a Chat Completions API response."""
        if response.choices:
            content = response.choices[0].message.content
            if content:
                return content
        return None

    def _build_responses_params(
        self,
        model: str,
        prompt: str,
        schema: dict,
        schema_name: str,
        max_tokens: int | None,
    ) -> dict:
        """Build request parameters for the Responses API."""
        params = {
            "model": model,
            "input": prompt,
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "strict": True,
                    "schema": schema,
                }
            },
        }
        if max_tokens is not None:
            params["max_output_tokens"] = max_tokens
        return params

    def _build_chat_completions_params(
        self,
        model: str,
        prompt: str,
        schema: dict,
        schema_name: str,
        max_tokens: int | None,
    ) -> dict:
        """Build request parameters for the Chat Completions API."""
        params: dict = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "strict": True,
                    "schema": schema,
                },
            },
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        return params

    def _get_async_client(self) -> AsyncOpenAI:
        if self._cached_async_client is None:
            self._cached_async_client = AsyncOpenAI(api_key=self._api_key)
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
        use_chat = self._api_format == "chat_completions"

        if use_chat:
            request_params = self._build_chat_completions_params(
                model, prompt, response_schema, schema_name, max_tokens
            )
            response = await self._with_retry_async(
                lambda: client.chat.completions.create(**request_params)
            )
            raw_text = self._extract_chat_completions_text(response)
        else:
            request_params = self._build_responses_params(
                model, prompt, response_schema, schema_name, max_tokens
            )
            response = await self._with_retry_async(
                lambda: client.responses.create(**request_params)
            )
            raw_text = self._extract_output_text(response)

        structured_data = json.loads(raw_text) if raw_text else None

        usage = TokenUsage()
        if getattr(response, "usage", None) is not None:
            if use_chat:
                usage = TokenUsage(
                    input_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
                    output_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
                )
            else:
                usage = TokenUsage(
                    input_tokens=getattr(response.usage, "input_tokens", 0) or 0,
                    output_tokens=getattr(response.usage, "output_tokens", 0) or 0,
                )

        if log:
            log_request_response(
                function_name="simple_call_async",
                request=request_params,
                response=response,
                provider=self.provider_name,
            )

        return structured_data or {}, usage
