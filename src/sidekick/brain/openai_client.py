"""
brain/openai_client.py — OpenAI Chat Completions Adapter

Talks to the official OpenAI endpoint and, via base_url, to any
OpenAI-compatible chat-completions endpoint. GroqClient and OllamaClient
reuse it with their own base URL and provider tag.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from sidekick.brain.llm_client import (
    BaseLLMClient,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    elapsed_ms,
)
from sidekick.brain.types import (
    GenerationResult,
    LLMConfig,
    Message,
    Provider,
    Role,
    TokenUsage,
)
from sidekick.observability.logger import get_logger

log = get_logger(__name__)


class OpenAIClient(BaseLLMClient):
    """
    OpenAI API adapter (also works with any OpenAI-compatible endpoint
    e.g. Groq, Ollama's /v1, LiteLLM proxy).
    """

    provider = Provider.OPENAI

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,     # None = official OpenAI endpoint
        provider: Provider = Provider.OPENAI,
        default_headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url)
        self.provider = provider
        # max_retries=0: the router owns fallback, the adapter calls once
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
            max_retries=0,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> GenerationResult:
        name = self.provider.value
        log.debug(
            f"{name}.generate.start",
            model=config.model,
            message_count=len(messages),
        )

        started = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=config.model,
                messages=self._to_provider_messages(messages),
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                top_p=config.top_p if config.top_p is not None else openai.NOT_GIVEN,
                timeout=config.timeout_seconds,
            )
        except openai.AuthenticationError as e:
            raise ProviderConnectionError(
                f"{name} API error: 401 - {e}", provider=name, status_code=401, body=_error_body(e),
            ) from e
        except openai.RateLimitError as e:
            raise ProviderRateLimitError(
                f"{name} API error: 429 - {e}", provider=name, body=_error_body(e),
            ) from e
        except (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError) as e:
            raise ProviderRequestError(
                f"{name} API error: {e.status_code} - {e}",
                provider=name, status_code=e.status_code, body=_error_body(e),
            ) from e
        except openai.APIConnectionError as e:
            # includes APITimeoutError
            raise ProviderConnectionError(f"{name} unreachable: {e}", provider=name) from e
        except openai.APIStatusError as e:
            raise ProviderError(
                f"{name} API error: {e.status_code} - {e}",
                provider=name, status_code=e.status_code, body=_error_body(e),
            ) from e
        except openai.APIError as e:
            raise ProviderError(f"{name} API error: {e}", provider=name) from e

        result = self._from_provider_response(response, config, elapsed_ms(started))
        log.debug(
            f"{name}.generate.complete",
            model=result.model,
            tokens_used=result.tokens_used,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
            return True
        except openai.APIError as e:
            log.warning(f"{self.provider.value}.health_check.failed", error=str(e), error_type=type(e).__name__)
            return False

    # ── Private helpers ───────────────────────────────────────────────────────

    def _to_provider_messages(self, messages: list[Message]) -> list[dict]:
        """Translate internal Message list → OpenAI chat message format."""
        roles = {Role.SYSTEM: "system", Role.USER: "user", Role.ASSISTANT: "assistant"}
        return [{"role": roles[m.role], "content": m.content} for m in messages]

    def _from_provider_response(
        self, response: Any, config: LLMConfig, execution_time_ms: int
    ) -> GenerationResult:
        """Translate a ChatCompletion → GenerationResult. Raises on a malformed body."""
        name = self.provider.value
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderResponseError(
                f"{name} returned a malformed response: {e}", provider=name,
            ) from e
        if not isinstance(content, str):
            raise ProviderResponseError(f"{name} returned no message content", provider=name)

        usage: Optional[TokenUsage] = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = TokenUsage(
                input_tokens=raw_usage.prompt_tokens or 0,
                output_tokens=raw_usage.completion_tokens or 0,
            )

        return GenerationResult(
            content=content,
            provider=self.provider,
            model=config.model,
            usage=usage,
            execution_time_ms=execution_time_ms,
        )


def _error_body(exc: Exception) -> Optional[str]:
    body = getattr(exc, "body", None)
    if body is None:
        return None
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return str(body)
