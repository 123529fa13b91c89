"""
brain/anthropic_client.py — Anthropic Messages Adapter

Supports: Claude 3.5 Sonnet, Claude 3.5 Haiku, and later models.

Key differences from the OpenAI format:
  - System prompt is a separate top-level param, not a message
  - Reply text arrives as a list of typed content blocks
  - Usage is reported as input_tokens / output_tokens
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import anthropic
from anthropic import AsyncAnthropic

from sidekick.brain.llm_client import (
    BaseLLMClient,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    elapsed_ms,
    split_system,
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


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude adapter. Requires ANTHROPIC_API_KEY."""

    provider = Provider.ANTHROPIC

    def __init__(self, api_key: str, base_url: Optional[str] = None):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> GenerationResult:
        system_prompt, ant_messages = self._to_provider_messages(messages)

        log.debug(
            "anthropic.generate.start",
            model=config.model,
            message_count=len(messages),
            has_system=bool(system_prompt),
        )

        started = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=config.model,
                system=system_prompt or anthropic.NOT_GIVEN,
                messages=ant_messages,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                top_p=config.top_p if config.top_p is not None else anthropic.NOT_GIVEN,
                timeout=config.timeout_seconds,
            )
        except anthropic.AuthenticationError as e:
            raise ProviderConnectionError(
                f"Anthropic API error: 401 - {e}",
                provider="anthropic", status_code=401, body=_error_body(e),
            ) from e
        except anthropic.RateLimitError as e:
            raise ProviderRateLimitError(
                f"Anthropic API error: 429 - {e}", provider="anthropic", body=_error_body(e),
            ) from e
        except (anthropic.BadRequestError, anthropic.NotFoundError) as e:
            raise ProviderRequestError(
                f"Anthropic API error: {e.status_code} - {e}",
                provider="anthropic", status_code=e.status_code, body=_error_body(e),
            ) from e
        except anthropic.APIConnectionError as e:
            raise ProviderConnectionError(f"Anthropic unreachable: {e}", provider="anthropic") from e
        except anthropic.APIStatusError as e:
            raise ProviderError(
                f"Anthropic API error: {e.status_code} - {e}",
                provider="anthropic", status_code=e.status_code, body=_error_body(e),
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}", provider="anthropic") from e

        result = self._from_provider_response(response, config, elapsed_ms(started))
        log.debug(
            "anthropic.generate.complete",
            model=result.model,
            tokens_used=result.tokens_used,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    async def health_check(self) -> bool:
        """
        Verify the API key without generating any tokens.

        models.list() consumes nothing and needs no hardcoded model name.
        """
        try:
            await self._client.models.list()
            return True
        except anthropic.APIError as e:
            log.warning("anthropic.health_check.failed", error=str(e), error_type=type(e).__name__)
            return False

    # ── Private helpers ───────────────────────────────────────────────────────

    def _to_provider_messages(
        self, messages: list[Message]
    ) -> tuple[Optional[str], list[dict]]:
        """
        Translate internal Message list → Anthropic format.

        Returns (system_prompt, messages_list).
        """
        system_prompt, rest = split_system(messages)
        result = [
            {"role": "assistant" if m.role == Role.ASSISTANT else "user", "content": m.content}
            for m in rest
        ]
        return system_prompt, result

    def _from_provider_response(
        self, response: Any, config: LLMConfig, execution_time_ms: int
    ) -> GenerationResult:
        """Translate an Anthropic Message → GenerationResult. Raises on a malformed body."""
        try:
            texts = [block.text for block in response.content if block.type == "text"]
        except (AttributeError, TypeError) as e:
            raise ProviderResponseError(
                f"Anthropic returned a malformed response: {e}", provider="anthropic",
            ) from e
        if not texts:
            raise ProviderResponseError("Anthropic returned no text content", provider="anthropic")

        usage: Optional[TokenUsage] = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = TokenUsage(
                input_tokens=raw_usage.input_tokens or 0,
                output_tokens=raw_usage.output_tokens or 0,
            )

        return GenerationResult(
            content="".join(texts),
            provider=Provider.ANTHROPIC,
            model=config.model,
            usage=usage,
            execution_time_ms=execution_time_ms,
        )


def _error_body(exc: Exception) -> Optional[str]:
    body = getattr(exc, "body", None)
    if body is None or isinstance(body, str):
        return body
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return str(body)
