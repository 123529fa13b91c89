"""
brain/groq_client.py — Groq Adapter

Groq serves open models (Llama 3.1, Mixtral, Gemma) behind an
OpenAI-compatible API, so we reuse OpenAIClient pointed at api.groq.com.

Popular Groq models:
  - llama-3.1-8b-instant      (very fast, general purpose)
  - llama-3.1-70b-versatile   (stronger reasoning)
  - mixtral-8x7b-32768        (32k context)
"""

from __future__ import annotations

from sidekick.brain.llm_client import BaseLLMClient, ProviderConnectionError
from sidekick.brain.openai_client import OpenAIClient
from sidekick.brain.types import GenerationResult, LLMConfig, Message, Provider
from sidekick.observability.logger import get_logger

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class GroqClient(BaseLLMClient):
    """Groq adapter. Requires GROQ_API_KEY."""

    provider = Provider.GROQ

    def __init__(self, api_key: str, base_url: str = GROQ_BASE_URL):
        super().__init__(api_key=api_key, base_url=base_url)
        self._inner = OpenAIClient(api_key=api_key, base_url=base_url, provider=Provider.GROQ)

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> GenerationResult:
        log.debug("groq.generate.start", model=config.model)
        try:
            return await self._inner.generate(messages, config)
        except ProviderConnectionError as e:
            if e.status_code is not None:
                raise   # auth failure: keep the vendor message
            raise ProviderConnectionError(
                f"Cannot reach Groq API at {self.base_url}: {e}",
                provider="groq",
            ) from e

    async def health_check(self) -> bool:
        return await self._inner.health_check()
