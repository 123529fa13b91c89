"""
brain/llm_client.py — Abstract Provider Adapter

Every vendor adapter (Groq, Ollama, OpenAI, Anthropic) subclasses
BaseLLMClient and implements generate() and health_check().

Each adapter:
  - build the vendor request
  - perform exactly one call (no internal retry; the router owns fallback)
  - normalise a successful reply into GenerationResult
  - translate every failure into a ProviderError subclass
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional

from sidekick.brain.types import GenerationResult, LLMConfig, Message, Provider, Role
from sidekick.exceptions import (  # noqa: F401  re-exported for adapter modules
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
)


class BaseLLMClient(ABC):
    """
    Abstract base for all provider adapters.

    Subclasses must set `provider` and implement:
      - generate()     -> call the vendor once, return normalised GenerationResult
      - health_check() -> verify connectivity to the vendor
    """

    provider: Provider

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> GenerationResult:
        """Call the vendor and return a normalised result."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the vendor is reachable and the credentials are valid."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


def elapsed_ms(started: float) -> int:
    """Milliseconds since a time.monotonic() reading."""
    return max(0, int(round((time.monotonic() - started) * 1000)))


def split_system(messages: list[Message]) -> tuple[Optional[str], list[Message]]:
    """Pull system messages out into a single prompt (for vendors that want it separate)."""
    system_parts = [m.content for m in messages if m.role == Role.SYSTEM and m.content]
    rest = [m for m in messages if m.role != Role.SYSTEM]
    return ("\n\n".join(system_parts) or None), rest
