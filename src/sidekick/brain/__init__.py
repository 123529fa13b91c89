"""
brain/__init__.py — Sidekick LLM Brain
"""

from __future__ import annotations

from typing import Optional

from sidekick.brain.llm_client import BaseLLMClient
from sidekick.brain.models import AGENT_MODELS, parameters_for, resolve_model
from sidekick.brain.router import FALLBACK_CHAINS, LLMRouter, ProviderHealth, fallback_chain
from sidekick.brain.stats import UsageSnapshot, UsageStats
from sidekick.brain.types import (
    BehavioralMode,
    GenerationRequest,
    GenerationResult,
    LLMConfig,
    Message,
    ModelParameters,
    Provider,
    Role,
    SpecialistType,
    TokenUsage,
)
from sidekick.exceptions import (
    ConfigurationError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    RoutingExhaustedError,
)

__all__ = [
    "LLMClientFactory",
    "BaseLLMClient",
    "LLMRouter",
    "ProviderHealth",
    "FALLBACK_CHAINS",
    "fallback_chain",
    "AGENT_MODELS",
    "resolve_model",
    "parameters_for",
    "UsageStats",
    "UsageSnapshot",
    "BehavioralMode",
    "GenerationRequest",
    "GenerationResult",
    "LLMConfig",
    "Message",
    "ModelParameters",
    "Provider",
    "Role",
    "SpecialistType",
    "TokenUsage",
    "ConfigurationError",
    "ProviderError",
    "ProviderConnectionError",
    "ProviderRateLimitError",
    "ProviderRequestError",
    "ProviderResponseError",
    "RoutingExhaustedError",
]


class LLMClientFactory:

    @staticmethod
    def create(
        provider: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> BaseLLMClient:

        provider = provider.lower().strip()

        if provider == "groq":
            if not api_key:
                raise ConfigurationError("GROQ_API_KEY is required for provider 'groq'")
            from sidekick.brain.groq_client import GroqClient
            return GroqClient(api_key=api_key, **({"base_url": base_url} if base_url else {}))

        elif provider == "openai":
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for provider 'openai'")
            from sidekick.brain.openai_client import OpenAIClient
            return OpenAIClient(api_key=api_key, base_url=base_url)

        elif provider == "anthropic":
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for provider 'anthropic'")
            from sidekick.brain.anthropic_client import AnthropicClient
            return AnthropicClient(api_key=api_key, base_url=base_url)

        elif provider == "ollama":
            from sidekick.brain.ollama_client import DEFAULT_OLLAMA_URL, OllamaClient
            return OllamaClient(base_url=base_url or DEFAULT_OLLAMA_URL)

        else:
            raise ValueError(
                f"Unknown LLM provider: '{provider}'. "
                f"Valid options: groq, ollama, openai, anthropic"
            )
