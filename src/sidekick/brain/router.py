"""
brain/router.py — LLM Router with Provider Fallback

Resolves provider + model + sampling parameters for a GenerationRequest,
calls the primary provider adapter, and on failure walks that provider's
fallback chain until one succeeds.

Rules:
  - Fallback chains are a static, hand-specified priority list per primary
    provider (FALLBACK_CHAINS). They are filtered by availability but never
    reordered by latency or cost.
  - Attempts are strictly sequential, never fanned out in parallel.
  - An unavailable primary (e.g. missing API key) is skipped without a call.
  - A chain never contains the primary and never repeats a provider.
  - Total failure raises RoutingExhaustedError naming the primary.

Usage:
    router = LLMRouter.from_settings(settings)
    result = await router.route(GenerationRequest(
        system_prompt="You are a helpful assistant.",
        user_message="Say hello.",
        specialist=SpecialistType.REFLECTION,
        mode=BehavioralMode.EXPLORATORY,
    ))
"""

from __future__ import annotations

from typing import Mapping, Optional

from pydantic import BaseModel

from sidekick.brain.llm_client import BaseLLMClient
from sidekick.brain.models import AGENT_MODELS, ModelEntry, parameters_for, resolve_model
from sidekick.brain.stats import UsageStats
from sidekick.brain.types import (
    BehavioralMode,
    GenerationRequest,
    GenerationResult,
    LLMConfig,
    Provider,
    SpecialistType,
)
from sidekick.exceptions import ConfigurationError, ProviderError, RoutingExhaustedError
from sidekick.observability.logger import get_logger

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Fallback table
# ─────────────────────────────────────────────────────────────────────────────

FALLBACK_CHAINS: dict[Provider, tuple[Provider, ...]] = {
    Provider.GROQ:      (Provider.OLLAMA, Provider.ANTHROPIC, Provider.OPENAI),
    Provider.OLLAMA:    (Provider.GROQ, Provider.ANTHROPIC, Provider.OPENAI),
    Provider.OPENAI:    (Provider.GROQ, Provider.OLLAMA, Provider.ANTHROPIC),
    Provider.ANTHROPIC: (Provider.GROQ, Provider.OLLAMA, Provider.OPENAI),
}


def fallback_chain(
    primary: Provider,
    available: set[Provider] | frozenset[Provider],
    chains: Mapping[Provider, tuple[Provider, ...]] = FALLBACK_CHAINS,
) -> list[Provider]:
    """Ordered fallback providers for `primary`, filtered to available ones."""
    chain: list[Provider] = []
    for provider in chains.get(primary, ()):
        if provider == primary or provider in chain or provider not in available:
            continue
        chain.append(provider)
    return chain


class ProviderHealth(BaseModel):
    provider: Provider
    available: bool
    error: Optional[str] = None


# ─────────────────────────────────────────────────────────────────────────────
# Router
# ─────────────────────────────────────────────────────────────────────────────


class LLMRouter:
    """
    Routes GenerationRequests across provider adapters.

    `clients` holds one adapter per *available* provider; a provider's
    availability predicate is simply membership in this mapping. Build it
    with from_settings(), which only instantiates adapters whose API key is
    configured (the local Ollama adapter is always built).
    """

    def __init__(
        self,
        primary: Provider,
        clients: Mapping[Provider, BaseLLMClient],
        model_overrides: Optional[Mapping[SpecialistType, str]] = None,
        stats: Optional[UsageStats] = None,
        timeout_seconds: float = 60.0,
        chains: Mapping[Provider, tuple[Provider, ...]] = FALLBACK_CHAINS,
        model_table: Mapping[SpecialistType, ModelEntry] = AGENT_MODELS,
    ):
        self.primary = primary
        self._clients = dict(clients)
        self._overrides = dict(model_overrides or {})
        self.stats = stats if stats is not None else UsageStats()
        self._timeout = timeout_seconds
        self._chains = chains
        self._table = model_table

    @classmethod
    def from_settings(cls, settings, stats: Optional[UsageStats] = None) -> "LLMRouter":
        from sidekick.brain import LLMClientFactory

        clients: dict[Provider, BaseLLMClient] = {}
        for provider in Provider:
            if not settings.is_provider_available(provider):
                log.debug("router.provider_unavailable", provider=provider.value)
                continue
            clients[provider] = LLMClientFactory.create(
                provider.value,
                api_key=settings.api_key_for(provider),
                base_url=settings.ollama_base_url if provider == Provider.OLLAMA else None,
            )

        return cls(
            primary=settings.active_provider,
            clients=clients,
            model_overrides=settings.model_overrides,
            stats=stats,
            timeout_seconds=settings.llm.timeout_seconds,
        )

    # ── Availability ─────────────────────────────────────────────────────────

    def is_available(self, provider: Provider) -> bool:
        return provider in self._clients

    @property
    def available_providers(self) -> list[Provider]:
        return [p for p in Provider if p in self._clients]

    def fallback_chain(self, primary: Optional[Provider] = None) -> list[Provider]:
        return fallback_chain(primary or self.primary, frozenset(self._clients), self._chains)

    def client_for(self, provider: Provider) -> BaseLLMClient:
        try:
            return self._clients[provider]
        except KeyError:
            raise ConfigurationError(f"Provider '{provider.value}' is not configured") from None

    # ── Routing ──────────────────────────────────────────────────────────────

    async def route(self, request: GenerationRequest) -> GenerationResult:
        """
        Serve `request` from the primary provider or the first fallback that
        succeeds. Raises RoutingExhaustedError if every attempt fails and
        ConfigurationError if no provider is usable at all.
        """
        params = parameters_for(request.mode)
        temperature = request.temperature if request.temperature is not None else params.temperature
        max_tokens = request.max_tokens if request.max_tokens is not None else params.max_tokens
        top_p = request.top_p if request.top_p is not None else params.top_p

        messages = request.to_messages()
        primary = self.primary
        attempts: list[str] = []

        def config_for(provider: Provider) -> LLMConfig:
            return LLMConfig(
                model=resolve_model(request.specialist, provider, self._overrides, self._table),
                temperature=temperature,
                max_tokens=max_tokens,
                top_p=top_p,
                timeout_seconds=self._timeout,
            )

        primary_error: Optional[Exception] = None
        if self.is_available(primary):
            config = config_for(primary)
            attempts.append(primary.value)
            try:
                result = await self._clients[primary].generate(messages, config)
                await self._record(result)
                log.info(
                    "router.served",
                    provider=result.provider.value,
                    model=result.model,
                    specialist=request.specialist.value,
                    mode=request.mode.value,
                    fallback=False,
                )
                return result
            except ProviderError as e:
                primary_error = e
                log.warning(
                    "router.primary_failed",
                    provider=primary.value,
                    model=config.model,
                    status_code=e.status_code,
                    error=str(e),
                )
        else:
            primary_error = ConfigurationError(
                f"provider '{primary.value}' is not available (no API key configured)"
            )
            log.warning("router.primary_unavailable", provider=primary.value)

        chain = self.fallback_chain(primary)
        if not chain and not attempts:
            raise ConfigurationError(
                f"No LLM provider is available. Primary '{primary.value}' is not "
                f"configured and none of its fallbacks are."
            )

        for candidate in chain:
            config = config_for(candidate)
            attempts.append(candidate.value)
            log.info("router.fallback", from_provider=primary.value, to_provider=candidate.value,
                     model=config.model)
            try:
                result = await self._clients[candidate].generate(messages, config)
            except ProviderError as e:
                log.warning(
                    "router.fallback_failed",
                    provider=candidate.value,
                    model=config.model,
                    status_code=e.status_code,
                    error=str(e),
                )
                continue
            await self._record(result)
            log.info(
                "router.served",
                provider=result.provider.value,
                model=result.model,
                specialist=request.specialist.value,
                mode=request.mode.value,
                fallback=True,
            )
            return result

        log.error("router.exhausted", primary=primary.value, attempts=attempts)
        raise RoutingExhaustedError(primary.value, primary_error, attempts)

    async def _record(self, result: GenerationResult) -> None:
        await self.stats.record(result.model, result.tokens_used, result.execution_time_ms)

    # ── Diagnostics ──────────────────────────────────────────────────────────

    async def check_provider_health(self, provider: Optional[Provider] = None) -> ProviderHealth:
        """
        Remote vendors: available iff the API key is configured.
        Ollama: available iff the local server answers.
        """
        provider = provider or self.primary
        if not self.is_available(provider):
            return ProviderHealth(
                provider=provider,
                available=False,
                error=f"{provider.value} API key not configured",
            )
        if provider == Provider.OLLAMA:
            reachable = await self._clients[provider].health_check()
            return ProviderHealth(
                provider=provider,
                available=reachable,
                error=None if reachable else "Ollama server not reachable",
            )
        return ProviderHealth(provider=provider, available=True)

    async def test_connection(self) -> bool:
        """Round-trip a tiny prompt through the router."""
        try:
            result = await self.route(GenerationRequest(
                system_prompt="You are a helpful assistant.",
                user_message='Say "OK" if you can read this.',
                specialist=SpecialistType.REFLECTION,
                mode=BehavioralMode.EXPLORATORY,
                max_tokens=10,
            ))
        except (RoutingExhaustedError, ConfigurationError) as e:
            log.error("router.test_connection_failed", error=str(e))
            return False
        return "ok" in result.content.lower()

    def __repr__(self) -> str:
        return (
            f"<LLMRouter primary={self.primary.value} "
            f"available={[p.value for p in self.available_providers]}>"
        )
