"""
tests/unit/test_router.py — LLM Router Tests

Covers:
  - Fallback chain table and filtering (never the primary, never duplicates)
  - Primary success: no fallback attempted
  - Primary failure: chain walked strictly in order
  - Unavailable primary skipped without a call
  - Total failure: RoutingExhaustedError naming the primary and its error
  - Nothing available: ConfigurationError
  - Mode parameters and request overrides reach the adapter
  - Successful calls recorded in UsageStats
  - from_settings builds adapters only for available providers
  - check_provider_health / test_connection
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from sidekick.brain.router import FALLBACK_CHAINS, LLMRouter, fallback_chain
from sidekick.brain.types import (
    BehavioralMode,
    GenerationRequest,
    GenerationResult,
    Provider,
    SpecialistType,
    TokenUsage,
)
from sidekick.exceptions import (
    ConfigurationError,
    ProviderConnectionError,
    ProviderRateLimitError,
    RoutingExhaustedError,
)

G, O, OA, A = Provider.GROQ, Provider.OLLAMA, Provider.OPENAI, Provider.ANTHROPIC


# ── Helpers ───────────────────────────────────────────────────────────────────

def _ok(provider: Provider, content: str = "ok", tokens: tuple[int, int] = (10, 5)) -> MagicMock:
    client = MagicMock()
    client.provider = provider

    async def _generate(messages, config):
        return GenerationResult(
            content=content,
            provider=provider,
            model=config.model,
            usage=TokenUsage(input_tokens=tokens[0], output_tokens=tokens[1]),
            execution_time_ms=12,
        )

    client.generate = AsyncMock(side_effect=_generate)
    client.health_check = AsyncMock(return_value=True)
    return client


def _failing(provider: Provider, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.provider = provider
    client.generate = AsyncMock(
        side_effect=error or ProviderConnectionError(f"{provider.value} down", provider=provider.value)
    )
    client.health_check = AsyncMock(return_value=False)
    return client


def _request(**kwargs) -> GenerationRequest:
    defaults = dict(
        system_prompt="You are a helpful assistant.",
        user_message="Hello",
        specialist=SpecialistType.REFLECTION,
        mode=BehavioralMode.EXPLORATORY,
    )
    defaults.update(kwargs)
    return GenerationRequest(**defaults)


# ─────────────────────────────────────────────────────────────────────────────
# Fallback chains
# ─────────────────────────────────────────────────────────────────────────────


class TestFallbackChains:
    def test_table_verbatim(self):
        assert FALLBACK_CHAINS[G] == (O, A, OA)
        assert FALLBACK_CHAINS[O] == (G, A, OA)
        assert FALLBACK_CHAINS[OA] == (G, O, A)
        assert FALLBACK_CHAINS[A] == (G, O, OA)

    @pytest.mark.parametrize("primary", list(Provider))
    def test_never_contains_primary_or_duplicates(self, primary):
        chain = fallback_chain(primary, set(Provider))
        assert primary not in chain
        assert len(chain) == len(set(chain))

    def test_filtered_by_availability_order_kept(self):
        assert fallback_chain(G, {G, OA, O}) == [O, OA]

    def test_bad_table_entries_are_dropped(self):
        chains = {G: (G, O, O, A)}
        assert fallback_chain(G, set(Provider), chains) == [O, A]


# ─────────────────────────────────────────────────────────────────────────────
# route()
# ─────────────────────────────────────────────────────────────────────────────


class TestRoute:
    @pytest.mark.asyncio
    async def test_primary_success_no_fallback(self):
        groq, ollama = _ok(G, "from groq"), _ok(O)
        router = LLMRouter(primary=G, clients={G: groq, O: ollama})

        result = await router.route(_request())

        assert result.content == "from groq"
        assert result.provider == G
        groq.generate.assert_awaited_once()
        ollama.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_fallback_walks_chain_in_order(self):
        calls: list[Provider] = []

        def _tracking(client, provider):
            inner = client.generate.side_effect

            async def _gen(messages, config):
                calls.append(provider)
                if isinstance(inner, Exception):
                    raise inner
                return await inner(messages, config)

            client.generate = AsyncMock(side_effect=_gen)
            return client

        clients = {
            G: _tracking(_failing(G), G),
            O: _tracking(_failing(O), O),
            A: _tracking(_ok(A, "from anthropic"), A),
            OA: _tracking(_ok(OA), OA),
        }
        router = LLMRouter(primary=G, clients=clients)

        result = await router.route(_request())

        assert result.provider == A
        assert calls == [G, O, A]
        clients[OA].generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limited_primary_falls_back(self):
        router = LLMRouter(
            primary=OA,
            clients={OA: _failing(OA, ProviderRateLimitError("429", provider="openai")), G: _ok(G)},
        )
        result = await router.route(_request())
        assert result.provider == G

    @pytest.mark.asyncio
    async def test_unavailable_primary_skipped_without_call(self):
        ollama = _ok(O, "local answer")
        router = LLMRouter(primary=G, clients={O: ollama})

        result = await router.route(_request())

        assert result.provider == O
        assert result.content == "local answer"
        assert result.model == "llama3.1:8b"

    @pytest.mark.asyncio
    async def test_all_fail_raises_exhausted_naming_primary(self):
        router = LLMRouter(
            primary=G,
            clients={
                G: _failing(G, ProviderConnectionError("groq exploded", provider="groq")),
                O: _failing(O),
            },
        )
        with pytest.raises(RoutingExhaustedError) as exc_info:
            await router.route(_request())

        err = exc_info.value
        assert err.primary == "groq"
        assert "groq exploded" in str(err)
        assert str(err).startswith("All LLM providers failed. Primary: groq")
        assert err.attempts == ["groq", "ollama"]

    @pytest.mark.asyncio
    async def test_unavailable_primary_and_failing_chain_names_primary(self):
        router = LLMRouter(primary=A, clients={O: _failing(O)})
        with pytest.raises(RoutingExhaustedError) as exc_info:
            await router.route(_request())
        assert exc_info.value.primary == "anthropic"
        assert exc_info.value.attempts == ["ollama"]

    @pytest.mark.asyncio
    async def test_nothing_available_is_configuration_error(self):
        router = LLMRouter(primary=G, clients={})
        with pytest.raises(ConfigurationError):
            await router.route(_request())

    @pytest.mark.asyncio
    async def test_mode_parameters_reach_adapter(self):
        groq = _ok(G)
        router = LLMRouter(primary=G, clients={G: groq}, timeout_seconds=12.5)

        await router.route(_request(mode=BehavioralMode.DECISION, specialist=SpecialistType.STRATEGY))

        config = groq.generate.call_args.args[1]
        assert config.temperature == 0.4
        assert config.max_tokens == 2000
        assert config.top_p == 0.9
        assert config.model == "mixtral-8x7b-32768"
        assert config.timeout_seconds == 12.5

    @pytest.mark.asyncio
    async def test_request_overrides_win(self):
        groq = _ok(G)
        router = LLMRouter(primary=G, clients={G: groq})

        await router.route(_request(temperature=0.1, max_tokens=10))

        config = groq.generate.call_args.args[1]
        assert config.temperature == 0.1
        assert config.max_tokens == 10
        assert config.top_p == 0.95

    @pytest.mark.asyncio
    async def test_model_override_applies_to_every_provider(self):
        groq, ollama = _failing(G), _ok(O)
        router = LLMRouter(
            primary=G,
            clients={G: groq, O: ollama},
            model_overrides={SpecialistType.REFLECTION: "my-model"},
        )
        result = await router.route(_request())
        assert groq.generate.call_args.args[1].model == "my-model"
        assert result.model == "my-model"

    @pytest.mark.asyncio
    async def test_messages_are_system_then_user(self):
        groq = _ok(G)
        router = LLMRouter(primary=G, clients={G: groq})
        await router.route(_request(system_prompt="SYS", user_message="USR"))
        messages = groq.generate.call_args.args[0]
        assert [m.content for m in messages] == ["SYS", "USR"]

    @pytest.mark.asyncio
    async def test_success_recorded_in_stats(self):
        router = LLMRouter(primary=G, clients={G: _failing(G), O: _ok(O, tokens=(3, 4))})

        await router.route(_request())
        snap = await router.stats.snapshot()

        assert snap.total_requests == 1
        assert snap.total_tokens == 7
        assert snap.model_usage == {"llama3.1:8b": 1}

    @pytest.mark.asyncio
    async def test_failures_not_recorded(self):
        router = LLMRouter(primary=G, clients={G: _failing(G)})
        with pytest.raises(RoutingExhaustedError):
            await router.route(_request())
        assert (await router.stats.snapshot()).total_requests == 0


# ─────────────────────────────────────────────────────────────────────────────
# Construction and diagnostics
# ─────────────────────────────────────────────────────────────────────────────


class TestFromSettings:
    def test_builds_only_available_providers(self):
        from sidekick.config.settings import Settings
        settings = Settings(GROQ_API_KEY="gsk-test", AI_PROVIDER="openai")

        router = LLMRouter.from_settings(settings)

        assert router.primary == OA
        assert router.available_providers == [G, O]
        assert not router.is_available(OA)
        assert router.fallback_chain() == [G, O]

    def test_timeout_from_settings(self):
        from sidekick.config.settings import Settings
        settings = Settings(llm={"timeout_seconds": 5})
        router = LLMRouter.from_settings(settings)
        assert router._timeout == 5

    def test_client_for_unconfigured_raises(self):
        router = LLMRouter(primary=G, clients={})
        with pytest.raises(ConfigurationError):
            router.client_for(A)


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_remote_health_is_key_check(self):
        groq = _ok(G)
        router = LLMRouter(primary=G, clients={G: groq})
        health = await router.check_provider_health()
        assert health.available is True
        groq.health_check.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_key_reported(self):
        router = LLMRouter(primary=A, clients={})
        health = await router.check_provider_health()
        assert health.available is False
        assert "not configured" in health.error

    @pytest.mark.asyncio
    async def test_ollama_health_is_reachability(self):
        ollama = _failing(O)
        router = LLMRouter(primary=O, clients={O: ollama})
        health = await router.check_provider_health()
        assert health.available is False
        ollama.health_check.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_test_connection_ok(self):
        groq = _ok(G, "OK")
        router = LLMRouter(primary=G, clients={G: groq})
        assert await router.test_connection() is True
        assert groq.generate.call_args.args[1].max_tokens == 10

    @pytest.mark.asyncio
    async def test_test_connection_exhausted(self):
        router = LLMRouter(primary=G, clients={G: _failing(G)})
        assert await router.test_connection() is False
