"""
tests/e2e/test_agent_e2e.py — End-to-End Smoke Tests

Tests the complete Sidekick pipeline from user message → agent response
with a fully wired stack: Settings → LLMClientFactory → LLMRouter →
Orchestrator → conversation memory. Only the vendor adapters' generate()
is replaced; no real network calls.

Coverage:
  - Primary provider succeeds: pricing question → strategy / decision
  - Primary key absent: provider skipped, local Ollama serves the turn
  - Every provider fails: degraded response embedding the primary's error
  - SQLite memory: second turn sees the first after a restart

Run:
    pytest tests/e2e/test_agent_e2e.py -v
"""

from __future__ import annotations

import pytest

from sidekick.agent import Orchestrator, UserContext
from sidekick.brain.anthropic_client import AnthropicClient
from sidekick.brain.groq_client import GroqClient
from sidekick.brain.ollama_client import OllamaClient
from sidekick.brain.openai_client import OpenAIClient
from sidekick.brain.types import (
    BehavioralMode,
    GenerationResult,
    Provider,
    SpecialistType,
    TokenUsage,
)
from sidekick.config.settings import load_settings
from sidekick.exceptions import ProviderConnectionError

PRICING = "How should I price my consulting services?"


# ─────────────────────────────────────────────────────────────────────────────
# Fake vendor calls
# ─────────────────────────────────────────────────────────────────────────────

class CallLog:
    """Records (provider, model, messages) for every adapter call."""

    def __init__(self):
        self.calls: list[tuple[Provider, str, list]] = []

    @property
    def providers(self) -> list[Provider]:
        return [c[0] for c in self.calls]


def _patch_adapter(monkeypatch, cls, provider: Provider, calls: CallLog, reply=None, error=None):
    async def _generate(self, messages, config):
        calls.calls.append((provider, config.model, list(messages)))
        if error is not None:
            raise error
        return GenerationResult(
            content=reply or f"{provider.value} says hi",
            provider=provider,
            model=config.model,
            usage=TokenUsage(input_tokens=100, output_tokens=50),
            execution_time_ms=5,
        )

    monkeypatch.setattr(cls, "generate", _generate)


@pytest.fixture
def calls() -> CallLog:
    return CallLog()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "llm:\n"
        "  provider: groq\n"
        "  timeout_seconds: 10\n"
        "memory:\n"
        "  backend: sqlite\n"
        f"  sqlite_path: {tmp_path / 'conversations.db'}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def ctx() -> UserContext:
    return UserContext(
        user_id="e2e-user",
        current_project="Independent consulting",
        recent_topics=["pricing", "positioning"],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Scenarios
# ─────────────────────────────────────────────────────────────────────────────


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_primary_succeeds(self, monkeypatch, calls, config_file, ctx):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-e2e")
        _patch_adapter(monkeypatch, GroqClient, Provider.GROQ, calls,
                       reply="Anchor on outcomes and offer three tiers.")
        _patch_adapter(monkeypatch, OllamaClient, Provider.OLLAMA, calls)

        orc = Orchestrator.from_settings(load_settings(config_file))
        try:
            response = await orc.process_request(PRICING, ctx, "conv-1")
        finally:
            await orc.close()

        assert response.content == "Anchor on outcomes and offer three tiers."
        assert response.specialist == SpecialistType.STRATEGY
        assert response.mode == BehavioralMode.DECISION
        assert response.metadata.provider == Provider.GROQ
        assert response.metadata.tokens_used == 150
        assert calls.providers == [Provider.GROQ]

        system_prompt = calls.calls[0][2][0].content
        assert "Recent topics: pricing, positioning" in system_prompt

        snap = await orc.stats.snapshot()
        assert snap.total_requests == 1
        assert snap.model_usage == {"mixtral-8x7b-32768": 1}

    @pytest.mark.asyncio
    async def test_primary_key_absent_ollama_serves(self, monkeypatch, calls, config_file, ctx):
        # No GROQ_API_KEY: groq is the primary but never called.
        _patch_adapter(monkeypatch, GroqClient, Provider.GROQ, calls)
        _patch_adapter(monkeypatch, OllamaClient, Provider.OLLAMA, calls, reply="Local answer")

        orc = Orchestrator.from_settings(load_settings(config_file))
        try:
            response = await orc.process_request(PRICING, ctx, "conv-2")
        finally:
            await orc.close()

        assert response.content == "Local answer"
        assert response.metadata.provider == Provider.OLLAMA
        assert response.metadata.model == "qwen2.5:14b"
        assert calls.providers == [Provider.OLLAMA]

    @pytest.mark.asyncio
    async def test_every_provider_fails(self, monkeypatch, calls, config_file, ctx):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-e2e")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-e2e")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-e2e")
        for cls, provider in (
            (GroqClient, Provider.GROQ),
            (OllamaClient, Provider.OLLAMA),
            (AnthropicClient, Provider.ANTHROPIC),
            (OpenAIClient, Provider.OPENAI),
        ):
            _patch_adapter(
                monkeypatch, cls, provider, calls,
                error=ProviderConnectionError(f"{provider.value} unreachable", provider=provider.value),
            )

        orc = Orchestrator.from_settings(load_settings(config_file))
        try:
            response = await orc.process_request(PRICING, ctx, "conv-3")
        finally:
            await orc.close()

        assert response.is_degraded
        assert "All LLM providers failed. Primary: groq (groq unreachable)" in response.content
        assert calls.providers == [
            Provider.GROQ, Provider.OLLAMA, Provider.ANTHROPIC, Provider.OPENAI,
        ]

    @pytest.mark.asyncio
    async def test_sqlite_history_survives_restart(self, monkeypatch, calls, config_file, ctx):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-e2e")
        _patch_adapter(monkeypatch, GroqClient, Provider.GROQ, calls, reply="Start with a retainer.")

        first = Orchestrator.from_settings(load_settings(config_file))
        try:
            await first.process_request("Tell me about retainers", ctx, "conv-4")
        finally:
            await first.close()

        second = Orchestrator.from_settings(load_settings(config_file))
        try:
            await second.process_request(PRICING, ctx, "conv-4")
        finally:
            await second.close()

        user_message = calls.calls[-1][2][1].content
        assert "user: Tell me about retainers" in user_message
        assert "assistant: Start with a retainer." in user_message
        assert user_message.endswith(f"Current message: {PRICING}")
