"""
brain/models.py — Model Table, Model Resolver, Generation Parameter Policy

AGENT_MODELS maps every specialist to its recommended model on each
provider. resolve_model() layers per-specialist overrides on top of it,
and parameters_for() maps a behavioral mode to sampling parameters.

Both functions are pure: no I/O, no module state.

Provider notes:
  GROQ       llama-3.1-8b-instant (fast), llama-3.1-70b-versatile,
             mixtral-8x7b-32768 (32k context)
  OLLAMA     llama3.1:8b, qwen2.5:14b (reasoning), deepseek-r1:14b (code)
  OPENAI     gpt-4o-mini (cheap), gpt-4o
  ANTHROPIC  claude-3-5-haiku-20241022 (fast), claude-3-5-sonnet-20241022
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from sidekick.brain.types import BehavioralMode, ModelParameters, Provider, SpecialistType
from sidekick.exceptions import ConfigurationError

# Provider whose entry every specialist must have; used when the table has no
# entry for the requested provider.
LOCAL_PROVIDER = Provider.OLLAMA


@dataclass(frozen=True)
class ModelEntry:
    models: Mapping[Provider, str]
    description: str = ""
    reasoning: str = ""


AGENT_MODELS: dict[SpecialistType, ModelEntry] = {
    SpecialistType.REFLECTION: ModelEntry(
        models={
            Provider.GROQ: "llama-3.1-8b-instant",
            Provider.OLLAMA: "llama3.1:8b",
            Provider.OPENAI: "gpt-4o-mini",
            Provider.ANTHROPIC: "claude-3-5-haiku-20241022",
        },
        description="General thinking partner for clarity and reflection",
        reasoning="Needs conversational fluency and empathy more than deep analysis",
    ),
    SpecialistType.STRATEGY: ModelEntry(
        models={
            Provider.GROQ: "mixtral-8x7b-32768",
            Provider.OLLAMA: "qwen2.5:14b",
            Provider.OPENAI: "gpt-4o",
            Provider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        },
        description="Business strategy, leverage, and decision analysis",
        reasoning="Tradeoff analysis and long-term thinking need strong reasoning",
    ),
    SpecialistType.SYSTEMS: ModelEntry(
        models={
            Provider.GROQ: "mixtral-8x7b-32768",
            Provider.OLLAMA: "qwen2.5:14b",
            Provider.OPENAI: "gpt-4o",
            Provider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        },
        description="Workflow design, automation, and process optimization",
        reasoning="Systematic thinking about multi-step processes",
    ),
    SpecialistType.TECHNICAL: ModelEntry(
        models={
            Provider.GROQ: "llama-3.1-70b-versatile",
            Provider.OLLAMA: "deepseek-r1:14b",
            Provider.OPENAI: "gpt-4o",
            Provider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        },
        description="Software architecture, implementation, and debugging",
        reasoning="Code reasoning and technical problem-solving",
    ),
    SpecialistType.CREATIVE: ModelEntry(
        models={
            Provider.GROQ: "llama-3.1-8b-instant",
            Provider.OLLAMA: "llama3.1:8b",
            Provider.OPENAI: "gpt-4o",
            Provider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        },
        description="Messaging, content, and communication",
        reasoning="Creative language generation and framing",
    ),
    SpecialistType.ORCHESTRATOR: ModelEntry(
        models={
            Provider.GROQ: "llama-3.1-8b-instant",
            Provider.OLLAMA: "llama3.1:8b",
            Provider.OPENAI: "gpt-4o-mini",
            Provider.ANTHROPIC: "claude-3-5-haiku-20241022",
        },
        description="Routing and mode detection",
        reasoning="Fast classification task, a lighter model is enough",
    ),
}


def resolve_model(
    specialist: SpecialistType,
    provider: Provider,
    overrides: Optional[Mapping[SpecialistType, str]] = None,
    table: Mapping[SpecialistType, ModelEntry] = AGENT_MODELS,
) -> str:
    """
    Resolve the concrete model id for (specialist, provider).

    Order:
      1. overrides[specialist]  (MODEL_<SPECIALIST> env var)
      2. table[specialist].models[provider]
      3. table[specialist].models[LOCAL_PROVIDER]

    Raises ConfigurationError if nothing resolves.
    """
    if overrides:
        override = (overrides.get(specialist) or "").strip()
        if override:
            return override

    entry = table.get(specialist)
    if entry is not None:
        model = entry.models.get(provider) or entry.models.get(LOCAL_PROVIDER)
        if model:
            return model

    raise ConfigurationError(
        f"No model configured for specialist '{specialist.value}' on provider "
        f"'{provider.value}'. Set MODEL_{specialist.value.upper()} or add a "
        f"'{LOCAL_PROVIDER.value}' entry to the model table."
    )


# ─────────────────────────────────────────────────────────────────────────────
# Generation parameter policy
# ─────────────────────────────────────────────────────────────────────────────

# Decision/action turns want structured, repeatable output with room for
# detail; exploratory turns are conversational.
_MODE_PARAMETERS: dict[BehavioralMode, ModelParameters] = {
    BehavioralMode.EXPLORATORY: ModelParameters(temperature=0.6, max_tokens=1500, top_p=0.95),
    BehavioralMode.ORGANIZING:  ModelParameters(temperature=0.5, max_tokens=1500, top_p=0.9),
    BehavioralMode.DECISION:    ModelParameters(temperature=0.4, max_tokens=2000, top_p=0.9),
    BehavioralMode.ACTION:      ModelParameters(temperature=0.4, max_tokens=2000, top_p=0.9),
}


def parameters_for(mode: BehavioralMode | str) -> ModelParameters:
    """Sampling parameters for a behavioral mode. Unknown modes get the exploratory set."""
    return _MODE_PARAMETERS[BehavioralMode.parse(mode)]


def required_local_models(table: Mapping[SpecialistType, ModelEntry] = AGENT_MODELS) -> list[str]:
    """Distinct local-provider models the table expects to be pulled."""
    seen: list[str] = []
    for entry in table.values():
        model = entry.models.get(LOCAL_PROVIDER)
        if model and model not in seen:
            seen.append(model)
    return seen
