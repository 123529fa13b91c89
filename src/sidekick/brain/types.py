"""
brain/types.py — Sidekick Brain Data Models

Shared types used across provider adapters, the router, and the agent
orchestrator. Every vendor adapter (Groq, Ollama, OpenAI, Anthropic) maps
its native response into GenerationResult.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Provider(str, Enum):
    GROQ = "groq"
    OLLAMA = "ollama"            # locally hosted, no API key
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class BehavioralMode(str, Enum):
    """How the specialist should work with the user on this turn."""
    EXPLORATORY = "exploratory"  # explore, clarify, understand
    ORGANIZING = "organizing"    # organize, plan, systematize
    DECISION = "decision"        # weigh options, highlight tradeoffs
    ACTION = "action"            # produce concrete output and next steps

    @classmethod
    def parse(cls, value: "str | BehavioralMode | None") -> "BehavioralMode":
        """Lenient parse: accepts legacy names, falls back to EXPLORATORY."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.EXPLORATORY
        key = str(value).strip().lower()
        key = _LEGACY_MODE_NAMES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.EXPLORATORY


_LEGACY_MODE_NAMES = {
    "mirror": "exploratory",
    "structuring": "organizing",
    "strategic": "decision",
    "execution": "action",
}


class SpecialistType(str, Enum):
    REFLECTION = "reflection"
    STRATEGY = "strategy"
    SYSTEMS = "systems"
    TECHNICAL = "technical"
    CREATIVE = "creative"
    ORCHESTRATOR = "orchestrator"   # internal: classification / summarisation only

    @classmethod
    def user_facing(cls) -> list["SpecialistType"]:
        return [s for s in cls if s is not cls.ORCHESTRATOR]


# ─────────────────────────────────────────────────────────────────────────────
# Message types
# ─────────────────────────────────────────────────────────────────────────────


class Message(BaseModel):
    """A single message in a conversation."""
    role: Role
    content: str = ""

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)


# ─────────────────────────────────────────────────────────────────────────────
# Generation parameters
# ─────────────────────────────────────────────────────────────────────────────


class ModelParameters(BaseModel):
    """Sampling parameters resolved from a BehavioralMode."""
    model_config = {"frozen": True}

    temperature: float
    max_tokens: int
    top_p: float


class LLMConfig(BaseModel):
    """
    Per-call adapter configuration.
    Built by the router for each attempt; adapters read nothing else.
    """
    model: str
    temperature: float = 0.6
    max_tokens: int = 1500
    top_p: Optional[float] = None
    timeout_seconds: float = 60.0


class GenerationRequest(BaseModel):
    """
    Normalised generation inputs.

    temperature / max_tokens / top_p are optional overrides; when None the
    router fills them from the mode's parameter policy.
    """
    system_prompt: str
    user_message: str
    specialist: SpecialistType = SpecialistType.REFLECTION
    mode: BehavioralMode = BehavioralMode.EXPLORATORY
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)

    def to_messages(self) -> list[Message]:
        return [Message.system(self.system_prompt), Message.user(self.user_message)]


# ─────────────────────────────────────────────────────────────────────────────
# Generation result
# ─────────────────────────────────────────────────────────────────────────────


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationResult(BaseModel):
    """
    Normalised response from any provider.
    usage is None when the vendor did not report token counts.
    """
    content: str
    provider: Provider
    model: str
    usage: Optional[TokenUsage] = None
    execution_time_ms: int = 0

    @property
    def tokens_used(self) -> Optional[int]:
        return self.usage.total_tokens if self.usage is not None else None
