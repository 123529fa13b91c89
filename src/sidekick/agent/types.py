"""
agent/types.py — Agent Request / Response Models

UserContext is supplied by the caller and is read-only to the core: it only
enriches the system prompt. AgentResponse is what every process_request()
call resolves to, including the degraded response built on failure.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from sidekick.brain.types import BehavioralMode, Provider, SpecialistType


class UserContext(BaseModel):
    model_config = {"frozen": True}

    user_id: str
    current_project: Optional[str] = None
    recent_topics: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)
    base_memory: Optional[str] = None
    agent_memory: dict[SpecialistType, str] = Field(default_factory=dict)

    def overlay_for(self, specialist: SpecialistType) -> Optional[str]:
        overlay = self.agent_memory.get(specialist)
        return overlay if overlay and overlay.strip() else None


class ResponseMetadata(BaseModel):
    tokens_used: int = 0
    execution_time_ms: int = 0
    confidence: float = 0.0
    model: Optional[str] = None
    provider: Optional[Provider] = None


class AgentResponse(BaseModel):
    """
    One full agent turn.

    extracted_entities and suggested_actions are reserved for downstream
    extraction and are always empty today.
    """
    content: str
    specialist: SpecialistType
    mode: BehavioralMode
    routing_reason: Optional[str] = None
    extracted_entities: list[dict[str, Any]] = Field(default_factory=list)
    suggested_actions: list[dict[str, Any]] = Field(default_factory=list)
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    @property
    def is_degraded(self) -> bool:
        return self.metadata.confidence == 0.0 and self.metadata.model is None
