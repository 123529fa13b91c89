from sidekick.agent.mode_classifier import ModeClassifier, classify
from sidekick.agent.orchestrator import Orchestrator, degraded_response
from sidekick.agent.specialists import (
    SpecialistSelection,
    build_system_prompt,
    build_user_message,
    select_specialist,
)
from sidekick.agent.types import AgentResponse, ResponseMetadata, UserContext

__all__ = [
    "AgentResponse",
    "ModeClassifier",
    "Orchestrator",
    "ResponseMetadata",
    "SpecialistSelection",
    "UserContext",
    "build_system_prompt",
    "build_user_message",
    "classify",
    "degraded_response",
    "select_specialist",
]
