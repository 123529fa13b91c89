"""
Sidekick agent core: behavioral mode detection, specialist personas, and
multi-provider LLM routing with fallback.

The two entry points the rest of an application needs:

    from sidekick import process_request, call_llm

    response = await process_request(message, user_context, conversation_id)
    result = await call_llm(system_prompt, user_message)

Both use a default Orchestrator built lazily from get_settings().
"""

from __future__ import annotations

import threading
from typing import Optional, Sequence

from sidekick.agent import AgentResponse, Orchestrator, UserContext
from sidekick.brain import BehavioralMode, GenerationResult, Message, SpecialistType

__version__ = "0.3.0"

_default: Optional[Orchestrator] = None
_default_lock = threading.Lock()


def get_orchestrator() -> Orchestrator:
    """Process-wide Orchestrator built from the global Settings on first use."""
    global _default
    if _default is not None:
        return _default
    with _default_lock:
        if _default is None:
            from sidekick.config.settings import get_settings
            _default = Orchestrator.from_settings(get_settings())
        return _default


def set_orchestrator(orchestrator: Optional[Orchestrator]) -> None:
    """Replace (or with None, drop) the default Orchestrator."""
    global _default
    with _default_lock:
        _default = orchestrator


async def process_request(
    message: str,
    user_context: UserContext,
    conversation_id: str,
    history: Optional[Sequence[Message]] = None,
    specialist: Optional[SpecialistType] = None,
) -> AgentResponse:
    return await get_orchestrator().process_request(
        message, user_context, conversation_id, history=history, specialist=specialist
    )


async def call_llm(
    system_prompt: str,
    user_message: str,
    specialist: SpecialistType = SpecialistType.REFLECTION,
    mode: BehavioralMode = BehavioralMode.EXPLORATORY,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    top_p: Optional[float] = None,
) -> GenerationResult:
    return await get_orchestrator().call_llm(
        system_prompt,
        user_message,
        specialist=specialist,
        mode=mode,
        temperature=temperature,
        max_tokens=max_tokens,
        top_p=top_p,
    )


__all__ = [
    "AgentResponse",
    "Orchestrator",
    "UserContext",
    "call_llm",
    "get_orchestrator",
    "process_request",
    "set_orchestrator",
]
