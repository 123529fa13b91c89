"""
agent/mode_classifier.py — Behavioral Mode Detection

Maps raw user text to one of four behavioral modes:

    action       the user is ready to act ("let's", "how do I", "build")
    decision     the user is weighing options ("should I", "which", "vs")
    organizing   the user wants structure ("plan", "framework", "workflow")
    exploratory  everything else (default)

Precedence is action > decision > organizing > exploratory: the first
matching signal group wins.

classify() is a pure keyword match and never raises. detect() optionally
asks the LLM router (as the orchestrator specialist) and falls back to
EXPLORATORY on any routing failure or unparseable answer.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from sidekick.brain.types import (
    BehavioralMode,
    GenerationRequest,
    Message,
    SpecialistType,
)
from sidekick.exceptions import SidekickError
from sidekick.observability.logger import get_logger

log = get_logger(__name__)


_ACTION_PATTERNS = (
    re.compile(r"\b(let's|start|begin|ready to|going to|plan to)\b", re.IGNORECASE),
    re.compile(r"\b(next step|what should i do|how do i|walk me through)\b", re.IGNORECASE),
    re.compile(r"\b(implement|build|create|set up|deploy)\b", re.IGNORECASE),
)

_DECISION_PATTERNS = (
    re.compile(r"\b(should i|should we|which|better|versus|vs|or)\b", re.IGNORECASE),
    re.compile(r"\b(tradeoff|pros and cons|worth it|make sense)\b", re.IGNORECASE),
    re.compile(r"\b(decide|decision|choose|pick|select)\b", re.IGNORECASE),
)

_ORGANIZING_PATTERNS = (
    re.compile(r"\b(plan|organize|framework|structure|breakdown)\b", re.IGNORECASE),
    re.compile(r"\b(steps|process|workflow|system|sop)\b", re.IGNORECASE),
    re.compile(r"\b(how do i organize|help me structure)\b", re.IGNORECASE),
)

# Checked in order; first hit wins.
_SIGNALS: tuple[tuple[BehavioralMode, tuple[re.Pattern, ...]], ...] = (
    (BehavioralMode.ACTION, _ACTION_PATTERNS),
    (BehavioralMode.DECISION, _DECISION_PATTERNS),
    (BehavioralMode.ORGANIZING, _ORGANIZING_PATTERNS),
)

# Accepts both current and legacy mode names in a free-text LLM answer.
_MODE_WORD = re.compile(
    r"\b(exploratory|organizing|decision|action|mirror|structuring|strategic|execution)\b",
    re.IGNORECASE,
)

_CLASSIFY_INSTRUCTION = (
    "Classify the behavioral mode of the user's latest message. "
    "Answer with exactly one word: exploratory, organizing, decision, or action."
)


class ModeClassifier:
    """
    Keyword classifier with optional LLM assistance.

    `router` is anything with an async route(GenerationRequest) method
    (normally LLMRouter). When use_llm is False or no router is given,
    detect() is equivalent to classify().
    """

    def __init__(self, router=None, use_llm: bool = False, history_messages: int = 3):
        self._router = router
        self._use_llm = use_llm and router is not None
        self._history_messages = history_messages

    @staticmethod
    def classify(message: str, history: Sequence[Message] = ()) -> BehavioralMode:
        text = (message or "").lower()
        for mode, patterns in _SIGNALS:
            if any(p.search(text) for p in patterns):
                return mode
        return BehavioralMode.EXPLORATORY

    async def detect(self, message: str, history: Sequence[Message] = ()) -> BehavioralMode:
        if not self._use_llm:
            mode = self.classify(message, history)
            log.debug("mode.detected", mode=mode.value, method="keyword")
            return mode

        mode = await self._classify_with_llm(message, history)
        log.debug("mode.detected", mode=mode.value, method="llm")
        return mode

    async def _classify_with_llm(
        self, message: str, history: Sequence[Message]
    ) -> BehavioralMode:
        from sidekick.agent.specialists import build_system_prompt, build_user_message

        request = GenerationRequest(
            system_prompt=build_system_prompt(SpecialistType.ORCHESTRATOR, BehavioralMode.DECISION)
            + "\n\n" + _CLASSIFY_INSTRUCTION,
            user_message=build_user_message(message, history, messages=self._history_messages),
            specialist=SpecialistType.ORCHESTRATOR,
            mode=BehavioralMode.DECISION,
            max_tokens=10,
        )
        try:
            result = await self._router.route(request)
        except SidekickError as e:
            log.warning("mode.llm_failed", error=str(e))
            return BehavioralMode.EXPLORATORY

        parsed = _parse_mode(result.content)
        if parsed is None:
            log.warning("mode.llm_unparseable", answer=result.content[:80])
            return BehavioralMode.EXPLORATORY
        return parsed


def _parse_mode(answer: str) -> Optional[BehavioralMode]:
    match = _MODE_WORD.search(answer or "")
    if match is None:
        return None
    return BehavioralMode.parse(match.group(1))


def classify(message: str, history: Sequence[Message] = ()) -> BehavioralMode:
    """Module-level shortcut for the keyword classifier."""
    return ModeClassifier.classify(message, history)
