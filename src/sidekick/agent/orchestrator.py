"""
agent/orchestrator.py — Agent Orchestrator

The heart of Sidekick. For each user message the orchestrator:
    1. Detects the behavioral mode       (ModeClassifier)
    2. Selects the specialist persona     (select_specialist, or caller's choice)
    3. Builds the system + user prompts   (build_system_prompt, build_user_message)
    4. Routes the generation              (LLMRouter, with provider fallback)
    5. Wraps the result into an AgentResponse with routing metadata
    6. Schedules a fire-and-forget conversation memory update

process_request() never raises: any failure in the pipeline, including
total routing failure, becomes a degraded response that embeds the error
text. call_llm() is the raw routed-generation entry point and does raise.

Usage:
    orc = Orchestrator.from_settings(get_settings())
    response = await orc.process_request(
        "How should I price my consulting services?",
        UserContext(user_id="u-1", current_project="Consulting launch"),
        conversation_id="c-1",
    )
    await orc.drain()
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Sequence

from sidekick.agent.mode_classifier import ModeClassifier
from sidekick.agent.specialists import (
    SpecialistSelection,
    build_system_prompt,
    build_user_message,
    explicit_selection,
    select_specialist,
)
from sidekick.agent.types import AgentResponse, ResponseMetadata, UserContext
from sidekick.brain.router import LLMRouter
from sidekick.brain.stats import UsageStats
from sidekick.brain.types import (
    BehavioralMode,
    GenerationRequest,
    GenerationResult,
    Message,
    SpecialistType,
)
from sidekick.exceptions import MemoryStoreError
from sidekick.memory.conversation import ConversationMemoryCache
from sidekick.memory.store import (
    ConversationStore,
    ConversationSummary,
    InMemoryConversationStore,
    SQLiteConversationStore,
)
from sidekick.observability.logger import bind_conversation, clear_conversation, get_logger

log = get_logger(__name__)

_DEGRADED_PREFIX = "I encountered an issue processing your request. The error was: "


def degraded_response(error: BaseException | str) -> AgentResponse:
    """Renderable fallback response: neutral persona, zero usage, error text embedded."""
    return AgentResponse(
        content=_DEGRADED_PREFIX + str(error),
        specialist=SpecialistType.REFLECTION,
        mode=BehavioralMode.EXPLORATORY,
        routing_reason=None,
        metadata=ResponseMetadata(tokens_used=0, execution_time_ms=0, confidence=0.0),
    )


class Orchestrator:
    """
    Coordinates one agent turn per process_request() call.

    Inject dependencies via the constructor; use from_settings() to wire up
    the router, the mode classifier and conversation memory from Settings.
    """

    def __init__(
        self,
        router: LLMRouter,
        memory: Optional[ConversationMemoryCache] = None,
        classifier: Optional[ModeClassifier] = None,
        history_messages: int = 3,
        agent_name: str = "Sidekick",
    ):
        self.router = router
        self.memory = memory
        self._classifier = classifier or ModeClassifier()
        self._history_messages = history_messages
        self._agent_name = agent_name
        self._pending: set[asyncio.Task] = set()

    # ─────────────────────────────────────────────────────────────────────────
    # Public: full agent turn
    # ─────────────────────────────────────────────────────────────────────────

    async def process_request(
        self,
        message: str,
        user_context: UserContext,
        conversation_id: str,
        history: Optional[Sequence[Message]] = None,
        specialist: Optional[SpecialistType] = None,
    ) -> AgentResponse:
        """
        Process one user message and return an AgentResponse.

        history=None pulls prior turns from conversation memory (when
        configured); pass an explicit sequence to bypass memory. A given
        `specialist` skips keyword selection.
        """
        bind_conversation(conversation_id, user_context.user_id)
        log.info("orchestrator.request_start", message=message[:120])
        t0 = time.monotonic()

        try:
            if history is None:
                history = await self._load_history(conversation_id)

            mode = await self._classifier.detect(message, history)
            selection: SpecialistSelection = (
                explicit_selection(specialist) if specialist is not None
                else select_specialist(message)
            )

            request = GenerationRequest(
                system_prompt=build_system_prompt(selection.specialist, mode, user_context),
                user_message=build_user_message(message, history, messages=self._history_messages),
                specialist=selection.specialist,
                mode=mode,
            )
            result = await self.router.route(request)

            response = AgentResponse(
                content=result.content,
                specialist=selection.specialist,
                mode=mode,
                routing_reason=selection.reason,
                metadata=ResponseMetadata(
                    tokens_used=result.tokens_used or 0,
                    execution_time_ms=round((time.monotonic() - t0) * 1000),
                    confidence=selection.confidence,
                    model=result.model,
                    provider=result.provider,
                ),
            )

            self._schedule(self._persist_turn(conversation_id, message, response.content))

            log.info(
                "orchestrator.request_done",
                specialist=response.specialist.value,
                mode=response.mode.value,
                provider=result.provider.value,
                model=result.model,
                tokens=response.metadata.tokens_used,
                ms=response.metadata.execution_time_ms,
            )
            return response

        except Exception as e:
            log.error("orchestrator.request_error", error=str(e),
                      error_type=type(e).__name__, exc_info=True)
            return degraded_response(e)
        finally:
            clear_conversation()

    # ─────────────────────────────────────────────────────────────────────────
    # Public: raw routed generation
    # ─────────────────────────────────────────────────────────────────────────

    async def call_llm(
        self,
        system_prompt: str,
        user_message: str,
        specialist: SpecialistType = SpecialistType.REFLECTION,
        mode: BehavioralMode = BehavioralMode.EXPLORATORY,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> GenerationResult:
        """
        Provider-routed generation without classification or memory.
        Raises RoutingExhaustedError / ConfigurationError on failure.
        """
        return await self.router.route(GenerationRequest(
            system_prompt=system_prompt,
            user_message=user_message,
            specialist=specialist,
            mode=BehavioralMode.parse(mode),
            temperature=temperature,
            max_tokens=max_tokens,
            top_p=top_p,
        ))

    async def summarize_conversation(
        self, conversation_id: str, user_id: str
    ) -> Optional[ConversationSummary]:
        """Summarize a conversation with the orchestrator persona and store the summary."""
        if self.memory is None:
            return None

        async def _llm(prompt: str) -> str:
            result = await self.call_llm(
                system_prompt=build_system_prompt(
                    SpecialistType.ORCHESTRATOR, BehavioralMode.ORGANIZING
                ),
                user_message=prompt,
                specialist=SpecialistType.ORCHESTRATOR,
                mode=BehavioralMode.ORGANIZING,
            )
            return result.content

        return await self.memory.get(conversation_id).create_summary(user_id, _llm)

    @property
    def stats(self) -> UsageStats:
        return self.router.stats

    # ─────────────────────────────────────────────────────────────────────────
    # Background work
    # ─────────────────────────────────────────────────────────────────────────

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled memory update to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self.memory is not None:
            await self.memory.close()

    async def _load_history(self, conversation_id: str) -> list[Message]:
        if self.memory is None:
            return []
        try:
            return await self.memory.get(conversation_id).get_messages()
        except MemoryStoreError as e:
            log.warning("orchestrator.history_unavailable", error=str(e))
            return []

    async def _persist_turn(self, conversation_id: str, user_message: str, reply: str) -> None:
        if self.memory is None:
            return
        try:
            conversation = self.memory.get(conversation_id)
            await conversation.add_user_message(user_message)
            await conversation.add_ai_message(reply)
        except Exception as e:
            log.warning("orchestrator.memory_update_failed", error=str(e),
                        error_type=type(e).__name__)

    # ─────────────────────────────────────────────────────────────────────────
    # Factory
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, settings, stats: Optional[UsageStats] = None) -> "Orchestrator":
        """Create an Orchestrator from the Sidekick Settings object."""
        router = LLMRouter.from_settings(settings, stats=stats)

        store: ConversationStore
        if settings.memory.backend == "sqlite":
            store = SQLiteConversationStore(settings.memory.sqlite_path)
        else:
            store = InMemoryConversationStore(
                max_conversations=settings.memory.max_conversations,
                max_messages=settings.memory.history_limit,
            )

        memory = ConversationMemoryCache(
            store,
            max_conversations=settings.memory.max_conversations,
            history_limit=settings.memory.history_limit,
        )
        classifier = ModeClassifier(
            router=router,
            use_llm=settings.agent.llm_mode_detection,
            history_messages=settings.agent.history_messages,
        )
        return cls(
            router=router,
            memory=memory,
            classifier=classifier,
            history_messages=settings.agent.history_messages,
            agent_name=settings.agent.name,
        )

    def __repr__(self) -> str:
        return f"<Orchestrator agent={self._agent_name} router={self.router!r}>"
