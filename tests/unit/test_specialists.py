"""
tests/unit/test_specialists.py — Specialist Registry Tests

Covers:
  - 20 distinct (specialist x mode) prompts, never empty
  - Context block: labels, order, only present fields
  - Specialist overlay only for the matching specialist
  - Orchestrator persona
  - select_specialist rule priority, reasons and confidences
  - build_user_message history prefix
"""

from __future__ import annotations

import pytest

from sidekick.agent.specialists import (
    build_system_prompt,
    build_user_message,
    explicit_selection,
    select_specialist,
)
from sidekick.agent.types import UserContext
from sidekick.brain.types import BehavioralMode, Message, SpecialistType


USER_FACING = SpecialistType.user_facing()


class TestBuildSystemPrompt:
    def test_twenty_distinct_prompts(self):
        prompts = {
            build_system_prompt(s, m)
            for s in USER_FACING
            for m in BehavioralMode
        }
        assert len(prompts) == 20

    @pytest.mark.parametrize("specialist", USER_FACING)
    @pytest.mark.parametrize("mode", list(BehavioralMode))
    def test_never_empty_without_context(self, specialist, mode):
        prompt = build_system_prompt(specialist, mode, UserContext(user_id="u"))
        assert prompt.strip()
        assert "Context:" not in prompt

    def test_mode_section_included(self):
        prompt = build_system_prompt(SpecialistType.STRATEGY, BehavioralMode.DECISION)
        assert "DECISION MODE" in prompt
        assert "strategic thinking partner" in prompt

    def test_legacy_mode_name_accepted(self):
        assert build_system_prompt(SpecialistType.SYSTEMS, "execution") == build_system_prompt(
            SpecialistType.SYSTEMS, BehavioralMode.ACTION
        )

    def test_full_context_block(self):
        ctx = UserContext(
            user_id="u-1",
            current_project="Consulting launch",
            recent_topics=["pricing", "positioning"],
            base_memory="Solo consultant, 10 years in ops.",
            agent_memory={SpecialistType.STRATEGY: "Prefers value-based pricing."},
        )
        prompt = build_system_prompt(SpecialistType.STRATEGY, BehavioralMode.DECISION, ctx)

        block = prompt.split("\n\nContext:\n", 1)[1]
        assert block == (
            "Current project: Consulting launch\n"
            "Recent topics: pricing, positioning\n"
            "Base memory:\nSolo consultant, 10 years in ops.\n"
            "Agent overlay (strategy):\nPrefers value-based pricing."
        )

    def test_only_present_fields(self):
        ctx = UserContext(user_id="u", recent_topics=["hiring"])
        prompt = build_system_prompt(SpecialistType.REFLECTION, BehavioralMode.EXPLORATORY, ctx)
        assert prompt.endswith("\n\nContext:\nRecent topics: hiring")
        assert "Current project" not in prompt

    def test_overlay_for_other_specialist_ignored(self):
        ctx = UserContext(user_id="u", agent_memory={SpecialistType.CREATIVE: "Casual voice."})
        prompt = build_system_prompt(SpecialistType.TECHNICAL, BehavioralMode.ACTION, ctx)
        assert "Casual voice." not in prompt

    def test_orchestrator_persona(self):
        prompt = build_system_prompt(SpecialistType.ORCHESTRATOR, BehavioralMode.DECISION)
        assert "routing layer" in prompt
        assert "MODE**" not in prompt


class TestSelectSpecialist:
    @pytest.mark.parametrize("message, expected, reason", [
        ("How should I price my consulting services?", SpecialistType.STRATEGY,
         "Business strategy or decision-making question detected"),
        ("Can we automate the onboarding workflow?", SpecialistType.SYSTEMS,
         "Process or automation question detected"),
        ("The API returns an error on deploy", SpecialistType.TECHNICAL,
         "Technical or implementation question detected"),
        ("Help me with the brand story", SpecialistType.CREATIVE,
         "Content or communication question detected"),
    ])
    def test_rules(self, message, expected, reason):
        selection = select_specialist(message)
        assert selection.specialist == expected
        assert selection.reason == reason
        assert selection.confidence == 0.85

    def test_priority_strategy_over_creative(self):
        # "positioning" appears in both strategy and creative rules
        assert select_specialist("Our positioning feels off").specialist == SpecialistType.STRATEGY

    def test_priority_systems_over_technical(self):
        assert select_specialist("Sync the database nightly").specialist == SpecialistType.SYSTEMS

    def test_default_reflection(self):
        selection = select_specialist("I feel a bit lost this week")
        assert selection.specialist == SpecialistType.REFLECTION
        assert selection.reason == "General thinking partner for exploratory conversation"
        assert selection.confidence == 0.7

    def test_explicit_selection(self):
        selection = explicit_selection(SpecialistType.CREATIVE)
        assert selection.specialist == SpecialistType.CREATIVE
        assert selection.confidence == 1.0


class TestBuildUserMessage:
    def test_no_history(self):
        assert build_user_message("Hi") == "Hi"

    def test_last_three_messages(self):
        history = [
            Message.user("one"),
            Message.assistant("two"),
            Message.user("three"),
            Message.assistant("four"),
        ]
        assert build_user_message("five", history) == (
            "Recent conversation:\n"
            "assistant: two\n"
            "user: three\n"
            "assistant: four\n\n"
            "Current message: five"
        )

    def test_zero_messages(self):
        assert build_user_message("Hi", [Message.user("x")], messages=0) == "Hi"
