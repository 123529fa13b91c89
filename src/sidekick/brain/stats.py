"""
brain/stats.py — Usage Statistics Aggregator

Process-wide counters for successful LLM calls: request count, cumulative
tokens, rolling average latency, and per-model call counts.

One UsageStats instance is injected into the LLMRouter. Updates are
serialised with an asyncio.Lock so concurrent requests never lose an
increment.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import BaseModel, Field


class UsageSnapshot(BaseModel):
    """Immutable copy of the counters at a point in time."""
    total_requests: int = 0
    total_tokens: int = 0
    average_latency_ms: float = 0.0
    model_usage: dict[str, int] = Field(default_factory=dict)


class UsageStats:

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._total_requests = 0
        self._total_tokens = 0
        self._average_latency_ms = 0.0
        self._model_usage: dict[str, int] = {}

    async def record(self, model: str, tokens_used: Optional[int], latency_ms: float) -> None:
        async with self._lock:
            self._total_requests += 1
            self._total_tokens += tokens_used or 0
            n = self._total_requests
            self._average_latency_ms = (self._average_latency_ms * (n - 1) + latency_ms) / n
            self._model_usage[model] = self._model_usage.get(model, 0) + 1

    async def snapshot(self) -> UsageSnapshot:
        async with self._lock:
            return UsageSnapshot(
                total_requests=self._total_requests,
                total_tokens=self._total_tokens,
                average_latency_ms=self._average_latency_ms,
                model_usage=dict(self._model_usage),
            )

    async def reset(self) -> None:
        async with self._lock:
            self._total_requests = 0
            self._total_tokens = 0
            self._average_latency_ms = 0.0
            self._model_usage = {}

    def __repr__(self) -> str:
        return f"<UsageStats requests={self._total_requests} tokens={self._total_tokens}>"
