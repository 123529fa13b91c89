"""
exceptions.py — Sidekick Unified Error Hierarchy

All Sidekick-specific exceptions live here. Every layer raises typed
subclasses of SidekickError, never bare Exception.

Import from here, not from individual modules:
    from sidekick.exceptions import ProviderError, RoutingExhaustedError

Hierarchy:
    SidekickError
    ├── ConfigurationError
    ├── ProviderError
    │   ├── ProviderConnectionError
    │   ├── ProviderRateLimitError
    │   ├── ProviderRequestError
    │   └── ProviderResponseError
    ├── RoutingExhaustedError
    └── MemoryStoreError
"""

from __future__ import annotations

from typing import Optional


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class SidekickError(Exception):
    """Base class for all Sidekick exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

class ConfigurationError(SidekickError):
    """
    A request cannot be served with the current configuration.

    Raised when no model resolves for a (specialist, provider) pair, when no
    provider is available at all, or by Settings.validate_all() at startup.
    Never retried.
    """


# ─────────────────────────────────────────────────────────────────────────────
# Provider layer
# ─────────────────────────────────────────────────────────────────────────────

class ProviderError(SidekickError):
    """A single vendor call failed. Recoverable by the router via fallback."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.body = body


class ProviderConnectionError(ProviderError):
    """Provider unreachable, timed out, or rejected the credentials."""


class ProviderRateLimitError(ProviderError):
    """Provider returned 429 / quota exceeded."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        retry_after: Optional[float] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=429, body=body)
        self.retry_after = retry_after


class ProviderRequestError(ProviderError):
    """Provider rejected the request (bad params, unknown model, context too long)."""


class ProviderResponseError(ProviderError):
    """Provider answered 2xx but the body could not be normalised."""


# ─────────────────────────────────────────────────────────────────────────────
# Routing
# ─────────────────────────────────────────────────────────────────────────────

class RoutingExhaustedError(SidekickError):
    """Every provider in the primary's fallback chain failed."""

    def __init__(
        self,
        primary: str,
        primary_error: Optional[BaseException],
        attempts: Optional[list[str]] = None,
    ):
        self.primary = primary
        self.primary_error = primary_error
        self.attempts = list(attempts or [])
        super().__init__(
            f"All LLM providers failed. Primary: {primary} ({primary_error}). "
            f"Check your configuration and API keys."
        )


# ─────────────────────────────────────────────────────────────────────────────
# Memory
# ─────────────────────────────────────────────────────────────────────────────

class MemoryStoreError(SidekickError):
    """A conversation store operation (read or write) failed."""


__all__ = [
    "SidekickError",
    "ConfigurationError",
    "ProviderError",
    "ProviderConnectionError",
    "ProviderRateLimitError",
    "ProviderRequestError",
    "ProviderResponseError",
    "RoutingExhaustedError",
    "MemoryStoreError",
]
