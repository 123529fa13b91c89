"""
config/settings.py — Sidekick Runtime Settings

Merges config.yaml (defaults/structure) with .env / environment (secrets).
Pydantic-powered: all fields are validated and typed.

  - Field validators reject unknown providers, bad log levels, and
    non-positive limits at parse time
  - is_provider_available() is the provider availability predicate used
    by the router: a remote vendor is available iff its API key is set,
    the local Ollama server is always considered available
  - model_overrides collects MODEL_<SPECIALIST> environment overrides
  - validate_all() performs full startup validation and raises
    ConfigurationError listing every problem found
  - load_settings() respects SIDEKICK_CONFIG when no explicit path is given
"""

from __future__ import annotations

import os
import threading
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from sidekick.brain.types import Provider, SpecialistType
from sidekick.exceptions import ConfigurationError

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_MEMORY_BACKENDS = {"memory", "sqlite"}
_KNOWN_PROVIDERS = {p.value for p in Provider}
_KNOWN_SECTIONS = {"agent", "llm", "memory", "logging"}

# config.yaml path for the Settings() call in progress (see _build_settings)
_active_config: ContextVar[Optional[Path]] = ContextVar("sidekick_config_path", default=None)


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class AgentConfig(BaseModel):
    name: str = "Sidekick"
    llm_mode_detection: bool = False     # classify modes via the router instead of keywords
    history_messages: int = 3            # prior messages prefixed to the user message

    @field_validator("history_messages")
    @classmethod
    def _non_negative_history(cls, v: int) -> int:
        if v < 0:
            raise ValueError("agent.history_messages must be >= 0")
        return v


class LLMRoutingConfig(BaseModel):
    provider: str = "groq"
    timeout_seconds: float = 60.0

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in _KNOWN_PROVIDERS:
            raise ValueError(
                f"llm.provider '{v}' is not supported. "
                f"Supported: {sorted(_KNOWN_PROVIDERS)}"
            )
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("llm.timeout_seconds must be > 0")
        return v


class MemoryConfig(BaseModel):
    backend: str = "memory"
    sqlite_path: str = "./data/sqlite/conversations.db"
    max_conversations: int = 256        # LRU cap on cached and in-memory conversations
    history_limit: int = 50             # messages loaded per conversation

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        if v not in _VALID_MEMORY_BACKENDS:
            raise ValueError(
                f"memory.backend must be one of {sorted(_VALID_MEMORY_BACKENDS)}, got '{v}'"
            )
        return v

    @field_validator("max_conversations", "history_limit")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("memory limits must be >= 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 100
    backup_count: int = 5
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# config.yaml source
# ─────────────────────────────────────────────────────────────────────────────


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class YamlSectionsSource(PydanticBaseSettingsSource):
    """
    The agent / llm / memory / logging sections of config.yaml.

    Ranked below .env and the environment, so LLM__TIMEOUT_SECONDS=5
    overrides llm.timeout_seconds from the file. Unknown sections are dropped.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Optional[Path]):
        super().__init__(settings_cls)
        data = _load_yaml(path) if path is not None else {}
        self._sections = {k: v for k, v in data.items() if k in _KNOWN_SECTIONS}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._sections.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._sections)


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Sidekick runtime settings.

    Priority (highest to lowest):
      1. Constructor arguments
      2. Environment variables (nested keys as LLM__PROVIDER, MEMORY__BACKEND, ...)
      3. .env file
      4. config.yaml (only when built through load_settings / get_settings)
      5. Field defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        protected_namespaces=(),
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSectionsSource(settings_cls, _active_config.get()),
            file_secret_settings,
        )

    # -- Secrets / environment ----------------------------------------------
    ai_provider: Optional[str] = Field(default=None, alias="AI_PROVIDER")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")

    # -- Per-specialist model overrides -------------------------------------
    model_reflection: Optional[str] = Field(default=None, alias="MODEL_REFLECTION")
    model_strategy: Optional[str] = Field(default=None, alias="MODEL_STRATEGY")
    model_systems: Optional[str] = Field(default=None, alias="MODEL_SYSTEMS")
    model_technical: Optional[str] = Field(default=None, alias="MODEL_TECHNICAL")
    model_creative: Optional[str] = Field(default=None, alias="MODEL_CREATIVE")
    model_orchestrator: Optional[str] = Field(default=None, alias="MODEL_ORCHESTRATOR")

    # -- Structured config (from config.yaml) --------------------------------
    agent: AgentConfig = Field(default_factory=AgentConfig)
    llm: LLMRoutingConfig = Field(default_factory=LLMRoutingConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _known_ai_provider(cls, v: Any) -> Optional[str]:
        if v in (None, ""):
            return None
        v = str(v).lower().strip()
        if v not in _KNOWN_PROVIDERS:
            raise ValueError(
                f"AI_PROVIDER '{v}' is not supported. Supported: {sorted(_KNOWN_PROVIDERS)}"
            )
        return v

    @field_validator(
        "groq_api_key", "openai_api_key", "anthropic_api_key",
        "model_reflection", "model_strategy", "model_systems",
        "model_technical", "model_creative", "model_orchestrator",
        mode="before",
    )
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("ollama_base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # -- Convenience properties ----------------------------------------------

    @property
    def active_provider(self) -> Provider:
        """AI_PROVIDER wins over llm.provider from config.yaml."""
        return Provider(self.ai_provider or self.llm.provider)

    @property
    def model_overrides(self) -> dict[SpecialistType, str]:
        overrides: dict[SpecialistType, str] = {}
        for specialist in SpecialistType:
            value = getattr(self, f"model_{specialist.value}")
            if value:
                overrides[specialist] = value
        return overrides

    def api_key_for(self, provider: Provider) -> Optional[str]:
        return {
            Provider.GROQ: self.groq_api_key,
            Provider.OPENAI: self.openai_api_key,
            Provider.ANTHROPIC: self.anthropic_api_key,
            Provider.OLLAMA: None,
        }[provider]

    def is_provider_available(self, provider: Provider) -> bool:
        if provider == Provider.OLLAMA:
            return bool(self.ollama_base_url)
        return bool(self.api_key_for(provider))

    def missing_keys(self) -> list[str]:
        """Env var names of remote vendors that are not configured (informational)."""
        names = {
            Provider.GROQ: "GROQ_API_KEY",
            Provider.OPENAI: "OPENAI_API_KEY",
            Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
        }
        return [env for p, env in names.items() if not self.is_provider_available(p)]

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigurationError listing every problem.

        Pydantic field validators catch type/value errors at parse time; this
        catches cross-field problems. A missing key for the primary provider
        is NOT an error: the router skips it and falls back.
        """
        errors: list[str] = []

        if not self.ollama_base_url.startswith(("http://", "https://")):
            errors.append(
                f"OLLAMA_BASE_URL '{self.ollama_base_url}' must start with http:// or https://."
            )

        if not any(self.is_provider_available(p) for p in Provider):
            errors.append("No LLM provider is available. Set at least one API key.")

        if self.memory.backend == "sqlite" and not self.memory.sqlite_path.strip():
            errors.append("memory.sqlite_path must not be empty when memory.backend is 'sqlite'.")

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigurationError(
                f"\n\nSidekick startup failed: {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = threading.Lock()

def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. SIDEKICK_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("SIDEKICK_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def _build_settings(config_path: str | Path | None) -> Settings:
    token = _active_config.set(_resolve_config_path(config_path))
    try:
        return Settings()
    finally:
        _active_config.reset(token)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    global _singleton
    instance = _build_settings(config_path)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading from the default path on
    first use. Guarded by a lock against concurrent first loads.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            _singleton = _build_settings(None)
        return _singleton


def reset_settings() -> None:
    """Drop the cached singleton (tests, config reload)."""
    global _singleton
    with _singleton_lock:
        _singleton = None
