from sidekick.config.settings import (
    AgentConfig,
    LLMRoutingConfig,
    LoggingConfig,
    MemoryConfig,
    Settings,
    get_settings,
    load_settings,
    reset_settings,
)

__all__ = [
    "AgentConfig",
    "LLMRoutingConfig",
    "LoggingConfig",
    "MemoryConfig",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
