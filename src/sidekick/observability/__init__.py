from sidekick.observability.logger import (
    bind_conversation,
    clear_conversation,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)

__all__ = [
    "bind_conversation",
    "clear_conversation",
    "get_logger",
    "setup_logging",
    "setup_logging_from_settings",
]
