"""
observability/logger.py — Sidekick Structured Logger

structlog routed through stdlib logging. Every line carries timestamp,
level, logger name and event, plus conversation_id / user_id while a
request is being handled (see bind_conversation).

  - The file sink is always JSON (data/logs/sidekick.log, rotated)
  - The optional console sink goes to stderr, JSON or coloured
  - Values that look like provider API keys are masked before rendering
  - Long prompt / reply text fields are clipped

Usage:
    from sidekick.observability.logger import get_logger, setup_logging

    setup_logging(level="INFO")            # once at startup
    log = get_logger(__name__)
    log.warning("router.fallback", from_provider="groq", to_provider="ollama")
"""

from __future__ import annotations

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE_NAME = "sidekick.log"

# Vendor SDK loggers are chatty below WARNING.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "aiosqlite")

_SECRET_FIELD = re.compile(r"(api_key|token|secret|authorization)$", re.IGNORECASE)
_SECRET_VALUE = re.compile(r"\b(sk-ant-[\w-]{8,}|sk-[\w-]{16,}|gsk_[\w]{16,})")
_TEXT_FIELDS = ("message", "prompt", "content", "reply")
MAX_TEXT_CHARS = 500


# ─────────────────────────────────────────────────────────────────────────────
# Processors
# ─────────────────────────────────────────────────────────────────────────────


def mask_secrets(_logger: Any, _method: str, event_dict: dict) -> dict:
    """Replace secret-named fields and key-shaped substrings with '***'."""
    for key, value in list(event_dict.items()):
        if not isinstance(value, str):
            continue
        if _SECRET_FIELD.search(key):
            event_dict[key] = "***"
        elif key != "event":
            event_dict[key] = _SECRET_VALUE.sub("***", value)
    return event_dict


def clip_text(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in _TEXT_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_TEXT_CHARS:
            event_dict[key] = value[:MAX_TEXT_CHARS] + f"... [{len(value)} chars]"
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_secrets,
        clip_text,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _formatter(renderer: Any, pre_chain: list[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Setup
# ─────────────────────────────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "./data/logs",
    json_format: bool = True,
    console_output: bool = True,
    max_bytes: int = 100 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure structlog and the stdlib root logger. Safe to call again
    (e.g. after a --log-level override); handlers are replaced.

    Args:
        level:          DEBUG | INFO | WARNING | ERROR | CRITICAL
        log_dir:        Directory for the rotating JSON log file.
        json_format:    Console renders JSON when True, coloured key=value when False.
        console_output: Emit to stderr at all. stdout is left to the CLI.
        max_bytes:      Rotation threshold for the log file.
        backup_count:   Rotated files kept.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    pre_chain = _pre_chain()

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), pre_chain))
    handlers: list[logging.Handler] = [file_handler]

    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console_renderer = (
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
        console.setFormatter(_formatter(console_renderer, pre_chain))
        handlers.append(console)

    for handler in handlers:
        handler.setLevel(numeric_level)
    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    quiet = max(numeric_level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging_from_settings(settings) -> None:
    cfg = settings.logging
    setup_logging(
        level=cfg.level,
        log_dir=cfg.log_dir,
        json_format=cfg.json_format,
        console_output=cfg.console_output,
        max_bytes=cfg.max_file_size_mb * 1024 * 1024,
        backup_count=cfg.backup_count,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Loggers and request context
# ─────────────────────────────────────────────────────────────────────────────


def get_logger(name: str = "sidekick", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """
    Named structlog logger, optionally pre-bound:

        log = get_logger(__name__, provider="groq")
        log.info("groq.request")   # {"event": "groq.request", "provider": "groq", ...}
    """
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger


def bind_conversation(conversation_id: str, user_id: str) -> None:
    """
    Attach conversation_id / user_id to every log line emitted by the
    current task (and tasks it spawns) until clear_conversation().
    """
    structlog.contextvars.bind_contextvars(conversation_id=conversation_id, user_id=user_id)


def clear_conversation() -> None:
    structlog.contextvars.unbind_contextvars("conversation_id", "user_id")
