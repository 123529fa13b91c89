"""
main.py — Sidekick Command Line

Usage:
    sidekick ask "How should I price my consulting services?"
    sidekick ask "Draft a launch email" --specialist creative
    sidekick health                         # provider availability + round trip
    sidekick models                         # model table for the active provider
    sidekick --log-level DEBUG ask "..."    # verbose logging
    sidekick --config path/to/config.yaml health
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

from dotenv import load_dotenv
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from sidekick.brain.types import Provider, SpecialistType

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sidekick",
        description="Sidekick: a thinking partner with specialist personas and multi-provider LLM routing",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $SIDEKICK_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="Run one agent turn and print the response")
    ask.add_argument("message", help="The user message")
    ask.add_argument(
        "--specialist",
        choices=[s.value for s in SpecialistType.user_facing()],
        default=None,
        help="Skip keyword routing and use this specialist",
    )
    ask.add_argument("--conversation-id", default=None, help="Conversation id (default: new)")
    ask.add_argument("--user-id", default="local", help="User id (default: local)")
    ask.add_argument("--project", default=None, help="Current project label for context")

    health = sub.add_parser("health", help="Check provider availability")
    health.add_argument(
        "--test",
        action="store_true",
        default=False,
        help="Also send a tiny prompt through the router",
    )

    sub.add_parser("models", help="Show the model table for the active provider")
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it, and set up logging.
    Exits with code 1 after printing a clear message on any config problem.
    """
    from sidekick.config.settings import load_settings
    from sidekick.exceptions import ConfigurationError
    from sidekick.observability.logger import get_logger, setup_logging_from_settings

    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {e['loc'][-1] if e['loc'] else '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\nConfig validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError) as exc:
        print(f"\nFailed to load config: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        sys.exit(1)

    try:
        settings.validate_all()
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if args.log_level:
        settings.logging.level = args.log_level
    setup_logging_from_settings(settings)

    return settings, get_logger("sidekick.main")


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


async def _cmd_ask(args: argparse.Namespace, settings, log) -> int:
    from sidekick.agent import Orchestrator, UserContext

    orc = Orchestrator.from_settings(settings)
    conversation_id = args.conversation_id or str(uuid.uuid4())
    context = UserContext(user_id=args.user_id, current_project=args.project)
    specialist = SpecialistType(args.specialist) if args.specialist else None

    try:
        response = await orc.process_request(
            args.message, context, conversation_id, specialist=specialist
        )
    finally:
        await orc.close()

    meta = response.metadata
    subtitle = (
        f"{response.specialist.value} · {response.mode.value}"
        + (f" · {meta.provider.value}/{meta.model}" if meta.provider else "")
        + f" · {meta.tokens_used} tokens · {meta.execution_time_ms} ms"
    )
    console.print(
        Panel(
            Markdown(response.content),
            title="[bold]Sidekick[/]",
            subtitle=f"[dim]{subtitle}[/]",
            border_style="red" if response.is_degraded else "cyan",
        )
    )
    if response.routing_reason:
        console.print(f"[dim]Routing: {response.routing_reason} "
                      f"(confidence {meta.confidence:.2f})[/]")
    console.print(f"[dim]Conversation: {conversation_id}[/]")
    log.info("sidekick.ask_done", degraded=response.is_degraded)
    return 1 if response.is_degraded else 0


async def _cmd_health(args: argparse.Namespace, settings, log) -> int:
    from sidekick.brain.router import LLMRouter

    router = LLMRouter.from_settings(settings)
    table = Table(title="Providers", box=box.SIMPLE_HEAVY)
    table.add_column("Provider")
    table.add_column("Role")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    primary_ok = False
    for provider in Provider:
        health = await router.check_provider_health(provider)
        role = "primary" if provider == router.primary else (
            "fallback" if provider in router.fallback_chain() else "-"
        )
        status = "[green]available[/]" if health.available else "[red]unavailable[/]"
        table.add_row(provider.value, role, status, health.error or "")
        if provider == router.primary:
            primary_ok = health.available

    console.print(table)

    if args.test:
        ok = await router.test_connection()
        console.print("[green]Round trip OK[/]" if ok else "[red]Round trip failed[/]")
        log.info("sidekick.health_done", primary_ok=primary_ok, round_trip=ok)
        return 0 if ok else 1

    log.info("sidekick.health_done", primary_ok=primary_ok)
    return 0 if router.available_providers else 1


async def _cmd_models(args: argparse.Namespace, settings, log) -> int:
    from sidekick.brain.models import AGENT_MODELS, required_local_models, resolve_model
    from sidekick.brain.ollama_client import OllamaClient

    provider = settings.active_provider
    overrides = settings.model_overrides

    table = Table(title=f"Models for {provider.value}", box=box.SIMPLE_HEAVY)
    table.add_column("Specialist")
    table.add_column("Model")
    table.add_column("Description", style="dim")
    for specialist, entry in AGENT_MODELS.items():
        model = resolve_model(specialist, provider, overrides)
        marker = " [yellow](override)[/]" if specialist in overrides else ""
        table.add_row(specialist.value, model + marker, entry.description)
    console.print(table)

    ollama = OllamaClient(base_url=settings.ollama_base_url)
    if not await ollama.health_check():
        console.print(f"[yellow]Ollama server not reachable at {ollama.base_url}[/]")
        log.warning("sidekick.models_ollama_unreachable", base_url=ollama.base_url)
        return 0

    missing = await ollama.missing_models(required_local_models())
    if missing:
        console.print("[yellow]Local models not pulled:[/] " + ", ".join(missing))
        for model in missing:
            console.print(f"  [dim]ollama pull {model}[/]")
    else:
        console.print("[green]All local fallback models are available.[/]")
    log.info("sidekick.models_done", provider=provider.value, missing=missing)
    return 0


_COMMANDS = {
    "ask": _cmd_ask,
    "health": _cmd_health,
    "models": _cmd_models,
}


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings, log = bootstrap(args)
    log.info(
        "sidekick.starting",
        command=args.command,
        provider=settings.active_provider.value,
        missing_keys=settings.missing_keys(),
    )
    return await _COMMANDS[args.command](args, settings, log)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
