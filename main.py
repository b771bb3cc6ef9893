#!/usr/bin/env python3
"""NPC Context Engine - character relationship memory for roleplayed NPCs.

Keeps a store of characters with free-form relationships to each other and to
the player, and discovers:
- Direct relationships (mutual or conflicting)
- Indirect links through a shared third character
- Future relationships to characters not yet registered

Usage:
    python main.py --cast cast.json --discover-all
    python main.py --cast cast.json --relationship Blacksmith Mayor
    python main.py --cast cast.json --network Innkeeper
    python main.py --cast cast.json --chat Mayor
    python main.py --cast cast.json --serve
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from src.utils.exceptions import CharacterNotFoundError, ConfigError, LLMError
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def load_cast(services: Any, path: str) -> int:
    """Register every character payload in a JSON file.

    Args:
        services: ServiceContainer whose store receives the characters.
        path: JSON file holding a list of registration payloads.

    Returns:
        Number of characters registered.

    Raises:
        ConfigError: If the file cannot be read or is not a list of payloads.
    """
    try:
        with open(path, encoding="utf-8") as f:
            payloads = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read cast file {path}: {e}") from e

    if isinstance(payloads, dict):
        payloads = [payloads]
    if not isinstance(payloads, list):
        raise ConfigError(f"Cast file {path} must contain a JSON list of characters")

    created = services.store.create_many(p for p in payloads if isinstance(p, dict))
    logger.info("Loaded %d character(s) from %s", len(created), path)
    return len(created)


def _print_result(result: Any) -> None:
    if hasattr(result, "model_dump_json"):
        print(result.model_dump_json(indent=2))
    else:
        print(json.dumps(result, indent=2, default=str))


def run_chat(services: Any, identifier: str, model: str | None = None, stream: bool = False) -> None:
    """Interactive chat loop with one character."""
    character = services.store.get(identifier)
    print(f"Chatting with {character.name} (type 'quit' to stop)")
    print("-" * 40)
    while True:
        try:
            message = input("\nYou: ").strip()
        except EOFError:
            break
        if message.lower() in ("quit", "exit"):
            break
        if not message:
            continue
        try:
            turn = services.conversation.chat(character.id, message, model=model, stream=stream)
        except LLMError as e:
            logger.error("Chat turn failed: %s", e)
            print(f"Error: {e}")
            continue
        print(f"\n{turn.character_name}: {turn.reply}")
        for key, choice in turn.player_response_choices.items():
            print(f"  {key}. {choice}")


def run_serve(services: Any) -> None:
    """Run the background refresh jobs until interrupted."""
    logger.info("Serving background refresh for %d character(s)", services.store.count())
    with services.scheduler:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping scheduler")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="NPC Context Engine - character relationship memory")
    parser.add_argument(
        "--cast",
        type=str,
        metavar="FILE",
        help="JSON file with a list of character payloads to register",
    )
    parser.add_argument(
        "--relationship",
        nargs=2,
        metavar=("A", "B"),
        help="Show the relationship between two characters",
    )
    parser.add_argument("--discover", type=str, metavar="NAME", help="Discover one character's relationships")
    parser.add_argument("--network", type=str, metavar="NAME", help="Show one character's relationship network")
    parser.add_argument(
        "--discover-all",
        action="store_true",
        help="Run relationship discovery for every character",
    )
    parser.add_argument("--snapshot", action="store_true", help="Log a snapshot of the character store")
    parser.add_argument("--chat", type=str, metavar="NAME", help="Chat with a character")
    parser.add_argument("--model", type=str, default=None, help="Model for --chat (default: from settings)")
    parser.add_argument("--stream", action="store_true", help="Stream --chat replies from the model")
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run background snapshot and discovery jobs until interrupted",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from settings)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: from settings, use 'none' to disable)",
    )

    args = parser.parse_args(argv)

    from src.settings import Settings

    settings = Settings.load()
    log_file = args.log_file if args.log_file is not None else settings.log_file
    if log_file and log_file.lower() == "none":
        log_file = None
    setup_logging(level=args.log_level or settings.log_level, log_file=log_file)

    from src.memory.relationship_types import LookupFailure
    from src.services import ServiceContainer

    services = ServiceContainer(settings)

    exit_code = 0
    try:
        if args.cast:
            load_cast(services, str(Path(args.cast)))
        if args.relationship:
            result = services.discovery.relationship_between(*args.relationship)
            _print_result(result)
            exit_code = 1 if isinstance(result, LookupFailure) else exit_code
        if args.discover:
            result = services.discovery.discover_for(args.discover)
            _print_result(result)
            exit_code = 1 if isinstance(result, LookupFailure) else exit_code
        if args.network:
            result = services.discovery.relationship_network(args.network)
            _print_result(result)
            exit_code = 1 if isinstance(result, LookupFailure) else exit_code
        if args.discover_all:
            _print_result(services.discovery.discover_all())
        if args.snapshot:
            services.store.log_snapshot()
            _print_result([s.model_dump() for s in services.store.summaries()])
        if args.chat:
            run_chat(services, args.chat, model=args.model, stream=args.stream)
        if args.serve:
            run_serve(services)
    except (CharacterNotFoundError, ConfigError) as e:
        logger.error("%s", e)
        print(f"Error: {e}")
        return 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
