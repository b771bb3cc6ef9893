"""Diagnostic logging of the whole character store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.utils.logging_config import log_context

if TYPE_CHECKING:
    from . import CharacterStore

logger = logging.getLogger(__name__)


def log_snapshot(store: CharacterStore, correlation_id: str | None = None) -> int:
    """Log a summary of every stored character.

    The headline goes to INFO; one line per character goes to DEBUG.

    Returns:
        Number of characters logged.
    """
    with log_context(correlation_id):
        characters = store.snapshot(include_conversations=True)
        total_messages = sum(len(c.conversations) for c in characters)
        logger.info(
            "Character store snapshot: %d character(s), %d message(s)",
            len(characters),
            total_messages,
        )
        for character in characters:
            player = character.metadata.player_relationship
            logger.debug(
                "  %s (%s): %d message(s), relationships=%s, player=%s "
                "[affinity=%d trust=%d respect=%d]",
                character.name,
                character.id,
                len(character.conversations),
                character.relationships,
                player.status,
                player.affinity,
                player.trust,
                player.respect,
            )
        return len(characters)
