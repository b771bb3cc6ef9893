"""Conversation history operations for CharacterStore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.memory.characters import ConversationMessage
from src.utils.validation import validate_not_none, validate_string_in_choices

from ._characters import _require

if TYPE_CHECKING:
    from . import CharacterStore

logger = logging.getLogger(__name__)

# Chat-completion roles for each stored role
LLM_ROLES = {"npc": "assistant", "player": "user"}


def append_message(
    store: CharacterStore, character_id: str, role: str, content: str
) -> ConversationMessage:
    """Append a message to a character's history.

    Raises:
        CharacterNotFoundError: If the id is unknown.
        ValueError: If role is not "player" or "npc".
    """
    from . import VALID_ROLES

    validate_string_in_choices(role, "role", sorted(VALID_ROLES))
    validate_not_none(content, "content")

    message = ConversationMessage(role=role, content=str(content))  # type: ignore[arg-type]
    with store._lock:
        character = _require(store, character_id)
        character.conversations.append(message)
        count = len(character.conversations)
    logger.debug("Appended %s message to %s (%d total)", role, character_id, count)
    return message.model_copy()


def get_history(
    store: CharacterStore, character_id: str, limit: int = 0
) -> list[ConversationMessage]:
    """Return the last ``limit`` messages in order (0 returns all).

    Raises:
        CharacterNotFoundError: If the id is unknown.
    """
    with store._lock:
        messages = _require(store, character_id).conversations
        selected = messages[-limit:] if limit > 0 else messages
        return [m.model_copy() for m in selected]


def clear_history(store: CharacterStore, character_id: str) -> int:
    """Empty a character's history.

    Returns:
        Number of messages removed.
    """
    with store._lock:
        character = _require(store, character_id)
        removed = len(character.conversations)
        character.conversations = []
    logger.info("Cleared %d message(s) from %s", removed, character_id)
    return removed


def format_history_for_llm(
    store: CharacterStore, character_id: str, limit: int = 10
) -> list[dict[str, str]]:
    """Format recent history as chat-completion messages."""
    return [
        {"role": LLM_ROLES[m.role], "content": m.content}
        for m in get_history(store, character_id, limit)
    ]
