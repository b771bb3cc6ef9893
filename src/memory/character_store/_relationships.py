"""Relationship write operations for CharacterStore."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.memory.characters import Character, PlayerRelationship
from src.memory.relationship_types import NONE_LABEL
from src.utils.validation import name_key, validate_not_empty

from ._characters import _require, merge_player_relationship

if TYPE_CHECKING:
    from . import CharacterStore

logger = logging.getLogger(__name__)


def update_relationship(
    store: CharacterStore, character_id: str, other: str, label: str | None
) -> Character:
    """Set or clear one directed relationship edge.

    ``other`` may be the id of a stored character or any name, including one
    that is not registered yet. A ``None``, blank or ``"none"`` label removes
    the edge. An existing key that differs only in case is replaced.

    Raises:
        CharacterNotFoundError: If character_id is unknown.
        ValueError: If other is blank or names the character itself.
    """
    validate_not_empty(other, "other")
    with store._lock:
        character = _require(store, character_id)
        target = store._characters.get(other)
        target_name = target.name if target is not None else other.strip()
        if name_key(target_name) == name_key(character.name):
            raise ValueError(f"Character '{character.name}' cannot have a relationship with itself")

        relationships = dict(character.metadata.relationships)
        for key in [k for k in relationships if name_key(k) == name_key(target_name)]:
            del relationships[key]

        cleaned = label.strip() if label else ""
        if cleaned and cleaned.lower() != NONE_LABEL:
            relationships[target_name] = cleaned
            logger.info("Relationship %s -> %s set to '%s'", character.name, target_name, cleaned)
        else:
            logger.info("Relationship %s -> %s cleared", character.name, target_name)

        character.metadata.relationships = relationships
        character.updated_at = datetime.now()
        store._invalidate_graph()
        return character.model_copy(deep=True)


def update_player_relationship(
    store: CharacterStore,
    character_id: str,
    changes: Mapping[str, Any],
    milestone: str | None = None,
) -> PlayerRelationship:
    """Merge changes into a character's relationship with the player.

    Scores are clamped into range. History is append-only: entries in
    ``changes["history"]`` that are not already recorded are appended, then
    ``milestone`` if given.

    Raises:
        CharacterNotFoundError: If character_id is unknown.
    """
    with store._lock:
        character = _require(store, character_id)
        merged = merge_player_relationship(store, character, changes, milestone)
        updated = PlayerRelationship.model_validate(merged)
        character.metadata.player_relationship = updated
        character.updated_at = datetime.now()

    logger.debug(
        "Player relationship for %s: status=%s affinity=%d trust=%d respect=%d",
        character.name,
        updated.status,
        updated.affinity,
        updated.trust,
        updated.respect,
    )
    return updated.model_copy(deep=True)
