"""Character registration and lifecycle operations for CharacterStore."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.memory.characters import Character, CharacterMetadata, CharacterSummary
from src.utils.exceptions import CharacterNotFoundError
from src.utils.logging_config import log_context
from src.utils.payload_normalizer import (
    normalize_character_payload,
    normalize_partial_update,
    normalize_player_relationship,
)
from src.utils.validation import name_key, validate_character_name

if TYPE_CHECKING:
    from . import CharacterStore

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("description", "personality", "location", "currentState", "faction")


def _build_metadata(data: dict[str, Any]) -> CharacterMetadata:
    """Construct metadata from an already-normalized payload dict."""
    if "current_state" in data:
        data["currentState"] = data.pop("current_state")
    for text_field in TEXT_FIELDS:
        if text_field not in data:
            continue
        value = data[text_field]
        if value is None:
            data.pop(text_field)
        elif not isinstance(value, str):
            data[text_field] = str(value)
    return CharacterMetadata.model_validate(data)


def resolve_id(store: CharacterStore, identifier: str) -> str | None:
    """Resolve an id or a case-insensitive name to a stored id.

    Callers must hold store._lock.
    """
    if identifier in store._characters:
        return identifier
    return store._name_index.get(name_key(identifier))


def _require(store: CharacterStore, character_id: str) -> Character:
    """Return the stored (not copied) character or raise.

    Callers must hold store._lock.
    """
    character = store._characters.get(character_id)
    if character is None:
        raise CharacterNotFoundError(f"Character not found: {character_id}", character_id)
    return character


def merge_player_relationship(
    store: CharacterStore,
    character: Character,
    changes: Mapping[str, Any],
    milestone: str | None = None,
) -> dict[str, Any]:
    """Merge changes into a character's player relationship payload.

    History entries not already recorded are appended, then ``milestone``.
    Existing entries are never removed. Callers must hold store._lock.
    """
    current = character.metadata.player_relationship.model_dump()
    history: list[str] = list(current["history"])

    incoming = dict(changes)
    incoming_history = incoming.pop("history", None) or []
    if isinstance(incoming_history, str):
        incoming_history = [incoming_history]
    elif not isinstance(incoming_history, (list, tuple)):
        logger.warning(
            "Ignoring player history of type %s for %s", type(incoming_history).__name__, character.name
        )
        incoming_history = []
    for entry in incoming_history:
        text = str(entry).strip()
        if text and text not in history:
            history.append(text)
    if milestone and milestone.strip():
        history.append(milestone.strip())

    return normalize_player_relationship(
        {**current, **incoming, "history": history},
        store.default_status,
        store.default_score,
    )


def _drop(store: CharacterStore, character_id: str) -> Character:
    """Remove a character and its index entries. Callers must hold store._lock."""
    character = store._characters.pop(character_id)
    store._name_index.pop(name_key(character.name), None)
    store._character_locks.pop(character_id, None)
    return character


def create_character(
    store: CharacterStore,
    payload: Mapping[str, Any],
    correlation_id: str | None = None,
) -> str:
    """Register a character, replacing any existing one with the same name.

    Args:
        store: CharacterStore instance.
        payload: Registration payload; must contain a non-empty ``name``.
        correlation_id: Optional id attached to the log records of this call.

    Returns:
        The new character's id.

    Raises:
        ValueError: If the name is missing, blank or too long.
        TypeError: If the name is not a string.
    """
    with log_context(correlation_id):
        name = validate_character_name(payload.get("name"))
        data = normalize_character_payload(payload, store.default_status, store.default_score)
        data["name"] = name
        metadata = _build_metadata(data)

        character_id = str(uuid.uuid4())
        character = Character(id=character_id, metadata=metadata)

        with store._lock:
            existing_id = store._name_index.get(name_key(name))
            if existing_id is not None:
                replaced = _drop(store, existing_id)
                logger.info(
                    "Replacing character %s (%s) with %s, discarding %d message(s)",
                    name,
                    existing_id,
                    character_id,
                    len(replaced.conversations),
                )
            store._characters[character_id] = character
            store._name_index[name_key(name)] = character_id
            store._invalidate_graph()

        logger.info(
            "Registered character %s (%s) with %d relationship(s)",
            name,
            character_id,
            len(metadata.relationships),
        )
        return character_id


def create_many(store: CharacterStore, payloads: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Register several characters.

    Returns:
        Map of registered name to new id. A later payload with the same name
        as an earlier one replaces it.
    """
    registered: dict[str, str] = {}
    replaced = 0
    with store._lock:
        for payload in payloads:
            existed = resolve_id(store, str(payload.get("name") or "")) is not None
            character_id = create_character(store, payload)
            name = store._characters[character_id].name
            registered = {k: v for k, v in registered.items() if name_key(k) != name_key(name)}
            registered[name] = character_id
            if existed:
                replaced += 1
    logger.info("Bulk registration: %d character(s), %d replaced", len(registered), replaced)
    return registered


def get_character(store: CharacterStore, character_id: str) -> Character | None:
    """Get a deep copy of a character by id, or None."""
    with store._lock:
        character = store._characters.get(character_id)
        return character.model_copy(deep=True) if character else None


def find_by_name(store: CharacterStore, name: str) -> Character | None:
    """Get a deep copy of a character by case-insensitive name, or None."""
    with store._lock:
        character_id = store._name_index.get(name_key(name))
        if character_id is None:
            return None
        return store._characters[character_id].model_copy(deep=True)


def resolve(store: CharacterStore, identifier: str) -> Character:
    """Resolve by id first, then by name.

    Raises:
        CharacterNotFoundError: If neither matches.
    """
    with store._lock:
        character_id = resolve_id(store, identifier)
        if character_id is None:
            raise CharacterNotFoundError(f"Character not found: {identifier}", identifier)
        return store._characters[character_id].model_copy(deep=True)


def update_metadata(
    store: CharacterStore, character_id: str, partial: Mapping[str, Any]
) -> Character:
    """Shallow-merge a metadata update into a character.

    List and relationship fields present in the update are normalized first.
    A ``player_relationship`` update is merged into the existing one so the
    scores stay present and clamped and its history only grows. Non-mapping
    ``player_relationship`` values are ignored.

    Raises:
        CharacterNotFoundError: If the id is unknown.
        ValueError: If the update renames the character onto another
            character's name.
    """
    update = normalize_partial_update(partial)
    if "current_state" in update:
        update["currentState"] = update.pop("current_state")

    with store._lock:
        character = _require(store, character_id)
        current = character.metadata.to_payload()
        old_key = name_key(character.name)

        if "name" in update:
            update["name"] = validate_character_name(update["name"])
            owner = store._name_index.get(name_key(update["name"]))
            if owner is not None and owner != character_id:
                raise ValueError(f"Another character is already named '{update['name']}'")

        if "player_relationship" in update:
            incoming = update.pop("player_relationship")
            if isinstance(incoming, Mapping):
                update["player_relationship"] = merge_player_relationship(store, character, incoming)
            else:
                logger.warning(
                    "Ignoring player_relationship of type %s for %s",
                    type(incoming).__name__,
                    character.name,
                )

        current.update(update)
        metadata = _build_metadata(current)
        character.metadata = metadata
        character.updated_at = datetime.now()

        new_key = name_key(metadata.name)
        if new_key != old_key:
            store._name_index.pop(old_key, None)
            store._name_index[new_key] = character_id
        store._invalidate_graph()

        logger.debug("Updated metadata for %s: keys=%s", metadata.name, sorted(partial))
        return character.model_copy(deep=True)


def remove_character(store: CharacterStore, character_id: str) -> None:
    """Remove a character and its conversation history.

    Raises:
        CharacterNotFoundError: If the id is unknown.
    """
    with store._lock:
        _require(store, character_id)
        removed = _drop(store, character_id)
        store._invalidate_graph()
    logger.info("Removed character %s (%s)", removed.name, character_id)


def summaries(store: CharacterStore) -> list[CharacterSummary]:
    """List id, name and message count for every character."""
    with store._lock:
        return [
            CharacterSummary(id=c.id, name=c.name, message_count=len(c.conversations))
            for c in store._characters.values()
        ]


def snapshot(store: CharacterStore, include_conversations: bool = False) -> list[Character]:
    """Take one consistent deep copy of every character.

    Args:
        store: CharacterStore instance.
        include_conversations: Copy conversation histories too.
    """
    with store._lock:
        if include_conversations:
            return [c.model_copy(deep=True) for c in store._characters.values()]
        return [
            Character(
                id=c.id,
                metadata=c.metadata.model_copy(deep=True),
                created_at=c.created_at,
                updated_at=c.updated_at,
            )
            for c in store._characters.values()
        ]
