"""In-memory character store with NetworkX relationship view."""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator, Iterable, Mapping
from contextlib import contextmanager
from typing import Any

from networkx import DiGraph

from src.memory.characters import Character, CharacterSummary, ConversationMessage, PlayerRelationship
from src.utils.payload_normalizer import DEFAULT_PLAYER_STATUS, DEFAULT_SCORE

from . import _characters, _conversations, _graph, _relationships, _snapshot

logger = logging.getLogger(__name__)

VALID_ROLES = frozenset({"player", "npc"})


class CharacterStore:
    """Owned, injectable store of characters keyed by id.

    Thread-safe: every operation runs under an RLock and readers receive deep
    copies, so no partially-updated character is ever observable. Sequences
    that read, wait on something slow and then write back (a chat turn) take
    the per-character lock from ``character_lock``.
    """

    def __init__(
        self,
        default_status: str = DEFAULT_PLAYER_STATUS,
        default_score: int = DEFAULT_SCORE,
    ):
        """Initialize an empty store.

        Args:
            default_status: Player relationship status given to new characters.
            default_score: Affinity/trust/respect given to new characters.
        """
        self.default_status = default_status
        self.default_score = default_score

        self._lock = threading.RLock()
        self._characters: dict[str, Character] = {}
        self._name_index: dict[str, str] = {}  # name key -> id
        self._character_locks: dict[str, threading.RLock] = {}
        self._graph: DiGraph[Any] | None = None
        logger.debug("CharacterStore initialized")

    @classmethod
    def from_settings(cls, settings: Any) -> CharacterStore:
        """Build a store using the player relationship defaults from settings."""
        return cls(
            default_status=settings.default_player_status,
            default_score=settings.default_relationship_score,
        )

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, identifier: object) -> bool:
        if not isinstance(identifier, str):
            return False
        with self._lock:
            return _characters.resolve_id(self, identifier) is not None

    # ========== Characters ==========

    def create(self, payload: Mapping[str, Any], correlation_id: str | None = None) -> str:
        return _characters.create_character(self, payload, correlation_id)

    def create_many(self, payloads: Iterable[Mapping[str, Any]]) -> dict[str, str]:
        return _characters.create_many(self, payloads)

    def get_character(self, character_id: str) -> Character | None:
        return _characters.get_character(self, character_id)

    def find_by_name(self, name: str) -> Character | None:
        return _characters.find_by_name(self, name)

    def get(self, identifier: str) -> Character:
        return _characters.resolve(self, identifier)

    def update_metadata(self, character_id: str, partial: Mapping[str, Any]) -> Character:
        return _characters.update_metadata(self, character_id, partial)

    def remove(self, character_id: str) -> None:
        _characters.remove_character(self, character_id)

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._characters)

    def count(self) -> int:
        with self._lock:
            return len(self._characters)

    def summaries(self) -> list[CharacterSummary]:
        return _characters.summaries(self)

    def snapshot(self, include_conversations: bool = False) -> list[Character]:
        return _characters.snapshot(self, include_conversations)

    # ========== Relationships ==========

    def update_relationship(self, character_id: str, other: str, label: str | None) -> Character:
        return _relationships.update_relationship(self, character_id, other, label)

    def update_player_relationship(
        self,
        character_id: str,
        changes: Mapping[str, Any],
        milestone: str | None = None,
    ) -> PlayerRelationship:
        return _relationships.update_player_relationship(self, character_id, changes, milestone)

    # ========== Conversations ==========

    def append_message(self, character_id: str, role: str, content: str) -> ConversationMessage:
        return _conversations.append_message(self, character_id, role, content)

    def get_history(self, character_id: str, limit: int = 0) -> list[ConversationMessage]:
        return _conversations.get_history(self, character_id, limit)

    def clear_history(self, character_id: str) -> int:
        return _conversations.clear_history(self, character_id)

    def format_history_for_llm(self, character_id: str, limit: int = 10) -> list[dict[str, str]]:
        return _conversations.format_history_for_llm(self, character_id, limit)

    # ========== Concurrency ==========

    @contextmanager
    def character_lock(self, character_id: str) -> Generator[None]:
        """Hold the per-character lock for a read-await-write sequence.

        Args:
            character_id: Id of the character being updated.
        """
        with self._lock:
            lock = self._character_locks.setdefault(character_id, threading.RLock())
        with lock:
            yield

    # ========== Graph ==========

    def _invalidate_graph(self) -> None:
        _graph.invalidate_graph(self)

    def get_graph(self) -> DiGraph[Any]:
        return _graph.get_graph(self)

    def find_path(self, source: str, target: str) -> list[str]:
        return _graph.find_path(self, source, target)

    def most_connected(self, limit: int = 10) -> list[tuple[str, int]]:
        return _graph.get_most_connected(self, limit)

    # ========== Diagnostics ==========

    def log_snapshot(self, correlation_id: str | None = None) -> int:
        return _snapshot.log_snapshot(self, correlation_id)


__all__ = ["VALID_ROLES", "CharacterStore"]
