"""Relationship discovery service - answers who is connected to whom.

This service handles:
- Pairwise lookups with mutual/conflicting classification
- Direct, indirect (shared third party) and future (unregistered) edges
- Network views joined with context snapshots of related characters
- Population-wide discovery passes with per-character timing
- Detection of characters mentioned in a chat message

Every query reads one consistent snapshot of the store, so results are never
built from a half-applied write.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

from src.memory.characters import Character
from src.memory.relationship_types import (
    NONE_LABEL,
    CharacterContext,
    CharacterDiscovery,
    CharacterDiscoveryTotals,
    DirectRelationship,
    DiscoveredRelationship,
    DiscoveryStats,
    EdgeResolution,
    FutureRelationship,
    IndirectLink,
    LookupFailure,
    MentionedCharacter,
    MentionScan,
    NetworkDirectEntry,
    NetworkFutureEntry,
    NetworkIndirectEntry,
    PopulationDiscovery,
    RelationshipLookup,
    RelationshipNetwork,
    ResolvedEdge,
    UnresolvedEdge,
    lookup_label,
)
from src.settings import Settings
from src.utils.validation import name_key, validate_not_none

if TYPE_CHECKING:
    from src.memory.character_store import CharacterStore

logger = logging.getLogger(__name__)


class _Population:
    """Id and name indexes over one store snapshot."""

    def __init__(self, characters: Iterable[Character]):
        self.characters = list(characters)
        self.by_id = {c.id: c for c in self.characters}
        self.by_key = {name_key(c.name): c for c in self.characters}

    def find(self, identifier: str) -> Character | None:
        """Resolve by id first, then case-insensitive name."""
        return self.by_id.get(identifier) or self.by_key.get(name_key(identifier))


def _outgoing(character: Character) -> dict[str, tuple[str, str]]:
    """Map name key -> (spelling, label) for a character's edges, self edges dropped."""
    own = name_key(character.name)
    edges: dict[str, tuple[str, str]] = {}
    for target, label in character.relationships.items():
        key = name_key(target)
        if key != own and label and label != NONE_LABEL and key not in edges:
            edges[key] = (target, label)
    return edges


def _context(character: Character) -> CharacterContext:
    metadata = character.metadata
    return CharacterContext(
        description=metadata.description,
        personality=metadata.personality,
        faction=metadata.faction,
        location=metadata.location,
        current_state=metadata.current_state,
    )


def classify_pair(a: Character, b: Character) -> RelationshipLookup:
    """Look up both directed labels between two characters.

    Mutual means both directions are defined and equal; conflicting means
    both are defined and differ. Labels are compared literally.
    """
    if a.id == b.id:
        a_to_b = b_to_a = NONE_LABEL
    else:
        a_to_b = lookup_label(a.relationships, b.name)
        b_to_a = lookup_label(b.relationships, a.name)
    both_defined = a_to_b != NONE_LABEL and b_to_a != NONE_LABEL
    return RelationshipLookup(
        a_id=a.id,
        b_id=b.id,
        a_name=a.name,
        b_name=b.name,
        a_to_b=a_to_b,
        b_to_a=b_to_a,
        is_mutual=both_defined and a_to_b == b_to_a,
        is_conflicting=both_defined and a_to_b != b_to_a,
    )


class RelationshipDiscoveryService:
    """Service for relationship discovery over a CharacterStore.

    Read-only with respect to characters: nothing here creates, updates
    or removes a character.
    """

    def __init__(self, settings: Settings, store: CharacterStore):
        """Initialize relationship discovery service.

        Args:
            settings: Application settings.
            store: Store to read characters from.
        """
        logger.debug("Initializing RelationshipDiscoveryService")
        validate_not_none(store, "store")
        self.settings = settings
        self.store = store

    def _population(self) -> _Population:
        return _Population(self.store.snapshot())

    def relationship_between(self, a: str, b: str) -> RelationshipLookup | LookupFailure:
        """Look up the relationship between two characters by id or name.

        Returns:
            RelationshipLookup, or LookupFailure naming which side did not resolve.
        """
        population = self._population()
        first = population.find(a)
        second = population.find(b)
        if first is None or second is None:
            missing = [ident for ident, c in ((a, first), (b, second)) if c is None]
            logger.debug("Relationship lookup failed, not found: %s", missing)
            return LookupFailure(
                a_identifier=a,
                b_identifier=b,
                a_found=first is not None,
                b_found=second is not None,
                message=f"Character(s) not found: {', '.join(missing)}",
            )
        return classify_pair(first, second)

    def _discover(self, target: Character, population: _Population) -> CharacterDiscovery:
        """Discover a character's relationships against one snapshot."""
        stats = DiscoveryStats()
        found: list[DiscoveredRelationship] = []
        target_edges = _outgoing(target)
        target_key = name_key(target.name)

        for other in population.characters:
            if other.id == target.id:
                continue
            stats.total_candidates += 1
            entry = DiscoveredRelationship(character_id=other.id, character_name=other.name)

            lookup = classify_pair(target, other)
            if lookup.has_direct:
                stats.direct += 1
                stats.mutual += int(lookup.is_mutual)
                stats.conflicting += int(lookup.is_conflicting)
                entry.direct = DirectRelationship(
                    target_to_other=lookup.a_to_b,
                    other_to_target=lookup.b_to_a,
                    is_mutual=lookup.is_mutual,
                    is_conflicting=lookup.is_conflicting,
                )
            else:
                # Indirect links only count when there is no direct relationship
                other_edges = _outgoing(other)
                excluded = {target_key, name_key(other.name)}
                for key, (spelling, target_label) in target_edges.items():
                    if key in other_edges and key not in excluded:
                        entry.indirect.append(
                            IndirectLink(
                                through=spelling,
                                target_to_common=target_label,
                                other_to_common=other_edges[key][1],
                            )
                        )
                if entry.indirect:
                    stats.indirect += 1

            if entry.direct is not None or entry.indirect:
                found.append(entry)

        future = [
            FutureRelationship(name=spelling, label=label)
            for key, (spelling, label) in target_edges.items()
            if key not in population.by_key
        ]
        stats.future = len(future)

        logger.debug(
            "Discovery for %s: candidates=%d direct=%d mutual=%d conflicting=%d "
            "indirect=%d future=%d",
            target.name,
            stats.total_candidates,
            stats.direct,
            stats.mutual,
            stats.conflicting,
            stats.indirect,
            stats.future,
        )
        return CharacterDiscovery(
            character_id=target.id,
            character_name=target.name,
            relationships=found,
            future=future,
            stats=stats,
        )

    def discover_for(self, identifier: str) -> CharacterDiscovery | LookupFailure:
        """Discover every relationship of one character.

        Args:
            identifier: Character id or name.

        Returns:
            CharacterDiscovery, or LookupFailure if the character is unknown.
        """
        population = self._population()
        target = population.find(identifier)
        if target is None:
            return LookupFailure(
                a_identifier=identifier, message=f"Character not found: {identifier}"
            )
        return self._discover(target, population)

    def relationship_network(self, identifier: str) -> RelationshipNetwork | LookupFailure:
        """Discovery joined with point-in-time context of each related character.

        Indirect entries also carry the context of the intermediate character,
        or None when that name is not registered.
        """
        population = self._population()
        target = population.find(identifier)
        if target is None:
            return LookupFailure(
                a_identifier=identifier, message=f"Character not found: {identifier}"
            )
        discovery = self._discover(target, population)

        network = RelationshipNetwork(
            character_id=target.id,
            character_name=target.name,
            stats=discovery.stats,
            future=[NetworkFutureEntry(name=f.name, label=f.label) for f in discovery.future],
        )
        for entry in discovery.relationships:
            other = population.by_id[entry.character_id]
            if entry.direct is not None:
                network.direct.append(
                    NetworkDirectEntry(
                        character_id=other.id,
                        character_name=other.name,
                        relationship=entry.direct,
                        context=_context(other),
                    )
                )
            for link in entry.indirect:
                through = population.by_key.get(name_key(link.through))
                network.indirect.append(
                    NetworkIndirectEntry(
                        character_id=other.id,
                        character_name=other.name,
                        link=link,
                        context=_context(other),
                        through_context=_context(through) if through is not None else None,
                    )
                )
        return network

    def discover_all(self) -> PopulationDiscovery:
        """Run discovery for every stored character.

        Characters that disappear between listing and reading are skipped
        and counted as failures.
        """
        start = time.perf_counter()
        ids = self.store.list_ids()
        population = self._population()
        result = PopulationDiscovery(total_characters=len(ids))

        for character_id in ids:
            target = population.by_id.get(character_id)
            if target is None:
                logger.warning("Character %s vanished during discovery, skipping", character_id)
                result.failed += 1
                continue

            char_start = time.perf_counter()
            discovery = self._discover(target, population)
            stats = discovery.stats
            result.successful += 1
            result.total_direct += stats.direct
            result.total_indirect += stats.indirect
            result.total_future += stats.future
            result.total_mutual += stats.mutual
            result.total_conflicting += stats.conflicting
            result.per_character.append(
                CharacterDiscoveryTotals(
                    character_id=target.id,
                    character_name=target.name,
                    stats=stats,
                    processing_time_ms=(time.perf_counter() - char_start) * 1000,
                )
            )

        result.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Discovered relationships for %d/%d character(s) in %.1fms: direct=%d "
            "indirect=%d future=%d mutual=%d conflicting=%d failed=%d",
            result.successful,
            result.total_characters,
            result.processing_time_ms,
            result.total_direct,
            result.total_indirect,
            result.total_future,
            result.total_mutual,
            result.total_conflicting,
            result.failed,
        )
        return result

    def resolve_edges(self, identifier: str) -> list[EdgeResolution] | LookupFailure:
        """Resolve a character's name-keyed edges against the current population."""
        population = self._population()
        target = population.find(identifier)
        if target is None:
            return LookupFailure(
                a_identifier=identifier, message=f"Character not found: {identifier}"
            )

        edges: list[EdgeResolution] = []
        for key, (spelling, label) in _outgoing(target).items():
            other = population.by_key.get(key)
            if other is not None:
                edges.append(ResolvedEdge(target_id=other.id, target_name=other.name, label=label))
            else:
                edges.append(UnresolvedEdge(target_name=spelling, label=label))
        return edges

    def detect_mentions(self, identifier: str, message: str) -> MentionScan | LookupFailure:
        """Find other characters named as whole words in a message.

        Args:
            identifier: Id or name of the character being spoken to.
            message: Chat message text.
        """
        population = self._population()
        speaker = population.find(identifier)
        if speaker is None:
            return LookupFailure(
                a_identifier=identifier, message=f"Character not found: {identifier}"
            )

        scan = MentionScan(speaker_id=speaker.id)
        for other in population.characters:
            if other.id == speaker.id:
                continue
            if re.search(rf"\b{re.escape(other.name)}\b", message or "", re.IGNORECASE):
                scan.mentioned.append(
                    MentionedCharacter(
                        character_id=other.id,
                        character_name=other.name,
                        relationship=classify_pair(speaker, other),
                    )
                )
        if scan.mentioned:
            logger.debug(
                "Message to %s mentions: %s",
                speaker.name,
                [m.character_name for m in scan.mentioned],
            )
        return scan
