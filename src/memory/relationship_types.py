"""Result models for relationship discovery.

Relationships are stored as free-form labels keyed by the other character's
name. A missing relationship is reported with ``NONE_LABEL`` rather than an
error, and names that resolve to no registered character are kept as
unresolved ("future") edges.
"""

from collections.abc import Mapping
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from src.utils.validation import name_key

NONE_LABEL = "none"


def lookup_label(relationships: Mapping[str, str], target_name: str) -> str:
    """Find the label for ``target_name``: exact key first, then case-insensitive.

    Returns:
        The label, or ``NONE_LABEL`` when no key matches.
    """
    label = relationships.get(target_name)
    if label:
        return label
    wanted = name_key(target_name)
    for key, value in relationships.items():
        if name_key(key) == wanted and value:
            return value
    return NONE_LABEL


class ResolvedEdge(BaseModel):
    """Relationship edge whose target is a registered character."""

    kind: Literal["resolved"] = "resolved"
    target_id: str
    target_name: str
    label: str


class UnresolvedEdge(BaseModel):
    """Relationship edge naming a character that is not registered (yet)."""

    kind: Literal["unresolved"] = "unresolved"
    target_name: str
    label: str


EdgeResolution = Annotated[ResolvedEdge | UnresolvedEdge, Field(discriminator="kind")]


class LookupFailure(BaseModel):
    """Typed "not found" outcome naming which side failed to resolve."""

    a_identifier: str
    b_identifier: str | None = None
    a_found: bool = False
    b_found: bool = True
    message: str

    def __bool__(self) -> bool:
        return False


class RelationshipLookup(BaseModel):
    """Both directed labels between two characters."""

    a_id: str
    b_id: str
    a_name: str
    b_name: str
    a_to_b: str = NONE_LABEL
    b_to_a: str = NONE_LABEL
    is_mutual: bool = False
    is_conflicting: bool = False

    @property
    def has_direct(self) -> bool:
        return self.a_to_b != NONE_LABEL or self.b_to_a != NONE_LABEL


class DirectRelationship(BaseModel):
    """Direct relationship from the perspective of the target character."""

    target_to_other: str = NONE_LABEL
    other_to_target: str = NONE_LABEL
    is_mutual: bool = False
    is_conflicting: bool = False


class IndirectLink(BaseModel):
    """Two characters both related to the same third name."""

    through: str
    target_to_common: str
    other_to_common: str


class DiscoveredRelationship(BaseModel):
    """Everything discovery found between the target and one other character."""

    character_id: str
    character_name: str
    direct: DirectRelationship | None = None
    indirect: list[IndirectLink] = Field(default_factory=list)


class FutureRelationship(BaseModel):
    """Edge to a name with no registered character."""

    name: str
    label: str
    is_placeholder: bool = True


class DiscoveryStats(BaseModel):
    """Running counts for one character's discovery pass."""

    total_candidates: int = 0
    direct: int = 0
    mutual: int = 0
    conflicting: int = 0
    indirect: int = 0
    future: int = 0


class CharacterDiscovery(BaseModel):
    """Result of discovering one character's relationships."""

    character_id: str
    character_name: str
    relationships: list[DiscoveredRelationship] = Field(default_factory=list)
    future: list[FutureRelationship] = Field(default_factory=list)
    stats: DiscoveryStats = Field(default_factory=DiscoveryStats)


class CharacterContext(BaseModel):
    """Point-in-time snapshot of another character used in a network view."""

    description: str = ""
    personality: str = ""
    faction: str = ""
    location: str = ""
    current_state: str = ""


class NetworkDirectEntry(BaseModel):
    character_id: str
    character_name: str
    relationship: DirectRelationship
    context: CharacterContext


class NetworkIndirectEntry(BaseModel):
    character_id: str
    character_name: str
    link: IndirectLink
    context: CharacterContext
    through_context: CharacterContext | None = None  # None when the intermediate is unregistered


class NetworkFutureEntry(BaseModel):
    name: str
    label: str
    is_placeholder: bool = True


class RelationshipNetwork(BaseModel):
    """Discovery joined with context snapshots of every related character."""

    character_id: str
    character_name: str
    direct: list[NetworkDirectEntry] = Field(default_factory=list)
    indirect: list[NetworkIndirectEntry] = Field(default_factory=list)
    future: list[NetworkFutureEntry] = Field(default_factory=list)
    stats: DiscoveryStats = Field(default_factory=DiscoveryStats)


class CharacterDiscoveryTotals(BaseModel):
    """Per-character line of a population discovery pass."""

    character_id: str
    character_name: str
    stats: DiscoveryStats
    processing_time_ms: float = 0.0


class PopulationDiscovery(BaseModel):
    """Aggregate result of discovering relationships for every character."""

    total_characters: int = 0
    successful: int = 0
    failed: int = 0
    total_direct: int = 0
    total_indirect: int = 0
    total_future: int = 0
    total_mutual: int = 0
    total_conflicting: int = 0
    per_character: list[CharacterDiscoveryTotals] = Field(default_factory=list)
    processing_time_ms: float = 0.0


class MentionedCharacter(BaseModel):
    """A character named in a message, with the speaker's direct labels."""

    character_id: str
    character_name: str
    relationship: RelationshipLookup


class MentionScan(BaseModel):
    """Characters mentioned in a message."""

    speaker_id: str
    mentioned: list[MentionedCharacter] = Field(default_factory=list)

    @property
    def related(self) -> list[MentionedCharacter]:
        """Mentioned characters with at least one defined direction."""
        return [m for m in self.mentioned if m.relationship.has_direct]
