"""Character models for the in-memory character store."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["player", "npc"]


class PlayerRelationship(BaseModel):
    """How a character feels about the player."""

    status: str = "neutral"
    affinity: int = Field(default=50, ge=0, le=100)
    trust: int = Field(default=50, ge=0, le=100)
    respect: int = Field(default=50, ge=0, le=100)
    history: list[str] = Field(default_factory=list)  # Append-only milestones

    model_config = ConfigDict(extra="allow")


class ConversationMessage(BaseModel):
    """A single message in a character's conversation history."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class CharacterMetadata(BaseModel):
    """Open key/value bag describing a character.

    Known fields are typed; anything else a client sends is kept as an
    extra field and round-trips through ``model_dump(by_alias=True)``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    description: str = ""
    personality: str = ""
    location: str = ""
    current_state: str = Field(default="", alias="currentState")
    faction: str = ""
    inventory: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    player_relationship: PlayerRelationship = Field(default_factory=PlayerRelationship)
    relationships: dict[str, str] = Field(default_factory=dict)  # other name -> label

    def to_payload(self) -> dict[str, Any]:
        """Dump in the wire shape clients send."""
        return self.model_dump(by_alias=True)


class Character(BaseModel):
    """A registered character with metadata and conversation history."""

    id: str
    metadata: CharacterMetadata
    conversations: list[ConversationMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def relationships(self) -> dict[str, str]:
        return self.metadata.relationships


class CharacterSummary(BaseModel):
    """Compact listing entry for a character."""

    id: str
    name: str
    message_count: int = 0
