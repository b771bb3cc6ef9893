"""Conversation service - runs one chat turn with a character.

This service handles:
- Building the system prompt from character metadata and relationships
- Calling the language model with the recent conversation history
- Parsing structured replies and applying their metadata updates
- Recording both sides of the exchange in the character's history
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.memory.relationship_types import LookupFailure
from src.settings import Settings
from src.utils.exceptions import JSONParseError, PromptTemplateError
from src.utils.json_parser import extract_json_object
from src.utils.logging_config import log_context
from src.utils.validation import validate_not_empty, validate_not_none

if TYPE_CHECKING:
    from src.memory.character_store import CharacterStore
    from src.memory.characters import Character
    from src.prompts.registry import PromptRegistry
    from src.services.discovery_service import RelationshipDiscoveryService
    from src.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

# Metadata keys a model reply may not change
IDENTITY_KEYS = frozenset({"id", "name"})


@dataclass
class ChatTurn:
    """Outcome of one chat turn."""

    character_id: str
    character_name: str
    reply: str
    player_response_choices: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    structured: bool = False
    model: str = ""
    streamed: bool = False
    duration_seconds: float = 0.0


class ConversationService:
    """Runs chat turns against the character store."""

    def __init__(
        self,
        settings: Settings,
        store: CharacterStore,
        discovery: RelationshipDiscoveryService,
        llm: LLMClient,
        prompts: PromptRegistry,
    ):
        """Initialize conversation service.

        Args:
            settings: Application settings.
            store: Character store.
            discovery: Discovery service used for network and mention context.
            llm: Language model client.
            prompts: Prompt template registry.
        """
        logger.debug("Initializing ConversationService")
        validate_not_none(store, "store")
        validate_not_none(llm, "llm")
        self.settings = settings
        self.store = store
        self.discovery = discovery
        self.llm = llm
        self.prompts = prompts

    @property
    def json_replies(self) -> bool:
        return self.settings.response_format == "json"

    def build_system_prompt(self, character: Character, message: str) -> str:
        """Render the system prompt for a character.

        Falls back to the raw template text (or the generic assistant prompt)
        when rendering fails.
        """
        network = self.discovery.relationship_network(character.id)
        mentions = self.discovery.detect_mentions(character.id, message)
        variables: dict[str, Any] = {
            "character": character.metadata.to_payload(),
            "player_relationship": character.metadata.player_relationship.model_dump(),
            "relationships": dict(character.relationships),
            "network": None if isinstance(network, LookupFailure) else network.model_dump(),
            "mentioned": (
                [] if isinstance(mentions, LookupFailure) else [m.model_dump() for m in mentions.related]
            ),
            "json_reply": self.json_replies,
        }
        prompt_name = self.settings.default_prompt_name
        try:
            return self.prompts.render(prompt_name, **variables)
        except PromptTemplateError as e:
            logger.warning("Could not render prompt '%s': %s", prompt_name, e)
            return self.prompts.get_prompt(prompt_name)

    def chat(
        self,
        identifier: str,
        message: str,
        history_limit: int | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        stream: bool = False,
    ) -> ChatTurn:
        """Run one chat turn.

        Args:
            identifier: Character id or name.
            message: The player's message.
            history_limit: Number of past messages sent to the model
                (defaults to settings.history_limit).
            model: Model override for this turn.
            temperature: Sampling temperature override for this turn.
            stream: Consume the model reply as a stream.

        Returns:
            ChatTurn with the reply and any metadata the model returned.

        Raises:
            CharacterNotFoundError: If the character does not exist.
            LLMError: If the model call fails. The player message stays recorded.
        """
        validate_not_empty(message, "message")
        limit = self.settings.history_limit if history_limit is None else history_limit
        character_id = self.store.get(identifier).id

        with log_context(), self.store.character_lock(character_id):
            self.store.append_message(character_id, "player", message)
            character = self.store.get(character_id)
            system_prompt = self.build_system_prompt(character, message)
            history = self.store.format_history_for_llm(character_id, limit=limit)

            completion = self.llm.complete(
                system_prompt,
                history,
                model=model,
                temperature=temperature,
                json_format=self.json_replies,
                stream=stream,
            )
            turn = self._parse_reply(character, completion.content)
            turn.model = completion.model
            turn.streamed = completion.streamed
            turn.duration_seconds = completion.duration_seconds

            if turn.metadata:
                self._apply_metadata(character_id, turn.metadata)
            self.store.append_message(character_id, "npc", turn.reply)

        logger.info(
            "Chat turn with %s complete (%s reply, %.2fs)",
            turn.character_name,
            "structured" if turn.structured else "plain",
            turn.duration_seconds,
        )
        return turn

    def _parse_reply(self, character: Character, content: str) -> ChatTurn:
        turn = ChatTurn(character_id=character.id, character_name=character.name, reply=content.strip())
        if not self.json_replies:
            return turn

        try:
            data = extract_json_object(content)
        except JSONParseError:
            logger.warning("Reply from %s was not valid JSON, keeping it as plain text", character.name)
            return turn
        if not isinstance(data.get("reply"), str):
            logger.warning("Reply from %s has no text reply field, keeping it as plain text", character.name)
            return turn

        turn.reply = data["reply"].strip()
        turn.structured = True
        choices = data.get("playerResponseChoices")
        if isinstance(choices, dict):
            turn.player_response_choices = {str(k): str(v) for k, v in choices.items()}
        metadata = data.get("metadata")
        if isinstance(metadata, dict):
            turn.metadata = metadata
        return turn

    def _apply_metadata(self, character_id: str, metadata: dict[str, Any]) -> None:
        """Shallow-merge returned metadata, then apply the player relationship update.

        Identity keys are dropped so a reply cannot rename the character. An
        update the store rejects is logged and skipped so the turn still completes.
        """
        ignored = sorted(k for k in metadata if k in IDENTITY_KEYS)
        if ignored:
            logger.warning("Ignoring identity keys %s in metadata returned for %s", ignored, character_id)
        partial = {
            k: v for k, v in metadata.items() if k != "player_relationship" and k not in IDENTITY_KEYS
        }
        if partial:
            try:
                self.store.update_metadata(character_id, partial)
            except ValueError as e:
                logger.warning("Could not merge metadata returned for %s: %s", character_id, e)
            else:
                logger.debug("Merged metadata keys %s into %s", sorted(partial), character_id)

        player = metadata.get("player_relationship")
        if isinstance(player, dict):
            updated = self.store.update_player_relationship(character_id, player)
            logger.debug(
                "Player relationship for %s now %s (affinity=%d trust=%d respect=%d)",
                character_id,
                updated.status,
                updated.affinity,
                updated.trust,
                updated.respect,
            )
