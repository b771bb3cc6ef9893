"""Centralized exception hierarchy for the NPC context engine.

Exception Hierarchy:

    NpcContextError (base for all application errors)
    ├── CharacterNotFoundError (identifier resolved to no stored character)
    ├── LLMError (LLM/Ollama related errors)
    │   ├── LLMConnectionError (connection failures)
    │   └── LLMGenerationError (generation failures)
    ├── PromptTemplateError (prompt template loading/rendering failures)
    ├── ConfigError (configuration parsing/validation failures)
    └── JSONParseError (JSON parsing failures)

Malformed registration payloads are never raised: the ingestion normalizer
degrades them to empty values and logs a warning. A relationship that is not
defined is reported with the ``"none"`` label, not an exception.

Usage:
    from src.utils.exceptions import CharacterNotFoundError, LLMError

    try:
        store.append_message(character_id, "player", text)
    except CharacterNotFoundError as e:
        logger.warning("Unknown character %s", e.identifier)
"""

import logging

logger = logging.getLogger(__name__)


class NpcContextError(Exception):
    """Base exception for all NPC context engine errors.

    All custom exceptions should inherit from this class to allow
    catching all application-specific errors with a single except clause.
    """

    pass


class CharacterNotFoundError(NpcContextError, LookupError):
    """Raised when an id or name does not resolve to a stored character.

    Attributes:
        identifier: The id or name that failed to resolve.
    """

    def __init__(self, message: str, identifier: str | None = None):
        """Initialize with an error message and the unresolved identifier.

        Args:
            message: Human-readable error message.
            identifier: The id or name that was looked up.
        """
        super().__init__(message)
        self.identifier = identifier
        logger.debug("CharacterNotFoundError initialized: identifier=%s", identifier)


class LLMError(NpcContextError):
    """Base exception for LLM-related errors.

    Raised when any LLM operation fails. Subclasses provide more
    specific error types.
    """

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to Ollama.

    This typically indicates the Ollama server is not running or
    the connection was refused.
    """

    pass


class LLMGenerationError(LLMError):
    """Raised when Ollama accepted the request but generation failed."""

    pass


class PromptTemplateError(NpcContextError):
    """Error related to prompt template loading or rendering."""

    pass


class ConfigError(NpcContextError):
    """Raised when configuration parsing or validation fails.

    This indicates issues with settings files or cast files that
    cannot be loaded or are invalid.
    """

    pass


class JSONParseError(NpcContextError):
    """Raised when JSON extraction or parsing fails.

    Attributes:
        response_preview: First 500 chars of the raw response for debugging.
        expected_type: The expected type (dict, list, or model class name).
    """

    def __init__(
        self,
        message: str,
        response_preview: str | None = None,
        expected_type: str | None = None,
    ):
        super().__init__(message)
        self.response_preview = response_preview
        self.expected_type = expected_type
