"""Validation functions for Settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.settings._settings import Settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
RESPONSE_FORMATS = ("text", "json")


def validate(settings: Settings) -> bool:
    """Validate all settings fields.

    Returns:
        True if any settings were mutated during validation, False otherwise.

    Raises:
        ValueError: If any field contains an invalid value.
    """
    changed = _normalize_log_level(settings)
    _validate_url(settings)
    _validate_scheduler(settings)
    _validate_conversation(settings)
    _validate_llm(settings)
    _validate_player_defaults(settings)
    return changed


def _normalize_log_level(settings: Settings) -> bool:
    """Upper-case log_level and check it is a known logging level."""
    if not isinstance(settings.log_level, str):
        raise ValueError(f"log_level must be a string, got {type(settings.log_level).__name__}")
    upper = settings.log_level.upper()
    if upper not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {list(LOG_LEVELS)}, got {settings.log_level}")
    if upper != settings.log_level:
        logger.info("Normalizing log_level %s -> %s", settings.log_level, upper)
        settings.log_level = upper
        return True
    return False


def _validate_url(settings: Settings) -> None:
    """Validate URL format for ollama_url."""
    from urllib.parse import urlparse

    try:
        parsed = urlparse(settings.ollama_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid URL scheme in ollama_url: {settings.ollama_url}")
        if not parsed.netloc:
            raise ValueError(f"Invalid URL (missing host) in ollama_url: {settings.ollama_url}")
    except (AttributeError, TypeError) as e:
        raise ValueError(f"Invalid ollama_url: {settings.ollama_url} - {e}") from e


def _validate_scheduler(settings: Settings) -> None:
    """Validate the background refresh intervals."""
    if not 1 <= settings.snapshot_log_interval_seconds <= 86400:
        raise ValueError(
            f"snapshot_log_interval_seconds must be between 1 and 86400, "
            f"got {settings.snapshot_log_interval_seconds}"
        )
    if not 1 <= settings.discovery_interval_seconds <= 86400:
        raise ValueError(
            f"discovery_interval_seconds must be between 1 and 86400, "
            f"got {settings.discovery_interval_seconds}"
        )


def _validate_conversation(settings: Settings) -> None:
    if not 1 <= settings.history_limit <= 200:
        raise ValueError(f"history_limit must be between 1 and 200, got {settings.history_limit}")
    if not settings.default_prompt_name or not settings.default_prompt_name.strip():
        raise ValueError("default_prompt_name cannot be empty")


def _validate_llm(settings: Settings) -> None:
    """Validate model name, sampling and timeout settings."""
    if not settings.default_model or not settings.default_model.strip():
        raise ValueError("default_model cannot be empty")
    if not 0.0 <= settings.temperature <= 2.0:
        raise ValueError(f"temperature must be between 0.0 and 2.0, got {settings.temperature}")
    if not 16 <= settings.max_tokens <= 32000:
        raise ValueError(f"max_tokens must be between 16 and 32000, got {settings.max_tokens}")
    if not 5 <= settings.llm_timeout <= 3600:
        raise ValueError(f"llm_timeout must be between 5 and 3600, got {settings.llm_timeout}")
    if settings.response_format not in RESPONSE_FORMATS:
        raise ValueError(
            f"response_format must be one of {list(RESPONSE_FORMATS)}, "
            f"got {settings.response_format}"
        )


def _validate_player_defaults(settings: Settings) -> None:
    if not 0 <= settings.default_relationship_score <= 100:
        raise ValueError(
            f"default_relationship_score must be between 0 and 100, "
            f"got {settings.default_relationship_score}"
        )
    if not settings.default_player_status or not settings.default_player_status.strip():
        raise ValueError("default_player_status cannot be empty")
