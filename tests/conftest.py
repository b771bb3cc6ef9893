"""Pytest fixtures for NPC context tests."""

import logging
from collections.abc import Generator
from typing import Any

import pytest

from src.memory.character_store import CharacterStore
from src.settings import Settings


@pytest.fixture(autouse=True, scope="function")
def cleanup_production_log_handlers():
    """Remove file handlers pointing to the production log after each test.

    Tests that call setup_logging() with the default log file would otherwise
    leave handlers writing to output/logs/npc_context.log.
    """
    yield

    root_logger = logging.getLogger()
    production_log_name = "npc_context.log"

    handlers_to_remove = []
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            if hasattr(handler, "baseFilename") and production_log_name in handler.baseFilename:
                handlers_to_remove.append(handler)

    for handler in handlers_to_remove:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def clear_settings_cache_per_test():
    """Clear Settings cache before each test to ensure isolation.

    This is autouse because caching can cause test pollution when tests
    modify settings or patch SETTINGS_FILE to different paths.
    """
    Settings.clear_cache()
    yield
    Settings.clear_cache()


@pytest.fixture
def tmp_settings() -> Settings:
    """Create default settings without loading settings.json.

    Returns:
        Default settings, validated.
    """
    settings = Settings()
    settings.validate()
    return settings


@pytest.fixture
def store() -> CharacterStore:
    """Empty character store with default player relationship settings."""
    return CharacterStore()


@pytest.fixture
def village_payloads() -> list[dict[str, Any]]:
    """Registration payloads for a small village cast.

    Blacksmith and Mayor disagree about each other, Innkeeper only knows the
    Mayor, and the Mayor also knows an Alchemist who is not registered.
    """
    return [
        {
            "name": "Blacksmith",
            "description": "A burly smith with soot on his arms",
            "personality": "Gruff but fair",
            "location": "Forge",
            "faction": "Craftsmen",
            "relationships": {"Mayor": "Distrustful"},
        },
        {
            "name": "Mayor",
            "description": "The elected head of the village",
            "location": "Town Hall",
            "currentState": "Worried about taxes",
            "relationships": {"Blacksmith": "Respectful", "Alchemist": "Suspicious"},
        },
        {
            "name": "Innkeeper",
            "description": "Runs the Prancing Goat",
            "location": "Inn",
            "relationships": {"Mayor": "Friendly"},
        },
    ]


@pytest.fixture
def village_store(store: CharacterStore, village_payloads: list[dict[str, Any]]) -> CharacterStore:
    """Store populated with the village cast."""
    store.create_many(village_payloads)
    return store


@pytest.fixture
def village_ids(village_store: CharacterStore) -> Generator[dict[str, str]]:
    """Map of character name to id for the village cast."""
    yield {c.name: c.id for c in village_store.snapshot()}
