"""Tests for ServiceContainer initialization."""

import logging
from unittest.mock import patch

from src.memory.character_store import CharacterStore
from src.services import LLMClient, ServiceContainer
from src.settings import Settings


class TestServiceContainer:
    """Tests for ServiceContainer class."""

    def test_init_with_provided_settings(self):
        """Test ServiceContainer initialization with provided settings."""
        settings = Settings()
        container = ServiceContainer(settings)

        assert container.settings is settings
        assert container.store is not None
        assert container.prompts.has_template("npc/system")
        assert container.llm is not None
        assert container.discovery is not None
        assert container.scheduler is not None
        assert container.conversation is not None

    def test_services_share_one_store(self):
        """Test every service reads the same store."""
        container = ServiceContainer(Settings())

        assert container.discovery.store is container.store
        assert container.scheduler.store is container.store
        assert container.scheduler.discovery is container.discovery
        assert container.conversation.store is container.store
        assert container.conversation.llm is container.llm

    def test_existing_store_and_llm_used(self):
        """Test injected collaborators are used as given."""
        settings = Settings()
        store = CharacterStore()
        llm = LLMClient(settings)

        container = ServiceContainer(settings, store=store, llm=llm)

        assert container.store is store
        assert container.llm is llm

    def test_store_uses_player_defaults_from_settings(self):
        """Test a new store takes its player relationship defaults from settings."""
        container = ServiceContainer(Settings(default_player_status="wary", default_relationship_score=30))
        assert container.store.default_status == "wary"
        assert container.store.default_score == 30

    def test_init_loads_settings_if_not_provided(self):
        """Test ServiceContainer loads settings when None is passed."""
        with patch("src.services.Settings.load") as mock_load:
            mock_settings = Settings()
            mock_load.return_value = mock_settings

            container = ServiceContainer(None)

            mock_load.assert_called_once()
            assert container.settings is mock_settings

    def test_init_logs_timing(self, caplog):
        """Test ServiceContainer logs initialization timing at INFO level."""
        settings = Settings()
        with caplog.at_level(logging.INFO, logger="src.services"):
            container = ServiceContainer(settings)

        assert any("Initializing ServiceContainer" in r.message for r in caplog.records)
        # Service count excludes 'settings' and 'store'
        expected_count = len(container.__class__.__annotations__) - 2
        assert any(
            "ServiceContainer initialized" in r.message and f"{expected_count} services" in r.message
            for r in caplog.records
        )
