"""Services layer - relationship discovery, background refresh and chat turns.

This module wires the services around one shared CharacterStore.
"""

import logging
import time
from dataclasses import dataclass

from src.memory.character_store import CharacterStore
from src.prompts.registry import PromptRegistry
from src.settings import Settings

from .conversation_service import ChatTurn, ConversationService
from .discovery_service import RelationshipDiscoveryService
from .llm_client import Completion, LLMClient
from .refresh_scheduler import PeriodicJob, RefreshScheduler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Dependency injection container for all services.

    Usage:
        settings = Settings.load()
        services = ServiceContainer(settings)

        services.store.create({"name": "Mayor", "relationships": {"Blacksmith": "ally"}})
        services.discovery.discover_for("Mayor")
    """

    settings: Settings
    store: CharacterStore
    prompts: PromptRegistry
    llm: LLMClient
    discovery: RelationshipDiscoveryService
    scheduler: RefreshScheduler
    conversation: ConversationService

    def __init__(
        self,
        settings: Settings | None = None,
        store: CharacterStore | None = None,
        llm: LLMClient | None = None,
    ):
        """Create and wire service instances that share a Settings object.

        Args:
            settings: Application settings. Loaded via Settings.load() if omitted.
            store: Existing store to wrap. A new empty one is created if omitted.
            llm: Language model client. Built from settings if omitted.
        """
        t0 = time.perf_counter()
        logger.info("Initializing ServiceContainer...")
        self.settings = settings or Settings.load()
        self.store = store if store is not None else CharacterStore.from_settings(self.settings)
        self.prompts = PromptRegistry(self.settings.prompts_dir)
        self.llm = llm or LLMClient(self.settings)
        self.discovery = RelationshipDiscoveryService(self.settings, self.store)
        self.scheduler = RefreshScheduler(self.settings, self.store, self.discovery)
        self.conversation = ConversationService(
            self.settings, self.store, self.discovery, self.llm, self.prompts
        )
        logger.info(
            "ServiceContainer initialized: %d services in %.2fs",
            len(self.__class__.__annotations__) - 2,  # exclude 'settings' and 'store'
            time.perf_counter() - t0,
        )


__all__ = [
    "ChatTurn",
    "Completion",
    "ConversationService",
    "LLMClient",
    "PeriodicJob",
    "RefreshScheduler",
    "RelationshipDiscoveryService",
    "ServiceContainer",
]
