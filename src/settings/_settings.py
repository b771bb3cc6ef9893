"""Main Settings dataclass for the NPC context engine.

Settings are stored in settings.json next to the package and can be edited
by hand; unknown keys are dropped and new keys get defaults on load.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, ClassVar

from src.settings import _validation as _validation_mod
from src.settings._paths import SETTINGS_FILE

logger = logging.getLogger(__name__)


def _merge_with_defaults(data: dict[str, Any], settings_cls: type[Settings]) -> bool:
    """Merge loaded JSON data with dataclass defaults.

    Adds missing keys with their default values and removes keys that no
    longer exist in the dataclass. Modifies *data* in place.

    Returns:
        True if any changes were made, False otherwise.
    """
    default_dict = asdict(settings_cls())
    known_fields = {f.name for f in fields(settings_cls)}
    changed = False

    for key in list(data):
        if key not in known_fields:
            logger.info("Removing obsolete setting: %s", key)
            del data[key]
            changed = True

    for key in known_fields:
        if key not in data:
            logger.info("Adding new setting with default: %s", key)
            data[key] = default_dict[key]
            changed = True

    return changed


def _atomic_write_json(path: Path | str, data: dict[str, Any]) -> None:
    """Write JSON to *path* atomically via a temp file + rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError as cleanup_err:
            logger.warning("Failed to remove temp settings file %s: %s", tmp_path, cleanup_err)
        raise


def _backup_corrupt_file(path: Path) -> None:
    backup_path = path.with_suffix(".json.corrupt")
    try:
        shutil.copy(path, backup_path)
        logger.info("Backed up corrupted settings to %s", backup_path)
    except OSError as copy_err:
        logger.warning("Failed to backup corrupted settings: %s", copy_err)


@dataclass
class Settings:
    """Application settings."""

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "default"

    # Background refresh scheduler
    periodic_logging_enabled: bool = True
    snapshot_log_interval_seconds: int = 300  # 5 minutes
    auto_discovery_enabled: bool = True
    discovery_interval_seconds: int = 600  # 10 minutes
    initial_discovery_on_start: bool = True

    # Conversation
    history_limit: int = 10
    default_prompt_name: str = "npc/system"
    prompts_dir: str | None = None  # None uses the packaged templates

    # LLM
    ollama_url: str = "http://localhost:11434"
    default_model: str = "llama3.1:8b"
    temperature: float = 0.8
    max_tokens: int = 1024
    llm_timeout: int = 120
    response_format: str = "json"  # "text" or "json"

    # Player relationship defaults for new characters
    default_player_status: str = "neutral"
    default_relationship_score: int = 50

    def save(self) -> None:
        """Save settings to JSON file."""
        self.validate()
        _atomic_write_json(SETTINGS_FILE, asdict(self))
        logger.info("Settings saved to %s", SETTINGS_FILE)

    def validate(self) -> bool:
        """Validate all settings fields. Delegates to _validation module.

        Returns:
            True if any settings were normalized during validation.

        Raises:
            ValueError: If any field contains an invalid value.
        """
        return _validation_mod.validate(self)

    # Class-level cache for settings (speeds up repeated load() calls)
    _cached_instance: ClassVar[Settings | None] = None

    @classmethod
    def load(cls, use_cache: bool = True) -> Settings:
        """Load settings from JSON file, or create defaults.

        New settings get default values and removed settings are cleaned up;
        customized values are preserved. A corrupt file is backed up and
        replaced with defaults.

        Args:
            use_cache: If True, return cached instance if available. Set to False
                to force reload from disk (useful after save() or in tests).

        Returns:
            Settings instance.

        Raises:
            ValueError: If a stored value is out of range or of the wrong type.
        """
        if use_cache and cls._cached_instance is not None:
            return cls._cached_instance

        data: dict[str, Any] = {}
        loaded_from_file = False
        if SETTINGS_FILE.exists():
            try:
                with open(SETTINGS_FILE) as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = raw
                    loaded_from_file = bool(data)
                else:
                    logger.error(
                        "Corrupted settings file (expected JSON object, got %s)",
                        type(raw).__name__,
                    )
                    _backup_corrupt_file(SETTINGS_FILE)
            except json.JSONDecodeError as e:
                logger.error("Corrupted settings file (invalid JSON): %s", e)
                _backup_corrupt_file(SETTINGS_FILE)
            except OSError as e:
                logger.error("Cannot read settings file: %s", e)

        changed = _merge_with_defaults(data, cls)

        try:
            settings = cls(**data)
            changed = settings.validate() or changed
        except TypeError as e:
            raise ValueError(f"A setting has an invalid type: {e}") from e

        if changed or not loaded_from_file:
            try:
                _atomic_write_json(SETTINGS_FILE, asdict(settings))
            except OSError as write_err:
                logger.warning("Could not persist settings to disk: %s", write_err)

        logger.debug("Settings loaded (from_file=%s, changed=%s)", loaded_from_file, changed)
        cls._cached_instance = settings
        return settings

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the cached settings instance.

        Use this in tests that need to verify settings loading behavior,
        or after programmatically modifying settings files.
        """
        cls._cached_instance = None
