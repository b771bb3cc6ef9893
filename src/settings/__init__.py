"""Settings package for the NPC context engine.

- _paths.py: Path constant for the settings file
- _validation.py: Settings validation functions
- _settings.py: Main Settings dataclass
"""

from src.settings._paths import SETTINGS_FILE
from src.settings._settings import Settings

__all__ = [
    "SETTINGS_FILE",
    "Settings",
]
