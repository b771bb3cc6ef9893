"""Prompt templates package.

YAML prompt templates live under templates/, one directory per group:

    prompts/
    ├── __init__.py
    ├── registry.py
    └── templates/
        └── npc/
            └── system.yaml
"""

from pathlib import Path

# Path to templates directory
TEMPLATES_DIR = Path(__file__).parent / "templates"

# Returned when a named prompt cannot be found
FALLBACK_PROMPT = "You are a helpful assistant."
