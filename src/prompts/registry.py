"""YAML prompt templates with Jinja2 rendering and a central registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from src.prompts import FALLBACK_PROMPT, TEMPLATES_DIR
from src.utils.exceptions import PromptTemplateError

logger = logging.getLogger(__name__)


@dataclass
class PromptTemplate:
    """A YAML-based prompt template.

    Attributes:
        name: Registry key, ``<group>/<task>`` (e.g. "npc/system").
        version: Template version for tracking changes.
        description: Human-readable purpose of the template.
        template: Jinja2 template string.
        required_variables: Variables that must be provided to render.
        optional_variables: Variables that default to None when omitted.
    """

    name: str
    version: str
    description: str
    template: str
    required_variables: list[str] = field(default_factory=list)
    optional_variables: list[str] = field(default_factory=list)

    _jinja_env: Environment = field(
        default_factory=lambda: Environment(undefined=StrictUndefined, trim_blocks=True),
        repr=False,
        compare=False,
    )

    def render(self, **kwargs: Any) -> str:
        """Render template with variables using Jinja2.

        Raises:
            PromptTemplateError: If required variables are missing or rendering fails.
        """
        missing = set(self.required_variables) - set(kwargs.keys())
        if missing:
            raise PromptTemplateError(
                f"Missing required variables for template '{self.name}': {sorted(missing)}"
            )

        for var in self.optional_variables:
            kwargs.setdefault(var, None)

        try:
            rendered = self._jinja_env.from_string(self.template).render(**kwargs)
        except UndefinedError as e:
            raise PromptTemplateError(f"Undefined variable in template '{self.name}': {e}") from e
        except TemplateSyntaxError as e:
            raise PromptTemplateError(f"Syntax error in template '{self.name}': {e}") from e
        logger.debug(f"Rendered template '{self.name}' v{self.version} ({len(rendered)} chars)")
        return rendered

    @classmethod
    def from_yaml(cls, path: Path, name: str | None = None) -> PromptTemplate:
        """Load a template from a YAML file.

        Expected YAML structure:
        ```yaml
        version: "1.0"
        description: "System prompt for an NPC"
        template: |
          You are {{ character_name }}...
        variables:
          required:
            - character_name
          optional:
            - network
        ```

        Raises:
            PromptTemplateError: If the file cannot be read or parsed.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PromptTemplateError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise PromptTemplateError(f"Cannot read template file {path}: {e}") from e

        if not isinstance(data, dict):
            raise PromptTemplateError(f"Invalid template format in {path}: expected dict")
        if "version" not in data:
            raise PromptTemplateError(f"Missing required 'version' field in {path}")
        if not data.get("template"):
            raise PromptTemplateError(f"Template content is required in {path}")

        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            raise PromptTemplateError(f"Invalid 'variables' in {path}: expected dict")

        template = cls(
            name=name or data.get("name", path.stem),
            version=str(data["version"]),
            description=data.get("description", ""),
            template=data["template"],
            required_variables=list(variables.get("required", [])),
            optional_variables=list(variables.get("optional", [])),
        )
        try:
            template._jinja_env.parse(template.template)
        except TemplateSyntaxError as e:
            raise PromptTemplateError(f"Invalid Jinja2 syntax in {path}: {e}") from e

        logger.debug(f"Loaded template '{template.name}' v{template.version} from {path}")
        return template


class PromptRegistry:
    """Registry that loads every template under a directory on startup.

    Templates are keyed by their path relative to the templates directory,
    without the suffix: ``templates/npc/system.yaml`` is ``npc/system``.
    """

    def __init__(self, templates_dir: Path | str | None = None):
        """Initialize registry and load all templates.

        Args:
            templates_dir: Directory containing template YAML files.
                Defaults to the packaged templates.
        """
        self.templates_dir = Path(templates_dir) if templates_dir else TEMPLATES_DIR
        self._templates: dict[str, PromptTemplate] = {}
        self._load_all_templates()

    def _load_all_templates(self) -> None:
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            return

        loaded = 0
        errors = 0
        for yaml_file in sorted(self.templates_dir.rglob("*.yaml")):
            key = yaml_file.relative_to(self.templates_dir).with_suffix("").as_posix()
            try:
                self._templates[key] = PromptTemplate.from_yaml(yaml_file, name=key)
                loaded += 1
            except PromptTemplateError as e:
                logger.error(f"Failed to load template {yaml_file}: {e}")
                errors += 1

        logger.info(f"Loaded {loaded} templates from {self.templates_dir}, {errors} errors")

    def has_template(self, name: str) -> bool:
        return name in self._templates

    def get(self, name: str) -> PromptTemplate:
        """Get a template by name.

        Raises:
            PromptTemplateError: If template not found.
        """
        template = self._templates.get(name)
        if template is None:
            available = sorted(self._templates)
            raise PromptTemplateError(f"Template not found: {name}. Available templates: {available}")
        return template

    def get_prompt(self, name: str) -> str:
        """Get raw template text, or the fallback prompt when it is missing."""
        template = self._templates.get(name)
        if template is None:
            logger.warning("Prompt '%s' not found, using fallback prompt", name)
            return FALLBACK_PROMPT
        return template.template

    def render(self, name: str, **kwargs: Any) -> str:
        """Render a template with variables.

        Raises:
            PromptTemplateError: If template not found or rendering fails.
        """
        return self.get(name).render(**kwargs)

    def list_templates(self) -> list[str]:
        return sorted(self._templates)
