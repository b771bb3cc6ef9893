"""Ingestion normalizer for character registration payloads.

Canonicalizes the relationship, inventory, skill and player-relationship
fields of a payload before it reaches the store. Normalization never raises:
shapes it cannot interpret degrade to empty values and a warning is logged.
Feeding the output back in yields an identical result.
"""

import copy
import logging
import re
from collections.abc import Mapping
from typing import Any

from src.utils.relationship_parser import clean_pairs, parse_relationship_string
from src.utils.validation import clamp

logger = logging.getLogger(__name__)

LIST_FIELDS = ("inventory", "skills")
SCORE_FIELDS = ("affinity", "trust", "respect")
DEFAULT_PLAYER_STATUS = "neutral"
DEFAULT_SCORE = 50
MIN_SCORE = 0
MAX_SCORE = 100

_LIST_SEPARATORS = re.compile(r"[,;|]")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")
_CAMEL_PRESENT = re.compile(r"[a-z][A-Z]")
_CAPITAL_BOUNDARY = re.compile(r"(?<=[^A-Z])(?=[A-Z])")


def _is_numeric_key(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return True
    return isinstance(key, str) and key.strip().isdigit()


def _fold_mapping(mapping: Mapping[Any, Any]) -> dict[str, str]:
    """Fold a relationship map whose entries may be nested single-pair objects.

    Handles the UI shape ``{"0": {"Girlfriend": "Respectful"}}`` as well as
    plain ``{name: label}`` entries with non-string labels.
    """
    folded: dict[str, str] = {}
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            folded.update(_fold_mapping(value))
        elif isinstance(value, str) and _is_numeric_key(key):
            # A bare label under a positional key may itself hold a pair
            parsed = parse_relationship_string(value)
            if parsed:
                folded.update(parsed.pairs)
            else:
                folded.update(clean_pairs({key: value}))
        elif isinstance(value, list):
            labels = [str(v).strip() for v in value if v is not None and str(v).strip()]
            if labels:
                folded[str(key).strip()] = ", ".join(labels)
        else:
            folded.update(clean_pairs({key: value}))
    return folded


def _from_list(items: list[Any]) -> dict[str, str]:
    """Merge a list of single-pair objects and ``"name:label"`` strings."""
    merged: dict[str, str] = {}
    for item in items:
        if isinstance(item, Mapping):
            merged.update(_fold_mapping(item))
        elif isinstance(item, str):
            name, sep, label = item.partition(":")
            if sep:
                merged.update(clean_pairs({name: label}))
            else:
                logger.warning("Ignoring relationship list entry without a label: %r", item)
        elif item is not None:
            logger.warning("Ignoring relationship list entry of type %s", type(item).__name__)
    return merged


def normalize_relationships(value: Any, owner: str = "?") -> dict[str, str]:
    """Canonicalize a ``relationships`` value into a flat ``{name: label}`` map.

    Args:
        value: Raw value from the payload.
        owner: Character name, used only in log messages.

    Returns:
        Flat map of other character names to labels.
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        if all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()) and not any(
            _is_numeric_key(k) for k in value
        ):
            return clean_pairs(dict(value))
        if any(_is_numeric_key(k) for k in value):
            logger.info("Relationships for %s use positional keys, folding entries", owner)
        return _fold_mapping(value)
    if isinstance(value, list):
        logger.info("Relationships for %s arrived as a list, converting to a map", owner)
        return _from_list(value)
    if isinstance(value, str):
        return parse_relationship_string(value).pairs
    logger.warning(
        "Unsupported relationships type %s for %s, using empty map", type(value).__name__, owner
    )
    return {}


def normalize_singular_relationship(value: Any, owner: str = "?") -> dict[str, str]:
    """Extract pairs from the legacy singular ``relationship`` field.

    Accepts a pair string, a plain map, or the ``{"type": "object",
    "value": {...}}`` wrapper some clients send.
    """
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        inner = value.get("value")
        if value.get("type") == "object" and isinstance(inner, Mapping):
            return _fold_mapping(inner)
        return _fold_mapping(value)
    if isinstance(value, str):
        result = parse_relationship_string(value)
        if not result:
            logger.warning("Could not read singular relationship for %s: %.100s", owner, value)
        return result.pairs
    logger.warning(
        "Unsupported relationship type %s for %s, ignoring", type(value).__name__, owner
    )
    return {}


def split_list_string(text: str) -> list[str]:
    """Split a single-string inventory or skill list.

    Separators are tried in order: explicit ``,`` ``;`` ``|``, then
    lowercase-to-uppercase boundaries, then whitespace, then every capital.
    """
    stripped = text.strip()
    if not stripped:
        return []
    if _LIST_SEPARATORS.search(stripped):
        parts = _LIST_SEPARATORS.split(stripped)
    elif _CAMEL_PRESENT.search(stripped):
        parts = _CAMEL_BOUNDARY.split(stripped)
    elif re.search(r"\s", stripped):
        parts = stripped.split()
    else:
        parts = _CAPITAL_BOUNDARY.split(stripped)
    return [p.strip() for p in parts if p.strip()]


def normalize_string_list(value: Any, field_name: str = "inventory") -> list[str]:
    """Canonicalize an inventory or skill list."""
    if value is None:
        return []
    if isinstance(value, str):
        return split_list_string(value)
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    logger.warning(
        "Unsupported %s type %s, using empty list", field_name, type(value).__name__
    )
    return []


def _coerce_score(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        value = None
    try:
        score = int(float(value))
    except (TypeError, ValueError, OverflowError):
        if value is not None:
            logger.warning("Invalid %s score %r, using default %d", field_name, value, DEFAULT_SCORE)
        return DEFAULT_SCORE
    return clamp(score, MIN_SCORE, MAX_SCORE)


def normalize_player_relationship(
    value: Any,
    default_status: str = DEFAULT_PLAYER_STATUS,
    default_score: int = DEFAULT_SCORE,
) -> dict[str, Any]:
    """Fill defaults for the player relationship and clamp its scores."""
    source: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    if value is not None and not isinstance(value, Mapping):
        logger.warning("Unsupported player_relationship type %s, using defaults", type(value).__name__)

    normalized: dict[str, Any] = {
        key: val for key, val in source.items() if key not in SCORE_FIELDS and key != "history"
    }
    status = source.get("status")
    normalized["status"] = str(status).strip() if status not in (None, "") else default_status
    for score_field in SCORE_FIELDS:
        raw = source.get(score_field, default_score)
        normalized[score_field] = _coerce_score(raw, score_field)

    history = source.get("history", [])
    if isinstance(history, str):
        history = [history]
    normalized["history"] = normalize_string_list(history, "history") if history else []
    return normalized


def normalize_character_payload(
    payload: Mapping[str, Any],
    default_status: str = DEFAULT_PLAYER_STATUS,
    default_score: int = DEFAULT_SCORE,
) -> dict[str, Any]:
    """Canonicalize a registration payload.

    The argument is not mutated. The singular ``relationship`` field is merged
    over ``relationships`` and removed.

    Args:
        payload: Raw registration data.
        default_status: Player relationship status used when absent.
        default_score: Player relationship score used when absent.

    Returns:
        Normalized copy of the payload.
    """
    data: dict[str, Any] = copy.deepcopy(dict(payload))
    owner = str(data.get("name") or "?")

    relationships = normalize_relationships(data.get("relationships"), owner)
    if "relationship" in data:
        singular = normalize_singular_relationship(data.pop("relationship"), owner)
        if singular:
            logger.info("Merged %d relationship(s) from singular field for %s", len(singular), owner)
        relationships.update(singular)
    data["relationships"] = relationships

    for list_field in LIST_FIELDS:
        data[list_field] = normalize_string_list(data.get(list_field), list_field)

    data["player_relationship"] = normalize_player_relationship(
        data.get("player_relationship"), default_status, default_score
    )

    logger.debug(
        "Normalized payload for %s: %d relationship(s), %d item(s), %d skill(s)",
        owner,
        len(relationships),
        len(data["inventory"]),
        len(data["skills"]),
    )
    return data


def normalize_partial_update(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize only the list and relationship fields present in a metadata update."""
    data: dict[str, Any] = copy.deepcopy(dict(partial))
    owner = str(data.get("name") or "?")

    if "relationships" in data or "relationship" in data:
        relationships = normalize_relationships(data.get("relationships"), owner)
        if "relationship" in data:
            relationships.update(normalize_singular_relationship(data.pop("relationship"), owner))
        data["relationships"] = relationships

    for list_field in LIST_FIELDS:
        if list_field in data:
            data[list_field] = normalize_string_list(data[list_field], list_field)
    return data
