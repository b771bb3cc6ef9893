"""Heuristic parsing of relationship strings.

Game clients send a character's relationships in a number of broken shapes,
most often a string of name/label pairs with stray escape characters, such as
``Alfred\\": \\"Standoffish``. This module turns such text into a
``{name: label}`` map by trying an ordered chain of independent strategies and
stopping at the first one that yields at least one pair:

1. ``regex_pairs``: un-escape, repair the outer quotes, extract every
   ``"name": "label"`` pair.
2. ``braced_object``: wrap in braces and decode as a JSON object.
3. ``quote_aware_split``: split on commas outside quotes and parse each
   segment on its own.
4. ``delimiter_tokens``: split on every delimiter and pair tokens up
   alternately.

None of the strategies raise; failure is reported through ``ParseResult``.
"""

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

PAIR_PATTERN = re.compile(r'"([^"]+)":\s*"([^"]*)"')
TOKEN_DELIMITERS = re.compile(r'[:"\\,;]+')
SEGMENT_DELIMITERS = re.compile(r'[":\\]+')


@dataclass
class ParseResult:
    """Structured result from a relationship parsing strategy.

    Records which strategies were attempted so callers can log how a
    given payload was understood.
    """

    pairs: dict[str, str] = field(default_factory=dict)
    success: bool = False
    strategy: str | None = None
    strategies_tried: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        """Allow ParseResult to be used in boolean context."""
        return self.success


def clean_pairs(raw: dict[Any, Any]) -> dict[str, str]:
    """Strip names and labels and drop entries where either is empty.

    Non-string scalar labels are stringified. Nested containers are
    not labels and are skipped.
    """
    cleaned: dict[str, str] = {}
    for key, value in raw.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        name = str(key).strip()
        label = str(value).strip()
        if name and label:
            cleaned[name] = label
    return cleaned


def unescape_relationship_text(text: str) -> str:
    """Replace escaped quotes with plain quotes and drop stray backslashes."""
    return text.replace('\\"', '"').replace("\\", "")


def _balance_outer_quotes(text: str) -> str:
    """Add the opening or closing quote a truncated pair string lost."""
    stripped = text.strip().strip("{}").strip()
    if not stripped:
        return stripped
    if not stripped.startswith('"'):
        stripped = '"' + stripped
    if not stripped.endswith('"'):
        stripped = stripped + '"'
    return stripped


def _result(name: str, pairs: dict[str, str]) -> ParseResult:
    return ParseResult(pairs=pairs, success=bool(pairs), strategy=name if pairs else None)


def regex_pairs(text: str) -> ParseResult:
    """Extract every quoted ``"name": "label"`` pair."""
    cleaned = _balance_outer_quotes(unescape_relationship_text(text))
    pairs = clean_pairs({m.group(1): m.group(2) for m in PAIR_PATTERN.finditer(cleaned)})
    return _result("regex_pairs", pairs)


def braced_object(text: str) -> ParseResult:
    """Decode the text as the body of a JSON object."""
    cleaned = unescape_relationship_text(text).strip()
    if not (cleaned.startswith("{") and cleaned.endswith("}")):
        cleaned = "{" + cleaned.strip("{}") + "}"
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug("braced_object failed: %s (input preview: %.100s)", e, cleaned)
        return _result("braced_object", {})
    if not isinstance(data, dict):
        return _result("braced_object", {})
    return _result("braced_object", clean_pairs(data))


def _split_outside_quotes(text: str) -> list[str]:
    """Split on commas that are not inside a double-quoted run."""
    segments: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
    if current:
        segments.append("".join(current))
    return segments


def quote_aware_split(text: str) -> ParseResult:
    """Parse each comma-separated segment independently.

    A segment the pair pattern cannot read is split on quotes, colons and
    backslashes and its first two parts are taken as name and label.
    """
    cleaned = unescape_relationship_text(text).strip().strip("{}")
    pairs: dict[str, str] = {}
    for segment in _split_outside_quotes(cleaned):
        match = PAIR_PATTERN.search(_balance_outer_quotes(segment))
        if match:
            pairs.update(clean_pairs({match.group(1): match.group(2)}))
            continue
        parts = [p.strip() for p in SEGMENT_DELIMITERS.split(segment) if p.strip()]
        if len(parts) >= 2:
            pairs.update(clean_pairs({parts[0]: parts[1]}))
    return _result("quote_aware_split", pairs)


def delimiter_tokens(text: str) -> ParseResult:
    """Split on every delimiter and read the tokens as alternating name/label."""
    tokens = [t.strip() for t in TOKEN_DELIMITERS.split(text.strip("{} ")) if t.strip()]
    raw = {tokens[i]: tokens[i + 1] for i in range(0, len(tokens) - 1, 2)}
    return _result("delimiter_tokens", clean_pairs(raw))


STRATEGIES: tuple[tuple[str, Callable[[str], ParseResult]], ...] = (
    ("regex_pairs", regex_pairs),
    ("braced_object", braced_object),
    ("quote_aware_split", quote_aware_split),
    ("delimiter_tokens", delimiter_tokens),
)


def parse_relationship_string(text: str) -> ParseResult:
    """Run the strategy chain over a relationship string.

    Args:
        text: Raw relationship text from a payload.

    Returns:
        ParseResult from the first strategy that found a pair, or an
        unsuccessful result listing every strategy tried.
    """
    tried: list[str] = []
    if not text or not text.strip():
        return ParseResult(strategies_tried=tried)

    for name, strategy in STRATEGIES:
        tried.append(name)
        result = strategy(text)
        if result:
            result.strategies_tried = tried
            logger.debug(
                "Parsed %d relationship pair(s) with %s: %s", len(result.pairs), name, result.pairs
            )
            return result

    logger.warning("No relationship pairs found in string (preview: %.100s)", text)
    return ParseResult(strategies_tried=tried)
