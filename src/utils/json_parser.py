"""JSON extraction utilities for parsing LLM chat replies."""

import json
import logging
import re
from typing import Any

from src.utils.exceptions import JSONParseError

logger = logging.getLogger(__name__)


def clean_llm_text(text: str) -> str:
    """Clean LLM output text by removing thinking tags and other artifacts.

    Args:
        text: Raw text from LLM output.

    Returns:
        Cleaned text suitable for display or storage in history.
    """
    if not text:
        return text

    cleaned = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL)
    cleaned = re.sub(r"</?think>", "", cleaned)
    cleaned = re.sub(r"<\|.*?\|>", "", cleaned)  # Special tokens like <|endoftext|>
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def _try_parse_json(json_str: str) -> dict[str, Any] | list[Any] | None:
    """Try to parse a string as JSON, returning None on failure."""
    try:
        parsed: dict[str, Any] | list[Any] = json.loads(json_str.strip())
        return parsed
    except json.JSONDecodeError as e:
        logger.debug("try_parse failed: %s (input preview: %.100s...)", e, json_str)
        return None


def extract_json_object(response: str) -> dict[str, Any]:
    """Extract a JSON object from an LLM reply.

    Tries, in order: a ```json fenced block, a bare ``` fenced block, then
    the outermost ``{...}`` span of the text.

    Args:
        response: The LLM response text.

    Returns:
        Parsed JSON object.

    Raises:
        JSONParseError: If no JSON object could be extracted.
    """
    text = clean_llm_text(response or "")

    candidates: list[str] = []
    fenced = re.search(r"```json\s*(.*?)\s*```", text, re.DOTALL)
    if fenced:
        candidates.append(fenced.group(1))
    bare = re.search(r"```\s*(.*?)\s*```", text, re.DOTALL)
    if bare:
        candidates.append(bare.group(1))
    braced = re.search(r"(\{[\s\S]*\})", text)
    if braced:
        candidates.append(braced.group(1))

    for candidate in candidates:
        result = _try_parse_json(candidate)
        if isinstance(result, dict):
            return result

    error_msg = f"No JSON object found in response. Response preview: {text[:200]}..."
    logger.debug(error_msg)
    raise JSONParseError(error_msg, response_preview=text[:500], expected_type="dict")
