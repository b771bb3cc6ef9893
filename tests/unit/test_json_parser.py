"""Tests for JSON extraction from LLM replies."""

import pytest

from src.utils.exceptions import JSONParseError
from src.utils.json_parser import clean_llm_text, extract_json_object


class TestCleanLlmText:
    """Tests for clean_llm_text."""

    def test_removes_think_blocks(self):
        """Test reasoning blocks are stripped."""
        assert clean_llm_text("<think>hmm</think>Hello") == "Hello"

    def test_removes_special_tokens(self):
        """Test special tokens are stripped."""
        assert clean_llm_text("Hello<|endoftext|>") == "Hello"

    def test_collapses_blank_lines(self):
        """Test runs of blank lines collapse to one."""
        assert clean_llm_text("a\n\n\n\nb") == "a\n\nb"

    def test_empty(self):
        """Test empty text is returned unchanged."""
        assert clean_llm_text("") == ""


class TestExtractJsonObject:
    """Tests for extract_json_object."""

    def test_plain_object(self):
        """Test a bare JSON object is parsed."""
        assert extract_json_object('{"reply": "Hi"}') == {"reply": "Hi"}

    def test_json_fence(self):
        """Test a ```json fenced block is parsed."""
        text = 'Sure!\n```json\n{"reply": "Hi"}\n```'
        assert extract_json_object(text) == {"reply": "Hi"}

    def test_bare_fence(self):
        """Test a bare fenced block is parsed."""
        assert extract_json_object('```\n{"reply": "Hi"}\n```') == {"reply": "Hi"}

    def test_object_inside_prose(self):
        """Test the outermost braces are found inside surrounding text."""
        text = 'Here you go: {"reply": "Hi", "metadata": {"mood": "calm"}} Thanks.'
        assert extract_json_object(text) == {"reply": "Hi", "metadata": {"mood": "calm"}}

    def test_after_think_block(self):
        """Test reasoning blocks do not hide the object."""
        assert extract_json_object('<think>{not json}</think>{"reply": "Hi"}') == {"reply": "Hi"}

    def test_failure_raises(self):
        """Test a reply without an object raises JSONParseError with a preview."""
        with pytest.raises(JSONParseError) as exc_info:
            extract_json_object("no json here")
        assert exc_info.value.expected_type == "dict"
        assert exc_info.value.response_preview == "no json here"

    def test_empty_reply_raises(self):
        """Test an empty reply raises JSONParseError."""
        with pytest.raises(JSONParseError):
            extract_json_object("")

    def test_list_is_not_an_object(self):
        """Test a JSON list does not satisfy the object extractor."""
        with pytest.raises(JSONParseError):
            extract_json_object("[1, 2]")
