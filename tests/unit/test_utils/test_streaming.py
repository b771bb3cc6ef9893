"""Tests for streaming chat response consumption."""

from unittest.mock import patch

import httpcore
import pytest

from src.utils.streaming import StreamTimeoutError, consume_stream
from tests.shared.mock_ollama import MockStreamChunk, make_stream


class TestConsumeStream:
    """Tests for consume_stream."""

    def test_joins_fragments(self):
        """Test content fragments are joined in order."""
        result = consume_stream(make_stream("Hel", "lo", " there"))
        assert result["message"]["content"] == "Hello there"
        assert result["chunk_count"] == 3

    def test_token_counts_from_final_chunk(self):
        """Test the counts come from the done chunk."""
        result = consume_stream(make_stream("Hi", prompt_eval_count=12, eval_count=3))
        assert result["prompt_eval_count"] == 12
        assert result["eval_count"] == 3

    def test_on_chunk_callback(self):
        """Test every non-empty fragment reaches the callback."""
        seen: list[str] = []
        consume_stream(make_stream("a", "", "b"), on_chunk=seen.append)
        assert seen == ["a", "b"]

    def test_empty_stream(self):
        """Test an empty stream yields empty content and no counts."""
        result = consume_stream(iter([]))
        assert result["message"]["content"] == ""
        assert result["chunk_count"] == 0
        assert result["prompt_eval_count"] is None

    def test_wall_clock_timeout(self):
        """Test exceeding the wall-clock limit raises StreamTimeoutError."""
        chunks = iter([MockStreamChunk("part"), MockStreamChunk("more", done=True)])
        with patch("src.utils.streaming.time.monotonic", side_effect=[0.0, 0.0, 10.0]):
            with pytest.raises(StreamTimeoutError) as exc_info:
                consume_stream(chunks, wall_clock_timeout=5)
        assert exc_info.value.partial_content_length == 4
        assert exc_info.value.elapsed_seconds == 10.0

    def test_network_error_becomes_connection_error(self):
        """Test transport errors mid-stream surface as ConnectionError."""

        def broken():
            yield MockStreamChunk("part")
            raise httpcore.ReadError("connection reset")

        with pytest.raises(ConnectionError, match="stream interrupted"):
            consume_stream(broken())
