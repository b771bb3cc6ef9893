"""Streaming utilities for Ollama chat responses.

Collects streamed chat chunks into a single reply dict. Using stream=True
keeps the HTTP read timeout from firing on long replies, because the timeout
resets with each received chunk. A wall-clock limit bounds the whole stream.
"""

import logging
import time
from collections.abc import Callable, Iterator
from typing import Any

import httpcore

logger = logging.getLogger(__name__)

_DEFAULT_WALL_CLOCK_TIMEOUT = 300  # seconds


class StreamTimeoutError(TimeoutError):
    """Raised when a streaming response exceeds the wall-clock limit.

    Attributes:
        partial_content_length: Number of characters received before timeout.
        elapsed_seconds: Wall-clock time elapsed before timeout.
    """

    def __init__(self, message: str, *, partial_content_length: int = 0, elapsed_seconds: float = 0.0):
        super().__init__(message)
        self.partial_content_length = partial_content_length
        self.elapsed_seconds = elapsed_seconds


def consume_stream(
    stream: Iterator[Any],
    *,
    wall_clock_timeout: float | None = None,
    on_chunk: Callable[[str], None] | None = None,
) -> dict[str, Any]:
    """Consume a streaming Ollama chat response.

    Args:
        stream: Iterator of ChatResponse chunks from client.chat(stream=True).
        wall_clock_timeout: Max total seconds for the stream (None = default).
        on_chunk: Optional callback receiving each content fragment as it arrives.

    Returns:
        Dict with 'message.content', 'chunk_count', 'prompt_eval_count' and
        'eval_count', matching the non-streaming access pattern.

    Raises:
        StreamTimeoutError: If the wall-clock limit is exceeded.
        ConnectionError: If the stream is interrupted by a network error.
    """
    limit = wall_clock_timeout if wall_clock_timeout is not None else _DEFAULT_WALL_CLOCK_TIMEOUT
    content_parts: list[str] = []
    chunk_count = 0
    prompt_eval_count: int | None = None
    eval_count: int | None = None
    start_time = time.monotonic()

    try:
        for chunk in stream:
            elapsed = time.monotonic() - start_time
            if elapsed > limit:
                content_len = sum(len(p) for p in content_parts)
                logger.error(
                    "Stream wall-clock timeout after %.1fs (limit=%ss, partial_content=%d chars)",
                    elapsed,
                    limit,
                    content_len,
                )
                raise StreamTimeoutError(
                    f"Stream exceeded wall-clock timeout of {limit}s",
                    partial_content_length=content_len,
                    elapsed_seconds=elapsed,
                )

            chunk_count += 1
            message = getattr(chunk, "message", None)
            fragment = getattr(message, "content", None) if message is not None else None
            if fragment:
                content_parts.append(fragment)
                if on_chunk is not None:
                    on_chunk(fragment)
            if getattr(chunk, "done", False):
                prompt_eval_count = getattr(chunk, "prompt_eval_count", None)
                eval_count = getattr(chunk, "eval_count", None)
    except (httpcore.RemoteProtocolError, httpcore.ReadError, httpcore.NetworkError) as e:
        logger.error("Ollama stream interrupted mid-response: %s", e)
        raise ConnectionError(f"Ollama stream interrupted: {e}") from e

    content = "".join(content_parts)
    logger.debug(
        "Stream consumed: %d chunks, %d chars, %.2fs",
        chunk_count,
        len(content),
        time.monotonic() - start_time,
    )
    return {
        "message": {"content": content},
        "chunk_count": chunk_count,
        "prompt_eval_count": prompt_eval_count,
        "eval_count": eval_count,
    }
