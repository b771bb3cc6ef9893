"""Ollama chat client used for character conversation turns.

Uses ollama.Client.chat() with an optional ``format="json"`` constraint.
Streaming calls are consumed chunk by chunk so long replies do not hit the
HTTP read timeout.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

import httpx
import ollama

from src.settings import Settings
from src.utils.exceptions import LLMConnectionError, LLMGenerationError
from src.utils.streaming import StreamTimeoutError, consume_stream

logger = logging.getLogger(__name__)

# Module-level cache for Ollama clients (keyed by (url, timeout))
_ollama_clients: dict[tuple[str, float], ollama.Client] = {}
_ollama_clients_lock = threading.Lock()


def get_ollama_client(settings: Settings) -> ollama.Client:
    """Get or create an Ollama client for the given settings.

    Cached by URL and timeout. Thread-safe via double-checked locking.
    """
    timeout = float(settings.llm_timeout)
    cache_key = (settings.ollama_url, timeout)

    if cache_key not in _ollama_clients:
        with _ollama_clients_lock:
            if cache_key not in _ollama_clients:
                _ollama_clients[cache_key] = ollama.Client(host=settings.ollama_url, timeout=timeout)
                logger.debug(f"Created Ollama client for {settings.ollama_url} (timeout={timeout:.0f}s)")

    return _ollama_clients[cache_key]


@dataclass
class Completion:
    """A finished chat completion."""

    content: str
    model: str
    duration_seconds: float
    streamed: bool = False
    chunk_count: int = 0
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class LLMClient:
    """Chat completions against a local Ollama server."""

    def __init__(self, settings: Settings, client: ollama.Client | None = None):
        """Initialize the client.

        Args:
            settings: Application settings.
            client: Optional pre-built Ollama client (defaults to the cached one).
        """
        logger.debug("Initializing LLMClient")
        self.settings = settings
        self._client = client

    @property
    def client(self) -> ollama.Client:
        if self._client is None:
            self._client = get_ollama_client(self.settings)
        return self._client

    def complete(
        self,
        system_prompt: str,
        history: list[dict[str, str]],
        user_message: str | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_format: bool = False,
        stream: bool = False,
    ) -> Completion:
        """Run one chat completion.

        Args:
            system_prompt: System message placed before the history.
            history: Prior messages as ``{"role", "content"}`` dicts.
            user_message: Optional new user message appended after the history.
            model: Model override (defaults to settings.default_model).
            temperature: Sampling temperature override.
            max_tokens: Generation limit override.
            json_format: Constrain the reply to JSON.
            stream: Consume the reply as a stream.

        Returns:
            Completion with the reply text and timing.

        Raises:
            LLMConnectionError: If Ollama cannot be reached.
            LLMGenerationError: If Ollama rejects the request or the stream stalls.
        """
        model = model or self.settings.default_model
        messages: list[dict[str, str]] = [{"role": "system", "content": system_prompt}]
        messages.extend(history)
        if user_message is not None:
            messages.append({"role": "user", "content": user_message})

        options: dict[str, Any] = {
            "temperature": self.settings.temperature if temperature is None else temperature,
            "num_predict": max_tokens or self.settings.max_tokens,
        }
        logger.debug(
            "Chat request: model=%s, messages=%d, json=%s, stream=%s",
            model,
            len(messages),
            json_format,
            stream,
        )

        start_time = time.time()
        try:
            response = self.client.chat(
                model=model,
                messages=messages,
                format="json" if json_format else None,
                options=options,
                stream=stream,
            )
            if stream:
                collected = consume_stream(response, wall_clock_timeout=self.settings.llm_timeout)
                content = collected["message"]["content"]
                chunk_count = collected["chunk_count"]
                prompt_tokens = collected["prompt_eval_count"]
                completion_tokens = collected["eval_count"]
            else:
                content = response["message"]["content"]
                chunk_count = 0
                prompt_tokens = response.get("prompt_eval_count")
                completion_tokens = response.get("eval_count")
        except (ConnectionError, httpx.ConnectError, httpx.TransportError) as e:
            logger.error("Cannot reach Ollama at %s: %s", self.settings.ollama_url, e)
            raise LLMConnectionError(f"Cannot reach Ollama at {self.settings.ollama_url}: {e}") from e
        except StreamTimeoutError as e:
            raise LLMGenerationError(f"Chat stream timed out: {e}") from e
        except ollama.ResponseError as e:
            logger.error("Ollama response error: %s", e)
            raise LLMGenerationError(f"Chat generation failed for {model}: {e}") from e

        duration = time.time() - start_time
        logger.info(
            "LLM call complete: model=%s, %.2fs, tokens: %s+%s",
            model,
            duration,
            prompt_tokens,
            completion_tokens,
        )
        return Completion(
            content=content or "",
            model=model,
            duration_seconds=duration,
            streamed=stream,
            chunk_count=chunk_count,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
