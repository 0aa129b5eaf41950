"""LLM client implementations."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from rethoric.config import settings
from rethoric.llm.exceptions import (
    LLMConnectionError,
    LLMModelNotFoundError,
    LLMResponseError,
    error_for_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    """One entry of the conversation sent to a provider."""

    role: str  # "user" or "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class BaseLLM(ABC):
    """Base class for LLM implementations.

    Providers do not retry on their own; retry policy belongs to the caller
    so that attempts can be counted and fallbacks issued in one place.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'ollama', 'claude')."""
        pass

    @property
    def model_name(self) -> str:
        return getattr(self, "model", self.provider_name)

    @abstractmethod
    def stream_chat(
        self, system: str, turns: list[ChatTurn], **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream text deltas for the next assistant turn."""
        pass

    async def chat(self, system: str, turns: list[ChatTurn], **kwargs: Any) -> str:
        """Consume the whole stream and return the complete text."""
        parts: list[str] = []
        async for delta in self.stream_chat(system, turns, **kwargs):
            parts.append(delta)
        return "".join(parts)

    @abstractmethod
    async def check_health(self) -> bool:
        """Check if the LLM service is accessible and healthy."""
        pass

    async def is_available(self) -> bool:
        """Lightweight check if provider is configured.

        This checks configuration (e.g., API key exists) without making
        network requests. Override in subclasses as needed.
        """
        return True


class OllamaLLM(BaseLLM):
    """Ollama LLM client using the streaming chat endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_LLM_MODEL
        self.timeout = timeout
        self.transport = transport

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "ollama"

    async def is_available(self) -> bool:
        """Check if Ollama is configured (URL exists)."""
        return bool(self.base_url)

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport)

    async def stream_chat(
        self, system: str, turns: list[ChatTurn], **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream a chat completion from Ollama (newline-delimited JSON)."""
        messages = [{"role": "system", "content": system}] if system else []
        messages.extend(turn.to_dict() for turn in turns)

        async with self._client() as client:
            try:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/api/chat",
                    json={
                        "model": self.model,
                        "messages": messages,
                        "stream": True,
                        **kwargs,
                    },
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        if response.status_code == 404:
                            raise LLMModelNotFoundError(
                                f"Model '{self.model}' not found: {body[:200]}",
                                provider=self.provider_name,
                                model=self.model,
                            )
                        raise error_for_status(
                            response.status_code,
                            f"HTTP {response.status_code}: {body[:200]}",
                            provider=self.provider_name,
                        )

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError as e:
                            raise LLMResponseError(
                                f"Malformed stream chunk: {line[:100]}",
                                provider=self.provider_name,
                            ) from e
                        if data.get("error"):
                            raise LLMResponseError(
                                str(data["error"]), provider=self.provider_name
                            )
                        delta = data.get("message", {}).get("content", "")
                        if delta:
                            yield delta
                        if data.get("done"):
                            break

            except httpx.ConnectError as e:
                raise LLMConnectionError(
                    f"Failed to connect: {e}", provider=self.provider_name
                ) from e
            except httpx.TimeoutException as e:
                raise LLMConnectionError(
                    f"Request timed out: {e}", provider=self.provider_name
                ) from e
            except httpx.TransportError as e:
                raise LLMConnectionError(
                    f"Network error: {e}", provider=self.provider_name
                ) from e

    async def check_health(self) -> bool:
        """Check if Ollama is accessible."""
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                return response.status_code == 200
        except Exception as e:
            logger.error(f"Ollama health check failed: {e}")
            return False
