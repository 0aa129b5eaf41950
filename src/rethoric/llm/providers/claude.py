"""Claude (Anthropic) LLM implementation using raw httpx."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from rethoric.config import settings
from rethoric.llm.base import BaseLLM, ChatTurn
from rethoric.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    error_for_status,
)

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

# Anthropic answers 529 when overloaded; it is as transient as a 503.
OVERLOADED_STATUS = 529
TRANSIENT_STREAM_ERRORS = {"overloaded_error", "api_error"}
CONVERSATION_PRIMER = "Let's begin."


def normalize_turns(turns: list[ChatTurn]) -> list[dict[str, str]]:
    """Shape turns for the Messages API.

    The API requires the first message to come from the user and roles to
    alternate. Transcripts open with the mentor's greeting, so a short user
    primer is prepended, and consecutive same-role turns are joined.
    """
    messages: list[dict[str, str]] = []
    for turn in turns:
        if not messages and turn.role == "assistant":
            messages.append({"role": "user", "content": CONVERSATION_PRIMER})
        if messages and messages[-1]["role"] == turn.role:
            messages[-1]["content"] = f"{messages[-1]['content']}\n\n{turn.content}"
        else:
            messages.append(turn.to_dict())
    return messages


class ClaudeLLM(BaseLLM):
    """Claude LLM client using the Anthropic Messages API.

    Uses raw httpx for API calls (no SDK dependency) and consumes the
    server-sent event stream.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Claude LLM client.

        Args:
            api_key: Anthropic API key (defaults to settings.ANTHROPIC_API_KEY)
            model: Model to use (defaults to settings.ANTHROPIC_MODEL)
            timeout: Request timeout in seconds
            max_tokens: Default max tokens for responses
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.transport = transport

        if not self.api_key:
            logger.warning("Claude API key not configured")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "claude"

    async def is_available(self) -> bool:
        """Check if Claude is configured (API key exists)."""
        return bool(self.api_key)

    def _get_headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport)

    def _raise_for_stream_error(self, event: dict[str, Any]) -> None:
        error = event.get("error", {})
        error_type = error.get("type", "unknown_error")
        message = error.get("message", error_type)
        if error_type == "rate_limit_error":
            raise LLMRateLimitError(message, provider=self.provider_name)
        if error_type in TRANSIENT_STREAM_ERRORS:
            raise LLMServerError(message, provider=self.provider_name, status_code=503)
        raise LLMResponseError(f"{error_type}: {message}", provider=self.provider_name)

    async def stream_chat(
        self, system: str, turns: list[ChatTurn], **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream the next assistant turn from Claude.

        Args:
            system: System/instruction block
            turns: Ordered conversation turns, ending with the user's turn
            **kwargs: Additional parameters (max_tokens, etc.)

        Yields:
            Text deltas in arrival order

        Raises:
            LLMAuthenticationError: If API key is invalid
            LLMRateLimitError: If rate limit is exceeded
            LLMServerError: On 5xx/overloaded responses
            LLMConnectionError: If connection fails
        """
        if not self.api_key:
            raise LLMAuthenticationError(
                "API key not configured", provider=self.provider_name
            )

        payload = {
            "model": self.model,
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
            "system": system,
            "messages": normalize_turns(turns),
            "stream": True,
        }

        async with self._client() as client:
            try:
                async with client.stream(
                    "POST", ANTHROPIC_API_URL, headers=self._get_headers(), json=payload
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        message = f"HTTP {response.status_code}: {body[:200]}"
                        if response.status_code == OVERLOADED_STATUS:
                            raise LLMServerError(
                                message,
                                provider=self.provider_name,
                                status_code=OVERLOADED_STATUS,
                            )
                        retry_after = response.headers.get("retry-after")
                        raise error_for_status(
                            response.status_code,
                            message,
                            provider=self.provider_name,
                            retry_after=float(retry_after) if retry_after else None,
                        )

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if not data:
                            continue
                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError as e:
                            raise LLMResponseError(
                                f"Malformed event: {data[:100]}",
                                provider=self.provider_name,
                            ) from e

                        event_type = event.get("type")
                        if event_type == "content_block_delta":
                            delta = event.get("delta", {})
                            if delta.get("type") == "text_delta" and delta.get("text"):
                                yield delta["text"]
                        elif event_type == "error":
                            self._raise_for_stream_error(event)
                        elif event_type == "message_stop":
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
        """Check if Claude API is accessible.

        Note: there is no free endpoint to call, so this verifies the API
        key is set and makes a minimal request.
        """
        if not self.api_key:
            logger.warning("Claude health check: No API key configured")
            return False

        try:
            async with self._client(timeout=30.0) as client:
                response = await client.post(
                    ANTHROPIC_API_URL,
                    headers=self._get_headers(),
                    json={
                        "model": self.model,
                        "max_tokens": 1,
                        "messages": [{"role": "user", "content": "Hi"}],
                    },
                )
                logger.info(f"Claude health check status: {response.status_code}")
                # 200 = success, 400 = bad request but API is reachable
                return response.status_code in (200, 400)
        except httpx.TimeoutException as e:
            logger.error(f"Claude health check timed out: {e}")
            return False
        except httpx.ConnectError as e:
            logger.error(f"Claude health check connection error: {e}")
            return False
        except Exception as e:
            logger.error(f"Claude health check failed: {type(e).__name__}: {e}")
            return False
