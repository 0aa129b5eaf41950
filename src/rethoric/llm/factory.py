"""Mentor provider selection.

Two providers exist: Claude, used whenever an Anthropic key is configured,
and a local Ollama server. ``LLM_PROVIDER`` pins one of them; when the
pinned provider is unavailable selection falls through to the automatic
order.
"""

import logging
from collections.abc import Callable

from rethoric.config import settings
from rethoric.llm.base import BaseLLM, OllamaLLM
from rethoric.llm.exceptions import LLMProviderNotConfiguredError
from rethoric.llm.providers.claude import ClaudeLLM

logger = logging.getLogger(__name__)


PROVIDERS: dict[str, Callable[[], BaseLLM]] = {
    "claude": ClaudeLLM,
    "ollama": OllamaLLM,
}


def get_provider(name: str) -> BaseLLM:
    """Instantiate a provider by name.

    Raises:
        LLMProviderNotConfiguredError: If the name is not a known provider
    """
    factory = PROVIDERS.get(name.lower())
    if factory is None:
        raise LLMProviderNotConfiguredError(
            f"Unknown provider '{name}'. Available: {', '.join(PROVIDERS)}",
            provider=name,
        )
    return factory()


async def get_llm(provider: str | None = None) -> BaseLLM:
    """Pick the provider that answers mentor turns.

    Order: the explicit ``provider`` argument, then ``LLM_PROVIDER``, then
    Claude when an API key is set, then Ollama.

    Raises:
        LLMProviderNotConfiguredError: If the requested name is unknown or
            no provider is available. The error is permanent, so a reply
            request degrades to the fallback message.
    """
    pinned = provider or settings.LLM_PROVIDER
    if pinned:
        llm = get_provider(pinned)
        if await llm.is_available():
            logger.info(f"Using LLM provider: {llm.provider_name}")
            return llm
        logger.warning(f"Configured provider '{pinned}' not available")

    candidates = ["claude", "ollama"] if settings.ANTHROPIC_API_KEY else ["ollama"]
    for name in candidates:
        llm = get_provider(name)
        if await llm.is_available():
            logger.info(f"Auto-selected {name} LLM provider")
            return llm

    raise LLMProviderNotConfiguredError(
        "No LLM provider is configured or available. "
        "Set ANTHROPIC_API_KEY for Claude or ensure Ollama is running.",
        provider="none",
    )
