"""Text-generation providers for the mentor."""

from rethoric.llm.base import BaseLLM, ChatTurn, OllamaLLM
from rethoric.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMModelNotFoundError,
    LLMProviderNotConfiguredError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    PermanentProviderError,
    TransientProviderError,
    is_retryable_error,
)
from rethoric.llm.factory import PROVIDERS, get_llm, get_provider

__all__ = [
    # Base classes
    "BaseLLM",
    "ChatTurn",
    "OllamaLLM",
    # Provider selection
    "PROVIDERS",
    "get_llm",
    "get_provider",
    # Exceptions
    "LLMError",
    "TransientProviderError",
    "PermanentProviderError",
    "LLMConnectionError",
    "LLMAuthenticationError",
    "LLMRateLimitError",
    "LLMServerError",
    "LLMModelNotFoundError",
    "LLMResponseError",
    "LLMProviderNotConfiguredError",
    "is_retryable_error",
]
