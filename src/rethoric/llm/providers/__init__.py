"""LLM provider implementations."""

from rethoric.llm.providers.claude import ClaudeLLM

__all__ = ["ClaudeLLM"]
