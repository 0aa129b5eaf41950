"""Rethoric: critical-thinking prompts with a guided AI mentor."""

__version__ = "0.1.0"
