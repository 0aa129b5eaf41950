"""Conversation orchestration: persistence, context and mentor replies."""

from rethoric.conversations.context import (
    ConversationContext,
    ConversationStage,
    QuestionContext,
    stage_for,
)
from rethoric.conversations.generator import (
    GenerationResult,
    GenerationState,
    ResponseGenerator,
)
from rethoric.conversations.mentor import FALLBACK_MESSAGE, MentorConfig
from rethoric.conversations.store import (
    ConversationStore,
    ConversationView,
    Transcript,
)
from rethoric.conversations.threads import ThreadRegistry

__all__ = [
    "ConversationContext",
    "ConversationStage",
    "QuestionContext",
    "stage_for",
    "ConversationStore",
    "ConversationView",
    "Transcript",
    "ResponseGenerator",
    "GenerationResult",
    "GenerationState",
    "MentorConfig",
    "FALLBACK_MESSAGE",
    "ThreadRegistry",
]
