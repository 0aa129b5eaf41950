"""Database module for Rethoric."""

from rethoric.db.database import async_session_maker, engine, get_session, init_db
from rethoric.db.models import (
    AgentThread,
    AnsweredQuestion,
    Base,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    Question,
    User,
    UserRole,
)

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Question",
    "Conversation",
    "ConversationStatus",
    "Message",
    "MessageRole",
    "AnsweredQuestion",
    "AgentThread",
    "engine",
    "async_session_maker",
    "get_session",
    "init_db",
]
