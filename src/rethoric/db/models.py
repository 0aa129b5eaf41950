"""SQLAlchemy models for users, questions, conversations and messages.

Write access to conversations, messages and answered-question records
goes exclusively through ``rethoric.conversations.store.ConversationStore``;
the models themselves carry no behaviour beyond small helpers.
"""

import enum
import time
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class ConversationStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """A person known to the identity provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(320), default="")
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, external_id={self.external_id}, role={self.role.value})>"


class Question(Base):
    """A critical-thinking prompt."""

    __tablename__ = "questions"
    __table_args__ = (Index("ix_questions_daily", "is_daily", "daily_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    is_daily: Mapped[bool] = mapped_column(Boolean, default=False)
    daily_date: Mapped[str | None] = mapped_column(String(10), nullable=True)  # YYYY-MM-DD
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, title={self.title[:30]}...)>"


class Conversation(Base):
    """One user's exploration of one question."""

    __tablename__ = "conversations"
    __table_args__ = (Index("ix_conversations_user_status", "user_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    # Deleting a referenced question is tolerated, so no FK enforcement here.
    question_id: Mapped[int] = mapped_column(Integer, index=True)
    status: Mapped[ConversationStatus] = mapped_column(
        Enum(
            ConversationStatus,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=ConversationStatus.ACTIVE,
    )
    message_count: Mapped[int] = mapped_column(Integer, default=0)
    thread_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    started_at: Mapped[int] = mapped_column(BigInteger, default=now_ms)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.timestamp",
    )

    @property
    def is_active(self) -> bool:
        return self.status == ConversationStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, user_id={self.user_id}, status={self.status.value})>"


class Message(Base):
    """Append-only transcript entry."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_timestamp", "conversation_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[MessageRole] = mapped_column(
        Enum(MessageRole, native_enum=False, values_callable=lambda e: [m.value for m in e])
    )
    content: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[int] = mapped_column(BigInteger)  # epoch ms, assigned at commit

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, role={self.role.value}, ts={self.timestamp})>"


class AnsweredQuestion(Base):
    """Marks a question as done for a user. At most one per (user, question)."""

    __tablename__ = "answered_questions"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_answered_user_question"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    question_id: Mapped[int] = mapped_column(Integer, index=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE")
    )
    answered_at: Mapped[int] = mapped_column(BigInteger, default=now_ms)

    def __repr__(self) -> str:
        return f"<AnsweredQuestion(user_id={self.user_id}, question_id={self.question_id})>"


class AgentThread(Base):
    """Handle binding a sequence of generation calls to one mentor context."""

    __tablename__ = "agent_threads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(512), default="")
    created_at: Mapped[int] = mapped_column(BigInteger, default=now_ms)

    def __repr__(self) -> str:
        return f"<AgentThread(thread_id={self.thread_id}, conversation_id={self.conversation_id})>"
