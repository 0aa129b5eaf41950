"""Conversation and message persistence.

Every write to conversations, messages and answered-question records goes
through ``ConversationStore``. ``add_message`` is the only way a message
enters a transcript, so a completed conversation can never be appended to
no matter who the caller is.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.db.models import (
    AnsweredQuestion,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    Question,
    now_ms,
)
from rethoric.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


@dataclass
class ConversationView:
    """A conversation joined with its question (None if since deleted)."""

    conversation: Conversation
    question: Question | None


@dataclass
class Transcript:
    conversation: Conversation
    question: Question | None
    messages: list[Message] = field(default_factory=list)


def opening_message(question: Question) -> str:
    """First assistant message, so the transcript describes its own topic."""
    return f"**{question.title}**\n\n{question.description}"


class ConversationStore:
    """Ownership-checked reads and writes for conversations."""

    def __init__(self, session: AsyncSession, clock: Callable[[], int] = now_ms):
        """Initialize the store.

        Args:
            session: Database session
            clock: Source of epoch-millisecond timestamps
        """
        self.session = session
        self.clock = clock

    async def get_owned(self, conversation_id: int, requester_id: int) -> Conversation:
        """Load a conversation and check that ``requester_id`` owns it.

        Raises:
            NotFoundError: If the conversation does not exist
            PermissionDeniedError: If it belongs to someone else
        """
        conversation = await self.session.get(
            Conversation, conversation_id, populate_existing=True
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if conversation.user_id != requester_id:
            raise PermissionDeniedError("Access denied: You don't own this conversation")
        return conversation

    async def _next_timestamp(self, conversation_id: int) -> int:
        """Commit-time timestamp, strictly after the conversation's last message."""
        result = await self.session.execute(
            select(func.max(Message.timestamp)).where(Message.conversation_id == conversation_id)
        )
        last = result.scalar()
        now = self.clock()
        return now if last is None or now > last else last + 1

    async def start_conversation(
        self, user_id: int, question_id: int
    ) -> tuple[Conversation, Question]:
        """Open a new active conversation on a question.

        Raises:
            NotFoundError: If the question does not exist
        """
        question = await self.session.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question not found")

        started_at = self.clock()
        conversation = Conversation(
            user_id=user_id,
            question_id=question.id,
            status=ConversationStatus.ACTIVE,
            message_count=1,
            started_at=started_at,
        )
        self.session.add(conversation)
        await self.session.flush()

        self.session.add(
            Message(
                conversation_id=conversation.id,
                role=MessageRole.ASSISTANT,
                content=opening_message(question),
                timestamp=started_at,
            )
        )
        await self.session.commit()

        logger.info(
            f"User {user_id} started conversation {conversation.id} on question {question.id}"
        )
        return conversation, question

    async def add_message(
        self,
        conversation_id: int,
        requester_id: int,
        role: MessageRole | str,
        content: str,
    ) -> Message:
        """Append a message to an active conversation.

        Raises:
            NotFoundError: If the conversation does not exist
            PermissionDeniedError: If ``requester_id`` does not own it
            InvalidStateError: If the conversation is completed
            InvalidArgumentError: If content is blank or the role is unknown
        """
        conversation = await self.get_owned(conversation_id, requester_id)
        if conversation.status != ConversationStatus.ACTIVE:
            raise InvalidStateError("Cannot add messages to completed conversation")

        try:
            role = MessageRole(role)
        except ValueError:
            raise InvalidArgumentError(f"Unknown message role '{role}'") from None

        content = (content or "").strip()
        if not content:
            raise InvalidArgumentError("Message content cannot be empty")

        # The status guard in the UPDATE makes the check atomic with the insert.
        result = await self.session.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.status == ConversationStatus.ACTIVE,
            )
            .values(message_count=Conversation.message_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise InvalidStateError("Cannot add messages to completed conversation")

        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            timestamp=await self._next_timestamp(conversation_id),
        )
        self.session.add(message)
        await self.session.commit()

        logger.debug(
            f"Conversation {conversation_id}: {role.value} message {message.id} "
            f"at {message.timestamp}"
        )
        return message

    async def list_messages(self, conversation_id: int, requester_id: int) -> Transcript:
        """Messages in timestamp order, with the conversation and its question."""
        conversation = await self.get_owned(conversation_id, requester_id)
        result = await self.session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        question = await self.session.get(Question, conversation.question_id)
        return Transcript(
            conversation=conversation,
            question=question,
            messages=list(result.scalars().all()),
        )

    async def list_conversations(
        self, user_id: int, status: ConversationStatus | str | None = None
    ) -> list[ConversationView]:
        """A user's conversations, most recent first, each with its question."""
        query = select(Conversation).where(Conversation.user_id == user_id)
        if status is not None:
            query = query.where(Conversation.status == ConversationStatus(status))
        query = query.order_by(Conversation.started_at.desc(), Conversation.id.desc())

        result = await self.session.execute(query.execution_options(populate_existing=True))
        conversations = list(result.scalars().all())

        question_ids = {c.question_id for c in conversations}
        questions: dict[int, Question] = {}
        if question_ids:
            q_result = await self.session.execute(
                select(Question).where(Question.id.in_(question_ids))
            )
            questions = {q.id: q for q in q_result.scalars().all()}

        return [ConversationView(c, questions.get(c.question_id)) for c in conversations]

    async def complete_conversation(
        self, conversation_id: int, requester_id: int, _retry: bool = True
    ) -> bool:
        """Mark a conversation completed and record the question as answered.

        The status flip and the answered-question insert commit together.
        Calling this on an already completed conversation is a no-op.

        Returns:
            True if this call performed the transition
        """
        conversation = await self.get_owned(conversation_id, requester_id)
        if conversation.status == ConversationStatus.COMPLETED:
            return False

        completed_at = self.clock()
        result = await self.session.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.status == ConversationStatus.ACTIVE,
            )
            .values(status=ConversationStatus.COMPLETED, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            return False

        existing = await self.session.execute(
            select(AnsweredQuestion.id).where(
                AnsweredQuestion.user_id == conversation.user_id,
                AnsweredQuestion.question_id == conversation.question_id,
            )
        )
        if existing.first() is None:
            self.session.add(
                AnsweredQuestion(
                    user_id=conversation.user_id,
                    question_id=conversation.question_id,
                    conversation_id=conversation_id,
                    answered_at=completed_at,
                )
            )

        try:
            await self.session.commit()
        except IntegrityError:
            # Another conversation on the same question recorded it first;
            # nothing from this attempt was applied.
            await self.session.rollback()
            if not _retry:
                raise
            logger.info(
                f"Answered record race on conversation {conversation_id}, retrying"
            )
            return await self.complete_conversation(
                conversation_id, requester_id, _retry=False
            )

        await self.session.refresh(conversation)
        logger.info(
            f"Conversation {conversation_id} completed; question "
            f"{conversation.question_id} answered by user {conversation.user_id}"
        )
        return True

    async def set_thread(self, conversation_id: int, thread_id: str) -> None:
        """Remember the mentor thread handle on the conversation."""
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(thread_id=thread_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
