"""Tests for ConversationStore."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from rethoric.conversations.store import ConversationStore, opening_message
from rethoric.db.models import (
    AnsweredQuestion,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
)
from rethoric.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)


def fixed_clock(value: int = 1_000):
    return lambda: value


async def count_answered(session, user_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(AnsweredQuestion).where(
            AnsweredQuestion.user_id == user_id
        )
    )
    return result.scalar_one()


@pytest_asyncio.fixture
async def seeded(test_db_session, make_user, make_question):
    """A user, a question and a fresh conversation on it."""
    user = await make_user(test_db_session)
    question = await make_question(test_db_session)
    store = ConversationStore(test_db_session, clock=fixed_clock())
    conversation, _ = await store.start_conversation(user.id, question.id)
    return store, user, question, conversation


class TestStartConversation:
    """Tests for starting conversations."""

    @pytest.mark.asyncio
    async def test_starts_active_with_opening_message(self, seeded):
        store, user, question, conversation = seeded

        transcript = await store.list_messages(conversation.id, user.id)

        assert conversation.status == ConversationStatus.ACTIVE
        assert conversation.message_count == 1
        assert conversation.started_at == 1_000
        assert len(transcript.messages) == 1
        opening = transcript.messages[0]
        assert opening.role == MessageRole.ASSISTANT
        assert opening.content == opening_message(question)
        assert opening.content.startswith(f"**{question.title}**")

    @pytest.mark.asyncio
    async def test_unknown_question(self, test_db_session, make_user):
        user = await make_user(test_db_session)
        store = ConversationStore(test_db_session)

        with pytest.raises(NotFoundError):
            await store.start_conversation(user.id, 999)


class TestAddMessage:
    """Tests for appending messages."""

    @pytest.mark.asyncio
    async def test_append_increments_count_and_orders_by_timestamp(self, seeded):
        store, user, _, conversation = seeded

        first = await store.add_message(conversation.id, user.id, "user", "I think yes.")
        second = await store.add_message(
            conversation.id, user.id, MessageRole.ASSISTANT, "Why?"
        )

        # Clock is frozen, so timestamps are bumped past the previous message.
        assert first.timestamp == 1_001
        assert second.timestamp == 1_002

        transcript = await store.list_messages(conversation.id, user.id)
        assert [m.content for m in transcript.messages][1:] == ["I think yes.", "Why?"]
        assert transcript.conversation.message_count == 3

    @pytest.mark.asyncio
    async def test_content_is_trimmed(self, seeded):
        store, user, _, conversation = seeded

        message = await store.add_message(conversation.id, user.id, "user", "  spaced  \n")

        assert message.content == "spaced"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_blank_content_rejected(self, seeded, content):
        store, user, _, conversation = seeded

        with pytest.raises(InvalidArgumentError):
            await store.add_message(conversation.id, user.id, "user", content)

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, seeded):
        store, user, _, conversation = seeded

        with pytest.raises(InvalidArgumentError):
            await store.add_message(conversation.id, user.id, "system", "hi")

    @pytest.mark.asyncio
    async def test_other_user_denied(self, seeded, test_db_session, make_user):
        store, _, _, conversation = seeded
        mallory = await make_user(test_db_session, "user_mallory")

        with pytest.raises(PermissionDeniedError):
            await store.add_message(conversation.id, mallory.id, "user", "let me in")
        with pytest.raises(PermissionDeniedError):
            await store.list_messages(conversation.id, mallory.id)

    @pytest.mark.asyncio
    async def test_missing_conversation(self, seeded):
        store, user, _, _ = seeded

        with pytest.raises(NotFoundError):
            await store.add_message(12345, user.id, "user", "hello?")

    @pytest.mark.asyncio
    async def test_completed_conversation_rejects_messages(self, seeded, test_db_session):
        store, user, _, conversation = seeded
        await store.complete_conversation(conversation.id, user.id)

        with pytest.raises(InvalidStateError):
            await store.add_message(conversation.id, user.id, "user", "one more thing")

        result = await test_db_session.execute(
            select(func.count()).select_from(Message).where(
                Message.conversation_id == conversation.id
            )
        )
        assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_completion_from_another_session_is_seen(
        self, file_session_factory, make_user, make_question
    ):
        """A conversation loaded as active but completed elsewhere rejects appends."""
        async with file_session_factory() as session_a:
            user = await make_user(session_a)
            question = await make_question(session_a)
            store_a = ConversationStore(session_a)
            conversation, _ = await store_a.start_conversation(user.id, question.id)
            await store_a.get_owned(conversation.id, user.id)

            async with file_session_factory() as session_b:
                assert await ConversationStore(session_b).complete_conversation(
                    conversation.id, user.id
                )

            with pytest.raises(InvalidStateError):
                await store_a.add_message(conversation.id, user.id, "user", "too late")


class TestCompleteConversation:
    """Tests for completing conversations."""

    @pytest.mark.asyncio
    async def test_completion_records_answer_once(self, seeded, test_db_session):
        store, user, question, conversation = seeded

        assert await store.complete_conversation(conversation.id, user.id) is True
        assert await store.complete_conversation(conversation.id, user.id) is False

        refreshed = await store.get_owned(conversation.id, user.id)
        assert refreshed.status == ConversationStatus.COMPLETED
        assert refreshed.completed_at == 1_000
        assert await count_answered(test_db_session, user.id) == 1

        record = (
            await test_db_session.execute(select(AnsweredQuestion))
        ).scalar_one()
        assert record.question_id == question.id
        assert record.conversation_id == conversation.id

    @pytest.mark.asyncio
    async def test_second_conversation_on_same_question(self, seeded, test_db_session):
        store, user, question, conversation = seeded
        again, _ = await store.start_conversation(user.id, question.id)

        await store.complete_conversation(conversation.id, user.id)
        assert await store.complete_conversation(again.id, user.id) is True

        assert await count_answered(test_db_session, user.id) == 1

    @pytest.mark.asyncio
    async def test_other_user_cannot_complete(self, seeded, test_db_session, make_user):
        store, _, _, conversation = seeded
        mallory = await make_user(test_db_session, "user_mallory")

        with pytest.raises(PermissionDeniedError):
            await store.complete_conversation(conversation.id, mallory.id)

        conversation = await test_db_session.get(
            Conversation, conversation.id, populate_existing=True
        )
        assert conversation.status == ConversationStatus.ACTIVE


class TestListConversations:
    """Tests for listing conversations."""

    @pytest.mark.asyncio
    async def test_most_recent_first_with_status_filter(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        question = await make_question(test_db_session)
        ticks = iter([100, 200, 300, 400, 500])
        store = ConversationStore(test_db_session, clock=lambda: next(ticks))

        older, _ = await store.start_conversation(user.id, question.id)
        newer, _ = await store.start_conversation(user.id, question.id)
        await store.complete_conversation(older.id, user.id)

        views = await store.list_conversations(user.id)
        assert [v.conversation.id for v in views] == [newer.id, older.id]
        assert views[0].question.id == question.id

        completed = await store.list_conversations(user.id, "completed")
        assert [v.conversation.id for v in completed] == [older.id]

        active = await store.list_conversations(user.id, ConversationStatus.ACTIVE)
        assert [v.conversation.id for v in active] == [newer.id]

    @pytest.mark.asyncio
    async def test_only_own_conversations(self, seeded, test_db_session, make_user):
        store, _, _, _ = seeded
        bob = await make_user(test_db_session, "user_bob")

        assert await store.list_conversations(bob.id) == []

    @pytest.mark.asyncio
    async def test_deleted_question_leaves_conversation(self, seeded, test_db_session):
        store, user, question, conversation = seeded
        await test_db_session.delete(question)
        await test_db_session.commit()

        views = await store.list_conversations(user.id)

        assert views[0].conversation.id == conversation.id
        assert views[0].question is None


class TestThreadHandle:
    @pytest.mark.asyncio
    async def test_set_thread(self, seeded):
        store, user, _, conversation = seeded

        await store.set_thread(conversation.id, "thread_abc")

        conversation = await store.get_owned(conversation.id, user.id)
        assert conversation.thread_id == "thread_abc"
