"""Tests for next-question selection."""

from datetime import date, datetime, timedelta, timezone

import pytest

from rethoric.conversations.store import ConversationStore
from rethoric.questions.selector import (
    QuestionSelector,
    SelectionKind,
    calendar_date,
    pick_index,
    rolling_hash,
)

TODAY = date(2026, 10, 17)


async def answer(session, user, question):
    """Start and complete a conversation on ``question``."""
    store = ConversationStore(session)
    conversation, _ = await store.start_conversation(user.id, question.id)
    await store.complete_conversation(conversation.id, user.id)


class TestRollingHash:
    """Tests for the seed hash."""

    def test_empty_string_is_zero(self):
        assert rolling_hash("") == 0

    def test_small_values(self):
        assert rolling_hash("a") == 97
        assert rolling_hash("ab") == 97 * 31 + 98

    def test_wraps_to_signed_32_bits(self):
        """Matches 32-bit integer overflow semantics."""
        assert rolling_hash("hello") == 99162322
        assert rolling_hash("polygenelubricants") == -(2**31)

    def test_astral_characters_hash_as_surrogate_pairs(self):
        assert rolling_hash("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_pick_index_seed_is_user_and_date(self):
        seed_hash = rolling_hash("7_2026-10-17")
        assert pick_index(7, "2026-10-17", 3) == abs(seed_hash) % 3
        assert pick_index("7", "2026-10-17", 3) == pick_index(7, "2026-10-17", 3)

    def test_pick_index_rejects_empty_candidates(self):
        with pytest.raises(ValueError):
            pick_index(1, "2026-10-17", 0)


class TestCalendarDate:
    def test_naive_datetime_taken_as_utc(self):
        assert calendar_date(datetime(2026, 10, 17, 23, 59)) == "2026-10-17"

    def test_aware_datetime_converted_to_utc(self):
        tz = timezone(timedelta(hours=-5))
        assert calendar_date(datetime(2026, 10, 17, 22, 0, tzinfo=tz)) == "2026-10-18"


class TestSelectNextQuestion:
    """Tests for QuestionSelector.select_next_question."""

    @pytest.mark.asyncio
    async def test_daily_question_wins_when_unanswered(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        await make_question(test_db_session, title="Regular one")
        daily = await make_question(
            test_db_session, title="Daily", is_daily=True, daily_date="2026-10-17"
        )

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.DAILY
        assert selection.question.id == daily.id
        assert selection.message == "Here's today's featured question"

    @pytest.mark.asyncio
    async def test_daily_for_other_date_is_ignored(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        await make_question(
            test_db_session, title="Yesterday", is_daily=True, daily_date="2026-10-16"
        )

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.RANDOM

    @pytest.mark.asyncio
    async def test_inactive_daily_is_ignored(self, test_db_session, make_user, make_question):
        user = await make_user(test_db_session)
        regular = await make_question(test_db_session, title="Regular")
        await make_question(
            test_db_session,
            title="Retired daily",
            is_daily=True,
            daily_date="2026-10-17",
            is_active=False,
        )

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.RANDOM
        assert selection.question.id == regular.id

    @pytest.mark.asyncio
    async def test_duplicate_daily_lowest_id_wins(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        first = await make_question(
            test_db_session, title="First", is_daily=True, daily_date="2026-10-17"
        )
        await make_question(
            test_db_session, title="Second", is_daily=True, daily_date="2026-10-17"
        )

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.question.id == first.id

    @pytest.mark.asyncio
    async def test_answered_daily_falls_through_to_random(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        daily = await make_question(
            test_db_session, title="Daily", is_daily=True, daily_date="2026-10-17"
        )
        other = await make_question(test_db_session, title="Other")
        await answer(test_db_session, user, daily)

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.RANDOM
        assert selection.question.id == other.id
        assert selection.message == "Here's a question for you to explore"

    @pytest.mark.asyncio
    async def test_random_pick_excludes_answered_and_is_reproducible(
        self, test_db_session, make_user, make_question
    ):
        """Five questions, two answered: the pick comes from the other three."""
        user = await make_user(test_db_session)
        questions = [
            await make_question(test_db_session, title=f"Question {i}") for i in range(5)
        ]
        await answer(test_db_session, user, questions[1])
        await answer(test_db_session, user, questions[3])
        remaining = [questions[0], questions[2], questions[4]]

        selector = QuestionSelector(test_db_session)
        first = await selector.select_next_question(user.id, TODAY)
        second = await selector.select_next_question(user.id, TODAY)

        expected = remaining[pick_index(user.id, "2026-10-17", len(remaining))]
        assert first.kind == SelectionKind.RANDOM
        assert first.question.id == expected.id
        assert second.question.id == first.question.id

    @pytest.mark.asyncio
    async def test_answered_questions_never_return_on_later_dates(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        questions = [
            await make_question(test_db_session, title=f"Question {i}") for i in range(4)
        ]
        answered_daily = await make_question(
            test_db_session, title="Tomorrow's daily", is_daily=True, daily_date="2026-10-18"
        )
        await answer(test_db_session, user, questions[0])
        await answer(test_db_session, user, questions[2])
        await answer(test_db_session, user, answered_daily)
        answered_ids = {questions[0].id, questions[2].id, answered_daily.id}

        selector = QuestionSelector(test_db_session)
        offered = set()
        for offset in range(1, 61):
            selection = await selector.select_next_question(
                user.id, TODAY + timedelta(days=offset)
            )
            assert selection.kind == SelectionKind.RANDOM
            offered.add(selection.question.id)

        assert offered.isdisjoint(answered_ids)
        assert offered <= {questions[1].id, questions[3].id}

    @pytest.mark.asyncio
    async def test_datetime_and_date_agree(self, test_db_session, make_user, make_question):
        user = await make_user(test_db_session)
        for i in range(4):
            await make_question(test_db_session, title=f"Question {i}")

        selector = QuestionSelector(test_db_session)
        by_date = await selector.select_next_question(user.id, TODAY)
        by_datetime = await selector.select_next_question(
            user.id, datetime(2026, 10, 17, 8, 30, tzinfo=timezone.utc)
        )

        assert by_date.question.id == by_datetime.question.id

    @pytest.mark.asyncio
    async def test_inactive_questions_not_offered(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        await make_question(test_db_session, title="Hidden", is_active=False)

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.COMPLETED
        assert selection.question is None

    @pytest.mark.asyncio
    async def test_completed_when_everything_answered(
        self, test_db_session, make_user, make_question
    ):
        user = await make_user(test_db_session)
        question = await make_question(test_db_session)
        await answer(test_db_session, user, question)

        selection = await QuestionSelector(test_db_session).select_next_question(user.id, TODAY)

        assert selection.kind == SelectionKind.COMPLETED
        assert selection.question is None
        assert "Congratulations" in selection.message

    @pytest.mark.asyncio
    async def test_answers_are_per_user(self, test_db_session, make_user, make_question):
        alice = await make_user(test_db_session, "user_alice")
        bob = await make_user(test_db_session, "user_bob")
        question = await make_question(test_db_session)
        await answer(test_db_session, alice, question)

        selection = await QuestionSelector(test_db_session).select_next_question(bob.id, TODAY)

        assert selection.question.id == question.id
