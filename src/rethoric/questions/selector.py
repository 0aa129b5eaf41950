"""Next-question selection.

The daily question wins when it is still open for the user. Otherwise one
of the unanswered questions is picked by hashing the user id together with
the calendar date, so the pick is stable all day and changes overnight
without anything being stored.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.db.models import AnsweredQuestion, Question

logger = logging.getLogger(__name__)

DAILY_MESSAGE = "Here's today's featured question"
RANDOM_MESSAGE = "Here's a question for you to explore"
COMPLETED_MESSAGE = (
    "Congratulations! You've answered all available questions. "
    "Check back later for new content."
)


class SelectionKind(str, enum.Enum):
    DAILY = "daily"
    RANDOM = "random"
    COMPLETED = "completed"


@dataclass
class QuestionSelection:
    """Outcome of a selection; ``question`` is None only when COMPLETED."""

    kind: SelectionKind
    question: Question | None
    message: str


def calendar_date(now: datetime) -> str:
    """YYYY-MM-DD of ``now`` in UTC (naive datetimes are taken as UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date().isoformat()


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def rolling_hash(seed: str) -> int:
    """Polynomial hash ``acc = acc * 31 + code`` wrapped to signed 32 bits.

    Codes are UTF-16 code units so the result matches hashes computed by
    browser clients for the same seed.
    """
    acc = 0
    encoded = seed.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        code = encoded[i] | (encoded[i + 1] << 8)
        acc = _to_int32(acc * 31 + code)
    return acc


def pick_index(user_id: int | str, today: str, size: int) -> int:
    """Reproducible index into a candidate list of ``size`` elements."""
    if size <= 0:
        raise ValueError("size must be positive")
    return abs(rolling_hash(f"{user_id}_{today}")) % size


class QuestionSelector:
    """Chooses the next question for a user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def daily_question(self, today: str) -> Question | None:
        """Active daily question for ``today``; lowest id wins on duplicates."""
        result = await self.session.execute(
            select(Question)
            .where(
                Question.is_daily.is_(True),
                Question.daily_date == today,
                Question.is_active.is_(True),
            )
            .order_by(Question.id)
            .limit(1)
        )
        return result.scalars().first()

    async def answered_question_ids(self, user_id: int) -> set[int]:
        result = await self.session.execute(
            select(AnsweredQuestion.question_id).where(AnsweredQuestion.user_id == user_id)
        )
        return set(result.scalars().all())

    async def select_next_question(
        self, user_id: int, now: datetime | date | None = None
    ) -> QuestionSelection:
        """Pick the daily question, a per-day random one, or report completion."""
        if now is None:
            now = datetime.now(timezone.utc)
        if isinstance(now, datetime):
            today = calendar_date(now)
        else:
            today = now.isoformat()

        answered = await self.answered_question_ids(user_id)

        daily = await self.daily_question(today)
        if daily is not None and daily.id not in answered:
            logger.debug(f"User {user_id}: daily question {daily.id} for {today}")
            return QuestionSelection(SelectionKind.DAILY, daily, DAILY_MESSAGE)

        # Candidate order must be stable for the modulo pick to be reproducible.
        result = await self.session.execute(
            select(Question).where(Question.is_active.is_(True)).order_by(Question.id)
        )
        candidates = [q for q in result.scalars().all() if q.id not in answered]

        if not candidates:
            logger.info(f"User {user_id} has answered every active question")
            return QuestionSelection(SelectionKind.COMPLETED, None, COMPLETED_MESSAGE)

        selected = candidates[pick_index(user_id, today, len(candidates))]
        logger.debug(
            f"User {user_id}: question {selected.id} picked from {len(candidates)} candidates"
        )
        return QuestionSelection(SelectionKind.RANDOM, selected, RANDOM_MESSAGE)
