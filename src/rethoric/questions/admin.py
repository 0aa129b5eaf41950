"""Admin operations on questions."""

import logging
import re
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.db.models import Question, User
from rethoric.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UNSET: Any = object()


def require_admin(user: User) -> None:
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidArgumentError("Question title is required")
    return title


def _clean_tags(tags: list[str] | None) -> list[str]:
    return [t.strip() for t in tags or [] if t and t.strip()]


def _clean_daily_date(is_daily: bool, daily_date: str | None) -> str | None:
    if not is_daily or not daily_date:
        return None
    message = f"dailyDate must be a YYYY-MM-DD calendar date, got '{daily_date}'"
    if not _DATE_RE.match(daily_date):
        raise InvalidArgumentError(message)
    try:
        date.fromisoformat(daily_date)
    except ValueError:
        raise InvalidArgumentError(message) from None
    return daily_date


async def list_questions(session: AsyncSession, admin: User) -> list[Question]:
    """All questions, newest first."""
    require_admin(admin)
    result = await session.execute(
        select(Question).order_by(Question.created_at.desc(), Question.id.desc())
    )
    return list(result.scalars().all())


async def get_question(session: AsyncSession, question_id: int) -> Question:
    question = await session.get(Question, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    return question


async def create_question(
    session: AsyncSession,
    admin: User,
    title: str,
    description: str = "",
    tags: list[str] | None = None,
    is_daily: bool = False,
    daily_date: str | None = None,
    is_active: bool = True,
) -> Question:
    require_admin(admin)
    question = Question(
        title=_clean_title(title),
        description=(description or "").strip(),
        tags=_clean_tags(tags),
        is_daily=is_daily,
        daily_date=_clean_daily_date(is_daily, daily_date),
        is_active=is_active,
    )
    session.add(question)
    await session.commit()
    await session.refresh(question)
    logger.info(f"Admin {admin.id} created question {question.id}")
    return question


async def update_question(
    session: AsyncSession,
    admin: User,
    question_id: int,
    title: str | None = _UNSET,
    description: str | None = _UNSET,
    tags: list[str] | None = _UNSET,
    is_daily: bool = _UNSET,
    daily_date: str | None = _UNSET,
    is_active: bool = _UNSET,
) -> Question:
    """Partial update; arguments left unset keep their stored values."""
    require_admin(admin)
    question = await get_question(session, question_id)

    if title is not _UNSET:
        question.title = _clean_title(title)
    if description is not _UNSET:
        question.description = (description or "").strip()
    if tags is not _UNSET:
        question.tags = _clean_tags(tags)
    if is_daily is not _UNSET:
        question.is_daily = bool(is_daily)
    if is_active is not _UNSET:
        question.is_active = bool(is_active)
    if daily_date is _UNSET:
        daily_date = question.daily_date
    question.daily_date = _clean_daily_date(question.is_daily, daily_date)

    await session.commit()
    await session.refresh(question)
    logger.info(f"Admin {admin.id} updated question {question.id}")
    return question


async def delete_question(session: AsyncSession, admin: User, question_id: int) -> None:
    """Delete a question.

    Conversations that reference it keep their dangling ``question_id``.
    """
    require_admin(admin)
    question = await get_question(session, question_id)
    await session.delete(question)
    await session.commit()
    logger.info(f"Admin {admin.id} deleted question {question_id}")


async def import_questions(session: AsyncSession, items: list[dict[str, Any]]) -> int:
    """Bulk insert questions from plain dicts (CLI seeding, no admin check)."""
    count = 0
    for item in items:
        is_daily = bool(item.get("isDaily", item.get("is_daily", False)))
        session.add(
            Question(
                title=_clean_title(item.get("title")),
                description=(item.get("description") or "").strip(),
                tags=_clean_tags(item.get("tags")),
                is_daily=is_daily,
                daily_date=_clean_daily_date(
                    is_daily, item.get("dailyDate", item.get("daily_date"))
                ),
                is_active=bool(item.get("isActive", item.get("is_active", True))),
            )
        )
        count += 1
    await session.commit()
    return count
