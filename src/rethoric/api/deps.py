"""FastAPI dependencies: sessions, authenticated users and services."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.auth.users import get_current_user
from rethoric.config import settings
from rethoric.conversations.generator import LLMSource, ResponseGenerator
from rethoric.conversations.mentor import MentorConfig
from rethoric.conversations.store import ConversationStore
from rethoric.db.database import get_session
from rethoric.db.models import User
from rethoric.llm.factory import get_llm
from rethoric.questions.admin import require_admin

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def current_user(request: Request, session: SessionDep) -> User:
    """User for the subject asserted by the auth proxy header."""
    return await get_current_user(session, request.headers.get(settings.AUTH_SUBJECT_HEADER))


CurrentUser = Annotated[User, Depends(current_user)]


async def admin_user(user: CurrentUser) -> User:
    require_admin(user)
    return user


AdminUser = Annotated[User, Depends(admin_user)]


def get_store(session: SessionDep) -> ConversationStore:
    return ConversationStore(session)


StoreDep = Annotated[ConversationStore, Depends(get_store)]


def get_mentor_config(request: Request) -> MentorConfig:
    return request.app.state.mentor_config


def get_mentor_llm() -> LLMSource:
    """Provider source for the generator.

    Selection runs inside the generator so an unavailable provider still
    ends in a fallback reply.
    """
    return get_llm


def get_response_generator(
    store: StoreDep,
    llm: Annotated[LLMSource, Depends(get_mentor_llm)],
    config: Annotated[MentorConfig, Depends(get_mentor_config)],
) -> ResponseGenerator:
    return ResponseGenerator(store, llm, config)


GeneratorDep = Annotated[ResponseGenerator, Depends(get_response_generator)]
