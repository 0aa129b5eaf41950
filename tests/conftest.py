"""Shared fixtures: fresh SQLite databases, seed data and a scripted LLM."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rethoric.db.models import Base, Question, User, UserRole
from rethoric.llm.base import BaseLLM, ChatTurn


class FakeLLM(BaseLLM):
    """Scripted provider.

    Each call consumes the next script entry: a string is streamed back in
    small chunks, an exception is raised, and a ``(text, exception)`` pair
    streams the text and then fails. Once the script runs out every call
    answers with ``default_reply``.
    """

    def __init__(
        self,
        script: list[Any] | None = None,
        default_reply: str = "What makes you confident in that?",
        model: str = "fake-model",
    ):
        self.script = list(script or [])
        self.default_reply = default_reply
        self.model = model
        self.calls: list[tuple[str, list[ChatTurn]]] = []
        self.before_reply: Callable[[], Awaitable[None]] | None = None

    @property
    def provider_name(self) -> str:
        return "fake"

    async def stream_chat(self, system: str, turns: list[ChatTurn], **kwargs: Any):
        self.calls.append((system, list(turns)))
        outcome = self.script.pop(0) if self.script else self.default_reply
        if self.before_reply is not None:
            await self.before_reply()
        if isinstance(outcome, BaseException):
            raise outcome
        text, error = outcome if isinstance(outcome, tuple) else (outcome, None)
        for i in range(0, len(text), 7):
            yield text[i:i + 7]
        if error is not None:
            raise error

    async def check_health(self) -> bool:
        return True


@pytest.fixture(scope="function")
def test_db_engine():
    """In-memory SQLite engine; each test gets a fresh database."""
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_db_engine):
    """Create tables and hand out a session factory bound to the test engine."""
    async with test_db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)

    async with test_db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_db_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """File-backed database for tests that need independent connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rethoric.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def make_user():
    """Factory creating users in a given session."""

    async def _make_user(
        session: AsyncSession,
        external_id: str = "user_alice",
        role: UserRole = UserRole.USER,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        user = User(
            external_id=external_id,
            email=email or f"{external_id}@example.com",
            name=name,
            role=role,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_question():
    """Factory creating questions in a given session."""

    async def _make_question(
        session: AsyncSession,
        title: str = "Is it ever right to break a promise?",
        description: str = "Think about what a promise commits you to.",
        tags: list[str] | None = None,
        is_daily: bool = False,
        daily_date: str | None = None,
        is_active: bool = True,
    ) -> Question:
        question = Question(
            title=title,
            description=description,
            tags=tags if tags is not None else ["ethics"],
            is_daily=is_daily,
            daily_date=daily_date,
            is_active=is_active,
        )
        session.add(question)
        await session.commit()
        await session.refresh(question)
        return question

    return _make_question


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def sleeps():
    """Recorded backoff delays; pass ``record_sleep`` as the generator's sleeper."""
    return []


@pytest.fixture
def record_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def scripted_llm():
    """Build a FakeLLM with a script of replies and exceptions."""

    def _scripted(*script: Any, **kwargs: Any) -> FakeLLM:
        return FakeLLM(list(script), **kwargs)

    return _scripted
