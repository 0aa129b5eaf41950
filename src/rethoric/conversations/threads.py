"""Mentor thread handles."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.db.models import AgentThread

logger = logging.getLogger(__name__)


class ThreadRegistry:
    """Creates and looks up thread handles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_thread(self, conversation_id: int, user_id: int, title: str) -> str:
        """Create a handle tagged with its owner and the question title."""
        thread_id = f"thread_{conversation_id}_{uuid.uuid4().hex[:12]}"
        self.session.add(
            AgentThread(
                thread_id=thread_id,
                user_id=user_id,
                conversation_id=conversation_id,
                title=title,
            )
        )
        await self.session.commit()
        logger.info(f"Created thread {thread_id} for conversation {conversation_id}")
        return thread_id

    async def get_thread(self, thread_id: str) -> AgentThread | None:
        result = await self.session.execute(
            select(AgentThread).where(AgentThread.thread_id == thread_id)
        )
        return result.scalars().first()
