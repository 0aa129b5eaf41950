"""Chat screen state: durable transcript plus the optimistic overlay."""

import logging

from rethoric.api.schemas import ConversationOut, MessageOut, ReplyResponse
from rethoric.client.api import RethoricClient
from rethoric.client.overlay import (
    DisplayMessage,
    OptimisticMessageReconciler,
    OverlayStatus,
)
from rethoric.errors import InvalidStateError

logger = logging.getLogger(__name__)


class ChatSession:
    """Drives one user's chat against a ``RethoricClient``."""

    def __init__(
        self,
        client: RethoricClient,
        reconciler: OptimisticMessageReconciler | None = None,
    ):
        self.client = client
        self.reconciler = reconciler or OptimisticMessageReconciler()
        self.conversation: ConversationOut | None = None
        self.durable: list[MessageOut] = []
        self.thread_id: str | None = None

    @property
    def conversation_id(self) -> int | None:
        return self.reconciler.conversation_id

    @property
    def messages(self) -> list[DisplayMessage]:
        return self.reconciler.merged(self.durable)

    async def open(self, conversation_id: int) -> None:
        """Show another conversation, discarding the current overlay."""
        self.reconciler.reset(conversation_id)
        self.conversation = None
        self.durable = []
        self.thread_id = None
        await self.refresh()

    async def start(self, question_id: int) -> int:
        started = await self.client.start_conversation(question_id)
        await self.open(started.conversation_id)
        return started.conversation_id

    async def refresh(self) -> None:
        conversation_id = self.conversation_id
        if conversation_id is None:
            return
        transcript = await self.client.get_messages(conversation_id)
        if conversation_id != self.conversation_id:
            # Switched while the fetch was in flight
            return
        self.conversation = transcript.conversation
        self.durable = transcript.messages
        self.thread_id = transcript.conversation.thread_id or self.thread_id

    async def send(self, content: str | None = None) -> ReplyResponse | None:
        """Post a user message, then ask the mentor to answer it.

        Returns None when the message itself was not accepted; the overlay
        then holds it in the error state.
        """
        conversation_id = self.conversation_id
        if conversation_id is None:
            raise InvalidStateError("No conversation is open")

        entry = await self.reconciler.send(
            lambda text: self.client.add_message(conversation_id, text), content
        )
        if entry.status == OverlayStatus.ERROR:
            return None
        await self.refresh()

        reply = await self.client.request_reply(conversation_id, entry.content, self.thread_id)
        if conversation_id == self.conversation_id:
            self.thread_id = reply.thread_id or self.thread_id
            await self.refresh()
        if reply.is_fallback:
            logger.info(f"Mentor fell back for conversation {conversation_id}: {reply.error}")
        return reply

    async def complete(self) -> bool:
        conversation_id = self.conversation_id
        if conversation_id is None:
            raise InvalidStateError("No conversation is open")
        result = await self.client.complete_conversation(conversation_id)
        await self.refresh()
        return result.completed
