"""Mentor reply generation with retry, backoff and fallback.

One call produces exactly one persisted assistant message: the provider's
reply when an attempt succeeds, or the fixed fallback text once retries are
exhausted or the provider fails in a way retrying cannot fix. Only when even
the fallback cannot be stored does the caller receive a hard failure.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from rethoric.conversations.context import (
    ConversationContext,
    QuestionContext,
    stage_for,
)
from rethoric.conversations.mentor import MentorConfig
from rethoric.conversations.store import ConversationStore
from rethoric.conversations.threads import ThreadRegistry
from rethoric.db.models import Conversation, ConversationStatus, MessageRole, now_ms
from rethoric.errors import InvalidStateError
from rethoric.llm.base import BaseLLM, ChatTurn
from rethoric.llm.exceptions import LLMResponseError, is_retryable_error

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Awaitable[None]]
RestartCallback = Callable[[], Awaitable[None]]
LLMSource = BaseLLM | Callable[[], Awaitable[BaseLLM]]


class GenerationState(str, enum.Enum):
    PENDING = "pending"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    FALLBACK_ISSUED = "fallback_issued"
    HARD_FAILED = "hard_failed"


@dataclass
class GenerationResult:
    """Outcome of one mentor turn.

    ``success`` is True for both SUCCEEDED and FALLBACK_ISSUED: in either
    case the user got a reply. ``error`` keeps the provider failure behind a
    fallback for diagnostics.
    """

    state: GenerationState
    response: str | None = None
    thread_id: str | None = None
    attempt: int = 0
    message_id: int | None = None
    error: str | None = None
    discarded: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state in (GenerationState.SUCCEEDED, GenerationState.FALLBACK_ISSUED)

    @property
    def is_fallback(self) -> bool:
        return self.state == GenerationState.FALLBACK_ISSUED


class ResponseGenerator:
    """Produces and persists the mentor's next reply."""

    def __init__(
        self,
        store: ConversationStore,
        llm: LLMSource,
        config: MentorConfig,
        threads: ThreadRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the generator.

        Args:
            store: Conversation store (sole write path for messages)
            llm: Text-generation provider, or an async getter resolved on each
                call so that selection failures end in the fallback reply
            config: Mentor persona and retry policy
            threads: Thread handle registry (defaults to one on the store's session)
            sleep: Backoff sleeper, replaceable in tests
        """
        self.store = store
        self.llm = llm
        self.config = config
        self.threads = threads or ThreadRegistry(store.session)
        self.sleep = sleep

    async def resolve_llm(self) -> BaseLLM:
        if isinstance(self.llm, BaseLLM):
            return self.llm
        return await self.llm()

    async def build_context(
        self, conversation_id: int, requester_id: int
    ) -> tuple[Conversation, ConversationContext]:
        """Load the transcript and derive the typed generation context.

        Raises:
            NotFoundError, PermissionDeniedError: From the ownership check
            InvalidStateError: If the conversation is already completed
        """
        transcript = await self.store.list_messages(conversation_id, requester_id)
        conversation = transcript.conversation
        if conversation.status != ConversationStatus.ACTIVE:
            raise InvalidStateError("Conversation is completed")

        question = transcript.question
        question_context = QuestionContext(
            title=question.title if question else "Question",
            description=question.description if question else "",
            tags=tuple(question.tags or ()) if question else (),
        )
        turns = [ChatTurn(role=m.role.value, content=m.content) for m in transcript.messages]
        context = ConversationContext(
            conversation_id=conversation.id,
            question=question_context,
            messages=turns,
            stage=stage_for(len(turns)),
            thread_id=conversation.thread_id,
        )
        return conversation, context

    async def ensure_thread(
        self,
        conversation: Conversation,
        requester_id: int,
        question_title: str,
        thread_id: str | None = None,
    ) -> str:
        """Reuse the supplied or remembered handle, or create a new one."""
        if thread_id:
            existing = await self.threads.get_thread(thread_id)
            if existing is not None and existing.conversation_id != conversation.id:
                logger.warning(
                    f"Thread {thread_id} belongs to conversation {existing.conversation_id}, "
                    f"ignoring it for conversation {conversation.id}"
                )
                thread_id = None

        thread_id = thread_id or conversation.thread_id
        if not thread_id:
            thread_id = await self.threads.create_thread(
                conversation.id, requester_id, question_title
            )
        if thread_id != conversation.thread_id:
            await self.store.set_thread(conversation.id, thread_id)
        return thread_id

    async def _stream_reply(
        self,
        llm: BaseLLM,
        instructions: str,
        turns: list[ChatTurn],
        parts: list[str],
        on_delta: DeltaCallback | None,
    ) -> str:
        """Run one provider attempt to exhaustion and return the full text.

        Deltas are collected into ``parts`` as they arrive.
        """
        async for delta in llm.stream_chat(instructions, turns):
            parts.append(delta)
            if on_delta is not None:
                await on_delta(delta)
        text = "".join(parts).strip()
        if not text:
            raise LLMResponseError("Empty response", provider=llm.provider_name)
        return text

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"{GenerationState.RETRY_SCHEDULED.value}: attempt "
            f"{retry_state.attempt_number}/{self.config.max_attempts} failed "
            f"({type(exc).__name__}: {exc}); retrying in {delay:.2f}s"
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.base_delay, exp_base=2),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=self._log_retry,
            sleep=self.sleep,
            reraise=True,
        )

    async def generate(
        self,
        conversation_id: int,
        requester_id: int,
        user_message: str,
        thread_id: str | None = None,
        on_delta: DeltaCallback | None = None,
        on_restart: RestartCallback | None = None,
    ) -> GenerationResult:
        """Generate, persist and return the mentor's next reply.

        Args:
            conversation_id: Conversation to reply in
            requester_id: Owner of the conversation
            user_message: Latest user message text
            thread_id: Existing thread handle, if the caller has one
            on_delta: Awaited with each streamed text fragment
            on_restart: Awaited before a retry when the failed attempt had
                already streamed deltas; text received so far is void

        Returns:
            GenerationResult in state SUCCEEDED, FALLBACK_ISSUED or HARD_FAILED

        Raises:
            NotFoundError, PermissionDeniedError, InvalidStateError: Before any
                provider call, when the conversation cannot be replied to
        """
        conversation, context = await self.build_context(conversation_id, requester_id)
        thread_id = await self.ensure_thread(
            conversation, requester_id, context.question.title, thread_id
        )
        context.thread_id = thread_id

        instructions = self.config.build_instructions(context)
        turns = context.turns_with(user_message)
        metadata = {
            "conversation_id": conversation_id,
            "thread_id": thread_id,
            "provider": None,
            "model": None,
            "stage": context.stage.value,
        }

        attempt = 0
        parts: list[str] = []
        try:
            llm = await self.resolve_llm()
            metadata.update(provider=llm.provider_name, model=llm.model_name)
            async for retry_attempt in self._retrying():
                with retry_attempt:
                    attempt = retry_attempt.retry_state.attempt_number
                    if parts:
                        parts.clear()
                        if on_restart is not None:
                            await on_restart()
                    text = await self._stream_reply(
                        llm, instructions, turns, parts, on_delta
                    )
        except Exception as e:
            reason = "retries exhausted" if is_retryable_error(e) else "non-retryable error"
            logger.error(
                f"Generation failed for conversation {conversation_id} after "
                f"{attempt} attempt(s) ({reason}): {type(e).__name__}: {e}"
            )
            return await self._issue_fallback(
                conversation_id, requester_id, thread_id, attempt, e, metadata
            )

        try:
            message = await self.store.add_message(
                conversation_id, requester_id, MessageRole.ASSISTANT, text
            )
        except InvalidStateError as e:
            return self._discard(conversation_id, thread_id, attempt, e, metadata)
        except Exception as e:
            logger.error(f"Failed to persist reply for conversation {conversation_id}: {e}")
            return await self._issue_fallback(
                conversation_id, requester_id, thread_id, attempt, e, metadata
            )

        logger.info(
            f"Reply persisted for conversation {conversation_id} "
            f"(attempt {attempt}, {len(text)} chars)"
        )
        return GenerationResult(
            state=GenerationState.SUCCEEDED,
            response=text,
            thread_id=thread_id,
            attempt=attempt,
            message_id=message.id,
            metadata={**metadata, "timestamp": message.timestamp},
        )

    async def _issue_fallback(
        self,
        conversation_id: int,
        requester_id: int,
        thread_id: str,
        attempt: int,
        cause: BaseException,
        metadata: dict[str, Any],
    ) -> GenerationResult:
        """Persist the canned reply so the user's message is never left unanswered."""
        error = f"{type(cause).__name__}: {cause}"
        try:
            message = await self.store.add_message(
                conversation_id,
                requester_id,
                MessageRole.ASSISTANT,
                self.config.fallback_message,
            )
        except InvalidStateError as e:
            return self._discard(conversation_id, thread_id, attempt, e, metadata)
        except Exception as e:
            logger.error(
                f"Could not persist fallback for conversation {conversation_id}: {e}",
                exc_info=True,
            )
            return GenerationResult(
                state=GenerationState.HARD_FAILED,
                thread_id=thread_id,
                attempt=attempt,
                error=f"{error}; fallback failed: {type(e).__name__}: {e}",
                metadata={**metadata, "timestamp": now_ms()},
            )

        logger.warning(f"Fallback reply issued for conversation {conversation_id}")
        return GenerationResult(
            state=GenerationState.FALLBACK_ISSUED,
            response=self.config.fallback_message,
            thread_id=thread_id,
            attempt=attempt,
            message_id=message.id,
            error=error,
            metadata={**metadata, "timestamp": message.timestamp, "fallback": True},
        )

    def _discard(
        self,
        conversation_id: int,
        thread_id: str,
        attempt: int,
        cause: InvalidStateError,
        metadata: dict[str, Any],
    ) -> GenerationResult:
        """The conversation was completed while the reply was in flight."""
        logger.info(
            f"Conversation {conversation_id} completed during generation; reply discarded"
        )
        return GenerationResult(
            state=GenerationState.HARD_FAILED,
            thread_id=thread_id,
            attempt=attempt,
            error=str(cause),
            discarded=True,
            metadata={**metadata, "timestamp": now_ms()},
        )
