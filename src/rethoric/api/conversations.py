"""Conversation endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from rethoric.api.deps import CurrentUser, GeneratorDep, StoreDep
from rethoric.api.schemas import (
    AddMessageRequest,
    AddMessageResponse,
    CompleteConversationResponse,
    ConversationOut,
    MessagesResponse,
    ReplyRequest,
    ReplyResponse,
    StartConversationRequest,
    StartConversationResponse,
    conversation_out,
    message_out,
    question_out,
)
from rethoric.db.models import ConversationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationOut])
async def list_conversations(
    user: CurrentUser,
    store: StoreDep,
    conversation_status: ConversationStatus | None = Query(default=None, alias="status"),
) -> list[ConversationOut]:
    """The caller's conversations, most recent first."""
    views = await store.list_conversations(user.id, conversation_status)
    return [conversation_out(v.conversation, v.question) for v in views]


@router.post(
    "", response_model=StartConversationResponse, status_code=status.HTTP_201_CREATED
)
async def start_conversation(
    request: StartConversationRequest, user: CurrentUser, store: StoreDep
) -> StartConversationResponse:
    conversation, question = await store.start_conversation(user.id, request.question_id)
    return StartConversationResponse(
        conversation_id=conversation.id, question=question_out(question)
    )


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
async def get_messages(
    conversation_id: int, user: CurrentUser, store: StoreDep
) -> MessagesResponse:
    transcript = await store.list_messages(conversation_id, user.id)
    return MessagesResponse(
        conversation=conversation_out(transcript.conversation, transcript.question),
        messages=[message_out(m) for m in transcript.messages],
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=AddMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    conversation_id: int, request: AddMessageRequest, user: CurrentUser, store: StoreDep
) -> AddMessageResponse:
    message = await store.add_message(conversation_id, user.id, request.role, request.content)
    return AddMessageResponse(message_id=message.id, timestamp=message.timestamp)


@router.post("/{conversation_id}/complete", response_model=CompleteConversationResponse)
async def complete_conversation(
    conversation_id: int, user: CurrentUser, store: StoreDep
) -> CompleteConversationResponse:
    completed = await store.complete_conversation(conversation_id, user.id)
    return CompleteConversationResponse(completed=completed)


@router.post("/{conversation_id}/reply", response_model=ReplyResponse)
async def reply(
    conversation_id: int,
    request: ReplyRequest,
    user: CurrentUser,
    generator: GeneratorDep,
) -> ReplyResponse:
    """Generate and persist the mentor's reply.

    A provider outage still returns 200 with ``is_fallback`` set; only a
    reply that could not be stored at all is reported as 502.
    """
    result = await generator.generate(
        conversation_id, user.id, request.user_message, thread_id=request.thread_id
    )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to generate AI response: {result.error}",
        )
    return ReplyResponse(
        success=True,
        response=result.response,
        thread_id=result.thread_id,
        is_fallback=result.is_fallback,
        attempt=result.attempt,
        message_id=result.message_id,
        error=result.error,
        metadata=result.metadata,
    )
