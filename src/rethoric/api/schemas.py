"""API request and response schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class QuestionOut(BaseModel):
    """A question as shown to users and admins."""

    id: int
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    is_daily: bool = False
    daily_date: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NextQuestionResponse(BaseModel):
    """Result of next-question selection."""

    kind: Literal["daily", "random", "completed"]
    question: QuestionOut | None = None
    message: str

    model_config = {"json_schema_extra": {
        "example": {
            "kind": "daily",
            "question": {
                "id": 7,
                "title": "Should voting be mandatory?",
                "description": "Weigh civic duty against individual liberty.",
                "tags": ["politics", "ethics"],
                "is_daily": True,
                "daily_date": "2026-10-17",
            },
            "message": "Here's today's featured question",
        }
    }}


class QuestionCreate(BaseModel):
    """Admin request to create a question."""

    title: str = Field(..., description="Question title", min_length=1)
    description: str = Field(default="", description="Longer framing of the question")
    tags: list[str] = Field(default_factory=list)
    is_daily: bool = False
    daily_date: str | None = Field(default=None, description="YYYY-MM-DD, daily questions only")
    is_active: bool = True


class QuestionUpdate(BaseModel):
    """Admin partial update; omitted fields are left unchanged."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    is_daily: bool | None = None
    daily_date: str | None = None
    is_active: bool | None = None


class ConversationOut(BaseModel):
    id: int
    question_id: int
    status: Literal["active", "completed"]
    message_count: int
    thread_id: str | None = None
    started_at: int = Field(..., description="Epoch milliseconds")
    completed_at: int | None = None
    question: QuestionOut | None = None


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    role: Literal["user", "assistant"]
    content: str
    timestamp: int = Field(..., description="Epoch milliseconds, assigned at commit")


class MessagesResponse(BaseModel):
    conversation: ConversationOut
    messages: list[MessageOut]


class StartConversationRequest(BaseModel):
    question_id: int


class StartConversationResponse(BaseModel):
    conversation_id: int
    question: QuestionOut


class AddMessageRequest(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str


class AddMessageResponse(BaseModel):
    message_id: int
    timestamp: int


class CompleteConversationResponse(BaseModel):
    success: bool = True
    completed: bool = Field(..., description="False when the conversation was already completed")


class ReplyRequest(BaseModel):
    """Ask the mentor for its next reply."""

    user_message: str = Field(..., description="Latest user message text")
    thread_id: str | None = Field(default=None, description="Existing thread handle")


class ReplyResponse(BaseModel):
    success: bool
    response: str | None = None
    thread_id: str | None = None
    is_fallback: bool = False
    attempt: int = 0
    message_id: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UserOut(BaseModel):
    id: int
    external_id: str
    email: str
    name: str | None = None
    role: Literal["user", "admin"]
    is_admin: bool
    created_at: datetime | None = None


class UpdateProfileRequest(BaseModel):
    name: str | None = None


def question_out(question) -> QuestionOut | None:
    return QuestionOut.model_validate(question) if question is not None else None


def conversation_out(conversation, question=None) -> ConversationOut:
    return ConversationOut(
        id=conversation.id,
        question_id=conversation.question_id,
        status=conversation.status.value,
        message_count=conversation.message_count,
        thread_id=conversation.thread_id,
        started_at=conversation.started_at,
        completed_at=conversation.completed_at,
        question=question_out(question),
    )


def message_out(message) -> MessageOut:
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role.value,
        content=message.content,
        timestamp=message.timestamp,
    )


def user_out(user) -> UserOut:
    return UserOut(
        id=user.id,
        external_id=user.external_id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        is_admin=user.is_admin,
        created_at=user.created_at,
    )
