"""Question endpoints: next question for users, CRUD for admins."""

import logging

from fastapi import APIRouter, status

from rethoric.api.deps import AdminUser, CurrentUser, SessionDep
from rethoric.api.schemas import (
    NextQuestionResponse,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
    question_out,
)
from rethoric.questions import admin
from rethoric.questions.selector import QuestionSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["questions"])


@router.get("/questions/next", response_model=NextQuestionResponse)
async def next_question(user: CurrentUser, session: SessionDep) -> NextQuestionResponse:
    """Today's daily question if still open, otherwise a stable per-day pick."""
    selection = await QuestionSelector(session).select_next_question(user.id)
    return NextQuestionResponse(
        kind=selection.kind.value,
        question=question_out(selection.question),
        message=selection.message,
    )


@router.get("/admin/questions", response_model=list[QuestionOut])
async def list_questions(user: AdminUser, session: SessionDep) -> list[QuestionOut]:
    questions = await admin.list_questions(session, user)
    return [QuestionOut.model_validate(q) for q in questions]


@router.post(
    "/admin/questions", response_model=QuestionOut, status_code=status.HTTP_201_CREATED
)
async def create_question(
    request: QuestionCreate, user: AdminUser, session: SessionDep
) -> QuestionOut:
    question = await admin.create_question(session, user, **request.model_dump())
    return QuestionOut.model_validate(question)


@router.patch("/admin/questions/{question_id}", response_model=QuestionOut)
async def update_question(
    question_id: int, request: QuestionUpdate, user: AdminUser, session: SessionDep
) -> QuestionOut:
    question = await admin.update_question(
        session, user, question_id, **request.model_dump(exclude_unset=True)
    )
    return QuestionOut.model_validate(question)


@router.delete("/admin/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(question_id: int, user: AdminUser, session: SessionDep) -> None:
    await admin.delete_question(session, user, question_id)
