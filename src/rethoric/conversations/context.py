"""Typed context handed from transcript loading to generation."""

import enum
from dataclasses import dataclass, field

from rethoric.llm.base import ChatTurn


class ConversationStage(str, enum.Enum):
    """Coarse depth of a conversation, derived from its message count."""

    OPENING = "opening"
    EXPLORING = "exploring"
    DEEPENING = "deepening"
    SYNTHESIZING = "synthesizing"


def stage_for(message_count: int) -> ConversationStage:
    if message_count < 2:
        return ConversationStage.OPENING
    if message_count < 5:
        return ConversationStage.EXPLORING
    if message_count < 8:
        return ConversationStage.DEEPENING
    return ConversationStage.SYNTHESIZING


@dataclass(frozen=True)
class QuestionContext:
    title: str
    description: str = ""
    tags: tuple[str, ...] = ()


@dataclass
class ConversationContext:
    """Everything the mentor needs for one turn."""

    conversation_id: int
    question: QuestionContext
    messages: list[ChatTurn] = field(default_factory=list)
    stage: ConversationStage = ConversationStage.OPENING
    thread_id: str | None = None

    def turns_with(self, user_message: str) -> list[ChatTurn]:
        """History plus the new user turn, unless it is already the last entry.

        Clients persist their message before asking for a reply, so the
        turn is normally present already.
        """
        turns = list(self.messages)
        user_message = user_message.strip()
        if not user_message:
            return turns
        last = turns[-1] if turns else None
        if last is None or last.role != "user" or last.content != user_message:
            turns.append(ChatTurn(role="user", content=user_message))
        return turns
