"""Mentor persona and generation policy.

Built once from settings at startup and passed to ``ResponseGenerator``.
"""

from dataclasses import dataclass

from rethoric.config import Settings
from rethoric.conversations.context import ConversationContext, ConversationStage

MENTOR_INSTRUCTIONS = """You are a Socratic mentor helping users develop critical thinking skills.
Ask probing questions, encourage deeper analysis, and guide users to discover insights themselves.
Be encouraging but challenging, helping them think through problems systematically.
Keep replies short: acknowledge the user's point, then ask one or two focused questions.
Never lecture and never hand over a finished answer."""

FALLBACK_MESSAGE = (
    "I'm having some technical difficulties right now, but let's keep going. "
    "Could you tell me a bit more about your reasoning on this so far?"
)

STAGE_GUIDANCE = {
    ConversationStage.OPENING: (
        "The conversation has just started. Invite the user to state their initial "
        "position and what it rests on."
    ),
    ConversationStage.EXPLORING: (
        "Explore the user's assumptions and definitions. Ask what evidence supports "
        "their view."
    ),
    ConversationStage.DEEPENING: (
        "Challenge the reasoning. Bring in counterarguments, trade-offs and edge cases."
    ),
    ConversationStage.SYNTHESIZING: (
        "Help the user synthesize: ask them to summarize how their thinking has "
        "changed and what remains uncertain."
    ),
}


@dataclass(frozen=True)
class MentorConfig:
    """Stateless persona and retry policy for the mentor."""

    name: str = "ReasoningCoach"
    instructions: str = MENTOR_INSTRUCTIONS
    fallback_message: str = FALLBACK_MESSAGE
    max_attempts: int = 3
    base_delay: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "MentorConfig":
        return cls(
            name=settings.MENTOR_NAME,
            max_attempts=settings.GENERATION_MAX_ATTEMPTS,
            base_delay=settings.GENERATION_BASE_DELAY,
        )

    def build_instructions(self, context: ConversationContext) -> str:
        """Persona followed by the topic and stage of this conversation."""
        question = context.question
        lines = [
            self.instructions,
            "",
            f"Topic: {question.title}",
        ]
        if question.description:
            lines.append(f"Details: {question.description}")
        if question.tags:
            lines.append(f"Tags: {', '.join(question.tags)}")
        lines.append(f"Conversation stage: {context.stage.value}")
        lines.append(STAGE_GUIDANCE[context.stage])
        return "\n".join(lines)
