"""Question catalogue: selection for users and admin management."""

from rethoric.questions.selector import (
    QuestionSelection,
    QuestionSelector,
    SelectionKind,
    rolling_hash,
)

__all__ = ["QuestionSelection", "QuestionSelector", "SelectionKind", "rolling_hash"]
