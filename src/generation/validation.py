"""
Semantic checks on parsed model output.

Parsing only guarantees the right container shape; these functions check
that each record carries the fields a question or solution needs before
it is persisted.
"""

from __future__ import annotations

from .config import OPTION_QUESTION_TYPES, QUESTION_TYPES, REQUIRED_OPTION_COUNT


class QuestionValidationError(ValueError):
    """A generated record failed semantic validation."""

    def __init__(self, reason: str, record: dict | None = None):
        self.reason = reason
        self.record = record
        super().__init__(reason)


def _is_blank(value) -> bool:
    return value is None or not str(value).strip()


def validate_question(question: dict, require_answer: bool = True) -> tuple[bool, str]:
    """
    Check that a question record is complete enough to store.

    Rules:
    - ``question_statement`` is a non-blank string.
    - ``question_type`` is one of MCQ, MSQ, NAT, Subjective.
    - ``answer`` is present (skipped when ``require_answer`` is False,
      as for questions extracted from a paper).
    - MCQ and MSQ questions carry exactly 4 options.

    Args:
        question: Parsed question dict.
        require_answer: Whether a missing answer is a failure.

    Returns:
        Tuple of ``(is_valid, reason)``.
    """
    if not isinstance(question, dict):
        return False, "Question is not an object"

    statement = question.get("question_statement")
    if not isinstance(statement, str) or not statement.strip():
        return False, "Empty question statement"

    question_type = question.get("question_type")
    if question_type not in QUESTION_TYPES:
        return False, f"Invalid question type: {question_type!r}"

    if require_answer and _is_blank(question.get("answer")):
        return False, "Missing answer"

    if question_type in OPTION_QUESTION_TYPES:
        options = question.get("options")
        if not isinstance(options, list):
            return False, f"{question_type} question requires options"
        if len(options) != REQUIRED_OPTION_COUNT:
            return False, (
                f"{question_type} question must have exactly "
                f"{REQUIRED_OPTION_COUNT} options, got {len(options)}"
            )

    return True, "Question passes validation"


def validate_solution(record: dict) -> tuple[bool, str]:
    """Check that a solution record has a non-blank answer and solution."""
    if not isinstance(record, dict):
        return False, "Solution is not an object"
    if _is_blank(record.get("answer")):
        return False, "Missing answer"
    if _is_blank(record.get("solution")):
        return False, "Missing solution"
    return True, "Solution passes validation"
