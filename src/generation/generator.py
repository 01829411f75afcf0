"""
Single work-unit operations: build prompt → invoke model → parse → validate.

Each function handles exactly one unit and raises on failure; the retry
ceiling, pacing and skip policy belong to :mod:`src.generation.batch`.

Failures that reach the caller:
- :class:`~src.llm_client.errors.InvocationExhaustedError` (every key failed)
- :class:`~src.llm_client.errors.UnparsableOutputError` (no parse strategy worked)
- :class:`~src.generation.validation.QuestionValidationError` (parsed but unusable)
"""

from __future__ import annotations

from src.llm_client import (
    ARRAY,
    OBJECT,
    CredentialPool,
    InvocationExhaustedError,
    UnparsableOutputError,
    call_model_with_rotation,
    parse_json_robust,
)

from .config import PAGE_MEMORY_STORED_CHARS, TASK_PARAMS
from .prompts import (
    build_extraction_prompt,
    build_generation_prompt,
    build_review_prompt,
    build_solution_prompt,
)
from .validation import QuestionValidationError, validate_question


def _call_for_task(
    pool: CredentialPool,
    prompt: str,
    task: str,
    image: bytes | str | None = None,
) -> str:
    params = TASK_PARAMS[task]
    return call_model_with_rotation(
        pool,
        prompt,
        image=image,
        temperature=params["temperature"],
        max_output_tokens=params["max_output_tokens"],
    )


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


# ---------------------------------------------------------------------------
# Question generation
# ---------------------------------------------------------------------------

def generate_questions_for_topic(
    pool: CredentialPool,
    topic: dict,
    exam_name: str,
    course_name: str,
    question_type: str,
    pyqs: list[dict],
    existing_context: str,
    recent_questions: list[str],
    count: int = 1,
    topic_notes: str = "",
) -> list[dict]:
    """
    Generate new questions for one topic.

    Every returned question is checked with
    :func:`~src.generation.validation.validate_question` and must be of the
    requested ``question_type``; one bad record fails the whole unit.

    Args:
        pool: Credential pool for the session.
        topic: Topic dict with ``id``, ``name`` and ``weightage``.
        exam_name: Exam label used in the prompt.
        course_name: Course label used in the prompt.
        question_type: One of MCQ, MSQ, NAT, Subjective.
        pyqs: Previous-year questions shown as inspiration.
        existing_context: Rendered already-generated questions for this
            topic (see :func:`~src.generation.prompts.format_existing_questions`).
        recent_questions: Statements generated earlier in this session.
        count: Number of questions to request.
        topic_notes: Notes whose methods the solution should follow.

    Returns:
        List of question dicts, each tagged with ``topic_id``.

    Raises:
        QuestionValidationError: Empty result or an invalid question.
    """
    prompt = build_generation_prompt(
        topic,
        exam_name,
        course_name,
        question_type,
        pyqs,
        existing_context,
        recent_questions,
        count=count,
        topic_notes=topic_notes,
    )
    response = _call_for_task(pool, prompt, "generation")
    questions = parse_json_robust(response, ARRAY)

    if not questions:
        raise QuestionValidationError("Model returned no questions")

    for i, question in enumerate(questions, start=1):
        is_valid, reason = validate_question(question)
        if not is_valid:
            raise QuestionValidationError(f"Question {i}: {reason}", question)
        if question["question_type"] != question_type:
            raise QuestionValidationError(
                f"Question {i}: expected {question_type}, got {question['question_type']}",
                question,
            )

    return [{**question, "topic_id": topic.get("id")} for question in questions]


# ---------------------------------------------------------------------------
# PYQ solutions
# ---------------------------------------------------------------------------

def generate_solutions_for_pyqs(
    pool: CredentialPool,
    pyqs: list[dict],
    topic_notes: str = "",
) -> list[dict]:
    """
    Generate an answer and solution for each PYQ, in order.

    Args:
        pool: Credential pool for the session.
        pyqs: PYQ dicts with ``question_statement``, ``question_type`` and
            optional ``options`` / ``topic_name``.
        topic_notes: Notes whose methods the solutions should use.

    Returns:
        List of ``{"answer": ..., "solution": ...}`` dicts as parsed; empty
        list for empty input without calling the model.
    """
    if not pyqs:
        return []

    prompt = build_solution_prompt(
        pyqs,
        topic_notes=topic_notes,
        subject=pyqs[0].get("topic_name") or "",
    )
    response = _call_for_task(pool, prompt, "solution")
    solutions = parse_json_robust(response, ARRAY)
    print(f"  Generated solutions for {len(solutions)} PYQ(s)")
    return solutions


# ---------------------------------------------------------------------------
# Answer review
# ---------------------------------------------------------------------------

def review_question(pool: CredentialPool, question: dict) -> dict:
    """
    Ask the model whether a question's answer is wrong.

    A failed review never blocks a question: if the call or the parse
    fails the question is reported as not wrong, with the failure in
    ``reason``.

    Returns:
        Dict with ``is_wrong`` (bool), ``reason`` (str) and
        ``correct_answer`` (str or ``None``).
    """
    try:
        response = _call_for_task(pool, build_review_prompt(question), "review")
        verdict = parse_json_robust(response, OBJECT)
    except (InvocationExhaustedError, UnparsableOutputError) as exc:
        print(f"  Review failed, keeping question: {exc}")
        return {
            "is_wrong": False,
            "reason": f"Review failed: {exc}. Marked as correct by default",
            "correct_answer": None,
        }

    result = {
        "is_wrong": _as_bool(verdict.get("isWrong", verdict.get("is_wrong", False))),
        "reason": str(verdict.get("reason") or ""),
        "correct_answer": verdict.get("correctAnswer", verdict.get("correct_answer")),
    }
    print(f"  Review: {'WRONG' if result['is_wrong'] else 'CORRECT'} - {result['reason'][:120]}")
    return result


# ---------------------------------------------------------------------------
# Page extraction
# ---------------------------------------------------------------------------

def extract_questions_from_page(
    pool: CredentialPool,
    image: bytes | str,
    page_number: int,
    previous_context: str = "",
    page_memory: dict[int, str] | None = None,
) -> list[dict]:
    """
    Extract every question visible on one rendered exam-paper page.

    The first 1000 characters of the raw response are stored in
    ``page_memory[page_number]`` before parsing, so later pages see this
    page even when its output could not be parsed.

    Args:
        pool: Credential pool for the session.
        image: Page image as bytes, base64 or a data URL.
        page_number: 1-based page number, copied onto each question.
        previous_context: Text carried over from the previous page.
        page_memory: Mutable page-number → response-prefix map.

    Returns:
        List of question dicts tagged with ``page_number``; empty list when
        the response cannot be parsed.

    Raises:
        InvocationExhaustedError: Every key failed for this page.
    """
    prompt = build_extraction_prompt(previous_context, page_memory)
    response = _call_for_task(pool, prompt, "extraction", image=image)

    if page_memory is not None:
        page_memory[page_number] = response[:PAGE_MEMORY_STORED_CHARS]

    try:
        questions = parse_json_robust(response, ARRAY)
    except UnparsableOutputError as exc:
        print(f"  Page {page_number}: could not parse extracted questions ({exc.issue})")
        return []

    questions = [
        {**question, "page_number": page_number}
        for question in questions
        if isinstance(question, dict)
    ]
    print(f"  Extracted {len(questions)} question(s) from page {page_number}")
    return questions
