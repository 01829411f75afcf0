"""
Session loops for question generation, PYQ solution backfill, and page
extraction.

Work units run strictly one after another: the credential pool is
mutated on every attempt and is not safe to share.

Per unit, the whole generate-and-validate cycle is retried up to
``MAX_UNIT_ATTEMPTS`` times:
- 3 s wait after a validation failure (or a review that flags the answer)
- 5 s wait after an invocation or parse failure
- 8 s wait after each successful unit
- 5 s wait between topics
A unit that still fails is logged to the failed-unit JSONL queue and the
loop moves on.  Pause is honoured before each unit; stop is checked before
each unit and each attempt, and already-saved rows stay in place.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

from src.llm_client import (
    CredentialPool,
    InvocationExhaustedError,
    UnparsableOutputError,
)

from .allocation import allocate_questions
from .config import (
    DEFAULT_DIFFICULTY_LEVEL,
    DEFAULT_PURPOSE,
    FAILED_UNITS_LOG,
    GENERATED_QUESTIONS_PATH,
    INTER_TOPIC_DELAY_SECONDS,
    INTER_UNIT_DELAY_SECONDS,
    MAX_UNIT_ATTEMPTS,
    PYQS_PATH,
    RETRY_AFTER_ERROR_SECONDS,
    RETRY_AFTER_INVALID_SECONDS,
)
from .control import GenerationControl
from .generator import (
    extract_questions_from_page,
    generate_questions_for_topic,
    generate_solutions_for_pyqs,
    review_question,
)
from .prompts import format_existing_questions
from .store import (
    load_generated_questions,
    load_pyqs,
    log_failed_unit,
    pyqs_missing_solutions,
    save_generated_question,
    summarize_pyq_coverage,
    update_pyq_solution,
)
from .validation import QuestionValidationError, validate_solution


# ---------------------------------------------------------------------------
# Unit retry policy
# ---------------------------------------------------------------------------

def run_unit_with_retries(
    label: str,
    attempt_fn: Callable[[], object],
    control: GenerationControl,
    max_attempts: int = MAX_UNIT_ATTEMPTS,
    retry_after_error: float = RETRY_AFTER_ERROR_SECONDS,
    retry_after_invalid: float = RETRY_AFTER_INVALID_SECONDS,
) -> tuple[object | None, int, str | None]:
    """
    Run one work unit, retrying the whole cycle on recoverable failures.

    ``QuestionValidationError`` waits ``retry_after_invalid`` before the
    next attempt; ``InvocationExhaustedError`` and ``UnparsableOutputError``
    wait ``retry_after_error``.  No wait follows the final attempt.  Any
    other exception propagates.

    Args:
        label: Unit description used in progress lines.
        attempt_fn: Zero-argument callable performing one full attempt.
        control: Session control; a stop request ends the retries.
        max_attempts: Attempt ceiling for the unit.
        retry_after_error: Wait after an invocation or parse failure.
        retry_after_invalid: Wait after a validation failure.

    Returns:
        Tuple of ``(result, attempts_made, last_error)``.  ``result`` is
        ``None`` when the unit failed or the session was stopped.
    """
    last_error: str | None = None

    for attempt in range(1, max_attempts + 1):
        if control.is_stopped:
            return None, attempt - 1, last_error

        try:
            return attempt_fn(), attempt, None
        except QuestionValidationError as exc:
            last_error = f"validation: {exc.reason}"
            delay = retry_after_invalid
        except (InvocationExhaustedError, UnparsableOutputError) as exc:
            last_error = f"{type(exc).__name__}: {exc}"
            delay = retry_after_error

        print(f"  Attempt {attempt}/{max_attempts} for {label} failed: {last_error[:160]}")
        if attempt < max_attempts:
            control.sleep(delay)

    print(f"  Skipping {label} after {max_attempts} failed attempts")
    return None, max_attempts, last_error


def _print_summary(title: str, rows: list[tuple[str, object]]) -> None:
    sep = "=" * 60
    print(f"\n{sep}")
    print(title)
    for name, value in rows:
        print(f"  {name + ':':<12}{value}")
    print(f"{sep}\n")


# ---------------------------------------------------------------------------
# New question generation
# ---------------------------------------------------------------------------

def generate_new_questions(
    pool: CredentialPool,
    topics: list[dict],
    exam_name: str,
    course_name: str,
    question_type: str,
    total_questions: int,
    control: GenerationControl | None = None,
    review: bool = False,
    question_config: dict | None = None,
    slot: str | None = None,
    part: str | None = None,
    max_attempts: int = MAX_UNIT_ATTEMPTS,
    inter_unit_delay: float = INTER_UNIT_DELAY_SECONDS,
    inter_topic_delay: float = INTER_TOPIC_DELAY_SECONDS,
    retry_after_error: float = RETRY_AFTER_ERROR_SECONDS,
    retry_after_invalid: float = RETRY_AFTER_INVALID_SECONDS,
    pyqs_path: Path = PYQS_PATH,
    questions_path: Path = GENERATED_QUESTIONS_PATH,
    failed_log: Path = FAILED_UNITS_LOG,
) -> dict:
    """
    Generate a session's worth of questions, topic by topic.

    Questions are allocated across topics with
    :func:`~src.generation.allocation.allocate_questions`.  For each topic
    the PYQs and already-generated questions of ``question_type`` are
    loaded once and fed to every prompt; each saved question is added to
    that context so later prompts avoid it.

    Args:
        pool: Configured credential pool.
        topics: Topic dicts (``id``, ``name``, ``chapter_id``,
            ``weightage``, ``notes``).
        exam_name: Exam label for prompts.
        course_name: Course label for prompts.
        question_type: One of MCQ, MSQ, NAT, Subjective.
        total_questions: Requested session size.
        control: Pause/stop control; a fresh one is used if omitted.
        review: Also ask the model to check each answer, retrying the
            unit when it is flagged wrong.
        question_config: Marking-scheme fields copied onto every row.
        slot: Optional exam slot stored with each row.
        part: Optional exam part stored with each row.
        max_attempts: Attempt ceiling per question.
        inter_unit_delay: Wait after each saved question.
        inter_topic_delay: Wait between topics.
        retry_after_error: Wait after an invocation or parse failure.
        retry_after_invalid: Wait after a validation failure.
        pyqs_path: PYQ CSV path.
        questions_path: Generated-question CSV path.
        failed_log: Failed-unit JSONL path.

    Returns:
        Dict with ``topics_processed``, ``questions_requested``,
        ``questions_generated``, ``questions_failed``, ``stopped`` and
        ``session_duration_seconds``.
    """
    control = control or GenerationControl()
    session_start = datetime.now()

    allocated, _, extra_count = allocate_questions(topics, total_questions)
    active_topics = [t for t in allocated if t["questions_to_generate"] > 0]
    # Per-topic counts are rounded independently
    total_to_generate = sum(t["questions_to_generate"] for t in active_topics)

    print(
        f"\nStarting {question_type} generation: {total_to_generate} question(s) "
        f"across {len(active_topics)} topic(s)"
        + (f" ({extra_count} for zero-weightage topics)" if extra_count else "")
        + "\n"
    )

    generated = 0
    failed = 0
    topics_processed = 0
    stopped = False
    session_statements: dict = {}

    for topic_idx, topic in enumerate(active_topics, start=1):
        if control.is_stopped:
            stopped = True
            break

        n_questions = topic["questions_to_generate"]
        print(f"\n[{topic_idx}/{len(active_topics)}] Topic {topic.get('name')} ({n_questions} question(s))")

        pyqs = load_pyqs(topic.get("id"), path=pyqs_path)
        existing = load_generated_questions(topic.get("id"), question_type, path=questions_path)
        recent = session_statements.setdefault(topic.get("id"), [])

        for q_idx in range(1, n_questions + 1):
            if not control.wait_if_paused():
                stopped = True
                break

            label = f"question {q_idx}/{n_questions} for {topic.get('name')}"
            print(f"  Generating {label}")

            def attempt():
                questions = generate_questions_for_topic(
                    pool,
                    topic,
                    exam_name,
                    course_name,
                    question_type,
                    pyqs,
                    format_existing_questions(existing),
                    recent,
                    count=1,
                    topic_notes=topic.get("notes") or "",
                )
                question = questions[0]
                verdict = review_question(pool, question) if review else None
                if verdict and verdict["is_wrong"]:
                    raise QuestionValidationError(f"review flagged answer: {verdict['reason']}", question)
                return question, verdict

            outcome, attempts, last_error = run_unit_with_retries(
                label,
                attempt,
                control,
                max_attempts=max_attempts,
                retry_after_error=retry_after_error,
                retry_after_invalid=retry_after_invalid,
            )

            if outcome is None:
                if control.is_stopped:
                    stopped = True
                    break
                failed += 1
                log_failed_unit(
                    {
                        "unit_type": "question",
                        "unit_id": f"{topic.get('id')}#{q_idx}",
                        "topic_id": topic.get("id"),
                        "topic_name": topic.get("name"),
                        "question_type": question_type,
                        "attempts": attempts,
                        "error": last_error,
                    },
                    log_path=failed_log,
                )
                continue

            question, verdict = outcome
            save_generated_question(
                {
                    "topic_id": topic.get("id"),
                    "topic_name": topic.get("name"),
                    "chapter_id": topic.get("chapter_id"),
                    "question_statement": question["question_statement"],
                    "question_type": question_type,
                    "options": question.get("options"),
                    "answer": question.get("answer"),
                    "solution": question.get("solution", ""),
                    "slot": slot or "",
                    "part": part or "",
                    "difficulty_level": DEFAULT_DIFFICULTY_LEVEL,
                    "purpose": DEFAULT_PURPOSE,
                    **(question_config or {}),
                    "review_reason": verdict["reason"] if verdict else "",
                },
                path=questions_path,
            )
            generated += 1
            existing.insert(0, question)
            recent.append(question["question_statement"])
            print(f"  Saved {label} ({generated} this session)")

            if not control.sleep(inter_unit_delay):
                stopped = True
                break

        topics_processed += 1
        if stopped:
            break
        if topic_idx < len(active_topics) and not control.sleep(inter_topic_delay):
            stopped = True
            break

    duration = (datetime.now() - session_start).total_seconds()
    summary = {
        "topics_processed": topics_processed,
        "questions_requested": total_to_generate,
        "questions_generated": generated,
        "questions_failed": failed,
        "stopped": stopped,
        "session_duration_seconds": round(duration, 1),
    }

    _print_summary(
        "GENERATION STOPPED" if stopped else "GENERATION COMPLETE",
        [
            ("Topics", f"{topics_processed} / {len(active_topics)}"),
            ("Requested", total_to_generate),
            ("Generated", generated),
            ("Skipped", failed),
            ("Duration", f"{duration / 60:.1f} min"),
        ],
    )
    return summary


# ---------------------------------------------------------------------------
# PYQ solution backfill
# ---------------------------------------------------------------------------

def generate_pyq_solutions(
    pool: CredentialPool,
    topics: list[dict] | None = None,
    control: GenerationControl | None = None,
    slot: str | None = None,
    part: str | None = None,
    max_attempts: int = MAX_UNIT_ATTEMPTS,
    inter_unit_delay: float = INTER_UNIT_DELAY_SECONDS,
    retry_after_error: float = RETRY_AFTER_ERROR_SECONDS,
    retry_after_invalid: float = RETRY_AFTER_INVALID_SECONDS,
    pyqs_path: Path = PYQS_PATH,
    failed_log: Path = FAILED_UNITS_LOG,
) -> dict:
    """
    Fill in the answer and solution of every PYQ missing either.

    Prints coverage statistics first.  Each PYQ is solved on its own,
    with its topic's notes, and written back as soon as it validates.

    Args:
        pool: Configured credential pool.
        topics: Restrict to PYQs of these topics (their notes and names
            are used in prompts); ``None`` processes every PYQ.
        control: Pause/stop control; a fresh one is used if omitted.
        slot: Optional exam slot written onto updated rows.
        part: Optional exam part written onto updated rows.
        max_attempts: Attempt ceiling per PYQ.
        inter_unit_delay: Wait after each solved PYQ.
        retry_after_error: Wait after an invocation or parse failure.
        retry_after_invalid: Wait after a validation failure.
        pyqs_path: PYQ CSV path.
        failed_log: Failed-unit JSONL path.

    Returns:
        Dict with ``coverage`` (see
        :func:`~src.generation.store.summarize_pyq_coverage`),
        ``pending``, ``solved``, ``failed``, ``stopped`` and
        ``session_duration_seconds``.
    """
    control = control or GenerationControl()
    session_start = datetime.now()

    topic_map = {str(t.get("id")): t for t in topics} if topics is not None else None
    topic_ids = list(topic_map) if topic_map is not None else None

    coverage = summarize_pyq_coverage(topic_ids, path=pyqs_path)
    pending = pyqs_missing_solutions(topic_ids, path=pyqs_path)

    solved = 0
    failed = 0
    stopped = False

    if not pending:
        print(f"All {coverage['total']} PYQs already have complete solutions.")
    else:
        print(f"\nStarting solution generation for {len(pending)} PYQ(s)\n")

    for i, pyq in enumerate(pending, start=1):
        if not control.wait_if_paused():
            stopped = True
            break

        topic = (topic_map or {}).get(str(pyq.get("topic_id")), {})
        enriched = {**pyq, "topic_name": topic.get("name", "")}
        label = f"PYQ {pyq.get('id')}"
        print(f"\n[{i}/{len(pending)}] {label}")

        def attempt():
            solutions = generate_solutions_for_pyqs(
                pool, [enriched], topic_notes=topic.get("notes") or ""
            )
            if not solutions:
                raise QuestionValidationError("Model returned no solutions")
            is_valid, reason = validate_solution(solutions[0])
            if not is_valid:
                raise QuestionValidationError(reason, solutions[0])
            return solutions[0]

        solution, attempts, last_error = run_unit_with_retries(
            label,
            attempt,
            control,
            max_attempts=max_attempts,
            retry_after_error=retry_after_error,
            retry_after_invalid=retry_after_invalid,
        )

        if solution is None:
            if control.is_stopped:
                stopped = True
                break
            failed += 1
            log_failed_unit(
                {
                    "unit_type": "pyq_solution",
                    "unit_id": pyq.get("id"),
                    "topic_id": pyq.get("topic_id"),
                    "attempts": attempts,
                    "error": last_error,
                },
                log_path=failed_log,
            )
            continue

        if update_pyq_solution(
            pyq.get("id"),
            solution["answer"],
            solution["solution"],
            extra_fields={"slot": slot, "part": part},
            path=pyqs_path,
        ):
            solved += 1
            print(f"  Saved solution for {label}")

        if not control.sleep(inter_unit_delay):
            stopped = True
            break

    duration = (datetime.now() - session_start).total_seconds()
    summary = {
        "coverage": coverage,
        "pending": len(pending),
        "solved": solved,
        "failed": failed,
        "stopped": stopped,
        "session_duration_seconds": round(duration, 1),
    }

    _print_summary(
        "PYQ SOLUTIONS STOPPED" if stopped else "PYQ SOLUTIONS COMPLETE",
        [
            ("Pending", len(pending)),
            ("Solved", solved),
            ("Skipped", failed),
            ("Duration", f"{duration / 60:.1f} min"),
        ],
    )
    return summary


# ---------------------------------------------------------------------------
# Page extraction
# ---------------------------------------------------------------------------

def extract_questions_from_pages(
    pool: CredentialPool,
    images: list,
    control: GenerationControl | None = None,
    inter_unit_delay: float = INTER_UNIT_DELAY_SECONDS,
    failed_log: Path = FAILED_UNITS_LOG,
) -> dict:
    """
    Extract questions from a sequence of already-rendered page images.

    Each page's prompt carries the previous page's stored response prefix
    and the memory of every earlier page.  A page whose call exhausts the
    key pool is logged and skipped; a page whose output cannot be parsed
    contributes no questions.

    Args:
        pool: Configured credential pool.
        images: Page images in order (bytes, base64 or data URLs).
        control: Pause/stop control; a fresh one is used if omitted.
        inter_unit_delay: Wait between pages.
        failed_log: Failed-unit JSONL path.

    Returns:
        Dict with ``questions`` (all extracted, in page order),
        ``pages_processed``, ``pages_failed``, ``stopped`` and
        ``page_memory``.
    """
    control = control or GenerationControl()
    page_memory: dict[int, str] = {}
    questions: list[dict] = []
    pages_processed = 0
    pages_failed = 0
    stopped = False
    previous_context = ""

    print(f"\nStarting extraction from {len(images)} page(s)\n")

    for page_number, image in enumerate(images, start=1):
        if not control.wait_if_paused():
            stopped = True
            break

        print(f"[{page_number}/{len(images)}] Page {page_number}")
        try:
            page_questions = extract_questions_from_page(
                pool, image, page_number, previous_context, page_memory
            )
        except InvocationExhaustedError as exc:
            pages_failed += 1
            log_failed_unit(
                {
                    "unit_type": "page",
                    "unit_id": page_number,
                    "attempts": exc.attempts,
                    "error": str(exc),
                },
                log_path=failed_log,
            )
        else:
            questions.extend(page_questions)
            pages_processed += 1

        previous_context = page_memory.get(page_number, "")

        if page_number < len(images) and not control.sleep(inter_unit_delay):
            stopped = True
            break

    _print_summary(
        "EXTRACTION STOPPED" if stopped else "EXTRACTION COMPLETE",
        [
            ("Pages", f"{pages_processed} / {len(images)}"),
            ("Failed", pages_failed),
            ("Questions", len(questions)),
        ],
    )
    return {
        "questions": questions,
        "pages_processed": pages_processed,
        "pages_failed": pages_failed,
        "stopped": stopped,
        "page_memory": page_memory,
    }
