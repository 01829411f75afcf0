"""
Generation session runner: keys from the environment, topics from CSV,
then one batch loop.

Usage (from project root):
    GEMINI_API_KEYS="key1,key2" python -m src.generation.runner new_questions \
        --exam "GATE" --course "Data Science" --type MCQ --total 50
    GEMINI_API_KEYS="key1,key2" python -m src.generation.runner pyq_solutions

Or programmatically:
    from src.generation.runner import run_generation_session
    summary = run_generation_session("new_questions", exam_name="GATE", ...)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from src.llm_client import (
    ConfigurationError,
    CredentialPool,
    load_credentials_from_env,
    print_pool_stats,
)

from .batch import generate_new_questions, generate_pyq_solutions
from .config import (
    MODE_NEW_QUESTIONS,
    QUESTION_TYPES,
    SESSION_MODES,
    TOPICS_PATH,
)
from .control import GenerationControl
from .store import load_topics


def run_generation_session(
    mode: str,
    exam_name: str = "",
    course_name: str = "",
    question_type: str = "MCQ",
    total_questions: int = 10,
    review: bool = False,
    api_keys: list[str] | None = None,
    control: GenerationControl | None = None,
    topics_path: Path = TOPICS_PATH,
    **batch_kwargs,
) -> dict:
    """
    Run one generation session end to end.

    Args:
        mode: ``'new_questions'`` or ``'pyq_solutions'``.
        exam_name: Exam label for generation prompts.
        course_name: Course label for generation prompts.
        question_type: Question type to generate.
        total_questions: Requested session size (new questions only).
        review: Ask the model to double-check each generated answer.
        api_keys: Keys to use; read from ``GEMINI_API_KEYS`` if omitted.
        control: Pause/stop control shared with the operator.
        topics_path: Topic CSV path.
        **batch_kwargs: Passed through to the batch loop (paths, delays).

    Returns:
        The batch loop's summary dict, or an empty dict if there are no
        topics to work on.

    Raises:
        ValueError: Unknown ``mode`` or ``question_type``.
        ConfigurationError: No usable API key.
    """
    if mode not in SESSION_MODES:
        raise ValueError(f"Unknown mode {mode!r}; expected one of {SESSION_MODES}")
    if question_type not in QUESTION_TYPES:
        raise ValueError(f"Unknown question type {question_type!r}; expected one of {QUESTION_TYPES}")

    keys = api_keys if api_keys is not None else load_credentials_from_env()
    pool = CredentialPool(keys)

    topics = load_topics(topics_path)
    if not topics:
        print(f"ERROR: no topics to work on; add rows to {topics_path}")
        return {}
    print(f"Loaded {len(topics)} topic(s) from {topics_path.name}")

    if mode == MODE_NEW_QUESTIONS:
        summary = generate_new_questions(
            pool,
            topics,
            exam_name,
            course_name,
            question_type,
            total_questions,
            control=control,
            review=review,
            **batch_kwargs,
        )
    else:
        summary = generate_pyq_solutions(pool, topics=topics, control=control, **batch_kwargs)

    print_pool_stats(pool)
    return summary


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run a question generation session.")
    parser.add_argument("mode", choices=SESSION_MODES)
    parser.add_argument("--exam", default="", help="exam name used in prompts")
    parser.add_argument("--course", default="", help="course name used in prompts")
    parser.add_argument("--type", dest="question_type", default="MCQ", choices=QUESTION_TYPES)
    parser.add_argument("--total", type=int, default=10, help="questions to generate")
    parser.add_argument("--review", action="store_true", help="double-check each answer")
    args = parser.parse_args(argv)

    try:
        run_generation_session(
            args.mode,
            exam_name=args.exam,
            course_name=args.course,
            question_type=args.question_type,
            total_questions=args.total,
            review=args.review,
        )
    except ConfigurationError as exc:
        print(f"ERROR: {exc}. Set GEMINI_API_KEYS to a comma-separated key list.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
