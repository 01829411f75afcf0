"""
src/generation - Question generation driver built on src.llm_client.

Module layout
-------------
config.py      - data paths, CSV schemas, pacing constants
prompts.py     - prompt templates and builders
validation.py  - semantic checks on parsed questions and solutions
allocation.py  - weightage-based question allocation across topics
control.py     - cooperative pause / resume / stop signalling
store.py       - CSV storage and the failed-unit JSONL queue
generator.py   - single work units: prompt, invoke, parse, validate
batch.py       - session loops with bounded per-unit retries
runner.py      - end-to-end session entry point

Public interface
----------------
Run a session:
    run_generation_session("new_questions", exam_name=..., course_name=...)
    run_generation_session("pyq_solutions")

Drive the loops directly:
    generate_new_questions(pool, topics, exam_name, course_name, question_type, total)
    generate_pyq_solutions(pool, topics=topics)
    extract_questions_from_pages(pool, images)

Manage the failed-unit queue:
    load_failed_units()
    clear_failed_units_log()
"""

from .allocation import allocate_questions
from .batch import (
    extract_questions_from_pages,
    generate_new_questions,
    generate_pyq_solutions,
)
from .control import GenerationControl
from .runner import run_generation_session
from .store import clear_failed_units_log, load_failed_units
from .validation import QuestionValidationError, validate_question, validate_solution

__all__ = [
    # Sessions
    "run_generation_session",
    "generate_new_questions",
    "generate_pyq_solutions",
    "extract_questions_from_pages",
    "GenerationControl",
    # Building blocks
    "allocate_questions",
    "validate_question",
    "validate_solution",
    "QuestionValidationError",
    # Failed-unit queue
    "load_failed_units",
    "clear_failed_units_log",
]
