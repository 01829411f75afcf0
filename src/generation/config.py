"""
Data paths, storage schemas, and driver pacing constants.

Pacing and retry values are re-exported from ``config.generation_params``
(the authoritative source); only path and column constants live here.
"""

from pathlib import Path

from config.generation_params import (
    DEFAULT_TOPIC_WEIGHTAGE,
    EXISTING_CONTEXT_CHARS,
    INTER_TOPIC_DELAY_SECONDS,
    INTER_UNIT_DELAY_SECONDS,
    MAX_UNIT_ATTEMPTS,
    OPTION_QUESTION_TYPES,
    PAGE_MEMORY_PREVIEW_CHARS,
    PAGE_MEMORY_STORED_CHARS,
    PAUSE_POLL_SECONDS,
    PREVIOUS_PAGE_CONTEXT_CHARS,
    PYQ_SOLUTION_PREVIEW_CHARS,
    QUESTION_TYPES,
    RECENT_QUESTIONS_KEPT,
    REQUIRED_OPTION_COUNT,
    RETRY_AFTER_ERROR_SECONDS,
    RETRY_AFTER_INVALID_SECONDS,
    SOLUTION_NOTES_CHARS,
    TASK_PARAMS,
    TOPIC_NOTES_CHARS,
    ZERO_WEIGHTAGE_THRESHOLD,
)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Resolve from this file: src/generation/config.py → src/generation → src → root
PROJECT_ROOT = Path(__file__).resolve().parents[2]

DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"

TOPICS_PATH = DATA_DIR / "topics.csv"
PYQS_PATH = DATA_DIR / "pyqs.csv"
GENERATED_QUESTIONS_PATH = DATA_DIR / "new_questions.csv"
FAILED_UNITS_LOG = LOGS_DIR / "failed_units.jsonl"

# ---------------------------------------------------------------------------
# Storage schemas
# ---------------------------------------------------------------------------

# topics.csv: one row per syllabus topic
TOPIC_COLUMNS: list[str] = ["id", "name", "chapter_id", "weightage", "notes"]

# pyqs.csv: previous-year questions; options stored as a JSON list
PYQ_COLUMNS: list[str] = [
    "id",
    "topic_id",
    "question_statement",
    "question_type",
    "options",
    "answer",
    "solution",
    "year",
    "slot",
    "part",
]

# new_questions.csv: generated questions, appended one row at a time.
# Marking-scheme fields are passed through from the caller untouched.
GENERATED_QUESTION_COLUMNS: list[str] = [
    "question_id",
    "topic_id",
    "topic_name",
    "chapter_id",
    "question_statement",
    "question_type",
    "options",
    "answer",
    "solution",
    "slot",
    "part",
    "correct_marks",
    "incorrect_marks",
    "skipped_marks",
    "partial_marks",
    "time_minutes",
    "difficulty_level",
    "purpose",
    "review_reason",
    "created_at",
]

DEFAULT_DIFFICULTY_LEVEL = "Medium"
DEFAULT_PURPOSE = "practice"

# ---------------------------------------------------------------------------
# Session modes (runner.py)
# ---------------------------------------------------------------------------

MODE_NEW_QUESTIONS = "new_questions"
MODE_PYQ_SOLUTIONS = "pyq_solutions"
SESSION_MODES: list[str] = [MODE_NEW_QUESTIONS, MODE_PYQ_SOLUTIONS]

__all__ = [
    "DATA_DIR",
    "DEFAULT_DIFFICULTY_LEVEL",
    "DEFAULT_PURPOSE",
    "DEFAULT_TOPIC_WEIGHTAGE",
    "EXISTING_CONTEXT_CHARS",
    "FAILED_UNITS_LOG",
    "GENERATED_QUESTIONS_PATH",
    "GENERATED_QUESTION_COLUMNS",
    "INTER_TOPIC_DELAY_SECONDS",
    "INTER_UNIT_DELAY_SECONDS",
    "LOGS_DIR",
    "MAX_UNIT_ATTEMPTS",
    "MODE_NEW_QUESTIONS",
    "MODE_PYQ_SOLUTIONS",
    "OPTION_QUESTION_TYPES",
    "PAGE_MEMORY_PREVIEW_CHARS",
    "PAGE_MEMORY_STORED_CHARS",
    "PAUSE_POLL_SECONDS",
    "PREVIOUS_PAGE_CONTEXT_CHARS",
    "PROJECT_ROOT",
    "PYQ_COLUMNS",
    "PYQ_SOLUTION_PREVIEW_CHARS",
    "PYQS_PATH",
    "QUESTION_TYPES",
    "RECENT_QUESTIONS_KEPT",
    "REQUIRED_OPTION_COUNT",
    "RETRY_AFTER_ERROR_SECONDS",
    "RETRY_AFTER_INVALID_SECONDS",
    "SESSION_MODES",
    "SOLUTION_NOTES_CHARS",
    "TASK_PARAMS",
    "TOPIC_COLUMNS",
    "TOPIC_NOTES_CHARS",
    "TOPICS_PATH",
    "ZERO_WEIGHTAGE_THRESHOLD",
]
