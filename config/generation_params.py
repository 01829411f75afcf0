"""
Generation parameters, pacing delays, and retry ceilings.

This is the AUTHORITATIVE source for all generation constants.
src/generation/config.py and src/llm_client/config.py import from here.

Pacing rationale:
- Every credential in the pool shares one project quota in practice, so
  the delays below throttle the *aggregate* request rate rather than any
  single key.
- The backoff after a transient failure is flat; the next attempt already
  runs on a different key.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Model parameters per task
# ---------------------------------------------------------------------------

TASK_PARAMS: dict[str, dict[str, int | float]] = {
    "extraction": {"temperature": 0.1, "max_output_tokens": 4000},
    "generation": {"temperature": 0.3, "max_output_tokens": 3000},
    "solution":   {"temperature": 0.1, "max_output_tokens": 3000},
    "review":     {"temperature": 0.1, "max_output_tokens": 2000},
}

DEFAULT_TEMPERATURE: float = 0.1
DEFAULT_MAX_OUTPUT_TOKENS: int = 4000

# ---------------------------------------------------------------------------
# Invocation layer
# ---------------------------------------------------------------------------

# A key is taken out of rotation after this many consecutive failures.
MAX_CONSECUTIVE_ERRORS: int = 3

# Attempt budget per logical call = ATTEMPTS_PER_KEY × pool size
ATTEMPTS_PER_KEY: int = 3

# Flat wait after a transient failure (rate limit, 5xx, transport, bad body)
TRANSIENT_BACKOFF_SECONDS: int = 10

# ---------------------------------------------------------------------------
# Driver pacing (seconds)
# ---------------------------------------------------------------------------

INTER_UNIT_DELAY_SECONDS: int = 8         # after each saved unit
INTER_TOPIC_DELAY_SECONDS: int = 5        # between topics
RETRY_AFTER_ERROR_SECONDS: int = 5        # after invocation / parse failure
RETRY_AFTER_INVALID_SECONDS: int = 3      # after a semantic validation failure
PAUSE_POLL_SECONDS: float = 1.0           # stop re-check interval while paused

# Whole generate-and-validate cycles per work unit before it is skipped
MAX_UNIT_ATTEMPTS: int = 5

# ---------------------------------------------------------------------------
# Question model
# ---------------------------------------------------------------------------

QUESTION_TYPES: list[str] = ["MCQ", "MSQ", "NAT", "Subjective"]
OPTION_QUESTION_TYPES: frozenset[str] = frozenset({"MCQ", "MSQ"})
REQUIRED_OPTION_COUNT: int = 4

# ---------------------------------------------------------------------------
# Topic allocation
# ---------------------------------------------------------------------------

# Sessions at or above this size also give each zero-weightage topic one
# extra question.
ZERO_WEIGHTAGE_THRESHOLD: int = 500

# Weightage assumed in prompt text when a topic has none recorded
DEFAULT_TOPIC_WEIGHTAGE: float = 0.02

# ---------------------------------------------------------------------------
# Prompt context limits (characters)
# ---------------------------------------------------------------------------

EXISTING_CONTEXT_CHARS: int = 1500
RECENT_QUESTIONS_KEPT: int = 3
TOPIC_NOTES_CHARS: int = 2000
SOLUTION_NOTES_CHARS: int = 2500
PYQ_SOLUTION_PREVIEW_CHARS: int = 200
PREVIOUS_PAGE_CONTEXT_CHARS: int = 500
PAGE_MEMORY_PREVIEW_CHARS: int = 200
PAGE_MEMORY_STORED_CHARS: int = 1000
