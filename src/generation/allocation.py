"""
Distribution of a session's question target across topics by weightage.
"""

from __future__ import annotations

import math

from .config import ZERO_WEIGHTAGE_THRESHOLD


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up."""
    return math.floor(value + 0.5)


def topic_weightage(topic: dict) -> float:
    """Return the topic's weightage, treating missing or blank values as 0."""
    value = topic.get("weightage")
    if value is None or value == "":
        return 0.0
    weightage = float(value)
    # NaN from an empty pandas cell
    if math.isnan(weightage):
        return 0.0
    return weightage


def allocate_questions(
    topics: list[dict],
    total_questions: int,
    zero_weightage_threshold: int = ZERO_WEIGHTAGE_THRESHOLD,
) -> tuple[list[dict], int, int]:
    """
    Assign a number of questions to generate to every topic.

    Topics with positive weightage ``w`` receive
    ``max(1, round_half_up(w / Σw × total_questions))`` where ``Σw`` sums
    the positive weightages only.  Topics with zero weightage receive one
    question when ``total_questions >= zero_weightage_threshold`` and none
    otherwise.

    The per-topic counts are rounded independently, so their sum can
    differ from ``total_questions``.

    Args:
        topics: Topic dicts with an optional ``weightage`` field.
        total_questions: Requested session size.
        zero_weightage_threshold: Session size from which zero-weightage
            topics are included.

    Returns:
        Tuple of ``(topics_with_counts, total_to_generate, extra_count)``:
        copies of the topics with a ``questions_to_generate`` field, the
        requested total plus the zero-weightage extras, and the number of
        extras.

    Raises:
        ValueError: If ``total_questions`` is negative.
    """
    if total_questions < 0:
        raise ValueError(f"total_questions must be non-negative, got {total_questions}")

    weights = [topic_weightage(topic) for topic in topics]
    total_weightage = sum(w for w in weights if w > 0)

    include_zero_weightage = total_questions >= zero_weightage_threshold
    zero_weightage_count = sum(1 for w in weights if w <= 0)
    extra_count = zero_weightage_count if include_zero_weightage else 0

    allocated: list[dict] = []
    for topic, weightage in zip(topics, weights):
        if weightage <= 0:
            count = 1 if include_zero_weightage else 0
        else:
            count = max(1, round_half_up(weightage / total_weightage * total_questions))
        allocated.append({**topic, "questions_to_generate": count})

    return allocated, total_questions + extra_count, extra_count
