"""
Unit tests for src/generation/allocation.py.
"""

from __future__ import annotations

import pytest

from src.generation.allocation import allocate_questions, round_half_up, topic_weightage


def _counts(allocated):
    return [t["questions_to_generate"] for t in allocated]


class TestRoundHalfUp:

    @pytest.mark.parametrize("value, expected", [
        (0.5, 1),
        (1.5, 2),
        (2.5, 3),
        (2.49, 2),
        (0.0, 0),
    ])
    def test_half_rounds_up(self, value, expected):
        assert round_half_up(value) == expected


class TestTopicWeightage:

    @pytest.mark.parametrize("value, expected", [
        (0.25, 0.25),
        ("0.4", 0.4),
        ("", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
    ])
    def test_values(self, value, expected):
        assert topic_weightage({"weightage": value}) == expected

    def test_missing_key(self):
        assert topic_weightage({}) == 0.0


class TestAllocateQuestions:

    def test_two_topics_below_threshold(self):
        """Weightages 0.75 and 0.25, total 10, zero-weight topic excluded."""
        topics = [
            {"id": "a", "weightage": 0.75},
            {"id": "b", "weightage": 0.25},
            {"id": "z", "weightage": 0},
        ]

        allocated, total, extra = allocate_questions(topics, 10)

        assert _counts(allocated) == [8, 3, 0]
        assert (total, extra) == (10, 0)

    def test_half_counts_round_up(self):
        topics = [{"id": "a", "weightage": 0.5}, {"id": "b", "weightage": 0.5}]

        allocated, _, _ = allocate_questions(topics, 5)

        assert _counts(allocated) == [3, 3]

    def test_every_positive_topic_gets_at_least_one(self):
        topics = [{"id": "big", "weightage": 0.99}, {"id": "tiny", "weightage": 0.001}]

        allocated, _, _ = allocate_questions(topics, 10)

        assert _counts(allocated) == [10, 1]

    def test_zero_weightage_topics_included_at_threshold(self):
        topics = [
            {"id": "a", "weightage": 1.0},
            {"id": "z1", "weightage": ""},
            {"id": "z2", "weightage": None},
        ]

        allocated, total, extra = allocate_questions(topics, 500)

        assert _counts(allocated) == [500, 1, 1]
        assert (total, extra) == (502, 2)

    def test_custom_threshold(self):
        topics = [{"id": "a", "weightage": 1.0}, {"id": "z", "weightage": 0}]

        allocated, total, extra = allocate_questions(topics, 20, zero_weightage_threshold=20)

        assert _counts(allocated) == [20, 1]
        assert (total, extra) == (21, 1)

    def test_negative_weightage_treated_as_zero(self):
        topics = [{"id": "a", "weightage": 0.5}, {"id": "neg", "weightage": -0.2}]

        allocated, _, _ = allocate_questions(topics, 10)

        assert _counts(allocated) == [10, 0]

    def test_input_topics_not_mutated(self):
        topics = [{"id": "a", "weightage": 1.0, "name": "Sorting"}]

        allocated, _, _ = allocate_questions(topics, 3)

        assert "questions_to_generate" not in topics[0]
        assert allocated[0]["name"] == "Sorting"

    def test_all_zero_weightage_below_threshold(self):
        allocated, total, extra = allocate_questions([{"id": "z", "weightage": 0}], 10)

        assert _counts(allocated) == [0]
        assert (total, extra) == (10, 0)

    def test_zero_total(self):
        allocated, total, _ = allocate_questions([{"id": "a", "weightage": 0.5}], 0)

        assert _counts(allocated) == [1]
        assert total == 0

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError):
            allocate_questions([{"id": "a", "weightage": 0.5}], -1)
