"""
Unit tests for src/generation/generator.py and src/generation/prompts.py.

The model is replaced by patching ``call_model_with_rotation`` where the
generator looks it up; prompts are checked for the context they carry.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from src.generation.generator import (
    extract_questions_from_page,
    generate_questions_for_topic,
    generate_solutions_for_pyqs,
    review_question,
)
from src.generation.prompts import (
    build_extraction_prompt,
    build_generation_prompt,
    build_review_prompt,
    build_solution_prompt,
    format_existing_questions,
)
from src.generation.validation import QuestionValidationError
from src.llm_client.errors import InvocationExhaustedError, UnparsableOutputError

from .conftest import make_question

CALL = "src.generation.generator.call_model_with_rotation"

TOPIC = {"id": "t1", "name": "Sorting", "chapter_id": "c1", "weightage": 0.1}


def _generate(pool, question_type="MCQ", **kwargs):
    return generate_questions_for_topic(
        pool, TOPIC, "GATE", "Data Science", question_type, [], "", [], **kwargs
    )


# ---------------------------------------------------------------------------
# Class: question generation
# ---------------------------------------------------------------------------

class TestGenerateQuestions:

    def test_valid_questions_tagged_with_topic(self, pool3):
        response = json.dumps([make_question()])

        with patch(CALL, return_value=response) as mock_call:
            questions = _generate(pool3)

        assert len(questions) == 1
        assert questions[0]["topic_id"] == "t1"
        assert questions[0]["answer"] == "A"
        kwargs = mock_call.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_output_tokens"] == 3000

    def test_fenced_response_is_parsed(self, pool3):
        response = "```json\n" + json.dumps([make_question("NAT", answer="42")]) + "\n```"

        with patch(CALL, return_value=response):
            questions = _generate(pool3, "NAT")

        assert questions[0]["answer"] == "42"

    def test_empty_array_rejected(self, pool3):
        with patch(CALL, return_value="[]"):
            with pytest.raises(QuestionValidationError, match="no questions"):
                _generate(pool3)

    def test_invalid_question_rejected(self, pool3):
        response = json.dumps([make_question(options=["only", "three", "options"])])

        with patch(CALL, return_value=response):
            with pytest.raises(QuestionValidationError) as exc_info:
                _generate(pool3)

        assert "exactly 4 options" in exc_info.value.reason

    def test_wrong_question_type_rejected(self, pool3):
        response = json.dumps([make_question("NAT", answer="3")])

        with patch(CALL, return_value=response):
            with pytest.raises(QuestionValidationError, match="expected MCQ, got NAT"):
                _generate(pool3, "MCQ")

    def test_unparsable_output_propagates(self, pool3):
        with patch(CALL, return_value="Sorry, I cannot help with that."):
            with pytest.raises(UnparsableOutputError):
                _generate(pool3)

    def test_exhaustion_propagates(self, pool3):
        with patch(CALL, side_effect=InvocationExhaustedError(9, "[rate_limit_exceeded] quota")):
            with pytest.raises(InvocationExhaustedError):
                _generate(pool3)


# ---------------------------------------------------------------------------
# Class: PYQ solutions
# ---------------------------------------------------------------------------

class TestGenerateSolutions:

    def test_solutions_returned_in_order(self, pool3):
        pyqs = [
            {"question_statement": "2 + 2?", "question_type": "NAT", "topic_name": "Arithmetic"},
            {"question_statement": "3 + 3?", "question_type": "NAT"},
        ]
        response = json.dumps([
            {"answer": "4", "solution": "Add."},
            {"answer": "6", "solution": "Add again."},
        ])

        with patch(CALL, return_value=response) as mock_call:
            solutions = generate_solutions_for_pyqs(pool3, pyqs, topic_notes="Count on fingers.")

        assert [s["answer"] for s in solutions] == ["4", "6"]
        prompt = mock_call.call_args.args[1]
        assert "solving Arithmetic questions" in prompt
        assert "Count on fingers." in prompt
        assert mock_call.call_args.kwargs["temperature"] == 0.1

    def test_empty_input_skips_model(self, pool3):
        with patch(CALL) as mock_call:
            assert generate_solutions_for_pyqs(pool3, []) == []

        mock_call.assert_not_called()


# ---------------------------------------------------------------------------
# Class: answer review
# ---------------------------------------------------------------------------

class TestReviewQuestion:

    def test_flagged_answer(self, pool3):
        response = '{"isWrong": true, "reason": "Heap sort is not stable", "correctAnswer": "A"}'

        with patch(CALL, return_value=response) as mock_call:
            verdict = review_question(pool3, make_question())

        assert verdict == {
            "is_wrong": True,
            "reason": "Heap sort is not stable",
            "correct_answer": "A",
        }
        assert mock_call.call_args.kwargs["max_output_tokens"] == 2000

    def test_snake_case_and_string_booleans(self, pool3):
        response = '{"is_wrong": "false", "reason": "ok", "correct_answer": null}'

        with patch(CALL, return_value=response):
            verdict = review_question(pool3, make_question())

        assert verdict["is_wrong"] is False
        assert verdict["correct_answer"] is None

    @pytest.mark.parametrize("failure", [
        InvocationExhaustedError(3, "[server_error] overloaded"),
        UnparsableOutputError("no bracket found", ["direct_extraction: No JSON found in response"]),
    ])
    def test_failed_review_keeps_question(self, pool3, failure):
        with patch(CALL, side_effect=failure):
            verdict = review_question(pool3, make_question())

        assert verdict["is_wrong"] is False
        assert verdict["reason"].startswith("Review failed:")
        assert verdict["correct_answer"] is None

    def test_unparsable_review_text(self, pool3):
        with patch(CALL, return_value="Looks fine to me."):
            verdict = review_question(pool3, make_question())

        assert verdict["is_wrong"] is False


# ---------------------------------------------------------------------------
# Class: page extraction
# ---------------------------------------------------------------------------

class TestExtractQuestionsFromPage:

    def test_questions_tagged_and_memory_stored(self, pool3):
        response = json.dumps([
            {"question_statement": "Define a heap.", "question_type": "Subjective", "options": None},
        ])
        memory: dict = {}

        with patch(CALL, return_value=response) as mock_call:
            questions = extract_questions_from_page(pool3, b"png-bytes", 2, "", memory)

        assert questions[0]["page_number"] == 2
        assert memory == {2: response}
        assert mock_call.call_args.kwargs["image"] == b"png-bytes"
        assert mock_call.call_args.kwargs["max_output_tokens"] == 4000

    def test_memory_stores_prefix_only(self, pool3):
        response = "[" + ", ".join(['{"question_statement": "x"}'] * 60) + "]"
        memory: dict = {}

        with patch(CALL, return_value=response):
            extract_questions_from_page(pool3, "QUJD", 1, page_memory=memory)

        assert memory[1] == response[:1000]

    def test_unparsable_page_yields_nothing_but_is_remembered(self, pool3):
        memory: dict = {}

        with patch(CALL, return_value="This page is blank."):
            assert extract_questions_from_page(pool3, "QUJD", 4, page_memory=memory) == []

        assert memory[4] == "This page is blank."

    def test_non_object_entries_dropped(self, pool3):
        with patch(CALL, return_value='[{"question_statement": "Q"}, "stray"]'):
            questions = extract_questions_from_page(pool3, "QUJD", 1)

        assert questions == [{"question_statement": "Q", "page_number": 1}]


# ---------------------------------------------------------------------------
# Class: prompt builders
# ---------------------------------------------------------------------------

class TestPrompts:

    def test_generation_prompt_sections(self):
        pyqs = [{
            "question_statement": "Is merge sort stable?",
            "options": ["Yes", "No"],
            "answer": "A",
            "year": "2021",
            "slot": "S1",
        }]
        prompt = build_generation_prompt(
            TOPIC, "GATE", "Data Science", "MCQ", pyqs,
            "1. Old question", ["recent one", "recent two"],
            count=2, topic_notes="Use stability arguments.",
        )

        assert 'Generate 2 unique MCQ question(s) for: "Sorting"' in prompt
        assert "Weightage: 10.0%" in prompt
        assert "Use stability arguments." in prompt
        assert "PYQ 1 (2021 - S1)" in prompt
        assert "ALREADY GENERATED QUESTIONS" in prompt
        assert "recent two" in prompt
        assert '"options":["Option A","Option B","Option C","Option D"]' in prompt

    def test_generation_prompt_omits_empty_sections(self):
        prompt = build_generation_prompt(
            {"name": "History"}, "GATE", "DS", "NAT", [], "", [],
        )

        assert "TOPIC NOTES" not in prompt
        assert "PREVIOUS YEAR QUESTIONS" not in prompt
        assert "RECENTLY GENERATED" not in prompt
        assert "Weightage: 2.0%" in prompt
        assert '"options":null' in prompt

    def test_recent_questions_limited_to_last_three(self):
        recent = ["RECENT_Q1", "RECENT_Q2", "RECENT_Q3", "RECENT_Q4"]
        prompt = build_generation_prompt(TOPIC, "E", "C", "MCQ", [], "", recent)

        assert "RECENT_Q1" not in prompt
        assert "RECENT_Q2" in prompt
        assert "RECENT_Q4" in prompt

    def test_existing_context_tail_kept(self):
        context = "HEAD" + "x" * 3000 + "TAIL"
        prompt = build_generation_prompt(TOPIC, "E", "C", "MCQ", [], context, [])

        assert "TAIL" in prompt
        assert "HEAD" not in prompt

    def test_format_existing_questions(self):
        text = format_existing_questions([
            {"question_statement": "Q1", "options": ["a", "b"], "answer": "A"},
            {"question_statement": "Q2", "options": None, "answer": ""},
        ])

        assert text == "1. Q1\nOptions: a, b\nAnswer: A\n\n2. Q2"

    def test_solution_prompt_letters_options(self):
        prompt = build_solution_prompt([
            {"question_statement": "Pick one", "question_type": "MCQ", "options": ["x", "y"]},
        ])

        assert "  A. x\n  B. y" in prompt
        assert "solving academic questions" in prompt

    def test_review_prompt(self):
        prompt = build_review_prompt(make_question())

        assert "Statement: Which sorting algorithm is stable?" in prompt
        assert "Provided Answer: A" in prompt
        assert '{"isWrong": true' in prompt

    def test_extraction_prompt_context(self):
        prompt = build_extraction_prompt("p" * 600 + "END", {1: "first page text", 2: "y" * 500})

        assert "Previous page context: " in prompt
        assert "END" in prompt
        assert "Page 1: first page text" in prompt
        assert "Page 2: " + "y" * 200 + "\n" in prompt

    def test_extraction_prompt_without_context(self):
        prompt = build_extraction_prompt()

        assert "Previous page context" not in prompt
        assert "Page memory" not in prompt
