"""
Unit tests for src/generation/store.py.

All files live under ``tmp_path``; see the ``topics_csv`` and ``pyqs_csv``
fixtures in conftest.py for the seeded rows.
"""

from __future__ import annotations

import json

import pandas as pd
import pytest

from src.generation.config import GENERATED_QUESTION_COLUMNS
from src.generation.store import (
    clear_failed_units_log,
    decode_options,
    encode_options,
    load_failed_units,
    load_generated_questions,
    load_pyqs,
    load_topics,
    log_failed_unit,
    pyqs_missing_solutions,
    save_generated_question,
    summarize_pyq_coverage,
    update_pyq_solution,
)


# ---------------------------------------------------------------------------
# Class: options cells
# ---------------------------------------------------------------------------

class TestOptionsCells:

    def test_encode_list(self):
        assert encode_options(["1", "n log n"]) == '["1", "n log n"]'

    @pytest.mark.parametrize("options", [None, []])
    def test_encode_empty(self, options):
        assert encode_options(options) == ""

    def test_decode_json(self):
        assert decode_options('["a", "b"]') == ["a", "b"]

    def test_decode_pipe_separated(self):
        assert decode_options("a | b | c") == ["a", "b", "c"]

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_decode_blank(self, value):
        assert decode_options(value) is None

    def test_decode_passes_lists_through(self):
        assert decode_options(["x"]) == ["x"]


# ---------------------------------------------------------------------------
# Class: topics
# ---------------------------------------------------------------------------

class TestLoadTopics:

    def test_sorted_by_weightage_descending(self, topics_csv):
        topics = load_topics(topics_csv)

        assert [t["id"] for t in topics] == ["t2", "t1", "t3"]

    def test_blank_weightage_becomes_zero(self, topics_csv):
        by_id = {t["id"]: t for t in load_topics(topics_csv)}

        assert by_id["t3"]["weightage"] == 0.0
        assert by_id["t2"]["weightage"] == pytest.approx(0.3)

    def test_notes_kept_as_strings(self, topics_csv):
        by_id = {t["id"]: t for t in load_topics(topics_csv)}

        assert by_id["t1"]["notes"] == "Use stability arguments."
        assert by_id["t2"]["notes"] == ""

    def test_missing_file(self, tmp_path):
        assert load_topics(tmp_path / "nope.csv") == []


# ---------------------------------------------------------------------------
# Class: PYQs
# ---------------------------------------------------------------------------

class TestPyqs:

    def test_load_all_most_recent_first(self, pyqs_csv):
        assert [p["id"] for p in load_pyqs(path=pyqs_csv)] == ["p2", "p3", "p1"]

    def test_load_for_topic(self, pyqs_csv):
        pyqs = load_pyqs("t1", path=pyqs_csv)

        assert [p["id"] for p in pyqs] == ["p2", "p1"]
        assert pyqs[1]["options"] == ["Yes", "No", "Sometimes", "Never"]
        assert pyqs[0]["options"] is None

    def test_missing_solutions(self, pyqs_csv):
        assert [p["id"] for p in pyqs_missing_solutions(path=pyqs_csv)] == ["p2", "p3"]

    def test_missing_solutions_for_topics(self, pyqs_csv):
        assert [p["id"] for p in pyqs_missing_solutions(["t2"], path=pyqs_csv)] == ["p3"]

    def test_coverage(self, pyqs_csv):
        coverage = summarize_pyq_coverage(path=pyqs_csv)

        assert coverage == {
            "total": 3,
            "with_answer": 2,
            "with_solution": 1,
            "with_both": 1,
            "missing": 2,
            "answer_pct": 66.7,
            "solution_pct": 33.3,
            "both_pct": 33.3,
        }

    def test_coverage_without_pyqs(self, tmp_path):
        coverage = summarize_pyq_coverage(path=tmp_path / "pyqs.csv")

        assert coverage["total"] == 0
        assert coverage["both_pct"] == 0.0

    def test_update_solution(self, pyqs_csv):
        updated = update_pyq_solution(
            "p2", "O(n^2)", "Sorted input with a bad pivot.",
            extra_fields={"slot": "S2", "part": ""},
            path=pyqs_csv,
        )

        assert updated is True
        row = next(p for p in load_pyqs(path=pyqs_csv) if p["id"] == "p2")
        assert row["answer"] == "O(n^2)"
        assert row["solution"] == "Sorted input with a bad pivot."
        assert row["slot"] == "S2"
        assert row["part"] == ""
        assert pyqs_missing_solutions(path=pyqs_csv)[0]["id"] == "p3"

    def test_update_keeps_other_rows(self, pyqs_csv):
        update_pyq_solution("p3", "4", "n - 1 edges.", path=pyqs_csv)

        p1 = next(p for p in load_pyqs(path=pyqs_csv) if p["id"] == "p1")
        assert p1["options"] == ["Yes", "No", "Sometimes", "Never"]
        assert p1["year"] == "2021"

    def test_update_unknown_id(self, pyqs_csv):
        assert update_pyq_solution("p99", "A", "x", path=pyqs_csv) is False


# ---------------------------------------------------------------------------
# Class: generated questions
# ---------------------------------------------------------------------------

class TestGeneratedQuestions:

    def _record(self, statement, question_type="MCQ", topic_id="t1"):
        return {
            "topic_id": topic_id,
            "topic_name": "Sorting",
            "question_statement": statement,
            "question_type": question_type,
            "options": ["a", "b", "c", "d"] if question_type == "MCQ" else None,
            "answer": "A",
            "solution": "Because.",
        }

    def test_first_save_writes_header(self, tmp_path):
        path = tmp_path / "data" / "new_questions.csv"

        row = save_generated_question(self._record("Q1"), path=path)

        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        assert list(df.columns) == GENERATED_QUESTION_COLUMNS
        assert len(df) == 1
        assert len(row["question_id"]) == 32
        assert row["created_at"]
        assert json.loads(df.loc[0, "options"]) == ["a", "b", "c", "d"]

    def test_appends_without_repeating_header(self, tmp_path):
        path = tmp_path / "new_questions.csv"
        save_generated_question(self._record("Q1"), path=path)
        save_generated_question(self._record("Q2"), path=path)

        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        assert list(df["question_statement"]) == ["Q1", "Q2"]

    def test_existing_id_kept(self, tmp_path):
        path = tmp_path / "new_questions.csv"

        row = save_generated_question({**self._record("Q1"), "question_id": "fixed"}, path=path)

        assert row["question_id"] == "fixed"

    def test_load_newest_first_with_filters(self, tmp_path):
        path = tmp_path / "new_questions.csv"
        save_generated_question(self._record("Q1"), path=path)
        save_generated_question(self._record("Q2", question_type="NAT"), path=path)
        save_generated_question(self._record("Q3"), path=path)
        save_generated_question(self._record("Q4", topic_id="t2"), path=path)

        assert [q["question_statement"] for q in load_generated_questions(path=path)] == [
            "Q4", "Q3", "Q2", "Q1",
        ]

        mcq_t1 = load_generated_questions("t1", "MCQ", path=path)
        assert [q["question_statement"] for q in mcq_t1] == ["Q3", "Q1"]
        assert mcq_t1[0]["options"] == ["a", "b", "c", "d"]

    def test_load_missing_file(self, tmp_path):
        assert load_generated_questions(path=tmp_path / "none.csv") == []


# ---------------------------------------------------------------------------
# Class: failed-unit queue
# ---------------------------------------------------------------------------

class TestFailedUnits:

    def test_log_and_load(self, tmp_path):
        log_path = tmp_path / "logs" / "failed_units.jsonl"

        log_failed_unit({"unit_type": "question", "unit_id": "t1#2", "attempts": 5}, log_path)
        log_failed_unit({"unit_type": "page", "unit_id": 3, "attempts": 6}, log_path)

        records = load_failed_units(log_path)
        assert [r["unit_id"] for r in records] == ["t1#2", 3]
        assert all("timestamp" in r for r in records)

    def test_load_missing_log(self, tmp_path):
        assert load_failed_units(tmp_path / "missing.jsonl") == []

    def test_clear(self, tmp_path):
        log_path = tmp_path / "failed_units.jsonl"
        log_failed_unit({"unit_type": "question", "unit_id": "x"}, log_path)

        clear_failed_units_log(log_path)

        assert not log_path.exists()
        clear_failed_units_log(log_path)
