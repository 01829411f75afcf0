"""
Shared pytest fixtures for the invocation layer and generation driver tests.

HTTP is never touched: tests patch ``requests.post`` where
``src/llm_client/executor.py`` looks it up and feed it the mock responses
built here.  CSV stores live under ``tmp_path``.
"""

from __future__ import annotations

import csv
import json
from unittest.mock import MagicMock

import pytest

from src.generation.config import PYQ_COLUMNS, TOPIC_COLUMNS
from src.llm_client.credentials import CredentialPool


# ---------------------------------------------------------------------------
# Mock HTTP responses
# ---------------------------------------------------------------------------

def gemini_body(text: str) -> dict:
    """Success body in the generateContent shape wrapping ``text``."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_response(status_code: int = 200, body=None, raw_text: str | None = None) -> MagicMock:
    """
    Build a stand-in for ``requests.Response``.

    ``body=None`` makes ``.json()`` raise ``ValueError`` like a non-JSON
    payload does.
    """
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("Expecting value")
        response.text = raw_text if raw_text is not None else "<html>Bad Gateway</html>"
    else:
        response.json.return_value = body
        response.text = raw_text if raw_text is not None else json.dumps(body)
    return response


def error_response(status_code: int, message: str) -> MagicMock:
    """Gemini-style error body with ``error.message``."""
    return make_response(status_code, {"error": {"code": status_code, "message": message}})


def ok_response(text: str) -> MagicMock:
    return make_response(200, gemini_body(text))


# ---------------------------------------------------------------------------
# Credential pools
# ---------------------------------------------------------------------------

@pytest.fixture
def pool3():
    """Pool of three keys, in order key-a, key-b, key-c."""
    return CredentialPool(["key-a", "key-b", "key-c"])


@pytest.fixture
def single_pool():
    return CredentialPool(["only-key"])


# ---------------------------------------------------------------------------
# Question records
# ---------------------------------------------------------------------------

def make_question(
    question_type: str = "MCQ",
    statement: str = "Which sorting algorithm is stable?",
    answer: str | None = "A",
    options: list | None = None,
) -> dict:
    """Build a generated-question dict as the model would return it."""
    if options is None and question_type in ("MCQ", "MSQ"):
        options = ["Merge sort", "Heap sort", "Quick sort", "Selection sort"]
    return {
        "question_statement": statement,
        "question_type": question_type,
        "options": options,
        "answer": answer,
        "solution": "Step 1. Merge sort keeps equal keys in order. Therefore A.",
    }


# ---------------------------------------------------------------------------
# CSV stores
# ---------------------------------------------------------------------------

def write_csv(path, columns: list[str], rows: list[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


@pytest.fixture
def topics_csv(tmp_path):
    path = tmp_path / "data" / "topics.csv"
    write_csv(path, TOPIC_COLUMNS, [
        {"id": "t1", "name": "Sorting", "chapter_id": "c1", "weightage": "0.1", "notes": "Use stability arguments."},
        {"id": "t2", "name": "Graphs", "chapter_id": "c1", "weightage": "0.3", "notes": ""},
        {"id": "t3", "name": "History", "chapter_id": "c2", "weightage": "", "notes": ""},
    ])
    return path


@pytest.fixture
def pyqs_csv(tmp_path):
    path = tmp_path / "data" / "pyqs.csv"
    write_csv(path, PYQ_COLUMNS, [
        {
            "id": "p1", "topic_id": "t1", "question_statement": "Is merge sort stable?",
            "question_type": "MCQ", "options": json.dumps(["Yes", "No", "Sometimes", "Never"]),
            "answer": "A", "solution": "Merging preserves order.", "year": "2021", "slot": "S1", "part": "",
        },
        {
            "id": "p2", "topic_id": "t1", "question_statement": "Worst case of quicksort?",
            "question_type": "NAT", "options": "", "answer": "", "solution": "",
            "year": "2023", "slot": "", "part": "",
        },
        {
            "id": "p3", "topic_id": "t2", "question_statement": "Edges in a tree with 5 nodes?",
            "question_type": "NAT", "options": "", "answer": "4", "solution": "",
            "year": "2022", "slot": "", "part": "",
        },
    ])
    return path
