"""
CSV-backed storage for topics, previous-year questions (PYQs), and
generated questions, plus the JSONL queue of skipped work units.

Tables are read with pandas and every cell is kept as a string, so ids
such as ``"007"`` round-trip unchanged.  Generated questions are appended
one row at a time as soon as they validate, so an interrupted session
loses at most the unit in flight.  ``options`` cells hold a JSON list.
"""

from __future__ import annotations

import csv
import json
import uuid
from datetime import datetime
from pathlib import Path

import pandas as pd

from .config import (
    FAILED_UNITS_LOG,
    GENERATED_QUESTION_COLUMNS,
    GENERATED_QUESTIONS_PATH,
    PYQ_COLUMNS,
    PYQS_PATH,
    TOPIC_COLUMNS,
    TOPICS_PATH,
)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def encode_options(options) -> str:
    """Serialize an options list for a CSV cell (empty string for none)."""
    if not options:
        return ""
    return json.dumps(list(options), ensure_ascii=False)


def decode_options(value) -> list | None:
    """
    Parse an ``options`` cell back into a list.

    JSON lists are expected; hand-edited cells using ``|`` as a separator
    are accepted too.
    """
    if isinstance(value, list):
        return value
    if value is None or not str(value).strip():
        return None

    text = str(value).strip()
    try:
        options = json.loads(text)
    except ValueError:
        return [part.strip() for part in text.split("|")]
    return options if isinstance(options, list) else [str(options)]


def _read_table(path: Path, columns: list[str]) -> pd.DataFrame:
    if not path.exists() or path.stat().st_size == 0:
        return pd.DataFrame(columns=columns, dtype=str)

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    for column in columns:
        if column not in df.columns:
            df[column] = ""
    return df


def _filter_topics(df: pd.DataFrame, topic_ids) -> pd.DataFrame:
    if topic_ids is None:
        return df
    return df[df["topic_id"].isin([str(t) for t in topic_ids])]


def _question_records(df: pd.DataFrame) -> list[dict]:
    records = df.to_dict("records")
    for record in records:
        record["options"] = decode_options(record.get("options"))
    return records


def _is_filled(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip() != ""


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------

def load_topics(path: Path = TOPICS_PATH) -> list[dict]:
    """
    Load the topic list, highest weightage first.

    Args:
        path: Path to ``topics.csv``.

    Returns:
        List of topic dicts with ``weightage`` as a float (blank → 0.0).
        Empty list if the file does not exist.
    """
    df = _read_table(path, TOPIC_COLUMNS)
    if df.empty:
        print(f"No topics found at {path}")
        return []

    df["weightage"] = pd.to_numeric(df["weightage"], errors="coerce").fillna(0.0)
    df = df.sort_values("weightage", ascending=False, kind="stable")
    return df.to_dict("records")


# ---------------------------------------------------------------------------
# Previous-year questions
# ---------------------------------------------------------------------------

def load_pyqs(topic_id=None, path: Path = PYQS_PATH) -> list[dict]:
    """
    Load PYQs, most recent year first.

    Args:
        topic_id: Restrict to one topic; ``None`` loads every PYQ.
        path: Path to ``pyqs.csv``.

    Returns:
        List of PYQ dicts with ``options`` decoded to a list or ``None``.
    """
    df = _read_table(path, PYQ_COLUMNS)
    if topic_id is not None:
        df = _filter_topics(df, [topic_id])

    df = (
        df.assign(_year=pd.to_numeric(df["year"], errors="coerce"))
        .sort_values("_year", ascending=False, kind="stable", na_position="last")
        .drop(columns="_year")
    )
    return _question_records(df)


def pyqs_missing_solutions(topic_ids=None, path: Path = PYQS_PATH) -> list[dict]:
    """Return PYQs whose answer or solution is blank."""
    df = _filter_topics(_read_table(path, PYQ_COLUMNS), topic_ids)
    missing = ~(_is_filled(df["answer"]) & _is_filled(df["solution"]))
    return _question_records(df[missing])


def summarize_pyq_coverage(topic_ids=None, path: Path = PYQS_PATH) -> dict:
    """
    Count how many PYQs already carry an answer, a solution, or both.

    Args:
        topic_ids: Restrict to these topics; ``None`` counts every PYQ.
        path: Path to ``pyqs.csv``.

    Returns:
        Dict with ``total``, ``with_answer``, ``with_solution``,
        ``with_both``, ``missing`` and the matching ``*_pct`` values
        (0.0 when there are no PYQs).
    """
    df = _filter_topics(_read_table(path, PYQ_COLUMNS), topic_ids)
    has_answer = _is_filled(df["answer"])
    has_solution = _is_filled(df["solution"])

    total = len(df)
    with_answer = int(has_answer.sum())
    with_solution = int(has_solution.sum())
    with_both = int((has_answer & has_solution).sum())

    def pct(n: int) -> float:
        return round(n / total * 100, 1) if total else 0.0

    coverage = {
        "total": total,
        "with_answer": with_answer,
        "with_solution": with_solution,
        "with_both": with_both,
        "missing": total - with_both,
        "answer_pct": pct(with_answer),
        "solution_pct": pct(with_solution),
        "both_pct": pct(with_both),
    }

    print("PYQ coverage:")
    print(f"  Total PYQs:      {total:,}")
    print(f"  With answer:     {with_answer:,} ({coverage['answer_pct']}%)")
    print(f"  With solution:   {with_solution:,} ({coverage['solution_pct']}%)")
    print(f"  Complete (both): {with_both:,} ({coverage['both_pct']}%)")

    return coverage


def update_pyq_solution(
    pyq_id,
    answer: str,
    solution: str,
    extra_fields: dict | None = None,
    path: Path = PYQS_PATH,
) -> bool:
    """
    Write a generated answer and solution back to one PYQ row.

    Args:
        pyq_id: Value of the row's ``id`` column.
        answer: Answer text.
        solution: Solution text.
        extra_fields: Additional non-blank columns to set (e.g. ``slot``).
        path: Path to ``pyqs.csv``.

    Returns:
        ``True`` if the row was found and updated, ``False`` otherwise.
    """
    df = _read_table(path, PYQ_COLUMNS)
    mask = df["id"] == str(pyq_id)
    if not mask.any():
        print(f"  PYQ {pyq_id} not found in {path}")
        return False

    df.loc[mask, "answer"] = str(answer)
    df.loc[mask, "solution"] = str(solution)
    for column, value in (extra_fields or {}).items():
        if value is not None and str(value).strip():
            df.loc[mask, column] = str(value)

    df.to_csv(path, index=False)
    return True


# ---------------------------------------------------------------------------
# Generated questions
# ---------------------------------------------------------------------------

def load_generated_questions(
    topic_id=None,
    question_type: str | None = None,
    path: Path = GENERATED_QUESTIONS_PATH,
) -> list[dict]:
    """
    Load previously generated questions, newest first.

    Rows are appended chronologically, so file order reversed is newest
    first.

    Args:
        topic_id: Restrict to one topic.
        question_type: Restrict to one question type.
        path: Path to ``new_questions.csv``.

    Returns:
        List of question dicts with ``options`` decoded.
    """
    df = _read_table(path, GENERATED_QUESTION_COLUMNS)
    if topic_id is not None:
        df = _filter_topics(df, [topic_id])
    if question_type is not None:
        df = df[df["question_type"] == question_type]
    return _question_records(df.iloc[::-1])


def save_generated_question(
    record: dict,
    path: Path = GENERATED_QUESTIONS_PATH,
) -> dict:
    """
    Append one generated question to the CSV store immediately.

    Creates the file with a header row on first write.  A ``question_id``
    and ``created_at`` are assigned when the record has none.

    Args:
        record: Question fields; keys outside the schema are ignored.
        path: Path to ``new_questions.csv``.

    Returns:
        The row as written (``options`` JSON-encoded).
    """
    row = dict(record)
    if not row.get("question_id"):
        row["question_id"] = uuid.uuid4().hex
    if not row.get("created_at"):
        row["created_at"] = datetime.now().isoformat(timespec="seconds")
    row["options"] = encode_options(row.get("options"))

    path.parent.mkdir(parents=True, exist_ok=True)
    file_exists = path.exists() and path.stat().st_size > 0

    with path.open("a", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(
            fh,
            fieldnames=GENERATED_QUESTION_COLUMNS,
            extrasaction="ignore",
        )
        if not file_exists:
            writer.writeheader()
        writer.writerow(row)

    return row


# ---------------------------------------------------------------------------
# Failed-unit queue
# ---------------------------------------------------------------------------

def log_failed_unit(record: dict, log_path: Path = FAILED_UNITS_LOG) -> None:
    """
    Append a skipped work unit to the JSONL log.

    Records accumulate across sessions so skipped units can be retried
    later.

    Args:
        record: Dict describing the unit, typically ``unit_type``,
                ``unit_id``, ``topic_id``, ``attempts`` and ``error``.
        log_path: Path to the JSONL log file.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    entry = {"timestamp": datetime.now().isoformat(timespec="seconds"), **record}
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")

    print(f"  Logged failed unit: {entry.get('unit_type')} / {entry.get('unit_id')}")


def load_failed_units(log_path: Path = FAILED_UNITS_LOG) -> list[dict]:
    """
    Load skipped work units from the JSONL log.

    Returns:
        List of record dicts (empty list if the file is not found).
    """
    if not log_path.exists():
        print(f"No failed units log found at {log_path}")
        return []

    records: list[dict] = []
    with log_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                records.append(json.loads(line))

    print(f"Loaded {len(records)} failed units.")
    return records


def clear_failed_units_log(log_path: Path = FAILED_UNITS_LOG) -> None:
    """Delete the failed-units JSONL log."""
    if log_path.exists():
        log_path.unlink()
        print(f"Cleared failed units log: {log_path}")
    else:
        print(f"No failed units log to clear at {log_path}")
