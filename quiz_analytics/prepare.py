from __future__ import annotations

"""Load quiz history from the SQLite store into typed DataFrames."""

import sqlite3
from typing import Any, List, Optional

import pandas as pd

from ksquiz.storage.connection import ConnectionManager

ATTEMPT_DTYPES = {
    "session_uuid": "string",
    "profile_id": "Int64",
    "question_id": "Int64",
    "subject": "category",
    "key_stage": "category",
    "question_type": "category",
    "difficulty": "UInt8",
    "is_correct": "boolean",
    "time_taken": "float32",
    "points": "Int32",
    "attempt_order": "UInt16",
}

SESSION_DTYPES = {
    "session_uuid": "string",
    "profile_id": "Int64",
    "mix_id": "Int64",
    "total_questions": "UInt16",
    "correct_answers": "UInt16",
    "answered": "UInt16",
    "time_spent": "float32",
}


def _read(db: ConnectionManager, sql: str, params: List[Any]) -> pd.DataFrame:
    def op(conn: sqlite3.Connection) -> pd.DataFrame:
        return pd.read_sql_query(sql, conn, params=params)

    return db.execute(op)


def _utc(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, utc=True, format="ISO8601")


def load_attempts(db: ConnectionManager, profile_id: Optional[int] = None) -> pd.DataFrame:
    """One row per answered question, joined with its session and question metadata."""
    sql = """
        SELECT qs.session_uuid, qs.profile_id, qs.completed_at,
               qa.question_id, s.name AS subject, q.key_stage, q.question_type,
               q.difficulty_level AS difficulty, qa.is_correct, qa.time_taken, qa.points, qa.attempt_order
        FROM question_attempts qa
        JOIN quiz_sessions qs ON qa.session_id = qs.id
        JOIN questions q ON qa.question_id = q.id
        JOIN subjects s ON q.subject_id = s.id
    """
    params: List[Any] = []
    if profile_id is not None:
        sql += " WHERE qs.profile_id = ?"
        params.append(int(profile_id))
    sql += " ORDER BY qs.completed_at, qs.id, qa.attempt_order"
    df = _read(db, sql, params)
    df["completed_at"] = _utc(df["completed_at"])
    df["is_correct"] = df["is_correct"].astype(bool)
    return df.astype(ATTEMPT_DTYPES)


def load_sessions(db: ConnectionManager, profile_id: Optional[int] = None) -> pd.DataFrame:
    """One row per recorded session in completion order, with a stable ``session_idx``.

    ``accuracy`` is correct/answered in 0..1 (NaN for sessions with no answers).
    """
    sql = """
        SELECT qs.session_uuid, qs.profile_id, qs.mix_id, qs.started_at, qs.completed_at,
               qs.total_questions, qs.correct_answers, qs.time_spent,
               COUNT(qa.id) AS answered
        FROM quiz_sessions qs
        LEFT JOIN question_attempts qa ON qa.session_id = qs.id
    """
    params: List[Any] = []
    if profile_id is not None:
        sql += " WHERE qs.profile_id = ?"
        params.append(int(profile_id))
    sql += " GROUP BY qs.id ORDER BY qs.completed_at, qs.id"
    df = _read(db, sql, params)
    df["started_at"] = _utc(df["started_at"])
    df["completed_at"] = _utc(df["completed_at"])
    df = df.astype(SESSION_DTYPES)
    answered = df["answered"].astype("float32")
    df["accuracy"] = (df["correct_answers"].astype("float32") / answered.where(answered > 0)).astype("float32")
    df["session_idx"] = pd.factorize(df["session_uuid"])[0]
    return df.reset_index(drop=True)
