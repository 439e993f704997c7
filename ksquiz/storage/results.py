from __future__ import annotations

"""Persistence of finished quiz sessions (the profile layer's result sink)."""

import json
import sqlite3
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from ..app.explain import trace as xtrace
from ..models import QuizResult
from .connection import ConnectionManager


class ResultSink(Protocol):
    def record_result(self, result: QuizResult) -> int: ...


@dataclass(frozen=True)
class SessionSummary:
    id: int
    session_uuid: str
    profile_id: Optional[int]
    mix_id: Optional[int]
    started_at: Optional[str]
    completed_at: Optional[str]
    total_questions: int
    correct_answers: int
    time_spent: float
    percentage: float
    performance_level: str
    final_score: int


class QuizResultStore:
    def __init__(self, db: ConnectionManager) -> None:
        self.db = db

    def record_result(self, result: QuizResult) -> int:
        """Write the session row, its attempts and the progress totals in one transaction.

        Returns the ``quiz_sessions`` row id.
        """
        score = result.score
        session_data = {
            "score": score.to_json(),
            "subject_accuracy": result.subject_accuracy,
            "difficulty_accuracy": {str(k): v for k, v in result.difficulty_accuracy.items()},
            "abandoned": result.abandoned,
            "config": result.config,
        }

        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                """INSERT INTO quiz_sessions
                   (session_uuid, profile_id, mix_id, subject_filter, key_stage_filter, started_at,
                    completed_at, total_questions, correct_answers, time_spent, session_data)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    result.session_id,
                    result.profile_id,
                    result.mix_id,
                    json.dumps(result.config.get("subjects", [])),
                    json.dumps(result.config.get("key_stages", [])),
                    result.started_at.isoformat() if result.started_at else None,
                    result.completed_at.isoformat(),
                    score.question_count,
                    score.raw_correct,
                    float(score.total_time_seconds),
                    json.dumps(session_data),
                ),
            )
            row_id = int(cur.lastrowid)

            totals: Dict[Tuple[str, str], List[float]] = {}
            for order, r in enumerate(result.results, start=1):
                q = result.question_for(r.question_id)
                conn.execute(
                    """INSERT INTO question_attempts
                       (session_id, question_id, user_answer, is_correct, time_taken, points, attempt_order)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (row_id, r.question_id, json.dumps(r.submitted.to_json()), int(r.correct), r.time_taken, r.points, order),
                )
                agg = totals.setdefault((q.subject, q.key_stage.value), [0, 0, 0.0])
                agg[0] += 1
                agg[1] += int(r.correct)
                agg[2] += r.time_taken

            if result.profile_id is not None:
                for (subject, key_stage), (answered, correct, spent) in totals.items():
                    conn.execute(
                        """INSERT INTO progress
                           (profile_id, subject, key_stage, questions_answered, correct_answers,
                            total_time_spent, last_activity)
                           VALUES (?, ?, ?, ?, ?, ?, ?)
                           ON CONFLICT(profile_id, subject, key_stage) DO UPDATE SET
                               questions_answered = questions_answered + excluded.questions_answered,
                               correct_answers = correct_answers + excluded.correct_answers,
                               total_time_spent = total_time_spent + excluded.total_time_spent,
                               last_activity = excluded.last_activity""",
                        (
                            result.profile_id,
                            subject,
                            key_stage,
                            int(answered),
                            int(correct),
                            float(spent),
                            result.completed_at.isoformat(),
                        ),
                    )
            return row_id

        row_id = self.db.transaction(op)
        xtrace(
            "result_recorded",
            {"session_id": result.session_id, "row_id": row_id, "attempts": len(result.results)},
        )
        return row_id

    def history(self, profile_id: int, limit: Optional[int] = None) -> List[SessionSummary]:
        """Past sessions of ``profile_id``, newest first."""
        sql = """SELECT id, session_uuid, profile_id, mix_id, started_at, completed_at, total_questions,
                        correct_answers, time_spent, session_data
                 FROM quiz_sessions WHERE profile_id = ?
                 ORDER BY completed_at DESC, id DESC"""
        params: Tuple = (profile_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (profile_id, int(limit))
        rows = self.db.execute(lambda conn: conn.execute(sql, params).fetchall())
        out: List[SessionSummary] = []
        for r in rows:
            data = json.loads(r["session_data"] or "{}")
            score = data.get("score", {})
            out.append(
                SessionSummary(
                    id=int(r["id"]),
                    session_uuid=r["session_uuid"],
                    profile_id=r["profile_id"],
                    mix_id=r["mix_id"],
                    started_at=r["started_at"],
                    completed_at=r["completed_at"],
                    total_questions=int(r["total_questions"]),
                    correct_answers=int(r["correct_answers"]),
                    time_spent=float(r["time_spent"]),
                    percentage=float(score.get("percentage", 0.0)),
                    performance_level=str(score.get("performance_level", "")),
                    final_score=int(score.get("final_score", 0)),
                )
            )
        return out


__all__ = ["ResultSink", "QuizResultStore", "SessionSummary"]
