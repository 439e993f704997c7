from __future__ import annotations

"""Content provider: filtered question retrieval, authoring helpers and seeding."""

import json
import sqlite3
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

import yaml

from ..app.explain import trace as xtrace
from ..engine.mix import MixConfig
from ..errors import NotFoundError, ValidationError
from ..models import (
    Answer,
    Choice,
    ContentStatistics,
    CoordinatesAnswer,
    KeyStage,
    MappingAnswer,
    MultipleChoiceAnswer,
    Point,
    NumericAnswer,
    Question,
    QuestionType,
    Subject,
    TextAnswer,
    TrueFalseAnswer,
)
from .connection import ConnectionManager


class ContentProvider(Protocol):
    """Supplies questions already filtered by a MixConfig, ids unique per call."""

    def candidate_questions(self, config: MixConfig) -> List[Question]: ...

    def count_candidates(self, config: MixConfig) -> int: ...


_QUESTION_COLUMNS = """
    q.id, s.name AS subject, q.key_stage, q.question_type, q.content,
    q.correct_answer, q.difficulty_level, q.tags
"""


def _filter_clause(config: MixConfig) -> tuple[str, List[Any]]:
    subjects = sorted(config.subjects)
    stages = sorted(ks.value for ks in config.key_stages)
    sql = [
        f"s.name IN ({', '.join('?' for _ in subjects)})",
        f"q.key_stage IN ({', '.join('?' for _ in stages)})",
        "q.difficulty_level BETWEEN ? AND ?",
    ]
    params: List[Any] = [*subjects, *stages, config.min_difficulty, config.max_difficulty]
    if config.question_types:
        types = sorted(qt.value for qt in config.question_types)
        sql.append(f"q.question_type IN ({', '.join('?' for _ in types)})")
        params.extend(types)
    return " AND ".join(sql), params


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question.from_json(
        {
            "id": row["id"],
            "subject": row["subject"],
            "key_stage": row["key_stage"],
            "question_type": row["question_type"],
            "content": json.loads(row["content"]),
            "correct_answer": json.loads(row["correct_answer"]),
            "difficulty": row["difficulty_level"],
            "tags": json.loads(row["tags"]) if row["tags"] else [],
        }
    )


_EXPECTED_ANSWER = {
    QuestionType.MULTIPLE_CHOICE: MultipleChoiceAnswer,
    QuestionType.TRUE_FALSE: TrueFalseAnswer,
    QuestionType.FILL_BLANK: TextAnswer,
    QuestionType.NUMERIC: NumericAnswer,
    QuestionType.DRAG_DROP: MappingAnswer,
    QuestionType.HOTSPOT: CoordinatesAnswer,
}


def question_errors(question: Question) -> List[str]:
    errors: List[str] = []
    if not question.prompt.strip():
        errors.append("Question text cannot be empty")
    if not (1 <= int(question.difficulty) <= 5):
        errors.append("Difficulty level must be between 1 and 5")
    expected = _EXPECTED_ANSWER[question.question_type]
    answer = question.correct_answer
    if not isinstance(answer, expected):
        errors.append(f"{question.question_type.value} questions need a {expected.kind} answer")
    if question.question_type is QuestionType.MULTIPLE_CHOICE:
        if not question.choices:
            errors.append("Multiple choice questions must have options")
        elif isinstance(answer, MultipleChoiceAnswer):
            ids = [c.id for c in question.choices]
            if len(set(ids)) != len(ids):
                errors.append("Choice ids must be unique")
            if not answer.choice_ids <= set(ids):
                errors.append("Correct choice id is not one of the options")
    elif question.question_type is QuestionType.DRAG_DROP:
        if isinstance(answer, MappingAnswer):
            if not answer.pairs:
                errors.append("Drag and drop questions need at least one mapping")
            elif question.items is not None:
                unknown = sorted(set(answer.as_dict()) - set(question.items))
                if unknown:
                    errors.append(f"Mapped items are not draggable items: {', '.join(unknown)}")
    elif question.question_type is QuestionType.HOTSPOT:
        if not question.image_url:
            errors.append("Hotspot questions must have an image")
        if isinstance(answer, CoordinatesAnswer) and not answer.points:
            errors.append("Hotspot questions need at least one correct point")
    return errors


class SqliteContentProvider:
    def __init__(self, db: ConnectionManager) -> None:
        self.db = db

    def candidate_questions(self, config: MixConfig) -> List[Question]:
        where, params = _filter_clause(config)
        sql = f"""
            SELECT {_QUESTION_COLUMNS}
            FROM questions q JOIN subjects s ON q.subject_id = s.id
            WHERE {where}
            ORDER BY q.id
        """
        rows = self.db.execute(lambda conn: conn.execute(sql, params).fetchall())
        return [_row_to_question(r) for r in rows]

    def count_candidates(self, config: MixConfig) -> int:
        where, params = _filter_clause(config)
        sql = f"""
            SELECT COUNT(DISTINCT q.id)
            FROM questions q JOIN subjects s ON q.subject_id = s.id
            WHERE {where}
        """
        return int(self.db.execute(lambda conn: conn.execute(sql, params).fetchone()[0]))

    def get_question(self, question_id: int) -> Question:
        sql = f"SELECT {_QUESTION_COLUMNS} FROM questions q JOIN subjects s ON q.subject_id = s.id WHERE q.id = ?"
        row = self.db.execute(lambda conn: conn.execute(sql, (question_id,)).fetchone())
        if row is None:
            raise NotFoundError(f"Question {question_id} not found")
        return _row_to_question(row)

    def subjects(self) -> List[Subject]:
        rows = self.db.execute(
            lambda conn: conn.execute(
                "SELECT id, name, display_name, icon_path, color_scheme, description FROM subjects ORDER BY name"
            ).fetchall()
        )
        return [
            Subject(
                id=int(r["id"]),
                name=r["name"],
                display_name=r["display_name"],
                icon_path=r["icon_path"],
                color_scheme=r["color_scheme"],
                description=r["description"],
            )
            for r in rows
        ]

    def add_subject(self, subject: Subject) -> int:
        """Insert a subject, or return the id of the existing one with the same name."""
        if not subject.name.strip():
            raise ValidationError("Subject name cannot be empty")

        def op(conn: sqlite3.Connection) -> int:
            conn.execute(
                """INSERT OR IGNORE INTO subjects (name, display_name, icon_path, color_scheme, description)
                   VALUES (?, ?, ?, ?, ?)""",
                (subject.name, subject.display_name, subject.icon_path, subject.color_scheme, subject.description),
            )
            return int(conn.execute("SELECT id FROM subjects WHERE name = ?", (subject.name,)).fetchone()[0])

        return self.db.transaction(op)

    def add_question(self, question: Question) -> int:
        """Validate and store ``question``; its ``id`` is ignored and the new id returned."""
        errors = question_errors(question)
        if errors:
            raise ValidationError(errors)

        def op(conn: sqlite3.Connection) -> int:
            row = conn.execute("SELECT id FROM subjects WHERE name = ?", (question.subject,)).fetchone()
            if row is None:
                raise NotFoundError(f"Subject '{question.subject}' not found")
            cur = conn.execute(
                """INSERT INTO questions
                   (subject_id, key_stage, question_type, content, correct_answer, difficulty_level, tags)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    int(row[0]),
                    question.key_stage.value,
                    question.question_type.value,
                    json.dumps(question.content_json()),
                    json.dumps(question.correct_answer.to_json()),
                    int(question.difficulty),
                    json.dumps(list(question.tags)),
                ),
            )
            return int(cur.lastrowid)

        return self.db.transaction(op)

    def is_empty(self) -> bool:
        return self.db.execute(lambda conn: conn.execute("SELECT 1 FROM questions LIMIT 1").fetchone()) is None

    def statistics(self) -> ContentStatistics:
        def op(conn: sqlite3.Connection) -> ContentStatistics:
            by_subject = {
                r[0]: int(r[1])
                for r in conn.execute(
                    """SELECT s.name, COUNT(q.id) FROM subjects s
                       LEFT JOIN questions q ON s.id = q.subject_id
                       GROUP BY s.id, s.name ORDER BY s.name"""
                )
            }
            return ContentStatistics(
                total_questions=int(conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0]),
                total_subjects=int(conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0]),
                total_assets=int(conn.execute("SELECT COUNT(*) FROM assets").fetchone()[0]),
                questions_by_subject=by_subject,
            )

        return self.db.execute(op)


# --- content packs ---

def _pack_answer(qtype: QuestionType, entry: Mapping[str, Any]) -> Answer:
    raw = entry.get("answer")
    if raw is None:
        raise ValidationError(f"Pack question '{entry.get('text', '')}' has no answer")
    if qtype is QuestionType.MULTIPLE_CHOICE:
        # a list marks a multi-select question
        return MultipleChoiceAnswer(raw if isinstance(raw, list) else str(raw))
    if qtype is QuestionType.TRUE_FALSE:
        if not isinstance(raw, bool):
            raise ValidationError(f"True/false answer must be a boolean, got {raw!r}")
        return TrueFalseAnswer(raw)
    if qtype is QuestionType.NUMERIC:
        return NumericAnswer(raw if isinstance(raw, (int, float)) else str(raw))
    if qtype is QuestionType.DRAG_DROP:
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Drag and drop answer must map items to targets, got {raw!r}")
        return MappingAnswer(raw)
    if qtype is QuestionType.HOTSPOT:
        if not isinstance(raw, list):
            raise ValidationError(f"Hotspot answer must be a list of points, got {raw!r}")
        return CoordinatesAnswer(tuple(Point.from_json(p) for p in raw))
    return TextAnswer(str(raw), tuple(str(a) for a in entry.get("alternatives", []) or []))


def question_from_pack(entry: Mapping[str, Any]) -> Question:
    """Build an unsaved Question (id 0) from one content-pack entry.

    Any malformed field is reported as a ValidationError naming the entry.
    """
    if not isinstance(entry, Mapping):
        raise ValidationError(f"Invalid pack question {entry!r}: expected a mapping")
    try:
        qtype = QuestionType(entry["type"])
        raw_choices = entry.get("choices")
        choices = None
        if raw_choices is not None:
            choices = tuple(Choice(id=str(c["id"]), text=str(c["text"])) for c in raw_choices)
        raw_items = entry.get("items")
        return Question(
            id=0,
            subject=str(entry["subject"]),
            key_stage=KeyStage(entry["key_stage"]),
            question_type=qtype,
            prompt=str(entry.get("text", "")),
            correct_answer=_pack_answer(qtype, entry),
            difficulty=int(entry.get("difficulty", 1)),
            choices=choices,
            tags=tuple(str(t) for t in entry.get("tags", []) or []),
            explanation=entry.get("explanation"),
            items=tuple(str(i) for i in raw_items) if raw_items is not None else None,
            image_url=entry.get("image_url"),
        )
    except ValidationError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid pack question {dict(entry)!r}: {e!r}") from e


def _subject_from_pack(entry: Any) -> Subject:
    try:
        return Subject(
            name=str(entry["name"]),
            display_name=str(entry.get("display_name", entry["name"])),
            icon_path=entry.get("icon_path"),
            color_scheme=entry.get("color_scheme"),
            description=entry.get("description"),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValidationError(f"Invalid pack subject {entry!r}: {e!r}") from e


def load_pack(pack_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Read a YAML content pack; None loads the bundled starter pack."""
    if pack_path is None:
        text = resources.files("ksquiz.content").joinpath("starter_pack.yml").read_text(encoding="utf-8")
    else:
        text = Path(pack_path).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict) or not isinstance(data.get("questions", []), list):
        raise ValidationError("Content pack must be a mapping with a 'questions' list")
    return data


def install_pack(provider: SqliteContentProvider, pack: Mapping[str, Any]) -> int:
    """Install every subject and question of ``pack`` atomically; returns the number of questions added."""

    def op(_conn: sqlite3.Connection) -> int:
        for s in pack.get("subjects", []) or []:
            provider.add_subject(_subject_from_pack(s))
        added = 0
        for entry in pack.get("questions", []) or []:
            provider.add_question(question_from_pack(entry))
            added += 1
        return added

    return provider.db.transaction(op)


def seed_if_empty(provider: SqliteContentProvider, pack_path: Optional[Union[str, Path]] = None) -> int:
    """Load a content pack when the store has no questions yet; returns questions added."""
    if not provider.is_empty():
        return 0
    pack = load_pack(pack_path)
    added = install_pack(provider, pack)
    xtrace("content_seeded", {"pack": pack.get("name", str(pack_path or "starter")), "questions": added})
    return added


__all__ = [
    "ContentProvider",
    "SqliteContentProvider",
    "question_errors",
    "question_from_pack",
    "load_pack",
    "install_pack",
    "seed_if_empty",
]
