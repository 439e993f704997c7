from __future__ import annotations

"""Core quiz data model: questions, the closed Answer variant and per-answer results."""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

if TYPE_CHECKING:
    from .engine.scorer import Score


class KeyStage(str, Enum):
    KS1 = "KS1"
    KS2 = "KS2"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    NUMERIC = "numeric"
    DRAG_DROP = "drag_drop"
    HOTSPOT = "hotspot"


@dataclass(frozen=True)
class TextAnswer:
    value: str
    # Extra accepted spellings; only meaningful on the correct side.
    alternatives: Tuple[str, ...] = ()

    kind: ClassVar[str] = "text"

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "value": self.value}
        if self.alternatives:
            data["alternatives"] = list(self.alternatives)
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TextAnswer":
        return cls(
            value=str(data.get("value", "")),
            alternatives=tuple(str(a) for a in data.get("alternatives", []) or []),
        )


@dataclass(frozen=True)
class MultipleChoiceAnswer:
    """One choice id, or a set of ids for multi-select questions.

    Identifiers are canonicalised to strings so 2 and "2" name the same
    choice; a list, tuple or set becomes a frozenset (order is irrelevant).
    """

    choice_id: Union[str, FrozenSet[str]]

    kind: ClassVar[str] = "multiple_choice"

    def __post_init__(self) -> None:
        raw = self.choice_id
        if isinstance(raw, (list, tuple, set, frozenset)):
            ids = frozenset(str(c) for c in raw)
            if not ids:
                raise ValueError("A multi-select answer needs at least one choice id")
            object.__setattr__(self, "choice_id", ids)
        else:
            object.__setattr__(self, "choice_id", str(raw))

    @property
    def is_multi(self) -> bool:
        return isinstance(self.choice_id, frozenset)

    @property
    def choice_ids(self) -> FrozenSet[str]:
        if isinstance(self.choice_id, frozenset):
            return self.choice_id
        return frozenset((self.choice_id,))

    def to_json(self) -> Dict[str, Any]:
        if isinstance(self.choice_id, frozenset):
            return {"type": self.kind, "choice_ids": sorted(self.choice_id)}
        return {"type": self.kind, "choice_id": self.choice_id}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MultipleChoiceAnswer":
        if "choice_ids" in data:
            return cls(choice_id=frozenset(str(c) for c in data["choice_ids"]))
        return cls(choice_id=str(data["choice_id"]))


@dataclass(frozen=True)
class TrueFalseAnswer:
    value: bool

    kind: ClassVar[str] = "true_false"

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise ValueError(f"True/false answer must be a boolean, got {self.value!r}")

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.kind, "value": self.value}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TrueFalseAnswer":
        return cls(value=data["value"])


@dataclass(frozen=True)
class NumericAnswer:
    value: Union[int, float, str]

    kind: ClassVar[str] = "numeric"

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.kind, "value": self.value}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "NumericAnswer":
        return cls(value=data["value"])


@dataclass(frozen=True)
class MappingAnswer:
    """Drag-and-drop answer: each item is placed on one target."""

    pairs: Tuple[Tuple[str, str], ...]

    kind: ClassVar[str] = "mapping"

    def __post_init__(self) -> None:
        raw = self.pairs
        items = raw.items() if isinstance(raw, Mapping) else raw
        mapping = {str(k): str(v) for k, v in items}
        object.__setattr__(self, "pairs", tuple(sorted(mapping.items())))

    def as_dict(self) -> Dict[str, str]:
        return dict(self.pairs)

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.kind, "mapping": self.as_dict()}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MappingAnswer":
        mapping = data["mapping"]
        if not isinstance(mapping, Mapping):
            raise ValueError(f"Mapping answer must be an object, got {mapping!r}")
        return cls(pairs=mapping)


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    label: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("x", "y"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"Point {name} must be a finite number, got {value!r}")
            object.__setattr__(self, name, float(value))

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"x": self.x, "y": self.y}
        if self.label is not None:
            data["label"] = self.label
        return data

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Point":
        label = data.get("label")
        return cls(x=data["x"], y=data["y"], label=str(label) if label is not None else None)


@dataclass(frozen=True)
class CoordinatesAnswer:
    """Hotspot answer: the points clicked on the question image."""

    points: Tuple[Point, ...]

    kind: ClassVar[str] = "coordinates"

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.kind, "points": [p.to_json() for p in self.points]}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "CoordinatesAnswer":
        return cls(points=tuple(Point.from_json(p) for p in data["points"]))


Answer = Union[TextAnswer, MultipleChoiceAnswer, TrueFalseAnswer, NumericAnswer, MappingAnswer, CoordinatesAnswer]


def answer_from_json(data: Dict[str, Any]) -> Answer:
    answer_type = data.get("type")
    if answer_type == TextAnswer.kind:
        return TextAnswer.from_json(data)
    if answer_type == MultipleChoiceAnswer.kind:
        return MultipleChoiceAnswer.from_json(data)
    if answer_type == TrueFalseAnswer.kind:
        return TrueFalseAnswer.from_json(data)
    if answer_type == NumericAnswer.kind:
        return NumericAnswer.from_json(data)
    if answer_type == MappingAnswer.kind:
        return MappingAnswer.from_json(data)
    if answer_type == CoordinatesAnswer.kind:
        return CoordinatesAnswer.from_json(data)
    raise ValueError(f"Unsupported answer payload type: {answer_type}")


def answer_to_json(answer: Answer) -> Dict[str, Any]:
    return answer.to_json()


@dataclass(frozen=True)
class Choice:
    id: str
    text: str

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Choice":
        return cls(id=str(data["id"]), text=str(data.get("text", "")))


@dataclass(frozen=True)
class Question:
    """A single question as supplied by the content provider.

    Instances are immutable so a session's snapshot cannot change under it;
    use ``with_choices`` or ``with_items`` to derive a copy with a different
    display order. ``items`` are the draggable labels of a drag-and-drop
    question; ``image_url`` is the picture a hotspot question is asked on.
    """

    id: int
    subject: str
    key_stage: KeyStage
    question_type: QuestionType
    prompt: str
    correct_answer: Answer
    difficulty: int = 1
    choices: Optional[Tuple[Choice, ...]] = None
    tags: Tuple[str, ...] = ()
    explanation: Optional[str] = None
    items: Optional[Tuple[str, ...]] = None
    image_url: Optional[str] = None

    def with_choices(self, choices: List[Choice] | Tuple[Choice, ...]) -> "Question":
        return replace(self, choices=tuple(choices))

    def with_items(self, items: List[str] | Tuple[str, ...]) -> "Question":
        return replace(self, items=tuple(items))

    def content_json(self) -> Dict[str, Any]:
        """Prompt-side payload as stored in the ``questions.content`` column."""
        data: Dict[str, Any] = {"text": self.prompt}
        if self.choices is not None:
            data["choices"] = [c.to_json() for c in self.choices]
        if self.items is not None:
            data["items"] = list(self.items)
        if self.image_url:
            data["image_url"] = self.image_url
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "key_stage": self.key_stage.value,
            "question_type": self.question_type.value,
            "content": self.content_json(),
            "correct_answer": answer_to_json(self.correct_answer),
            "difficulty": self.difficulty,
            "tags": list(self.tags),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Question":
        content = data.get("content", {}) or {}
        raw_choices = content.get("choices")
        raw_items = content.get("items")
        return cls(
            id=int(data["id"]),
            subject=str(data["subject"]),
            key_stage=KeyStage(data["key_stage"]),
            question_type=QuestionType(data["question_type"]),
            prompt=str(content.get("text", "")),
            correct_answer=answer_from_json(dict(data["correct_answer"])),
            difficulty=int(data.get("difficulty", 1)),
            choices=tuple(Choice.from_json(c) for c in raw_choices) if isinstance(raw_choices, list) else None,
            tags=tuple(str(t) for t in data.get("tags", []) or []),
            explanation=content.get("explanation"),
            items=tuple(str(i) for i in raw_items) if isinstance(raw_items, list) else None,
            image_url=content.get("image_url"),
        )


@dataclass(frozen=True)
class Subject:
    name: str
    display_name: str
    id: Optional[int] = None
    icon_path: Optional[str] = None
    color_scheme: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class AnswerResult:
    question_id: int
    submitted: Answer
    correct: bool
    time_taken: float
    points: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "submitted": answer_to_json(self.submitted),
            "correct": self.correct,
            "time_taken": self.time_taken,
            "points": self.points,
        }


@dataclass(frozen=True)
class Feedback:
    correct: bool
    expected: Answer
    explanation: str


@dataclass(frozen=True)
class QuizResult:
    """Everything a finished session hands to the result sink.

    ``score`` is an ``engine.scorer.Score``; ``config`` is the MixConfig
    JSON the session was generated from.
    """

    session_id: str
    profile_id: Optional[int]
    mix_id: Optional[int]
    config: Dict[str, Any]
    started_at: Optional[datetime]
    completed_at: datetime
    score: "Score"
    questions: Tuple[Question, ...]
    results: Tuple[AnswerResult, ...]
    abandoned: bool = False
    subject_accuracy: Dict[str, float] = field(default_factory=dict)
    difficulty_accuracy: Dict[int, float] = field(default_factory=dict)

    def question_for(self, question_id: int) -> Question:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise KeyError(question_id)

    def to_json(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "profile_id": self.profile_id,
            "mix_id": self.mix_id,
            "config": dict(self.config),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat(),
            "score": self.score.to_json(),
            "results": [r.to_json() for r in self.results],
            "abandoned": self.abandoned,
            "subject_accuracy": dict(self.subject_accuracy),
            "difficulty_accuracy": {str(k): v for k, v in self.difficulty_accuracy.items()},
        }


@dataclass
class ContentStatistics:
    total_questions: int = 0
    total_subjects: int = 0
    total_assets: int = 0
    questions_by_subject: Dict[str, int] = field(default_factory=dict)


__all__ = [
    "KeyStage",
    "QuestionType",
    "TextAnswer",
    "MultipleChoiceAnswer",
    "TrueFalseAnswer",
    "NumericAnswer",
    "MappingAnswer",
    "Point",
    "CoordinatesAnswer",
    "Answer",
    "answer_from_json",
    "answer_to_json",
    "Choice",
    "Question",
    "Subject",
    "AnswerResult",
    "Feedback",
    "QuizResult",
    "ContentStatistics",
]
