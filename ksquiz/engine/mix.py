from __future__ import annotations

"""MixConfig: a reusable, validated recipe for building a quiz.

Options and their effect on a session:

- subjects: subject names the content provider filters on
- key_stages: KS1/KS2 filter
- question_count: exact number of questions in a session (1..100)
- difficulty_range: inclusive (min, max) difficulty filter within 1..5
- time_limit: overall deadline in seconds (60..3600), None = unbounded
- question_types: optional question-type filter, None = any type
- randomize_order: random order, otherwise ascending question id
- show_immediate_feedback: QuizSession.feedback() reveals the expected answer
- allow_review: QuizSession.review() is permitted after completion

A MixConfig that violates any bound cannot be constructed.
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from ..errors import ValidationError
from ..models import KeyStage, QuestionType

MIN_QUESTIONS = 1
MAX_QUESTIONS = 100
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MIN_TIME_LIMIT = 60
MAX_TIME_LIMIT = 3600


def mix_errors(
    subjects: Iterable[str],
    key_stages: Iterable[Any],
    question_count: int,
    difficulty_range: Tuple[int, int],
    time_limit: Optional[int],
) -> List[str]:
    """Return every bound violation as a human-readable message (empty when valid)."""
    errors: List[str] = []
    if not list(subjects):
        errors.append("At least one subject must be selected")
    if not list(key_stages):
        errors.append("At least one key stage must be selected")
    if isinstance(question_count, bool) or not (MIN_QUESTIONS <= question_count <= MAX_QUESTIONS):
        errors.append(f"Question count must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}")
    lo, hi = difficulty_range
    if lo > hi:
        errors.append("Invalid difficulty range")
    if lo < MIN_DIFFICULTY or hi > MAX_DIFFICULTY:
        errors.append(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
    if time_limit is not None and not (MIN_TIME_LIMIT <= time_limit <= MAX_TIME_LIMIT):
        errors.append(
            f"Time limit must be between {MIN_TIME_LIMIT} seconds and {MAX_TIME_LIMIT // 60} minutes"
        )
    return errors


class MixConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    subjects: FrozenSet[str]
    key_stages: FrozenSet[KeyStage]
    question_count: StrictInt = Field(default=10)
    difficulty_range: Tuple[int, int] = (MIN_DIFFICULTY, MAX_DIFFICULTY)
    time_limit: Optional[int] = None
    question_types: Optional[FrozenSet[QuestionType]] = None
    randomize_order: bool = True
    show_immediate_feedback: bool = True
    allow_review: bool = True

    @model_validator(mode="after")
    def _check_bounds(self) -> "MixConfig":
        errors = mix_errors(
            self.subjects, self.key_stages, self.question_count, self.difficulty_range, self.time_limit
        )
        if self.question_types is not None and not self.question_types:
            errors.append("Question type filter must not be empty when given")
        if errors:
            raise ValueError("; ".join(errors))
        return self

    @property
    def min_difficulty(self) -> int:
        return self.difficulty_range[0]

    @property
    def max_difficulty(self) -> int:
        return self.difficulty_range[1]

    def to_json(self) -> Dict[str, Any]:
        return {
            "subjects": sorted(self.subjects),
            "key_stages": sorted(ks.value for ks in self.key_stages),
            "question_count": self.question_count,
            "difficulty_range": list(self.difficulty_range),
            "time_limit": self.time_limit,
            "question_types": (
                sorted(qt.value for qt in self.question_types) if self.question_types is not None else None
            ),
            "randomize_order": self.randomize_order,
            "show_immediate_feedback": self.show_immediate_feedback,
            "allow_review": self.allow_review,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "MixConfig":
        return build_mix_config(data)


def _strip_prefix(msg: str) -> str:
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


def build_mix_config(data: Mapping[str, Any]) -> MixConfig:
    """Construct a MixConfig from named fields, raising ksquiz ValidationError on any violation."""
    try:
        return MixConfig(**dict(data))
    except pydantic.ValidationError as e:
        messages: List[str] = []
        for err in e.errors():
            msg = _strip_prefix(str(err.get("msg", "")))
            loc = ".".join(str(p) for p in err.get("loc", ()))
            if err.get("type") == "value_error" or not loc:
                messages.extend(m for m in msg.split("; ") if m)
            else:
                messages.append(f"{loc}: {msg}")
        raise ValidationError(messages or [str(e)]) from e


def validate_mix_config(config: MixConfig | Mapping[str, Any]) -> MixConfig:
    """MixValidator entry point.

    Accepts an existing MixConfig (re-checked, since ``model_construct`` can
    bypass validation) or a mapping of named fields.
    """
    if isinstance(config, MixConfig):
        errors = mix_errors(
            config.subjects, config.key_stages, config.question_count, config.difficulty_range, config.time_limit
        )
        if errors:
            raise ValidationError(errors)
        return config
    return build_mix_config(config)


__all__ = [
    "MixConfig",
    "build_mix_config",
    "validate_mix_config",
    "mix_errors",
    "MIN_QUESTIONS",
    "MAX_QUESTIONS",
    "MIN_TIME_LIMIT",
    "MAX_TIME_LIMIT",
]
