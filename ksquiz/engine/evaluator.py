from __future__ import annotations

"""Type-polymorphic answer checking.

``evaluate`` matches exhaustively over the closed Answer union; adding a new
answer kind without a branch here is flagged by type checkers through
``assert_never``. A submitted answer of a different kind than the expected
one is simply incorrect, never an error.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union, assert_never

from ..models import (
    Answer,
    CoordinatesAnswer,
    MappingAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    TextAnswer,
    TrueFalseAnswer,
)

NUMERIC_TOLERANCE = Decimal(0)
# pixels
HOTSPOT_TOLERANCE = 20.0


def normalize_text(value: str) -> str:
    return value.strip().lower()


def to_decimal(value: Union[int, float, str, Decimal]) -> Optional[Decimal]:
    """Parse a numeric payload; None for unparsable or non-finite values."""
    if isinstance(value, bool):
        return None
    try:
        # str() first so 0.1 compares as written rather than as its binary expansion
        number = Decimal(value.strip() if isinstance(value, str) else str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _text_matches(correct: TextAnswer, submitted: TextAnswer) -> bool:
    given = normalize_text(submitted.value)
    accepted = (correct.value,) + tuple(correct.alternatives)
    return any(given == normalize_text(a) for a in accepted)


def _numeric_matches(correct: NumericAnswer, submitted: NumericAnswer, tolerance: Decimal) -> bool:
    expected = to_decimal(correct.value)
    given = to_decimal(submitted.value)
    if expected is None or given is None:
        return False
    if tolerance <= 0:
        return expected == given
    return abs(expected - given) <= tolerance


def _points_match(correct: CoordinatesAnswer, submitted: CoordinatesAnswer, tolerance: float) -> bool:
    """Every submitted point must land within ``tolerance`` of some correct point."""
    if len(submitted.points) != len(correct.points) or not submitted.points:
        return False
    return all(any(given.distance_to(target) <= tolerance for target in correct.points) for given in submitted.points)


def evaluate(correct: Answer, submitted: Answer, *, numeric_tolerance: Decimal = NUMERIC_TOLERANCE) -> bool:
    if isinstance(correct, TextAnswer):
        return isinstance(submitted, TextAnswer) and _text_matches(correct, submitted)
    elif isinstance(correct, MultipleChoiceAnswer):
        return isinstance(submitted, MultipleChoiceAnswer) and correct.choice_ids == submitted.choice_ids
    elif isinstance(correct, TrueFalseAnswer):
        return isinstance(submitted, TrueFalseAnswer) and correct.value is submitted.value
    elif isinstance(correct, NumericAnswer):
        return isinstance(submitted, NumericAnswer) and _numeric_matches(
            correct, submitted, Decimal(numeric_tolerance)
        )
    elif isinstance(correct, MappingAnswer):
        return isinstance(submitted, MappingAnswer) and correct.pairs == submitted.pairs
    elif isinstance(correct, CoordinatesAnswer):
        return isinstance(submitted, CoordinatesAnswer) and _points_match(correct, submitted, HOTSPOT_TOLERANCE)
    else:
        assert_never(correct)


class AnswerEvaluator:
    """Holds the evaluation policy (numeric tolerance) for a session."""

    def __init__(self, numeric_tolerance: Decimal | int | float | str = NUMERIC_TOLERANCE) -> None:
        tolerance = to_decimal(numeric_tolerance)
        if tolerance is None or tolerance < 0:
            raise ValueError(f"Invalid numeric tolerance: {numeric_tolerance!r}")
        self.numeric_tolerance = tolerance

    def __call__(self, correct: Answer, submitted: Answer) -> bool:
        return evaluate(correct, submitted, numeric_tolerance=self.numeric_tolerance)


__all__ = ["AnswerEvaluator", "evaluate", "normalize_text", "to_decimal", "NUMERIC_TOLERANCE", "HOTSPOT_TOLERANCE"]
