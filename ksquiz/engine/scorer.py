from __future__ import annotations

"""Scoring: pure aggregation of answer results into a Score and PerformanceLevel."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import AnswerResult, Question, QuestionType
from .mix import MixConfig

POINTS_BY_DIFFICULTY: Dict[int, int] = {1: 10, 2: 15, 3: 20, 4: 25, 5: 30}
TYPE_BONUS: Dict[QuestionType, int] = {
    QuestionType.MULTIPLE_CHOICE: 0,
    QuestionType.TRUE_FALSE: 0,
    QuestionType.FILL_BLANK: 5,
    QuestionType.NUMERIC: 5,
    QuestionType.DRAG_DROP: 10,
    QuestionType.HOTSPOT: 10,
}

TARGET_SECONDS_PER_QUESTION = 30.0
MAX_TIME_BONUS = 50
STREAK_BONUS_FROM = 3
STREAK_BONUS_PER_QUESTION = 5

PERFECT_SCORE_MIN_ANSWERS = 5
SPEED_DEMON_MAX_AVG_SECONDS = 15.0
SPEED_DEMON_MIN_PERCENTAGE = 80.0
STREAK_MASTER_MIN_STREAK = 10


class PerformanceLevel(IntEnum):
    POOR = 0
    NEEDS_IMPROVEMENT = 1
    FAIR = 2
    GOOD = 3
    EXCELLENT = 4

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class PerformanceThresholds:
    """Minimum percentage for each tier; anything below ``needs_improvement`` is POOR."""

    excellent: float = 90.0
    good: float = 80.0
    fair: float = 70.0
    needs_improvement: float = 60.0

    def __post_init__(self) -> None:
        values = [self.excellent, self.good, self.fair, self.needs_improvement]
        if any(v < 0 or v > 100 for v in values) or any(a <= b for a, b in zip(values, values[1:])):
            raise ValueError(f"Thresholds must be strictly descending within 0..100, got {values}")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "PerformanceThresholds":
        if not data:
            return cls()
        return cls(
            excellent=float(data.get("excellent", cls.excellent)),
            good=float(data.get("good", cls.good)),
            fair=float(data.get("fair", cls.fair)),
            needs_improvement=float(data.get("needs_improvement", cls.needs_improvement)),
        )

    def classify(self, percentage: float) -> PerformanceLevel:
        if percentage >= self.excellent:
            return PerformanceLevel.EXCELLENT
        if percentage >= self.good:
            return PerformanceLevel.GOOD
        if percentage >= self.fair:
            return PerformanceLevel.FAIR
        if percentage >= self.needs_improvement:
            return PerformanceLevel.NEEDS_IMPROVEMENT
        return PerformanceLevel.POOR


DEFAULT_THRESHOLDS = PerformanceThresholds()


@dataclass(frozen=True)
class Score:
    raw_correct: int
    total: int
    percentage: float
    performance_level: PerformanceLevel
    question_count: int
    completion_percentage: float
    total_points: int = 0
    max_streak: int = 0
    streak_bonus: int = 0
    time_bonus: int = 0
    final_score: int = 0
    total_time_seconds: float = 0.0
    achievements: Tuple[str, ...] = field(default_factory=tuple)

    def to_json(self) -> Dict[str, Any]:
        return {
            "raw_correct": self.raw_correct,
            "total": self.total,
            "percentage": self.percentage,
            "performance_level": self.performance_level.label,
            "question_count": self.question_count,
            "completion_percentage": self.completion_percentage,
            "total_points": self.total_points,
            "max_streak": self.max_streak,
            "streak_bonus": self.streak_bonus,
            "time_bonus": self.time_bonus,
            "final_score": self.final_score,
            "total_time_seconds": self.total_time_seconds,
            "achievements": list(self.achievements),
        }


def question_points(question: Question) -> int:
    """Points awarded for answering ``question`` correctly."""
    base = POINTS_BY_DIFFICULTY.get(int(question.difficulty), POINTS_BY_DIFFICULTY[1])
    return base + TYPE_BONUS.get(question.question_type, 0)


def max_correct_streak(results: Sequence[AnswerResult]) -> int:
    best = 0
    current = 0
    for r in results:
        if r.correct:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def streak_bonus(max_streak: int) -> int:
    if max_streak < STREAK_BONUS_FROM:
        return 0
    return (max_streak - (STREAK_BONUS_FROM - 1)) * STREAK_BONUS_PER_QUESTION


def time_bonus(total_seconds: float, answered: int) -> int:
    if answered <= 0:
        return 0
    avg = total_seconds / answered
    if avg > TARGET_SECONDS_PER_QUESTION:
        return 0
    factor = (TARGET_SECONDS_PER_QUESTION - avg) / TARGET_SECONDS_PER_QUESTION
    return int(factor * MAX_TIME_BONUS)


def achievements_for(percentage: float, answered: int, avg_seconds: float, max_streak: int) -> List[str]:
    earned: List[str] = []
    if answered >= PERFECT_SCORE_MIN_ANSWERS and percentage >= 100:
        earned.append("perfect_score")
    if answered > 0 and avg_seconds <= SPEED_DEMON_MAX_AVG_SECONDS and percentage >= SPEED_DEMON_MIN_PERCENTAGE:
        earned.append("speed_demon")
    if max_streak >= STREAK_MASTER_MIN_STREAK:
        earned.append("streak_master")
    return earned


def compute_score(
    results: Sequence[AnswerResult],
    config: MixConfig,
    *,
    thresholds: PerformanceThresholds = DEFAULT_THRESHOLDS,
    total_time_seconds: Optional[float] = None,
) -> Score:
    """Aggregate ``results`` into a Score.

    ``percentage`` is computed over the answers actually given, so an
    abandoned or timed-out session is judged on what was answered;
    ``completion_percentage`` reports how much of the planned mix that was.
    ``total_time_seconds`` defaults to the sum of per-answer times.
    """
    total = len(results)
    raw_correct = sum(1 for r in results if r.correct)
    percentage = (raw_correct * 100 / total) if total else 0.0
    planned = int(config.question_count)
    completion = (total * 100 / planned) if planned else 0.0

    if total_time_seconds is None:
        total_time_seconds = float(sum(r.time_taken for r in results))
    points = sum(int(r.points) for r in results if r.correct)
    best_streak = max_correct_streak(results)
    s_bonus = streak_bonus(best_streak)
    t_bonus = time_bonus(total_time_seconds, total)
    avg = (total_time_seconds / total) if total else 0.0

    return Score(
        raw_correct=raw_correct,
        total=total,
        percentage=percentage,
        performance_level=thresholds.classify(percentage),
        question_count=planned,
        completion_percentage=min(100.0, completion),
        total_points=points,
        max_streak=best_streak,
        streak_bonus=s_bonus,
        time_bonus=t_bonus,
        final_score=points + s_bonus + t_bonus,
        total_time_seconds=total_time_seconds,
        achievements=tuple(achievements_for(percentage, total, avg, best_streak)),
    )


__all__ = [
    "PerformanceLevel",
    "PerformanceThresholds",
    "DEFAULT_THRESHOLDS",
    "Score",
    "POINTS_BY_DIFFICULTY",
    "TYPE_BONUS",
    "question_points",
    "max_correct_streak",
    "streak_bonus",
    "time_bonus",
    "achievements_for",
    "compute_score",
]
