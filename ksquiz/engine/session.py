from __future__ import annotations

"""QuizSession: the per-attempt state machine.

States: CREATED -> IN_PROGRESS <-> PAUSED -> COMPLETED. COMPLETED is
terminal; any mutating call afterwards raises SessionClosed, any call in
the wrong live state raises InvalidState.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..app.explain import trace as xtrace
from ..errors import InvalidState, SessionClosed
from ..models import Answer, AnswerResult, Feedback, Question, QuestionType, QuizResult
from .evaluator import NUMERIC_TOLERANCE, AnswerEvaluator
from .mix import MixConfig, validate_mix_config
from .scorer import DEFAULT_THRESHOLDS, PerformanceLevel, PerformanceThresholds, Score, compute_score, question_points
from .timer import SessionTimer

CORRECT_FEEDBACK = "Correct! Well done!"
RETRY_HINTS: Dict[QuestionType, str] = {
    QuestionType.MULTIPLE_CHOICE: "Not quite right. Try to read the question carefully and think about each option.",
    QuestionType.TRUE_FALSE: "Not quite right. Read the statement again and decide whether it is always true.",
    QuestionType.FILL_BLANK: "Check your spelling and make sure you understand what the question is asking for.",
    QuestionType.NUMERIC: "Check your working and try the calculation again step by step.",
    QuestionType.DRAG_DROP: "Think about which items belong together and try again.",
    QuestionType.HOTSPOT: "Look more carefully at the image and try to identify the correct area.",
}


class SessionState(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionProgress:
    session_id: str
    state: SessionState
    current_index: int
    total_questions: int
    answered: int
    elapsed_seconds: float
    remaining_seconds: Optional[float]
    percentage: float


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def accuracy_by(
    questions: Sequence[Question], results: Sequence[AnswerResult], key: Callable[[Question], object]
) -> Dict:
    """Percentage of correct answers grouped by ``key(question)``, answered questions only."""
    by_id = {q.id: q for q in questions}
    asked: Dict[object, int] = {}
    correct: Dict[object, int] = {}
    for r in results:
        group = key(by_id[r.question_id])
        asked[group] = asked.get(group, 0) + 1
        if r.correct:
            correct[group] = correct.get(group, 0) + 1
    return {g: correct.get(g, 0) * 100 / n for g, n in asked.items()}


class QuizSession:
    def __init__(
        self,
        questions: Sequence[Question],
        config: MixConfig,
        *,
        profile_id: Optional[int] = None,
        mix_id: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
        thresholds: PerformanceThresholds = DEFAULT_THRESHOLDS,
        numeric_tolerance: Decimal = NUMERIC_TOLERANCE,
    ) -> None:
        self.config = validate_mix_config(config)
        snapshot = tuple(questions)
        if not snapshot:
            raise ValueError("A session needs at least one question")
        if len({q.id for q in snapshot}) != len(snapshot):
            raise ValueError("Session questions must have unique ids")
        self._questions: Tuple[Question, ...] = snapshot
        self.session_id = str(uuid4())
        self.profile_id = profile_id
        self.mix_id = mix_id
        self.thresholds = thresholds
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.abandoned = False

        self._now = now
        self._evaluator = AnswerEvaluator(numeric_tolerance)
        self._timer = SessionTimer(config.time_limit, clock=clock)
        self._state = SessionState.CREATED
        self._cursor = 0
        self._results: List[AnswerResult] = []
        self._question_mark = 0.0
        self._score: Optional[Score] = None

    # --- state guards ---
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def questions(self) -> Tuple[Question, ...]:
        return self._questions

    @property
    def timer(self) -> SessionTimer:
        return self._timer

    def _require(self, *allowed: SessionState, action: str) -> None:
        if self._state is SessionState.COMPLETED:
            raise SessionClosed(f"Cannot {action}: session {self.session_id} is completed")
        if self._state not in allowed:
            raise InvalidState(f"Cannot {action} while session is {self._state.value}")

    # --- lifecycle ---
    def start(self) -> None:
        self._require(SessionState.CREATED, action="start")
        self._timer.start()
        self._question_mark = 0.0
        self.started_at = self._now()
        self._state = SessionState.IN_PROGRESS
        xtrace(
            "session_started",
            {
                "session_id": self.session_id,
                "profile_id": self.profile_id,
                "questions": len(self._questions),
                "time_limit": self.config.time_limit,
            },
        )

    def submit_answer(self, answer: Answer) -> AnswerResult:
        """Evaluate ``answer`` against the current question and advance.

        The answer is recorded even if the deadline has already passed; the
        session then completes.
        """
        self._require(SessionState.IN_PROGRESS, action="submit an answer")
        question = self._questions[self._cursor]
        elapsed = self._timer.elapsed()
        correct = self._evaluator(question.correct_answer, answer)
        result = AnswerResult(
            question_id=question.id,
            submitted=answer,
            correct=correct,
            time_taken=max(0.0, elapsed - self._question_mark),
            points=question_points(question) if correct else 0,
        )
        self._results.append(result)
        self._cursor += 1
        self._question_mark = elapsed
        xtrace(
            "answer_evaluated",
            {
                "session_id": self.session_id,
                "question_id": question.id,
                "type": question.question_type.value,
                "correct": correct,
                "time_taken": round(result.time_taken, 3),
            },
        )
        if self._cursor >= len(self._questions):
            self._complete("all_answered")
        elif self._timer.expired():
            self._complete("time_expired")
        return result

    def pause(self) -> None:
        self._require(SessionState.IN_PROGRESS, action="pause")
        self._timer.pause()
        self._state = SessionState.PAUSED
        xtrace("session_paused", {"session_id": self.session_id, "elapsed": round(self._timer.elapsed(), 3)})

    def resume(self) -> None:
        self._require(SessionState.PAUSED, action="resume")
        self._timer.resume()
        self._state = SessionState.IN_PROGRESS
        xtrace("session_resumed", {"session_id": self.session_id, "remaining": self._timer.remaining()})

    def tick(self) -> SessionState:
        """Poll the timer; completes the session if the deadline has passed."""
        if self._state is SessionState.IN_PROGRESS and self._timer.expired():
            self._complete("time_expired")
        return self._state

    def abandon(self) -> None:
        """Force completion with whatever has been answered so far."""
        self._require(SessionState.CREATED, SessionState.IN_PROGRESS, SessionState.PAUSED, action="abandon")
        self.abandoned = True
        self._complete("abandoned")

    def _complete(self, reason: str) -> None:
        self._timer.stop()
        self._state = SessionState.COMPLETED
        self.completed_at = self._now()
        self._score = compute_score(
            self._results,
            self.config,
            thresholds=self.thresholds,
            total_time_seconds=self._timer.elapsed(),
        )
        xtrace(
            "session_completed",
            {
                "session_id": self.session_id,
                "reason": reason,
                "correct": self._score.raw_correct,
                "total": self._score.total,
                "percentage": self._score.percentage,
                "level": self._score.performance_level.label,
            },
        )

    # --- queries ---
    @property
    def current_question(self) -> Optional[Question]:
        if self._state is not SessionState.IN_PROGRESS:
            return None
        return self._questions[self._cursor]

    def progress(self) -> SessionProgress:
        total = len(self._questions)
        answered = len(self._results)
        return SessionProgress(
            session_id=self.session_id,
            state=self._state,
            current_index=self._cursor,
            total_questions=total,
            answered=answered,
            elapsed_seconds=self._timer.elapsed(),
            remaining_seconds=self._timer.remaining(),
            percentage=answered * 100 / total,
        )

    def feedback(self, result: AnswerResult) -> Optional[Feedback]:
        if not self.config.show_immediate_feedback:
            return None
        question = self._answered_question(result.question_id)
        if result.correct:
            text = CORRECT_FEEDBACK
        else:
            text = question.explanation or RETRY_HINTS[question.question_type]
        return Feedback(correct=result.correct, expected=question.correct_answer, explanation=text)

    def _answered_question(self, question_id: int) -> Question:
        for q in self._questions[: self._cursor]:
            if q.id == question_id:
                return q
        raise InvalidState(f"Question {question_id} has not been answered in this session")

    def _require_completed(self, what: str) -> None:
        if self._state is not SessionState.COMPLETED:
            raise InvalidState(f"{what} is only available once the session is completed")

    @property
    def score(self) -> Score:
        self._require_completed("Score")
        assert self._score is not None
        return self._score

    @property
    def performance_level(self) -> PerformanceLevel:
        return self.score.performance_level

    @property
    def results(self) -> Tuple[AnswerResult, ...]:
        self._require_completed("Answer history")
        return tuple(self._results)

    def review(self) -> List[Tuple[Question, AnswerResult]]:
        self._require_completed("Review")
        if not self.config.allow_review:
            raise InvalidState("Review is disabled for this mix")
        return list(zip(self._questions, self._results))

    def to_result(self) -> QuizResult:
        score = self.score
        assert self.completed_at is not None
        return QuizResult(
            session_id=self.session_id,
            profile_id=self.profile_id,
            mix_id=self.mix_id,
            config=self.config.to_json(),
            started_at=self.started_at,
            completed_at=self.completed_at,
            score=score,
            questions=self._questions,
            results=tuple(self._results),
            abandoned=self.abandoned,
            subject_accuracy=accuracy_by(self._questions, self._results, lambda q: q.subject),
            difficulty_accuracy=accuracy_by(self._questions, self._results, lambda q: int(q.difficulty)),
        )


__all__ = ["QuizSession", "SessionState", "SessionProgress", "accuracy_by"]
