from __future__ import annotations

"""Quiz engine: orchestrates content, randomizer, session and result sink.

Flow: validated MixConfig -> content provider candidates -> randomizer
picks N questions -> QuizSession runs -> finish() hands the QuizResult to
the result sink exactly once.
"""

import time
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Set, Union

from ..engine.evaluator import NUMERIC_TOLERANCE
from ..engine.mix import MixConfig, validate_mix_config
from ..engine.randomizer import QuestionRandomizer
from ..engine.scorer import DEFAULT_THRESHOLDS, PerformanceThresholds
from ..engine.session import QuizSession, SessionState
from ..errors import InvalidState
from ..models import QuizResult
from ..storage.content import ContentProvider
from ..storage.results import ResultSink
from .custom_mixes import CustomMixManager


class QuizEngine:
    def __init__(
        self,
        content: ContentProvider,
        results: Optional[ResultSink] = None,
        mixes: Optional[CustomMixManager] = None,
        randomizer: Optional[QuestionRandomizer] = None,
        *,
        thresholds: PerformanceThresholds = DEFAULT_THRESHOLDS,
        numeric_tolerance: Decimal = NUMERIC_TOLERANCE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.content = content
        self.results = results
        self.mixes = mixes
        self.randomizer = randomizer or QuestionRandomizer()
        self.thresholds = thresholds
        self.numeric_tolerance = numeric_tolerance
        self.clock = clock
        self._finished: Set[str] = set()

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        content: ContentProvider,
        results: Optional[ResultSink] = None,
        mixes: Optional[CustomMixManager] = None,
        randomizer: Optional[QuestionRandomizer] = None,
    ) -> "QuizEngine":
        """Build an engine from a validated config dict (see ``config.validate_config``)."""
        return cls(
            content,
            results,
            mixes,
            randomizer,
            thresholds=PerformanceThresholds.from_mapping(cfg.get("scoring", {}).get("thresholds")),
            numeric_tolerance=Decimal(str(cfg.get("evaluation", {}).get("numeric_tolerance", 0))),
        )

    def start_session(
        self,
        config: Union[MixConfig, Mapping[str, Any]],
        profile_id: Optional[int] = None,
        mix_id: Optional[int] = None,
    ) -> QuizSession:
        """Select questions for ``config`` and return a started session.

        Raises ValidationError for a bad config and InsufficientQuestions
        when the filtered pool is smaller than ``question_count``.
        """
        valid = validate_mix_config(config)
        pool = self.content.candidate_questions(valid)
        questions = self.randomizer.select(pool, valid.question_count, randomize_order=valid.randomize_order)
        session = QuizSession(
            questions,
            valid,
            profile_id=profile_id,
            mix_id=mix_id,
            clock=self.clock,
            thresholds=self.thresholds,
            numeric_tolerance=self.numeric_tolerance,
        )
        session.start()
        return session

    def start_from_mix(self, mix_id: int, profile_id: Optional[int] = None) -> QuizSession:
        if self.mixes is None:
            raise InvalidState("No custom mix manager configured")
        mix = self.mixes.get(mix_id)
        return self.start_session(mix.config, profile_id=profile_id, mix_id=mix.id)

    def finish(self, session: QuizSession) -> QuizResult:
        """Convert a completed session into a QuizResult and record it once."""
        if session.state is not SessionState.COMPLETED:
            raise InvalidState("Only completed sessions can be finished")
        if session.session_id in self._finished:
            raise InvalidState(f"Session {session.session_id} was already finished")
        result = session.to_result()
        if self.results is not None:
            self.results.record_result(result)
        self._finished.add(session.session_id)
        return result


__all__ = ["QuizEngine"]
