from .evaluator import AnswerEvaluator, evaluate
from .mix import MixConfig, build_mix_config, validate_mix_config
from .randomizer import QuestionRandomizer
from .scorer import DEFAULT_THRESHOLDS, PerformanceLevel, PerformanceThresholds, Score, compute_score
from .session import QuizSession, SessionProgress, SessionState
from .timer import SessionTimer

__all__ = [
    "AnswerEvaluator",
    "evaluate",
    "MixConfig",
    "build_mix_config",
    "validate_mix_config",
    "QuestionRandomizer",
    "DEFAULT_THRESHOLDS",
    "PerformanceLevel",
    "PerformanceThresholds",
    "Score",
    "compute_score",
    "QuizSession",
    "SessionProgress",
    "SessionState",
    "SessionTimer",
]
