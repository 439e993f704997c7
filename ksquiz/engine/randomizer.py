from __future__ import annotations

"""Question selection and ordering for a session."""

import random
from typing import Dict, Iterable, List, Optional

from ..app.explain import trace as xtrace
from ..errors import InsufficientQuestions
from ..models import Question, QuestionType
from ..util.randomness import make_rng


class QuestionRandomizer:
    """Draws exactly N distinct questions from a pre-filtered candidate pool.

    Selection is always without replacement. With ``randomize_order`` the
    result is a uniform random permutation of the sampled subset; without it
    the subset is ordered by ascending id. Multiple-choice options are
    shuffled independently for every selected question.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng if rng is not None else make_rng()

    def select(self, pool: Iterable[Question], count: int, *, randomize_order: bool = True) -> List[Question]:
        unique: Dict[int, Question] = {}
        for q in pool:
            unique.setdefault(q.id, q)
        candidates = list(unique.values())
        if count > len(candidates):
            raise InsufficientQuestions(count, len(candidates))
        if count < 0:
            raise ValueError("count must be non-negative")

        picked = self.rng.sample(candidates, count)
        if not randomize_order:
            picked.sort(key=lambda q: q.id)

        out = [self._shuffle_choices(q) for q in picked]
        xtrace(
            "questions_selected",
            {"pool": len(candidates), "count": count, "ids": [q.id for q in out], "randomized": randomize_order},
        )
        return out

    def _shuffle_choices(self, question: Question) -> Question:
        if question.question_type is QuestionType.MULTIPLE_CHOICE and question.choices:
            choices = list(question.choices)
            self.rng.shuffle(choices)
            return question.with_choices(choices)
        if question.question_type is QuestionType.DRAG_DROP and question.items:
            items = list(question.items)
            self.rng.shuffle(items)
            return question.with_items(items)
        return question


__all__ = ["QuestionRandomizer"]
