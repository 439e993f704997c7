import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from ksquiz.engine.mix import build_mix_config
from ksquiz.errors import NotFoundError, ValidationError
from ksquiz.models import (
    Choice,
    CoordinatesAnswer,
    KeyStage,
    MappingAnswer,
    MultipleChoiceAnswer,
    Point,
    Question,
    QuestionType,
    Subject,
    TextAnswer,
)
from ksquiz.storage.content import (
    SqliteContentProvider,
    install_pack,
    load_pack,
    question_errors,
    question_from_pack,
    seed_if_empty,
)
from tests.factories import choice_q, drag_q, hotspot_q, migrated_db, numeric_q, text_q


class SqliteContentProviderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = migrated_db()
        self.content = SqliteContentProvider(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_add_and_get_question(self) -> None:
        qid = self.content.add_question(choice_q(0, "c"))
        q = self.content.get_question(qid)
        self.assertEqual(q.id, qid)
        self.assertEqual(q.subject, "science")
        self.assertIs(q.question_type, QuestionType.MULTIPLE_CHOICE)
        self.assertEqual(q.correct_answer, MultipleChoiceAnswer("c"))
        self.assertEqual([c.id for c in q.choices], ["a", "b", "c", "d"])
        with self.assertRaises(NotFoundError):
            self.content.get_question(9999)

    def test_text_alternatives_survive_storage(self) -> None:
        qid = self.content.add_question(text_q(0, "large", "huge"))
        self.assertEqual(self.content.get_question(qid).correct_answer, TextAnswer("large", ("huge",)))

    def test_question_validation(self) -> None:
        bad = choice_q(0, "z")
        with self.assertRaises(ValidationError):
            self.content.add_question(bad)
        no_choices = choice_q(0).with_choices(())
        with self.assertRaises(ValidationError):
            self.content.add_question(no_choices)
        wrong_kind = Question(
            id=0, subject="english", key_stage=KeyStage.KS1, question_type=QuestionType.NUMERIC,
            prompt="2+2", correct_answer=TextAnswer("4"),
        )
        with self.assertRaises(ValidationError):
            self.content.add_question(wrong_kind)
        with self.assertRaises(NotFoundError):
            self.content.add_question(numeric_q(0, subject="astrology"))
        self.assertTrue(self.content.is_empty())

    def test_candidate_filtering(self) -> None:
        self.content.add_question(numeric_q(0, 1, difficulty=1))
        self.content.add_question(numeric_q(0, 2, difficulty=3))
        self.content.add_question(numeric_q(0, 3, difficulty=5))
        self.content.add_question(numeric_q(0, 4, difficulty=2, key_stage=KeyStage.KS2))
        self.content.add_question(text_q(0, "cat"))

        cfg = build_mix_config(
            {"subjects": ["mathematics"], "key_stages": ["KS1"], "difficulty_range": (1, 3), "question_count": 1}
        )
        found = self.content.candidate_questions(cfg)
        self.assertEqual([q.correct_answer.value for q in found], [1, 2])
        self.assertEqual(self.content.count_candidates(cfg), 2)
        ids = [q.id for q in found]
        self.assertEqual(ids, sorted(ids))

        typed = build_mix_config(
            {"subjects": ["mathematics", "english"], "key_stages": ["KS1", "KS2"], "question_count": 1,
             "question_types": ["fill_blank"]}
        )
        self.assertEqual(self.content.count_candidates(typed), 1)

    def test_subjects_and_statistics(self) -> None:
        sid = self.content.add_subject(Subject(name="music", display_name="Music"))
        self.assertEqual(self.content.add_subject(Subject(name="music", display_name="Music")), sid)
        self.content.add_question(numeric_q(0))
        stats = self.content.statistics()
        self.assertEqual(stats.total_questions, 1)
        self.assertEqual(stats.total_subjects, 8)
        self.assertEqual(stats.total_assets, 0)
        self.assertEqual(stats.questions_by_subject["mathematics"], 1)
        self.assertEqual(stats.questions_by_subject["music"], 0)
        self.assertIn("music", [s.name for s in self.content.subjects()])

    def test_drag_drop_hotspot_and_multi_select_survive_storage(self) -> None:
        drag = self.content.get_question(self.content.add_question(drag_q(0)))
        self.assertIs(drag.question_type, QuestionType.DRAG_DROP)
        self.assertEqual(drag.items, ("cat", "frog", "owl", "shark"))
        self.assertEqual(drag.correct_answer, drag_q(0).correct_answer)

        spot = self.content.get_question(self.content.add_question(hotspot_q(0)))
        self.assertEqual(spot.image_url, "images/uk-map.png")
        self.assertEqual(spot.correct_answer, CoordinatesAnswer((Point(240, 310, "London"),)))

        multi = replace(choice_q(0), correct_answer=MultipleChoiceAnswer(["a", "d"]))
        stored = self.content.get_question(self.content.add_question(multi))
        self.assertEqual(stored.correct_answer.choice_ids, frozenset({"a", "d"}))

    def test_drag_drop_and_hotspot_validation(self) -> None:
        stray = replace(drag_q(0), correct_answer=MappingAnswer({"cat": "mammal", "dog": "mammal"}))
        empty = replace(drag_q(0), correct_answer=MappingAnswer({}))
        no_image = replace(hotspot_q(0), image_url=None)
        no_points = replace(hotspot_q(0), correct_answer=CoordinatesAnswer(()))
        unknown_choice = replace(choice_q(0), correct_answer=MultipleChoiceAnswer(["a", "z"]))
        for bad in (stray, empty, no_image, no_points, unknown_choice):
            with self.assertRaises(ValidationError):
                self.content.add_question(bad)
        self.assertIn("Hotspot questions must have an image", question_errors(no_image))
        self.assertTrue(self.content.is_empty())


class SeedingTests(unittest.TestCase):
    def test_starter_pack_seeds_once(self) -> None:
        db = migrated_db()
        content = SqliteContentProvider(db)
        added = seed_if_empty(content)
        self.assertGreater(added, 30)
        self.assertEqual(content.statistics().total_questions, added)
        self.assertEqual(seed_if_empty(content), 0)
        db.close()

    def test_pack_from_file_is_atomic(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            pack = Path(tmp) / "pack.yml"
            pack.write_text(
                "questions:\n"
                "  - {subject: mathematics, key_stage: KS1, type: numeric, text: '1+1', answer: 2}\n"
                "  - {subject: mathematics, key_stage: KS9, type: numeric, text: 'bad', answer: 1}\n",
                encoding="utf-8",
            )
            db = migrated_db()
            content = SqliteContentProvider(db)
            with self.assertRaises(ValidationError):
                seed_if_empty(content, pack)
            self.assertTrue(content.is_empty())
            db.close()

    def test_question_from_pack(self) -> None:
        q = question_from_pack(
            {"subject": "science", "key_stage": "KS2", "type": "multiple_choice", "text": "?",
             "choices": [{"id": "a", "text": "A"}, {"id": "b", "text": "B"}], "answer": "b", "difficulty": 2}
        )
        self.assertEqual(q.choices, (Choice("a", "A"), Choice("b", "B")))
        self.assertEqual(q.correct_answer, MultipleChoiceAnswer("b"))
        self.assertEqual(q.difficulty, 2)

    def test_malformed_pack_entries_raise_validation_error(self) -> None:
        base = {"subject": "science", "key_stage": "KS2", "type": "multiple_choice", "text": "?", "answer": "a"}
        bad_entries = [
            dict(base, choices=[{"id": "a"}]),
            dict(base, choices=[{"text": "A"}]),
            dict(base, choices=["a", "b"]),
            dict(base, choices=[{"id": "a", "text": "A"}], difficulty="hard"),
            {"key_stage": "KS2", "type": "numeric", "text": "?", "answer": 1},
            dict(base, type="drag_drop", answer=["cat", "mammal"]),
            dict(base, type="hotspot", answer=[{"x": 1}]),
            "not a mapping",
        ]
        for entry in bad_entries:
            with self.assertRaises(ValidationError, msg=repr(entry)):
                question_from_pack(entry)

    def test_pack_drag_drop_and_hotspot(self) -> None:
        drag = question_from_pack(
            {"subject": "science", "key_stage": "KS2", "type": "drag_drop", "text": "Sort",
             "items": ["cat", "frog"], "answer": {"cat": "mammal", "frog": "amphibian"}}
        )
        self.assertEqual(drag.items, ("cat", "frog"))
        self.assertEqual(drag.correct_answer, MappingAnswer({"frog": "amphibian", "cat": "mammal"}))
        spot = question_from_pack(
            {"subject": "geography", "key_stage": "KS2", "type": "hotspot", "text": "Find it",
             "image_url": "map.png", "answer": [{"x": 10, "y": 20}]}
        )
        self.assertEqual(spot.correct_answer, CoordinatesAnswer((Point(10, 20),)))
        self.assertEqual(spot.image_url, "map.png")
        multi = question_from_pack(
            {"subject": "science", "key_stage": "KS2", "type": "multiple_choice", "text": "?",
             "choices": [{"id": "a", "text": "A"}, {"id": "b", "text": "B"}], "answer": ["b", "a"]}
        )
        self.assertTrue(multi.correct_answer.is_multi)

    def test_malformed_subject_raises_validation_error(self) -> None:
        db = migrated_db()
        content = SqliteContentProvider(db)
        with self.assertRaises(ValidationError):
            install_pack(content, {"subjects": [{"display_name": "No name"}], "questions": []})
        db.close()

    def test_bundled_pack_loads(self) -> None:
        data = load_pack()
        self.assertEqual(data["name"], "starter")
        self.assertTrue(all("subject" in q for q in data["questions"]))


if __name__ == "__main__":
    unittest.main()
