import unittest

from ksquiz.engine.mix import MixConfig, build_mix_config, validate_mix_config
from ksquiz.errors import ValidationError
from ksquiz.models import KeyStage, QuestionType


def base(**overrides):
    data = {"subjects": ["mathematics"], "key_stages": ["KS1"], "question_count": 10}
    data.update(overrides)
    return data


class MixValidationTests(unittest.TestCase):
    def test_question_count_bounds(self) -> None:
        for ok in (1, 100):
            self.assertEqual(build_mix_config(base(question_count=ok)).question_count, ok)
        for bad in (0, 101):
            with self.assertRaises(ValidationError) as ctx:
                build_mix_config(base(question_count=bad))
            self.assertIn("Question count must be between 1 and 100", ctx.exception.errors)

    def test_boolean_question_count_rejected(self) -> None:
        for bad in (True, False):
            with self.assertRaises(ValidationError):
                build_mix_config(base(question_count=bad))
        sneaky = MixConfig.model_construct(**dict(base(), question_count=True))
        with self.assertRaises(ValidationError) as ctx:
            validate_mix_config(sneaky)
        self.assertIn("Question count must be between 1 and 100", ctx.exception.errors)

    def test_difficulty_range(self) -> None:
        self.assertEqual(build_mix_config(base(difficulty_range=(1, 5))).difficulty_range, (1, 5))
        with self.assertRaises(ValidationError) as ctx:
            build_mix_config(base(difficulty_range=(4, 2)))
        self.assertIn("Invalid difficulty range", ctx.exception.errors)
        with self.assertRaises(ValidationError):
            build_mix_config(base(difficulty_range=(0, 3)))
        with self.assertRaises(ValidationError):
            build_mix_config(base(difficulty_range=(2, 6)))

    def test_time_limit_bounds(self) -> None:
        for ok in (60, 3600, None):
            self.assertEqual(build_mix_config(base(time_limit=ok)).time_limit, ok)
        for bad in (30, 4000):
            with self.assertRaises(ValidationError):
                build_mix_config(base(time_limit=bad))

    def test_empty_subjects_and_key_stages(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            build_mix_config(base(subjects=[], key_stages=[]))
        self.assertIn("At least one subject must be selected", ctx.exception.errors)
        self.assertIn("At least one key stage must be selected", ctx.exception.errors)

    def test_invalid_config_is_never_constructed(self) -> None:
        with self.assertRaises(ValueError):
            MixConfig(subjects={"mathematics"}, key_stages={KeyStage.KS1}, question_count=0)

    def test_config_is_frozen(self) -> None:
        cfg = build_mix_config(base())
        with self.assertRaises(Exception):
            cfg.question_count = 50  # type: ignore[misc]

    def test_unknown_field_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            build_mix_config(base(colour="red"))

    def test_validate_accepts_model_and_mapping(self) -> None:
        cfg = build_mix_config(base(question_types=["numeric"]))
        self.assertIs(validate_mix_config(cfg), cfg)
        self.assertEqual(cfg.question_types, frozenset({QuestionType.NUMERIC}))
        self.assertEqual(validate_mix_config(base()).key_stages, frozenset({KeyStage.KS1}))

    def test_json_round_trip_is_sorted(self) -> None:
        cfg = build_mix_config(base(subjects=["science", "english"], key_stages=["KS2", "KS1"], time_limit=600))
        data = cfg.to_json()
        self.assertEqual(data["subjects"], ["english", "science"])
        self.assertEqual(data["key_stages"], ["KS1", "KS2"])
        self.assertEqual(MixConfig.from_json(data), cfg)


if __name__ == "__main__":
    unittest.main()
