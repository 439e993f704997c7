import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr
from decimal import Decimal
from pathlib import Path
from unittest import mock

from ksquiz.config.config import DEFAULT_THRESHOLDS, load_config, resolve_data_dir, validate_config


class ConfigTests(unittest.TestCase):
    def test_packaged_defaults(self) -> None:
        cfg = validate_config(load_config())
        self.assertEqual(cfg["storage"]["db_filename"], "quiz.db")
        self.assertEqual(cfg["scoring"]["thresholds"]["excellent"], 90)
        self.assertEqual(cfg["evaluation"]["numeric_tolerance"], Decimal(0))
        self.assertTrue(cfg["content"]["seed_if_empty"])
        self.assertFalse(cfg["explain"])

    def test_empty_config_gets_defaults(self) -> None:
        cfg = validate_config({})
        self.assertEqual(cfg["storage"]["busy_timeout_ms"], 5000)
        self.assertEqual(cfg["scoring"]["thresholds"], {k: float(v) for k, v in DEFAULT_THRESHOLDS.items()})

    def test_null_or_scalar_sections_get_defaults(self) -> None:
        cfg = validate_config({"scoring": None, "storage": None, "content": None, "evaluation": None})
        self.assertEqual(cfg["scoring"]["thresholds"], {k: float(v) for k, v in DEFAULT_THRESHOLDS.items()})
        self.assertEqual(cfg["storage"]["db_filename"], "quiz.db")
        self.assertTrue(cfg["content"]["seed_if_empty"])
        err = io.StringIO()
        with redirect_stderr(err):
            cfg = validate_config({"scoring": "loud"})
        self.assertEqual(cfg["scoring"]["thresholds"]["excellent"], 90)
        self.assertIn("WARNING:", err.getvalue())

    def test_bad_values_fall_back_with_warning(self) -> None:
        raw = {
            "storage": {"db_filename": "../escape.db", "busy_timeout_ms": -5},
            "scoring": {"thresholds": {"excellent": 50, "good": 60, "fair": 70, "needs_improvement": 80}},
            "evaluation": {"numeric_tolerance": -1},
        }
        err = io.StringIO()
        with redirect_stderr(err):
            cfg = validate_config(raw)
        self.assertEqual(cfg["storage"]["db_filename"], "quiz.db")
        self.assertEqual(cfg["storage"]["busy_timeout_ms"], 5000)
        self.assertEqual(cfg["scoring"]["thresholds"]["excellent"], 90)
        self.assertEqual(cfg["evaluation"]["numeric_tolerance"], Decimal(0))
        self.assertIn("WARNING:", err.getvalue())

    def test_yaml_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            p = Path(tmp) / "cfg.yml"
            p.write_text("evaluation:\n  numeric_tolerance: 0.01\nexplain: true\n", encoding="utf-8")
            cfg = validate_config(load_config(str(p)))
        self.assertEqual(cfg["evaluation"]["numeric_tolerance"], Decimal("0.01"))
        self.assertTrue(cfg["explain"])

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/ksquiz.yml")

    def test_data_dir_resolution_order(self) -> None:
        cfg = {"storage": {"data_dir": "/from/config"}}
        with mock.patch.dict(os.environ, {"KSQUIZ_DATA_DIR": "/from/env"}):
            self.assertEqual(resolve_data_dir(cfg), Path("/from/env"))
            self.assertEqual(resolve_data_dir(cfg, "/from/flag"), Path("/from/flag"))
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_data_dir(cfg), Path("/from/config"))
            with mock.patch.dict(os.environ, {"XDG_DATA_HOME": "/xdg"}):
                self.assertEqual(resolve_data_dir({"storage": {}}), Path("/xdg/ksquiz"))


if __name__ == "__main__":
    unittest.main()
