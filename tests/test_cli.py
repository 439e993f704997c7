import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from ksquiz.app import explain
from ksquiz.app.cli import main
from ksquiz.app.quiz_engine import QuizEngine
from ksquiz.storage.connection import ConnectionManager
from ksquiz.storage.content import SqliteContentProvider
from ksquiz.storage.results import QuizResultStore
from tests.factories import add_profile, mix


def run(*argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(list(argv))
    return code, out.getvalue(), err.getvalue()


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.data_dir = str(Path(self.tmp.name) / "data")

    def tearDown(self) -> None:
        explain.enable(False)
        self.tmp.cleanup()

    def test_init_creates_migrates_and_seeds(self) -> None:
        code, out, _ = run("init", "--data-dir", self.data_dir)
        self.assertEqual(code, 0)
        self.assertTrue((Path(self.data_dir) / "quiz.db").exists())
        self.assertIn("Schema version: 4", out)
        self.assertIn("Seeded", out)
        self.assertIn("  - times_tables:", out)

        code, out, _ = run("init", "--data-dir", self.data_dir)
        self.assertEqual(code, 0)
        self.assertNotIn("Seeded", out)

    def test_init_without_seed(self) -> None:
        code, out, _ = run("init", "--data-dir", self.data_dir, "--no-seed")
        self.assertEqual(code, 0)
        self.assertIn("Questions: 0", out)

    def test_init_explain_traces_migrations(self) -> None:
        code, out, _ = run("init", "--data-dir", self.data_dir, "--explain", "--no-seed")
        self.assertEqual(code, 0)
        self.assertIn("[EXPLAIN] migration_applied", out)

    def test_init_reports_unrecoverable_errors(self) -> None:
        code, _, err = run("init", "--config", str(Path(self.tmp.name) / "missing.yml"))
        self.assertEqual(code, 1)
        self.assertIn("ERROR:", err)

    def test_init_reports_malformed_pack(self) -> None:
        pack = Path(self.tmp.name) / "pack.yml"
        pack.write_text(
            "questions:\n"
            "  - subject: science\n"
            "    key_stage: KS2\n"
            "    type: multiple_choice\n"
            "    text: Which is a mammal?\n"
            "    choices: [{id: a}, {id: b, text: Frog}]\n"
            "    answer: a\n",
            encoding="utf-8",
        )
        cfg = Path(self.tmp.name) / "cfg.yml"
        cfg.write_text(f"content:\n  pack_path: '{pack.as_posix()}'\n", encoding="utf-8")
        code, _, err = run("init", "--config", str(cfg), "--data-dir", self.data_dir)
        self.assertEqual(code, 1)
        self.assertIn("ERROR:", err)
        self.assertIn("Invalid pack question", err)

    def test_status(self) -> None:
        code, _, err = run("status", "--data-dir", self.data_dir)
        self.assertEqual(code, 1)
        self.assertIn("ksquiz init", err)
        run("init", "--data-dir", self.data_dir)
        code, out, _ = run("status", "--data-dir", self.data_dir)
        self.assertEqual(code, 0)
        self.assertIn("Schema version: 4 (latest 4)", out)
        self.assertIn("Pending migrations: none", out)
        self.assertIn("Connections: active=0 idle=1 max=1", out)

    def test_history(self) -> None:
        run("init", "--data-dir", self.data_dir)
        with ConnectionManager(Path(self.data_dir) / "quiz.db") as db:
            profile = add_profile(db)
            engine = QuizEngine(SqliteContentProvider(db), QuizResultStore(db))
            session = engine.start_session(mix(question_count=4), profile_id=profile)
            while session.current_question is not None:
                session.submit_answer(session.current_question.correct_answer)
            engine.finish(session)

        export = Path(self.tmp.name) / "attempts.ndjson"
        code, out, _ = run("history", "--data-dir", self.data_dir, "--profile", str(profile), "--export", str(export))
        self.assertEqual(code, 0)
        self.assertIn("4/4", out)
        self.assertIn("mathematics: 100%", out)
        self.assertEqual(len(export.read_text(encoding="utf-8").splitlines()), 4)

        code, out, _ = run("history", "--data-dir", self.data_dir, "--profile", "999")
        self.assertEqual(code, 0)
        self.assertIn("No sessions recorded", out)


if __name__ == "__main__":
    unittest.main()
