"""Tests for the operator command line."""

import io
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from fakes import FakeGitHub, make_store
from fitness_data import cli
from fitness_data.config import Settings
from fitness_data.context import CoachContext
from fitness_data.errors import ConfigError
from fitness_data.models import COMPLETED, LoggedExercise, LoggedSet, WorkoutSession
from fitness_data.workout_log import render_session

WORKOUT_PATH = "weeks/2026-W05/2026-01-27.md"


def run(ctx, *argv):
    out = io.StringIO()
    with patch.object(cli, "load_settings", return_value=ctx.settings), \
            patch.object(cli.CoachContext, "from_settings", return_value=ctx), \
            redirect_stdout(out):
        code = cli.main(list(argv))
    return code, out.getvalue()


class CliTests(unittest.TestCase):
    def setUp(self):
        session = WorkoutSession(
            date="2026-01-27",
            workout_type="Upper",
            status=COMPLETED,
            exercises=[LoggedExercise(name="Bench Press", sets=[LoggedSet(reps=3, weight=225, rpe=8)])],
        )
        self.store, self.fake = make_store(FakeGitHub({WORKOUT_PATH: render_session(session)}))
        self.ctx = CoachContext(Settings(), self.store)

    def test_record(self):
        code, out = run(self.ctx, "record", WORKOUT_PATH)
        self.assertEqual(code, 0)
        self.assertIn("Bench Press", out)
        self.assertIn("prs.yaml", self.fake.files())

    def test_record_missing_document(self):
        with self.assertLogs("fitness_data", level="ERROR"):
            code, _ = run(self.ctx, "record", "weeks/2026-W05/2026-01-29.md")
        self.assertEqual(code, 1)

    def test_inspect_clean_repository(self):
        code, out = run(self.ctx, "inspect")
        self.assertEqual(code, 0)
        self.assertIn("No half-finished workout branches", out)

    def test_inspect_reports_stale_branch(self):
        self.ctx.sessions.open("2026-01-30", "Lower")
        self.fake.branches["workout/2026-01-30-lower"].pop("workouts/in-progress.md")
        code, out = run(self.ctx, "inspect")
        self.assertEqual(code, 1)
        self.assertIn("workout/2026-01-30-lower", out)

    def test_trends_without_history(self):
        code, out = run(self.ctx, "trends")
        self.assertEqual(code, 0)
        self.assertIn("No e1RM data yet", out)

    def test_fatigue(self):
        code, out = run(self.ctx, "fatigue", "--week", "2026-W05")
        self.assertEqual(code, 0)
        self.assertIn("Fatigue score: 4/10", out)
        self.assertIn("- [high] 8 weeks since last deload", out)
        self.assertIn("analytics/fatigue-signals.yaml", self.fake.files())

    def test_deload_then_dismiss(self):
        code, out = run(self.ctx, "deload", "--week", "2026-W05", "--reason", "travel")
        self.assertEqual(code, 0)
        self.assertIn("Week 2026-W05 marked as a deload week", out)
        _, out = run(self.ctx, "deload", "--week", "2026-W05")
        self.assertIn("already marked", out)
        _, out = run(self.ctx, "dismiss-fatigue")
        self.assertIn("No deload warning to dismiss", out)

    def test_missing_configuration(self):
        out = io.StringIO()
        with patch.object(cli, "load_settings", side_effect=ConfigError("Missing required settings: GITHUB_TOKEN")), \
                redirect_stdout(out):
            code = cli.main(["inspect"])
        self.assertEqual(code, 2)
        self.assertIn("GITHUB_TOKEN", out.getvalue())


if __name__ == "__main__":
    unittest.main()
