"""Tests for the post-workout and weekly analytics jobs."""

import os
import tempfile
import unittest

from fakes import FakeGitHub, make_store
from fitness_data.config import Settings
from fitness_data.context import CoachContext
from fitness_data.errors import ConflictError
from fitness_data.jobs import (
    assess_fatigue,
    dismiss_fatigue_warning,
    load_planned,
    load_sessions,
    load_sessions_from_mirror,
    mark_deload,
    recent_weeks,
    record_workout,
    weekly_analytics,
)
from fitness_data.ledgers import parse_e1rm_history, parse_fatigue_signals, parse_prs
from fitness_data.models import COMPLETED, LoggedExercise, LoggedSet, WorkoutSession
from fitness_data.pr_tracker import MILESTONE_PR
from fitness_data.workout_log import render_session

PRS_YAML = """\
bench_press:
  current: {weight: 220, reps: 3, date: "2026-01-20", estimated_1rm: 242}
  history: []
"""


def workout(day, *exercises, workout_type="Upper"):
    return WorkoutSession(date=day, workout_type=workout_type, status=COMPLETED, exercises=list(exercises))


def lift(name, *sets):
    return LoggedExercise(name=name, sets=[LoggedSet(reps=r, weight=w, rpe=rpe) for w, r, rpe in sets])


class RecordWorkoutTests(unittest.TestCase):
    def setUp(self):
        self.store, self.fake = make_store(FakeGitHub({"prs.yaml": PRS_YAML}))
        self.ctx = CoachContext(Settings(), self.store)
        self.session = workout(
            "2026-01-27",
            lift("Bench Press", (225, 3, 8), (225, 2, 9)),
            lift("Back Squat", (275, 5, 9)),
            LoggedExercise(name="Pull-Ups", sets=[LoggedSet(reps=10, weight="BW", rpe=8)]),
        )

    def test_prs_written_back(self):
        result = record_workout(self.ctx, self.session)

        self.assertEqual([c.exercise_key for c in result.celebrations], ["bench_press", "squat"])
        self.assertEqual(result.celebrations[0].pr_type, MILESTONE_PR)
        prs = parse_prs(self.fake.files()["prs.yaml"])
        self.assertEqual(prs["bench_press"].current.weight, 225)
        self.assertEqual(prs["bench_press"].current.workout_ref, "weeks/2026-W05/2026-01-27.md")
        self.assertEqual(prs["bench_press"].history[0].weight, 220)
        self.assertEqual(prs["squat"].current.reps, 5)
        self.assertIsNotNone(result.prs_hash)

    def test_e1rm_history_created(self):
        result = record_workout(self.ctx, self.session)

        history = parse_e1rm_history(self.fake.files()["analytics/e1rm-history.yaml"])
        self.assertEqual(set(history), {"bench_press", "squat"})
        self.assertEqual(history["bench_press"].sessions[0].date, "2026-01-27")
        self.assertEqual({p.exercise for p in result.e1rm_prs}, {"bench_press", "squat"})
        self.assertEqual(len(result.e1rm_summary), 2)

    def test_difficulty_and_message(self):
        result = record_workout(self.ctx, self.session)
        self.assertEqual(result.difficulty.total_sets, 4)
        message = result.message()
        self.assertIn("TWO PLATE CLUB!", message)
        self.assertIn("Session difficulty:", message)
        self.assertEqual([p.exercise for p in result.prs_hit], ["Bench Press", "Back Squat"])

    def test_second_run_finds_no_new_prs(self):
        record_workout(self.ctx, self.session)
        prs_before = self.fake.files()["prs.yaml"]

        result = record_workout(self.ctx, self.session)

        self.assertEqual(result.celebrations, [])
        self.assertIsNone(result.prs_hash)
        self.assertEqual(self.fake.files()["prs.yaml"], prs_before)

    def test_concurrent_ledger_update_conflicts(self):
        self.fake.fail("PUT", "/contents/prs.yaml", 409, "prs.yaml does not match")
        with self.assertRaises(ConflictError):
            record_workout(self.ctx, self.session)
        self.assertEqual(self.fake.files()["prs.yaml"], PRS_YAML)

    def test_e1rm_conflict_writes_nothing_and_retry_celebrates(self):
        self.fake.fail("PUT", "/contents/analytics/e1rm-history.yaml", 409, "does not match")
        with self.assertRaises(ConflictError):
            record_workout(self.ctx, self.session)
        self.assertEqual(self.fake.files()["prs.yaml"], PRS_YAML)
        self.assertNotIn("analytics/e1rm-history.yaml", self.fake.files())

        result = record_workout(self.ctx, self.session)

        self.assertEqual([c.exercise_key for c in result.celebrations], ["bench_press", "squat"])
        self.assertEqual(parse_prs(self.fake.files()["prs.yaml"])["bench_press"].current.weight, 225)
        self.assertIsNotNone(result.e1rm_hash)

    def test_retry_after_prs_conflict_keeps_one_e1rm_entry(self):
        self.fake.fail("PUT", "/contents/prs.yaml", 409, "prs.yaml does not match")
        with self.assertRaises(ConflictError):
            record_workout(self.ctx, self.session)

        result = record_workout(self.ctx, self.session)

        self.assertEqual(len(result.celebrations), 2)
        self.assertIsNone(result.e1rm_hash)
        history = parse_e1rm_history(self.fake.files()["analytics/e1rm-history.yaml"])
        self.assertEqual(len(history["bench_press"].sessions), 1)

    def test_session_without_loads_writes_nothing(self):
        session = workout("2026-01-27", LoggedExercise(name="Plank", sets=[LoggedSet(reps=1, weight="BW")]))
        result = record_workout(self.ctx, session)
        self.assertEqual(result.celebrations, [])
        self.assertIsNone(result.e1rm_hash)
        self.assertIsNone(result.difficulty)
        self.assertNotIn("analytics/e1rm-history.yaml", self.fake.files())


class LoadSessionsTests(unittest.TestCase):
    def test_recent_weeks_cross_year(self):
        self.assertEqual(recent_weeks("2026-W02", 3), ["2025-W52", "2026-W01", "2026-W02"])

    def test_load_sessions_skips_plans_and_bad_documents(self):
        files = {
            "weeks/2026-W05/plan.md": "# Plan\n",
            "weeks/2026-W05/2026-01-27.md": render_session(workout("2026-01-27", lift("Bench", (200, 5, 8)))),
            "weeks/2026-W05/2026-01-29.md": "no front matter\n",
        }
        store, _ = make_store(FakeGitHub(files))
        with self.assertLogs("fitness_data.jobs", level="WARNING"):
            sessions = load_sessions(store, ["2026-W04", "2026-W05"])
        self.assertEqual([s.date for s in sessions], ["2026-01-27"])

    def test_load_sessions_from_mirror(self):
        with tempfile.TemporaryDirectory() as tmp:
            week_dir = os.path.join(tmp, "weeks", "2026-W05")
            os.makedirs(week_dir)
            with open(os.path.join(week_dir, "2026-01-28.md"), "w", encoding="utf-8") as f:
                f.write(render_session(workout("2026-01-28", lift("Squat", (275, 5, 8)))))
            with open(os.path.join(week_dir, "retro.md"), "w", encoding="utf-8") as f:
                f.write("# Retro\n")
            sessions = load_sessions_from_mirror(tmp, ["2026-W04", "2026-W05"])
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0].exercises[0].name, "Squat")


class WeeklyAnalyticsTests(unittest.TestCase):
    def setUp(self):
        prs = (
            "bench_press:\n"
            "  current: {weight: 225, reps: 3, date: \"2026-01-27\", estimated_1rm: 248}\n"
            "  history:\n"
            "    - {weight: 220, reps: 3, date: \"2026-01-13\", estimated_1rm: 242}\n"
        )
        e1rm = (
            "bench_press:\n"
            "  current_best: {e1rm: 248, date: \"2026-01-27\", weight: 225, reps: 3}\n"
            "  sessions:\n"
            "    - {date: \"2026-01-27\", e1rm: 248, weight: 225, reps: 3}\n"
            "    - {date: \"2025-12-30\", e1rm: 231, weight: 210, reps: 3}\n"
        )
        files = {
            "prs.yaml": prs,
            "analytics/e1rm-history.yaml": e1rm,
            "weeks/2026-W04/2026-01-20.md": render_session(workout("2026-01-20", lift("Bench Press", (190, 5, 8)))),
            "weeks/2026-W05/2026-01-27.md": render_session(
                workout("2026-01-27", lift("Bench Press", (200, 5, 8), (225, 3, 8)))
            ),
        }
        store, _ = make_store(FakeGitHub(files))
        self.ctx = CoachContext(Settings(), store)

    def test_sections(self):
        report = weekly_analytics(self.ctx, "2026-W05")

        self.assertTrue(report.startswith("# Training Analytics: 2026-W05\n"))
        self.assertIn("## PRs", report)
        self.assertIn("• Bench Press: 225 x 3", report)
        self.assertIn("| Bench Press | 248 | 231 | ↑ +17 |", report)
        self.assertIn("## Session Difficulty", report)
        self.assertIn("- 2026-01-27 Upper:", report)
        self.assertIn("## Week over Week", report)
        self.assertIn("Getting stronger", report)

    def test_quiet_week(self):
        report = weekly_analytics(self.ctx, "2026-W07", sessions=[])
        self.assertIn("No new PRs this week", report)
        self.assertNotIn("## Session Difficulty", report)
        self.assertNotIn("## Week over Week", report)


NOW = "2026-01-27T18:00:00+00:00"

PLAN = """\
---
week: 2026-W05
days:
  - date: 2026-01-27
    exercises:
      - {name: Bench Press, sets: 2, reps: 5, weight: 185}
---

# Week 5 Plan
"""


class FatigueJobTests(unittest.TestCase):
    def setUp(self):
        files = {
            "weeks/2026-W03/2026-01-13.md": render_session(workout("2026-01-13", lift("Squat", (275, 5, 7)))),
            "weeks/2026-W04/2026-01-20.md": render_session(workout("2026-01-20", lift("Squat", (275, 5, 7.5)))),
            "weeks/2026-W05/plan.md": PLAN,
            "weeks/2026-W05/2026-01-27.md": render_session(
                workout(
                    "2026-01-27",
                    lift("Squat", (275, 5, 8.5)),
                    lift("Bench Press", (185, 3, 9), (185, 2, 9.5)),
                )
            ),
        }
        self.store, self.fake = make_store(FakeGitHub(files))
        self.ctx = CoachContext(Settings(), self.store)

    def ledger(self):
        return parse_fatigue_signals(self.fake.files()["analytics/fatigue-signals.yaml"])

    def test_load_planned_reads_plan_days(self):
        planned = load_planned(self.store, ["2026-W04", "2026-W05"])
        self.assertEqual(list(planned), ["2026-01-27"])
        self.assertEqual(planned["2026-01-27"][0].reps, 5)

    def test_assess_writes_ledger(self):
        analysis = assess_fatigue(self.ctx, "2026-W05", now=NOW)

        self.assertEqual(analysis.score, 7)
        self.assertTrue(analysis.should_recommend_deload)
        state = self.ledger()
        self.assertEqual(state.current_score, 7)
        self.assertEqual(state.weeks_since_deload, 8)
        self.assertEqual(
            [s.signal_type for s in state.signals],
            ["weeks_since_deload", "rpe_creep", "missed_reps", "missed_reps"],
        )
        self.assertEqual(state.last_updated, NOW)

    def test_deload_resets_weeks_and_is_marked_once(self):
        assess_fatigue(self.ctx, "2026-W05", now=NOW)
        state = mark_deload(self.ctx, "2026-W05", reason="Sleep has been poor", now=NOW)
        self.assertEqual(state.current_score, 4)
        self.assertEqual(self.ledger().last_deload.reason, "Sleep has been poor")
        self.assertIsNone(mark_deload(self.ctx, "2026-W05", now=NOW))

        analysis = assess_fatigue(self.ctx, "2026-W05", now=NOW)
        self.assertEqual(analysis.weeks_since_deload, 0)
        self.assertEqual(analysis.score, 4)
        self.assertEqual(len(self.ledger().deload_history), 1)

    def test_dismiss_needs_an_active_warning(self):
        self.assertIsNone(dismiss_fatigue_warning(self.ctx, now=NOW))

        assess_fatigue(self.ctx, "2026-W05", now=NOW)
        state = dismiss_fatigue_warning(self.ctx, reason="Meet in two weeks", now=NOW)
        self.assertEqual(state.dismissed_warnings[0].fatigue_score_at_dismissal, 7)
        self.assertEqual(self.ledger().dismissed_warnings[0].reason, "Meet in two weeks")

        mark_deload(self.ctx, "2026-W05", now=NOW)
        self.assertIsNone(dismiss_fatigue_warning(self.ctx, now=NOW))

    def test_stale_ledger_conflicts(self):
        assess_fatigue(self.ctx, "2026-W05", now=NOW)
        self.fake.fail("PUT", "fatigue-signals.yaml", 409, "does not match")
        with self.assertRaises(ConflictError):
            mark_deload(self.ctx, "2026-W05", now=NOW)


if __name__ == "__main__":
    unittest.main()
