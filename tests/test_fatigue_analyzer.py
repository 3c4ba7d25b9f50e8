"""Tests for fatigue signals, the fatigue score and deload bookkeeping."""

import unittest

from fitness_data.fatigue_analyzer import (
    HIGH_AVERAGE_RPE,
    MISSED_REPS,
    RPE_CREEP,
    WEEKS_SINCE_DELOAD,
    FatigueAnalyzer,
    apply_analysis,
    deload_recommendation,
    dismiss_deload_warning,
    fatigue_score,
    is_deload_week,
    mark_deload_week,
    planned_reps,
    weeks_since_deload,
)
from fitness_data.models import (
    COMPLETED,
    FatigueSignal,
    FatigueState,
    LoggedExercise,
    LoggedSet,
    PlannedExercise,
    WorkoutSession,
)

NOW = "2026-01-27T18:00:00+00:00"


def session(day, *exercises):
    return WorkoutSession(date=day, workout_type="Strength", status=COMPLETED, exercises=list(exercises))


def lift(name, *sets):
    return LoggedExercise(name=name, sets=[LoggedSet(reps=r, weight=w, rpe=rpe) for w, r, rpe in sets])


def signal(signal_type, severity):
    return FatigueSignal(signal_type=signal_type, description="", severity=severity)


def grinding_block():
    """Three weeks of squats getting harder and a bench day short of the plan."""
    sessions = [
        session("2026-01-13", lift("Squat", (275, 5, 7))),
        session("2026-01-20", lift("Squat", (275, 5, 7.5))),
        session(
            "2026-01-27",
            lift("Squat", (275, 5, 8.5)),
            lift("Bench Press", (185, 3, 9), (185, 2, 9.5)),
        ),
    ]
    planned = {"2026-01-27": [PlannedExercise(name="Bench Press", sets=2, reps=5, weight=185)]}
    return sessions, planned


class WeeksSinceDeloadTests(unittest.TestCase):
    def test_unknown_deload_assumes_eight_weeks(self):
        self.assertEqual(weeks_since_deload(None, "2026-W05"), 8)
        self.assertEqual(weeks_since_deload("last month", "2026-W05"), 8)

    def test_same_year(self):
        self.assertEqual(weeks_since_deload("2026-W03", "2026-W05"), 2)
        self.assertEqual(weeks_since_deload("2026-W05", "2026-W05"), 0)

    def test_across_year_boundary(self):
        self.assertEqual(weeks_since_deload("2025-W50", "2026-W02"), 4)

    def test_future_deload_is_zero(self):
        self.assertEqual(weeks_since_deload("2026-W08", "2026-W05"), 0)


class FatigueScoreTests(unittest.TestCase):
    def test_fresh_athlete_scores_one(self):
        self.assertEqual(fatigue_score([], 0, None), 1)
        self.assertEqual(fatigue_score([], 3, 7.5), 1)

    def test_weeks_since_deload_contribution(self):
        self.assertEqual(fatigue_score([], 4, None), 2)
        self.assertEqual(fatigue_score([], 5, None), 3)
        self.assertEqual(fatigue_score([], 6, None), 4)

    def test_half_points_round_up(self):
        self.assertEqual(fatigue_score([signal(RPE_CREEP, "medium")], 0, None), 2)

    def test_components_are_capped(self):
        creep = [signal(RPE_CREEP, "high")] * 3
        self.assertEqual(fatigue_score(creep, 0, None), 4)
        missed = [signal(MISSED_REPS, "high")] * 3
        self.assertEqual(fatigue_score(missed, 0, None), 3)

    def test_score_never_exceeds_ten(self):
        signals = [signal(RPE_CREEP, "high")] * 3 + [signal(MISSED_REPS, "high")] * 3
        self.assertEqual(fatigue_score(signals, 8, 9.4), 10)

    def test_average_rpe_contribution(self):
        self.assertEqual(fatigue_score([], 0, 8.5), 2)
        self.assertEqual(fatigue_score([], 0, 9), 3)


class DetectionTests(unittest.TestCase):
    def setUp(self):
        self.analyzer = FatigueAnalyzer()

    def test_rpe_creep_at_same_weight(self):
        sessions, _ = grinding_block()
        creep = self.analyzer.detect_rpe_creep(sessions)
        self.assertEqual(len(creep), 1)
        self.assertEqual(creep[0]["weight"], 275)
        self.assertEqual((creep[0]["rpe_start"], creep[0]["rpe_end"]), (7, 8.5))
        self.assertEqual(creep[0]["creep"], 1.5)
        self.assertEqual(creep[0]["sessions"], 3)

    def test_flat_or_stalled_rpe_is_not_creep(self):
        sessions = [
            session("2026-01-13", lift("Squat", (275, 5, 8)), lift("Deadlift", (315, 5, 7))),
            session("2026-01-20", lift("Squat", (275, 5, 8)), lift("Deadlift", (315, 5, 8))),
            session("2026-01-27", lift("Squat", (275, 5, 8)), lift("Deadlift", (315, 5, 8))),
        ]
        self.assertEqual(self.analyzer.detect_rpe_creep(sessions), [])

    def test_planned_reps_parsing(self):
        self.assertEqual(planned_reps(5), 5)
        self.assertEqual(planned_reps("5-6"), 5)
        self.assertEqual(planned_reps("30s"), 30)
        self.assertIsNone(planned_reps("AMRAP"))

    def test_missed_reps_needs_two_short(self):
        sessions, planned = grinding_block()
        missed = self.analyzer.detect_missed_reps(sessions, planned)
        self.assertEqual([(m["actual_reps"], m["deficit"]) for m in missed], [(3, 2), (2, 3)])
        self.assertEqual(missed[0]["date"], "2026-01-27")

    def test_missed_reps_matches_aliases(self):
        sessions = [session("2026-01-27", lift("Bench", (185, 2, 9)))]
        planned = {"2026-01-27": [PlannedExercise(name="Bench Press", reps="5-6")]}
        self.assertEqual(len(self.analyzer.detect_missed_reps(sessions, planned)), 1)

    def test_unplanned_days_are_ignored(self):
        sessions, planned = grinding_block()
        self.assertEqual(self.analyzer.detect_missed_reps(sessions, {}), [])
        self.assertEqual(self.analyzer.detect_missed_reps(sessions[:2], planned), [])

    def test_average_rpe_ignores_sets_without_rpe(self):
        sessions = [session("2026-01-27", lift("Squat", (275, 5, 8), (275, 5, None), (275, 5, 9)))]
        self.assertEqual(FatigueAnalyzer.average_rpe(sessions), 8.5)
        self.assertIsNone(FatigueAnalyzer.average_rpe([]))


class AnalyzeTests(unittest.TestCase):
    def setUp(self):
        self.analyzer = FatigueAnalyzer()

    def test_grinding_block_recommends_deload(self):
        sessions, planned = grinding_block()
        analysis = self.analyzer.analyze(sessions, "2026-W05", planned=planned, now=NOW)

        self.assertEqual(
            [s.signal_type for s in analysis.signals],
            [WEEKS_SINCE_DELOAD, RPE_CREEP, MISSED_REPS, MISSED_REPS],
        )
        self.assertEqual(analysis.weeks_since_deload, 8)
        self.assertEqual(analysis.score, 7)
        self.assertTrue(analysis.should_recommend_deload)
        self.assertEqual(
            analysis.recommendation,
            "Fatigue indicators are elevated (score: 7/10) - RPE creeping up on your lifts "
            "and missing planned reps. Want a recovery week?",
        )
        creep = analysis.signals[1]
        self.assertEqual(creep.severity, "high")
        self.assertIn("RPE increased from 7 to 8.5 over 3 sessions", creep.description)
        self.assertEqual(creep.detected_at, NOW)
        self.assertEqual(
            analysis.signals[2].description,
            "Bench Press: hit 3 reps vs 5 planned (2 short) on 2026-01-27",
        )
        self.assertEqual([s.severity for s in analysis.signals[2:]], ["medium", "high"])

    def test_recent_deload_and_easy_training(self):
        sessions = [session("2026-01-27", lift("Squat", (225, 5, 6)))]
        analysis = self.analyzer.analyze(sessions, "2026-W05", last_deload_week="2026-W04", now=NOW)
        self.assertEqual(analysis.signals, ())
        self.assertEqual(analysis.score, 1)
        self.assertFalse(analysis.should_recommend_deload)
        self.assertIsNone(analysis.recommendation)

    def test_high_average_rpe_signal(self):
        sessions = [session("2026-01-27", lift("Squat", (315, 3, 9), (315, 3, 9.5)))]
        analysis = self.analyzer.analyze(sessions, "2026-W05", last_deload_week="2026-W05", now=NOW)
        self.assertEqual([s.signal_type for s in analysis.signals], [HIGH_AVERAGE_RPE])
        self.assertEqual(analysis.signals[0].severity, "high")
        self.assertEqual(analysis.score, 3)

    def test_recommendation_lists_two_reasons_at_most(self):
        signals = [signal(HIGH_AVERAGE_RPE, "high")]
        self.assertEqual(
            deload_recommendation(8, signals, 6),
            "Fatigue indicators are elevated (score: 8/10) - been pushing hard for 6 weeks "
            "and average RPE running high. Want a recovery week?",
        )
        self.assertEqual(
            deload_recommendation(7, [], 0),
            "Fatigue indicators are elevated (score: 7/10). Want a recovery week?",
        )


class FatigueStateTests(unittest.TestCase):
    def test_apply_analysis(self):
        sessions, planned = grinding_block()
        analysis = FatigueAnalyzer().analyze(sessions, "2026-W05", planned=planned, now=NOW)
        state = apply_analysis(FatigueState(), analysis, now=NOW)
        self.assertEqual(state.current_score, 7)
        self.assertEqual(len(state.signals), 4)
        self.assertEqual(state.weeks_since_deload, 8)
        self.assertEqual(state.last_updated, NOW)

    def test_mark_deload_week(self):
        state = FatigueState(current_score=8, weeks_since_deload=6)
        updated = mark_deload_week(state, "2026-W05", reason="Sleep has been poor", now=NOW)

        self.assertEqual(updated.current_score, 5)
        self.assertEqual(updated.weeks_since_deload, 0)
        self.assertEqual(updated.last_deload.week, "2026-W05")
        self.assertEqual(updated.last_deload.deload_type, "manual")
        self.assertEqual(updated.deload_history, [updated.last_deload])
        self.assertTrue(is_deload_week(updated, "2026-W05"))
        self.assertFalse(is_deload_week(state, "2026-W05"))
        self.assertEqual(state.deload_history, [])

    def test_deload_never_drops_score_below_one(self):
        self.assertEqual(mark_deload_week(FatigueState(current_score=2), "2026-W05").current_score, 1)

    def test_dismiss_records_score(self):
        state = FatigueState(current_score=8)
        updated = dismiss_deload_warning(state, reason="Meet in two weeks", now=NOW)
        self.assertEqual(len(updated.dismissed_warnings), 1)
        warning = updated.dismissed_warnings[0]
        self.assertEqual(warning.fatigue_score_at_dismissal, 8)
        self.assertEqual(warning.reason, "Meet in two weeks")
        self.assertEqual(warning.dismissed_at, NOW)
        self.assertEqual(updated.current_score, 8)
        self.assertEqual(state.dismissed_warnings, [])


if __name__ == "__main__":
    unittest.main()
