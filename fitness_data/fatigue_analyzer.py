"""
Fatigue detection and deload recommendations.

Warning signs tracked over the last few weeks of sessions:
- RPE creep: same weight, RPE rising over consecutive sessions
- Missed reps: sets well short of the planned reps
- Weeks since the last deload (one every 4-6 weeks is typical)
- High average RPE

They roll up into a 1-10 fatigue score stored in
analytics/fatigue-signals.yaml; 7 or more suggests a deload.
"""

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone

from fitness_data.e1rm import round_half_up
from fitness_data.exercise_normalizer import ExerciseNormalizer, format_exercise_name
from fitness_data.models import (
    DeloadRecord,
    DismissedWarning,
    FatigueAnalysis,
    FatigueSignal,
)
from fitness_data.paths import parse_iso_week
from fitness_data.rpe_analyzer import RPETrendAnalyzer

logger = logging.getLogger(__name__)

RPE_CREEP = "rpe_creep"
MISSED_REPS = "missed_reps"
WEEKS_SINCE_DELOAD = "weeks_since_deload"
HIGH_AVERAGE_RPE = "high_average_rpe"

DELOAD_SCORE_THRESHOLD = 7
UNKNOWN_DELOAD_WEEKS = 8
DELOAD_DUE_WEEKS = 5
HIGH_RPE_THRESHOLD = 8.5
CREEP_WINDOW = 3
CREEP_MIN_RISE = 0.5
MISSED_REPS_MIN_DEFICIT = 2
DELOAD_SCORE_RELIEF = 3

_LEADING_INT_RE = re.compile(r"(\d+)")


def _stamp(now=None):
    if now is None:
        return datetime.now(timezone.utc).isoformat(timespec="seconds")
    if isinstance(now, datetime):
        return now.isoformat(timespec="seconds")
    return str(now)


def _fmt(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _increasing(values):
    return len(values) >= 2 and all(later > earlier for earlier, later in zip(values, values[1:]))


def planned_reps(reps):
    """Lower bound of a planned rep target: 5 -> 5, "5-6" -> 5, "AMRAP" -> None."""
    if isinstance(reps, bool):
        return None
    if isinstance(reps, int):
        return reps
    match = _LEADING_INT_RE.search(str(reps or ""))
    return int(match.group(1)) if match else None


def weeks_since_deload(last_deload_week, current_week):
    """
    Whole weeks between two ISO weeks.

    With no recorded deload (or an unreadable week) it is assumed to have
    been a while: 8 weeks.
    """
    if not last_deload_week:
        return UNKNOWN_DELOAD_WEEKS
    try:
        last_monday, _ = parse_iso_week(last_deload_week)
        current_monday, _ = parse_iso_week(current_week)
    except ValueError:
        return UNKNOWN_DELOAD_WEEKS
    return max(0, (current_monday - last_monday).days // 7)


def fatigue_score(signals, weeks, average_rpe):
    """
    Score fatigue from 1 to 10.

    Base 1, plus up to 3 for weeks without a deload, up to 3 for RPE creep,
    up to 2 for missed reps and up to 2 for a high average RPE.
    """
    score = 1.0

    if weeks >= 6:
        score += 3
    elif weeks >= 5:
        score += 2
    elif weeks >= 4:
        score += 1

    def count(signal_type, severity):
        return sum(1 for s in signals if s.signal_type == signal_type and s.severity == severity)

    score += min(3, count(RPE_CREEP, "high") * 1.5 + count(RPE_CREEP, "medium") * 0.5)
    score += min(2, count(MISSED_REPS, "high") * 1 + count(MISSED_REPS, "medium") * 0.5)

    if average_rpe is not None:
        if average_rpe >= 9:
            score += 2
        elif average_rpe >= HIGH_RPE_THRESHOLD:
            score += 1

    return min(10, round_half_up(score))


def deload_recommendation(score, signals, weeks):
    """One-line deload suggestion naming up to two reasons."""
    types = {s.signal_type for s in signals}
    reasons = []
    if RPE_CREEP in types:
        reasons.append("RPE creeping up on your lifts")
    if MISSED_REPS in types:
        reasons.append("missing planned reps")
    if weeks >= DELOAD_DUE_WEEKS:
        reasons.append(f"been pushing hard for {weeks} weeks")
    if HIGH_AVERAGE_RPE in types:
        reasons.append("average RPE running high")

    message = f"Fatigue indicators are elevated (score: {score}/10)"
    if reasons:
        message += " - " + " and ".join(reasons[:2])
    return message + ". Want a recovery week?"


class FatigueAnalyzer:
    """Turns recent sessions (and the plans behind them) into fatigue signals."""

    def __init__(self, normalizer=None, unit="lbs", rpe_analyzer=None):
        self.normalizer = normalizer or ExerciseNormalizer()
        self.unit = unit
        self.rpe = rpe_analyzer or RPETrendAnalyzer(normalizer=self.normalizer, unit=unit)

    def detect_rpe_creep(self, sessions):
        """
        Weights whose RPE rose session over session.

        Looks at the last three sessions at each weight; every step must be
        strictly harder and the total rise at least half a point.

        Returns:
            List of dicts with exercise, weight, sessions, rpe_start, rpe_end, creep
        """
        found = []
        for key, points in sorted(self.rpe.data_points(sessions).items()):
            by_weight = {}
            for point in points:
                by_weight.setdefault(point.weight, []).append(point)
            for weight, group in by_weight.items():
                recent = [p.rpe for p in sorted(group, key=lambda p: p.date)[-CREEP_WINDOW:]]
                if not _increasing(recent):
                    continue
                creep = round(recent[-1] - recent[0], 1)
                if creep >= CREEP_MIN_RISE:
                    found.append({
                        "exercise": format_exercise_name(key),
                        "weight": weight,
                        "sessions": len(recent),
                        "rpe_start": recent[0],
                        "rpe_end": recent[-1],
                        "creep": creep,
                    })
        return found

    def detect_missed_reps(self, sessions, planned):
        """
        Sets at least two reps short of the plan.

        Args:
            sessions: WorkoutSession list
            planned: {YYYY-MM-DD: [PlannedExercise]} from the weekly plans

        Returns:
            List of dicts with exercise, planned_reps, actual_reps, deficit, date
        """
        found = []
        for session in sessions:
            day_plan = planned.get(session.date) if planned else None
            if not day_plan:
                continue
            targets = {self.normalizer.canonical_key(p.name): planned_reps(p.reps) for p in day_plan}
            for exercise in session.exercises:
                target = targets.get(self.normalizer.canonical_key(exercise.name))
                if target is None:
                    continue
                for logged_set in exercise.sets:
                    deficit = target - logged_set.reps
                    if deficit >= MISSED_REPS_MIN_DEFICIT:
                        found.append({
                            "exercise": exercise.name,
                            "planned_reps": target,
                            "actual_reps": logged_set.reps,
                            "deficit": deficit,
                            "date": session.date,
                        })
        return found

    @staticmethod
    def average_rpe(sessions):
        rpes = [s.rpe for session in sessions for s in session.all_sets() if s.rpe]
        if not rpes:
            return None
        return sum(rpes) / len(rpes)

    def analyze(self, sessions, current_week, last_deload_week=None, planned=None, now=None):
        """
        Collect fatigue signals and score them.

        Args:
            sessions: The last few weeks of finalized sessions
            current_week: ISO week being assessed, e.g. 2026-W05
            last_deload_week: ISO week of the last deload, None if never
            planned: Optional {date: [PlannedExercise]} for the missed-reps check
            now: Timestamp for detected_at (UTC now if None)

        Returns:
            FatigueAnalysis
        """
        detected_at = _stamp(now)
        unit = self.unit
        signals = []

        weeks = weeks_since_deload(last_deload_week, current_week)
        if weeks >= DELOAD_DUE_WEEKS:
            signals.append(FatigueSignal(
                signal_type=WEEKS_SINCE_DELOAD,
                description=f"{weeks} weeks since last deload (recommended every 4-6 weeks)",
                severity="high" if weeks >= 6 else "medium",
                detected_at=detected_at,
                data={"weeks": weeks},
            ))

        for creep in self.detect_rpe_creep(sessions):
            amount = creep["creep"]
            signals.append(FatigueSignal(
                signal_type=RPE_CREEP,
                exercise=creep["exercise"],
                description=(
                    f"{creep['exercise']} at {_fmt(creep['weight'])} {unit}: RPE increased from "
                    f"{_fmt(creep['rpe_start'])} to {_fmt(creep['rpe_end'])} over {creep['sessions']} sessions"
                ),
                severity="high" if amount >= 1.5 else "medium" if amount >= 1 else "low",
                detected_at=detected_at,
                data={k: creep[k] for k in ("weight", "rpe_start", "rpe_end", "sessions", "creep")},
            ))

        for missed in self.detect_missed_reps(sessions, planned or {}):
            deficit = missed["deficit"]
            signals.append(FatigueSignal(
                signal_type=MISSED_REPS,
                exercise=missed["exercise"],
                description=(
                    f"{missed['exercise']}: hit {missed['actual_reps']} reps vs {missed['planned_reps']} "
                    f"planned ({deficit} short) on {missed['date']}"
                ),
                severity="high" if deficit >= 3 else "medium",
                detected_at=detected_at,
                data={k: missed[k] for k in ("planned_reps", "actual_reps", "deficit", "date")},
            ))

        average = self.average_rpe(sessions)
        if average is not None and average > HIGH_RPE_THRESHOLD:
            signals.append(FatigueSignal(
                signal_type=HIGH_AVERAGE_RPE,
                description=f"Average RPE across recent sessions is {average:.1f} (above 8.5 threshold)",
                severity="high" if average >= 9 else "medium",
                detected_at=detected_at,
                data={"average_rpe": round(average, 2)},
            ))

        score = fatigue_score(signals, weeks, average)
        recommend = score >= DELOAD_SCORE_THRESHOLD
        recommendation = deload_recommendation(score, signals, weeks) if recommend else None
        if recommend:
            logger.info("Fatigue score %d for %s, recommending a deload", score, current_week)
        return FatigueAnalysis(
            score=score,
            signals=tuple(signals),
            weeks_since_deload=weeks,
            should_recommend_deload=recommend,
            recommendation=recommendation,
        )


# ---------------------------------------------------------------------------
# Ledger updates. Each returns a new FatigueState.
# ---------------------------------------------------------------------------


def apply_analysis(state, analysis, now=None):
    return replace(
        state,
        current_score=analysis.score,
        signals=list(analysis.signals),
        weeks_since_deload=analysis.weeks_since_deload,
        last_updated=_stamp(now),
    )


def is_deload_week(state, week):
    return any(record.week == week for record in state.deload_history)


def mark_deload_week(state, week, deload_type="manual", reason=None, now=None):
    """Record a deload; the score drops by 3 (never below 1)."""
    stamp = _stamp(now)
    record = DeloadRecord(week=week, deload_type=deload_type, marked_at=stamp, reason=reason)
    return replace(
        state,
        current_score=max(1, state.current_score - DELOAD_SCORE_RELIEF),
        weeks_since_deload=0,
        last_deload=record,
        deload_history=[*state.deload_history, record],
        last_updated=stamp,
    )


def dismiss_deload_warning(state, reason=None, now=None):
    """Note that the athlete chose to keep training despite the warning."""
    stamp = _stamp(now)
    warning = DismissedWarning(
        dismissed_at=stamp, fatigue_score_at_dismissal=state.current_score, reason=reason
    )
    return replace(
        state,
        dismissed_warnings=[*state.dismissed_warnings, warning],
        last_updated=stamp,
    )
