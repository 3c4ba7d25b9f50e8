"""
Estimated 1RM engine.

Epley formula: weight × (1 + reps/30), reliable for 1-10 reps.
With RPE: reps in reserve (10 - RPE) are added to the reps first.
History lives in analytics/e1rm-history.yaml.
"""

import copy
import math
from datetime import date, timedelta

from fitness_data.exercise_normalizer import ExerciseNormalizer, format_exercise_name
from fitness_data.models import (
    E1RMBest,
    E1RMPR,
    E1RMSession,
    ExerciseE1RMHistory,
    SessionE1RMResult,
    SetE1RM,
    numeric_weight,
)
from fitness_data.paths import coerce_date

MAX_REPS_FOR_E1RM = 10


def round_half_up(value):
    """Round .5 away from zero for positive values (2.5 -> 3, not banker's 2)."""
    return int(math.floor(value + 0.5))


def estimate(weight, reps):
    """
    Epley e1RM.

    Returns 0 for non-positive input and for more than 10 reps, where the
    formula is not used. A single rep is the weight itself.
    """
    if weight <= 0 or reps <= 0:
        return 0
    if reps > MAX_REPS_FOR_E1RM:
        return 0
    if reps == 1:
        return round_half_up(weight)
    return round_half_up(weight * (1 + reps / 30))


def estimate_with_rpe(weight, reps, rpe):
    """Epley e1RM with reps in reserve added: adjusted = reps + (10 - RPE)."""
    if weight <= 0 or reps <= 0:
        return 0
    if reps > MAX_REPS_FOR_E1RM:
        return 0
    clamped = max(1, min(10, rpe))
    adjusted_reps = reps + (10 - clamped)
    if adjusted_reps == 1:
        return round_half_up(weight)
    return round_half_up(weight * (1 + adjusted_reps / 30))


def format_e1rm_display(exercise, current, previous=None):
    name = format_exercise_name(exercise)
    if previous:
        diff = current - previous
        sign = "+" if diff >= 0 else ""
        return f"{name} e1RM: {current} ({sign}{diff} from last session)"
    return f"{name} e1RM: {current}"


class E1RMEngine:
    """Compute per-set e1RM, record sessions into history, report trends."""

    def __init__(self, normalizer=None):
        self.normalizer = normalizer or ExerciseNormalizer()

    estimate = staticmethod(estimate)
    estimate_with_rpe = staticmethod(estimate_with_rpe)

    def set_e1rm(self, weight, reps, rpe=None):
        """Return (e1rm, rpe_adjusted), using RPE when a valid one is given."""
        if reps > MAX_REPS_FOR_E1RM:
            return 0, False
        if rpe is not None and 1 <= rpe <= 10:
            return estimate_with_rpe(weight, reps, rpe), True
        return estimate(weight, reps), False

    def session_bests(self, exercises):
        """
        Best single set per tracked compound lift.

        Args:
            exercises: LoggedExercise list from one session

        Returns:
            Dict of compound lift key -> SetE1RM
        """
        bests = {}
        for exercise in exercises:
            lift = self.normalizer.compound_lift(exercise.name)
            if not lift:
                continue
            for logged_set in exercise.sets:
                weight = numeric_weight(logged_set.weight)
                if weight is None or weight <= 0:
                    continue
                if logged_set.reps > MAX_REPS_FOR_E1RM:
                    continue
                e1rm, rpe_adjusted = self.set_e1rm(weight, logged_set.reps, logged_set.rpe)
                if e1rm <= 0:
                    continue
                if lift not in bests or e1rm > bests[lift].e1rm:
                    bests[lift] = SetE1RM(
                        exercise=lift,
                        e1rm=e1rm,
                        weight=weight,
                        reps=logged_set.reps,
                        rpe=logged_set.rpe,
                        rpe_adjusted=rpe_adjusted,
                    )
        return bests

    @staticmethod
    def previous_e1rm(history, exercise):
        """e1RM of the most recent recorded session, 0 when none."""
        entry = history.get(exercise)
        if not entry or not entry.sessions:
            return 0
        return entry.sessions[-1].e1rm

    @staticmethod
    def best_e1rm(history, exercise):
        entry = history.get(exercise)
        if not entry:
            return 0
        return entry.current_best.e1rm

    def record_session(self, exercises, date, session_ref, history):
        """
        Append this session's best e1RM per lift to a copy of ``history``.

        current_best moves only on a strictly greater e1RM; each such move is
        an e1RM PR. Lifts already holding an entry for ``session_ref`` are
        left alone, so recording the same session twice is a no-op.

        Args:
            exercises: LoggedExercise list
            date: Session date (YYYY-MM-DD)
            session_ref: Path of the workout document
            history: Existing {lift: ExerciseE1RMHistory}; not modified

        Returns:
            (updated_history, SessionE1RMResult)
        """
        day = coerce_date(date).isoformat()
        bests = self.session_bests(exercises)
        updated = copy.deepcopy(history)
        result = SessionE1RMResult(session_bests=bests)

        for lift, best in bests.items():
            previous = self.previous_e1rm(history, lift)
            best_so_far = self.best_e1rm(history, lift)

            entry = updated.setdefault(lift, ExerciseE1RMHistory(exercise=lift))
            if session_ref and any(s.workout_ref == session_ref for s in entry.sessions):
                continue
            entry.sessions.append(
                E1RMSession(
                    date=day,
                    e1rm=best.e1rm,
                    weight=best.weight,
                    reps=best.reps,
                    rpe=best.rpe,
                    workout_ref=session_ref,
                )
            )

            if best.e1rm > best_so_far:
                result.prs.append(
                    E1RMPR(
                        exercise=lift,
                        new_e1rm=best.e1rm,
                        previous_e1rm=best_so_far,
                        improvement=best.e1rm - best_so_far,
                    )
                )
                entry.current_best = E1RMBest(
                    e1rm=best.e1rm, date=day, weight=best.weight, reps=best.reps
                )

            result.summary.append(format_e1rm_display(lift, best.e1rm, previous))

        return updated, result

    @staticmethod
    def format_pr_celebration(prs):
        if not prs:
            return ""
        lines = ["", "📈 **e1RM PRs!**"]
        for pr in prs:
            lines.append(
                f"• {format_exercise_name(pr.exercise)}: {pr.new_e1rm} "
                f"(+{pr.improvement} from previous best of {pr.previous_e1rm})"
            )
        return "\n".join(lines)

    @staticmethod
    def trends_report(history, weeks_back=4, today=None):
        """
        Markdown table of current e1RM against the value ``weeks_back`` weeks ago.

        Returns an empty string when no lift has data.
        """
        reference = coerce_date(today) if today else date.today()
        cutoff = (reference - timedelta(days=weeks_back * 7)).isoformat()

        lines = [
            "## e1RM Trends",
            "",
            f"| Exercise | Current e1RM | {weeks_back} Weeks Ago | Change |",
            "|----------|-------------|-------------|--------|",
        ]
        has_data = False
        for exercise in sorted(history):
            entry = history[exercise]
            if not entry.sessions:
                continue
            current = entry.current_best.e1rm
            if current <= 0:
                continue

            older = [s for s in entry.sessions if s.date <= cutoff]
            old = older[-1].e1rm if older else 0
            name = format_exercise_name(exercise)
            if old > 0:
                change = current - old
                change_str = f"+{change}" if change >= 0 else f"{change}"
                arrow = "↑" if change > 0 else "↓" if change < 0 else "→"
                lines.append(f"| {name} | {current} | {old} | {arrow} {change_str} |")
            else:
                lines.append(f"| {name} | {current} | — | New |")
            has_data = True

        if not has_data:
            return ""
        lines.append("")
        return "\n".join(lines)
