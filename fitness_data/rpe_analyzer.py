"""
RPE pattern analysis.

Tracks RPE trends over finalized sessions to detect:
- Strength gains: same RPE, higher weight
- Fatigue: same weight, RPE creeping up
- Consistency: same weight, steady RPE
and scores how hard a single session was.
"""

import math
from collections import OrderedDict

from fitness_data.e1rm import estimate, round_half_up
from fitness_data.exercise_normalizer import ExerciseNormalizer, format_exercise_name
from fitness_data.models import RPEDataPoint, RPEInsight, RPETrend, SessionDifficulty
from fitness_data.paths import coerce_date

STRENGTH_GAIN = "strength_gain"
FATIGUE_WARNING = "fatigue_warning"
CONSISTENCY = "consistency"

FATIGUE_WINDOW = 3
FATIGUE_MIN_RISE = 0.5
CONSISTENCY_WINDOW = 4
CONSISTENCY_MAX_VARIANCE = 0.3


def _fmt(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _group(points, attr):
    groups = OrderedDict()
    for point in points:
        groups.setdefault(getattr(point, attr), []).append(point)
    return groups


def _average(values):
    return sum(values) / len(values) if values else 0


def _non_decreasing(values):
    return all(later >= earlier for earlier, later in zip(values, values[1:]))


def difficulty_category(score):
    if score < 40:
        return "easy"
    if score < 60:
        return "moderate"
    if score < 80:
        return "hard"
    return "brutal"


class RPETrendAnalyzer:
    """Read-only analysis of RPE data derived from session documents."""

    def __init__(self, normalizer=None, unit="lbs"):
        self.normalizer = normalizer or ExerciseNormalizer()
        self.unit = unit

    def data_points(self, sessions):
        """
        Derive RPE data points from logged sessions.

        One point per (date, exercise, weight): the hardest RPE and the most
        reps logged at that weight that day. Sets without RPE or without a
        numeric load are ignored.

        Args:
            sessions: Iterable of WorkoutSession

        Returns:
            Dict of canonical exercise key -> list of RPEDataPoint, oldest first
        """
        merged = OrderedDict()
        for session in sessions:
            day = coerce_date(session.date).isoformat()
            for exercise in session.exercises:
                key = self.normalizer.canonical_key(exercise.name)
                if not key:
                    continue
                for logged_set in exercise.sets:
                    weight = logged_set.load
                    if weight is None or weight <= 0 or not logged_set.rpe:
                        continue
                    slot = (day, key, weight)
                    rpe, reps = merged.get(slot, (0, 0))
                    merged[slot] = (max(rpe, logged_set.rpe), max(reps, logged_set.reps))

        points = {}
        for (day, key, weight), (rpe, reps) in sorted(merged.items()):
            points.setdefault(key, []).append(
                RPEDataPoint(
                    date=day,
                    exercise=key,
                    weight=weight,
                    reps=reps,
                    rpe=rpe,
                    estimated_1rm=estimate(weight, reps),
                )
            )
        return points

    def analyze_exercise(self, points, exercise):
        """
        Look for strength gain, fatigue and consistency patterns.

        Args:
            points: RPEDataPoint list for one exercise
            exercise: Exercise name used in the result

        Returns:
            RPETrend with points sorted oldest first
        """
        ordered = sorted(points, key=lambda p: p.date)
        trend = RPETrend(exercise=exercise, data_points=ordered)
        if len(ordered) < 2:
            return trend

        unit = self.unit
        for rpe, group in _group(ordered, "rpe").items():
            if len(group) < 2:
                continue
            oldest, newest = group[0], group[-1]
            if newest.weight > oldest.weight:
                improvement = newest.weight - oldest.weight
                percent_gain = round(improvement / oldest.weight * 100, 1)
                trend.insights.append(RPEInsight(
                    insight_type=STRENGTH_GAIN,
                    severity="positive",
                    message=(
                        f"Your @{_fmt(rpe)} used to be {_fmt(oldest.weight)} {unit}, now it's "
                        f"{_fmt(newest.weight)} {unit} - you're {percent_gain}% stronger!"
                    ),
                    data={
                        "rpe": rpe,
                        "old_weight": oldest.weight,
                        "new_weight": newest.weight,
                        "improvement": improvement,
                        "percent_gain": percent_gain,
                    },
                ))

        by_weight = _group(ordered, "weight")
        for weight, group in by_weight.items():
            if len(group) < FATIGUE_WINDOW:
                continue
            rpes = [p.rpe for p in group[-FATIGUE_WINDOW:]]
            if _non_decreasing(rpes) and rpes[-1] - rpes[0] >= FATIGUE_MIN_RISE:
                trend.insights.append(RPEInsight(
                    insight_type=FATIGUE_WARNING,
                    severity="warning",
                    message=(
                        f"RPE creeping up at {_fmt(weight)} {unit} "
                        f"({_fmt(rpes[0])} → {_fmt(rpes[-1])}) - consider a deload or extra recovery"
                    ),
                    data={
                        "weight": weight,
                        "rpe_start": rpes[0],
                        "rpe_end": rpes[-1],
                        "sessions": FATIGUE_WINDOW,
                    },
                ))

        for weight, group in by_weight.items():
            if len(group) < CONSISTENCY_WINDOW:
                continue
            rpes = [p.rpe for p in group[-CONSISTENCY_WINDOW:]]
            avg = _average(rpes)
            variance = sum((r - avg) ** 2 for r in rpes) / len(rpes)
            if variance < CONSISTENCY_MAX_VARIANCE:
                trend.insights.append(RPEInsight(
                    insight_type=CONSISTENCY,
                    severity="info",
                    message=(
                        f"Consistent RPE at {_fmt(weight)} {unit} over {len(group)} sessions "
                        "- technique is dialed in"
                    ),
                    data={
                        "weight": weight,
                        "average_rpe": round(avg, 1),
                        "sessions": len(group),
                    },
                ))

        return trend

    def analyze_all(self, sessions):
        """RPETrend per exercise over the given sessions, by exercise key."""
        return [
            self.analyze_exercise(points, format_exercise_name(key))
            for key, points in sorted(self.data_points(sessions).items())
        ]

    @staticmethod
    def session_difficulty(sets, date=None):
        """
        Score a session from 1 to 100.

        Base is average RPE x 10, plus 5 per RPE point above 8 on the hardest
        set, scaled by sqrt(sets / 10) for session length.

        Args:
            sets: LoggedSet list (or anything with an ``rpe`` attribute)
            date: Session date for the result

        Returns:
            SessionDifficulty, or None when no set carries an RPE
        """
        rpes = [s.rpe for s in sets if s.rpe is not None and s.rpe > 0]
        if not rpes:
            return None

        average_rpe = _average(rpes)
        max_rpe = max(rpes)
        total_sets = len(rpes)

        raw = average_rpe * 10 + max(0, max_rpe - 8) * 5
        score = min(100, max(1, round_half_up(raw * math.sqrt(total_sets / 10))))

        return SessionDifficulty(
            date=coerce_date(date).isoformat() if date else "",
            average_rpe=round(average_rpe, 1),
            max_rpe=max_rpe,
            total_sets=total_sets,
            difficulty_score=score,
            category=difficulty_category(score),
        )

    @staticmethod
    def summarize(trends):
        """
        Collect strength gains and fatigue warnings across exercises.

        Returns:
            Dict with strength_gains, fatigue_warnings (insights whose message
            is prefixed with the exercise) and highlights (summary lines)
        """
        strength_gains = []
        fatigue_warnings = []
        for trend in trends:
            for insight in trend.insights:
                prefixed = RPEInsight(
                    insight_type=insight.insight_type,
                    severity=insight.severity,
                    message=f"{trend.exercise}: {insight.message}",
                    data=insight.data,
                )
                if insight.insight_type == STRENGTH_GAIN:
                    strength_gains.append(prefixed)
                elif insight.insight_type == FATIGUE_WARNING:
                    fatigue_warnings.append(prefixed)

        highlights = []
        if strength_gains:
            highlights.append(f"{len(strength_gains)} exercise(s) showing strength gains at same RPE")
        if fatigue_warnings:
            highlights.append(
                f"{len(fatigue_warnings)} exercise(s) showing fatigue patterns - recovery may help"
            )
        return {
            "strength_gains": strength_gains,
            "fatigue_warnings": fatigue_warnings,
            "highlights": highlights,
        }

    def compare_periods(self, current, previous):
        """
        Compare average weight and RPE per exercise between two periods.

        Exercises missing from ``previous`` are skipped.

        Returns:
            List of dicts with exercise, change and interpretation
        """
        current_by_exercise = _group(current, "exercise")
        previous_by_exercise = _group(previous, "exercise")
        results = []
        for exercise, points in current_by_exercise.items():
            prev_points = previous_by_exercise.get(exercise)
            if not prev_points:
                continue

            rpe_diff = _average([p.rpe for p in points]) - _average([p.rpe for p in prev_points])
            weight_diff = _average([p.weight for p in points]) - _average([p.weight for p in prev_points])

            if weight_diff > 0 and rpe_diff <= 0:
                interpretation = "Getting stronger - more weight at same/lower effort"
            elif weight_diff > 0 and rpe_diff > 0.5:
                interpretation = "Pushing harder - more weight but also more effort"
            elif weight_diff <= 0 and rpe_diff > 0.5:
                interpretation = "Possible fatigue - same weight feeling harder"
            elif weight_diff < 0 and rpe_diff < 0:
                interpretation = "Deload/recovery - lighter work"
            else:
                interpretation = "Maintaining current level"

            weight_sign = "+" if weight_diff >= 0 else ""
            rpe_sign = "+" if rpe_diff >= 0 else ""
            results.append({
                "exercise": exercise,
                "change": (
                    f"Weight: {weight_sign}{weight_diff:.0f} {self.unit}, "
                    f"RPE: {rpe_sign}{rpe_diff:.1f}"
                ),
                "interpretation": interpretation,
            })
        return results
