"""
Personal record detection and celebration.

A new set is a PR when there is no record yet, when it is heavier than any
recorded best, when it is more reps at the same weight, or (failing both)
when its estimated 1RM beats the current best's. Plate milestones
(one plate club, two plate club, ...) are celebrated above all of those.
"""

import logging
from datetime import date

from fitness_data.e1rm import estimate, estimate_with_rpe
from fitness_data.exercise_normalizer import ExerciseNormalizer, format_exercise_name
from fitness_data.models import (
    ExercisePRs,
    LiftResult,
    Milestone,
    PRCelebration,
    PRRecord,
)
from fitness_data.paths import coerce_date
from fitness_data.units import milestone_emoji, milestone_name, normalize_unit, plate_milestones

logger = logging.getLogger(__name__)

WEIGHT_PR = "weight"
REP_PR = "rep"
E1RM_PR = "estimated_1rm"
MILESTONE_PR = "milestone"

CELEBRATION_MESSAGES = {
    WEIGHT_PR: [
        "NEW WEIGHT PR! You just moved more iron than ever before!",
        "WEIGHT PR UNLOCKED! The gains train has no brakes!",
        "NEW WEIGHT PR! That bar has never felt this heavy... until now!",
        "WEIGHT PR! You're officially stronger than yesterday's you!",
    ],
    REP_PR: [
        "REP PR! More reps, more glory!",
        "REP PR! Your endurance is leveling up!",
        "REP PR! Grinding out gains one rep at a time!",
    ],
    E1RM_PR: [
        "New estimated 1RM! The math says you're stronger!",
        "Calculated strength gains! Your e1RM just went up!",
        "Strength is trending UP! New estimated max!",
    ],
    MILESTONE_PR: [
        "MILESTONE ACHIEVED! Welcome to the club!",
        "You've hit a legendary milestone!",
        "This is a moment to remember!",
    ],
}


def _fmt(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class PRTracker:
    """Evaluate logged sets against prs.yaml and build celebrations."""

    def __init__(self, normalizer=None, unit="lbs"):
        self.normalizer = normalizer or ExerciseNormalizer()
        self.unit = normalize_unit(unit)

    def crossed_milestones(self, exercise_key, new_weight, previous_weight=None):
        """Every milestone target crossed going from previous_weight to new_weight."""
        crossed = []
        for target in plate_milestones(self.unit, exercise_key):
            if new_weight >= target and (not previous_weight or previous_weight < target):
                crossed.append(target)
        return crossed

    def check_milestone(self, exercise_key, new_weight, previous_weight=None):
        """
        First crossed milestone in ascending order, or None.

        A jump across several targets still reports only the lowest one.
        """
        crossed = self.crossed_milestones(exercise_key, new_weight, previous_weight)
        if not crossed:
            return None
        target = crossed[0]
        return Milestone(
            weight=target,
            name=milestone_name(self.unit, target),
            description=(
                f"You've joined the {target} {self.unit} club on "
                f"{format_exercise_name(exercise_key)}!"
            ),
            emoji=milestone_emoji(self.unit, target),
        )

    def evaluate(self, exercise_name, weight, reps, current_prs, pr_history=None, today=None, rpe=None):
        """
        Decide whether a set is a PR.

        Args:
            exercise_name: Name as logged ("OHP", "Bench Press", ...)
            weight: Load lifted
            reps: Reps completed
            current_prs: {exercise_key: ExercisePRs}; not modified
            pr_history: Optional earlier PR records for journey context
            today: Reference date for the journey context
            rpe: Optional RPE; when given the e1RM counts reps in reserve

        Returns:
            PRCelebration, or None when the set is not a PR
        """
        key = self.normalizer.canonical_key(exercise_name)
        e1rm = estimate_with_rpe(weight, reps, rpe) if rpe else estimate(weight, reps)
        existing = current_prs.get(key)
        previous = None

        is_weight_pr = existing is None
        is_rep_pr = False
        heaviest = None
        if existing is not None:
            best = existing.current
            # An e1RM PR can leave a lighter set as current
            heaviest = max(r.weight for r in (best, *existing.history))
            previous = LiftResult(weight=best.weight, reps=best.reps, estimated_1rm=best.estimated_1rm)
            is_weight_pr = weight > heaviest
            is_rep_pr = weight == best.weight and reps > best.reps
            is_e1rm_pr = not is_weight_pr and not is_rep_pr and e1rm > best.estimated_1rm
            if not (is_weight_pr or is_rep_pr or is_e1rm_pr):
                return None

        milestone = self.check_milestone(key, weight, heaviest)
        if milestone:
            pr_type, level = MILESTONE_PR, 3
        elif is_weight_pr:
            pr_type, level = WEIGHT_PR, 2
        elif is_rep_pr:
            pr_type, level = REP_PR, 1
        else:
            pr_type, level = E1RM_PR, 1

        current = LiftResult(weight=weight, reps=reps, estimated_1rm=e1rm)
        pool = CELEBRATION_MESSAGES[pr_type]
        base_message = pool[(int(weight) + int(reps)) % len(pool)]

        journey = None
        if pr_history is not None:
            journey = self.journey_context(key, pr_history, current, today=today)

        return PRCelebration(
            pr_type=pr_type,
            exercise=exercise_name,
            exercise_key=key,
            current=current,
            previous=previous,
            message=self._build_message(base_message, key, current, previous, milestone),
            celebration_level=level,
            milestone=milestone,
            journey_context=journey,
        )

    def _build_message(self, base_message, key, current, previous, milestone):
        unit = self.unit
        lines = []
        if milestone:
            lines.append(f"{milestone.emoji} {base_message}")
            lines.append(f"{milestone.name.upper()}!")
        else:
            lines.append(f"🎉 {base_message}")

        lines.append("")
        lines.append(f"{format_exercise_name(key)}: {_fmt(current.weight)} x {current.reps}")

        if previous:
            weight_diff = current.weight - previous.weight
            e1rm_diff = current.estimated_1rm - previous.estimated_1rm
            if weight_diff > 0:
                lines.append(f"Previous best: {_fmt(previous.weight)} x {previous.reps}")
                lines.append(f"+{_fmt(weight_diff)} {unit}!")
            elif current.reps > previous.reps:
                lines.append(f"Previous best at {_fmt(current.weight)}: {previous.reps} reps")
                lines.append(f"+{current.reps - previous.reps} reps!")
            if e1rm_diff > 0:
                lines.append(f"Est. 1RM: {_fmt(current.estimated_1rm)} {unit} (+{_fmt(e1rm_diff)})")
        else:
            lines.append(f"First recorded PR! Est. 1RM: {_fmt(current.estimated_1rm)} {unit}")

        return "\n".join(lines)

    def journey_context(self, key, history, current, today=None):
        """Progress story from the earliest recorded PR to this one."""
        if len(history) < 2:
            return "This is just the beginning of your journey!"

        unit = self.unit
        ordered = sorted(history, key=lambda r: r.date)
        first = ordered[0]
        total_gain = current.weight - first.weight
        e1rm_gain = current.estimated_1rm - first.estimated_1rm
        reference = coerce_date(today) if today else date.today()
        months = round((reference - coerce_date(first.date)).days / 30)

        lines = [
            f"📈 Your {format_exercise_name(key)} journey:",
            f"Started: {_fmt(first.weight)} {unit} → Now: {_fmt(current.weight)} {unit}",
        ]
        if total_gain > 0:
            lines.append(f"Total gain: +{_fmt(total_gain)} {unit} over {months} months")
            if months > 0:
                lines.append(f"That's ~{total_gain / months:.1f} {unit}/month!")
        if e1rm_gain > 0:
            lines.append(f"Est. 1RM improvement: +{_fmt(e1rm_gain)} {unit}")
        return "\n".join(lines)

    def apply(self, current_prs, celebration, date, workout_ref=None):
        """
        Return a new ledger with the celebrated set as ``current``.

        The replaced record is appended to ``history`` first; existing
        history entries are never touched.
        """
        record = PRRecord(
            weight=celebration.current.weight,
            reps=celebration.current.reps,
            date=coerce_date(date).isoformat(),
            estimated_1rm=celebration.current.estimated_1rm,
            workout_ref=workout_ref,
        )
        updated = dict(current_prs)
        existing = current_prs.get(celebration.exercise_key)
        if existing is None:
            updated[celebration.exercise_key] = ExercisePRs(current=record, history=())
        else:
            updated[celebration.exercise_key] = ExercisePRs(
                current=record, history=existing.history + (existing.current,)
            )
        logger.info(
            "PR recorded for %s: %s x %s (%s)",
            celebration.exercise_key, _fmt(record.weight), record.reps, celebration.pr_type,
        )
        return updated

    def weekly_summary(self, prs_this_week):
        """
        Markdown summary of the week's PRs.

        Args:
            prs_this_week: Iterable of dicts with exercise, weight, reps, date
                and optionally previous_weight (heaviest earlier record)
        """
        prs_this_week = list(prs_this_week)
        if not prs_this_week:
            return "No new PRs this week - keep grinding, they'll come!"

        count = len(prs_this_week)
        lines = [f"🎉 **{count} PR{'s' if count > 1 else ''} This Week!**", ""]
        milestones = []
        for pr in prs_this_week:
            key = self.normalizer.canonical_key(pr["exercise"])
            lines.append(
                f"• {format_exercise_name(key)}: {_fmt(pr['weight'])} x {pr['reps']} "
                f"(e1RM: {estimate(pr['weight'], pr['reps'])})"
            )
            milestone = self.check_milestone(key, pr["weight"], pr.get("previous_weight"))
            if milestone:
                milestones.append(milestone)

        if milestones:
            lines.append("")
            lines.append("🏆 **Milestones Hit:**")
            for milestone in milestones:
                lines.append(f"• {milestone.name}")
        return "\n".join(lines)
