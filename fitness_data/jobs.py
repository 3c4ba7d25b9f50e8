"""
Entry points for the webhook handler and the cron jobs.

record_workout runs after a session is finalized; weekly_analytics builds
the analytics section of the weekly retro. The fatigue jobs keep
analytics/fatigue-signals.yaml current.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from fitness_data import paths
from fitness_data.e1rm import E1RMEngine
from fitness_data.errors import WorkoutLogFormatError
from fitness_data.fatigue_analyzer import (
    DELOAD_SCORE_THRESHOLD,
    apply_analysis,
    dismiss_deload_warning,
    is_deload_week,
    mark_deload_week,
)
from fitness_data.ledgers import (
    parse_e1rm_history,
    parse_fatigue_signals,
    parse_prs,
    serialize_e1rm_history,
    serialize_fatigue_signals,
    serialize_prs,
)
from fitness_data.models import FatigueState, PRHit
from fitness_data.workout_log import parse_planned_exercises, parse_session

logger = logging.getLogger(__name__)

ANALYSIS_WEEKS = 6
FATIGUE_WEEKS = 3


@dataclass
class WorkoutRecordResult:
    """What one logged session changed in the ledgers."""

    celebrations: list = field(default_factory=list)
    e1rm_prs: list = field(default_factory=list)
    e1rm_summary: list = field(default_factory=list)
    difficulty: Optional[object] = None
    prs_hash: Optional[str] = None
    e1rm_hash: Optional[str] = None

    @property
    def prs_hit(self):
        return [
            PRHit(exercise=c.exercise, achievement=c.message.splitlines()[-1])
            for c in self.celebrations
        ]

    def message(self):
        """Chat-ready text: celebrations, e1RM PRs, e1RM lines, difficulty."""
        parts = [c.message for c in self.celebrations]
        if self.e1rm_prs:
            parts.append(E1RMEngine.format_pr_celebration(self.e1rm_prs).strip("\n"))
        if self.e1rm_summary:
            parts.append("\n".join(self.e1rm_summary))
        if self.difficulty:
            parts.append(
                f"Session difficulty: {self.difficulty.difficulty_score}/100 "
                f"({self.difficulty.category}, avg RPE {self.difficulty.average_rpe})"
            )
        return "\n\n".join(parts)


def record_workout(ctx, session, workout_ref=None):
    """
    Update prs.yaml and the e1RM history from one finalized session.

    Both ledgers are computed before either is written, and both are
    written back with the hash they were read with, so a concurrent update
    raises ConflictError instead of being lost. The e1RM history goes
    first: it skips sessions it already holds, so a retry after a failed
    prs.yaml write still reports every celebration.

    Args:
        ctx: CoachContext
        session: WorkoutSession
        workout_ref: Path of the session document (its weekly path if None)

    Returns:
        WorkoutRecordResult
    """
    workout_ref = workout_ref or paths.workout_path(session.date)
    store = ctx.store
    result = WorkoutRecordResult()

    prs_doc = store.read_prs()
    current_prs = parse_prs(prs_doc.content) if prs_doc else {}
    for exercise in session.exercises:
        for logged_set in exercise.sets:
            weight = logged_set.load
            if weight is None or weight <= 0 or logged_set.reps <= 0:
                continue
            key = ctx.normalizer.canonical_key(exercise.name)
            existing = current_prs.get(key)
            pr_history = list(existing.history) + [existing.current] if existing else []
            celebration = ctx.prs.evaluate(
                exercise.name, weight, logged_set.reps, current_prs,
                pr_history=pr_history, today=session.date,
            )
            if celebration:
                current_prs = ctx.prs.apply(current_prs, celebration, session.date, workout_ref)
                result.celebrations.append(celebration)

    e1rm_doc = store.read_e1rm_history()
    history = parse_e1rm_history(e1rm_doc.content) if e1rm_doc else {}
    updated, e1rm_result = ctx.e1rm.record_session(session.exercises, session.date, workout_ref, history)
    result.e1rm_prs = e1rm_result.prs
    result.e1rm_summary = e1rm_result.summary

    if e1rm_result.session_bests and updated != history:
        result.e1rm_hash = store.write(
            paths.E1RM_HISTORY_PATH,
            serialize_e1rm_history(updated, window=ctx.settings.e1rm_history_window),
            expected_hash=e1rm_doc.hash if e1rm_doc else None,
            message=f"Update e1RM history from {session.date} workout",
        )
    if result.celebrations:
        result.prs_hash = store.write(
            paths.PRS_PATH,
            serialize_prs(current_prs),
            expected_hash=prs_doc.hash if prs_doc else None,
            message=f"Update PRs from {session.date} workout",
        )

    result.difficulty = ctx.rpe.session_difficulty(session.all_sets(), session.date)
    logger.info(
        "Recorded %s: %d PR(s), %d e1RM PR(s)",
        workout_ref, len(result.celebrations), len(result.e1rm_prs),
    )
    return result


def recent_weeks(week, count=ANALYSIS_WEEKS):
    """``count`` ISO weeks ending with ``week``, oldest first."""
    monday, _ = paths.parse_iso_week(week)
    return [paths.iso_week(monday - timedelta(days=7 * i)) for i in reversed(range(count))]


def _parse_documents(documents):
    sessions = []
    for path, content in documents:
        try:
            sessions.append(parse_session(content))
        except WorkoutLogFormatError as exc:
            logger.warning("Skipping %s: %s", path, exc)
    return sessions


def load_sessions(store, weeks):
    """Finalized sessions of the given weeks, read through the document store."""
    documents = []
    for week in weeks:
        for path in store.list_week_workouts(week):
            documents.append((path, store.read(path)))
    return _parse_documents(documents)


def load_sessions_from_mirror(local_path, weeks):
    """Finalized sessions of the given weeks, read from a synced working copy."""
    documents = []
    for week in weeks:
        directory = os.path.join(local_path, paths.week_dir(week))
        if not os.path.isdir(directory):
            continue
        for name in sorted(os.listdir(directory)):
            if not paths.is_workout_document(name):
                continue
            with open(os.path.join(directory, name), "r", encoding="utf-8") as f:
                documents.append((f"{paths.week_dir(week)}/{name}", f.read()))
    return _parse_documents(documents)


def _prs_in_week(prs, week):
    monday, sunday = paths.parse_iso_week(week)
    found = []
    for exercise, entry in prs.items():
        records = (*entry.history, entry.current)
        for i, record in enumerate(records):
            if monday <= paths.coerce_date(record.date) <= sunday:
                found.append({
                    "exercise": exercise,
                    "weight": record.weight,
                    "reps": record.reps,
                    "date": record.date,
                    "previous_weight": max((r.weight for r in records[:i]), default=None),
                })
    return sorted(found, key=lambda pr: (pr["date"], pr["exercise"]))


def weekly_analytics(ctx, week, today=None, sessions=None):
    """
    Analytics markdown for the weekly retro.

    Args:
        ctx: CoachContext
        week: ISO week being reviewed, e.g. 2026-W05
        today: Reference date for the e1RM trend window (end of week if None)
        sessions: Sessions of the last few weeks; read from the store if None

    Returns:
        Markdown string
    """
    weeks = recent_weeks(week)
    if sessions is None:
        sessions = load_sessions(ctx.store, weeks)
    _, sunday = paths.parse_iso_week(week)
    today = today or sunday

    prs_doc = ctx.store.read_prs()
    prs = parse_prs(prs_doc.content) if prs_doc else {}
    e1rm_doc = ctx.store.read_e1rm_history()
    history = parse_e1rm_history(e1rm_doc.content) if e1rm_doc else {}

    sections = [f"# Training Analytics: {week}", ""]
    sections.append("## PRs")
    sections.append("")
    sections.append(ctx.prs.weekly_summary(_prs_in_week(prs, week)))
    sections.append("")

    trends = ctx.e1rm.trends_report(history, today=today)
    if trends:
        sections.append(trends)

    this_week = [s for s in sessions if paths.iso_week(s.date) == week]
    if this_week:
        sections.append("## Session Difficulty")
        sections.append("")
        for session in sorted(this_week, key=lambda s: s.date):
            difficulty = ctx.rpe.session_difficulty(session.all_sets(), session.date)
            if difficulty:
                sections.append(
                    f"- {session.date} {session.workout_type}: {difficulty.difficulty_score}/100 "
                    f"({difficulty.category}, avg RPE {difficulty.average_rpe}, {difficulty.total_sets} sets)"
                )
            else:
                sections.append(f"- {session.date} {session.workout_type}: no RPE logged")
        sections.append("")

    rpe_summary = ctx.rpe.summarize(ctx.rpe.analyze_all(sessions))
    if rpe_summary["highlights"]:
        sections.append("## RPE Patterns")
        sections.append("")
        sections.extend(f"- {line}" for line in rpe_summary["highlights"])
        sections.extend(f"- {i.message}" for i in rpe_summary["strength_gains"])
        sections.extend(f"- ⚠️ {i.message}" for i in rpe_summary["fatigue_warnings"])
        sections.append("")

    previous_week = weeks[-2] if len(weeks) > 1 else None
    current_points = _flatten(ctx.rpe.data_points(this_week))
    previous_points = _flatten(
        ctx.rpe.data_points([s for s in sessions if paths.iso_week(s.date) == previous_week])
    )
    comparison = ctx.rpe.compare_periods(current_points, previous_points)
    if comparison:
        sections.append("## Week over Week")
        sections.append("")
        for row in comparison:
            sections.append(f"- {row['exercise']}: {row['change']} - {row['interpretation']}")
        sections.append("")

    return "\n".join(sections).rstrip("\n") + "\n"


def _flatten(points_by_exercise):
    return [p for points in points_by_exercise.values() for p in points]


def load_planned(store, weeks):
    """Planned exercises by date from the weekly plans of ``weeks``."""
    planned = {}
    for week in weeks:
        content = store.read_weekly_plan(week)
        if not content:
            continue
        try:
            planned.update(parse_planned_exercises(content))
        except WorkoutLogFormatError as exc:
            logger.warning("Skipping plan for %s: %s", week, exc)
    return planned


def _read_fatigue_state(store):
    doc = store.read_fatigue_signals()
    return (parse_fatigue_signals(doc.content) if doc else FatigueState()), doc


def _write_fatigue_state(store, state, doc, message):
    return store.write(
        paths.FATIGUE_SIGNALS_PATH,
        serialize_fatigue_signals(state),
        expected_hash=doc.hash if doc else None,
        message=message,
    )


def assess_fatigue(ctx, week, sessions=None, now=None):
    """
    Score fatigue over the last few weeks and store it in the fatigue ledger.

    Args:
        ctx: CoachContext
        week: ISO week being assessed
        sessions: Sessions to analyze; read from the store if None
        now: Timestamp recorded in the ledger (UTC now if None)

    Returns:
        FatigueAnalysis
    """
    weeks = recent_weeks(week, FATIGUE_WEEKS)
    if sessions is None:
        sessions = load_sessions(ctx.store, weeks)
    state, doc = _read_fatigue_state(ctx.store)
    analysis = ctx.fatigue.analyze(
        sessions,
        week,
        last_deload_week=state.last_deload.week if state.last_deload else None,
        planned=load_planned(ctx.store, weeks),
        now=now,
    )
    _write_fatigue_state(
        ctx.store, apply_analysis(state, analysis, now), doc, f"Update fatigue signals for {week}"
    )
    logger.info("Fatigue for %s: %d/10 (%d signal(s))", week, analysis.score, len(analysis.signals))
    return analysis


def mark_deload(ctx, week, reason=None, deload_type="manual", now=None):
    """Record ``week`` as a deload. Returns the new FatigueState, or None if already marked."""
    state, doc = _read_fatigue_state(ctx.store)
    if is_deload_week(state, week):
        return None
    updated = mark_deload_week(state, week, deload_type=deload_type, reason=reason, now=now)
    _write_fatigue_state(ctx.store, updated, doc, f"Mark {week} as a deload week")
    return updated


def dismiss_fatigue_warning(ctx, reason=None, now=None):
    """
    Dismiss the current deload warning.

    Returns:
        The new FatigueState, or None when there is no warning to dismiss
    """
    state, doc = _read_fatigue_state(ctx.store)
    if doc is None or state.current_score < DELOAD_SCORE_THRESHOLD:
        return None
    updated = dismiss_deload_warning(state, reason=reason, now=now)
    _write_fatigue_state(ctx.store, updated, doc, "Dismiss deload warning")
    return updated
