"""
Workout session documents.

A session is stored as markdown with a YAML front matter block. The front
matter is the machine-readable record; the body is a readable rendering for
the athlete and the coaching agent.
"""

import re

import yaml

from fitness_data.errors import WorkoutLogFormatError
from fitness_data.exercise_normalizer import format_exercise_name
from fitness_data.models import (
    LoggedExercise,
    LoggedSet,
    PlannedExercise,
    PRHit,
    WorkoutSession,
)
from fitness_data.paths import coerce_date

FRONT_MATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)


def _set_dict(logged_set, index):
    out = {
        "set": logged_set.set_number or index,
        "reps": logged_set.reps,
        "weight": logged_set.weight,
    }
    if logged_set.rpe is not None:
        out["rpe"] = logged_set.rpe
    if logged_set.notes:
        out["notes"] = logged_set.notes
    return out


def session_to_dict(session):
    data = {
        "date": session.date,
        "type": session.workout_type,
        "status": session.status,
    }
    for key in ("started", "finished", "location", "plan_reference", "branch"):
        value = getattr(session, key)
        if value:
            data[key] = value
    if session.prs_hit:
        data["prs_hit"] = [{"exercise": p.exercise, "achievement": p.achievement} for p in session.prs_hit]
    data["exercises"] = []
    for exercise in session.exercises:
        item = {"name": exercise.name}
        if exercise.notes:
            item["notes"] = exercise.notes
        item["sets"] = [_set_dict(s, i) for i, s in enumerate(exercise.sets, start=1)]
        data["exercises"].append(item)
    return data


def _format_weight(weight, unit):
    if isinstance(weight, (int, float)) and not isinstance(weight, bool):
        value = int(weight) if float(weight).is_integer() else weight
        return f"{value} {unit}"
    return str(weight)


def render_session(session, unit="lbs"):
    """Render a WorkoutSession as a markdown document with front matter."""
    front = yaml.safe_dump(session_to_dict(session), sort_keys=False, allow_unicode=True)
    day = coerce_date(session.date)
    title = format_exercise_name(session.workout_type.replace(" ", "_").replace("-", "_")) or "Workout"

    lines = [
        "---",
        front.rstrip("\n"),
        "---",
        "",
        f"# {title} Workout - {day.strftime('%A, %b')} {day.day}, {day.year}",
        "",
    ]
    meta = [f"**Status:** {session.status.replace('_', ' ').title()}"]
    if session.started:
        meta.append(f"**Started:** {session.started}")
    if session.finished:
        meta.append(f"**Finished:** {session.finished}")
    if session.location:
        meta.append(f"**Location:** {session.location}")
    lines.append(" | ".join(meta))
    if session.plan_reference:
        lines.append(f"**Plan:** {session.plan_reference}")
    lines.append("")

    for exercise in session.exercises:
        lines.append(f"## {exercise.name}")
        lines.append("")
        lines.append("| Set | Weight | Reps | RPE |")
        lines.append("|-----|--------|------|-----|")
        for i, logged_set in enumerate(exercise.sets, start=1):
            rpe = "" if logged_set.rpe is None else f"{logged_set.rpe:g}"
            lines.append(
                f"| {logged_set.set_number or i} | {_format_weight(logged_set.weight, unit)} "
                f"| {logged_set.reps} | {rpe} |"
            )
        if exercise.notes:
            lines.append("")
            lines.append(f"*{exercise.notes}*")
        lines.append("")

    if session.prs_hit:
        lines.append("## PRs Hit")
        lines.append("")
        for pr in session.prs_hit:
            lines.append(f"- {pr.exercise}: {pr.achievement}")
        lines.append("")

    return "\n".join(lines)


def _parse_set(data, where):
    if not isinstance(data, dict):
        raise WorkoutLogFormatError(f"{where}: expected a mapping")
    try:
        reps = int(data.get("reps"))
    except (TypeError, ValueError) as exc:
        raise WorkoutLogFormatError(f"{where}: reps must be an integer") from exc
    weight = data.get("weight", "BW")
    rpe = data.get("rpe")
    try:
        return LoggedSet(
            reps=reps,
            weight=weight,
            rpe=float(rpe) if rpe not in (None, "") else None,
            set_number=data.get("set"),
            notes=data.get("notes"),
        )
    except (TypeError, ValueError) as exc:
        raise WorkoutLogFormatError(f"{where}: {exc}") from exc


def session_from_dict(data):
    if not isinstance(data, dict):
        raise WorkoutLogFormatError("front matter must be a mapping")
    if not data.get("date") or not data.get("type"):
        raise WorkoutLogFormatError("front matter needs 'date' and 'type'")

    exercises = []
    for i, item in enumerate(data.get("exercises") or []):
        if not isinstance(item, dict) or not item.get("name"):
            raise WorkoutLogFormatError(f"exercises[{i}]: needs a name")
        sets = [
            _parse_set(s, f"exercises[{i}].sets[{j}]")
            for j, s in enumerate(item.get("sets") or [])
        ]
        exercises.append(LoggedExercise(name=str(item["name"]), sets=sets, notes=item.get("notes")))

    prs_hit = [
        PRHit(exercise=str(p.get("exercise", "")), achievement=str(p.get("achievement", "")))
        for p in (data.get("prs_hit") or [])
        if isinstance(p, dict)
    ]
    try:
        return WorkoutSession(
            date=coerce_date(data["date"]).isoformat(),
            workout_type=str(data["type"]),
            status=str(data.get("status", "completed")),
            exercises=exercises,
            started=data.get("started"),
            finished=data.get("finished"),
            location=data.get("location"),
            plan_reference=data.get("plan_reference"),
            branch=data.get("branch"),
            prs_hit=prs_hit,
        )
    except ValueError as exc:
        raise WorkoutLogFormatError(str(exc)) from exc


def parse_session(text):
    """Parse a session document written by render_session."""
    match = FRONT_MATTER_RE.match(text or "")
    if not match:
        raise WorkoutLogFormatError("document has no YAML front matter")
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise WorkoutLogFormatError(f"invalid front matter: {exc}") from exc
    return session_from_dict(data)


def parse_planned_exercises(text):
    """
    Planned exercises by date from a weekly plan's front matter.

    Plans are written by the coaching agent and only sometimes carry a
    ``days`` list; a plan without one has nothing to compare against.

    Returns:
        Dict of YYYY-MM-DD -> list of PlannedExercise
    """
    match = FRONT_MATTER_RE.match(text or "")
    if not match:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise WorkoutLogFormatError(f"invalid plan front matter: {exc}") from exc
    if not isinstance(data, dict):
        return {}

    planned = {}
    for i, day in enumerate(data.get("days") or []):
        if not isinstance(day, dict) or not day.get("date"):
            continue
        try:
            day_date = coerce_date(day["date"]).isoformat()
        except ValueError as exc:
            raise WorkoutLogFormatError(f"days[{i}].date: {exc}") from exc
        exercises = []
        for item in day.get("exercises") or []:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            exercises.append(PlannedExercise(
                name=str(item["name"]),
                sets=item["sets"] if isinstance(item.get("sets"), int) else 0,
                reps=item.get("reps", 0),
                weight=item.get("weight", ""),
            ))
        if exercises:
            planned[day_date] = exercises
    return planned
