"""
YAML ledgers: prs.yaml, analytics/e1rm-history.yaml and
analytics/fatigue-signals.yaml.

All of them are also read and edited by the coaching agent, so reading is
strict about types but tolerant about key spelling the agent has used
(``estimated1RM`` / ``currentBest``).
"""

from datetime import date, datetime

import yaml

from fitness_data.errors import LedgerFormatError
from fitness_data.models import (
    DeloadRecord,
    DismissedWarning,
    E1RMBest,
    E1RMSession,
    ExerciseE1RMHistory,
    ExercisePRs,
    FatigueSignal,
    FatigueState,
    PRRecord,
)

PRS_HEADER = "# Personal Records\n# current = best set, history = earlier bests (append-only)\n\n"
E1RM_HEADER = (
    "# Estimated 1RM History\n"
    "# Tracked using Epley formula: weight × (1 + reps/30)\n\n"
)


def _load(text, source):
    if not text or not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LedgerFormatError(f"{source}: invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LedgerFormatError(f"{source}: top level must be a mapping of exercises")
    return data


def _mapping(value, where):
    if not isinstance(value, dict):
        raise LedgerFormatError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _first(data, *keys):
    for key in keys:
        if key in data:
            return data[key]
    return None


def _number(value, where, required=True):
    if value is None:
        if required:
            raise LedgerFormatError(f"{where}: missing number")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(str(value).strip())
        except ValueError as exc:
            raise LedgerFormatError(f"{where}: not a number: {value!r}") from exc
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _text(value, where, required=True):
    if value is None:
        if required:
            raise LedgerFormatError(f"{where}: missing value")
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)


# ---------------------------------------------------------------------------
# prs.yaml
# ---------------------------------------------------------------------------


def _pr_record(data, where):
    data = _mapping(data, where)
    return PRRecord(
        weight=_number(data.get("weight"), f"{where}.weight"),
        reps=int(_number(data.get("reps"), f"{where}.reps")),
        date=_text(data.get("date"), f"{where}.date"),
        estimated_1rm=_number(
            _first(data, "estimated_1rm", "estimated1RM", "e1rm"),
            f"{where}.estimated_1rm",
            required=False,
        ) or 0,
        workout_ref=_text(_first(data, "workout_ref", "workoutRef"), f"{where}.workout_ref", required=False),
    )


def parse_prs(text, source="prs.yaml"):
    """Parse prs.yaml into {exercise_key: ExercisePRs}."""
    prs = {}
    for exercise, entry in _load(text, source).items():
        where = f"{source}:{exercise}"
        entry = _mapping(entry, where)
        if "current" not in entry:
            raise LedgerFormatError(f"{where}: missing 'current'")
        history = entry.get("history") or []
        if not isinstance(history, list):
            raise LedgerFormatError(f"{where}.history: expected a list")
        prs[str(exercise)] = ExercisePRs(
            current=_pr_record(entry["current"], f"{where}.current"),
            history=tuple(
                _pr_record(item, f"{where}.history[{i}]") for i, item in enumerate(history)
            ),
        )
    return prs


def _pr_dict(record):
    out = {
        "weight": record.weight,
        "reps": record.reps,
        "date": record.date,
        "estimated_1rm": record.estimated_1rm,
    }
    if record.workout_ref:
        out["workout_ref"] = record.workout_ref
    return out


def serialize_prs(prs):
    data = {}
    for exercise in sorted(prs):
        entry = prs[exercise]
        data[exercise] = {
            "current": _pr_dict(entry.current),
            "history": [_pr_dict(r) for r in entry.history],
        }
    if not data:
        return PRS_HEADER
    return PRS_HEADER + yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------------
# analytics/e1rm-history.yaml
# ---------------------------------------------------------------------------


def _e1rm_session(data, where):
    data = _mapping(data, where)
    rpe = _number(data.get("rpe"), f"{where}.rpe", required=False)
    return E1RMSession(
        date=_text(data.get("date"), f"{where}.date"),
        e1rm=_number(data.get("e1rm"), f"{where}.e1rm"),
        weight=_number(data.get("weight"), f"{where}.weight"),
        reps=int(_number(data.get("reps"), f"{where}.reps")),
        rpe=rpe,
        workout_ref=_text(_first(data, "workout_ref", "workoutRef"), f"{where}.workout_ref", required=False) or "",
    )


def parse_e1rm_history(text, source="analytics/e1rm-history.yaml"):
    """
    Parse the e1RM history ledger into {exercise: ExerciseE1RMHistory}.

    Sessions are stored most-recent-first and returned oldest-first. The
    stored current_best is reconciled against the retained sessions so it is
    never lower than any of them.
    """
    history = {}
    for exercise, entry in _load(text, source).items():
        where = f"{source}:{exercise}"
        entry = _mapping(entry, where)
        best_data = _first(entry, "current_best", "currentBest") or {}
        best_data = _mapping(best_data, f"{where}.current_best")
        best = E1RMBest(
            e1rm=_number(best_data.get("e1rm"), f"{where}.current_best.e1rm", required=False) or 0,
            date=_text(best_data.get("date"), f"{where}.current_best.date", required=False) or "",
            weight=_number(best_data.get("weight"), f"{where}.current_best.weight", required=False) or 0,
            reps=int(_number(best_data.get("reps"), f"{where}.current_best.reps", required=False) or 0),
        )
        sessions = entry.get("sessions") or []
        if not isinstance(sessions, list):
            raise LedgerFormatError(f"{where}.sessions: expected a list")
        parsed = [_e1rm_session(item, f"{where}.sessions[{i}]") for i, item in enumerate(sessions)]
        parsed.sort(key=lambda s: s.date)
        item = ExerciseE1RMHistory(exercise=str(exercise), sessions=parsed, current_best=best)
        item.reconcile_best()
        history[str(exercise)] = item
    return history


def serialize_e1rm_history(history, window=20):
    """
    Serialize the e1RM ledger, keeping the most recent ``window`` sessions.

    current_best is written independently of the window.
    """
    data = {}
    for exercise in sorted(history):
        entry = history[exercise]
        best = entry.current_best
        sessions = []
        for session in reversed(entry.sessions[-window:]):
            item = {
                "date": session.date,
                "e1rm": session.e1rm,
                "weight": session.weight,
                "reps": session.reps,
            }
            if session.rpe is not None:
                item["rpe"] = session.rpe
            item["workout_ref"] = session.workout_ref
            sessions.append(item)
        data[exercise] = {
            "current_best": {
                "e1rm": best.e1rm,
                "date": best.date,
                "weight": best.weight,
                "reps": best.reps,
            },
            "sessions": sessions,
        }
    if not data:
        return E1RM_HEADER
    return E1RM_HEADER + yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------------
# analytics/fatigue-signals.yaml
# ---------------------------------------------------------------------------

FATIGUE_HEADER = "# Fatigue Detection Signals\n# current_score runs 1-10; 7+ suggests a deload\n\n"


def _timestamp(value, where):
    if isinstance(value, datetime):
        return value.isoformat()
    return _text(value, where, required=False) or ""


def _list(value, where):
    value = value or []
    if not isinstance(value, list):
        raise LedgerFormatError(f"{where}: expected a list")
    return value


def _deload_record(data, where):
    data = _mapping(data, where)
    return DeloadRecord(
        week=_text(data.get("week"), f"{where}.week"),
        deload_type=_text(_first(data, "type", "deload_type"), f"{where}.type", required=False) or "manual",
        marked_at=_timestamp(_first(data, "marked_at", "markedAt"), f"{where}.marked_at"),
        reason=_text(data.get("reason"), f"{where}.reason", required=False),
    )


def _fatigue_signal(data, where):
    data = _mapping(data, where)
    details = _first(data, "data") or {}
    return FatigueSignal(
        signal_type=_text(_first(data, "type", "signal_type"), f"{where}.type"),
        description=_text(data.get("description"), f"{where}.description", required=False) or "",
        severity=_text(data.get("severity"), f"{where}.severity", required=False) or "low",
        detected_at=_timestamp(_first(data, "detected_at", "detectedAt"), f"{where}.detected_at"),
        exercise=_text(data.get("exercise"), f"{where}.exercise", required=False),
        data=dict(_mapping(details, f"{where}.data")),
    )


def _dismissed_warning(data, where):
    data = _mapping(data, where)
    return DismissedWarning(
        dismissed_at=_timestamp(_first(data, "dismissed_at", "dismissedAt"), f"{where}.dismissed_at"),
        fatigue_score_at_dismissal=int(_number(
            _first(data, "fatigue_score_at_dismissal", "fatigueScoreAtDismissal"),
            f"{where}.fatigue_score_at_dismissal",
        )),
        reason=_text(data.get("reason"), f"{where}.reason", required=False),
    )


def parse_fatigue_signals(text, source="analytics/fatigue-signals.yaml"):
    """Parse the fatigue ledger; an empty or missing document is a fresh state."""
    data = _load(text, source)
    last_deload = _first(data, "last_deload", "lastDeload")
    return FatigueState(
        current_score=int(_number(
            _first(data, "current_score", "currentScore"), f"{source}:current_score", required=False
        ) or 1),
        signals=[
            _fatigue_signal(item, f"{source}:signals[{i}]")
            for i, item in enumerate(_list(data.get("signals"), f"{source}:signals"))
        ],
        last_updated=_timestamp(_first(data, "last_updated", "lastUpdated"), f"{source}:last_updated"),
        weeks_since_deload=int(_number(
            _first(data, "weeks_since_deload", "weeksSinceDeload"), f"{source}:weeks_since_deload",
            required=False,
        ) or 0),
        last_deload=_deload_record(last_deload, f"{source}:last_deload") if last_deload else None,
        deload_history=[
            _deload_record(item, f"{source}:deload_history[{i}]")
            for i, item in enumerate(_list(
                _first(data, "deload_history", "deloadHistory"), f"{source}:deload_history"
            ))
        ],
        dismissed_warnings=[
            _dismissed_warning(item, f"{source}:dismissed_warnings[{i}]")
            for i, item in enumerate(_list(
                _first(data, "dismissed_warnings", "dismissedWarnings"), f"{source}:dismissed_warnings"
            ))
        ],
    )


def _deload_dict(record):
    out = {"week": record.week, "type": record.deload_type}
    if record.reason:
        out["reason"] = record.reason
    out["marked_at"] = record.marked_at
    return out


def serialize_fatigue_signals(state):
    signals = []
    for signal in state.signals:
        item = {"type": signal.signal_type}
        if signal.exercise:
            item["exercise"] = signal.exercise
        item["description"] = signal.description
        item["severity"] = signal.severity
        item["detected_at"] = signal.detected_at
        if signal.data:
            item["data"] = dict(signal.data)
        signals.append(item)

    dismissed = []
    for warning in state.dismissed_warnings:
        item = {"dismissed_at": warning.dismissed_at}
        if warning.reason:
            item["reason"] = warning.reason
        item["fatigue_score_at_dismissal"] = warning.fatigue_score_at_dismissal
        dismissed.append(item)

    data = {
        "current_score": state.current_score,
        "weeks_since_deload": state.weeks_since_deload,
        "last_updated": state.last_updated,
        "last_deload": _deload_dict(state.last_deload) if state.last_deload else None,
        "signals": signals,
        "deload_history": [_deload_dict(r) for r in state.deload_history],
        "dismissed_warnings": dismissed,
    }
    return FATIGUE_HEADER + yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
