"""
Repository path conventions and date helpers.

The external agent reads and writes these paths directly, so they must not
change.
"""

import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

PRS_PATH = "prs.yaml"
E1RM_HISTORY_PATH = "analytics/e1rm-history.yaml"
FATIGUE_SIGNALS_PATH = "analytics/fatigue-signals.yaml"
WEEKS_DIR = "weeks"
IN_PROGRESS_PATH = "workouts/in-progress.md"

ISO_WEEK_RE = re.compile(r"^(\d{4})-W(\d{2})$")
WORKOUT_FILE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})\.md$")


def coerce_date(value):
    """Accept a date, datetime or YYYY-MM-DD string and return a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def iso_week(value):
    """Format a date as its ISO week string, e.g. 2026-W05."""
    year, week, _ = coerce_date(value).isocalendar()
    return f"{year}-W{week:02d}"


def parse_iso_week(week):
    """Return (monday, sunday) for an ISO week string."""
    match = ISO_WEEK_RE.match(week or "")
    if not match:
        raise ValueError(f"Invalid ISO week: {week}")
    monday = date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
    return monday, monday + timedelta(days=6)


def week_dir(week):
    return f"{WEEKS_DIR}/{week}"


def plan_path(week):
    return f"{week_dir(week)}/plan.md"


def workout_path(session_date):
    """Permanent path of a finalized workout: weeks/<ISO-week>/<date>.md."""
    day = coerce_date(session_date)
    return f"{week_dir(iso_week(day))}/{day.isoformat()}.md"


def is_workout_document(path):
    """True for dated workout files, false for plan/retro/in-progress."""
    return bool(WORKOUT_FILE_RE.search(path or ""))


def today(timezone):
    """Today's date in the athlete's timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def now_time(timezone):
    """Current wall clock time (HH:MM) in the athlete's timezone."""
    return datetime.now(ZoneInfo(timezone)).strftime("%H:%M")
