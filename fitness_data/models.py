"""
Data models for the workout store and analytics engines.

Ledger and session documents are validated into these dataclasses on read;
engines never work on raw YAML dictionaries.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ABANDONED = "abandoned"
SESSION_STATUSES = (IN_PROGRESS, COMPLETED, ABANDONED)

BODYWEIGHT = "BW"

Weight = Union[float, int, str]


def numeric_weight(weight):
    """
    Load in the logged unit, or None when it is not a usable number.

    "BW" has no load; "+45" counts as 45 (added load on a bodyweight lift).
    """
    if isinstance(weight, bool):
        return None
    if isinstance(weight, (int, float)):
        return float(weight)
    text = str(weight or "").strip().lower().replace("lbs", "").replace("lb", "").replace("kg", "")
    if not text or text == BODYWEIGHT.lower():
        return None
    try:
        return float(text.lstrip("+"))
    except ValueError:
        return None


@dataclass
class LoggedSet:
    """A single completed set. Weight is a number, "BW" or "+N"."""

    reps: int
    weight: Weight
    rpe: Optional[float] = None
    set_number: Optional[int] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.rpe is not None and not 0 <= self.rpe <= 10:
            raise ValueError("rpe must be between 0 and 10")

    @property
    def load(self):
        return numeric_weight(self.weight)


@dataclass
class LoggedExercise:
    name: str
    sets: list = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class PRHit:
    exercise: str
    achievement: str


@dataclass
class WorkoutSession:
    """The logical session a workout branch represents."""

    date: str
    workout_type: str
    status: str = IN_PROGRESS
    exercises: list = field(default_factory=list)
    started: Optional[str] = None
    finished: Optional[str] = None
    location: Optional[str] = None
    plan_reference: Optional[str] = None
    branch: Optional[str] = None
    prs_hit: list = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.status not in SESSION_STATUSES:
            raise ValueError(f"Unknown session status: {self.status}")

    def all_sets(self):
        return [s for exercise in self.exercises for s in exercise.sets]


# ---------------------------------------------------------------------------
# Personal records (prs.yaml)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PRRecord:
    weight: float
    reps: int
    date: str
    estimated_1rm: float
    workout_ref: Optional[str] = None


@dataclass(frozen=True)
class ExercisePRs:
    current: PRRecord
    history: tuple = ()


@dataclass(frozen=True)
class Milestone:
    weight: float
    name: str
    description: str
    emoji: str


@dataclass(frozen=True)
class LiftResult:
    weight: float
    reps: int
    estimated_1rm: float


@dataclass(frozen=True)
class PRCelebration:
    pr_type: str  # weight | rep | estimated_1rm | milestone
    exercise: str
    exercise_key: str
    current: LiftResult
    message: str
    celebration_level: int
    previous: Optional[LiftResult] = None
    milestone: Optional[Milestone] = None
    journey_context: Optional[str] = None


# ---------------------------------------------------------------------------
# e1RM history (analytics/e1rm-history.yaml)
# ---------------------------------------------------------------------------


@dataclass
class E1RMBest:
    e1rm: float = 0
    date: str = ""
    weight: float = 0
    reps: int = 0


@dataclass
class E1RMSession:
    date: str
    e1rm: float
    weight: float
    reps: int
    rpe: Optional[float] = None
    workout_ref: str = ""


@dataclass
class ExerciseE1RMHistory:
    exercise: str
    sessions: list = field(default_factory=list)
    current_best: E1RMBest = field(default_factory=E1RMBest)

    def reconcile_best(self):
        """Raise current_best to the best retained session if it lags behind."""
        for session in self.sessions:
            if session.e1rm > self.current_best.e1rm:
                self.current_best = E1RMBest(
                    e1rm=session.e1rm, date=session.date,
                    weight=session.weight, reps=session.reps,
                )
        return self.current_best


@dataclass(frozen=True)
class SetE1RM:
    exercise: str
    e1rm: float
    weight: float
    reps: int
    rpe: Optional[float] = None
    rpe_adjusted: bool = False


@dataclass(frozen=True)
class E1RMPR:
    exercise: str
    new_e1rm: float
    previous_e1rm: float
    improvement: float


@dataclass
class SessionE1RMResult:
    session_bests: dict = field(default_factory=dict)
    prs: list = field(default_factory=list)
    summary: list = field(default_factory=list)


# ---------------------------------------------------------------------------
# RPE analysis (derived, never persisted)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RPEDataPoint:
    date: str
    exercise: str
    weight: float
    reps: int
    rpe: float
    estimated_1rm: float


@dataclass(frozen=True)
class RPEInsight:
    insight_type: str  # strength_gain | fatigue_warning | consistency
    severity: str  # info | positive | warning
    message: str
    data: dict = field(default_factory=dict)


@dataclass
class RPETrend:
    exercise: str
    data_points: list = field(default_factory=list)
    insights: list = field(default_factory=list)


@dataclass(frozen=True)
class SessionDifficulty:
    date: str
    average_rpe: float
    max_rpe: float
    total_sets: int
    difficulty_score: int
    category: str


# ---------------------------------------------------------------------------
# Fatigue and deloads (analytics/fatigue-signals.yaml)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlannedExercise:
    """One exercise prescribed for a day in the weekly plan."""

    name: str
    sets: int = 0
    reps: Union[int, str] = 0  # "5-6" or "30s" allowed
    weight: Weight = ""


@dataclass(frozen=True)
class FatigueSignal:
    signal_type: str  # rpe_creep | missed_reps | weeks_since_deload | high_average_rpe
    description: str
    severity: str  # low | medium | high
    detected_at: str = ""
    exercise: Optional[str] = None
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DeloadRecord:
    week: str
    deload_type: str  # planned | manual | recommended
    marked_at: str = ""
    reason: Optional[str] = None


@dataclass(frozen=True)
class DismissedWarning:
    dismissed_at: str
    fatigue_score_at_dismissal: int
    reason: Optional[str] = None


@dataclass
class FatigueState:
    """Contents of the fatigue ledger."""

    current_score: int = 1
    signals: list = field(default_factory=list)
    last_updated: str = ""
    weeks_since_deload: int = 0
    last_deload: Optional[DeloadRecord] = None
    deload_history: list = field(default_factory=list)
    dismissed_warnings: list = field(default_factory=list)


@dataclass(frozen=True)
class FatigueAnalysis:
    score: int
    signals: tuple
    weeks_since_deload: int
    should_recommend_deload: bool
    recommendation: Optional[str] = None
