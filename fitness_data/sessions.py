"""
Workout sessions on their own branches.

A session lives in workouts/in-progress.md on a ``workout/<date>-<type>``
branch until it is finalized: the document is moved to
weeks/<ISO-week>/<date>.md, the branch merged into main and then deleted.
Finalize is two steps against the remote; a failure between them leaves a
branch that ``inspect`` reports and ``repair`` completes.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from fitness_data import paths
from fitness_data.errors import (
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    PartialMoveError,
    StoreError,
)
from fitness_data.models import COMPLETED, IN_PROGRESS, WorkoutSession
from fitness_data.workout_log import parse_session, render_session

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "workout/"
BRANCH_RE = re.compile(r"^workout/(\d{4}-\d{2}-\d{2})-(.+)$")

UNMERGED_FINAL = "unmerged_final"
DUPLICATE_DOCUMENTS = "duplicate_documents"
STALE_BRANCH = "stale_branch"


def type_slug(workout_type):
    slug = re.sub(r"[^a-z0-9]+", "-", (workout_type or "").lower()).strip("-")
    return slug or "workout"


def branch_name(session_date, workout_type):
    """workout/2026-01-24-push"""
    return f"{BRANCH_PREFIX}{paths.coerce_date(session_date).isoformat()}-{type_slug(workout_type)}"


@dataclass(frozen=True)
class BranchHandle:
    name: str
    date: str
    workout_type: str

    @classmethod
    def from_branch(cls, name):
        """Parse a session branch name, or return None for other branches."""
        match = BRANCH_RE.match(name or "")
        if not match:
            return None
        return cls(name=name, date=match.group(1), workout_type=match.group(2))


@dataclass(frozen=True)
class SessionAnomaly:
    """A session branch an operator needs to look at."""

    kind: str  # unmerged_final | duplicate_documents | stale_branch
    branch: str
    date: Optional[str] = None
    paths: tuple = ()
    detail: str = ""


@dataclass
class FinalizeResult:
    session: WorkoutSession
    path: str
    branch: str
    merge_sha: str
    warnings: list = field(default_factory=list)


class SessionBranchManager:
    """Open, update, finalize and abandon workout session branches."""

    def __init__(self, store, unit="lbs", timezone="America/New_York"):
        self.store = store
        self.unit = unit
        self.timezone = timezone

    def _render(self, session):
        return render_session(session, unit=self.unit)

    def session_branches(self):
        return sorted(self.store.list_branches(BRANCH_PREFIX))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, date, workout_type, started=None, location=None, plan_reference=None):
        """
        Start a session: create its branch and the in-progress document.

        Raises:
            ConflictError: the branch exists, or another branch already holds
                an in-progress session for the same date
        """
        day = paths.coerce_date(date).isoformat()
        name = branch_name(day, workout_type)

        if self.store.branch_exists(name):
            raise ConflictError(f"Session branch {name} already exists")
        for other in self.session_branches():
            handle = BranchHandle.from_branch(other)
            if handle and handle.date == day and self.store.exists(paths.IN_PROGRESS_PATH, branch=other):
                raise ConflictError(f"{other} already holds an in-progress session for {day}")

        self.store.create_branch(name)
        session = WorkoutSession(
            date=day,
            workout_type=workout_type,
            status=IN_PROGRESS,
            started=started or paths.now_time(self.timezone),
            location=location,
            plan_reference=plan_reference,
            branch=name,
        )
        self.store.write(
            paths.IN_PROGRESS_PATH,
            self._render(session),
            message=f"Start {workout_type} workout {day}",
            branch=name,
        )
        logger.info("Opened session %s", name)
        return BranchHandle(name=name, date=day, workout_type=type_slug(workout_type))

    def find_in_progress(self):
        """First session branch (by name) that still holds an in-progress document."""
        for name in self.session_branches():
            handle = BranchHandle.from_branch(name)
            if handle and self.store.exists(paths.IN_PROGRESS_PATH, branch=name):
                return handle
        return None

    def load(self, handle):
        """Return (WorkoutSession, content hash) of the in-progress document."""
        doc = self.store.read_with_hash(paths.IN_PROGRESS_PATH, branch=handle.name)
        if doc is None:
            raise NotFoundError(f"No in-progress session on {handle.name}")
        return parse_session(doc.content), doc.hash

    def append_exercise(self, handle, exercise):
        """
        Append a logged exercise to the in-progress document.

        Returns:
            New content hash. A concurrent edit raises ConflictError.
        """
        session, content_hash = self.load(handle)
        if session.status != IN_PROGRESS:
            raise ConflictError(f"Session on {handle.name} is {session.status}")
        session.exercises.append(exercise)
        new_hash = self.store.write(
            paths.IN_PROGRESS_PATH,
            self._render(session),
            expected_hash=content_hash,
            message=f"Log {exercise.name}",
            branch=handle.name,
        )
        logger.info("Appended %s to %s", exercise.name, handle.name)
        return new_hash

    def finalize(self, handle, final_date=None, finished=None):
        """
        Complete a session and merge it into main.

        Args:
            handle: Session branch
            final_date: Date the workout is filed under (session date if None)
            finished: Finish time, HH:MM (now if None)

        Returns:
            FinalizeResult

        Raises:
            InconsistentStateError: the document was moved but the merge or
                branch deletion failed; ``anomaly`` says what to repair
        """
        session, content_hash = self.load(handle)
        day = paths.coerce_date(final_date or session.date).isoformat()
        session.date = day
        session.status = COMPLETED
        session.finished = finished or paths.now_time(self.timezone)

        self.store.write(
            paths.IN_PROGRESS_PATH,
            self._render(session),
            expected_hash=content_hash,
            message=f"Complete {session.workout_type} workout {day}",
            branch=handle.name,
        )

        final_path = paths.workout_path(day)
        try:
            self.store.move(
                paths.IN_PROGRESS_PATH,
                final_path,
                message=f"Finalize workout {day}",
                branch=handle.name,
            )
        except PartialMoveError as exc:
            exc.anomaly = SessionAnomaly(
                kind=DUPLICATE_DOCUMENTS,
                branch=handle.name,
                date=day,
                paths=(paths.IN_PROGRESS_PATH, final_path),
                detail=str(exc),
            )
            raise

        try:
            merge_sha = self.store.merge_branch(handle.name)
        except StoreError as exc:
            anomaly = SessionAnomaly(
                kind=UNMERGED_FINAL,
                branch=handle.name,
                date=day,
                paths=(final_path,),
                detail=f"merge failed: {exc}",
            )
            logger.error("Finalize of %s stopped after the move: %s", handle.name, exc)
            raise InconsistentStateError(
                f"{final_path} is on {handle.name} but the merge into main failed: {exc}",
                anomaly=anomaly,
            ) from exc

        result = FinalizeResult(session=session, path=final_path, branch=handle.name, merge_sha=merge_sha)
        try:
            self.store.delete_branch(handle.name)
        except StoreError as exc:
            # Merged already; the leftover branch shows up in inspect()
            logger.warning("Merged %s but could not delete it: %s", handle.name, exc)
            result.warnings.append(f"branch {handle.name} was merged but not deleted: {exc}")

        logger.info("Finalized %s into %s (%s)", handle.name, final_path, merge_sha[:7])
        return result

    def abandon(self, handle):
        """Drop a session: delete its branch without merging."""
        self.store.delete_branch(handle.name)
        logger.info("Abandoned session %s", handle.name)

    # ------------------------------------------------------------------
    # Operator tools
    # ------------------------------------------------------------------

    def _branch_changes(self, name):
        """Paths changed on ``name`` since its merge base, minus the in-progress document."""
        changed = self.store.changed_paths(name)
        changed.pop(paths.IN_PROGRESS_PATH, None)
        return changed

    def inspect(self):
        """
        Report session branches in a half-finished state.

        Finalized documents are found from the branch's diff against main, so
        a workout filed under a different week than the branch date is still
        seen. Open sessions (in-progress document only) are not anomalies.
        """
        anomalies = []
        for name in self.session_branches():
            handle = BranchHandle.from_branch(name)
            if handle is None:
                logger.warning("Skipping branch %s: not a session branch name", name)
                continue
            has_in_progress = self.store.exists(paths.IN_PROGRESS_PATH, branch=name)
            changed = self._branch_changes(name)
            finals = sorted(
                p for p, status in changed.items()
                if status != "removed" and p.startswith(f"{paths.WEEKS_DIR}/") and paths.is_workout_document(p)
            )

            if has_in_progress and finals:
                anomalies.append(SessionAnomaly(
                    kind=DUPLICATE_DOCUMENTS,
                    branch=name,
                    date=handle.date,
                    paths=(paths.IN_PROGRESS_PATH, *finals),
                    detail="in-progress document and finalized copy both present",
                ))
            elif not has_in_progress and changed:
                anomalies.append(SessionAnomaly(
                    kind=UNMERGED_FINAL,
                    branch=name,
                    date=handle.date,
                    paths=tuple(finals or sorted(changed)),
                    detail="branch changes not merged into main",
                ))
            elif not has_in_progress:
                anomalies.append(SessionAnomaly(
                    kind=STALE_BRANCH,
                    branch=name,
                    date=handle.date,
                    detail="no session documents left on branch",
                ))
        return anomalies

    def repair(self, anomaly):
        """
        Apply the fix for one anomaly reported by inspect().

        Returns:
            Description of what was done

        Raises:
            ConflictError: a branch reported stale has gained unmerged changes
        """
        name = anomaly.branch
        if anomaly.kind == UNMERGED_FINAL:
            sha = self.store.merge_branch(name, delete_after=True)
            action = f"Merged {name} into main ({sha[:7]}) and deleted it"
        elif anomaly.kind == DUPLICATE_DOCUMENTS:
            doc = self.store.read_with_hash(paths.IN_PROGRESS_PATH, branch=name)
            if doc is not None:
                self.store.delete(
                    paths.IN_PROGRESS_PATH,
                    doc.hash,
                    message="Remove in-progress copy of finalized workout",
                    branch=name,
                )
            sha = self.store.merge_branch(name, delete_after=True)
            action = f"Removed in-progress copy, merged {name} ({sha[:7]}) and deleted it"
        elif anomaly.kind == STALE_BRANCH:
            changed = self.store.changed_paths(name)
            if changed:
                raise ConflictError(
                    f"Refusing to delete {name}: unmerged changes to {', '.join(sorted(changed))}"
                )
            self.store.delete_branch(name)
            action = f"Deleted stale branch {name}"
        else:
            raise ValueError(f"Unknown anomaly kind: {anomaly.kind}")
        logger.info("%s", action)
        return action
