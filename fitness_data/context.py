"""
Per-process wiring of the store, mirror and analytics engines.
"""

import logging
import os
import threading
from contextlib import contextmanager

from fitness_data.config import load_settings
from fitness_data.document_store import GitHubDocumentStore
from fitness_data.e1rm import E1RMEngine
from fitness_data.exercise_normalizer import ExerciseNormalizer
from fitness_data.fatigue_analyzer import FatigueAnalyzer
from fitness_data.local_mirror import LocalRepoMirror
from fitness_data.pr_tracker import PRTracker
from fitness_data.rpe_analyzer import RPETrendAnalyzer
from fitness_data.sessions import SessionBranchManager

logger = logging.getLogger(__name__)


class CoachContext:
    """
    Everything a webhook request or cron job needs, built once per process.

    The mirror's working copy is shared state; hold ``mirror_session()``
    around any sync-edit-push sequence.
    """

    def __init__(self, settings, store, mirror=None, normalizer=None):
        self.settings = settings
        self.store = store
        self.mirror = mirror
        self.normalizer = normalizer or ExerciseNormalizer()
        unit = settings.weight_unit
        self.prs = PRTracker(normalizer=self.normalizer, unit=unit)
        self.e1rm = E1RMEngine(normalizer=self.normalizer)
        self.rpe = RPETrendAnalyzer(normalizer=self.normalizer, unit=unit)
        self.fatigue = FatigueAnalyzer(normalizer=self.normalizer, unit=unit, rpe_analyzer=self.rpe)
        self.sessions = SessionBranchManager(store, unit=unit, timezone=settings.timezone)
        self._mirror_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings=None, session=None, timeout=None):
        """
        Build a context from Settings (loaded from the environment when None).

        Raises:
            ConfigError: token or repository missing
        """
        settings = settings or load_settings()
        settings.require_remote()
        store = GitHubDocumentStore(
            settings.github_token,
            settings.data_repo,
            api_url=settings.api_url,
            main_branch=settings.main_branch,
            session=session,
            timeout=timeout,
        )
        mirror = LocalRepoMirror(
            os.path.join(settings.data_dir, settings.data_repo.replace("/", "__")),
            main_branch=settings.main_branch,
        )
        logger.info("Context ready for %s (%s)", settings.data_repo, settings.weight_unit)
        return cls(settings, store, mirror=mirror, normalizer=ExerciseNormalizer(settings.aliases_file))

    @contextmanager
    def mirror_session(self):
        """
        Hold the mirror lock and yield a freshly synced local path.

        Usage:
            with ctx.mirror_session() as local_path:
                ...edit files...
                ctx.mirror.commit_and_push("Update plan")
        """
        with self._mirror_lock:
            yield self.mirror.sync(self.settings.remote_url, self.settings.github_token)
