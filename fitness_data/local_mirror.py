"""
Local working copy of the data repository.

The mirror is a read cache for the analytics engines and the coaching agent.
It is never a place for unpushed work: every sync discards local changes and
resets to the remote main line. Callers must serialize sync/commit_and_push
(see CoachContext.mirror_session); the mirror does no locking of its own.
"""

import logging
import os
import subprocess
from urllib.parse import quote, urlsplit, urlunsplit

from fitness_data.errors import MirrorNotSyncedError, RemoteUnavailableError, StoreError

logger = logging.getLogger(__name__)

COMMIT_EMAIL = "coach@fitness-bot.local"
COMMIT_NAME = "Fitness Coach"


class GitCommandError(StoreError):
    """A git subprocess exited non-zero."""


def authenticated_url(remote_url, credentials):
    """Embed the credential in the userinfo component of an https URL."""
    parts = urlsplit(remote_url)
    if not credentials or parts.scheme not in ("http", "https"):
        return remote_url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{quote(credentials, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class LocalRepoMirror:
    """Clone/fetch/reset a local copy of the data repository via git."""

    def __init__(self, local_dir, main_branch="main", git_binary="git"):
        self.local_dir = local_dir
        self.main_branch = main_branch
        self.git_binary = git_binary
        self._remote_url = None
        self._secrets = ()
        self._synced = False

    @property
    def local_path(self):
        if not self._synced:
            raise MirrorNotSyncedError("Repo not synced yet. Call sync() first.")
        return self.local_dir

    def _redact(self, text):
        for secret in self._secrets:
            if secret and text:
                text = text.replace(secret, "***")
        return text

    def _git(self, *args, cwd=None):
        result = subprocess.run(
            [self.git_binary, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            stderr = self._redact((result.stderr or "").strip())
            raise GitCommandError(f"git {args[0]} failed: {stderr}", status=result.returncode)
        return (result.stdout or "").strip()

    def _bind(self, remote_url):
        if self._remote_url is None:
            self._remote_url = remote_url
        elif self._remote_url != remote_url:
            raise ValueError(
                f"Mirror at {self.local_dir} is bound to {self._remote_url}, not {remote_url}"
            )

    def sync(self, remote_url, credentials):
        """
        Clone on first use, otherwise fetch and reset to the remote main line.

        Args:
            remote_url: https clone URL without credentials
            credentials: Token embedded in the URL userinfo

        Returns:
            Local path of the working copy
        """
        self._bind(remote_url)
        self._secrets = (quote(credentials, safe=""), credentials) if credentials else ()
        auth_url = authenticated_url(remote_url, credentials)

        if not os.path.isdir(os.path.join(self.local_dir, ".git")):
            parent = os.path.dirname(os.path.abspath(self.local_dir))
            os.makedirs(parent, exist_ok=True)
            try:
                self._git("clone", auth_url, self.local_dir)
            except GitCommandError as exc:
                raise RemoteUnavailableError(f"Initial clone of {remote_url} failed: {exc}") from exc
            logger.info("Cloned %s into %s", remote_url, self.local_dir)
        else:
            self._git("remote", "set-url", "origin", auth_url, cwd=self.local_dir)
            self._refresh()

        self._git("config", "user.email", COMMIT_EMAIL, cwd=self.local_dir)
        self._git("config", "user.name", COMMIT_NAME, cwd=self.local_dir)
        self._synced = True
        return self.local_dir

    def _refresh(self):
        try:
            self._git("fetch", "origin", "--prune", cwd=self.local_dir)
        except GitCommandError as exc:
            logger.warning("Fetch failed, continuing with stale local copy: %s", exc)

        upstream = f"origin/{self.main_branch}"
        try:
            self._git("checkout", "-B", self.main_branch, upstream, cwd=self.local_dir)
            self._git("reset", "--hard", upstream, cwd=self.local_dir)
            self._git("clean", "-fd", cwd=self.local_dir)
        except GitCommandError as exc:
            logger.warning("Could not reset working copy to %s: %s", upstream, exc)

    def current_branch(self):
        return self._git("rev-parse", "--abbrev-ref", "HEAD", cwd=self.local_path)

    def checkout_branch(self, name):
        """Check out a session branch, tracking origin when it exists there."""
        cwd = self.local_path
        try:
            self._git("fetch", "origin", name, cwd=cwd)
        except GitCommandError:
            logger.info("Branch %s not on origin, creating it locally", name)
            self._git("checkout", "-B", name, cwd=cwd)
            return name
        self._git("checkout", "-B", name, f"origin/{name}", cwd=cwd)
        return name

    def commit_and_push(self, message):
        """
        Commit every local change and push the checked-out branch.

        Returns:
            False when there was nothing to commit, True after a push
        """
        cwd = self.local_path
        self._git("add", "-A", cwd=cwd)
        if not self._git("status", "--porcelain", cwd=cwd):
            return False

        self._git("commit", "-m", message, cwd=cwd)
        branch = self.current_branch()
        try:
            self._git("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}", cwd=cwd)
            has_upstream = True
        except GitCommandError:
            has_upstream = False

        try:
            if has_upstream:
                self._git("push", cwd=cwd)
            else:
                self._git("push", "--set-upstream", "origin", branch, cwd=cwd)
        except GitCommandError as exc:
            raise RemoteUnavailableError(f"Push of {branch} failed: {exc}") from exc
        logger.info("Pushed %s: %s", branch, message)
        return True
