"""
GitHub-backed document store.

The data repository is the database: every write or delete is one commit,
and the blob SHA of a file is its optimistic-concurrency token.
"""

import base64
import logging
from dataclasses import dataclass
from urllib.parse import quote

import requests

from fitness_data import paths
from fitness_data.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PartialMoveError,
    RemoteUnavailableError,
    StoreError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
BRANCH_PAGE_SIZE = 100


@dataclass(frozen=True)
class Document:
    path: str
    content: str
    hash: str


def _encode(content):
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _decode(data):
    if data.get("encoding") == "base64":
        return base64.b64decode(data.get("content") or "").decode("utf-8")
    return data.get("content") or ""


class GitHubDocumentStore:
    """Read/write/delete/move named text documents and manage branches."""

    def __init__(
        self,
        token,
        repo,
        api_url=DEFAULT_API_URL,
        main_branch="main",
        session=None,
        timeout=None,
    ):
        """
        Args:
            token: Bearer credential for the GitHub API
            repo: Repository as "owner/repo"
            api_url: API base URL (GitHub Enterprise or a test double)
            main_branch: Name of the main line
            session: Optional requests.Session to reuse
            timeout: Optional per-request timeout in seconds (None = no timeout)
        """
        owner, _, name = (repo or "").partition("/")
        if not owner or not name or "/" in name:
            raise ValueError('Invalid repo format. Expected "owner/repo"')
        self.owner = owner
        self.repo = name
        self.api_url = api_url.rstrip("/")
        self.main_branch = main_branch
        self.timeout = timeout
        self.session = session or requests.Session()
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _url(self, endpoint):
        return f"{self.api_url}/repos/{self.owner}/{self.repo}{endpoint}"

    def _contents(self, path):
        return f"/contents/{quote(path.strip('/'), safe='/')}"

    def _request(self, method, endpoint, params=None, body=None):
        url = self._url(endpoint)
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=body,
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteUnavailableError(f"{method} {endpoint}: {exc}") from exc

        if resp.status_code >= 400:
            self._raise_for_status(method, endpoint, resp)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _raise_for_status(method, endpoint, resp):
        status = resp.status_code
        try:
            detail = resp.json().get("message", "")
        except ValueError:
            detail = resp.text
        message = f"{method} {endpoint} failed ({status}): {detail}"
        lowered = (detail or "").lower()

        if status == 404:
            raise NotFoundError(message, status=status)
        if status == 409:
            raise ConflictError(message, status=status)
        if status == 422:
            if "sha" in lowered or "already exists" in lowered:
                raise ConflictError(message, status=status)
            if "does not exist" in lowered:
                raise NotFoundError(message, status=status)
        if status in (401, 403) and "rate limit" not in lowered:
            raise AuthenticationError(message, status=status)
        if status >= 500 or status in (403, 429):
            raise RemoteUnavailableError(message, status=status)
        raise StoreError(message, status=status)

    def _ref(self, branch):
        return branch or self.main_branch

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def read_with_hash(self, path, branch=None):
        """Return the Document at ``path`` or None when it does not exist."""
        try:
            data = self._request("GET", self._contents(path), params={"ref": self._ref(branch)})
        except NotFoundError:
            return None
        if isinstance(data, list) or data.get("type") not in (None, "file"):
            raise StoreError(f"{path} is a directory, not a document")
        return Document(path=path, content=_decode(data), hash=data["sha"])

    def read(self, path, branch=None):
        doc = self.read_with_hash(path, branch)
        return doc.content if doc else None

    def exists(self, path, branch=None):
        return self.read_with_hash(path, branch) is not None

    def write(self, path, content, expected_hash=None, message=None, branch=None):
        """
        Write a document and return its new content hash.

        Args:
            path: Document path
            content: Full text content
            expected_hash: Hash from the last read. When given, the write fails
                with ConflictError unless it still matches the remote.
                When omitted the document is created, or overwritten
                unconditionally (first-time writes only).
            message: Commit message
            branch: Target branch (main line when None)

        Returns:
            New content hash
        """
        ref = self._ref(branch)
        sha = expected_hash
        if sha is None:
            existing = self.read_with_hash(path, ref)
            sha = existing.hash if existing else None

        body = {
            "message": message or (f"Update {path}" if sha else f"Create {path}"),
            "content": _encode(content),
            "branch": ref,
        }
        if sha:
            body["sha"] = sha

        try:
            data = self._request("PUT", self._contents(path), body=body)
        except NotFoundError as exc:
            if expected_hash:
                # Document was deleted since the caller read it
                raise ConflictError(f"{path} no longer exists on {ref}", status=exc.status) from exc
            raise
        new_hash = data["content"]["sha"]
        logger.info("Committed %s on %s (%s)", path, ref, body["message"])
        return new_hash

    def delete(self, path, expected_hash, message=None, branch=None):
        ref = self._ref(branch)
        body = {
            "message": message or f"Delete {path}",
            "sha": expected_hash,
            "branch": ref,
        }
        self._request("DELETE", self._contents(path), body=body)
        logger.info("Deleted %s on %s", path, ref)

    def move(self, from_path, to_path, message=None, branch=None):
        """
        Move a document: read, write the destination, delete the source.

        Not atomic. If the delete fails after the destination was written,
        PartialMoveError is raised and both paths hold the content.
        """
        ref = self._ref(branch)
        source = self.read_with_hash(from_path, ref)
        if source is None:
            raise NotFoundError(f"File not found: {from_path} on {ref}")

        new_hash = self.write(
            to_path,
            source.content,
            message=message or f"Move {from_path} to {to_path}",
            branch=ref,
        )
        try:
            self.delete(
                from_path,
                source.hash,
                message=f"Delete {from_path} (moved to {to_path})",
                branch=ref,
            )
        except StoreError as exc:
            raise PartialMoveError(from_path, to_path, ref, exc) from exc
        return new_hash

    def _list_entries(self, directory, branch=None):
        try:
            data = self._request(
                "GET", self._contents(directory), params={"ref": self._ref(branch)}
            )
        except NotFoundError:
            return []
        if not isinstance(data, list):
            return []
        return data

    def list(self, directory, branch=None):
        """Paths of the documents directly inside ``directory`` (empty if absent)."""
        return {
            item["path"] for item in self._list_entries(directory, branch) if item.get("type") == "file"
        }

    def list_dirs(self, directory, branch=None):
        return {
            item["name"] for item in self._list_entries(directory, branch) if item.get("type") == "dir"
        }

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def branch_head(self, name):
        data = self._request("GET", f"/git/ref/heads/{quote(name, safe='/')}")
        return data["object"]["sha"]

    def branch_exists(self, name):
        try:
            self.branch_head(name)
        except NotFoundError:
            return False
        return True

    def create_branch(self, name):
        """Create ``name`` from the current main line head."""
        head = self.branch_head(self.main_branch)
        self._request("POST", "/git/refs", body={"ref": f"refs/heads/{name}", "sha": head})
        logger.info("Created branch %s at %s", name, head[:7])

    def delete_branch(self, name):
        self._request("DELETE", f"/git/refs/heads/{quote(name, safe='/')}")
        logger.info("Deleted branch %s", name)

    def merge_branch(self, name, delete_after=False):
        """
        Merge ``name`` into the main line and return the merge commit hash.

        Nothing to merge returns the current main head.
        """
        data = self._request(
            "POST",
            "/merges",
            body={
                "base": self.main_branch,
                "head": name,
                "commit_message": f"Merge {name} into {self.main_branch}",
            },
        )
        merge_sha = data["sha"] if data else self.branch_head(self.main_branch)
        logger.info("Merged %s into %s (%s)", name, self.main_branch, merge_sha[:7])
        if delete_after:
            self.delete_branch(name)
        return merge_sha

    def list_branches(self, prefix=None):
        names = []
        page = 1
        while True:
            data = self._request(
                "GET", "/branches", params={"per_page": BRANCH_PAGE_SIZE, "page": page}
            ) or []
            names.extend(b["name"] for b in data)
            if len(data) < BRANCH_PAGE_SIZE:
                break
            page += 1
        if prefix:
            return [n for n in names if n.startswith(prefix)]
        return names

    def changed_paths(self, branch):
        """
        Paths ``branch`` changed since it last shared history with main.

        Returns:
            Dict of path -> status ("added", "modified", "removed", ...)
        """
        basehead = f"{self.main_branch}...{quote(branch, safe='/')}"
        data = self._request("GET", f"/compare/{basehead}") or {}
        changed = {}
        for item in data.get("files") or []:
            changed[item["filename"]] = item.get("status", "modified")
            if item.get("previous_filename"):
                changed.setdefault(item["previous_filename"], "removed")
        return changed

    # ------------------------------------------------------------------
    # Convenience readers for well-known documents
    # ------------------------------------------------------------------

    def read_prs(self):
        return self.read_with_hash(paths.PRS_PATH)

    def read_e1rm_history(self):
        return self.read_with_hash(paths.E1RM_HISTORY_PATH)

    def read_fatigue_signals(self):
        return self.read_with_hash(paths.FATIGUE_SIGNALS_PATH)

    def read_weekly_plan(self, week):
        return self.read(paths.plan_path(week))

    def list_weeks(self):
        return sorted(self.list_dirs(paths.WEEKS_DIR))

    def list_week_workouts(self, week):
        return sorted(p for p in self.list(paths.week_dir(week)) if paths.is_workout_document(p))
