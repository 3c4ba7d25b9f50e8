"""
Error taxonomy for the workout data store.

Callers branch on NotFoundError, retry ConflictError with a fresh read,
retry RemoteUnavailableError later, and report InconsistentStateError to an
operator.
"""


class StoreError(Exception):
    """Base class for every document store / mirror failure."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    """Document, directory or branch does not exist."""


class ConflictError(StoreError):
    """Stale content hash, existing branch, or merge conflict."""


class RemoteUnavailableError(StoreError):
    """Network or provider failure. Safe for the caller to retry."""


class AuthenticationError(StoreError):
    """Credential rejected by the provider."""


class InconsistentStateError(StoreError):
    """
    A multi-step operation stopped half way.

    The remote is left exactly as the last completed step produced it. The
    attached anomaly (if any) describes what an operator needs to repair.
    """

    def __init__(self, message, anomaly=None):
        super().__init__(message)
        self.anomaly = anomaly


class PartialMoveError(InconsistentStateError):
    """Move wrote the destination but could not delete the source."""

    def __init__(self, from_path, to_path, branch, cause):
        super().__init__(
            f"Moved {from_path} -> {to_path} on {branch} but could not delete "
            f"the source: {cause}. Both paths now hold the document."
        )
        self.from_path = from_path
        self.to_path = to_path
        self.branch = branch
        self.cause = cause


class MirrorNotSyncedError(StoreError):
    """Local mirror used before the first sync."""


class LedgerFormatError(ValueError):
    """A YAML ledger does not match its schema."""


class WorkoutLogFormatError(ValueError):
    """A workout document has no readable front matter."""


class ConfigError(Exception):
    """Required configuration is missing or invalid."""
