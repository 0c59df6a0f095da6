"""
Exception hierarchy for SpeedOps.

Store failures propagate to callers unchanged; the HTTP layer maps them to
status codes. AI integration failures never surface as exceptions.
"""

from typing import Optional


class SpeedOpsError(Exception):
    """Base class for all SpeedOps errors."""


# -----------------------------------------------------------------------------
# Store Errors
# -----------------------------------------------------------------------------
class StoreError(SpeedOpsError):
    """A document store operation failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class DocumentNotFoundError(StoreError):
    """The addressed document does not exist."""


class StaleWriteError(StoreError):
    """A write carried an expected_version that no longer matches the stored one."""

    def __init__(self, path: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Stale write to {path}: expected version {expected_version}, found {actual_version}",
            path=path,
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class StoreUnavailableError(StoreError):
    """Transient failure reaching the store. Safe to retry."""


class GatewayTimeoutError(StoreUnavailableError):
    """A store call did not complete within the gateway timeout."""


# -----------------------------------------------------------------------------
# Domain Errors
# -----------------------------------------------------------------------------
class SyntheticEntryError(SpeedOpsError):
    """Raised when a mutation is attempted on an error entry derived from a comment."""

    def __init__(self, entry_id: str):
        super().__init__(
            f"Error entry {entry_id} is derived from a task comment and cannot be modified"
        )
        self.entry_id = entry_id


class WorkspaceNotFoundError(SpeedOpsError):
    """No workspace matches the given id or invite code."""
