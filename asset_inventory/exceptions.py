"""
Exception taxonomy for the asset inventory.

Scan-side errors:
    - TransientSourceError: retryable source failure (bounded retries per chunk)
    - MalformedReferenceError: a single unusable record; logged and skipped
    - FatalScanError: aborts the whole scan and triggers the discard path
    - ScanInProgressError: a second scan was started while one is running

Archive-side errors:
    - InvalidTransitionError: action not allowed from the record's state
    - ExecutionBlockedError: execute gate failed (missing file, live usage)
    - StaleVersionError: optimistic-concurrency conflict, reload and retry
    - ValidationError: malformed input to an archive action

Shared:
    - RecordNotFoundError: referenced asset or archive record does not exist
"""

from typing import List, Optional


class AssetInventoryError(Exception):
    """Base class for all asset inventory errors."""
    pass


# =========================================================================
# SCAN ERRORS
# =========================================================================


class TransientSourceError(AssetInventoryError):
    """Exception raised when a source read fails in a way that may succeed on retry."""
    pass


class MalformedReferenceError(AssetInventoryError):
    """Exception raised when a single source record cannot be interpreted."""
    pass


class FatalScanError(AssetInventoryError):
    """Exception raised when a scan cannot continue and must be discarded."""
    pass


class ScanInProgressError(AssetInventoryError):
    """Exception raised when a scan is started while another one is active."""
    pass


# =========================================================================
# ARCHIVE ERRORS
# =========================================================================


class InvalidTransitionError(AssetInventoryError):
    """Exception raised when an archive action is not allowed from the record's current state."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class ExecutionBlockedError(InvalidTransitionError):
    """Exception raised when a queued archive cannot be executed because a gate failed."""

    def __init__(self, message: str, issues: Optional[List[str]] = None, status: Optional[str] = None):
        super().__init__(message, status=status)
        self.issues = issues or []


class StaleVersionError(AssetInventoryError):
    """Exception raised when an archive record was modified since the caller loaded it."""

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ValidationError(AssetInventoryError):
    """Exception raised when input to an archive action is malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RecordNotFoundError(AssetInventoryError):
    """Exception raised when a referenced asset or archive record does not exist."""
    pass
