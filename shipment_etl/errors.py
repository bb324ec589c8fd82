"""
Import Errors and Result Codes

Exception taxonomy for the import pipeline and the result codes reported
to the scheduler that launches a run.
"""

from enum import IntEnum
from typing import Optional, Tuple


class ResultCode(IntEnum):
    """Process exit codes for an import run."""

    SUCCESS = 0
    IMPORT_FAILED = 2
    LOCK_UNAVAILABLE = 3
    MISSING_SOURCE = 4
    MISSING_CONNECTION = 5
    MISSING_TARGET_TABLE = 6


class ShipmentImportError(Exception):
    """Base class for all import pipeline errors."""

    result_code: ResultCode = ResultCode.IMPORT_FAILED


class ConfigurationError(ShipmentImportError):
    """
    A required parameter is missing or unusable.

    Raised before any connection is opened, so no database state is touched.
    """

    def __init__(self, message: str, result_code: ResultCode = ResultCode.MISSING_CONNECTION):
        super().__init__(message)
        self.result_code = result_code


class LockUnavailableError(ShipmentImportError):
    """Another run holds the import lock."""

    result_code = ResultCode.LOCK_UNAVAILABLE

    def __init__(self, resource: str, timeout_ms: Optional[int] = None):
        wait = "no wait" if not timeout_ms else f"waited {timeout_ms} ms"
        super().__init__(f"Another import is running: lock '{resource}' unavailable ({wait})")
        self.resource = resource
        self.timeout_ms = timeout_ms


class BatchLoadError(ShipmentImportError):
    """A batch failed to load; its transaction was rolled back."""

    def __init__(self, window: Tuple[int, int], cause: Exception):
        super().__init__(f"Failed to load rows {window[0]}..{window[1]}: {cause}")
        self.window = window
        self.cause = cause


class IndexRebuildError(ShipmentImportError):
    """Dropped indexes could not be re-created; they stay missing until fixed by hand."""

    def __init__(self, table: str, index_names, cause: Exception):
        names = ", ".join(index_names)
        super().__init__(f"Failed to rebuild indexes on {table} ({names}): {cause}")
        self.table = table
        self.index_names = list(index_names)
        self.cause = cause
