"""
Error taxonomy for storebench.

Every exception that can cross an engine-connection or configuration boundary
derives from StorebenchError and carries the CLI exit code it maps to.
Per-record coercion problems are values (see `CoercionFailure` in the domain
models), not exceptions.
"""

from __future__ import annotations

from typing import Optional

EXIT_OK = 0
EXIT_SCHEMA_TRANSLATION = 2
EXIT_LOAD_ABORTED = 3
EXIT_CONNECTION = 4
EXIT_VERIFICATION_MISMATCH = 5
EXIT_BACKUP_TOOL = 6
EXIT_LOAD_FAILED = 7
EXIT_CANCELLED = 130


class StorebenchError(Exception):
    """Base class for harness errors."""

    exit_code: int = 1
    # Partial LoadReport when the error interrupted a load.
    report: Optional[object] = None


class SchemaTranslationError(StorebenchError):
    """A logical field has no mapping on the requested engine."""

    exit_code = EXIT_SCHEMA_TRANSLATION

    def __init__(self, field: str, engine: str, reason: str) -> None:
        self.field = field
        self.engine = engine
        self.reason = reason
        super().__init__(f"Cannot translate field '{field}' for engine '{engine}': {reason}")


class LoadAbortedError(StorebenchError):
    """
    The failure tolerance of a load was exceeded.

    Batches committed before the abort stay committed; the partial report is
    attached for the caller.
    """

    exit_code = EXIT_LOAD_ABORTED

    def __init__(
        self, engine: str, table: str, failed: int, report: Optional[object] = None
    ) -> None:
        self.engine = engine
        self.table = table
        self.failed = failed
        self.report = report
        super().__init__(
            f"Load into {engine}:{table} aborted: {failed} record failure(s) exceeded tolerance"
        )


class IngestError(StorebenchError):
    """The engine rejected a batch mid-load; earlier batches stay committed."""

    exit_code = EXIT_LOAD_FAILED

    def __init__(self, engine: str, table: str, message: str) -> None:
        self.engine = engine
        self.table = table
        super().__init__(f"Load into {engine}:{table} failed: {message}")


class EngineConnectionError(StorebenchError):
    """Connection to an engine could not be established (after the scripted retry)."""

    exit_code = EXIT_CONNECTION

    def __init__(self, engine: str, message: str) -> None:
        self.engine = engine
        super().__init__(f"[{engine}] connection failed: {message}")


class BenchmarkQueryError(StorebenchError):
    """A single benchmark case failed on one engine."""

    def __init__(self, case_id: str, engine: str, message: str) -> None:
        self.case_id = case_id
        self.engine = engine
        super().__init__(f"Benchmark case '{case_id}' failed on {engine}: {message}")


class InvalidRestoreTargetError(StorebenchError):
    """Restore target is the source table or a table that already exists."""

    def __init__(self, engine: str, table: str, reason: str = "it is the backup source") -> None:
        self.engine = engine
        self.table = table
        super().__init__(
            f"Refusing to restore into {engine}:{table}: {reason}; choose a new target table"
        )


class BackupToolError(StorebenchError):
    """A native dump/restore primitive failed or is not installed."""

    exit_code = EXIT_BACKUP_TOOL

    def __init__(self, engine: str, message: str) -> None:
        self.engine = engine
        super().__init__(f"[{engine}] backup/restore failed: {message}")


class RestoreVerificationWarning(UserWarning):
    """Restored row count differs from the source row count at backup time."""


__all__ = [
    "EXIT_OK",
    "EXIT_SCHEMA_TRANSLATION",
    "EXIT_LOAD_ABORTED",
    "EXIT_CONNECTION",
    "EXIT_VERIFICATION_MISMATCH",
    "EXIT_BACKUP_TOOL",
    "EXIT_LOAD_FAILED",
    "EXIT_CANCELLED",
    "StorebenchError",
    "SchemaTranslationError",
    "LoadAbortedError",
    "IngestError",
    "EngineConnectionError",
    "BenchmarkQueryError",
    "InvalidRestoreTargetError",
    "BackupToolError",
    "RestoreVerificationWarning",
]
