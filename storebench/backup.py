"""
Backup/restore coordinator.

Wraps each engine's native dump/restore primitive with row-count bookkeeping:
the source row count is captured at backup time and compared with the
restored table. A mismatch is reported as a RestoreVerificationWarning, not
an error, because the artifact itself may be fine (rows can change between
backup and restore).

Each backup also writes a JSON manifest next to the artifact so a later
process can restore from it:

    backups/<engine>-<table>-<timestamp>.manifest.json
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Optional

from storebench.concurrency import table_lock
from storebench.config import get_settings
from storebench.domain.models import BackupArtifact, LogicalSchema, RestoreReport
from storebench.engines.abstract import EngineAdapter
from storebench.errors import BackupToolError, InvalidRestoreTargetError, RestoreVerificationWarning
from storebench.results import timestamp_slug
from storebench.schema.registry import PEOPLE_SCHEMA, check_table_name
from storebench.utils.logging import get_logger

log = get_logger(__name__)

MANIFEST_SUFFIX = ".manifest.json"


def backup(
    engine: EngineAdapter, table: str, backup_dir: Optional[Path | str] = None
) -> BackupArtifact:
    """
    Dump `table` with the engine's native primitive and record its row count.

    The table lock is held across the count and the dump so no load can
    slip in between them.
    """
    check_table_name(table)
    directory = Path(backup_dir or get_settings().backup_dir)
    name = f"{engine.name}-{table}-{timestamp_slug()}"

    log.info(
        f"[BACKUP START] {engine.name}:{table}", extra={"engine": engine.name, "table": table}
    )
    with table_lock(engine.name, table):
        row_count = engine.count_rows(table)
        handle = engine.backup(table, directory, name)

    artifact = BackupArtifact(
        engine=engine.name, table=table, name=name, handle=handle, source_row_count=row_count
    )
    manifest = write_manifest(artifact, manifest_path(artifact, directory))
    log.info(
        f"[BACKUP COMPLETE] {engine.name}:{table}",
        extra={"engine": engine.name, "rows": row_count, "manifest": str(manifest)},
    )
    return artifact


def restore(
    artifact: BackupArtifact,
    engine: EngineAdapter,
    target_table: str,
    schema: LogicalSchema = PEOPLE_SCHEMA,
) -> RestoreReport:
    """
    Restore `artifact` into a new table and verify its row count.

    Raises
    ------
    InvalidRestoreTargetError
        If `target_table` is the table the artifact was taken from or already
        exists; native restores would otherwise fail or append to it.
    BackupToolError
        If the artifact belongs to a different engine or the native restore fails.
    """
    check_table_name(target_table)
    if artifact.engine != engine.name:
        raise BackupToolError(
            engine.name, f"artifact was produced by {artifact.engine}, not {engine.name}"
        )
    if target_table == artifact.table:
        raise InvalidRestoreTargetError(engine.name, target_table)

    log.info(
        f"[RESTORE START] {engine.name}:{artifact.table} -> {target_table}",
        extra={"engine": engine.name, "handle": artifact.handle},
    )
    with table_lock(engine.name, target_table):
        if engine.table_exists(target_table):
            raise InvalidRestoreTargetError(engine.name, target_table, "it already exists")
        engine.restore(artifact.handle, artifact.table, target_table, schema)
        restored = engine.count_rows(target_table)

    report = RestoreReport(
        engine=engine.name,
        source_table=artifact.table,
        target_table=target_table,
        source_row_count=artifact.source_row_count,
        restored_row_count=restored,
    )
    if report.matches_source:
        log.info(
            f"[RESTORE VERIFIED] {engine.name}:{target_table}",
            extra={"engine": engine.name, "rows": restored},
        )
    else:
        message = (
            f"{engine.name}:{target_table} has {restored} rows but "
            f"{artifact.table} had {artifact.source_row_count} at backup time"
        )
        log.warning(f"[RESTORE MISMATCH] {message}", extra={"engine": engine.name})
        warnings.warn(message, RestoreVerificationWarning, stacklevel=2)
    return report


def manifest_path(artifact: BackupArtifact, backup_dir: Path | str) -> Path:
    return Path(backup_dir) / f"{artifact.name}{MANIFEST_SUFFIX}"


def write_manifest(artifact: BackupArtifact, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(artifact.model_dump_json(indent=2), encoding="utf-8")
    return path


def read_manifest(path: Path | str) -> BackupArtifact:
    return BackupArtifact.model_validate_json(Path(path).read_text(encoding="utf-8"))


__all__ = [
    "MANIFEST_SUFFIX",
    "backup",
    "manifest_path",
    "read_manifest",
    "restore",
    "write_manifest",
]
