"""
Document-store adapter: MongoDB through pymongo.

Ingest is one ordered `insert_many` per batch. Backup and restore shell out
to the MongoDB database tools (`mongodump` / `mongorestore`) with a gzipped
archive; restore renames the namespace with `--nsFrom/--nsTo`.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pymongo
from pymongo.collection import Collection
from pymongo.database import Database

from storebench.config import Settings, get_settings
from storebench.domain.models import MONGODB, BenchmarkCase, CoercedRecord, LogicalSchema
from storebench.engines.abstract import QueryOutcome
from storebench.errors import BackupToolError, BenchmarkQueryError
from storebench.infrastructure.db_factory import connect_mongo
from storebench.schema.registry import check_table_name, emit_ddl, index_directives
from storebench.utils.logging import get_logger

log = get_logger(__name__)

TOOL_TIMEOUT_SECONDS = 3600


def _single_value(docs: List[Dict[str, Any]]) -> Optional[Any]:
    if len(docs) != 1:
        return None
    values = [value for key, value in docs[0].items() if key != "_id"]
    return values[0] if len(values) == 1 else None


def run_tool(cmd: List[str], error_context: str) -> subprocess.CompletedProcess[str]:
    """Run a database tool, converting every failure into BackupToolError."""
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            timeout=TOOL_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise BackupToolError(MONGODB, f"{cmd[0]} not found on PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise BackupToolError(
            MONGODB, f"{error_context} timed out after {TOOL_TIMEOUT_SECONDS}s"
        ) from exc
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip().splitlines()
        raise BackupToolError(
            MONGODB,
            f"{error_context} exited with {proc.returncode}: {detail[-1] if detail else ''}",
        )
    return proc


class MongoEngine:
    """MongoDB variant of the engine capability set."""

    name: str = MONGODB
    description: str = "Document store (MongoDB, insert_many ingest, no schema enforcement)."

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._client: Optional[pymongo.MongoClient[Any]] = None

    def _db(self) -> Database[Any]:
        if self._client is None:
            self._client = connect_mongo(self._settings)
        return self._client[self._settings.mongo_database]

    def _collection(self, table: str) -> Collection[Any]:
        return self._db()[table]

    def connect(self) -> None:
        self._db()

    def emit_ddl(self, schema: LogicalSchema, table: str) -> str:
        return emit_ddl(MONGODB, schema, table)

    def create_table(self, schema: LogicalSchema, table: str, drop_existing: bool = False) -> None:
        check_table_name(table)
        collection = self._collection(table)
        if drop_existing:
            collection.drop()
        for directive in index_directives(schema):
            keys = list(directive["keys"].items())  # type: ignore[union-attr]
            collection.create_index(keys, **directive["options"])  # type: ignore[arg-type]
        log.info("Created collection", extra={"engine": self.name, "table": table})

    def bulk_ingest(
        self, table: str, schema: LogicalSchema, records: Sequence[CoercedRecord]
    ) -> int:
        if not records:
            return 0
        names = schema.field_names
        documents = [dict(zip(names, record.values)) for record in records]
        result = self._collection(table).insert_many(documents, ordered=True)
        return len(result.inserted_ids)

    def run_query(self, case: BenchmarkCase, table: str) -> QueryOutcome:
        pipeline = case.queries.get(self.name)
        if pipeline is None:
            raise BenchmarkQueryError(case.id, self.name, "no query pipeline for this engine")
        docs = list(self._collection(table).aggregate(pipeline))
        if not docs and pipeline and "$count" in pipeline[-1]:
            # $count emits no document for an empty input.
            return QueryOutcome(rows_returned=1, scalar=0)
        return QueryOutcome(rows_returned=len(docs), scalar=_single_value(docs))

    def count_rows(self, table: str) -> int:
        return self._collection(table).count_documents({})

    def table_exists(self, table: str) -> bool:
        return table in self._db().list_collection_names(filter={"name": table})

    def backup(self, table: str, directory: Path, name: str) -> str:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.archive.gz"
        run_tool(
            [
                "mongodump",
                f"--uri={self._settings.mongo_uri}",
                f"--db={self._settings.mongo_database}",
                f"--collection={table}",
                f"--archive={path}",
                "--gzip",
            ],
            error_context=f"mongodump of {table}",
        )
        return str(path)

    def restore(
        self, handle: str, source_table: str, target_table: str, schema: LogicalSchema
    ) -> None:
        check_table_name(target_table)
        db = self._settings.mongo_database
        run_tool(
            [
                "mongorestore",
                f"--uri={self._settings.mongo_uri}",
                f"--archive={handle}",
                "--gzip",
                f"--nsInclude={db}.{source_table}",
                f"--nsFrom={db}.{source_table}",
                f"--nsTo={db}.{target_table}",
            ],
            error_context=f"mongorestore of {source_table} into {target_table}",
        )
        log.info(
            "Restored collection",
            extra={"engine": self.name, "source": source_table, "target": target_table},
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["MongoEngine", "run_tool"]
