"""
Row-store adapter: PostgreSQL through psycopg 3.

Bulk ingest uses `COPY ... FROM STDIN` inside one transaction per batch.
Backup is a binary `COPY ... TO STDOUT` dump; restore recreates the table from
the schema registry under the new name and copies the dump back in.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import psycopg
from psycopg import Connection, sql

from storebench.config import Settings, get_settings
from storebench.domain.models import (
    POSTGRES,
    BenchmarkCase,
    CoercedRecord,
    LogicalSchema,
    SemanticType,
)
from storebench.engines.abstract import QueryOutcome, single_cell
from storebench.errors import BackupToolError, BenchmarkQueryError
from storebench.infrastructure.db_factory import connect_postgres
from storebench.schema.registry import check_table_name, emit_ddl, pg_enum_type_name
from storebench.utils.logging import get_logger

log = get_logger(__name__)

_COPY_CHUNK = 1 << 16


def _columns(schema: LogicalSchema) -> sql.Composable:
    return sql.SQL(", ").join(sql.Identifier(name) for name in schema.field_names)


class PostgresEngine:
    """
    PostgreSQL variant of the engine capability set.

    A single autocommit connection is opened lazily and reused for every
    operation of this adapter instance; explicit `transaction()` blocks give
    each ingest batch its all-or-nothing boundary.
    """

    name: str = POSTGRES
    description: str = "Row-oriented relational store (PostgreSQL, COPY ingest)."

    def __init__(
        self, settings: Optional[Settings] = None, dsn_override: Optional[str] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._dsn_override = dsn_override
        self._conn: Optional[Connection] = None

    def _connection(self) -> Connection:
        if self._conn is None or self._conn.closed:
            self._conn = connect_postgres(self._settings, dsn_override=self._dsn_override)
        return self._conn

    def connect(self) -> None:
        self._connection()

    def emit_ddl(self, schema: LogicalSchema, table: str) -> str:
        return emit_ddl(POSTGRES, schema, table)

    def create_table(self, schema: LogicalSchema, table: str, drop_existing: bool = False) -> None:
        check_table_name(table)
        ddl = self.emit_ddl(schema, table)
        conn = self._connection()
        with conn.transaction():
            with conn.cursor() as cur:
                if drop_existing:
                    cur.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table)))
                    for spec in schema.fields:
                        if spec.semantic_type is SemanticType.ENUM:
                            cur.execute(
                                sql.SQL("DROP TYPE IF EXISTS {}").format(
                                    sql.Identifier(pg_enum_type_name(table, spec))
                                )
                            )
                cur.execute(ddl)
        log.info("Created table", extra={"engine": self.name, "table": table})

    def bulk_ingest(
        self, table: str, schema: LogicalSchema, records: Sequence[CoercedRecord]
    ) -> int:
        if not records:
            return 0
        conn = self._connection()
        statement = sql.SQL("COPY {} ({}) FROM STDIN").format(
            sql.Identifier(table), _columns(schema)
        )
        with conn.transaction():
            with conn.cursor() as cur:
                with cur.copy(statement) as copy:
                    for record in records:
                        copy.write_row(record.values)
        return len(records)

    def run_query(self, case: BenchmarkCase, table: str) -> QueryOutcome:
        template = case.queries.get(self.name)
        if template is None:
            raise BenchmarkQueryError(case.id, self.name, "no query template for this engine")
        conn = self._connection()
        with conn.cursor() as cur:
            cur.execute(template.format(table=table))
            rows = cur.fetchall()
        return QueryOutcome(rows_returned=len(rows), scalar=single_cell(rows))

    def count_rows(self, table: str) -> int:
        conn = self._connection()
        with conn.cursor() as cur:
            cur.execute(sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(table)))
            row = cur.fetchone()
        return int(row[0]) if row else 0

    def table_exists(self, table: str) -> bool:
        conn = self._connection()
        with conn.cursor() as cur:
            cur.execute("SELECT to_regclass(%s) IS NOT NULL", (table,))
            row = cur.fetchone()
        return bool(row and row[0])

    def backup(self, table: str, directory: Path, name: str) -> str:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.pgcopy"
        conn = self._connection()
        statement = sql.SQL("COPY {} TO STDOUT (FORMAT binary)").format(sql.Identifier(table))
        try:
            with conn.cursor() as cur, path.open("wb") as out:
                with cur.copy(statement) as copy:
                    for chunk in copy:
                        out.write(chunk)
        except psycopg.Error as exc:
            raise BackupToolError(self.name, f"COPY TO failed for {table}: {exc}") from exc
        return str(path)

    def restore(
        self, handle: str, source_table: str, target_table: str, schema: LogicalSchema
    ) -> None:
        path = Path(handle)
        if not path.is_file():
            raise BackupToolError(self.name, f"artifact {path} does not exist")
        try:
            self.create_table(schema, target_table)
        except psycopg.Error as exc:
            raise BackupToolError(
                self.name, f"cannot create restore target {target_table}: {exc}"
            ) from exc
        conn = self._connection()
        statement = sql.SQL("COPY {} ({}) FROM STDIN (FORMAT binary)").format(
            sql.Identifier(target_table), _columns(schema)
        )
        try:
            with conn.transaction():
                with conn.cursor() as cur, path.open("rb") as src:
                    with cur.copy(statement) as copy:
                        while chunk := src.read(_COPY_CHUNK):
                            copy.write(chunk)
        except psycopg.Error as exc:
            raise BackupToolError(
                self.name, f"COPY FROM failed for {target_table}: {exc}"
            ) from exc
        log.info(
            "Restored table",
            extra={"engine": self.name, "source": source_table, "target": target_table},
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


__all__ = ["PostgresEngine"]
