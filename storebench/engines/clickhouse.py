"""
Column-store adapter: ClickHouse through clickhouse-connect (HTTP).

One `client.insert` per batch; a MergeTree insert below the server's
max_insert_block_size is written as a single part, so a batch lands whole or
not at all. Backup and restore use the server-side `BACKUP TABLE` and
`RESTORE TABLE ... AS` statements against the configured backup destination.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from clickhouse_connect.driver.client import Client
from clickhouse_connect.driver.exceptions import ClickHouseError

from storebench.config import Settings, get_settings
from storebench.domain.models import CLICKHOUSE, BenchmarkCase, CoercedRecord, LogicalSchema
from storebench.engines.abstract import QueryOutcome, single_cell
from storebench.errors import BackupToolError, BenchmarkQueryError
from storebench.infrastructure.db_factory import connect_clickhouse
from storebench.schema.registry import check_table_name, emit_ddl
from storebench.utils.logging import get_logger

log = get_logger(__name__)

# Return FixedString identifiers as str rather than bytes.
_QUERY_FORMATS = {"FixedString": "string"}


class ClickHouseEngine:
    """ClickHouse variant of the engine capability set."""

    name: str = CLICKHOUSE
    description: str = "Columnar OLAP store (ClickHouse MergeTree, block insert)."

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = connect_clickhouse(self._settings)
        return self._client

    def _qualified(self, table: str) -> str:
        return f"{self._settings.clickhouse_database}.{table}"

    def connect(self) -> None:
        self._get_client()

    def emit_ddl(self, schema: LogicalSchema, table: str) -> str:
        return emit_ddl(CLICKHOUSE, schema, table)

    def create_table(self, schema: LogicalSchema, table: str, drop_existing: bool = False) -> None:
        check_table_name(table)
        client = self._get_client()
        if drop_existing:
            client.command(f"DROP TABLE IF EXISTS {table}")
        client.command(self.emit_ddl(schema, table).rstrip(";"))
        log.info("Created table", extra={"engine": self.name, "table": table})

    def bulk_ingest(
        self, table: str, schema: LogicalSchema, records: Sequence[CoercedRecord]
    ) -> int:
        if not records:
            return 0
        summary = self._get_client().insert(
            table,
            [record.values for record in records],
            column_names=schema.field_names,
        )
        return summary.written_rows or len(records)

    def run_query(self, case: BenchmarkCase, table: str) -> QueryOutcome:
        template = case.queries.get(self.name)
        if template is None:
            raise BenchmarkQueryError(case.id, self.name, "no query template for this engine")
        result = self._get_client().query(
            template.format(table=table), query_formats=_QUERY_FORMATS
        )
        rows = result.result_rows
        return QueryOutcome(rows_returned=len(rows), scalar=single_cell(rows))

    def count_rows(self, table: str) -> int:
        result = self._get_client().query(f"SELECT count() FROM {table}")
        return int(result.result_rows[0][0])

    def table_exists(self, table: str) -> bool:
        return bool(int(self._get_client().command(f"EXISTS TABLE {self._qualified(table)}")))

    def backup(self, table: str, directory: Path, name: str) -> str:
        # The artifact lives on the server; `directory` only holds the manifest.
        destination = self._settings.clickhouse_backup_destination.format(name=name)
        try:
            self._get_client().command(f"BACKUP TABLE {self._qualified(table)} TO {destination}")
        except ClickHouseError as exc:
            raise BackupToolError(self.name, f"BACKUP TABLE {table} failed: {exc}") from exc
        return destination

    def restore(
        self, handle: str, source_table: str, target_table: str, schema: LogicalSchema
    ) -> None:
        check_table_name(target_table)
        statement = (
            f"RESTORE TABLE {self._qualified(source_table)} "
            f"AS {self._qualified(target_table)} FROM {handle}"
        )
        try:
            self._get_client().command(statement)
        except ClickHouseError as exc:
            raise BackupToolError(self.name, f"RESTORE TABLE {source_table} failed: {exc}") from exc
        log.info(
            "Restored table",
            extra={"engine": self.name, "source": source_table, "target": target_table},
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["ClickHouseEngine"]
