"""
Engine capability interface for storebench.

Each engine family (row store, column store, document store) implements the
EngineAdapter protocol in its own module. Adapters are selected by name from
the factory registry in `storebench.engines`; they share no base class and no
mutable state, so different engines can be driven from different threads.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, TypedDict, runtime_checkable

from storebench.domain.models import BenchmarkCase, CoercedRecord, LogicalSchema


class QueryOutcome(TypedDict):
    """
    What a fully materialized benchmark query produced.

    `scalar` is set only when the result is a single cell (e.g. a count).
    """

    rows_returned: int
    scalar: Optional[Any]


@runtime_checkable
class EngineAdapter(Protocol):
    """
    Capability set every engine variant provides.

    Attributes
    ----------
    name : str
        Engine key (`postgres`, `clickhouse`, `mongodb`).
    description : str
        A human-friendly summary of the storage model.
    """

    name: str
    description: str

    def connect(self) -> None:
        """Establish the connection eagerly (raises EngineConnectionError)."""
        ...

    def emit_ddl(self, schema: LogicalSchema, table: str) -> str:
        ...

    def create_table(self, schema: LogicalSchema, table: str, drop_existing: bool = False) -> None:
        ...

    def bulk_ingest(
        self, table: str, schema: LogicalSchema, records: Sequence[CoercedRecord]
    ) -> int:
        """
        Ingest one batch atomically and return the number of rows committed.

        Either every record of the batch is committed or none is.
        """
        ...

    def run_query(self, case: BenchmarkCase, table: str) -> QueryOutcome:
        """Execute a read-only benchmark query and fully consume its result."""
        ...

    def count_rows(self, table: str) -> int:
        ...

    def table_exists(self, table: str) -> bool:
        ...

    def backup(self, table: str, directory: Path, name: str) -> str:
        """Invoke the native dump primitive and return an opaque artifact handle."""
        ...

    def restore(
        self, handle: str, source_table: str, target_table: str, schema: LogicalSchema
    ) -> None:
        """Restore an artifact into a new table named `target_table`."""
        ...

    def close(self) -> None:
        ...


def single_cell(rows: Sequence[Sequence[Any]]) -> Optional[Any]:
    """Return the only cell of a one-row, one-column result, else None."""
    if len(rows) == 1 and len(rows[0]) == 1:
        return rows[0][0]
    return None


__all__ = ["EngineAdapter", "QueryOutcome", "single_cell"]
