"""
Pytest configuration for storebench.

Provides fixtures for:
- Settings override (results/backups under tmp_path, cache cleared)
- An in-memory engine adapter standing in for the real engines
- Small people CSV files in the exact input format
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import pytest

from storebench.config import get_settings
from storebench.domain.models import BenchmarkCase, CoercedRecord, LogicalSchema
from storebench.engines.abstract import QueryOutcome
from storebench.schema import emit_ddl

HEADER = ["user_id", "username", "sex", "email", "phone", "dob", "job_title"]


class FakeEngine:
    """
    In-memory EngineAdapter.

    Tables are lists of value tuples. Queries answer from the stored rows so
    the same data gives the same counts on every fake engine.
    """

    description = "in-memory test engine"

    def __init__(
        self,
        name: str = "postgres",
        fail_cases: Iterable[str] = (),
        fail_first_run: Iterable[str] = (),
        ingest_error: Optional[Exception] = None,
        ingest_error_on_batch: int = 1,
        on_ingest: Optional[Callable[[int], None]] = None,
        lose_rows_on_restore: int = 0,
        connect_error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.tables: Dict[str, List[tuple]] = {}
        self.backups: Dict[str, List[tuple]] = {}
        self.fail_cases = set(fail_cases)
        self.fail_first_run = set(fail_first_run)
        self.ingest_error = ingest_error
        self.ingest_error_on_batch = ingest_error_on_batch
        self.on_ingest = on_ingest
        self.lose_rows_on_restore = lose_rows_on_restore
        self.connect_error = connect_error
        self.ingest_sizes: List[int] = []
        self.queries: List[str] = []
        self.created: List[str] = []
        self.connected = False
        self.close_calls = 0

    def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def emit_ddl(self, schema: LogicalSchema, table: str) -> str:
        return emit_ddl(self.name, schema, table)

    def create_table(self, schema: LogicalSchema, table: str, drop_existing: bool = False) -> None:
        if table in self.tables and not drop_existing:
            raise RuntimeError(f"table {table} exists")
        self.tables[table] = []
        self.created.append(table)

    def bulk_ingest(
        self, table: str, schema: LogicalSchema, records: Sequence[CoercedRecord]
    ) -> int:
        batch_number = len(self.ingest_sizes) + 1
        if self.ingest_error is not None and batch_number == self.ingest_error_on_batch:
            raise self.ingest_error
        self.tables.setdefault(table, []).extend(r.values for r in records)
        self.ingest_sizes.append(len(records))
        if self.on_ingest is not None:
            self.on_ingest(len(self.ingest_sizes))
        return len(records)

    def run_query(self, case: BenchmarkCase, table: str) -> QueryOutcome:
        first_run = case.id not in self.queries
        self.queries.append(case.id)
        if case.id in self.fail_cases or (first_run and case.id in self.fail_first_run):
            raise RuntimeError(f"{case.id} exploded")
        rows = self.tables.get(table, [])
        if case.id == "count-all":
            return {"rows_returned": 1, "scalar": len(rows)}
        return {"rows_returned": len(rows), "scalar": None}

    def count_rows(self, table: str) -> int:
        return len(self.tables.get(table, []))

    def table_exists(self, table: str) -> bool:
        return table in self.tables

    def backup(self, table: str, directory: Path, name: str) -> str:
        handle = str(directory / f"{name}.fake")
        self.backups[handle] = list(self.tables.get(table, []))
        return handle

    def restore(
        self, handle: str, source_table: str, target_table: str, schema: LogicalSchema
    ) -> None:
        rows = self.backups[handle]
        self.tables[target_table] = rows[: len(rows) - self.lose_rows_on_restore]

    def close(self) -> None:
        self.close_calls += 1


def person_row(i: int, **overrides: str) -> List[str]:
    row = {
        "user_id": f"{i:015x}",
        "username": f"user{i}",
        "sex": "Female" if i % 2 else "Male",
        "email": f"user{i}@example.com",
        "phone": f"+1-555-{i:04d}",
        "dob": f"0{1 + i % 9}/1{i % 9}/1990",
        "job_title": "Engineer, software",
    }
    row.update(overrides)
    return [row[name] for name in HEADER]


def write_people_csv(path: Path, rows: Iterable[Sequence[str]]) -> Path:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows(rows)
    return path


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Point persisted artifacts at tmp_path and rebuild the cached settings."""
    monkeypatch.setenv("RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "backups"))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine("postgres")


@pytest.fixture
def people_csv(tmp_path: Path) -> Path:
    """Five rows; the third data row (file line 4) has an impossible dob."""
    rows = [person_row(i) for i in range(1, 6)]
    rows[2] = person_row(3, dob="13/45/2020")
    return write_people_csv(tmp_path / "people.csv", rows)


@pytest.fixture
def clean_csv_factory(tmp_path: Path) -> Callable[[int], Path]:
    def _make(count: int) -> Path:
        return write_people_csv(
            tmp_path / f"people-{count}.csv", [person_row(i) for i in range(1, count + 1)]
        )

    return _make
