"""
Bulk loader: stream a people CSV into one engine table.

Usage:
    from storebench.engines import build_engine
    from storebench.loader import load, read_source

    engine = build_engine("postgres")
    report = load(read_source("people.csv"), PEOPLE_SCHEMA, engine, table="people")

The source is consumed one batch at a time, so memory stays bounded by the
batch size regardless of file size. Each batch of valid records is committed
atomically by the engine adapter; failures are absorbed up to the tolerance
and reported with a bounded sample.
"""

from __future__ import annotations

import csv
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from storebench.coercion import coerce
from storebench.concurrency import CancellationToken, table_lock
from storebench.config import get_settings
from storebench.domain.models import (
    CoercedRecord,
    CoercionFailure,
    FailureSample,
    LoadReport,
    LogicalSchema,
    SourceRecord,
    ToleranceConfig,
)
from storebench.engines.abstract import EngineAdapter
from storebench.errors import EngineConnectionError, IngestError, LoadAbortedError, StorebenchError
from storebench.infrastructure.db_factory import is_connection_error
from storebench.results import persist_payload, timestamp_slug
from storebench.schema.registry import PEOPLE_SCHEMA
from storebench.utils.logging import get_logger
from storebench.utils.profiler import profile_block

log = get_logger(__name__)


def read_source(
    csv_path: Path | str, schema: LogicalSchema = PEOPLE_SCHEMA
) -> Iterator[SourceRecord]:
    """
    Lazily read a CSV file, checking its header against `schema`.

    Line numbers are physical file lines (the header is line 1), so a record
    spanning several lines inside quotes reports the line it ends on. Bytes
    that are not valid UTF-8 are kept as surrogate escapes so the coercer can
    reject just the record holding them.

    Raises
    ------
    ValueError
        If the header does not list the schema fields in schema order.
    """
    path = Path(csv_path)
    with path.open("r", newline="", encoding="utf-8-sig", errors="surrogateescape") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            return
        columns = [name.strip() for name in header]
        if columns != schema.field_names:
            raise ValueError(
                f"{path}: header {columns} does not match expected columns {schema.field_names}"
            )
        log.debug("Read CSV header", extra={"path": str(path), "header": columns})
        for cells in reader:
            if not cells:
                continue
            yield SourceRecord(line_number=reader.line_num, cells=tuple(cells))


def _batches(source: Iterable[SourceRecord], size: int) -> Iterator[List[SourceRecord]]:
    iterator = iter(source)
    while batch := list(islice(iterator, size)):
        yield batch


def _default_tolerance() -> ToleranceConfig:
    settings = get_settings()
    return ToleranceConfig(
        max_failures=settings.load_tolerance, max_ratio=settings.load_tolerance_ratio
    )


def load(
    source: Iterable[SourceRecord],
    schema: LogicalSchema,
    engine: EngineAdapter,
    table: Optional[str] = None,
    tolerance: Optional[ToleranceConfig] = None,
    batch_size: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    create: bool = False,
    raise_on_abort: bool = False,
) -> LoadReport:
    """
    Stream `source` into `engine`.`table` and return the LoadReport.

    Parameters
    ----------
    source : iterable[SourceRecord]
        Lazy record stream (see `read_source`).
    schema : LogicalSchema
        Schema the cells are coerced against.
    engine : EngineAdapter
        Target engine variant.
    table : str | None
        Target table; defaults to the schema name.
    tolerance : ToleranceConfig | None
        Failure limits; defaults come from settings (unbounded when unset).
    batch_size : int | None
        Rows per committed batch; defaults to settings.load_batch_size.
    cancel_token : CancellationToken | None
        Polled before each batch; a cancelled load stops at the next boundary.
    create : bool
        Drop and recreate the target from the schema registry before loading.
    raise_on_abort : bool
        Raise LoadAbortedError (carrying the report) instead of returning an
        aborted report.

    Raises
    ------
    EngineConnectionError
        If the engine connection drops mid-load.
    IngestError
        If the engine rejects a batch (e.g. a duplicate user_id). Batches
        committed before it stay committed; both errors carry the partial
        report on `.report`.
    """
    settings = get_settings()
    table = table or schema.name
    tolerance = tolerance or _default_tolerance()
    batch_size = batch_size or settings.load_batch_size
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    sample_limit = settings.failure_sample_limit

    succeeded = 0
    failed = 0
    batches_committed = 0
    aborted = False
    cancelled = False
    ingest_error: Optional[StorebenchError] = None
    ingest_cause: Optional[BaseException] = None
    samples: List[FailureSample] = []

    log.info(
        f"[LOAD START] {engine.name}:{table}",
        extra={"engine": engine.name, "table": table, "batch_size": batch_size},
    )
    with table_lock(engine.name, table):
        if create:
            engine.create_table(schema, table, drop_existing=True)

        with profile_block(f"load:{engine.name}:{table}") as stats:
            for batch in _batches(source, batch_size):
                if cancel_token is not None and cancel_token.cancelled:
                    cancelled = True
                    break

                good: List[CoercedRecord] = []
                for record in batch:
                    outcome = coerce(record, schema, engine.name)
                    if isinstance(outcome, CoercionFailure):
                        failed += 1
                        if len(samples) < sample_limit:
                            samples.append(_sample(outcome))
                        if tolerance.exceeded_count(failed):
                            aborted = True
                            break
                    else:
                        good.append(outcome)

                # A batch always completes: valid rows read so far are committed
                # even when the tolerance tripped inside it.
                if good:
                    try:
                        succeeded += engine.bulk_ingest(table, schema, good)
                    except Exception as exc:  # noqa: BLE001 - re-raised below with the report
                        ingest_error = _ingest_error(engine.name, table, exc)
                        ingest_cause = None if ingest_error is exc else exc
                        break
                    batches_committed += 1
                log.debug(
                    "Batch committed",
                    extra={
                        "engine": engine.name,
                        "batch": batches_committed,
                        "rows": len(good),
                        "failed_total": failed,
                    },
                )

                if not aborted and tolerance.exceeded_ratio(failed, succeeded + failed):
                    aborted = True
                if aborted:
                    break

                if cancel_token is not None and cancel_token.cancelled:
                    cancelled = True
                    break

    elapsed = stats.duration_seconds
    report = LoadReport(
        engine=engine.name,
        table=table,
        total_rows=succeeded + failed,
        succeeded=succeeded,
        failed=failed,
        failure_samples=tuple(samples),
        elapsed_seconds=round(elapsed, 4),
        throughput_rows_per_sec=round(succeeded / elapsed, 2) if elapsed > 0 else 0.0,
        batch_size=batch_size,
        batches_committed=batches_committed,
        aborted=aborted,
        cancelled=cancelled,
        error=str(ingest_error) if ingest_error is not None else None,
    )

    if ingest_error is not None:
        log.error(
            f"[LOAD FAILED] {engine.name}:{table}",
            extra={
                "engine": engine.name,
                "table": table,
                "batches_committed": batches_committed,
                "error": str(ingest_cause or ingest_error),
            },
        )
        ingest_error.report = report
        if ingest_cause is None:
            raise ingest_error
        raise ingest_error from ingest_cause
    if aborted:
        log.error(
            f"[LOAD ABORTED] {engine.name}:{table}",
            extra={"engine": engine.name, "table": table, "failed": failed},
        )
        if raise_on_abort:
            raise LoadAbortedError(engine.name, table, failed, report=report)
    elif cancelled:
        log.warning(
            f"[LOAD CANCELLED] {engine.name}:{table}",
            extra={"engine": engine.name, "batches_committed": batches_committed},
        )
    else:
        log.info(
            f"[LOAD COMPLETE] {engine.name}:{table}",
            extra={
                "engine": engine.name,
                "rows": succeeded,
                "failed": failed,
                "throughput_rps": report.throughput_rows_per_sec,
            },
        )
    return report


def _ingest_error(engine: str, table: str, exc: Exception) -> StorebenchError:
    """Name the engine and table on a driver error raised mid-load."""
    if isinstance(exc, StorebenchError):
        return exc
    if is_connection_error(exc):
        return EngineConnectionError(engine, f"lost during load into {table}: {exc}")
    return IngestError(engine, table, f"{type(exc).__name__}: {exc}")


def _sample(failure: CoercionFailure) -> FailureSample:
    return FailureSample(
        line_number=failure.line_number,
        field=failure.field,
        raw_value=failure.raw_value,
        reason=failure.reason,
    )


def load_many(
    csv_path: Path | str,
    schema: LogicalSchema,
    engines: Sequence[EngineAdapter],
    table: Optional[str] = None,
    tolerance: Optional[ToleranceConfig] = None,
    batch_size: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    create: bool = False,
) -> List[LoadReport]:
    """
    Load the same CSV into several engines concurrently, one thread per engine.

    Each engine reads its own pass over the file. Reports come back in the
    order of `engines`; the first exception raised by any load is re-raised.
    """
    with ThreadPoolExecutor(max_workers=max(len(engines), 1)) as pool:
        futures = [
            pool.submit(
                load,
                read_source(csv_path, schema),
                schema,
                engine,
                table=table,
                tolerance=tolerance,
                batch_size=batch_size,
                cancel_token=cancel_token,
                create=create,
            )
            for engine in engines
        ]
        return [future.result() for future in futures]


def persist_report(report: LoadReport, results_dir: Path | str | None = None) -> Path:
    directory = results_dir or get_settings().results_dir
    return persist_payload(
        report.model_dump(mode="json"),
        directory,
        archive_name=f"load-{report.engine}-{timestamp_slug()}.json",
        latest_name="load-latest.json",
    )


__all__ = ["load", "load_many", "persist_report", "read_source"]
