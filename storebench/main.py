from __future__ import annotations

import signal
import sys
import warnings
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

import typer

from storebench.backup import backup as run_backup
from storebench.backup import manifest_path, read_manifest
from storebench.backup import restore as run_restore
from storebench.cases import available_cases
from storebench.concurrency import CancellationToken
from storebench.config import get_settings
from storebench.domain.models import LoadReport, ToleranceConfig
from storebench.engines import available_engines, build_engine
from storebench.errors import (
    EXIT_CANCELLED,
    EXIT_LOAD_ABORTED,
    EXIT_VERIFICATION_MISMATCH,
    RestoreVerificationWarning,
    StorebenchError,
)
from storebench.loader import load as run_load
from storebench.loader import persist_report, read_source
from storebench.orchestrator import RunConfig, run_benchmark
from storebench.reporter import print_comparison, print_load_report, print_restore_report
from storebench.schema import PEOPLE_SCHEMA, emit_ddl
from storebench.utils.logging import configure_logging

app = typer.Typer(help="Multi-engine load, benchmark and backup harness.")
schema_app = typer.Typer(help="Inspect the logical schema per engine.")
app.add_typer(schema_app, name="schema")


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)


def _fail(exc: Exception, code: int) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=code)


@contextmanager
def _cancel_on_sigint(token: CancellationToken) -> Generator[None, None, None]:
    """
    First Ctrl-C cancels at the next batch/case boundary; a second one
    interrupts immediately.
    """

    def _handler(signum, frame):  # noqa: ARG001
        if token.cancelled:
            raise KeyboardInterrupt
        typer.echo("Cancelling after the current batch (Ctrl-C again to abort)...", err=True)
        token.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"postgres={settings.pg_user}@{settings.pg_host}:{settings.pg_port}/{settings.pg_database}"
        f" | clickhouse={settings.clickhouse_user}@{settings.clickhouse_host}:"
        f"{settings.clickhouse_port}/{settings.clickhouse_database}"
        f" | mongodb={settings.mongo_uri}/{settings.mongo_database}"
    )
    typer.echo(
        f"table={settings.default_table} batch={settings.load_batch_size} "
        f"tolerance={settings.load_tolerance} ratio={settings.load_tolerance_ratio} "
        f"results={settings.results_dir} backups={settings.backup_dir}"
    )
    typer.echo("Engines: " + ", ".join(available_engines()))
    typer.echo("Cases: " + ", ".join(available_cases()))


@schema_app.command("emit")
def schema_emit(
    engine: str = typer.Argument(..., help="Engine key (postgres, clickhouse, mongodb)."),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Target table name."),
) -> None:
    """
    Print the DDL of the people schema for one engine.
    """
    try:
        typer.echo(emit_ddl(engine, PEOPLE_SCHEMA, table))
    except StorebenchError as exc:
        raise _fail(exc, exc.exit_code)
    except ValueError as exc:
        raise _fail(exc, 1)


@app.command()
def load(
    engine: str = typer.Argument(..., help="Engine key (postgres, clickhouse, mongodb)."),
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="People CSV file."),
    tolerance: Optional[int] = typer.Option(
        None, "--tolerance", min=0, help="Abort once more than N records fail."
    ),
    tolerance_ratio: Optional[float] = typer.Option(
        None, "--tolerance-ratio", min=0.0, max=1.0, help="Abort once failures exceed ratio R."
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", min=1, help="Rows per committed batch."
    ),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Target table name."),
    create: bool = typer.Option(False, "--create", help="Drop and recreate the table first."),
) -> None:
    """
    Load a people CSV into one engine and persist the load report.
    """
    settings = get_settings()
    limits = ToleranceConfig(
        max_failures=tolerance if tolerance is not None else settings.load_tolerance,
        max_ratio=tolerance_ratio if tolerance_ratio is not None else settings.load_tolerance_ratio,
    )
    token = CancellationToken()
    try:
        adapter = build_engine(engine, settings)
        adapter.connect()
        try:
            with _cancel_on_sigint(token):
                report = run_load(
                    read_source(csv_path),
                    PEOPLE_SCHEMA,
                    adapter,
                    table=table or settings.default_table,
                    tolerance=limits,
                    batch_size=batch_size,
                    cancel_token=token,
                    create=create,
                )
        finally:
            adapter.close()
    except StorebenchError as exc:
        if isinstance(exc.report, LoadReport):
            path = persist_report(exc.report)
            print_load_report(exc.report)
            typer.echo(f"Report written to {path}")
        raise _fail(exc, exc.exit_code)
    except ValueError as exc:
        raise _fail(exc, 1)

    path = persist_report(report)
    print_load_report(report)
    typer.echo(f"Report written to {path}")
    if report.aborted:
        raise typer.Exit(code=EXIT_LOAD_ABORTED)
    if report.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)


@app.command()
def benchmark(
    engines: Optional[List[str]] = typer.Argument(
        None, help="Engines to compare, in tie-break order (default: all)."
    ),
    warmup: bool = typer.Option(False, "--warmup", help="Run each query once before timing."),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Table to query."),
    case: Optional[List[str]] = typer.Option(
        None, "--case", "-c", help="Restrict to these case ids (repeatable)."
    ),
    strict: bool = typer.Option(False, "--strict", help="Stop at the first failing case."),
) -> None:
    """
    Run the benchmark battery and print the comparison table.
    """
    config = RunConfig(
        engines=tuple(engines) if engines else tuple(available_engines()),
        case_ids=case or None,
        table=table,
        warmup=warmup,
        failure_policy="strict" if strict else "tolerant",
    )
    token = CancellationToken()
    try:
        with _cancel_on_sigint(token):
            comparison = run_benchmark(config, cancel_token=token)
    except StorebenchError as exc:
        raise _fail(exc, exc.exit_code)
    except ValueError as exc:
        raise _fail(exc, 1)

    print_comparison(comparison)
    if token.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)


@app.command()
def backup(
    engine: str = typer.Argument(..., help="Engine key (postgres, clickhouse, mongodb)."),
    table: str = typer.Argument(..., help="Table to back up."),
) -> None:
    """
    Dump a table with the engine's native tool and write a restore manifest.
    """
    settings = get_settings()
    try:
        adapter = build_engine(engine, settings)
        adapter.connect()
        try:
            artifact = run_backup(adapter, table, settings.backup_dir)
        finally:
            adapter.close()
    except StorebenchError as exc:
        raise _fail(exc, exc.exit_code)
    except ValueError as exc:
        raise _fail(exc, 1)

    typer.echo(f"Backed up {artifact.source_row_count:,} rows of {engine}:{table}")
    typer.echo(f"Artifact: {artifact.handle}")
    typer.echo(f"Manifest: {manifest_path(artifact, settings.backup_dir)}")


@app.command()
def restore(
    engine: str = typer.Argument(..., help="Engine key (postgres, clickhouse, mongodb)."),
    artifact: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Manifest written by `backup`."
    ),
    new_table: str = typer.Argument(..., help="Table to restore into (must differ)."),
) -> None:
    """
    Restore a backup into a new table and verify its row count.
    """
    settings = get_settings()
    try:
        manifest = read_manifest(artifact)
        adapter = build_engine(engine, settings)
        adapter.connect()
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RestoreVerificationWarning)
                report = run_restore(manifest, adapter, new_table, PEOPLE_SCHEMA)
        finally:
            adapter.close()
    except StorebenchError as exc:
        raise _fail(exc, exc.exit_code)
    except ValueError as exc:
        raise _fail(exc, 1)

    print_restore_report(report)
    if not report.matches_source:
        raise typer.Exit(code=EXIT_VERIFICATION_MISMATCH)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(EXIT_CANCELLED)


if __name__ == "__main__":
    main()
