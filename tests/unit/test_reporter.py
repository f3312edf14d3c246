from __future__ import annotations

from rich.console import Console

from storebench.domain.models import (
    BenchmarkResult,
    ComparisonTable,
    FailureSample,
    LoadReport,
    RestoreReport,
)
from storebench.reporter import (
    get_container_resources,
    print_comparison,
    print_load_report,
    print_restore_report,
)


def _console() -> Console:
    return Console(record=True, width=160)


def test_comparison_marks_winner_and_errors() -> None:
    table = ComparisonTable(
        engines=("postgres", "clickhouse"),
        case_ids=("count-all",),
        results=(
            BenchmarkResult(
                case_id="count-all", engine="postgres", elapsed_seconds=0.2, rows_returned=1
            ),
            BenchmarkResult(
                case_id="count-all", engine="clickhouse", error="boom", error_type="RuntimeError"
            ),
        ),
        table="people",
    )
    console = _console()
    print_comparison(table, console)
    text = console.export_text()
    assert "count-all" in text
    assert "error: RuntimeError" in text
    assert "0.2000" in text


def test_load_report_lists_failure_samples() -> None:
    report = LoadReport(
        engine="mongodb",
        table="people",
        total_rows=5,
        succeeded=4,
        failed=1,
        failure_samples=(
            FailureSample(line_number=4, field="dob", raw_value="13/45/2020", reason="bad date"),
        ),
        elapsed_seconds=0.5,
        throughput_rows_per_sec=8.0,
        batch_size=10,
        batches_committed=1,
    )
    console = _console()
    print_load_report(report, console)
    text = console.export_text()
    assert "complete" in text
    assert "13/45/2020" in text


def test_restore_report_verdict() -> None:
    console = _console()
    print_restore_report(
        RestoreReport(
            engine="postgres",
            source_table="people",
            target_table="people_copy",
            source_row_count=10,
            restored_row_count=9,
        ),
        console,
    )
    assert "MISMATCH" in console.export_text()


def test_container_resources_from_env(monkeypatch) -> None:
    monkeypatch.setenv("BENCHMARK_CPU_LIMIT", "2.0")
    monkeypatch.setenv("BENCHMARK_MEMORY_LIMIT", "4GB")
    assert get_container_resources() == {"cpus": "2.0", "memory": "4GB"}


def test_comparison_flags_cold_cells_in_warm_table() -> None:
    table = ComparisonTable(
        engines=("postgres", "mongodb"),
        case_ids=("count-all",),
        warmup=True,
        results=(
            BenchmarkResult(
                case_id="count-all",
                engine="postgres",
                elapsed_seconds=0.3,
                rows_returned=1,
                warm=True,
            ),
            BenchmarkResult(
                case_id="count-all", engine="mongodb", elapsed_seconds=0.1, rows_returned=1
            ),
        ),
        table="people",
    )
    console = _console()
    print_comparison(table, console)
    text = console.export_text()
    assert "0.1000 (1) cold" in text
    assert "warmup failed, not ranked" in text


def test_failed_load_shows_engine_error() -> None:
    report = LoadReport(
        engine="postgres",
        table="people",
        total_rows=2,
        succeeded=2,
        failed=0,
        elapsed_seconds=0.1,
        throughput_rows_per_sec=20.0,
        batch_size=2,
        batches_committed=1,
        error="Load into postgres:people failed: UniqueViolation: duplicate key",
    )
    console = _console()
    print_load_report(report, console)
    text = console.export_text()
    assert "failed (engine error)" in text
    assert "UniqueViolation" in text
