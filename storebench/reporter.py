from __future__ import annotations

import os
from typing import Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from storebench.domain.models import ComparisonTable, LoadReport, RestoreReport


def _format_memory(mem_bytes: int) -> str:
    mem_gb = mem_bytes / (1024**3)
    if mem_gb >= 1:
        return f"{mem_gb:.1f}GB"
    return f"{mem_bytes / (1024**2):.0f}MB"


def get_container_resources() -> Dict[str, Optional[str]]:
    """
    Get container resource constraints of the harness process.

    Reads from environment variables first, then cgroup v2 files.
    Returns dict with 'cpus' and 'memory' keys.
    """
    resources: Dict[str, Optional[str]] = {
        "cpus": os.environ.get("BENCHMARK_CPU_LIMIT"),
        "memory": os.environ.get("BENCHMARK_MEMORY_LIMIT"),
    }

    if resources["cpus"] is None:
        try:
            with open("/sys/fs/cgroup/cpu.max", "r") as f:
                parts = f.read().strip().split()
            if len(parts) == 2 and parts[0] != "max":
                resources["cpus"] = f"{int(parts[0]) / int(parts[1]):.1f}"
        except (FileNotFoundError, PermissionError, ValueError):
            pass

    if resources["memory"] is None:
        try:
            with open("/sys/fs/cgroup/memory.max", "r") as f:
                content = f.read().strip()
            if content != "max":
                resources["memory"] = _format_memory(int(content))
        except (FileNotFoundError, PermissionError, ValueError):
            pass

    return resources


def _title(base: str) -> str:
    resources = get_container_resources()
    parts = []
    if resources["cpus"]:
        parts.append(f"CPU: {resources['cpus']} cores")
    if resources["memory"]:
        parts.append(f"Memory: {resources['memory']}")
    if parts:
        return f"{base}\n[dim]Harness Resources: {' │ '.join(parts)}[/dim]"
    return base


def print_comparison(comparison: ComparisonTable, console: Optional[Console] = None) -> None:
    """
    Render a comparison table: one row per case, one column per engine.

    Cells show elapsed seconds and rows returned; the fastest engine per case
    is highlighted and failed cases show their error type.
    """
    console = console or Console()

    if not comparison.results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    mode = "warm" if comparison.warmup else "cold"
    table = Table(
        title=_title(f"Engine Comparison ({mode} runs, table '{comparison.table}')"),
        box=box.ROUNDED,
        caption=(
            "Elapsed seconds (rows returned); fastest engine in bold"
            + ("; cold = warmup failed, not ranked" if comparison.warmup else "")
        ),
    )
    table.add_column("Case", style="cyan", no_wrap=True)
    for engine in comparison.engines:
        table.add_column(engine, justify="right")
    table.add_column("Winner", style="bold green")

    for case_id in comparison.case_ids:
        winner = comparison.winner(case_id)
        cells = [case_id]
        for engine in comparison.engines:
            result = comparison.get(case_id, engine)
            if result is None:
                cells.append("-")
            elif not result.ok:
                cells.append(f"[red]error: {result.error_type}[/red]")
            else:
                text = f"{result.elapsed_seconds:.4f} ({result.rows_returned:,})"
                if not comparison.comparable(result):
                    text += " [yellow]cold[/yellow]"
                cells.append(f"[bold]{text}[/bold]" if engine == winner else text)
        cells.append(winner or "-")
        table.add_row(*cells)

    console.print(table)


def print_load_report(report: LoadReport, console: Optional[Console] = None) -> None:
    console = console or Console()

    if report.error:
        status = "[red]failed (engine error)[/red]"
    elif report.aborted:
        status = "[red]aborted (tolerance exceeded)[/red]"
    elif report.cancelled:
        status = "[yellow]cancelled[/yellow]"
    else:
        status = "[green]complete[/green]"

    table = Table(
        title=f"Load {report.engine}:{report.table}", box=box.ROUNDED, show_header=False
    )
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="magenta")
    table.add_row("Status", status)
    table.add_row("Total rows", f"{report.total_rows:,}")
    table.add_row("Succeeded", f"{report.succeeded:,}")
    table.add_row("Failed", f"{report.failed:,}")
    table.add_row("Batches committed", f"{report.batches_committed:,} x {report.batch_size:,}")
    table.add_row("Elapsed (s)", f"{report.elapsed_seconds:.2f}")
    table.add_row("Throughput (rows/s)", f"{report.throughput_rows_per_sec:,.2f}")
    if report.error:
        table.add_row("Error", f"[red]{report.error}[/red]")
    console.print(table)

    if report.failure_samples:
        samples = Table(title="Failure samples", box=box.SIMPLE)
        samples.add_column("Line", justify="right", style="yellow")
        samples.add_column("Field", style="cyan")
        samples.add_column("Value")
        samples.add_column("Reason", style="red")
        for sample in report.failure_samples:
            samples.add_row(
                str(sample.line_number), sample.field, sample.raw_value or "", sample.reason
            )
        console.print(samples)


def print_restore_report(report: RestoreReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    verdict = "[green]match[/green]" if report.matches_source else "[red]MISMATCH[/red]"
    console.print(
        f"{report.engine}: {report.source_table} -> {report.target_table} | "
        f"source rows {report.source_row_count:,} | restored rows "
        f"{report.restored_row_count:,} | {verdict}"
    )
