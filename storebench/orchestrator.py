"""
Benchmark runner: time the fixed query battery on each engine and build the
comparison table.

Usage (example from CLI):
    from storebench.orchestrator import RunConfig, run_benchmark

    table = run_benchmark(RunConfig(engines=["postgres", "clickhouse"], warmup=True))
    print(table.winners())

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional, Sequence

from storebench.cases import resolve_cases
from storebench.concurrency import CancellationToken, table_lock
from storebench.config import Settings, get_settings
from storebench.domain.models import ENGINES, BenchmarkCase, BenchmarkResult, ComparisonTable
from storebench.engines import build_engine
from storebench.engines.abstract import EngineAdapter
from storebench.errors import BenchmarkQueryError
from storebench.results import persist_payload, timestamp_slug
from storebench.schema.registry import check_table_name
from storebench.utils.logging import get_logger
from storebench.utils.profiler import profile_block

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]


@dataclass(frozen=True)
class RunConfig:
    """
    One benchmark invocation.

    `engines` order is the tie-break order for winners. With the tolerant
    failure policy a failing case is recorded and the run continues; strict
    re-raises it as BenchmarkQueryError.
    """

    engines: Sequence[str] = ENGINES
    case_ids: Optional[Sequence[str]] = None
    table: Optional[str] = None
    warmup: bool = False
    persist: bool = True
    results_dir: Optional[Path | str] = None
    failure_policy: FailurePolicy = "tolerant"


def _engine_factories(
    settings: Optional[Settings] = None,
) -> Dict[str, Callable[[], EngineAdapter]]:
    return {name: (lambda name=name: build_engine(name, settings)) for name in ENGINES}


def _round_float(value: float, decimals: int = 6) -> float:
    return round(value, decimals)


def _failed_result(
    case: BenchmarkCase, engine: str, warm: bool, exc: Exception
) -> BenchmarkResult:
    cause = exc.__cause__ if isinstance(exc, BenchmarkQueryError) and exc.__cause__ else exc
    return BenchmarkResult(
        case_id=case.id,
        engine=engine,
        warm=warm,
        error=str(exc),
        error_type=type(cause).__name__,
    )


def _warmup(adapter: EngineAdapter, case: BenchmarkCase, table: str) -> bool:
    log.info(f"[WARMUP] {adapter.name}:{case.id}", extra={"engine": adapter.name, "case": case.id})
    try:
        adapter.run_query(case, table)
    except Exception as exc:  # noqa: BLE001 - warmup failure only downgrades to a cold run
        log.warning(
            f"[WARMUP] Failed for {adapter.name}:{case.id}",
            extra={"engine": adapter.name, "case": case.id, "error": str(exc)},
        )
        return False
    return True


def _measure(
    adapter: EngineAdapter,
    case: BenchmarkCase,
    table: str,
    warm: bool,
    failure_policy: FailurePolicy,
) -> BenchmarkResult:
    log.info(
        f"[CASE START] {adapter.name}:{case.id}",
        extra={"engine": adapter.name, "case": case.id},
    )
    try:
        with profile_block(f"{adapter.name}:{case.id}") as stats:
            outcome = adapter.run_query(case, table)
    except Exception as exc:  # noqa: BLE001 - one failing case must not sink the table
        if failure_policy == "strict":
            if isinstance(exc, BenchmarkQueryError):
                raise
            raise BenchmarkQueryError(case.id, adapter.name, str(exc)) from exc
        log.exception(
            f"[CASE FAILED] {adapter.name}:{case.id}",
            extra={"engine": adapter.name, "case": case.id},
        )
        return _failed_result(case, adapter.name, warm, exc)

    result = BenchmarkResult(
        case_id=case.id,
        engine=adapter.name,
        elapsed_seconds=_round_float(stats.duration_seconds),
        rows_returned=outcome["rows_returned"],
        scalar=outcome["scalar"],
        warm=warm,
        peak_rss_bytes=stats.peak_rss_bytes,
    )
    log.info(
        f"[CASE SUCCESS] {adapter.name}:{case.id}",
        extra={
            "engine": adapter.name,
            "case": case.id,
            "rows": result.rows_returned,
            "duration": result.elapsed_seconds,
            "warm": warm,
        },
    )
    return result


def run_cases(
    cases: Sequence[BenchmarkCase],
    engines: Sequence[EngineAdapter],
    table: str,
    warmup: bool = False,
    failure_policy: FailurePolicy = "tolerant",
    cancel_token: Optional[CancellationToken] = None,
) -> ComparisonTable:
    """
    Run every case on every engine, sequentially, and collect the table.

    Each engine's table lock is held while its cases run, so no load or backup
    of that table can interleave with the measurements. Cancellation is polled
    between cases.
    """
    check_table_name(table)
    results: List[BenchmarkResult] = []
    for adapter in engines:
        log.info(f"{'=' * 60}")
        log.info(f"[ENGINE] {adapter.name.upper()}", extra={"engine": adapter.name})
        log.info(f"{'=' * 60}")
        with table_lock(adapter.name, table):
            for case in cases:
                if cancel_token is not None and cancel_token.cancelled:
                    log.warning("[BENCHMARK CANCELLED]", extra={"engine": adapter.name})
                    break
                warm = _warmup(adapter, case, table) if warmup else False
                results.append(_measure(adapter, case, table, warm, failure_policy))
        log.info(f"[ENGINE COMPLETE] {adapter.name.upper()}", extra={"engine": adapter.name})

    case_order = {case.id: i for i, case in enumerate(cases)}
    results.sort(key=lambda r: case_order[r.case_id])
    return ComparisonTable(
        engines=tuple(adapter.name for adapter in engines),
        case_ids=tuple(case.id for case in cases),
        results=tuple(results),
        warmup=warmup,
        table=table,
    )


def persist_table(comparison: ComparisonTable, results_dir: Path | str) -> Path:
    return persist_payload(
        comparison.to_payload(),
        results_dir,
        archive_name=f"run-{timestamp_slug()}.json",
        latest_name="latest.json",
    )


def run_benchmark(
    config: RunConfig,
    settings: Optional[Settings] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ComparisonTable:
    """
    Build the configured engines, run the battery and optionally persist the table.

    Every engine connects before any case runs, so a connection failure
    surfaces as EngineConnectionError instead of a column of failed cases.
    Adapters are always closed, even when a strict run fails.
    """
    settings = settings or get_settings()
    table = config.table or settings.default_table
    cases = resolve_cases(config.case_ids)

    factories = _engine_factories(settings)
    unknown = [name for name in config.engines if name not in factories]
    if unknown:
        raise ValueError(f"Unknown engine(s) {unknown}. Available: {', '.join(factories)}")

    adapters: List[EngineAdapter] = []
    try:
        for name in config.engines:
            adapter = factories[name]()
            adapters.append(adapter)
            adapter.connect()

        comparison = run_cases(
            cases,
            adapters,
            table,
            warmup=config.warmup,
            failure_policy=config.failure_policy,
            cancel_token=cancel_token,
        )
    finally:
        for adapter in adapters:
            adapter.close()

    if config.persist:
        persist_table(comparison, config.results_dir or settings.results_dir)

    log.info(
        f"[BENCHMARK COMPLETE] {len(cases)} case(s) on {len(adapters)} engine(s)",
        extra={"engines": list(config.engines), "winners": comparison.winners()},
    )
    return comparison


__all__ = ["RunConfig", "persist_table", "run_benchmark", "run_cases"]
