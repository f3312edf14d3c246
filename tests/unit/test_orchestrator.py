from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import pytest

from storebench import orchestrator
from storebench.cases import BENCHMARK_CASES, available_cases, resolve_cases
from storebench.domain.models import BenchmarkResult, ComparisonTable
from storebench.errors import BenchmarkQueryError
from storebench.orchestrator import RunConfig, run_benchmark, run_cases

from conftest import FakeEngine

LOADED_ROWS = 12


def _loaded(name: str, **kwargs) -> FakeEngine:
    engine = FakeEngine(name, **kwargs)
    engine.tables["people"] = [(i,) for i in range(LOADED_ROWS)]
    return engine


@pytest.fixture
def fakes(monkeypatch: pytest.MonkeyPatch) -> Dict[str, FakeEngine]:
    engines = {name: _loaded(name) for name in ("postgres", "clickhouse", "mongodb")}

    def _factories(settings=None):
        return {name: (lambda engine=engine: engine) for name, engine in engines.items()}

    monkeypatch.setattr(orchestrator, "_engine_factories", _factories)
    return engines


def test_battery_has_five_cases_for_every_engine() -> None:
    assert available_cases() == [
        "count-all",
        "count-by-sex",
        "filter-by-sex",
        "avg-age-by-sex",
        "sorted-limit-by-dob",
    ]
    for case in BENCHMARK_CASES:
        assert set(case.queries) == {"postgres", "clickhouse", "mongodb"}


def test_resolve_cases_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        resolve_cases(["count-all", "nope"])


def test_count_all_consistent_across_engines(
    fakes: Dict[str, FakeEngine], tmp_path: Path
) -> None:
    table = run_benchmark(RunConfig(table="people", results_dir=tmp_path))
    counts = {engine: table.get("count-all", engine).scalar for engine in fakes}
    assert set(counts.values()) == {LOADED_ROWS}
    assert len(table.results) == len(BENCHMARK_CASES) * 3
    assert all(e.close_calls == 1 for e in fakes.values())


def test_results_follow_case_declaration_order(fakes: Dict[str, FakeEngine]) -> None:
    table = run_benchmark(RunConfig(table="people", persist=False))
    order = [r.case_id for r in table.results]
    assert order == sorted(order, key=[c.id for c in BENCHMARK_CASES].index)


def test_failing_case_is_recorded_and_others_continue() -> None:
    broken = _loaded("clickhouse", fail_cases={"avg-age-by-sex"})
    table = run_cases(BENCHMARK_CASES, [_loaded("postgres"), broken], "people")

    failed = table.get("avg-age-by-sex", "clickhouse")
    assert failed is not None and not failed.ok
    assert failed.elapsed_seconds is None
    assert failed.rows_returned is None
    assert failed.error_type == "RuntimeError"
    assert table.winner("avg-age-by-sex") == "postgres"
    assert table.get("sorted-limit-by-dob", "clickhouse").ok


def test_strict_policy_raises_and_closes_adapters(fakes: Dict[str, FakeEngine]) -> None:
    fakes["mongodb"].fail_cases.add("count-by-sex")
    with pytest.raises(BenchmarkQueryError) as excinfo:
        run_benchmark(RunConfig(table="people", persist=False, failure_policy="strict"))
    assert excinfo.value.engine == "mongodb"
    assert excinfo.value.case_id == "count-by-sex"
    assert all(e.close_calls == 1 for e in fakes.values())


def test_warmup_runs_each_query_twice(fakes: Dict[str, FakeEngine]) -> None:
    table = run_benchmark(
        RunConfig(
            engines=("postgres",),
            case_ids=["count-all"],
            table="people",
            warmup=True,
            persist=False,
        )
    )
    assert fakes["postgres"].queries == ["count-all", "count-all"]
    assert table.warmup
    assert all(r.warm for r in table.results)


def test_cold_run_marks_results_cold(fakes: Dict[str, FakeEngine]) -> None:
    table = run_benchmark(RunConfig(engines=("clickhouse",), table="people", persist=False))
    assert not any(r.warm for r in table.results)
    assert fakes["clickhouse"].queries == available_cases()


def test_unknown_engine_rejected(fakes: Dict[str, FakeEngine]) -> None:
    with pytest.raises(ValueError):
        run_benchmark(RunConfig(engines=("postgres", "oracle"), persist=False))


def test_persisted_table_contains_winners(fakes: Dict[str, FakeEngine], tmp_path: Path) -> None:
    run_benchmark(RunConfig(table="people", results_dir=tmp_path))
    payload = json.loads((tmp_path / "latest.json").read_text())
    assert set(payload["winners"]) == set(available_cases())
    assert len(list(tmp_path.glob("run-*.json"))) == 1


def _result(case_id: str, engine: str, elapsed=None, error=None) -> BenchmarkResult:
    return BenchmarkResult(
        case_id=case_id, engine=engine, elapsed_seconds=elapsed, rows_returned=1, error=error
    )


def test_winner_ties_go_to_declared_order() -> None:
    table = ComparisonTable(
        engines=("clickhouse", "postgres"),
        case_ids=("count-all",),
        results=(
            _result("count-all", "postgres", 0.5),
            _result("count-all", "clickhouse", 0.5),
        ),
    )
    assert table.winner("count-all") == "clickhouse"


def test_winner_skips_errors_and_may_be_none() -> None:
    table = ComparisonTable(
        engines=("postgres", "mongodb"),
        case_ids=("count-all", "filter-by-sex"),
        results=(
            _result("count-all", "postgres", error="boom"),
            _result("count-all", "mongodb", 2.0),
            _result("filter-by-sex", "postgres", error="boom"),
            _result("filter-by-sex", "mongodb", error="boom"),
        ),
    )
    assert table.winners() == {"count-all": "mongodb", "filter-by-sex": None}


def test_cancelled_benchmark_stops_between_cases(fakes: Dict[str, FakeEngine]) -> None:
    from storebench.concurrency import CancellationToken

    token = CancellationToken()
    token.cancel()
    table = run_benchmark(RunConfig(table="people", persist=False), cancel_token=token)
    assert table.results == ()
    assert all(e.queries == [] for e in fakes.values())


def test_failed_warmup_result_is_cold_and_not_ranked() -> None:
    flaky = _loaded("clickhouse", fail_first_run={"count-all"})
    table = run_cases(
        [c for c in BENCHMARK_CASES if c.id == "count-all"],
        [_loaded("postgres"), flaky],
        "people",
        warmup=True,
    )
    cold = table.get("count-all", "clickhouse")
    assert cold is not None and cold.ok
    assert not cold.warm
    assert table.get("count-all", "postgres").warm
    assert not table.comparable(cold)
    assert table.winner("count-all") == "postgres"


def test_cold_result_never_beats_warm_ones() -> None:
    table = ComparisonTable(
        engines=("postgres", "clickhouse"),
        case_ids=("count-all",),
        warmup=True,
        results=(
            BenchmarkResult(case_id="count-all", engine="postgres", elapsed_seconds=0.9, warm=True),
            BenchmarkResult(case_id="count-all", engine="clickhouse", elapsed_seconds=0.1),
        ),
    )
    assert table.winner("count-all") == "postgres"
