"""
The fixed benchmark battery.

SQL templates take a `{table}` placeholder; MongoDB entries are aggregation
pipelines run against the collection of the same name. Every query returns
the same logical answer on every engine, so row counts are comparable even
though timings differ. Ages are completed years everywhere.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from storebench.domain.models import CLICKHOUSE, MONGODB, POSTGRES, BenchmarkCase

FILTER_SEX = "Female"
SORTED_LIMIT = 10


def _month_day(date_expr: str) -> dict:
    return {
        "$add": [
            {"$multiply": [{"$month": date_expr}, 100]},
            {"$dayOfMonth": date_expr},
        ]
    }


# Whole years since dob: year boundaries crossed, minus one before this year's birthday.
# Matches PostgreSQL date_part('year', age(dob)).
_MONGO_COMPLETED_YEARS = {
    "$subtract": [
        {"$dateDiff": {"startDate": "$dob", "endDate": "$$NOW", "unit": "year"}},
        {"$cond": [{"$gt": [_month_day("$dob"), _month_day("$$NOW")]}, 1, 0]},
    ]
}

BENCHMARK_CASES: tuple[BenchmarkCase, ...] = (
    BenchmarkCase(
        id="count-all",
        description="Count every row.",
        queries={
            POSTGRES: "SELECT count(*) FROM {table}",
            CLICKHOUSE: "SELECT count() FROM {table}",
            MONGODB: [{"$count": "count"}],
        },
    ),
    BenchmarkCase(
        id="count-by-sex",
        description="Row count grouped by sex.",
        queries={
            POSTGRES: "SELECT sex, count(*) FROM {table} GROUP BY sex",
            CLICKHOUSE: "SELECT sex, count() FROM {table} GROUP BY sex",
            MONGODB: [{"$group": {"_id": "$sex", "count": {"$sum": 1}}}],
        },
    ),
    BenchmarkCase(
        id="filter-by-sex",
        description=f"Full rows where sex = '{FILTER_SEX}', fully consumed.",
        queries={
            POSTGRES: f"SELECT * FROM {{table}} WHERE sex = '{FILTER_SEX}'",
            CLICKHOUSE: f"SELECT * FROM {{table}} WHERE sex = '{FILTER_SEX}'",
            MONGODB: [{"$match": {"sex": FILTER_SEX}}],
        },
    ),
    BenchmarkCase(
        id="avg-age-by-sex",
        description="Average age in whole years grouped by sex.",
        queries={
            POSTGRES: (
                "SELECT sex, avg(date_part('year', age(dob))) AS avg_age "
                "FROM {table} GROUP BY sex"
            ),
            CLICKHOUSE: (
                "SELECT sex, avg(dateDiff('year', dob, today()) - "
                "(toMonth(dob) * 100 + toDayOfMonth(dob) > "
                "toMonth(today()) * 100 + toDayOfMonth(today()))) AS avg_age "
                "FROM {table} GROUP BY sex"
            ),
            MONGODB: [
                {"$group": {"_id": "$sex", "avg_age": {"$avg": _MONGO_COMPLETED_YEARS}}}
            ],
        },
    ),
    BenchmarkCase(
        id="sorted-limit-by-dob",
        description=f"The {SORTED_LIMIT} youngest people by date of birth.",
        queries={
            POSTGRES: f"SELECT * FROM {{table}} ORDER BY dob DESC LIMIT {SORTED_LIMIT}",
            CLICKHOUSE: f"SELECT * FROM {{table}} ORDER BY dob DESC LIMIT {SORTED_LIMIT}",
            MONGODB: [{"$sort": {"dob": -1}}, {"$limit": SORTED_LIMIT}],
        },
    ),
)


def available_cases() -> List[str]:
    """Case ids in declaration order."""
    return [case.id for case in BENCHMARK_CASES]


def resolve_cases(case_ids: Optional[Sequence[str]] = None) -> List[BenchmarkCase]:
    """Look up cases by id, preserving declaration order; None means all."""
    if not case_ids:
        return list(BENCHMARK_CASES)
    by_id: Dict[str, BenchmarkCase] = {case.id: case for case in BENCHMARK_CASES}
    unknown = [case_id for case_id in case_ids if case_id not in by_id]
    if unknown:
        raise ValueError(
            f"Unknown benchmark case(s) {unknown}. Available: {', '.join(available_cases())}"
        )
    wanted = set(case_ids)
    return [case for case in BENCHMARK_CASES if case.id in wanted]


__all__ = ["BENCHMARK_CASES", "available_cases", "resolve_cases"]
