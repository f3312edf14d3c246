"""
Domain models for storebench.

Persisted entities (reports, results, artifacts) are frozen Pydantic models so
they serialize cleanly to the JSON run files and cannot be mutated after the
operation that produced them returns. The per-row types used on the load hot
path (SourceRecord, CoercedRecord, CoercionFailure) are plain frozen
dataclasses.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, computed_field, model_validator

POSTGRES = "postgres"
CLICKHOUSE = "clickhouse"
MONGODB = "mongodb"

# Declaration order doubles as the tie-break order for benchmark winners.
ENGINES: Tuple[str, ...] = (POSTGRES, CLICKHOUSE, MONGODB)

_FROZEN = {"frozen": True, "populate_by_name": True}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SemanticType(str, Enum):
    IDENTIFIER = "identifier"
    SHORT_TEXT = "short_text"
    ENUM = "enum"
    LONG_TEXT = "long_text"
    DATE = "date"


class FieldSpec(BaseModel):
    """
    One column of the logical schema.

    `length` is the exact length of an identifier or the maximum length of short
    text; `values` is the declared value set of an enum; `low_cardinality` is a
    hint that the engine may dictionary-encode the column.
    """

    name: str
    semantic_type: SemanticType
    nullable: bool = False
    unique: bool = False
    length: Optional[int] = None
    values: Tuple[str, ...] = ()
    low_cardinality: bool = False

    model_config = _FROZEN


class LogicalSchema(BaseModel):
    """Ordered field list shared by every engine-specific emission."""

    name: str
    fields: Tuple[FieldSpec, ...]

    model_config = _FROZEN

    @model_validator(mode="after")
    def _unique_names(self) -> "LogicalSchema":
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema '{self.name}': {names}")
        return self

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)


@dataclass(frozen=True)
class SourceRecord:
    line_number: int
    cells: Tuple[str, ...]


@dataclass(frozen=True)
class CoercedRecord:
    line_number: int
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class CoercionFailure:
    line_number: int
    field: str
    raw_value: Optional[str]
    reason: str


CoercionOutcome = Union[CoercedRecord, CoercionFailure]


class ToleranceConfig(BaseModel):
    """
    How many per-record failures a load absorbs before aborting.

    Either limit may be None (unbounded). Both set means whichever trips first.
    """

    max_failures: Optional[int] = Field(None, ge=0)
    max_ratio: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = _FROZEN

    def exceeded_count(self, failed: int) -> bool:
        return self.max_failures is not None and failed > self.max_failures

    def exceeded_ratio(self, failed: int, total: int) -> bool:
        return self.max_ratio is not None and total > 0 and failed / total > self.max_ratio


class FailureSample(BaseModel):
    line_number: int
    field: str
    raw_value: Optional[str] = None
    reason: str

    model_config = _FROZEN


class LoadReport(BaseModel):
    """Outcome of one load invocation against one engine table."""

    engine: str
    table: str
    total_rows: int
    succeeded: int
    failed: int
    failure_samples: Tuple[FailureSample, ...] = ()
    elapsed_seconds: float
    throughput_rows_per_sec: float
    batch_size: int
    batches_committed: int
    aborted: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)

    model_config = _FROZEN

    @model_validator(mode="after")
    def _rows_add_up(self) -> "LoadReport":
        if self.succeeded + self.failed != self.total_rows:
            raise ValueError(
                f"succeeded ({self.succeeded}) + failed ({self.failed}) "
                f"!= total_rows ({self.total_rows})"
            )
        return self


class BenchmarkCase(BaseModel):
    """
    A named analytical query with one template per engine.

    SQL templates use `{table}`; MongoDB templates are aggregation pipelines.
    """

    id: str
    description: str
    queries: Dict[str, Any]

    model_config = _FROZEN


class BenchmarkResult(BaseModel):
    case_id: str
    engine: str
    elapsed_seconds: Optional[float] = None
    rows_returned: Optional[int] = None
    scalar: Optional[Any] = None
    warm: bool = False
    peak_rss_bytes: Optional[int] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    model_config = _FROZEN

    @property
    def ok(self) -> bool:
        return self.error is None


class ComparisonTable(BaseModel):
    """Benchmark results keyed by (case id, engine)."""

    engines: Tuple[str, ...]
    case_ids: Tuple[str, ...]
    results: Tuple[BenchmarkResult, ...]
    warmup: bool = False
    table: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = _FROZEN

    def get(self, case_id: str, engine: str) -> Optional[BenchmarkResult]:
        for result in self.results:
            if result.case_id == case_id and result.engine == engine:
                return result
        return None

    def comparable(self, result: BenchmarkResult) -> bool:
        """Whether a result ran in the table's mode (a failed warmup leaves it cold)."""
        return result.warm == self.warmup

    def winner(self, case_id: str) -> Optional[str]:
        """
        Engine with the lowest elapsed time; ties go to the earlier-declared engine.

        Only results measured in the table's warm/cold mode compete, so a cold
        timing is never ranked against warm ones.
        """
        best: Optional[BenchmarkResult] = None
        for engine in self.engines:
            result = self.get(case_id, engine)
            if result is None or not result.ok or result.elapsed_seconds is None:
                continue
            if not self.comparable(result):
                continue
            if best is None or result.elapsed_seconds < best.elapsed_seconds:
                best = result
        return best.engine if best else None

    def winners(self) -> Dict[str, Optional[str]]:
        return {case_id: self.winner(case_id) for case_id in self.case_ids}

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json")
        payload["winners"] = self.winners()
        return payload


class BackupArtifact(BaseModel):
    """A finished native dump; `name` is the file stem shared by the artifact and its manifest."""

    engine: str
    table: str
    name: str
    handle: str
    source_row_count: int
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = _FROZEN


class RestoreReport(BaseModel):
    engine: str
    source_table: str
    target_table: str
    source_row_count: int
    restored_row_count: int

    model_config = _FROZEN

    @computed_field  # type: ignore[prop-decorator]
    @property
    def matches_source(self) -> bool:
        return self.restored_row_count == self.source_row_count


__all__ = [
    "POSTGRES",
    "CLICKHOUSE",
    "MONGODB",
    "ENGINES",
    "SemanticType",
    "FieldSpec",
    "LogicalSchema",
    "SourceRecord",
    "CoercedRecord",
    "CoercionFailure",
    "CoercionOutcome",
    "ToleranceConfig",
    "FailureSample",
    "LoadReport",
    "BenchmarkCase",
    "BenchmarkResult",
    "ComparisonTable",
    "BackupArtifact",
    "RestoreReport",
]
