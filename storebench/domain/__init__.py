"""
Domain package for storebench.

Exports the core domain models shared by the schema registry, coercion layer,
loader, benchmark runner and backup coordinator.
"""

from storebench.domain.models import (
    CLICKHOUSE,
    ENGINES,
    MONGODB,
    POSTGRES,
    BackupArtifact,
    BenchmarkCase,
    BenchmarkResult,
    CoercedRecord,
    CoercionFailure,
    ComparisonTable,
    FailureSample,
    FieldSpec,
    LoadReport,
    LogicalSchema,
    RestoreReport,
    SemanticType,
    SourceRecord,
    ToleranceConfig,
)

__all__ = [
    "CLICKHOUSE",
    "ENGINES",
    "MONGODB",
    "POSTGRES",
    "BackupArtifact",
    "BenchmarkCase",
    "BenchmarkResult",
    "CoercedRecord",
    "CoercionFailure",
    "ComparisonTable",
    "FailureSample",
    "FieldSpec",
    "LoadReport",
    "LogicalSchema",
    "RestoreReport",
    "SemanticType",
    "SourceRecord",
    "ToleranceConfig",
]
