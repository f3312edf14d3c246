"""
storebench - load and benchmark one people dataset across storage engines.

This package drives the same synthetic "people" data through three storage
models and compares them:

- PostgreSQL (row store)
- ClickHouse (column store)
- MongoDB (document store)

It translates one logical schema into per-engine DDL, bulk-loads CSV files
with type coercion and a failure tolerance, times a fixed battery of
analytical queries and wraps each engine's native backup/restore with
row-count verification.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from storebench.backup import backup, read_manifest, restore
from storebench.config import Settings, get_settings
from storebench.engines import EngineAdapter, available_engines, build_engine
from storebench.loader import load, load_many, read_source
from storebench.orchestrator import RunConfig, run_benchmark
from storebench.schema import PEOPLE_SCHEMA, emit_ddl
from storebench.utils.logging import configure_logging, get_logger
from storebench.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "PEOPLE_SCHEMA",
    "emit_ddl",
    # Engines
    "EngineAdapter",
    "available_engines",
    "build_engine",
    # Operations
    "load",
    "load_many",
    "read_source",
    "RunConfig",
    "run_benchmark",
    "backup",
    "restore",
    "read_manifest",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
