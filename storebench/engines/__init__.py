"""
Engines package for storebench.

Re-exports the capability interface and a name-keyed factory registry so the
loader, benchmark runner and CLI select an engine variant by configuration
rather than by class.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from storebench.config import Settings
from storebench.domain.models import CLICKHOUSE, ENGINES, MONGODB, POSTGRES
from storebench.engines.abstract import EngineAdapter, QueryOutcome
from storebench.engines.clickhouse import ClickHouseEngine
from storebench.engines.mongodb import MongoEngine
from storebench.engines.postgres import PostgresEngine


def _engine_factories() -> Dict[str, Callable[[Optional[Settings]], EngineAdapter]]:
    """Registry of available engine variants, in declaration order."""
    return {
        POSTGRES: lambda settings: PostgresEngine(settings),
        CLICKHOUSE: lambda settings: ClickHouseEngine(settings),
        MONGODB: lambda settings: MongoEngine(settings),
    }


def available_engines() -> List[str]:
    """Engine names in declaration order (the benchmark tie-break order)."""
    return [name for name in ENGINES if name in _engine_factories()]


def build_engine(name: str, settings: Optional[Settings] = None) -> EngineAdapter:
    factories = _engine_factories()
    if name not in factories:
        raise ValueError(f"Unknown engine '{name}'. Available: {', '.join(factories)}")
    return factories[name](settings)


__all__ = [
    "ClickHouseEngine",
    "EngineAdapter",
    "MongoEngine",
    "PostgresEngine",
    "QueryOutcome",
    "available_engines",
    "build_engine",
]
