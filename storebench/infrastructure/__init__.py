"""
Infrastructure package for storebench.

Centralizes engine connectivity (client construction, the scripted connection
retry). Keep this layer focused on I/O and resource management, decoupled from
loader and benchmark logic.
"""

from storebench.infrastructure.db_factory import (
    build_pg_dsn,
    connect_clickhouse,
    connect_mongo,
    connect_postgres,
)

__all__ = [
    "build_pg_dsn",
    "connect_clickhouse",
    "connect_mongo",
    "connect_postgres",
]
