"""
Connection factory utilities for storebench.

Builds one client per engine family from settings. Connection establishment
gets exactly one scripted retry (tenacity, jittered exponential wait); any
failure after that is surfaced as EngineConnectionError naming the engine.
Mid-operation failures are never retried here.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import clickhouse_connect
import psycopg
import pymongo
from clickhouse_connect.driver.client import Client as ClickHouseClient
from clickhouse_connect.driver.exceptions import OperationalError as ClickHouseOperationalError
from psycopg import Connection
from pymongo.errors import ConnectionFailure
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from storebench.config import Settings, get_settings
from storebench.domain.models import CLICKHOUSE, MONGODB, POSTGRES
from storebench.errors import EngineConnectionError
from storebench.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# One initial attempt plus one scripted retry.
CONNECT_ATTEMPTS = 2

# Driver errors that mean the server went away rather than rejected the data.
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    ClickHouseOperationalError,
    ConnectionFailure,
)


def _connect_retry(
    exceptions: tuple[type[BaseException], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    return retry(
        stop=stop_after_attempt(CONNECT_ATTEMPTS),
        wait=wait_random_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(exceptions),
        before_sleep=lambda state: log.warning(
            "Connection attempt failed; retrying once",
            extra={"attempt": state.attempt_number},
        ),
        reraise=True,
    )


def is_connection_error(exc: BaseException) -> bool:
    return isinstance(exc, CONNECTION_ERRORS)


def build_pg_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a PostgreSQL DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.pg_user}:{settings.pg_password}"
        f"@{settings.pg_host}:{settings.pg_port}/{settings.pg_database}"
    )


@_connect_retry((psycopg.OperationalError, psycopg.InterfaceError))
def _pg_connect(dsn: str, timeout: int) -> Connection:
    return psycopg.connect(dsn, autocommit=True, connect_timeout=timeout)


def connect_postgres(
    settings: Optional[Settings] = None, dsn_override: Optional[str] = None
) -> Connection:
    """
    Open an autocommit psycopg connection.

    Autocommit keeps transaction boundaries explicit: the loader wraps each
    batch in `conn.transaction()`.

    Raises
    ------
    EngineConnectionError
        If the connection fails after the scripted retry.
    """
    settings = settings or get_settings()
    try:
        return _pg_connect(dsn_override or build_pg_dsn(settings), settings.pg_connect_timeout)
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        raise EngineConnectionError(POSTGRES, str(exc)) from exc


@_connect_retry((ClickHouseOperationalError,))
def _ch_connect(settings: Settings) -> ClickHouseClient:
    # get_client pings the server, so failures surface here rather than on first query.
    return clickhouse_connect.get_client(
        host=settings.clickhouse_host,
        port=settings.clickhouse_port,
        username=settings.clickhouse_user,
        password=settings.clickhouse_password,
        database=settings.clickhouse_database,
    )


def connect_clickhouse(settings: Optional[Settings] = None) -> ClickHouseClient:
    """Open a clickhouse-connect HTTP client."""
    settings = settings or get_settings()
    try:
        return _ch_connect(settings)
    except ClickHouseOperationalError as exc:
        raise EngineConnectionError(CLICKHOUSE, str(exc)) from exc


@_connect_retry((ConnectionFailure,))
def _mongo_connect(settings: Settings) -> pymongo.MongoClient[Any]:
    client: pymongo.MongoClient[Any] = pymongo.MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
    )
    try:
        # MongoClient connects lazily; force server selection now.
        client.admin.command("ping")
    except ConnectionFailure:
        client.close()
        raise
    return client


def connect_mongo(settings: Optional[Settings] = None) -> pymongo.MongoClient[Any]:
    """Open a pymongo client and verify the server is reachable."""
    settings = settings or get_settings()
    try:
        return _mongo_connect(settings)
    except ConnectionFailure as exc:
        raise EngineConnectionError(MONGODB, str(exc)) from exc


__all__ = [
    "CONNECTION_ERRORS",
    "CONNECT_ATTEMPTS",
    "build_pg_dsn",
    "connect_clickhouse",
    "connect_mongo",
    "connect_postgres",
    "is_connection_error",
]
