"""
Configuration settings for storebench.

Uses Pydantic Settings to load environment variables for the three engine
connections, load/benchmark defaults, persisted artifact locations and logging.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL (row store)
    pg_host: str = Field("localhost", alias="PG_HOST")
    pg_port: int = Field(5432, alias="PG_PORT")
    pg_user: str = Field("postgres", alias="PG_USER")
    pg_password: str = Field("postgres", alias="PG_PASSWORD")
    pg_database: str = Field("people", alias="PG_DATABASE")
    pg_connect_timeout: int = Field(10, alias="PG_CONNECT_TIMEOUT")

    # ClickHouse (column store)
    clickhouse_host: str = Field("localhost", alias="CLICKHOUSE_HOST")
    clickhouse_port: int = Field(8123, alias="CLICKHOUSE_PORT")
    clickhouse_user: str = Field("default", alias="CLICKHOUSE_USER")
    clickhouse_password: str = Field("", alias="CLICKHOUSE_PASSWORD")
    clickhouse_database: str = Field("default", alias="CLICKHOUSE_DATABASE")
    clickhouse_backup_destination: str = Field(
        "Disk('backups', '{name}.zip')", alias="CLICKHOUSE_BACKUP_DESTINATION"
    )

    # MongoDB (document store)
    mongo_uri: str = Field("mongodb://localhost:27017", alias="MONGO_URI")
    mongo_database: str = Field("people", alias="MONGO_DATABASE")
    mongo_server_selection_timeout_ms: int = Field(5_000, alias="MONGO_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    # Load / benchmark defaults
    default_table: str = Field("people", alias="DEFAULT_TABLE")
    load_batch_size: int = Field(10_000, alias="LOAD_BATCH_SIZE")
    load_tolerance: int | None = Field(None, alias="LOAD_TOLERANCE")
    load_tolerance_ratio: float | None = Field(None, alias="LOAD_TOLERANCE_RATIO")
    failure_sample_limit: int = Field(20, alias="FAILURE_SAMPLE_LIMIT")

    # Persisted artifacts
    results_dir: str = Field("results", alias="RESULTS_DIR")
    backup_dir: str = Field("backups", alias="BACKUP_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
