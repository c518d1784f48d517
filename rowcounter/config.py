"""
Configuration settings for rowcounter.

Uses Pydantic Settings to load environment variables for the row-store
connection, logging, counter protocol knobs, and workload defaults.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rowcounter.domain.models import Consistency, DeletionMode


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("rowcounter", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(5_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(20, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Row store
    store_backend: str = Field("postgres", alias="STORE_BACKEND")
    keyspace: str = Field("jepsen_keyspace", alias="KEYSPACE")
    consistency: Consistency = Field(Consistency.QUORUM, alias="CONSISTENCY")
    replication_factor: int = Field(3, alias="REPLICATION_FACTOR")
    compaction_strategy: str = Field("SizeTieredCompactionStrategy", alias="COMPACTION_STRATEGY")
    page_size: int = Field(5_000, alias="PAGE_SIZE")
    fail_on_multipage: bool = Field(False, alias="FAIL_ON_MULTIPAGE")
    # Store settings applied once at schema setup, e.g. SYSTEM_CONFIG='{"work_mem": "64MB"}'.
    system_config: Dict[str, str] = Field(default_factory=dict, alias="SYSTEM_CONFIG")

    # Counter protocol
    counter_id: int = Field(0, alias="COUNTER_ID")
    extra_payload_size: int = Field(0, alias="EXTRA_PAYLOAD_SIZE")
    deletion_mode: DeletionMode = Field(DeletionMode.HARD, alias="DELETION_MODE")

    # Workload defaults
    workload_workers: int = Field(5, alias="WORKLOAD_WORKERS")
    workload_ops: int = Field(100, alias="WORKLOAD_OPS")
    workload_read_ratio: float = Field(0.5, alias="WORKLOAD_READ_RATIO")

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
