"""
Configuration settings for the time-series storage benchmark.

Uses Pydantic Settings to load environment variables for the three database
connections, logging, and benchmark defaults. Values are read once and passed
explicitly into adapters and the data generator.
"""
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (shared credentials, one port per backend)
    db_host: str = Field("localhost", alias="DB_HOST")
    db_user: str = Field("test", alias="DB_USER")
    db_password: str = Field("test", alias="DB_PASSWORD")
    db_name: str = Field("timeseries_benchmark", alias="DB_NAME")
    db_table_name: str = Field("data_objects", alias="DB_TABLE_NAME")
    db_connect_timeout_s: int = Field(10, alias="DB_CONNECT_TIMEOUT_S")
    db_connect_attempts: int = Field(1, ge=1, alias="DB_CONNECT_ATTEMPTS")

    port_mongo: int = Field(5551, alias="PORT_MONGO")
    port_postgres: int = Field(5552, alias="PORT_POSTGRES")
    port_timescale: int = Field(5553, alias="PORT_TIMESCALE")

    timescale_chunk_interval: str = Field("60 days", alias="TIMESCALE_CHUNK_INTERVAL")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Benchmark defaults
    benchmark_num_objects: int = Field(10_000, ge=0, alias="BENCHMARK_NUM_OBJECTS")
    benchmark_read_limit: int = Field(1_000, ge=0, alias="BENCHMARK_READ_LIMIT")
    benchmark_runs: int = Field(1, ge=1, alias="BENCHMARK_RUNS")
    benchmark_settle_seconds: float = Field(30.0, ge=0, alias="BENCHMARK_SETTLE_SECONDS")
    benchmark_base_time: datetime = Field(
        datetime(2021, 1, 1, tzinfo=timezone.utc), alias="BENCHMARK_BASE_TIME"
    )

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
