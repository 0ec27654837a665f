"""
Pytest configuration for the time-series storage benchmark.

Provides fixtures for:
- Settings override for integration tests
- Reachability checks for each backend
- Fresh, set-up adapters that are closed after each test
"""

from __future__ import annotations

import os
from typing import Callable, Generator

import psycopg
import pytest
from pymongo import MongoClient

from tsbench.backends.abstract import Database
from tsbench.backends.mongo import MongoDatabase
from tsbench.backends.postgres import PostgresDatabase
from tsbench.config import Settings
from tsbench.infrastructure.db_factory import build_mongo_uri, build_postgres_dsn

BACKENDS = ("mongodb", "pg-ntv", "pg-tsc")


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_user=os.getenv("DB_USER", "test"),
        db_password=os.getenv("DB_PASSWORD", "test"),
        db_name=os.getenv("DB_NAME", "timeseries_benchmark"),
        db_table_name=os.getenv("DB_TABLE_NAME", "data_objects_test"),
        port_mongo=int(os.getenv("PORT_MONGO", "5551")),
        port_postgres=int(os.getenv("PORT_POSTGRES", "5552")),
        port_timescale=int(os.getenv("PORT_TIMESCALE", "5553")),
        db_connect_attempts=1,
        db_connect_timeout_s=3,
        log_level="DEBUG",
    )


def _postgres_available(dsn: str) -> bool:
    try:
        with psycopg.connect(dsn, connect_timeout=3) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


def _mongo_available(uri: str) -> bool:
    client: MongoClient = MongoClient(uri, serverSelectionTimeoutMS=3000)
    try:
        client.admin.command("ping")
        return True
    except Exception:
        return False
    finally:
        client.close()


@pytest.fixture(scope="session")
def backend_available(test_settings: Settings) -> Callable[[str], bool]:
    """
    Check (once per backend) whether its server is reachable.

    Used to conditionally skip integration tests when a server is not running.
    """
    cache: dict[str, bool] = {}

    def check(name: str) -> bool:
        if name not in cache:
            if name == "mongodb":
                cache[name] = _mongo_available(build_mongo_uri(test_settings.port_mongo, test_settings))
            elif name == "pg-ntv":
                cache[name] = _postgres_available(
                    build_postgres_dsn(test_settings.port_postgres, test_settings)
                )
            else:
                cache[name] = _postgres_available(
                    build_postgres_dsn(test_settings.port_timescale, test_settings)
                )
        return cache[name]

    return check


def make_database(name: str, settings: Settings) -> Database:
    common = {
        "connect_attempts": settings.db_connect_attempts,
        "connect_timeout_s": settings.db_connect_timeout_s,
    }
    if name == "mongodb":
        return MongoDatabase(
            name,
            build_mongo_uri(settings.port_mongo, settings),
            db_name=settings.db_name,
            collection_name=settings.db_table_name,
            **common,
        )
    if name == "pg-ntv":
        return PostgresDatabase(
            name,
            build_postgres_dsn(settings.port_postgres, settings),
            table_name=settings.db_table_name,
            **common,
        )
    return PostgresDatabase(
        name,
        build_postgres_dsn(settings.port_timescale, settings),
        table_name=settings.db_table_name,
        using_timescale=True,
        chunk_interval=settings.timescale_chunk_interval,
        **common,
    )


@pytest.fixture(params=BACKENDS)
def database(
    request: pytest.FixtureRequest,
    test_settings: Settings,
    backend_available: Callable[[str], bool],
) -> Generator[Database, None, None]:
    """
    Provide a freshly set-up adapter for each backend in turn.

    Skips the backend if its server is not available.
    """
    name = request.param
    if not backend_available(name):
        pytest.skip(f"{name} not available for integration tests")

    db = make_database(name, test_settings)
    try:
        db.setup()
        yield db
    finally:
        db.close()
