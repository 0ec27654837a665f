"""
Database connection factory utilities for the time-series storage benchmark.

Composes DSNs/URIs from settings and opens the single connection (PostgreSQL)
or client (MongoDB) each adapter owns for its lifetime. No pooling: every
adapter drives exactly one session, sequentially.

Includes retry logic for transient connection failures using tenacity. Only
connection establishment is retried; statements never are.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote_plus

import psycopg
from psycopg import Connection
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tsbench.config import Settings, get_settings
from tsbench.utils.logging import get_logger

log = get_logger(__name__)


def build_postgres_dsn(port: int, settings: Optional[Settings] = None) -> str:
    """Compose a PostgreSQL DSN for the server listening on `port`."""
    settings = settings or get_settings()
    return (
        f"postgresql://{quote_plus(settings.db_user)}:{quote_plus(settings.db_password)}"
        f"@{settings.db_host}:{port}/{settings.db_name}"
    )


def build_mongo_uri(port: int, settings: Optional[Settings] = None) -> str:
    """Compose a MongoDB URI authenticating against the admin database."""
    settings = settings or get_settings()
    return (
        f"mongodb://{quote_plus(settings.db_user)}:{quote_plus(settings.db_password)}"
        f"@{settings.db_host}:{port}/?authSource=admin"
    )


def _log_retry(retry_state) -> None:
    log.warning(
        "Connection attempt failed, retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "error": str(retry_state.outcome.exception()),
        },
    )


def get_postgres_connection(dsn: str, attempts: int = 1, timeout_s: int = 10) -> Connection:
    """
    Open a dedicated autocommit PostgreSQL connection with automatic retry.

    The session time zone is pinned to UTC so TIMESTAMPTZ values come back
    normalized.

    Parameters
    ----------
    dsn : str
        Connection string.
    attempts : int
        Total connection attempts before the native error is re-raised.
    timeout_s : int
        Per-attempt connect timeout in seconds.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
        before_sleep=_log_retry,
        reraise=True,
    )
    def _connect() -> Connection:
        return psycopg.connect(
            dsn,
            autocommit=True,
            connect_timeout=timeout_s,
            options="-c timezone=UTC",
        )

    return _connect()


def get_mongo_client(uri: str, attempts: int = 1, timeout_s: int = 10) -> MongoClient:
    """
    Create a MongoDB client and verify the server answers a ping.

    MongoClient connects lazily, so the ping is what surfaces an unreachable
    server at construction time. Returned datetimes are tz-aware UTC.

    Raises
    ------
    pymongo.errors.ConnectionFailure
        If the server is unreachable after all retry attempts.
    """

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(ConnectionFailure),
        before_sleep=_log_retry,
        reraise=True,
    )
    def _connect() -> MongoClient:
        client: MongoClient = MongoClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_s * 1000,
        )
        try:
            client.admin.command("ping")
        except ConnectionFailure:
            client.close()
            raise
        return client

    return _connect()


__all__ = [
    "build_mongo_uri",
    "build_postgres_dsn",
    "get_mongo_client",
    "get_postgres_connection",
]
