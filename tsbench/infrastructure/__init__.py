"""
Infrastructure package for the time-series storage benchmark.

Centralizes database connectivity concerns (DSN composition, connect with
retry). Keep this layer focused on I/O and resource management, decoupled from
adapter/orchestrator logic.
"""

from tsbench.infrastructure.db_factory import (
    build_mongo_uri,
    build_postgres_dsn,
    get_mongo_client,
    get_postgres_connection,
)

__all__ = [
    "build_mongo_uri",
    "build_postgres_dsn",
    "get_mongo_client",
    "get_postgres_connection",
]
