"""
Time-series storage benchmark.

Compares write (single-row upsert, bulk upsert) and read (ordered range scan)
throughput and on-disk footprint across three backing stores:

- MongoDB
- plain PostgreSQL
- PostgreSQL with the TimescaleDB extension (compressed hypertable)

Every store is driven through the same Database adapter interface with one
shared, synthetic, hourly dataset, so each comparison sees identical writes.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from tsbench.backends.abstract import AbstractDatabase, Database
from tsbench.config import Settings, get_settings
from tsbench.domain.fake_data import generate_fake_data
from tsbench.domain.models import DataObject
from tsbench.errors import (
    BenchmarkError,
    BenchmarkOperationError,
    ReadCountMismatchError,
    SizeQueryError,
)
from tsbench.orchestrator import BenchmarkReport, RunConfig, available_backends, run_benchmark
from tsbench.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "DataObject",
    "generate_fake_data",
    # Backend interface
    "AbstractDatabase",
    "Database",
    # Orchestration
    "BenchmarkReport",
    "RunConfig",
    "available_backends",
    "run_benchmark",
    # Errors
    "BenchmarkError",
    "BenchmarkOperationError",
    "ReadCountMismatchError",
    "SizeQueryError",
    # Logging
    "configure_logging",
    "get_logger",
]
