"""
Backends package for the time-series storage benchmark.

Re-exports the adapter interface and the concrete adapters so downstream code
can import from `tsbench.backends` directly.
"""

from tsbench.backends.abstract import AbstractDatabase, Database
from tsbench.backends.mongo import MongoDatabase
from tsbench.backends.postgres import PostgresDatabase

__all__ = [
    # Abstracts
    "AbstractDatabase",
    "Database",
    # Concrete adapters
    "MongoDatabase",
    "PostgresDatabase",
]
