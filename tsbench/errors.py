"""
Exception hierarchy for the time-series storage benchmark.

Adapters let their driver's native exceptions (psycopg.Error,
pymongo.errors.PyMongoError) propagate; the orchestrator wraps them in
BenchmarkOperationError so the failing sub-benchmark and backend are named.
"""

from __future__ import annotations

from typing import Any


class BenchmarkError(Exception):
    """Base class for every fault that aborts a benchmark run."""


class BenchmarkOperationError(BenchmarkError):
    """An adapter call failed during a sub-benchmark."""

    def __init__(self, benchmark: str, backend: str, cause: BaseException) -> None:
        self.benchmark = benchmark
        self.backend = backend
        self.cause = cause
        super().__init__(f"{benchmark} failed on {backend}: {cause}")


class ReadCountMismatchError(BenchmarkError):
    """An ordered read returned a different number of records than requested."""

    def __init__(self, backend: str, expected: int, actual: int) -> None:
        self.backend = backend
        self.expected = expected
        self.actual = actual
        super().__init__(f"{backend}: expected {expected} records, got {actual}")


class SizeQueryError(BenchmarkError):
    """The storage size query returned nothing usable."""

    def __init__(self, backend: str, raw: Any) -> None:
        self.backend = backend
        self.raw = raw
        super().__init__(f"{backend}: non-numeric storage size {raw!r}")


__all__ = [
    "BenchmarkError",
    "BenchmarkOperationError",
    "ReadCountMismatchError",
    "SizeQueryError",
]
