"""
Backend adapter interface for the time-series storage benchmark.

Every backing store (MongoDB, PostgreSQL, PostgreSQL + TimescaleDB) implements
the Database protocol. The orchestrator depends only on this protocol, never on
a concrete adapter class.
"""

from __future__ import annotations

import abc
import math
from decimal import Decimal
from typing import List, Protocol, Sequence, runtime_checkable

from tsbench.domain.models import DataObject
from tsbench.errors import SizeQueryError


@runtime_checkable
class Database(Protocol):
    """
    Common operation set all backend adapters must implement.

    Attributes
    ----------
    name : str
        Stable label used in sub-benchmark names and reports.
    supports_compression : bool
        Whether `exec_manual_compression` does any work on this backend.
    """

    name: str
    supports_compression: bool

    def get_name(self) -> str:
        ...

    def setup(self) -> None:
        """Drop and recreate the backing table/collection, leaving it empty."""
        ...

    def close(self) -> None:
        """Release the connection/client. Safe to call more than once."""
        ...

    def upsert_single(self, docs: Sequence[DataObject]) -> None:
        """
        Upsert records one at a time, each committed on its own.

        Stops at the first failure and re-raises it; earlier writes remain.
        """
        ...

    def upsert_bulk(self, docs: Sequence[DataObject]) -> None:
        """
        Upsert all records as one batch, atomically where the backend allows.

        An empty sequence is a no-op.
        """
        ...

    def get_ordered_with_limit(self, limit: int) -> List[DataObject]:
        """Return up to `limit` records, newest `start_time` first."""
        ...

    def table_size_in_kb(self) -> int:
        """Return the on-disk footprint of the records structure in KB."""
        ...

    def exec_manual_compression(self) -> None:
        """Synchronously compress closed chunks; no-op without the capability."""
        ...


class AbstractDatabase(abc.ABC):
    """
    ABC helper for class-based adapters.

    Subclasses set `name` (usually per instance) and implement the abstract
    operations. Compression defaults to a no-op.
    """

    name: str
    supports_compression: bool = False

    def get_name(self) -> str:
        return self.name

    @abc.abstractmethod
    def setup(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def upsert_single(self, docs: Sequence[DataObject]) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def upsert_bulk(self, docs: Sequence[DataObject]) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get_ordered_with_limit(self, limit: int) -> List[DataObject]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def table_size_in_kb(self) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    def exec_manual_compression(self) -> None:
        return None

    def __enter__(self) -> "AbstractDatabase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def check_limit(limit: int) -> None:
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")


def bytes_to_kb(backend: str, raw: object) -> int:
    """
    Convert a size query result to whole kilobytes.

    Drivers hand back ints, Int64, Decimal or strings depending on the store;
    anything that is not an integral number raises SizeQueryError.
    """
    if isinstance(raw, bool) or raw is None:
        raise SizeQueryError(backend, raw)
    if isinstance(raw, int):
        size = raw
    elif isinstance(raw, (float, Decimal)):
        if not math.isfinite(raw) or raw != int(raw):
            raise SizeQueryError(backend, raw)
        size = int(raw)
    elif isinstance(raw, str):
        try:
            size = int(raw.strip())
        except ValueError:
            raise SizeQueryError(backend, raw) from None
    else:
        try:
            size = int(raw)  # bson.Int64 and friends
        except (TypeError, ValueError):
            raise SizeQueryError(backend, raw) from None
    if size < 0:
        raise SizeQueryError(backend, raw)
    return size // 1024


__all__ = ["AbstractDatabase", "Database", "bytes_to_kb", "check_limit"]
