"""
Orchestrator for the backend comparison: setup, timed sub-benchmarks, storage
footprint.

Usage (example from CLI):
    from tsbench.orchestrator import RunConfig, run_benchmark

    report = run_benchmark(RunConfig(num_objects=10_000, read_limit=1_000))
    print(report.storage_kb)

Phases, in order: setup every adapter once, upsert-single per adapter,
upsert-bulk per adapter, manual compression (no-op where unsupported), ordered
read per adapter, settle delay, storage size per adapter. The first failing
adapter call aborts the run.

With `persist=True` outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import statistics
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from tsbench.backends.abstract import Database
from tsbench.backends.mongo import MongoDatabase
from tsbench.backends.postgres import PostgresDatabase
from tsbench.config import Settings, get_settings
from tsbench.domain.fake_data import generate_fake_data
from tsbench.errors import BenchmarkError, BenchmarkOperationError, ReadCountMismatchError
from tsbench.infrastructure.db_factory import build_mongo_uri, build_postgres_dsn
from tsbench.utils.logging import get_logger
from tsbench.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

UPSERT_SINGLE = "upsert-single"
UPSERT_BULK = "upsert-bulk"
GET = "get"


@dataclass
class RunConfig:
    """
    Knobs for one benchmark run. None means "take it from settings".
    """

    num_objects: Optional[int] = None
    read_limit: Optional[int] = None
    runs: Optional[int] = None
    settle_seconds: Optional[float] = None
    backends: Optional[Sequence[str]] = None
    persist: bool = False
    results_dir: Path | str = "results"


@dataclass
class BenchmarkReport:
    num_objects: int
    read_limit: int
    results: List[dict] = field(default_factory=list)
    storage_kb: Dict[str, int] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "num_objects": self.num_objects,
            "read_limit": self.read_limit,
            "results": self.results,
            "storage_kb": self.storage_kb,
        }


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _summary(values: List[float], decimals: int = 2) -> dict:
    return {
        "median": _round_float(statistics.median(values), decimals),
        "mean": _round_float(statistics.mean(values), decimals),
        "stddev": _round_float(statistics.stdev(values), decimals) if len(values) > 1 else 0.0,
        "min": _round_float(min(values), decimals),
        "max": _round_float(max(values), decimals),
    }


def _aggregate_runs(run_results: List[dict]) -> dict:
    """
    Aggregate the iterations of one sub-benchmark into a statistical summary.

    Returns median, mean, stddev, min and max for duration and throughput, plus
    CPU and peak RSS when every iteration reported them.
    """
    first = run_results[0]
    aggregated = {
        "benchmark": first["benchmark"],
        "backend": first["backend"],
        "operation": first["operation"],
        "rows": first["rows"],
        "runs": len(run_results),
        "duration_seconds": _summary([r["duration_seconds"] for r in run_results], decimals=4),
        "throughput_rows_per_sec": _summary([r["throughput_rows_per_sec"] for r in run_results]),
        "individual_runs": run_results,
    }

    cpu_percents = [r["cpu_percent"] for r in run_results if r.get("cpu_percent") is not None]
    if cpu_percents:
        aggregated["cpu_percent"] = _summary(cpu_percents, decimals=1)

    # Integers, no rounding needed
    peak_rss_values = [r["peak_rss_bytes"] for r in run_results if r.get("peak_rss_bytes")]
    if peak_rss_values:
        aggregated["peak_rss_bytes"] = {
            "median": int(statistics.median(peak_rss_values)),
            "mean": int(statistics.mean(peak_rss_values)),
            "stddev": int(statistics.stdev(peak_rss_values)) if len(peak_rss_values) > 1 else 0,
            "min": min(peak_rss_values),
            "max": max(peak_rss_values),
        }

    return aggregated


def _backend_factories(settings: Settings) -> Dict[str, Callable[[], Database]]:
    """Registry of available backends, in reporting order."""
    common = {
        "connect_attempts": settings.db_connect_attempts,
        "connect_timeout_s": settings.db_connect_timeout_s,
    }
    return {
        "mongodb": lambda: MongoDatabase(
            "mongodb",
            build_mongo_uri(settings.port_mongo, settings),
            db_name=settings.db_name,
            collection_name=settings.db_table_name,
            **common,
        ),
        "pg-ntv": lambda: PostgresDatabase(
            "pg-ntv",
            build_postgres_dsn(settings.port_postgres, settings),
            table_name=settings.db_table_name,
            **common,
        ),
        "pg-tsc": lambda: PostgresDatabase(
            "pg-tsc",
            build_postgres_dsn(settings.port_timescale, settings),
            table_name=settings.db_table_name,
            using_timescale=True,
            chunk_interval=settings.timescale_chunk_interval,
            **common,
        ),
    }


def available_backends() -> List[str]:
    """List available backend labels."""
    return list(_backend_factories(get_settings()).keys())


def create_databases(names: Sequence[str], settings: Settings) -> List[Database]:
    """
    Connect the named backends. If any connection fails, the ones already
    opened are closed and BenchmarkOperationError is raised from the native
    error.
    """
    factories = _backend_factories(settings)
    unknown = [name for name in names if name not in factories]
    if unknown:
        raise ValueError(
            f"Unknown backend(s) {', '.join(unknown)}. Available: {', '.join(factories)}"
        )

    databases: List[Database] = []
    for name in names:
        log.info(f"[CONNECT] {name}", extra={"backend": name})
        try:
            databases.append(factories[name]())
        except Exception as exc:
            _close_all(databases)
            raise BenchmarkOperationError(f"{name}-connect", name, exc) from exc
    return databases


def _close_all(databases: Sequence[Database]) -> None:
    for database in databases:
        try:
            database.close()
        except Exception:  # noqa: BLE001 - closing must reach every adapter
            log.exception("Failed to close backend", extra={"backend": database.get_name()})


def _call(benchmark: str, database: Database, func: Callable[..., Any], *args: Any) -> Any:
    """Invoke an adapter operation, tagging native failures with the backend name."""
    try:
        return func(*args)
    except BenchmarkError:
        raise
    except Exception as exc:
        log.error(
            f"[BENCHMARK FAILED] {benchmark}",
            extra={"benchmark": benchmark, "backend": database.get_name(), "error": str(exc)},
        )
        raise BenchmarkOperationError(benchmark, database.get_name(), exc) from exc


def _merge_result(rows: int, stats: ProfileStats) -> dict:
    """Turn profiler stats into a result row, rounding floats for readability."""
    duration = stats.duration_seconds
    return {
        "rows": rows,
        "duration_seconds": _round_float(duration, 4),
        "throughput_rows_per_sec": _round_float(rows / duration) if duration else 0.0,
        "peak_rss_bytes": stats.peak_rss_bytes,
        "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
    }


def _run_sub_benchmark(
    database: Database,
    operation: str,
    rows: int,
    runs: int,
    func: Callable[[], Any],
    benchmark: Optional[str] = None,
) -> dict:
    name = database.get_name()
    benchmark = benchmark or f"{name}-{operation}"
    log.info(f"[BENCHMARK START] {benchmark}", extra={"benchmark": benchmark, "runs": runs})

    run_results: List[dict] = []
    for run_num in range(1, runs + 1):
        with profile_block(benchmark) as stats:
            _call(benchmark, database, func)
        result = _merge_result(rows, stats)
        result.update(benchmark=benchmark, backend=name, operation=operation, run=run_num)
        run_results.append(result)

    outcome = _aggregate_runs(run_results) if runs > 1 else run_results[0]
    duration = outcome["duration_seconds"]
    throughput = outcome["throughput_rows_per_sec"]
    log.info(
        f"[BENCHMARK DONE] {benchmark}",
        extra={
            "benchmark": benchmark,
            "rows": rows,
            "duration": duration["median"] if isinstance(duration, dict) else duration,
            "throughput_rps": throughput["median"] if isinstance(throughput, dict) else throughput,
        },
    )
    return outcome


def _timed_read(database: Database, limit: int) -> Callable[[], None]:
    def read() -> None:
        docs = database.get_ordered_with_limit(limit)
        if len(docs) != limit:
            raise ReadCountMismatchError(database.get_name(), limit, len(docs))

    return read


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_benchmark(
    config: Optional[RunConfig] = None,
    databases: Optional[Sequence[Database]] = None,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BenchmarkReport:
    """
    Run the full comparison matrix.

    Parameters
    ----------
    config : RunConfig | None
        Run knobs; unset fields fall back to settings.
    databases : sequence[Database] | None
        Adapters to benchmark. When None, the backends named in
        `config.backends` (default: all) are connected here and closed on exit;
        adapters passed in stay open for the caller to close.
    settings : Settings | None
        Defaults source. Uses the cached settings when omitted.
    sleep : callable
        Used for the settle delay; injectable for tests.

    Returns
    -------
    BenchmarkReport
        One result per (backend, operation) plus storage size per backend.

    Raises
    ------
    BenchmarkError
        The first failure: an adapter error, a short read or a bad size.
    """
    settings = settings or get_settings()
    config = config or RunConfig()
    num_objects = (
        settings.benchmark_num_objects if config.num_objects is None else config.num_objects
    )
    read_limit = (
        settings.benchmark_read_limit if config.read_limit is None else config.read_limit
    )
    runs = config.runs or settings.benchmark_runs
    settle_seconds = (
        settings.benchmark_settle_seconds
        if config.settle_seconds is None
        else config.settle_seconds
    )

    owned = databases is None
    if databases is None:
        names = config.backends or list(_backend_factories(settings))
        databases = create_databases(names, settings)

    report = BenchmarkReport(num_objects=num_objects, read_limit=read_limit)
    try:
        for database in databases:
            _call(f"{database.get_name()}-setup", database, database.setup)

        fake = generate_fake_data(num_objects, settings.benchmark_base_time)
        log.info("Generated fake data", extra={"rows": len(fake)})

        for database in databases:
            report.results.append(
                _run_sub_benchmark(
                    database,
                    UPSERT_SINGLE,
                    num_objects,
                    runs,
                    lambda db=database: db.upsert_single(fake),
                )
            )

        for database in databases:
            report.results.append(
                _run_sub_benchmark(
                    database,
                    UPSERT_BULK,
                    num_objects,
                    runs,
                    lambda db=database: db.upsert_bulk(fake),
                )
            )

        # Backends without compression treat this as a no-op.
        for database in databases:
            benchmark = f"{database.get_name()}-compression"
            with profile_block(benchmark) as stats:
                _call(benchmark, database, database.exec_manual_compression)
            if getattr(database, "supports_compression", False):
                log.info(
                    f"[COMPRESSION] {database.get_name()}",
                    extra={
                        "backend": database.get_name(),
                        "duration": round(stats.duration_seconds, 4),
                    },
                )

        for database in databases:
            report.results.append(
                _run_sub_benchmark(
                    database,
                    GET,
                    read_limit,
                    runs,
                    _timed_read(database, read_limit),
                    benchmark=f"{database.get_name()}-get-{read_limit}",
                )
            )

        if settle_seconds > 0:
            log.info(
                f"[SETTLE] Sleeping {settle_seconds:g}s so storage statistics converge",
                extra={"settle_seconds": settle_seconds},
            )
            sleep(settle_seconds)

        log.info(f"[STORAGE] storage size for {num_objects} rows", extra={"rows": num_objects})
        for database in databases:
            name = database.get_name()
            size = _call(f"{name}-storage-size", database, database.table_size_in_kb)
            report.storage_kb[name] = size
            log.info(f"[STORAGE] {name}: {size} KB", extra={"backend": name, "size_kb": size})
    finally:
        if owned:
            _close_all(databases)

    if config.persist:
        _persist_results(report.to_payload(), Path(config.results_dir))

    return report


__all__ = [
    "BenchmarkReport",
    "RunConfig",
    "available_backends",
    "create_databases",
    "run_benchmark",
]
