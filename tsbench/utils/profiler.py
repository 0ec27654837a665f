"""
Profiling utilities for the time-series storage benchmark.

Each sub-benchmark iteration (one adapter, one operation) runs inside
`profile_block`, which records:
- Wall-clock time (perf_counter)
- CPU usage of this process (psutil)
- Peak RSS via a background sampling thread (psutil)
- Peak Python allocations (tracemalloc)

The client-side numbers matter because the generated records and the decoded
read results live in this process, not in the database.

Usage:
    from tsbench.utils.profiler import profile_block

    with profile_block("pg-tsc-upsert-bulk") as stats:
        database.upsert_bulk(records)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Measurements for one profiled block.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    peak_traced_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, enable_tracemalloc: bool = False
) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Parameters
    ----------
    label : str
        Sub-benchmark name, e.g. "mongodb-get-1000".
    sample_interval_ms : int
        RSS sampling period. Lower = closer peak estimate, more overhead.
    enable_tracemalloc : bool
        Track Python allocations too. Off by default: tracemalloc slows the
        per-row model construction enough to distort write timings.

    Notes
    -----
    Peak RSS is sampled in a background thread so short allocation bursts
    (a bulk statement's parameter list) are not missed between the start and
    end snapshots.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    started_tracing = False
    if enable_tracemalloc and not tracemalloc.is_tracing():
        tracemalloc.start()
        started_tracing = True

    # First call only primes the counter.
    process.cpu_percent(interval=None)

    sampler = threading.Thread(target=_sample_memory, name=f"rss-{label}", daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        sampler.join(timeout=1.0)

        stats.peak_rss_bytes = peak_rss or None
        stats.cpu_percent = process.cpu_percent(interval=None)

        if enable_tracemalloc and tracemalloc.is_tracing():
            _, stats.peak_traced_bytes = tracemalloc.get_traced_memory()
            if started_tracing:
                tracemalloc.stop()


__all__ = ["ProfileStats", "profile_block"]
