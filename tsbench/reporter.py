from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from tsbench.orchestrator import BenchmarkReport

# cgroup v1 reports "no limit" as a huge page-aligned number.
_CGROUP_V1_UNLIMITED = 9223372036854771712


def _read(path: str) -> Optional[str]:
    try:
        return Path(path).read_text().strip()
    except (FileNotFoundError, PermissionError, OSError):
        return None


def _format_memory(mem_bytes: int) -> str:
    mem_gb = mem_bytes / (1024**3)
    if mem_gb >= 1:
        return f"{mem_gb:.1f}GB"
    return f"{mem_bytes / (1024**2):.0f}MB"


def get_container_resources() -> Dict[str, Optional[str]]:
    """
    Get the CPU/memory limits the benchmark client runs under.

    Environment overrides win (BENCHMARK_CPU_LIMIT, BENCHMARK_MEMORY_LIMIT),
    then cgroup v2, then cgroup v1. Missing limits are None.
    """
    resources: Dict[str, Optional[str]] = {
        "cpus": os.environ.get("BENCHMARK_CPU_LIMIT") or None,
        "memory": os.environ.get("BENCHMARK_MEMORY_LIMIT") or None,
    }

    if resources["cpus"] is None:
        cpu_max = _read("/sys/fs/cgroup/cpu.max")
        parts = cpu_max.split() if cpu_max else []
        if len(parts) == 2 and parts[0] != "max":
            try:
                resources["cpus"] = f"{int(parts[0]) / int(parts[1]):.1f}"
            except ValueError:
                pass
    if resources["cpus"] is None:
        quota = _read("/sys/fs/cgroup/cpu/cpu.cfs_quota_us")
        period = _read("/sys/fs/cgroup/cpu/cpu.cfs_period_us")
        try:
            if quota and period and int(quota) > 0:
                resources["cpus"] = f"{int(quota) / int(period):.1f}"
        except ValueError:
            pass

    if resources["memory"] is None:
        for path in ("/sys/fs/cgroup/memory.max", "/sys/fs/cgroup/memory/memory.limit_in_bytes"):
            raw = _read(path)
            if not raw or raw == "max":
                continue
            try:
                mem_bytes = int(raw)
            except ValueError:
                continue
            if mem_bytes < _CGROUP_V1_UNLIMITED:
                resources["memory"] = _format_memory(mem_bytes)
                break

    return resources


def _median(value: Any) -> Any:
    return value["median"] if isinstance(value, dict) else value


def _format_result_row(res: Dict[str, Any]) -> list[str]:
    duration = res.get("duration_seconds", 0.0)
    if isinstance(duration, dict):
        duration_str = f"{duration['median']:.4f} ± {duration['stddev']:.4f}"
    else:
        duration_str = f"{duration:.4f}"

    throughput = _median(res.get("throughput_rows_per_sec")) or 0.0
    mem_bytes = _median(res.get("peak_rss_bytes")) or 0
    cpu = _median(res.get("cpu_percent"))

    return [
        res.get("benchmark", "Unknown"),
        f"{res.get('rows', 0):,}",
        str(res.get("runs", 1)),
        duration_str,
        f"{throughput:,.2f}",
        f"{mem_bytes / (1024 * 1024):.2f}",
        f"{cpu:.1f}" if cpu is not None else "N/A",
    ]


def print_results(report: BenchmarkReport, console: Optional[Console] = None) -> None:
    """
    Render the benchmark matrix and storage footprint as rich tables.

    Results keep the orchestrator's order (operation, then backend) so the
    three backends sit next to each other for every operation.
    """
    console = console or Console()

    if not report.results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    resources = get_container_resources()
    resource_parts = []
    if resources["cpus"]:
        resource_parts.append(f"CPU: {resources['cpus']} cores")
    if resources["memory"]:
        resource_parts.append(f"Memory: {resources['memory']}")

    title = f"Time-Series Storage Benchmark ({report.num_objects:,} rows)"
    if resource_parts:
        title = f"{title}\n[dim]Client Resources: {' │ '.join(resource_parts)}[/dim]"

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Benchmark", style="cyan", no_wrap=True)
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Runs", justify="right", style="blue")
    table.add_column("Duration (s)\n[dim](Median ± StdDev)[/dim]", justify="right", style="green")
    table.add_column("Throughput (rows/s)", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("CPU %", justify="right", style="red")

    for res in report.results:
        table.add_row(*_format_result_row(res))

    console.print(table)

    if report.storage_kb:
        storage = Table(title="Storage Size", box=box.ROUNDED)
        storage.add_column("Backend", style="cyan", no_wrap=True)
        storage.add_column("Size (KB)", justify="right", style="magenta")
        for name, size in sorted(report.storage_kb.items(), key=lambda item: item[1]):
            storage.add_row(name, f"{size:,}")
        console.print(storage)


__all__ = ["get_container_resources", "print_results"]
