from __future__ import annotations

import sys
from typing import List, Optional

import typer

from tsbench.config import get_settings
from tsbench.errors import BenchmarkError
from tsbench.orchestrator import RunConfig, available_backends, run_benchmark
from tsbench.reporter import print_results
from tsbench.utils.logging import configure_logging

app = typer.Typer(help="Time-series storage benchmark CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"host={settings.db_host} db={settings.db_name} table={settings.db_table_name} "
        f"user={settings.db_user} | ports mongodb={settings.port_mongo} "
        f"pg-ntv={settings.port_postgres} pg-tsc={settings.port_timescale}"
    )
    typer.echo(
        f"rows={settings.benchmark_num_objects} read_limit={settings.benchmark_read_limit} "
        f"runs={settings.benchmark_runs} settle={settings.benchmark_settle_seconds:g}s "
        f"base_time={settings.benchmark_base_time.isoformat()}"
    )


@app.command()
def backends() -> None:
    """
    List the backend labels accepted by `run --backend`.
    """
    typer.echo("Available backends: " + ", ".join(available_backends()))


@app.command()
def run(
    rows: Optional[int] = typer.Option(
        None,
        "--rows",
        "-r",
        min=0,
        help="Number of records to generate (default from settings).",
    ),
    read_limit: Optional[int] = typer.Option(
        None,
        "--read-limit",
        "-l",
        min=0,
        help="Records fetched by the ordered read benchmark.",
    ),
    runs: Optional[int] = typer.Option(
        None,
        "--runs",
        min=1,
        help="Iterations per sub-benchmark; >1 reports median/stddev.",
    ),
    settle_seconds: Optional[float] = typer.Option(
        None,
        "--settle-seconds",
        min=0,
        help="Pause before measuring storage sizes (0 disables).",
    ),
    backend: Optional[List[str]] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Backend to include (repeatable; e.g. mongodb, pg-ntv, pg-tsc). Default: all.",
    ),
    save: bool = typer.Option(
        False,
        "--save/--no-save",
        help="Write results/latest.json and a timestamped archive.",
    ),
) -> None:
    """
    Run the upsert/read/storage comparison and render the results.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    config = RunConfig(
        num_objects=rows,
        read_limit=read_limit,
        runs=runs,
        settle_seconds=settle_seconds,
        backends=list(backend) if backend else None,
        persist=save,
    )
    try:
        report = run_benchmark(config, settings=settings)
    except (BenchmarkError, ValueError) as exc:
        typer.echo(f"Benchmark aborted: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    print_results(report)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
