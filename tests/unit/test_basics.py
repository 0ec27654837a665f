from datetime import datetime, timezone
from decimal import Decimal
from time import sleep

import pytest
from bson.int64 import Int64

from tsbench import config
from tsbench.backends.abstract import bytes_to_kb
from tsbench.errors import SizeQueryError
from tsbench.infrastructure.db_factory import build_mongo_uri, build_postgres_dsn
from tsbench.utils import profiler


def test_get_settings_defaults():
    settings = config.Settings()
    assert settings.db_host == "localhost"
    assert settings.db_user == "test"
    assert settings.db_name == "timeseries_benchmark"
    assert settings.db_table_name == "data_objects"
    assert (settings.port_mongo, settings.port_postgres, settings.port_timescale) == (
        5551,
        5552,
        5553,
    )
    assert settings.benchmark_num_objects == 10_000
    assert settings.benchmark_read_limit == 1_000
    assert settings.benchmark_settle_seconds == 30.0
    assert settings.benchmark_base_time == datetime(2021, 1, 1, tzinfo=timezone.utc)
    assert settings.db_connect_attempts == 1
    assert "app_env" not in config.Settings.model_fields


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PORT_TIMESCALE", "6000")
    monkeypatch.setenv("BENCHMARK_SETTLE_SECONDS", "0.5")
    settings = config.Settings()
    assert settings.port_timescale == 6000
    assert settings.benchmark_settle_seconds == 0.5


def test_dsn_and_uri_composition():
    settings = config.Settings(db_user="u@x", db_password="p/w", db_host="db")
    assert build_postgres_dsn(5552, settings) == "postgresql://u%40x:p%2Fw@db:5552/timeseries_benchmark"
    assert build_mongo_uri(5551, settings) == "mongodb://u%40x:p%2Fw@db:5551/?authSource=admin"


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.peak_rss_bytes and stats.peak_rss_bytes > 0
    assert isinstance(stats.cpu_percent, float)


def test_profile_block_traces_python_allocations():
    with profiler.profile_block("alloc", enable_tracemalloc=True) as stats:
        buffer = [0] * 1000

    assert len(buffer) == 1000
    assert stats.label == "alloc"
    assert stats.peak_traced_bytes is not None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0, 0), (1023, 0), (2048, 2), (Int64(4096), 4), (Decimal("8192"), 8), ("10240", 10), (3072.0, 3)],
)
def test_bytes_to_kb(raw, expected):
    assert bytes_to_kb("pg-ntv", raw) == expected


@pytest.mark.parametrize("raw", [None, "", "12kB", True, 1.5, float("nan"), -1, object()])
def test_bytes_to_kb_rejects_non_numeric(raw):
    with pytest.raises(SizeQueryError) as info:
        bytes_to_kb("pg-tsc", raw)
    assert info.value.backend == "pg-tsc"
