"""
Integration tests for the backend adapters.

These tests run against real MongoDB, PostgreSQL and TimescaleDB servers and
verify for every adapter that:
1. Upserts never duplicate a natural key and keep the first created_at
2. Ordered reads are newest-first and honor the limit
3. Setup wipes existing data
4. Storage sizes are reported

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
import random
from datetime import datetime, timedelta, timezone

import pytest

from tsbench.backends.abstract import Database
from tsbench.domain.fake_data import generate_fake_data

T_FIRST = datetime(2024, 1, 1, tzinfo=timezone.utc)
T_SECOND = T_FIRST + timedelta(hours=1)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
        reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable servers",
    ),
]


def _all(database: Database):
    return database.get_ordered_with_limit(1_000_000)


def _rewritten(docs, value_offset: float = 0.5):
    return [
        doc.model_copy(
            update={
                "updated_at": T_SECOND,
                "created_at": T_SECOND,
                "source": "second-write",
                "value": (doc.value + value_offset) % 1.0,
            }
        )
        for doc in docs
    ]


def _assert_latest_write_wins(database: Database, first, second) -> None:
    stored = _all(database)
    assert len(stored) == len(first)
    assert len({doc.key for doc in stored}) == len(first)

    by_key = {doc.key: doc for doc in stored}
    for original, latest in zip(first, second):
        row = by_key[original.key]
        assert row.created_at == T_FIRST
        assert row.updated_at == T_SECOND
        assert row.source == "second-write"
        assert row.value == pytest.approx(latest.value)


def test_upsert_single_twice_does_not_duplicate(database: Database) -> None:
    first = generate_fake_data(20, now=T_FIRST)
    second = _rewritten(first)

    database.upsert_single(first)
    database.upsert_single(second)

    _assert_latest_write_wins(database, first, second)


def test_upsert_bulk_twice_does_not_duplicate(database: Database) -> None:
    first = generate_fake_data(20, now=T_FIRST)
    second = _rewritten(first)

    database.upsert_bulk(first)
    database.upsert_bulk(second)

    _assert_latest_write_wins(database, first, second)


def test_upsert_bulk_with_repeated_key_in_one_batch(database: Database) -> None:
    first = generate_fake_data(5, now=T_FIRST)
    second = _rewritten(first[:1])

    database.upsert_bulk(first + second)

    stored = {doc.key: doc for doc in _all(database)}
    assert len(stored) == 5
    assert stored[first[0].key].created_at == T_FIRST
    assert stored[first[0].key].source == "second-write"


def test_upsert_bulk_empty_changes_nothing(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(3, now=T_FIRST))
    before = _all(database)

    database.upsert_bulk([])

    assert _all(database) == before


def test_ordered_read_limit_and_order(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(50))

    docs = database.get_ordered_with_limit(20)

    assert len(docs) == 20
    starts = [doc.start_time for doc in docs]
    assert all(a > b for a, b in zip(starts, starts[1:]))


def test_ordered_read_returns_fewer_when_fewer_exist(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(7))
    assert len(database.get_ordered_with_limit(10)) == 7


def test_end_to_end_hundred_hourly_records(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(100, rng=random.Random(3)))
    database.exec_manual_compression()

    docs = database.get_ordered_with_limit(10)

    newest = datetime(2021, 1, 5, 3, tzinfo=timezone.utc)
    expected = [newest - k * timedelta(hours=1) for k in range(10)]
    assert [doc.start_time for doc in docs] == expected
    assert all(0.0 <= doc.value < 1.0 for doc in docs)
    assert all(doc.area == "lv" for doc in docs)


def test_setup_again_leaves_store_empty(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(10))
    assert len(database.get_ordered_with_limit(1)) == 1

    database.setup()

    assert database.get_ordered_with_limit(1) == []


def test_table_size_reported_after_compression(database: Database) -> None:
    database.upsert_bulk(generate_fake_data(2_000))
    database.exec_manual_compression()

    assert database.table_size_in_kb() > 0
