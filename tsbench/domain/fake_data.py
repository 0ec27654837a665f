"""
Synthetic measurement generation for the time-series storage benchmark.

Produces an hourly series of records with a fixed shape and random values. The
base timestamp is an explicit argument; callers take it from settings.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from tsbench.domain.models import DataObject

BASE_TIME = datetime(2021, 1, 1, tzinfo=timezone.utc)
STEP = timedelta(hours=1)
INTERVAL_MS = 3_600_000
DEFAULT_AREA = "lv"
DEFAULT_SOURCE = "source-of-data"


def generate_fake_data(
    count: int,
    base_time: datetime = BASE_TIME,
    *,
    area: str = DEFAULT_AREA,
    source: str = DEFAULT_SOURCE,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> List[DataObject]:
    """
    Generate `count` hourly records starting at `base_time`.

    Parameters
    ----------
    count : int
        Number of records; must be >= 0.
    base_time : datetime
        `start_time` of the first record. Naive values are treated as UTC.
    area, source : str
        Constant labels stamped on every record.
    rng : random.Random, optional
        Source of `value`; pass a seeded instance for reproducible values.
    now : datetime, optional
        Fixed audit timestamp. Defaults to the wall clock at each record.

    Returns
    -------
    list[DataObject]
        Records ordered by strictly increasing `start_time`.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")

    rand = rng or random.Random()
    if base_time.tzinfo is None:
        base_time = base_time.replace(tzinfo=timezone.utc)

    rows: List[DataObject] = []
    for i in range(count):
        stamp = now or datetime.now(timezone.utc)
        rows.append(
            DataObject(
                created_at=stamp,
                updated_at=stamp,
                start_time=base_time + i * STEP,
                interval=INTERVAL_MS,
                area=area,
                source=source,
                value=rand.random(),
            )
        )
    return rows


__all__ = [
    "BASE_TIME",
    "DEFAULT_AREA",
    "DEFAULT_SOURCE",
    "INTERVAL_MS",
    "generate_fake_data",
]
