from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from tsbench.domain.models import FIELDS, DataObject, collapse_duplicates

T0 = datetime(2021, 1, 1, tzinfo=timezone.utc)


def _obj(start: datetime = T0, value: float = 0.5, stamp: datetime = T0, **kw) -> DataObject:
    fields = dict(
        created_at=stamp,
        updated_at=stamp,
        start_time=start,
        interval=3_600_000,
        area="lv",
        source="s",
        value=value,
    )
    fields.update(kw)
    return DataObject(**fields)


def test_naive_datetimes_become_utc() -> None:
    obj = _obj(start=datetime(2021, 1, 1, 5))
    assert obj.start_time == datetime(2021, 1, 1, 5, tzinfo=timezone.utc)
    assert obj.start_time.tzinfo == timezone.utc


def test_aware_datetimes_converted_to_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    obj = _obj(start=datetime(2021, 1, 1, 2, tzinfo=plus_two))
    assert obj.start_time == T0
    assert obj.start_time.utcoffset() == timedelta(0)


def test_key_and_row_order() -> None:
    obj = _obj()
    assert obj.key == (T0, 3_600_000, "lv")
    assert obj.as_row() == tuple(obj.to_document()[name] for name in FIELDS)
    assert list(obj.to_document()) == list(FIELDS)


def test_frozen() -> None:
    obj = _obj()
    with pytest.raises(ValidationError):
        obj.value = 1.0  # type: ignore[misc]


def test_collapse_duplicates_keeps_first_created_at_and_last_values() -> None:
    later = T0 + timedelta(minutes=5)
    first = _obj(value=0.1, stamp=T0, source="first")
    other = _obj(start=T0 + timedelta(hours=1), value=0.2)
    last = _obj(value=0.9, stamp=later, source="last")

    merged = collapse_duplicates([first, other, last])

    assert len(merged) == 2
    assert merged[0].key == first.key
    assert merged[0].created_at == T0
    assert merged[0].updated_at == later
    assert merged[0].source == "last"
    assert merged[0].value == 0.9
    assert merged[1] == other


def test_collapse_duplicates_without_duplicates_is_identity() -> None:
    rows = [_obj(start=T0 + timedelta(hours=i)) for i in range(5)]
    assert collapse_duplicates(rows) == rows
