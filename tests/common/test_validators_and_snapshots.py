from datetime import date, datetime, time
from decimal import Decimal

import pytest

from src.settlement_engine.settlement_engine.common.datetime_utils import combine_deadline, parse_iso_date
from src.settlement_engine.settlement_engine.common.snapshots import SnapshotCache
from src.settlement_engine.settlement_engine.common.validators import optional_hours, require_hours, require_progress
from src.settlement_engine.settlement_engine.core.exceptions import InvalidArgument, UpstreamUnavailable


@pytest.mark.parametrize("value", [-1, 101, "abc", None, 50.5])
def test_require_progress_rejects(value):
    with pytest.raises(InvalidArgument):
        require_progress(value)


def test_require_progress_accepts_strings_and_whole_floats():
    assert require_progress("40") == 40
    assert require_progress(100.0) == 100


@pytest.mark.parametrize("value", [-0.5, "x", "NaN", "Infinity", True])
def test_require_hours_rejects(value):
    with pytest.raises(InvalidArgument):
        require_hours(value, "hours")


def test_optional_hours():
    assert optional_hours(None, "h") is None
    assert optional_hours("", "h") is None
    assert optional_hours("7.5", "h") == Decimal("7.5")


def test_combine_deadline():
    assert combine_deadline(date(2024, 6, 1), time(17, 0)) == datetime(2024, 6, 1, 17, 0)
    assert combine_deadline(datetime(2024, 6, 1, 9, 0)) == datetime(2024, 6, 1, 9, 0)


def test_parse_iso_date_rejects_garbage():
    with pytest.raises(InvalidArgument):
        parse_iso_date("01/06/2024")


def test_snapshot_cache_falls_back_per_key():
    cache = SnapshotCache()
    assert cache.fetch("k", lambda: [1, 2]) == [1, 2]

    def down():
        raise UpstreamUnavailable("replica gone")

    assert cache.fetch("k", down) == [1, 2]
    with pytest.raises(UpstreamUnavailable):
        cache.fetch("other", down)
