from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from fuelquota.periods import is_expiring_soon, month_bounds, month_label, month_tick

COLOMBO = ZoneInfo("Asia/Colombo")


def test_month_bounds_cover_whole_local_month() -> None:
    start, end = month_bounds(datetime(2026, 10, 15, 12, 0, tzinfo=UTC), COLOMBO)
    assert start == datetime(2026, 10, 1, tzinfo=COLOMBO)
    assert end == datetime(2026, 10, 31, 23, 59, 59, 999999, tzinfo=COLOMBO)


def test_month_bounds_leap_february() -> None:
    _, end = month_bounds(datetime(2028, 2, 10, tzinfo=UTC), COLOMBO)
    assert end.day == 29


def test_month_boundary_follows_local_zone() -> None:
    # 20:00 UTC on 31 Oct is already 01:30 on 1 Nov in Colombo.
    now = datetime(2026, 10, 31, 20, 0, tzinfo=UTC)
    start, _ = month_bounds(now, COLOMBO)
    assert (start.year, start.month) == (2026, 11)
    assert month_tick(now, COLOMBO) == "2026-11"
    assert month_label(now, COLOMBO) == "November 2026"

    start_utc, _ = month_bounds(now, ZoneInfo("UTC"))
    assert start_utc.month == 10


def test_naive_now_is_treated_as_utc() -> None:
    assert month_tick(datetime(2026, 10, 31, 20, 0), COLOMBO) == "2026-11"


def test_expiring_soon_window() -> None:
    _, end = month_bounds(datetime(2026, 10, 15, tzinfo=UTC), COLOMBO)
    window = timedelta(days=3)
    assert not is_expiring_soon(end, datetime(2026, 10, 15, tzinfo=UTC), window)
    assert is_expiring_soon(end, datetime(2026, 10, 29, tzinfo=UTC), window)
