from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from kas.core.errors import ValidationError
from kas.utils.dates import (
    derive_date_partition,
    month_bounds,
    month_partition,
    parse_date,
    parse_year_month,
)

SHANGHAI = ZoneInfo("Asia/Shanghai")


@pytest.mark.parametrize("tz", ["UTC", "Asia/Shanghai", "America/Los_Angeles"])
def test_partition_is_stable_across_representations(tz: str) -> None:
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for hours in range(0, 72, 5):
        instant = start + timedelta(hours=hours, minutes=7)
        expected = derive_date_partition(instant, tz)

        assert derive_date_partition(instant.astimezone(SHANGHAI), tz) == expected
        assert derive_date_partition(instant.astimezone(ZoneInfo("Europe/Berlin")), tz) == expected
        assert derive_date_partition(instant, tz) == expected


def test_partition_follows_reference_timezone() -> None:
    evening_utc = datetime(2026, 3, 1, 17, 30, tzinfo=timezone.utc)

    assert derive_date_partition(evening_utc, "UTC") == date(2026, 3, 1)
    assert derive_date_partition(evening_utc, "Asia/Shanghai") == date(2026, 3, 2)


def test_naive_timestamp_is_read_as_utc() -> None:
    naive = datetime(2026, 3, 1, 23, 59)

    assert derive_date_partition(naive, "UTC") == date(2026, 3, 1)
    assert derive_date_partition(naive, "Asia/Shanghai") == date(2026, 3, 2)


def test_parse_date_accepts_iso_day() -> None:
    assert parse_date("2026-02-28") == date(2026, 2, 28)


@pytest.mark.parametrize("value", ["2026-2-28", "20260228", "2026-02-30", "", "2026-02-28T00:00"])
def test_parse_date_rejects_other_formats(value: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_date(value)

    assert excinfo.value.status_code == 400


def test_parse_year_month() -> None:
    assert parse_year_month("2026-09") == (2026, 9)
    for bad in ("2026-9", "2026-13", "2026-00", "2026/09"):
        with pytest.raises(ValidationError):
            parse_year_month(bad)


def test_month_bounds_roll_over_the_year() -> None:
    assert month_bounds(2026, 12) == (date(2026, 12, 1), date(2027, 1, 1))
    assert month_bounds(2026, 2) == (date(2026, 2, 1), date(2026, 3, 1))
    assert month_partition(date(2026, 7, 4)) == "2026-07"
