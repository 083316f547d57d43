from datetime import date, datetime, timedelta, timezone

import pytest

from errors import ValidationError
from periods import day_window, month_key, month_window


def test_month_window_covers_whole_month_and_excludes_next() -> None:
    window = month_window("2025-02")

    assert window.start == datetime(2025, 2, 1)
    assert window.end == datetime(2025, 3, 1)
    assert window.contains(datetime(2025, 2, 1, 0, 0, 0))
    assert window.contains(datetime(2025, 2, 28, 23, 59, 59))
    assert window.contains(datetime(2025, 2, 28, 23, 59, 59, 999999))
    assert not window.contains(datetime(2025, 3, 1, 0, 0, 0))
    assert not window.contains(datetime(2025, 1, 31, 23, 59, 59))


def test_month_window_rolls_over_year_in_december() -> None:
    window = month_window("2024-12")

    assert window.start == datetime(2024, 12, 1)
    assert window.end == datetime(2025, 1, 1)


def test_month_window_handles_leap_february() -> None:
    window = month_window("2024-02")

    assert window.contains(datetime(2024, 2, 29, 12, 0))
    assert window.end - window.start == timedelta(days=29)


def test_month_window_converts_aware_timestamps_to_utc() -> None:
    window = month_window("2025-03")
    plus_two = timezone(timedelta(hours=2))

    # 01:30 at UTC+2 on March 1st is still February in UTC.
    assert not window.contains(datetime(2025, 3, 1, 1, 30, tzinfo=plus_two))
    assert window.contains(datetime(2025, 3, 1, 2, 30, tzinfo=plus_two))


@pytest.mark.parametrize(
    "value",
    ["2025-13", "2025-00", "25-10", "2025-1", "2025/10", "2025-10-01", "", " 2025-10", None],
)
def test_month_window_rejects_malformed_months(value) -> None:
    with pytest.raises(ValidationError):
        month_window(value)


def test_month_window_rejects_out_of_range_year() -> None:
    with pytest.raises(ValidationError):
        month_window("0000-05")
    with pytest.raises(ValidationError):
        month_window("9999-12")


def test_month_key_is_zero_padded() -> None:
    assert month_key(2025, 3) == "2025-03"
    assert month_key(987, 11) == "0987-11"


def test_day_window_is_day_inclusive() -> None:
    lower, upper = day_window(date(2025, 1, 5), date(2025, 1, 7))

    assert lower == datetime(2025, 1, 5)
    assert upper == datetime(2025, 1, 8)
    assert day_window(None, None) == (None, None)


def test_day_window_rejects_inverted_range() -> None:
    with pytest.raises(ValidationError):
        day_window(date(2025, 2, 1), date(2025, 1, 1))
